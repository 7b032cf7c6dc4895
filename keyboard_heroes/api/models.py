from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from keyboard_heroes.core.constants import (
    DEFAULT_INITIAL_FALL_SPEED,
    DEFAULT_MAX_EXPLOSIONS,
    DEFAULT_SPEED_INCREASE_RATE,
    STORED_SPEED_MAX,
    STORED_SPEED_MIN,
)


class CharacterSet(BaseModel):
    lowercase: bool = True
    uppercase: bool = False
    numbers: bool = False
    special: bool = False
    russian: bool = False
    # Label only; does not change the spawn pool.
    english: bool = True


class GameplayConfig(BaseModel):
    initial_fall_speed: float = Field(DEFAULT_INITIAL_FALL_SPEED, gt=0)
    speed_increase_rate: float = Field(DEFAULT_SPEED_INCREASE_RATE, gt=0)
    max_explosions: int = Field(DEFAULT_MAX_EXPLOSIONS, ge=1)


class SessionPhase(StrEnum):
    menu = "menu"
    playing = "playing"
    game_over = "gameOver"
    settings = "settings"


# --- persisted records ---


class GameSettings(BaseModel):
    id: int
    player_name: str
    character_set: CharacterSet
    initial_fall_speed: float
    speed_increase_rate: float
    max_explosions: int
    created_at: datetime
    updated_at: datetime

    def gameplay_config(self) -> GameplayConfig:
        return GameplayConfig(
            initial_fall_speed=self.initial_fall_speed,
            speed_increase_rate=self.speed_increase_rate,
            max_explosions=self.max_explosions,
        )


class SessionResult(BaseModel):
    """Terminal summary of one game, as emitted at game over."""

    player_name: str = Field(..., min_length=1, max_length=50)
    score: int = Field(..., ge=0)
    letters_typed: int = Field(..., ge=0)
    letters_missed: int = Field(..., ge=0)
    # Seconds.
    game_duration: float = Field(..., ge=0)
    character_set: CharacterSet


class HighScore(SessionResult):
    id: int
    created_at: datetime


# --- requests ---


class GameSettingsCreateRequest(BaseModel):
    player_name: str = Field(..., min_length=1, max_length=50)
    character_set: CharacterSet = Field(default_factory=CharacterSet)
    initial_fall_speed: float | None = Field(None, ge=STORED_SPEED_MIN, le=STORED_SPEED_MAX)
    speed_increase_rate: float | None = Field(None, ge=STORED_SPEED_MIN, le=STORED_SPEED_MAX)
    max_explosions: int | None = Field(None, ge=1)


class GameSettingsUpdateRequest(BaseModel):
    player_name: str | None = Field(None, min_length=1, max_length=50)
    character_set: CharacterSet | None = None
    initial_fall_speed: float | None = Field(None, ge=STORED_SPEED_MIN, le=STORED_SPEED_MAX)
    speed_increase_rate: float | None = Field(None, ge=STORED_SPEED_MIN, le=STORED_SPEED_MAX)
    max_explosions: int | None = Field(None, ge=1)


class HighScoreCreateRequest(SessionResult):
    pass


class SessionCreateRequest(BaseModel):
    # Load a stored settings record; built-in defaults when omitted.
    settings_id: int | None = None
    character_set: CharacterSet | None = None
    config: GameplayConfig | None = None


class SessionStartRequest(BaseModel):
    player_name: str = Field(..., max_length=50)


class KeystrokeRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=1)


class SessionSettingsRequest(BaseModel):
    character_set: CharacterSet | None = None
    config: GameplayConfig | None = None


# --- responses ---


class GameSettingsListResponse(BaseModel):
    settings: list[GameSettings]


class HighScoreListResponse(BaseModel):
    high_scores: list[HighScore]


class FallingLetterView(BaseModel):
    id: str
    symbol: str
    x: float
    y: float
    speed: float


class SessionCountersView(BaseModel):
    score: int
    letters_typed: int
    letters_missed: int
    explosions: int
    current_speed: float


class SessionSnapshot(BaseModel):
    session_id: str
    phase: SessionPhase
    player_name: str
    seed: int
    character_set: CharacterSet
    config: GameplayConfig
    counters: SessionCountersView
    letters: list[FallingLetterView]
    started_at: datetime | None = None
    result: SessionResult | None = None


class KeystrokeResponse(BaseModel):
    matched: bool
    session: SessionSnapshot


class SaveResultResponse(BaseModel):
    result: SessionResult
    # False when the result only landed in the local fallback leaderboard.
    persisted: bool
    # True when this game over was already saved; nothing new was stored.
    already_saved: bool = False
    high_score: HighScore | None = None


class LeaderboardResponse(BaseModel):
    source: str
    entries: list[SessionResult]
