from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from keyboard_heroes.api.models import CharacterSet, GameplayConfig, SessionPhase, SessionResult


@dataclass(frozen=True, slots=True)
class FallingLetter:
    """One falling symbol. `x` and `speed` are fixed at spawn."""

    id: str
    symbol: str
    x: float
    y: float
    speed: float


@dataclass(slots=True)
class SessionCounters:
    score: int = 0
    letters_typed: int = 0
    letters_missed: int = 0
    explosions: int = 0
    current_speed: float = 1.0


@dataclass(slots=True)
class SessionState:
    """Single-owner state for one player's session.

    `letters` is replaced wholesale on every mutation, never edited in place, so a
    reader never observes a half-applied tick or keystroke.
    """

    session_id: str
    seed: int
    character_set: CharacterSet = field(default_factory=CharacterSet)
    config: GameplayConfig = field(default_factory=GameplayConfig)
    phase: SessionPhase = SessionPhase.menu
    player_name: str = ""
    counters: SessionCounters = field(default_factory=SessionCounters)
    letters: tuple[FallingLetter, ...] = ()
    next_letter_id: int = 0
    tick: int = 0
    started_at: datetime | None = None

    # Set once per game over by the first save.
    result: SessionResult | None = None
