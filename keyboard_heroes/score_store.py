from __future__ import annotations

import logging
from datetime import UTC, datetime

import redis

from keyboard_heroes.api.models import (
    CharacterSet,
    GameSettings,
    GameSettingsCreateRequest,
    GameSettingsUpdateRequest,
    HighScore,
    SessionResult,
)
from keyboard_heroes.core.constants import (
    DEFAULT_INITIAL_FALL_SPEED,
    DEFAULT_MAX_EXPLOSIONS,
    DEFAULT_SPEED_INCREASE_RATE,
)
from keyboard_heroes.lock import settings_lock

logger = logging.getLogger(__name__)


HIGH_SCORE_SEQ_KEY = "keyboard_heroes:high_scores:seq"
HIGH_SCORE_KEY_PREFIX = "keyboard_heroes:high_score:"  # + {id}
HIGH_SCORES_BY_SCORE_KEY = "keyboard_heroes:high_scores:by_score"
HIGH_SCORES_BY_PLAYER_PREFIX = "keyboard_heroes:high_scores:player:"  # + {player_name}

SETTINGS_SEQ_KEY = "keyboard_heroes:settings:seq"
SETTINGS_KEY_PREFIX = "keyboard_heroes:settings:"  # + {id}
SETTINGS_SET_KEY = "keyboard_heroes:settings_ids"

MAX_HIGH_SCORE_LIMIT = 100


class SettingsNotFoundError(LookupError):
    def __init__(self, settings_id: int):
        super().__init__(f"Game settings with id {settings_id} not found")
        self.settings_id = settings_id


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _fixed(value: float) -> str:
    # Fixed-point columns keep two decimals; stored as numeric strings.
    return f"{value:.2f}"


def _high_score_key(high_score_id: int | str) -> str:
    return f"{HIGH_SCORE_KEY_PREFIX}{high_score_id}"


def _player_scores_key(player_name: str) -> str:
    return f"{HIGH_SCORES_BY_PLAYER_PREFIX}{player_name}"


def _settings_key(settings_id: int | str) -> str:
    return f"{SETTINGS_KEY_PREFIX}{settings_id}"


def _high_score_from_hash(raw: dict[str, str]) -> HighScore:
    return HighScore(
        id=int(raw["id"]),
        player_name=raw["player_name"],
        score=int(raw["score"]),
        letters_typed=int(raw["letters_typed"]),
        letters_missed=int(raw["letters_missed"]),
        game_duration=float(raw["game_duration"]),
        character_set=CharacterSet.model_validate_json(raw["character_set"]),
        created_at=datetime.fromisoformat(raw["created_at"]),
    )


def _settings_from_hash(raw: dict[str, str]) -> GameSettings:
    return GameSettings(
        id=int(raw["id"]),
        player_name=raw["player_name"],
        character_set=CharacterSet.model_validate_json(raw["character_set"]),
        initial_fall_speed=float(raw["initial_fall_speed"]),
        speed_increase_rate=float(raw["speed_increase_rate"]),
        max_explosions=int(raw["max_explosions"]),
        created_at=datetime.fromisoformat(raw["created_at"]),
        updated_at=datetime.fromisoformat(raw["updated_at"]),
    )


# --- high scores ---


def create_high_score(*, r: redis.Redis, payload: SessionResult) -> HighScore:
    high_score_id = int(r.incr(HIGH_SCORE_SEQ_KEY))
    mapping = {
        "id": str(high_score_id),
        "player_name": payload.player_name,
        "score": str(payload.score),
        "letters_typed": str(payload.letters_typed),
        "letters_missed": str(payload.letters_missed),
        "game_duration": _fixed(payload.game_duration),
        "character_set": payload.character_set.model_dump_json(),
        "created_at": _now().isoformat(),
    }

    pipe = r.pipeline()
    pipe.hset(_high_score_key(high_score_id), mapping=mapping)
    pipe.zadd(HIGH_SCORES_BY_SCORE_KEY, {str(high_score_id): payload.score})
    pipe.zadd(_player_scores_key(payload.player_name), {str(high_score_id): payload.score})
    pipe.execute()

    logger.info("high score %s stored for %r (score=%s)", high_score_id, payload.player_name, payload.score)
    return _high_score_from_hash(mapping)


def list_high_scores(*, r: redis.Redis, limit: int = 10, player_name: str | None = None) -> list[HighScore]:
    """Top `limit` scores, highest first, optionally for one player (exact name)."""

    if limit < 1 or limit > MAX_HIGH_SCORE_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_HIGH_SCORE_LIMIT}")

    index_key = _player_scores_key(player_name) if player_name else HIGH_SCORES_BY_SCORE_KEY
    ids = r.zrevrange(index_key, 0, limit - 1)
    if not ids:
        return []

    pipe = r.pipeline()
    for hid in ids:
        pipe.hgetall(_high_score_key(hid))
    rows = pipe.execute()

    return [_high_score_from_hash(raw) for raw in rows if raw]


# --- game settings ---


def create_game_settings(*, r: redis.Redis, payload: GameSettingsCreateRequest) -> GameSettings:
    settings_id = int(r.incr(SETTINGS_SEQ_KEY))
    now = _now().isoformat()

    initial_fall_speed = payload.initial_fall_speed or DEFAULT_INITIAL_FALL_SPEED
    speed_increase_rate = payload.speed_increase_rate or DEFAULT_SPEED_INCREASE_RATE
    max_explosions = payload.max_explosions or DEFAULT_MAX_EXPLOSIONS

    mapping = {
        "id": str(settings_id),
        "player_name": payload.player_name,
        "character_set": payload.character_set.model_dump_json(),
        "initial_fall_speed": _fixed(initial_fall_speed),
        "speed_increase_rate": _fixed(speed_increase_rate),
        "max_explosions": str(max_explosions),
        "created_at": now,
        "updated_at": now,
    }

    pipe = r.pipeline()
    pipe.hset(_settings_key(settings_id), mapping=mapping)
    pipe.sadd(SETTINGS_SET_KEY, str(settings_id))
    pipe.execute()

    logger.info("game settings %s created for %r", settings_id, payload.player_name)
    return _settings_from_hash(mapping)


def get_game_settings(*, r: redis.Redis, settings_id: int) -> GameSettings | None:
    raw = r.hgetall(_settings_key(settings_id))
    if not raw:
        return None
    return _settings_from_hash(raw)


def require_game_settings(*, r: redis.Redis, settings_id: int) -> GameSettings:
    settings = get_game_settings(r=r, settings_id=settings_id)
    if settings is None:
        raise SettingsNotFoundError(settings_id)
    return settings


def update_game_settings(
    *,
    r: redis.Redis,
    settings_id: int,
    payload: GameSettingsUpdateRequest,
) -> GameSettings:
    """Apply only the provided fields; `updated_at` always moves."""

    with settings_lock(r=r, settings_id=settings_id):
        key = _settings_key(settings_id)
        if not r.exists(key):
            raise SettingsNotFoundError(settings_id)

        changes: dict[str, str] = {}
        if payload.player_name is not None:
            changes["player_name"] = payload.player_name
        if payload.character_set is not None:
            changes["character_set"] = payload.character_set.model_dump_json()
        if payload.initial_fall_speed is not None:
            changes["initial_fall_speed"] = _fixed(payload.initial_fall_speed)
        if payload.speed_increase_rate is not None:
            changes["speed_increase_rate"] = _fixed(payload.speed_increase_rate)
        if payload.max_explosions is not None:
            changes["max_explosions"] = str(payload.max_explosions)
        changes["updated_at"] = _now().isoformat()

        r.hset(key, mapping=changes)
        return _settings_from_hash(r.hgetall(key))


def list_game_settings(*, r: redis.Redis) -> list[GameSettings]:
    ids = sorted(r.smembers(SETTINGS_SET_KEY), key=int)
    out: list[GameSettings] = []
    for sid in ids:
        settings = get_game_settings(r=r, settings_id=int(sid))
        if settings is not None:
            out.append(settings)
    # Newest first; ids break timestamp ties.
    out.sort(key=lambda s: (s.created_at, s.id), reverse=True)
    return out
