from __future__ import annotations

import os
from dataclasses import dataclass

from keyboard_heroes.core.constants import TICK_INTERVAL_MS

DEFAULT_SESSION_TTL_S = 900


@dataclass(frozen=True, slots=True)
class AppSettings:
    redis_url: str
    tick_interval_ms: int
    log_level: str
    # Sessions outside a game, untouched and unwatched this long, are dropped.
    session_ttl_s: int = DEFAULT_SESSION_TTL_S

    @property
    def tick_interval_s(self) -> float:
        return self.tick_interval_ms / 1000


def _positive_int(name: str, default: int) -> int:
    value = int(os.environ.get(name, str(default)))
    if value <= 0:
        raise RuntimeError(f"{name} must be a positive integer")
    return value


def settings_from_env() -> AppSettings:
    return AppSettings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        tick_interval_ms=_positive_int("KEYBOARD_HEROES_TICK_MS", TICK_INTERVAL_MS),
        log_level=os.environ.get("KEYBOARD_HEROES_LOG_LEVEL", "INFO").upper(),
        session_ttl_s=_positive_int("KEYBOARD_HEROES_SESSION_TTL_S", DEFAULT_SESSION_TTL_S),
    )
