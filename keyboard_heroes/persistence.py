"""Degraded-mode wrappers around the score store.

The game never blocks or errors on an unreachable store: results land in an
in-process leaderboard and settings fall back to the built-in defaults.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import redis

from keyboard_heroes.api.models import CharacterSet, GameplayConfig, HighScore, SessionResult
from keyboard_heroes.core.constants import LOCAL_LEADERBOARD_SIZE
from keyboard_heroes.score_store import create_high_score, list_high_scores, require_game_settings

logger = logging.getLogger(__name__)


class LocalLeaderboard:
    """Top-N results by score, kept in memory only."""

    def __init__(self, size: int = LOCAL_LEADERBOARD_SIZE) -> None:
        self._size = size
        self._entries: list[SessionResult] = []
        self._lock = threading.Lock()

    def add(self, result: SessionResult) -> None:
        with self._lock:
            entries = [*self._entries, result]
            # sorted() is stable, so earlier entries win score ties.
            self._entries = sorted(entries, key=lambda e: e.score, reverse=True)[: self._size]

    def top(self, limit: int | None = None) -> list[SessionResult]:
        with self._lock:
            entries = list(self._entries)
        return entries if limit is None else entries[:limit]

    def clear(self) -> None:
        with self._lock:
            self._entries = []

    def __len__(self) -> int:
        return len(self._entries)


local_leaderboard = LocalLeaderboard()


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    result: SessionResult
    high_score: HighScore | None

    @property
    def persisted(self) -> bool:
        return self.high_score is not None


def persist_result(*, r: redis.Redis, result: SessionResult, leaderboard: LocalLeaderboard) -> SaveOutcome:
    try:
        high_score = create_high_score(r=r, payload=result)
    except redis.RedisError as e:
        logger.warning("score store unavailable, keeping result locally: %s", e)
        leaderboard.add(result)
        return SaveOutcome(result=result, high_score=None)
    return SaveOutcome(result=result, high_score=high_score)


def top_results(*, r: redis.Redis, leaderboard: LocalLeaderboard, limit: int = 10) -> tuple[str, list[SessionResult]]:
    """Return (source, results); source is "store" or "local"."""

    try:
        return "store", list(list_high_scores(r=r, limit=limit))
    except redis.RedisError as e:
        logger.warning("score store unavailable, serving local leaderboard: %s", e)
        return "local", leaderboard.top(limit)


def load_session_settings(*, r: redis.Redis, settings_id: int) -> tuple[CharacterSet, GameplayConfig]:
    """Load a stored settings record for a new session.

    A missing record raises SettingsNotFoundError; only an unreachable store
    falls back to the defaults.
    """

    try:
        stored = require_game_settings(r=r, settings_id=settings_id)
    except redis.RedisError as e:
        logger.warning("score store unavailable, using default settings: %s", e)
        return CharacterSet(), GameplayConfig()
    return stored.character_set, stored.gameplay_config()
