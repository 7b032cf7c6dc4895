from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import redis

from keyboard_heroes.api.models import (
    CharacterSet,
    FallingLetterView,
    GameplayConfig,
    SessionCountersView,
    SessionPhase,
    SessionResult,
    SessionSnapshot,
)
from keyboard_heroes.core.engine import advance_tick, match_keystroke
from keyboard_heroes.core.events import GameEvent
from keyboard_heroes.core.state import SessionCounters, SessionState
from keyboard_heroes.fsm import SessionFSM
from keyboard_heroes.persistence import LocalLeaderboard, SaveOutcome, local_leaderboard, persist_result
from keyboard_heroes.validators import ValidationContext, pipeline_for_action

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=UTC)


class TypingSession:
    """One player's typing session: phase transitions plus counter bookkeeping.

    Not thread-safe on its own. The async runner serializes every call behind a
    lock; synchronous callers (tests, CLI) must not share a session across threads.
    """

    def __init__(
        self,
        *,
        session_id: str | None = None,
        character_set: CharacterSet | None = None,
        config: GameplayConfig | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _now,
        leaderboard: LocalLeaderboard | None = None,
    ) -> None:
        if seed is None:
            seed = random.SystemRandom().randint(1, 2**31 - 1)

        self.state = SessionState(
            session_id=session_id or str(uuid4()),
            seed=seed,
            character_set=character_set or CharacterSet(),
            config=config or GameplayConfig(),
        )
        self.rng = rng or random.Random(seed)
        self._clock = clock
        self.leaderboard = leaderboard if leaderboard is not None else local_leaderboard

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def _validate(self, action: str, **payload: Any) -> None:
        ctx = ValidationContext(session_id=self.session_id, action=action, payload=payload)
        pipeline_for_action(action).validate(ctx=ctx, state=self.state)

    def _transition(self, event: str) -> None:
        fsm = SessionFSM(self.state)
        fsm.send(event)
        fsm.sync_phase_to_model()

    def _reset_for_new_game(self) -> None:
        s = self.state
        s.counters = SessionCounters(current_speed=s.config.initial_fall_speed)
        s.letters = ()
        s.next_letter_id = 0
        s.tick = 0
        s.started_at = self._clock()
        s.result = None

    # --- transitions ---

    def start(self, player_name: str) -> None:
        self._validate("start", player_name=player_name)

        self._transition("start_game")
        self.state.player_name = player_name.strip()
        self._reset_for_new_game()
        logger.info("session %s: %r started playing", self.session_id, self.state.player_name)

    def play_again(self) -> None:
        self._validate("play_again")

        self._transition("start_game")
        self._reset_for_new_game()
        logger.info("session %s: %r playing again", self.session_id, self.state.player_name)

    def quit(self) -> None:
        """Abandon the current game without persisting it."""
        self._validate("quit")

        self._transition("quit_game")
        self.state.letters = ()
        logger.info("session %s: quit to menu", self.session_id)

    def open_settings(self) -> None:
        self._validate("open_settings")
        self._transition("open_settings")

    def close_settings(
        self,
        *,
        character_set: CharacterSet | None = None,
        config: GameplayConfig | None = None,
    ) -> None:
        self._validate("close_settings")

        if character_set is not None:
            self.state.character_set = character_set
        if config is not None:
            self.state.config = config
        self._transition("close_settings")

    # --- gameplay ---

    def tick(self) -> list[GameEvent]:
        if self.state.phase != SessionPhase.playing:
            return []

        events = advance_tick(self.state, rng=self.rng)

        counters = self.state.counters
        if counters.explosions >= self.state.config.max_explosions:
            self._transition("end_game")
            events.append(
                GameEvent.now(
                    type="GAME_OVER",
                    tick=self.state.tick,
                    payload={"score": counters.score, "letters_missed": counters.letters_missed},
                )
            )
            logger.info(
                "session %s: game over (score=%s, typed=%s, missed=%s)",
                self.session_id,
                counters.score,
                counters.letters_typed,
                counters.letters_missed,
            )
        return events

    def press(self, key: str) -> GameEvent | None:
        if self.state.phase != SessionPhase.playing:
            return None
        return match_keystroke(self.state, key)

    # --- results ---

    def claim_result(self) -> SessionResult | None:
        """Build the SessionResult for this game over, once.

        Returns None if it was already claimed; callers only persist a fresh claim.
        """

        self._validate("save")
        if self.state.result is not None:
            return None

        s = self.state
        started_at = s.started_at or self._clock()
        duration = max(0.0, (self._clock() - started_at).total_seconds())
        s.result = SessionResult(
            player_name=s.player_name,
            score=s.counters.score,
            letters_typed=s.counters.letters_typed,
            letters_missed=s.counters.letters_missed,
            game_duration=duration,
            character_set=s.character_set,
        )
        return s.result

    def save_result(self, *, r: redis.Redis) -> SaveOutcome | None:
        result = self.claim_result()
        if result is None:
            logger.info("session %s: result already saved", self.session_id)
            return None
        return persist_result(r=r, result=result, leaderboard=self.leaderboard)

    def snapshot(self) -> SessionSnapshot:
        s = self.state
        return SessionSnapshot(
            session_id=s.session_id,
            phase=s.phase,
            player_name=s.player_name,
            seed=s.seed,
            character_set=s.character_set,
            config=s.config,
            counters=SessionCountersView(
                score=s.counters.score,
                letters_typed=s.counters.letters_typed,
                letters_missed=s.counters.letters_missed,
                explosions=s.counters.explosions,
                current_speed=s.counters.current_speed,
            ),
            letters=[
                FallingLetterView(id=lt.id, symbol=lt.symbol, x=lt.x, y=lt.y, speed=lt.speed) for lt in s.letters
            ],
            started_at=s.started_at,
            result=s.result,
        )
