"""Async driver for typing sessions.

Each session gets one `SessionRunner`. Ticks (from a periodic task) and
keystrokes/actions (from HTTP or WebSocket handlers) all run their whole
read-modify-write under the runner's lock, so they never interleave.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import redis

from keyboard_heroes.api.models import CharacterSet, GameplayConfig, SessionPhase, SessionResult, SessionSnapshot
from keyboard_heroes.config import AppSettings
from keyboard_heroes.core.constants import TICK_INTERVAL_MS
from keyboard_heroes.core.events import GameEvent
from keyboard_heroes.persistence import SaveOutcome, persist_result
from keyboard_heroes.session import TypingSession

logger = logging.getLogger(__name__)

FramePublisher = Callable[[str, dict[str, Any]], Awaitable[None]]
SubscriberCount = Callable[[str], int]

SESSION_SWEEP_INTERVAL_S = 30.0


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    tick_interval_s: float = TICK_INTERVAL_MS / 1000

    @staticmethod
    def from_settings(settings: AppSettings) -> "RunnerConfig":
        return RunnerConfig(tick_interval_s=settings.tick_interval_s)


class SessionRunner:
    def __init__(
        self,
        session: TypingSession,
        *,
        config: RunnerConfig | None = None,
        publish: FramePublisher | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.config = config or RunnerConfig()
        self._publish = publish
        self._clock = clock
        self.last_active = clock()
        self._pending_save: asyncio.Task[SaveOutcome] | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        # Bumped whenever ticking stops; a tick from an older generation is a no-op.
        self._generation = 0

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def is_ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    def touch(self) -> None:
        self.last_active = self._clock()

    def is_idle(self, *, ttl_s: float) -> bool:
        """A game in progress is never idle; anything else is once `ttl_s` passes untouched."""

        if self.session.phase == SessionPhase.playing:
            return False
        return self._clock() - self.last_active >= ttl_s

    # --- tick task (caller holds the lock) ---

    def _start_ticking(self) -> None:
        self._stop_ticking()
        generation = self._generation
        self._task = asyncio.create_task(self._tick_forever(generation), name=f"tick:{self.session_id}")

    def _stop_ticking(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _tick_forever(self, generation: int) -> None:
        interval = self.config.tick_interval_s
        while True:
            await asyncio.sleep(interval)

            async with self._lock:
                if generation != self._generation:
                    return
                events = self.session.tick()
                frame = self._frame(events)
                finished = self.session.phase != SessionPhase.playing
                if finished:
                    self._stop_ticking()
                    # Idle time counts from game over, not from the last keystroke.
                    self.touch()

            await self._emit(frame)
            if finished:
                return

    # --- frames ---

    def _frame(self, events: list[GameEvent] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "frame"}
        payload.update(self.session.snapshot().model_dump(mode="json"))
        payload["events"] = [e.as_dict() for e in events or []]
        return payload

    async def _emit(self, frame: dict[str, Any]) -> None:
        if self._publish is None:
            return
        await self._publish(self.session_id, frame)

    async def current_frame(self) -> dict[str, Any]:
        async with self._lock:
            self.touch()
            return self._frame()

    async def snapshot(self) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            return self.session.snapshot()

    # --- actions ---

    async def start(self, player_name: str) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            self.session.start(player_name)
            self._pending_save = None
            self._start_ticking()
            snapshot, frame = self.session.snapshot(), self._frame()
        await self._emit(frame)
        return snapshot

    async def play_again(self) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            self.session.play_again()
            self._pending_save = None
            self._start_ticking()
            snapshot, frame = self.session.snapshot(), self._frame()
        await self._emit(frame)
        return snapshot

    async def quit(self) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            self.session.quit()
            self._stop_ticking()
            snapshot, frame = self.session.snapshot(), self._frame()
        await self._emit(frame)
        return snapshot

    async def open_settings(self) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            self.session.open_settings()
            snapshot, frame = self.session.snapshot(), self._frame()
        await self._emit(frame)
        return snapshot

    async def close_settings(
        self,
        *,
        character_set: CharacterSet | None = None,
        config: GameplayConfig | None = None,
    ) -> SessionSnapshot:
        async with self._lock:
            self.touch()
            self.session.close_settings(character_set=character_set, config=config)
            snapshot, frame = self.session.snapshot(), self._frame()
        await self._emit(frame)
        return snapshot

    async def press(self, key: str) -> tuple[bool, SessionSnapshot]:
        async with self._lock:
            self.touch()
            event = self.session.press(key)
            snapshot = self.session.snapshot()
            frame = self._frame([event]) if event is not None else None
        if frame is not None:
            await self._emit(frame)
        return event is not None, snapshot

    async def save(self, *, r: redis.Redis) -> tuple[SaveOutcome, bool]:
        """Persist this game over's result once.

        Returns `(outcome, fresh)`. A repeat save does not persist again; it
        waits for the first save and reports that save's outcome with
        `fresh=False`. The store call runs in a worker thread outside the lock,
        so a slow or unreachable store never holds up ticks or other actions.
        """

        async with self._lock:
            self.touch()
            result = self.session.claim_result()
            if result is not None:
                self._pending_save = asyncio.create_task(self._persist(r=r, result=result))
            pending = self._pending_save
        if pending is None:
            raise ValueError("Result was already saved outside this runner")

        # Shielded so a caller that goes away does not abandon the write.
        outcome = await asyncio.shield(pending)
        return outcome, result is not None

    async def _persist(self, *, r: redis.Redis, result: SessionResult) -> SaveOutcome:
        outcome = await asyncio.to_thread(persist_result, r=r, result=result, leaderboard=self.session.leaderboard)
        logger.info("session %s: result saved (persisted=%s)", self.session_id, outcome.persisted)
        return outcome

    async def close(self) -> None:
        async with self._lock:
            task = self._task
            self._stop_ticking()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass


class SessionRegistry:
    """In-process map of session_id -> runner."""

    def __init__(self) -> None:
        self._runners: dict[str, SessionRunner] = {}

    def add(self, runner: SessionRunner) -> SessionRunner:
        self._runners[runner.session_id] = runner
        return runner

    def get(self, session_id: str) -> SessionRunner | None:
        return self._runners.get(session_id)

    def require(self, session_id: str) -> SessionRunner:
        runner = self.get(session_id)
        if runner is None:
            raise SessionNotFoundError(session_id)
        return runner

    async def remove(self, session_id: str) -> None:
        runner = self._runners.pop(session_id, None)
        if runner is not None:
            await runner.close()

    async def close_all(self) -> None:
        for session_id in list(self._runners):
            await self.remove(session_id)

    async def evict_idle(self, *, ttl_s: float, subscribers: SubscriberCount | None = None) -> list[str]:
        """Drop runners that are idle past `ttl_s` and have nobody watching."""

        evicted: list[str] = []
        for session_id, runner in list(self._runners.items()):
            if subscribers is not None and subscribers(session_id) > 0:
                continue
            if not runner.is_idle(ttl_s=ttl_s):
                continue
            await self.remove(session_id)
            evicted.append(session_id)

        if evicted:
            logger.info("evicted %d idle session(s)", len(evicted))
        return evicted

    def __len__(self) -> int:
        return len(self._runners)


sessions = SessionRegistry()


async def sweep_idle_sessions(
    registry: SessionRegistry,
    *,
    ttl_s: float,
    interval_s: float = SESSION_SWEEP_INTERVAL_S,
    subscribers: SubscriberCount | None = None,
) -> None:
    """Evict idle sessions every `interval_s` until cancelled."""

    while True:
        await asyncio.sleep(interval_s)
        await registry.evict_idle(ttl_s=ttl_s, subscribers=subscribers)
