from __future__ import annotations

import os
from collections.abc import Callable, Generator, Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (e.g. a REDIS_URL for manual checks).

    In CI, we *don't* auto-load `.env` by default so tests stay hermetic.
    Opt-in with: KEYBOARD_HEROES_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("KEYBOARD_HEROES_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


class ScriptedRng:
    """Stand-in for random.Random with a fixed spawn roll.

    `choice` always returns the first pool symbol, and the x roll equals the spawn
    roll, so spawned letters land at the left spawn edge.
    """

    def __init__(self, *, spawn: bool) -> None:
        self.spawn = spawn

    def random(self) -> float:
        return 0.0 if self.spawn else 0.99

    def choice(self, seq: Sequence[Any]) -> Any:
        return seq[0]


class SteppingClock:
    """Returns `start`, then advances by `step` on every call."""

    def __init__(self, *, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@pytest.fixture()
def scripted_rng() -> Callable[..., ScriptedRng]:
    return ScriptedRng


@pytest.fixture()
def stepping_clock() -> Callable[..., SteppingClock]:
    return SteppingClock


@pytest.fixture()
def fake_redis():
    import fakeredis

    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def unreachable_redis():
    """A client whose every command fails with redis.ConnectionError."""

    import fakeredis

    server = fakeredis.FakeServer()
    server.connected = False
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient wired to a fakeredis instance."""

    import fakeredis
    from fastapi.testclient import TestClient

    from keyboard_heroes.api.deps import get_redis
    from keyboard_heroes.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_redis):
    c, _ = client_and_redis
    return c


@pytest.fixture(autouse=True)
def _isolate_local_leaderboard() -> Generator[None, None, None]:
    from keyboard_heroes.persistence import local_leaderboard

    local_leaderboard.clear()
    yield
    local_leaderboard.clear()
