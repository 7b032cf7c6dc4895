from __future__ import annotations

import pytest

from keyboard_heroes.api.models import CharacterSet, GameplayConfig
from keyboard_heroes.core.constants import HIT_REWARD, PLAY_AREA_HEIGHT, SPAWN_MARGIN_X
from keyboard_heroes.core.engine import advance_tick, match_keystroke
from keyboard_heroes.core.state import FallingLetter, SessionCounters, SessionState


def _state(*letters: FallingLetter, speed: float = 1.0, rate: float = 0.1) -> SessionState:
    return SessionState(
        session_id="s1",
        seed=1,
        config=GameplayConfig(initial_fall_speed=speed, speed_increase_rate=rate, max_explosions=10),
        counters=SessionCounters(current_speed=speed),
        letters=tuple(letters),
    )


def _letter(n: int, symbol: str = "a", *, y: float = 0.0, speed: float = 1.0) -> FallingLetter:
    return FallingLetter(id=f"letter-{n}", symbol=symbol, x=100.0, y=y, speed=speed)


def test_letters_fall_by_their_own_speed_every_tick(scripted_rng) -> None:
    state = _state(_letter(0, speed=2.0), _letter(1, y=10.0, speed=3.5))
    rng = scripted_rng(spawn=False)

    advance_tick(state, rng=rng)
    assert [l.y for l in state.letters] == [2.0, 13.5]

    advance_tick(state, rng=rng)
    assert [l.y for l in state.letters] == [4.0, 17.0]
    # x and speed stay as spawned
    assert [(l.x, l.speed) for l in state.letters] == [(100.0, 2.0), (100.0, 3.5)]


def test_letter_exactly_on_the_boundary_stays(scripted_rng) -> None:
    state = _state(_letter(0, y=PLAY_AREA_HEIGHT - 1))

    events = advance_tick(state, rng=scripted_rng(spawn=False))

    assert events == []
    assert state.letters[0].y == PLAY_AREA_HEIGHT
    assert state.counters.explosions == 0


def test_letter_past_the_boundary_counts_as_miss_and_explosion(scripted_rng) -> None:
    state = _state(_letter(0, "q", y=PLAY_AREA_HEIGHT), _letter(1, "w", y=5.0))

    events = advance_tick(state, rng=scripted_rng(spawn=False))

    assert [l.id for l in state.letters] == ["letter-1"]
    assert state.counters.explosions == 1
    assert state.counters.letters_missed == 1
    assert [e.type for e in events] == ["LETTER_MISSED"]
    assert events[0].payload == {"id": "letter-0", "symbol": "q"}


def test_spawn_uses_current_speed_and_fresh_ids(scripted_rng) -> None:
    state = _state(speed=1.5, rate=0.1)
    rng = scripted_rng(spawn=True)

    advance_tick(state, rng=rng)
    advance_tick(state, rng=rng)

    first, second = state.letters
    assert (first.id, second.id) == ("letter-0", "letter-1")
    assert first.symbol == "a"
    assert first.x == SPAWN_MARGIN_X
    assert first.speed == pytest.approx(1.5)
    # ramped once before the second spawn
    assert second.speed == pytest.approx(1.5 + 0.1 * 0.01)
    assert second.y == 0.0
    assert first.y == pytest.approx(1.5)
    assert state.next_letter_id == 2


def test_spawn_draws_from_the_configured_pool(scripted_rng) -> None:
    state = _state()
    state.character_set = CharacterSet(lowercase=False, numbers=True)

    advance_tick(state, rng=scripted_rng(spawn=True))

    assert state.letters[0].symbol == "0"


def test_speed_ramp_is_scaled_per_tick(scripted_rng) -> None:
    state = _state(speed=1.0, rate=0.5)
    rng = scripted_rng(spawn=False)

    for _ in range(10):
        advance_tick(state, rng=rng)

    assert state.counters.current_speed == pytest.approx(1.0 + 10 * 0.5 * 0.01)
    assert state.tick == 10


def test_seeded_rng_spawns_roughly_thirty_percent_of_ticks() -> None:
    import random

    state = _state(speed=0.001, rate=0.001)
    rng = random.Random(1234)

    for _ in range(2000):
        advance_tick(state, rng=rng)

    assert 450 < state.next_letter_id < 750
    assert all(SPAWN_MARGIN_X <= l.x <= SPAWN_MARGIN_X + 700 for l in state.letters)


def test_keystroke_removes_oldest_matching_letter_only() -> None:
    state = _state(_letter(0, "a"), _letter(1, "b"), _letter(2, "a"))

    event = match_keystroke(state, "a")

    assert event is not None and event.type == "LETTER_TYPED"
    assert [l.id for l in state.letters] == ["letter-1", "letter-2"]
    assert state.counters.score == HIT_REWARD
    assert state.counters.letters_typed == 1


def test_unmatched_keystroke_changes_nothing() -> None:
    state = _state(_letter(0, "a"))
    before = state.letters

    assert match_keystroke(state, "z") is None

    assert state.letters is before
    assert state.counters.score == 0
    assert state.counters.letters_typed == 0


def test_keystroke_match_is_case_sensitive() -> None:
    state = _state(_letter(0, "A"))

    assert match_keystroke(state, "a") is None
    assert match_keystroke(state, "A") is not None
    assert state.letters == ()
