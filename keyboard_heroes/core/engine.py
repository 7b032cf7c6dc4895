"""Tick and keystroke handling over a `SessionState`.

Both functions assume the caller holds the session's lock and that the session is
in the playing phase. Neither touches the phase; game over is decided by the
session layer from the counters.
"""

from __future__ import annotations

import random
from dataclasses import replace

from keyboard_heroes.core.characters import generate_character_pool
from keyboard_heroes.core.constants import (
    HIT_REWARD,
    PLAY_AREA_HEIGHT,
    SPAWN_MARGIN_X,
    SPAWN_PROBABILITY,
    SPAWN_WIDTH,
    SPEED_RAMP_SCALE,
)
from keyboard_heroes.core.events import GameEvent
from keyboard_heroes.core.state import FallingLetter, SessionState


def advance_tick(state: SessionState, *, rng: random.Random) -> list[GameEvent]:
    """Advance the simulation by one tick.

    Order matters: move, cull off-screen letters into misses, maybe spawn one
    letter at the current speed, then ramp the speed for the next spawn.
    """

    counters = state.counters
    state.tick += 1
    events: list[GameEvent] = []

    moved = [replace(letter, y=letter.y + letter.speed) for letter in state.letters]

    remaining: list[FallingLetter] = []
    for letter in moved:
        if letter.y > PLAY_AREA_HEIGHT:
            counters.explosions += 1
            counters.letters_missed += 1
            events.append(
                GameEvent.now(
                    type="LETTER_MISSED",
                    tick=state.tick,
                    payload={"id": letter.id, "symbol": letter.symbol},
                )
            )
        else:
            remaining.append(letter)

    if rng.random() < SPAWN_PROBABILITY:
        pool = generate_character_pool(state.character_set)
        spawned = FallingLetter(
            id=f"letter-{state.next_letter_id}",
            symbol=rng.choice(pool),
            x=rng.random() * SPAWN_WIDTH + SPAWN_MARGIN_X,
            y=0.0,
            speed=counters.current_speed,
        )
        state.next_letter_id += 1
        remaining.append(spawned)
        events.append(
            GameEvent.now(
                type="LETTER_SPAWNED",
                tick=state.tick,
                payload={"id": spawned.id, "symbol": spawned.symbol, "x": spawned.x},
            )
        )

    state.letters = tuple(remaining)
    counters.current_speed += state.config.speed_increase_rate * SPEED_RAMP_SCALE
    return events


def match_keystroke(state: SessionState, key: str) -> GameEvent | None:
    """Remove the oldest live letter showing `key`.

    Returns None when nothing matches. An unmatched keystroke is not an error.
    """

    for idx, letter in enumerate(state.letters):
        if letter.symbol != key:
            continue

        state.letters = state.letters[:idx] + state.letters[idx + 1 :]
        state.counters.score += HIT_REWARD
        state.counters.letters_typed += 1
        return GameEvent.now(
            type="LETTER_TYPED",
            tick=state.tick,
            payload={"id": letter.id, "symbol": letter.symbol, "score": state.counters.score},
        )

    return None
