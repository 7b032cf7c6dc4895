from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from keyboard_heroes.api.models import SessionPhase
from keyboard_heroes.core.state import SessionState
from keyboard_heroes.fsm import SessionFSM


def _state(phase: SessionPhase) -> SessionState:
    return SessionState(session_id="s1", seed=1, phase=phase)


@pytest.mark.parametrize(
    ("phase", "event", "expected"),
    [
        (SessionPhase.menu, "start_game", SessionPhase.playing),
        (SessionPhase.game_over, "start_game", SessionPhase.playing),
        (SessionPhase.playing, "end_game", SessionPhase.game_over),
        (SessionPhase.playing, "quit_game", SessionPhase.menu),
        (SessionPhase.game_over, "quit_game", SessionPhase.menu),
        (SessionPhase.menu, "open_settings", SessionPhase.settings),
        (SessionPhase.settings, "close_settings", SessionPhase.menu),
    ],
)
def test_allowed_transitions(phase: SessionPhase, event: str, expected: SessionPhase) -> None:
    state = _state(phase)
    fsm = SessionFSM(state)

    fsm.send(event)
    fsm.sync_phase_to_model()

    assert state.phase == expected


@pytest.mark.parametrize(
    ("phase", "event"),
    [
        (SessionPhase.menu, "end_game"),
        (SessionPhase.game_over, "end_game"),
        (SessionPhase.settings, "start_game"),
        (SessionPhase.playing, "open_settings"),
        (SessionPhase.menu, "quit_game"),
    ],
)
def test_disallowed_transitions(phase: SessionPhase, event: str) -> None:
    state = _state(phase)

    with pytest.raises(TransitionNotAllowed):
        SessionFSM(state).send(event)

    assert state.phase == phase
