from __future__ import annotations

from statemachine import State, StateMachine

from keyboard_heroes.api.models import SessionPhase
from keyboard_heroes.core.state import SessionState


class SessionFSM(StateMachine):
    """FSM wrapper around SessionState.

    Only guards phase transitions; counters and letters are reset by the session
    layer. `game_over` is not final because "play again" and "quit" leave it.
    """

    menu = State(SessionPhase.menu.value, value=SessionPhase.menu.value, initial=True)
    playing = State(SessionPhase.playing.value, value=SessionPhase.playing.value)
    game_over = State(SessionPhase.game_over.value, value=SessionPhase.game_over.value)
    settings = State(SessionPhase.settings.value, value=SessionPhase.settings.value)

    start_game = menu.to(playing) | game_over.to(playing)
    end_game = playing.to(game_over)
    quit_game = playing.to(menu) | game_over.to(menu)
    open_settings = menu.to(settings)
    close_settings = settings.to(menu)

    def __init__(self, session: SessionState):
        self.session = session
        super().__init__(start_value=session.phase.value)

    def sync_phase_to_model(self) -> None:
        self.session.phase = SessionPhase(str(self.current_state.value))
