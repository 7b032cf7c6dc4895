"""Validation pipeline for session actions.

Every action flows through here before the session mutates anything, so a
rejected action never leaves a partial effect behind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from keyboard_heroes.api.models import SessionPhase
from keyboard_heroes.core.state import SessionState

MAX_PLAYER_NAME_LENGTH = 50


@dataclass(frozen=True, slots=True)
class ValidationContext:
    session_id: str
    action: str
    payload: dict[str, Any] = field(default_factory=dict)


class ActionValidator(ABC):
    @abstractmethod
    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class PhaseValidator(ActionValidator):
    allowed_phases: frozenset[SessionPhase]

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        if state.phase not in self.allowed_phases:
            allowed = ",".join(sorted(p.value for p in self.allowed_phases))
            raise ValueError(f"Action '{ctx.action}' not allowed in phase '{state.phase.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class PlayerNameValidator(ActionValidator):
    """A game can only start with a non-blank player name."""

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        name = ctx.payload.get("player_name", state.player_name)
        if not isinstance(name, str) or not name.strip():
            raise ValueError("player_name must not be empty")
        if len(name.strip()) > MAX_PLAYER_NAME_LENGTH:
            raise ValueError(f"player_name must be at most {MAX_PLAYER_NAME_LENGTH} characters")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[ActionValidator, ...]

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, state=state)


DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "start": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=frozenset({SessionPhase.menu, SessionPhase.game_over})),
            PlayerNameValidator(),
        )
    ),
    "play_again": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=frozenset({SessionPhase.game_over})),
            PlayerNameValidator(),
        )
    ),
    "quit": ValidatorPipeline(
        validators=(PhaseValidator(allowed_phases=frozenset({SessionPhase.playing, SessionPhase.game_over})),)
    ),
    "open_settings": ValidatorPipeline(
        validators=(PhaseValidator(allowed_phases=frozenset({SessionPhase.menu})),)
    ),
    "close_settings": ValidatorPipeline(
        validators=(PhaseValidator(allowed_phases=frozenset({SessionPhase.settings})),)
    ),
    "save": ValidatorPipeline(
        validators=(PhaseValidator(allowed_phases=frozenset({SessionPhase.game_over})),)
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe
