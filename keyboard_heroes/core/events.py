from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "LETTER_SPAWNED",
    "LETTER_MISSED",
    "LETTER_TYPED",
    "GAME_OVER",
]


@dataclass(frozen=True, slots=True)
class GameEvent:
    type: EventType
    tick: int
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, tick: int, payload: dict[str, Any]) -> "GameEvent":
        return GameEvent(type=type, tick=tick, payload=payload, ts=datetime.now(timezone.utc))

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, "tick": self.tick, "payload": self.payload, "ts": self.ts.isoformat()}
