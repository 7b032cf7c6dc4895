"""Fan-out of session frames to WebSocket viewers.

A session may have several viewers at once (a reloaded tab can overlap with
its old socket). Viewers are tracked in this process only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    def __init__(self) -> None:
        self._viewers: dict[str, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def attach(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._viewers.setdefault(session_id, set()).add(websocket)

    async def detach(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._forget(session_id, (websocket,))

    def subscriber_count(self, session_id: str) -> int:
        return len(self._viewers.get(session_id, ()))

    async def publish(self, session_id: str, frame: dict[str, Any]) -> None:
        """Send `frame` to every viewer concurrently; viewers that fail are dropped."""

        async with self._lock:
            viewers = list(self._viewers.get(session_id, ()))
        if not viewers:
            return

        results = await asyncio.gather(*(ws.send_json(frame) for ws in viewers), return_exceptions=True)
        gone = [ws for ws, res in zip(viewers, results) if isinstance(res, Exception)]
        if gone:
            logger.debug("session %s: dropping %d dead viewer(s)", session_id, len(gone))
            async with self._lock:
                self._forget(session_id, gone)

    def _forget(self, session_id: str, sockets: Iterable[WebSocket]) -> None:
        # Caller holds the lock.
        viewers = self._viewers.get(session_id)
        if viewers is None:
            return
        viewers.difference_update(sockets)
        if not viewers:
            del self._viewers[session_id]


hub = SessionWebSocketHub()
