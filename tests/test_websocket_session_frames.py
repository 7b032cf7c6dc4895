from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from keyboard_heroes.core.state import FallingLetter
from keyboard_heroes.game_loop import sessions


@pytest.fixture(autouse=True)
def _slow_ticks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KEYBOARD_HEROES_TICK_MS", "60000")


def test_ws_pushes_frames_and_accepts_keys(client: TestClient) -> None:
    sid = client.post("/sessions", json={}).json()["session_id"]

    with client.websocket_connect(f"/ws/sessions/{sid}") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "frame"
        assert initial["phase"] == "menu"

        res = client.post(f"/sessions/{sid}/start", json={"player_name": "Alex"})
        assert res.status_code == 200

        started = ws.receive_json()
        assert started["phase"] == "playing"

        sessions.require(sid).session.state.letters = (FallingLetter(id="letter-0", symbol="z", x=1.0, y=1.0, speed=1.0),)
        ws.send_json({"type": "key", "key": "z"})

        typed = ws.receive_json()
        assert typed["counters"]["score"] == 20
        assert typed["events"][0]["type"] == "LETTER_TYPED"
        assert typed["letters"] == []


def test_ws_unknown_session_is_closed(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as e:
        with client.websocket_connect("/ws/sessions/missing") as ws:
            ws.receive_json()

    assert e.value.code == 4404


def test_ws_ignores_malformed_messages(client: TestClient) -> None:
    sid = client.post("/sessions", json={}).json()["session_id"]

    with client.websocket_connect(f"/ws/sessions/{sid}") as ws:
        ws.receive_json()
        client.post(f"/sessions/{sid}/start", json={"player_name": "Alex"})
        ws.receive_json()

        sessions.require(sid).session.state.letters = (FallingLetter(id="letter-0", symbol="q", x=1.0, y=1.0, speed=1.0),)
        ws.send_text("not json {")
        ws.send_bytes(b"\x00\x01")
        ws.send_json(["key", "q"])
        ws.send_json({"type": "key", "key": "qq"})
        ws.send_json({"type": "key", "key": "q"})

        typed = ws.receive_json()
        assert typed["counters"]["score"] == 20
        assert typed["counters"]["letters_typed"] == 1
