from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
import redis

from keyboard_heroes.api.deps import get_redis
from keyboard_heroes.api.models import (
    GameSettings,
    GameSettingsCreateRequest,
    GameSettingsListResponse,
    GameSettingsUpdateRequest,
    HighScore,
    HighScoreCreateRequest,
    HighScoreListResponse,
    KeystrokeRequest,
    KeystrokeResponse,
    LeaderboardResponse,
    SaveResultResponse,
    SessionCreateRequest,
    SessionSettingsRequest,
    SessionSnapshot,
    SessionStartRequest,
)
from keyboard_heroes.config import settings_from_env
from keyboard_heroes.game_loop import RunnerConfig, SessionNotFoundError, SessionRunner, sessions
from keyboard_heroes.persistence import load_session_settings, top_results
from keyboard_heroes.score_store import (
    SettingsNotFoundError,
    create_game_settings,
    create_high_score,
    get_game_settings,
    list_game_settings,
    list_high_scores,
    update_game_settings,
)
from keyboard_heroes.session import TypingSession
from keyboard_heroes.websocket_hub import hub

router = APIRouter()


def _require_runner(session_id: str) -> SessionRunner:
    try:
        return sessions.require(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(tz=UTC).isoformat()}


# --- game settings ---


@router.post("/settings", response_model=GameSettings, status_code=status.HTTP_201_CREATED)
async def create_settings_route(payload: GameSettingsCreateRequest, r: redis.Redis = Depends(get_redis)) -> GameSettings:
    return create_game_settings(r=r, payload=payload)


@router.get("/settings", response_model=GameSettingsListResponse)
async def list_settings_route(r: redis.Redis = Depends(get_redis)) -> GameSettingsListResponse:
    return GameSettingsListResponse(settings=list_game_settings(r=r))


@router.get("/settings/{settings_id}", response_model=GameSettings)
async def get_settings_route(settings_id: int, r: redis.Redis = Depends(get_redis)) -> GameSettings:
    settings = get_game_settings(r=r, settings_id=settings_id)
    if settings is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game settings not found")
    return settings


@router.patch("/settings/{settings_id}", response_model=GameSettings)
async def update_settings_route(
    settings_id: int,
    payload: GameSettingsUpdateRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameSettings:
    try:
        return update_game_settings(r=r, settings_id=settings_id, payload=payload)
    except SettingsNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


# --- high scores ---


@router.post("/high_scores", response_model=HighScore, status_code=status.HTTP_201_CREATED)
async def create_high_score_route(payload: HighScoreCreateRequest, r: redis.Redis = Depends(get_redis)) -> HighScore:
    return create_high_score(r=r, payload=payload)


@router.get("/high_scores", response_model=HighScoreListResponse)
async def list_high_scores_route(
    limit: int = Query(10, ge=1, le=100),
    player_name: str | None = None,
    r: redis.Redis = Depends(get_redis),
) -> HighScoreListResponse:
    return HighScoreListResponse(high_scores=list_high_scores(r=r, limit=limit, player_name=player_name))


# --- sessions ---


def _key_from_message(message: dict[str, Any]) -> str | None:
    """The typed key in a `{"type": "key", "key": ...}` text frame, else None."""

    text = message.get("text")
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or data.get("type") != "key":
        return None
    key = data.get("key")
    # Anything but a single character can never match a letter.
    if isinstance(key, str) and len(key) == 1:
        return key
    return None


@router.websocket("/ws/sessions/{session_id}")
async def session_ws(websocket: WebSocket, session_id: str) -> None:
    runner = sessions.get(session_id)
    if runner is None:
        await websocket.close(code=4404)
        return

    await hub.attach(session_id, websocket)

    try:
        await websocket.send_json(await runner.current_frame())
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            key = _key_from_message(message)
            if key is not None:
                await runner.press(key)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.detach(session_id, websocket)
        # Idle time for eviction counts from the last viewer leaving.
        runner.touch()


@router.post("/sessions", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session_route(payload: SessionCreateRequest, r: redis.Redis = Depends(get_redis)) -> SessionSnapshot:
    character_set, config = payload.character_set, payload.config
    if payload.settings_id is not None:
        try:
            stored_set, stored_config = load_session_settings(r=r, settings_id=payload.settings_id)
        except SettingsNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        character_set = character_set or stored_set
        config = config or stored_config

    runner = sessions.add(
        SessionRunner(
            TypingSession(character_set=character_set, config=config),
            config=RunnerConfig.from_settings(settings_from_env()),
            publish=hub.publish,
        )
    )
    return await runner.snapshot()


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session_route(session_id: str) -> SessionSnapshot:
    return await _require_runner(session_id).snapshot()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(session_id: str) -> None:
    _require_runner(session_id)
    await sessions.remove(session_id)


@router.post("/sessions/{session_id}/start", response_model=SessionSnapshot)
async def start_session_route(session_id: str, payload: SessionStartRequest) -> SessionSnapshot:
    runner = _require_runner(session_id)
    try:
        return await runner.start(payload.player_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/sessions/{session_id}/play_again", response_model=SessionSnapshot)
async def play_again_route(session_id: str) -> SessionSnapshot:
    runner = _require_runner(session_id)
    try:
        return await runner.play_again()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/sessions/{session_id}/quit", response_model=SessionSnapshot)
async def quit_session_route(session_id: str) -> SessionSnapshot:
    runner = _require_runner(session_id)
    try:
        return await runner.quit()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/sessions/{session_id}/settings/open", response_model=SessionSnapshot)
async def open_settings_route(session_id: str) -> SessionSnapshot:
    runner = _require_runner(session_id)
    try:
        return await runner.open_settings()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/sessions/{session_id}/settings/close", response_model=SessionSnapshot)
async def close_settings_route(session_id: str, payload: SessionSettingsRequest) -> SessionSnapshot:
    runner = _require_runner(session_id)
    try:
        return await runner.close_settings(character_set=payload.character_set, config=payload.config)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/sessions/{session_id}/keys", response_model=KeystrokeResponse)
async def keystroke_route(session_id: str, payload: KeystrokeRequest) -> KeystrokeResponse:
    runner = _require_runner(session_id)
    matched, snapshot = await runner.press(payload.key)
    return KeystrokeResponse(matched=matched, session=snapshot)


@router.post("/sessions/{session_id}/save", response_model=SaveResultResponse)
async def save_session_route(session_id: str, r: redis.Redis = Depends(get_redis)) -> SaveResultResponse:
    runner = _require_runner(session_id)
    try:
        outcome, fresh = await runner.save(r=r)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    # A repeat save reports the first save's outcome, waiting for it if needed.
    return SaveResultResponse(
        result=outcome.result,
        persisted=outcome.persisted,
        already_saved=not fresh,
        high_score=outcome.high_score,
    )


@router.get("/sessions/{session_id}/leaderboard", response_model=LeaderboardResponse)
async def session_leaderboard_route(
    session_id: str,
    limit: int = Query(10, ge=1, le=100),
    r: redis.Redis = Depends(get_redis),
) -> LeaderboardResponse:
    runner = _require_runner(session_id)
    source, entries = top_results(r=r, leaderboard=runner.session.leaderboard, limit=limit)
    return LeaderboardResponse(source=source, entries=entries)
