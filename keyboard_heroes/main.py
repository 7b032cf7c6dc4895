from fastapi import FastAPI
import asyncio
import logging

from keyboard_heroes.api.routes import router
from keyboard_heroes.config import settings_from_env
from keyboard_heroes.game_loop import sessions, sweep_idle_sessions
from keyboard_heroes.websocket_hub import hub

app = FastAPI(title="keyboard-heroes", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=settings_from_env().log_level)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    app.state.sweeper = asyncio.create_task(
        sweep_idle_sessions(sessions, ttl_s=settings_from_env().session_ttl_s, subscribers=hub.subscriber_count)
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    # Stop every tick task before the loop goes away.
    await sessions.close_all()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "keyboard-heroes", "version": "0.1.0"}
