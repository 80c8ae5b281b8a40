"""Main FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from app.core.config import settings
from app.core.dependencies import get_event_logger, get_session_manager
from app.core.logging import setup_logging
from app.db.database import close_db, init_db
from app.api import analytics, calls, health
from app.api.webhooks import voice
from app.services.call_session.manager import CallSessionManager

logger = logging.getLogger(__name__)


async def sweep_idle_sessions_forever(session_manager: CallSessionManager, interval: float) -> None:
    """Periodically evict sessions that exceeded the inactivity ceiling."""
    while True:
        await asyncio.sleep(interval)
        try:
            await session_manager.sweep_idle_sessions()
        except Exception as e:
            logger.error(f"[SWEEPER] Idle session sweep failed: {type(e).__name__}: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    event_logger = get_event_logger()
    if event_logger.enabled:
        event_logger.enabled = await init_db()

    sweeper = asyncio.create_task(
        sweep_idle_sessions_forever(
            get_session_manager(), settings.session_sweep_interval_seconds
        )
    )
    yield
    # Shutdown
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await close_db()


app = FastAPI(
    title="AI Voice Call Assistant",
    description="Conversational AI assistant for telephone calls",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(calls.router, tags=["calls"])
app.include_router(analytics.router, tags=["analytics"])


@app.get("/")
async def root():
    """Service information."""
    return {
        "message": "AI Voice Call Assistant API",
        "version": "0.1.0",
        "voice_webhook": "/webhooks/voice/incoming",
    }
