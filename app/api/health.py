"""Health check endpoint."""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_event_logger, get_session_manager
from app.core.languages import SUPPORTED_LANGUAGES
from app.services.call_session.manager import CallSessionManager
from app.services.persistence.events import EventLogger

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    request: Request,
    session_manager: CallSessionManager = Depends(get_session_manager),
    event_logger: EventLogger = Depends(get_event_logger),
):
    """Health check endpoint."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if event_logger.enabled else "disconnected",
        "active_calls": await session_manager.active_session_count(),
        "supported_languages": len(SUPPORTED_LANGUAGES),
    }
