"""Session and analytics endpoints."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.core.dependencies import get_event_logger, get_session_manager
from app.core.languages import SUPPORTED_LANGUAGES
from app.services.call_session.manager import CallSessionManager
from app.services.call_session.models import SessionSnapshot
from app.services.persistence.events import DatabaseEventLogger, EventLogger

router = APIRouter()
logger = logging.getLogger(__name__)


class TurnEventResponse(BaseModel):
    """Logged conversation turn."""
    call_sid: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AnalyticsResponse(BaseModel):
    """Analytics response model."""
    active_calls: int
    event_counts: Dict[str, int]
    recent_turns: List[TurnEventResponse]
    supported_languages: List[str]


@router.get("/api/sessions", response_model=List[SessionSnapshot])
async def list_active_sessions(
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """Snapshot of active call sessions."""
    return await session_manager.active_sessions()


@router.get("/api/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    limit: int = 10,
    session_manager: CallSessionManager = Depends(get_session_manager),
    event_logger: EventLogger = Depends(get_event_logger),
):
    """Call statistics and recent conversation turns."""
    if not isinstance(event_logger, DatabaseEventLogger) or not event_logger.enabled:
        raise HTTPException(status_code=503, detail="Database not connected")

    try:
        event_counts = await event_logger.event_counts()
        recent_turns = await event_logger.recent_turns(limit)
    except Exception as e:
        logger.error(f"[ANALYTICS] Failed to fetch analytics: {type(e).__name__}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch analytics")

    return AnalyticsResponse(
        active_calls=await session_manager.active_session_count(),
        event_counts=event_counts,
        recent_turns=[TurnEventResponse.model_validate(event) for event in recent_turns],
        supported_languages=list(SUPPORTED_LANGUAGES),
    )


class CallEventResponse(BaseModel):
    """Logged call event."""
    event_type: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/api/calls/{call_sid}/events", response_model=List[CallEventResponse])
async def get_call_events(
    call_sid: str,
    event_logger: EventLogger = Depends(get_event_logger),
):
    """Event log of one call, oldest first."""
    if not isinstance(event_logger, DatabaseEventLogger) or not event_logger.enabled:
        raise HTTPException(status_code=503, detail="Database not connected")

    try:
        events = await event_logger.events_for_call(call_sid)
    except Exception as e:
        logger.error(
            f"[ANALYTICS] Failed to fetch events - CallSid: {call_sid}, {type(e).__name__}: {e}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail="Failed to fetch call events")

    if not events:
        raise HTTPException(status_code=404, detail="No events for call")
    return [CallEventResponse.model_validate(event) for event in events]
