"""Call event logging."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db.models import CallEvent

logger = logging.getLogger(__name__)

CALL_INITIATED = "call_initiated"
CONVERSATION_TURN = "conversation_turn"
CALL_ENDED = "call_ended"


class EventLogger(ABC):
    """
    Append-only log of call lifecycle and turn events.

    log_event never raises: write failures are logged and dropped so that
    logging can never affect a live call.
    """

    enabled: bool = True

    async def log_event(
        self, call_sid: str, event_type: str, payload: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Record an event.

        Returns:
            True if the event was written, False if it was dropped
        """
        if not self.enabled:
            logger.debug(f"[EVENT LOG] Logging disabled, dropped {event_type} for CallSid {call_sid}")
            return False
        try:
            await self._write(call_sid, event_type, payload or {})
            return True
        except Exception as e:
            logger.error(
                f"[EVENT LOG] Failed to log {event_type} for CallSid {call_sid}: "
                f"{type(e).__name__}: {e}"
            )
            return False

    @abstractmethod
    async def _write(self, call_sid: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Persist one event. May raise; log_event handles failures."""
        pass


class NullEventLogger(EventLogger):
    """Event logger used when no database is configured."""

    enabled = False

    async def _write(self, call_sid: str, event_type: str, payload: Dict[str, Any]) -> None:
        pass


class DatabaseEventLogger(EventLogger):
    """Event logger that stores events with SQLAlchemy."""

    def __init__(self, sessionmaker: async_sessionmaker, enabled: bool = True):
        self.sessionmaker = sessionmaker
        self.enabled = enabled

    async def _write(self, call_sid: str, event_type: str, payload: Dict[str, Any]) -> None:
        async with self.sessionmaker() as db:
            db.add(CallEvent(call_sid=call_sid, event_type=event_type, payload=payload))
            await db.commit()

    async def event_counts(self) -> Dict[str, int]:
        """Number of logged events per event type."""
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(CallEvent.event_type, func.count(CallEvent.id)).group_by(
                    CallEvent.event_type
                )
            )
            return {event_type: count for event_type, count in result.all()}

    async def recent_turns(self, limit: int = 10) -> List[CallEvent]:
        """Most recent conversation turn events, newest first."""
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(CallEvent)
                .where(CallEvent.event_type == CONVERSATION_TURN)
                .order_by(desc(CallEvent.created_at), desc(CallEvent.id))
                .limit(limit)
            )
            return list(result.scalars().all())

    async def events_for_call(self, call_sid: str) -> List[CallEvent]:
        """All events of a call in the order they were logged."""
        async with self.sessionmaker() as db:
            result = await db.execute(
                select(CallEvent)
                .where(CallEvent.call_sid == call_sid)
                .order_by(CallEvent.id)
            )
            return list(result.scalars().all())
