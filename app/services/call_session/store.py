"""In-memory registry of active call sessions."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from app.services.call_session.models import CallSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Registry of active call sessions keyed by call id.

    Map mutations are serialized by a store-wide lock that is never held
    across provider calls. Each session gets its own turn lock so that turns
    for one call run one at a time while other calls proceed concurrently.
    """

    def __init__(self):
        self._sessions: Dict[str, CallSession] = {}
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def get(self, call_id: str) -> Optional[CallSession]:
        """Get a session by call id."""
        async with self._lock:
            return self._sessions.get(call_id)

    async def put(self, session: CallSession) -> CallSession:
        """
        Store a session.

        If an active session already exists for the same call id it is kept
        and returned instead, so a call id never maps to two sessions.
        """
        async with self._lock:
            existing = self._sessions.get(session.call_id)
            if existing is not None and existing.active:
                logger.debug(f"[SESSION STORE] Keeping active session - CallSid: {session.call_id}")
                return existing
            self._sessions[session.call_id] = session
            self._turn_locks[session.call_id] = asyncio.Lock()
            return session

    async def remove(self, call_id: str) -> Optional[CallSession]:
        """Remove a session. Returns the removed session, if any."""
        async with self._lock:
            self._turn_locks.pop(call_id, None)
            return self._sessions.pop(call_id, None)

    async def lock_for(self, call_id: str) -> Optional[asyncio.Lock]:
        """Get the turn lock of a stored session."""
        async with self._lock:
            return self._turn_locks.get(call_id)

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def snapshot(self) -> List[CallSession]:
        """Sessions currently stored, oldest first."""
        async with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.started_at)

    async def idle_sessions(
        self, now: datetime, timeout_seconds: float
    ) -> List[CallSession]:
        """Sessions whose last activity is older than the idle timeout."""
        cutoff = now - timedelta(seconds=timeout_seconds)
        async with self._lock:
            return [
                session
                for session in self._sessions.values()
                if session.last_activity_at < cutoff
            ]
