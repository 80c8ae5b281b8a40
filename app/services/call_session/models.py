"""Call session models."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.languages import LanguageProfile

NO_SPEECH_PROMPT = "I didn't quite catch that. Could you please repeat?"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class TurnRole(str, Enum):
    """Speaker of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """A single utterance in the conversation history."""

    role: TurnRole
    text: str
    timestamp: datetime = Field(default_factory=utc_now)


class CallSession(BaseModel):
    """Stateful record of one ongoing call."""

    call_id: str
    originator: str
    language: LanguageProfile
    started_at: datetime = Field(default_factory=utc_now)
    ended_at: Optional[datetime] = None
    last_activity_at: datetime = Field(default_factory=utc_now)
    history: List[Turn] = []
    active: bool = True

    def append_turn(self, role: TurnRole, text: str, at: Optional[datetime] = None) -> Turn:
        """Append a turn to the history."""
        turn = Turn(role=role, text=text, timestamp=at or utc_now())
        self.history.append(turn)
        self.last_activity_at = turn.timestamp
        return turn

    def window(self, size: int) -> List[Turn]:
        """Most recent ``size`` turns, oldest first."""
        if size <= 0:
            return []
        return list(self.history[-size:])

    def mark_ended(self, at: Optional[datetime] = None) -> None:
        """Mark the session inactive. Has no effect once ended."""
        if not self.active:
            return
        ended_at = at or utc_now()
        # Clock skew must never produce a negative duration
        self.ended_at = max(ended_at, self.started_at)
        self.active = False

    @property
    def turn_count(self) -> int:
        return len(self.history)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


class TurnOutcome(str, Enum):
    """How a turn was resolved."""

    RESPONDED = "responded"
    FALLBACK = "fallback"
    NO_SPEECH = "no_speech"
    LOW_CONFIDENCE = "low_confidence"


class TurnResult(BaseModel):
    """Result of handling one caller turn."""

    outcome: TurnOutcome
    text: str


class SessionSnapshot(BaseModel):
    """Read-only view of an active session for reporting."""

    call_id: str
    originator: str
    language: str
    started_at: datetime
    last_activity_at: datetime
    turn_count: int

    @classmethod
    def from_session(cls, session: CallSession) -> "SessionSnapshot":
        return cls(
            call_id=session.call_id,
            originator=session.originator,
            language=session.language.code,
            started_at=session.started_at,
            last_activity_at=session.last_activity_at,
            turn_count=session.turn_count,
        )
