"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CallEvent(Base):
    """Call lifecycle and conversation turn events."""

    __tablename__ = "call_events"

    id = Column(Integer, primary_key=True, index=True)
    call_sid = Column(String, index=True, nullable=False)
    event_type = Column(String, index=True, nullable=False)  # call_initiated, conversation_turn, call_ended
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
