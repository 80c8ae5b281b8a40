"""FastAPI dependencies."""
from functools import lru_cache
from typing import Optional
from openai import AsyncOpenAI
from twilio.rest import Client as TwilioClient

from app.core.config import settings
from app.db.database import AsyncSessionLocal
from app.services.agent.generator import OpenAIChatProvider, ResponseGenerator
from app.services.call_session.manager import CallSessionManager
from app.services.call_session.store import SessionStore
from app.services.persistence.events import DatabaseEventLogger, EventLogger, NullEventLogger
from app.services.speech.stt import OpenAITranscriptionProvider
from app.services.speech.tts import OpenAISpeechProvider


@lru_cache
def get_openai_client() -> AsyncOpenAI:
    """Get the shared OpenAI client."""
    return AsyncOpenAI(api_key=settings.openai_api_key)


@lru_cache
def get_twilio_client() -> TwilioClient:
    """Get the Twilio REST client used for outbound calls."""
    return TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)


@lru_cache
def get_event_logger() -> EventLogger:
    """Get the event logger; disabled when no database is configured."""
    if AsyncSessionLocal is None:
        return NullEventLogger()
    return DatabaseEventLogger(AsyncSessionLocal)


@lru_cache
def get_session_manager() -> CallSessionManager:
    """Get the process-wide call session manager."""
    client = get_openai_client()
    generator = ResponseGenerator(
        OpenAIChatProvider(
            client, model=settings.chat_model, max_tokens=settings.max_response_tokens
        ),
        max_retries=settings.generation_max_retries,
        backoff_base=settings.generation_backoff_base_seconds,
        attempt_timeout=settings.generation_attempt_timeout_seconds,
    )
    return CallSessionManager(
        store=SessionStore(),
        generator=generator,
        transcriber=OpenAITranscriptionProvider(client, model=settings.transcription_model),
        synthesizer=OpenAISpeechProvider(client, model=settings.speech_model),
        event_logger=get_event_logger(),
        default_language=settings.default_language,
        history_window=settings.history_window,
        low_confidence_threshold=settings.low_confidence_threshold,
        idle_timeout_seconds=settings.session_idle_timeout_seconds,
    )


def get_public_base_url(fallback: Optional[str] = None) -> Optional[str]:
    """Configured public base URL, or the fallback (usually the request's)."""
    url = settings.base_url or fallback
    return url.rstrip("/") if url else None
