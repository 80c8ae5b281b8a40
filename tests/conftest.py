"""Shared test fixtures and configuration."""
import pytest
import os
from unittest.mock import Mock, AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "test-sid")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+1234567890")

from app.main import app
from app.db.models import Base
from app.core.dependencies import get_event_logger, get_session_manager, get_twilio_client
from app.services.agent.generator import ResponseGenerator
from app.services.call_session.manager import CallSessionManager
from app.services.call_session.store import SessionStore
from app.services.persistence.events import DatabaseEventLogger
from app.services.speech.stt import TranscriptionProvider
from app.services.speech.tts import SpeechSynthesisProvider
from tests.fakes import FakeGenerationProvider, RecordingEventLogger


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def sleep_calls():
    """Delays requested by the response generator."""
    return []


@pytest.fixture
def fake_sleep(sleep_calls):
    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)
    return _sleep


@pytest.fixture
def generation_provider():
    return FakeGenerationProvider()


@pytest.fixture
def response_generator(generation_provider, fake_sleep):
    return ResponseGenerator(generation_provider, max_retries=3, backoff_base=1.0, sleep=fake_sleep)


@pytest.fixture
def event_logger():
    return RecordingEventLogger()


@pytest.fixture
def transcriber():
    mock = Mock(spec=TranscriptionProvider)
    mock.transcribe = AsyncMock(return_value="What's the weather?")
    return mock


@pytest.fixture
def synthesizer():
    mock = Mock(spec=SpeechSynthesisProvider)
    mock.synthesize = AsyncMock(return_value=b"mp3-bytes")
    return mock


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def session_manager(session_store, response_generator, transcriber, synthesizer, event_logger):
    """Call session manager wired to fake providers."""
    return CallSessionManager(
        store=session_store,
        generator=response_generator,
        transcriber=transcriber,
        synthesizer=synthesizer,
        event_logger=event_logger,
        default_language="en",
        history_window=10,
        low_confidence_threshold=0.5,
        idle_timeout_seconds=1800,
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_sessionmaker(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def db_event_logger(test_sessionmaker):
    return DatabaseEventLogger(test_sessionmaker)


@pytest.fixture
def mock_twilio():
    """Mock Twilio REST client."""
    mock_client = Mock()
    mock_client.calls.create = Mock(return_value=Mock(sid="CA_OUTBOUND", status="queued"))
    return mock_client


@pytest.fixture
def test_client(session_manager, event_logger, mock_twilio):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    app.dependency_overrides[get_event_logger] = lambda: event_logger
    app.dependency_overrides[get_twilio_client] = lambda: mock_twilio

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
