"""Application configuration."""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    chat_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    speech_model: str = "tts-1"
    max_response_tokens: int = 150

    # Twilio
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: str

    # Database (optional - event logging is disabled without it)
    database_url: Optional[str] = None

    # Public URL used for TwiML callbacks and outbound calls
    base_url: Optional[str] = None

    # Conversation
    default_language: str = "en"
    history_window: int = 10
    low_confidence_threshold: float = 0.5
    generation_max_retries: int = 3
    generation_backoff_base_seconds: float = 1.0
    generation_attempt_timeout_seconds: Optional[float] = 20.0

    # Session store
    session_idle_timeout_seconds: int = 1800
    session_sweep_interval_seconds: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
