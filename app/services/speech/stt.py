"""Speech-to-text service."""
import logging
from abc import ABC, abstractmethod
from openai import AsyncOpenAI, OpenAIError

from app.services.speech.exceptions import NoSpeechDetected, ProviderError

logger = logging.getLogger(__name__)


class TranscriptionProvider(ABC):
    """Converts caller audio into text."""

    @abstractmethod
    async def transcribe(self, audio: bytes, language_code: str) -> str:
        """
        Transcribe audio to text.

        Raises:
            NoSpeechDetected: audio holds no recognizable speech
            ProviderError: the provider call failed
        """
        pass


class OpenAITranscriptionProvider(TranscriptionProvider):
    """Transcription using OpenAI Whisper."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1", format: str = "wav"):
        self.client = client
        self.model = model
        self.format = format

    async def transcribe(self, audio: bytes, language_code: str) -> str:
        if not audio:
            raise NoSpeechDetected("Empty audio buffer")

        try:
            # Whisper expects a file-like upload; a (name, bytes, mime) tuple works
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(f"audio.{self.format}", audio, f"audio/{self.format}"),
                language=language_code,
            )
        except OpenAIError as e:
            logger.error(f"[STT] Transcription failed: {type(e).__name__}: {e}")
            raise ProviderError(f"Transcription failed: {e}") from e

        text = (transcript.text or "").strip()
        if not text:
            raise NoSpeechDetected("Transcription returned no text")
        return text
