"""Text-to-speech service and TwiML rendering."""
import logging
from abc import ABC, abstractmethod
from typing import Optional
from openai import AsyncOpenAI, OpenAIError

from app.services.speech.exceptions import ProviderError

logger = logging.getLogger(__name__)

TWIML_VOICE = "alice"


class SpeechSynthesisProvider(ABC):
    """Converts assistant text into audio."""

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """
        Synthesize speech from text.

        Raises:
            ProviderError: the provider call failed
        """
        pass


class OpenAISpeechProvider(SpeechSynthesisProvider):
    """Speech synthesis using OpenAI TTS."""

    def __init__(self, client: AsyncOpenAI, model: str = "tts-1", speed: float = 1.0):
        self.client = client
        self.model = model
        self.speed = speed

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice_id,
                input=text,
                speed=self.speed,
            )
            return response.content
        except OpenAIError as e:
            logger.error(f"[TTS] Synthesis failed: {type(e).__name__}: {e}")
            raise ProviderError(f"TTS synthesis failed: {e}") from e


def escape_xml(text: str) -> str:
    """Escape XML special characters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def render_say(text: str, language: str = "en-US", hangup: bool = False) -> str:
    """
    Generate TwiML that speaks text.

    Args:
        text: Text to speak
        language: TwiML locale of the voice
        hangup: End the call afterwards

    Returns:
        TwiML XML string
    """
    hangup_xml = "\n    <Hangup/>" if hangup else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Say voice="{TWIML_VOICE}" language="{language}">{escape_xml(text)}</Say>{hangup_xml}
</Response>"""


def render_gather(
    text: str,
    action_url: str,
    language: str = "en-US",
    prompt: Optional[str] = None,
    timeout_message: Optional[str] = None,
) -> str:
    """
    Generate TwiML that speaks text and gathers the caller's speech.

    Args:
        text: Text to speak before gathering
        action_url: URL to send gathered input to
        language: TwiML locale for speech and recognition
        prompt: Optional text spoken inside the Gather
        timeout_message: Spoken (followed by hangup) if the caller stays silent

    Returns:
        TwiML XML string
    """
    prompt_xml = (
        f'\n        <Say voice="{TWIML_VOICE}" language="{language}">{escape_xml(prompt)}</Say>'
        if prompt
        else ""
    )
    timeout_xml = (
        f'\n    <Say voice="{TWIML_VOICE}" language="{language}">{escape_xml(timeout_message)}</Say>\n    <Hangup/>'
        if timeout_message
        else ""
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Say voice="{TWIML_VOICE}" language="{language}">{escape_xml(text)}</Say>
    <Gather input="speech" timeout="5" speechTimeout="auto" action="{escape_xml(action_url)}" method="POST" language="{language}">{prompt_xml}
    </Gather>{timeout_xml}
</Response>"""
