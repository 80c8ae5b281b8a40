"""Response generation with bounded retry and exponential backoff."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from app.core.languages import LanguageProfile
from app.services.agent.exceptions import GenerationProviderError
from app.services.agent.prompt import build_messages
from app.services.call_session.models import Turn

logger = logging.getLogger(__name__)

FALLBACK_UTTERANCE = (
    "I'm sorry, I'm having trouble processing your request right now. "
    "Could you please try again?"
)

Sleep = Callable[[float], Awaitable[None]]


class GenerationProvider(ABC):
    """Produces the next assistant utterance from chat messages."""

    @abstractmethod
    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """
        Return the assistant reply.

        Raises:
            GenerationProviderError: the provider call failed
        """
        pass


class OpenAIChatProvider(GenerationProvider):
    """Generation using OpenAI chat completions."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o", max_tokens: int = 150):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=0.7,
                presence_penalty=0.1,
                frequency_penalty=0.1,
            )
        except OpenAIError as e:
            raise GenerationProviderError(f"{type(e).__name__}: {e}") from e

        if not completion.choices:
            raise GenerationProviderError("Completion returned no choices")
        return completion.choices[0].message.content or ""


class GenerationResult(BaseModel):
    """Outcome of a generate call: the utterance or the exhausted fallback."""

    text: str
    attempts: int
    fallback: bool = False


class ResponseGenerator:
    """
    Generates assistant replies, retrying transient provider failures.

    One initial attempt is followed by up to ``max_retries`` retries, waiting
    ``backoff_base * 2**n`` seconds before retry n+1 (1s, 2s, 4s by default).
    Callers never see provider errors: when every attempt fails the
    fallback utterance is returned instead.
    """

    def __init__(
        self,
        provider: GenerationProvider,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        attempt_timeout: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    def backoff_delays(self) -> List[float]:
        """Delays awaited before each retry."""
        return [self.backoff_base * (2 ** n) for n in range(self.max_retries)]

    async def generate(self, history: List[Turn], language: LanguageProfile) -> GenerationResult:
        """Generate the next assistant utterance for the history window."""
        messages = build_messages(history, language)
        delays = self.backoff_delays()
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            try:
                text = (await self._complete(messages)).strip()
                if not text:
                    raise GenerationProviderError("Empty response")
                if attempt > 1:
                    logger.info(f"[GENERATOR] Succeeded on attempt {attempt}/{total_attempts}")
                return GenerationResult(text=text, attempts=attempt)
            except Exception as e:
                logger.warning(
                    f"[GENERATOR] Attempt {attempt}/{total_attempts} failed: "
                    f"{type(e).__name__}: {e}"
                )
                if attempt < total_attempts:
                    await self._sleep(delays[attempt - 1])

        logger.error(
            f"[GENERATOR] All {total_attempts} attempts failed, using fallback utterance"
        )
        return GenerationResult(text=FALLBACK_UTTERANCE, attempts=total_attempts, fallback=True)

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        if self.attempt_timeout is None:
            return await self.provider.complete(messages)
        try:
            return await asyncio.wait_for(
                self.provider.complete(messages), timeout=self.attempt_timeout
            )
        except asyncio.TimeoutError as e:
            raise GenerationProviderError(
                f"Timed out after {self.attempt_timeout}s"
            ) from e
