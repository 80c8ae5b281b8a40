"""Call session manager."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from app.core.languages import resolve_language
from app.services.agent.generator import ResponseGenerator
from app.services.call_session.exceptions import InvalidCallIdError, SessionNotFoundError
from app.services.call_session.models import (
    NO_SPEECH_PROMPT,
    CallSession,
    SessionSnapshot,
    TurnOutcome,
    TurnResult,
    TurnRole,
    utc_now,
)
from app.services.call_session.store import SessionStore
from app.services.persistence.events import (
    CALL_ENDED,
    CALL_INITIATED,
    CONVERSATION_TURN,
    EventLogger,
    NullEventLogger,
)
from app.services.speech.exceptions import NoSpeechDetected, ProviderError
from app.services.speech.stt import TranscriptionProvider
from app.services.speech.tts import SpeechSynthesisProvider

logger = logging.getLogger(__name__)

# Provider call statuses that end a call
TERMINAL_CALL_STATUSES = ("completed", "failed", "busy", "no-answer", "canceled")


class CallSessionManager:
    """Manages call sessions and orchestrates the conversation flow."""

    def __init__(
        self,
        store: SessionStore,
        generator: ResponseGenerator,
        transcriber: Optional[TranscriptionProvider] = None,
        synthesizer: Optional[SpeechSynthesisProvider] = None,
        event_logger: Optional[EventLogger] = None,
        default_language: str = "en",
        history_window: int = 10,
        low_confidence_threshold: float = 0.5,
        idle_timeout_seconds: float = 1800,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.generator = generator
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.event_logger = event_logger or NullEventLogger()
        self.default_language = default_language
        self.history_window = history_window
        self.low_confidence_threshold = low_confidence_threshold
        self.idle_timeout_seconds = idle_timeout_seconds
        self.clock = clock

    async def create_session(
        self, call_sid: str, originator: str, language: Optional[str] = None
    ) -> CallSession:
        """
        Create a call session, or return the active one for this call.

        Args:
            call_sid: Provider call identifier
            originator: Caller identity (phone number)
            language: Language code; unrecognized codes use the default language
        """
        if not call_sid or not call_sid.strip():
            raise InvalidCallIdError("Call id must not be empty")

        existing = await self.store.get(call_sid)
        if existing is not None and existing.active:
            logger.info(f"[SESSION MANAGER] Reusing active session - CallSid: {call_sid}")
            return existing

        now = self.clock()
        profile = resolve_language(language, self.default_language)
        session = CallSession(
            call_id=call_sid,
            originator=originator,
            language=profile,
            started_at=now,
            last_activity_at=now,
        )
        stored = await self.store.put(session)
        if stored is not session:
            # Another request created the session first
            return stored

        logger.info(
            f"[SESSION MANAGER] Session created - CallSid: {call_sid}, "
            f"From: {originator}, Language: {profile.code}"
        )
        await self.event_logger.log_event(
            call_sid,
            CALL_INITIATED,
            {
                "originator": originator,
                "language": profile.code,
                "started_at": session.started_at.isoformat(),
            },
        )
        return session

    async def get_session(self, call_sid: str) -> Optional[CallSession]:
        """Get an active call session."""
        return await self.store.get(call_sid)

    async def handle_turn(
        self,
        call_sid: str,
        *,
        audio: Optional[bytes] = None,
        text: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> TurnResult:
        """
        Process one caller utterance and produce the assistant reply.

        Either raw audio (transcribed first) or already transcribed text is
        accepted. Low-confidence and unintelligible input leave the history
        untouched and ask the caller to repeat.

        Raises:
            SessionNotFoundError: no active session exists for the call
        """
        lock = await self.store.lock_for(call_sid)
        if lock is None:
            raise SessionNotFoundError(call_sid)

        async with lock:
            # The call may have ended, or been replaced by a new session with
            # its own lock, while this turn waited
            session = await self._locked_session(call_sid, lock)
            if session is None:
                raise SessionNotFoundError(call_sid)
            # Any speech event counts as activity, even if it is rejected below
            session.last_activity_at = self.clock()
            return await self._process_turn(session, audio, text, confidence)

    async def _locked_session(self, call_sid: str, lock: asyncio.Lock) -> Optional[CallSession]:
        """Active session guarded by ``lock``, or None if the lock is stale."""
        session = await self.store.get(call_sid)
        if session is None or not session.active:
            return None
        if await self.store.lock_for(call_sid) is not lock:
            return None
        return session

    async def _process_turn(
        self,
        session: CallSession,
        audio: Optional[bytes],
        text: Optional[str],
        confidence: Optional[float],
    ) -> TurnResult:
        call_sid = session.call_id

        if confidence is not None and confidence < self.low_confidence_threshold:
            logger.info(
                f"[SESSION MANAGER] Low confidence ({confidence:.2f}) - CallSid: {call_sid}"
            )
            return TurnResult(outcome=TurnOutcome.LOW_CONFIDENCE, text=NO_SPEECH_PROMPT)

        user_text = await self._resolve_user_text(session, audio, text)
        if not user_text:
            return TurnResult(outcome=TurnOutcome.NO_SPEECH, text=NO_SPEECH_PROMPT)

        session.append_turn(TurnRole.USER, user_text, at=self.clock())
        window = session.window(self.history_window)

        logger.info(
            f"[SESSION MANAGER] Generating response - CallSid: {call_sid}, "
            f"History: {session.turn_count} turns, Window: {len(window)}"
        )
        result = await self.generator.generate(window, session.language)

        # The fallback is appended too: history reflects what the caller heard
        session.append_turn(TurnRole.ASSISTANT, result.text, at=self.clock())

        await self.event_logger.log_event(
            call_sid,
            CONVERSATION_TURN,
            {
                "user_text": user_text,
                "assistant_text": result.text,
                "attempts": result.attempts,
                "fallback": result.fallback,
            },
        )

        outcome = TurnOutcome.FALLBACK if result.fallback else TurnOutcome.RESPONDED
        return TurnResult(outcome=outcome, text=result.text)

    async def _resolve_user_text(
        self, session: CallSession, audio: Optional[bytes], text: Optional[str]
    ) -> Optional[str]:
        """Transcribe audio if given, otherwise use the provided text."""
        if audio is not None:
            if self.transcriber is None:
                raise RuntimeError("Audio turns require a transcription provider")
            try:
                text = await self.transcriber.transcribe(
                    audio, session.language.transcription_language_code
                )
            except NoSpeechDetected:
                logger.info(f"[SESSION MANAGER] No speech detected - CallSid: {session.call_id}")
                return None
            except ProviderError as e:
                logger.warning(
                    f"[SESSION MANAGER] Transcription failed - CallSid: {session.call_id}, "
                    f"Error: {e}"
                )
                return None

        if text is None or not text.strip():
            return None
        return text.strip()

    async def synthesize(self, call_sid: str, text: str) -> Optional[bytes]:
        """
        Synthesize text with the voice of the call's language.

        Synthesis failures are silent: None is returned and the caller
        falls back to provider-side speech.
        """
        if self.synthesizer is None:
            return None
        session = await self.store.get(call_sid)
        if session is None:
            raise SessionNotFoundError(call_sid)
        try:
            return await self.synthesizer.synthesize(text, session.language.synthesis_voice_id)
        except ProviderError as e:
            logger.warning(f"[SESSION MANAGER] Synthesis failed - CallSid: {call_sid}, Error: {e}")
            return None

    async def terminate_session(self, call_sid: str, reason: str = "completed") -> Optional[CallSession]:
        """
        End a call session and clean up.

        Waits for an in-flight turn of the same call to finish first.
        Unknown or already ended calls are ignored.

        Args:
            call_sid: Provider call identifier
            reason: Why the call ended, e.g. "completed", "failed", "busy",
                "no-answer" or "timeout"

        Returns:
            The ended session, or None if there was nothing to end
        """
        session = await self._end_locked(call_sid)
        if session is None:
            logger.debug(f"[SESSION MANAGER] No session to terminate - CallSid: {call_sid}")
            return None
        await self._log_ended(session, reason)
        return session

    async def _end_locked(
        self,
        call_sid: str,
        expected: Optional[CallSession] = None,
        idle_before: Optional[datetime] = None,
    ) -> Optional[CallSession]:
        """
        Mark a session ended and remove it, under its turn lock.

        With ``expected``, only that session object is ended. With
        ``idle_before``, the session is ended only if it is still idle once the
        lock is held.
        """
        lock = await self.store.lock_for(call_sid)
        if lock is None:
            return None

        async with lock:
            session = await self._locked_session(call_sid, lock)
            if session is None:
                return None
            if expected is not None and session is not expected:
                return None
            if idle_before is not None and session.last_activity_at >= idle_before:
                return None
            session.mark_ended(self.clock())
            await self.store.remove(call_sid)
        return session

    async def _log_ended(self, session: CallSession, reason: str) -> None:
        call_sid = session.call_id
        logger.info(
            f"[SESSION MANAGER] Session ended - CallSid: {call_sid}, Reason: {reason}, "
            f"Duration: {session.duration_seconds:.1f}s, Turns: {session.turn_count}"
        )
        await self.event_logger.log_event(
            call_sid,
            CALL_ENDED,
            {
                "reason": reason,
                "duration_seconds": session.duration_seconds,
                "turn_count": session.turn_count,
            },
        )

    async def sweep_idle_sessions(self) -> int:
        """Terminate sessions idle for longer than the inactivity ceiling."""
        idle = await self.store.idle_sessions(self.clock(), self.idle_timeout_seconds)
        ended = 0
        for candidate in idle:
            # A turn may have run while the sweep waited for the lock
            cutoff = self.clock() - timedelta(seconds=self.idle_timeout_seconds)
            session = await self._end_locked(
                candidate.call_id, expected=candidate, idle_before=cutoff
            )
            if session is not None:
                await self._log_ended(session, "timeout")
                ended += 1
        if ended:
            logger.info(f"[SESSION MANAGER] Evicted {ended} idle session(s)")
        return ended

    async def active_session_count(self) -> int:
        return await self.store.count()

    async def active_sessions(self) -> List[SessionSnapshot]:
        """Snapshot of active sessions for health and analytics reporting."""
        return [SessionSnapshot.from_session(s) for s in await self.store.snapshot()]
