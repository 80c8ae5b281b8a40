"""Twilio voice webhook endpoints."""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Form, Depends, Query, HTTPException
from fastapi.responses import Response

from app.core.dependencies import get_session_manager, get_public_base_url
from app.core.languages import LanguageProfile
from app.services.call_session.exceptions import InvalidCallIdError, SessionNotFoundError
from app.services.call_session.manager import CallSessionManager, TERMINAL_CALL_STATUSES
from app.services.call_session.models import TurnOutcome
from app.services.speech.tts import render_gather, render_say

router = APIRouter()
logger = logging.getLogger(__name__)

GREETING = (
    "Hello! You've reached the AI Voice Assistant. I can help you with questions "
    "and have a conversation. Please speak after the tone."
)
LISTENING_PROMPT = "I'm listening..."
FOLLOW_UP_PROMPT = "What else can I help you with?"
SILENCE_GOODBYE = "I didn't hear anything. Please call back if you'd like to chat!"
GOODBYE = "Thank you for calling! Have a great day!"
TECHNICAL_DIFFICULTIES = (
    "I'm sorry, I'm having technical difficulties. Please try calling again later."
)


def twiml_response(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


def get_process_url(request: Request) -> str:
    """Absolute URL of the speech processing webhook."""
    base_url = get_public_base_url(str(request.base_url))
    return f"{base_url}/webhooks/voice/process"


def parse_confidence(raw: Optional[str]) -> Optional[float]:
    """Parse Twilio's Confidence field; missing or malformed values are ignored."""
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[PROCESS] Ignoring malformed confidence value: {raw!r}")
        return None


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    language: Optional[str] = Query(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle incoming call from Twilio.

    Creates the call session and greets the caller.
    """
    if not CallSid or not From:
        logger.error(f"[INCOMING CALL] Missing required fields - CallSid: {CallSid}, From: {From}")
        raise HTTPException(status_code=400, detail="Missing CallSid or From")

    logger.info(f"[INCOMING CALL] Incoming call from {From} - CallSid: {CallSid}")

    try:
        session = await session_manager.create_session(CallSid, From, language)
    except InvalidCallIdError as e:
        raise HTTPException(status_code=400, detail=str(e))

    twiml = render_gather(
        GREETING,
        get_process_url(request),
        language=session.language.twiml_language,
        prompt=LISTENING_PROMPT,
        timeout_message=SILENCE_GOODBYE,
    )
    return twiml_response(twiml)


@router.post("/voice/process")
async def handle_speech(
    request: Request,
    CallSid: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    SpeechResult: Optional[str] = Form(None),
    Confidence: Optional[str] = Form(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle gathered speech from Twilio.

    Runs one conversation turn and speaks the assistant's reply.
    """
    if not CallSid:
        logger.error("[PROCESS] Missing CallSid")
        raise HTTPException(status_code=400, detail="Missing CallSid")

    confidence = parse_confidence(Confidence)
    logger.info(
        f"[PROCESS] Speech received - CallSid: {CallSid}, "
        f"SpeechResult length: {len(SpeechResult) if SpeechResult else 0}, "
        f"Confidence: {confidence}"
    )

    try:
        session = await session_manager.get_session(CallSid)
        if session is None:
            # First event we see for this call: start a session for it
            session = await session_manager.create_session(CallSid, From or "unknown")
        language: LanguageProfile = session.language

        result = await session_manager.handle_turn(
            CallSid, text=SpeechResult, confidence=confidence
        )
    except SessionNotFoundError:
        logger.warning(f"[PROCESS] Session ended before turn was handled - CallSid: {CallSid}")
        return twiml_response(render_say(TECHNICAL_DIFFICULTIES, hangup=True))
    except Exception as e:
        logger.error(
            f"[PROCESS] Error processing speech input - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        return twiml_response(render_say(TECHNICAL_DIFFICULTIES, hangup=True))

    if result.outcome in (TurnOutcome.LOW_CONFIDENCE, TurnOutcome.NO_SPEECH):
        twiml = render_gather(
            result.text,
            get_process_url(request),
            language=language.twiml_language,
            prompt=LISTENING_PROMPT,
        )
    else:
        twiml = render_gather(
            result.text,
            get_process_url(request),
            language=language.twiml_language,
            prompt=FOLLOW_UP_PROMPT,
            timeout_message=GOODBYE,
        )
    return twiml_response(twiml)


@router.post("/voice/status")
async def handle_call_status(
    CallSid: Optional[str] = Form(None),
    CallStatus: Optional[str] = Form(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle call status updates from Twilio.

    Terminal statuses end the call session.
    """
    if not CallSid:
        logger.error("[CALL STATUS] Missing CallSid")
        raise HTTPException(status_code=400, detail="Missing CallSid")

    logger.info(f"[CALL STATUS] CallSid: {CallSid}, CallStatus: {CallStatus}")

    if CallStatus in TERMINAL_CALL_STATUSES:
        try:
            await session_manager.terminate_session(CallSid, reason=CallStatus)
        except Exception as e:
            # Still return OK to Twilio to avoid retries
            logger.error(
                f"[CALL STATUS] Error ending session - CallSid: {CallSid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

    return Response(content="OK", media_type="text/plain")
