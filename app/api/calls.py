"""Outbound call endpoints."""
import logging
import time
from typing import Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from app.core.config import settings
from app.core.dependencies import get_public_base_url, get_twilio_client
from app.core.languages import resolve_language

router = APIRouter()
logger = logging.getLogger(__name__)


class OutboundCallRequest(BaseModel):
    """Outbound call request model."""
    phone_number: Optional[str] = None
    language: str = "en"
    webhook_url: Optional[str] = None


def resolve_webhook_base(request: Request, body: OutboundCallRequest) -> str:
    """Pick the public base URL Twilio should call back."""
    if body.webhook_url:
        return body.webhook_url.rstrip("/")
    return get_public_base_url(str(request.base_url))


def build_callback_urls(base_url: str, language: str) -> dict:
    query = urlencode({"language": resolve_language(language, settings.default_language).code})
    return {
        "url": f"{base_url}/webhooks/voice/incoming?{query}",
        "status_callback": f"{base_url}/webhooks/voice/status",
    }


@router.post("/api/call")
async def create_outbound_call(
    request: Request,
    body: OutboundCallRequest,
    twilio_client: TwilioClient = Depends(get_twilio_client),
):
    """Initiate an outbound call that connects to the voice assistant."""
    if not body.phone_number:
        raise HTTPException(status_code=400, detail="Phone number is required")

    base_url = resolve_webhook_base(request, body)
    if ("localhost" in base_url or "127.0.0.1" in base_url) and not body.webhook_url:
        raise HTTPException(
            status_code=400,
            detail=(
                "Webhook URL required. Provide webhook_url in the request body "
                "or set BASE_URL to a public URL."
            ),
        )

    urls = build_callback_urls(base_url, body.language)
    logger.info(f"[OUTBOUND CALL] Calling {body.phone_number} via {base_url}")

    try:
        # Twilio's REST client is synchronous
        call = await run_in_threadpool(
            twilio_client.calls.create,
            to=body.phone_number,
            from_=settings.twilio_phone_number,
            url=urls["url"],
            status_callback=urls["status_callback"],
            status_callback_method="POST",
        )
    except TwilioException as e:
        logger.error(f"[OUTBOUND CALL] Failed to initiate call: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to initiate call: {e}")

    return {
        "success": True,
        "call_sid": call.sid,
        "status": call.status,
        "message": "Call initiated successfully",
        "webhook_url": base_url,
    }


@router.post("/api/call/test")
async def test_outbound_call(request: Request, body: OutboundCallRequest):
    """Validate an outbound call request without dialing."""
    if not body.phone_number:
        raise HTTPException(status_code=400, detail="Phone number is required")

    base_url = resolve_webhook_base(request, body)
    urls = build_callback_urls(base_url, body.language)
    return {
        "success": True,
        "call_sid": f"TEST_{int(time.time() * 1000)}",
        "status": "test-mode",
        "message": "Call would be initiated successfully (test mode)",
        "config": {
            "to": body.phone_number,
            "from": settings.twilio_phone_number,
            "language": resolve_language(body.language, settings.default_language).code,
            "webhook_url": urls["url"],
            "status_callback": urls["status_callback"],
        },
    }
