"""Chat channel endpoints feeding the intake engine.

* ``POST /chat/message`` -- generic adapter: ``(sender_id, text)`` in,
  reply out.  Used by the web chat widget and for testing.
* ``GET/POST /chat/whatsapp/webhook`` -- Meta Cloud API verification and
  inbound messages; replies are sent back through the Graph API.
* ``POST /chat/sms/webhook`` -- SMS gateway callback; the reply is
  returned synchronously as TwiML.
"""

from __future__ import annotations

import hmac
from typing import Any

import orjson
import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from config.settings import settings
from src.api.errors import service
from src.models.enums import ChannelType, IntakeState
from src.services.intake import IntakeEngine
from src.services.messaging import (
    MessagingService,
    parse_sms_webhook,
    parse_whatsapp_webhook,
    twiml_reply,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatMessageRequest(BaseModel):
    sender_id: str = Field(..., min_length=1, max_length=100)
    text: str = Field(default="", max_length=5000)


class ChatMessageResponse(BaseModel):
    reply: str
    state: IntakeState
    complaint_id: str | None = None


@router.post("/message", response_model=ChatMessageResponse)
async def chat_message(body: ChatMessageRequest, request: Request) -> ChatMessageResponse:
    engine: IntakeEngine = service(request, "intake")  # type: ignore[assignment]
    result = await engine.handle_message(body.sender_id, body.text, channel=ChannelType.CHAT)
    return ChatMessageResponse(reply=result.reply, state=result.state, complaint_id=result.complaint_id)


@router.get("/whatsapp/webhook", response_class=PlainTextResponse)
async def verify_whatsapp_webhook(
    mode: str = Query(default="", alias="hub.mode"),
    token: str = Query(default="", alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
) -> str:
    """Meta subscription handshake: echo the challenge if the token matches."""
    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and hmac.compare_digest(token.encode(), expected.encode()):
        logger.info("chat.whatsapp_webhook_verified")
        return challenge
    logger.warning("chat.whatsapp_webhook_verify_failed", mode=mode)
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/whatsapp/webhook")
async def whatsapp_webhook(request: Request) -> dict[str, Any]:
    engine: IntakeEngine = service(request, "intake")  # type: ignore[assignment]
    messaging: MessagingService = service(request, "messaging")  # type: ignore[assignment]

    try:
        payload = orjson.loads(await request.body())
    except orjson.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    processed = 0
    for incoming in parse_whatsapp_webhook(payload):
        result = await engine.handle_message(incoming.from_number, incoming.text, channel=ChannelType.WHATSAPP)
        await messaging.send_whatsapp_text(incoming.from_number, result.reply)
        processed += 1

    # Meta retries any non-200 response, so always acknowledge.
    return {"status": "ok", "processed": processed}


@router.post("/sms/webhook")
async def sms_webhook(request: Request) -> Response:
    engine: IntakeEngine = service(request, "intake")  # type: ignore[assignment]

    content_type = request.headers.get("content-type", "")
    payload: dict[str, Any]
    if content_type.startswith("application/json"):
        try:
            decoded = orjson.loads(await request.body())
        except orjson.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from None
        payload = decoded if isinstance(decoded, dict) else {}
    else:
        form = await request.form()
        payload = {key: value for key, value in form.items() if isinstance(value, str)}

    incoming = parse_sms_webhook(payload)
    if incoming is None:
        raise HTTPException(status_code=400, detail="Missing or invalid sender")

    result = await engine.handle_message(incoming.from_number, incoming.text, channel=ChannelType.SMS)
    return Response(content=twiml_reply(result.reply), media_type="application/xml")
