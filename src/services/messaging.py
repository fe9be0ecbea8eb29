"""WhatsApp Cloud API and SMS channel adapter.

Inbound: webhook payloads are parsed into :class:`IncomingMessage` objects
whose ``from_number`` is the sender id the intake engine keys sessions by.

Outbound: WhatsApp replies are sent as free-form session messages through
the Meta Graph API (replies within 24 hours of the citizen's message need
no template).  SMS replies are returned synchronously to the gateway as
TwiML, so there is no outbound SMS call.  Without WhatsApp credentials the
service runs in mock mode and only logs what it would have sent.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final
from uuid import uuid4
from xml.sax.saxutils import escape

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.enums import ChannelType

logger = structlog.get_logger(__name__)

WHATSAPP_API_BASE: Final[str] = "https://graph.facebook.com/v18.0"

_INDIAN_MOBILE_RE: Final[re.Pattern[str]] = re.compile(r"^(?:\+?91)?([6-9]\d{9})$")
_INTERNATIONAL_RE: Final[re.Pattern[str]] = re.compile(r"^\+?(\d{8,15})$")

_WHATSAPP_MAX: Final[int] = 4096
_SMS_MAX: Final[int] = 160
_MAX_ATTEMPTS: Final[int] = 3


class DeliveryState(StrEnum):
    __slots__ = ()

    SENT = "sent"
    FAILED = "failed"
    MOCK = "mock"


class _RetryableStatus(Exception):
    """Raised for 5xx / 429 responses so tenacity retries them."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"retryable status {status_code}")
        self.status_code = status_code


class IncomingMessage(BaseModel):
    """A message received from a WhatsApp or SMS webhook."""

    message_id: str = Field(default_factory=lambda: uuid4().hex)
    channel: ChannelType
    from_number: str
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeliveryStatus(BaseModel):
    channel: ChannelType
    to: str
    status: DeliveryState
    provider_message_id: str | None = None
    error_message: str | None = None


def sanitize_phone(number: str) -> str:
    """Normalise a sender address to E.164.

    Indian mobiles in any common format become ``+91XXXXXXXXXX``; other
    international numbers keep their digits behind a ``+``.  A
    ``whatsapp:`` prefix (Twilio style) is stripped.

    Raises
    ------
    ValueError
        If *number* is not a phone number.
    """
    cleaned = re.sub(r"[\s\-\(\)]+", "", number.strip())
    if cleaned.lower().startswith("whatsapp:"):
        cleaned = cleaned[len("whatsapp:"):]
    match = _INDIAN_MOBILE_RE.match(cleaned)
    if match:
        return f"+91{match.group(1)}"
    match = _INTERNATIONAL_RE.match(cleaned)
    if match:
        return f"+{match.group(1)}"
    raise ValueError(f"Invalid phone number: {number!r}")


def parse_whatsapp_webhook(payload: dict[str, Any]) -> list[IncomingMessage]:
    """Extract text messages from a Meta Cloud API webhook payload.

    Delivery-status callbacks and non-text messages (images, stickers)
    yield nothing.  Interactive button and list replies are read as their
    title text.
    """
    incoming: list[IncomingMessage] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            for msg in value.get("messages") or []:
                text = _whatsapp_text(msg)
                if text is None:
                    continue
                try:
                    sender = sanitize_phone(str(msg.get("from", "")))
                except ValueError:
                    logger.warning("messaging.whatsapp_bad_sender", msg_type=msg.get("type"))
                    continue
                incoming.append(
                    IncomingMessage(
                        message_id=msg.get("id") or uuid4().hex,
                        channel=ChannelType.WHATSAPP,
                        from_number=sender,
                        text=text,
                    ),
                )
    logger.info("messaging.whatsapp_received", count=len(incoming))
    return incoming


def _whatsapp_text(msg: dict[str, Any]) -> str | None:
    msg_type = msg.get("type", "text")
    if msg_type == "text":
        return (msg.get("text") or {}).get("body", "")
    if msg_type == "interactive":
        interactive = msg.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        return reply.get("title", "")
    return None


def parse_sms_webhook(payload: dict[str, Any]) -> IncomingMessage | None:
    """Parse an SMS gateway callback (Twilio, MSG91 and similar field names)."""
    from_number = (
        payload.get("From")
        or payload.get("from")
        or payload.get("sender")
        or payload.get("mobile")
        or ""
    )
    text = (
        payload.get("Body")
        or payload.get("text")
        or payload.get("message")
        or payload.get("content")
        or ""
    )
    if not from_number:
        return None
    try:
        sender = sanitize_phone(str(from_number))
    except ValueError:
        logger.warning("messaging.sms_bad_sender")
        return None

    incoming = IncomingMessage(
        message_id=str(payload.get("MessageSid") or payload.get("id") or uuid4().hex),
        channel=ChannelType.SMS,
        from_number=sender,
        text=str(text),
    )
    logger.info("messaging.sms_received", text_length=len(incoming.text))
    return incoming


def format_for_sms(text: str, max_length: int = _SMS_MAX) -> str:
    """Collapse whitespace and truncate to one SMS segment."""
    compact = " ".join(text.split())
    if len(compact) <= max_length:
        return compact
    return compact[: max_length - 3].rstrip() + "..."


def twiml_reply(text: str) -> str:
    """Wrap *text* in a TwiML ``<Message>`` response."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(format_for_sms(text))}</Message></Response>"
    )


class MessagingService:
    """Outbound WhatsApp replies via the Meta Cloud API."""

    __slots__ = ("_access_token", "_phone_id", "_timeout")

    def __init__(
        self,
        whatsapp_phone_id: str = "",
        whatsapp_access_token: str = "",
        *,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._phone_id = whatsapp_phone_id
        self._access_token = whatsapp_access_token
        self._timeout = timeout_seconds
        logger.info("messaging.initialised", mock=self.is_mock)

    @property
    def is_mock(self) -> bool:
        return not self._phone_id or not self._access_token

    async def send_whatsapp_text(self, to: str, message: str) -> DeliveryStatus:
        log = logger.bind(channel="whatsapp")
        if self.is_mock:
            log.info("messaging.mock_whatsapp_sent", message_length=len(message))
            return DeliveryStatus(channel=ChannelType.WHATSAPP, to=to, status=DeliveryState.MOCK)

        url = f"{WHATSAPP_API_BASE}/{self._phone_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": message[:_WHATSAPP_MAX]},
        }
        try:
            response = await self._post_with_retry(url, payload)
        except (httpx.HTTPError, _RetryableStatus) as exc:
            log.error("messaging.whatsapp_send_failed", error=str(exc))
            return DeliveryStatus(
                channel=ChannelType.WHATSAPP,
                to=to,
                status=DeliveryState.FAILED,
                error_message=str(exc),
            )

        data = response.json()
        if response.status_code == 200 and data.get("messages"):
            wa_id = data["messages"][0].get("id", "")
            log.info("messaging.whatsapp_sent", wa_message_id=wa_id)
            return DeliveryStatus(
                channel=ChannelType.WHATSAPP,
                to=to,
                status=DeliveryState.SENT,
                provider_message_id=wa_id,
            )

        error = (data.get("error") or {}).get("message", str(data))
        log.error("messaging.whatsapp_api_error", status=response.status_code, error=error)
        return DeliveryStatus(
            channel=ChannelType.WHATSAPP,
            to=to,
            status=DeliveryState.FAILED,
            error_message=error,
        )

    async def _post_with_retry(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
            stop=stop_after_attempt(_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, headers=headers, json=payload)
                if response.status_code >= 500 or response.status_code == 429:
                    logger.warning(
                        "messaging.retryable_status",
                        status=response.status_code,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise _RetryableStatus(response.status_code)
        return response
