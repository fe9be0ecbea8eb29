"""Tests for WhatsApp / SMS webhook parsing and reply delivery."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from src.models.enums import ChannelType
from src.services.messaging import (
    DeliveryState,
    MessagingService,
    format_for_sms,
    parse_sms_webhook,
    parse_whatsapp_webhook,
    sanitize_phone,
    twiml_reply,
)


def _whatsapp_payload(*messages: dict[str, Any]) -> dict[str, Any]:
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "123", "changes": [{"field": "messages", "value": {"messages": list(messages)}}]}],
    }


class TestSanitizePhone:
    @pytest.mark.parametrize(
        "raw",
        ["9876543210", "+919876543210", "91 98765 43210", "+91-98765-43210", "whatsapp:+919876543210"],
    )
    def test_indian_formats(self, raw: str) -> None:
        assert sanitize_phone(raw) == "+919876543210"

    def test_international_number(self) -> None:
        assert sanitize_phone("+44 7911 123456") == "+447911123456"

    @pytest.mark.parametrize("raw", ["", "hello", "12", "+1234567890123456789"])
    def test_rejects_non_numbers(self, raw: str) -> None:
        with pytest.raises(ValueError):
            sanitize_phone(raw)


class TestWhatsAppWebhook:
    def test_text_message(self) -> None:
        payload = _whatsapp_payload({"from": "919876543210", "id": "wamid.1", "type": "text", "text": {"body": "hi"}})
        [message] = parse_whatsapp_webhook(payload)
        assert message.channel == ChannelType.WHATSAPP
        assert message.from_number == "+919876543210"
        assert message.text == "hi"
        assert message.message_id == "wamid.1"

    def test_interactive_reply_uses_title(self) -> None:
        payload = _whatsapp_payload(
            {
                "from": "919876543210",
                "type": "interactive",
                "interactive": {"type": "button_reply", "button_reply": {"id": "b1", "title": "check status"}},
            },
        )
        [message] = parse_whatsapp_webhook(payload)
        assert message.text == "check status"

    def test_skips_media_and_bad_senders(self) -> None:
        payload = _whatsapp_payload(
            {"from": "919876543210", "type": "image", "image": {"id": "m1"}},
            {"from": "not-a-number", "type": "text", "text": {"body": "hi"}},
        )
        assert parse_whatsapp_webhook(payload) == []

    def test_status_callbacks_yield_nothing(self) -> None:
        payload = {"entry": [{"changes": [{"value": {"statuses": [{"id": "wamid.1", "status": "read"}]}}]}]}
        assert parse_whatsapp_webhook(payload) == []
        assert parse_whatsapp_webhook({}) == []


class TestSmsWebhook:
    def test_twilio_fields(self) -> None:
        message = parse_sms_webhook({"From": "+919876543210", "Body": "CMP-7F3A91C2", "MessageSid": "SM1"})
        assert message is not None
        assert message.channel == ChannelType.SMS
        assert message.from_number == "+919876543210"
        assert message.text == "CMP-7F3A91C2"
        assert message.message_id == "SM1"

    def test_generic_fields(self) -> None:
        message = parse_sms_webhook({"sender": "9876543210", "message": "hello"})
        assert message is not None
        assert message.from_number == "+919876543210"

    @pytest.mark.parametrize("payload", [{}, {"Body": "hi"}, {"From": "abc", "Body": "hi"}])
    def test_unusable_payloads(self, payload: dict[str, Any]) -> None:
        assert parse_sms_webhook(payload) is None


class TestSmsReplies:
    def test_format_truncates_to_one_segment(self) -> None:
        text = format_for_sms("word " * 100)
        assert len(text) == 160
        assert text.endswith("...")

    def test_short_text_is_compacted(self) -> None:
        assert format_for_sms("  hello \n  there ") == "hello there"

    def test_twiml_escapes_markup(self) -> None:
        xml = twiml_reply("Roads & <Transport>")
        assert xml.startswith('<?xml version="1.0"')
        assert "<Message>Roads &amp; &lt;Transport&gt;</Message>" in xml


class TestMessagingService:
    async def test_mock_mode_without_credentials(self) -> None:
        service = MessagingService()
        assert service.is_mock
        status = await service.send_whatsapp_text("+919876543210", "hello")
        assert status.status == DeliveryState.MOCK

    async def test_successful_send(self, monkeypatch: pytest.MonkeyPatch) -> None:
        service = MessagingService("phone-id", "token")
        sent: dict[str, Any] = {}

        async def fake_post(self: MessagingService, url: str, payload: dict[str, Any]) -> httpx.Response:
            sent.update(url=url, payload=payload)
            return httpx.Response(200, json={"messages": [{"id": "wamid.9"}]})

        monkeypatch.setattr(MessagingService, "_post_with_retry", fake_post)
        status = await service.send_whatsapp_text("+919876543210", "hello")

        assert status.status == DeliveryState.SENT
        assert status.provider_message_id == "wamid.9"
        assert sent["url"].endswith("/phone-id/messages")
        assert sent["payload"]["to"] == "919876543210"

    async def test_transport_failure_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        service = MessagingService("phone-id", "token")

        async def failing_post(self: MessagingService, url: str, payload: dict[str, Any]) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        monkeypatch.setattr(MessagingService, "_post_with_retry", failing_post)
        status = await service.send_whatsapp_text("+919876543210", "hello")

        assert status.status == DeliveryState.FAILED
        assert "unreachable" in (status.error_message or "")

    async def test_api_error_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        service = MessagingService("phone-id", "token")

        async def rejecting_post(self: MessagingService, url: str, payload: dict[str, Any]) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Invalid recipient"}})

        monkeypatch.setattr(MessagingService, "_post_with_retry", rejecting_post)
        status = await service.send_whatsapp_text("+919876543210", "hello")

        assert status.status == DeliveryState.FAILED
        assert status.error_message == "Invalid recipient"
