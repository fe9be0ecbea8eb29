"""Privacy protections: PII masking in logs and security headers on responses.

Complaint secrets and their hashes must never reach a log line, and
citizens' phone numbers and emails are masked to their last digits.
:func:`redact_sensitive` enforces both as a structlog processor, so it
applies to every event regardless of which module logged it.
"""

from __future__ import annotations

import re
from collections.abc import MutableMapping
from typing import Any, Final

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

REDACTED: Final[str] = "[REDACTED]"

# Keys whose values are dropped outright.
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    {"secret", "password", "secret_hash", "plaintext", "authorization", "x-official-key"},
)

# Indian mobiles (+91 optional) and other E.164 numbers; last 4 digits kept.
_PHONE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?:\+91[\s-]?|(?<!\d))([6-9]\d{4}[\s-]?\d)(\d{4})(?!\d)|\+(\d{4,11})(\d{4})(?!\d)",
)

_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
)


def sanitize_phone(text: str) -> str:
    """Mask phone numbers in *text*.

    ``+91 98765 43210`` and ``+919876543210`` both become ``XXXXXX3210``.
    """

    def _mask(match: re.Match[str]) -> str:
        return f"XXXXXX{match.group(2) or match.group(4)}"

    return _PHONE_PATTERN.sub(_mask, text)


def sanitize_email(text: str) -> str:
    return _EMAIL_PATTERN.sub("[EMAIL_REDACTED]", text)


def sanitize_pii(text: str) -> str:
    return sanitize_email(sanitize_phone(text))


def redact_sensitive(
    _logger: Any,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor: drop secret material and mask PII in string values."""
    for key, value in list(event_dict.items()):
        if key.lower() in _SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and key != "event":
            event_dict[key] = sanitize_pii(value)
    return event_dict


class PrivacyHeadersMiddleware(BaseHTTPMiddleware):
    """Log a sanitised request line and add security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        logger.info(
            "request.incoming",
            method=request.method,
            path=sanitize_pii(request.url.path),
        )

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
        # Complaint views can include contact details; never cache them.
        response.headers["Cache-Control"] = "no-store, private"
        return response
