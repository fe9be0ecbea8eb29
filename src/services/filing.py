"""Complaint creation shared by the web form and the chat dialogue.

Both channels end in :meth:`ComplaintFiler.file`: the secret is checked
and hashed here, the classification becomes provenance on the record, and
the plaintext secret goes no further than this module.
"""

from __future__ import annotations

import re

import structlog

from src.models.complaint import (
    Complaint,
    ComplaintAnalysis,
    NewComplaint,
    derive_title,
)
from src.models.enums import ChannelType, ComplaintCategory, ComplaintPriority
from src.services.classifier import GuardedClassifier
from src.services.errors import InvalidInput
from src.services.record_store import RecordStore
from src.services.secret_manager import SecretManager, fits_bcrypt

logger = structlog.get_logger(__name__)

_DIGITS_RE = re.compile(r"\D")


def chat_display_name(sender_id: str, channel: ChannelType = ChannelType.WHATSAPP) -> str:
    """Placeholder name for a chat complaint, e.g. ``"WhatsApp User 3210"``."""
    digits = _DIGITS_RE.sub("", sender_id)
    suffix = digits[-4:] if digits else sender_id[-4:]
    label = "WhatsApp" if channel == ChannelType.WHATSAPP else channel.value.upper()
    return f"{label} User {suffix}"


class ComplaintFiler:
    """Validate, hash and persist new complaints."""

    def __init__(
        self,
        store: RecordStore,
        secrets: SecretManager,
        classifier: GuardedClassifier,
        *,
        min_secret_length: int = 6,
        max_secret_length: int = 64,
    ) -> None:
        self._store = store
        self._secrets = secrets
        self._classifier = classifier
        self._min_secret = min_secret_length
        self._max_secret = max_secret_length

    @property
    def min_secret_length(self) -> int:
        return self._min_secret

    @property
    def max_secret_length(self) -> int:
        return self._max_secret

    def check_secret(self, secret: str) -> None:
        """Raise :class:`InvalidInput` unless *secret* is within the length bounds."""
        if len(secret) < self._min_secret:
            raise InvalidInput(f"Secret must be at least {self._min_secret} characters")
        if len(secret) > self._max_secret or not fits_bcrypt(secret):
            raise InvalidInput(
                f"Secret must be at most {self._max_secret} characters (fewer for non-Latin scripts)",
            )

    async def file(
        self,
        *,
        description: str,
        location: str,
        secret: str,
        name: str,
        contact: str = "",
        title: str | None = None,
        category: ComplaintCategory | None = None,
        priority: ComplaintPriority | None = None,
        analysis: ComplaintAnalysis | None = None,
        source: ChannelType = ChannelType.WEB,
        idempotency_key: str | None = None,
    ) -> Complaint:
        """Create a complaint.

        When neither *analysis* nor an explicit *category* is supplied the
        description is classified first.  Explicit *category* / *priority*
        win over the classifier's suggestion.
        """
        self.check_secret(secret)
        description = description.strip()
        location = location.strip()
        if not description:
            raise InvalidInput("Description cannot be empty")
        if not location:
            raise InvalidInput("Location cannot be empty")

        if analysis is None and category is None:
            analysis = (await self._classifier.classify(description)).to_analysis()

        fields = NewComplaint(
            name=name,
            contact=contact,
            title=(title or "").strip() or derive_title(description),
            description=description,
            category=category or (analysis.category if analysis else ComplaintCategory.OTHER),
            priority=priority or (analysis.priority if analysis else ComplaintPriority.MEDIUM),
            location=location,
            source=source,
            analysis=analysis,
        )
        secret_hash = await self._secrets.hash_async(secret)
        complaint = await self._store.create_complaint(
            fields,
            secret_hash,
            idempotency_key=idempotency_key,
        )
        logger.info(
            "filing.complaint_filed",
            complaint_id=complaint.id,
            source=source,
            classifier_fallback=bool(analysis and analysis.fallback),
        )
        return complaint
