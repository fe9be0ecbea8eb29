"""Ephemeral chat-intake session state.

One :class:`IntakeSession` exists per sender address while a conversation
is in progress.  The draft accumulates what the sender has told us so far;
it deliberately has no field for the secret, which only ever travels
through a single transition on its way to the hasher.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.complaint import ComplaintAnalysis
from src.models.enums import ComplaintCategory, ComplaintPriority, IntakeState


class IntakeDraft(BaseModel):
    """Partially-built complaint assembled across several messages."""

    draft_id: str = Field(default_factory=lambda: uuid4().hex)
    description: str = ""
    category: ComplaintCategory | None = None
    priority: ComplaintPriority | None = None
    analysis: ComplaintAnalysis | None = None
    location: str | None = None


class IntakeSession(BaseModel):
    """Conversation state for one sender."""

    sender_id: str
    state: IntakeState = IntakeState.IDLE
    draft: IntakeDraft | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime, ttl_seconds: float) -> bool:
        return (now - self.last_activity).total_seconds() > ttl_seconds
