"""Complaint records, update events, and the helpers that keep them canonical.

A complaint is identified externally by a short, human-typeable id such as
``CMP-7F3A91C2``.  Citizens type these ids back into chat or the track page,
so :func:`parse_complaint_id` is lenient about case, whitespace and a
missing dash, and returns *None* for anything that is not an id at all.

Categories are always stored as canonical slugs (see
:class:`~src.models.enums.ComplaintCategory`).  Display labels coming from
the web form (``"Roads & Transportation"``) or the LLM (``"water_supply"``)
are normalised on the way in by a model validator, so no code path can
persist a free-form label.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Final
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from src.models.enums import (
    ChannelType,
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
)

# ---------------------------------------------------------------------------
# Complaint identifiers
# ---------------------------------------------------------------------------

COMPLAINT_ID_PREFIX: Final[str] = "CMP"

_COMPLAINT_ID_RE: Final[re.Pattern[str]] = re.compile(
    r"^CMP[\s\-_]*([0-9A-F]{8})$",
)
_EMBEDDED_ID_RE: Final[re.Pattern[str]] = re.compile(r"\bCMP[\s\-_]*([0-9A-F]{8})\b")


def new_complaint_id() -> str:
    """Generate a new external complaint id (``CMP-XXXXXXXX``)."""
    return f"{COMPLAINT_ID_PREFIX}-{uuid4().hex[:8].upper()}"


def parse_complaint_id(text: str) -> str | None:
    """Return the canonical form of *text* if it is a complaint id, else *None*.

    ``"cmp-7f3a91c2"``, ``" CMP 7F3A91C2 "`` and ``"CMP7F3A91C2"`` all
    parse to ``"CMP-7F3A91C2"``.
    """
    match = _COMPLAINT_ID_RE.match(text.strip().upper())
    if not match:
        return None
    return f"{COMPLAINT_ID_PREFIX}-{match.group(1)}"


def find_complaint_id(text: str) -> str | None:
    """Return the first complaint id mentioned anywhere in *text*, canonicalised."""
    match = _EMBEDDED_ID_RE.search(text.upper())
    if not match:
        return None
    return f"{COMPLAINT_ID_PREFIX}-{match.group(1)}"


# ---------------------------------------------------------------------------
# Category normalisation
# ---------------------------------------------------------------------------

_CATEGORY_ALIASES: Final[dict[str, ComplaintCategory]] = {
    # Web form display labels
    "water supply & sewerage": ComplaintCategory.WATER_SUPPLY,
    "water supply": ComplaintCategory.WATER_SUPPLY,
    "roads & transportation": ComplaintCategory.ROAD_TRANSPORTATION,
    "road & transportation": ComplaintCategory.ROAD_TRANSPORTATION,
    "street lighting": ComplaintCategory.STREET_LIGHTING,
    "parks & recreation": ComplaintCategory.PARKS_RECREATION,
    "noise pollution": ComplaintCategory.NOISE_POLLUTION,
    "online services": ComplaintCategory.ONLINE_SERVICES,
    "property tax": ComplaintCategory.PROPERTY_TAX,
    # LLM labels
    "water_supply": ComplaintCategory.WATER_SUPPLY,
    "roads": ComplaintCategory.ROAD_TRANSPORTATION,
    "street_lighting": ComplaintCategory.STREET_LIGHTING,
    "parks": ComplaintCategory.PARKS_RECREATION,
    "online_services": ComplaintCategory.ONLINE_SERVICES,
    "noise_pollution": ComplaintCategory.NOISE_POLLUTION,
    "property_tax": ComplaintCategory.PROPERTY_TAX,
    # Legacy chat-bot labels
    "general": ComplaintCategory.OTHER,
}

_CATEGORY_VALUES: Final[frozenset[str]] = frozenset(c.value for c in ComplaintCategory)


def _slugify(value: str) -> str:
    slug = value.strip().lower().replace("&", "and")
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


def normalize_category(label: str | None) -> ComplaintCategory:
    """Map any category label to a canonical slug.

    Known display and LLM labels go through the alias table; anything else
    is slugified and accepted only if it is already canonical.  Unknown
    labels become ``other``.
    """
    if not label:
        return ComplaintCategory.OTHER
    key = str(label).strip().lower()
    if key in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[key]
    slug = _slugify(key)
    if slug in _CATEGORY_VALUES:
        return ComplaintCategory(slug)
    return ComplaintCategory.OTHER


def normalize_priority(label: str | None) -> ComplaintPriority:
    """Map a priority label (any case) to :class:`ComplaintPriority`, default medium."""
    try:
        return ComplaintPriority(str(label or "").strip().lower())
    except ValueError:
        return ComplaintPriority.MEDIUM


_RESOLUTION_DAYS: Final[dict[ComplaintPriority, int]] = {
    ComplaintPriority.URGENT: 1,
    ComplaintPriority.HIGH: 3,
    ComplaintPriority.MEDIUM: 7,
    ComplaintPriority.LOW: 14,
}


def estimated_resolution_days(priority: ComplaintPriority) -> int:
    return _RESOLUTION_DAYS[priority]


def derive_title(description: str, max_length: int = 50) -> str:
    """Build a title from the first *max_length* characters of a description."""
    text = " ".join(description.split())
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ComplaintAnalysis(BaseModel):
    """Classifier output retained on the complaint as provenance."""

    category: ComplaintCategory
    priority: ComplaintPriority
    is_valid: bool = True
    estimated_resolution_days: int | None = None
    department: str | None = None
    confidence: float | None = None
    fallback: bool = False  # True when the classifier failed and defaults were used

    @field_validator("category", mode="before")
    @classmethod
    def _canonical_category(cls, value: object) -> ComplaintCategory:
        return normalize_category(value if isinstance(value, str) else None)


class NewComplaint(BaseModel):
    """Fields supplied when a complaint is first persisted."""

    name: str = Field(..., min_length=1, max_length=200)
    contact: str = Field(default="", max_length=200)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    location: str = Field(..., min_length=1, max_length=500)
    source: ChannelType = ChannelType.WEB
    analysis: ComplaintAnalysis | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _canonical_category(cls, value: object) -> ComplaintCategory:
        return normalize_category(value if isinstance(value, str) else None)


class Complaint(NewComplaint):
    """The durable complaint record.

    ``secret_hash`` is excluded from every dump and repr so a complaint can
    be returned to any caller without exposing verification material.
    """

    id: str = Field(default_factory=new_complaint_id)
    status: ComplaintStatus = ComplaintStatus.SUBMITTED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    secret_hash: str = Field(default="", exclude=True, repr=False)

    @property
    def is_closed(self) -> bool:
        return self.status.is_terminal


class ComplaintEdit(BaseModel):
    """Edit of free-text fields; ``None`` leaves a field unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    location: str | None = Field(default=None, min_length=1, max_length=500)

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.description is None and self.location is None


class ComplaintUpdate(BaseModel):
    """Append-only event recorded against a complaint."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: uuid4().hex)
    complaint_id: str
    actor_id: str | None = None  # None for citizen-originated updates
    message: str
    status: ComplaintStatus | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def derive_status(complaint: Complaint, updates: list[ComplaintUpdate]) -> ComplaintStatus:
    """Status implied by the event log: the latest update that set one."""
    for update in reversed(updates):
        if update.status is not None:
            return update.status
    return complaint.status
