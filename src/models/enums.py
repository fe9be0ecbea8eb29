from __future__ import annotations

from enum import StrEnum


class ChannelType(StrEnum):
    __slots__ = ()

    WEB = "web"
    WHATSAPP = "whatsapp"
    SMS = "sms"
    CHAT = "chat"


class ComplaintCategory(StrEnum):
    """Canonical category slugs.  Display labels are never stored."""

    __slots__ = ()

    WATER_SUPPLY = "water-supply"
    ROAD_TRANSPORTATION = "road-transportation"
    ELECTRICITY = "electricity"
    SANITATION = "sanitation"
    STREET_LIGHTING = "street-lighting"
    PARKS_RECREATION = "parks-recreation"
    NOISE_POLLUTION = "noise-pollution"
    ADMINISTRATION = "administration"
    ONLINE_SERVICES = "online-services"
    PROPERTY_TAX = "property-tax"
    OTHER = "other"


class ComplaintPriority(StrEnum):
    """Ordered priority: low < medium < high < urgent."""

    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[str, int] = {
    ComplaintPriority.LOW: 0,
    ComplaintPriority.MEDIUM: 1,
    ComplaintPriority.HIGH: 2,
    ComplaintPriority.URGENT: 3,
}


class ComplaintStatus(StrEnum):
    __slots__ = ()

    SUBMITTED = "submitted"
    IN_PROGRESS = "in-progress"
    UNDER_REVIEW = "under-review"
    RESOLVED = "resolved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED)


class IntakeState(StrEnum):
    """States of the chat intake dialogue."""

    __slots__ = ()

    IDLE = "idle"
    COLLECTING_DESCRIPTION = "collecting_description"
    COLLECTING_LOCATION = "collecting_location"
    COLLECTING_SECRET = "collecting_secret"
    AWAITING_COMPLAINT_ID = "awaiting_complaint_id"
