"""Reply texts for the chat intake dialogue.

Kept short and free of markdown: replies go out over WhatsApp and SMS.
"""

from __future__ import annotations

from typing import Final

from src.models.complaint import Complaint, ComplaintUpdate
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus

MENU: Final[str] = "You can say 'file a complaint' or 'check status'."

WELCOME: Final[str] = f"Welcome to NagarSeva, your municipal grievance service! How can I help you today? {MENU}"

NOT_UNDERSTOOD: Final[str] = f"I'm sorry, I didn't understand. {MENU}"

ASK_DESCRIPTION: Final[str] = "Please describe your complaint in detail."

ASK_DESCRIPTION_AGAIN: Final[str] = (
    "Please provide a more detailed description of your complaint, "
    "for example what the problem is and since when."
)

ASK_LOCATION_AGAIN: Final[str] = "Please tell me the location of the issue, for example the street and a landmark."

ASK_COMPLAINT_ID: Final[str] = "To check the status of a complaint, please send your Complaint ID (for example CMP-1A2B3C4D)."

ASK_VALID_COMPLAINT_ID: Final[str] = (
    "That doesn't look like a Complaint ID. Please send it in the form CMP-1A2B3C4D, or say 'cancel'."
)

CANCELLED: Final[str] = f"Okay, I've cancelled that. {MENU}"

STORE_UNAVAILABLE: Final[str] = "Sorry, our complaint system is temporarily unavailable. Please send the same message again in a few minutes."

INTERNAL_ERROR: Final[str] = "Sorry, something went wrong. Please try again."

_CATEGORY_LABELS: Final[dict[ComplaintCategory, str]] = {
    ComplaintCategory.WATER_SUPPLY: "Water Supply & Sewerage",
    ComplaintCategory.ROAD_TRANSPORTATION: "Roads & Transportation",
    ComplaintCategory.ELECTRICITY: "Electricity",
    ComplaintCategory.SANITATION: "Sanitation",
    ComplaintCategory.STREET_LIGHTING: "Street Lighting",
    ComplaintCategory.PARKS_RECREATION: "Parks & Recreation",
    ComplaintCategory.NOISE_POLLUTION: "Noise Pollution",
    ComplaintCategory.ADMINISTRATION: "Administration",
    ComplaintCategory.ONLINE_SERVICES: "Online Services",
    ComplaintCategory.PROPERTY_TAX: "Property Tax",
    ComplaintCategory.OTHER: "General",
}

_STATUS_TEXT: Final[dict[ComplaintStatus, str]] = {
    ComplaintStatus.SUBMITTED: "Submitted - Your complaint has been received and is being reviewed.",
    ComplaintStatus.IN_PROGRESS: "In Progress - Your complaint is being worked on by the concerned department.",
    ComplaintStatus.UNDER_REVIEW: "Under Review - Your complaint is being evaluated by officials.",
    ComplaintStatus.RESOLVED: "Resolved - Your complaint has been successfully resolved.",
    ComplaintStatus.REJECTED: "Rejected - Your complaint could not be taken up. Please see the latest update for the reason.",
}


def category_label(category: ComplaintCategory) -> str:
    return _CATEGORY_LABELS[category]


def ask_location(category: ComplaintCategory, priority: ComplaintPriority) -> str:
    return (
        f"Got it. I've categorized this as a '{category_label(category)}' issue "
        f"with '{priority.value}' priority. What is the location of this issue?"
    )


def ask_secret(min_length: int) -> str:
    return (
        "Thank you. Finally, please set a secret code to secure this complaint "
        f"(at least {min_length} characters). You will need it to edit or update the complaint."
    )


def secret_too_short(min_length: int) -> str:
    return f"The secret code must be at least {min_length} characters long. Please try again."


def secret_too_long(max_length: int) -> str:
    return (
        f"The secret code can be at most {max_length} characters long, and fewer if it uses "
        "non-Latin letters. Please try a shorter one."
    )


def complaint_created(complaint_id: str) -> str:
    return f"Excellent! Your complaint has been filed. Your Complaint ID is: {complaint_id}. Please save this ID."


def complaint_not_found(complaint_id: str) -> str:
    return f"Complaint {complaint_id} not found. Please check your Complaint ID."


def render_status(complaint: Complaint, latest_update: ComplaintUpdate | None = None) -> str:
    text = f"Complaint {complaint.id} Status: {_STATUS_TEXT[complaint.status]}"
    if latest_update is not None:
        text += f" Latest update: {latest_update.message}"
    return text
