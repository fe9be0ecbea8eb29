from src.models.complaint import (
    Complaint,
    ComplaintAnalysis,
    ComplaintEdit,
    ComplaintUpdate,
    NewComplaint,
    derive_status,
    derive_title,
    estimated_resolution_days,
    new_complaint_id,
    normalize_category,
    normalize_priority,
    find_complaint_id,
    parse_complaint_id,
)
from src.models.enums import (
    ChannelType,
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    IntakeState,
)
from src.models.intake import IntakeDraft, IntakeSession

__all__ = [
    "ChannelType",
    "Complaint",
    "ComplaintAnalysis",
    "ComplaintCategory",
    "ComplaintEdit",
    "ComplaintPriority",
    "ComplaintStatus",
    "ComplaintUpdate",
    "IntakeDraft",
    "IntakeSession",
    "IntakeState",
    "NewComplaint",
    "derive_status",
    "derive_title",
    "estimated_resolution_days",
    "new_complaint_id",
    "normalize_category",
    "normalize_priority",
    "find_complaint_id",
    "parse_complaint_id",
]
