"""Citizen complaint endpoints: file, track, edit and update.

Filing returns the complaint id; the citizen keeps the secret they chose.
Tracking is public by id.  Edits and status updates require the secret in
the request body and go through the mutation gate.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.errors import service, to_http
from src.models.complaint import (
    Complaint,
    ComplaintAnalysis,
    ComplaintEdit,
    ComplaintUpdate,
    normalize_category,
)
from src.models.enums import ChannelType, ComplaintCategory, ComplaintPriority, ComplaintStatus
from src.services.errors import NagarSevaError
from src.services.filing import ComplaintFiler
from src.services.mutation_gate import MutationGate
from src.services.record_store import RecordStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/complaints", tags=["complaints"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ComplaintCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact: str = Field(default="", max_length=200)
    title: str | None = Field(default=None, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    category: str | None = Field(default=None, description="Slug or display label; classified when omitted")
    priority: ComplaintPriority | None = None
    location: str = Field(..., min_length=1, max_length=500)
    secret: str = Field(..., description="Passphrase needed later to edit or update the complaint")


class ComplaintView(BaseModel):
    """Public track view of a complaint."""

    id: str
    title: str
    description: str
    category: ComplaintCategory
    priority: ComplaintPriority
    status: ComplaintStatus
    location: str
    source: ChannelType
    analysis: ComplaintAnalysis | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def of(cls, complaint: Complaint) -> ComplaintView:
        return cls.model_validate(complaint.model_dump(include=set(cls.model_fields)))


class ComplaintCreated(BaseModel):
    complaint: ComplaintView
    message: str


class ComplaintEditRequest(BaseModel):
    secret: str
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    location: str | None = Field(default=None, min_length=1, max_length=500)


class CitizenUpdateRequest(BaseModel):
    secret: str
    message: str = Field(..., min_length=1, max_length=2000)
    status: ComplaintStatus | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=ComplaintCreated, status_code=201)
async def file_complaint(body: ComplaintCreateRequest, request: Request) -> ComplaintCreated:
    filer: ComplaintFiler = service(request, "filer")  # type: ignore[assignment]
    try:
        complaint = await filer.file(
            description=body.description,
            location=body.location,
            secret=body.secret,
            name=body.name,
            contact=body.contact,
            title=body.title,
            category=normalize_category(body.category) if body.category else None,
            priority=body.priority,
            source=ChannelType.WEB,
        )
    except NagarSevaError as exc:
        raise to_http(exc) from None

    return ComplaintCreated(
        complaint=ComplaintView.of(complaint),
        message=f"Your complaint has been filed. Save your Complaint ID: {complaint.id}",
    )


@router.get("/{complaint_id}", response_model=ComplaintView)
async def track_complaint(complaint_id: str, request: Request) -> ComplaintView:
    store: RecordStore = service(request, "store")  # type: ignore[assignment]
    try:
        complaint = await store.get_complaint(complaint_id)
    except NagarSevaError as exc:
        raise to_http(exc) from None
    return ComplaintView.of(complaint)


@router.get("/{complaint_id}/updates", response_model=list[ComplaintUpdate])
async def list_complaint_updates(complaint_id: str, request: Request) -> list[ComplaintUpdate]:
    store: RecordStore = service(request, "store")  # type: ignore[assignment]
    try:
        return await store.list_updates(complaint_id)
    except NagarSevaError as exc:
        raise to_http(exc) from None


@router.put("/{complaint_id}/edit", response_model=ComplaintView)
async def edit_complaint(
    complaint_id: str,
    body: ComplaintEditRequest,
    request: Request,
) -> ComplaintView:
    gate: MutationGate = service(request, "gate")  # type: ignore[assignment]
    edit = ComplaintEdit(title=body.title, description=body.description, location=body.location)
    try:
        complaint = await gate.edit(complaint_id, body.secret, edit)
    except NagarSevaError as exc:
        raise to_http(exc) from None
    return ComplaintView.of(complaint)


@router.post("/{complaint_id}/updates", response_model=ComplaintUpdate, status_code=201)
async def add_citizen_update(
    complaint_id: str,
    body: CitizenUpdateRequest,
    request: Request,
) -> ComplaintUpdate:
    gate: MutationGate = service(request, "gate")  # type: ignore[assignment]
    try:
        return await gate.change_status(complaint_id, body.secret, body.message, body.status)
    except NagarSevaError as exc:
        raise to_http(exc) from None
