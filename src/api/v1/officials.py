"""Official triage endpoints, gated by the ``X-Official-Key`` header."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from src.api.errors import service, to_http
from src.middleware.auth import require_official
from src.models.complaint import Complaint, ComplaintUpdate
from src.models.enums import ComplaintStatus
from src.services.errors import NagarSevaError
from src.services.mutation_gate import MutationGate
from src.services.record_store import RecordStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/officials", tags=["officials"])


class OfficialUpdateRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    status: ComplaintStatus | None = None


class ComplaintStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_category: dict[str, int]
    by_priority: dict[str, int]


@router.post("/complaints/{complaint_id}/updates", response_model=ComplaintUpdate, status_code=201)
async def add_official_update(
    complaint_id: str,
    body: OfficialUpdateRequest,
    request: Request,
    official_id: str = Depends(require_official),
) -> ComplaintUpdate:
    gate: MutationGate = service(request, "gate")  # type: ignore[assignment]
    try:
        return await gate.official_update(complaint_id, official_id, body.message, body.status)
    except NagarSevaError as exc:
        raise to_http(exc) from None


@router.get("/complaints", response_model=list[Complaint])
async def list_complaints(
    request: Request,
    status: ComplaintStatus | None = None,
    _official_id: str = Depends(require_official),
) -> list[Complaint]:
    """All complaints, newest first, with contact details (never the secret hash)."""
    store: RecordStore = service(request, "store")  # type: ignore[assignment]
    try:
        return await store.list_complaints(status)
    except NagarSevaError as exc:
        raise to_http(exc) from None


@router.get("/stats", response_model=ComplaintStats)
async def complaint_stats(
    request: Request,
    _official_id: str = Depends(require_official),
) -> ComplaintStats:
    store: RecordStore = service(request, "store")  # type: ignore[assignment]
    try:
        return ComplaintStats(**await store.stats())
    except NagarSevaError as exc:
        raise to_http(exc) from None
