"""Translate domain errors into HTTP errors for the v1 endpoints."""

from __future__ import annotations

from typing import Final

import structlog
from fastapi import HTTPException, Request

from config.settings import settings
from src.services.errors import (
    AuthFailure,
    ComplaintClosed,
    ComplaintNotFound,
    InvalidInput,
    NagarSevaError,
    StoreUnavailable,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

UNIFIED_AUTH_DETAIL: Final[str] = "Complaint not found or incorrect secret"


def service(request: Request, name: str) -> object:
    """Fetch a service from ``app.state`` or fail with 503."""
    svc = getattr(request.app.state, name, None)
    if svc is None:
        raise HTTPException(status_code=503, detail=f"{name.replace('_', ' ').capitalize()} not available")
    return svc


def to_http(exc: NagarSevaError) -> HTTPException:
    """Map a domain error to the HTTP error the client sees."""
    if isinstance(exc, ComplaintNotFound | AuthFailure) and settings.unify_auth_errors:
        return HTTPException(status_code=403, detail=UNIFIED_AUTH_DETAIL)
    if isinstance(exc, ComplaintNotFound):
        return HTTPException(status_code=404, detail="Complaint not found")
    if isinstance(exc, AuthFailure):
        return HTTPException(status_code=403, detail="Incorrect secret")
    if isinstance(exc, ComplaintClosed):
        return HTTPException(
            status_code=409,
            detail=f"Complaint is {exc.status} and can no longer be changed",
        )
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, StoreUnavailable):
        return HTTPException(status_code=503, detail="Complaint store temporarily unavailable")
    logger.error("api.unmapped_domain_error", error_type=type(exc).__name__)
    return HTTPException(status_code=500, detail="Internal error")
