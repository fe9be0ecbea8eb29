"""Health check endpoints.

Liveness and readiness probes for Cloud Run / Kubernetes.  Readiness
exercises the session cache and reports how many intake conversations
this instance is tracking.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe; does not touch downstream dependencies."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(time.time() - start_time, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    checks: dict[str, str] = {}
    all_ok = True

    cache = getattr(request.app.state, "session_cache", None)
    if cache is not None:
        try:
            await cache.set("_health_check", "ok", ttl_seconds=10)
            if await cache.get("_health_check") == "ok":
                checks["session_cache"] = f"ok ({cache.backend_name})"
            else:
                checks["session_cache"] = "degraded"
                all_ok = False
        except Exception as exc:
            checks["session_cache"] = f"error: {type(exc).__name__}"
            all_ok = False
    else:
        checks["session_cache"] = "not_configured"
        all_ok = False

    intake = getattr(request.app.state, "intake", None)
    if intake is not None:
        checks["intake"] = f"ok ({intake.registry.active_count} active sessions)"
    else:
        checks["intake"] = "not_initialised"
        all_ok = False

    classifier = getattr(request.app.state, "classifier", None)
    checks["classifier"] = type(classifier.inner).__name__ if classifier is not None else "not_initialised"
    if classifier is None:
        all_ok = False

    status = "ready" if all_ok else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
