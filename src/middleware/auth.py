"""Official role gate for staff-only endpoints.

Officials authenticate with the shared ``X-Official-Key`` header (checked
against ``OFFICIAL_API_KEY`` in constant time) and identify themselves
with ``X-Official-Id``, which is recorded as the actor on their updates.
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import Header, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from config.settings import settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_official_key_header = APIKeyHeader(name="X-Official-Key", auto_error=False)

_DEV_ACTOR = "dev-official"


async def require_official(
    request: Request,
    api_key: str | None = Security(_official_key_header),
    official_id: str | None = Header(default=None, alias="X-Official-Id", max_length=100),
) -> str:
    """FastAPI dependency returning the acting official's id.

    Raises 401 without a key, 403 for a wrong key, and 503 in production
    when no key is configured.  In development without a configured key
    every request is let through as ``dev-official``.
    """
    configured_key = settings.official_api_key

    if not configured_key:
        if not settings.is_production:
            logger.warning("auth.official_key_not_configured", path=request.url.path)
            return official_id or _DEV_ACTOR
        logger.error("auth.official_key_not_configured_production")
        raise HTTPException(status_code=503, detail="Official authentication is not configured.")

    if not api_key:
        logger.warning("auth.missing_official_key", path=request.url.path)
        raise HTTPException(
            status_code=401,
            detail="Missing X-Official-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key.encode(), configured_key.encode()):
        logger.warning("auth.invalid_official_key", path=request.url.path)
        raise HTTPException(status_code=403, detail="Invalid official key.")

    if not official_id:
        raise HTTPException(status_code=400, detail="Missing X-Official-Id header.")
    return official_id
