"""Main API router combining all v1 route modules under ``/api/v1``.

Includes:
    * Complaints: file, track, edit and update with the complaint secret
    * Officials: triage updates, listing and statistics
    * Chat: generic chat adapter plus WhatsApp and SMS webhooks
    * Health: liveness and readiness probes
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import chat, complaints, health, officials

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(complaints.router)
api_router.include_router(officials.router)
api_router.include_router(chat.router)
api_router.include_router(health.router)
