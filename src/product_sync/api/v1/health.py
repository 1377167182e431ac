"""Health check endpoint.

Liveness only: no remote calls are made, so a Productboard outage does not
take the webhook receiver out of rotation.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Basic liveness check with the active sync configuration."""
    settings = request.app.state.settings
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "field_mode": settings.FIELD_MODE.value,
        "sync_ready": getattr(request.app.state, "orchestrator", None) is not None,
        "auto_register_webhook": settings.AUTO_REGISTER_WEBHOOK,
        "webhook_secret_required": bool(settings.WEBHOOK_SHARED_SECRET),
    }
