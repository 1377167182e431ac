"""Productboard webhook receiver.

Returns 200 for every outcome (ok / ignored / handled) so the notifier does
not retry deliveries whose failures are already logged here. The only
non-200 answer is 401 when a shared secret is configured and the request
header does not match it.

Events from one notification are synced sequentially in the order they were
normalized. Concurrent deliveries are not serialized against each other.
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.product_sync.core.monitoring import (
    webhook_events_extracted_total,
    webhook_notifications_total,
)
from src.product_sync.sync.events import describe_payload, entity_ids, normalize_events

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["webhooks"])


def _secret_matches(expected: str, provided: str | None) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


@router.post("/pb-webhook")
async def receive_webhook(request: Request):
    """Productboard webhook receiver.

    Normalizes the notification into feature ids and syncs each of them
    through the orchestrator on app.state.
    """
    settings = request.app.state.settings

    if settings.WEBHOOK_SHARED_SECRET:
        provided = request.headers.get(settings.WEBHOOK_SECRET_HEADER)
        if not _secret_matches(settings.WEBHOOK_SHARED_SECRET, provided):
            logger.warning("webhook.invalid_secret", header=settings.WEBHOOK_SECRET_HEADER)
            webhook_notifications_total.labels(status="unauthorized").inc()
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"status": "unauthorized"},
            )

    try:
        payload = await request.json()
    except Exception:
        logger.warning("webhook.invalid_json", content_type=request.headers.get("content-type"))
        webhook_notifications_total.labels(status="ignored").inc()
        return {"status": "ignored"}

    try:
        events = normalize_events(payload)
        if not events:
            logger.info(
                "webhook.no_feature_events",
                **describe_payload(
                    payload,
                    include_preview=settings.DEBUG_PAYLOADS,
                    max_chars=settings.PAYLOAD_PREVIEW_MAX_CHARS,
                ),
            )
            webhook_notifications_total.labels(status="ignored").inc()
            return {"status": "ignored"}

        for event in events:
            webhook_events_extracted_total.labels(source=event.source).inc()

        orchestrator = getattr(request.app.state, "orchestrator", None)
        if orchestrator is None:
            logger.error("webhook.orchestrator_unavailable", event_count=len(events))
            webhook_notifications_total.labels(status="handled").inc()
            return {"status": "handled"}

        ids = entity_ids(events)
        logger.info(
            "webhook.received",
            event_count=len(events),
            entity_ids=ids,
            kinds=sorted({event.kind for event in events}),
        )
        result = await orchestrator.sync_many(ids)
    except Exception:
        logger.error("webhook.handler_error", exc_info=True)
        webhook_notifications_total.labels(status="handled").inc()
        return {"status": "handled"}

    webhook_notifications_total.labels(status="ok").inc()
    return {
        "status": "ok",
        "processed": result.processed,
        "updated": result.updated,
        "skipped": result.skipped,
        "failed": result.failed,
    }
