"""Construction of sync components from Settings.

Settings are read once here and passed into constructors; the sync
components themselves never consult global configuration. Used by the
FastAPI lifespan and by the CLI scripts.
"""

from __future__ import annotations

import structlog

from src.product_sync.config import Settings
from src.product_sync.sync.backfill import BackfillDriver
from src.product_sync.sync.errors import ConfigurationError, RemoteError
from src.product_sync.sync.gateway import EntityGateway, ProductboardGateway
from src.product_sync.sync.orchestrator import SyncOrchestrator
from src.product_sync.sync.registrar import WebhookRegistrar
from src.product_sync.sync.schemas import RegistrationOutcome

logger = structlog.get_logger(__name__)


def require_settings(settings: Settings) -> None:
    """Raise ConfigurationError if required settings are missing."""
    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


def build_gateway(settings: Settings) -> ProductboardGateway:
    return ProductboardGateway(
        base_url=settings.PB_BASE_URL,
        token=settings.PB_TOKEN,
        timeout=settings.HTTP_TIMEOUT,
    )


def build_orchestrator(settings: Settings, gateway: EntityGateway) -> SyncOrchestrator:
    return SyncOrchestrator(
        gateway=gateway,
        field_id=settings.PB_CUSTOM_FIELD_ID,
        field_mode=settings.FIELD_MODE,
        retry_attempts=settings.SYNC_MAX_RETRIES + 1,
    )


def build_backfill_driver(
    settings: Settings,
    gateway: EntityGateway,
    orchestrator: SyncOrchestrator,
) -> BackfillDriver:
    return BackfillDriver(
        gateway=gateway,
        orchestrator=orchestrator,
        page_size=settings.BACKFILL_PAGE_SIZE,
        max_pages=settings.BACKFILL_MAX_PAGES,
        retry_attempts=settings.SYNC_MAX_RETRIES + 1,
    )


async def ensure_webhook(settings: Settings, gateway: EntityGateway) -> RegistrationOutcome | None:
    """Register the callback webhook if a callback URL is configured.

    Remote failures are logged and swallowed so startup can proceed; the
    registration is retried on the next process start.
    """
    if not settings.WEBHOOK_CALLBACK_URL:
        logger.info("webhook.registration_skipped", reason="WEBHOOK_CALLBACK_URL not set")
        return None

    registrar = WebhookRegistrar(gateway)
    try:
        return await registrar.ensure_registered(
            settings.WEBHOOK_CALLBACK_URL,
            settings.webhook_event_types,
            name=settings.WEBHOOK_NAME,
        )
    except RemoteError as exc:
        logger.error(
            "webhook.registration_failed",
            status_code=exc.status_code,
            error=exc.message,
        )
        return None
