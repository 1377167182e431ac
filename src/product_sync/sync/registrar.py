"""Idempotent webhook self-registration."""

from __future__ import annotations

import structlog

from src.product_sync.sync.gateway import EntityGateway
from src.product_sync.sync.schemas import RegistrationOutcome, WebhookDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_WEBHOOK_NAME = "Auto: Product field updater"


class WebhookRegistrar:
    """Creates the webhook subscription only when none targets the callback URL.

    Safe to call on every process start. Remote errors propagate to the caller.
    """

    def __init__(self, gateway: EntityGateway) -> None:
        self._gateway = gateway

    async def ensure_registered(
        self,
        target_url: str,
        event_types: list[str],
        name: str = DEFAULT_WEBHOOK_NAME,
    ) -> RegistrationOutcome:
        """Ensure a webhook pointing at ``target_url`` exists.

        Existing registrations are matched by exact URL string equality.
        """
        logger.info("webhook.checking_registration", url=target_url)
        for registration in await self._gateway.list_webhook_registrations():
            if registration.url == target_url:
                logger.info("webhook.already_registered", webhook_id=registration.id, url=target_url)
                return RegistrationOutcome.ALREADY_EXISTED

        created = await self._gateway.create_webhook_registration(
            WebhookDescriptor(name=name, url=target_url, event_types=list(event_types))
        )
        logger.info(
            "webhook.registered",
            webhook_id=created.id,
            url=target_url,
            event_types=event_types,
        )
        return RegistrationOutcome.CREATED
