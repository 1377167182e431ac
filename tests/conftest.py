"""Shared fixtures for product field sync tests.

Provides:
- InMemoryEntityGateway: EntityGateway test double with recorded writes
- Settings built explicitly (no .env lookup)
- A SyncOrchestrator wired to the in-memory gateway with no retry delay
"""

from __future__ import annotations

from typing import Any

import pytest
from tenacity import wait_none

from src.product_sync.config import Settings
from src.product_sync.sync.errors import RemoteError
from src.product_sync.sync.gateway import EntityGateway
from src.product_sync.sync.orchestrator import SyncOrchestrator
from src.product_sync.sync.schemas import (
    Entity,
    EntityPage,
    FieldDefinition,
    FieldMode,
    FieldOption,
    FieldValue,
    Product,
    WebhookDescriptor,
    WebhookRegistration,
)


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryEntityGateway(EntityGateway):
    """In-memory EntityGateway for testing without the remote API."""

    def __init__(self) -> None:
        self.features: dict[str, dict[str, Any]] = {}
        self.products: dict[str, Product] = {}
        self.fields: dict[str, FieldDefinition] = {}
        self.webhooks: list[WebhookRegistration] = []
        self.pages: list[EntityPage] = []
        self.writes: list[tuple[str, str, FieldValue]] = []
        self.page_requests: list[tuple[int, str | None]] = []
        self.failures: dict[str, list[RemoteError]] = {}
        self.calls: list[str] = []

    # Test setup helpers

    def add_feature(self, feature_id: str, **raw: Any) -> None:
        self.features[feature_id] = {"id": feature_id, **raw}

    def add_product(self, product_id: str, name: str | None) -> None:
        self.products[product_id] = Product(id=product_id, name=name)

    def add_field(self, field_id: str, options: list[tuple[str, str]]) -> None:
        self.fields[field_id] = FieldDefinition(
            id=field_id,
            options=[FieldOption(id=oid, label=label) for oid, label in options],
        )

    def fail_next(self, operation: str, *errors: RemoteError) -> None:
        self.failures.setdefault(operation, []).extend(errors)

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    # EntityGateway implementation

    async def get_entity(self, entity_id: str) -> Entity:
        self._maybe_fail("get_entity")
        if entity_id not in self.features:
            raise RemoteError(404, f"feature {entity_id} not found")
        return Entity(id=entity_id, raw=self.features[entity_id])

    async def get_product(self, product_id: str) -> Product:
        self._maybe_fail("get_product")
        if product_id not in self.products:
            raise RemoteError(404, f"product {product_id} not found")
        return self.products[product_id]

    async def get_field_definition(self, field_id: str) -> FieldDefinition:
        self._maybe_fail("get_field_definition")
        if field_id not in self.fields:
            raise RemoteError(404, f"field {field_id} not found")
        return self.fields[field_id]

    async def set_field_value(self, entity_id: str, field_id: str, value: FieldValue) -> None:
        self._maybe_fail("set_field_value")
        self.writes.append((entity_id, field_id, value))

    async def list_entities_page(self, page_size: int, cursor: str | None = None) -> EntityPage:
        self._maybe_fail("list_entities_page")
        self.page_requests.append((page_size, cursor))
        if not self.pages:
            return EntityPage()
        return self.pages.pop(0)

    async def list_webhook_registrations(self) -> list[WebhookRegistration]:
        self._maybe_fail("list_webhook_registrations")
        return list(self.webhooks)

    async def create_webhook_registration(self, descriptor: WebhookDescriptor) -> WebhookRegistration:
        self._maybe_fail("create_webhook_registration")
        registration = WebhookRegistration(
            id=f"wh-{len(self.webhooks) + 1}",
            url=descriptor.url,
            enabled=descriptor.enabled,
            event_types=list(descriptor.event_types),
        )
        self.webhooks.append(registration)
        return registration


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def gateway() -> InMemoryEntityGateway:
    return InMemoryEntityGateway()


@pytest.fixture
def settings() -> Settings:
    """Settings with test values, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        PB_TOKEN="test-token",
        PB_CUSTOM_FIELD_ID="cf-product",
        FIELD_MODE="text",
        WEBHOOK_CALLBACK_URL="https://sync.example.com/pb-webhook",
        AUTO_REGISTER_WEBHOOK=False,
    )


@pytest.fixture
def text_orchestrator(gateway) -> SyncOrchestrator:
    return SyncOrchestrator(
        gateway=gateway,
        field_id="cf-product",
        field_mode=FieldMode.TEXT,
        retry_attempts=3,
        retry_wait=wait_none(),
    )


@pytest.fixture
def enum_orchestrator(gateway) -> SyncOrchestrator:
    return SyncOrchestrator(
        gateway=gateway,
        field_id="cf-product",
        field_mode=FieldMode.ENUMERATED,
        retry_attempts=3,
        retry_wait=wait_none(),
    )
