"""Pydantic schemas for the product field sync -- entities, fields, events, results.

Defines all structured types flowing between the sync components:
- Enums: FieldMode, SyncOutcome, RegistrationOutcome
- Remote entities: Entity, Product, FieldOption, FieldDefinition, EntityPage
- Write payloads: FieldValue
- Webhooks: CanonicalEvent, WebhookRegistration, WebhookDescriptor
- Summaries: SyncResult, BackfillResult
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class FieldMode(str, Enum):
    """Kind of value the target custom field accepts."""

    TEXT = "text"
    ENUMERATED = "enumerated"


class SyncOutcome(str, Enum):
    """Result of one entity sync attempt."""

    UPDATED = "updated"
    SKIPPED_NO_PARENT = "skipped_no_parent"
    SKIPPED_NO_PRODUCT_NAME = "skipped_no_product_name"
    NO_MATCHING_OPTION = "no_matching_option"
    REMOTE_ERROR = "remote_error"
    FAILED = "failed"

    @property
    def is_skip(self) -> bool:
        return self in (SyncOutcome.SKIPPED_NO_PARENT, SyncOutcome.SKIPPED_NO_PRODUCT_NAME)


class RegistrationOutcome(str, Enum):
    """Result of an ensure-registered call."""

    ALREADY_EXISTED = "already_existed"
    CREATED = "created"


# ── Remote Entities ─────────────────────────────────────────────────────────


class Entity(BaseModel):
    """A Feature as returned by the remote service (unwrapped from ``data``)."""

    id: str
    raw: dict[str, Any] = Field(default_factory=dict)


class Product(BaseModel):
    """A parent Product. Name may be missing on partially populated records."""

    id: str
    name: str | None = None


class FieldOption(BaseModel):
    """One option of an enumerated custom field."""

    id: str
    label: str = ""


class FieldDefinition(BaseModel):
    """Custom field definition; options are only meaningful in enumerated mode."""

    id: str
    options: list[FieldOption] = Field(default_factory=list)


class EntityPage(BaseModel):
    """One page of the entity listing plus the raw body for cursor lookup."""

    entities: list[Entity] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)


# ── Write Payloads ──────────────────────────────────────────────────────────


class FieldValue(BaseModel):
    """Concrete value written to the custom field (full replace)."""

    mode: FieldMode
    text: str | None = None
    option_id: str | None = None

    def to_payload(self) -> Any:
        """Render the ``value`` member of the field-value write body."""
        if self.mode == FieldMode.ENUMERATED:
            return {"optionId": self.option_id}
        return self.text


# ── Webhooks ────────────────────────────────────────────────────────────────


class CanonicalEvent(BaseModel):
    """Normalized (entity id, kind) pair extracted from a notification."""

    entity_id: str
    kind: str = ""
    source: str = ""  # Extraction path that produced the id
    raw: Any = None


class WebhookRegistration(BaseModel):
    """Existing webhook subscription on the remote service."""

    id: str | None = None
    url: str | None = None
    enabled: bool = True
    event_types: list[str] = Field(default_factory=list)


class WebhookDescriptor(BaseModel):
    """Webhook subscription to create."""

    name: str
    url: str
    event_types: list[str] = Field(default_factory=list)
    enabled: bool = True

    def to_payload(self) -> dict[str, Any]:
        """Render the create-webhook request body."""
        return {
            "data": {
                "name": self.name,
                "enabled": self.enabled,
                "events": [{"eventType": kind} for kind in self.event_types],
                "notification": {"url": self.url, "method": "POST"},
            }
        }


# ── Summaries ───────────────────────────────────────────────────────────────


class SyncResult(BaseModel):
    """Summary of a batch of entity syncs."""

    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    outcomes: dict[str, SyncOutcome] = Field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.updated + self.skipped + self.failed


class BackfillResult(BaseModel):
    """Summary of a full backfill sweep."""

    processed: int = 0
    pages: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    truncated: bool = False
