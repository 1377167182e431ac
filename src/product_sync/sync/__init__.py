"""Product field sync core -- keeps a Feature custom field equal to its Product name.

Provides:
- EntityGateway / ProductboardGateway: typed remote API access
- FieldValueResolver: text value or enumerated option for a product name
- normalize_events: tolerant webhook payload normalization
- SyncOrchestrator: per-feature sync with failure isolation
- WebhookRegistrar: idempotent webhook self-registration
- BackfillDriver: paginated full sweep
"""

from src.product_sync.sync.backfill import BackfillDriver, extract_next_cursor
from src.product_sync.sync.errors import (
    ConfigurationError,
    NoMatchingOption,
    ProductSyncError,
    RemoteError,
)
from src.product_sync.sync.events import describe_payload, entity_ids, normalize_events
from src.product_sync.sync.gateway import EntityGateway, ProductboardGateway
from src.product_sync.sync.labels import labels_match, normalize_label
from src.product_sync.sync.orchestrator import SyncOrchestrator
from src.product_sync.sync.registrar import WebhookRegistrar
from src.product_sync.sync.resolver import FieldValueResolver

__all__ = [
    "BackfillDriver",
    "ConfigurationError",
    "EntityGateway",
    "FieldValueResolver",
    "NoMatchingOption",
    "ProductSyncError",
    "ProductboardGateway",
    "RemoteError",
    "SyncOrchestrator",
    "WebhookRegistrar",
    "describe_payload",
    "entity_ids",
    "extract_next_cursor",
    "labels_match",
    "normalize_events",
    "normalize_label",
]
