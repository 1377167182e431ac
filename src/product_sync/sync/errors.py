"""Error kinds raised by the sync components.

Missing parents and missing product names are not errors; they are reported
as ``SyncOutcome`` skip values by the orchestrator.
"""

from __future__ import annotations


class ProductSyncError(Exception):
    """Base class for all product sync errors."""


class ConfigurationError(ProductSyncError):
    """Required settings are missing or invalid."""


class RemoteError(ProductSyncError):
    """Non-success response (or transport failure) from the remote service.

    Args:
        status_code: HTTP status, or None when no response was received.
        message: Response body or transport error description.
    """

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"remote error {status_code}: {message}")

    @property
    def is_transient(self) -> bool:
        """True for rate limiting, server errors, and transport failures."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class NoMatchingOption(ProductSyncError):
    """No enumerated option label matches the product name."""

    def __init__(self, field_id: str, product_name: str) -> None:
        self.field_id = field_id
        self.product_name = product_name
        super().__init__(f'No option on field {field_id} matches product name "{product_name}"')
