"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.product_sync.sync.schemas import FieldMode


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"
    DEBUG_PAYLOADS: bool = False  # Include a capped raw preview in diagnostic logs
    PAYLOAD_PREVIEW_MAX_CHARS: int = 2000

    # HTTP server
    PORT: int = 3000

    # Productboard API
    PB_BASE_URL: str = "https://api.productboard.com"
    PB_TOKEN: str = ""
    HTTP_TIMEOUT: float = 15.0

    # Target custom field
    PB_CUSTOM_FIELD_ID: str = ""
    FIELD_MODE: FieldMode = FieldMode.TEXT

    # Webhook self-registration and inbound verification
    WEBHOOK_CALLBACK_URL: str = ""  # Public URL of POST /pb-webhook
    WEBHOOK_NAME: str = "Auto: Product field updater"
    WEBHOOK_EVENT_TYPES: str = "feature.created,feature.updated,feature.moved"
    AUTO_REGISTER_WEBHOOK: bool = True
    WEBHOOK_SHARED_SECRET: str = ""  # Empty disables the header check
    WEBHOOK_SECRET_HEADER: str = "X-Webhook-Secret"

    # Sync behaviour
    SYNC_MAX_RETRIES: int = 3  # Retries after the first attempt for transient failures
    BACKFILL_PAGE_SIZE: int = 100
    BACKFILL_MAX_PAGES: int = 1000

    # Monitoring
    SENTRY_DSN: str = ""

    @field_validator("FIELD_MODE", mode="before")
    @classmethod
    def _accept_productboard_mode_names(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in ("singleselect", "single_select", "single-select"):
            return FieldMode.ENUMERATED
        return value

    @property
    def webhook_event_types(self) -> list[str]:
        """Event kinds to subscribe to, parsed from the comma separated setting."""
        return [kind.strip() for kind in self.WEBHOOK_EVENT_TYPES.split(",") if kind.strip()]

    def missing_required(self) -> list[str]:
        """Return the names of required settings that are empty."""
        missing = []
        if not self.PB_TOKEN:
            missing.append("PB_TOKEN")
        if not self.PB_CUSTOM_FIELD_ID:
            missing.append("PB_CUSTOM_FIELD_ID")
        return missing


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
