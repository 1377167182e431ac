"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
lifespan wiring of the sync components, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.product_sync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.product_sync.api.v1.router import router as v1_router
from src.product_sync.config import Settings, get_settings
from src.product_sync.core.components import (
    build_gateway,
    build_orchestrator,
    ensure_webhook,
    require_settings,
)
from src.product_sync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: validate settings, wire sync components, register webhook."""
    log = structlog.get_logger(__name__)
    settings: Settings = app.state.settings
    configure_structlog(settings)
    require_settings(settings)

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    gateway = build_gateway(settings)
    app.state.orchestrator = build_orchestrator(settings, gateway)
    log.info(
        "startup.sync_initialized",
        field_id=settings.PB_CUSTOM_FIELD_ID,
        field_mode=settings.FIELD_MODE.value,
    )

    if settings.AUTO_REGISTER_WEBHOOK:
        outcome = await ensure_webhook(settings, gateway)
        log.info("startup.webhook_checked", outcome=outcome.value if outcome else None)

    yield

    app.state.orchestrator = None
    log.info("shutdown.complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Product Field Sync",
        version="0.1.0",
        description="Keeps a Feature custom field in sync with its parent Product name",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = None

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("src.product_sync.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
