#!/usr/bin/env python3
"""CLI script to register the Productboard webhook once.

Usage:
    uv run python scripts/register_webhook.py
    uv run python scripts/register_webhook.py --url https://example.onrender.com/pb-webhook

Idempotent: does nothing if a webhook already targets the URL.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.product_sync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def register(url: str | None) -> None:
    """Ensure the webhook exists and print the outcome."""
    from src.product_sync.api.middleware.logging import configure_structlog
    from src.product_sync.config import get_settings
    from src.product_sync.core.components import build_gateway
    from src.product_sync.sync.registrar import WebhookRegistrar

    settings = get_settings()
    configure_structlog(settings)

    target_url = url or settings.WEBHOOK_CALLBACK_URL
    if not settings.PB_TOKEN:
        raise SystemExit("PB_TOKEN is required")
    if not target_url:
        raise SystemExit("Pass --url or set WEBHOOK_CALLBACK_URL")

    registrar = WebhookRegistrar(build_gateway(settings))
    outcome = await registrar.ensure_registered(
        target_url,
        settings.webhook_event_types,
        name=settings.WEBHOOK_NAME,
    )
    print(f"Webhook {target_url}: {outcome.value}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Register the Productboard webhook")
    parser.add_argument("--url", default=None, help="Callback URL (default: WEBHOOK_CALLBACK_URL)")
    args = parser.parse_args()

    asyncio.run(register(args.url))


if __name__ == "__main__":
    main()
