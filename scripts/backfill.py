#!/usr/bin/env python3
"""CLI script to backfill the product-name field on every feature.

Usage:
    uv run python scripts/backfill.py
    uv run python scripts/backfill.py --page-size 50 --max-pages 20

Reads PB_TOKEN, PB_CUSTOM_FIELD_ID, FIELD_MODE, etc. from environment or .env
file. Runs one sequential sweep; do not run it alongside heavy webhook traffic.
Exits non-zero if any feature failed to sync.
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


async def backfill(page_size: int | None, max_pages: int | None) -> int:
    """Run the backfill sweep and return the number of failed features."""
    from src.product_sync.api.middleware.logging import configure_structlog
    from src.product_sync.config import get_settings
    from src.product_sync.core.components import (
        build_backfill_driver,
        build_gateway,
        build_orchestrator,
        require_settings,
    )

    settings = get_settings()
    if page_size is not None:
        settings = settings.model_copy(update={"BACKFILL_PAGE_SIZE": page_size})
    if max_pages is not None:
        settings = settings.model_copy(update={"BACKFILL_MAX_PAGES": max_pages})

    configure_structlog(settings)
    require_settings(settings)

    gateway = build_gateway(settings)
    orchestrator = build_orchestrator(settings, gateway)
    driver = build_backfill_driver(settings, gateway, orchestrator)

    print(f"Backfilling field {settings.PB_CUSTOM_FIELD_ID} (mode={settings.FIELD_MODE.value})")
    result = await driver.backfill_all()
    print("Backfill complete:")
    print(f"  Processed: {result.processed}")
    print(f"  Pages:     {result.pages}")
    print(f"  Updated:   {result.updated}")
    print(f"  Skipped:   {result.skipped}")
    print(f"  Failed:    {result.failed}")
    if result.truncated:
        print("  Stopped early: page limit or stalled cursor (see logs)")
    return result.failed


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill the product-name field on all features")
    parser.add_argument("--page-size", type=int, default=None, help="Features per page (default: BACKFILL_PAGE_SIZE)")
    parser.add_argument("--max-pages", type=int, default=None, help="Page cap (default: BACKFILL_MAX_PAGES)")
    args = parser.parse_args()

    if args.page_size is not None and args.page_size < 1:
        parser.error("--page-size must be positive")
    if args.max_pages is not None and args.max_pages < 1:
        parser.error("--max-pages must be positive")

    failed = asyncio.run(backfill(args.page_size, args.max_pages))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
