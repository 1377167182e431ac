"""Full backfill sweep over every feature, page by page.

Runs strictly sequentially and is meant to be invoked standalone (see
scripts/backfill.py), not alongside live webhook traffic.

The loop stops when a page carries no cursor. It also stops on a misbehaving
cursor: after two consecutive empty pages, when the same cursor comes back,
or once ``max_pages`` pages have been fetched.
"""

from __future__ import annotations

from typing import Any

import structlog
from tenacity.wait import wait_base

from src.product_sync.sync.gateway import EntityGateway
from src.product_sync.sync.orchestrator import SyncOrchestrator
from src.product_sync.sync.retry import call_with_retry
from src.product_sync.sync.schemas import BackfillResult, SyncOutcome

logger = structlog.get_logger(__name__)

# Checked in order; the first non-empty string wins
_CURSOR_PATHS: tuple[tuple[str, ...], ...] = (
    ("links", "next"),
    ("pageCursor",),
    ("nextCursor",),
    ("meta", "pageCursor"),
    ("meta", "nextCursor"),
)


def extract_next_cursor(page_body: dict[str, Any]) -> str | None:
    """Return the cursor for the next page, or None on the last page."""
    for path in _CURSOR_PATHS:
        current: Any = page_body
        for key in path:
            current = current.get(key) if isinstance(current, dict) else None
        if isinstance(current, str) and current:
            return current
    return None


class BackfillDriver:
    """Feeds every listed feature through the sync orchestrator once.

    Args:
        gateway: Remote entity gateway used for listing.
        orchestrator: Orchestrator that syncs each feature.
        page_size: Features requested per page.
        max_pages: Hard cap on pages fetched in one sweep.
        retry_attempts: Attempts per page fetch for transient failures.
        retry_wait: Optional tenacity wait strategy.
    """

    def __init__(
        self,
        gateway: EntityGateway,
        orchestrator: SyncOrchestrator,
        page_size: int = 100,
        max_pages: int = 1000,
        retry_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ) -> None:
        self._gateway = gateway
        self._orchestrator = orchestrator
        self._page_size = page_size
        self._max_pages = max_pages
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait

    async def backfill_all(self) -> BackfillResult:
        """Sync every feature. Page fetch failures propagate after retries."""
        result = BackfillResult()
        cursor: str | None = None
        empty_pages = 0

        while True:
            if result.pages >= self._max_pages:
                logger.warning("backfill.page_limit_reached", max_pages=self._max_pages)
                result.truncated = True
                break

            page = await call_with_retry(
                self._gateway.list_entities_page,
                self._page_size,
                cursor,
                attempts=self._retry_attempts,
                wait=self._retry_wait,
            )
            result.pages += 1

            for entity in page.entities:
                outcome = await self._orchestrator.sync_entity(entity.id)
                result.processed += 1
                if outcome == SyncOutcome.UPDATED:
                    result.updated += 1
                elif outcome.is_skip:
                    result.skipped += 1
                else:
                    result.failed += 1

            logger.info(
                "backfill.page_complete",
                page=result.pages,
                entities=len(page.entities),
                processed=result.processed,
            )

            next_cursor = extract_next_cursor(page.raw)
            if not next_cursor:
                break

            empty_pages = empty_pages + 1 if not page.entities else 0
            if empty_pages >= 2:
                logger.warning("backfill.no_progress", cursor=next_cursor)
                result.truncated = True
                break
            if next_cursor == cursor:
                logger.warning("backfill.cursor_repeated", cursor=next_cursor)
                result.truncated = True
                break
            cursor = next_cursor

        logger.info(
            "backfill.complete",
            processed=result.processed,
            pages=result.pages,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            truncated=result.truncated,
        )
        return result
