"""Retry policy for remote calls made by the orchestrator and backfill driver.

The gateway performs single round-trips; callers wrap them here. Only
transient RemoteErrors (429, 5xx, transport failures) are retried, with
tenacity exponential backoff. Everything else is re-raised on first failure.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.product_sync.sync.errors import RemoteError

T = TypeVar("T")

DEFAULT_WAIT = wait_exponential(multiplier=1, min=1, max=10)


def is_transient(exc: BaseException) -> bool:
    """Return True if ``exc`` is a RemoteError worth retrying."""
    return isinstance(exc, RemoteError) and exc.is_transient


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 3,
    wait: wait_base | None = None,
) -> T:
    """Await ``func(*args)``, retrying transient remote failures."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait if wait is not None else DEFAULT_WAIT,
        retry=retry_if_exception(is_transient),
        reraise=True,
    ):
        with attempt:
            return await func(*args)
    raise AssertionError("unreachable")  # pragma: no cover
