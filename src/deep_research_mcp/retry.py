"""Exponential backoff retry for transient Responses API failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from .errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_retryable(exc: Exception) -> bool:
    """429, 5xx and transport-level failures are retryable; everything else is not."""
    if isinstance(exc, ProviderError):
        return exc.transient
    return isinstance(exc, (httpx.TransportError, TimeoutError))


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
) -> T:
    """Execute an async callable with exponential backoff on transient errors.

    The first attempt is not a retry: ``max_retries=3`` allows up to four
    calls, sleeping ``base_delay * 2**attempt`` seconds between them.

    Args:
        coro_factory: Zero-arg callable that returns a fresh awaitable each attempt.
        max_retries: Extra attempts after the first one (0 disables retry).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay.

    Returns:
        The result of the first successful call.

    Raises:
        The last exception if all attempts are exhausted or non-retryable.
    """
    attempts = max(0, max_retries) + 1
    for attempt in range(attempts):
        try:
            return await coro_factory()
        except Exception as exc:
            if not _is_retryable(exc) or attempt == attempts - 1:
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(
                "Retry %d/%d after %.1fs: %s", attempt + 1, attempts - 1, delay, exc,
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")
