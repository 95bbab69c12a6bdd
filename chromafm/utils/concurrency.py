"""Bounded concurrency primitives for color enrichment fan-out.

Every stage that needs cover colors for a batch of albums fans the image
fetches out through these helpers so that no more than a fixed number of
outbound image requests are in flight at once.

Two patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.
2. **bounded_map** -- the worker-pool form used by the enrichment code:
   apply one async function to every item of a list with at most ``limit``
   calls in flight, and return the results in input order.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from chromafm.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

DEFAULT_CONCURRENCY = 6

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` of them at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables execute simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def bounded_map(
    items: Sequence[_T],
    fn: Callable[[_T], Awaitable[_R]],
    limit: int = DEFAULT_CONCURRENCY,
) -> list[_R]:
    """Apply *fn* to every item with at most *limit* calls in flight.

    Results are written back to the position of their input item, so the
    returned list lines up with *items* regardless of completion order.
    The first exception raised by *fn* propagates; callers that must not
    fail wrap their own per-item errors.
    """
    if not items:
        return []
    if limit < 1:
        raise ValueError("limit must be at least 1")

    semaphore = asyncio.Semaphore(min(limit, len(items)))
    results = await throttled_gather([fn(item) for item in items], semaphore)
    _logger.debug("bounded_map_complete", items=len(items), limit=limit)
    return results  # type: ignore[return-value]
