"""In-memory single-flight cache provider built on cachetools.FIFOCache.

Each entry stores ``(value, inserted_at)``.  Entries older than the TTL are
treated as missing and dropped when read; when the cache grows past
``max_size`` the oldest-inserted entry is evicted (FIFO, not LRU).

Single flight: a miss registers an asyncio task for the key before the
calling coroutine yields, so every concurrent caller for the same key
attaches to that one task instead of starting duplicate upstream work.
Different keys compute fully in parallel.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, TypeVar

from cachetools import FIFOCache

from chromafm.interfaces.cache_provider import ICacheProvider
from chromafm.utils.logging import get_logger

logger = get_logger(__name__)

_T = TypeVar("_T")


class SingleFlightCache(ICacheProvider):
    """In-memory TTL cache with in-flight request coalescing.

    Parameters
    ----------
    name:
        Label used in log events (``"lookups"``, ``"colors"``, ...).
    ttl:
        Time-to-live in seconds for every entry.
    max_size:
        Maximum number of entries before the oldest-inserted one is evicted.
    clock:
        Monotonic time source.  Tests inject a fake clock to expire entries
        deterministically.
    """

    def __init__(
        self,
        name: str = "cache",
        ttl: float = 20.0,
        max_size: int = 2500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._ttl = ttl
        self._clock = clock
        self._entries: FIFOCache[str, tuple[Any, float]] = FIFOCache(maxsize=max_size)
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    # ------------------------------------------------------------------
    # Internal helpers (never suspend)
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, inserted_at = entry
        if self._clock() - inserted_at > self._ttl:
            self._entries.pop(key, None)
            return False, None
        return True, value

    def _store(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    async def _compute(self, key: str, factory: Callable[[], Awaitable[_T]]) -> _T:
        try:
            value = await factory()
            self._store(key, value)
            return value
        finally:
            self._inflight.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        found, value = self._lookup(key)
        logger.debug("cache_hit" if found else "cache_miss", cache=self._name, key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""
        self._store(key, value)
        logger.debug("cache_set", cache=self._name, key=key)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._entries.pop(key, None)
        logger.debug("cache_delete", cache=self._name, key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        found, _ = self._lookup(key)
        return found

    async def get_or_compute(self, key: str, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Return the cached value for *key*, computing it at most once.

        The check / attach / register sequence below contains no ``await``,
        so it is atomic with respect to other coroutines on the loop.
        """
        found, value = self._lookup(key)
        if found:
            logger.debug("cache_hit", cache=self._name, key=key)
            return value

        task = self._inflight.get(key)
        if task is None:
            logger.debug("cache_miss", cache=self._name, key=key)
            task = asyncio.ensure_future(self._compute(key, factory))
            self._inflight[key] = task
        else:
            logger.debug("cache_inflight_join", cache=self._name, key=key)

        # shield: one waiter being cancelled must not cancel the shared task.
        return await asyncio.shield(task)
