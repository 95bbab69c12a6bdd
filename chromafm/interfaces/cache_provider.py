"""Abstract base class for cache service providers.

Defines the contract for the key-value caches used across the engine
(catalog lookups, sampled cover colors, whole computed results).  Besides
plain get/set, every cache offers **single-flight** computation: concurrent
callers asking for the same missing key share one underlying computation.

Caches are injected into the services that use them, so tests can
substitute a deterministic fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, TypeVar

_T = TypeVar("_T")


class ICacheProvider(ABC):
    """Contract for key-value cache services with single-flight semantics.

    All operations are async to allow for network-backed stores without
    blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* using the cache's time-to-live."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key* (no-op if absent)."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present in the cache and not expired."""

    @abstractmethod
    async def get_or_compute(self, key: str, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Return the cached value for *key*, computing it at most once.

        Parameters
        ----------
        key:
            The cache key.
        factory:
            Zero-argument coroutine function producing the value on a miss.

        Behaviour
        ---------
        * A fresh cached value is returned without calling *factory*.
        * If another caller is already computing *key*, this caller waits
          for that computation and receives its outcome.
        * Otherwise *factory* runs, and its value is published to the cache
          before any waiter is released.

        Raises
        ------
        Exception
            Whatever *factory* raised.  Failed computations are not cached;
            every attached caller receives the same exception.
        """
