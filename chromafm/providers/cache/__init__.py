"""Cache providers.

In-memory TTL caches with single-flight computation, used for three
concerns: raw catalog lookups (short TTL, protects the rate-limited API),
sampled cover colors (long TTL, sampling is deterministic per image), and
whole computed results (short TTL, absorbs refresh storms).

SingleFlightCache is process-local.  For multi-worker deployments, swap in
another ICacheProvider implementation without changing any ranking logic.
"""

from chromafm.providers.cache.memory_cache import SingleFlightCache

__all__ = ["SingleFlightCache"]
