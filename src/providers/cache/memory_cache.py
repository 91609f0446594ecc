"""In-memory cache provider using cachetools.FIFOCache.

Capacity-bounded, insertion-order eviction.  Used in front of the
embedding provider so repeated texts never trigger a second API call.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from cachetools import FIFOCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory FIFO cache backed by ``cachetools.FIFOCache``.

    Reads are lock-free.  Inserts, deletes and the evictions they trigger
    are serialized by an :class:`asyncio.Lock` so two concurrent inserts
    cannot leave the size bookkeeping inconsistent.  Two concurrent misses
    for the same key may both reach the provider; that is accepted.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the oldest inserted entry is
        evicted.
    """

    def __init__(self, max_size: int = 1000) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._cache: FIFOCache[str, Any] = FIFOCache(maxsize=max_size)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing."""
        value = self._cache.get(key)
        if value is not None:
            logger.debug("cache_hit", key=key[:16])
        else:
            logger.debug("cache_miss", key=key[:16])
        return value

    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, evicting the oldest entry when full."""
        async with self._lock:
            evicting = key not in self._cache and len(self._cache) >= self._cache.maxsize
            self._cache[key] = value
        if evicting:
            logger.debug("cache_evict", size=len(self._cache))

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        async with self._lock:
            self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present."""
        return key in self._cache

    def size(self) -> int:
        return len(self._cache)

    def capacity(self) -> int:
        return int(self._cache.maxsize)
