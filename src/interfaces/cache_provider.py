"""Abstract base class for cache service providers.

Defines the contract for the bounded key-value cache that sits in front of
the embedding provider.  Implementations may use an in-process map or a
network store; the embedding manager only relies on get/set semantics and
on the cache staying within its capacity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async so a network-backed store can be swapped in
    without blocking the event loop.  Implementations must tolerate
    concurrent callers: two simultaneous :meth:`set` calls may not corrupt
    the size bookkeeping.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, evicting an older entry when full.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present."""

    @abstractmethod
    def size(self) -> int:
        """Return the number of entries currently held."""

    @abstractmethod
    def capacity(self) -> int:
        """Return the maximum number of entries held before eviction."""
