"""Cache providers.

MemoryCacheProvider is a capacity-bounded FIFO map that keeps repeated
texts from reaching the embedding provider twice.  It is not shared across
processes; a multi-worker deployment can swap in a network cache
implementing ICacheProvider without changing the embedding manager.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
