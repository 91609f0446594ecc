"""Embedding generation with truncation, caching and sub-batching.

The :class:`EmbeddingManager` is the only component that talks to an
:class:`~src.interfaces.embedding_provider.IEmbeddingProvider`.  It is
constructed explicitly and injected into the ingestion, subject and
retrieval services; there is no process-wide instance.

For every text it:

1. truncates to the provider's maximum input size (character based),
2. hashes ``provider name + truncated text`` into a cache key,
3. serves cache hits without calling the provider,
4. sends the remaining misses in sub-batches of at most ``batch_size``,
   each with a timeout and a single immediate retry,
5. writes fresh vectors back to the cache.

Output order always matches input order.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import TYPE_CHECKING

import structlog

from src.utils.errors import EmbeddingError

if TYPE_CHECKING:
    from src.interfaces.cache_provider import ICacheProvider
    from src.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 10
_DEFAULT_TIMEOUT_S = 30.0
# One retry, no backoff.
_MAX_ATTEMPTS = 2


class EmbeddingManager:
    """Produces and caches embedding vectors for arbitrary text.

    Parameters
    ----------
    provider:
        The embedding backend (OpenAI, FastEmbed, ...).
    cache:
        Capacity-bounded cache shared by every concurrent caller.
    batch_size:
        Maximum number of texts sent to the provider per request,
        independent of how many texts the caller passes in.
    timeout_s:
        Per-request timeout for provider calls.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        cache: ICacheProvider,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._provider = provider
        self._cache = cache
        self._batch_size = batch_size
        self._timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    def dimension(self) -> int:
        """Return the provider's fixed output dimension."""
        return self._provider.get_dimension()

    async def embed(self, text: str) -> list[float]:
        """Embed a single text, using the cache when possible."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, preserving order.

        Raises
        ------
        EmbeddingError
            If a provider sub-batch fails twice (error or timeout).
        """
        if not texts:
            return []

        prepared = [self._truncate(t) for t in texts]
        keys = [self._cache_key(t) for t in prepared]

        results: list[list[float] | None] = [None] * len(texts)
        # key -> positions still waiting for a vector; identical texts in one
        # call share a single provider slot.
        pending: dict[str, list[int]] = {}
        pending_texts: dict[str, str] = {}

        for idx, key in enumerate(keys):
            cached = await self._cache.get(key)
            if cached is not None:
                results[idx] = list(cached)
                continue
            if key not in pending:
                pending[key] = []
                pending_texts[key] = prepared[idx]
            pending[key].append(idx)

        hits = len(texts) - sum(len(p) for p in pending.values())
        if pending:
            miss_keys = list(pending)
            for start in range(0, len(miss_keys), self._batch_size):
                batch_keys = miss_keys[start : start + self._batch_size]
                vectors = await self._embed_with_retry([pending_texts[k] for k in batch_keys])
                for key, vector in zip(batch_keys, vectors, strict=True):
                    await self._cache.set(key, vector)
                    for idx in pending[key]:
                        results[idx] = list(vector)

        logger.debug(
            "embedding_batch_complete",
            texts=len(texts),
            cache_hits=hits,
            provider_calls=-(-len(pending) // self._batch_size) if pending else 0,
        )
        return [r for r in results if r is not None]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _truncate(self, text: str) -> str:
        max_chars = self._provider.get_max_input_chars()
        if max_chars > 0 and len(text) > max_chars:
            logger.debug("embedding_input_truncated", original_chars=len(text), max_chars=max_chars)
            return text[:max_chars]
        return text

    def _cache_key(self, text: str) -> str:
        payload = f"{self._provider.get_provider_name()}\x00{text}".encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    async def _embed_with_retry(self, texts: list[str]) -> list[list[float]]:
        """Call the provider with a timeout; retry once immediately on failure."""
        last_exc: Exception | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                vectors = await asyncio.wait_for(
                    self._provider.embed(texts), timeout=self._timeout_s
                )
                if len(vectors) != len(texts):
                    raise EmbeddingError(
                        message=(
                            f"Provider returned {len(vectors)} vectors for {len(texts)} texts"
                        ),
                        provider_name=self.provider_name,
                    )
                return vectors
            except asyncio.TimeoutError as exc:
                last_exc = exc
                logger.warning(
                    "embedding_timeout",
                    provider=self.provider_name,
                    attempt=attempt,
                    timeout_s=self._timeout_s,
                )
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                logger.warning(
                    "embedding_call_failed",
                    provider=self.provider_name,
                    attempt=attempt,
                    error=str(exc),
                )

        raise EmbeddingError(
            message=f"Embedding failed after {_MAX_ATTEMPTS} attempts: {last_exc}",
            provider_name=self.provider_name,
        ) from last_exc
