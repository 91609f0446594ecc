"""Unit tests for EmbeddingManager — caching, batching, truncation and retry."""

from __future__ import annotations

import asyncio

import pytest

from src.providers.cache.memory_cache import MemoryCacheProvider
from src.services.embedding_manager import EmbeddingManager
from src.utils.errors import EmbeddingError
from tests.conftest import MockEmbeddingProvider


class _FlakyProvider(MockEmbeddingProvider):
    """Fails the first *failures* calls, then behaves."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.remaining_failures = failures

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            raise EmbeddingError(message="transient", provider_name="mock-embedding")
        return [self._vector(t) for t in texts]


class _SlowProvider(MockEmbeddingProvider):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        await asyncio.sleep(1.0)
        return [self._vector(t) for t in texts]


def _manager(provider: MockEmbeddingProvider, **kwargs) -> EmbeddingManager:
    return EmbeddingManager(provider=provider, cache=MemoryCacheProvider(max_size=100), **kwargs)


class TestEmbedBatch:
    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self) -> None:
        provider = MockEmbeddingProvider()
        assert await _manager(provider).embed_batch([]) == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_output_order_matches_input(self) -> None:
        provider = MockEmbeddingProvider()
        manager = _manager(provider)

        vectors = await manager.embed_batch(["alpha", "beta", "gamma"])
        expected = [await provider.embed_single(t) for t in ["alpha", "beta", "gamma"]]
        assert vectors == expected

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self) -> None:
        provider = MockEmbeddingProvider()
        manager = _manager(provider)

        first = await manager.embed_batch(["alpha", "beta"])
        calls_after_first = len(provider.calls)
        second = await manager.embed_batch(["beta", "alpha"])

        assert len(provider.calls) == calls_after_first
        assert second == [first[1], first[0]]

    @pytest.mark.asyncio
    async def test_duplicate_texts_share_one_slot(self) -> None:
        provider = MockEmbeddingProvider()
        vectors = await _manager(provider).embed_batch(["same", "same", "other"])

        assert provider.calls == [["same", "other"]]
        assert vectors[0] == vectors[1]
        assert len(vectors) == 3

    @pytest.mark.asyncio
    async def test_misses_are_sent_in_sub_batches(self) -> None:
        provider = MockEmbeddingProvider()
        texts = [f"text {i}" for i in range(5)]
        vectors = await _manager(provider, batch_size=2).embed_batch(texts)

        assert [len(c) for c in provider.calls] == [2, 2, 1]
        assert len(vectors) == 5

    @pytest.mark.asyncio
    async def test_long_text_is_truncated_before_hashing(self) -> None:
        provider = MockEmbeddingProvider(max_chars=5)
        manager = _manager(provider)

        await manager.embed("abcdefgh")
        assert provider.calls == [["abcde"]]

        # Same prefix, same cache key.
        await manager.embed("abcdeXYZ")
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_dimension_and_name_come_from_provider(self) -> None:
        manager = _manager(MockEmbeddingProvider())
        assert manager.dimension() == 64
        assert manager.provider_name == "mock-embedding"

    def test_invalid_batch_size_raises(self) -> None:
        with pytest.raises(ValueError):
            _manager(MockEmbeddingProvider(), batch_size=0)


class TestRetry:
    @pytest.mark.asyncio
    async def test_single_failure_is_retried(self) -> None:
        provider = _FlakyProvider(failures=1)
        vectors = await _manager(provider).embed_batch(["alpha"])

        assert len(provider.calls) == 2
        assert len(vectors) == 1

    @pytest.mark.asyncio
    async def test_two_failures_raise_embedding_error(self) -> None:
        provider = _FlakyProvider(failures=2)
        with pytest.raises(EmbeddingError):
            await _manager(provider).embed_batch(["alpha"])
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self) -> None:
        provider = _SlowProvider()
        with pytest.raises(EmbeddingError):
            await _manager(provider, timeout_s=0.01).embed_batch(["alpha"])
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_failed_batch_is_not_cached(self) -> None:
        provider = _FlakyProvider(failures=2)
        manager = _manager(provider)
        with pytest.raises(EmbeddingError):
            await manager.embed_batch(["alpha"])

        await manager.embed_batch(["alpha"])
        assert len(provider.calls) == 3
