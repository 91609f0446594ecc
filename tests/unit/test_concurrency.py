"""Unit tests for bounded-concurrency gather helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from src.utils.concurrency import gather_flat, throttled_gather


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def _value(v: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return v

        results = await throttled_gather([_value(1, 0.03), _value(2, 0.0), _value(3, 0.01)])
        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_semaphore_bounds_in_flight_tasks(self) -> None:
        in_flight = 0
        peak = 0

        async def _work() -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        await throttled_gather([_work() for _ in range(10)], semaphore=asyncio.Semaphore(2))
        assert peak == 2

    @pytest.mark.asyncio
    async def test_exceptions_are_returned(self) -> None:
        async def _boom() -> None:
            raise RuntimeError("boom")

        results = await throttled_gather([_boom()])
        assert isinstance(results[0], RuntimeError)


class TestGatherFlat:
    @pytest.mark.asyncio
    async def test_merges_lists_and_skips_failures(self) -> None:
        async def _ok(items: list[str]) -> list[str]:
            return items

        async def _fail() -> list[str]:
            raise ValueError("document unavailable")

        logger = MagicMock()
        merged = await gather_flat(
            [_ok(["a", "b"]), _fail(), _ok(["c"])],
            labels=["doc-1", "doc-2", "doc-3"],
            limit=2,
            logger=logger,
            error_msg="document_failed",
        )

        assert merged == ["a", "b", "c"]
        logger.warning.assert_called_once_with(
            "document_failed", target="doc-2", error="document unavailable"
        )
