"""Bounded-concurrency helpers for per-document fan-out.

Two patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.

2. **gather_flat** -- the fan-out-then-merge pattern used by multi-document
   retrieval: run one coroutine per document, log the failures, and return
   a flat list of every successful result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

# Default number of documents processed at once when no semaphore is given.
DEFAULT_CONCURRENCY = 4

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore for concurrency control.  A fresh one allowing
        :data:`DEFAULT_CONCURRENCY` tasks is used when omitted.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(DEFAULT_CONCURRENCY)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def gather_flat(
    coros: list[Awaitable[list[Any]]],
    labels: list[str],
    limit: int = DEFAULT_CONCURRENCY,
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "task_failed",
) -> list[Any]:
    """Run list-returning coroutines with bounded concurrency and merge results.

    Failures are logged (with the matching entry of *labels*) and skipped;
    partial results are still returned.
    """
    if logger is None:
        logger = _logger

    raw_results = await throttled_gather(
        coros, semaphore=asyncio.Semaphore(max(1, limit)), return_exceptions=True
    )

    merged: list[Any] = []
    for label, result in zip(labels, raw_results):
        if isinstance(result, BaseException):
            logger.warning(error_msg, target=label, error=str(result))
        else:
            merged.extend(result)
    return merged
