"""Concurrency primitives for the provider fan-out.

Every signal provider call is a blocking I/O operation (tag-index fetch,
vector pool scan, LLM call).  The engine runs all of them at once and joins
the results before fusion.  Two helpers implement that pattern:

1. **run_bounded** -- awaits one coroutine under a hard timeout.

2. **gather_isolated** -- the fan-out / fan-in used by the engine: dispatch
   N named coroutines concurrently, each under its own timeout, and return
   a ``name -> list`` mapping in which any failure or timeout has been
   replaced by an empty list and logged.  One slow or broken provider can
   never stall or abort the others.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, TypeVar

import structlog

from suggestion_engine.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def run_bounded(coro: Awaitable[_T], timeout: float | None) -> _T:
    """Await *coro*, raising :class:`asyncio.TimeoutError` after *timeout* seconds.

    ``None`` or a non-positive timeout disables the bound.
    """
    if timeout is None or timeout <= 0:
        return await coro
    return await asyncio.wait_for(coro, timeout=timeout)


async def gather_isolated(
    named_coros: dict[str, Awaitable[list[Any]]],
    timeout: float | None = None,
    logger: structlog.BoundLogger | None = None,
) -> dict[str, list[Any]]:
    """Run named coroutines concurrently with per-call timeouts and failure isolation.

    Parameters
    ----------
    named_coros:
        Mapping of a label (usually the provider name) to the awaitable
        producing that provider's list of results.
    timeout:
        Per-coroutine timeout in seconds.  Each call is bounded
        independently, so the total wall time is roughly the slowest
        provider, capped at *timeout*.
    logger:
        Optional structured logger for failure warnings.

    Returns
    -------
    dict[str, list]
        Results keyed by label, in the same order as *named_coros*.  A
        label whose coroutine raised or timed out maps to ``[]``.
    """
    if logger is None:
        logger = _logger

    names = list(named_coros.keys())
    raw_results = await asyncio.gather(
        *(run_bounded(named_coros[name], timeout) for name in names),
        return_exceptions=True,
    )

    results: dict[str, list[Any]] = {}
    for name, result in zip(names, raw_results):
        if isinstance(result, asyncio.TimeoutError):
            logger.warning("provider_timeout", provider=name, timeout=timeout)
            results[name] = []
        elif isinstance(result, asyncio.CancelledError):
            # A cancelled provider is treated like a timeout; the job keeps going.
            logger.warning("provider_cancelled", provider=name)
            results[name] = []
        elif isinstance(result, BaseException):
            logger.warning(
                "provider_failed",
                provider=name,
                error_type=type(result).__name__,
                error=str(result),
            )
            results[name] = []
        elif result is None:
            results[name] = []
        else:
            results[name] = list(result)

    return results
