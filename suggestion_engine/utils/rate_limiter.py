"""Per-upstream request spacing.

Upstream catalog services (SteamSpy, the Steam store search page) ban
clients that hammer them.  Each upstream gets exactly one
:class:`UpstreamRateLimiter`, shared by every provider and every job that
talks to it, so the minimum spacing holds across concurrent callers rather
than per call site.

The registry is created during app wiring and injected; there is no
module-level limiter state.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

from suggestion_engine.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class UpstreamRateLimiter:
    """Enforces a minimum interval between requests to one upstream.

    Callers ``await limiter.acquire()`` immediately before issuing a
    request.  The lock serialises waiters so two concurrent callers can
    never both observe an "elapsed enough" state and fire together.

    Parameters
    ----------
    name:
        Upstream key used in log events.
    min_interval:
        Minimum seconds between the start of consecutive requests.
    clock:
        Monotonic time source; injectable for tests.
    sleep:
        Async sleep function; injectable for tests.
    """

    def __init__(
        self,
        name: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], object] = asyncio.sleep,
    ) -> None:
        self._name = name
        self._min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def acquire(self) -> None:
        """Block until a request slot is available, then claim it."""
        async with self._lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                wait = self._min_interval - elapsed
                if wait > 0:
                    _logger.debug("rate_limit_wait", upstream=self._name, wait=round(wait, 3))
                    await self._sleep(wait)
            self._last_request = self._clock()

    async def __aenter__(self) -> UpstreamRateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


class RateLimiterRegistry:
    """Hands out one shared :class:`UpstreamRateLimiter` per upstream key."""

    def __init__(
        self,
        intervals: dict[str, float] | None = None,
        default_interval: float = 1.0,
    ) -> None:
        self._intervals = dict(intervals or {})
        self._default_interval = default_interval
        self._limiters: dict[str, UpstreamRateLimiter] = {}

    def get(self, upstream: str) -> UpstreamRateLimiter:
        """Return the limiter for *upstream*, creating it on first use."""
        limiter = self._limiters.get(upstream)
        if limiter is None:
            interval = self._intervals.get(upstream, self._default_interval)
            limiter = UpstreamRateLimiter(upstream, interval)
            self._limiters[upstream] = limiter
        return limiter

    def upstreams(self) -> list[str]:
        return sorted(self._limiters)
