"""Unit tests for the utility layer."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import structlog

from suggestion_engine.utils.concurrency import gather_isolated, run_bounded
from suggestion_engine.utils.errors import (
    MalformedPayloadError,
    PersistenceError,
    ProviderError,
    RateLimitError,
    SuggestionEngineError,
)
from suggestion_engine.utils.logging import job_context
from suggestion_engine.utils.rate_limiter import RateLimiterRegistry, UpstreamRateLimiter
from suggestion_engine.utils.retry import (
    RetryConfig,
    async_retry,
    calculate_delay,
    is_retryable_exception,
    retry_call,
)
from suggestion_engine.utils.vectors import cosine_similarities, cosine_similarity, to_array

# ======================================================================
# Errors
# ======================================================================


class TestErrors:
    def test_str_includes_provider(self) -> None:
        assert str(RateLimitError(provider_name="steamspy")) == "[steamspy] Rate limit exceeded"

    def test_str_without_provider(self) -> None:
        assert str(SuggestionEngineError("plain")) == "plain"

    def test_hierarchy(self) -> None:
        assert issubclass(MalformedPayloadError, ProviderError)
        assert issubclass(PersistenceError, SuggestionEngineError)


# ======================================================================
# Vectors
# ======================================================================


class TestVectors:
    def test_identical_vectors(self) -> None:
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    @pytest.mark.parametrize(
        "a, b",
        [
            ([0.0, 0.0], [1.0, 0.0]),
            ([1.0, 0.0], [1.0, 0.0, 0.0]),
            ([], [1.0]),
            (None, [1.0]),
            ([float("nan"), 1.0], [1.0, 1.0]),
        ],
    )
    def test_unknown_vectors_score_zero(self, a, b) -> None:
        assert cosine_similarity(a, b) == 0.0

    def test_to_array_rejects_zero(self) -> None:
        assert to_array([0, 0, 0]) is None

    def test_batch_matches_pairwise_and_keeps_order(self) -> None:
        query = [1.0, 1.0]
        pool = [[1.0, 0.0], [0.0, 0.0], [1.0, 1.0], [1.0, 1.0, 1.0], None]
        sims = cosine_similarities(query, pool)
        assert sims[0] == pytest.approx(cosine_similarity(query, pool[0]))
        assert sims[1:] == [0.0, pytest.approx(1.0), 0.0, 0.0]

    def test_batch_with_unknown_query(self) -> None:
        assert cosine_similarities([0.0], [[1.0], [2.0]]) == [0.0, 0.0]


# ======================================================================
# Rate limiter
# ======================================================================


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestUpstreamRateLimiter:
    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self) -> None:
        clock = _FakeClock()
        limiter = UpstreamRateLimiter("steamspy", 1.0, clock=clock, sleep=clock.sleep)
        await limiter.acquire()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_spaces_consecutive_requests(self) -> None:
        clock = _FakeClock()
        limiter = UpstreamRateLimiter("steamspy", 1.0, clock=clock, sleep=clock.sleep)
        await limiter.acquire()
        clock.now += 0.25
        await limiter.acquire()
        assert clock.sleeps == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_concurrent_callers_are_serialised(self) -> None:
        clock = _FakeClock()
        limiter = UpstreamRateLimiter("steam_store", 2.0, clock=clock, sleep=clock.sleep)
        await asyncio.gather(*(limiter.acquire() for _ in range(3)))
        assert clock.sleeps == [pytest.approx(2.0), pytest.approx(2.0)]

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        clock = _FakeClock()
        limiter = UpstreamRateLimiter("x", 1.0, clock=clock, sleep=clock.sleep)
        async with limiter:
            pass
        async with limiter:
            pass
        assert clock.sleeps == [pytest.approx(1.0)]


class TestRateLimiterRegistry:
    def test_one_limiter_per_upstream(self) -> None:
        registry = RateLimiterRegistry({"steamspy": 1.1}, default_interval=3.0)
        assert registry.get("steamspy") is registry.get("steamspy")
        assert registry.get("steamspy").min_interval == 1.1
        assert registry.get("other").min_interval == 3.0
        assert registry.upstreams() == ["other", "steamspy"]


# ======================================================================
# Retry
# ======================================================================


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test")
    return httpx.HTTPStatusError("err", request=request, response=httpx.Response(code, request=request))


class TestRetry:
    def test_delay_grows_and_caps(self) -> None:
        cfg = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=0.0)
        assert [calculate_delay(i, cfg) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_retryable_classification(self) -> None:
        cfg = RetryConfig()
        assert is_retryable_exception(httpx.ConnectTimeout("slow"), cfg)
        assert is_retryable_exception(RateLimitError(), cfg)
        assert is_retryable_exception(_status_error(503), cfg)
        assert not is_retryable_exception(_status_error(404), cfg)
        assert not is_retryable_exception(ValueError("no"), cfg)

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        calls = {"n": 0}
        delays: list[float] = []

        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise httpx.ConnectError("down")
            return "ok"

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        result = await retry_call(flaky, config=RetryConfig(max_attempts=3, jitter=0.0), sleep=fake_sleep)
        assert result == "ok"
        assert calls["n"] == 3
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        async def always_down() -> None:
            raise RateLimitError(provider_name="steamspy")

        async def fake_sleep(seconds: float) -> None:
            return None

        with pytest.raises(RateLimitError):
            await retry_call(always_down, config=RetryConfig(max_attempts=2), sleep=fake_sleep)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self) -> None:
        calls = {"n": 0}

        async def broken() -> None:
            calls["n"] += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_call(broken, config=RetryConfig(max_attempts=5))
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_decorator(self) -> None:
        @async_retry(RetryConfig(max_attempts=1))
        async def double(x: int) -> int:
            return x * 2

        assert await double(4) == 8
        assert double.__name__ == "double"

    def test_zero_attempts_rejected_at_construction(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            RetryConfig(max_attempts=0)

    @pytest.mark.asyncio
    async def test_zero_attempts_rejected_before_calling(self) -> None:
        calls = {"n": 0}

        async def fn() -> None:
            calls["n"] += 1

        cfg = RetryConfig()
        cfg.max_attempts = 0
        with pytest.raises(ValueError, match="max_attempts"):
            await retry_call(fn, config=cfg)
        assert calls["n"] == 0


# ======================================================================
# Concurrency
# ======================================================================


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_run_bounded_times_out(self) -> None:
        with pytest.raises(asyncio.TimeoutError):
            await run_bounded(asyncio.sleep(1), timeout=0.01)

    @pytest.mark.asyncio
    async def test_run_bounded_without_timeout(self) -> None:
        async def value() -> int:
            return 3

        assert await run_bounded(value(), timeout=None) == 3

    @pytest.mark.asyncio
    async def test_gather_isolated_replaces_failures_with_empty(self) -> None:
        async def ok() -> list[int]:
            return [1, 2]

        async def broken() -> list[int]:
            raise RuntimeError("boom")

        async def slow() -> list[int]:
            await asyncio.sleep(5)
            return [9]

        async def nothing() -> None:
            return None

        results = await gather_isolated(
            {"ok": ok(), "broken": broken(), "slow": slow(), "nothing": nothing()},
            timeout=0.05,
        )
        assert results == {"ok": [1, 2], "broken": [], "slow": [], "nothing": []}
        assert list(results) == ["ok", "broken", "slow", "nothing"]


class TestJobContext:
    def test_binds_and_clears(self) -> None:
        with job_context("job-1", 42):
            bound = structlog.contextvars.get_contextvars()
            assert bound["job_id"] == "job-1"
            assert bound["source_id"] == 42
        assert "job_id" not in structlog.contextvars.get_contextvars()
