"""Retry with exponential backoff for transient upstream failures.

Used by the HTTP catalog client so that a single dropped connection or a
5xx from SteamSpy doesn't empty a provider's contribution.  Only transient
failures are retried: timeouts, network errors, HTTP 429/5xx and our own
:class:`RateLimitError` / :class:`ProviderUnavailableError`.
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from suggestion_engine.utils.errors import ProviderUnavailableError, RateLimitError
from suggestion_engine.utils.logging import get_logger

_T = TypeVar("_T")

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behaviour."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: float = 0.1  # +/- 10%
    retryable_exceptions: tuple = field(
        default_factory=lambda: (
            httpx.TimeoutException,
            httpx.NetworkError,
            ConnectionError,
            asyncio.TimeoutError,
            RateLimitError,
            ProviderUnavailableError,
        )
    )
    retryable_status_codes: tuple = field(
        default_factory=lambda: (429, 500, 502, 503, 504)
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Exponential backoff (``base * exp_base ** attempt``) capped and jittered."""
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)
    jitter_range = delay * config.jitter
    delay = delay + random.uniform(-jitter_range, jitter_range)
    return max(0.0, delay)


def is_retryable_exception(exc: BaseException, config: RetryConfig) -> bool:
    """Return ``True`` if *exc* is a transient failure worth retrying."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in config.retryable_status_codes
    return isinstance(exc, config.retryable_exceptions)


async def retry_call(
    fn: Callable[..., Awaitable[_T]],
    *args: Any,
    config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> _T:
    """Call ``fn(*args, **kwargs)`` retrying transient failures.

    The last exception is re-raised once attempts are exhausted, and
    non-retryable exceptions propagate immediately.
    """
    cfg = config or RetryConfig()
    if cfg.max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {cfg.max_attempts}")

    attempt = 0
    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if not is_retryable_exception(exc, cfg) or attempt == cfg.max_attempts - 1:
                raise
            delay = calculate_delay(attempt, cfg)
            logger.info(
                "retrying_after_error",
                function=getattr(fn, "__name__", repr(fn)),
                attempt=attempt + 1,
                max_attempts=cfg.max_attempts,
                delay=round(delay, 2),
                error=str(exc),
            )
            await sleep(delay)
            attempt += 1


def async_retry(config: RetryConfig | None = None):
    """Decorator form of :func:`retry_call`.

    Usage::

        @async_retry(RetryConfig(max_attempts=3))
        async def fetch_tag(tag: str) -> dict: ...
    """

    def decorator(fn: Callable[..., Awaitable[_T]]) -> Callable[..., Awaitable[_T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> _T:
            return await retry_call(fn, *args, config=config, **kwargs)

        return wrapper

    return decorator
