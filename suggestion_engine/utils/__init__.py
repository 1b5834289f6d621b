"""Utility modules for the suggestion engine.

- **errors** -- exception hierarchy rooted at SuggestionEngineError.
- **logging** -- structlog setup with a console/JSON dual renderer.
- **concurrency** -- bounded, failure-isolated provider fan-out.
- **rate_limiter** -- one shared request-spacing limiter per upstream.
- **retry** -- exponential backoff for transient HTTP failures.
- **vectors** (not re-exported here) -- numpy cosine similarity.
"""

# -- Domain exception hierarchy --------------------------------------------
from suggestion_engine.utils.errors import (
    ConfigurationError,
    InvalidSourceError,
    JobError,
    LLMError,
    MalformedPayloadError,
    PersistenceError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    SourceNotFoundError,
    SuggestionEngineError,
)

# -- Async concurrency helpers ---------------------------------------------
from suggestion_engine.utils.concurrency import gather_isolated, run_bounded

# -- Structured logging setup ----------------------------------------------
from suggestion_engine.utils.logging import configure_logging, get_logger, job_context

# -- Upstream politeness ---------------------------------------------------
from suggestion_engine.utils.rate_limiter import RateLimiterRegistry, UpstreamRateLimiter
from suggestion_engine.utils.retry import RetryConfig, async_retry, retry_call

__all__ = [
    "ConfigurationError",
    "InvalidSourceError",
    "JobError",
    "LLMError",
    "MalformedPayloadError",
    "PersistenceError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "RateLimiterRegistry",
    "RetryConfig",
    "SourceNotFoundError",
    "SuggestionEngineError",
    "UpstreamRateLimiter",
    "async_retry",
    "configure_logging",
    "gather_isolated",
    "get_logger",
    "job_context",
    "retry_call",
    "run_bounded",
]
