"""Custom exception hierarchy for the suggestion engine.

All application exceptions inherit from :class:`SuggestionEngineError`,
which carries an optional ``provider_name`` so error handlers can identify
which signal provider or upstream (e.g. "tag_overlap", "steamspy",
"openai") caused the failure.

The hierarchy mirrors the error taxonomy of the engine:

    SuggestionEngineError  (base -- catch-all)
    +-- ProviderError             (a signal provider failed; recoverable)
    |   +-- MalformedPayloadError (upstream returned unparsable data)
    +-- ProviderUnavailableError  (upstream unreachable)
    +-- RateLimitError            (upstream rate limit exceeded)
    +-- LLMError                  (any LLM API call failure)
    +-- JobError                  (job-level failure; terminal)
    |   +-- PersistenceError      (SQLite read/write failed)
    +-- InvalidSourceError        (missing or malformed source id)
    +-- SourceNotFoundError       (source id unknown to the catalog)
    +-- ConfigurationError        (startup / missing config)

Provider-level errors never escape the engine's fan-out boundary: they are
logged and the provider contributes an empty result.  Job-level errors are
recorded on the job row as ``status=failed`` with the message.
"""


class SuggestionEngineError(Exception):
    """Base exception for all suggestion engine errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[steamspy] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Provider-level errors (recoverable)
# ---------------------------------------------------------------------------

class ProviderError(SuggestionEngineError):
    """Raised when a signal provider cannot produce candidates."""

    def __init__(
        self,
        message: str = "Signal provider failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MalformedPayloadError(ProviderError):
    """Raised when an upstream returns data that cannot be parsed.

    Treated exactly like any other provider failure.
    """

    def __init__(
        self,
        message: str = "Malformed upstream payload",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(SuggestionEngineError):
    """Raised when an external service is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(SuggestionEngineError):
    """Raised when an upstream rate limit is exceeded.

    The retry helper treats this as transient.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(SuggestionEngineError):
    """Raised when an LLM API call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Job-level errors (terminal)
# ---------------------------------------------------------------------------

class JobError(SuggestionEngineError):
    """Raised when a suggestion job cannot complete."""

    def __init__(
        self,
        message: str = "Suggestion job failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(JobError):
    """Raised when the job or suggestion store fails to read or write."""

    def __init__(
        self,
        message: str = "Persistence operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Validation / configuration errors
# ---------------------------------------------------------------------------

class InvalidSourceError(SuggestionEngineError):
    """Raised when a source id is missing or malformed.

    Rejected synchronously, before any job row is created.
    """

    def __init__(
        self,
        message: str = "Invalid source id",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceNotFoundError(SuggestionEngineError):
    """Raised when the catalog has no game for the requested source id."""

    def __init__(
        self,
        message: str = "Source game not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(SuggestionEngineError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
