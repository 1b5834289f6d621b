"""Suggestion engine API layer - routes, schemas, and middleware."""

from suggestion_engine.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from suggestion_engine.api.routes import router
from suggestion_engine.api.schemas import (
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    StatusResponse,
    SuggestionListResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "EnqueueRequest",
    "EnqueueResponse",
    "ErrorResponse",
    "HealthResponse",
    "StatusResponse",
    "SuggestionListResponse",
]
