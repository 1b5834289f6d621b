"""API middleware - CORS, request ids, and error mapping.

Middleware is a stack (last added, first executed).  In main.py::

    app.add_middleware(ErrorHandlingMiddleware)    # inner
    app.add_middleware(RequestLoggingMiddleware)   # outer

The outer layer assigns the request id, binds it into the structlog
context for everything logged while the request runs, and writes the
access log line after the inner layer has chosen the final status code.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from suggestion_engine.api.schemas import ErrorResponse
from suggestion_engine.utils.errors import (
    InvalidSourceError,
    ProviderUnavailableError,
    RateLimitError,
    SourceNotFoundError,
    SuggestionEngineError,
)
from suggestion_engine.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Seconds a client should wait before retrying after an upstream outage.
RETRY_AFTER_SECONDS = 30

# First match wins; anything else is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[SuggestionEngineError], int], ...] = (
    (InvalidSourceError, 400),
    (SourceNotFoundError, 404),
    (ProviderUnavailableError, 503),
    (RateLimitError, 503),
)


def status_for_error(exc: SuggestionEngineError) -> int:
    """HTTP status for an application error that reached the edge."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` for development."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log it once it has a status.

    A client-supplied ``X-Request-ID`` is reused so a caller can follow one
    enqueue through the server log; otherwise a fresh id is generated.  The
    id is echoed back on the response.

    For the SSE endpoint the duration covers only the time to the first
    byte, since the body is streamed after ``call_next`` returns.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        status_code = 500

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                _logger.info(
                    "http_request",
                    method=request.method,
                    path=request.url.path,
                    appid=request.query_params.get("appid"),
                    status=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Map an uncaught :class:`SuggestionEngineError` to a JSON error body.

    The status comes from :func:`status_for_error`.  The body names the
    error class, the failing provider (``"sqlite"``, ``"steamspy"``) and
    the request id, so a client report can be matched to the server log.
    Outages answer 503 with ``Retry-After``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except SuggestionEngineError as exc:
            status = status_for_error(exc)
            request_id = getattr(request.state, "request_id", None)
            log = _logger.error if status >= 500 else _logger.info
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=request.url.path,
                status=status,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
                provider=exc.provider_name,
                request_id=request_id,
            )
            headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if status == 503 else None
            return JSONResponse(
                status_code=status,
                content=body.model_dump(by_alias=True),
                headers=headers,
            )
