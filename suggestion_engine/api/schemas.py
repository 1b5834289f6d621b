"""Request and response schemas for the HTTP API.

Field names are snake_case in Python and camelCase on the wire
(``jobId``, ``hasSuggestions``); responses are serialised by alias.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EnqueueRequest(_CamelModel):
    """Body of ``POST /api/v1/suggestions``.

    ``appid`` is kept loose here and validated by the scheduler so bad input
    gets our 400 rather than a generic 422.
    """

    appid: Any = None
    retry: bool = False


class EnqueueResponse(_CamelModel):
    """202 response for an enqueue request."""

    job_id: str | None = None
    status: str
    created: bool = False
    already_fresh: bool = False


class StatusResponse(_CamelModel):
    """Poll response for ``GET /api/v1/suggestions``."""

    status: str | None = None
    done: bool = False
    error: str | None = None
    has_suggestions: bool = False
    suggestion_count: int = 0
    updated_at: datetime | None = None


class SuggestionItem(_CamelModel):
    target_id: int
    reason: str
    score: float
    created_at: datetime | None = None


class SuggestionListResponse(_CamelModel):
    """Stored suggestions for one game, in rank order."""

    appid: int
    suggestions: list[SuggestionItem] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(_CamelModel):
    """Error body for application failures (``requestId`` on the wire)."""

    error: str
    detail: str | None = None
    provider: str | None = None
    request_id: str | None = None
