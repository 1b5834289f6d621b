"""FastAPI route definitions for the suggestion API.

All routes live under ``/api/v1``.  Components are built once at startup
and stored on ``app.state`` (see main.py); handlers receive them through
``Depends`` helpers, so tests can swap in fakes by setting attributes on a
bare app's state.

Endpoints
---------
POST /api/v1/suggestions                  enqueue generation (202)
GET  /api/v1/suggestions?appid=           poll status
GET  /api/v1/suggestions/stream?appid=    server-sent status events
GET  /api/v1/games/{appid}/suggestions    stored suggestions
GET  /api/v1/health                       health check
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from suggestion_engine import __version__
from suggestion_engine.api.schemas import (
    EnqueueRequest,
    EnqueueResponse,
    HealthResponse,
    StatusResponse,
    SuggestionItem,
    SuggestionListResponse,
)
from suggestion_engine.interfaces.suggestion_store import ISuggestionStore
from suggestion_engine.services.scheduler import SuggestionScheduler, validate_source_id
from suggestion_engine.services.status_notifier import StatusNotifier
from suggestion_engine.utils.errors import InvalidSourceError, SourceNotFoundError
from suggestion_engine.utils.logging import get_logger

_logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_scheduler(request: Request) -> SuggestionScheduler:
    return request.app.state.scheduler


def _get_notifier(request: Request) -> StatusNotifier:
    return request.app.state.status_notifier


def _get_suggestion_store(request: Request) -> ISuggestionStore:
    return request.app.state.suggestion_store


def _get_provider_info(request: Request) -> dict[str, Any]:
    return getattr(request.app.state, "provider_info", {})


SchedulerDep = Annotated[SuggestionScheduler, Depends(_get_scheduler)]
NotifierDep = Annotated[StatusNotifier, Depends(_get_notifier)]
SuggestionStoreDep = Annotated[ISuggestionStore, Depends(_get_suggestion_store)]
ProviderInfoDep = Annotated[dict[str, Any], Depends(_get_provider_info)]


def _parse_appid(value: object) -> int:
    try:
        return validate_source_id(value)
    except InvalidSourceError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


@router.post("/suggestions", response_model=EnqueueResponse, status_code=202)
async def enqueue_suggestions(body: EnqueueRequest, scheduler: SchedulerDep) -> EnqueueResponse:
    """Request suggestion generation for a game.  Returns immediately.

    An unreachable catalog upstream raises ``ProviderUnavailableError``,
    which the error middleware answers with 503.
    """
    appid = _parse_appid(body.appid)
    try:
        result = await scheduler.enqueue(appid, retry=body.retry)
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc

    return EnqueueResponse(
        job_id=result.job.id if result.job else None,
        status=result.status.value,
        created=result.created,
        already_fresh=result.already_fresh,
    )


@router.get("/suggestions", response_model=StatusResponse)
async def get_suggestion_status(
    notifier: NotifierDep,
    appid: Annotated[str | None, Query()] = None,
) -> StatusResponse:
    """Poll generation status for a game."""
    source_id = _parse_appid(appid)
    snapshot = await notifier.status(source_id)
    return StatusResponse(
        status=snapshot.status.value if snapshot.status else None,
        done=snapshot.done,
        error=snapshot.error,
        has_suggestions=snapshot.has_suggestions,
        suggestion_count=snapshot.suggestion_count,
        updated_at=snapshot.updated_at,
    )


@router.get("/suggestions/stream")
async def stream_suggestion_status(
    notifier: NotifierDep,
    appid: Annotated[str | None, Query()] = None,
) -> StreamingResponse:
    """Server-sent events: one ``data: {json}`` line per status event."""
    source_id = _parse_appid(appid)

    async def event_generator() -> AsyncIterator[str]:
        # Leaving this block (completion or client disconnect) stops the poller.
        async with notifier.subscribe(source_id) as stream:
            async for event in stream:
                yield f"data: {json.dumps(event.to_payload())}\n\n"
        _logger.debug("status_stream_closed", source_id=source_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/games/{appid}/suggestions", response_model=SuggestionListResponse)
async def list_game_suggestions(appid: str, store: SuggestionStoreDep) -> SuggestionListResponse:
    """Return stored suggestions for a game in rank order."""
    source_id = _parse_appid(appid)
    rows = await store.list_for_source(source_id)
    return SuggestionListResponse(
        appid=source_id,
        suggestions=[
            SuggestionItem(
                target_id=s.target_id,
                reason=s.reason,
                score=s.score,
                created_at=s.created_at,
            )
            for s in rows
        ],
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(provider_info: ProviderInfoDep) -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__, providers=provider_info)
