"""Job lifecycle and status models.

A :class:`SuggestionJob` tracks one asynchronous generation per source
game.  Lifecycle::

    queued -> running -> succeeded
                     \\-> failed

Terminal jobs (succeeded/failed) are only moved back to ``queued`` by an
explicit retry.  Rows are never deleted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Lifecycle states of a suggestion job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


TERMINAL_STATUSES: tuple[JobStatus, ...] = (JobStatus.SUCCEEDED, JobStatus.FAILED)


class SuggestionJob(BaseModel):
    """One row of the job store."""

    model_config = ConfigDict(frozen=True)

    id: str
    source_id: int
    status: JobStatus
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    updated_at: datetime


class StatusSnapshot(BaseModel):
    """Point-in-time view of a source's generation state.

    ``status`` is ``None`` when no job has ever been created and no
    suggestions exist ("no job yet").  ``done`` is true once suggestions
    exist or the job reached a terminal state, so a job that succeeded with
    zero suggestions is still ``done``.

    ``updated_at`` is the newest stored suggestion's timestamp;
    ``job_updated_at`` is the job row's, which moves on every transition.
    """

    model_config = ConfigDict(frozen=True)

    source_id: int
    status: JobStatus | None = None
    done: bool = False
    error: str | None = None
    has_suggestions: bool = False
    suggestion_count: int = 0
    updated_at: datetime | None = None
    job_updated_at: datetime | None = None


StreamEventType = Literal["suggestions", "complete", "timeout", "error"]


class StreamEvent(BaseModel):
    """One push update delivered to a status stream subscriber."""

    model_config = ConfigDict(frozen=True)

    type: StreamEventType
    status: JobStatus | None = None
    has_suggestions: bool = False
    suggestions: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: datetime | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict for the SSE ``data:`` line."""
        payload: dict[str, Any] = {"type": self.type}
        if self.status is not None:
            payload["status"] = self.status.value
        if self.type in ("suggestions", "complete"):
            payload["hasSuggestions"] = self.has_suggestions
        if self.suggestions:
            payload["suggestions"] = self.suggestions
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at.isoformat()
        if self.message:
            payload["message"] = self.message
        return payload
