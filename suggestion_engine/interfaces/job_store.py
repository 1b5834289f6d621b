"""Abstract base class for the suggestion job store.

The store is the single source of truth for job state.  Its central
guarantee is idempotent enqueue: however many callers race to enqueue the
same source, at most one non-terminal job exists for it, enforced by a
uniqueness constraint on ``source_id`` plus an atomic upsert.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from suggestion_engine.models.job import JobStatus, SuggestionJob


# Concrete implementation: SQLiteJobStore
# Located in: suggestion_engine/providers/store/
class IJobStore(ABC):
    """Contract for persistent job bookkeeping."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    @abstractmethod
    async def enqueue(
        self, source_id: int, *, requeue_terminal: bool = False
    ) -> tuple[SuggestionJob, bool]:
        """Insert a queued job for *source_id* or return the existing one.

        Returns ``(job, changed)`` where ``changed`` is ``True`` when this
        call created the row or moved a terminal job back to ``queued``.
        A terminal job is requeued only when *requeue_terminal* is set.
        """

    @abstractmethod
    async def claim_next(self) -> SuggestionJob | None:
        """Atomically move the oldest queued job to ``running`` and return it."""

    @abstractmethod
    async def claim(self, job_id: str) -> SuggestionJob | None:
        """Move a specific queued job to ``running``; ``None`` if someone else won."""

    @abstractmethod
    async def mark_succeeded(self, job_id: str, note: str | None = None) -> None:
        """Record success.  *note* is stored in ``error`` for informational outcomes."""

    @abstractmethod
    async def mark_failed(self, job_id: str, error: str) -> None:
        """Record failure with a human-readable message."""

    @abstractmethod
    async def get(self, source_id: int) -> SuggestionJob | None:
        """Return the job for *source_id*, if any."""

    @abstractmethod
    async def list_by_status(self, status: JobStatus, limit: int = 100) -> list[SuggestionJob]:
        """Return jobs in *status*, oldest first."""

    @abstractmethod
    async def list_source_ids(self) -> set[int]:
        """Return every source id that has a job row, in any state."""

    @abstractmethod
    async def reset_stale_running(self, older_than_seconds: float = 0) -> int:
        """Fail ``running`` jobs whose worker died; return how many were reset."""
