"""Job scheduler and background worker.

Enqueueing is idempotent and cheap: it validates the source, records (or
finds) the job row and wakes the worker, and it never computes anything
inline.  The worker loop claims queued jobs one at a time (bounded by
``max_concurrent_jobs``), runs the engine, persists the result and records
the outcome on the job row.

Automatic requests never re-run a finished job; only an explicit retry
moves a terminal job back to ``queued``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from suggestion_engine.interfaces.job_store import IJobStore
from suggestion_engine.interfaces.suggestion_store import ISuggestionStore
from suggestion_engine.models.job import JobStatus, SuggestionJob
from suggestion_engine.providers.store.sqlite_job_store import STALE_JOB_ERROR
from suggestion_engine.services.suggestion_engine import SuggestionEngine
from suggestion_engine.utils.errors import (
    InvalidSourceError,
    SourceNotFoundError,
    SuggestionEngineError,
)
from suggestion_engine.utils.logging import get_logger, job_context

NO_SUGGESTIONS_NOTE = "No suggestions generated"


@dataclass(frozen=True)
class EnqueueResult:
    """Outcome of :meth:`SuggestionScheduler.enqueue`.

    ``job`` is ``None`` only when suggestions exist from before job
    tracking and no job row was ever written.
    """

    job: SuggestionJob | None
    status: JobStatus
    created: bool
    already_fresh: bool


def validate_source_id(value: object) -> int:
    """Coerce *value* to a positive int appid or raise :class:`InvalidSourceError`."""
    if isinstance(value, bool):
        raise InvalidSourceError(message=f"Invalid appid: {value!r}")
    if isinstance(value, int):
        appid = value
    elif isinstance(value, str) and value.strip().isdigit():
        appid = int(value.strip())
    else:
        raise InvalidSourceError(message=f"Invalid appid: {value!r}")
    if appid <= 0:
        raise InvalidSourceError(message=f"Invalid appid: {value!r}")
    return appid


class SuggestionScheduler:
    """Owns the job lifecycle: enqueue, claim, run, record."""

    def __init__(
        self,
        engine: SuggestionEngine,
        job_store: IJobStore,
        suggestion_store: ISuggestionStore,
        poll_interval: float = 2.0,
        max_concurrent_jobs: int = 1,
    ) -> None:
        self._engine = engine
        self._jobs = job_store
        self._suggestions = suggestion_store
        self._poll_interval = poll_interval
        self._max_concurrent = max(1, max_concurrent_jobs)
        self._slots = asyncio.Semaphore(self._max_concurrent)
        self._wake_event = asyncio.Event()
        self._stopping = False
        self._loop_task: asyncio.Task[None] | None = None
        self._active: set[asyncio.Task[None]] = set()
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(self, source_id: object, *, retry: bool = False) -> EnqueueResult:
        """Request suggestions for *source_id*.

        Raises
        ------
        InvalidSourceError
            *source_id* is not a positive integer.
        SourceNotFoundError
            The catalog has no such game.
        ProviderUnavailableError
            The catalog upstream could not answer.
        """
        appid = validate_source_id(source_id)
        if await self._engine.catalog.get_game(appid) is None:
            raise SourceNotFoundError(message=f"Game {appid} not found in catalog")

        if not retry and await self._suggestions.count(appid) > 0:
            existing = await self._jobs.get(appid)
            self._logger.info("enqueue_already_fresh", source_id=appid)
            return EnqueueResult(
                job=existing,
                status=existing.status if existing else JobStatus.SUCCEEDED,
                created=False,
                already_fresh=True,
            )

        job, changed = await self._jobs.enqueue(appid, requeue_terminal=retry)
        self.wake()
        return EnqueueResult(
            job=job,
            status=job.status,
            created=changed,
            already_fresh=False,
        )

    async def generate_missing(self, limit: int | None = None) -> list[int]:
        """Enqueue every catalog game that has neither suggestions nor a job."""
        have_suggestions = await self._suggestions.sources_with_suggestions()
        have_jobs = await self._jobs.list_source_ids()
        enqueued: list[int] = []
        for appid in await self._engine.catalog.list_appids():
            if limit is not None and len(enqueued) >= limit:
                break
            if appid in have_suggestions or appid in have_jobs:
                continue
            _, changed = await self._jobs.enqueue(appid)
            if changed:
                enqueued.append(appid)
        if enqueued:
            self.wake()
        self._logger.info("generate_missing_enqueued", count=len(enqueued))
        return enqueued

    # ------------------------------------------------------------------
    # Running jobs
    # ------------------------------------------------------------------

    async def run_job(self, job: SuggestionJob) -> None:
        """Compute and persist suggestions for a claimed job, then record the outcome."""
        log = self._logger.bind(job_id=job.id, source_id=job.source_id)
        try:
            with job_context(job.id, job.source_id):
                suggestions = await self._engine.compute(job.source_id)
            if suggestions:
                await self._suggestions.replace(job.source_id, suggestions)
                await self._jobs.mark_succeeded(job.id)
            else:
                # Keep any earlier list; an empty run is not worth erasing it for.
                await self._jobs.mark_succeeded(job.id, note=NO_SUGGESTIONS_NOTE)
            log.info("job_completed", suggestions=len(suggestions))
        except asyncio.CancelledError:
            log.warning("job_cancelled")
            await self._record_failure(job, STALE_JOB_ERROR)
            raise
        except SuggestionEngineError as exc:
            log.warning("job_error", error_type=type(exc).__name__, error=str(exc))
            await self._record_failure(job, exc.message)
        except Exception as exc:
            log.exception("job_unexpected_error", error_type=type(exc).__name__)
            await self._record_failure(job, f"Unexpected error: {exc}")

    async def _record_failure(self, job: SuggestionJob, message: str) -> None:
        try:
            await self._jobs.mark_failed(job.id, message)
        except SuggestionEngineError as exc:
            # The row stays 'running'; reset_stale_running fails it on next start.
            self._logger.error(
                "job_failure_not_recorded",
                job_id=job.id,
                source_id=job.source_id,
                error=str(exc),
            )

    async def run_once(self) -> bool:
        """Claim and run one queued job inline.  Returns ``False`` if none was queued."""
        job = await self._jobs.claim_next()
        if job is None:
            return False
        await self.run_job(job)
        return True

    async def run_until_idle(self) -> int:
        """Run queued jobs inline until none are left; return how many ran."""
        ran = 0
        while await self.run_once():
            ran += 1
        return ran

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    def wake(self) -> None:
        """Nudge the worker to look for queued jobs now instead of at the next poll."""
        self._wake_event.set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def _run_and_release(self, job: SuggestionJob) -> None:
        try:
            await self.run_job(job)
        finally:
            self._slots.release()

    async def _drain(self) -> None:
        """Start jobs until the queue is empty or every slot is busy."""
        while not self._stopping:
            await self._slots.acquire()
            try:
                job = await self._jobs.claim_next()
            except SuggestionEngineError as exc:
                self._slots.release()
                self._logger.error("job_claim_failed", error=str(exc))
                return
            if job is None:
                self._slots.release()
                return
            task = asyncio.create_task(self._run_and_release(job))
            self._active.add(task)
            task.add_done_callback(self._active.discard)

    async def run_forever(self) -> None:
        """Poll for queued jobs every ``poll_interval`` seconds or when woken."""
        self._logger.info(
            "worker_started",
            poll_interval=self._poll_interval,
            max_concurrent_jobs=self._max_concurrent,
        )
        while not self._stopping:
            await self._drain()
            try:
                await asyncio.wait_for(self._wake_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wake_event.clear()
        self._logger.info("worker_stopped")

    def start(self) -> asyncio.Task[None]:
        """Start the worker loop as a background task (idempotent)."""
        if not self.is_running:
            self._stopping = False
            self._loop_task = asyncio.create_task(self.run_forever())
        return self._loop_task

    async def stop(self) -> None:
        """Stop the loop and cancel in-flight jobs (they are recorded as failed)."""
        self._stopping = True
        self.wake()
        tasks = list(self._active)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
