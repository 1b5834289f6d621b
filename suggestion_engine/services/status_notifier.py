"""Job status polling and push streams.

Clients learn about a generation in one of two ways:

- **Poll** -- :meth:`StatusNotifier.status` returns a :class:`StatusSnapshot`.
- **Stream** -- :meth:`StatusNotifier.subscribe` returns a
  :class:`StatusStream`, an async iterator of :class:`StreamEvent` objects
  fed by one background polling task per subscriber.

Stream rules (checked immediately, then every ``poll_interval`` seconds):

- ``suggestions`` whenever the stored list's timestamp or the job row's
  ``updated_at`` changes after the first check (a job moving from
  ``queued`` to ``running`` is pushed with an empty list);
- ``complete`` once suggestions exist, or when the job succeeded with zero
  suggestions;
- ``error`` when the job failed, or reading state raised;
- ``timeout`` (once) after ``max_no_change`` consecutive unchanged polls.

Each of ``complete``, ``error`` and ``timeout`` ends the stream.  The
polling task is owned by the stream: it is cancelled and awaited by
:meth:`StatusStream.aclose`, which runs on normal completion, on error and
when the consumer goes away.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from suggestion_engine.interfaces.job_store import IJobStore
from suggestion_engine.interfaces.suggestion_store import ISuggestionStore
from suggestion_engine.models.job import JobStatus, StatusSnapshot, StreamEvent
from suggestion_engine.utils.logging import get_logger

_END = object()


class StatusNotifier:
    """Reads job + suggestion state and hands out status streams."""

    def __init__(
        self,
        job_store: IJobStore,
        suggestion_store: ISuggestionStore,
        poll_interval: float = 2.0,
        max_no_change: int = 30,
    ) -> None:
        self._jobs = job_store
        self._suggestions = suggestion_store
        self._poll_interval = poll_interval
        self._max_no_change = max(1, max_no_change)
        self._active_streams = 0
        self._logger = get_logger(__name__)

    @property
    def active_streams(self) -> int:
        """Number of polling tasks currently alive."""
        return self._active_streams

    async def status(self, source_id: int) -> StatusSnapshot:
        """Return the current state for *source_id*.

        With no job row but stored suggestions (generated before job
        tracking), the status reads ``succeeded``.  With neither, ``status``
        is ``None`` and ``done`` is false.
        """
        job = await self._jobs.get(source_id)
        count = await self._suggestions.count(source_id)
        latest = await self._suggestions.latest_created_at(source_id) if count else None

        has_suggestions = count > 0
        if job is not None:
            status: JobStatus | None = job.status
        else:
            status = JobStatus.SUCCEEDED if has_suggestions else None

        return StatusSnapshot(
            source_id=source_id,
            status=status,
            done=has_suggestions or (status is not None and status.is_terminal),
            error=job.error if job is not None else None,
            has_suggestions=has_suggestions,
            suggestion_count=count,
            updated_at=latest,
            job_updated_at=job.updated_at if job is not None else None,
        )

    def subscribe(self, source_id: int) -> StatusStream:
        """Open a push stream for *source_id*.  Use as ``async with``."""
        return StatusStream(self, source_id)

    async def _suggestion_payload(self, source_id: int) -> list[dict[str, Any]]:
        rows = await self._suggestions.list_for_source(source_id)
        return [
            {"targetId": s.target_id, "reason": s.reason, "score": s.score}
            for s in rows
        ]

    async def _poll(self, source_id: int, emit: Callable[[StreamEvent], None]) -> None:
        """The body of a stream's polling task."""
        last_updated: datetime | None = None
        # The job row seen on the first check is the baseline, not a change.
        last_job_update: datetime | None = None
        first_check = True
        unchanged = 0

        while True:
            try:
                snapshot = await self.status(source_id)
                list_changed = snapshot.updated_at is not None and snapshot.updated_at != last_updated
                job_changed = not first_check and snapshot.job_updated_at != last_job_update
                payload = await self._suggestion_payload(source_id) if list_changed else []
            except Exception as exc:
                self._logger.warning("stream_read_failed", source_id=source_id, error=str(exc))
                emit(StreamEvent(type="error", message=f"Failed to read status: {exc}"))
                return

            first_check = False
            last_job_update = snapshot.job_updated_at
            # A bare move to a terminal state is reported by complete/error below.
            settled_empty = (
                snapshot.status is not None
                and snapshot.status.is_terminal
                and not snapshot.has_suggestions
            )

            if list_changed or job_changed:
                unchanged = 0
            else:
                unchanged += 1

            if list_changed or (job_changed and not settled_empty):
                if list_changed:
                    last_updated = snapshot.updated_at
                emit(
                    StreamEvent(
                        type="suggestions",
                        status=snapshot.status,
                        has_suggestions=bool(payload) or snapshot.has_suggestions,
                        suggestions=payload,
                        updated_at=snapshot.updated_at if list_changed else snapshot.job_updated_at,
                    )
                )
                if payload:
                    emit(
                        StreamEvent(
                            type="complete",
                            status=snapshot.status,
                            has_suggestions=True,
                            updated_at=snapshot.updated_at,
                        )
                    )
                    return

            if snapshot.status is JobStatus.FAILED and not snapshot.has_suggestions:
                emit(
                    StreamEvent(
                        type="error",
                        status=snapshot.status,
                        message=snapshot.error or "Suggestion job failed",
                    )
                )
                return
            if snapshot.status is JobStatus.SUCCEEDED and not snapshot.has_suggestions:
                emit(
                    StreamEvent(
                        type="complete",
                        status=snapshot.status,
                        has_suggestions=False,
                        message=snapshot.error,
                    )
                )
                return
            if unchanged >= self._max_no_change:
                self._logger.info("stream_timeout", source_id=source_id, polls=unchanged)
                emit(StreamEvent(type="timeout", status=snapshot.status))
                return

            await asyncio.sleep(self._poll_interval)


class StatusStream:
    """One subscriber's event stream.

    Usage::

        async with notifier.subscribe(appid) as stream:
            async for event in stream:
                ...

    Leaving the ``async with`` block (or calling :meth:`aclose`) cancels
    the polling task and waits for it to finish.
    """

    def __init__(self, notifier: StatusNotifier, source_id: int) -> None:
        self._notifier = notifier
        self._source_id = source_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._finished = False

    @property
    def source_id(self) -> int:
        return self._source_id

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def _start(self) -> None:
        if self._task is None and not self._finished:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        self._notifier._active_streams += 1
        try:
            await self._notifier._poll(self._source_id, self._queue.put_nowait)
        finally:
            self._notifier._active_streams -= 1
            self._queue.put_nowait(_END)

    def __aiter__(self) -> StatusStream:
        self._start()
        return self

    async def __anext__(self) -> StreamEvent:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        """Cancel the polling task (if still running) and wait for it."""
        self._finished = True
        task = self._task
        if task is None:
            return
        if not task.done():
            task.cancel()
        # wait() never raises the task's own CancelledError, but still
        # propagates cancellation of the caller.
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            self._notifier._logger.warning(
                "stream_task_failed",
                source_id=self._source_id,
                error=str(task.exception()),
            )

    async def __aenter__(self) -> StatusStream:
        self._start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
