"""SQLite-backed suggestion job store.

Persists one job row per source game in ``suggestion_jobs`` using
``aiosqlite`` for async I/O.  ``source_id`` is UNIQUE, and enqueue is a
single ``INSERT ... ON CONFLICT`` statement, so concurrent enqueues for the
same source can never produce two rows or two queued generations.

Claiming is a conditional ``UPDATE ... WHERE status = 'queued'``: if two
workers race for the same job, exactly one sees a changed row.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from suggestion_engine.interfaces.job_store import IJobStore
from suggestion_engine.models.job import JobStatus, SuggestionJob
from suggestion_engine.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/suggestions.db")
_BUSY_TIMEOUT_SECONDS = 30.0

STALE_JOB_ERROR = "Worker stopped before the job finished; retry to regenerate"

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS suggestion_jobs (
    id           TEXT PRIMARY KEY,
    source_id    INTEGER NOT NULL UNIQUE,
    status       TEXT    NOT NULL
                 CHECK (status IN ('queued', 'running', 'succeeded', 'failed')),
    error        TEXT,
    created_at   TEXT    NOT NULL,
    started_at   TEXT,
    finished_at  TEXT,
    updated_at   TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_jobs_status ON suggestion_jobs(status);",
    "CREATE INDEX IF NOT EXISTS idx_jobs_status_updated ON suggestion_jobs(status, updated_at);",
]

_COLUMNS = "id, source_id, status, error, created_at, started_at, finished_at, updated_at"

_INSERT_SQL = f"""\
INSERT INTO suggestion_jobs ({_COLUMNS})
VALUES (?, ?, 'queued', NULL, ?, NULL, NULL, ?)
"""

_ON_CONFLICT_NOTHING_SQL = "ON CONFLICT(source_id) DO NOTHING;"

_ON_CONFLICT_REQUEUE_SQL = """\
ON CONFLICT(source_id)
DO UPDATE SET status      = 'queued',
              error       = NULL,
              started_at  = NULL,
              finished_at = NULL,
              updated_at  = excluded.updated_at
WHERE suggestion_jobs.status IN ('succeeded', 'failed');
"""

_SELECT_BY_SOURCE_SQL = f"SELECT {_COLUMNS} FROM suggestion_jobs WHERE source_id = ?;"
_SELECT_BY_ID_SQL = f"SELECT {_COLUMNS} FROM suggestion_jobs WHERE id = ?;"

_SELECT_OLDEST_QUEUED_SQL = """\
SELECT id FROM suggestion_jobs
WHERE status = 'queued'
ORDER BY updated_at ASC, created_at ASC, id ASC
LIMIT 1;
"""

_CLAIM_SQL = """\
UPDATE suggestion_jobs
SET status = 'running', started_at = ?, finished_at = NULL, error = NULL, updated_at = ?
WHERE id = ? AND status = 'queued';
"""

_FINISH_SQL = """\
UPDATE suggestion_jobs
SET status = ?, error = ?, finished_at = ?, updated_at = ?
WHERE id = ?;
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: Any) -> SuggestionJob:
    return SuggestionJob(
        id=row["id"],
        source_id=row["source_id"],
        status=JobStatus(row["status"]),
        error=row["error"],
        created_at=_parse(row["created_at"]),
        started_at=_parse(row["started_at"]),
        finished_at=_parse(row["finished_at"]),
        updated_at=_parse(row["updated_at"]),
    )


class SQLiteJobStore(IJobStore):
    """SQLite-backed job bookkeeping."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path), timeout=_BUSY_TIMEOUT_SECONDS) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Job store error: {exc}",
                provider_name="sqlite",
            ) from exc

    async def initialize(self) -> None:
        """Create the jobs table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("job_store_initialized", path=str(self._db_path))

    async def enqueue(
        self, source_id: int, *, requeue_terminal: bool = False
    ) -> tuple[SuggestionJob, bool]:
        now = _iso(_now())
        conflict_sql = _ON_CONFLICT_REQUEUE_SQL if requeue_terminal else _ON_CONFLICT_NOTHING_SQL
        async with self._connect() as db:
            cursor = await db.execute(
                _INSERT_SQL + conflict_sql,
                (uuid.uuid4().hex, source_id, now, now),
            )
            changed = cursor.rowcount > 0
            await db.commit()
            cursor = await db.execute(_SELECT_BY_SOURCE_SQL, (source_id,))
            row = await cursor.fetchone()

        if row is None:
            raise PersistenceError(
                message=f"Job for source {source_id} vanished after enqueue",
                provider_name="sqlite",
            )
        job = _row_to_job(row)
        logger.info(
            "job_enqueued",
            source_id=source_id,
            job_id=job.id,
            status=job.status.value,
            changed=changed,
        )
        return job, changed

    async def claim(self, job_id: str) -> SuggestionJob | None:
        now = _iso(_now())
        async with self._connect() as db:
            cursor = await db.execute(_CLAIM_SQL, (now, now, job_id))
            won = cursor.rowcount > 0
            await db.commit()
            if not won:
                return None
            cursor = await db.execute(_SELECT_BY_ID_SQL, (job_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        job = _row_to_job(row)
        logger.info("job_claimed", job_id=job.id, source_id=job.source_id)
        return job

    async def claim_next(self) -> SuggestionJob | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_OLDEST_QUEUED_SQL)
            row = await cursor.fetchone()
        if row is None:
            return None
        # Another worker may win the race between the SELECT and the UPDATE.
        return await self.claim(row["id"])

    async def _finish(self, job_id: str, status: JobStatus, error: str | None) -> None:
        now = _iso(_now())
        async with self._connect() as db:
            await db.execute(_FINISH_SQL, (status.value, error, now, now, job_id))
            await db.commit()

    async def mark_succeeded(self, job_id: str, note: str | None = None) -> None:
        await self._finish(job_id, JobStatus.SUCCEEDED, note)
        logger.info("job_succeeded", job_id=job_id, note=note)

    async def mark_failed(self, job_id: str, error: str) -> None:
        await self._finish(job_id, JobStatus.FAILED, error or "Unknown error")
        logger.warning("job_failed", job_id=job_id, error=error)

    async def get(self, source_id: int) -> SuggestionJob | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_BY_SOURCE_SQL, (source_id,))
            row = await cursor.fetchone()
        return _row_to_job(row) if row else None

    async def list_by_status(self, status: JobStatus, limit: int = 100) -> list[SuggestionJob]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM suggestion_jobs WHERE status = ? "
                "ORDER BY updated_at ASC, id ASC LIMIT ?",
                (JobStatus(status).value, limit),
            )
            rows = await cursor.fetchall()
        return [_row_to_job(r) for r in rows]

    async def list_source_ids(self) -> set[int]:
        """Return every source id that has a job row, in any state."""
        async with self._connect() as db:
            cursor = await db.execute("SELECT source_id FROM suggestion_jobs")
            rows = await cursor.fetchall()
        return {row["source_id"] for row in rows}

    async def reset_stale_running(self, older_than_seconds: float = 0) -> int:
        now = _now()
        cutoff = _iso(now - timedelta(seconds=max(0.0, older_than_seconds)))
        stamp = _iso(now)
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE suggestion_jobs "
                "SET status = 'failed', error = ?, finished_at = ?, updated_at = ? "
                "WHERE status = 'running' AND (started_at IS NULL OR started_at <= ?)",
                (STALE_JOB_ERROR, stamp, stamp, cutoff),
            )
            reset = cursor.rowcount
            await db.commit()
        if reset:
            logger.warning("stale_jobs_reset", count=reset)
        return reset
