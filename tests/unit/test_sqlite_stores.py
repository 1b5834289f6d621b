"""Unit tests for the SQLite job store and suggestion store.

Each test uses a temporary SQLite database to ensure isolation.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite
import pytest

from suggestion_engine.models.job import JobStatus
from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.providers.store.sqlite_job_store import STALE_JOB_ERROR, SQLiteJobStore
from suggestion_engine.providers.store.sqlite_suggestion_store import SQLiteSuggestionStore
from suggestion_engine.utils.errors import PersistenceError


def _s(source_id: int, target_id: int, score: float = 0.5, reason: str = "Shared tags: rpg") -> Suggestion:
    return Suggestion(source_id=source_id, target_id=target_id, reason=reason, score=score)


# ═══════════════════════════════════════════════════════════════════════
# Job store
# ═══════════════════════════════════════════════════════════════════════


class TestJobEnqueue:
    @pytest.mark.asyncio
    async def test_creates_queued_job(self, job_store: SQLiteJobStore) -> None:
        job, changed = await job_store.enqueue(42)
        assert changed is True
        assert job.source_id == 42
        assert job.status is JobStatus.QUEUED
        assert job.error is None
        assert job.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_second_enqueue_is_a_no_op(self, job_store: SQLiteJobStore) -> None:
        first, _ = await job_store.enqueue(42)
        second, changed = await job_store.enqueue(42)
        assert changed is False
        assert second.id == first.id

    @pytest.mark.asyncio
    async def test_concurrent_enqueues_create_one_row(self, job_store: SQLiteJobStore) -> None:
        results = await asyncio.gather(*(job_store.enqueue(7) for _ in range(10)))
        assert sum(1 for _, changed in results if changed) == 1
        assert len({job.id for job, _ in results}) == 1
        assert await job_store.list_source_ids() == {7}

    @pytest.mark.asyncio
    async def test_terminal_job_not_requeued_without_flag(self, job_store: SQLiteJobStore) -> None:
        job, _ = await job_store.enqueue(42)
        claimed = await job_store.claim(job.id)
        assert claimed is not None
        await job_store.mark_failed(job.id, "upstream down")

        again, changed = await job_store.enqueue(42)
        assert changed is False
        assert again.status is JobStatus.FAILED
        assert again.error == "upstream down"

    @pytest.mark.asyncio
    async def test_requeue_terminal_resets_job(self, job_store: SQLiteJobStore) -> None:
        job, _ = await job_store.enqueue(42)
        await job_store.claim(job.id)
        await job_store.mark_failed(job.id, "upstream down")

        again, changed = await job_store.enqueue(42, requeue_terminal=True)
        assert changed is True
        assert again.id == job.id
        assert again.status is JobStatus.QUEUED
        assert again.error is None
        assert again.finished_at is None

    @pytest.mark.asyncio
    async def test_requeue_leaves_running_job_alone(self, job_store: SQLiteJobStore) -> None:
        job, _ = await job_store.enqueue(42)
        await job_store.claim(job.id)
        again, changed = await job_store.enqueue(42, requeue_terminal=True)
        assert changed is False
        assert again.status is JobStatus.RUNNING


class TestJobClaim:
    @pytest.mark.asyncio
    async def test_claim_next_takes_oldest(self, job_store: SQLiteJobStore) -> None:
        await job_store.enqueue(1)
        await job_store.enqueue(2)
        job = await job_store.claim_next()
        assert job is not None
        assert job.source_id == 1
        assert job.status is JobStatus.RUNNING
        assert job.started_at is not None

    @pytest.mark.asyncio
    async def test_claim_is_exclusive(self, job_store: SQLiteJobStore) -> None:
        job, _ = await job_store.enqueue(1)
        winners = await asyncio.gather(*(job_store.claim(job.id) for _ in range(5)))
        assert sum(1 for w in winners if w is not None) == 1

    @pytest.mark.asyncio
    async def test_claim_next_empty_queue(self, job_store: SQLiteJobStore) -> None:
        assert await job_store.claim_next() is None


class TestJobFinish:
    @pytest.mark.asyncio
    async def test_mark_succeeded_with_note(self, job_store: SQLiteJobStore) -> None:
        job, _ = await job_store.enqueue(1)
        await job_store.claim(job.id)
        await job_store.mark_succeeded(job.id, note="No suggestions generated")

        stored = await job_store.get(1)
        assert stored is not None
        assert stored.status is JobStatus.SUCCEEDED
        assert stored.error == "No suggestions generated"
        assert stored.finished_at is not None

    @pytest.mark.asyncio
    async def test_list_by_status(self, job_store: SQLiteJobStore) -> None:
        a, _ = await job_store.enqueue(1)
        await job_store.enqueue(2)
        await job_store.claim(a.id)
        queued = await job_store.list_by_status(JobStatus.QUEUED)
        running = await job_store.list_by_status(JobStatus.RUNNING)
        assert [j.source_id for j in queued] == [2]
        assert [j.source_id for j in running] == [1]

    @pytest.mark.asyncio
    async def test_reset_stale_running(self, job_store: SQLiteJobStore) -> None:
        a, _ = await job_store.enqueue(1)
        await job_store.enqueue(2)
        await job_store.claim(a.id)

        assert await job_store.reset_stale_running() == 1

        stale = await job_store.get(1)
        assert stale is not None
        assert stale.status is JobStatus.FAILED
        assert stale.error == STALE_JOB_ERROR
        untouched = await job_store.get(2)
        assert untouched is not None and untouched.status is JobStatus.QUEUED

    @pytest.mark.asyncio
    async def test_reset_respects_age(self, job_store: SQLiteJobStore) -> None:
        a, _ = await job_store.enqueue(1)
        await job_store.claim(a.id)
        assert await job_store.reset_stale_running(older_than_seconds=3600) == 0

    @pytest.mark.asyncio
    async def test_get_unknown(self, job_store: SQLiteJobStore) -> None:
        assert await job_store.get(999) is None


class TestJobStoreErrors:
    @pytest.mark.asyncio
    async def test_uninitialised_db_raises_persistence_error(self, tmp_path: Path) -> None:
        store = SQLiteJobStore(db_path=tmp_path / "empty.db")
        with pytest.raises(PersistenceError):
            await store.get(1)

    @pytest.mark.asyncio
    async def test_status_check_constraint(self, job_store: SQLiteJobStore) -> None:
        async with aiosqlite.connect(str(job_store.db_path)) as db:
            with pytest.raises(aiosqlite.IntegrityError):
                await db.execute(
                    "INSERT INTO suggestion_jobs (id, source_id, status, created_at, updated_at) "
                    "VALUES ('x', 5, 'bogus', 'now', 'now')"
                )


# ═══════════════════════════════════════════════════════════════════════
# Suggestion store
# ═══════════════════════════════════════════════════════════════════════


class TestSuggestionStore:
    @pytest.mark.asyncio
    async def test_replace_and_list_in_rank_order(self, suggestion_store: SQLiteSuggestionStore) -> None:
        count = await suggestion_store.replace(1, [_s(1, 30, 0.9), _s(1, 10, 0.8), _s(1, 20, 0.7)])
        assert count == 3
        rows = await suggestion_store.list_for_source(1)
        assert [r.target_id for r in rows] == [30, 10, 20]
        assert all(r.created_at is not None for r in rows)
        assert await suggestion_store.count(1) == 3

    @pytest.mark.asyncio
    async def test_replace_swaps_whole_list(self, suggestion_store: SQLiteSuggestionStore) -> None:
        await suggestion_store.replace(1, [_s(1, 10), _s(1, 20)])
        first_stamp = await suggestion_store.latest_created_at(1)
        await suggestion_store.replace(1, [_s(1, 30)])

        rows = await suggestion_store.list_for_source(1)
        assert [r.target_id for r in rows] == [30]
        latest = await suggestion_store.latest_created_at(1)
        assert latest is not None and first_stamp is not None
        assert latest >= first_stamp

    @pytest.mark.asyncio
    async def test_duplicates_and_self_are_skipped(self, suggestion_store: SQLiteSuggestionStore) -> None:
        count = await suggestion_store.replace(1, [_s(1, 10, 0.9), _s(1, 10, 0.2), _s(1, 1, 1.0)])
        assert count == 1
        rows = await suggestion_store.list_for_source(1)
        assert [(r.target_id, r.score) for r in rows] == [(10, 0.9)]

    @pytest.mark.asyncio
    async def test_replace_rejects_foreign_source(self, suggestion_store: SQLiteSuggestionStore) -> None:
        await suggestion_store.replace(1, [_s(1, 10)])
        with pytest.raises(ValueError):
            await suggestion_store.replace(1, [_s(1, 20), _s(2, 30)])
        # The earlier list is untouched.
        assert [r.target_id for r in await suggestion_store.list_for_source(1)] == [10]

    @pytest.mark.asyncio
    async def test_sources_are_independent(self, suggestion_store: SQLiteSuggestionStore) -> None:
        await suggestion_store.replace(1, [_s(1, 10)])
        await suggestion_store.replace(2, [_s(2, 10), _s(2, 11)])
        assert await suggestion_store.sources_with_suggestions() == {1, 2}
        assert await suggestion_store.count(1) == 1
        assert await suggestion_store.count(3) == 0
        assert await suggestion_store.latest_created_at(3) is None
