"""SQLite-backed suggestion store.

Lives in the same database file as the job store (separate table).  A
source's suggestion list is always swapped whole: :meth:`replace` deletes
the old rows and inserts the new ones in one transaction.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from suggestion_engine.interfaces.suggestion_store import ISuggestionStore
from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/suggestions.db")
_BUSY_TIMEOUT_SECONDS = 30.0

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS suggestions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id   INTEGER NOT NULL,
    target_id   INTEGER NOT NULL,
    rank        INTEGER NOT NULL,
    reason      TEXT    NOT NULL,
    score       REAL    NOT NULL,
    created_at  TEXT    NOT NULL,
    UNIQUE(source_id, target_id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_suggestions_source ON suggestions(source_id, rank);",
]

_INSERT_SQL = """\
INSERT INTO suggestions (source_id, target_id, rank, reason, score, created_at)
VALUES (?, ?, ?, ?, ?, ?);
"""


class SQLiteSuggestionStore(ISuggestionStore):
    """SQLite-backed suggestion persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path), timeout=_BUSY_TIMEOUT_SECONDS) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Suggestion store error: {exc}",
                provider_name="sqlite",
            ) from exc

    async def initialize(self) -> None:
        """Create the suggestions table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("suggestion_store_initialized", path=str(self._db_path))

    async def replace(self, source_id: int, suggestions: list[Suggestion]) -> int:
        """Atomically replace the stored list for *source_id*.

        Duplicate targets keep their first (best-ranked) occurrence.
        """
        created_at = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        rows: list[tuple] = []
        seen: set[int] = set()
        for suggestion in suggestions:
            if suggestion.source_id != source_id:
                raise ValueError(
                    f"Suggestion for source {suggestion.source_id} passed to replace({source_id})"
                )
            if suggestion.target_id in seen or suggestion.target_id == source_id:
                continue
            seen.add(suggestion.target_id)
            rows.append(
                (
                    source_id,
                    suggestion.target_id,
                    len(rows),
                    suggestion.reason,
                    suggestion.score,
                    created_at,
                )
            )

        async with self._connect() as db:
            try:
                await db.execute("DELETE FROM suggestions WHERE source_id = ?", (source_id,))
                if rows:
                    await db.executemany(_INSERT_SQL, rows)
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

        logger.info("suggestions_replaced", source_id=source_id, count=len(rows))
        return len(rows)

    async def list_for_source(self, source_id: int) -> list[Suggestion]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT source_id, target_id, reason, score, created_at "
                "FROM suggestions WHERE source_id = ? ORDER BY rank ASC",
                (source_id,),
            )
            rows = await cursor.fetchall()
        return [
            Suggestion(
                source_id=row["source_id"],
                target_id=row["target_id"],
                reason=row["reason"],
                score=row["score"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def count(self, source_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) AS n FROM suggestions WHERE source_id = ?",
                (source_id,),
            )
            row = await cursor.fetchone()
        return int(row["n"]) if row else 0

    async def latest_created_at(self, source_id: int) -> datetime | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT MAX(created_at) AS latest FROM suggestions WHERE source_id = ?",
                (source_id,),
            )
            row = await cursor.fetchone()
        if row is None or row["latest"] is None:
            return None
        return datetime.fromisoformat(row["latest"])

    async def sources_with_suggestions(self) -> set[int]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT DISTINCT source_id FROM suggestions")
            rows = await cursor.fetchall()
        return {row["source_id"] for row in rows}
