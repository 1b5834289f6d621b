"""SQLite persistence for jobs and suggestions (one database file, two tables)."""

from suggestion_engine.providers.store.sqlite_job_store import SQLiteJobStore
from suggestion_engine.providers.store.sqlite_suggestion_store import SQLiteSuggestionStore

__all__ = ["SQLiteJobStore", "SQLiteSuggestionStore"]
