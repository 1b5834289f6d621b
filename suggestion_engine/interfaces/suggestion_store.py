"""Abstract base class for persisted suggestions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from suggestion_engine.models.suggestion import Suggestion


# Concrete implementation: SQLiteSuggestionStore
# Located in: suggestion_engine/providers/store/
class ISuggestionStore(ABC):
    """Contract for the suggestion table.

    Rows are unique on ``(source_id, target_id)``.  :meth:`replace` swaps a
    source's whole list atomically, so readers see either the old list or
    the new one, never a mix.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    @abstractmethod
    async def replace(self, source_id: int, suggestions: list[Suggestion]) -> int:
        """Replace every stored suggestion for *source_id*; return rows written."""

    @abstractmethod
    async def list_for_source(self, source_id: int) -> list[Suggestion]:
        """Return stored suggestions in rank order."""

    @abstractmethod
    async def count(self, source_id: int) -> int:
        """Return how many suggestions are stored for *source_id*."""

    @abstractmethod
    async def latest_created_at(self, source_id: int) -> datetime | None:
        """Return the newest ``created_at`` for *source_id*, or ``None``."""

    @abstractmethod
    async def sources_with_suggestions(self) -> set[int]:
        """Return every source id that has at least one stored suggestion."""
