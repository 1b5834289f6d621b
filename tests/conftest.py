"""Shared pytest fixtures for the suggestion engine test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.providers.catalog.memory_catalog import InMemoryCatalogProvider
from suggestion_engine.providers.store.sqlite_job_store import SQLiteJobStore
from suggestion_engine.providers.store.sqlite_suggestion_store import SQLiteSuggestionStore

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def catalog_seed_path(project_root: Path) -> Path:
    """Return the path to the JSON catalog seed fixture."""
    return project_root / "tests" / "fixtures" / "catalog.json"


# ---------------------------------------------------------------------------
# Games + catalog
# ---------------------------------------------------------------------------


def _game(appid: int, title: str, developer: str = "", publisher: str = "", **kwargs: Any) -> Game:
    return Game(appid=appid, title=title, developer=developer, publisher=publisher, **kwargs)


@pytest.fixture
def make_game() -> Callable[..., Game]:
    """Factory: ``make_game(appid, title, developer=..., tags={...})``."""
    return _game


@pytest.fixture
def sample_games() -> list[Game]:
    """A small catalog centred on a 2D metroidvania (appid 100)."""
    return [
        _game(
            100,
            "Hollow Knight",
            "Team Cherry",
            "Team Cherry",
            tags={"Metroidvania": 900, "Souls-like": 700, "2D": 600, "Difficult": 500, "Atmospheric": 400},
            embeddings={"aesthetic": [1.0, 0.0, 0.0], "mechanics": [0.0, 1.0, 0.0]},
        ),
        _game(
            101,
            "Hollow Knight: Silksong",
            "Team Cherry",
            "Team Cherry",
            tags={"Metroidvania": 800, "2D": 500, "Difficult": 400, "Platformer": 300},
            embeddings={"aesthetic": [0.9, 0.1, 0.0]},
        ),
        _game(
            102,
            "Hollow Knight Soundtrack",
            "Team Cherry",
            "Team Cherry",
            tags={"Soundtrack": 10},
        ),
        _game(
            103,
            "Dead Cells",
            "Motion Twin",
            "Motion Twin",
            tags={"Metroidvania": 800, "Roguelite": 700, "2D": 400, "Difficult": 300},
            embeddings={"mechanics": [0.0, 0.9, 0.1]},
        ),
        _game(
            104,
            "Cozy Farm",
            "Sunny Studio",
            "Sunny Studio",
            tags={"Farming Sim": 900, "Wholesome": 800, "Cute": 600, "2D": 500, "Relaxing": 400},
        ),
        _game(
            105,
            "Ori and the Blind Forest",
            "Moon Studios",
            "Xbox Game Studios",
            tags={"Metroidvania": 900, "Platformer": 700, "Atmospheric": 600, "2D": 500, "Beautiful": 400},
        ),
        _game(
            200,
            "Dread Manor",
            "Night Owl",
            "Night Owl",
            tags={"Horror": 900, "Gore": 700, "2D": 500, "Atmospheric": 400},
        ),
    ]


@pytest.fixture
def catalog(sample_games: list[Game]) -> InMemoryCatalogProvider:
    """In-memory catalog seeded with :func:`sample_games`."""
    return InMemoryCatalogProvider(sample_games)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeLLM(ILLMProvider):
    """Returns a canned response (or raises) and records every prompt."""

    def __init__(self, response: str = "[]", error: Exception | None = None, available: bool = True) -> None:
        self.response = response
        self.error = error
        self.available = available
        self.prompts: list[tuple[str, str]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> str:
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.response

    def is_available(self) -> bool:
        return self.available

    def get_provider_name(self) -> str:
        return "fake-llm"


class StaticProvider(ISignalProvider):
    """Signal provider returning a fixed candidate list (or raising)."""

    def __init__(
        self,
        name: str,
        candidates: list[Candidate] | None = None,
        error: Exception | None = None,
        priority: int = 1,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.priority = priority
        self._candidates = candidates or []
        self._error = error
        self._delay = delay
        self.calls = 0

    async def generate(self, source: Game, limit: int, catalog=None) -> list[Candidate]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return [
            Candidate(
                target_id=c.target_id,
                raw_scores_by_source=dict(c.raw_scores_by_source),
                evidence=set(c.evidence),
                tags=list(c.tags),
            )
            for c in self._candidates[:limit]
        ]


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLM]:
    """Factory for :class:`FakeLLM` instances."""
    return FakeLLM


@pytest.fixture
def static_provider() -> Callable[..., StaticProvider]:
    """Factory for :class:`StaticProvider` instances."""
    return StaticProvider


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def job_store(tmp_path: Path) -> SQLiteJobStore:
    """Initialised job store on a temp database."""
    store = SQLiteJobStore(db_path=tmp_path / "suggestions.db")
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def suggestion_store(tmp_path: Path) -> SQLiteSuggestionStore:
    """Initialised suggestion store sharing the job store's database file."""
    store = SQLiteSuggestionStore(db_path=tmp_path / "suggestions.db")
    await store.initialize()
    return store
