"""Abstract base class for the game catalog collaborator.

The catalog owns game data; the engine only reads it.  Implementations may
be backed by a local seed file, a database, or live upstream APIs
(SteamSpy, the Steam store).  Search methods return appids only; callers
hydrate full :class:`Game` records through :meth:`get_game`, which lets the
engine's run-scoped cache dedupe lookups across providers.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable

from suggestion_engine.models.game import Game
from suggestion_engine.utils.errors import ProviderUnavailableError


# Concrete implementations: InMemoryCatalogProvider, SteamSpyCatalogProvider
# Located in: suggestion_engine/providers/catalog/
class ICatalogProvider(ABC):
    """Contract for read-only catalog access used by the signal providers."""

    @abstractmethod
    async def get_game(self, appid: int) -> Game | None:
        """Return the game for *appid*, or ``None`` if the catalog has no such game.

        Raises:
            ProviderUnavailableError: the backing upstream could not answer.
        """

    async def get_games(self, appids: Iterable[int]) -> dict[int, Game]:
        """Fetch several games concurrently, keyed in request order.

        Missing games are left out, and so are games whose lookup raised
        :class:`ProviderUnavailableError`; any other error propagates.
        """
        ids = list(dict.fromkeys(appids))
        results = await asyncio.gather(
            *(self.get_game(appid) for appid in ids), return_exceptions=True
        )
        games: dict[int, Game] = {}
        for appid, result in zip(ids, results):
            if isinstance(result, ProviderUnavailableError):
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                games[appid] = result
        return games

    @abstractmethod
    async def search_by_tag(self, tag: str) -> list[int]:
        """Return appids of games carrying *tag* (case-insensitive).

        Order is implementation-defined but must be deterministic.
        """

    @abstractmethod
    async def search_by_developer(self, name: str) -> list[int]:
        """Return appids of games credited to developer *name*."""

    @abstractmethod
    async def search_by_publisher(self, name: str) -> list[int]:
        """Return appids of games credited to publisher *name*."""

    @abstractmethod
    async def embedding_pool(self, facet: str, limit: int) -> list[tuple[int, list[float]]]:
        """Return up to *limit* ``(appid, vector)`` pairs for *facet*.

        Catalogs without embeddings return an empty list.
        """

    @abstractmethod
    async def list_appids(self, limit: int | None = None) -> list[int]:
        """Return known appids (ascending), optionally capped at *limit*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"memory"`` or ``"steamspy"``."""
