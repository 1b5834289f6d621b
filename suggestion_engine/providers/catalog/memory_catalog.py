"""In-memory catalog seeded from a JSON file or a list of games.

Used for local development, the CLI, and tests.  The seed file is either a
JSON array of game objects or ``{"games": [...]}``; each object follows the
:class:`Game` fields (``appid``, ``title``, ``developer``, ``publisher``,
``tags``, ``embeddings``, ``short_description``).

All lookups are deterministic: search results are returned in ascending
appid order.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

import structlog

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.models.game import Game, split_credits
from suggestion_engine.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryCatalogProvider(ICatalogProvider):
    """Catalog held entirely in memory."""

    def __init__(self, games: Iterable[Game] = ()) -> None:
        self._games: dict[int, Game] = {}
        for game in games:
            self._games[game.appid] = game

    @classmethod
    def from_json_file(cls, path: str | Path) -> InMemoryCatalogProvider:
        """Load a catalog from a JSON seed file."""
        seed_path = Path(path)
        if not seed_path.exists():
            raise ConfigurationError(
                message=f"Catalog seed file not found: {seed_path}",
                provider_name="memory",
            )
        with open(seed_path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("games", [])
        if not isinstance(data, list):
            raise ConfigurationError(
                message="Catalog seed must be a list of games or {\"games\": [...]}",
                provider_name="memory",
            )
        games = [Game.model_validate(item) for item in data]
        logger.info("catalog_seed_loaded", path=str(seed_path), games=len(games))
        return cls(games)

    def add(self, game: Game) -> None:
        self._games[game.appid] = game

    def __len__(self) -> int:
        return len(self._games)

    # ------------------------------------------------------------------
    # ICatalogProvider implementation
    # ------------------------------------------------------------------

    async def get_game(self, appid: int) -> Game | None:
        return self._games.get(appid)

    async def search_by_tag(self, tag: str) -> list[int]:
        needle = tag.strip().lower()
        if not needle:
            return []
        return sorted(
            appid
            for appid, game in self._games.items()
            if any(t.lower() == needle for t in game.tags)
        )

    async def search_by_developer(self, name: str) -> list[int]:
        return self._search_credit(name, "developer")

    async def search_by_publisher(self, name: str) -> list[int]:
        return self._search_credit(name, "publisher")

    async def embedding_pool(self, facet: str, limit: int) -> list[tuple[int, list[float]]]:
        pool: list[tuple[int, list[float]]] = []
        for appid in sorted(self._games):
            vec = self._games[appid].embedding(facet)
            if vec:
                pool.append((appid, vec))
            if len(pool) >= limit:
                break
        return pool

    async def list_appids(self, limit: int | None = None) -> list[int]:
        ids = sorted(self._games)
        return ids[:limit] if limit is not None else ids

    def get_provider_name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------

    def _search_credit(self, name: str, field: str) -> list[int]:
        needle = name.strip().lower()
        if not needle:
            return []
        return sorted(
            appid
            for appid, game in self._games.items()
            if needle in (c.lower() for c in split_credits(getattr(game, field)))
        )
