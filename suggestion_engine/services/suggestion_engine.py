"""Suggestion engine: one full computation for one source game.

For each run the engine:

1. wraps the catalog in a fresh :class:`RunCatalog` so every lookup in
   this run is fetched at most once, and closes it when the run ends so
   lookups abandoned by a timed-out provider are cancelled;
2. loads the source game (unknown source -> :class:`SourceNotFoundError`);
3. fans out to every signal provider at once, each under its own timeout
   and exception barrier (a broken provider contributes nothing);
4. fills in tags for candidates that arrived without any, so the vibe
   veto sees them;
5. hands everything to the :class:`CandidateFuser`.

The engine does not persist anything; the scheduler does.
"""

from __future__ import annotations

from collections.abc import Sequence

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.services.catalog_cache import RunCatalog
from suggestion_engine.services.fuser import CandidateFuser
from suggestion_engine.utils.concurrency import gather_isolated, run_bounded
from suggestion_engine.utils.errors import InvalidSourceError, SourceNotFoundError
from suggestion_engine.utils.logging import get_logger

_HYDRATE_TAG_COUNT = 15


class SuggestionEngine:
    """Runs the provider fan-out and fusion for a source game."""

    def __init__(
        self,
        catalog: ICatalogProvider,
        providers: Sequence[ISignalProvider],
        fuser: CandidateFuser,
        provider_timeout: float | None = 45.0,
        per_provider_limit: int | None = None,
    ) -> None:
        self._catalog = catalog
        self._providers = list(providers)
        self._fuser = fuser
        self._timeout = provider_timeout
        # Providers over-fetch so the veto and truncation still leave a full list.
        self._per_provider_limit = per_provider_limit or fuser.result_size * 2
        self._logger = get_logger(__name__)

    @property
    def providers(self) -> list[ISignalProvider]:
        return list(self._providers)

    @property
    def catalog(self) -> ICatalogProvider:
        return self._catalog

    async def load_source(self, source_id: int, catalog: ICatalogProvider | None = None) -> Game:
        if not isinstance(source_id, int) or isinstance(source_id, bool) or source_id <= 0:
            raise InvalidSourceError(message=f"Invalid source id: {source_id!r}")
        game = await (self._catalog if catalog is None else catalog).get_game(source_id)
        if game is None:
            raise SourceNotFoundError(message=f"Game {source_id} not found in catalog")
        return game

    async def collect(self, source: Game, catalog: ICatalogProvider) -> dict[str, list[Candidate]]:
        """Run every provider concurrently; failures and timeouts become ``[]``."""
        named = {
            provider.name: provider.generate(source, self._per_provider_limit, catalog)
            for provider in self._providers
        }
        results = await gather_isolated(named, timeout=self._timeout, logger=self._logger)
        for name, candidates in results.items():
            self._logger.info(
                "provider_completed",
                provider=name,
                source_id=source.appid,
                candidates=len(candidates),
            )
        return results

    async def _hydrate_tags(self, results: dict[str, list[Candidate]], catalog: RunCatalog) -> None:
        missing = {
            c.target_id
            for candidates in results.values()
            for c in candidates
            if not c.tags
        }
        if not missing:
            return
        try:
            games = await run_bounded(catalog.get_games(sorted(missing)), self._timeout)
        except Exception as exc:
            # Without tags the veto can't judge these candidates; they pass unvetoed.
            self._logger.warning(
                "tag_hydration_failed",
                missing=len(missing),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return
        for candidates in results.values():
            for c in candidates:
                game = games.get(c.target_id)
                if game is None:
                    continue
                if not c.tags:
                    c.tags = game.top_tags_lower(_HYDRATE_TAG_COUNT)
                if not c.title:
                    c.title = game.title

    async def rank(self, source_id: int) -> tuple[Game, list[Candidate]]:
        """Compute ranked candidates (pre-suggestion), for debugging and the CLI."""
        async with RunCatalog(self._catalog) as run_catalog:
            source = await self.load_source(source_id, run_catalog)
            results = await self.collect(source, run_catalog)
            await self._hydrate_tags(results, run_catalog)
        return source, self._fuser.rank(source, list(results.values()))

    async def compute(self, source_id: int) -> list[Suggestion]:
        """Return the fused suggestion list for *source_id*."""
        async with RunCatalog(self._catalog) as run_catalog:
            source = await self.load_source(source_id, run_catalog)
            results = await self.collect(source, run_catalog)
            await self._hydrate_tags(results, run_catalog)
        suggestions = self._fuser.fuse(source, list(results.values()))
        self._logger.info(
            "suggestions_computed",
            source_id=source_id,
            suggestions=len(suggestions),
            catalog_lookups=run_catalog.upstream_calls,
        )
        return suggestions
