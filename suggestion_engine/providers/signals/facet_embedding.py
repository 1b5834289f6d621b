"""Per-facet embedding similarity signal provider.

Each game may carry one vector per "facet" of its vibe (how it looks, how
it plays, what story it tells).  For every facet the source has a vector
for, the provider scans the catalog's pool of vectors for that facet and
keeps the closest ``top_k`` above ``similarity_floor``.  A candidate found
under several facets keeps its best facet as its score and records every
facet's similarity for the reason text.

All-zero or wrong-dimension vectors score 0.0, never a match.
"""

from __future__ import annotations

from collections.abc import Iterable

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.utils.logging import get_logger
from suggestion_engine.utils.vectors import cosine_similarities

DEFAULT_FACETS: tuple[str, ...] = ("aesthetic", "mechanics", "narrative")


class FacetEmbeddingProvider(ISignalProvider):
    """Candidates from nearest neighbours in each facet's embedding space."""

    name = "facet_embedding"
    priority = 1

    def __init__(
        self,
        catalog: ICatalogProvider,
        facets: Iterable[str] = DEFAULT_FACETS,
        pool_size: int = 500,
        similarity_floor: float = 0.3,
        top_k: int = 15,
    ) -> None:
        self._catalog = catalog
        self._facets = tuple(facets)
        self._pool_size = pool_size
        self._floor = similarity_floor
        self._top_k = top_k
        self._logger = get_logger(__name__)

    async def generate(
        self,
        source: Game,
        limit: int,
        catalog: ICatalogProvider | None = None,
    ) -> list[Candidate]:
        if catalog is None:
            catalog = self._catalog
        by_target: dict[int, Candidate] = {}

        for facet in self._facets:
            query = source.embedding(facet)
            if query is None:
                continue
            pool = [
                (appid, vec)
                for appid, vec in await catalog.embedding_pool(facet, self._pool_size)
                if appid != source.appid
            ]
            if not pool:
                continue

            sims = cosine_similarities(query, [vec for _, vec in pool])
            ranked = sorted(
                (
                    (sim, appid)
                    for (appid, _), sim in zip(pool, sims)
                    if sim >= self._floor
                ),
                key=lambda item: (-item[0], item[1]),
            )[: self._top_k]

            for sim, appid in ranked:
                view = Candidate(
                    target_id=appid,
                    raw_scores_by_source={self.name: min(1.0, sim)},
                    evidence={f"similar {facet}"},
                    facet_similarity={facet: sim},
                )
                existing = by_target.get(appid)
                if existing is None:
                    by_target[appid] = view
                else:
                    existing.merge(view)

        candidates = sorted(
            by_target.values(),
            key=lambda c: (-c.raw_scores_by_source[self.name], c.target_id),
        )[:limit]

        self._logger.debug(
            "facet_embedding_generated",
            source_id=source.appid,
            facets=[f for f in self._facets if source.embedding(f) is not None],
            kept=len(candidates),
        )
        return candidates
