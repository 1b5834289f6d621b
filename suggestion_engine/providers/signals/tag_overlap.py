"""Tag-overlap signal provider.

Finds games that share the source's most characteristic tags.

1. Take the source's top ``source_tag_count`` tags by weight.
2. Look each one up in the catalog's tag index and count, per candidate,
   how many of those tags it was found under.
3. Keep the ``pool_size`` candidates with the most hits.
4. Score each kept candidate by overlap of the two games' top-15 tag lists::

       score = |shared| / min(|source_top15|, |target_top15|)

5. Drop anything under ``min_score``; sort by score, then by number of
   shared tags, then by appid.
"""

from __future__ import annotations

import asyncio
from collections import Counter

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.utils.logging import get_logger

_COMPARE_TOP = 15


def calculate_tag_overlap(
    source: Game, target: Game, top_n: int = _COMPARE_TOP
) -> tuple[float, list[str]]:
    """Return ``(score, shared_tags)`` for two games' top-*top_n* tag lists.

    Tags are compared lower-cased; ``shared_tags`` follows the source's
    tag order.  Either side having no tags scores 0.
    """
    source_top = source.top_tags_lower(top_n)
    target_top = target.top_tags_lower(top_n)
    if not source_top or not target_top:
        return 0.0, []
    target_set = set(target_top)
    shared = [tag for tag in source_top if tag in target_set]
    return len(shared) / min(len(source_top), len(target_top)), shared


class TagOverlapProvider(ISignalProvider):
    """Candidates from the catalog tag index, scored by top-tag overlap."""

    name = "tag_overlap"
    priority = 1

    def __init__(
        self,
        catalog: ICatalogProvider,
        source_tag_count: int = 4,
        pool_size: int = 25,
        min_score: float = 0.13,
        compare_top: int = _COMPARE_TOP,
    ) -> None:
        self._catalog = catalog
        self._source_tag_count = max(1, source_tag_count)
        self._pool_size = pool_size
        self._min_score = min_score
        self._compare_top = compare_top
        self._logger = get_logger(__name__)

    async def generate(
        self,
        source: Game,
        limit: int,
        catalog: ICatalogProvider | None = None,
    ) -> list[Candidate]:
        if catalog is None:
            catalog = self._catalog
        search_tags = source.top_tags(self._source_tag_count)
        if not search_tags:
            return []

        results = await asyncio.gather(*(catalog.search_by_tag(tag) for tag in search_tags))
        hits: Counter[int] = Counter()
        for appids in results:
            # A game listed twice under one tag still counts once for it.
            for appid in set(appids):
                if appid != source.appid:
                    hits[appid] += 1

        pool = sorted(hits.items(), key=lambda kv: (-kv[1], kv[0]))[: self._pool_size]
        pool_ids = [appid for appid, _ in pool]
        games = await catalog.get_games(pool_ids)

        scored: list[tuple[float, list[str], Game]] = []
        for game in games.values():
            if game.appid == source.appid:
                continue
            score, shared = calculate_tag_overlap(source, game, self._compare_top)
            if score < self._min_score:
                continue
            scored.append((score, shared, game))

        scored.sort(key=lambda item: (-item[0], -len(item[1]), item[2].appid))

        candidates: list[Candidate] = []
        for score, shared, game in scored[:limit]:
            candidates.append(
                Candidate(
                    target_id=game.appid,
                    raw_scores_by_source={self.name: score},
                    evidence={f"shared tag: {tag}" for tag in shared},
                    title=game.title,
                    tags=game.top_tags_lower(self._compare_top),
                    shared_tags=shared,
                )
            )

        self._logger.debug(
            "tag_overlap_generated",
            source_id=source.appid,
            search_tags=search_tags,
            pool=len(pool_ids),
            kept=len(candidates),
        )
        return candidates
