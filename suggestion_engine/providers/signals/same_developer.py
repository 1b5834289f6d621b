"""Same-developer / same-publisher signal provider.

Games from the studio that made the source are strong suggestions, but the
store search also returns soundtracks, art books, DLC, demos and bundles
from that studio.  Those are dropped by a title denylist.  The denylist is
a heuristic: a real game whose title contains "Demo" as a word is lost, and
a non-game product with an unusual title slips through.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game, split_credits
from suggestion_engine.utils.logging import get_logger

DEFAULT_TITLE_DENYLIST: tuple[str, ...] = (
    "soundtrack",
    "ost",
    "art book",
    "artbook",
    "dlc",
    "bundle",
    "demo",
    "playtest",
    "work in progress",
    "wip",
    "season pass",
)

# Terms this short only match as whole words ("ost" must not hit "ghost").
_WORD_BOUNDARY_MAX_LEN = 4


def compile_denylist(terms: Iterable[str]) -> re.Pattern[str] | None:
    """Build one case-insensitive pattern matching any denylisted term."""
    parts: list[str] = []
    for term in terms:
        term = term.strip().lower()
        if not term:
            continue
        escaped = re.escape(term)
        if len(term) <= _WORD_BOUNDARY_MAX_LEN:
            escaped = rf"\b{escaped}\b"
        parts.append(escaped)
    if not parts:
        return None
    return re.compile("|".join(parts), re.IGNORECASE)


def unique_credits(value: str, max_credits: int) -> list[str]:
    """Split a credit string, dedupe case-insensitively, keep the first *max_credits*."""
    seen: set[str] = set()
    result: list[str] = []
    for credit in split_credits(value):
        key = credit.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(credit)
        if len(result) >= max_credits:
            break
    return result


class SameDeveloperProvider(ISignalProvider):
    """Candidates sharing a developer or publisher credit with the source."""

    name = "same_developer"
    priority = 0

    def __init__(
        self,
        catalog: ICatalogProvider,
        score: float = 0.8,
        max_credits: int = 2,
        title_denylist: Iterable[str] = DEFAULT_TITLE_DENYLIST,
        max_lookups: int = 20,
    ) -> None:
        self._catalog = catalog
        self._score = score
        self._max_credits = max_credits
        self._denylist = compile_denylist(title_denylist)
        self._max_lookups = max_lookups
        self._logger = get_logger(__name__)

    def is_excluded_title(self, title: str) -> bool:
        return bool(self._denylist and self._denylist.search(title or ""))

    async def generate(
        self,
        source: Game,
        limit: int,
        catalog: ICatalogProvider | None = None,
    ) -> list[Candidate]:
        if catalog is None:
            catalog = self._catalog
        developers = unique_credits(source.developer, self._max_credits)
        publishers = unique_credits(source.publisher, self._max_credits)
        if not developers and not publishers:
            return []

        searches: list[tuple[str, str]] = [("developer", d) for d in developers]
        searches += [("publisher", p) for p in publishers]
        results = await asyncio.gather(
            *(
                catalog.search_by_developer(credit)
                if kind == "developer"
                else catalog.search_by_publisher(credit)
                for kind, credit in searches
            )
        )

        # appid -> every (kind, credit) that found it; dict keeps discovery order.
        found: dict[int, list[tuple[str, str]]] = {}
        for (kind, credit), appids in zip(searches, results):
            for appid in appids:
                if appid == source.appid:
                    continue
                found.setdefault(appid, [])
                if (kind, credit) not in found[appid]:
                    found[appid].append((kind, credit))

        lookup_ids = list(found)[: self._max_lookups]
        games = await catalog.get_games(lookup_ids)

        candidates: list[Candidate] = []
        excluded = 0
        for appid, game in games.items():
            if self.is_excluded_title(game.title):
                excluded += 1
                continue
            candidate = Candidate(
                target_id=game.appid,
                raw_scores_by_source={self.name: self._score},
                title=game.title,
                tags=game.top_tags_lower(15),
            )
            for kind, credit in found[appid]:
                candidate.evidence.add(f"same {kind} ({credit})")
                if kind == "developer" and candidate.developer_match is None:
                    candidate.developer_match = credit
                elif kind == "publisher" and candidate.publisher_match is None:
                    candidate.publisher_match = credit
            candidates.append(candidate)
            if len(candidates) >= limit:
                break

        self._logger.debug(
            "same_developer_generated",
            source_id=source.appid,
            developers=developers,
            publishers=publishers,
            found=len(found),
            excluded_titles=excluded,
            kept=len(candidates),
        )
        return candidates
