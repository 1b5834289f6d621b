"""External (LLM) ranker signal provider.

Asks a language model to judge which of a bounded pool of catalog games
share the source game's vibe.  The pool comes from the catalog tag index
(the games most often found under the source's top tags), so the model
only ever ranks real catalog entries and never invents titles.

The model is asked for a JSON array::

    [{"index": 1, "score": 8, "reason": "same cozy farming loop"}]

``index`` is 1-based into the numbered candidate list, ``score`` is 1-10.
Only entries scoring at least ``threshold`` are kept, normalised to
``score / 10``.  Model output is untrusted: code fences, surrounding prose,
non-list payloads, wrong types and out-of-range indices are all tolerated.
Any failure yields an empty contribution.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections import Counter
from typing import Any

from suggestion_engine.interfaces.catalog_provider import ICatalogProvider
from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.interfaces.signal_provider import ISignalProvider
from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.utils.errors import LLMError, MalformedPayloadError
from suggestion_engine.utils.logging import get_logger

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_SYSTEM_PROMPT = (
    "You are a video game curator. You judge whether games share the same "
    "vibe: tone, atmosphere, core gameplay feel and audience. Genre labels "
    "alone are not enough. Respond with JSON only."
)

_POOL_TAG_COUNT = 3
_DESCRIPTION_CHARS = 200
_REASON_CHARS = 160


def parse_rankings(response: str) -> list[dict[str, Any]]:
    """Extract a list of ranking objects from raw model output.

    Raises :class:`MalformedPayloadError` when no JSON list can be found.
    """
    text = response.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    if not text.startswith("["):
        bracket_start = text.find("[")
        bracket_end = text.rfind("]")
        if bracket_start != -1 and bracket_end > bracket_start:
            text = text[bracket_start : bracket_end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(
            message=f"Ranker output is not JSON: {exc}",
            provider_name="external_ranker",
        ) from exc

    if isinstance(parsed, dict):
        # {"results": [...]} and friends.
        nested = next((v for v in parsed.values() if isinstance(v, list)), None)
        parsed = nested if nested is not None else [parsed]

    if not isinstance(parsed, list):
        raise MalformedPayloadError(
            message=f"Ranker output is {type(parsed).__name__}, expected a list",
            provider_name="external_ranker",
        )
    return [item for item in parsed if isinstance(item, dict)]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class ExternalRankerProvider(ISignalProvider):
    """Candidates judged by an LLM from a bounded tag-index pool."""

    name = "external_ranker"
    priority = 2

    def __init__(
        self,
        catalog: ICatalogProvider,
        llm: ILLMProvider,
        pool_size: int = 20,
        threshold: int = 7,
    ) -> None:
        self._catalog = catalog
        self._llm = llm
        self._pool_size = pool_size
        self._threshold = threshold
        self._logger = get_logger(__name__)

    def is_available(self) -> bool:
        return self._llm.is_available()

    # -- Prompt building -------------------------------------------------------

    @staticmethod
    def _describe(game: Game, tag_count: int) -> str:
        parts = [game.title or f"App {game.appid}"]
        if game.developer:
            parts.append(f"by {game.developer}")
        tags = game.top_tags(tag_count)
        if tags:
            parts.append(f"tags: {', '.join(tags)}")
        if game.short_description:
            parts.append(game.short_description[:_DESCRIPTION_CHARS])
        return " | ".join(parts)

    def build_prompt(self, source: Game, pool: list[Game]) -> str:
        lines = [
            "SOURCE GAME:",
            f"Title: {source.title}",
            f"Developer: {source.developer or 'unknown'}",
            f"Top tags: {', '.join(source.top_tags(10)) or 'none'}",
        ]
        if source.short_description:
            lines.append(f"Description: {source.short_description[:400]}")
        lines += ["", "CANDIDATES:"]
        lines += [f"{i}. {self._describe(game, 6)}" for i, game in enumerate(pool, start=1)]
        lines += [
            "",
            "Score each candidate 1-10 for how well it matches the source game's vibe.",
            f"Return ONLY a JSON array of the candidates scoring {self._threshold} or higher:",
            '[{"index": 1, "score": 8, "reason": "short reason"}]',
        ]
        return "\n".join(lines)

    # -- Pool ------------------------------------------------------------------

    async def _build_pool(self, source: Game, catalog: ICatalogProvider) -> list[Game]:
        tags = source.top_tags(_POOL_TAG_COUNT)
        if not tags:
            return []
        results = await asyncio.gather(*(catalog.search_by_tag(tag) for tag in tags))
        hits: Counter[int] = Counter()
        for appids in results:
            for appid in set(appids):
                if appid != source.appid:
                    hits[appid] += 1
        pool_ids = [
            appid for appid, _ in sorted(hits.items(), key=lambda kv: (-kv[1], kv[0]))
        ][: self._pool_size]
        games = await catalog.get_games(pool_ids)
        return list(games.values())

    # -- ISignalProvider -------------------------------------------------------

    async def generate(
        self,
        source: Game,
        limit: int,
        catalog: ICatalogProvider | None = None,
    ) -> list[Candidate]:
        if catalog is None:
            catalog = self._catalog
        pool = await self._build_pool(source, catalog)
        if not pool:
            return []

        try:
            response = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=self.build_prompt(source, pool),
            )
            rankings = parse_rankings(response)
        except (LLMError, MalformedPayloadError) as exc:
            self._logger.warning(
                "external_ranker_failed",
                source_id=source.appid,
                llm=self._llm.get_provider_name(),
                model=self._llm.model_name,
                error=str(exc),
            )
            return []

        by_target: dict[int, Candidate] = {}
        for item in rankings:
            index = _as_number(item.get("index"))
            score = _as_number(item.get("score"))
            if index is None or score is None or index != int(index):
                continue
            position = int(index)
            if not 1 <= position <= len(pool) or score < self._threshold:
                continue
            game = pool[position - 1]
            if game.appid == source.appid:
                continue
            normalized = min(1.0, max(0.0, score / 10.0))
            reason = str(item.get("reason") or "").strip()[:_REASON_CHARS]
            existing = by_target.get(game.appid)
            if existing is not None and existing.raw_scores_by_source[self.name] >= normalized:
                continue
            by_target[game.appid] = Candidate(
                target_id=game.appid,
                raw_scores_by_source={self.name: normalized},
                evidence={f"ranked {score:g}/10" + (f": {reason}" if reason else "")},
                title=game.title,
                tags=game.top_tags_lower(15),
                ranker_note=reason or None,
            )

        candidates = sorted(
            by_target.values(),
            key=lambda c: (-c.raw_scores_by_source[self.name], c.target_id),
        )[:limit]
        self._logger.info(
            "external_ranker_generated",
            source_id=source.appid,
            pool=len(pool),
            returned=len(rankings),
            kept=len(candidates),
        )
        return candidates
