"""Candidate fusion and ranking.

Takes every provider's candidate list for one source and produces the
final ordered suggestions:

1. Group views by ``target_id`` and merge them.
2. Fused score = the best score any provider gave the target, in ``[0, 1]``.
3. Drop the source itself.
4. Hard-veto tonal mismatches via :class:`VibeConflictFilter`.
5. Sort by fused score; equal scores fall back to the best contributing
   provider's priority, then to ``target_id``.  The order is a pure
   function of the inputs.
6. Keep the top ``result_size`` and write a human-readable reason for each.

Max-of-providers rather than a weighted sum keeps one strong signal (same
studio, an emphatic ranker verdict) from being diluted by providers that
simply never saw the target.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.models.suggestion import Suggestion
from suggestion_engine.services.vibe_filter import VibeConflictFilter
from suggestion_engine.utils.logging import get_logger

DEFAULT_PROVIDER_PRIORITY: dict[str, int] = {
    "same_developer": 0,
    "tag_overlap": 1,
    "facet_embedding": 1,
    "external_ranker": 2,
}

FALLBACK_REASON = "Similar overall vibe"

_UNKNOWN_PRIORITY = 99
_MAX_REASON_TAGS = 4
_VETO_TAG_COUNT = 15


class CandidateFuser:
    """Merges, vetoes, orders and explains candidates for one source game."""

    def __init__(
        self,
        vibe_filter: VibeConflictFilter | None = None,
        result_size: int = 12,
        provider_priority: Mapping[str, int] | None = None,
    ) -> None:
        self._filter = vibe_filter or VibeConflictFilter()
        self._result_size = result_size
        self._priority = dict(provider_priority or DEFAULT_PROVIDER_PRIORITY)
        self._logger = get_logger(__name__)

    @property
    def result_size(self) -> int:
        return self._result_size

    def _best_priority(self, candidate: Candidate) -> int:
        if not candidate.raw_scores_by_source:
            return _UNKNOWN_PRIORITY
        return min(self._priority.get(name, _UNKNOWN_PRIORITY) for name in candidate.raw_scores_by_source)

    @staticmethod
    def group(provider_results: Iterable[Iterable[Candidate]]) -> dict[int, Candidate]:
        """Merge every provider's views into one candidate per target.

        Inputs are copied, never mutated.
        """
        grouped: dict[int, Candidate] = {}
        for results in provider_results:
            for view in results or ():
                existing = grouped.get(view.target_id)
                if existing is None:
                    fresh = Candidate(target_id=view.target_id)
                    fresh.merge(view)
                    grouped[view.target_id] = fresh
                else:
                    existing.merge(view)
        return grouped

    def rank(
        self,
        source: Game,
        provider_results: Iterable[Iterable[Candidate]],
    ) -> list[Candidate]:
        """Return the surviving candidates in final order (after veto and truncation)."""
        grouped = self.group(provider_results)
        grouped.pop(source.appid, None)

        source_tags = source.top_tags_lower(_VETO_TAG_COUNT)
        survivors: list[Candidate] = []
        for candidate in grouped.values():
            clash = self._filter.explain(source_tags, candidate.tags)
            if clash is not None:
                candidate.vetoed = True
                self._logger.debug(
                    "candidate_vetoed",
                    source_id=source.appid,
                    target_id=candidate.target_id,
                    source_side=clash[0],
                    candidate_side=clash[1],
                )
                continue
            if not candidate.shared_tags and candidate.tags:
                candidate_tags = set(candidate.tags)
                candidate.shared_tags = [t for t in source_tags if t in candidate_tags]
            survivors.append(candidate)

        survivors.sort(
            key=lambda c: (-c.best_score, self._best_priority(c), c.target_id)
        )
        ranked = survivors[: self._result_size]
        self._logger.debug(
            "candidates_ranked",
            source_id=source.appid,
            grouped=len(grouped),
            vetoed=len(grouped) - len(survivors),
            kept=len(ranked),
        )
        return ranked

    def fuse(
        self,
        source: Game,
        provider_results: Iterable[Iterable[Candidate]],
    ) -> list[Suggestion]:
        """Fuse provider outputs into ordered, explained suggestions."""
        return [
            Suggestion(
                source_id=source.appid,
                target_id=candidate.target_id,
                reason=build_reason(candidate),
                score=round(candidate.best_score, 4),
            )
            for candidate in self.rank(source, provider_results)
        ]


def build_reason(candidate: Candidate) -> str:
    """Render a short explanation from a candidate's evidence.  Never empty."""
    parts: list[str] = []
    if candidate.developer_match:
        parts.append(f"Same developer ({candidate.developer_match})")
    elif candidate.publisher_match:
        parts.append(f"Same publisher ({candidate.publisher_match})")

    if candidate.shared_tags:
        parts.append("Shared tags: " + ", ".join(candidate.shared_tags[:_MAX_REASON_TAGS]))

    if candidate.facet_similarity:
        facets = sorted(candidate.facet_similarity.items(), key=lambda kv: (-kv[1], kv[0]))
        parts.append(
            "Similar "
            + ", ".join(f"{facet} ({round(sim * 100)}%)" for facet, sim in facets)
        )

    if candidate.ranker_note:
        parts.append(candidate.ranker_note)

    if not parts and candidate.evidence:
        # Providers that only report free-text evidence.
        evidence = sorted(candidate.evidence)[:_MAX_REASON_TAGS]
        parts.append(evidence[0][:1].upper() + evidence[0][1:])
        parts.extend(evidence[1:])

    return "; ".join(parts) if parts else FALLBACK_REASON
