"""Vibe-conflict filter.

Some candidate pairs share plenty of tags yet would be a jarring suggestion:
a gore-heavy horror game and a cosy family game both tagged "Atmospheric"
and "Story Rich".  The filter holds a table of opposing tag clusters and
hard-vetoes any pair where the source sits on one side of a pair and the
candidate on the other.  The check is symmetric.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

DEFAULT_CONFLICT_PAIRS: tuple[tuple[frozenset[str], frozenset[str]], ...] = (
    (
        frozenset({"horror", "psychological horror", "gore", "dark"}),
        frozenset({"wholesome", "family friendly", "cute", "relaxing"}),
    ),
    (
        frozenset({"sexual content", "nudity", "nsfw", "adult only"}),
        frozenset({"family friendly", "wholesome", "cute"}),
    ),
)


def _normalize(tags: Iterable[str]) -> set[str]:
    return {t.strip().lower() for t in tags if t and t.strip()}


class VibeConflictFilter:
    """Decides whether two tag sets sit on opposite sides of a tonal divide."""

    def __init__(
        self,
        pairs: Iterable[tuple[Iterable[str], Iterable[str]]] | None = None,
    ) -> None:
        source = DEFAULT_CONFLICT_PAIRS if pairs is None else pairs
        self._pairs: list[tuple[frozenset[str], frozenset[str]]] = [
            (frozenset(_normalize(a)), frozenset(_normalize(b))) for a, b in source
        ]

    @classmethod
    def from_config(cls, raw: Sequence[Sequence[Sequence[str]]] | None) -> VibeConflictFilter:
        """Build from the ``vibe_conflicts`` list in config.yaml (defaults if absent)."""
        if not raw:
            return cls()
        pairs = [(pair[0], pair[1]) for pair in raw if len(pair) == 2]
        return cls(pairs)

    @property
    def pairs(self) -> list[tuple[frozenset[str], frozenset[str]]]:
        return list(self._pairs)

    def explain(
        self, source_tags: Iterable[str], candidate_tags: Iterable[str]
    ) -> tuple[list[str], list[str]] | None:
        """Return the clashing ``(source_side, candidate_side)`` tags, or ``None``."""
        src = _normalize(source_tags)
        cand = _normalize(candidate_tags)
        if not src or not cand:
            return None
        for side_a, side_b in self._pairs:
            for mine, theirs in ((side_a, side_b), (side_b, side_a)):
                hit_src = src & mine
                hit_cand = cand & theirs
                if hit_src and hit_cand:
                    return sorted(hit_src), sorted(hit_cand)
        return None

    def conflicts(self, source_tags: Iterable[str], candidate_tags: Iterable[str]) -> bool:
        return self.explain(source_tags, candidate_tags) is not None
