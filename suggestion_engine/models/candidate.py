"""Transient candidate produced by signal providers and consumed by the fuser.

Candidates are never persisted.  Each provider emits its own view of a
target game; the fuser groups views by ``target_id`` and folds them together
with :meth:`Candidate.merge`.  It is a plain mutable dataclass (rather than
a frozen pydantic model) because the fuser accumulates into it in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Candidate:
    """A possible suggestion for one source game.

    Attributes
    ----------
    target_id:
        appid of the suggested game.
    raw_scores_by_source:
        provider name -> that provider's score in ``[0, 1]``.
    evidence:
        Short, human-readable facts supporting the suggestion
        (``"same developer (Team Cherry)"``, ``"shared tag: metroidvania"``).
    vetoed:
        Set by the fuser when the vibe-conflict filter rejects the pair.
    """

    target_id: int
    raw_scores_by_source: dict[str, float] = field(default_factory=dict)
    evidence: set[str] = field(default_factory=set)
    vetoed: bool = False
    title: str = ""
    tags: list[str] = field(default_factory=list)
    shared_tags: list[str] = field(default_factory=list)
    facet_similarity: dict[str, float] = field(default_factory=dict)
    ranker_note: str | None = None
    developer_match: str | None = None
    publisher_match: str | None = None

    @property
    def best_score(self) -> float:
        """Max over contributing providers, clamped to ``[0, 1]``."""
        if not self.raw_scores_by_source:
            return 0.0
        return min(1.0, max(0.0, max(self.raw_scores_by_source.values())))

    @property
    def sources(self) -> list[str]:
        return sorted(self.raw_scores_by_source)

    def merge(self, other: Candidate) -> None:
        """Fold another provider's view of the same target into this one."""
        if other.target_id != self.target_id:
            raise ValueError(
                f"Cannot merge candidate {other.target_id} into {self.target_id}"
            )
        for source, score in other.raw_scores_by_source.items():
            current = self.raw_scores_by_source.get(source)
            if current is None or score > current:
                self.raw_scores_by_source[source] = score
        self.evidence |= other.evidence
        self.vetoed = self.vetoed or other.vetoed
        if not self.title and other.title:
            self.title = other.title
        if not self.tags and other.tags:
            self.tags = list(other.tags)
        for tag in other.shared_tags:
            if tag not in self.shared_tags:
                self.shared_tags.append(tag)
        for facet, sim in other.facet_similarity.items():
            if sim > self.facet_similarity.get(facet, float("-inf")):
                self.facet_similarity[facet] = sim
        if other.ranker_note and not self.ranker_note:
            self.ranker_note = other.ranker_note
        self.developer_match = self.developer_match or other.developer_match
        self.publisher_match = self.publisher_match or other.publisher_match
