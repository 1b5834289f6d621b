"""Unit tests for the vibe-conflict filter and the candidate fuser."""

from __future__ import annotations

import pytest

from suggestion_engine.models.candidate import Candidate
from suggestion_engine.models.game import Game
from suggestion_engine.services.fuser import FALLBACK_REASON, CandidateFuser, build_reason
from suggestion_engine.services.vibe_filter import VibeConflictFilter


def _cand(target_id: int, tags: list[str] | None = None, **scores: float) -> Candidate:
    return Candidate(target_id=target_id, raw_scores_by_source=dict(scores), tags=tags or [])


@pytest.fixture
def source() -> Game:
    return Game(appid=1, title="Source", tags={"RPG": 10, "Indie": 8, "Pixel Graphics": 5})


# ======================================================================
# VibeConflictFilter
# ======================================================================


class TestVibeConflictFilter:
    def test_default_pairs_veto_horror_vs_wholesome(self) -> None:
        vf = VibeConflictFilter()
        assert vf.conflicts(["Horror", "Atmospheric"], ["cute", "2d"])

    def test_is_symmetric(self) -> None:
        vf = VibeConflictFilter()
        assert vf.conflicts(["wholesome"], ["gore"])
        assert vf.conflicts(["gore"], ["wholesome"])

    def test_explain_returns_both_sides(self) -> None:
        vf = VibeConflictFilter()
        assert vf.explain(["horror", "dark"], ["relaxing"]) == (["dark", "horror"], ["relaxing"])

    def test_same_side_is_not_a_conflict(self) -> None:
        vf = VibeConflictFilter()
        assert not vf.conflicts(["horror"], ["gore"])

    def test_empty_tags_never_conflict(self) -> None:
        vf = VibeConflictFilter()
        assert not vf.conflicts([], ["cute"])
        assert not vf.conflicts(["horror"], [])

    def test_from_config(self) -> None:
        vf = VibeConflictFilter.from_config([[["Space"], ["Underwater"]]])
        assert vf.pairs == [(frozenset({"space"}), frozenset({"underwater"}))]
        assert vf.conflicts(["SPACE"], ["underwater"])
        assert not vf.conflicts(["horror"], ["cute"])

    def test_from_config_empty_uses_defaults(self) -> None:
        assert VibeConflictFilter.from_config(None).pairs == VibeConflictFilter().pairs


# ======================================================================
# CandidateFuser
# ======================================================================


class TestCandidateFuser:
    def test_fused_score_is_max_over_providers(self, source: Game) -> None:
        fuser = CandidateFuser()
        ranked = fuser.rank(
            source,
            [
                [_cand(10, tag_overlap=0.4)],
                [_cand(10, facet_embedding=0.9)],
            ],
        )
        assert len(ranked) == 1
        assert ranked[0].best_score == pytest.approx(0.9)
        assert ranked[0].sources == ["facet_embedding", "tag_overlap"]

    def test_source_is_never_suggested(self, source: Game) -> None:
        fuser = CandidateFuser()
        ranked = fuser.rank(source, [[_cand(1, tag_overlap=1.0), _cand(2, tag_overlap=0.5)]])
        assert [c.target_id for c in ranked] == [2]

    def test_vetoed_candidate_is_dropped(self) -> None:
        horror = Game(appid=1, tags={"Horror": 10, "Atmospheric": 5})
        fuser = CandidateFuser()
        ranked = fuser.rank(
            horror,
            [[_cand(2, ["cute", "atmospheric"], tag_overlap=0.9), _cand(3, ["atmospheric"], tag_overlap=0.5)]],
        )
        assert [c.target_id for c in ranked] == [3]

    def test_candidate_without_tags_is_not_vetoed(self) -> None:
        horror = Game(appid=1, tags={"Horror": 10})
        ranked = CandidateFuser().rank(horror, [[_cand(2, facet_embedding=0.8)]])
        assert [c.target_id for c in ranked] == [2]

    def test_ties_break_on_provider_priority_then_id(self, source: Game) -> None:
        fuser = CandidateFuser()
        ranked = fuser.rank(
            source,
            [
                [_cand(30, external_ranker=0.8)],
                [_cand(20, tag_overlap=0.8), _cand(10, tag_overlap=0.8)],
                [_cand(40, same_developer=0.8)],
            ],
        )
        assert [c.target_id for c in ranked] == [40, 10, 20, 30]

    def test_output_is_independent_of_input_order(self, source: Game) -> None:
        fuser = CandidateFuser()
        lists = [
            [_cand(5, tag_overlap=0.5), _cand(6, tag_overlap=0.7)],
            [_cand(7, facet_embedding=0.7), _cand(5, facet_embedding=0.6)],
        ]
        forward = [c.target_id for c in fuser.rank(source, lists)]
        backward = [c.target_id for c in fuser.rank(source, [list(reversed(x)) for x in reversed(lists)])]
        assert forward == backward == [6, 7, 5]

    def test_truncates_to_result_size(self, source: Game) -> None:
        fuser = CandidateFuser(result_size=3)
        ranked = fuser.rank(source, [[_cand(i, tag_overlap=i / 100) for i in range(2, 20)]])
        assert [c.target_id for c in ranked] == [19, 18, 17]

    def test_inputs_are_not_mutated(self, source: Game) -> None:
        view = _cand(5, tag_overlap=0.5)
        CandidateFuser().rank(source, [[view], [_cand(5, facet_embedding=0.9)]])
        assert view.raw_scores_by_source == {"tag_overlap": 0.5}

    def test_fuse_builds_suggestions_with_reasons(self, source: Game) -> None:
        fuser = CandidateFuser()
        suggestions = fuser.fuse(
            source,
            [[_cand(5, ["rpg", "indie", "strategy"], tag_overlap=0.66666)], [_cand(6, facet_embedding=0.5)]],
        )
        assert [s.target_id for s in suggestions] == [5, 6]
        assert suggestions[0].source_id == 1
        assert suggestions[0].score == 0.6667
        assert suggestions[0].reason == "Shared tags: rpg, indie"
        assert suggestions[1].reason == FALLBACK_REASON

    def test_empty_input(self, source: Game) -> None:
        assert CandidateFuser().fuse(source, []) == []


class TestBuildReason:
    def test_developer_first(self) -> None:
        c = Candidate(
            target_id=2,
            developer_match="Team Cherry",
            publisher_match="Team Cherry",
            shared_tags=["metroidvania", "2d", "difficult", "atmospheric", "souls-like"],
        )
        assert build_reason(c) == (
            "Same developer (Team Cherry); Shared tags: metroidvania, 2d, difficult, atmospheric"
        )

    def test_publisher_when_no_developer(self) -> None:
        assert build_reason(Candidate(target_id=2, publisher_match="Devolver")) == "Same publisher (Devolver)"

    def test_facets_sorted_by_similarity(self) -> None:
        c = Candidate(target_id=2, facet_similarity={"mechanics": 0.61, "aesthetic": 0.904})
        assert build_reason(c) == "Similar aesthetic (90%), mechanics (61%)"

    def test_ranker_note_appended(self) -> None:
        c = Candidate(target_id=2, shared_tags=["rpg"], ranker_note="same cozy loop")
        assert build_reason(c) == "Shared tags: rpg; same cozy loop"

    def test_fallback_never_empty(self) -> None:
        assert build_reason(Candidate(target_id=2)) == FALLBACK_REASON

    def test_evidence_used_when_no_structured_fields(self) -> None:
        c = Candidate(target_id=2, evidence={"similar mechanics", "ranked 8/10"})
        assert build_reason(c) == "Ranked 8/10; similar mechanics"

    def test_structured_fields_take_precedence_over_evidence(self) -> None:
        c = Candidate(target_id=2, shared_tags=["rpg"], evidence={"shared tag: rpg"})
        assert build_reason(c) == "Shared tags: rpg"
