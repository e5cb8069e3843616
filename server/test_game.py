"""
Test suite for the scramble score ledger.

Covers:
- Stroke stack behavior (sequence numbers, undo)
- Par assignment and finalized-hole immutability
- Hole score labels
- Summary totals and contribution percentages

Run with: pytest test_game.py -v
"""

import pytest

from constants import (
    ALBATROSS,
    BIRDIE,
    BOGEY,
    DOUBLE_BOGEY_PLUS,
    EAGLE,
    HOLE_IN_ONE,
    PAR,
    classify_hole_score,
)
from game import (
    GameSession,
    HoleScore,
    InvalidStateError,
    Player,
    PlayerKind,
    ValidationError,
    build_summary,
)


def make_players():
    return [
        Player(id="a", name="Alice", kind=PlayerKind.HOST, owner_user_id="user-1"),
        Player(id="b", name="Bob"),
    ]


def make_hole(number, par, player_ids, finalized=True):
    hole = HoleScore(hole_number=number)
    for player_id in player_ids:
        hole.add_stroke(player_id)
    hole.set_par(par)
    hole.finalized = finalized
    return hole


# =============================================================================
# Hole Record Tests
# =============================================================================

class TestHoleScore:
    """Strokes on a hole behave as a stack."""

    def test_sequence_numbers_are_contiguous(self):
        hole = HoleScore(hole_number=1)
        for player_id in ["a", "b", "a"]:
            hole.add_stroke(player_id)
        assert [s.sequence_number for s in hole.strokes] == [1, 2, 3]
        assert hole.total_strokes == 3

    def test_pop_removes_highest_sequence(self):
        hole = HoleScore(hole_number=1)
        hole.add_stroke("a")
        hole.add_stroke("b")
        stroke = hole.pop_stroke()
        assert stroke.player_id == "b"
        assert stroke.sequence_number == 2
        assert hole.total_strokes == 1

    def test_next_stroke_reuses_popped_sequence(self):
        hole = HoleScore(hole_number=1)
        hole.add_stroke("a")
        hole.add_stroke("b")
        hole.pop_stroke()
        stroke = hole.add_stroke("a")
        assert stroke.sequence_number == 2

    def test_pop_on_empty_hole_returns_none(self):
        assert HoleScore(hole_number=1).pop_stroke() is None

    def test_finalized_hole_rejects_strokes(self):
        hole = make_hole(1, 4, ["a"])
        with pytest.raises(InvalidStateError):
            hole.add_stroke("b")
        with pytest.raises(InvalidStateError):
            hole.pop_stroke()

    def test_finalized_hole_par_is_immutable(self):
        hole = make_hole(1, 4, ["a"])
        with pytest.raises(InvalidStateError):
            hole.set_par(5)
        assert hole.par == 4

    @pytest.mark.parametrize("par", [0, -1, None, "4"])
    def test_invalid_par_rejected(self, par):
        hole = HoleScore(hole_number=1)
        with pytest.raises(ValidationError):
            hole.set_par(par)
        assert hole.par is None

    def test_strokes_by_player(self):
        hole = make_hole(1, 4, ["a", "b", "a"])
        assert hole.strokes_by_player() == {"a": 2, "b": 1}

    def test_relative_to_par(self):
        assert make_hole(1, 4, ["a", "b", "a"]).relative_to_par == -1
        assert HoleScore(hole_number=1).relative_to_par is None


# =============================================================================
# Score Label Tests
# =============================================================================

class TestScoreLabels:
    """Hole results are classified against par."""

    @pytest.mark.parametrize("strokes,par,label", [
        (1, 3, HOLE_IN_ONE),
        (1, 5, HOLE_IN_ONE),
        (2, 5, ALBATROSS),
        (2, 6, ALBATROSS),
        (3, 5, EAGLE),
        (3, 4, BIRDIE),
        (4, 4, PAR),
        (5, 4, BOGEY),
        (6, 4, DOUBLE_BOGEY_PLUS),
        (9, 4, DOUBLE_BOGEY_PLUS),
    ])
    def test_classification(self, strokes, par, label):
        assert classify_hole_score(strokes, par) == label

    def test_label_needs_par_and_strokes(self):
        hole = HoleScore(hole_number=1)
        assert hole.label is None
        hole.add_stroke("a")
        assert hole.label is None
        hole.set_par(3)
        assert hole.label == HOLE_IN_ONE


# =============================================================================
# Summary Tests
# =============================================================================

class TestBuildSummary:
    """Totals, score-to-par and contribution percentages."""

    def test_two_hole_scramble(self):
        holes = [
            make_hole(1, 4, ["a", "b", "a"]),
            make_hole(2, 4, ["a", "b"]),
        ]
        summary = build_summary("g1", "Pine Valley", 2, make_players(), holes)

        assert summary.total_score == 5
        assert summary.total_par == 8
        assert summary.relative_to_par == -3
        assert summary.contribution_for("a").contribution_pct == pytest.approx(60.0)
        assert summary.contribution_for("b").contribution_pct == pytest.approx(40.0)

    def test_contributions_sum_to_hundred(self):
        holes = [make_hole(1, 5, ["a", "b", "b", "a", "b", "b", "a"])]
        summary = build_summary("g1", "Course", 1, make_players(), holes)
        total = sum(c.contribution_pct for c in summary.contributions)
        assert total == pytest.approx(100.0)

    def test_zero_strokes_gives_zero_percent(self):
        summary = build_summary("g1", "Course", 1, make_players(), [])
        assert summary.total_score == 0
        assert all(c.contribution_pct == 0.0 for c in summary.contributions)

    def test_hole_without_par_counts_zero_par(self):
        hole = HoleScore(hole_number=1)
        hole.add_stroke("a")
        summary = build_summary("g1", "Course", 1, make_players(), [hole])
        assert summary.total_par == 0
        assert summary.relative_to_par == 1

    def test_user_contribution_from_owned_player(self):
        holes = [make_hole(1, 4, ["b", "b", "a", "b"])]
        summary = build_summary("g1", "Course", 1, make_players(), holes, user_id="user-1")
        assert summary.user_contribution_pct == pytest.approx(25.0)

    def test_user_contribution_defaults_to_host(self):
        holes = [make_hole(1, 4, ["a", "b"])]
        summary = build_summary("g1", "Course", 1, make_players(), holes)
        assert summary.user_contribution_pct == pytest.approx(50.0)

    def test_unknown_user_has_no_contribution(self):
        holes = [make_hole(1, 4, ["a", "b"])]
        summary = build_summary("g1", "Course", 1, make_players(), holes, user_id="other")
        assert summary.user_contribution_pct is None


# =============================================================================
# Session Tests
# =============================================================================

class TestGameSession:

    def test_open_current_hole_is_reused(self):
        session = GameSession(course_name="Course", total_holes=2, players=make_players())
        first = session.open_current_hole()
        assert session.open_current_hole() is first
        assert first.hole_number == 1

    def test_discard_empty_current_hole(self):
        session = GameSession(course_name="Course", total_holes=2, players=make_players())
        session.open_current_hole()
        session.discard_current_hole_if_empty()
        assert session.holes == []

    def test_current_hole_with_par_is_kept(self):
        session = GameSession(course_name="Course", total_holes=2, players=make_players())
        session.open_current_hole().set_par(4)
        session.discard_current_hole_if_empty()
        assert len(session.holes) == 1

    def test_course_par_requires_full_list(self):
        session = GameSession(course_name="C", total_holes=2, hole_pars=[4, 5])
        assert session.course_par == 9
        assert session.setup_par(2) == 5
        assert session.setup_par(3) is None
        assert GameSession(course_name="C", total_holes=2).course_par is None

    def test_summarize_uses_finalized_holes_only(self):
        session = GameSession(course_name="Course", total_holes=2, players=make_players())
        session.holes.append(make_hole(1, 4, ["a", "b"]))
        session.holes.append(make_hole(2, 4, ["a"], finalized=False))
        assert session.summarize().total_score == 2

    def test_to_dict_reports_current_hole(self):
        session = GameSession(course_name="Course", total_holes=2, players=make_players(), hole_pars=[3, 4])
        session.open_current_hole().add_stroke("a")
        data = session.to_dict()
        assert data["current_hole"] == 1
        assert data["current_hole_strokes"] == 1
        assert data["current_hole_par"] == 3
        assert data["state"] == "active"
