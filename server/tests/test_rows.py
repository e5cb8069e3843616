"""
Tests for mapping between persistence rows and the score ledger.
"""

import json
from datetime import datetime, timezone

import pytest

from game import GameSession, HoleScore, Player, PlayerKind, SessionState
from models.rows import (
    GameRow,
    GamePlayerRow,
    HoleScoreRow,
    StoredGame,
    hole_to_row,
    parse_dt,
    player_to_row,
    row_to_hole,
    row_to_player,
    session_to_header,
    stored_to_session,
    stored_to_summary,
)


def hole_row(number, par, player_ids, game_id="g1"):
    return HoleScoreRow(
        game_id=game_id,
        hole_number=number,
        par=par,
        total_strokes=len(player_ids),
        strokes_json=[
            {"sequence_number": i, "player_id": pid}
            for i, pid in enumerate(player_ids, start=1)
        ],
    )


def stored(holes, hole_count=3, total_score=None, hole_pars=None):
    return StoredGame(
        game=GameRow(
            id="g1",
            user_id="user-1",
            course_name="Pine",
            hole_count=hole_count,
            total_score=total_score,
            hole_pars=hole_pars or [],
            created_at=datetime(2026, 4, 1, tzinfo=timezone.utc),
        ),
        players=[
            GamePlayerRow(id="a", game_id="g1", name="Alice", kind="host", user_id="user-1"),
            GamePlayerRow(id="b", game_id="g1", name="Bob"),
        ],
        holes=holes,
    )


class TestRecordParsing:

    def test_hole_row_decodes_json_string(self):
        record = {
            "game_id": "g1",
            "hole_number": 2,
            "par": 3,
            "total_strokes": 1,
            "strokes_json": json.dumps([{"sequence_number": 1, "player_id": "a"}]),
        }
        row = HoleScoreRow.from_record(record)
        assert row.strokes_json == [{"sequence_number": 1, "player_id": "a"}]

    def test_parse_dt_assumes_utc(self):
        assert parse_dt("2026-04-01T10:00:00").tzinfo == timezone.utc
        assert parse_dt(None) is None

    def test_unknown_player_kind_becomes_guest(self):
        player = row_to_player(GamePlayerRow(id="x", game_id="g1", name="X", kind="caddie"))
        assert player.kind == PlayerKind.GUEST


class TestLedgerToRows:

    def test_hole_row_carries_strokes(self):
        hole = HoleScore(hole_number=1)
        hole.add_stroke("a", "user-1")
        hole.add_stroke("b")
        hole.set_par(4)

        row = hole_to_row(hole, "g1")

        assert row.total_strokes == 2
        assert row.strokes_json[0] == {
            "sequence_number": 1, "player_id": "a", "contributor_user_id": "user-1",
        }

    def test_header_and_player_rows(self):
        session = GameSession(
            course_name="Pine",
            total_holes=2,
            players=[Player(id="a", name="Alice", kind=PlayerKind.HOST, owner_user_id="user-1")],
            hole_pars=[4, 3],
            user_id="user-1",
        )
        header = session_to_header(session)
        assert header.course_par == 7
        assert header.hole_pars == [4, 3]
        assert header.hole_count == 2
        assert player_to_row(session.players[0], "g1").kind == "host"


class TestRowsToLedger:

    def test_strokes_renumbered_in_stored_order(self):
        row = HoleScoreRow(
            game_id="g1", hole_number=1, par=4, total_strokes=2,
            strokes_json=[
                {"sequence_number": 5, "player_id": "b"},
                {"sequence_number": 2, "player_id": "a"},
            ],
        )
        hole = row_to_hole(row)
        assert [(s.sequence_number, s.player_id) for s in hole.strokes] == [(1, "a"), (2, "b")]
        assert hole.finalized is True

    def test_summary_from_rows(self):
        summary = stored_to_summary(stored([
            hole_row(2, 4, ["a", "b"]),
            hole_row(1, 4, ["a", "b", "a"]),
        ], hole_count=2))

        assert [h.hole_number for h in summary.holes] == [1, 2]
        assert summary.total_score == 5
        assert summary.relative_to_par == -3
        assert summary.user_contribution_pct == pytest.approx(60.0)

    def test_summary_uses_stored_total_without_holes(self):
        summary = stored_to_summary(stored([], total_score=80))
        assert summary.total_score == 80

    def test_session_resumes_after_last_hole(self):
        session = stored_to_session(stored([hole_row(1, 4, ["a"]), hole_row(2, 5, ["b"])]))
        assert session.current_hole == 3
        assert session.state == SessionState.ACTIVE
        assert session.synced is True

    def test_session_ignores_holes_after_a_gap(self):
        session = stored_to_session(stored([hole_row(1, 4, ["a"]), hole_row(3, 5, ["b"])]))
        assert [h.hole_number for h in session.holes] == [1]
        assert session.current_hole == 2

    def test_session_with_every_hole_is_finish_pending(self):
        session = stored_to_session(stored(
            [hole_row(1, 4, ["a"]), hole_row(2, 4, ["b"])], hole_count=2,
        ))
        assert session.state == SessionState.FINISH_PENDING

    def test_resumed_session_keeps_setup_pars(self):
        session = stored_to_session(stored([hole_row(1, 4, ["a"])], hole_pars=[4, 3, 5]))
        assert session.course_par == 12
        assert session.setup_par(2) == 3

    def test_partial_setup_pars_are_dropped(self):
        session = stored_to_session(stored([hole_row(1, 4, ["a"])], hole_pars=[4, 3]))
        assert session.hole_pars == []

    def test_game_row_without_hole_pars_column(self):
        record = {
            "id": "g1", "user_id": None, "course_name": "Pine", "hole_count": 9,
            "status": "active", "course_par": None, "total_score": None,
            "user_contribution": None, "created_at": None, "completed_at": None,
        }
        assert GameRow.from_record(record).hole_pars == []
