"""
Persistence row shapes and their mapping to the score ledger.

Rows mirror the PostgreSQL tables (games, game_players, hole_scores) and
are what the persistence gateway reads and writes. The functions here are
the only place where rows become ledger objects and back, so the ledger
never sees database column names.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from game import (
    CompletedGameSummary,
    GameSession,
    HoleScore,
    Player,
    PlayerKind,
    SessionState,
    Stroke,
    build_summary,
)

GAME_STATUS_ACTIVE = "active"
GAME_STATUS_COMPLETED = "completed"


def parse_dt(val: Any) -> Optional[datetime]:
    """Parse a datetime from a row value (datetime, ISO string or None)."""
    if val is None:
        return None
    if isinstance(val, str):
        val = datetime.fromisoformat(val)
    if val.tzinfo is None:
        val = val.replace(tzinfo=timezone.utc)
    return val


@dataclass
class GameHeader:
    """Values written when a game is first created."""
    user_id: Optional[str]
    course_name: str
    hole_count: int
    course_par: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    hole_pars: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "course_name": self.course_name,
            "hole_count": self.hole_count,
            "course_par": self.course_par,
            "created_at": self.created_at.isoformat(),
            "hole_pars": self.hole_pars,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameHeader":
        return cls(
            user_id=d.get("user_id"),
            course_name=d["course_name"],
            hole_count=d["hole_count"],
            course_par=d.get("course_par"),
            created_at=parse_dt(d.get("created_at")) or datetime.now(timezone.utc),
            hole_pars=list(d.get("hole_pars") or []),
        )


@dataclass
class GameRow:
    """A row of the games table."""
    id: str
    user_id: Optional[str]
    course_name: str
    hole_count: int
    status: str = GAME_STATUS_ACTIVE
    course_par: Optional[int] = None
    total_score: Optional[int] = None
    user_contribution: Optional[float] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    hole_pars: list[int] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Any) -> "GameRow":
        """Build from an asyncpg Record or a plain mapping."""
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]) if record["user_id"] is not None else None,
            course_name=record["course_name"],
            hole_count=record["hole_count"],
            status=record["status"] or GAME_STATUS_ACTIVE,
            course_par=record["course_par"],
            total_score=record["total_score"],
            user_contribution=(
                float(record["user_contribution"])
                if record["user_contribution"] is not None else None
            ),
            created_at=parse_dt(record["created_at"]),
            completed_at=parse_dt(record["completed_at"]),
            hole_pars=list(record.get("hole_pars") or []),
        )


@dataclass
class GamePlayerRow:
    """A row of the game_players table."""
    id: str
    game_id: str
    name: str
    kind: str = PlayerKind.GUEST.value
    user_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "GamePlayerRow":
        return cls(
            id=str(record["id"]),
            game_id=str(record["game_id"]),
            name=record["name"],
            kind=record["kind"] or PlayerKind.GUEST.value,
            user_id=str(record["user_id"]) if record["user_id"] is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "name": self.name,
            "kind": self.kind,
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GamePlayerRow":
        return cls(
            id=d["id"],
            game_id=d["game_id"],
            name=d["name"],
            kind=d.get("kind", PlayerKind.GUEST.value),
            user_id=d.get("user_id"),
        )


@dataclass
class HoleScoreRow:
    """A row of the hole_scores table. Strokes are stored as JSON."""
    game_id: str
    hole_number: int
    par: Optional[int]
    total_strokes: int
    strokes_json: list[dict] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Any) -> "HoleScoreRow":
        strokes = record["strokes_json"]
        if isinstance(strokes, str):
            strokes = json.loads(strokes)
        return cls(
            game_id=str(record["game_id"]),
            hole_number=record["hole_number"],
            par=record["par"],
            total_strokes=record["total_strokes"],
            strokes_json=strokes or [],
        )

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "hole_number": self.hole_number,
            "par": self.par,
            "total_strokes": self.total_strokes,
            "strokes_json": self.strokes_json,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HoleScoreRow":
        return cls(
            game_id=d["game_id"],
            hole_number=d["hole_number"],
            par=d.get("par"),
            total_strokes=d["total_strokes"],
            strokes_json=d.get("strokes_json", []),
        )


@dataclass
class GameStatusUpdate:
    """Fields written when a game is completed."""
    status: str
    total_score: int
    completed_at: datetime
    user_contribution_pct: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "total_score": self.total_score,
            "completed_at": self.completed_at.isoformat(),
            "user_contribution_pct": self.user_contribution_pct,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameStatusUpdate":
        return cls(
            status=d["status"],
            total_score=d["total_score"],
            completed_at=parse_dt(d["completed_at"]),
            user_contribution_pct=d.get("user_contribution_pct"),
        )


@dataclass
class StoredGame:
    """A game with its roster and hole rows, as read from storage."""
    game: GameRow
    players: list[GamePlayerRow] = field(default_factory=list)
    holes: list[HoleScoreRow] = field(default_factory=list)


# =============================================================================
# Ledger -> rows
# =============================================================================


def session_to_header(session: GameSession) -> GameHeader:
    return GameHeader(
        user_id=session.user_id,
        course_name=session.course_name,
        hole_count=session.total_holes,
        course_par=session.course_par,
        created_at=session.created_at,
        hole_pars=list(session.hole_pars),
    )


def player_to_row(player: Player, game_id: str) -> GamePlayerRow:
    return GamePlayerRow(
        id=player.id,
        game_id=game_id,
        name=player.name,
        kind=player.kind.value,
        user_id=player.owner_user_id,
    )


def hole_to_row(hole: HoleScore, game_id: str) -> HoleScoreRow:
    return HoleScoreRow(
        game_id=game_id,
        hole_number=hole.hole_number,
        par=hole.par,
        total_strokes=hole.total_strokes,
        strokes_json=[stroke.to_dict() for stroke in hole.strokes],
    )


def summary_to_status_update(summary: CompletedGameSummary) -> GameStatusUpdate:
    return GameStatusUpdate(
        status=GAME_STATUS_COMPLETED,
        total_score=summary.total_score,
        completed_at=summary.completed_at or datetime.now(timezone.utc),
        user_contribution_pct=summary.user_contribution_pct,
    )


# =============================================================================
# Rows -> ledger
# =============================================================================


def row_to_player(row: GamePlayerRow) -> Player:
    try:
        kind = PlayerKind(row.kind)
    except ValueError:
        kind = PlayerKind.GUEST
    return Player(id=row.id, name=row.name, kind=kind, owner_user_id=row.user_id)


def row_to_hole(row: HoleScoreRow, finalized: bool = True) -> HoleScore:
    """
    Rebuild a hole record from its row.

    Strokes are renumbered 1..n in stored order so a row with a gap or a
    duplicate sequence number still yields a valid ledger entry.
    """
    ordered = sorted(
        enumerate(row.strokes_json),
        key=lambda item: (item[1].get("sequence_number", item[0] + 1), item[0]),
    )
    strokes = [
        Stroke(
            sequence_number=index,
            player_id=str(data.get("player_id", "")),
            contributor_user_id=data.get("contributor_user_id"),
        )
        for index, (_, data) in enumerate(ordered, start=1)
    ]
    return HoleScore(
        hole_number=row.hole_number,
        par=row.par,
        strokes=strokes,
        finalized=finalized,
    )


def stored_to_summary(stored: StoredGame) -> CompletedGameSummary:
    """Build the summary of a stored game from its rows."""
    holes = [row_to_hole(row) for row in sorted(stored.holes, key=lambda r: r.hole_number)]
    summary = build_summary(
        game_id=stored.game.id,
        course_name=stored.game.course_name,
        total_holes=stored.game.hole_count,
        players=[row_to_player(row) for row in stored.players],
        holes=holes,
        user_id=stored.game.user_id,
        created_at=stored.game.created_at,
        completed_at=stored.game.completed_at,
    )
    # The persisted total is authoritative when hole rows are missing
    if not holes and stored.game.total_score is not None:
        summary.total_score = stored.game.total_score
        summary.relative_to_par = stored.game.total_score - summary.total_par
    if summary.user_contribution_pct is None:
        summary.user_contribution_pct = stored.game.user_contribution
    return summary


def stored_to_session(stored: StoredGame) -> GameSession:
    """
    Rebuild a live session from an incomplete stored game.

    Every stored hole counts as finalized. Play resumes on the hole after
    the last stored one; when every hole is stored the session is waiting
    for completion.
    """
    holes = [row_to_hole(row) for row in sorted(stored.holes, key=lambda r: r.hole_number)]
    # Keep only the contiguous prefix 1..k
    contiguous = []
    for expected, hole in enumerate(holes, start=1):
        if hole.hole_number != expected:
            break
        contiguous.append(hole)

    total_holes = stored.game.hole_count
    contiguous = contiguous[:total_holes]
    current_hole = len(contiguous) + 1
    state = SessionState.FINISH_PENDING if current_hole > total_holes else SessionState.ACTIVE
    hole_pars = stored.game.hole_pars if len(stored.game.hole_pars) == total_holes else []

    return GameSession(
        id=stored.game.id,
        user_id=stored.game.user_id,
        course_name=stored.game.course_name,
        total_holes=total_holes,
        players=[row_to_player(row) for row in stored.players],
        holes=contiguous,
        hole_pars=hole_pars,
        current_hole=current_hole,
        state=state,
        created_at=stored.game.created_at or datetime.now(timezone.utc),
    )
