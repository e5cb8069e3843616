"""
Score ledger for scramble golf.

This module holds the in-memory data model for a scramble game: the
players on the team, each stroke the team takes (credited to the player
who hit it), the per-hole score records, and the derived summary shown
when a game is finished.

Scramble Rules Summary:
    - All players on the team play from the best ball, so the team has a
      single score per hole
    - Every stroke is credited to one player, which gives each player a
      contribution percentage of the team total
    - Score-to-par is the team total minus the summed par of played holes

Session State Flow:
    ACTIVE -> FINISH_PENDING -> COMPLETED

    FINISH_PENDING is entered when the last hole is finalized. Only an
    explicit completion moves the session to COMPLETED, so the caller can
    show a summary before committing it.
"""

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from constants import classify_hole_score


class ValidationError(Exception):
    """Raised when caller input is invalid (recoverable, re-prompt)."""
    pass


class InvalidStateError(Exception):
    """Raised when an operation is invoked out of sequence."""
    pass


class PlayerKind(str, Enum):
    """
    How a player joined the team.

    HOST: The signed-in user who created the game (at most one).
    REGISTERED: Another user with an account.
    GUEST: A name-only player without an account.
    """

    HOST = "host"
    REGISTERED = "registered"
    GUEST = "guest"


class SessionState(str, Enum):
    """
    Lifecycle of a game session.

    ACTIVE: Holes are being played.
    FINISH_PENDING: Every hole is finalized, waiting for completion.
    COMPLETED: Summary committed; the session is read-only.
    """

    ACTIVE = "active"
    FINISH_PENDING = "finish_pending"
    COMPLETED = "completed"


@dataclass
class Player:
    """
    A member of the scramble team.

    Attributes:
        id: Unique identifier within the game.
        name: Display name (never empty).
        kind: Host, registered user, or guest.
        owner_user_id: Account the player belongs to, if any.
    """

    id: str
    name: str
    kind: PlayerKind = PlayerKind.GUEST
    owner_user_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "owner_user_id": self.owner_user_id,
        }


@dataclass
class Stroke:
    """A single team stroke credited to one player."""

    sequence_number: int
    player_id: str
    contributor_user_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "sequence_number": self.sequence_number,
            "player_id": self.player_id,
            "contributor_user_id": self.contributor_user_id,
        }


@dataclass
class HoleScore:
    """
    The team's record for one hole.

    Strokes behave as a stack: new strokes are appended with the next
    sequence number and only the most recent one can be removed, so the
    sequence numbers are always 1..n without gaps.

    Attributes:
        hole_number: 1-based hole number.
        par: Par for the hole, once known.
        strokes: Strokes in the order they were recorded.
        finalized: True once the session has moved past this hole.
    """

    hole_number: int
    par: Optional[int] = None
    strokes: list[Stroke] = field(default_factory=list)
    finalized: bool = False

    @property
    def total_strokes(self) -> int:
        return len(self.strokes)

    def add_stroke(self, player_id: str, contributor_user_id: Optional[str] = None) -> Stroke:
        """
        Append a stroke with the next sequence number.

        Raises:
            InvalidStateError: If the hole is already finalized.
        """
        if self.finalized:
            raise InvalidStateError(f"Hole {self.hole_number} is already finalized")
        stroke = Stroke(
            sequence_number=self.total_strokes + 1,
            player_id=player_id,
            contributor_user_id=contributor_user_id,
        )
        self.strokes.append(stroke)
        return stroke

    def pop_stroke(self) -> Optional[Stroke]:
        """Remove and return the most recent stroke, or None if there are none."""
        if self.finalized:
            raise InvalidStateError(f"Hole {self.hole_number} is already finalized")
        if not self.strokes:
            return None
        return self.strokes.pop()

    def set_par(self, par: int) -> None:
        """
        Assign par for the hole.

        Raises:
            ValidationError: If par is not a positive integer.
            InvalidStateError: If the hole is already finalized.
        """
        if self.finalized:
            raise InvalidStateError(f"Par of finalized hole {self.hole_number} cannot change")
        if not isinstance(par, int) or par < 1:
            raise ValidationError("Par must be a positive integer")
        self.par = par

    def strokes_by_player(self) -> Counter:
        """Count strokes per player id."""
        return Counter(stroke.player_id for stroke in self.strokes)

    @property
    def relative_to_par(self) -> Optional[int]:
        if self.par is None:
            return None
        return self.total_strokes - self.par

    @property
    def label(self) -> Optional[str]:
        """Score classification (birdie, par, ...) once par and strokes exist."""
        if self.par is None or not self.strokes:
            return None
        return classify_hole_score(self.total_strokes, self.par)

    def to_dict(self) -> dict:
        return {
            "hole_number": self.hole_number,
            "par": self.par,
            "total_strokes": self.total_strokes,
            "strokes": [s.to_dict() for s in self.strokes],
            "finalized": self.finalized,
            "label": self.label,
        }


@dataclass
class PlayerContribution:
    """Share of the team total credited to one player."""

    player_id: str
    name: str
    strokes: int
    contribution_pct: float

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "strokes": self.strokes,
            "contribution_pct": self.contribution_pct,
        }


@dataclass
class CompletedGameSummary:
    """
    Derived result of a finished game.

    Built from a live session on completion, or from stored rows when
    reading history. Never stored independently.
    """

    game_id: str
    course_name: str
    total_holes: int
    total_score: int
    total_par: int
    relative_to_par: int
    contributions: list[PlayerContribution] = field(default_factory=list)
    holes: list[HoleScore] = field(default_factory=list)
    user_contribution_pct: Optional[float] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def contribution_for(self, player_id: str) -> Optional[PlayerContribution]:
        for contribution in self.contributions:
            if contribution.player_id == player_id:
                return contribution
        return None

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "course_name": self.course_name,
            "total_holes": self.total_holes,
            "total_score": self.total_score,
            "total_par": self.total_par,
            "relative_to_par": self.relative_to_par,
            "contributions": [c.to_dict() for c in self.contributions],
            "holes": [h.to_dict() for h in self.holes],
            "user_contribution_pct": self.user_contribution_pct,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def build_summary(
    game_id: str,
    course_name: str,
    total_holes: int,
    players: list[Player],
    holes: list[HoleScore],
    user_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> CompletedGameSummary:
    """
    Compute totals, score-to-par and contribution percentages.

    Holes without a par contribute 0 to the par total. Contribution
    percentages are 0 for every player when no strokes were recorded.

    Args:
        game_id: Game identifier.
        course_name: Course display name.
        total_holes: Number of holes the game was set up for.
        players: Team roster.
        holes: Hole records to total.
        user_id: Signed-in user, used to pick out their own contribution.
        created_at: When the game was created.
        completed_at: When the game was completed.

    Returns:
        CompletedGameSummary for the given holes.
    """
    total_score = sum(hole.total_strokes for hole in holes)
    total_par = sum(hole.par or 0 for hole in holes)

    per_player: Counter = Counter()
    for hole in holes:
        per_player.update(hole.strokes_by_player())

    contributions = []
    for player in players:
        strokes = per_player.get(player.id, 0)
        pct = strokes / total_score * 100 if total_score else 0.0
        contributions.append(PlayerContribution(
            player_id=player.id,
            name=player.name,
            strokes=strokes,
            contribution_pct=pct,
        ))

    user_pct = None
    for player, contribution in zip(players, contributions):
        owned = user_id is not None and player.owner_user_id == user_id
        if owned or (user_id is None and player.kind == PlayerKind.HOST):
            user_pct = contribution.contribution_pct
            break

    return CompletedGameSummary(
        game_id=game_id,
        course_name=course_name,
        total_holes=total_holes,
        total_score=total_score,
        total_par=total_par,
        relative_to_par=total_score - total_par,
        contributions=contributions,
        holes=list(holes),
        user_contribution_pct=user_pct,
        created_at=created_at,
        completed_at=completed_at,
    )


@dataclass
class GameSession:
    """
    One scramble game being played.

    The holes list holds every finalized hole in order, followed by the
    in-progress hole once it has a stroke or a par. current_hole is always
    one more than the number of finalized holes.

    Attributes:
        course_name: Course display name.
        total_holes: Number of holes to play.
        players: Team roster.
        holes: Hole records, ordered by hole number.
        current_hole: Hole being played (total_holes + 1 once finished).
        state: Lifecycle state.
        hole_pars: Per-hole par from setup (may be empty).
        id: Game identifier (server id once synced, local uuid otherwise).
        user_id: Signed-in user who owns the game.
        created_at: Creation time (UTC).
        synced: False while the game header exists only locally.
    """

    course_name: str
    total_holes: int
    players: list[Player] = field(default_factory=list)
    holes: list[HoleScore] = field(default_factory=list)
    current_hole: int = 1
    state: SessionState = SessionState.ACTIVE
    hole_pars: list[int] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    synced: bool = True

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    @property
    def host(self) -> Optional[Player]:
        for player in self.players:
            if player.kind == PlayerKind.HOST:
                return player
        return None

    @property
    def finalized_holes(self) -> list[HoleScore]:
        return [hole for hole in self.holes if hole.finalized]

    @property
    def is_finished(self) -> bool:
        return self.current_hole > self.total_holes

    @property
    def course_par(self) -> Optional[int]:
        if len(self.hole_pars) == self.total_holes and self.hole_pars:
            return sum(self.hole_pars)
        return None

    def setup_par(self, hole_number: int) -> Optional[int]:
        """Par from the course setup for a hole, if one was given."""
        if 1 <= hole_number <= len(self.hole_pars):
            return self.hole_pars[hole_number - 1]
        return None

    def current_hole_score(self) -> Optional[HoleScore]:
        """The in-progress hole record, or None if nothing was recorded yet."""
        if self.holes and self.holes[-1].hole_number == self.current_hole:
            return self.holes[-1]
        return None

    def open_current_hole(self) -> HoleScore:
        """Return the in-progress hole record, creating it if needed."""
        hole = self.current_hole_score()
        if hole is None:
            hole = HoleScore(hole_number=self.current_hole)
            self.holes.append(hole)
        return hole

    def discard_current_hole_if_empty(self) -> None:
        """Drop the in-progress record when it holds neither strokes nor par."""
        hole = self.current_hole_score()
        if hole is not None and not hole.strokes and hole.par is None:
            self.holes.pop()

    def summarize(self, completed_at: Optional[datetime] = None) -> CompletedGameSummary:
        return build_summary(
            game_id=self.id,
            course_name=self.course_name,
            total_holes=self.total_holes,
            players=self.players,
            holes=self.finalized_holes,
            user_id=self.user_id,
            created_at=self.created_at,
            completed_at=completed_at,
        )

    def to_dict(self) -> dict:
        current = self.current_hole_score()
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_name": self.course_name,
            "total_holes": self.total_holes,
            "course_par": self.course_par,
            "players": [p.to_dict() for p in self.players],
            "holes": [h.to_dict() for h in self.holes],
            "current_hole": self.current_hole,
            "current_hole_strokes": current.total_strokes if current else 0,
            "current_hole_par": (
                current.par if current and current.par is not None
                else self.setup_par(self.current_hole)
            ),
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "synced": self.synced,
        }
