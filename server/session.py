"""
Game session controller for scramble golf.

The controller owns one user's active game. It turns user actions
(create game, add stroke, undo stroke, advance hole, complete game) into
ledger mutations, derives totals, and pushes snapshots through the
persistence gateway.

Remote failures never corrupt local state: the in-memory session is the
fallback source of truth, and a completed game whose final write fails is
parked in the sync outbox for retry.

A SessionManager keeps one controller per signed-in user.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from constants import MIN_PLAYERS
from game import (
    CompletedGameSummary,
    GameSession,
    HoleScore,
    InvalidStateError,
    Player,
    PlayerKind,
    SessionState,
    Stroke,
    ValidationError,
)
from logging_config import get_logger
from models.course import CourseCandidate, CourseDetails
from models.rows import (
    StoredGame,
    hole_to_row,
    player_to_row,
    session_to_header,
    stored_to_session,
    stored_to_summary,
    summary_to_status_update,
)
from stores.gateway import PersistenceGateway, RemoteError
from stores.outbox import PendingCompletion, SyncOutbox

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class PersistenceError(Exception):
    """
    Raised when a remote write behind a controller operation fails.

    Local state is kept where possible and attached to the error.

    Attributes:
        session: The local session that stays active (create).
        summary: The computed summary of a completed game (complete).
        queued: True if the failed write was parked for retry.
    """

    def __init__(
        self,
        message: str,
        session: Optional[GameSession] = None,
        summary: Optional[CompletedGameSummary] = None,
        queued: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.session = session
        self.summary = summary
        self.queued = queued


@dataclass
class HoleAdvance:
    """Result of moving past a hole."""
    finished: bool
    hole: HoleScore
    sync_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "finished": self.finished,
            "hole": self.hole.to_dict(),
            "sync_error": self.sync_error,
        }


def validate_setup(
    course_name: str,
    total_holes: int,
    players: list[Player],
    per_hole_par: Optional[list[int]],
    min_players: int = MIN_PLAYERS,
) -> None:
    """
    Check game setup input.

    Raises:
        ValidationError: Describing the first problem found.
    """
    if not course_name or not course_name.strip():
        raise ValidationError("Course name is required")
    if not isinstance(total_holes, int) or total_holes < 1:
        raise ValidationError("Number of holes must be at least 1")
    if len(players) < min_players:
        raise ValidationError(f"At least {min_players} players are required")
    if any(not p.name or not p.name.strip() for p in players):
        raise ValidationError("Every player needs a name")
    if len({p.id for p in players}) != len(players):
        raise ValidationError("Player ids must be unique")

    hosts = [p for p in players if p.kind == PlayerKind.HOST]
    if len(hosts) > 1:
        raise ValidationError("A game can have only one host")
    if len(players) - len(hosts) < 1:
        raise ValidationError("At least one player besides the host is required")

    if per_hole_par:
        if len(per_hole_par) != total_holes:
            raise ValidationError(
                f"Expected par for {total_holes} holes, got {len(per_hole_par)}"
            )
        if any(not isinstance(par, int) or par < 1 for par in per_hole_par):
            raise ValidationError("Par must be a positive integer")


class GameSessionController:
    """
    Owns and mutates one user's active game.

    Operations that only touch the ledger are synchronous; operations that
    reach the gateway are coroutines. The caller is expected to serialize
    actions for a user, so the controller takes no locks.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        user_id: Optional[str] = None,
        outbox: Optional[SyncOutbox] = None,
        history_limit: int = 10,
        min_players: int = MIN_PLAYERS,
        course_query_min_length: int = 3,
    ):
        """
        Initialize a controller.

        Args:
            gateway: Persistence gateway for remote reads and writes.
            user_id: Signed-in user who owns this controller's games.
            outbox: Outbox for completion writes that fail.
            history_limit: Default number of games returned by fetch_history.
            min_players: Minimum team size.
            course_query_min_length: Shortest course query sent to the API.
        """
        self.gateway = gateway
        self.user_id = user_id
        self.outbox = outbox
        self.history_limit = history_limit
        self.min_players = min_players
        self.course_query_min_length = course_query_min_length
        self.session: Optional[GameSession] = None

    def _log(self, **context):
        game_id = self.session.id if self.session else None
        return logger.with_context(user_id=self.user_id, game_id=game_id, **context)

    def _require_session(self) -> GameSession:
        if self.session is None:
            raise InvalidStateError("No game in progress")
        return self.session

    def _require_active(self) -> GameSession:
        session = self._require_session()
        if session.state != SessionState.ACTIVE:
            raise InvalidStateError(f"Game is {session.state.value}, not active")
        return session

    async def _ensure_synced(self, session: GameSession) -> None:
        """Create the game remotely if only a local copy exists."""
        if session.synced:
            return
        header = session_to_header(session)
        rows = [player_to_row(p, session.id) for p in session.players]
        game_id = await self.gateway.create_game(header, rows)
        local_id = session.id
        session.id = game_id
        session.synced = True
        self._log().info(f"Game {local_id} synced as {game_id}")

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    async def create_session(
        self,
        course_name: str,
        total_holes: int,
        players: list[Player],
        per_hole_par: Optional[list[int]] = None,
        user_id: Optional[str] = None,
    ) -> GameSession:
        """
        Start a new game.

        Args:
            course_name: Course display name.
            total_holes: Number of holes to play.
            players: Team roster (at least two, at most one host).
            per_hole_par: Optional par for every hole from the course setup.
            user_id: Owner of the game (defaults to the controller's user).

        Returns:
            The new active session.

        Raises:
            ValidationError: If the setup is invalid.
            InvalidStateError: If a game is already in progress.
            PersistenceError: If the game could not be saved remotely. The
                local session is still active and attached to the error.
        """
        if self.session is not None:
            raise InvalidStateError("A game is already in progress")

        validate_setup(course_name, total_holes, players, per_hole_par, self.min_players)

        owner = user_id or self.user_id
        roster = []
        for player in players:
            if player.kind == PlayerKind.HOST and player.owner_user_id is None:
                player = Player(
                    id=player.id,
                    name=player.name.strip(),
                    kind=player.kind,
                    owner_user_id=owner,
                )
            else:
                player = Player(
                    id=player.id,
                    name=player.name.strip(),
                    kind=player.kind,
                    owner_user_id=player.owner_user_id,
                )
            roster.append(player)

        session = GameSession(
            course_name=course_name.strip(),
            total_holes=total_holes,
            players=roster,
            hole_pars=list(per_hole_par or []),
            user_id=owner,
            synced=False,
        )
        self.session = session

        try:
            await self._ensure_synced(session)
        except RemoteError as e:
            self._log().warning(f"Game kept locally, remote create failed: {e.message}")
            raise PersistenceError(
                f"Failed to save game: {e.message}",
                session=session,
            ) from e

        self._log().info(
            f"Game created at {session.course_name} "
            f"({session.total_holes} holes, {len(roster)} players)"
        )
        await self.clear_draft()
        return session

    def record_stroke(self, player_id: str, contributor_user_id: Optional[str] = None) -> Stroke:
        """
        Credit the next stroke on the current hole to a player.

        Raises:
            InvalidStateError: If no game is active or the player is not on the team.
        """
        session = self._require_active()
        player = session.get_player(player_id)
        if player is None:
            raise InvalidStateError(f"Player {player_id} is not in this game")

        contributor = contributor_user_id or player.owner_user_id
        hole = session.open_current_hole()
        return hole.add_stroke(player.id, contributor)

    def undo_last_stroke(self) -> Optional[Stroke]:
        """
        Remove the most recent stroke on the current hole.

        Returns:
            The removed stroke, or None when the hole has no strokes.

        Raises:
            InvalidStateError: If no game is in progress.
        """
        session = self._require_session()
        if session.state != SessionState.ACTIVE:
            return None

        hole = session.current_hole_score()
        if hole is None or not hole.strokes:
            return None

        stroke = hole.pop_stroke()
        session.discard_current_hole_if_empty()
        return stroke

    def set_par(self, par: int) -> HoleScore:
        """
        Assign par to the current hole before it is finalized.

        Raises:
            ValidationError: If par is not a positive integer.
            InvalidStateError: If no game is active.
        """
        session = self._require_active()
        if not isinstance(par, int) or par < 1:
            raise ValidationError("Par must be a positive integer")
        hole = session.open_current_hole()
        hole.set_par(par)
        return hole

    async def advance_hole(self, par: Optional[int] = None) -> HoleAdvance:
        """
        Finalize the current hole and move to the next one.

        Par is taken from the argument, else the par already assigned to
        the hole, else the course setup.

        Args:
            par: Par for the current hole.

        Returns:
            HoleAdvance with finished=True once the last hole is finalized.
            A failed remote push is reported in sync_error, never raised.

        Raises:
            ValidationError: If no stroke was recorded or par is unknown.
            InvalidStateError: If no game is active.
        """
        session = self._require_active()
        hole = session.current_hole_score()
        if hole is None or not hole.strokes:
            raise ValidationError("Record at least one stroke for this hole")

        if par is None:
            par = hole.par if hole.par is not None else session.setup_par(hole.hole_number)
        if par is None:
            raise ValidationError(f"Par is required for hole {hole.hole_number}")
        hole.set_par(par)

        hole.finalized = True
        session.current_hole += 1
        finished = session.is_finished
        if finished:
            session.state = SessionState.FINISH_PENDING

        log = self._log(hole=hole.hole_number)
        log.debug(f"Hole {hole.hole_number} finalized: {hole.total_strokes} strokes, par {hole.par}")

        sync_error = None
        try:
            await self._ensure_synced(session)
            await self.gateway.upsert_hole_scores(session.id, [hole_to_row(hole, session.id)])
        except RemoteError as e:
            sync_error = e.message
            log.warning(f"Hole {hole.hole_number} not synced: {e.message}")

        return HoleAdvance(finished=finished, hole=hole, sync_error=sync_error)

    async def complete_session(self) -> CompletedGameSummary:
        """
        Commit a finished game.

        Computes the summary, writes every hole row and the completion
        fields, and closes the session. The session is closed even if the
        write fails; in that case the write is parked in the outbox.

        Returns:
            The completed game summary.

        Raises:
            InvalidStateError: If the last hole has not been finalized.
            PersistenceError: If the final write failed. The summary is
                attached, and queued tells whether it will be retried.
        """
        session = self._require_session()
        if session.state != SessionState.FINISH_PENDING:
            raise InvalidStateError("Finish every hole before completing the game")

        summary = session.summarize(completed_at=datetime.now(timezone.utc))
        status = summary_to_status_update(summary)
        log = self._log()

        error = None
        try:
            await self._ensure_synced(session)
            summary.game_id = session.id
            rows = [hole_to_row(hole, session.id) for hole in session.finalized_holes]
            await self.gateway.upsert_hole_scores(session.id, rows)
            await self.gateway.update_game_status(session.id, status)
        except RemoteError as e:
            error = e

        session.state = SessionState.COMPLETED
        self.session = None

        if error is None:
            log.info(
                f"Game completed: {summary.total_score} strokes "
                f"({summary.relative_to_par:+d} to par)"
            )
            return summary

        queued = await self._park_completion(session, status)
        log.error(f"Game completion not synced (queued={queued}): {error.message}")
        raise PersistenceError(
            f"Failed to save completed game: {error.message}",
            summary=summary,
            queued=queued,
        ) from error

    async def _park_completion(self, session: GameSession, status) -> bool:
        """Put a failed completion write in the outbox. Returns True if queued."""
        if self.outbox is None:
            return False

        entry = PendingCompletion(
            game_id=session.id,
            holes=[hole_to_row(hole, session.id) for hole in session.finalized_holes],
            status=status,
        )
        if not session.synced:
            entry.header = session_to_header(session)
            entry.players = [player_to_row(p, session.id) for p in session.players]

        try:
            await self.outbox.enqueue(entry)
        except RemoteError as e:
            logger.error(f"Could not queue completion of game {session.id}: {e.message}")
            return False
        return True

    async def flush_outbox(self) -> int:
        """
        Retry completion writes that failed earlier.

        Returns:
            Number of games synced.

        Raises:
            PersistenceError: If the outbox itself is unreachable.
        """
        if self.outbox is None:
            return 0
        try:
            return await self.outbox.flush(self.gateway)
        except RemoteError as e:
            raise PersistenceError(f"Outbox unavailable: {e.message}") from e

    async def resume_active(self, user_id: Optional[str] = None) -> Optional[GameSession]:
        """
        Load the user's most recent incomplete game into the controller.

        Returns the in-memory game unchanged when one is already active.

        Raises:
            PersistenceError: If the game could not be read.
        """
        if self.session is not None:
            return self.session

        owner = user_id or self.user_id
        try:
            stored = await self.gateway.get_active_game(owner)
        except RemoteError as e:
            raise PersistenceError(f"Failed to load active game: {e.message}") from e
        if stored is None:
            return None

        self.session = stored_to_session(stored)
        self._log().info(f"Resumed game on hole {self.session.current_hole}")
        return self.session

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def delete_session(self, game_id: str) -> bool:
        """
        Delete one of the user's games; drops the local session if it is that game.

        Returns:
            False if no such game belongs to the user.

        Raises:
            PersistenceError: If the delete failed.
        """
        is_local = self.session is not None and self.session.id == game_id
        try:
            stored = await self.gateway.get_game(game_id)
            if stored is not None:
                if not self._owns(stored):
                    return False
                await self.gateway.delete_game(game_id)
        except RemoteError as e:
            raise PersistenceError(f"Failed to delete game: {e.message}") from e

        if stored is None and not is_local:
            return False
        if is_local:
            self.session = None
        logger.info(f"Game {game_id} deleted", extra={"game_id": game_id})
        return True

    def _owns(self, stored: StoredGame) -> bool:
        return self.user_id is None or stored.game.user_id in (None, self.user_id)

    async def fetch_history(
        self,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[CompletedGameSummary]:
        """
        Completed games of a user, most recent first.

        Raises:
            PersistenceError: If history could not be read.
        """
        owner = user_id or self.user_id
        limit = limit or self.history_limit
        try:
            stored = await self.gateway.list_completed_games(owner, limit)
        except RemoteError as e:
            raise PersistenceError(f"Failed to load game history: {e.message}") from e

        summaries = [stored_to_summary(game) for game in stored]
        summaries.sort(key=lambda s: s.created_at or _EPOCH, reverse=True)
        return summaries[:limit]

    async def get_game_details(self, game_id: str) -> Optional[CompletedGameSummary]:
        """
        One stored game with holes and contributions.

        Games owned by another user are reported as missing.

        Raises:
            PersistenceError: If the game could not be read.
        """
        try:
            stored = await self.gateway.get_game(game_id)
        except RemoteError as e:
            raise PersistenceError(f"Failed to load game: {e.message}") from e
        if stored is None or not self._owns(stored):
            return None
        return stored_to_summary(stored)

    # -------------------------------------------------------------------------
    # Drafts (best effort)
    # -------------------------------------------------------------------------

    async def save_draft(self, data: dict) -> bool:
        try:
            await self.gateway.save_draft(self.user_id, data)
        except RemoteError as e:
            logger.warning(f"Draft not saved: {e.message}")
            return False
        return True

    async def load_draft(self) -> Optional[dict]:
        try:
            return await self.gateway.get_draft(self.user_id)
        except RemoteError as e:
            logger.warning(f"Draft not loaded: {e.message}")
            return None

    async def clear_draft(self) -> bool:
        try:
            await self.gateway.clear_draft(self.user_id)
        except RemoteError as e:
            logger.warning(f"Draft not cleared: {e.message}")
            return False
        return True

    # -------------------------------------------------------------------------
    # Courses (best effort)
    # -------------------------------------------------------------------------

    async def search_courses(self, query: str) -> list[CourseCandidate]:
        """Course search; short queries and failures give no results."""
        query = (query or "").strip()
        if len(query) < self.course_query_min_length:
            return []
        try:
            return await self.gateway.search_courses(query)
        except RemoteError as e:
            logger.warning(f"Course search failed: {e.message}")
            return []

    async def get_course(self, course_id: str) -> Optional[CourseDetails]:
        """Course details; failures give None (no course selected)."""
        try:
            return await self.gateway.get_course_holes(course_id)
        except RemoteError as e:
            logger.warning(f"Course lookup failed: {e.message}")
            return None


class SessionManager:
    """
    Keeps one GameSessionController per user.

    Controllers share the gateway and outbox but never share sessions.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        outbox: Optional[SyncOutbox] = None,
        history_limit: int = 10,
        min_players: int = MIN_PLAYERS,
        course_query_min_length: int = 3,
    ) -> None:
        self.gateway = gateway
        self.outbox = outbox
        self.history_limit = history_limit
        self.min_players = min_players
        self.course_query_min_length = course_query_min_length
        self.controllers: dict[str, GameSessionController] = {}
        self._in_use: dict[str, int] = {}

    def get_controller(self, user_id: str) -> GameSessionController:
        """Get the user's controller, creating it on first use."""
        controller = self.controllers.get(user_id)
        if controller is None:
            controller = GameSessionController(
                self.gateway,
                user_id=user_id,
                outbox=self.outbox,
                history_limit=self.history_limit,
                min_players=self.min_players,
                course_query_min_length=self.course_query_min_length,
            )
            self.controllers[user_id] = controller
        return controller

    def acquire_controller(self, user_id: str) -> GameSessionController:
        """Get the user's controller and hold it until release_controller."""
        controller = self.get_controller(user_id)
        self._in_use[user_id] = self._in_use.get(user_id, 0) + 1
        return controller

    def release_controller(self, user_id: str) -> None:
        """
        Drop a hold on the user's controller.

        Once nothing holds it and it has no game, the controller is removed.
        """
        holds = self._in_use.get(user_id, 0) - 1
        if holds > 0:
            self._in_use[user_id] = holds
            return
        self._in_use.pop(user_id, None)
        controller = self.controllers.get(user_id)
        if controller is not None and controller.session is None:
            self.remove_controller(user_id)

    def remove_controller(self, user_id: str) -> None:
        if user_id in self.controllers:
            del self.controllers[user_id]

    def active_sessions(self) -> list[GameSession]:
        return [c.session for c in self.controllers.values() if c.session is not None]

    async def flush_outbox(self) -> int:
        """Retry parked completion writes for every user."""
        if self.outbox is None:
            return 0
        try:
            return await self.outbox.flush(self.gateway)
        except RemoteError as e:
            raise PersistenceError(f"Outbox unavailable: {e.message}") from e
