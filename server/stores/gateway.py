"""
Persistence gateway interface.

The gateway is the only way the session controller reaches remote
storage and the course lookup API. Implementations translate their own
driver errors into RemoteError so the controller handles one failure type.
"""

from abc import ABC, abstractmethod
from typing import Optional

from models.course import CourseCandidate, CourseDetails
from models.rows import (
    GameHeader,
    GamePlayerRow,
    GameStatusUpdate,
    HoleScoreRow,
    StoredGame,
)


class RemoteError(Exception):
    """Raised when a remote call (database or course API) fails."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PersistenceGateway(ABC):
    """Remote create/read/update/delete of games, rosters and hole scores."""

    # -------------------------------------------------------------------------
    # Games
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_game(self, header: GameHeader, players: list[GamePlayerRow]) -> str:
        """Create a game and its roster. Returns the new game id."""

    @abstractmethod
    async def upsert_hole_scores(self, game_id: str, rows: list[HoleScoreRow]) -> None:
        """Insert or replace hole score rows, keyed by (game_id, hole_number)."""

    @abstractmethod
    async def update_game_status(self, game_id: str, update: GameStatusUpdate) -> None:
        """Write the completion fields of a game."""

    @abstractmethod
    async def list_completed_games(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[StoredGame]:
        """Completed games of a user with rosters and hole rows."""

    @abstractmethod
    async def delete_game(self, game_id: str) -> None:
        """Delete a game and everything that belongs to it."""

    @abstractmethod
    async def get_game(self, game_id: str) -> Optional[StoredGame]:
        """One game with roster and hole rows, or None."""

    @abstractmethod
    async def get_active_game(self, user_id: str) -> Optional[StoredGame]:
        """The user's most recent incomplete game, or None."""

    # -------------------------------------------------------------------------
    # Drafts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_draft(self, user_id: str, data: dict) -> None:
        """Store the user's draft game, replacing any previous one."""

    @abstractmethod
    async def get_draft(self, user_id: str) -> Optional[dict]:
        """The user's draft game data, or None."""

    @abstractmethod
    async def clear_draft(self, user_id: str) -> None:
        """Remove the user's draft game."""

    # -------------------------------------------------------------------------
    # Courses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def search_courses(self, query: str) -> list[CourseCandidate]:
        """Course search results for a query."""

    @abstractmethod
    async def get_course_holes(self, course_id: str) -> Optional[CourseDetails]:
        """Course details with per-hole par, or None if unavailable."""
