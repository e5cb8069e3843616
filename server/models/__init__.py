"""Models package for the Scramble tracker."""

from .course import CourseCandidate, CourseDetails, HolePar
from .rows import (
    GAME_STATUS_ACTIVE,
    GAME_STATUS_COMPLETED,
    GameHeader,
    GamePlayerRow,
    GameRow,
    GameStatusUpdate,
    HoleScoreRow,
    StoredGame,
)

__all__ = [
    # Course lookup
    "CourseCandidate",
    "CourseDetails",
    "HolePar",
    # Persistence rows
    "GAME_STATUS_ACTIVE",
    "GAME_STATUS_COMPLETED",
    "GameHeader",
    "GamePlayerRow",
    "GameRow",
    "GameStatusUpdate",
    "HoleScoreRow",
    "StoredGame",
]
