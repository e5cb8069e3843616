"""
Stats service for scramble game history.

Aggregates a user's completed games into lifetime statistics. Stats are
derived on read from stored games; nothing extra is persisted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from game import CompletedGameSummary
from models.rows import stored_to_summary
from stores.gateway import PersistenceGateway

logger = logging.getLogger(__name__)


@dataclass
class PlayerStats:
    """Lifetime statistics of one user."""
    user_id: str
    games_played: int = 0
    best_score: Optional[int] = None
    worst_score: Optional[int] = None
    average_score: float = 0.0
    best_relative_to_par: Optional[int] = None
    average_relative_to_par: float = 0.0
    total_holes_played: int = 0
    average_contribution_pct: Optional[float] = None
    last_played_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "games_played": self.games_played,
            "best_score": self.best_score,
            "worst_score": self.worst_score,
            "average_score": self.average_score,
            "best_relative_to_par": self.best_relative_to_par,
            "average_relative_to_par": self.average_relative_to_par,
            "total_holes_played": self.total_holes_played,
            "average_contribution_pct": self.average_contribution_pct,
            "last_played_at": self.last_played_at.isoformat() if self.last_played_at else None,
        }


def compute_player_stats(user_id: str, summaries: list[CompletedGameSummary]) -> PlayerStats:
    """
    Aggregate completed game summaries.

    Best and worst compare raw team totals, so games of different lengths
    are not normalized. Relative-to-par values are the fairer comparison.

    Args:
        user_id: User the summaries belong to.
        summaries: Completed games of that user.

    Returns:
        PlayerStats (all zero/None when there are no games).
    """
    stats = PlayerStats(user_id=user_id)
    if not summaries:
        return stats

    scores = [s.total_score for s in summaries]
    relatives = [s.relative_to_par for s in summaries]
    contributions = [
        s.user_contribution_pct for s in summaries
        if s.user_contribution_pct is not None
    ]

    stats.games_played = len(summaries)
    stats.best_score = min(scores)
    stats.worst_score = max(scores)
    stats.average_score = round(sum(scores) / len(scores), 2)
    stats.best_relative_to_par = min(relatives)
    stats.average_relative_to_par = round(sum(relatives) / len(relatives), 2)
    stats.total_holes_played = sum(len(s.holes) or s.total_holes for s in summaries)
    if contributions:
        stats.average_contribution_pct = round(sum(contributions) / len(contributions), 2)

    played = [s.completed_at or s.created_at for s in summaries]
    played = [dt for dt in played if dt is not None]
    stats.last_played_at = max(played) if played else None
    return stats


class StatsService:
    """Player statistics read from the persistence gateway."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def get_player_stats(self, user_id: str) -> PlayerStats:
        """
        Lifetime stats over every completed game of a user.

        Raises:
            RemoteError: If history could not be read.
        """
        stored = await self.gateway.list_completed_games(user_id, None)
        summaries = [stored_to_summary(game) for game in stored]
        logger.debug(f"Computed stats for {user_id} over {len(summaries)} games")
        return compute_player_stats(user_id, summaries)
