"""
Stats API router.

Lifetime statistics for the calling user, derived from completed games.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from routers.deps import get_user_id
from services.stats_service import StatsService
from stores.gateway import RemoteError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


# =============================================================================
# Response Models
# =============================================================================


class PlayerStatsResponse(BaseModel):
    """Player statistics response."""
    user_id: str
    games_played: int
    best_score: Optional[int]
    worst_score: Optional[int]
    average_score: float
    best_relative_to_par: Optional[int]
    average_relative_to_par: float
    total_holes_played: int
    average_contribution_pct: Optional[float]
    last_played_at: Optional[str]


# =============================================================================
# Dependencies
# =============================================================================

# Set by main.py during startup
_stats_service: Optional[StatsService] = None


def set_stats_service(service: Optional[StatsService]) -> None:
    """Set the stats service instance (called from main.py)."""
    global _stats_service
    _stats_service = service


def get_stats_service_dep() -> StatsService:
    """Dependency to get stats service."""
    if _stats_service is None:
        raise HTTPException(status_code=503, detail="Stats service not initialized")
    return _stats_service


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/me", response_model=PlayerStatsResponse)
async def get_my_stats(
    user_id: str = Depends(get_user_id),
    service: StatsService = Depends(get_stats_service_dep),
):
    """Lifetime stats of the calling user."""
    try:
        stats = await service.get_player_stats(user_id)
    except RemoteError as e:
        logger.warning(f"Stats unavailable for {user_id}: {e.message}")
        raise HTTPException(status_code=502, detail=f"Failed to load stats: {e.message}")
    return PlayerStatsResponse(**stats.to_dict())
