"""Services package for Scramble tracker integrations and aggregation."""

from .course_api import CourseApiClient, parse_course_details, pick_tee
from .stats_service import PlayerStats, StatsService, compute_player_stats

__all__ = [
    "CourseApiClient",
    "parse_course_details",
    "pick_tee",
    "PlayerStats",
    "StatsService",
    "compute_player_stats",
]
