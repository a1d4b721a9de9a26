"""Scoring: per-prediction points, matchday recalculation, leaderboards."""

from quiniela.scoring.leaderboard import (
    LeaderboardEntry,
    build_cumulative_series,
    build_leaderboard,
    get_global_leaderboard,
    get_matchday_leaderboard,
    get_season_series,
    modes_for_scope,
)
from quiniela.scoring.points import calculate_points
from quiniela.scoring.recalculation import recalculate_matchday_points

__all__ = [
    "LeaderboardEntry",
    "build_cumulative_series",
    "build_leaderboard",
    "calculate_points",
    "get_global_leaderboard",
    "get_matchday_leaderboard",
    "get_season_series",
    "modes_for_scope",
    "recalculate_matchday_points",
]
