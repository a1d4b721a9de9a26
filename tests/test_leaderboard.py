"""Tests for leaderboard aggregation, ranking and season evolution."""

import random
from datetime import datetime

import pytest
from sqlalchemy import update

from quiniela.exceptions import MatchdayNotFound
from quiniela.models import Matchday, ParticipationMode, Prediction
from quiniela.scoring.leaderboard import (
    LeaderboardEntry,
    MatchdayBoard,
    PredictionRow,
    ProfileInfo,
    build_cumulative_series,
    build_leaderboard,
    get_global_leaderboard,
    get_matchday_leaderboard,
    get_season_series,
    modes_for_scope,
)

PROFILES = {
    "u1": ProfileInfo("Ana", ParticipationMode.BOTH),
    "u2": ProfileInfo("beto", ParticipationMode.WEEKLY),
    "u3": ProfileInfo("Carla", ParticipationMode.SEASON),
    "u4": ProfileInfo(None, ParticipationMode.SEASON),
}


def rows(*pairs):
    return [PredictionRow(user_id, points) for user_id, points in pairs]


def summary(board):
    return [(e.user_id, e.rank, e.total_points, e.exact_results) for e in board]


# ---------------------------------------------------------------------------
# build_leaderboard (pure)
# ---------------------------------------------------------------------------

class TestBuildLeaderboard:

    def test_aggregates(self):
        board = build_leaderboard(rows(("u1", 2), ("u1", 1), ("u1", None), ("u2", 0)), PROFILES)
        first = board[0]
        assert first.user_id == "u1"
        assert (first.total_points, first.exact_results, first.total_predictions) == (3, 1, 3)
        assert first.display_name == "Ana"
        assert first.participation_mode == ParticipationMode.BOTH

    def test_exact_results_break_ties(self):
        # u1: 2+0 (one exact), u2: 1+1 (no exact)
        board = build_leaderboard(rows(("u1", 2), ("u1", 0), ("u2", 1), ("u2", 1)), PROFILES)
        assert summary(board) == [("u1", 1, 2, 1), ("u2", 2, 2, 0)]

    def test_competition_ranking(self):
        board = build_leaderboard(
            rows(("u1", 1), ("u2", 1), ("u3", 0)),
            PROFILES,
        )
        assert [e.rank for e in board] == [1, 1, 3]
        # Residual tie ordered by display name, case-insensitive
        assert [e.display_name for e in board] == ["Ana", "beto", "Carla"]

    def test_deterministic_for_any_input_order(self):
        data = rows(("u1", 1), ("u2", 1), ("u3", 2), ("u4", 1), ("u3", 0), ("u2", None))
        expected = summary(build_leaderboard(data, PROFILES))
        for seed in range(5):
            shuffled = list(data)
            random.Random(seed).shuffle(shuffled)
            assert summary(build_leaderboard(shuffled, PROFILES)) == expected

    def test_default_display_name(self):
        board = build_leaderboard(rows(("u4", 1)), PROFILES)
        assert board[0].display_name == "Usuario"

    def test_users_without_profile_left_out(self):
        board = build_leaderboard(rows(("ghost", 2), ("u1", 1)), PROFILES)
        assert [e.user_id for e in board] == ["u1"]

    def test_without_profiles_everyone_counts(self):
        board = build_leaderboard(rows(("x", 2), ("y", 1)))
        assert [e.user_id for e in board] == ["x", "y"]

    def test_include_all_profiles(self):
        board = build_leaderboard(rows(("u1", 2)), PROFILES, include_all_profiles=True)
        assert len(board) == 4
        zero = [e for e in board if e.user_id != "u1"]
        assert all(e.total_points == 0 and e.total_predictions == 0 for e in zero)
        assert {e.rank for e in zero} == {2}

    def test_mode_filter(self):
        data = rows(("u1", 1), ("u2", 1), ("u3", 1))
        season = build_leaderboard(data, PROFILES, modes=modes_for_scope("season"))
        weekly = build_leaderboard(data, PROFILES, modes=modes_for_scope("weekly"))
        assert {e.user_id for e in season} == {"u1", "u3"}
        assert {e.user_id for e in weekly} == {"u1", "u2"}

    def test_unknown_scope(self):
        assert modes_for_scope(None) is None
        with pytest.raises(ValueError):
            modes_for_scope("monthly")


# ---------------------------------------------------------------------------
# build_cumulative_series (pure)
# ---------------------------------------------------------------------------

def entry(user_id, points, rank, name=None):
    return LeaderboardEntry(user_id=user_id, display_name=name or user_id, total_points=points, rank=rank)


class TestCumulativeSeries:

    def test_rolls_forward(self):
        boards = [
            MatchdayBoard(1, "J1", [entry("a", 5, 1), entry("b", 3, 2)]),
            MatchdayBoard(2, "J2", [entry("b", 6, 1), entry("a", 1, 2)]),
        ]
        series = {s.user_id: s for s in build_cumulative_series(boards)}

        a1, a2 = series["a"].points
        assert (a1.position, a1.points, a1.cumulative_points, a1.cumulative_position) == (1, 5, 5, 1)
        assert (a2.position, a2.points, a2.cumulative_points, a2.cumulative_position) == (2, 1, 6, 2)

        b2 = series["b"].points[1]
        assert (b2.cumulative_points, b2.cumulative_position) == (9, 1)

    def test_absent_matchday_has_no_point(self):
        boards = [
            MatchdayBoard(1, "J1", [entry("a", 4, 1)]),
            MatchdayBoard(2, "J2", [entry("b", 4, 1)]),
        ]
        series = {s.user_id: s for s in build_cumulative_series(boards)}
        assert [p.matchday_id for p in series["a"].points] == [1]
        # Tied on cumulative points after J2
        assert series["b"].points[0].cumulative_position == 1

    def test_empty(self):
        assert build_cumulative_series([]) == []


# ---------------------------------------------------------------------------
# Database-backed leaderboards
# ---------------------------------------------------------------------------

async def add_scored(session, user_id, match_id, points):
    session.add(Prediction(
        user_id=user_id,
        match_id=match_id,
        predicted_home_score=1,
        predicted_away_score=0,
        points_awarded=points,
        created_at=datetime(2026, 3, 10),
        updated_at=datetime(2026, 3, 10),
    ))
    await session.commit()


class TestLeaderboardQueries:

    @pytest.mark.asyncio
    async def test_global_includes_zero_rows(self, session, seeded):
        await add_scored(session, "u1", seeded.m1, 2)
        await add_scored(session, "u1", seeded.m2, 1)

        board = await get_global_leaderboard(session)
        assert [e.user_id for e in board] == ["u1", "u3"]
        assert summary(board)[0] == ("u1", 1, 3, 1)
        assert [e.rank for e in board] == [1, 2]

    @pytest.mark.asyncio
    async def test_global_defaults_to_season_participants(self, session, seeded):
        await add_scored(session, "u2", seeded.m1, 2)

        board = await get_global_leaderboard(session)
        assert "u2" not in {e.user_id for e in board}
        assert {e.participation_mode for e in board} <= {ParticipationMode.SEASON, ParticipationMode.BOTH}

    @pytest.mark.asyncio
    async def test_global_skips_weekly_only_matchdays(self, session, seeded):
        await add_scored(session, "u1", seeded.m1, 2)
        await add_scored(session, "u1", seeded.m4, 2)
        await session.execute(
            update(Matchday).where(Matchday.id == seeded.md2).values(competition_mode=ParticipationMode.WEEKLY)
        )
        await session.commit()

        board = await get_global_leaderboard(session)
        ana = next(e for e in board if e.user_id == "u1")
        assert (ana.total_points, ana.total_predictions) == (2, 1)

        # The weekly matchday keeps its own board
        weekly = await get_matchday_leaderboard(session, seeded.md2)
        assert summary(weekly) == [("u1", 1, 2, 1)]

    @pytest.mark.asyncio
    async def test_global_season_scope(self, session, seeded):
        board = await get_global_leaderboard(session, modes_for_scope("season"))
        assert {e.user_id for e in board} == {"u1", "u3"}

    @pytest.mark.asyncio
    async def test_matchday_only_participants(self, session, seeded):
        await add_scored(session, "u2", seeded.m1, 1)
        await add_scored(session, "u3", seeded.m4, 2)

        board = await get_matchday_leaderboard(session, seeded.md1)
        assert [e.user_id for e in board] == ["u2"]

    @pytest.mark.asyncio
    async def test_matchday_unknown(self, session, seeded):
        with pytest.raises(MatchdayNotFound):
            await get_matchday_leaderboard(session, 9999)

    @pytest.mark.asyncio
    async def test_season_series_uses_concluded_matchdays(self, session, seeded):
        await add_scored(session, "u1", seeded.m1, 2)
        await add_scored(session, "u2", seeded.m4, 1)

        assert await get_season_series(session) == []

        await session.execute(update(Matchday).where(Matchday.id == seeded.md1).values(is_concluded=True))
        await session.commit()

        series = await get_season_series(session)
        assert [s.user_id for s in series] == ["u1"]
        assert series[0].points[0].matchday_name == "Jornada 10"
        assert series[0].points[0].cumulative_points == 2
