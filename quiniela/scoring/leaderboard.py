"""
Leaderboards and season evolution.

Aggregation and ranking are pure functions over prediction rows so they can
be tested without a database; the get_* helpers only load the rows.

Ordering: total points desc, exact results desc, then display name
(case-insensitive) and user id. Participants tied on points and exact
results share a rank (1, 1, 3).
"""

from dataclasses import dataclass, field
from typing import Collection, Iterable, Mapping, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.exceptions import MatchdayNotFound
from quiniela.models import Match, Matchday, ParticipationMode, Prediction, Profile
from quiniela.scoring.points import EXACT_POINTS

DEFAULT_DISPLAY_NAME = "Usuario"

# Which participation modes each leaderboard scope includes
SCOPE_MODES = {
    "weekly": frozenset({ParticipationMode.WEEKLY, ParticipationMode.BOTH}),
    "season": frozenset({ParticipationMode.SEASON, ParticipationMode.BOTH}),
}
SEASON_MODES = SCOPE_MODES["season"]


def modes_for_scope(scope: Optional[str]) -> Optional[frozenset[ParticipationMode]]:
    """Map a scope name ("weekly" / "season") to a mode filter; None means everyone."""
    if scope is None:
        return None
    try:
        return SCOPE_MODES[scope]
    except KeyError:
        raise ValueError(f"Unknown leaderboard scope {scope!r}")


class PredictionRow(NamedTuple):
    user_id: str
    points_awarded: Optional[int]


class ProfileInfo(NamedTuple):
    display_name: Optional[str]
    participation_mode: ParticipationMode


@dataclass
class LeaderboardEntry:
    user_id: str
    display_name: str
    total_points: int = 0
    exact_results: int = 0
    total_predictions: int = 0
    participation_mode: ParticipationMode = ParticipationMode.WEEKLY
    rank: int = 0


def _sort_key(entry: LeaderboardEntry) -> tuple:
    return (-entry.total_points, -entry.exact_results, entry.display_name.casefold(), entry.user_id)


def rank_entries(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Return entries in leaderboard order with competition ranks assigned."""
    ordered = sorted(entries, key=_sort_key)
    previous = None
    for index, entry in enumerate(ordered):
        current = (entry.total_points, entry.exact_results)
        if current != previous:
            entry.rank = index + 1
            previous = current
        else:
            entry.rank = ordered[index - 1].rank
    return ordered


def build_leaderboard(
    rows: Iterable[PredictionRow],
    profiles: Optional[Mapping[str, ProfileInfo]] = None,
    modes: Optional[Collection[ParticipationMode]] = None,
    include_all_profiles: bool = False,
) -> list[LeaderboardEntry]:
    """
    Aggregate prediction rows into a ranked leaderboard.

    NULL points count as 0 toward the total but the prediction still counts
    toward total_predictions. When profiles are given, users without a
    profile are left out and include_all_profiles adds zero rows for
    profiles with no predictions. modes filters by participation mode.
    """
    entries: dict[str, LeaderboardEntry] = {}

    def entry_for(user_id: str) -> Optional[LeaderboardEntry]:
        entry = entries.get(user_id)
        if entry is not None:
            return entry
        if profiles is not None:
            info = profiles.get(user_id)
            if info is None:
                return None
            entry = LeaderboardEntry(
                user_id=user_id,
                display_name=info.display_name or DEFAULT_DISPLAY_NAME,
                participation_mode=info.participation_mode,
            )
        else:
            entry = LeaderboardEntry(user_id=user_id, display_name=DEFAULT_DISPLAY_NAME)
        entries[user_id] = entry
        return entry

    if include_all_profiles and profiles is not None:
        for user_id in profiles:
            entry_for(user_id)

    for row in rows:
        entry = entry_for(row.user_id)
        if entry is None:
            continue
        entry.total_predictions += 1
        if row.points_awarded is not None:
            entry.total_points += row.points_awarded
            if row.points_awarded == EXACT_POINTS:
                entry.exact_results += 1

    selected = [
        e for e in entries.values()
        if modes is None or e.participation_mode in modes
    ]
    return rank_entries(selected)


async def _load_profiles(session: AsyncSession) -> dict[str, ProfileInfo]:
    result = await session.execute(
        select(Profile.user_id, Profile.display_name, Profile.participation_mode)
    )
    return {
        row.user_id: ProfileInfo(row.display_name, ParticipationMode(row.participation_mode))
        for row in result.all()
    }


async def get_matchday_leaderboard(
    session: AsyncSession,
    matchday_id: int,
    modes: Optional[Collection[ParticipationMode]] = None,
) -> list[LeaderboardEntry]:
    """Leaderboard of one matchday: participants with at least one prediction in it."""
    exists = await session.execute(select(Matchday.id).where(Matchday.id == matchday_id))
    if exists.scalar_one_or_none() is None:
        raise MatchdayNotFound(matchday_id)

    result = await session.execute(
        select(Prediction.user_id, Prediction.points_awarded)
        .join(Match, Match.id == Prediction.match_id)
        .where(Match.matchday_id == matchday_id)
    )
    rows = [PredictionRow(r.user_id, r.points_awarded) for r in result.all()]
    return build_leaderboard(rows, await _load_profiles(session), modes)


async def get_global_leaderboard(
    session: AsyncSession,
    modes: Optional[Collection[ParticipationMode]] = None,
) -> list[LeaderboardEntry]:
    """
    Season-wide leaderboard over every profile, zero rows included.

    Only predictions on season matchdays (competition_mode season/both)
    count. Without modes the board keeps season and both participants.
    """
    if modes is None:
        modes = SEASON_MODES
    result = await session.execute(
        select(Prediction.user_id, Prediction.points_awarded)
        .join(Match, Match.id == Prediction.match_id)
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Matchday.competition_mode.in_(list(SEASON_MODES)))
    )
    rows = [PredictionRow(r.user_id, r.points_awarded) for r in result.all()]
    return build_leaderboard(rows, await _load_profiles(session), modes, include_all_profiles=True)


# =============================================================================
# Season evolution
# =============================================================================


@dataclass
class SeriesPoint:
    matchday_id: int
    matchday_name: str
    position: int
    points: int
    cumulative_points: int
    cumulative_position: int


@dataclass
class ParticipantSeries:
    user_id: str
    display_name: str
    points: list[SeriesPoint] = field(default_factory=list)


class MatchdayBoard(NamedTuple):
    matchday_id: int
    matchday_name: str
    entries: list[LeaderboardEntry]


def build_cumulative_series(boards: Iterable[MatchdayBoard]) -> list[ParticipantSeries]:
    """
    Roll per-matchday leaderboards (already in chronological order) into
    per-participant series.

    A participant gets a point only for matchdays they appear in. The
    cumulative position ranks everyone seen so far by cumulative points,
    with the same competition ranking as the leaderboards.
    """
    cumulative: dict[str, int] = {}
    participants: dict[str, ParticipantSeries] = {}

    for board in boards:
        for entry in board.entries:
            cumulative[entry.user_id] = cumulative.get(entry.user_id, 0) + entry.total_points
            if entry.user_id not in participants:
                participants[entry.user_id] = ParticipantSeries(entry.user_id, entry.display_name)

        standings = sorted(cumulative.items(), key=lambda item: (-item[1], item[0]))
        cumulative_rank: dict[str, int] = {}
        for index, (user_id, total) in enumerate(standings):
            if index > 0 and standings[index - 1][1] == total:
                cumulative_rank[user_id] = cumulative_rank[standings[index - 1][0]]
            else:
                cumulative_rank[user_id] = index + 1

        for entry in board.entries:
            participants[entry.user_id].points.append(
                SeriesPoint(
                    matchday_id=board.matchday_id,
                    matchday_name=board.matchday_name,
                    position=entry.rank,
                    points=entry.total_points,
                    cumulative_points=cumulative[entry.user_id],
                    cumulative_position=cumulative_rank[entry.user_id],
                )
            )

    return list(participants.values())


async def get_season_series(
    session: AsyncSession,
    modes: Optional[Collection[ParticipationMode]] = None,
) -> list[ParticipantSeries]:
    """Season evolution over concluded season matchdays, ordered by start date."""
    if modes is None:
        modes = SEASON_MODES
    result = await session.execute(
        select(Matchday.id, Matchday.name)
        .where(
            Matchday.is_concluded == True,  # noqa: E712
            Matchday.competition_mode.in_(list(SEASON_MODES)),
        )
        .order_by(Matchday.start_date, Matchday.id)
    )
    boards = []
    for row in result.all():
        entries = await get_matchday_leaderboard(session, row.id, modes)
        boards.append(MatchdayBoard(row.id, row.name, entries))
    return build_cumulative_series(boards)
