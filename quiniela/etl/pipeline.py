"""Result sync pipeline: active matches -> feed -> reconcile -> recalculate."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.config import get_settings
from quiniela.etl.base import FeedProvider
from quiniela.etl.reconciler import MatchSnapshot, reconcile_matches
from quiniela.exceptions import FeedUnavailableError, MatchdayNotFound
from quiniela.matchdays.service import refresh_concluded
from quiniela.models import Match, Matchday, Team
from quiniela.scoring.recalculation import recalculate_matchday_points
from quiniela.teams import AliasTable, TeamLookup, load_alias_table

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    updated: int = 0
    unchanged: int = 0
    not_found: int = 0
    skipped: int = 0
    failed: int = 0
    active_matches: int = 0
    recalculated: list[int] = field(default_factory=list)
    message: str = ""


def compute_window(matches: list[MatchSnapshot], pad_days: int) -> tuple[date, date]:
    """Calendar-date window covering every match, padded on both sides."""
    dates = [m.match_date.date() for m in matches]
    return min(dates) - timedelta(days=pad_days), max(dates) + timedelta(days=pad_days)


_MATCH_COLUMNS = (
    Match.id,
    Match.matchday_id,
    Match.home_team_id,
    Match.away_team_id,
    Match.match_date,
    Match.home_score,
    Match.away_score,
    Match.is_finished,
)


class SyncPipeline:
    """Runs one sync cycle against a feed provider."""

    def __init__(
        self,
        provider: FeedProvider,
        session: AsyncSession,
        alias_table: Optional[AliasTable] = None,
    ):
        self.provider = provider
        self.session = session
        self.alias_table = alias_table
        self.pad_days = get_settings().FEED_WINDOW_PAD_DAYS

    async def _build_lookup(self) -> TeamLookup:
        result = await self.session.execute(select(Team))
        alias_table = self.alias_table if self.alias_table is not None else load_alias_table()
        return TeamLookup.build(result.scalars().all(), alias_table)

    async def _sync(self, matches: list[MatchSnapshot], now: datetime) -> SyncSummary:
        summary = SyncSummary(active_matches=len(matches))
        if not matches:
            summary.message = "No active matches"
            return summary

        from_date, to_date = compute_window(matches, self.pad_days)
        fetch = await self.provider.fetch_events(from_date, to_date)
        if fetch.total_failure:
            raise FeedUnavailableError(
                f"All feed sources failed: {', '.join(fetch.sources_failed)}"
            )

        lookup = await self._build_lookup()
        result = await reconcile_matches(self.session, matches, fetch.events, lookup, now=now)

        summary.updated = result.updated
        summary.unchanged = result.unchanged
        summary.not_found = result.not_found
        summary.skipped = result.skipped
        summary.failed = result.failed

        for matchday_id in sorted(result.matchdays):
            try:
                await recalculate_matchday_points(self.session, matchday_id)
                summary.recalculated.append(matchday_id)
                await refresh_concluded(self.session, matchday_id)
            except Exception as e:
                # Rows are already committed; the next cycle recalculates again
                logger.error(f"[SYNC] Post-sync update of matchday {matchday_id} failed: {e}")

        summary.message = (
            f"{summary.updated} matches updated, {summary.not_found} without available result"
        )
        return summary

    async def run_auto_sync(self, now: Optional[datetime] = None) -> SyncSummary:
        """Sync every unfinished match whose kickoff time has passed."""
        now = now or datetime.utcnow()
        result = await self.session.execute(
            select(*_MATCH_COLUMNS).where(
                Match.is_finished == False,  # noqa: E712
                Match.match_date <= now,
            )
        )
        matches = [MatchSnapshot(*row) for row in result.all()]
        summary = await self._sync(matches, now)
        logger.info(
            f"[AUTO_SYNC] active={summary.active_matches} updated={summary.updated} "
            f"not_found={summary.not_found} skipped={summary.skipped} failed={summary.failed} "
            f"recalculated={summary.recalculated}"
        )
        return summary

    async def run_matchday_sync(self, matchday_id: int, now: Optional[datetime] = None) -> SyncSummary:
        """Sync the unfinished matches of one matchday, regardless of kickoff time."""
        now = now or datetime.utcnow()
        exists = await self.session.execute(select(Matchday.id).where(Matchday.id == matchday_id))
        if exists.scalar_one_or_none() is None:
            raise MatchdayNotFound(matchday_id)

        result = await self.session.execute(
            select(*_MATCH_COLUMNS).where(
                Match.matchday_id == matchday_id,
                Match.is_finished == False,  # noqa: E712
            )
        )
        matches = [MatchSnapshot(*row) for row in result.all()]
        summary = await self._sync(matches, now)
        logger.info(
            f"[SYNC] matchday={matchday_id} updated={summary.updated} "
            f"not_found={summary.not_found} skipped={summary.skipped} failed={summary.failed}"
        )
        return summary
