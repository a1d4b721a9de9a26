"""End-to-end tests for the result sync pipeline."""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from conftest import NOW, FakeProvider, feed_event
from quiniela.etl.pipeline import SyncPipeline, compute_window
from quiniela.etl.reconciler import MatchSnapshot
from quiniela.exceptions import FeedUnavailableError, MatchdayNotFound
from quiniela.models import Match, Matchday, Prediction
from quiniela.scoring.leaderboard import get_matchday_leaderboard


async def predict(session, user_id, match_id, home, away):
    session.add(Prediction(
        user_id=user_id,
        match_id=match_id,
        predicted_home_score=home,
        predicted_away_score=away,
        created_at=datetime(2026, 3, 10),
        updated_at=datetime(2026, 3, 10),
    ))
    await session.commit()


async def matchday_flags(session, matchday_id):
    result = await session.execute(
        select(Matchday.is_open, Matchday.is_concluded).where(Matchday.id == matchday_id)
    )
    return tuple(result.one())


class TestComputeWindow:

    def test_padded_calendar_dates(self):
        matches = [
            MatchSnapshot(1, 1, 1, 2, datetime(2026, 3, 14, 1, 0), None, None, False),
            MatchSnapshot(2, 1, 3, 4, datetime(2026, 3, 15, 23, 30), None, None, False),
        ]
        assert compute_window(matches, 1) == (date(2026, 3, 13), date(2026, 3, 16))


class TestAutoSync:

    @pytest.mark.asyncio
    async def test_full_cycle(self, session, seeded):
        await predict(session, "u1", seeded.m1, 2, 1)  # exact
        await predict(session, "u1", seeded.m2, 1, 0)  # right outcome
        await predict(session, "u2", seeded.m1, 0, 1)  # wrong

        provider = FakeProvider(events=[
            feed_event("America", "Chivas", 2, 1, "Match Finished"),
            feed_event("Tigres", "Rayados", 1, 3, "FT"),
            feed_event("Cruz Azul", "Pumas", None, None, "NS"),
        ])
        summary = await SyncPipeline(provider, session).run_auto_sync(now=NOW)

        assert summary.active_matches == 3
        assert (summary.updated, summary.skipped, summary.not_found, summary.failed) == (2, 1, 0, 0)
        assert summary.recalculated == [seeded.md1]
        assert summary.message == "2 matches updated, 0 without available result"
        # Window covers the three kicked-off matches only
        assert provider.calls == [(date(2026, 3, 13), date(2026, 3, 15))]

        board = await get_matchday_leaderboard(session, seeded.md1)
        ana = next(e for e in board if e.user_id == "u1")
        assert (ana.total_points, ana.exact_results, ana.total_predictions) == (3, 1, 2)
        assert ana.rank == 1

        # Cruz Azul - Pumas still pending, so the matchday is not concluded
        assert await matchday_flags(session, seeded.md1) == (False, False)

    @pytest.mark.asyncio
    async def test_concludes_matchday_when_all_finished(self, session, seeded):
        provider = FakeProvider(events=[
            feed_event("America", "Guadalajara", 1, 1, "FT"),
            feed_event("Monterrey", "Tigres", 0, 0, "FT"),
            feed_event("Cruz Azul", "Pumas", 2, 0, "AET"),
        ])
        await SyncPipeline(provider, session).run_auto_sync(now=NOW)
        assert await matchday_flags(session, seeded.md1) == (False, True)

    @pytest.mark.asyncio
    async def test_second_cycle_is_a_no_op(self, session, seeded):
        events = [feed_event("America", "Guadalajara", 1, 0, "2H")]
        await SyncPipeline(FakeProvider(events=events), session).run_auto_sync(now=NOW)
        summary = await SyncPipeline(FakeProvider(events=events), session).run_auto_sync(now=NOW)

        assert summary.updated == 0
        assert summary.recalculated == []

    @pytest.mark.asyncio
    async def test_live_scores_do_not_award_points(self, session, seeded):
        await predict(session, "u1", seeded.m1, 1, 0)
        provider = FakeProvider(events=[feed_event("America", "Guadalajara", 1, 0, "2H")])
        await SyncPipeline(provider, session).run_auto_sync(now=NOW)

        result = await session.execute(select(Prediction.points_awarded).where(Prediction.match_id == seeded.m1))
        assert result.scalar_one() is None

    @pytest.mark.asyncio
    async def test_no_active_matches_skips_fetch(self, session, seeded):
        provider = FakeProvider()
        summary = await SyncPipeline(provider, session).run_auto_sync(now=datetime(2026, 1, 1))
        assert summary.active_matches == 0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_total_feed_failure_raises(self, session, seeded):
        provider = FakeProvider(sources_ok=(), sources_failed=("live", "schedule_previous"))
        with pytest.raises(FeedUnavailableError):
            await SyncPipeline(provider, session).run_auto_sync(now=NOW)

        result = await session.execute(select(Match.home_score).where(Match.id == seeded.m1))
        assert result.scalar_one() is None


class TestMatchdaySync:

    @pytest.mark.asyncio
    async def test_ignores_kickoff_filter(self, session, seeded):
        """Manual sync covers every unfinished match of the matchday, even future ones."""
        provider = FakeProvider(events=[
            feed_event("Guadalajara", "America", 0, 1, "1H", event_date=date(2026, 3, 21)),
        ])
        summary = await SyncPipeline(provider, session).run_matchday_sync(seeded.md2, now=NOW)

        assert summary.active_matches == 1
        assert summary.updated == 1
        assert provider.calls == [(date(2026, 3, 20), date(2026, 3, 22))]

    @pytest.mark.asyncio
    async def test_reports_not_found(self, session, seeded):
        provider = FakeProvider(events=[feed_event("America", "Guadalajara", 2, 0, "FT")])
        summary = await SyncPipeline(provider, session).run_matchday_sync(seeded.md1, now=NOW)
        assert summary.updated == 1
        assert summary.not_found == 2
        assert summary.message == "1 matches updated, 2 without available result"

    @pytest.mark.asyncio
    async def test_unknown_matchday(self, session, seeded):
        with pytest.raises(MatchdayNotFound):
            await SyncPipeline(FakeProvider(), session).run_matchday_sync(9999)
