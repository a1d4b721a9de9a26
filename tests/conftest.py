"""Shared fixtures: in-memory database, seed data, fake feed provider."""

import os

# Settings are cached on first import; pin them before anything imports quiniela
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["THESPORTSDB_API_KEY"] = "test-feed-key"
os.environ["API_KEY"] = "test-admin-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["TEAM_ALIASES_PATH"] = ""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from quiniela.etl.base import FeedEvent, FeedFetchResult, FeedProvider
from quiniela.models import Match, Matchday, ParticipationMode, Profile, Team, UserRole

NOW = datetime(2026, 3, 14, 23, 0)


class FakeProvider(FeedProvider):
    """In-memory feed returning a fixed fetch result."""

    name = "fake"

    def __init__(self, events=(), sources_ok=("live",), sources_failed=()):
        self.events = list(events)
        self.sources_ok = list(sources_ok)
        self.sources_failed = list(sources_failed)
        self.calls = []
        self.closed = False

    async def fetch_events(self, from_date, to_date):
        self.calls.append((from_date, to_date))
        return FeedFetchResult(
            events=list(self.events),
            sources_ok=list(self.sources_ok),
            sources_failed=list(self.sources_failed),
        )

    async def close(self):
        self.closed = True


def feed_event(home, away, home_score, away_score, status, event_date=None, event_id=None):
    return FeedEvent(
        home_name=home,
        away_name=away,
        home_score=home_score,
        away_score=away_score,
        status=status,
        event_date=event_date or NOW.date(),
        event_id=event_id,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session):
    """
    Six Liga MX teams, one closed matchday with three kicked-off matches,
    one future open matchday, three profiles and an admin role.
    """
    teams = {
        "america": Team(name="Club América", short_name="AME"),
        "guadalajara": Team(name="CD Guadalajara", short_name="GDL"),
        "monterrey": Team(name="CF Monterrey", short_name="MTY"),
        "tigres": Team(name="Tigres UANL", short_name="TIG"),
        "cruz_azul": Team(name="Cruz Azul", short_name="CAZ"),
        "pumas": Team(name="Pumas UNAM", short_name="PUM"),
    }
    session.add_all(teams.values())
    await session.flush()

    md1 = Matchday(
        name="Jornada 10",
        start_date=NOW - timedelta(hours=4),
        deadline=NOW - timedelta(hours=5),
        is_open=False,
        is_current=True,
    )
    md2 = Matchday(
        name="Jornada 11",
        start_date=NOW + timedelta(days=7),
        deadline=NOW + timedelta(days=7, hours=-1),
        is_open=True,
    )
    session.add_all([md1, md2])
    await session.flush()

    m1 = Match(
        matchday_id=md1.id,
        home_team_id=teams["america"].id,
        away_team_id=teams["guadalajara"].id,
        match_date=NOW - timedelta(hours=4),
    )
    m2 = Match(
        matchday_id=md1.id,
        home_team_id=teams["monterrey"].id,
        away_team_id=teams["tigres"].id,
        match_date=NOW - timedelta(hours=3),
    )
    m3 = Match(
        matchday_id=md1.id,
        home_team_id=teams["cruz_azul"].id,
        away_team_id=teams["pumas"].id,
        match_date=NOW - timedelta(hours=1),
    )
    m4 = Match(
        matchday_id=md2.id,
        home_team_id=teams["guadalajara"].id,
        away_team_id=teams["america"].id,
        match_date=NOW + timedelta(days=7),
    )
    session.add_all([m1, m2, m3, m4])

    session.add_all([
        Profile(user_id="u1", display_name="Ana", participation_mode=ParticipationMode.BOTH),
        Profile(user_id="u2", display_name="beto", participation_mode=ParticipationMode.WEEKLY),
        Profile(user_id="u3", display_name="Carla", participation_mode=ParticipationMode.SEASON),
        UserRole(user_id="admin-1", role="admin"),
        UserRole(user_id="u2", role="user"),
    ])
    await session.commit()

    return SimpleNamespace(
        team_ids={key: team.id for key, team in teams.items()},
        md1=md1.id,
        md2=md2.id,
        m1=m1.id,
        m2=m2.id,
        m3=m3.id,
        m4=m4.id,
    )
