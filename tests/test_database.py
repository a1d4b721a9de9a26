"""Tests for database URL handling and the job session helper."""

import pytest
from sqlalchemy.exc import OperationalError

from quiniela import database
from quiniela.database import get_database_url, get_session_with_retry


class FlakyConnectSession:
    """Session stand-in whose connection() fails a fixed number of times overall."""

    failures_left = 0
    opened = 0
    closed = 0

    def __init__(self):
        FlakyConnectSession.opened += 1

    async def connection(self):
        if FlakyConnectSession.failures_left:
            FlakyConnectSession.failures_left -= 1
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def close(self):
        FlakyConnectSession.closed += 1


@pytest.fixture
def flaky(monkeypatch):
    FlakyConnectSession.opened = FlakyConnectSession.closed = 0
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr(database, "AsyncSessionLocal", FlakyConnectSession)
    monkeypatch.setattr(database.asyncio, "sleep", fake_sleep)
    return sleeps


class TestDatabaseUrl:

    def test_async_drivers(self):
        assert get_database_url("sqlite:///./q.db") == "sqlite+aiosqlite:///./q.db"
        assert get_database_url("postgres://u@h/db") == "postgresql+asyncpg://u@h/db"
        assert get_database_url("postgresql://u@h/db") == "postgresql+asyncpg://u@h/db"
        assert get_database_url("postgresql+asyncpg://u@h/db") == "postgresql+asyncpg://u@h/db"


class TestSessionWithRetry:

    @pytest.mark.asyncio
    async def test_retries_with_doubling_delay(self, flaky):
        FlakyConnectSession.failures_left = 2
        async with get_session_with_retry(max_retries=3, retry_delay=0.5) as session:
            assert isinstance(session, FlakyConnectSession)

        assert flaky == [0.5, 1.0]
        assert FlakyConnectSession.opened == 3
        assert FlakyConnectSession.closed == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, flaky):
        FlakyConnectSession.failures_left = 5
        with pytest.raises(OperationalError):
            async with get_session_with_retry(max_retries=2, retry_delay=1.0):
                pass

        assert flaky == [1.0]
        assert FlakyConnectSession.closed == 2
