"""Prediction submission (one row per user and match, written as an upsert)."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.exceptions import MatchNotFound, PredictionLocked
from quiniela.models import Match, Matchday, Prediction

logger = logging.getLogger(__name__)


def _insert_for(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def upsert_prediction(
    session: AsyncSession,
    user_id: str,
    match_id: int,
    home: int,
    away: int,
    now: Optional[datetime] = None,
) -> int:
    """
    Insert or update the user's prediction for a match and return its id.

    Raises ValueError for negative scores, MatchNotFound for an unknown
    match, and PredictionLocked once the matchday is closed or the match
    has kicked off.
    """
    if home < 0 or away < 0:
        raise ValueError("Predicted scores must be non-negative")
    now = now or datetime.utcnow()

    result = await session.execute(
        select(Match.id, Match.match_date, Match.is_finished, Matchday.is_open)
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Match.id == match_id)
    )
    row = result.one_or_none()
    if row is None:
        raise MatchNotFound(match_id)

    if not row.is_open:
        raise PredictionLocked(f"Matchday for match {match_id} is closed")
    if row.is_finished or row.match_date <= now:
        raise PredictionLocked(f"Match {match_id} has already started")

    insert = _insert_for(session)
    stmt = insert(Prediction).values(
        user_id=user_id,
        match_id=match_id,
        predicted_home_score=home,
        predicted_away_score=away,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "match_id"],
        set_={
            "predicted_home_score": stmt.excluded.predicted_home_score,
            "predicted_away_score": stmt.excluded.predicted_away_score,
            "updated_at": stmt.excluded.updated_at,
        },
    ).returning(Prediction.id)

    result = await session.execute(stmt)
    prediction_id = result.scalar_one()
    await session.commit()

    logger.info(f"Upserted prediction {prediction_id}: user={user_id} match={match_id} {home}-{away}")
    return prediction_id
