"""
Matchday points recalculation.

Recomputes points_awarded for every prediction of a matchday from the
current match state: finished matches are scored, unfinished ones are
cleared to NULL. Only rows whose value actually changes are written, so a
second run over unchanged data writes nothing. The predictions lock is not
consulted; scoring always follows the results.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.exceptions import MatchdayNotFound
from quiniela.models import Match, Matchday, Prediction
from quiniela.scoring.points import calculate_points
from quiniela.telemetry import record_recalculation

logger = logging.getLogger(__name__)


def points_for(
    pred_home: int,
    pred_away: int,
    real_home: Optional[int],
    real_away: Optional[int],
    is_finished: bool,
) -> Optional[int]:
    if not is_finished or real_home is None or real_away is None:
        return None
    return calculate_points(pred_home, pred_away, real_home, real_away)


async def recalculate_matchday_points(session: AsyncSession, matchday_id: int) -> int:
    """
    Recalculate a matchday and return the number of predictions changed.

    Raises MatchdayNotFound for an unknown id. Column-level selects are used
    so the values read are always the committed ones, never stale instances
    from the identity map.
    """
    exists = await session.execute(select(Matchday.id).where(Matchday.id == matchday_id))
    if exists.scalar_one_or_none() is None:
        raise MatchdayNotFound(matchday_id)

    result = await session.execute(
        select(
            Prediction.id,
            Prediction.points_awarded,
            Prediction.predicted_home_score,
            Prediction.predicted_away_score,
            Match.home_score,
            Match.away_score,
            Match.is_finished,
        )
        .join(Match, Match.id == Prediction.match_id)
        .where(Match.matchday_id == matchday_id)
    )

    changed = 0
    try:
        for row in result.all():
            points = points_for(
                row.predicted_home_score,
                row.predicted_away_score,
                row.home_score,
                row.away_score,
                row.is_finished,
            )
            if points == row.points_awarded:
                continue

            await session.execute(
                update(Prediction)
                .where(Prediction.id == row.id)
                .values(points_awarded=points)
                .execution_options(synchronize_session=False)
            )
            changed += 1

        if changed:
            await session.execute(
                update(Matchday)
                .where(Matchday.id == matchday_id)
                .values(updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
        await session.commit()
    except Exception:
        await session.rollback()
        record_recalculation("error")
        logger.exception(f"[RECALC] Matchday {matchday_id} failed")
        raise

    record_recalculation("ok")
    logger.info(f"[RECALC] Matchday {matchday_id}: {changed} predictions changed")
    return changed
