"""
Matchday lifecycle: auto-close at deadline, current matchday, concluded flag.

Closing only stops new predictions; it has no effect on result syncing or
scoring. A matchday is concluded once it has matches and all of them are
finished.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.exceptions import MatchdayNotFound
from quiniela.models import Match, Matchday

logger = logging.getLogger(__name__)


async def auto_close_matchdays(session: AsyncSession, now: Optional[datetime] = None) -> list[str]:
    """Close open matchdays whose deadline has passed. Returns the names closed."""
    now = now or datetime.utcnow()

    result = await session.execute(
        select(Matchday.id, Matchday.name).where(
            Matchday.is_open == True,  # noqa: E712
            Matchday.deadline.is_not(None),
            Matchday.deadline <= now,
        )
    )
    rows = result.all()
    if not rows:
        return []

    await session.execute(
        update(Matchday)
        .where(Matchday.id.in_([r.id for r in rows]), Matchday.is_open == True)  # noqa: E712
        .values(is_open=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    names = [r.name for r in rows]
    logger.info(f"[AUTO_CLOSE] Closed {len(names)} matchdays: {', '.join(names)}")
    return names


async def set_current_matchday(session: AsyncSession, matchday_id: int) -> None:
    """Mark one matchday as current and clear the flag everywhere else."""
    exists = await session.execute(select(Matchday.id).where(Matchday.id == matchday_id))
    if exists.scalar_one_or_none() is None:
        raise MatchdayNotFound(matchday_id)

    now = datetime.utcnow()
    await session.execute(
        update(Matchday)
        .where(Matchday.id != matchday_id, Matchday.is_current == True)  # noqa: E712
        .values(is_current=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(Matchday)
        .where(Matchday.id == matchday_id)
        .values(is_current=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def refresh_concluded(session: AsyncSession, matchday_id: int) -> bool:
    """Set is_concluded from the match states and return the new value."""
    result = await session.execute(
        select(
            func.count(Match.id),
            func.count(Match.id).filter(Match.is_finished == True),  # noqa: E712
        ).where(Match.matchday_id == matchday_id)
    )
    total, finished = result.one()
    concluded = total > 0 and total == finished

    await session.execute(
        update(Matchday)
        .where(Matchday.id == matchday_id, Matchday.is_concluded != concluded)
        .values(is_concluded=concluded, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    if concluded:
        logger.info(f"[MATCHDAY] Matchday {matchday_id} concluded")
    return concluded
