"""
Quiniela API routes.

Admin (service API key or admin user):
- POST /sync/matchday, POST /sync/auto
- POST /matchdays/auto-close, POST /matchdays/{id}/recalculate,
  POST /matchdays/{id}/current

Participants (X-User-Id):
- PUT /predictions

Public, rate limited:
- GET /leaderboard, GET /matchdays/{id}/leaderboard, GET /leaderboard/evolution
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.config import get_settings
from quiniela.database import get_async_session
from quiniela.etl.pipeline import SyncPipeline, SyncSummary
from quiniela.etl.thesportsdb import TheSportsDBProvider
from quiniela.exceptions import (
    FeedConfigurationError,
    FeedError,
    MatchdayNotFound,
    MatchNotFound,
    PredictionLocked,
)
from quiniela.matchdays.service import auto_close_matchdays, set_current_matchday
from quiniela.predictions.service import upsert_prediction
from quiniela.scoring.leaderboard import (
    LeaderboardEntry,
    get_global_leaderboard,
    get_matchday_leaderboard,
    get_season_series,
    modes_for_scope,
)
from quiniela.scoring.recalculation import recalculate_matchday_points
from quiniela.security import get_current_user_id, limiter, require_admin
from quiniela.telemetry import job_status_for_error, record_job_run

router = APIRouter(tags=["quiniela"])
settings = get_settings()
logger = logging.getLogger(__name__)

SCOPE_PATTERN = "^(weekly|season)$"


# =============================================================================
# Schemas
# =============================================================================


class SyncMatchdayRequest(BaseModel):
    matchday_id: int


class SyncResponse(BaseModel):
    updated: int
    not_found: int
    skipped: int
    failed: int
    message: str
    recalculated: list[int] = []


class AutoCloseResponse(BaseModel):
    closed: list[str]


class RecalculateResponse(BaseModel):
    matchday_id: int
    changed: int


class CurrentMatchdayResponse(BaseModel):
    matchday_id: int
    is_current: bool


class PredictionRequest(BaseModel):
    match_id: int
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)


class PredictionResponse(BaseModel):
    id: int
    match_id: int
    home_score: int
    away_score: int


class LeaderboardRow(BaseModel):
    user_id: str
    display_name: str
    total_points: int
    exact_results: int
    total_predictions: int
    participation_mode: str
    rank: int


class SeriesPointResponse(BaseModel):
    matchday_id: int
    matchday_name: str
    position: int
    points: int
    cumulative_points: int
    cumulative_position: int


class ParticipantSeriesResponse(BaseModel):
    user_id: str
    display_name: str
    points: list[SeriesPointResponse]


def _sync_response(summary: SyncSummary) -> SyncResponse:
    return SyncResponse(
        updated=summary.updated,
        not_found=summary.not_found,
        skipped=summary.skipped,
        failed=summary.failed,
        message=summary.message,
        recalculated=summary.recalculated,
    )


def _leaderboard_rows(entries: list[LeaderboardEntry]) -> list[LeaderboardRow]:
    return [
        LeaderboardRow(
            user_id=e.user_id,
            display_name=e.display_name,
            total_points=e.total_points,
            exact_results=e.exact_results,
            total_predictions=e.total_predictions,
            participation_mode=e.participation_mode.value,
            rank=e.rank,
        )
        for e in entries
    ]


def _record_manual_sync(status: str, start_time: float) -> None:
    record_job_run(job="manual_sync", status=status, duration_ms=(time.time() - start_time) * 1000)


def _create_provider() -> TheSportsDBProvider:
    try:
        return TheSportsDBProvider()
    except FeedConfigurationError as e:
        logger.error(f"Feed misconfigured: {e}")
        raise HTTPException(status_code=503, detail="Results feed not configured")


# =============================================================================
# Sync
# =============================================================================


@router.post("/sync/matchday", response_model=SyncResponse)
@limiter.limit("10/minute")
async def sync_matchday(
    request: Request,
    body: SyncMatchdayRequest,
    session: AsyncSession = Depends(get_async_session),
    actor: str = Depends(require_admin),
):
    """
    Sync results for the unfinished matches of one matchday.

    Touched matchdays are recalculated before returning.
    """
    logger.info(f"Matchday sync request: matchday={body.matchday_id} actor={actor}")

    provider = _create_provider()
    start_time = time.time()
    try:
        pipeline = SyncPipeline(provider=provider, session=session)
        summary = await pipeline.run_matchday_sync(body.matchday_id)
        _record_manual_sync("partial" if summary.failed else "ok", start_time)
        return _sync_response(summary)
    except MatchdayNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FeedError as e:
        logger.error(f"Matchday sync failed: {e}")
        _record_manual_sync(job_status_for_error(e), start_time)
        raise HTTPException(status_code=502, detail=f"Results feed unavailable: {e}")
    finally:
        await provider.close()


@router.post("/sync/auto", response_model=SyncResponse)
@limiter.limit("10/minute")
async def sync_auto(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
    actor: str = Depends(require_admin),
):
    """Run the scheduled results sync on demand."""
    logger.info(f"Auto sync requested by {actor}")

    provider = _create_provider()
    start_time = time.time()
    try:
        pipeline = SyncPipeline(provider=provider, session=session)
        summary = await pipeline.run_auto_sync()
        _record_manual_sync("partial" if summary.failed else "ok", start_time)
        return _sync_response(summary)
    except FeedError as e:
        logger.error(f"Auto sync failed: {e}")
        _record_manual_sync(job_status_for_error(e), start_time)
        raise HTTPException(status_code=502, detail=f"Results feed unavailable: {e}")
    finally:
        await provider.close()


# =============================================================================
# Matchdays
# =============================================================================


@router.post("/matchdays/auto-close", response_model=AutoCloseResponse)
async def close_matchdays(
    session: AsyncSession = Depends(get_async_session),
    _: str = Depends(require_admin),
):
    """Close every open matchday whose deadline has passed."""
    closed = await auto_close_matchdays(session)
    return AutoCloseResponse(closed=closed)


@router.post("/matchdays/{matchday_id}/recalculate", response_model=RecalculateResponse)
async def recalculate_matchday(
    matchday_id: int,
    session: AsyncSession = Depends(get_async_session),
    _: str = Depends(require_admin),
):
    """Recalculate points of one matchday from the stored results."""
    try:
        changed = await recalculate_matchday_points(session, matchday_id)
    except MatchdayNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RecalculateResponse(matchday_id=matchday_id, changed=changed)


@router.post("/matchdays/{matchday_id}/current", response_model=CurrentMatchdayResponse)
async def make_current_matchday(
    matchday_id: int,
    session: AsyncSession = Depends(get_async_session),
    _: str = Depends(require_admin),
):
    """Mark a matchday as the current one."""
    try:
        await set_current_matchday(session, matchday_id)
    except MatchdayNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CurrentMatchdayResponse(matchday_id=matchday_id, is_current=True)


# =============================================================================
# Predictions
# =============================================================================


@router.put("/predictions", response_model=PredictionResponse)
async def put_prediction(
    body: PredictionRequest,
    session: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Create or replace the caller's prediction for a match."""
    try:
        prediction_id = await upsert_prediction(
            session, user_id, body.match_id, body.home_score, body.away_score
        )
    except MatchNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PredictionLocked as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PredictionResponse(
        id=prediction_id,
        match_id=body.match_id,
        home_score=body.home_score,
        away_score=body.away_score,
    )


# =============================================================================
# Leaderboards
# =============================================================================


@router.get("/leaderboard", response_model=list[LeaderboardRow])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def global_leaderboard(
    request: Request,
    mode: Optional[str] = Query(None, pattern=SCOPE_PATTERN),
    session: AsyncSession = Depends(get_async_session),
):
    """Season-wide leaderboard. Defaults to season/both participants; mode=weekly switches the filter."""
    entries = await get_global_leaderboard(session, modes_for_scope(mode))
    return _leaderboard_rows(entries)


@router.get("/leaderboard/evolution", response_model=list[ParticipantSeriesResponse])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def leaderboard_evolution(
    request: Request,
    mode: Optional[str] = Query(None, pattern=SCOPE_PATTERN),
    session: AsyncSession = Depends(get_async_session),
):
    """Cumulative points and positions across concluded matchdays."""
    series = await get_season_series(session, modes_for_scope(mode))
    return [
        ParticipantSeriesResponse(
            user_id=s.user_id,
            display_name=s.display_name,
            points=[SeriesPointResponse(**vars(p)) for p in s.points],
        )
        for s in series
    ]


@router.get("/matchdays/{matchday_id}/leaderboard", response_model=list[LeaderboardRow])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def matchday_leaderboard(
    request: Request,
    matchday_id: int,
    mode: Optional[str] = Query(None, pattern=SCOPE_PATTERN),
    session: AsyncSession = Depends(get_async_session),
):
    """Leaderboard of one matchday."""
    try:
        entries = await get_matchday_leaderboard(session, matchday_id, modes_for_scope(mode))
    except MatchdayNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _leaderboard_rows(entries)
