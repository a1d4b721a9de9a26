"""
Feed events -> internal match rows.

For every active match the reconciler looks for the feed event between the
same two teams (in either orientation), decides the new score/finished
state, and writes it with a row-scoped conditional UPDATE committed on its
own. One bad row never blocks the others, and a row that is already
finished is never touched again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, NamedTuple, Optional, Union

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from quiniela.etl.base import FeedEvent
from quiniela.models import Match, MatchState, derive_state
from quiniela.teams import TeamLookup, resolve_team_detail
from quiniela.telemetry import record_reconcile_outcome, record_unresolved_team

logger = logging.getLogger(__name__)

FINISHED_STATUSES = frozenset({"ft", "aet", "pen"})
NOT_STARTED_STATUSES = frozenset({"ns", "not started"})
NOT_PLAYABLE_STATUSES = frozenset({"pst", "canc", "abd", "postponed", "cancelled", "abandoned"})


class StatusClass(str, Enum):
    FINISHED = "finished"
    NOT_STARTED = "not_started"
    NOT_PLAYABLE = "not_playable"  # postponed, cancelled, abandoned
    IN_PLAY = "in_play"


def classify_status(status: Optional[str]) -> StatusClass:
    """Map a raw provider status onto the four states the reconciler acts on."""
    s = (status or "").strip().lower()
    if s in FINISHED_STATUSES or "finished" in s or "final" in s:
        return StatusClass.FINISHED
    if s in NOT_STARTED_STATUSES or "not started" in s:
        return StatusClass.NOT_STARTED
    if s in NOT_PLAYABLE_STATUSES:
        return StatusClass.NOT_PLAYABLE
    return StatusClass.IN_PLAY


class ScoreUpdate(NamedTuple):
    home_score: int
    away_score: int
    is_finished: bool


def decide_update(
    home_score: Optional[int],
    away_score: Optional[int],
    status: Optional[str],
) -> Optional[ScoreUpdate]:
    """
    Decide the new match state from scores already in internal orientation.

    Returns None when the match must be left untouched: not started, not
    playable, or no score on either side. Otherwise a missing side is
    filled with 0.
    """
    status_class = classify_status(status)
    if status_class in (StatusClass.NOT_STARTED, StatusClass.NOT_PLAYABLE):
        return None
    if home_score is None and away_score is None:
        return None
    return ScoreUpdate(
        home_score=home_score if home_score is not None else 0,
        away_score=away_score if away_score is not None else 0,
        is_finished=status_class == StatusClass.FINISHED,
    )


class MatchSnapshot(NamedTuple):
    """Plain copy of the match columns the reconciler reads.

    A per-row rollback expires every ORM instance in the session, so the
    loop works on snapshots and never on live Match objects.
    """

    id: int
    matchday_id: int
    home_team_id: int
    away_team_id: int
    match_date: datetime
    home_score: Optional[int]
    away_score: Optional[int]
    is_finished: bool

    @classmethod
    def from_match(cls, match: Match) -> "MatchSnapshot":
        return cls(
            id=match.id,
            matchday_id=match.matchday_id,
            home_team_id=match.home_team_id,
            away_team_id=match.away_team_id,
            match_date=match.match_date,
            home_score=match.home_score,
            away_score=match.away_score,
            is_finished=match.is_finished,
        )

    @property
    def state(self) -> MatchState:
        return derive_state(self.home_score, self.away_score, self.is_finished)


class ResolvedEvent(NamedTuple):
    event: FeedEvent
    home_team_id: int
    away_team_id: int


class EventMatch(NamedTuple):
    event: FeedEvent
    swapped: bool


def resolve_events(events: Iterable[FeedEvent], lookup: TeamLookup) -> list[ResolvedEvent]:
    """Attach team ids to events; events with an unresolved side are dropped."""
    resolved = []
    reported: set[str] = set()

    for event in events:
        ids = []
        for name in (event.home_name, event.away_name):
            resolution = resolve_team_detail(name, lookup)
            if resolution.team_id is None and name not in reported:
                reported.add(name)
                record_unresolved_team(resolution.method)
                logger.info(
                    f"[RECONCILE] Unresolved feed team {name!r} ({resolution.method}, aliases v{lookup.alias_version})"
                )
            ids.append(resolution.team_id)

        if ids[0] is None or ids[1] is None:
            continue
        resolved.append(ResolvedEvent(event, ids[0], ids[1]))

    return resolved


def find_event(match: MatchSnapshot, resolved: list[ResolvedEvent]) -> Optional[EventMatch]:
    """
    Find the event for a match in either orientation.

    When several qualify the one dated closest to the match wins, first one
    on ties. Events reach here dated: the provider drops undated ones with
    the window filter.
    """
    match_day = match.match_date.date()
    best: Optional[EventMatch] = None
    best_distance = None

    for item in resolved:
        if item.home_team_id == match.home_team_id and item.away_team_id == match.away_team_id:
            swapped = False
        elif item.home_team_id == match.away_team_id and item.away_team_id == match.home_team_id:
            swapped = True
        else:
            continue

        distance = abs((item.event.event_date - match_day).days)
        if best is None or distance < best_distance:
            best = EventMatch(item.event, swapped)
            best_distance = distance

    return best


@dataclass
class ReconcileResult:
    updated: int = 0
    unchanged: int = 0
    not_found: int = 0
    skipped: int = 0
    failed: int = 0
    matchdays: set[int] = field(default_factory=set)


async def reconcile_matches(
    session: AsyncSession,
    matches: list[Union[Match, MatchSnapshot]],
    events: list[FeedEvent],
    lookup: TeamLookup,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Apply feed events to active matches.

    Each write is UPDATE ... WHERE id = :id AND is_finished = false, committed
    individually. Matchdays of successfully written rows are collected in
    result.matchdays; a failed row is rolled back and its matchday is not
    queued.
    """
    now = now or datetime.utcnow()
    result = ReconcileResult()
    resolved = resolve_events(events, lookup)
    snapshots = [m if isinstance(m, MatchSnapshot) else MatchSnapshot.from_match(m) for m in matches]

    for match in snapshots:
        if match.is_finished:
            result.unchanged += 1
            continue

        found = find_event(match, resolved)
        if found is None:
            result.not_found += 1
            continue

        event = found.event
        if found.swapped:
            home, away = event.away_score, event.home_score
        else:
            home, away = event.home_score, event.away_score

        decision = decide_update(home, away, event.status)
        if decision is None:
            result.skipped += 1
            continue

        if (
            match.home_score == decision.home_score
            and match.away_score == decision.away_score
            and match.is_finished == decision.is_finished
        ):
            result.unchanged += 1
            continue

        stmt = (
            update(Match)
            .where(Match.id == match.id, Match.is_finished == False)  # noqa: E712
            .values(
                home_score=decision.home_score,
                away_score=decision.away_score,
                is_finished=decision.is_finished,
                feed_status=event.status[:40] or None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            res = await session.execute(stmt)
            await session.commit()
        except Exception as e:
            await session.rollback()
            result.failed += 1
            logger.error(f"[RECONCILE] Write failed for match {match.id}: {e}")
            continue

        if res.rowcount == 0:
            # Finished by another writer since it was loaded
            result.unchanged += 1
            continue

        result.updated += 1
        result.matchdays.add(match.matchday_id)
        new_state = derive_state(decision.home_score, decision.away_score, decision.is_finished)
        logger.info(
            f"[RECONCILE] Match {match.id}: {decision.home_score}-{decision.away_score} "
            f"({match.state.value} -> {new_state.value})"
        )

    for outcome in ("updated", "unchanged", "not_found", "skipped", "failed"):
        count = getattr(result, outcome)
        if count:
            record_reconcile_outcome(outcome, count)

    return result
