"""Database models using SQLModel."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


class ParticipationMode(str, Enum):
    """Competition scope a participant signed up for."""

    WEEKLY = "weekly"  # per-matchday prizes only
    SEASON = "season"  # season-long table only
    BOTH = "both"


class MatchState(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


def derive_state(home_score: Optional[int], away_score: Optional[int], is_finished: bool) -> MatchState:
    if is_finished:
        return MatchState.FINISHED
    if home_score is not None or away_score is not None:
        return MatchState.LIVE
    return MatchState.SCHEDULED


class Team(SQLModel, table=True):
    """Static reference data for a club."""

    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255, unique=True, description="Canonical team name")
    short_name: str = Field(max_length=50, description="Abbreviation shown in tight layouts")

    # Relationships
    home_matches: list["Match"] = Relationship(
        back_populates="home_team",
        sa_relationship_kwargs={"foreign_keys": "Match.home_team_id"},
    )
    away_matches: list["Match"] = Relationship(
        back_populates="away_team",
        sa_relationship_kwargs={"foreign_keys": "Match.away_team_id"},
    )


class Matchday(SQLModel, table=True):
    """
    A round of matches that predictions and leaderboards are scoped to.

    is_open controls the predictions lock; is_concluded is set once every
    match has finished. The two are independent.
    """

    __tablename__ = "matchdays"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    start_date: datetime = Field(index=True, description="First kickoff (UTC)")
    deadline: Optional[datetime] = Field(default=None, description="Auto-close instant (UTC), NULL = manual")
    is_open: bool = Field(default=True, description="Predictions accepted")
    is_current: bool = Field(default=False, description="At most one matchday is current")
    is_concluded: bool = Field(default=False, description="All matches finished")
    competition_mode: ParticipationMode = Field(
        default=ParticipationMode.BOTH,
        description="weekly = counts for its own matchday board only, not the season table",
    )
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    matches: list["Match"] = Relationship(back_populates="matchday")


class Match(SQLModel, table=True):
    """Match model. is_finished implies both scores are set and never reverts."""

    __tablename__ = "matches"

    id: Optional[int] = Field(default=None, primary_key=True)
    matchday_id: int = Field(foreign_key="matchdays.id", index=True)
    home_team_id: int = Field(foreign_key="teams.id", index=True)
    away_team_id: int = Field(foreign_key="teams.id", index=True)
    match_date: datetime = Field(index=True, description="Scheduled kickoff (UTC)")

    home_score: Optional[int] = Field(default=None, description="NULL until kickoff")
    away_score: Optional[int] = Field(default=None, description="NULL until kickoff")
    is_finished: bool = Field(default=False, index=True)
    feed_status: Optional[str] = Field(default=None, max_length=40, description="Last raw feed status")

    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    matchday: Optional[Matchday] = Relationship(back_populates="matches")
    home_team: Optional[Team] = Relationship(
        back_populates="home_matches",
        sa_relationship_kwargs={"foreign_keys": "[Match.home_team_id]", "lazy": "selectin"},
    )
    away_team: Optional[Team] = Relationship(
        back_populates="away_matches",
        sa_relationship_kwargs={"foreign_keys": "[Match.away_team_id]", "lazy": "selectin"},
    )
    predictions: list["Prediction"] = Relationship(back_populates="match")

    @property
    def state(self) -> MatchState:
        return derive_state(self.home_score, self.away_score, self.is_finished)


class Prediction(SQLModel, table=True):
    """A participant's forecast for one match. One row per (user, match)."""

    __tablename__ = "predictions"
    __table_args__ = (
        UniqueConstraint("user_id", "match_id", name="uq_prediction_user_match"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(max_length=64, index=True)
    match_id: int = Field(foreign_key="matches.id", index=True)

    predicted_home_score: int
    predicted_away_score: int
    points_awarded: Optional[int] = Field(default=None, description="NULL until the match finishes")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    match: Optional[Match] = Relationship(back_populates="predictions")


class Profile(SQLModel, table=True):
    """Participant profile. Owned by the account flows, read-only here."""

    __tablename__ = "profiles"

    user_id: str = Field(primary_key=True, max_length=64)
    display_name: Optional[str] = Field(default=None, max_length=100)
    participation_mode: ParticipationMode = Field(default=ParticipationMode.WEEKLY)


class UserRole(SQLModel, table=True):
    """Role grants (admin/user)."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(max_length=64, index=True)
    role: str = Field(max_length=20, description="'admin' or 'user'")
