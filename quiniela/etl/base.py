"""Abstract base class for results feed providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class FeedEvent:
    """Normalized event as seen by the reconciler.

    Team names are the provider's free text; scores are None when the
    provider sent nothing usable for that side.
    """

    home_name: str
    away_name: str
    home_score: Optional[int]
    away_score: Optional[int]
    status: str  # lowercased, trimmed provider status ("ft", "1h", "match finished", ...)
    event_date: Optional[date]
    event_id: Optional[str] = None
    league: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", (self.status or "").strip().lower())

    @property
    def dedup_key(self) -> tuple:
        if self.event_id:
            return ("id", self.event_id)
        return ("teams", self.home_name.lower(), self.away_name.lower(), self.event_date)


@dataclass
class FeedFetchResult:
    """Outcome of one fetch across every endpoint shape."""

    events: list[FeedEvent] = field(default_factory=list)
    sources_ok: list[str] = field(default_factory=list)
    sources_failed: list[str] = field(default_factory=list)
    sources_rejected: list[str] = field(default_factory=list)  # subset of sources_failed: 401/403

    @property
    def total_failure(self) -> bool:
        """True when sources were attempted and none of them answered."""
        return bool(self.sources_failed) and not self.sources_ok

    @property
    def auth_rejected(self) -> bool:
        """True when nothing answered and every failure was a rejected key."""
        return self.total_failure and set(self.sources_failed) == set(self.sources_rejected)


class FeedProvider(ABC):
    """Abstract base class for sports-data feeds."""

    name: str = "base"

    @abstractmethod
    async def fetch_events(self, from_date: date, to_date: date) -> FeedFetchResult:
        """
        Fetch normalized events whose date falls in [from_date, to_date].

        A failing endpoint must not abort the fetch: it is reported in
        sources_failed and the result carries whatever the other endpoints
        returned.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
