"""Exceptions raised by the sync and scoring core.

Only the errors that must stop a cycle (feed fully down, feed credentials
rejected or missing) and caller errors (unknown ids, locked predictions)
are raised. Per-match problems are counted in the cycle summary instead.
"""


class QuinielaError(Exception):
    """Base class for quiniela errors."""


class FeedError(QuinielaError):
    """Base class for hard feed failures."""


class FeedUnavailableError(FeedError):
    """Raised when every feed source failed in one cycle."""


class FeedAuthError(FeedError):
    """Raised when the provider rejects the API key (401/403)."""


class FeedConfigurationError(FeedError):
    """Raised when the feed cannot be called at all (e.g. missing API key)."""


class MatchdayNotFound(QuinielaError):
    def __init__(self, matchday_id: int):
        super().__init__(f"Matchday {matchday_id} not found")
        self.matchday_id = matchday_id


class MatchNotFound(QuinielaError):
    def __init__(self, match_id: int):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class PredictionLocked(QuinielaError):
    """Raised when a prediction is written after its matchday closed or the match kicked off."""
