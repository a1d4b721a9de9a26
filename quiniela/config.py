"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./quiniela.db"

    # TheSportsDB (v2 JSON API, key sent as X-API-KEY header)
    THESPORTSDB_API_KEY: str = ""
    THESPORTSDB_BASE_URL: str = "https://www.thesportsdb.com/api/v2/json"

    # Competition of interest (Liga MX by default)
    FEED_LEAGUE_ID: str = "4350"
    FEED_LEAGUE_QUERIES: str = "liga_mx,liga_bbva_mx,mexican_primera,mexican_primera_league,mexico_primera"
    FEED_LEAGUE_PATTERN: str = r"liga\s*mx|mexican\s*primera|liga\s*bbva"

    # Per-call timeout; a timeout only drops that call's contribution
    FEED_TIMEOUT_SECONDS: float = 15.0
    # Days added on each side of the active-match window
    FEED_WINDOW_PAD_DAYS: int = 1

    # Versioned static alias table (empty = bundled quiniela/data/team_aliases.json)
    TEAM_ALIASES_PATH: str = ""

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    AUTO_SYNC_INTERVAL_SECONDS: int = 300
    AUTO_CLOSE_INTERVAL_MINUTES: int = 5

    # API Security
    API_KEY: str = ""  # Service key for automation (cron, ops scripts)
    API_KEY_HEADER: str = "X-API-Key"
    # Set by the upstream auth gateway once the session is verified
    USER_ID_HEADER: str = "X-User-Id"

    # Rate limiting for public read endpoints
    RATE_LIMIT_PER_MINUTE: str = "60/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def feed_league_queries(self) -> list[str]:
        return [q.strip() for q in self.FEED_LEAGUE_QUERIES.split(",") if q.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
