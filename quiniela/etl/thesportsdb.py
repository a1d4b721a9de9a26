"""TheSportsDB results feed implementation.

The v2 API exposes the same events through several endpoint shapes with
uneven availability (live scores, previous schedule, next schedule), wraps
the event list under different keys, and some deployments only answer
POST. Every call is tried once as GET and once as POST; whatever still
fails is dropped for this cycle and the next scheduled run retries.
"""

import logging
import math
import re
import time
from datetime import date
from typing import Any, Optional

import httpx

from quiniela.config import get_settings
from quiniela.etl.base import FeedEvent, FeedFetchResult, FeedProvider
from quiniela.exceptions import FeedAuthError, FeedConfigurationError
from quiniela.telemetry import record_feed_events, record_feed_request

logger = logging.getLogger(__name__)

PROVIDER = "thesportsdb"

_EVENT_KEYS = ("events", "schedule", "livescores", "livescore")
_LEAGUE_KEYS = ("leagues", "search", "results", "league")
_SCORE_RE = re.compile(r"-?\d+")


def parse_score(value: Any) -> Optional[int]:
    """Parse a provider score: ints, numeric strings; "" / None / junk -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    m = _SCORE_RE.match(text)
    if not m:
        return None
    score = int(m.group(0))
    return score if score >= 0 else None


def normalize_status(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


def extract_events(data: Any) -> list[dict]:
    """Pull the event array out of whichever wrapper key the endpoint used."""
    if not isinstance(data, dict):
        return []
    for key in _EVENT_KEYS:
        arr = data.get(key)
        if arr is not None:
            return [e for e in arr if isinstance(e, dict)] if isinstance(arr, list) else []
    return []


def _parse_event_date(raw: dict) -> Optional[date]:
    value = raw.get("dateEvent")
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_event(raw: dict) -> Optional[FeedEvent]:
    """Normalize one raw TheSportsDB event. Events without both team names are dropped."""
    home = raw.get("strHomeTeam")
    away = raw.get("strAwayTeam")
    if not isinstance(home, str) or not isinstance(away, str) or not home.strip() or not away.strip():
        return None

    event_id = raw.get("idEvent")
    league = raw.get("strLeague")
    return FeedEvent(
        home_name=home.strip(),
        away_name=away.strip(),
        home_score=parse_score(raw.get("intHomeScore")),
        away_score=parse_score(raw.get("intAwayScore")),
        status=normalize_status(raw.get("strStatus")),
        event_date=_parse_event_date(raw),
        event_id=str(event_id) if event_id not in (None, "") else None,
        league=league if isinstance(league, str) else None,
    )


def dedupe_events(events: list[FeedEvent]) -> list[FeedEvent]:
    """Keep the first occurrence of each event (callers put live sources first)."""
    seen: set[tuple] = set()
    unique = []
    for event in events:
        key = event.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


class TheSportsDBProvider(FeedProvider):
    """TheSportsDB v2 provider with per-call GET -> POST fallback."""

    name = PROVIDER

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        league_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.THESPORTSDB_API_KEY
        if not self.api_key:
            raise FeedConfigurationError("THESPORTSDB_API_KEY not configured")

        self.base_url = (base_url or settings.THESPORTSDB_BASE_URL).rstrip("/")
        self.fallback_league_id = settings.FEED_LEAGUE_ID
        self.league_queries = settings.feed_league_queries
        self.league_pattern = re.compile(settings.FEED_LEAGUE_PATTERN, re.IGNORECASE)
        self._league_id = league_id
        self._headers = {
            "X-API-KEY": self.api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS,
        )

    async def _fetch_json(self, path: str, source: str) -> Optional[Any]:
        """
        Call one endpoint, GET first then POST.

        Returns the decoded body ({} for an empty body), or None when the
        source produced nothing usable. Raises FeedAuthError when both verbs
        were rejected with 401/403; callers treat that as one failed source.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        rejected = []

        for method in ("GET", "POST"):
            start_time = time.time()
            try:
                if method == "GET":
                    response = await self.client.get(url, headers=self._headers)
                else:
                    response = await self.client.post(url, headers=self._headers, json={})
            except httpx.TimeoutException as e:
                record_feed_request(PROVIDER, source, "timeout", (time.time() - start_time) * 1000)
                logger.warning(f"[FEED] Timeout on {source} ({method}): {e}")
                return None
            except httpx.RequestError as e:
                record_feed_request(PROVIDER, source, "request_error", (time.time() - start_time) * 1000)
                logger.warning(f"[FEED] Request error on {source} ({method}): {e}")
                return None

            latency_ms = (time.time() - start_time) * 1000

            if response.status_code in (401, 403):
                record_feed_request(PROVIDER, source, "auth_error", latency_ms)
                rejected.append(response.status_code)
                continue

            if response.is_error:
                record_feed_request(PROVIDER, source, "http_error", latency_ms)
                logger.warning(f"[FEED] HTTP {response.status_code} on {source} ({method})")
                continue

            if not response.content:
                record_feed_request(PROVIDER, source, "ok", latency_ms)
                return {}

            try:
                data = response.json()
            except ValueError:
                record_feed_request(PROVIDER, source, "invalid_json", latency_ms)
                logger.warning(f"[FEED] Non-JSON body on {source} ({method})")
                return None

            record_feed_request(PROVIDER, source, "ok", latency_ms)
            return data if data is not None else {}

        if len(rejected) == 2:
            raise FeedAuthError(f"TheSportsDB rejected the API key on {source} (HTTP {rejected[-1]})")
        return None

    async def resolve_league_id(self) -> str:
        """Find the competition id through the search endpoint, else use the configured one."""
        if self._league_id:
            return self._league_id

        for query in self.league_queries:
            try:
                data = await self._fetch_json(f"/search/league/{query}", "search_league")
            except FeedAuthError as e:
                logger.warning(f"[FEED] {e}")
                continue
            if not isinstance(data, dict):
                continue

            leagues = []
            for key in _LEAGUE_KEYS:
                if isinstance(data.get(key), list):
                    leagues = data[key]
                    break

            for league in leagues:
                if not isinstance(league, dict):
                    continue
                league_id = league.get("idLeague")
                sport = league.get("strSport")
                name = league.get("strLeague")
                if (
                    isinstance(league_id, str)
                    and isinstance(sport, str)
                    and sport.lower() == "soccer"
                    and isinstance(name, str)
                    and self.league_pattern.search(name)
                ):
                    self._league_id = league_id
                    return league_id

        self._league_id = self.fallback_league_id
        return self._league_id

    async def _fetch_source(self, path: str, source: str, result: FeedFetchResult) -> list[FeedEvent]:
        try:
            data = await self._fetch_json(path, source)
        except FeedAuthError as e:
            logger.warning(f"[FEED] {e}")
            result.sources_failed.append(source)
            result.sources_rejected.append(source)
            return []

        if data is None:
            result.sources_failed.append(source)
            return []

        result.sources_ok.append(source)
        events = []
        for raw in extract_events(data):
            event = parse_event(raw)
            if event is not None:
                events.append(event)
        return events

    async def fetch_events(self, from_date: date, to_date: date) -> FeedFetchResult:
        """Fetch live + schedule events, dedupe, and keep those dated inside the window."""
        league_id = await self.resolve_league_id()
        result = FeedFetchResult()

        # Live scores first: they carry the freshest score for matches in progress
        live = await self._fetch_source(f"/livescore/{league_id}", "live", result)
        if not live:
            soccer = await self._fetch_source("/livescore/soccer", "live_soccer", result)
            live = [e for e in soccer if e.league and self.league_pattern.search(e.league)]

        previous = await self._fetch_source(f"/schedule/previous/league/{league_id}", "schedule_previous", result)
        upcoming = await self._fetch_source(f"/schedule/next/league/{league_id}", "schedule_next", result)

        if result.auth_rejected:
            raise FeedAuthError(f"TheSportsDB rejected the API key on every source: {result.sources_rejected}")

        windowed = [
            e for e in [*live, *previous, *upcoming]
            if e.event_date is not None and from_date <= e.event_date <= to_date
        ]
        result.events = dedupe_events(windowed)
        record_feed_events(PROVIDER, len(result.events))

        logger.info(
            f"[FEED] league={league_id} live={len(live)} schedule={len(previous) + len(upcoming)} "
            f"windowed={len(result.events)} window {from_date}..{to_date} "
            f"ok={result.sources_ok} failed={result.sources_failed}"
        )
        return result

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
