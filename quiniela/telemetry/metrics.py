"""
Prometheus metrics for the results sync and scoring jobs.

Labels are restricted to LOW-CARDINALITY values only:
- provider:  "thesportsdb"
- source:    "live", "live_soccer", "schedule_previous", "schedule_next", "search_league"
- outcome:   "ok", "http_error", "timeout", "request_error", "invalid_json", "auth_error"
- job:       "auto_sync_results", "auto_close_matchdays", "manual_sync"
- status:    "ok", "partial", "error", "feed_unavailable", "feed_auth"

Never use match ids, team names or URLs as labels; log them instead.
"""

import logging
import time

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from quiniela.exceptions import FeedAuthError, FeedUnavailableError

logger = logging.getLogger(__name__)

# =============================================================================
# FEED METRICS
# =============================================================================

feed_requests_total = Counter(
    "quiniela_feed_requests_total",
    "Total requests to the sports-data feed",
    ["provider", "source", "outcome"],
)

feed_latency_ms = Histogram(
    "quiniela_feed_latency_ms",
    "Feed request latency in milliseconds",
    ["provider", "source"],
    buckets=[25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 20000],
)

feed_events_total = Counter(
    "quiniela_feed_events_total",
    "Normalized events returned by the feed (after dedup and window filter)",
    ["provider"],
)

# =============================================================================
# RECONCILIATION METRICS
# =============================================================================

reconcile_matches_total = Counter(
    "quiniela_reconcile_matches_total",
    "Per-match reconciliation outcomes",
    ["outcome"],  # updated, unchanged, not_found, skipped, failed
)

unresolved_team_names_total = Counter(
    "quiniela_unresolved_team_names_total",
    "Feed team names that did not resolve to a team",
    ["reason"],  # no_match, ambiguous
)

matchday_recalculations_total = Counter(
    "quiniela_matchday_recalculations_total",
    "Matchday point recalculations",
    ["status"],
)

# =============================================================================
# JOB METRICS
# =============================================================================

job_runs_total = Counter(
    "quiniela_job_runs_total",
    "Scheduled/manual job runs",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "quiniela_job_duration_ms",
    "Job duration in milliseconds",
    ["job"],
    buckets=[100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)

job_last_success_timestamp = Gauge(
    "quiniela_job_last_success_timestamp",
    "Unix timestamp of the last successful run",
    ["job"],
)


# =============================================================================
# HELPERS (best-effort: never break the caller)
# =============================================================================


def record_feed_request(provider: str, source: str, outcome: str, latency_ms: float) -> None:
    """Record one feed HTTP call."""
    try:
        feed_requests_total.labels(provider=provider, source=source, outcome=outcome).inc()
        feed_latency_ms.labels(provider=provider, source=source).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record feed request metric: {e}")


def record_feed_events(provider: str, count: int) -> None:
    try:
        feed_events_total.labels(provider=provider).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record feed events metric: {e}")


def record_reconcile_outcome(outcome: str, count: int = 1) -> None:
    try:
        if count:
            reconcile_matches_total.labels(outcome=outcome).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record reconcile metric: {e}")


def record_unresolved_team(reason: str) -> None:
    try:
        unresolved_team_names_total.labels(reason=reason).inc()
    except Exception as e:
        logger.warning(f"Failed to record unresolved team metric: {e}")


def record_recalculation(status: str) -> None:
    try:
        matchday_recalculations_total.labels(status=status).inc()
    except Exception as e:
        logger.warning(f"Failed to record recalculation metric: {e}")


def job_status_for_error(error: Exception) -> str:
    """Job status label for an exception that ended a sync run."""
    if isinstance(error, FeedAuthError):
        return "feed_auth"
    if isinstance(error, FeedUnavailableError):
        return "feed_unavailable"
    return "error"


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (auto_sync_results, auto_close_matchdays, manual_sync)
        status: "ok", "partial", "error", "feed_unavailable", "feed_auth"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "ok":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
