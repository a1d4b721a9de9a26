"""
Telemetry module.

Prometheus metrics for feed ingestion, reconciliation outcomes,
recalculations and job health.
"""

from quiniela.telemetry.metrics import (
    get_metrics_text,
    job_status_for_error,
    record_feed_events,
    record_feed_request,
    record_job_run,
    record_recalculation,
    record_reconcile_outcome,
    record_unresolved_team,
)

__all__ = [
    "get_metrics_text",
    "job_status_for_error",
    "record_feed_events",
    "record_feed_request",
    "record_job_run",
    "record_recalculation",
    "record_reconcile_outcome",
    "record_unresolved_team",
]
