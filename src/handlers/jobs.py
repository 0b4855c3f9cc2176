"""
Scheduled job entry points.

Each handler is invoked by the scheduler with an EventBridge-style event and
returns the ``JobSummary`` as a dict. Handlers never raise: per-item errors
are inside the summary, and a failure to even start the job is reported as
a single failed item.
"""

from __future__ import annotations

from typing import Optional

from models.jobs import JobSummary
from utils.error_handling import as_app_error
from utils.logging_config import get_logger

logger = get_logger(__name__)

_job_service: Optional["JobService"] = None


def _get_job_service():
    """Lazy-load JobService."""
    global _job_service
    if _job_service is None:
        from services.job_service import JobService
        _job_service = JobService()
    return _job_service


def _run(job: str) -> dict:
    try:
        summary = getattr(_get_job_service(), job)()
    except Exception as exc:
        # Service construction failed (config, store unreachable).
        error = as_app_error(exc)
        logger.exception("Job could not start", extra={"job": job})
        summary = JobSummary(job=job)
        summary.record_failure(job, error.kind, str(error))
    return summary.model_dump(mode="json")


def recover_carts(event, context):
    """Hourly: first reminder for carts abandoned 1 to 24 hours ago."""
    return _run("recover_carts")


def send_second_reminders(event, context):
    """Every few hours: second reminder 24 to 48 hours after the first."""
    return _run("send_second_reminders")


def resegment_customers(event, context):
    """Daily: re-score customers and store segment changes."""
    return _run("resegment_customers")


def purge_stale_records(event, context):
    """Weekly: retention cleanup of interactions and recovered carts."""
    return _run("purge_stale_records")


def generate_daily_report(event, context):
    """Daily: yesterday's orders and revenue against the day before, saved."""
    return _run("generate_daily_report")
