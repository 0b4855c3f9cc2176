"""
Scheduled batch passes.

Every pass returns a ``JobSummary`` and never raises: per-item errors are
recorded and the pass continues, and an unavailable store ends the pass early
with the reason in ``details``.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.jobs import JobSummary
from repositories.cart_repo import CartRepository
from repositories.customer_repo import CustomerRepository
from repositories.database import get_engine
from repositories.interaction_repo import InteractionRepository
from services.cart_recovery_service import CartRecoveryService
from services.email_service import EmailSender
from services.reporting_service import ReportingService
from services.segmentation_service import SegmentationService
from utils.clock import utc_now
from utils.error_handling import as_app_error
from utils.logging_config import get_logger

logger = get_logger(__name__)


class JobService:
    """The five scheduled entry points."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        email_sender: Optional[EmailSender] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.recovery = CartRecoveryService(
            engine=engine, settings=self.settings, email_sender=email_sender, clock=clock
        )
        self.segmentation = SegmentationService(engine=engine, settings=self.settings, clock=clock)
        self.reporting = ReportingService(engine=engine, settings=self.settings, clock=clock)
        self.customers = CustomerRepository(engine)
        self.carts = CartRepository(engine)
        self.interactions = InteractionRepository(engine)
        self.clock = clock

    def recover_carts(self, now: Optional[datetime] = None) -> JobSummary:
        return self._guarded("recover_carts", lambda: self.recovery.process_first_reminders(now))

    def send_second_reminders(self, now: Optional[datetime] = None) -> JobSummary:
        return self._guarded(
            "send_second_reminders", lambda: self.recovery.process_second_reminders(now)
        )

    def resegment_customers(
        self, now: Optional[datetime] = None, after: Optional[str] = None
    ) -> JobSummary:
        """
        Re-score customers in keyset pages; ``details.updated`` counts segment changes.

        A pass reads at most ``max_pages_per_pass`` pages. When it stops on
        that bound, ``details.next_cursor`` holds the last customer id seen;
        passing it back as ``after`` continues from there. The scheduled run
        starts from the first customer each time, which is safe because
        rescoring is idempotent.
        """
        now = now or self.clock()
        start = time.perf_counter()
        summary = JobSummary(job="resegment_customers")
        updated = 0
        next_cursor: Optional[str] = None
        logger.info("Resegmentation started", extra={"job": summary.job, "after": after})

        for _ in range(self.settings.max_pages_per_pass):
            try:
                page = self.customers.page(after, self.settings.page_size)
            except Exception as exc:
                summary.details["aborted"] = str(as_app_error(exc))
                next_cursor = after
                logger.warning("Resegmentation aborted", extra={"error": str(exc)})
                break

            for customer in page:
                try:
                    if self.segmentation.resegment(customer.customer_id, now=now):
                        updated += 1
                    summary.record_success()
                except Exception as exc:
                    error = as_app_error(exc)
                    summary.record_failure(customer.customer_id, error.kind, str(error))
                    logger.warning(
                        "Customer not resegmented",
                        extra={"customer_id": customer.customer_id, "error": str(error)},
                    )

            if len(page) < self.settings.page_size:
                next_cursor = None
                break
            after = next_cursor = page[-1].customer_id

        summary.details["updated"] = updated
        summary.details["next_cursor"] = next_cursor
        self._log_complete(summary, start)
        return summary

    def purge_stale_records(self, now: Optional[datetime] = None) -> JobSummary:
        """Delete interactions and recovered carts older than the retention window."""
        now = now or self.clock()
        start = time.perf_counter()
        summary = JobSummary(job="purge_stale_records")
        cutoff = now - timedelta(days=self.settings.retention_days)
        limit = self.settings.purge_page_size

        for name, purge in (
            ("interaction_events", self.interactions.purge_before),
            ("abandoned_carts", self.carts.purge_recovered_before),
        ):
            deleted = 0
            try:
                for _ in range(self.settings.max_pages_per_pass):
                    batch = purge(cutoff, limit)
                    deleted += batch
                    if batch < limit:
                        break
                summary.record_success()
            except Exception as exc:
                error = as_app_error(exc)
                summary.record_failure(name, error.kind, str(error))
                logger.warning("Purge failed", extra={"table": name, "error": str(error)})
            summary.details[f"{name}_deleted"] = deleted

        self._log_complete(summary, start)
        return summary

    def generate_daily_report(self, now: Optional[datetime] = None) -> JobSummary:
        def run() -> JobSummary:
            report = self.reporting.daily_report(now)
            summary = JobSummary(job="generate_daily_report")
            summary.record_success()
            summary.details["report"] = report.model_dump(mode="json")
            return summary

        return self._guarded("generate_daily_report", run)

    def _guarded(self, job: str, run: Callable[[], JobSummary]) -> JobSummary:
        """Run a pass; anything it lets escape becomes a single recorded failure."""
        try:
            return run()
        except Exception as exc:
            error = as_app_error(exc)
            logger.exception("Job failed", extra={"job": job})
            summary = JobSummary(job=job)
            summary.record_failure(job, error.kind, str(error))
            return summary

    @staticmethod
    def _log_complete(summary: JobSummary, start: float) -> None:
        logger.info(
            "Job complete",
            extra={
                "job": summary.job,
                "processed": summary.processed,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
