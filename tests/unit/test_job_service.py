"""
Scheduled job tests. Jobs return summaries and never raise.

Run with: pytest tests/unit/test_job_service.py -v
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from config.settings import Settings
from models.customer import Segment
from models.interaction import InteractionType
from repositories.schema import daily_reports, interaction_events
from services.job_service import JobService
from utils.error_handling import TransientIOError


@pytest.fixture
def jobs(engine, settings, email_sender, now):
    return JobService(engine=engine, settings=settings, email_sender=email_sender, clock=lambda: now)


def _count(engine, table):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar()


class TestRecoveryJobs:
    def test_recover_carts_summary(self, jobs, seed, email_sender, now):
        seed.customer("cust-1", email="ana@example.com")
        seed.cart("c1", "cust-1", now - timedelta(hours=3))

        summary = jobs.recover_carts()

        assert summary.job == "recover_carts"
        assert (summary.processed, summary.succeeded, summary.failed) == (1, 1, 0)
        assert len(email_sender.sent) == 1

    def test_second_reminders(self, jobs, seed, now):
        seed.customer("cust-1", email="ana@example.com")
        seed.cart(
            "c1",
            "cust-1",
            now - timedelta(days=2),
            email_sent=True,
            reminder_count=1,
            last_reminder_at=now - timedelta(hours=26),
            discount_code="SAVE-ABCDEFGH",
        )

        summary = jobs.send_second_reminders()

        assert summary.succeeded == 1
        assert seed.carts.get("c1").reminder_count == 2

    def test_store_outage_is_reported_not_raised(self, jobs):
        with patch.object(
            jobs.recovery.carts, "eligible_page", side_effect=TransientIOError("db down")
        ):
            summary = jobs.recover_carts()

        assert summary.processed == 0
        assert "db down" in summary.details["aborted"]


class TestResegmentJob:
    def test_counts_updates(self, jobs, seed, now):
        seed.customer("big-spender")
        seed.customer("browser")
        for i in range(10):
            seed.order(f"o{i}", "big-spender", 100.0, now - timedelta(days=1))

        summary = jobs.resegment_customers()

        assert (summary.processed, summary.succeeded) == (2, 2)
        assert summary.details["updated"] == 1
        assert seed.customers.get("big-spender").segment is Segment.VIP

        rerun = jobs.resegment_customers()
        assert rerun.details["updated"] == 0

    def test_failure_isolated_per_customer(self, jobs, seed):
        seed.customer("a")
        seed.customer("b")
        real = jobs.segmentation.resegment

        def flaky(customer_id, now=None):
            if customer_id == "a":
                raise TransientIOError("timeout")
            return real(customer_id, now=now)

        with patch.object(jobs.segmentation, "resegment", side_effect=flaky):
            summary = jobs.resegment_customers()

        assert (summary.processed, summary.succeeded, summary.failed) == (2, 1, 1)
        assert summary.failures[0].item_id == "a"

    def test_pass_is_bounded_and_resumable(self, engine, seed, email_sender, now):
        settings = Settings(database_url="sqlite://", page_size=2, max_pages_per_pass=2)
        jobs = JobService(
            engine=engine, settings=settings, email_sender=email_sender, clock=lambda: now
        )
        for customer_id in ("a", "b", "c", "d", "e"):
            seed.customer(customer_id)

        first = jobs.resegment_customers()

        assert first.processed == 4
        assert first.details["next_cursor"] == "d"

        rest = jobs.resegment_customers(after=first.details["next_cursor"])

        assert rest.processed == 1
        assert rest.details["next_cursor"] is None

    def test_cursor_cleared_when_table_exhausted(self, jobs, seed):
        seed.customer("a")

        summary = jobs.resegment_customers()

        assert summary.details["next_cursor"] is None


class TestPurgeJob:
    def test_deletes_only_stale_records(self, jobs, engine, seed, now):
        seed.event("cust-1", InteractionType.PAGE_VIEW, now - timedelta(days=120))
        seed.event("cust-1", InteractionType.PAGE_VIEW, now - timedelta(days=5))
        seed.cart("old-recovered", "cust-1", now - timedelta(days=100), recovered=True)
        seed.cart("old-open", "cust-1", now - timedelta(days=100))
        seed.cart("new-recovered", "cust-1", now - timedelta(days=2), recovered=True)

        summary = jobs.purge_stale_records()

        assert summary.failed == 0
        assert summary.details["interaction_events_deleted"] == 1
        assert summary.details["abandoned_carts_deleted"] == 1
        assert _count(engine, interaction_events) == 1
        assert seed.carts.get("old-recovered") is None
        assert seed.carts.get("old-open") is not None
        assert seed.carts.get("new-recovered") is not None


class TestDailyReportJob:
    def test_report_saved(self, jobs, engine, seed, now):
        seed.order("o1", "cust-1", 30.0, now - timedelta(hours=2))
        seed.order("o2", "cust-2", 10.0, now - timedelta(hours=5))
        seed.order("o3", "cust-3", 20.0, now - timedelta(hours=30))

        summary = jobs.generate_daily_report()

        report = summary.details["report"]
        assert summary.succeeded == 1
        assert report["orders"] == 2
        assert report["revenue"] == 40.0
        assert report["avg_order_value"] == 20.0
        assert report["revenue_change_percent"] == 100.0
        assert report["previous_day_orders"] == 1
        assert _count(engine, daily_reports) == 1

    def test_report_failure_captured(self, jobs):
        with patch.object(jobs.reporting, "daily_report", side_effect=TransientIOError("down")):
            summary = jobs.generate_daily_report()
        assert summary.failed == 1
        assert summary.failures[0].kind == "transient_io"
