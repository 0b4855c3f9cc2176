"""Daily sales report and rolling analytics."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.report import DailyReport, SalesAnalytics
from repositories.cart_repo import CartRepository
from repositories.customer_repo import OrderRepository
from repositories.database import get_engine
from repositories.report_repo import ReportRepository
from utils.clock import utc_now
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _ratio(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class ReportingService:
    """Aggregates orders and carts into reports."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.orders = OrderRepository(engine)
        self.carts = CartRepository(engine)
        self.reports = ReportRepository(engine)
        self.clock = clock

    def daily_report(self, now: Optional[datetime] = None) -> DailyReport:
        """Last 24 hours against the 24 hours before; the report is saved."""
        now = now or self.clock()
        day_start = now - timedelta(hours=24)
        orders, revenue = self.orders.totals_between(day_start, now)
        prev_orders, prev_revenue = self.orders.totals_between(now - timedelta(hours=48), day_start)

        if prev_revenue:
            change = round((revenue - prev_revenue) / prev_revenue * 100, 2)
        else:
            change = 100.0 if revenue else 0.0

        report = DailyReport(
            report_date=day_start.date(),
            orders=orders,
            revenue=round(revenue, 2),
            avg_order_value=round(revenue / orders, 2) if orders else 0.0,
            revenue_change_percent=change,
            previous_day_orders=prev_orders,
            previous_day_revenue=round(prev_revenue, 2),
            generated_at=now,
        )
        self.reports.save(report)
        logger.info(
            "Daily report generated",
            extra={"orders": orders, "revenue": report.revenue, "change": change},
        )
        return report

    def sales_analytics(self, now: Optional[datetime] = None, days: int = 30) -> SalesAnalytics:
        """Rolling window; abandonment rate is the share of abandoned carts never recovered."""
        now = now or self.clock()
        since = now - timedelta(days=days)
        orders, revenue = self.orders.totals_between(since, now)
        abandoned, recovered = self.carts.counts_since(since)

        return SalesAnalytics(
            period_days=days,
            total_orders=orders,
            total_revenue=round(revenue, 2),
            avg_order_value=round(revenue / orders, 2) if orders else 0.0,
            abandoned_carts=abandoned,
            recovered_carts=recovered,
            abandonment_rate=_ratio(abandoned - recovered, abandoned),
            recovery_rate=_ratio(recovered, abandoned),
            generated_at=now,
        )
