"""Reporting models."""

from datetime import date, datetime

from pydantic import BaseModel


class DailyReport(BaseModel):
    """Yesterday's sales compared with the day before."""

    report_date: date
    orders: int
    revenue: float
    avg_order_value: float
    revenue_change_percent: float
    previous_day_orders: int
    previous_day_revenue: float
    generated_at: datetime


class SalesAnalytics(BaseModel):
    """Rolling sales and cart-recovery metrics."""

    period_days: int
    total_orders: int
    total_revenue: float
    avg_order_value: float
    abandoned_carts: int
    recovered_carts: int
    abandonment_rate: float
    recovery_rate: float
    generated_at: datetime
