"""
Customer value scoring and segmentation.

The score is a weighted sum of order count, spend, order recency and
interaction frequency (weights in ``SegmentWeights``). Tier boundaries are
half-open and contiguous, so every non-negative score maps to exactly one
segment.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from config.settings import SegmentThresholds, SegmentWeights, Settings
from models.customer import CustomerScore, OrderStats, Segment
from repositories.customer_repo import CustomerRepository, OrderRepository
from repositories.database import get_engine
from repositories.interaction_repo import InteractionRepository
from utils.clock import utc_now
from utils.error_handling import NotFoundError
from utils.logging_config import get_logger

logger = get_logger(__name__)


def segment_for_score(score: float, thresholds: SegmentThresholds) -> Segment:
    """[0, regular) New, [regular, loyal) Regular, [loyal, vip) Loyal, [vip, inf) VIP."""
    if score >= thresholds.vip:
        return Segment.VIP
    if score >= thresholds.loyal:
        return Segment.LOYAL
    if score >= thresholds.regular:
        return Segment.REGULAR
    return Segment.NEW


def value_score(
    stats: OrderStats, interactions: int, now: datetime, weights: SegmentWeights
) -> CustomerScore:
    """Pure scoring function; the caller fills in ``customer_id``."""
    recency = 0.0
    if stats.last_order_at is not None and weights.recency_horizon_days > 0:
        days_since = max(0, (now - stats.last_order_at).days)
        recency = weights.recency_max_points * max(
            0.0, 1 - days_since / weights.recency_horizon_days
        )

    components = {
        "orders": weights.per_order * stats.order_count,
        "spend": weights.per_currency_unit * stats.total_spend,
        "recency": recency,
        "interactions": weights.per_interaction * interactions,
    }
    components = {name: round(value, 2) for name, value in components.items()}
    score = round(max(0.0, sum(components.values())), 2)
    return CustomerScore(
        customer_id="", score=score, segment=Segment.NEW, components=components
    )


class SegmentationService:
    """Scores customers and persists tier changes."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.customers = CustomerRepository(engine)
        self.orders = OrderRepository(engine)
        self.interactions = InteractionRepository(engine)
        self.clock = clock

    def score_customer(self, customer_id: str, now: Optional[datetime] = None) -> CustomerScore:
        """Compute score and segment from source data. Does not write."""
        if self.customers.get(customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return self._compute(customer_id, now or self.clock())

    def resegment(self, customer_id: str, now: Optional[datetime] = None) -> bool:
        """
        Re-score and write only when the segment changed.

        Returns True when a write happened. Concurrent writers are
        last-writer-wins; the next scheduled pass recomputes from source data.
        """
        now = now or self.clock()
        customer = self.customers.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        result = self._compute(customer_id, now)
        if result.segment == customer.segment:
            return False

        self.customers.update_segment(customer_id, result.segment, result.score, now)
        logger.info(
            "Customer segment updated",
            extra={
                "customer_id": customer_id,
                "from_segment": customer.segment.value,
                "to_segment": result.segment.value,
                "score": result.score,
            },
        )
        return True

    def _compute(self, customer_id: str, now: datetime) -> CustomerScore:
        weights = self.settings.segment_weights
        stats = self.orders.stats_for(customer_id)
        since = now - timedelta(days=weights.interaction_window_days)
        interactions = self.interactions.count_for_customer(customer_id, since=since)
        scored = value_score(stats, interactions, now, weights)
        return scored.model_copy(
            update={
                "customer_id": customer_id,
                "segment": segment_for_score(scored.score, self.settings.segment_thresholds),
            }
        )
