"""Append-only interaction store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, func, insert, select

from models.interaction import ENGAGEMENT_TYPES, InteractionEvent
from repositories.schema import interaction_events, products
from repositories.sql_repo import SqlRepository
from utils.clock import as_naive_utc, utc_now

_ENGAGEMENT = [t.value for t in ENGAGEMENT_TYPES]


@dataclass(frozen=True)
class EngagementCount:
    """Recent engagement volume for one product."""

    product_id: str
    count: int
    last_seen: datetime


class InteractionRepository(SqlRepository):
    """Events are inserted and aggregated; only retention deletes them."""

    def add(self, event: InteractionEvent) -> int:
        values = event.model_dump(exclude={"event_id"})
        values["type"] = event.type.value
        values["timestamp"] = as_naive_utc(event.timestamp) or utc_now()
        return self._insert(insert(interaction_events).values(**values))

    def engagement_since(self, since: datetime) -> List[EngagementCount]:
        """View and purchase counts per product at or after ``since``."""
        count = func.count(interaction_events.c.event_id).label("count")
        last_seen = func.max(interaction_events.c.timestamp).label("last_seen")
        rows = self._fetch_all(
            select(interaction_events.c.product_id, count, last_seen)
            .where(
                interaction_events.c.type.in_(_ENGAGEMENT),
                interaction_events.c.timestamp >= since,
                interaction_events.c.product_id.is_not(None),
            )
            .group_by(interaction_events.c.product_id)
        )
        return [
            EngagementCount(row["product_id"], int(row["count"]), row["last_seen"])
            for row in rows
        ]

    def category_counts(self, customer_id: str) -> Dict[str, int]:
        """How often the customer viewed or bought in each category.

        The catalog category wins over the one captured on the event.
        """
        category = func.coalesce(products.c.category, interaction_events.c.category)
        rows = self._fetch_all(
            select(category.label("category"), func.count().label("count"))
            .select_from(
                interaction_events.outerjoin(
                    products, interaction_events.c.product_id == products.c.product_id
                )
            )
            .where(
                interaction_events.c.customer_id == customer_id,
                interaction_events.c.type.in_(_ENGAGEMENT),
                category.is_not(None),
            )
            .group_by(category)
        )
        return {row["category"]: int(row["count"]) for row in rows}

    def count_for_customer(self, customer_id: str, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(interaction_events).where(
            interaction_events.c.customer_id == customer_id
        )
        if since is not None:
            stmt = stmt.where(interaction_events.c.timestamp >= since)
        return int(self._scalar(stmt) or 0)

    def purge_before(self, cutoff: datetime, limit: int) -> int:
        """Delete up to ``limit`` events older than ``cutoff``."""
        doomed = (
            select(interaction_events.c.event_id)
            .where(interaction_events.c.timestamp < cutoff)
            .limit(limit)
        )
        return self._execute(
            delete(interaction_events).where(interaction_events.c.event_id.in_(doomed))
        )
