"""Customer and order-history access."""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, insert, select, update

from models.customer import Customer, Order, OrderStats, Segment
from repositories.schema import customers, orders
from repositories.sql_repo import SqlRepository


class CustomerRepository(SqlRepository):
    """Customers are read by every engine; only segmentation writes them."""

    def get(self, customer_id: str) -> Optional[Customer]:
        row = self._fetch_one(select(customers).where(customers.c.customer_id == customer_id))
        return Customer.model_validate(row) if row else None

    def add(self, customer: Customer) -> None:
        values = customer.model_dump()
        values["segment"] = customer.segment.value
        self._execute(insert(customers).values(**values))

    def page(self, after: Optional[str], limit: int) -> List[Customer]:
        """Keyset page of customers ordered by id."""
        stmt = select(customers).order_by(customers.c.customer_id).limit(limit)
        if after is not None:
            stmt = stmt.where(customers.c.customer_id > after)
        return [Customer.model_validate(row) for row in self._fetch_all(stmt)]

    def update_segment(
        self, customer_id: str, segment: Segment, score: float, now: datetime
    ) -> int:
        """Last-writer-wins write of the derived tier."""
        return self._execute(
            update(customers)
            .where(customers.c.customer_id == customer_id)
            .values(segment=segment.value, value_score=score, last_segment_update=now)
        )


class OrderRepository(SqlRepository):
    """Read access to completed orders."""

    def add(self, order: Order) -> None:
        self._execute(insert(orders).values(**order.model_dump()))

    def stats_for(self, customer_id: str) -> OrderStats:
        row = self._fetch_one(
            select(
                func.count(orders.c.order_id).label("order_count"),
                func.coalesce(func.sum(orders.c.total), 0.0).label("total_spend"),
                func.max(orders.c.created_at).label("last_order_at"),
            ).where(orders.c.customer_id == customer_id)
        )
        return OrderStats.model_validate(row or {})

    def totals_between(self, start: datetime, end: datetime) -> Tuple[int, float]:
        """Order count and revenue for ``start <= created_at < end``."""
        row = self._fetch_one(
            select(
                func.count(orders.c.order_id).label("count"),
                func.coalesce(func.sum(orders.c.total), 0.0).label("revenue"),
            ).where(orders.c.created_at >= start, orders.c.created_at < end)
        )
        return int(row["count"]), float(row["revenue"])
