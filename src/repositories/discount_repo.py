"""Discount code persistence."""

from datetime import datetime
from typing import Optional

from sqlalchemy import insert, select, update

from models.discount import DiscountCode, DiscountType
from repositories.schema import discount_codes as codes
from repositories.sql_repo import SqlRepository


class DiscountRepository(SqlRepository):
    """Codes are minted here and consumed with a guarded increment."""

    def get(self, code: str) -> Optional[DiscountCode]:
        row = self._fetch_one(select(codes).where(codes.c.code == code))
        return DiscountCode.model_validate(row) if row else None

    def insert(self, discount: DiscountCode, now: datetime) -> None:
        values = discount.model_dump()
        values["discount_type"] = discount.discount_type.value
        values["created_at"] = now
        self._execute(insert(codes).values(**values))

    def find_reusable(
        self, customer_id: str, percent: float, now: datetime
    ) -> Optional[DiscountCode]:
        """An unused, active, unexpired percentage code already minted for the customer."""
        row = self._fetch_one(
            select(codes)
            .where(
                codes.c.customer_id == customer_id,
                codes.c.discount_type == DiscountType.PERCENTAGE.value,
                codes.c.discount_value == percent,
                codes.c.is_active.is_(True),
                codes.c.expires_at > now,
                codes.c.used_count < codes.c.usage_limit,
            )
            .order_by(codes.c.expires_at.desc())
            .limit(1)
        )
        return DiscountCode.model_validate(row) if row else None

    def consume(self, code: str, order_amount: float, now: datetime) -> bool:
        """Atomically take one use of the code if every validity predicate holds.

        The increment and the ``used_count < usage_limit`` guard are one
        statement, so concurrent redemptions can never overshoot the limit.
        """
        return (
            self._execute(
                update(codes)
                .where(
                    codes.c.code == code,
                    codes.c.is_active.is_(True),
                    codes.c.expires_at > now,
                    codes.c.used_count < codes.c.usage_limit,
                    codes.c.min_order_amount <= order_amount,
                )
                .values(used_count=codes.c.used_count + 1)
            )
            == 1
        )
