"""Abandoned cart persistence with claim-then-act guards."""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, insert, or_, select, update

from models.cart import AbandonedCart, CartItem
from repositories.schema import abandoned_carts as carts
from repositories.sql_repo import SqlRepository

FIRST_STAGE = 1
SECOND_STAGE = 2


def _stage_guard(stage: int):
    """State a cart must be in for the given reminder stage to apply."""
    if stage == FIRST_STAGE:
        return and_(
            carts.c.recovered.is_(False),
            carts.c.email_sent.is_(False),
            carts.c.reminder_count == 0,
        )
    if stage == SECOND_STAGE:
        return and_(carts.c.recovered.is_(False), carts.c.reminder_count == 1)
    raise ValueError(f"unknown reminder stage {stage}")


def _unclaimed(lease_cutoff: datetime):
    """No claim, or a claim older than the lease (left by an interrupted pass)."""
    return or_(carts.c.claim_token.is_(None), carts.c.claimed_at < lease_cutoff)


class CartRepository(SqlRepository):
    """Every state change is a conditional UPDATE; rowcount says who won."""

    def get(self, cart_id: str) -> Optional[AbandonedCart]:
        row = self._fetch_one(select(carts).where(carts.c.cart_id == cart_id))
        return AbandonedCart.model_validate(row) if row else None

    def insert(self, cart: AbandonedCart) -> None:
        values = cart.model_dump()
        self._execute(insert(carts).values(**values))

    def find_unreminded_for_customer(self, customer_id: str) -> Optional[AbandonedCart]:
        """Most recent cart of the customer still waiting for its first reminder."""
        row = self._fetch_one(
            select(carts)
            .where(carts.c.customer_id == customer_id, _stage_guard(FIRST_STAGE))
            .order_by(carts.c.abandoned_at.desc())
            .limit(1)
        )
        return AbandonedCart.model_validate(row) if row else None

    def open_cart_ids(self, customer_id: str) -> List[str]:
        rows = self._fetch_all(
            select(carts.c.cart_id).where(
                carts.c.customer_id == customer_id, carts.c.recovered.is_(False)
            )
        )
        return [row["cart_id"] for row in rows]

    def replace_contents(
        self,
        cart_id: str,
        items: List[CartItem],
        total: float,
        abandoned_at: datetime,
    ) -> bool:
        """Overwrite items of a not-yet-reminded cart and restart its clock."""
        values = {
            "cart_items": [item.model_dump() for item in items],
            "cart_total": total,
            "abandoned_at": abandoned_at,
        }
        return (
            self._execute(
                update(carts)
                .where(carts.c.cart_id == cart_id, _stage_guard(FIRST_STAGE))
                .values(**values)
            )
            == 1
        )

    def eligible_page(
        self,
        stage: int,
        window_start: Optional[datetime],
        window_end: datetime,
        lease_cutoff: datetime,
        after: Optional[str],
        limit: int,
    ) -> List[AbandonedCart]:
        """Keyset page of carts due for ``stage`` within the closed time window.

        Without ``window_start`` the window is open-ended on the old side.
        """
        anchor = carts.c.abandoned_at if stage == FIRST_STAGE else carts.c.last_reminder_at
        stmt = (
            select(carts)
            .where(_stage_guard(stage), anchor <= window_end, _unclaimed(lease_cutoff))
            .order_by(carts.c.cart_id)
            .limit(limit)
        )
        if window_start is not None:
            stmt = stmt.where(anchor >= window_start)
        if after is not None:
            stmt = stmt.where(carts.c.cart_id > after)
        return [AbandonedCart.model_validate(row) for row in self._fetch_all(stmt)]

    def claim(
        self, cart_id: str, stage: int, token: str, now: datetime, lease_cutoff: datetime
    ) -> bool:
        """Reserve the cart for one sender. Only one concurrent claimant succeeds."""
        return (
            self._execute(
                update(carts)
                .where(carts.c.cart_id == cart_id, _stage_guard(stage), _unclaimed(lease_cutoff))
                .values(claim_token=token, claimed_at=now)
            )
            == 1
        )

    def commit_reminder(self, updated: AbandonedCart, token: Optional[str]) -> bool:
        """Persist the post-reminder record.

        With a token only the holder of the claim may commit. Without one the
        write still requires an unrecovered cart one step behind ``updated``,
        so an already-sent email is recorded at most once.
        """
        guards = [
            carts.c.cart_id == updated.cart_id,
            carts.c.reminder_count == updated.reminder_count - 1,
        ]
        if token is not None:
            guards.append(carts.c.claim_token == token)
        else:
            guards.append(carts.c.recovered.is_(False))
        return (
            self._execute(
                update(carts)
                .where(*guards)
                .values(
                    email_sent=updated.email_sent,
                    reminder_count=updated.reminder_count,
                    last_reminder_at=updated.last_reminder_at,
                    discount_code=updated.discount_code,
                    claim_token=None,
                    claimed_at=None,
                    last_error=None,
                )
            )
            == 1
        )

    def release_after_failure(self, cart_id: str, token: str, error: str) -> bool:
        """Count the failed attempt and free the claim without advancing state."""
        return (
            self._execute(
                update(carts)
                .where(carts.c.cart_id == cart_id, carts.c.claim_token == token)
                .values(
                    failed_attempts=carts.c.failed_attempts + 1,
                    last_error=error[:500],
                    claim_token=None,
                    claimed_at=None,
                )
            )
            == 1
        )

    def mark_recovered(self, cart_id: str, now: datetime) -> bool:
        return (
            self._execute(
                update(carts)
                .where(carts.c.cart_id == cart_id, carts.c.recovered.is_(False))
                .values(recovered=True, recovered_at=now)
            )
            == 1
        )

    def purge_recovered_before(self, cutoff: datetime, limit: int) -> int:
        """Retention: drop up to ``limit`` recovered carts abandoned before ``cutoff``."""
        doomed = (
            select(carts.c.cart_id)
            .where(carts.c.recovered.is_(True), carts.c.abandoned_at < cutoff)
            .limit(limit)
        )
        return self._execute(delete(carts).where(carts.c.cart_id.in_(doomed)))

    def counts_since(self, since: datetime) -> Tuple[int, int]:
        """Abandoned and recovered cart counts for carts abandoned at or after ``since``."""
        row = self._fetch_one(
            select(
                func.count(carts.c.cart_id).label("total"),
                func.coalesce(
                    func.sum(case((carts.c.recovered.is_(True), 1), else_=0)), 0
                ).label("recovered"),
            ).where(carts.c.abandoned_at >= since)
        )
        return int(row["total"]), int(row["recovered"])
