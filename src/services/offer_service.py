"""
Offer service.

Maps a customer's segment to a discount policy, mints or reuses personal
codes, and validates/redeems codes. Redemption is a single guarded UPDATE so
``used_count`` can never pass ``usage_limit`` under concurrent checkouts.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.customer import Segment, is_guest
from models.discount import (
    CodeValidation,
    DiscountCode,
    DiscountType,
    InvalidReason,
    Offer,
)
from repositories.customer_repo import CustomerRepository
from repositories.database import get_engine
from repositories.discount_repo import DiscountRepository
from utils.clock import utc_now
from utils.error_handling import ValidationError
from utils.logging_config import get_logger

logger = get_logger(__name__)

# No 0/O or 1/I so codes survive being read aloud or retyped.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8


def discount_amount(discount: DiscountCode, order_amount: float) -> float:
    """Money off for an order, never more than the order itself."""
    if discount.discount_type is DiscountType.PERCENTAGE:
        amount = order_amount * discount.discount_value / 100
    else:
        amount = discount.discount_value
    return round(min(amount, order_amount), 2)


def invalid_reason(
    discount: Optional[DiscountCode], order_amount: float, now: datetime
) -> Optional[InvalidReason]:
    """First failing check, or None when the code is usable."""
    if discount is None:
        return InvalidReason.NOT_FOUND
    if not discount.is_active:
        return InvalidReason.INACTIVE
    if now >= discount.expires_at:
        return InvalidReason.EXPIRED
    if discount.used_count >= discount.usage_limit:
        return InvalidReason.LIMIT_REACHED
    if order_amount < discount.min_order_amount:
        return InvalidReason.BELOW_MINIMUM
    return None


class OfferService:
    """Segment-based offers and discount code lifecycle."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        engine = engine or get_engine(self.settings)
        self.discounts = DiscountRepository(engine)
        self.customers = CustomerRepository(engine)
        self.clock = clock

    def segment_of(self, customer_id: Optional[str]) -> Segment:
        """Guests and customers not yet in the store are treated as New."""
        if is_guest(customer_id):
            return Segment.NEW
        customer = self.customers.get(customer_id)
        return customer.segment if customer else Segment.NEW

    def personalized_offer(self, customer_id: Optional[str], now: Optional[datetime] = None) -> Offer:
        """Offer for the customer's tier, reusing an unused personal code when one exists."""
        now = now or self.clock()
        segment = self.segment_of(customer_id)
        tier = self.settings.offer_table[segment]

        discount = None
        if customer_id:
            discount = self.discounts.find_reusable(customer_id, tier.discount_percent, now)
        if discount is None:
            discount = self.mint_code(
                prefix=tier.code_prefix,
                discount_value=tier.discount_percent,
                min_order_amount=tier.min_order_amount,
                expires_at=now + timedelta(days=tier.validity_days),
                customer_id=customer_id,
                now=now,
            )

        return Offer(
            title=tier.title,
            description=tier.description,
            code=discount.code,
            discount_percent=tier.discount_percent,
            segment=segment,
            expires_at=discount.expires_at,
        )

    def mint_code(
        self,
        prefix: str,
        discount_value: float,
        expires_at: datetime,
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        min_order_amount: float = 0.0,
        usage_limit: int = 1,
        customer_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DiscountCode:
        """Create and store a new code such as ``SAVE-7KQ2M9XA``."""
        token = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        discount = DiscountCode(
            code=f"{prefix}-{token}",
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            expires_at=expires_at,
            usage_limit=usage_limit,
            customer_id=customer_id,
        )
        self.discounts.insert(discount, now or self.clock())
        logger.info(
            "Discount code minted",
            extra={"code": discount.code, "customer_id": customer_id, "value": discount_value},
        )
        return discount

    def validate_code(
        self, code: str, order_amount: float, now: Optional[datetime] = None
    ) -> CodeValidation:
        """Read-only check; does not consume a use."""
        code = self._clean(code, order_amount)
        discount = self.discounts.get(code)
        reason = invalid_reason(discount, order_amount, now or self.clock())
        if reason is not None:
            return CodeValidation(code=code, valid=False, reason=reason)
        return CodeValidation(
            code=code, valid=True, discount_amount=discount_amount(discount, order_amount)
        )

    def redeem_code(
        self, code: str, order_amount: float, now: Optional[datetime] = None
    ) -> CodeValidation:
        """Validate and consume one use in a single atomic conditional increment."""
        now = now or self.clock()
        code = self._clean(code, order_amount)
        if self.discounts.consume(code, order_amount, now):
            discount = self.discounts.get(code)
            logger.info("Discount code redeemed", extra={"code": code})
            return CodeValidation(
                code=code, valid=True, discount_amount=discount_amount(discount, order_amount)
            )

        # The guard did not match: re-read only to explain why.
        reason = invalid_reason(self.discounts.get(code), order_amount, now)
        return CodeValidation(
            code=code, valid=False, reason=reason or InvalidReason.LIMIT_REACHED
        )

    @staticmethod
    def _clean(code: str, order_amount: float) -> str:
        cleaned = (code or "").strip().upper()
        if not cleaned:
            raise ValidationError("code is required")
        if order_amount is None or order_amount < 0:
            raise ValidationError("orderAmount must be non-negative")
        return cleaned
