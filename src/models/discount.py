"""Discount code and offer models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.customer import Segment


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class InvalidReason(str, Enum):
    """Why a code cannot be used, in the order the checks run."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"
    BELOW_MINIMUM = "below_minimum"


class DiscountCode(BaseModel):
    """Redeemable code. ``used_count`` never exceeds ``usage_limit``."""

    code: str
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: float = Field(gt=0)
    min_order_amount: float = Field(default=0.0, ge=0)
    expires_at: datetime
    usage_limit: int = Field(default=1, ge=1)
    used_count: int = Field(default=0, ge=0)
    is_active: bool = True
    customer_id: Optional[str] = None

    @model_validator(mode="after")
    def check_usage(self) -> "DiscountCode":
        if self.used_count > self.usage_limit:
            raise ValueError("used_count cannot exceed usage_limit")
        return self


class CodeValidation(BaseModel):
    """Outcome of validating or redeeming a code."""

    code: str
    valid: bool
    reason: Optional[InvalidReason] = None
    discount_amount: float = 0.0


class RedeemRequest(BaseModel):
    """Payload for ``/discounts/validate`` and ``/discounts/redeem``."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1)
    order_amount: float = Field(alias="orderAmount", ge=0)


class Offer(BaseModel):
    """Personalized offer shown in chat, popups and recovery emails."""

    title: str
    description: str
    code: str
    discount_percent: float
    segment: Segment
    expires_at: Optional[datetime] = None
