"""Abandoned cart models and the abandonment webhook payload."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_REMINDERS = 2


class CartItem(BaseModel):
    """Line item captured at abandonment time."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(default=1, gt=0)
    price: float = Field(default=0.0, ge=0)
    name: Optional[str] = None


class AbandonmentRequest(BaseModel):
    """Inbound abandonment signal: ``{customerId, cartItems[], cartTotal}``."""

    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(alias="customerId")
    cart_items: List[CartItem] = Field(alias="cartItems")
    cart_total: Optional[float] = Field(default=None, alias="cartTotal", ge=0)

    @field_validator("customer_id")
    @classmethod
    def validate_customer(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("customerId must be provided")
        return cleaned

    @field_validator("cart_items")
    @classmethod
    def validate_items(cls, value: List[CartItem]) -> List[CartItem]:
        if not value:
            raise ValueError("cartItems must contain at least one item")
        return value

    @model_validator(mode="after")
    def default_total(self) -> "AbandonmentRequest":
        if self.cart_total is None:
            self.cart_total = round(sum(i.price * i.quantity for i in self.cart_items), 2)
        return self


class AbandonedCart(BaseModel):
    """Cart tracked through the reminder lifecycle."""

    cart_id: str
    customer_id: str
    cart_items: List[CartItem] = Field(default_factory=list)
    cart_total: float = Field(default=0.0, ge=0)
    abandoned_at: datetime
    recovered: bool = False
    recovered_at: Optional[datetime] = None
    email_sent: bool = False
    reminder_count: int = Field(default=0, ge=0, le=MAX_REMINDERS)
    last_reminder_at: Optional[datetime] = None
    discount_code: Optional[str] = None
    failed_attempts: int = 0
    last_error: Optional[str] = None
    claim_token: Optional[str] = None
    claimed_at: Optional[datetime] = None


class BulkRecoveryRequest(BaseModel):
    """Operator catch-up request: ``{hoursOld}``, defaulting to one hour."""

    model_config = ConfigDict(populate_by_name=True)

    hours_old: float = Field(default=1.0, alias="hoursOld", gt=0, le=24 * 90)
