"""Customer and order-history models."""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

GUEST_PREFIX = "guest_"


class Segment(str, Enum):
    """Customer value tiers, lowest first."""

    NEW = "New"
    REGULAR = "Regular"
    LOYAL = "Loyal"
    VIP = "VIP"


def is_guest(customer_id: Optional[str]) -> bool:
    """Anonymous ids are derived from the browsing session."""
    return not customer_id or customer_id.startswith(GUEST_PREFIX)


class Customer(BaseModel):
    """Customer record. Segment and score are written only by segmentation."""

    customer_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    segment: Segment = Segment.NEW
    value_score: float = Field(default=0.0, ge=0)
    last_segment_update: Optional[datetime] = None


class Order(BaseModel):
    """Completed order, owned by the storefront and read for scoring and reports."""

    order_id: str
    customer_id: str
    total: float = Field(ge=0)
    created_at: datetime


class OrderStats(BaseModel):
    """Aggregated order history used by the value score."""

    order_count: int = 0
    total_spend: float = 0.0
    last_order_at: Optional[datetime] = None


class CustomerScore(BaseModel):
    """Result of scoring one customer."""

    customer_id: str
    score: float = Field(ge=0)
    segment: Segment
    components: Dict[str, float] = Field(default_factory=dict)
