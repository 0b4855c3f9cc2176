"""Interaction events (append-only analytics records)."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InteractionType(str, Enum):
    """Event types emitted by the storefront and the chat assistant."""

    PAGE_VIEW = "page_view"
    PRODUCT_VIEW = "product_view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    CHAT_OPENED = "chat_opened"
    CHAT_MESSAGE = "chat_message"
    SCROLL_DEPTH = "scroll_depth"
    EXIT_INTENT_POPUP_SHOWN = "exit_intent_popup_shown"
    CROSS_SELL_ADD = "cross_sell_add"
    UPSELL_CLICK = "upsell_click"


# Events that count as product engagement for trending and affinity.
ENGAGEMENT_TYPES = (InteractionType.PRODUCT_VIEW, InteractionType.PURCHASE)


class InteractionEvent(BaseModel):
    """One tracked interaction."""

    model_config = ConfigDict(populate_by_name=True)

    event_id: Optional[int] = None
    customer_id: str = Field(alias="customerId")
    type: InteractionType
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    product_id: Optional[str] = Field(default=None, alias="productId")
    category: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None

    @field_validator("customer_id")
    @classmethod
    def validate_customer(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("customerId must be provided")
        return cleaned
