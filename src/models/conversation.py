"""Conversation models for the chat assistant."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.discount import Offer
from models.product import Product


class Intent(str, Enum):
    """Classified intent of a chat message."""

    GREETING = "greeting"
    RECOMMENDATION = "recommendation"
    DISCOUNT = "discount"
    CART = "cart"
    SHIPPING = "shipping"
    HOURS = "hours"
    LOCATION = "location"
    THANKS = "thanks"
    GOODBYE = "goodbye"
    HELP = "help"
    FALLBACK = "fallback"


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class TextPayload(BaseModel):
    kind: Literal["text"] = "text"


class ProductListPayload(BaseModel):
    kind: Literal["product_list"] = "product_list"
    products: List[Product] = Field(default_factory=list)


class OfferPayload(BaseModel):
    kind: Literal["offer"] = "offer"
    offer: Offer


MessagePayload = Annotated[
    Union[TextPayload, ProductListPayload, OfferPayload],
    Field(discriminator="kind"),
]


class BotMessage(BaseModel):
    """Reply produced by an intent handler."""

    text: str
    intent: Optional[Intent] = None
    payload: MessagePayload = Field(default_factory=TextPayload)


class ChatMessage(BaseModel):
    """Entry in a session's message log."""

    sender: Sender
    text: str
    intent: Optional[Intent] = None
    payload: MessagePayload = Field(default_factory=TextPayload)
    timestamp: datetime


class ConversationSession(BaseModel):
    """Per-session conversational state. One instance per browsing session."""

    session_id: str
    customer_id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    """Payload for ``POST /chat/messages``."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    customer_id: str = Field(alias="customerId")
    text: str

    @field_validator("session_id", "customer_id", "text")
    @classmethod
    def validate_required(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("sessionId, customerId and text must be provided")
        return cleaned


class BotReply(BaseModel):
    """What the chat caller renders: the reply text plus any cards."""

    reply_text: str
    intent: Intent
    attachments: List[MessagePayload] = Field(default_factory=list)
