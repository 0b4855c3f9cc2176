"""Pydantic models for records and API payloads."""

from models.cart import (  # noqa: F401
    AbandonedCart,
    AbandonmentRequest,
    BulkRecoveryRequest,
    CartItem,
)
from models.conversation import (  # noqa: F401
    BotMessage,
    BotReply,
    ChatMessage,
    ChatRequest,
    ConversationSession,
    Intent,
    OfferPayload,
    ProductListPayload,
    Sender,
    TextPayload,
)
from models.customer import Customer, CustomerScore, Order, OrderStats, Segment  # noqa: F401
from models.discount import (  # noqa: F401
    CodeValidation,
    DiscountCode,
    DiscountType,
    InvalidReason,
    Offer,
    RedeemRequest,
)
from models.interaction import InteractionEvent, InteractionType  # noqa: F401
from models.jobs import ItemFailure, JobSummary  # noqa: F401
from models.product import Product, ProductAssociation  # noqa: F401
from models.report import DailyReport, SalesAnalytics  # noqa: F401
