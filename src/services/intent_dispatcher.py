"""
Rule-based chat intent dispatcher.

Free text is matched against ``INTENT_RULES`` in order and the first match
wins. Overlaps are resolved by that order alone: "hi, any discount codes?"
is a greeting, "recommend something, I need help" is a recommendation.

The dispatcher only routes. Product ranking lives in
``RecommendationService`` and offers in ``OfferService``; failures from
either degrade to a canned reply.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from config.settings import PRODUCT_SEARCH_TERMS, Settings
from models.conversation import (
    BotMessage,
    ChatMessage,
    ConversationSession,
    Intent,
    OfferPayload,
    ProductListPayload,
    Sender,
)
from models.customer import is_guest
from services.offer_service import OfferService
from services.recommendation_service import RecommendationMode, RecommendationService
from utils.clock import utc_now
from utils.error_handling import ValidationError
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IntentRule:
    """An intent and the patterns that select it (any one matching is enough)."""

    intent: Intent
    patterns: Tuple[re.Pattern, ...]

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def _rule(intent: Intent, *patterns: str) -> IntentRule:
    return IntentRule(intent, tuple(re.compile(p, re.IGNORECASE) for p in patterns))


def build_intent_rules(
    product_terms: Sequence[str] = PRODUCT_SEARCH_TERMS,
) -> Tuple[IntentRule, ...]:
    """The ordered rule table; ``product_terms`` are the nouns of a product search."""
    nouns = "|".join(re.escape(term) + "s?" for term in product_terms)
    # Order is load-bearing.
    return (
        _rule(Intent.GREETING, r"^\s*(hi|hello|hey|hola|buenos dias|good morning|good afternoon)\b"),
        _rule(
            Intent.RECOMMENDATION,
            r"\b(recommend|suggest|best|popular|trending|top)\b",
            r"\b(looking for|find|search|want|need|show me)\b.*\b(" + nouns + r")\b",
        ),
        _rule(Intent.DISCOUNT, r"\b(discounts?|coupons?|promos?|offers?|deals?|sales?|codes?)\b"),
        _rule(Intent.CART, r"\b(cart|basket|checkout|buy|purchase|order)\b"),
        _rule(Intent.SHIPPING, r"\b(ship|deliver|shipping|delivery|when|arrive)\b"),
        _rule(Intent.HOURS, r"\b(hours?|open|close|time|schedule)\b"),
        _rule(Intent.LOCATION, r"\b(location|address|where|find you|store)\b"),
        _rule(Intent.THANKS, r"\b(thank|thanks|gracias|appreciate)\b"),
        _rule(Intent.GOODBYE, r"\b(bye|goodbye|adios|see you|later)\b"),
        _rule(Intent.HELP, r"\b(help|support|question|problem|issue)\b"),
    )


INTENT_RULES = build_intent_rules()

GREETINGS = (
    "Hello! How can I help you today?",
    "Welcome! Looking for something good?",
    "Hi there! Ready to discover our products?",
)
THANKS = (
    "You're welcome! Is there anything else I can help with?",
    "My pleasure! Let me know if you need anything else.",
    "Happy to help!",
)
GOODBYES = (
    "Goodbye! Thanks for visiting.",
    "Come back soon!",
    "Take care! Hope to see you again.",
)
FALLBACKS = (
    "I'm not sure I understood that. Could you rephrase?",
    "Let me connect you with our support team for that question. In the meantime, can I help you find a product?",
    "That's a great question! For detailed assistance, please contact our support. How else can I help?",
)

STATIC_REPLIES: Dict[Intent, str] = {
    Intent.CART: "Ready to checkout? View your cart to complete your order: /cart",
    Intent.SHIPPING: (
        "Standard delivery takes 3-5 business days. Express shipping (1-2 days) "
        "is available at checkout."
    ),
    Intent.HOURS: (
        "Online orders can be placed 24/7. Customer support is available "
        "Monday-Friday, 9 AM - 6 PM."
    ),
    Intent.LOCATION: "You can find all our store locations on our Locations page: /locations",
    Intent.HELP: (
        "I can help you with:\n"
        "- Finding products\n"
        "- Getting discounts\n"
        "- Checking out\n"
        "- Shipping info\n"
        "- General questions\n\n"
        "Just ask!"
    ),
}

RECOMMENDATION_TEXT = "Here are some products you might love!"
MENU_FALLBACK_TEXT = "Check out our full menu for all our options: /menu"
OFFER_TEXT = "Great news! Here's a special offer just for you:"
PROMOTIONS_FALLBACK_TEXT = "Check our promotions page for current deals: /deals"

# Widget buttons and the user message each one stands for.
QUICK_ACTIONS: Dict[str, Tuple[Intent, str]] = {
    "products": (Intent.RECOMMENDATION, "Show me your best products"),
    "deals": (Intent.DISCOUNT, "Do you have any discounts?"),
    "help": (Intent.HELP, "I need help"),
}


def classify(text: str, rules: Sequence[IntentRule] = INTENT_RULES) -> Intent:
    """First matching rule wins; FALLBACK when none does."""
    for rule in rules:
        if rule.matches(text):
            return rule.intent
    return Intent.FALLBACK


class IntentDispatcher:
    """Classifies a message and produces the reply plus the updated session."""

    def __init__(
        self,
        recommender: RecommendationService,
        offers: OfferService,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        rules: Optional[Sequence[IntentRule]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.recommender = recommender
        self.offers = offers
        self.settings = settings or Settings.from_environment()
        self.rng = rng or random.Random()
        self.rules = tuple(rules or build_intent_rules(self.settings.product_search_terms))
        self.clock = clock

    def classify(self, text: str) -> Intent:
        return classify(text, self.rules)

    def dispatch(
        self, text: str, session: ConversationSession, now: Optional[datetime] = None
    ) -> Tuple[BotMessage, ConversationSession]:
        """Reply to free text. The input session is left untouched."""
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("text must not be empty")
        intent = self.classify(cleaned)
        return self._respond(intent, cleaned, session, now or self.clock())

    def quick_action(
        self, action: str, session: ConversationSession, now: Optional[datetime] = None
    ) -> Tuple[BotMessage, ConversationSession]:
        """Reply to a widget button as if its canned message had been typed."""
        if action not in QUICK_ACTIONS:
            raise ValidationError(f"Unknown quick action: {action}")
        intent, text = QUICK_ACTIONS[action]
        return self._respond(intent, text, session, now or self.clock())

    def _respond(
        self, intent: Intent, text: str, session: ConversationSession, now: datetime
    ) -> Tuple[BotMessage, ConversationSession]:
        context_updates: Dict[str, Any] = {"last_intent": intent.value}
        reply = self._handle(intent, session.customer_id, now, context_updates)

        updated = session.model_copy(deep=True)
        updated.messages.append(
            ChatMessage(sender=Sender.USER, text=text, intent=intent, timestamp=now)
        )
        updated.messages.append(
            ChatMessage(
                sender=Sender.BOT,
                text=reply.text,
                intent=reply.intent,
                payload=reply.payload,
                timestamp=now,
            )
        )
        updated.context.update(context_updates)

        logger.info(
            "Chat message dispatched",
            extra={"session_id": session.session_id, "intent": intent.value},
        )
        return reply, updated

    def _handle(
        self, intent: Intent, customer_id: str, now: datetime, context: Dict[str, Any]
    ) -> BotMessage:
        if intent is Intent.RECOMMENDATION:
            return self._recommend(customer_id, now, context)
        if intent is Intent.DISCOUNT:
            return self._offer(customer_id, now, context)
        if intent is Intent.GREETING:
            return BotMessage(text=self.rng.choice(GREETINGS), intent=intent)
        if intent is Intent.THANKS:
            return BotMessage(text=self.rng.choice(THANKS), intent=intent)
        if intent is Intent.GOODBYE:
            return BotMessage(text=self.rng.choice(GOODBYES), intent=intent)
        if intent in STATIC_REPLIES:
            return BotMessage(text=STATIC_REPLIES[intent], intent=intent)
        return BotMessage(text=self.rng.choice(FALLBACKS), intent=Intent.FALLBACK)

    def _recommend(self, customer_id: str, now: datetime, context: Dict[str, Any]) -> BotMessage:
        mode = RecommendationMode.TRENDING if is_guest(customer_id) else RecommendationMode.PERSONALIZED
        try:
            products = self.recommender.recommend(
                mode.value,
                customer_id=customer_id,
                limit=self.settings.chat_recommendation_limit,
                now=now,
            )
        except Exception as exc:
            logger.warning(
                "Chat recommendations unavailable",
                extra={"customer_id": customer_id, "mode": mode.value, "error": str(exc)},
            )
            return BotMessage(text=MENU_FALLBACK_TEXT, intent=Intent.RECOMMENDATION)

        context["last_recommendations"] = [product.product_id for product in products]
        return BotMessage(
            text=RECOMMENDATION_TEXT,
            intent=Intent.RECOMMENDATION,
            payload=ProductListPayload(products=products),
        )

    def _offer(self, customer_id: str, now: datetime, context: Dict[str, Any]) -> BotMessage:
        try:
            offer = self.offers.personalized_offer(customer_id, now=now)
        except Exception as exc:
            logger.warning(
                "Chat offer unavailable",
                extra={"customer_id": customer_id, "error": str(exc)},
            )
            return BotMessage(text=PROMOTIONS_FALLBACK_TEXT, intent=Intent.DISCOUNT)

        context["last_offer_code"] = offer.code
        return BotMessage(text=OFFER_TEXT, intent=Intent.DISCOUNT, payload=OfferPayload(offer=offer))
