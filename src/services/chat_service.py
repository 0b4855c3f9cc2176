"""
Chat service.

Owns conversation sessions (one per session id, held in an LRU/TTL cache)
and wraps the intent dispatcher with analytics tracking. Recording the
message is fire-and-forget; the reply never waits on it succeeding.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.engine import Engine

from config.settings import Settings
from models.conversation import BotMessage, BotReply, ConversationSession, TextPayload
from models.interaction import InteractionType
from repositories.database import get_engine
from services.intent_dispatcher import IntentDispatcher
from services.interaction_service import InteractionService
from services.offer_service import OfferService
from services.recommendation_service import RecommendationService
from utils.cache_service import LRUCache
from utils.clock import utc_now
from utils.error_handling import ValidationError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ChatService:
    """Session-scoped front door for the chat assistant."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[Settings] = None,
        dispatcher: Optional[IntentDispatcher] = None,
        interactions: Optional[InteractionService] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        if dispatcher is None or interactions is None:
            engine = engine or get_engine(self.settings)
        self.dispatcher = dispatcher or IntentDispatcher(
            RecommendationService(engine=engine, settings=self.settings, clock=clock),
            OfferService(engine=engine, settings=self.settings, clock=clock),
            settings=self.settings,
            clock=clock,
        )
        self.interactions = interactions or InteractionService(engine=engine, settings=self.settings)
        self.sessions = LRUCache(
            max_size=self.settings.session_cache_size,
            ttl_seconds=self.settings.session_ttl_seconds,
            clock=clock,
        )
        self.clock = clock

    def get_session(self, session_id: str, customer_id: str) -> ConversationSession:
        """Current session, or a fresh one when absent, expired or owned by someone else."""
        session = self.sessions.get(session_id)
        if session is None or session.customer_id != customer_id:
            session = ConversationSession(session_id=session_id, customer_id=customer_id)
        return session

    def handle_message(
        self,
        session_id: str,
        customer_id: str,
        text: str,
        now: Optional[datetime] = None,
    ) -> BotReply:
        """Classify ``text``, produce the reply, and advance the session."""
        session_id, customer_id = self._require_ids(session_id, customer_id)
        if not (text or "").strip():
            raise ValidationError("text must not be empty")

        session = self.get_session(session_id, customer_id)
        reply, updated = self.dispatcher.dispatch(text, session, now=now or self.clock())
        self.sessions.set(session_id, updated)

        self.interactions.track_safely(
            customer_id,
            InteractionType.CHAT_MESSAGE,
            payload={"message": text.strip(), "intent": reply.intent.value},
            session_id=session_id,
        )
        return self._to_reply(reply)

    def handle_quick_action(
        self,
        session_id: str,
        customer_id: str,
        action: str,
        now: Optional[datetime] = None,
    ) -> BotReply:
        session_id, customer_id = self._require_ids(session_id, customer_id)
        session = self.get_session(session_id, customer_id)
        reply, updated = self.dispatcher.quick_action(action, session, now=now or self.clock())
        self.sessions.set(session_id, updated)

        self.interactions.track_safely(
            customer_id,
            InteractionType.CHAT_MESSAGE,
            payload={"quick_action": action, "intent": reply.intent.value},
            session_id=session_id,
        )
        return self._to_reply(reply)

    @staticmethod
    def _require_ids(session_id: str, customer_id: str) -> Tuple[str, str]:
        session_id = (session_id or "").strip()
        customer_id = (customer_id or "").strip()
        if not session_id or not customer_id:
            raise ValidationError("sessionId and customerId are required")
        return session_id, customer_id

    @staticmethod
    def _to_reply(message: BotMessage) -> BotReply:
        attachments = [] if isinstance(message.payload, TextPayload) else [message.payload]
        return BotReply(reply_text=message.text, intent=message.intent, attachments=attachments)
