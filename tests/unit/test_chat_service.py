"""
Chat service tests: session isolation, tracking, validation.

Run with: pytest tests/unit/test_chat_service.py -v
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from models.conversation import Intent, OfferPayload
from repositories.schema import interaction_events
from services.chat_service import ChatService
from utils.error_handling import TransientIOError, ValidationError


class Clock:
    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def service(engine, settings, clock):
    return ChatService(engine=engine, settings=settings, clock=clock)


def _chat_events(engine):
    with engine.connect() as conn:
        return conn.execute(
            select(func.count()).select_from(interaction_events).where(
                interaction_events.c.type == "chat_message"
            )
        ).scalar()


class TestHandleMessage:
    def test_reply_and_tracking(self, service, engine):
        reply = service.handle_message("s1", "cust-1", "hello")

        assert reply.intent is Intent.GREETING
        assert reply.reply_text
        assert reply.attachments == []
        assert _chat_events(engine) == 1

    def test_offer_attachment(self, service, seed):
        seed.customer("cust-1")
        reply = service.handle_message("s1", "cust-1", "any discount codes?")

        assert reply.intent is Intent.DISCOUNT
        assert isinstance(reply.attachments[0], OfferPayload)
        assert reply.attachments[0].offer.code.startswith("WELCOME-")

    def test_recommendations_degrade_to_menu(self, service):
        reply = service.handle_message("s1", "cust-1", "what do you recommend")
        assert reply.intent is Intent.RECOMMENDATION
        assert "menu" in reply.reply_text

    def test_sessions_are_isolated(self, service):
        service.handle_message("s1", "cust-1", "hello")
        service.handle_message("s1", "cust-1", "thanks")
        service.handle_message("s2", "cust-2", "bye")

        first = service.get_session("s1", "cust-1")
        second = service.get_session("s2", "cust-2")
        assert len(first.messages) == 4
        assert first.context["last_intent"] == "thanks"
        assert len(second.messages) == 2
        assert second.context["last_intent"] == "goodbye"

    def test_session_expires(self, service, clock):
        service.handle_message("s1", "cust-1", "hello")
        clock.current = clock.current + timedelta(hours=1)

        assert service.get_session("s1", "cust-1").messages == []

    def test_tracking_failure_does_not_block_reply(self, service):
        with patch.object(
            service.interactions.interactions, "add", side_effect=TransientIOError("down")
        ):
            reply = service.handle_message("s1", "cust-1", "hello")
        assert reply.intent is Intent.GREETING

    def test_empty_text_rejected(self, service):
        with pytest.raises(ValidationError):
            service.handle_message("s1", "cust-1", "  ")

    def test_missing_ids_rejected(self, service):
        with pytest.raises(ValidationError):
            service.handle_message("", "cust-1", "hello")


class TestQuickAction:
    def test_help_button(self, service):
        reply = service.handle_quick_action("s1", "cust-1", "help")
        assert reply.intent is Intent.HELP
        assert "I can help you with" in reply.reply_text
