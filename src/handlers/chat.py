"""Handler for POST /chat/messages."""

from typing import Optional

from models.conversation import ChatRequest
from utils.error_handling import http_endpoint, json_response
from utils.logging_config import get_logger
from utils.validators import parse_body, parse_model

logger = get_logger(__name__)

# Sessions live in the service's cache, so it is kept for the container's life.
_chat_service: Optional["ChatService"] = None


def _get_chat_service():
    """Lazy-load ChatService."""
    global _chat_service
    if _chat_service is None:
        from services.chat_service import ChatService
        _chat_service = ChatService()
    return _chat_service


@http_endpoint
def lambda_handler(event, context):
    """Reply to a chat message, or to a quick action button when ``action`` is set."""
    payload = parse_body(event)
    service = _get_chat_service()

    if payload.get("action"):
        reply = service.handle_quick_action(
            payload.get("sessionId", ""), payload.get("customerId", ""), payload["action"]
        )
    else:
        request = parse_model(ChatRequest, payload)
        reply = service.handle_message(request.session_id, request.customer_id, request.text)

    return json_response(200, reply.model_dump(mode="json"))
