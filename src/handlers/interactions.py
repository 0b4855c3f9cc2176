"""Handler for POST /interactions."""

from typing import Optional

from models.interaction import InteractionEvent
from utils.error_handling import http_endpoint, json_response
from utils.validators import ensure_fields, parse_body, parse_model

_interaction_service: Optional["InteractionService"] = None


def _get_interaction_service():
    """Lazy-load InteractionService."""
    global _interaction_service
    if _interaction_service is None:
        from services.interaction_service import InteractionService
        _interaction_service = InteractionService()
    return _interaction_service


@http_endpoint
def lambda_handler(event, context):
    payload = parse_body(event)
    ensure_fields(payload, ("customerId", "type"))
    interaction = parse_model(InteractionEvent, payload)
    event_id = _get_interaction_service().track(interaction)
    return json_response(200, {"success": True, "eventId": event_id})
