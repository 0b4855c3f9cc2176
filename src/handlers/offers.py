"""
Offer and discount code handlers.

GET  /offers              personalized offer for ``customerId``
POST /discounts/validate  check a code without using it
POST /discounts/redeem    use one redemption of a code
"""

from typing import Optional

from models.discount import RedeemRequest
from utils.error_handling import http_endpoint, json_response
from utils.logging_config import get_logger
from utils.validators import ensure_fields, parse_body, parse_model

logger = get_logger(__name__)

_offer_service: Optional["OfferService"] = None


def _get_offer_service():
    """Lazy-load OfferService."""
    global _offer_service
    if _offer_service is None:
        from services.offer_service import OfferService
        _offer_service = OfferService()
    return _offer_service


@http_endpoint
def offer_handler(event, context):
    params = event.get("queryStringParameters") or {}
    offer = _get_offer_service().personalized_offer(params.get("customerId"))
    return json_response(200, {"success": True, "offer": offer.model_dump(mode="json")})


@http_endpoint
def validate_handler(event, context):
    payload = parse_body(event)
    ensure_fields(payload, ("code",))
    request = parse_model(RedeemRequest, payload)
    result = _get_offer_service().validate_code(request.code, request.order_amount)
    return json_response(200, result.model_dump(mode="json"))


@http_endpoint
def redeem_handler(event, context):
    """A failed redemption is still a 200; ``valid`` and ``reason`` say why."""
    payload = parse_body(event)
    ensure_fields(payload, ("code",))
    request = parse_model(RedeemRequest, payload)
    result = _get_offer_service().redeem_code(request.code, request.order_amount)
    return json_response(200, result.model_dump(mode="json"))
