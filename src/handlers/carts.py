"""
Cart handlers.

POST /carts/abandoned       abandonment webhook from the storefront
POST /carts/recovery-email  manual recovery email for one cart
POST /carts/recovered       checkout completed (by cart or by customer)
POST /carts/bulk-recovery   first reminders for older unemailed carts
"""

from __future__ import annotations

from typing import Optional

from models.cart import AbandonmentRequest, BulkRecoveryRequest
from utils.error_handling import http_endpoint, json_response
from utils.logging_config import get_logger
from utils.validators import ensure_fields, parse_body, parse_model

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time DB connections
_recovery_service: Optional["CartRecoveryService"] = None


def _get_recovery_service():
    """Lazy-load CartRecoveryService."""
    global _recovery_service
    if _recovery_service is None:
        from services.cart_recovery_service import CartRecoveryService
        _recovery_service = CartRecoveryService()
    return _recovery_service


@http_endpoint
def abandoned_handler(event, context):
    """Create or update the customer's abandoned cart and return its id."""
    payload = parse_body(event)
    ensure_fields(payload, ("customerId", "cartItems"))
    request = parse_model(AbandonmentRequest, payload)

    cart = _get_recovery_service().track_abandoned_cart(request)
    return json_response(200, {"success": True, "abandonedCartId": cart.cart_id})


@http_endpoint
def recovery_email_handler(event, context):
    """Send the next due reminder for one cart, ignoring the time window."""
    payload = parse_body(event)
    ensure_fields(payload, ("abandonedCartId",))

    cart = _get_recovery_service().send_recovery_email(payload["abandonedCartId"])
    return json_response(
        200,
        {
            "success": True,
            "abandonedCartId": cart.cart_id,
            "reminderCount": cart.reminder_count,
            "discountCode": cart.discount_code,
        },
    )


@http_endpoint
def recovered_handler(event, context):
    """Mark one cart, or every open cart of a customer, as recovered."""
    payload = parse_body(event)
    service = _get_recovery_service()

    if payload.get("abandonedCartId"):
        cart = service.mark_recovered(payload["abandonedCartId"])
        return json_response(200, {"success": True, "recovered": [cart.cart_id]})

    ensure_fields(payload, ("customerId",))
    recovered = service.mark_customer_recovered(payload["customerId"])
    return json_response(200, {"success": True, "recovered": recovered})


@http_endpoint
def bulk_recovery_handler(event, context):
    """First reminders for unemailed carts abandoned at least ``hoursOld`` hours ago."""
    request = parse_model(BulkRecoveryRequest, parse_body(event))
    summary = _get_recovery_service().bulk_recover(request.hours_old)
    return json_response(
        200,
        {
            "processed": summary.processed,
            "successful": summary.succeeded,
            "failed": summary.failed,
            "errors": [
                {"cartId": failure.item_id, "error": failure.message}
                for failure in summary.failures
            ],
        },
    )
