"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

One function keeps warm caches (engine, chat sessions) shared across routes
while the code stays organized by delegating to modules.
"""

from typing import Callable, Tuple

from utils.error_handling import json_response

from . import analytics, carts, chat, health_check, interactions, offers, recommendations

# Exact route keys; first match wins.
ROUTE_TABLE: Tuple[Tuple[str, Callable], ...] = (
    ("GET /health", health_check.lambda_handler),
    ("POST /carts/abandoned", carts.abandoned_handler),
    ("POST /carts/recovery-email", carts.recovery_email_handler),
    ("POST /carts/recovered", carts.recovered_handler),
    ("POST /carts/bulk-recovery", carts.bulk_recovery_handler),
    ("POST /chat/messages", chat.lambda_handler),
    ("GET /recommendations", recommendations.lambda_handler),
    ("GET /offers", offers.offer_handler),
    ("POST /discounts/validate", offers.validate_handler),
    ("POST /discounts/redeem", offers.redeem_handler),
    ("POST /interactions", interactions.lambda_handler),
    ("GET /analytics", analytics.lambda_handler),
)


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    The event carries the HTTP method and path; the route table maps them to
    the handler. Trailing slashes are ignored.
    """
    http = event.get("requestContext", {}).get("http", {})
    method = http.get("method", "").upper()
    path = http.get("path", "").rstrip("/") or "/"
    route_key = f"{method} {path}"

    for key, handler in ROUTE_TABLE:
        if route_key == key:
            return handler(event, context)

    return json_response(404, {"message": "Route not found", "route": route_key})
