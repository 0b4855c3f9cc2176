"""Handler for GET /recommendations."""

from typing import Optional

from utils.error_handling import ExhaustedError, http_endpoint, json_response
from utils.logging_config import get_logger
from utils.validators import ensure_positive_int

logger = get_logger(__name__)

_recommendation_service: Optional["RecommendationService"] = None

DEFAULT_LIMIT = 6
MAX_LIMIT = 50


def _get_recommendation_service():
    """Lazy-load RecommendationService."""
    global _recommendation_service
    if _recommendation_service is None:
        from services.recommendation_service import RecommendationService
        _recommendation_service = RecommendationService()
    return _recommendation_service


@http_endpoint
def lambda_handler(event, context):
    """
    Query parameters: ``mode`` (trending, personalized, cross_sell, upsell),
    ``customerId``, ``productIds`` (comma separated), ``limit``.

    An empty result is a 200 with ``status: empty`` so the page can render a
    neutral state.
    """
    params = event.get("queryStringParameters") or {}
    mode = params.get("mode", "trending")
    limit = ensure_positive_int(params.get("limit", DEFAULT_LIMIT), "limit", maximum=MAX_LIMIT)
    product_ids = [pid.strip() for pid in (params.get("productIds") or "").split(",") if pid.strip()]

    try:
        products = _get_recommendation_service().recommend(
            mode,
            customer_id=params.get("customerId"),
            product_ids=product_ids,
            limit=limit,
        )
    except ExhaustedError as exc:
        return json_response(200, {"status": "empty", "message": str(exc), "recommendations": []})

    logger.info("Recommendations served", extra={"mode": mode, "count": len(products)})
    return json_response(
        200,
        {
            "status": "ok",
            "mode": mode,
            "recommendations": [product.model_dump(mode="json") for product in products],
        },
    )
