"""Handler for GET /analytics."""

from typing import Optional

from utils.error_handling import http_endpoint, json_response
from utils.validators import ensure_positive_int

_reporting_service: Optional["ReportingService"] = None


def _get_reporting_service():
    """Lazy-load ReportingService."""
    global _reporting_service
    if _reporting_service is None:
        from services.reporting_service import ReportingService
        _reporting_service = ReportingService()
    return _reporting_service


@http_endpoint
def lambda_handler(event, context):
    """Rolling sales analytics; ``days`` defaults to 30."""
    params = event.get("queryStringParameters") or {}
    days = ensure_positive_int(params.get("days", 30), "days", maximum=365)
    analytics = _get_reporting_service().sales_analytics(days=days)
    return json_response(200, {"success": True, "analytics": analytics.model_dump(mode="json")})
