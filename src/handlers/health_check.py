"""Lightweight health check handler."""

import os
import json
from datetime import datetime, timezone

from sqlalchemy import text

from utils.logging_config import SERVICE_NAME, get_logger

logger = get_logger(__name__)


def _store_status() -> str:
    """Ping the store of record; health stays 200 either way."""
    try:
        from repositories.database import get_engine

        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception as exc:
        logger.warning("Store ping failed", extra={"error": str(exc)})
        return "unavailable"


def lambda_handler(event, context):
    """Return a 200 with service, environment and store status."""
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(
            {
                "status": "ok",
                "service": SERVICE_NAME,
                "store": _store_status(),
                "environment": os.environ.get("ENVIRONMENT", "dev"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ),
    }
