"""Custom exceptions and helpers for consistent error responses."""

import functools
import json
from typing import Any, Dict

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import DBAPIError, OperationalError

from utils.logging_config import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for application errors."""

    kind = "error"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(AppError):
    """Raised when input validation fails, before any state change."""

    kind = "validation_failure"

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, status_code=400)


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    kind = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class PreconditionFailedError(AppError):
    """Raised when an entity exists but is not in a state that allows the call."""

    kind = "precondition_failed"

    def __init__(self, message: str = "Precondition failed"):
        super().__init__(message, status_code=409)


class TransientIOError(AppError):
    """Store or email collaborator unavailable; retried by the next scheduled pass."""

    kind = "transient_io"

    def __init__(self, message: str = "Collaborator unavailable"):
        super().__init__(message, status_code=503)


class ExhaustedError(AppError):
    """No data to satisfy the request. Callers show an empty state, not an error."""

    kind = "exhausted"

    def __init__(self, message: str = "No data available"):
        super().__init__(message, status_code=200)


TRANSIENT_ERRORS = (OperationalError, DBAPIError, BotoCoreError, ClientError)


def as_app_error(exc: Exception) -> AppError:
    """Map collaborator exceptions onto the application error kinds."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, TRANSIENT_ERRORS):
        return TransientIOError(str(exc))
    return AppError(str(exc), status_code=500)


def to_response(error: AppError) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    status = "empty" if isinstance(error, ExhaustedError) else "error"
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps({"message": str(error), "status": status, "kind": error.kind}),
    }


def json_response(status: int, body: Any) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def http_endpoint(func):
    """Render AppErrors with ``to_response`` and anything else as a 500."""

    @functools.wraps(func)
    def wrapper(event, context):
        try:
            return func(event, context)
        except AppError as exc:
            return to_response(exc)
        except Exception as exc:
            error = as_app_error(exc)
            if isinstance(error, TransientIOError):
                return to_response(error)
            logger.exception("Unhandled error", extra={"handler": func.__name__})
            return json_response(500, {"message": "Internal error", "status": "error"})

    return wrapper
