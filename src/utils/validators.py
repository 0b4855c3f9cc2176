"""Lightweight validation helpers for boundary payloads."""

import json
from typing import Any, Dict, Iterable, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from utils.error_handling import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def ensure_fields(payload: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Reject a payload that lacks any of the required fields."""
    missing = [name for name in fields if payload.get(name) in (None, "", [], {})]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def ensure_positive_int(value: Any, field: str, maximum: int = 100) -> int:
    """Parse a positive int (query strings arrive as text), capped at maximum."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if parsed < 1:
        raise ValidationError(f"{field} must be positive")
    return min(parsed, maximum)


def parse_body(event: Mapping[str, Any]) -> Dict[str, Any]:
    """Decode the JSON body of an API Gateway event."""
    try:
        payload = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_model(model: Type[ModelT], payload: Mapping[str, Any]) -> ModelT:
    """Validate a payload into a model, reporting pydantic errors as ValidationError."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(details)
