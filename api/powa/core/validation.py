import json
from typing import Any, Dict

from pydantic import ValidationError

from powa.core.errors import ConfigValidationError
from powa.models.schemas import SimulationConfig


def parse_body(raw: bytes) -> Any:
    if not raw:
        raise ConfigValidationError("Request body is empty")
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigValidationError(f"Request body is not valid JSON: {e}") from e


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"] if not isinstance(p, int)) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid configuration format (" + "; ".join(parts) + ")"


def validate_config(body: Any) -> Dict[str, Any]:
    """
    Check a parsed request body against the bounds forge expects.

    revenueAmount must be a positive number no larger than 1e12 and epochs
    an array of at most 20 entries. The body itself is returned untouched so
    the file forge reads is exactly what the client sent.
    """
    if not isinstance(body, dict):
        raise ConfigValidationError("Invalid configuration format (expected a JSON object)")

    try:
        SimulationConfig.model_validate(body)
    except ValidationError as e:
        raise ConfigValidationError(_describe(e)) from e

    return body
