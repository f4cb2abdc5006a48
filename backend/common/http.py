"""
Request-side helpers shared by the service blueprints.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from flask import current_app, request

from backend.common.errors import ValidationError

if TYPE_CHECKING:
    from backend.database.ledger import Ledger


def json_body() -> Dict[str, Any]:
    """
    The JSON object sent with the current request.

    A missing or unparseable body reads as an empty object, so the handler's
    own "field required" checks answer it.

    Raises:
        ValidationError: The body is valid JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def str_field(data: Dict[str, Any], key: str) -> Optional[str]:
    """Read an optional string field; any other JSON type is a 400."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def get_ledger() -> "Ledger":
    """The Ledger the gateway attached to the running app."""
    return current_app.extensions["ledger"]
