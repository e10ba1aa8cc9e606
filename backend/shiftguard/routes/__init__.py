"""
Shared helpers for the API blueprints.

Service errors map to HTTP status codes; everything else is a 500 logged by
the route that caught it.
"""

from __future__ import annotations

from flask import jsonify

from ..services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ShiftGuardError,
    StorageError,
    ValidationError,
)
from ..time_utils import parse_timestamp

ERROR_STATUS = (
    (InvalidStateError, 409),
    (ConflictError, 409),
    (ValidationError, 400),
    (NotFoundError, 404),
    (StorageError, 503),
)


def error_response(exc: ShiftGuardError):
    for error_cls, status in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return jsonify({"error": str(exc)}), status
    return jsonify({"error": str(exc)}), 400


def timestamp_field(data: dict, key: str) -> int | None:
    """Epoch-ms or ISO-8601 request field; bad values raise ValidationError."""
    try:
        return parse_timestamp(data.get(key))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be epoch milliseconds or an ISO-8601 timestamp") from exc


def int_field(data: dict, key: str) -> int | None:
    """Optional integer request field; bad values raise ValidationError."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be an integer") from exc
