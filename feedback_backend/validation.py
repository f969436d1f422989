"""
Validation layer: turns an untrusted payload into normalized record fields.
"""

from __future__ import annotations

from typing import Any

import pydantic
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel

from feedback_backend.errors import ValidationError
from feedback_backend.records import RecordKind


def describe_errors(exc: pydantic.ValidationError | RequestValidationError) -> str:
    """Render pydantic errors as ``field: message`` pairs."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"


def validate_fields(kind: RecordKind, payload: Any) -> BaseModel:
    """
    Validate ``payload`` against the mutable fields of ``kind``.

    Strings are trimmed and defaults applied on success. Fields that are not
    part of the record type are dropped. Raises ``ValidationError`` with a
    readable message naming every failing field.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        raise ValidationError(f"{kind.label} payload must be a JSON object")
    try:
        return kind.fields_model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"{kind.label} validation failed: {describe_errors(exc)}"
        ) from exc
