"""Helpers for turning JSON request values into column values."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

from flask import request

from invtrack.exceptions import ValidationError
from invtrack.models import MAX_DB_INTEGER


def json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def parse_text(
    payload: Mapping[str, Any],
    field: str,
    *,
    required: bool = False,
    max_length: int | None = None,
) -> str | None:
    value = payload.get(field)
    if value is None:
        if required:
            raise ValidationError(f"'{field}' is required.")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field}' must be a string.")
    value = value.strip()
    if not value:
        if required:
            raise ValidationError(f"'{field}' is required.")
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"'{field}' must be {max_length} characters or fewer.")
    return value


def parse_int(
    payload: Mapping[str, Any],
    field: str,
    *,
    required: bool = False,
    minimum: int | None = None,
    maximum: int = MAX_DB_INTEGER,
) -> int | None:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"'{field}' is required.")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a whole number.")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"'{field}' must be a whole number.")
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f"'{field}' must be a whole number.") from None
    elif not isinstance(value, int):
        raise ValidationError(f"'{field}' must be a whole number.")
    if minimum is not None and value < minimum:
        raise ValidationError(f"'{field}' must be at least {minimum}.")
    if value > maximum:
        raise ValidationError(f"'{field}' must be at most {maximum}.")
    return value


def parse_decimal(
    payload: Mapping[str, Any], field: str, *, required: bool = False
) -> Decimal | None:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"'{field}' is required.")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a number.")
    if isinstance(value, (int, float, Decimal)):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(f"'{field}' must be a number.")
    try:
        parsed = Decimal(value.strip()).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"'{field}' must be a number.") from None
    if parsed < 0:
        raise ValidationError(f"'{field}' cannot be negative.")
    return parsed


def parse_bool(payload: Mapping[str, Any], field: str) -> bool | None:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"'{field}' must be true or false.")
    return value


def parse_datetime(payload: Mapping[str, Any], field: str) -> datetime | None:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field}' must be an ISO 8601 date.")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"'{field}' must be an ISO 8601 date.") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_choice(
    payload: Mapping[str, Any],
    field: str,
    choices: list[str],
    *,
    required: bool = False,
) -> str | None:
    value = parse_text(payload, field, required=required)
    if value is None:
        return None
    if value not in choices:
        raise ValidationError(f"'{field}' must be one of: {', '.join(choices)}.")
    return value
