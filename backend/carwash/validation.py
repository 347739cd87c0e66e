from __future__ import annotations
from datetime import date, datetime
from carwash.time_utils import parse_iso_datetime

from typing import Any

from flask import current_app


# Largest ticket the till accepts, in FCFA
MAX_MONTANT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def parse_int(value: Any, field: str, *, required: bool = False, minimum: int | None = None) -> int | None:
    """
    Strict integer coercion for JSON bodies and query strings.

    Rejects floats, booleans, decimals and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if result > MAX_MONTANT:
        raise ValidationError(f"{field} cannot exceed {MAX_MONTANT}")
    return result


def parse_bool(value: Any, field: str) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be a boolean")


def parse_date(value: Any, field: str) -> date | None:
    """YYYY-MM-DD query parameter."""
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def parse_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_choice(value: Any, field: str, choices, *, required: bool = False) -> str | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value


def parse_pagination(args) -> tuple[int, int]:
    """page/limit from a query string, clamped to MAX_PAGE_LIMIT."""
    page = parse_int(args.get("page"), "page", minimum=1) or 1
    limit = parse_int(args.get("limit"), "limit", minimum=1) or current_app.config.get("DEFAULT_PAGE_LIMIT", 20)
    return page, min(limit, current_app.config.get("MAX_PAGE_LIMIT", 100))


def require_json_object(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_str(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    """Optional text field; blank becomes None, non-strings are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return stripped
