from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from flask import current_app

from .errors import InvalidQuantityError, ValidationError
from .time_utils import normalize_to_utc, parse_iso_datetime


# Quantities are fixed-point with three decimal places
QUANTITY_SCALE = Decimal("0.001")
HOURS_SCALE = Decimal("0.0001")

# Maximum quantity: 999,999,999,999,999.999 (Numeric(18, 3))
MAX_QUANTITY = Decimal("999999999999999.999")

# "10", "010", "010/2" -> 10 (the suffix after "/" is a sub-operation label)
OP_NUMBER_PATTERN = re.compile(r"^\d{1,10}(?:/\d{1,5})?$")

DEFAULT_COMMENT_MAX_LENGTH = 512


def to_quantity(value: Decimal) -> Decimal:
    """Round a Decimal to the ledger's quantity scale (half-up)."""
    return value.quantize(QUANTITY_SCALE, rounding=ROUND_HALF_UP)


def to_positive_quantity(value: Decimal | None, label: str) -> Decimal:
    """
    Round to the quantity scale and require the result to be above zero.

    Raises:
        InvalidQuantityError: value missing, <= 0, or rounds down to zero
    """
    if value is None or value <= 0:
        raise InvalidQuantityError(f"{label} quantity must be greater than zero")
    amount = to_quantity(Decimal(value))
    if amount <= 0:
        raise InvalidQuantityError(f"{label} quantity {value} rounds to zero")
    return amount


def to_hours(value: Decimal) -> Decimal:
    return value.quantize(HOURS_SCALE, rounding=ROUND_HALF_UP)


def _parse_number(value: Any, field: str) -> Decimal:
    """
    Parse a user-supplied number into an unrounded Decimal.

    Accepts int, Decimal, float (via its repr, so 15.5 stays 15.5) and plain
    numeric strings. Rejects booleans, NaN/Infinity and scientific notation.
    Sign is NOT checked here; each engine owns its own sign rules.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        parsed = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
        try:
            parsed = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(parsed) > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds the maximum of {MAX_QUANTITY}")

    return parsed


def coerce_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Parse a quantity into a Decimal at ledger scale."""
    return to_quantity(_parse_number(value, field))


def coerce_hours(value: Any, field: str = "norm_hours") -> Decimal:
    return to_hours(_parse_number(value, field))


def coerce_id(value: Any, field: str) -> int:
    """Strict integer id: rejects floats, decimals and booleans."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def coerce_optional_id(value: Any, field: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_id(value, field)


def parse_op_number(value: Any, field: str = "op_number") -> int:
    """Parse an operation number; "010/2" keeps only the numeric part."""
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ValidationError(f"{field} must not be negative")
        return value
    if not isinstance(value, str) or not OP_NUMBER_PATTERN.match(value.strip()):
        raise ValidationError(
            f"{field} must contain 1 to 10 digits and may include a sub-number after '/'"
        )
    return int(value.strip().split("/", 1)[0])


def format_op_number(op_number: int) -> str:
    return f"{op_number:03d}"


def parse_business_date(value: Any, field: str = "date") -> datetime:
    if isinstance(value, (datetime, date)):
        return normalize_to_utc(value)
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date")
        if dt is not None:
            return dt
    raise ValidationError(f"{field} must be an ISO-8601 date")


def normalize_comment(value: Any, field: str = "comment") -> str | None:
    """Trim a free-text comment; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    max_length = current_app.config.get("WIP_COMMENT_MAX_LENGTH", DEFAULT_COMMENT_MAX_LENGTH)
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds {max_length} characters")
    return text


def require_fields(payload: Any, *fields: str) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if f not in payload]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def format_decimal(value: Decimal | None) -> str | None:
    """Serialize a Numeric value for JSON without float rounding ("15.500" -> "15.5")."""
    if value is None:
        return None
    normalized = Decimal(value).normalize()
    # normalize() turns 100 into 1E+2; keep plain notation
    return format(normalized, "f")
