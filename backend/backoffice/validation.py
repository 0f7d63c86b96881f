from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date


# Maximum value a Numeric(10, x) column can hold before overflowing
MAX_AMOUNT = Decimal("99999999.99")

# Fraction digits stored by Numeric(10, 2) money and Numeric(10, 3) quantity columns
MONEY_SCALE = 2
QUANTITY_SCALE = 3


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_decimal(value: Any, field: str, places: int | None = None) -> Decimal:
    """
    Strict decimal coercion for money and quantities.

    Accepts int, Decimal, float and numeric strings. Rejects bools,
    NaN / Infinity and anything that does not parse. With places set,
    values carrying more fraction digits than the column stores are
    rejected rather than rounded.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(parsed) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    if places is not None and parsed != parsed.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError(f"{field} allows at most {places} decimal places")
    return parsed


def parse_money(value: Any, field: str = "amount") -> Decimal:
    return parse_decimal(value, field, places=MONEY_SCALE)


def parse_quantity(value: Any, field: str = "quantity") -> Decimal:
    return parse_decimal(value, field, places=QUANTITY_SCALE)


def parse_positive_amount(value: Any, field: str = "amount") -> Decimal:
    parsed = parse_money(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive number")
    return parsed


def parse_date(value: Any, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def parse_int_id(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer id")


def normalize_choice(value: Any, field: str, allowed, aliases: dict | None = None) -> str:
    """Lower-case a code, resolve aliases, and check it against the allowed set."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    code = value.strip().lower()
    if aliases:
        code = aliases.get(code, code)
    if code not in allowed:
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {sorted(allowed)}")
    return code


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - reject bools, floats and decimal strings
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key, places=coltype.scale)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, Date):
        return parse_date(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create
    Returns a cleaned dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    missing = sorted(f for f in required if payload.get(f) in (None, ""))
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    cleaned: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            cleaned[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        cleaned[k] = val

    return cleaned
