from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from clothpos.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text, DateTime


# Maximum price: 9,999,999.99 per unit
MAX_PRICE = Decimal("9999999.99")
CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate username)."""


class NotFoundError(LookupError):
    """404-level: the referenced row does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignored_fields: keys accepted in payloads but dropped (e.g. read-only ids echoed back)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    ignored_fields: set[str] | None = None


def to_money(value: Any, field: str = "amount") -> Decimal:
    """Coerce a number or numeric string to a Decimal rounded to cents."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_int(value: Any, field: str) -> int:
    # Integers - strict validation to reject floats and scientific notation
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _columns_by_key(model) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return to_int(value, col.key)

    if isinstance(coltype, Numeric):
        return to_money(value, col.key)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes an incoming dict against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    ignored = policy.ignored_fields or set()

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in ignored:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in ignored:
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("cost_price", "selling_price"):
        price = patch.get(field)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE:,}")

    tax_rate = patch.get("tax_rate")
    if tax_rate is not None and tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")


def enforce_rules_variant(patch: dict) -> None:
    for field in ("size", "color"):
        if field in patch and not patch[field]:
            raise ValidationError(f"{field} cannot be blank")
