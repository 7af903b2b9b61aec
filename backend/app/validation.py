from __future__ import annotations
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from app.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, Date, Numeric
from sqlalchemy.orm import DeclarativeMeta


CENT = Decimal("0.01")
# Numeric(12,2) columns store values below 1e10.
NUMBER_LIMIT = Decimal("1e10")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_ROLES = ("admin", "sales_staff")
PAYMENT_METHODS = ("cash", "check", "bank_transfer", "online")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """Duplicate or business rule conflict (e.g., duplicate product code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which fields a client may write on a model:
    - writable_fields: keys copied from the request, everything else is dropped
    - required_on_create: keys that must be non-empty when creating
    - strict: reject keys outside writable_fields instead of ignoring them
    """
    writable_fields: set[str]
    required_on_create: set[str] | frozenset[str] = frozenset()
    strict: bool = False


def money(value) -> Decimal:
    """Quantize to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str) -> Decimal:
    """Parse a finite number no larger than a money column can store."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str) and value.strip():
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not number.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(number) >= NUMBER_LIMIT:
        raise ValidationError(f"{field} is out of range")
    return number


def to_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def require_range(value, field: str, *, low=None, high=None) -> None:
    if low is not None and value < low:
        raise ValidationError(f"{field} must be at least {low}")
    if high is not None and value > high:
        raise ValidationError(f"{field} must be at most {high}")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        if isinstance(value, float):
            return int(value)
        return to_int(value, col.key)

    if isinstance(coltype, Numeric):
        return to_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        return to_bool(value)

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

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")
            return d
        raise ValidationError(f"{col.key} must be a date (YYYY-MM-DD)")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict for ``model``.

    Only keys listed in ``policy.writable_fields`` survive. Each value is
    coerced from the column type (Numeric -> Decimal, Date -> date, strings
    stripped) and checked against nullability and String(n) length.
    With partial=False the policy's required_on_create keys must be present;
    partial=True checks only the keys the client sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            if policy.strict:
                raise ValidationError(f"Field not allowed: {k}")
            continue
        col = cols[k]

        # NULL handling (empty strings count as null for optional columns)
        if raw is None or (raw == "" and col.nullable):
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_user(patch: dict, *, creating: bool) -> None:
    if "username" in patch and len(patch["username"]) < 3:
        raise ValidationError("Username must be at least 3 characters")
    if "email" in patch and not EMAIL_RE.match(patch["email"]):
        raise ValidationError("Valid email is required")
    if "role" in patch and patch["role"] not in USER_ROLES:
        raise ValidationError("Role must be admin or sales_staff")
    if patch.get("commission_rate") is not None:
        require_range(patch["commission_rate"], "commission_rate", low=0, high=100)
    if patch.get("salary") is not None:
        require_range(patch["salary"], "salary", low=0)
    if creating and "role" not in patch:
        raise ValidationError("Role must be admin or sales_staff")


def enforce_rules_product(patch: dict) -> None:
    """Product rules beyond what the column metadata enforces."""
    if patch.get("unit_price") is not None:
        require_range(patch["unit_price"], "unit_price", low=0)
        patch["unit_price"] = money(patch["unit_price"])
    if patch.get("tax_rate") is not None:
        require_range(patch["tax_rate"], "tax_rate", low=0, high=100)


def enforce_rules_category(patch: dict) -> None:
    if "category_name" in patch:
        name = patch["category_name"] or ""
        if not 2 <= len(name) <= 100:
            raise ValidationError("Category name must be between 2 and 100 characters")
    if patch.get("display_order") is not None:
        require_range(patch["display_order"], "display_order", low=0)


def enforce_rules_contact(patch: dict) -> None:
    if patch.get("email") and not EMAIL_RE.match(patch["email"]):
        raise ValidationError("Contact email must be valid")
