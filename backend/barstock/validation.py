from __future__ import annotations
import math

from dataclasses import dataclass
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeMeta


# Per-location stock columns, in display order
STOCK_COLUMNS = ("bar1", "bar2", "cold_room")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    """
    writable_fields: set[str]


def is_stock_number(value: Any) -> bool:
    """True for finite int/float values. bool and numeric strings are rejected."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    if not isinstance(col.type, (String, Text)):
        raise ValidationError(f"{col.key} is not a text field")
    if not isinstance(value, str):
        raise ValidationError(f"{col.key} must be a string")
    return value.strip()


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
) -> dict:
    """
    Validates + normalizes a partial update against:
    - SQLAlchemy column metadata (nullable, String length)
    - a policy allowlist (writable_fields)

    Returns a patch dict ready to hand to the store gateway.
    """
    if not isinstance(payload, dict):
        raise ValidationError("JSON object expected")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
            raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_par_level(total_par: Any) -> float:
    if not is_stock_number(total_par):
        raise ValidationError("total_par must be a number")
    if total_par < 0:
        raise ValidationError("total_par must be >= 0")
    return float(total_par)


def require_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value
