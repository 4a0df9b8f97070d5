"""
Lightweight domain validation helpers.

Pure checks with no I/O, used at the service boundary.  Each returns the
normalised value or raises ValidationError naming the field.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from store_kernel.exceptions import ValidationError


def as_uuid(value: UUID | str) -> UUID | None:
    """Coerce an identifier to UUID; None when it cannot name any row."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def require_text(value: Any, field: str) -> str:
    """Non-blank string, stripped."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def require_positive_int(value: Any, field: str) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer, got {value!r}", field=field)
    return value


def require_non_negative_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer, got {value!r}", field=field)
    return value


def require_cost(value: Any, field: str = "cost") -> Decimal:
    """Non-negative finite Decimal.  Floats are refused."""
    if isinstance(value, (bool, float)):
        raise ValidationError(f"{field} must be a decimal amount, got {value!r}", field=field)
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a decimal amount, got {value!r}", field=field) from None
    if not cost.is_finite() or cost < 0:
        raise ValidationError(f"{field} must be non-negative, got {value!r}", field=field)
    return cost
