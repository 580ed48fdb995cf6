"""
Lightweight domain validation helpers.

Pure checks with no I/O, run at the service boundary before any session is
opened.  Each helper raises a typed ``ValidationError`` subclass.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from inventory_kernel.exceptions import (
    InvalidDateError,
    InvalidQuantityError,
    MissingFieldError,
)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_decimal(value: Any, name: str = "quantity") -> Decimal:
    """Coerce ints, strings and Decimals; floats go through ``str`` first."""
    if isinstance(value, bool):
        raise InvalidQuantityError(name, value)
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidQuantityError(name, value) from None


def require_positive(value: Any, name: str = "quantity") -> Decimal:
    """Return ``value`` as a finite Decimal greater than zero."""
    amount = to_decimal(value, name)
    if not amount.is_finite() or amount <= 0:
        raise InvalidQuantityError(name, value)
    return amount


def require_non_negative(value: Any, name: str) -> Decimal:
    amount = to_decimal(value, name)
    if not amount.is_finite() or amount < 0:
        raise InvalidQuantityError(name, value)
    return amount


def require_text(value: str | None, name: str, context: str = "") -> str:
    """Return the stripped string or raise ``MissingFieldError``."""
    if value is None or not str(value).strip():
        raise MissingFieldError(name, context)
    return str(value).strip()


def normalize_date(value: str | date) -> str:
    """Return a zero-padded ``YYYY-MM-DD`` string for a valid calendar date."""
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidDateError(value)
    try:
        date.fromisoformat(value)
    except ValueError:
        raise InvalidDateError(value) from None
    return value
