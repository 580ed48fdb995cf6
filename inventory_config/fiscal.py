"""
Fiscal year helpers (``inventory_config.fiscal``).

A fiscal year is labelled ``"YYYY-YYYY"`` and runs from the policy's start
date in the first year to the day before it in the second.  With the
default April start, ``"2024-2025"`` covers 2024-04-01 .. 2025-03-31.
"""

from __future__ import annotations

import re
from datetime import date, timedelta

from inventory_config.schema import FiscalYearPolicy

_LABEL = re.compile(r"^(\d{4})-(\d{4})$")

_DEFAULT_POLICY = FiscalYearPolicy()


def fiscal_year_bounds(
    label: str,
    policy: FiscalYearPolicy = _DEFAULT_POLICY,
) -> tuple[str, str]:
    """
    ``(period_start, period_end)`` as zero-padded date strings.

    Raises:
        ValueError: label is not ``"YYYY-YYYY"`` with consecutive years.
    """
    match = _LABEL.match(label)
    if not match:
        raise ValueError(f"Fiscal year must look like '2024-2025', got {label!r}")
    start_year, end_year = int(match.group(1)), int(match.group(2))
    if end_year != start_year + 1:
        raise ValueError(f"Fiscal year must span consecutive years, got {label!r}")

    start = date(start_year, policy.start_month, policy.start_day)
    end = date(end_year, policy.start_month, policy.start_day) - timedelta(days=1)
    return start.isoformat(), end.isoformat()


def fiscal_year_label(
    on: date | str,
    policy: FiscalYearPolicy = _DEFAULT_POLICY,
) -> str:
    """Label of the fiscal year containing ``on``."""
    if isinstance(on, str):
        on = date.fromisoformat(on)
    if (on.month, on.day) >= (policy.start_month, policy.start_day):
        return f"{on.year}-{on.year + 1}"
    return f"{on.year - 1}-{on.year}"


def available_fiscal_years(policy: FiscalYearPolicy = _DEFAULT_POLICY) -> list[str]:
    return [f"{year}-{year + 1}" for year in range(policy.first_year, policy.last_year + 1)]
