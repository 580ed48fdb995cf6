"""
Module: inventory_engines.reporting
Responsibility:
    Aggregations over the ledger for dashboards and reports: the per-period
    stock summary, category/sub-category rollups of stock lines, and
    consumption analytics valued at weighted-average cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Builds on ``inventory_engines.valuation``.

Invariants enforced:
    - Every figure is derived from ``compute_stock`` or the raw ledger; no
      aggregate is stored.
    - Issue, return and damage values use ``total_value`` when the
      transaction has one, otherwise ``quantity * avg_value`` of its stock
      line.
    - Consumption is issued value net of returns, matching the stock
      figures from ``compute_stock``.
    - Breakdowns are returned sorted by value descending (months ascending),
      so equal inputs give identical reports.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from inventory_engines.tracer import traced_engine
from inventory_engines.valuation import StockLine, compute_stock, in_window
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)

ZERO = Decimal("0")


# =========================================================================
# Period summary
# =========================================================================


@dataclass(frozen=True)
class PeriodSummary:
    """Totals of the stock lines for one branch (or all) and one window."""

    branch_id: str | None
    period_start: str | None
    period_end: str | None
    line_count: int
    total_quantity: Decimal
    total_asset_value: Decimal
    total_purchased: Decimal
    total_issued: Decimal
    negative_lines: int
    lines: tuple[StockLine, ...] = ()


def period_summary(
    transactions: Sequence[LedgerTransaction],
    branch_id: str | None = None,
    period_start: str | None = None,
    period_end: str | None = None,
) -> PeriodSummary:
    lines = compute_stock(
        transactions,
        branch_id=branch_id,
        period_start=period_start,
        period_end=period_end,
    )
    return PeriodSummary(
        branch_id=branch_id,
        period_start=period_start,
        period_end=period_end,
        line_count=len(lines),
        total_quantity=sum((line.quantity for line in lines), ZERO),
        total_asset_value=sum((line.asset_value for line in lines), ZERO),
        total_purchased=sum((line.total_purchased for line in lines), ZERO),
        total_issued=sum((line.total_issued for line in lines), ZERO),
        negative_lines=sum(1 for line in lines if line.is_negative),
        lines=tuple(lines),
    )


# =========================================================================
# Category rollup
# =========================================================================


@dataclass(frozen=True)
class CategoryRollup:
    """Quantity, value and line count for a category or sub-category."""

    name: str
    quantity: Decimal
    value: Decimal
    line_count: int
    sub_categories: tuple[CategoryRollup, ...] = ()


def _rollup(name: str, lines: list[StockLine]) -> CategoryRollup:
    return CategoryRollup(
        name=name,
        quantity=sum((line.quantity for line in lines), ZERO),
        value=sum((line.asset_value for line in lines), ZERO),
        line_count=len(lines),
    )


def category_rollup(lines: Iterable[StockLine]) -> list[CategoryRollup]:
    """Group stock lines by category, then sub-category, by value descending."""
    grouped: dict[str, dict[str, list[StockLine]]] = defaultdict(lambda: defaultdict(list))
    for line in lines:
        grouped[line.category][line.sub_category].append(line)

    result: list[CategoryRollup] = []
    for category, subs in grouped.items():
        sub_rollups = sorted(
            (_rollup(sub, sub_lines) for sub, sub_lines in subs.items()),
            key=lambda r: (-r.value, r.name),
        )
        all_lines = [line for sub_lines in subs.values() for line in sub_lines]
        top = _rollup(category, all_lines)
        result.append(
            CategoryRollup(
                name=top.name,
                quantity=top.quantity,
                value=top.value,
                line_count=top.line_count,
                sub_categories=tuple(sub_rollups),
            )
        )
    result.sort(key=lambda r: (-r.value, r.name))
    return result


# =========================================================================
# Consumption analytics
# =========================================================================


@dataclass(frozen=True)
class MonthlyFlow:
    """Purchased and consumed value for one ``YYYY-MM`` month."""

    month: str
    purchased: Decimal
    consumed: Decimal


@dataclass(frozen=True)
class ConsumptionAnalytics:
    """Consumption (issues net of returns) broken down four ways, plus headline totals."""

    total_consumed_value: Decimal
    total_purchased_value: Decimal
    total_damaged_value: Decimal
    by_branch: tuple[tuple[str, Decimal], ...] = ()
    by_category: tuple[tuple[str, Decimal], ...] = ()
    by_employee: tuple[tuple[str, Decimal], ...] = ()
    by_month: tuple[MonthlyFlow, ...] = field(default_factory=tuple)

    def top_employees(self, limit: int = 10) -> tuple[tuple[str, Decimal], ...]:
        return self.by_employee[:limit]


def _ranked(values: dict[str, Decimal]) -> tuple[tuple[str, Decimal], ...]:
    return tuple(sorted(values.items(), key=lambda kv: (-kv[1], kv[0])))


@traced_engine(
    "consumption_analytics", "1.0",
    fingerprint_fields=("branch_id", "exclude_branch_id", "period_start", "period_end"),
)
def consumption_analytics(
    transactions: Sequence[LedgerTransaction],
    branch_id: str | None = None,
    exclude_branch_id: str | None = None,
    period_start: str | None = None,
    period_end: str | None = None,
) -> ConsumptionAnalytics:
    """
    Value consumption, purchases and write-offs.

    A RETURN is taken off the consumption of its own branch, category and
    month, and off the employee who held the issue it returns.

    Args:
        transactions: Full ledger; prices are taken from all of it.
        branch_id: Restrict to one branch.
        exclude_branch_id: Drop one branch (the central store in the
            network-wide view).
        period_start / period_end: Inclusive date window for the figures.
    """
    avg_price: dict[StockLineKey, Decimal] = {
        line.key: line.avg_value for line in compute_stock(transactions)
    }
    issues = {tx.id: tx for tx in transactions if tx.kind == TransactionKind.ISSUE}

    consumed = purchased = damaged = ZERO
    by_branch: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_employee: dict[str, Decimal] = defaultdict(lambda: ZERO)
    months: dict[str, list[Decimal]] = {}

    for tx in transactions:
        if branch_id is not None and tx.branch_id != branch_id:
            continue
        if exclude_branch_id is not None and tx.branch_id == exclude_branch_id:
            continue
        if not in_window(tx.date, period_start, period_end):
            continue

        value = tx.total_value
        if value is None:
            value = tx.quantity * avg_price.get(tx.key, ZERO)
        month = months.setdefault(tx.date[:7], [ZERO, ZERO])

        if tx.kind == TransactionKind.ISSUE:
            consumed += value
            by_branch[tx.branch_id] += value
            by_category[tx.category] += value
            if tx.issued_to_id:
                by_employee[tx.issued_to or tx.issued_to_id] += value
            month[1] += value
        elif tx.kind == TransactionKind.RETURN:
            consumed -= value
            by_branch[tx.branch_id] -= value
            by_category[tx.category] -= value
            issue = issues.get(tx.returned_issue_id)
            if issue is not None and issue.issued_to_id:
                by_employee[issue.issued_to or issue.issued_to_id] -= value
            month[1] -= value
        elif tx.kind.is_inbound:
            inbound = tx.total_value or ZERO
            purchased += inbound
            month[0] += inbound
        elif tx.kind == TransactionKind.DAMAGE:
            damaged += value

    return ConsumptionAnalytics(
        total_consumed_value=consumed,
        total_purchased_value=purchased,
        total_damaged_value=damaged,
        by_branch=_ranked(by_branch),
        by_category=_ranked(by_category),
        by_employee=_ranked(by_employee),
        by_month=tuple(
            MonthlyFlow(month=key, purchased=flow[0], consumed=flow[1])
            for key, flow in sorted(months.items())
        ),
    )
