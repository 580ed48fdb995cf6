"""
Module: inventory_engines.valuation
Responsibility:
    Derive per-stock-line quantity and weighted-average value from the
    ledger.  Nothing here is stored: every call replays the transaction set.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain.

Invariants enforced:
    - Transactions are applied in ascending ``(date, created_at)`` order
      (stable sort, so equal keys keep input order).
    - ``avg_value`` moves only on OPENING_STOCK/PURCHASE; ISSUE, RETURN and
      DAMAGE never touch it (moving average on receipt).
    - Quantity accumulates every transaction dated on or before
      ``period_end`` regardless of ``period_start``; ``total_purchased`` and
      ``total_issued`` only count transactions inside the window.
    - Negative quantities are valid output, never an error.

Failure modes:
    - None raised.  A receipt that would bring the line to a non-positive
      quantity leaves the average unchanged instead of dividing by zero.

Usage:
    from inventory_engines.valuation import compute_stock

    lines = compute_stock(transactions, branch_id="central", period_end="2025-03-31")
    for line in lines:
        print(line.item_name, line.quantity, line.avg_value)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class StockLine:
    """
    Derived state of one stock line.

    Contract:
        Frozen dataclass; produced only by ``compute_stock``.
    Guarantees:
        - ``asset_value == quantity * avg_value``.
    """

    branch_id: str
    category: str
    sub_category: str
    item_name: str
    quantity: Decimal
    avg_value: Decimal
    total_purchased: Decimal
    total_issued: Decimal
    unit: str = ""

    @property
    def key(self) -> StockLineKey:
        return StockLineKey(
            self.branch_id, self.category, self.sub_category, self.item_name,
        )

    @property
    def asset_value(self) -> Decimal:
        return self.quantity * self.avg_value

    @property
    def is_negative(self) -> bool:
        return self.quantity < 0


class _Accumulator:
    """Mutable running state for one key while replaying the ledger."""

    __slots__ = ("qty", "avg", "purchased", "issued", "unit")

    def __init__(self) -> None:
        self.qty = ZERO
        self.avg = ZERO
        self.purchased = ZERO
        self.issued = ZERO
        self.unit = ""

    def receive(self, quantity: Decimal, unit_price: Decimal) -> None:
        new_qty = self.qty + quantity
        if new_qty > 0:
            self.avg = (self.qty * self.avg + quantity * unit_price) / new_qty
        self.qty = new_qty


def sort_transactions(transactions: Iterable[LedgerTransaction]) -> list[LedgerTransaction]:
    """Ledger order: ``(date, created_at)`` ascending, stable."""
    return sorted(transactions, key=lambda tx: tx.sort_key)


def in_window(tx_date: str, period_start: str | None, period_end: str | None) -> bool:
    """True if ``tx_date`` lies in the inclusive ``[period_start, period_end]`` window."""
    if period_start is not None and tx_date < period_start:
        return False
    if period_end is not None and tx_date > period_end:
        return False
    return True


def apply_transaction(
    acc: _Accumulator,
    tx: LedgerTransaction,
    counts_in_window: bool,
) -> None:
    if tx.unit:
        acc.unit = tx.unit
    if tx.kind.is_inbound:
        acc.receive(tx.quantity, tx.unit_price if tx.unit_price is not None else ZERO)
        if counts_in_window:
            acc.purchased += tx.quantity
    elif tx.kind == TransactionKind.ISSUE:
        acc.qty -= tx.quantity
        if counts_in_window:
            acc.issued += tx.quantity
    elif tx.kind == TransactionKind.RETURN:
        acc.qty += tx.quantity
        if counts_in_window:
            acc.issued -= tx.quantity
    elif tx.kind == TransactionKind.DAMAGE:
        acc.qty -= tx.quantity


@traced_engine("valuation", "1.0", fingerprint_fields=("branch_id", "period_start", "period_end"))
def compute_stock(
    transactions: Iterable[LedgerTransaction],
    branch_id: str | None = None,
    period_start: str | None = None,
    period_end: str | None = None,
) -> list[StockLine]:
    """
    Replay ``transactions`` into one ``StockLine`` per stock-line key.

    Args:
        transactions: Ledger transactions in any order.
        branch_id: Only lines of this branch when given.
        period_start: First date (inclusive) counted in period totals.
        period_end: Last date (inclusive) considered at all.

    Returns:
        Lines in the order their key first appears in the sorted ledger.
        A line is emitted iff ``quantity > 0`` or it had purchase or issue
        activity inside the window.
    """
    lines: dict[StockLineKey, _Accumulator] = {}
    for tx in sort_transactions(transactions):
        if branch_id is not None and tx.branch_id != branch_id:
            continue
        if period_end is not None and tx.date > period_end:
            continue
        acc = lines.get(tx.key)
        if acc is None:
            acc = lines[tx.key] = _Accumulator()
        apply_transaction(acc, tx, in_window(tx.date, period_start, period_end))

    return [
        StockLine(
            branch_id=key.branch_id,
            category=key.category,
            sub_category=key.sub_category,
            item_name=key.item_name,
            quantity=acc.qty,
            avg_value=acc.avg,
            total_purchased=acc.purchased,
            total_issued=acc.issued,
            unit=acc.unit,
        )
        for key, acc in lines.items()
        if acc.qty > 0 or acc.issued != 0 or acc.purchased != 0
    ]


def on_hand(
    transactions: Iterable[LedgerTransaction],
    key: StockLineKey,
) -> Decimal:
    """Current quantity for one key, including lines the emit filter hides."""
    acc = _Accumulator()
    for tx in sort_transactions(tx for tx in transactions if tx.key == key):
        apply_transaction(acc, tx, counts_in_window=False)
    return acc.qty
