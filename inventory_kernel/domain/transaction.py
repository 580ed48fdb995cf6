"""
Ledger transaction value objects (``inventory_kernel.domain.transaction``).

Responsibility
--------------
The atomic ledger event and the stock-line key it is scoped to.  Frozen
dataclasses only; the ORM mapping lives in ``inventory_kernel.models``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``(branch_id, category, sub_category, item_name)`` is the stock-line key;
  quantity arithmetic is always scoped to one key.
* ``quantity`` is a positive ``Decimal``.
* ``unit_price`` / ``total_value`` are carried only by inbound kinds, and
  ``total_value`` is fixed at insertion.
* The recipient of an ISSUE (``issued_to_id``) and the issue a RETURN reduces
  (``returned_issue_id``) are separate fields.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import NamedTuple
from uuid import UUID


class TransactionKind(str, Enum):
    """Kinds of stock movement recorded in the ledger."""

    OPENING_STOCK = "OPENING_STOCK"
    PURCHASE = "PURCHASE"
    ISSUE = "ISSUE"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"

    @property
    def is_inbound(self) -> bool:
        return self in INBOUND_KINDS


INBOUND_KINDS: frozenset[TransactionKind] = frozenset({
    TransactionKind.OPENING_STOCK,
    TransactionKind.PURCHASE,
})


class StockLineKey(NamedTuple):
    """Identity of one tracked inventory unit within a branch."""

    branch_id: str
    category: str
    sub_category: str
    item_name: str


@dataclass(frozen=True)
class LedgerTransaction:
    """
    One immutable stock movement.

    ``date`` is a zero-padded ``YYYY-MM-DD`` string so that lexical and
    calendar order agree; ``created_at`` (epoch milliseconds) orders
    same-day events.
    """

    id: UUID
    date: str
    created_at: int
    branch_id: str
    kind: TransactionKind
    category: str
    sub_category: str
    item_name: str
    quantity: Decimal
    unit: str = ""
    unit_price: Decimal | None = None
    total_value: Decimal | None = None
    issued_to: str | None = None
    issued_to_id: str | None = None
    returned_issue_id: UUID | None = None
    bill_number: str | None = None
    bill_attachment: str | None = None
    source_request_id: UUID | None = None

    @property
    def key(self) -> StockLineKey:
        return StockLineKey(
            self.branch_id, self.category, self.sub_category, self.item_name,
        )

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.date, self.created_at)

    def with_changes(self, **changes) -> LedgerTransaction:
        """Return a copy with ``changes`` applied (corrections only)."""
        return replace(self, **changes)
