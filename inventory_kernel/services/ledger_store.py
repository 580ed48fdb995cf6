"""
LedgerStore -- the append-mostly transaction store.

Responsibility:
    Persist ledger transactions: append, correct, delete and full-scan
    read.  Branch operations only ever append; ``update`` and ``delete``
    back the central-store correction flow.

Architecture position:
    Kernel > Services.  Flushes within the caller's session.

Invariants enforced:
    - ``created_at`` is strictly increasing per store:
      ``max(clock millis, last created_at + 1)``.
    - Corrections may only touch the correctable fields.  ``kind``,
      ``branch_id``, ``created_at`` and the link fields are fixed at
      insertion.
    - For OPENING_STOCK/PURCHASE, ``total_value`` is recomputed whenever
      ``quantity`` or ``unit_price`` is corrected.

Failure modes:
    - ``TransactionNotFoundError`` on update/delete of an unknown id.
    - ``ImmutableFieldError`` when a correction names a fixed field.
    - ``ValidationError`` subclasses for bad corrected values.
    - ``IntegrityError`` propagates from flush (e.g. a second transaction
      for the same ``source_request_id``).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.transaction import LedgerTransaction
from inventory_kernel.domain.validation import (
    normalize_date,
    require_non_negative,
    require_positive,
    require_text,
)
from inventory_kernel.exceptions import ImmutableFieldError, TransactionNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.transaction import LedgerTransactionModel
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")

CORRECTABLE_FIELDS: frozenset[str] = frozenset({
    "date",
    "category",
    "sub_category",
    "item_name",
    "quantity",
    "unit",
    "unit_price",
    "issued_to",
    "bill_number",
    "bill_attachment",
})


class LedgerStore(BaseService):
    """Ledger transaction persistence."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = LedgerSelector(session)

    def next_created_at(self) -> int:
        """Strictly increasing millisecond timestamp for the next append."""
        return max(self.clock.now_millis(), self._selector.max_created_at() + 1)

    def append(self, tx: LedgerTransaction) -> UUID:
        self.session.add(LedgerTransactionModel.from_dto(tx))
        self.session.flush()
        logger.info(
            "transaction_appended",
            extra={
                "transaction_id": str(tx.id),
                "kind": tx.kind.value,
                "branch_id": tx.branch_id,
                "item_name": tx.item_name,
                "quantity": str(tx.quantity),
                "source_request_id": (
                    str(tx.source_request_id) if tx.source_request_id else None
                ),
            },
        )
        return tx.id

    def get(self, transaction_id: UUID) -> LedgerTransaction:
        tx = self._selector.get_transaction(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(str(transaction_id))
        return tx

    def find(self, transaction_id: UUID) -> LedgerTransaction | None:
        return self._selector.get_transaction(transaction_id)

    def update(
        self,
        transaction_id: UUID,
        guard: Callable[[LedgerTransaction, LedgerTransaction], None] | None = None,
        **fields: Any,
    ) -> LedgerTransaction:
        """
        Apply a correction and return the corrected transaction.

        ``guard(current, corrected)`` runs before anything is written and
        may raise to refuse the correction.

        Raises:
            ImmutableFieldError: ``fields`` names anything outside the
                correctable set.
            TransactionNotFoundError: unknown id.
        """
        illegal = set(fields) - CORRECTABLE_FIELDS
        if illegal:
            raise ImmutableFieldError(sorted(illegal))

        row = self.session.get(LedgerTransactionModel, transaction_id)
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))

        changes = _normalize_corrections(fields)
        current = row.to_dto()
        corrected = current.with_changes(**changes)
        if corrected.kind.is_inbound and ("quantity" in changes or "unit_price" in changes):
            price = corrected.unit_price if corrected.unit_price is not None else Decimal("0")
            corrected = corrected.with_changes(total_value=corrected.quantity * price)
        if guard is not None:
            guard(current, corrected)

        for name in (*changes, "total_value"):
            setattr(row, name, getattr(corrected, name))
        self.session.flush()

        logger.info(
            "transaction_corrected",
            extra={
                "transaction_id": str(transaction_id),
                "fields": sorted(changes),
            },
        )
        return corrected

    def delete(self, transaction_id: UUID) -> LedgerTransaction:
        row = self.session.get(LedgerTransactionModel, transaction_id)
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))
        removed = row.to_dto()
        self.session.delete(row)
        self.session.flush()
        logger.info(
            "transaction_deleted",
            extra={
                "transaction_id": str(transaction_id),
                "kind": removed.kind.value,
                "branch_id": removed.branch_id,
            },
        )
        return removed

    def list_all(
        self,
        branch_id: str | None = None,
        period_end: str | None = None,
    ) -> list[LedgerTransaction]:
        return self._selector.list_transactions(branch_id=branch_id, period_end=period_end)


def _normalize_corrections(fields: dict[str, Any]) -> dict[str, Any]:
    changes = dict(fields)
    if "date" in changes:
        changes["date"] = normalize_date(changes["date"])
    if "quantity" in changes:
        changes["quantity"] = require_positive(changes["quantity"])
    if "unit_price" in changes and changes["unit_price"] is not None:
        changes["unit_price"] = require_non_negative(changes["unit_price"], "unit_price")
    for name in ("category", "item_name"):
        if name in changes:
            changes[name] = require_text(changes[name], name)
    return changes
