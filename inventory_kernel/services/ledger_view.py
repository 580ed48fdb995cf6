"""
LedgerView -- in-process read snapshot with optimistic, revertible writes.

Responsibility:
    Hold the transactions, consumption logs and return requests that the
    read side computes from.  A write is first applied here (``apply_*``
    returns a ``RevertToken``), then the authoritative store write runs, and
    the change is either ``confirm``-ed or ``revert``-ed with the token.

Architecture position:
    Kernel > Services.  Holds no session; ``InventoryService`` loads it and
    drives the two-phase protocol.

Invariants enforced:
    - Readers always see immutable tuples; a snapshot never changes after it
      is returned.
    - Every mutation happens under one ``threading.Lock``.
    - ``revert`` undoes exactly the changes staged under its token, in
      reverse order, without disturbing changes staged by other tokens.
    - A token is settled once: confirm/revert of an unknown or settled
      token raises ``KeyError``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable
from uuid import UUID, uuid4

from inventory_kernel.domain.results import RevertToken
from inventory_kernel.domain.transaction import LedgerTransaction
from inventory_kernel.domain.workflow import ConsumptionLog, ReturnRequest
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.ledger_view")


class ViewCollection(str, Enum):
    TRANSACTIONS = "transactions"
    CONSUMPTION_LOGS = "consumption_logs"
    RETURN_REQUESTS = "return_requests"


@dataclass(frozen=True)
class ViewSnapshot:
    """Consistent read of all three collections."""

    transactions: tuple[LedgerTransaction, ...]
    consumption_logs: tuple[ConsumptionLog, ...]
    return_requests: tuple[ReturnRequest, ...]
    loaded: bool = True


@dataclass(frozen=True)
class _Undo:
    collection: ViewCollection
    record_id: UUID
    previous: Any  # None when the record did not exist before
    applied: Any  # None for a removal


class LedgerView:
    """Thread-safe optimistic read model."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[ViewCollection, dict[UUID, Any]] = {
            collection: {} for collection in ViewCollection
        }
        self._pending: dict[UUID, list[_Undo]] = {}
        self._loaded = False
        self._snapshot: ViewSnapshot | None = None

    # ------------------------------------------------------------------
    # Loading and reading
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(
        self,
        transactions: Iterable[LedgerTransaction],
        consumption_logs: Iterable[ConsumptionLog],
        return_requests: Iterable[ReturnRequest],
    ) -> None:
        """Replace the whole view with authoritative data.

        Changes staged under still-open tokens are re-applied on top, so a
        refresh racing a write does not lose the optimistic record.
        """
        with self._lock:
            self._records = {
                ViewCollection.TRANSACTIONS: {tx.id: tx for tx in transactions},
                ViewCollection.CONSUMPTION_LOGS: {log.id: log for log in consumption_logs},
                ViewCollection.RETURN_REQUESTS: {req.id: req for req in return_requests},
            }
            for token_id, undos in self._pending.items():
                self._pending[token_id] = [self._reapply(undo) for undo in undos]
            self._loaded = True
            self._snapshot = None
            open_tokens = sum(len(undos) for undos in self._pending.values())
        logger.debug(
            "ledger_view_loaded",
            extra={
                "transactions": len(self._records[ViewCollection.TRANSACTIONS]),
                "open_changes": open_tokens,
            },
        )

    def snapshot(self) -> ViewSnapshot:
        with self._lock:
            if self._snapshot is None:
                txs = sorted(
                    self._records[ViewCollection.TRANSACTIONS].values(),
                    key=lambda tx: tx.sort_key,
                )
                logs = sorted(
                    self._records[ViewCollection.CONSUMPTION_LOGS].values(),
                    key=lambda log: (log.date, log.created_at),
                )
                requests = sorted(
                    self._records[ViewCollection.RETURN_REQUESTS].values(),
                    key=lambda req: req.created_at,
                )
                self._snapshot = ViewSnapshot(
                    transactions=tuple(txs),
                    consumption_logs=tuple(logs),
                    return_requests=tuple(requests),
                    loaded=self._loaded,
                )
            return self._snapshot

    def transactions(self) -> tuple[LedgerTransaction, ...]:
        return self.snapshot().transactions

    def consumption_logs(self) -> tuple[ConsumptionLog, ...]:
        return self.snapshot().consumption_logs

    def return_requests(self) -> tuple[ReturnRequest, ...]:
        return self.snapshot().return_requests

    def get_transaction(self, transaction_id: UUID) -> LedgerTransaction | None:
        with self._lock:
            return self._records[ViewCollection.TRANSACTIONS].get(transaction_id)

    # ------------------------------------------------------------------
    # Two-phase writes
    # ------------------------------------------------------------------

    def begin(self, operation: str) -> RevertToken:
        """Open a token that later ``apply_*`` calls can stage under."""
        token = RevertToken(token_id=uuid4(), operation=operation)
        with self._lock:
            self._pending[token.token_id] = []
        return token

    def apply_upsert(
        self,
        collection: ViewCollection,
        record: Any,
        token: RevertToken | None = None,
    ) -> RevertToken:
        """Insert or replace ``record`` (matched on ``record.id``)."""
        token = token or self.begin(f"upsert_{collection.value}")
        with self._lock:
            undos = self._undos_for(token)
            records = self._records[collection]
            undos.append(_Undo(collection, record.id, records.get(record.id), record))
            records[record.id] = record
            self._snapshot = None
        return token

    def apply_remove(
        self,
        collection: ViewCollection,
        record_id: UUID,
        token: RevertToken | None = None,
    ) -> RevertToken:
        token = token or self.begin(f"remove_{collection.value}")
        with self._lock:
            undos = self._undos_for(token)
            records = self._records[collection]
            previous = records.pop(record_id, None)
            undos.append(_Undo(collection, record_id, previous, None))
            self._snapshot = None
        return token

    def confirm(self, token: RevertToken) -> None:
        """The authoritative write succeeded; keep the staged changes."""
        with self._lock:
            self._pending.pop(token.token_id)

    def revert(self, token: RevertToken) -> int:
        """The authoritative write failed; undo the staged changes.

        Returns the number of changes undone.
        """
        with self._lock:
            undos = self._pending.pop(token.token_id)
            for undo in reversed(undos):
                records = self._records[undo.collection]
                if undo.previous is None:
                    records.pop(undo.record_id, None)
                else:
                    records[undo.record_id] = undo.previous
            self._snapshot = None
        logger.info(
            "optimistic_change_reverted",
            extra={"operation": token.operation, "changes": len(undos)},
        )
        return len(undos)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _reapply(self, undo: _Undo) -> _Undo:
        """Stage ``undo`` again on freshly loaded records (lock held)."""
        records = self._records[undo.collection]
        previous = records.get(undo.record_id)
        if undo.applied is None:
            records.pop(undo.record_id, None)
        else:
            records[undo.record_id] = undo.applied
        return _Undo(undo.collection, undo.record_id, previous, undo.applied)

    def _undos_for(self, token: RevertToken) -> list[_Undo]:
        try:
            return self._pending[token.token_id]
        except KeyError:
            raise KeyError(f"Revert token {token.token_id} is not open") from None
