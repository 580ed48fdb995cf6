"""
Module: inventory_engines.issue_lifecycle
Responsibility:
    Track how much of each ISSUE is still in the recipient's hands: the
    returned and consumed quantities, whether a return has been requested,
    and the return quantity to suggest to the actor.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain.

Invariants enforced:
    - ``remaining == issue.quantity - returned - consumed``.
    - An issue is active iff ``remaining > 0``.
    - RETURN transactions are matched on ``returned_issue_id`` and
      consumption logs on ``issue_transaction_id``; links to unknown issues
      contribute nothing to any issue.
    - The suggested return quantity never exceeds ``remaining``, even when
      the pending request asked for more.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.transaction import LedgerTransaction, TransactionKind
from inventory_kernel.domain.workflow import ConsumptionLog, ReturnRequest

ZERO = Decimal("0")


@dataclass(frozen=True)
class IssueStatus:
    """Lifecycle snapshot of one ISSUE transaction."""

    issue: LedgerTransaction
    returned: Decimal
    consumed: Decimal
    remaining: Decimal
    has_pending_return_request: bool
    suggested_return_quantity: Decimal
    pending_return_request_id: UUID | None = None

    @property
    def is_active(self) -> bool:
        return self.remaining > 0


@dataclass(frozen=True)
class UnresolvedLinks:
    """Records pointing at an issue that is not in the ledger."""

    returns: tuple[LedgerTransaction, ...]
    consumption_logs: tuple[ConsumptionLog, ...]

    @property
    def count(self) -> int:
        return len(self.returns) + len(self.consumption_logs)


class _LifecycleIndex:
    """Per-issue sums built in one pass over the ledger."""

    def __init__(
        self,
        transactions: Iterable[LedgerTransaction],
        consumption_logs: Iterable[ConsumptionLog],
        return_requests: Iterable[ReturnRequest],
    ) -> None:
        self.returned: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        self.consumed: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        self.pending: dict[UUID, ReturnRequest] = {}

        for tx in transactions:
            if tx.kind == TransactionKind.RETURN and tx.returned_issue_id is not None:
                self.returned[tx.returned_issue_id] += tx.quantity
        for log in consumption_logs:
            self.consumed[log.issue_transaction_id] += log.quantity_consumed
        for request in return_requests:
            if request.is_pending and request.issue_transaction_id not in self.pending:
                self.pending[request.issue_transaction_id] = request

    def status_for(self, issue: LedgerTransaction) -> IssueStatus:
        returned = self.returned.get(issue.id, ZERO)
        consumed = self.consumed.get(issue.id, ZERO)
        remaining = issue.quantity - returned - consumed
        request = self.pending.get(issue.id)
        return IssueStatus(
            issue=issue,
            returned=returned,
            consumed=consumed,
            remaining=remaining,
            has_pending_return_request=request is not None,
            suggested_return_quantity=suggest_return_quantity(
                remaining, request.requested_quantity if request else None,
            ),
            pending_return_request_id=request.id if request else None,
        )


def suggest_return_quantity(
    remaining: Decimal,
    requested_quantity: Decimal | None,
) -> Decimal:
    """``min(requested or remaining, remaining)``, floored at zero."""
    if remaining <= 0:
        return ZERO
    if requested_quantity is None or requested_quantity <= 0:
        return remaining
    return min(requested_quantity, remaining)


def issue_status(
    issue: LedgerTransaction,
    transactions: Iterable[LedgerTransaction],
    consumption_logs: Iterable[ConsumptionLog],
    return_requests: Iterable[ReturnRequest] = (),
) -> IssueStatus:
    """
    Lifecycle of a single issue.

    Raises:
        ValueError: ``issue`` is not an ISSUE transaction.
    """
    if issue.kind != TransactionKind.ISSUE:
        raise ValueError(f"Transaction {issue.id} is {issue.kind.value}, not ISSUE")
    return _LifecycleIndex(transactions, consumption_logs, return_requests).status_for(issue)


def _matches_search(issue: LedgerTransaction, needle: str) -> bool:
    return (
        needle in (issue.issued_to or "").lower()
        or needle in issue.item_name.lower()
    )


@traced_engine("issue_lifecycle", "1.0", fingerprint_fields=("branch_id", "issued_to_id", "search"))
def active_issues(
    transactions: Sequence[LedgerTransaction],
    consumption_logs: Iterable[ConsumptionLog],
    return_requests: Iterable[ReturnRequest] = (),
    branch_id: str | None = None,
    issued_to_id: str | None = None,
    search: str | None = None,
) -> list[IssueStatus]:
    """
    Issues with ``remaining > 0``, in ledger order.

    ``search`` is a case-insensitive substring match on the recipient name
    or the item name.
    """
    index = _LifecycleIndex(transactions, consumption_logs, return_requests)
    needle = search.strip().lower() if search else ""

    result: list[IssueStatus] = []
    for tx in sorted(transactions, key=lambda t: t.sort_key):
        if tx.kind != TransactionKind.ISSUE:
            continue
        if branch_id is not None and tx.branch_id != branch_id:
            continue
        if issued_to_id is not None and tx.issued_to_id != issued_to_id:
            continue
        if needle and not _matches_search(tx, needle):
            continue
        status = index.status_for(tx)
        if status.is_active:
            result.append(status)
    return result


def unresolved_links(
    transactions: Sequence[LedgerTransaction],
    consumption_logs: Iterable[ConsumptionLog],
) -> UnresolvedLinks:
    """RETURN transactions and consumption logs whose issue is missing."""
    issue_ids = {tx.id for tx in transactions if tx.kind == TransactionKind.ISSUE}
    returns = tuple(
        tx for tx in transactions
        if tx.kind == TransactionKind.RETURN and tx.returned_issue_id not in issue_ids
    )
    logs = tuple(
        log for log in consumption_logs if log.issue_transaction_id not in issue_ids
    )
    return UnresolvedLinks(returns=returns, consumption_logs=logs)
