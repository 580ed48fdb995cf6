"""
ReconciliationService -- detect and repair workflow/ledger drift.

Responsibility:
    Scan for states a non-atomic writer (or a crash in an older deployment)
    could leave behind, and repair the ones that have exactly one correct
    outcome.  Running it twice repairs nothing the second time.

Architecture position:
    Kernel > Services.  Flushes within the caller's session.

Checks performed:
    1. Ledger transaction with ``source_request_id`` but no resolution row.
       Repair: write the resolution row; close the request it came from
       (delete a stock request, mark an adjustment APPROVED).
    2. Stock request row still present although a resolution row exists.
       Repair: delete the request.
    3. PENDING return request whose issue got a linked RETURN at or after
       the request's ``created_at``.  Returns recorded before the request
       do not count.  Repair: mark COMPLETED with a resolution row.
    4. RETURN transactions / consumption logs pointing at unknown issues.
       Reported only.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete

from inventory_engines.issue_lifecycle import unresolved_links
from inventory_kernel.domain.transaction import TransactionKind
from inventory_kernel.domain.workflow import (
    RequestStatus,
    RequestType,
    ReturnRequestStatus,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.requests import (
    AdjustmentRequestModel,
    ReturnRequestModel,
    StockRequestModel,
)
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.resolution import compare_and_set_status, record_resolution

logger = get_logger("services.reconciliation")

_REQUEST_TYPE_BY_KIND = {
    TransactionKind.ISSUE: RequestType.STOCK,
    TransactionKind.DAMAGE: RequestType.ADJUSTMENT,
}


@dataclass(frozen=True)
class ReconciliationReport:
    """What one reconciliation pass found and fixed."""

    orphan_transactions: tuple[UUID, ...] = ()
    stale_stock_requests: tuple[UUID, ...] = ()
    completed_return_requests: tuple[UUID, ...] = ()
    unresolved_returns: tuple[UUID, ...] = ()
    unresolved_consumption_logs: tuple[UUID, ...] = ()

    @property
    def repaired(self) -> int:
        return (
            len(self.orphan_transactions)
            + len(self.stale_stock_requests)
            + len(self.completed_return_requests)
        )

    @property
    def is_clean(self) -> bool:
        return (
            self.repaired == 0
            and not self.unresolved_returns
            and not self.unresolved_consumption_logs
        )


class ReconciliationService(BaseService):
    """Idempotent consistency pass over requests and the ledger."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._selector = LedgerSelector(session)

    def reconcile(self) -> ReconciliationReport:
        orphans = self._repair_orphan_transactions()
        stale = self._remove_resolved_stock_requests()
        completed = self._complete_returned_requests()

        transactions = self._selector.list_transactions()
        links = unresolved_links(transactions, self._selector.consumption_logs())

        report = ReconciliationReport(
            orphan_transactions=orphans,
            stale_stock_requests=stale,
            completed_return_requests=completed,
            unresolved_returns=tuple(tx.id for tx in links.returns),
            unresolved_consumption_logs=tuple(log.id for log in links.consumption_logs),
        )
        log = logger.warning if report.repaired else logger.info
        log(
            "reconciliation_completed",
            extra={
                "orphan_transactions": len(report.orphan_transactions),
                "stale_stock_requests": len(report.stale_stock_requests),
                "completed_return_requests": len(report.completed_return_requests),
                "unresolved_links": links.count,
            },
        )
        return report

    def _repair_orphan_transactions(self) -> tuple[UUID, ...]:
        repaired: list[UUID] = []
        for tx in self._selector.transactions_from_requests():
            request_type = _REQUEST_TYPE_BY_KIND.get(tx.kind)
            if request_type is None:
                continue
            if self._selector.resolution_for(request_type, tx.source_request_id) is not None:
                continue

            if request_type == RequestType.ADJUSTMENT:
                compare_and_set_status(
                    self.session,
                    AdjustmentRequestModel,
                    tx.source_request_id,
                    RequestStatus.APPROVED.value,
                    resolved_at=self.clock.now_millis(),
                )
            record_resolution(
                self.session,
                request_type,
                tx.source_request_id,
                outcome=RequestStatus.APPROVED.value,
                resolved_at=self.clock.now_millis(),
                transaction_id=tx.id,
            )
            repaired.append(tx.id)
            logger.warning(
                "orphan_transaction_repaired",
                extra={
                    "transaction_id": str(tx.id),
                    "request_type": request_type.value,
                    "request_id": str(tx.source_request_id),
                },
            )
        if repaired:
            self.session.expire_all()
        return tuple(repaired)

    def _remove_resolved_stock_requests(self) -> tuple[UUID, ...]:
        removed: list[UUID] = []
        for request in self._selector.stock_requests(status=None):
            if self._selector.resolution_for(RequestType.STOCK, request.id) is None:
                continue
            self.session.execute(
                delete(StockRequestModel)
                .where(StockRequestModel.id == request.id)
                .execution_options(synchronize_session=False)
            )
            removed.append(request.id)
            logger.warning(
                "stale_stock_request_removed",
                extra={"request_id": str(request.id)},
            )
        if removed:
            self.session.flush()
            self.session.expire_all()
        return tuple(removed)

    def _complete_returned_requests(self) -> tuple[UUID, ...]:
        completed: list[UUID] = []
        pending = self._selector.return_requests(status=ReturnRequestStatus.PENDING)
        for request in pending:
            returns = [
                tx for tx in self._selector.returns_for_issue(request.issue_transaction_id)
                if tx.created_at >= request.created_at
            ]
            if not returns:
                continue
            completed_at = self.clock.now_millis()
            if not compare_and_set_status(
                self.session,
                ReturnRequestModel,
                request.id,
                ReturnRequestStatus.COMPLETED.value,
                completed_at=completed_at,
            ):
                continue
            record_resolution(
                self.session,
                RequestType.RETURN,
                request.id,
                outcome=ReturnRequestStatus.COMPLETED.value,
                resolved_at=completed_at,
                transaction_id=returns[-1].id,
            )
            completed.append(request.id)
            logger.warning(
                "stale_return_request_completed",
                extra={
                    "request_id": str(request.id),
                    "issue_transaction_id": str(request.issue_transaction_id),
                },
            )
        if completed:
            self.session.expire_all()
        return tuple(completed)
