"""
ReturnService -- the issue lifecycle write side.

Responsibility:
    Return requests, RETURN transactions and consumption logs: everything
    that reduces the quantity an employee holds from an ISSUE.

Architecture position:
    Kernel > Services.  Flushes within the caller's session.  Lifecycle
    arithmetic is delegated to ``inventory_engines.issue_lifecycle``.

Invariants enforced:
    - ``consumed + returned <= issue.quantity`` after every accepted return
      or consumption; a submission that would break it raises
      ``QuantityExceedsRemainingError`` before anything is written.
    - At most one PENDING return request per issue.
    - A RETURN linked to an issue completes every PENDING return request of
      that issue in the same transaction (compare-and-swap + resolution
      row).  Nothing else completes a return request.
    - A RETURN linked to a known issue stays on the issue's stock line.
    - A RETURN or consumption log whose issue is unknown is still recorded
      and logged as ``linkage_unresolved``; lifecycle figures ignore it.
    - Corrections to an ISSUE or a linked RETURN are checked against the
      same lifecycle figures before they are written.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID, uuid4

from inventory_engines.issue_lifecycle import IssueStatus, issue_status
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.validation import normalize_date, require_positive
from inventory_kernel.domain.workflow import (
    ConsumptionLog,
    RequestType,
    ReturnRequest,
    ReturnRequestStatus,
)
from inventory_kernel.exceptions import (
    DuplicatePendingRequestError,
    IssueNotFoundError,
    QuantityExceedsRemainingError,
    StockLineMismatchError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.consumption import ConsumptionLogModel
from inventory_kernel.models.requests import ReturnRequestModel
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.resolution import compare_and_set_status, record_resolution

logger = get_logger("services.return")

DEFAULT_RETURN_PREFIX = "Returned by"


@dataclass(frozen=True)
class ReturnOutcome:
    """A recorded RETURN and the return requests it completed."""

    transaction: LedgerTransaction
    completed_requests: tuple[ReturnRequest, ...] = ()
    linked: bool = True


class ReturnService(BaseService):
    """Return requests, returns and consumption."""

    def __init__(
        self,
        session,
        clock=None,
        store: LedgerStore | None = None,
        return_prefix: str = DEFAULT_RETURN_PREFIX,
    ):
        super().__init__(session, clock)
        self._selector = LedgerSelector(session)
        self._store = store or LedgerStore(session, self.clock)
        self._return_prefix = return_prefix

    # ------------------------------------------------------------------
    # Lifecycle reads
    # ------------------------------------------------------------------

    def find_issue(self, issue_transaction_id: UUID) -> LedgerTransaction | None:
        tx = self._selector.get_transaction(issue_transaction_id)
        if tx is None or tx.kind != TransactionKind.ISSUE:
            return None
        return tx

    def get_issue(self, issue_transaction_id: UUID) -> LedgerTransaction:
        issue = self.find_issue(issue_transaction_id)
        if issue is None:
            raise IssueNotFoundError(str(issue_transaction_id))
        return issue

    def status(self, issue: LedgerTransaction) -> IssueStatus:
        return issue_status(
            issue,
            self._selector.returns_for_issue(issue.id),
            self._selector.consumption_logs(issue_transaction_id=issue.id),
            self._selector.return_requests(issue_transaction_id=issue.id),
        )

    # ------------------------------------------------------------------
    # Return requests
    # ------------------------------------------------------------------

    def submit_request(
        self,
        issue_transaction_id: UUID,
        employee_id: str,
        item_name: str,
        requested_quantity: Any = None,
    ) -> ReturnRequest:
        """
        Ask the holder of an issue to hand stock back.

        Raises:
            IssueNotFoundError: unknown issue.
            QuantityExceedsRemainingError: nothing left in hand.
            DuplicatePendingRequestError: a request is already pending.
        """
        issue = self.get_issue(issue_transaction_id)
        requested = (
            require_positive(requested_quantity, "requested_quantity")
            if requested_quantity is not None else None
        )
        current = self.status(issue)
        if current.remaining <= 0:
            raise QuantityExceedsRemainingError(
                str(issue.id), requested if requested is not None else "any",
                current.remaining,
            )
        if current.has_pending_return_request:
            raise DuplicatePendingRequestError(RequestType.RETURN.value, str(issue.id))

        request = ReturnRequest(
            id=uuid4(),
            issue_transaction_id=issue.id,
            employee_id=employee_id or issue.issued_to_id or "",
            item_name=item_name or issue.item_name,
            branch_id=issue.branch_id,
            created_at=self._store.next_created_at(),
            requested_quantity=requested,
        )
        self.session.add(ReturnRequestModel.from_dto(request))
        self.session.flush()
        logger.info(
            "return_request_submitted",
            extra={
                "request_id": str(request.id),
                "issue_transaction_id": str(issue.id),
                "requested_quantity": str(requested) if requested is not None else None,
            },
        )
        return request

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------

    def record_return(
        self,
        issue_transaction_id: UUID,
        quantity: Any,
        date: str | None = None,
    ) -> ReturnOutcome:
        """
        Return part of an issue to stock.

        The RETURN copies the issue's stock-line key and links back to it
        through ``returned_issue_id``.

        Raises:
            IssueNotFoundError: unknown issue.
            QuantityExceedsRemainingError: more than is still in hand.
        """
        issue = self.get_issue(issue_transaction_id)
        recipient = (issue.issued_to or "Unknown").split("(")[0].strip() or "Unknown"
        tx = LedgerTransaction(
            id=uuid4(),
            date=normalize_date(date) if date else self.clock.today().isoformat(),
            created_at=self._store.next_created_at(),
            branch_id=issue.branch_id,
            kind=TransactionKind.RETURN,
            category=issue.category,
            sub_category=issue.sub_category,
            item_name=issue.item_name,
            quantity=require_positive(quantity),
            unit=issue.unit,
            issued_to=f"{self._return_prefix} {recipient}",
            issued_to_id=issue.issued_to_id,
            returned_issue_id=issue.id,
        )
        return self._append_return(tx, issue)

    def append_return(self, tx: LedgerTransaction) -> ReturnOutcome:
        """
        Append a caller-built RETURN, tolerating an unknown issue link.

        Raises:
            StockLineMismatchError: linked issue is on another stock line.
            QuantityExceedsRemainingError: more than is still in hand.
        """
        issue = self.find_issue(tx.returned_issue_id) if tx.returned_issue_id else None
        if issue is None:
            logger.warning(
                "linkage_unresolved",
                extra={
                    "record": "return",
                    "transaction_id": str(tx.id),
                    "issue_transaction_id": (
                        str(tx.returned_issue_id) if tx.returned_issue_id else None
                    ),
                },
            )
            self._store.append(tx)
            return ReturnOutcome(transaction=tx, linked=False)
        return self._append_return(tx, issue)

    def _append_return(self, tx: LedgerTransaction, issue: LedgerTransaction) -> ReturnOutcome:
        if tx.key != issue.key:
            raise StockLineMismatchError(str(issue.id), _line(issue.key), _line(tx.key))
        current = self.status(issue)
        if tx.quantity > current.remaining:
            raise QuantityExceedsRemainingError(str(issue.id), tx.quantity, current.remaining)

        self._store.append(tx)
        completed = self._complete_pending_requests(issue.id, tx.id)
        return ReturnOutcome(transaction=tx, completed_requests=completed)

    def _complete_pending_requests(
        self,
        issue_transaction_id: UUID,
        transaction_id: UUID,
    ) -> tuple[ReturnRequest, ...]:
        completed: list[ReturnRequest] = []
        pending = self._selector.return_requests(
            issue_transaction_id=issue_transaction_id,
            status=ReturnRequestStatus.PENDING,
        )
        for request in pending:
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
                transaction_id=transaction_id,
            )
            completed.append(
                replace(
                    request,
                    status=ReturnRequestStatus.COMPLETED,
                    completed_at=completed_at,
                )
            )
        if completed:
            self.session.expire_all()
        return tuple(completed)

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    def check_correction(
        self,
        current: LedgerTransaction,
        corrected: LedgerTransaction,
    ) -> None:
        """
        Refuse a correction that would break an issue's lifecycle.

        An ISSUE cannot drop below what was already consumed and returned,
        nor move to another stock line once stock came back from it.  A
        linked RETURN cannot grow past what its issue still had in hand,
        nor leave the issue's stock line.

        Raises:
            QuantityExceedsRemainingError: quantity out of range.
            StockLineMismatchError: stock line would diverge.
        """
        if current.kind == TransactionKind.ISSUE:
            status = self.status(current)
            used = status.consumed + status.returned
            if corrected.quantity < used:
                raise QuantityExceedsRemainingError(
                    str(current.id), used, corrected.quantity,
                )
            if corrected.key != current.key and status.returned > 0:
                raise StockLineMismatchError(
                    str(current.id), _line(current.key), _line(corrected.key),
                )
        elif current.kind == TransactionKind.RETURN and current.returned_issue_id:
            issue = self.find_issue(current.returned_issue_id)
            if issue is None:
                return
            if corrected.key != issue.key:
                raise StockLineMismatchError(
                    str(issue.id), _line(issue.key), _line(corrected.key),
                )
            allowance = self.status(issue).remaining + current.quantity
            if corrected.quantity > allowance:
                raise QuantityExceedsRemainingError(
                    str(issue.id), corrected.quantity, allowance,
                )

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def record_consumption(
        self,
        issue_transaction_id: UUID,
        quantity: Any,
        date: str | None = None,
        remarks: str = "",
    ) -> ConsumptionLog:
        """
        Log partial use of an issue.

        Raises:
            QuantityExceedsRemainingError: more than is still in hand.
        """
        amount = require_positive(quantity)
        log_date = normalize_date(date) if date else self.clock.today().isoformat()
        issue = self.find_issue(issue_transaction_id)

        if issue is None:
            logger.warning(
                "linkage_unresolved",
                extra={
                    "record": "consumption_log",
                    "issue_transaction_id": str(issue_transaction_id),
                },
            )
        else:
            current = self.status(issue)
            if amount > current.remaining:
                raise QuantityExceedsRemainingError(
                    str(issue.id), amount, current.remaining,
                )

        log = ConsumptionLog(
            id=uuid4(),
            issue_transaction_id=issue_transaction_id,
            quantity_consumed=amount,
            date=log_date,
            created_at=self.clock.now_millis(),
            remarks=(remarks or "").strip(),
            branch_id=issue.branch_id if issue else "",
            employee_id=(issue.issued_to_id or "") if issue else "",
            item_name=issue.item_name if issue else "",
        )
        self.session.add(ConsumptionLogModel.from_dto(log))
        self.session.flush()
        logger.info(
            "consumption_recorded",
            extra={
                "consumption_log_id": str(log.id),
                "issue_transaction_id": str(issue_transaction_id),
                "quantity": str(amount),
            },
        )
        return log


def _line(key: StockLineKey) -> str:
    return "/".join(part for part in key if part)
