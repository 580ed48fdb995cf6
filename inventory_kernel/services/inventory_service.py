"""
InventoryService -- the boundary facade.

Responsibility:
    The one object UI/API callers hold.  Every write validates its input,
    stages the change on the in-process ``LedgerView``, runs the
    authoritative write in exactly one database transaction, then confirms
    or reverts the staged change.  Every read is computed by the pure
    engines from the view.

Architecture position:
    Kernel > Services -- imperative shell.  Owns transaction boundaries
    (``session_scope``); the services it calls only flush.

Invariants enforced:
    - Validation errors are raised before any session is opened or any
      change is staged.
    - A store failure (``SQLAlchemyError``) comes back as
      ``WriteResult.failure(PersistenceError, revert_token)`` with the view
      already reverted.  Domain errors raised mid-write revert the view and
      propagate.
    - Workflow resolution, its ledger append and its audit row commit
      together or not at all.

Failure modes:
    - ``ValidationError`` subclasses, ``InsufficientStockWarning``,
      ``LinkageError``, ``NotFoundError`` and ``ConcurrencyAnomaly`` are
      raised to the caller.
    - ``PersistenceError`` is returned inside ``WriteResult``.

Usage:
    service = InventoryService(get_session_factory(), config, SystemClock())
    result = service.append_transaction(
        TransactionKind.PURCHASE, "delhi", "Stationery", "Pens", "Blue pen",
        quantity=100, unit="pcs", unit_price=5, bill_number="B-17",
    )
    tx = result.unwrap()
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inventory_engines import issue_lifecycle, reporting, valuation
from inventory_engines.issue_lifecycle import IssueStatus
from inventory_engines.reporting import (
    CategoryRollup,
    ConsumptionAnalytics,
    PeriodSummary,
)
from inventory_engines.valuation import StockLine
from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.results import RevertToken, WriteResult
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.validation import (
    normalize_date,
    require_non_negative,
    require_positive,
    require_text,
)
from inventory_kernel.domain.workflow import (
    AdjustmentRequest,
    ConsumptionLog,
    RequestDecision,
    RequestStatus,
    ReturnRequest,
    ReturnRequestStatus,
    StockRequest,
)
from inventory_kernel.exceptions import (
    InsufficientStockWarning,
    IssueNotFoundError,
    MissingFieldError,
    PersistenceError,
    UnknownBranchError,
    UnknownKindError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.adjustment_service import (
    DEFAULT_DAMAGE_LABEL,
    AdjustmentResolution,
    AdjustmentService,
)
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.ledger_view import LedgerView, ViewCollection
from inventory_kernel.services.reconciliation_service import (
    ReconciliationReport,
    ReconciliationService,
)
from inventory_kernel.services.return_service import (
    DEFAULT_RETURN_PREFIX,
    ReturnOutcome,
    ReturnService,
)
from inventory_kernel.services.stock_request_service import (
    StockRequestResolution,
    StockRequestService,
)

if TYPE_CHECKING:
    from inventory_config.schema import InventoryConfig

logger = get_logger("services.inventory")

T = TypeVar("T")


class _Stage:
    """Stages view changes under one revert token."""

    def __init__(self, view: LedgerView, token: RevertToken):
        self._view = view
        self.token = token

    def upsert(self, collection: ViewCollection, record: Any) -> None:
        self._view.apply_upsert(collection, record, self.token)

    def remove(self, collection: ViewCollection, record_id: UUID) -> None:
        self._view.apply_remove(collection, record_id, self.token)


def _failure_reason(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class InventoryService:
    """
    Boundary facade over the ledger, the workflows and the engines.

    Contract:
        Constructed once per process with an injected session factory,
        configuration and clock.  No module-level state.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: InventoryConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock or SystemClock()
        self._view = LedgerView()

    @property
    def view(self) -> LedgerView:
        return self._view

    @property
    def clock(self) -> Clock:
        return self._clock

    # ==================================================================
    # Plumbing
    # ==================================================================

    def refresh(self) -> None:
        """Reload the view from the store."""
        with session_scope(self._session_factory) as session:
            selector = LedgerSelector(session)
            transactions = selector.list_transactions()
            logs = selector.consumption_logs()
            requests = selector.return_requests()
        self._view.load(transactions, logs, requests)
        logger.info(
            "ledger_view_refreshed",
            extra={
                "transactions": len(transactions),
                "consumption_logs": len(logs),
                "return_requests": len(requests),
            },
        )

    def _ensure_loaded(self) -> None:
        if not self._view.is_loaded:
            self.refresh()

    def _write(
        self,
        operation: str,
        work: Callable[[Session, _Stage], T],
    ) -> WriteResult[T]:
        self._ensure_loaded()
        token = self._view.begin(operation)
        stage = _Stage(self._view, token)
        try:
            with session_scope(self._session_factory) as session:
                value = work(session, stage)
        except SQLAlchemyError as exc:
            self._view.revert(token)
            error = PersistenceError(operation, _failure_reason(exc))
            logger.error(
                "persistence_failed",
                extra={"operation": operation, "reason": error.reason},
            )
            return WriteResult.failure(error, token)
        except Exception:
            self._view.revert(token)
            raise
        self._view.confirm(token)
        return WriteResult.success(value)

    def _check_branch(self, branch_id: str) -> str:
        branch_id = require_text(branch_id, "branch_id")
        if self._config is not None and not self._config.is_known_branch(branch_id):
            raise UnknownBranchError(branch_id)
        return branch_id

    @property
    def _damage_label(self) -> str:
        if self._config is not None:
            return self._config.labels.damage_issued_to
        return DEFAULT_DAMAGE_LABEL

    @property
    def _return_prefix(self) -> str:
        if self._config is not None:
            return self._config.labels.return_issued_to_prefix
        return DEFAULT_RETURN_PREFIX

    def _return_service(self, session: Session) -> ReturnService:
        store = LedgerStore(session, self._clock)
        return ReturnService(session, self._clock, store, return_prefix=self._return_prefix)

    @staticmethod
    def _optional_date(value: str | None) -> str | None:
        return normalize_date(value) if value is not None else None

    # ==================================================================
    # Ledger
    # ==================================================================

    def append_transaction(
        self,
        kind: TransactionKind | str,
        branch_id: str,
        category: str,
        sub_category: str,
        item_name: str,
        quantity: Any,
        unit: str = "",
        date: str | None = None,
        unit_price: Any = None,
        issued_to: str | None = None,
        issued_to_id: str | None = None,
        returned_issue_id: UUID | None = None,
        bill_number: str | None = None,
        bill_attachment: str | None = None,
        force: bool = False,
    ) -> WriteResult[LedgerTransaction]:
        """
        Record one stock movement.

        OPENING_STOCK and PURCHASE need ``unit_price`` (PURCHASE also a
        ``bill_number``); ``total_value`` is fixed here as
        ``quantity * unit_price``.  An ISSUE beyond on-hand stock raises
        ``InsufficientStockWarning`` unless ``force``.  A RETURN linked to a
        known issue must stay on that issue's stock line, is capped at the
        quantity still in hand and completes that issue's pending return
        request.

        Raises:
            ValidationError: bad input (before any write).
            InsufficientStockWarning: unforced ISSUE short of stock.
        """
        try:
            kind = TransactionKind(kind)
        except ValueError:
            raise UnknownKindError(kind) from None

        branch_id = self._check_branch(branch_id)
        amount = require_positive(quantity)
        tx_date = normalize_date(date) if date is not None else self._clock.today().isoformat()
        category = require_text(category, "category")
        item_name = require_text(item_name, "item_name")
        sub_category = (sub_category or "").strip()

        price: Decimal | None = None
        total: Decimal | None = None
        if kind.is_inbound:
            if unit_price is None:
                raise MissingFieldError("unit_price", kind.value)
            price = require_non_negative(unit_price, "unit_price")
            total = amount * price
        if kind == TransactionKind.PURCHASE:
            bill_number = require_text(bill_number, "bill_number", "PURCHASE")
        if kind == TransactionKind.RETURN and returned_issue_id is None:
            raise MissingFieldError("returned_issue_id", "RETURN")
        if kind == TransactionKind.DAMAGE and not issued_to:
            issued_to = self._damage_label

        def work(session: Session, stage: _Stage) -> LedgerTransaction:
            store = LedgerStore(session, self._clock)
            key = StockLineKey(branch_id, category, sub_category, item_name)
            if kind == TransactionKind.ISSUE:
                selector = LedgerSelector(session)
                available = valuation.on_hand(selector.transactions_for_line(key), key)
                if available < amount:
                    if not force:
                        raise InsufficientStockWarning(item_name, amount, available)
                    logger.warning(
                        "insufficient_stock_forced",
                        extra={
                            "item_name": item_name,
                            "requested": str(amount),
                            "available": str(available),
                        },
                    )

            tx = LedgerTransaction(
                id=uuid4(),
                date=tx_date,
                created_at=store.next_created_at(),
                branch_id=branch_id,
                kind=kind,
                category=category,
                sub_category=sub_category,
                item_name=item_name,
                quantity=amount,
                unit=unit or "",
                unit_price=price,
                total_value=total,
                issued_to=issued_to,
                issued_to_id=issued_to_id,
                returned_issue_id=returned_issue_id if kind == TransactionKind.RETURN else None,
                bill_number=bill_number,
                bill_attachment=bill_attachment,
            )
            stage.upsert(ViewCollection.TRANSACTIONS, tx)
            if kind == TransactionKind.RETURN:
                outcome = self._return_service(session).append_return(tx)
                for request in outcome.completed_requests:
                    stage.upsert(ViewCollection.RETURN_REQUESTS, request)
            else:
                store.append(tx)
            return tx

        with LogContext.bind(branch_id=branch_id):
            return self._write(f"append_{kind.value.lower()}", work)

    def correct_transaction(
        self,
        transaction_id: UUID,
        **fields: Any,
    ) -> WriteResult[LedgerTransaction]:
        """
        Central-store correction of an existing transaction.

        Raises:
            QuantityExceedsRemainingError: an ISSUE below what was consumed
                and returned, or a linked RETURN above what was in hand.
            StockLineMismatchError: the correction splits an issue and its
                returns across stock lines.
        """

        def work(session: Session, stage: _Stage) -> LedgerTransaction:
            returns = self._return_service(session)
            corrected = LedgerStore(session, self._clock).update(
                transaction_id, guard=returns.check_correction, **fields,
            )
            stage.upsert(ViewCollection.TRANSACTIONS, corrected)
            return corrected

        with LogContext.bind(transaction_id=str(transaction_id)):
            return self._write("correct_transaction", work)

    def delete_transaction(self, transaction_id: UUID) -> WriteResult[LedgerTransaction]:
        def work(session: Session, stage: _Stage) -> LedgerTransaction:
            stage.remove(ViewCollection.TRANSACTIONS, transaction_id)
            return LedgerStore(session, self._clock).delete(transaction_id)

        with LogContext.bind(transaction_id=str(transaction_id)):
            return self._write("delete_transaction", work)

    def list_transactions(
        self,
        branch_id: str | None = None,
        period_end: str | None = None,
        kind: TransactionKind | None = None,
    ) -> list[LedgerTransaction]:
        period_end = self._optional_date(period_end)
        self._ensure_loaded()
        return [
            tx for tx in self._view.transactions()
            if (branch_id is None or tx.branch_id == branch_id)
            and (period_end is None or tx.date <= period_end)
            and (kind is None or tx.kind == kind)
        ]

    # ==================================================================
    # Derived views
    # ==================================================================

    def compute_stock(
        self,
        branch_id: str | None = None,
        period_start: str | None = None,
        period_end: str | None = None,
    ) -> list[StockLine]:
        period_start = self._optional_date(period_start)
        period_end = self._optional_date(period_end)
        self._ensure_loaded()
        return valuation.compute_stock(
            self._view.transactions(),
            branch_id=branch_id,
            period_start=period_start,
            period_end=period_end,
        )

    def issue_status(self, issue_transaction_id: UUID) -> IssueStatus:
        """
        Raises:
            IssueNotFoundError: no ISSUE with this id in the ledger.
        """
        self._ensure_loaded()
        issue = self._view.get_transaction(issue_transaction_id)
        if issue is None or issue.kind != TransactionKind.ISSUE:
            raise IssueNotFoundError(str(issue_transaction_id))
        snapshot = self._view.snapshot()
        return issue_lifecycle.issue_status(
            issue,
            snapshot.transactions,
            snapshot.consumption_logs,
            snapshot.return_requests,
        )

    def active_issues(
        self,
        branch_id: str | None = None,
        issued_to_id: str | None = None,
        search: str | None = None,
    ) -> list[IssueStatus]:
        self._ensure_loaded()
        snapshot = self._view.snapshot()
        return issue_lifecycle.active_issues(
            snapshot.transactions,
            snapshot.consumption_logs,
            snapshot.return_requests,
            branch_id=branch_id,
            issued_to_id=issued_to_id,
            search=search,
        )

    def period_summary(
        self,
        branch_id: str | None = None,
        period_start: str | None = None,
        period_end: str | None = None,
    ) -> PeriodSummary:
        period_start = self._optional_date(period_start)
        period_end = self._optional_date(period_end)
        self._ensure_loaded()
        return reporting.period_summary(
            self._view.transactions(),
            branch_id=branch_id,
            period_start=period_start,
            period_end=period_end,
        )

    def category_rollup(
        self,
        branch_id: str | None = None,
        period_start: str | None = None,
        period_end: str | None = None,
    ) -> list[CategoryRollup]:
        return reporting.category_rollup(
            self.compute_stock(branch_id, period_start, period_end)
        )

    def consumption_analytics(
        self,
        branch_id: str | None = None,
        exclude_central_store: bool = False,
        period_start: str | None = None,
        period_end: str | None = None,
    ) -> ConsumptionAnalytics:
        period_start = self._optional_date(period_start)
        period_end = self._optional_date(period_end)
        exclude = None
        if exclude_central_store and self._config is not None:
            exclude = self._config.central_store_id
        self._ensure_loaded()
        return reporting.consumption_analytics(
            self._view.transactions(),
            branch_id=branch_id,
            exclude_branch_id=exclude,
            period_start=period_start,
            period_end=period_end,
        )

    def consumption_logs(
        self,
        branch_id: str | None = None,
        employee_id: str | None = None,
        issue_transaction_id: UUID | None = None,
    ) -> list[ConsumptionLog]:
        self._ensure_loaded()
        return [
            log for log in self._view.consumption_logs()
            if (branch_id is None or log.branch_id == branch_id)
            and (employee_id is None or log.employee_id == employee_id)
            and (issue_transaction_id is None or log.issue_transaction_id == issue_transaction_id)
        ]

    def return_requests(
        self,
        branch_id: str | None = None,
        status: ReturnRequestStatus | None = None,
    ) -> list[ReturnRequest]:
        self._ensure_loaded()
        return [
            req for req in self._view.return_requests()
            if (branch_id is None or req.branch_id == branch_id)
            and (status is None or req.status == status)
        ]

    # ==================================================================
    # Stock requests
    # ==================================================================

    def submit_stock_request(
        self,
        branch_id: str,
        employee_id: str,
        employee_name: str,
        category: str,
        sub_category: str,
        item_name: str,
        quantity: Any,
        unit: str = "",
    ) -> WriteResult[StockRequest]:
        branch_id = self._check_branch(branch_id)
        require_positive(quantity)

        def work(session: Session, stage: _Stage) -> StockRequest:
            return StockRequestService(session, self._clock).submit(
                branch_id, employee_id, employee_name,
                category, sub_category, item_name, quantity, unit,
            )

        with LogContext.bind(branch_id=branch_id, actor_id=employee_id):
            return self._write("submit_stock_request", work)

    def edit_stock_request(self, request_id: UUID, **changes: Any) -> WriteResult[StockRequest]:
        def work(session: Session, stage: _Stage) -> StockRequest:
            return StockRequestService(session, self._clock).edit(request_id, **changes)

        with LogContext.bind(request_id=str(request_id)):
            return self._write("edit_stock_request", work)

    def delete_stock_request(self, request_id: UUID) -> WriteResult[StockRequest]:
        def work(session: Session, stage: _Stage) -> StockRequest:
            return StockRequestService(session, self._clock).delete(request_id)

        with LogContext.bind(request_id=str(request_id)):
            return self._write("delete_stock_request", work)

    def resolve_stock_request(
        self,
        request_id: UUID,
        decision: RequestDecision | str,
        override_item: str | None = None,
        override_quantity: Any = None,
        force: bool = False,
    ) -> WriteResult[StockRequestResolution]:
        """
        Approve (append ISSUE) or reject; the request is deleted either way.

        Raises:
            InsufficientStockWarning: approval short of stock, not forced.
            RequestAlreadyResolvedError: another actor resolved it first.
            RequestNotFoundError: unknown request.
        """
        decision = RequestDecision(decision)
        if override_quantity is not None:
            require_positive(override_quantity, "override_quantity")

        def work(session: Session, stage: _Stage) -> StockRequestResolution:
            service = StockRequestService(session, self._clock, LedgerStore(session, self._clock))
            resolution = service.resolve(
                request_id,
                decision,
                override_item=override_item,
                override_quantity=override_quantity,
                force=force,
            )
            if resolution.transaction is not None:
                stage.upsert(ViewCollection.TRANSACTIONS, resolution.transaction)
            return resolution

        with LogContext.bind(request_id=str(request_id)):
            return self._write("resolve_stock_request", work)

    def pending_stock_requests(self, branch_id: str | None = None) -> list[StockRequest]:
        with session_scope(self._session_factory) as session:
            return LedgerSelector(session).stock_requests(
                branch_id=branch_id, status=RequestStatus.PENDING,
            )

    # ==================================================================
    # Adjustment (damage) requests
    # ==================================================================

    def submit_adjustment_request(
        self,
        branch_id: str,
        category: str,
        sub_category: str,
        item_name: str,
        quantity: Any,
        reason: str = "",
    ) -> WriteResult[AdjustmentRequest]:
        """
        Raises:
            QuantityExceedsStockError: more than the line has on hand.
        """
        branch_id = self._check_branch(branch_id)
        require_positive(quantity)

        def work(session: Session, stage: _Stage) -> AdjustmentRequest:
            return AdjustmentService(session, self._clock).submit(
                branch_id, category, sub_category, item_name, quantity, reason,
            )

        with LogContext.bind(branch_id=branch_id):
            return self._write("submit_adjustment_request", work)

    def resolve_adjustment_request(
        self,
        request_id: UUID,
        decision: RequestDecision | str,
    ) -> WriteResult[AdjustmentResolution]:
        decision = RequestDecision(decision)

        def work(session: Session, stage: _Stage) -> AdjustmentResolution:
            service = AdjustmentService(
                session,
                self._clock,
                LedgerStore(session, self._clock),
                damage_label=self._damage_label,
            )
            resolution = service.resolve(request_id, decision)
            if resolution.transaction is not None:
                stage.upsert(ViewCollection.TRANSACTIONS, resolution.transaction)
            return resolution

        with LogContext.bind(request_id=str(request_id)):
            return self._write("resolve_adjustment_request", work)

    def adjustment_requests(
        self,
        branch_id: str | None = None,
        status: RequestStatus | None = None,
    ) -> list[AdjustmentRequest]:
        with session_scope(self._session_factory) as session:
            return LedgerSelector(session).adjustment_requests(
                branch_id=branch_id, status=status,
            )

    # ==================================================================
    # Returns and consumption
    # ==================================================================

    def submit_return_request(
        self,
        issue_transaction_id: UUID,
        employee_id: str,
        item_name: str,
        requested_quantity: Any = None,
    ) -> WriteResult[ReturnRequest]:
        """
        Raises:
            IssueNotFoundError: unknown issue.
            DuplicatePendingRequestError: one is already pending.
            QuantityExceedsRemainingError: nothing left in hand.
        """
        if requested_quantity is not None:
            require_positive(requested_quantity, "requested_quantity")

        def work(session: Session, stage: _Stage) -> ReturnRequest:
            request = self._return_service(session).submit_request(
                issue_transaction_id, employee_id, item_name, requested_quantity,
            )
            stage.upsert(ViewCollection.RETURN_REQUESTS, request)
            return request

        with LogContext.bind(actor_id=employee_id):
            return self._write("submit_return_request", work)

    def record_return(
        self,
        issue_transaction_id: UUID,
        quantity: Any,
        date: str | None = None,
    ) -> WriteResult[ReturnOutcome]:
        """
        Return stock from an issue; completes a pending return request.

        Raises:
            IssueNotFoundError: unknown issue.
            QuantityExceedsRemainingError: more than is still in hand.
        """
        require_positive(quantity)
        date = self._optional_date(date)

        def work(session: Session, stage: _Stage) -> ReturnOutcome:
            outcome = self._return_service(session).record_return(
                issue_transaction_id, quantity, date,
            )
            stage.upsert(ViewCollection.TRANSACTIONS, outcome.transaction)
            for request in outcome.completed_requests:
                stage.upsert(ViewCollection.RETURN_REQUESTS, request)
            return outcome

        return self._write("record_return", work)

    def record_consumption(
        self,
        issue_transaction_id: UUID,
        quantity: Any,
        date: str | None = None,
        remarks: str = "",
    ) -> WriteResult[ConsumptionLog]:
        """
        Raises:
            QuantityExceedsRemainingError: more than is still in hand.
        """
        require_positive(quantity)
        date = self._optional_date(date)

        def work(session: Session, stage: _Stage) -> ConsumptionLog:
            log = self._return_service(session).record_consumption(
                issue_transaction_id, quantity, date, remarks,
            )
            stage.upsert(ViewCollection.CONSUMPTION_LOGS, log)
            return log

        return self._write("record_consumption", work)

    # ==================================================================
    # Maintenance
    # ==================================================================

    def reconcile(self) -> ReconciliationReport:
        """Repair workflow/ledger drift, then reload the view."""

        def work(session: Session, stage: _Stage) -> ReconciliationReport:
            return ReconciliationService(session, self._clock).reconcile()

        report = self._write("reconcile", work).unwrap()
        self.refresh()
        return report
