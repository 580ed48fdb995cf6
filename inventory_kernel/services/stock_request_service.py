"""
StockRequestService -- employee stock requests and their resolution.

Responsibility:
    Submit, edit and delete PENDING stock requests, and resolve them.
    Approval appends an ISSUE to the requester; either decision deletes the
    request.

Architecture position:
    Kernel > Services.  Flushes within the caller's session; the caller's
    ``session_scope`` makes status flip, ISSUE append, resolution row and
    delete one atomic unit.

Invariants enforced:
    - Only PENDING requests can be edited or deleted.
    - Resolution is a compare-and-swap on status; the loser of two
      concurrent resolutions gets ``RequestAlreadyResolvedError`` and
      appends nothing.
    - Approval re-checks on-hand stock at approval time.  A shortfall raises
      ``InsufficientStockWarning`` unless ``force=True``; a forced approval
      is recorded with ``forced=True`` on the resolution row.
    - The emitted ISSUE carries ``source_request_id``, which is UNIQUE.

Failure modes:
    - ``RequestNotFoundError`` -- unknown id with no resolution on record.
    - ``RequestNotPendingError`` -- edit/delete of a resolved request.
    - ``RequestAlreadyResolvedError`` -- resolution lost the race.
    - ``InsufficientStockWarning`` -- approval short of stock, not forced.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError

from inventory_engines.valuation import on_hand
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.validation import (
    normalize_date,
    require_positive,
    require_text,
)
from inventory_kernel.domain.workflow import (
    RequestDecision,
    RequestStatus,
    RequestType,
    StockRequest,
)
from inventory_kernel.exceptions import (
    ImmutableFieldError,
    InsufficientStockWarning,
    RequestNotFoundError,
    RequestNotPendingError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.requests import StockRequestModel
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.resolution import (
    compare_and_set_status,
    conflict,
    record_resolution,
)

logger = get_logger("services.stock_request")

_EDITABLE_FIELDS = frozenset({"category", "sub_category", "item_name", "quantity", "unit"})


@dataclass(frozen=True)
class StockRequestResolution:
    """Outcome of resolving a stock request."""

    request: StockRequest
    decision: RequestDecision
    transaction: LedgerTransaction | None = None
    forced: bool = False


class StockRequestService(BaseService):
    """Stock request workflow."""

    def __init__(self, session, clock=None, store: LedgerStore | None = None):
        super().__init__(session, clock)
        self._selector = LedgerSelector(session)
        self._store = store or LedgerStore(session, self.clock)

    def submit(
        self,
        branch_id: str,
        employee_id: str,
        employee_name: str,
        category: str,
        sub_category: str,
        item_name: str,
        quantity: Any,
        unit: str = "",
    ) -> StockRequest:
        request = StockRequest(
            id=uuid4(),
            branch_id=require_text(branch_id, "branch_id"),
            employee_id=require_text(employee_id, "employee_id"),
            employee_name=require_text(employee_name, "employee_name"),
            category=require_text(category, "category"),
            sub_category=(sub_category or "").strip(),
            item_name=require_text(item_name, "item_name"),
            quantity=require_positive(quantity),
            created_at=self.clock.now_millis(),
            unit=unit or "",
        )
        self.session.add(StockRequestModel.from_dto(request))
        self.session.flush()
        logger.info(
            "stock_request_submitted",
            extra={
                "request_id": str(request.id),
                "branch_id": request.branch_id,
                "employee_id": request.employee_id,
                "item_name": request.item_name,
                "quantity": str(request.quantity),
            },
        )
        return request

    def edit(self, request_id: UUID, **changes: Any) -> StockRequest:
        """Change item fields or quantity of a PENDING request."""
        illegal = set(changes) - _EDITABLE_FIELDS
        if illegal:
            raise ImmutableFieldError(sorted(illegal))
        row = self._load_pending(request_id)

        if "quantity" in changes:
            row.quantity = require_positive(changes["quantity"])
        for name in ("category", "item_name"):
            if name in changes:
                setattr(row, name, require_text(changes[name], name))
        if "sub_category" in changes:
            row.sub_category = (changes["sub_category"] or "").strip()
        if "unit" in changes:
            row.unit = changes["unit"] or ""
        self.session.flush()

        logger.info(
            "stock_request_edited",
            extra={"request_id": str(request_id), "fields": sorted(changes)},
        )
        return row.to_dto()

    def delete(self, request_id: UUID) -> StockRequest:
        row = self._load_pending(request_id)
        request = row.to_dto()
        self.session.delete(row)
        self.session.flush()
        logger.info("stock_request_deleted", extra={"request_id": str(request_id)})
        return request

    def resolve(
        self,
        request_id: UUID,
        decision: RequestDecision,
        override_item: str | None = None,
        override_quantity: Any = None,
        force: bool = False,
        date: str | None = None,
    ) -> StockRequestResolution:
        """
        Approve or reject a PENDING stock request.

        Approval appends ``ISSUE`` for the (possibly overridden) item and
        quantity, with the requester as recipient.  Both outcomes delete the
        request row in the same transaction.
        """
        decision = RequestDecision(decision)
        request = self._load_for_resolution(request_id)

        issue: LedgerTransaction | None = None
        forced = False
        if decision == RequestDecision.APPROVE:
            item_name = (
                require_text(override_item, "override_item")
                if override_item is not None else request.item_name
            )
            quantity = (
                require_positive(override_quantity, "override_quantity")
                if override_quantity is not None else request.quantity
            )
            key = StockLineKey(
                request.branch_id, request.category, request.sub_category, item_name,
            )
            available = on_hand(self._selector.transactions_for_line(key), key)
            if available < quantity:
                if not force:
                    raise InsufficientStockWarning(item_name, quantity, available)
                forced = True
                logger.warning(
                    "insufficient_stock_forced",
                    extra={
                        "request_id": str(request_id),
                        "item_name": item_name,
                        "requested": str(quantity),
                        "available": str(available),
                    },
                )
            issue = LedgerTransaction(
                id=uuid4(),
                date=normalize_date(date) if date else self.clock.today().isoformat(),
                created_at=self._store.next_created_at(),
                branch_id=request.branch_id,
                kind=TransactionKind.ISSUE,
                category=request.category,
                sub_category=request.sub_category,
                item_name=item_name,
                quantity=quantity,
                unit=request.unit,
                issued_to=f"{request.employee_id} ({request.employee_name})",
                issued_to_id=request.employee_id,
                source_request_id=request.id,
            )

        target = decision.target_status
        if not compare_and_set_status(
            self.session, StockRequestModel, request_id, target.value,
        ):
            raise conflict(RequestType.STOCK, request_id)

        if issue is not None:
            try:
                self._store.append(issue)
            except IntegrityError as exc:
                raise conflict(RequestType.STOCK, request_id) from exc

        record_resolution(
            self.session,
            RequestType.STOCK,
            request_id,
            outcome=target.value,
            resolved_at=self.clock.now_millis(),
            transaction_id=issue.id if issue else None,
            forced=forced,
        )

        row = self.session.get(StockRequestModel, request_id)
        if row is not None:
            self.session.delete(row)
            self.session.flush()

        return StockRequestResolution(
            request=replace(request, status=target),
            decision=decision,
            transaction=issue,
            forced=forced,
        )

    # ------------------------------------------------------------------

    def _load_pending(self, request_id: UUID) -> StockRequestModel:
        row = self.session.get(StockRequestModel, request_id)
        if row is None:
            raise RequestNotFoundError(RequestType.STOCK.value, str(request_id))
        if row.status != RequestStatus.PENDING.value:
            raise RequestNotPendingError(RequestType.STOCK.value, str(request_id), row.status)
        return row

    def _load_for_resolution(self, request_id: UUID) -> StockRequest:
        request = self._selector.get_stock_request(request_id)
        if request is None:
            resolution = self._selector.resolution_for(RequestType.STOCK, request_id)
            if resolution is not None:
                raise conflict(RequestType.STOCK, request_id, resolution.outcome)
            raise RequestNotFoundError(RequestType.STOCK.value, str(request_id))
        if request.status != RequestStatus.PENDING:
            raise conflict(RequestType.STOCK, request_id, request.status.value)
        return request


