"""
AdjustmentService -- damage / write-off requests.

Responsibility:
    Accountants report damaged stock; an approver resolves the report.
    Approval appends a DAMAGE transaction; rejection leaves the ledger
    untouched.  Requests are retained with their terminal status.

Architecture position:
    Kernel > Services.  Flushes within the caller's session.

Invariants enforced:
    - A report may not exceed the stock currently on hand for the line.
    - Resolution is a compare-and-swap on status, paired with a UNIQUE
      resolution row; a resolved request never re-enters PENDING.
    - The DAMAGE transaction carries ``source_request_id`` and never touches
      ``total_issued``.
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
from inventory_kernel.domain.validation import require_positive, require_text
from inventory_kernel.domain.workflow import (
    AdjustmentRequest,
    RequestDecision,
    RequestType,
    can_transition,
)
from inventory_kernel.exceptions import QuantityExceedsStockError, RequestNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.requests import AdjustmentRequestModel
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.resolution import (
    compare_and_set_status,
    conflict,
    record_resolution,
)

logger = get_logger("services.adjustment")

DEFAULT_DAMAGE_LABEL = "Damaged / Written off"


@dataclass(frozen=True)
class AdjustmentResolution:
    request: AdjustmentRequest
    decision: RequestDecision
    transaction: LedgerTransaction | None = None


class AdjustmentService(BaseService):
    """Damage report workflow."""

    def __init__(
        self,
        session,
        clock=None,
        store: LedgerStore | None = None,
        damage_label: str = DEFAULT_DAMAGE_LABEL,
    ):
        super().__init__(session, clock)
        self._selector = LedgerSelector(session)
        self._store = store or LedgerStore(session, self.clock)
        self._damage_label = damage_label

    def submit(
        self,
        branch_id: str,
        category: str,
        sub_category: str,
        item_name: str,
        quantity: Any,
        reason: str = "",
    ) -> AdjustmentRequest:
        """
        File a damage report.

        Raises:
            QuantityExceedsStockError: more than the line's on-hand quantity.
        """
        key = StockLineKey(
            require_text(branch_id, "branch_id"),
            require_text(category, "category"),
            (sub_category or "").strip(),
            require_text(item_name, "item_name"),
        )
        amount = require_positive(quantity)
        available = on_hand(self._selector.transactions_for_line(key), key)
        if amount > available:
            raise QuantityExceedsStockError(key.item_name, amount, available)

        request = AdjustmentRequest(
            id=uuid4(),
            branch_id=key.branch_id,
            category=key.category,
            sub_category=key.sub_category,
            item_name=key.item_name,
            quantity=amount,
            reason=(reason or "").strip(),
            created_at=self.clock.now_millis(),
        )
        self.session.add(AdjustmentRequestModel.from_dto(request))
        self.session.flush()
        logger.info(
            "adjustment_request_submitted",
            extra={
                "request_id": str(request.id),
                "branch_id": request.branch_id,
                "item_name": request.item_name,
                "quantity": str(request.quantity),
            },
        )
        return request

    def resolve(self, request_id: UUID, decision: RequestDecision) -> AdjustmentResolution:
        decision = RequestDecision(decision)
        request = self._selector.get_adjustment_request(request_id)
        if request is None:
            raise RequestNotFoundError(RequestType.ADJUSTMENT.value, str(request_id))
        target = decision.target_status
        if not can_transition(request.status, target):
            raise conflict(RequestType.ADJUSTMENT, request_id, request.status.value)

        resolved_at = self.clock.now_millis()
        if not compare_and_set_status(
            self.session,
            AdjustmentRequestModel,
            request_id,
            target.value,
            resolved_at=resolved_at,
        ):
            raise conflict(RequestType.ADJUSTMENT, request_id)

        damage: LedgerTransaction | None = None
        if decision == RequestDecision.APPROVE:
            damage = LedgerTransaction(
                id=uuid4(),
                date=self.clock.today().isoformat(),
                created_at=self._store.next_created_at(),
                branch_id=request.branch_id,
                kind=TransactionKind.DAMAGE,
                category=request.category,
                sub_category=request.sub_category,
                item_name=request.item_name,
                quantity=request.quantity,
                issued_to=self._damage_label,
                source_request_id=request.id,
            )
            try:
                self._store.append(damage)
            except IntegrityError as exc:
                raise conflict(RequestType.ADJUSTMENT, request_id) from exc

        record_resolution(
            self.session,
            RequestType.ADJUSTMENT,
            request_id,
            outcome=target.value,
            resolved_at=resolved_at,
            transaction_id=damage.id if damage else None,
        )
        # The CAS bypassed the identity map.
        cached = self.session.get(AdjustmentRequestModel, request_id)
        if cached is not None:
            self.session.refresh(cached)

        return AdjustmentResolution(
            request=replace(request, status=target, resolved_at=resolved_at),
            decision=decision,
            transaction=damage,
        )
