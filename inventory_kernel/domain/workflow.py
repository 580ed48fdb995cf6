"""
Request workflow types (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the three request state machines (stock request,
adjustment/damage request, return request) and for the consumption log that
feeds the issue lifecycle.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Every workflow starts in PENDING.
* ``*_TRANSITIONS`` define the only valid status changes; terminal states
  have no outgoing edges, so a resolved request never re-enters PENDING.
* Return requests have no actor-driven transition: COMPLETED is reached
  only when a RETURN transaction links to the request's issue.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.transaction import StockLineKey


class RequestStatus(str, Enum):
    """Stock and adjustment request lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReturnRequestStatus(str, Enum):
    """Return request lifecycle states."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class RequestDecision(str, Enum):
    """Decision an actor makes on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"

    @property
    def target_status(self) -> RequestStatus:
        if self is RequestDecision.APPROVE:
            return RequestStatus.APPROVED
        return RequestStatus.REJECTED


class RequestType(str, Enum):
    """Workflow a request belongs to (used in resolution audit rows)."""

    STOCK = "stock_request"
    ADJUSTMENT = "adjustment_request"
    RETURN = "return_request"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

RETURN_REQUEST_TRANSITIONS: dict[ReturnRequestStatus, frozenset[ReturnRequestStatus]] = {
    ReturnRequestStatus.PENDING: frozenset({ReturnRequestStatus.COMPLETED}),
    ReturnRequestStatus.COMPLETED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """True if ``current -> target`` is an edge of the request state machine."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


# =========================================================================
# Request records
# =========================================================================


@dataclass(frozen=True)
class StockRequest:
    """Employee-initiated demand for an item.  Deleted once resolved."""

    id: UUID
    branch_id: str
    employee_id: str
    employee_name: str
    category: str
    sub_category: str
    item_name: str
    quantity: Decimal
    created_at: int
    unit: str = ""
    status: RequestStatus = RequestStatus.PENDING

    @property
    def key(self) -> StockLineKey:
        return StockLineKey(
            self.branch_id, self.category, self.sub_category, self.item_name,
        )


@dataclass(frozen=True)
class AdjustmentRequest:
    """Accountant-initiated damage report.  Retained after resolution."""

    id: UUID
    branch_id: str
    category: str
    sub_category: str
    item_name: str
    quantity: Decimal
    reason: str
    created_at: int
    status: RequestStatus = RequestStatus.PENDING
    resolved_at: int | None = None

    @property
    def key(self) -> StockLineKey:
        return StockLineKey(
            self.branch_id, self.category, self.sub_category, self.item_name,
        )


@dataclass(frozen=True)
class ReturnRequest:
    """Demand that an employee hand back part of an outstanding issue."""

    id: UUID
    issue_transaction_id: UUID
    employee_id: str
    item_name: str
    branch_id: str
    created_at: int
    requested_quantity: Decimal | None = None
    status: ReturnRequestStatus = ReturnRequestStatus.PENDING
    completed_at: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ReturnRequestStatus.PENDING


@dataclass(frozen=True)
class ConsumptionLog:
    """Partial usage of an issue by its recipient.  Append-only."""

    id: UUID
    issue_transaction_id: UUID
    quantity_consumed: Decimal
    date: str
    created_at: int
    remarks: str = ""
    branch_id: str = ""
    employee_id: str = ""
    item_name: str = ""


@dataclass(frozen=True)
class RequestResolution:
    """Audit record of one workflow resolution."""

    id: UUID
    request_type: RequestType
    request_id: UUID
    outcome: str
    resolved_at: int
    transaction_id: UUID | None = None
    forced: bool = False
