"""Pure domain value objects for the inventory kernel (zero I/O)."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.results import RevertToken, WriteResult, WriteStatus
from inventory_kernel.domain.transaction import (
    INBOUND_KINDS,
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.workflow import (
    REQUEST_TRANSITIONS,
    RETURN_REQUEST_TRANSITIONS,
    TERMINAL_REQUEST_STATUSES,
    AdjustmentRequest,
    ConsumptionLog,
    RequestDecision,
    RequestResolution,
    RequestStatus,
    RequestType,
    ReturnRequest,
    ReturnRequestStatus,
    StockRequest,
    can_transition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "RevertToken",
    "WriteResult",
    "WriteStatus",
    "INBOUND_KINDS",
    "LedgerTransaction",
    "StockLineKey",
    "TransactionKind",
    "REQUEST_TRANSITIONS",
    "RETURN_REQUEST_TRANSITIONS",
    "TERMINAL_REQUEST_STATUSES",
    "AdjustmentRequest",
    "ConsumptionLog",
    "RequestDecision",
    "RequestResolution",
    "RequestStatus",
    "RequestType",
    "ReturnRequest",
    "ReturnRequestStatus",
    "StockRequest",
    "can_transition",
]
