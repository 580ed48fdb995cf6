"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.adjustment_service import AdjustmentResolution, AdjustmentService
from inventory_kernel.services.inventory_service import InventoryService
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.ledger_view import LedgerView, ViewCollection, ViewSnapshot
from inventory_kernel.services.reconciliation_service import (
    ReconciliationReport,
    ReconciliationService,
)
from inventory_kernel.services.return_service import ReturnOutcome, ReturnService
from inventory_kernel.services.stock_request_service import (
    StockRequestResolution,
    StockRequestService,
)

__all__ = [
    "AdjustmentResolution",
    "AdjustmentService",
    "InventoryService",
    "LedgerStore",
    "LedgerView",
    "ReconciliationReport",
    "ReconciliationService",
    "ReturnOutcome",
    "ReturnService",
    "StockRequestResolution",
    "StockRequestService",
    "ViewCollection",
    "ViewSnapshot",
]
