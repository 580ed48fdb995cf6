"""ORM models for the inventory kernel."""

from inventory_kernel.models.consumption import ConsumptionLogModel
from inventory_kernel.models.requests import (
    AdjustmentRequestModel,
    RequestResolutionModel,
    ReturnRequestModel,
    StockRequestModel,
)
from inventory_kernel.models.transaction import LedgerTransactionModel

__all__ = [
    "LedgerTransactionModel",
    "ConsumptionLogModel",
    "StockRequestModel",
    "AdjustmentRequestModel",
    "ReturnRequestModel",
    "RequestResolutionModel",
]
