"""
Module: inventory_kernel.selectors.ledger_selector
Responsibility: Read queries over the ledger and the workflow tables.  Every
    result is converted to a frozen domain DTO before it leaves this module.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ledger reads are ordered by ``(date, created_at)``.
    - Request reads are ordered by ``created_at``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.workflow import (
    AdjustmentRequest,
    ConsumptionLog,
    RequestResolution,
    RequestStatus,
    RequestType,
    ReturnRequest,
    ReturnRequestStatus,
    StockRequest,
)
from inventory_kernel.models.consumption import ConsumptionLogModel
from inventory_kernel.models.requests import (
    AdjustmentRequestModel,
    RequestResolutionModel,
    ReturnRequestModel,
    StockRequestModel,
)
from inventory_kernel.models.transaction import LedgerTransactionModel
from inventory_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Read access to transactions, consumption logs and requests."""

    # ------------------------------------------------------------------
    # Ledger transactions
    # ------------------------------------------------------------------

    def list_transactions(
        self,
        branch_id: str | None = None,
        period_end: str | None = None,
    ) -> list[LedgerTransaction]:
        stmt = select(LedgerTransactionModel)
        if branch_id is not None:
            stmt = stmt.where(LedgerTransactionModel.branch_id == branch_id)
        if period_end is not None:
            stmt = stmt.where(LedgerTransactionModel.date <= period_end)
        stmt = stmt.order_by(
            LedgerTransactionModel.date, LedgerTransactionModel.created_at,
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def get_transaction(self, transaction_id: UUID) -> LedgerTransaction | None:
        row = self.session.get(LedgerTransactionModel, transaction_id)
        return row.to_dto() if row is not None else None

    def transactions_for_line(self, key: StockLineKey) -> list[LedgerTransaction]:
        stmt = (
            select(LedgerTransactionModel)
            .where(
                LedgerTransactionModel.branch_id == key.branch_id,
                LedgerTransactionModel.category == key.category,
                LedgerTransactionModel.sub_category == key.sub_category,
                LedgerTransactionModel.item_name == key.item_name,
            )
            .order_by(LedgerTransactionModel.date, LedgerTransactionModel.created_at)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def returns_for_issue(self, issue_transaction_id: UUID) -> list[LedgerTransaction]:
        stmt = (
            select(LedgerTransactionModel)
            .where(
                LedgerTransactionModel.kind == TransactionKind.RETURN.value,
                LedgerTransactionModel.returned_issue_id == issue_transaction_id,
            )
            .order_by(LedgerTransactionModel.date, LedgerTransactionModel.created_at)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def transactions_from_requests(self) -> list[LedgerTransaction]:
        stmt = (
            select(LedgerTransactionModel)
            .where(LedgerTransactionModel.source_request_id.is_not(None))
            .order_by(LedgerTransactionModel.date, LedgerTransactionModel.created_at)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def max_created_at(self) -> int:
        value = self.session.scalar(select(func.max(LedgerTransactionModel.created_at)))
        return int(value) if value is not None else 0

    # ------------------------------------------------------------------
    # Consumption logs
    # ------------------------------------------------------------------

    def consumption_logs(
        self,
        issue_transaction_id: UUID | None = None,
        branch_id: str | None = None,
        employee_id: str | None = None,
    ) -> list[ConsumptionLog]:
        stmt = select(ConsumptionLogModel)
        if issue_transaction_id is not None:
            stmt = stmt.where(
                ConsumptionLogModel.issue_transaction_id == issue_transaction_id,
            )
        if branch_id is not None:
            stmt = stmt.where(ConsumptionLogModel.branch_id == branch_id)
        if employee_id is not None:
            stmt = stmt.where(ConsumptionLogModel.employee_id == employee_id)
        stmt = stmt.order_by(ConsumptionLogModel.date, ConsumptionLogModel.created_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def get_stock_request(self, request_id: UUID) -> StockRequest | None:
        row = self.session.get(StockRequestModel, request_id)
        return row.to_dto() if row is not None else None

    def stock_requests(
        self,
        branch_id: str | None = None,
        status: RequestStatus | None = RequestStatus.PENDING,
    ) -> list[StockRequest]:
        stmt = select(StockRequestModel)
        if branch_id is not None:
            stmt = stmt.where(StockRequestModel.branch_id == branch_id)
        if status is not None:
            stmt = stmt.where(StockRequestModel.status == status.value)
        stmt = stmt.order_by(StockRequestModel.created_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def get_adjustment_request(self, request_id: UUID) -> AdjustmentRequest | None:
        row = self.session.get(AdjustmentRequestModel, request_id)
        return row.to_dto() if row is not None else None

    def adjustment_requests(
        self,
        branch_id: str | None = None,
        status: RequestStatus | None = None,
    ) -> list[AdjustmentRequest]:
        stmt = select(AdjustmentRequestModel)
        if branch_id is not None:
            stmt = stmt.where(AdjustmentRequestModel.branch_id == branch_id)
        if status is not None:
            stmt = stmt.where(AdjustmentRequestModel.status == status.value)
        stmt = stmt.order_by(AdjustmentRequestModel.created_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def return_requests(
        self,
        issue_transaction_id: UUID | None = None,
        branch_id: str | None = None,
        status: ReturnRequestStatus | None = None,
    ) -> list[ReturnRequest]:
        stmt = select(ReturnRequestModel)
        if issue_transaction_id is not None:
            stmt = stmt.where(
                ReturnRequestModel.issue_transaction_id == issue_transaction_id,
            )
        if branch_id is not None:
            stmt = stmt.where(ReturnRequestModel.branch_id == branch_id)
        if status is not None:
            stmt = stmt.where(ReturnRequestModel.status == status.value)
        stmt = stmt.order_by(ReturnRequestModel.created_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Resolutions
    # ------------------------------------------------------------------

    def resolution_for(
        self,
        request_type: RequestType,
        request_id: UUID,
    ) -> RequestResolution | None:
        stmt = select(RequestResolutionModel).where(
            RequestResolutionModel.request_type == request_type.value,
            RequestResolutionModel.request_id == request_id,
        )
        row = self.session.scalars(stmt).first()
        return row.to_dto() if row is not None else None

    def resolutions(self, request_type: RequestType | None = None) -> list[RequestResolution]:
        stmt = select(RequestResolutionModel)
        if request_type is not None:
            stmt = stmt.where(RequestResolutionModel.request_type == request_type.value)
        stmt = stmt.order_by(RequestResolutionModel.resolved_at)
        return [row.to_dto() for row in self.session.scalars(stmt)]
