"""
Module: inventory_kernel.models.requests
Responsibility: ORM persistence for the three request workflows and for the
    resolution audit trail.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values are limited by check constraints; transition rules live
      in ``inventory_kernel.domain.workflow`` and are applied by the
      services through a compare-and-swap on ``status``.
    - request_resolutions has UNIQUE(request_type, request_id): one request
      is resolved at most once, even across processes.
    - At most one PENDING return request per issue is enforced by the
      return service before insert.

Failure modes:
    - IntegrityError on a second resolution row for the same request.

Audit relevance:
    Stock requests are deleted when resolved, so the resolution row is the
    only durable record of the decision and of any insufficient-stock
    override (``forced``).
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.domain.workflow import (
        AdjustmentRequest,
        RequestResolution,
        ReturnRequest,
        StockRequest,
    )


class StockRequestModel(Base):
    """Persistent stock request.  Deleted in the resolving transaction."""

    __tablename__ = "stock_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_stock_requests_valid_status",
        ),
        CheckConstraint("quantity > 0", name="ck_stock_requests_positive_quantity"),
        Index("ix_stock_requests_branch_status", "branch_id", "status"),
    )

    branch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    created_at: Mapped[int] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<StockRequest {self.id} {self.item_name} x{self.quantity} {self.status}>"

    def to_dto(self) -> StockRequest:
        from inventory_kernel.domain.workflow import RequestStatus, StockRequest

        return StockRequest(
            id=self.id,
            branch_id=self.branch_id,
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            category=self.category,
            sub_category=self.sub_category,
            item_name=self.item_name,
            quantity=Decimal(self.quantity),
            created_at=self.created_at,
            unit=self.unit,
            status=RequestStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto: StockRequest) -> StockRequestModel:
        return cls(
            id=dto.id,
            branch_id=dto.branch_id,
            employee_id=dto.employee_id,
            employee_name=dto.employee_name,
            category=dto.category,
            sub_category=dto.sub_category,
            item_name=dto.item_name,
            quantity=dto.quantity,
            unit=dto.unit,
            status=dto.status.value,
            created_at=dto.created_at,
        )


class AdjustmentRequestModel(Base):
    """Persistent damage/adjustment request.  Retained after resolution."""

    __tablename__ = "adjustment_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_adjustment_requests_valid_status",
        ),
        CheckConstraint(
            "quantity > 0", name="ck_adjustment_requests_positive_quantity",
        ),
        Index("ix_adjustment_requests_branch_status", "branch_id", "status"),
    )

    branch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    created_at: Mapped[int] = mapped_column(nullable=False)
    resolved_at: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AdjustmentRequest {self.id} {self.item_name} x{self.quantity} "
            f"{self.status}>"
        )

    def to_dto(self) -> AdjustmentRequest:
        from inventory_kernel.domain.workflow import AdjustmentRequest, RequestStatus

        return AdjustmentRequest(
            id=self.id,
            branch_id=self.branch_id,
            category=self.category,
            sub_category=self.sub_category,
            item_name=self.item_name,
            quantity=Decimal(self.quantity),
            reason=self.reason,
            created_at=self.created_at,
            status=RequestStatus(self.status),
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_dto(cls, dto: AdjustmentRequest) -> AdjustmentRequestModel:
        return cls(
            id=dto.id,
            branch_id=dto.branch_id,
            category=dto.category,
            sub_category=dto.sub_category,
            item_name=dto.item_name,
            quantity=dto.quantity,
            reason=dto.reason,
            status=dto.status.value,
            created_at=dto.created_at,
            resolved_at=dto.resolved_at,
        )


class ReturnRequestModel(Base):
    """Persistent return request.  Completed by a linked RETURN."""

    __tablename__ = "return_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED')",
            name="ck_return_requests_valid_status",
        ),
        Index("ix_return_requests_issue_status", "issue_transaction_id", "status"),
    )

    issue_transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    branch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    created_at: Mapped[int] = mapped_column(nullable=False)
    completed_at: Mapped[int | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ReturnRequest {self.id} issue={self.issue_transaction_id} "
            f"{self.status}>"
        )

    def to_dto(self) -> ReturnRequest:
        from inventory_kernel.domain.workflow import ReturnRequest, ReturnRequestStatus

        return ReturnRequest(
            id=self.id,
            issue_transaction_id=self.issue_transaction_id,
            employee_id=self.employee_id,
            item_name=self.item_name,
            branch_id=self.branch_id,
            created_at=self.created_at,
            requested_quantity=(
                None if self.requested_quantity is None
                else Decimal(self.requested_quantity)
            ),
            status=ReturnRequestStatus(self.status),
            completed_at=self.completed_at,
        )

    @classmethod
    def from_dto(cls, dto: ReturnRequest) -> ReturnRequestModel:
        return cls(
            id=dto.id,
            issue_transaction_id=dto.issue_transaction_id,
            employee_id=dto.employee_id,
            item_name=dto.item_name,
            branch_id=dto.branch_id,
            requested_quantity=dto.requested_quantity,
            status=dto.status.value,
            created_at=dto.created_at,
            completed_at=dto.completed_at,
        )


class RequestResolutionModel(Base):
    """Append-only audit row for one workflow resolution."""

    __tablename__ = "request_resolutions"

    __table_args__ = (
        UniqueConstraint(
            "request_type", "request_id",
            name="uq_request_resolutions_request",
        ),
        CheckConstraint(
            "request_type IN ('stock_request', 'adjustment_request', 'return_request')",
            name="ck_request_resolutions_valid_type",
        ),
    )

    request_type: Mapped[str] = mapped_column(String(30), nullable=False)
    request_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resolved_at: Mapped[int] = mapped_column(nullable=False)
    forced: Mapped[bool] = mapped_column(nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<RequestResolution {self.request_type} {self.request_id} "
            f"{self.outcome}>"
        )

    def to_dto(self) -> RequestResolution:
        from inventory_kernel.domain.workflow import RequestResolution, RequestType

        return RequestResolution(
            id=self.id,
            request_type=RequestType(self.request_type),
            request_id=self.request_id,
            outcome=self.outcome,
            resolved_at=self.resolved_at,
            transaction_id=self.transaction_id,
            forced=bool(self.forced),
        )

    @classmethod
    def from_dto(cls, dto: RequestResolution) -> RequestResolutionModel:
        return cls(
            id=dto.id,
            request_type=dto.request_type.value,
            request_id=dto.request_id,
            outcome=dto.outcome,
            transaction_id=dto.transaction_id,
            resolved_at=dto.resolved_at,
            forced=dto.forced,
        )
