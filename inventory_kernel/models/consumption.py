"""
Module: inventory_kernel.models.consumption
Responsibility: ORM persistence for consumption logs (partial use of an issue
    by its recipient).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no service updates or deletes a consumption log.
    - quantity_consumed is strictly positive (check constraint).
    - issue_transaction_id is deliberately not a foreign key: a log whose
      issue was deleted by a correction is tolerated and counted as zero.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.domain.workflow import ConsumptionLog


class ConsumptionLogModel(Base):
    """Persistent consumption log."""

    __tablename__ = "consumption_logs"

    __table_args__ = (
        CheckConstraint(
            "quantity_consumed > 0",
            name="ck_consumption_logs_positive_quantity",
        ),
        Index("ix_consumption_logs_issue", "issue_transaction_id"),
    )

    issue_transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    quantity_consumed: Mapped[Decimal] = mapped_column(nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[int] = mapped_column(nullable=False)
    remarks: Mapped[str] = mapped_column(Text, nullable=False, default="")
    branch_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    item_name: Mapped[str] = mapped_column(String(300), nullable=False, default="")

    def __repr__(self) -> str:
        return (
            f"<ConsumptionLog {self.id} issue={self.issue_transaction_id} "
            f"qty={self.quantity_consumed}>"
        )

    def to_dto(self) -> ConsumptionLog:
        from inventory_kernel.domain.workflow import ConsumptionLog

        return ConsumptionLog(
            id=self.id,
            issue_transaction_id=self.issue_transaction_id,
            quantity_consumed=Decimal(self.quantity_consumed),
            date=self.date,
            created_at=self.created_at,
            remarks=self.remarks,
            branch_id=self.branch_id,
            employee_id=self.employee_id,
            item_name=self.item_name,
        )

    @classmethod
    def from_dto(cls, dto: ConsumptionLog) -> ConsumptionLogModel:
        return cls(
            id=dto.id,
            issue_transaction_id=dto.issue_transaction_id,
            quantity_consumed=dto.quantity_consumed,
            date=dto.date,
            created_at=dto.created_at,
            remarks=dto.remarks,
            branch_id=dto.branch_id,
            employee_id=dto.employee_id,
            item_name=dto.item_name,
        )
