"""
Module: inventory_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions, the single source of
    truth from which every stock quantity and valuation is derived.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - kind is one of the five ledger kinds (check constraint).
    - quantity is strictly positive (check constraint).
    - source_request_id is UNIQUE: a workflow request can emit at most one
      ledger transaction, so a replayed approval cannot double-issue.
    - (date, created_at) ordering is served by a composite index.

Failure modes:
    - IntegrityError on a second transaction for the same source request.
    - IntegrityError on a non-positive quantity or unknown kind.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.domain.transaction import LedgerTransaction


class LedgerTransactionModel(Base):
    """Persistent ledger transaction.

    Contract:
        Rows are appended by ``LedgerStore`` only.  Corrections go through
        ``LedgerStore.update`` which refuses to touch kind, branch, links and
        ``created_at``.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('OPENING_STOCK', 'PURCHASE', 'ISSUE', 'RETURN', 'DAMAGE')",
            name="ck_ledger_transactions_valid_kind",
        ),
        CheckConstraint(
            "quantity > 0",
            name="ck_ledger_transactions_positive_quantity",
        ),
        Index("ix_ledger_transactions_order", "date", "created_at"),
        Index(
            "ix_ledger_transactions_line",
            "branch_id", "category", "sub_category", "item_name",
        ),
        Index("ix_ledger_transactions_returned_issue", "returned_issue_id"),
    )

    date: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[int] = mapped_column(nullable=False)
    branch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    issued_to: Mapped[str | None] = mapped_column(String(200), nullable=True)
    issued_to_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    returned_issue_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    bill_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bill_attachment: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True, unique=True,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id} {self.kind} {self.quantity} "
            f"{self.item_name} @ {self.branch_id} on {self.date}>"
        )

    def to_dto(self) -> LedgerTransaction:
        """Convert ORM model to frozen domain DTO."""
        from inventory_kernel.domain.transaction import (
            LedgerTransaction,
            TransactionKind,
        )

        return LedgerTransaction(
            id=self.id,
            date=self.date,
            created_at=self.created_at,
            branch_id=self.branch_id,
            kind=TransactionKind(self.kind),
            category=self.category,
            sub_category=self.sub_category,
            item_name=self.item_name,
            quantity=Decimal(self.quantity),
            unit=self.unit,
            unit_price=None if self.unit_price is None else Decimal(self.unit_price),
            total_value=None if self.total_value is None else Decimal(self.total_value),
            issued_to=self.issued_to,
            issued_to_id=self.issued_to_id,
            returned_issue_id=self.returned_issue_id,
            bill_number=self.bill_number,
            bill_attachment=self.bill_attachment,
            source_request_id=self.source_request_id,
        )

    @classmethod
    def from_dto(cls, dto: LedgerTransaction) -> LedgerTransactionModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            date=dto.date,
            created_at=dto.created_at,
            branch_id=dto.branch_id,
            kind=dto.kind.value,
            category=dto.category,
            sub_category=dto.sub_category,
            item_name=dto.item_name,
            quantity=dto.quantity,
            unit=dto.unit,
            unit_price=dto.unit_price,
            total_value=dto.total_value,
            issued_to=dto.issued_to,
            issued_to_id=dto.issued_to_id,
            returned_issue_id=dto.returned_issue_id,
            bill_number=dto.bill_number,
            bill_attachment=dto.bill_attachment,
            source_request_id=dto.source_request_id,
        )
