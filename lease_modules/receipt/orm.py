"""
Receipt ORM Models (``lease_modules.receipt.orm``).

Responsibility
--------------
SQLAlchemy persistence models for customer receipts and their invoice
allocations.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``lease_kernel.db.base``
and the kernel domain.  MUST NOT be imported by ``lease_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lease_kernel.db.base import Base, TrackedBase
from lease_kernel.domain.receipt import (
    PaymentAllocation,
    PaymentMethod,
    Receipt,
    ReceiptStatus,
)
from lease_modules._orm_helpers import ApprovalColumnsMixin


# ---------------------------------------------------------------------------
# 1. ReceiptModel
# ---------------------------------------------------------------------------


class ReceiptModel(ApprovalColumnsMixin, TrackedBase):
    """
    ORM model for customer receipts.

    Guarantees:
        - receipt_no is unique (uq_receipts_receipt_no).
        - payment_method and status stored as their enum string values.
        - allocations are replaced wholesale on every update.
    """

    __tablename__ = "receipts"

    __table_args__ = (
        UniqueConstraint("receipt_no", name="uq_receipts_receipt_no"),
        Index("idx_receipts_customer_id", "customer_id"),
        Index("idx_receipts_status", "status"),
        Index("idx_receipts_approval_status", "approval_status"),
    )

    receipt_no: Mapped[str] = mapped_column(String(50), nullable=False)
    receipt_date: Mapped[date] = mapped_column(nullable=False)
    receipt_amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), default=PaymentMethod.CASH.value)
    customer_id: Mapped[UUID | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ReceiptStatus.DRAFT.value)
    is_cleared: Mapped[bool] = mapped_column(Boolean, default=False)
    clearing_date: Mapped[date | None] = mapped_column(nullable=True)
    cheque_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cheque_date: Mapped[date | None] = mapped_column(nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    currency_code: Mapped[str] = mapped_column(String(3), default="AED")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    allocations: Mapped[list["ReceiptAllocationModel"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptAllocationModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> Receipt:
        return Receipt(
            receipt_id=self.id,
            receipt_no=self.receipt_no,
            receipt_date=self.receipt_date,
            receipt_amount=self.receipt_amount,
            payment_method=PaymentMethod(self.payment_method),
            customer_id=self.customer_id,
            allocations=tuple(a.to_dto() for a in self.allocations),
            status=ReceiptStatus(self.status),
            is_cleared=self.is_cleared,
            clearing_date=self.clearing_date,
            cheque_no=self.cheque_no,
            cheque_date=self.cheque_date,
            transaction_reference=self.transaction_reference,
            currency_code=self.currency_code,
            notes=self.notes,
            requires_approval=self.requires_approval,
            approval=self.approval_state(),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Receipt, created_by_id: UUID) -> "ReceiptModel":
        model = cls(id=dto.receipt_id, version=dto.version, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: Receipt) -> None:
        self.receipt_no = dto.receipt_no
        self.receipt_date = dto.receipt_date
        self.receipt_amount = dto.receipt_amount
        self.payment_method = dto.payment_method.value
        self.customer_id = dto.customer_id
        self.status = dto.status.value
        self.is_cleared = dto.is_cleared
        self.clearing_date = dto.clearing_date
        self.cheque_no = dto.cheque_no
        self.cheque_date = dto.cheque_date
        self.transaction_reference = dto.transaction_reference
        self.currency_code = dto.currency_code
        self.notes = dto.notes
        self.requires_approval = dto.requires_approval
        self.set_approval_state(dto.approval)
        self.allocations = [
            ReceiptAllocationModel(
                line_number=number,
                invoice_id=a.invoice_id,
                allocated_amount=a.allocated_amount,
            )
            for number, a in enumerate(dto.allocations, start=1)
        ]

    def __repr__(self) -> str:
        return f"<ReceiptModel {self.receipt_no} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. ReceiptAllocationModel
# ---------------------------------------------------------------------------


class ReceiptAllocationModel(Base):
    """ORM model for the portion of a receipt applied to one invoice."""

    __tablename__ = "receipt_allocations"

    __table_args__ = (
        Index("idx_receipt_allocations_receipt_id", "receipt_id"),
        Index("idx_receipt_allocations_invoice_id", "invoice_id"),
    )

    receipt_id: Mapped[UUID] = mapped_column(ForeignKey("receipts.id"), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped["ReceiptModel"] = relationship(back_populates="allocations")

    def to_dto(self) -> PaymentAllocation:
        return PaymentAllocation(
            invoice_id=self.invoice_id,
            allocated_amount=self.allocated_amount,
        )
