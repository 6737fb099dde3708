"""
Invoice ORM Models (``lease_modules.invoice.orm``).

Responsibility
--------------
SQLAlchemy persistence models for lease invoices.  Maps the frozen
``Invoice`` aggregate from ``lease_kernel.domain.invoice`` to the
``invoices`` table and its charge lines to ``invoice_charge_lines``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``lease_kernel.db.base``
and the kernel domain.  MUST NOT be imported by ``lease_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lease_kernel.db.base import Base, TrackedBase
from lease_kernel.domain.invoice import AdditionalChargeLine, Invoice, InvoiceStatus
from lease_modules._orm_helpers import ApprovalColumnsMixin


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(ApprovalColumnsMixin, TrackedBase):
    """
    ORM model for lease invoices.

    The aggregate id (``invoice_id``) is the row's primary key.  Charge
    lines are stored in ``invoice_charge_lines`` and replaced wholesale on
    every update.

    Guarantees:
        - invoice_no is unique (uq_invoices_invoice_no).
        - status stored as the InvoiceStatus string value.
        - derived totals are stored, not recomputed on read.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_no", name="uq_invoices_invoice_no"),
        Index("idx_invoices_contract_id", "contract_id"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_approval_status", "approval_status"),
    )

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    contract_id: Mapped[UUID | None] = mapped_column(ForeignKey("contracts.id"), nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    invoice_type: Mapped[str] = mapped_column(String(50), default="Rent")
    invoice_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False)
    additional_charges: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=InvoiceStatus.DRAFT.value)
    currency_code: Mapped[str] = mapped_column(String(3), default="AED")
    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    charge_lines: Mapped[list["InvoiceChargeLineModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceChargeLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> Invoice:
        return Invoice(
            invoice_id=self.id,
            invoice_no=self.invoice_no,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            invoice_amount=self.invoice_amount,
            contract_id=self.contract_id,
            customer_id=self.customer_id,
            tax_percentage=self.tax_percentage,
            discount_amount=self.discount_amount,
            charge_lines=tuple(line.to_dto() for line in self.charge_lines),
            tax_amount=self.tax_amount,
            additional_charges=self.additional_charges,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            balance_amount=self.balance_amount,
            status=InvoiceStatus(self.status),
            invoice_type=self.invoice_type,
            currency_code=self.currency_code,
            exchange_rate=self.exchange_rate,
            notes=self.notes,
            requires_approval=self.requires_approval,
            approval=self.approval_state(),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Invoice, created_by_id: UUID) -> "InvoiceModel":
        model = cls(id=dto.invoice_id, version=dto.version, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: Invoice) -> None:
        self.invoice_no = dto.invoice_no
        self.invoice_date = dto.invoice_date
        self.due_date = dto.due_date
        self.contract_id = dto.contract_id
        self.customer_id = dto.customer_id
        self.invoice_type = dto.invoice_type
        self.invoice_amount = dto.invoice_amount
        self.tax_percentage = dto.tax_percentage
        self.tax_amount = dto.tax_amount
        self.discount_amount = dto.discount_amount
        self.additional_charges = dto.additional_charges
        self.total_amount = dto.total_amount
        self.paid_amount = dto.paid_amount
        self.balance_amount = dto.balance_amount
        self.status = dto.status.value
        self.currency_code = dto.currency_code
        self.exchange_rate = dto.exchange_rate
        self.notes = dto.notes
        self.requires_approval = dto.requires_approval
        self.set_approval_state(dto.approval)
        self.charge_lines = [
            InvoiceChargeLineModel.from_dto(line, number)
            for number, line in enumerate(dto.charge_lines, start=1)
        ]

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_no} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. InvoiceChargeLineModel
# ---------------------------------------------------------------------------


class InvoiceChargeLineModel(Base):
    """
    ORM model for additional charge lines.

    ``line_id`` is the domain identity of the line; the surrogate ``id``
    changes whenever the parent rewrites its lines.
    """

    __tablename__ = "invoice_charge_lines"

    __table_args__ = (
        Index("idx_invoice_charge_lines_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_id: Mapped[UUID] = mapped_column(nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    charge_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("additional_charges.id"), nullable=True,
    )
    charge_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="charge_lines")

    def to_dto(self) -> AdditionalChargeLine:
        return AdditionalChargeLine(
            line_id=self.line_id,
            charge_amount=self.charge_amount,
            tax_percentage=self.tax_percentage,
            description=self.description or "",
            charge_id=self.charge_id,
        )

    @classmethod
    def from_dto(cls, dto: AdditionalChargeLine, line_number: int) -> "InvoiceChargeLineModel":
        return cls(
            line_id=dto.line_id,
            line_number=line_number,
            charge_id=dto.charge_id,
            charge_amount=dto.charge_amount,
            tax_percentage=dto.tax_percentage,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            description=dto.description,
        )
