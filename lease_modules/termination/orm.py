"""
Termination ORM Models (``lease_modules.termination.orm``).

Responsibility
--------------
SQLAlchemy persistence models for contract terminations, their deduction
lines and attachment metadata.  Attachment content lives in the external
``AttachmentStore``; only its reference is stored here.

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
from lease_kernel.domain.termination import (
    ContractTermination,
    TerminationAttachment,
    TerminationDeduction,
    TerminationStatus,
)
from lease_modules._orm_helpers import ApprovalColumnsMixin


# ---------------------------------------------------------------------------
# 1. TerminationModel
# ---------------------------------------------------------------------------


class TerminationModel(ApprovalColumnsMixin, TrackedBase):
    """
    ORM model for contract terminations.

    Guarantees:
        - termination_no is unique (uq_contract_terminations_no).
        - settlement figures are stored as calculated by the engine.
        - deductions and attachments are replaced wholesale on update.
    """

    __tablename__ = "contract_terminations"

    __table_args__ = (
        UniqueConstraint("termination_no", name="uq_contract_terminations_no"),
        Index("idx_contract_terminations_contract_id", "contract_id"),
        Index("idx_contract_terminations_status", "status"),
        Index("idx_contract_terminations_approval_status", "approval_status"),
    )

    termination_no: Mapped[str] = mapped_column(String(50), nullable=False)
    contract_id: Mapped[UUID | None] = mapped_column(ForeignKey("contracts.id"), nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    termination_date: Mapped[date] = mapped_column(nullable=False)
    notice_date: Mapped[date | None] = mapped_column(nullable=True)
    effective_date: Mapped[date | None] = mapped_column(nullable=True)
    vacating_date: Mapped[date | None] = mapped_column(nullable=True)
    termination_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TerminationStatus.DRAFT.value)
    security_deposit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    adjust_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    total_invoiced: Mapped[Decimal] = mapped_column(nullable=False)
    total_received: Mapped[Decimal] = mapped_column(nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_note_amount: Mapped[Decimal] = mapped_column(nullable=False)
    is_refund_processed: Mapped[bool] = mapped_column(Boolean, default=False)
    refund_date: Mapped[date | None] = mapped_column(nullable=True)
    refund_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    deductions: Mapped[list["TerminationDeductionModel"]] = relationship(
        back_populates="termination",
        cascade="all, delete-orphan",
        order_by="TerminationDeductionModel.line_number",
        lazy="selectin",
    )
    attachments: Mapped[list["TerminationAttachmentModel"]] = relationship(
        back_populates="termination",
        cascade="all, delete-orphan",
        order_by="TerminationAttachmentModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> ContractTermination:
        return ContractTermination(
            termination_id=self.id,
            termination_no=self.termination_no,
            termination_date=self.termination_date,
            security_deposit_amount=self.security_deposit_amount,
            contract_id=self.contract_id,
            customer_id=self.customer_id,
            notice_date=self.notice_date,
            effective_date=self.effective_date,
            vacating_date=self.vacating_date,
            termination_reason=self.termination_reason,
            deductions=tuple(d.to_dto() for d in self.deductions),
            attachments=tuple(a.to_dto() for a in self.attachments),
            adjust_amount=self.adjust_amount,
            total_deductions=self.total_deductions,
            total_invoiced=self.total_invoiced,
            total_received=self.total_received,
            refund_amount=self.refund_amount,
            credit_note_amount=self.credit_note_amount,
            is_refund_processed=self.is_refund_processed,
            refund_date=self.refund_date,
            refund_reference=self.refund_reference,
            status=TerminationStatus(self.status),
            notes=self.notes,
            requires_approval=self.requires_approval,
            approval=self.approval_state(),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: ContractTermination, created_by_id: UUID) -> "TerminationModel":
        model = cls(id=dto.termination_id, version=dto.version, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: ContractTermination) -> None:
        self.termination_no = dto.termination_no
        self.contract_id = dto.contract_id
        self.customer_id = dto.customer_id
        self.termination_date = dto.termination_date
        self.notice_date = dto.notice_date
        self.effective_date = dto.effective_date
        self.vacating_date = dto.vacating_date
        self.termination_reason = dto.termination_reason
        self.status = dto.status.value
        self.security_deposit_amount = dto.security_deposit_amount
        self.adjust_amount = dto.adjust_amount
        self.total_deductions = dto.total_deductions
        self.total_invoiced = dto.total_invoiced
        self.total_received = dto.total_received
        self.refund_amount = dto.refund_amount
        self.credit_note_amount = dto.credit_note_amount
        self.is_refund_processed = dto.is_refund_processed
        self.refund_date = dto.refund_date
        self.refund_reference = dto.refund_reference
        self.notes = dto.notes
        self.requires_approval = dto.requires_approval
        self.set_approval_state(dto.approval)
        self.deductions = [
            TerminationDeductionModel.from_dto(d, number)
            for number, d in enumerate(dto.deductions, start=1)
        ]
        self.attachments = [
            TerminationAttachmentModel.from_dto(a, number)
            for number, a in enumerate(dto.attachments, start=1)
        ]

    def __repr__(self) -> str:
        return f"<TerminationModel {self.termination_no} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. TerminationDeductionModel
# ---------------------------------------------------------------------------


class TerminationDeductionModel(Base):
    """ORM model for a deduction withheld from the security deposit."""

    __tablename__ = "termination_deductions"

    __table_args__ = (
        Index("idx_termination_deductions_termination_id", "termination_id"),
    )

    termination_id: Mapped[UUID] = mapped_column(
        ForeignKey("contract_terminations.id"), nullable=False,
    )
    deduction_line_id: Mapped[UUID] = mapped_column(nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    deduction_id: Mapped[UUID | None] = mapped_column(ForeignKey("deductions.id"), nullable=True)
    deduction_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    deduction_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    deposit_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    termination: Mapped["TerminationModel"] = relationship(back_populates="deductions")

    def to_dto(self) -> TerminationDeduction:
        return TerminationDeduction(
            deduction_line_id=self.deduction_line_id,
            deduction_name=self.deduction_name,
            deduction_amount=self.deduction_amount,
            tax_percentage=self.tax_percentage,
            deduction_id=self.deduction_id,
            description=self.description,
            deposit_percentage=self.deposit_percentage,
        )

    @classmethod
    def from_dto(cls, dto: TerminationDeduction, line_number: int) -> "TerminationDeductionModel":
        return cls(
            deduction_line_id=dto.deduction_line_id,
            line_number=line_number,
            deduction_id=dto.deduction_id,
            deduction_name=dto.deduction_name,
            description=dto.description,
            deduction_amount=dto.deduction_amount,
            tax_percentage=dto.tax_percentage,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            deposit_percentage=dto.deposit_percentage,
        )


# ---------------------------------------------------------------------------
# 3. TerminationAttachmentModel
# ---------------------------------------------------------------------------


class TerminationAttachmentModel(Base):
    """ORM model for attachment metadata; content is in the attachment store."""

    __tablename__ = "termination_attachments"

    __table_args__ = (
        Index("idx_termination_attachments_termination_id", "termination_id"),
    )

    termination_id: Mapped[UUID] = mapped_column(
        ForeignKey("contract_terminations.id"), nullable=False,
    )
    attachment_id: Mapped[UUID] = mapped_column(nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    document_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_reference: Mapped[str] = mapped_column(String(500), nullable=False)
    doc_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    termination: Mapped["TerminationModel"] = relationship(back_populates="attachments")

    def to_dto(self) -> TerminationAttachment:
        return TerminationAttachment(
            attachment_id=self.attachment_id,
            document_name=self.document_name,
            file_reference=self.file_reference,
            doc_type=self.doc_type,
            remarks=self.remarks,
        )

    @classmethod
    def from_dto(cls, dto: TerminationAttachment, line_number: int) -> "TerminationAttachmentModel":
        return cls(
            attachment_id=dto.attachment_id,
            line_number=line_number,
            document_name=dto.document_name,
            file_reference=dto.file_reference,
            doc_type=dto.doc_type,
            remarks=dto.remarks,
        )
