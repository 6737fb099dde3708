"""
Termination Request Models (``lease_modules.termination.models``).

Responsibility
--------------
One frozen request value object per termination service operation,
validated in ``__post_init__``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* A deduction request names a deduction definition or carries its own
  name and amount.
* An attachment request carries either content to store or an existing
  file reference, never neither.
* A refund request carries a refund date and a non-blank reference.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from lease_kernel.domain.gateways import DeductionDefinition
from lease_kernel.domain.termination import (
    TerminationAttachment,
    TerminationDeduction,
    TerminationStatus,
)
from lease_kernel.domain.values import percentage_of, require_non_negative, to_decimal
from lease_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class DeductionRequest:
    """A deduction line as entered by the user.

    Fields left as None are taken from the deduction definition named by
    ``deduction_id``.  For a Percentage definition the default amount is
    that percentage of the security deposit.
    """

    deduction_name: str | None = None
    deduction_amount: Decimal | None = None
    tax_percentage: Decimal | None = None
    deduction_id: UUID | None = None
    description: str | None = None
    deduction_line_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.deduction_id is None:
            if not self.deduction_name or not self.deduction_name.strip():
                raise ValidationError("Deduction name is required", field="deduction_name")
            if self.deduction_amount is None:
                raise ValidationError("Deduction amount is required", field="deduction_amount")
        if self.deduction_amount is not None:
            object.__setattr__(
                self,
                "deduction_amount",
                require_non_negative(self.deduction_amount, "deduction_amount"),
            )
        if self.tax_percentage is not None:
            object.__setattr__(
                self, "tax_percentage", require_non_negative(self.tax_percentage, "tax_percentage"),
            )

    def to_deduction(
        self,
        definition: DeductionDefinition | None = None,
        security_deposit_amount: Decimal = Decimal("0"),
    ) -> TerminationDeduction:
        name = self.deduction_name
        amount = self.deduction_amount
        tax = self.tax_percentage
        deposit_percentage = None
        if definition is not None:
            name = name or definition.deduction_name
            if amount is None:
                if definition.deduction_type == "Percentage":
                    deposit_percentage = definition.default_amount
                    amount = percentage_of(security_deposit_amount, deposit_percentage)
                else:
                    amount = definition.default_amount
            if tax is None:
                tax = definition.tax_percentage
        if not name or amount is None:
            raise ValidationError(
                f"Deduction definition {self.deduction_id} is not available",
                field="deduction_id",
            )
        return TerminationDeduction(
            deduction_line_id=self.deduction_line_id or uuid4(),
            deduction_name=name.strip(),
            deduction_amount=amount,
            tax_percentage=tax if tax is not None else Decimal("0"),
            deduction_id=self.deduction_id,
            description=self.description,
            deposit_percentage=deposit_percentage,
        )


@dataclass(frozen=True)
class AttachmentRequest:
    document_name: str
    content: bytes | None = None
    file_reference: str | None = None
    content_type: str | None = None
    doc_type: str | None = None
    remarks: str | None = None
    attachment_id: UUID | None = None

    def __post_init__(self) -> None:
        if not self.document_name or not self.document_name.strip():
            raise ValidationError("Document name is required", field="document_name")
        if self.content is None and not self.file_reference:
            raise ValidationError(
                "Attachment content or file reference is required", field="content",
            )

    def to_attachment(self, file_reference: str) -> TerminationAttachment:
        return TerminationAttachment(
            attachment_id=self.attachment_id or uuid4(),
            document_name=self.document_name.strip(),
            file_reference=file_reference,
            doc_type=self.doc_type,
            remarks=self.remarks,
        )


@dataclass(frozen=True)
class CreateTerminationRequest:
    termination_no: str
    termination_date: date
    contract_id: UUID | None = None
    customer_id: UUID | None = None
    security_deposit_amount: Decimal | None = None
    notice_date: date | None = None
    effective_date: date | None = None
    vacating_date: date | None = None
    termination_reason: str | None = None
    adjust_amount: Decimal = Decimal("0")
    deductions: tuple[DeductionRequest, ...] = ()
    attachments: tuple[AttachmentRequest, ...] = ()
    notes: str | None = None
    requires_approval: bool | None = None
    termination_id: UUID | None = None

    def __post_init__(self) -> None:
        if not self.termination_no or not self.termination_no.strip():
            raise ValidationError("Termination number is required", field="termination_no")
        object.__setattr__(self, "termination_no", self.termination_no.strip())
        if self.security_deposit_amount is not None:
            object.__setattr__(
                self,
                "security_deposit_amount",
                require_non_negative(self.security_deposit_amount, "security_deposit_amount"),
            )
        object.__setattr__(self, "adjust_amount", to_decimal(self.adjust_amount, "adjust_amount"))
        if self.notice_date and self.notice_date > self.termination_date:
            raise ValidationError("Notice date is after the termination date", field="notice_date")
        object.__setattr__(self, "deductions", tuple(self.deductions))
        object.__setattr__(self, "attachments", tuple(self.attachments))


@dataclass(frozen=True)
class UpdateTerminationRequest:
    termination_id: UUID
    changes: Mapping[str, Any] = field(default_factory=dict)
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if not self.changes:
            raise ValidationError("Nothing to update", field="changes")


@dataclass(frozen=True)
class ChangeTerminationStatusRequest:
    termination_id: UUID
    new_status: TerminationStatus
    expected_version: int | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "new_status", TerminationStatus(self.new_status))
        except ValueError:
            raise ValidationError(
                f"Unknown termination status {self.new_status!r}", field="new_status",
            ) from None


@dataclass(frozen=True)
class ProcessRefundRequest:
    termination_id: UUID
    refund_date: date
    refund_reference: str
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if self.refund_date is None:
            raise ValidationError("Refund date is required", field="refund_date")
        if not self.refund_reference or not self.refund_reference.strip():
            raise ValidationError("Refund reference is required", field="refund_reference")
        object.__setattr__(self, "refund_reference", self.refund_reference.strip())
