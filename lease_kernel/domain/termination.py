"""
Contract termination aggregate (``lease_kernel.domain.termination``).

Responsibility
--------------
Frozen value objects for a contract termination, its deduction lines and
attachment metadata, plus the termination lifecycle workflow.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O. Settlement figures
are computed by ``lease_engines.settlement``.

Invariants enforced
-------------------
* ``security_deposit_amount`` is non-negative.
* ``refund_amount`` and ``credit_note_amount`` are never both positive.
* A processed refund carries both a refund date and a reference.
* ``TerminationDeduction`` derives its tax and total on construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from lease_kernel.domain.approval import ApprovalState
from lease_kernel.domain.values import (
    ZERO,
    add,
    percentage_of,
    require_non_negative,
    round_money,
    to_decimal,
)
from lease_kernel.domain.workflow import Guard, Transition, Workflow
from lease_kernel.exceptions import ValidationError


class TerminationStatus(str, Enum):
    """Termination lifecycle states."""

    DRAFT = "Draft"
    PENDING = "Pending"
    APPROVED = "Approved"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Lifecycle states in which the record may still be edited.
EDITABLE_TERMINATION_STATUSES: frozenset[TerminationStatus] = frozenset({
    TerminationStatus.DRAFT,
    TerminationStatus.PENDING,
})


@dataclass(frozen=True)
class TerminationDeduction:
    """A charge withheld from the security deposit (damages, cleaning, dues).

    ``deposit_percentage`` is set when the amount is a percentage of the
    security deposit; such lines follow later deposit changes.
    """

    deduction_line_id: UUID
    deduction_name: str
    deduction_amount: Decimal
    tax_percentage: Decimal = Decimal("0")
    deduction_id: UUID | None = None
    description: str | None = None
    deposit_percentage: Decimal | None = None
    tax_amount: Decimal = field(init=False)
    total_amount: Decimal = field(init=False)

    def __post_init__(self) -> None:
        amount = round_money(require_non_negative(self.deduction_amount, "deduction_amount"))
        pct = require_non_negative(self.tax_percentage, "tax_percentage")
        tax = percentage_of(amount, pct)
        object.__setattr__(self, "deduction_amount", amount)
        object.__setattr__(self, "tax_percentage", pct)
        object.__setattr__(self, "tax_amount", tax)
        object.__setattr__(self, "total_amount", add(amount, tax))


@dataclass(frozen=True)
class TerminationAttachment:
    """Metadata for a document held in the external attachment store."""

    attachment_id: UUID
    document_name: str
    file_reference: str
    doc_type: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class ContractTermination:
    """Early or scheduled termination of a lease contract."""

    termination_id: UUID
    termination_no: str
    termination_date: date
    security_deposit_amount: Decimal
    contract_id: UUID | None = None
    customer_id: UUID | None = None
    notice_date: date | None = None
    effective_date: date | None = None
    vacating_date: date | None = None
    termination_reason: str | None = None
    deductions: tuple[TerminationDeduction, ...] = ()
    attachments: tuple[TerminationAttachment, ...] = ()
    adjust_amount: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_invoiced: Decimal = ZERO
    total_received: Decimal = ZERO
    refund_amount: Decimal = ZERO
    credit_note_amount: Decimal = ZERO
    is_refund_processed: bool = False
    refund_date: date | None = None
    refund_reference: str | None = None
    status: TerminationStatus = TerminationStatus.DRAFT
    notes: str | None = None
    requires_approval: bool = False
    approval: ApprovalState = field(default_factory=ApprovalState)
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "security_deposit_amount",
            round_money(require_non_negative(self.security_deposit_amount, "security_deposit_amount")),
        )
        # Adjustment is signed.
        object.__setattr__(self, "adjust_amount", round_money(to_decimal(self.adjust_amount, "adjust_amount")))
        for name in ("total_deductions", "total_invoiced", "total_received",
                     "refund_amount", "credit_note_amount"):
            object.__setattr__(self, name, round_money(require_non_negative(getattr(self, name), name)))
        object.__setattr__(self, "status", TerminationStatus(self.status))
        object.__setattr__(self, "deductions", tuple(self.deductions))
        object.__setattr__(self, "attachments", tuple(self.attachments))

        if self.refund_amount > 0 and self.credit_note_amount > 0:
            raise ValidationError(
                "Refund and credit note are mutually exclusive", field="refund_amount",
            )
        if self.is_refund_processed and (self.refund_date is None or not self.refund_reference):
            raise ValidationError(
                "A processed refund requires a refund date and reference",
                field="refund_reference",
            )

    @property
    def entity_type(self) -> str:
        return "ContractTermination"

    @property
    def entity_id(self) -> UUID:
        return self.termination_id

    def deduction(self, deduction_line_id: UUID) -> TerminationDeduction | None:
        for d in self.deductions:
            if d.deduction_line_id == deduction_line_id:
                return d
        return None

    def attachment(self, attachment_id: UUID) -> TerminationAttachment | None:
        for a in self.attachments:
            if a.attachment_id == attachment_id:
                return a
        return None


REFUND_SETTLED = Guard(
    "refund_settled",
    "A positive refund must be processed before the termination completes",
)

TERMINATION_WORKFLOW = Workflow(
    name="contract_termination",
    description="Contract termination lifecycle",
    initial_state=TerminationStatus.DRAFT.value,
    states=tuple(s.value for s in TerminationStatus),
    transitions=(
        Transition("Draft", "Pending", action="submit"),
        Transition("Draft", "Cancelled", action="cancel"),
        Transition("Pending", "Draft", action="return_to_draft"),
        Transition("Pending", "Approved", action="approve", requires_approval=True),
        Transition("Pending", "Cancelled", action="cancel"),
        Transition("Approved", "Completed", action="complete", guard=REFUND_SETTLED),
        Transition("Approved", "Cancelled", action="cancel"),
    ),
    terminal_states=("Completed", "Cancelled"),
)
