"""
Lease receipt aggregate (``lease_kernel.domain.receipt``).

Responsibility
--------------
Frozen value objects for a customer receipt and its payment allocations,
plus the receipt lifecycle workflow.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* ``receipt_amount`` is strictly positive.
* Every allocation amount is strictly positive.
* At most one allocation per invoice.
* Sum of allocations never exceeds ``receipt_amount``.
* A receipt marked cleared carries a clearing date.
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
    round_money,
    subtract,
    sum_amounts,
    to_decimal,
)
from lease_kernel.domain.workflow import Transition, Workflow
from lease_kernel.exceptions import (
    InsufficientReceiptBalanceError,
    InvalidAmountError,
    ValidationError,
)


class ReceiptStatus(str, Enum):
    """Receipt lifecycle states."""

    DRAFT = "Draft"
    VALIDATED = "Validated"
    POSTED = "Posted"
    CLEARED = "Cleared"
    CANCELLED = "Cancelled"


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "Cash"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"
    ONLINE_PAYMENT = "Online Payment"
    BANK_DRAFT = "Bank Draft"


@dataclass(frozen=True)
class PaymentAllocation:
    """Portion of a receipt applied to one invoice."""

    invoice_id: UUID
    allocated_amount: Decimal

    def __post_init__(self) -> None:
        amount = round_money(to_decimal(self.allocated_amount, "allocated_amount"))
        if amount <= 0:
            raise InvalidAmountError("allocated_amount", amount, "must be positive")
        object.__setattr__(self, "allocated_amount", amount)


@dataclass(frozen=True)
class Receipt:
    """A customer payment that may be allocated across invoices."""

    receipt_id: UUID
    receipt_no: str
    receipt_date: date
    receipt_amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    customer_id: UUID | None = None
    allocations: tuple[PaymentAllocation, ...] = ()
    status: ReceiptStatus = ReceiptStatus.DRAFT
    is_cleared: bool = False
    clearing_date: date | None = None
    cheque_no: str | None = None
    cheque_date: date | None = None
    transaction_reference: str | None = None
    currency_code: str = "AED"
    notes: str | None = None
    requires_approval: bool = False
    approval: ApprovalState = field(default_factory=ApprovalState)
    version: int = 0

    def __post_init__(self) -> None:
        amount = round_money(to_decimal(self.receipt_amount, "receipt_amount"))
        if amount <= 0:
            raise InvalidAmountError("receipt_amount", amount, "must be positive")
        object.__setattr__(self, "receipt_amount", amount)
        object.__setattr__(self, "status", ReceiptStatus(self.status))
        object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))
        allocations = tuple(self.allocations)
        object.__setattr__(self, "allocations", allocations)

        seen: set[UUID] = set()
        for a in allocations:
            if a.invoice_id in seen:
                raise ValidationError(
                    f"Duplicate allocation for invoice {a.invoice_id}",
                    field="allocations",
                )
            seen.add(a.invoice_id)

        allocated = sum_amounts(a.allocated_amount for a in allocations)
        if allocated > amount:
            raise InsufficientReceiptBalanceError(
                str(self.receipt_id), allocated, amount,
            )
        if self.is_cleared and self.clearing_date is None:
            raise ValidationError(
                "A cleared receipt requires a clearing date", field="clearing_date",
            )

    @property
    def entity_type(self) -> str:
        return "Receipt"

    @property
    def entity_id(self) -> UUID:
        return self.receipt_id

    @property
    def allocated_amount(self) -> Decimal:
        return sum_amounts(a.allocated_amount for a in self.allocations)

    @property
    def unallocated_amount(self) -> Decimal:
        return subtract(self.receipt_amount, self.allocated_amount)

    @property
    def is_cheque(self) -> bool:
        return self.payment_method == PaymentMethod.CHEQUE

    def allocation_for(self, invoice_id: UUID) -> PaymentAllocation | None:
        for a in self.allocations:
            if a.invoice_id == invoice_id:
                return a
        return None

    def allocated_to(self, invoice_id: UUID) -> Decimal:
        existing = self.allocation_for(invoice_id)
        return existing.allocated_amount if existing else ZERO


RECEIPT_WORKFLOW = Workflow(
    name="lease_receipt",
    description="Lease receipt lifecycle",
    initial_state=ReceiptStatus.DRAFT.value,
    states=tuple(s.value for s in ReceiptStatus),
    transitions=(
        Transition("Draft", "Validated", action="validate"),
        Transition("Validated", "Posted", action="post", requires_approval=True),
        Transition("Posted", "Cleared", action="clear"),
        Transition("Draft", "Cancelled", action="cancel"),
        Transition("Validated", "Cancelled", action="cancel"),
        Transition("Posted", "Cancelled", action="cancel"),
    ),
    terminal_states=("Cleared", "Cancelled"),
)
