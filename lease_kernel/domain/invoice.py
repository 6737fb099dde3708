"""
Lease invoice aggregate (``lease_kernel.domain.invoice``).

Responsibility
--------------
Frozen value objects for a lease invoice and its additional charge lines,
plus the invoice lifecycle workflow consulted by the invoice allocation
engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O. Derived totals
are computed by ``lease_engines.invoice_allocation``; this module only
validates field-level constraints at construction.

Invariants enforced
-------------------
* Monetary fields are Decimal, rounded to scale 2; never float.
* ``invoice_amount``, ``tax_percentage``, ``discount_amount`` and
  ``paid_amount`` are non-negative.
* ``AdditionalChargeLine`` derives ``tax_amount`` and ``total_amount`` on
  construction, so a line can never carry inconsistent totals.
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
    round_rate,
    to_decimal,
)
from lease_kernel.domain.workflow import Guard, Transition, Workflow


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "Draft"
    POSTED = "Posted"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    CANCELLED = "Cancelled"
    VOID = "Void"


# Statuses that may receive payment allocations. Paid is included so a
# payment against a settled invoice reports as an overpayment.
PAYABLE_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.POSTED,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
})


@dataclass(frozen=True)
class AdditionalChargeLine:
    """An itemized charge on an invoice (utilities, admin fee, parking)."""

    line_id: UUID
    charge_amount: Decimal
    tax_percentage: Decimal = Decimal("0")
    description: str = ""
    charge_id: UUID | None = None
    tax_amount: Decimal = field(init=False)
    total_amount: Decimal = field(init=False)

    def __post_init__(self) -> None:
        amount = round_money(require_non_negative(self.charge_amount, "charge_amount"))
        pct = require_non_negative(self.tax_percentage, "tax_percentage")
        tax = percentage_of(amount, pct)
        object.__setattr__(self, "charge_amount", amount)
        object.__setattr__(self, "tax_percentage", pct)
        object.__setattr__(self, "tax_amount", tax)
        object.__setattr__(self, "total_amount", add(amount, tax))


@dataclass(frozen=True)
class Invoice:
    """A lease invoice raised against a contract."""

    invoice_id: UUID
    invoice_no: str
    invoice_date: date
    due_date: date
    invoice_amount: Decimal
    contract_id: UUID | None = None
    customer_id: UUID | None = None
    tax_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = ZERO
    charge_lines: tuple[AdditionalChargeLine, ...] = ()
    tax_amount: Decimal = ZERO
    additional_charges: Decimal = ZERO
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    balance_amount: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.DRAFT
    invoice_type: str = "Rent"
    currency_code: str = "AED"
    exchange_rate: Decimal = Decimal("1.0000")
    notes: str | None = None
    requires_approval: bool = False
    approval: ApprovalState = field(default_factory=ApprovalState)
    version: int = 0

    def __post_init__(self) -> None:
        for name in ("invoice_amount", "discount_amount", "paid_amount"):
            value = round_money(require_non_negative(getattr(self, name), name))
            object.__setattr__(self, name, value)
        object.__setattr__(
            self, "tax_percentage", require_non_negative(self.tax_percentage, "tax_percentage")
        )
        for name in ("tax_amount", "additional_charges", "total_amount", "balance_amount"):
            object.__setattr__(self, name, round_money(to_decimal(getattr(self, name), name)))
        object.__setattr__(self, "exchange_rate", round_rate(self.exchange_rate))
        object.__setattr__(self, "status", InvoiceStatus(self.status))
        object.__setattr__(self, "charge_lines", tuple(self.charge_lines))

    @property
    def entity_type(self) -> str:
        return "Invoice"

    @property
    def entity_id(self) -> UUID:
        return self.invoice_id


APPROVAL_GRANTED = Guard("approval_granted", "Invoice approved when approval is required")

INVOICE_WORKFLOW = Workflow(
    name="lease_invoice",
    description="Lease invoice lifecycle",
    initial_state=InvoiceStatus.DRAFT.value,
    states=tuple(s.value for s in InvoiceStatus),
    transitions=(
        Transition("Draft", "Posted", action="post", guard=APPROVAL_GRANTED, requires_approval=True),
        Transition("Draft", "Cancelled", action="cancel"),
        Transition("Draft", "Void", action="void"),
        # Payment-driven states are normally derived; manual corrections allowed.
        Transition("Posted", "PartiallyPaid", action="mark_partially_paid"),
        Transition("Posted", "Paid", action="mark_paid"),
        Transition("Posted", "Cancelled", action="cancel"),
        Transition("Posted", "Void", action="void"),
        Transition("PartiallyPaid", "Paid", action="mark_paid"),
        Transition("PartiallyPaid", "Cancelled", action="cancel"),
        Transition("PartiallyPaid", "Void", action="void"),
        Transition("Paid", "PartiallyPaid", action="mark_partially_paid"),
        Transition("Paid", "Cancelled", action="cancel"),
        Transition("Paid", "Void", action="void"),
    ),
    terminal_states=("Cancelled", "Void"),
)
