"""
Module: lease_engines.invoice_allocation
Responsibility:
    Compute lease invoice totals and apply or reverse payments against an
    invoice balance.  Owns the invoice lifecycle transitions and the
    edit/delete guards.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lease_kernel/domain types and exceptions.

Invariants enforced:
    - total = invoice_amount + tax + additional_charges - discount >= 0.
    - balance = total - paid >= 0; never negative after any operation.
    - Status is derived from amounts on payment: Paid when balance == 0,
      PartiallyPaid when 0 < paid < total, Posted when nothing is paid.
    - Only Draft, non-locked invoices may be edited or deleted.
    - Only Posted and PartiallyPaid invoices with a balance are aged; an
      invoice is overdue from the day after its due date.
    - Every operation returns a new snapshot; inputs are never mutated.

Failure modes:
    - InvalidTotalError when the discount exceeds the gross amount or the
      recomputed total falls below the amount already paid.
    - InvalidAmountError for negative payment amounts.
    - OverpaymentError when a payment exceeds the balance.
    - InvalidTransitionError for illegal status changes or payments against
      Draft, Cancelled or Void invoices.
    - ImmutableRecordError on edits of non-Draft or approval-locked invoices.

Usage:
    from lease_engines.invoice_allocation import compute_totals, apply_payment

    totals = compute_totals(invoice, invoice.charge_lines)
    invoice = apply_payment(invoice, Decimal("500.00"))
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from lease_engines import approval
from lease_engines.lifecycle import require_transition
from lease_engines.tracer import traced_engine
from lease_kernel.domain.invoice import (
    INVOICE_WORKFLOW,
    PAYABLE_INVOICE_STATUSES,
    AdditionalChargeLine,
    Invoice,
    InvoiceStatus,
)
from lease_kernel.domain.values import (
    ZERO,
    add,
    percentage_of,
    subtract,
    sum_amounts,
    to_decimal,
)
from lease_kernel.exceptions import (
    ImmutableRecordError,
    InvalidAmountError,
    InvalidTotalError,
    InvalidTransitionError,
    OverpaymentError,
    ValidationError,
)
from lease_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_allocation")

# Fields a caller may change through ``update_invoice``.  ``requires_approval``
# is fixed at creation.
EDITABLE_INVOICE_FIELDS: frozenset[str] = frozenset({
    "invoice_no",
    "invoice_date",
    "due_date",
    "contract_id",
    "customer_id",
    "invoice_amount",
    "tax_percentage",
    "discount_amount",
    "invoice_type",
    "currency_code",
    "exchange_rate",
    "notes",
})


@dataclass(frozen=True)
class InvoiceTotals:
    """Derived invoice amounts."""

    tax_amount: Decimal
    additional_charges: Decimal
    total_amount: Decimal
    balance_amount: Decimal


def _derive_payment_status(balance: Decimal, paid: Decimal) -> InvoiceStatus:
    if balance == ZERO:
        return InvoiceStatus.PAID
    if paid > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.POSTED


# =============================================================================
# Totals
# =============================================================================


@traced_engine("invoice_allocation", "1.0", fingerprint_fields=("invoice", "charge_lines"))
def compute_totals(
    invoice: Invoice,
    charge_lines: Iterable[AdditionalChargeLine] | None = None,
) -> InvoiceTotals:
    """Compute tax, additional charges, total and balance for an invoice.

    ``charge_lines`` defaults to the lines already on the invoice.
    """
    lines = tuple(invoice.charge_lines if charge_lines is None else charge_lines)

    tax = percentage_of(invoice.invoice_amount, invoice.tax_percentage)
    charges = sum_amounts(line.total_amount for line in lines)
    total = subtract(add(invoice.invoice_amount, tax, charges), invoice.discount_amount)
    if total < ZERO:
        raise InvalidTotalError(
            str(invoice.invoice_id), total, "discount exceeds gross amount",
        )

    balance = subtract(total, invoice.paid_amount)
    if balance < ZERO:
        raise InvalidTotalError(
            str(invoice.invoice_id),
            total,
            f"total is below the amount already paid ({invoice.paid_amount})",
        )

    return InvoiceTotals(
        tax_amount=tax,
        additional_charges=charges,
        total_amount=total,
        balance_amount=balance,
    )


def _with_totals(invoice: Invoice, lines: tuple[AdditionalChargeLine, ...]) -> Invoice:
    totals = compute_totals(invoice, lines)
    return replace(
        invoice,
        charge_lines=lines,
        tax_amount=totals.tax_amount,
        additional_charges=totals.additional_charges,
        total_amount=totals.total_amount,
        balance_amount=totals.balance_amount,
    )


def recalculate(
    invoice: Invoice,
    charge_lines: Iterable[AdditionalChargeLine] | None = None,
) -> Invoice:
    """Store freshly computed totals on a Draft invoice."""
    ensure_editable(invoice, "recalculate")
    lines = tuple(invoice.charge_lines if charge_lines is None else charge_lines)
    return _with_totals(invoice, lines)


def add_charge_line(invoice: Invoice, line: AdditionalChargeLine) -> Invoice:
    ensure_editable(invoice, "add charge line to")
    if any(existing.line_id == line.line_id for existing in invoice.charge_lines):
        raise ValidationError(f"Charge line {line.line_id} already exists", field="line_id")
    return _with_totals(invoice, invoice.charge_lines + (line,))


def update_charge_line(invoice: Invoice, line: AdditionalChargeLine) -> Invoice:
    ensure_editable(invoice, "update charge line on")
    if not any(existing.line_id == line.line_id for existing in invoice.charge_lines):
        raise ValidationError(f"Charge line {line.line_id} not found", field="line_id")
    lines = tuple(line if existing.line_id == line.line_id else existing
                  for existing in invoice.charge_lines)
    return _with_totals(invoice, lines)


def remove_charge_line(invoice: Invoice, line_id: UUID) -> Invoice:
    ensure_editable(invoice, "remove charge line from")
    lines = tuple(existing for existing in invoice.charge_lines if existing.line_id != line_id)
    if len(lines) == len(invoice.charge_lines):
        raise ValidationError(f"Charge line {line_id} not found", field="line_id")
    return _with_totals(invoice, lines)


def update_invoice(
    invoice: Invoice,
    changes: Mapping[str, Any],
    charge_lines: Iterable[AdditionalChargeLine] | None = None,
) -> Invoice:
    """Apply header field changes to a Draft invoice and recompute totals."""
    ensure_editable(invoice, "edit")
    unknown = set(changes) - EDITABLE_INVOICE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )
    updated = replace(invoice, **dict(changes))
    lines = tuple(updated.charge_lines if charge_lines is None else charge_lines)
    return _with_totals(updated, lines)


# =============================================================================
# Payments
# =============================================================================


@traced_engine("invoice_allocation", "1.0", fingerprint_fields=("invoice", "amount"))
def apply_payment(invoice: Invoice, amount: Decimal | int | str) -> Invoice:
    """Apply a payment to the invoice balance.

    A zero amount returns the same snapshot.
    """
    value = to_decimal(amount, "payment_amount")
    if value < ZERO:
        raise InvalidAmountError("payment_amount", value)
    if value == ZERO:
        return invoice

    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidTransitionError(
            invoice.entity_type,
            str(invoice.invoice_id),
            invoice.status.value,
            InvoiceStatus.PAID.value,
            f"{invoice.status.value} invoices cannot receive payments",
        )
    if value > invoice.balance_amount:
        raise OverpaymentError(str(invoice.invoice_id), value, invoice.balance_amount)

    paid = add(invoice.paid_amount, value)
    balance = subtract(invoice.total_amount, paid)
    status = _derive_payment_status(balance, paid)

    logger.info(
        "invoice_payment_applied",
        extra={
            "invoice_id": str(invoice.invoice_id),
            "amount": str(value),
            "paid_amount": str(paid),
            "balance_amount": str(balance),
            "status": status.value,
        },
    )
    return replace(invoice, paid_amount=paid, balance_amount=balance, status=status)


@traced_engine("invoice_allocation", "1.0", fingerprint_fields=("invoice", "amount"))
def reverse_payment(invoice: Invoice, amount: Decimal | int | str) -> Invoice:
    """Return a previously applied amount to the invoice balance."""
    value = to_decimal(amount, "reversal_amount")
    if value <= ZERO:
        raise InvalidAmountError("reversal_amount", value, "must be positive")
    if value > invoice.paid_amount:
        raise InvalidAmountError(
            "reversal_amount", value, f"exceeds paid amount {invoice.paid_amount}",
        )
    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidTransitionError(
            invoice.entity_type,
            str(invoice.invoice_id),
            invoice.status.value,
            InvoiceStatus.POSTED.value,
            f"payments on {invoice.status.value} invoices cannot be reversed",
        )

    paid = subtract(invoice.paid_amount, value)
    balance = subtract(invoice.total_amount, paid)
    status = _derive_payment_status(balance, paid)

    logger.info(
        "invoice_payment_reversed",
        extra={
            "invoice_id": str(invoice.invoice_id),
            "amount": str(value),
            "paid_amount": str(paid),
            "balance_amount": str(balance),
            "status": status.value,
        },
    )
    return replace(invoice, paid_amount=paid, balance_amount=balance, status=status)


# =============================================================================
# Lifecycle
# =============================================================================


def _coerce_status(invoice: Invoice, new_status: InvoiceStatus | str) -> InvoiceStatus:
    try:
        return InvoiceStatus(new_status)
    except ValueError:
        raise ValidationError(
            f"Unknown invoice status {new_status!r} for {invoice.invoice_id}",
            field="status",
        ) from None


@traced_engine("invoice_allocation", "1.0", fingerprint_fields=("invoice", "new_status"))
def change_status(invoice: Invoice, new_status: InvoiceStatus | str) -> Invoice:
    """Move the invoice along its lifecycle.

    Draft -> Posted requires approval when the invoice requires it and
    finalizes the derived totals.
    """
    target = _coerce_status(invoice, new_status)
    transition = require_transition(
        INVOICE_WORKFLOW, invoice, invoice.status.value, target.value,
    )
    if target == InvoiceStatus.POSTED:
        invoice = _with_totals(invoice, invoice.charge_lines)

    logger.info(
        "invoice_status_changed",
        extra={
            "invoice_id": str(invoice.invoice_id),
            "from_status": invoice.status.value,
            "to_status": target.value,
            "action": transition.action,
        },
    )
    return replace(invoice, status=target)


def ensure_editable(invoice: Invoice, operation: str = "edit") -> None:
    approval.ensure_not_locked(invoice, operation)
    if invoice.status != InvoiceStatus.DRAFT:
        raise ImmutableRecordError(
            invoice.entity_type,
            str(invoice.invoice_id),
            operation,
            f"only Draft invoices can be changed (status {invoice.status.value})",
        )


def ensure_deletable(invoice: Invoice) -> None:
    ensure_editable(invoice, "delete")


# =============================================================================
# Aging
# =============================================================================


@dataclass(frozen=True)
class AgeBucket:
    """A contiguous range of days overdue."""

    name: str
    min_days: int
    max_days: int | None  # None = unbounded

    def contains(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days


AGING_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("1-30 Days", 1, 30),
    AgeBucket("31-60 Days", 31, 60),
    AgeBucket("61-90 Days", 61, 90),
    AgeBucket("Over 90 Days", 91, None),
)

OUTSTANDING_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.POSTED,
    InvoiceStatus.PARTIALLY_PAID,
})


@dataclass(frozen=True)
class OverdueInvoice:
    invoice: Invoice
    days_overdue: int
    aging_bucket: str


@dataclass(frozen=True)
class AgingBucketSummary:
    aging_bucket: str
    invoice_count: int
    balance_amount: Decimal


@dataclass(frozen=True)
class AgingReport:
    """Overdue invoices as of a date, oldest first, with per-bucket sums."""

    as_of: date
    invoices: tuple[OverdueInvoice, ...]
    summary: tuple[AgingBucketSummary, ...]

    @property
    def total_overdue(self) -> Decimal:
        return sum_amounts(s.balance_amount for s in self.summary)


def aging_bucket(days_overdue: int) -> str:
    for bucket in AGING_BUCKETS:
        if bucket.contains(days_overdue):
            return bucket.name
    raise ValidationError(
        f"Invoice is not overdue ({days_overdue} days)", field="days_overdue",
    )


def is_outstanding(invoice: Invoice) -> bool:
    return invoice.status in OUTSTANDING_INVOICE_STATUSES and invoice.balance_amount > ZERO


@traced_engine("invoice_allocation", "1.0", fingerprint_fields=("invoices", "as_of", "min_days_overdue"))
def age_invoices(
    invoices: Iterable[Invoice],
    as_of: date,
    min_days_overdue: int = 1,
) -> AgingReport:
    """Age outstanding invoices past their due date.

    Draft, Paid, Cancelled and Void invoices never appear.  Every bucket
    is present in the summary, empty ones with zero totals.
    """
    threshold = max(min_days_overdue, 1)
    overdue = []
    for invoice in invoices:
        if not is_outstanding(invoice):
            continue
        days = (as_of - invoice.due_date).days
        if days < threshold:
            continue
        overdue.append(OverdueInvoice(invoice, days, aging_bucket(days)))
    overdue.sort(key=lambda o: (-o.days_overdue, o.invoice.invoice_no))

    summary = tuple(
        AgingBucketSummary(
            aging_bucket=label,
            invoice_count=sum(1 for o in overdue if o.aging_bucket == label),
            balance_amount=sum_amounts(
                o.invoice.balance_amount for o in overdue if o.aging_bucket == label
            ),
        )
        for label in (bucket.name for bucket in AGING_BUCKETS)
    )
    return AgingReport(as_of=as_of, invoices=tuple(overdue), summary=summary)
