"""
Module: lease_engines.receipt_allocation
Responsibility:
    Allocate receipt amounts across invoices, adjust or reverse
    allocations, toggle cheque clearing, and drive the receipt lifecycle.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lease_kernel/domain types and exceptions, plus the
    invoice allocation and approval engines.

Invariants enforced:
    - sum(allocated) <= receipt_amount; unallocated never negative.
    - An allocation never exceeds the target invoice balance.
    - Receipt and invoice snapshots are returned together so the caller
      persists both or neither.
    - Allocations change only while the receipt is Draft and not locked.
    - A receipt with live allocations is cancelled only through
      ``cancel_receipt``, which reverses every allocation first.

Failure modes:
    - InvalidAmountError for non-positive allocation amounts.
    - InsufficientReceiptBalanceError when allocations would exceed the
      receipt amount.
    - OverAllocationError when the amount exceeds the invoice balance.
    - ValidationError for a missing allocation, clearing a non-cheque
      receipt, or clearing without a date.
    - InvalidTransitionError for illegal status changes.
    - ImmutableRecordError when editing a non-Draft or locked receipt.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any

from lease_engines import approval
from lease_engines.invoice_allocation import apply_payment, reverse_payment
from lease_engines.lifecycle import require_transition
from lease_engines.tracer import traced_engine
from lease_kernel.domain.invoice import PAYABLE_INVOICE_STATUSES, Invoice
from lease_kernel.domain.receipt import (
    RECEIPT_WORKFLOW,
    PaymentAllocation,
    Receipt,
    ReceiptStatus,
)
from lease_kernel.domain.values import ZERO, add, subtract, to_decimal
from lease_kernel.exceptions import (
    ImmutableRecordError,
    InsufficientReceiptBalanceError,
    InvalidAmountError,
    InvalidTransitionError,
    OverAllocationError,
    ValidationError,
)
from lease_kernel.logging_config import get_logger

logger = get_logger("engines.receipt_allocation")

EDITABLE_RECEIPT_FIELDS: frozenset[str] = frozenset({
    "receipt_no",
    "receipt_date",
    "receipt_amount",
    "payment_method",
    "customer_id",
    "cheque_no",
    "cheque_date",
    "transaction_reference",
    "currency_code",
    "notes",
})


@dataclass(frozen=True)
class AllocationOutcome:
    """Receipt and invoice snapshots after an allocation change."""

    receipt: Receipt
    invoice: Invoice


@dataclass(frozen=True)
class CancellationOutcome:
    """Cancelled receipt plus every invoice whose payment was reversed."""

    receipt: Receipt
    invoices: tuple[Invoice, ...]


@traced_engine("receipt_allocation", "1.0", fingerprint_fields=("receipt", "invoice", "amount"))
def allocate(
    receipt: Receipt,
    invoice: Invoice,
    amount: Decimal | int | str,
) -> AllocationOutcome:
    """Allocate part of a Draft receipt to an invoice.

    Repeated allocations to the same invoice accumulate on one row.
    """
    ensure_editable(receipt, "allocate")

    value = to_decimal(amount, "allocated_amount")
    if value <= ZERO:
        raise InvalidAmountError("allocated_amount", value, "must be positive")

    if (
        receipt.customer_id is not None
        and invoice.customer_id is not None
        and receipt.customer_id != invoice.customer_id
    ):
        raise ValidationError(
            f"Invoice {invoice.invoice_id} belongs to another customer",
            field="invoice_id",
        )

    unallocated = receipt.unallocated_amount
    if value > unallocated:
        raise InsufficientReceiptBalanceError(str(receipt.receipt_id), value, unallocated)

    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidTransitionError(
            invoice.entity_type,
            str(invoice.invoice_id),
            invoice.status.value,
            "Paid",
            f"{invoice.status.value} invoices cannot receive allocations",
        )
    if value > invoice.balance_amount:
        raise OverAllocationError(
            str(receipt.receipt_id), str(invoice.invoice_id), value, invoice.balance_amount,
        )

    updated_invoice = apply_payment(invoice, value)

    allocation = PaymentAllocation(
        invoice_id=invoice.invoice_id,
        allocated_amount=add(receipt.allocated_to(invoice.invoice_id), value),
    )
    if receipt.allocation_for(invoice.invoice_id) is None:
        allocations = receipt.allocations + (allocation,)
    else:
        allocations = tuple(
            allocation if a.invoice_id == invoice.invoice_id else a
            for a in receipt.allocations
        )
    updated_receipt = replace(receipt, allocations=allocations)

    logger.info(
        "receipt_allocated",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "invoice_id": str(invoice.invoice_id),
            "amount": str(value),
            "unallocated_amount": str(updated_receipt.unallocated_amount),
        },
    )
    return AllocationOutcome(receipt=updated_receipt, invoice=updated_invoice)


@traced_engine("receipt_allocation", "1.0", fingerprint_fields=("receipt", "invoice"))
def deallocate(receipt: Receipt, invoice: Invoice) -> AllocationOutcome:
    """Reverse the whole allocation from a Draft receipt to one invoice."""
    ensure_editable(receipt, "deallocate")

    existing = receipt.allocation_for(invoice.invoice_id)
    if existing is None:
        raise ValidationError(
            f"Receipt {receipt.receipt_id} has no allocation to invoice {invoice.invoice_id}",
            field="invoice_id",
        )

    updated_invoice = reverse_payment(invoice, existing.allocated_amount)
    updated_receipt = replace(
        receipt,
        allocations=tuple(a for a in receipt.allocations if a.invoice_id != invoice.invoice_id),
    )

    logger.info(
        "receipt_deallocated",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "invoice_id": str(invoice.invoice_id),
            "amount": str(existing.allocated_amount),
        },
    )
    return AllocationOutcome(receipt=updated_receipt, invoice=updated_invoice)


@traced_engine("receipt_allocation", "1.0", fingerprint_fields=("receipt", "invoice", "new_amount"))
def reallocate(
    receipt: Receipt,
    invoice: Invoice,
    new_amount: Decimal | int | str,
) -> AllocationOutcome:
    """Change the amount of an existing allocation.

    Only the difference moves: an increase is applied to the invoice as a
    payment, a decrease is reversed.  Use ``deallocate`` to remove the
    allocation entirely.
    """
    ensure_editable(receipt, "reallocate")

    existing = receipt.allocation_for(invoice.invoice_id)
    if existing is None:
        raise ValidationError(
            f"Receipt {receipt.receipt_id} has no allocation to invoice {invoice.invoice_id}",
            field="invoice_id",
        )
    value = to_decimal(new_amount, "allocated_amount")
    if value <= ZERO:
        raise InvalidAmountError("allocated_amount", value, "must be positive")

    delta = subtract(value, existing.allocated_amount)
    if delta == ZERO:
        return AllocationOutcome(receipt=receipt, invoice=invoice)
    if delta > ZERO:
        unallocated = receipt.unallocated_amount
        if delta > unallocated:
            raise InsufficientReceiptBalanceError(str(receipt.receipt_id), delta, unallocated)
        if delta > invoice.balance_amount:
            raise OverAllocationError(
                str(receipt.receipt_id), str(invoice.invoice_id), delta, invoice.balance_amount,
            )
        updated_invoice = apply_payment(invoice, delta)
    else:
        updated_invoice = reverse_payment(invoice, -delta)

    updated_receipt = replace(
        receipt,
        allocations=tuple(
            PaymentAllocation(invoice_id=a.invoice_id, allocated_amount=value)
            if a.invoice_id == invoice.invoice_id else a
            for a in receipt.allocations
        ),
    )

    logger.info(
        "receipt_reallocated",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "invoice_id": str(invoice.invoice_id),
            "from_amount": str(existing.allocated_amount),
            "to_amount": str(value),
        },
    )
    return AllocationOutcome(receipt=updated_receipt, invoice=updated_invoice)


def toggle_clearing(
    receipt: Receipt,
    cleared: bool,
    clearing_date: date | None = None,
) -> Receipt:
    """Mark a cheque receipt cleared or uncleared, independent of status."""
    if not receipt.is_cheque:
        raise ValidationError(
            f"Only cheque receipts can be cleared (payment method {receipt.payment_method.value})",
            field="payment_method",
        )

    if not cleared:
        return replace(receipt, is_cleared=False, clearing_date=None)

    if receipt.status == ReceiptStatus.CANCELLED:
        raise InvalidTransitionError(
            receipt.entity_type,
            str(receipt.receipt_id),
            receipt.status.value,
            "Cleared",
            "cancelled receipts cannot be cleared",
        )
    if clearing_date is None:
        raise ValidationError("Clearing date is required", field="clearing_date")

    logger.info(
        "receipt_cheque_cleared",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "clearing_date": clearing_date.isoformat(),
        },
    )
    return replace(receipt, is_cleared=True, clearing_date=clearing_date)


def _coerce_status(receipt: Receipt, new_status: ReceiptStatus | str) -> ReceiptStatus:
    try:
        return ReceiptStatus(new_status)
    except ValueError:
        raise ValidationError(
            f"Unknown receipt status {new_status!r} for {receipt.receipt_id}",
            field="status",
        ) from None


@traced_engine("receipt_allocation", "1.0", fingerprint_fields=("receipt", "new_status"))
def change_status(receipt: Receipt, new_status: ReceiptStatus | str) -> Receipt:
    """Move the receipt along Draft -> Validated -> Posted -> Cleared."""
    target = _coerce_status(receipt, new_status)
    transition = require_transition(
        RECEIPT_WORKFLOW, receipt, receipt.status.value, target.value,
    )

    if target == ReceiptStatus.CANCELLED and receipt.allocations:
        raise ValidationError(
            f"Receipt {receipt.receipt_id} has allocations; cancel it with its invoices",
            field="allocations",
        )
    if target == ReceiptStatus.VALIDATED and receipt.is_cheque and not receipt.cheque_no:
        raise ValidationError("Cheque number is required", field="cheque_no")

    logger.info(
        "receipt_status_changed",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "from_status": receipt.status.value,
            "to_status": target.value,
            "action": transition.action,
        },
    )
    return replace(receipt, status=target)


@traced_engine("receipt_allocation", "1.0", fingerprint_fields=("receipt", "invoices"))
def cancel_receipt(receipt: Receipt, invoices: Iterable[Invoice]) -> CancellationOutcome:
    """Reverse every allocation of the receipt and cancel it.

    ``invoices`` must contain every invoice the receipt is allocated to.
    """
    require_transition(
        RECEIPT_WORKFLOW, receipt, receipt.status.value, ReceiptStatus.CANCELLED.value,
    )

    by_id = {inv.invoice_id: inv for inv in invoices}
    reversed_invoices: list[Invoice] = []
    for allocation in receipt.allocations:
        invoice = by_id.get(allocation.invoice_id)
        if invoice is None:
            raise ValidationError(
                f"Invoice {allocation.invoice_id} allocated from receipt "
                f"{receipt.receipt_id} was not supplied",
                field="invoices",
            )
        reversed_invoices.append(reverse_payment(invoice, allocation.allocated_amount))

    logger.info(
        "receipt_cancelled",
        extra={
            "receipt_id": str(receipt.receipt_id),
            "from_status": receipt.status.value,
            "reversed_allocations": len(reversed_invoices),
        },
    )
    return CancellationOutcome(
        receipt=replace(receipt, allocations=(), status=ReceiptStatus.CANCELLED),
        invoices=tuple(reversed_invoices),
    )


def update_receipt(receipt: Receipt, changes: Mapping[str, Any]) -> Receipt:
    """Apply header field changes to a Draft receipt.

    Lowering the receipt amount below the allocated total fails with
    InsufficientReceiptBalanceError.
    """
    ensure_editable(receipt, "edit")
    unknown = set(changes) - EDITABLE_RECEIPT_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )
    return replace(receipt, **dict(changes))


def ensure_editable(receipt: Receipt, operation: str = "edit") -> None:
    approval.ensure_not_locked(receipt, operation)
    if receipt.status != ReceiptStatus.DRAFT:
        raise ImmutableRecordError(
            receipt.entity_type,
            str(receipt.receipt_id),
            operation,
            f"only Draft receipts can be changed (status {receipt.status.value})",
        )


def ensure_deletable(receipt: Receipt) -> None:
    ensure_editable(receipt, "delete")
