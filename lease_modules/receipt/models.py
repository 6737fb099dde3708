"""
Receipt Request Models (``lease_modules.receipt.models``).

Responsibility
--------------
One frozen request value object per receipt service operation, validated
in ``__post_init__``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from lease_kernel.domain.receipt import PaymentMethod, ReceiptStatus
from lease_kernel.domain.values import to_decimal
from lease_kernel.exceptions import InvalidAmountError, ValidationError


def _positive(value: Any, field_name: str) -> Decimal:
    amount = to_decimal(value, field_name)
    if amount <= 0:
        raise InvalidAmountError(field_name, amount, "must be positive")
    return amount


@dataclass(frozen=True)
class AllocationRequest:
    """An invoice and the amount of the receipt to apply to it."""

    invoice_id: UUID
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _positive(self.amount, "amount"))


@dataclass(frozen=True)
class CreateReceiptRequest:
    receipt_no: str
    receipt_date: date
    receipt_amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    customer_id: UUID | None = None
    cheque_no: str | None = None
    cheque_date: date | None = None
    transaction_reference: str | None = None
    currency_code: str | None = None
    notes: str | None = None
    requires_approval: bool | None = None
    allocations: tuple[AllocationRequest, ...] = ()
    receipt_id: UUID | None = None

    def __post_init__(self) -> None:
        if not self.receipt_no or not self.receipt_no.strip():
            raise ValidationError("Receipt number is required", field="receipt_no")
        object.__setattr__(self, "receipt_no", self.receipt_no.strip())
        object.__setattr__(self, "receipt_amount", _positive(self.receipt_amount, "receipt_amount"))
        try:
            object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))
        except ValueError:
            raise ValidationError(
                f"Unknown payment method {self.payment_method!r}", field="payment_method",
            ) from None
        allocations = tuple(self.allocations)
        invoice_ids = [a.invoice_id for a in allocations]
        if len(set(invoice_ids)) != len(invoice_ids):
            raise ValidationError("An invoice may appear only once", field="allocations")
        if sum((a.amount for a in allocations), Decimal("0")) > self.receipt_amount:
            raise ValidationError("Allocations exceed the receipt amount", field="allocations")
        object.__setattr__(self, "allocations", allocations)


@dataclass(frozen=True)
class UpdateReceiptRequest:
    receipt_id: UUID
    changes: Mapping[str, Any] = field(default_factory=dict)
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if not self.changes:
            raise ValidationError("Nothing to update", field="changes")


@dataclass(frozen=True)
class AllocateRequest:
    receipt_id: UUID
    invoice_id: UUID
    amount: Decimal
    expected_version: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _positive(self.amount, "amount"))


@dataclass(frozen=True)
class DeallocateRequest:
    receipt_id: UUID
    invoice_id: UUID
    expected_version: int | None = None


@dataclass(frozen=True)
class ReallocateRequest:
    """Change an existing allocation to ``amount``."""

    receipt_id: UUID
    invoice_id: UUID
    amount: Decimal
    expected_version: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _positive(self.amount, "amount"))


@dataclass(frozen=True)
class ChangeReceiptStatusRequest:
    receipt_id: UUID
    new_status: ReceiptStatus
    expected_version: int | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "new_status", ReceiptStatus(self.new_status))
        except ValueError:
            raise ValidationError(
                f"Unknown receipt status {self.new_status!r}", field="new_status",
            ) from None


@dataclass(frozen=True)
class ToggleClearingRequest:
    receipt_id: UUID
    cleared: bool
    clearing_date: date | None = None
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if self.cleared and self.clearing_date is None:
            raise ValidationError("Clearing date is required", field="clearing_date")
