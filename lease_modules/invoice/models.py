"""
Invoice Request Models (``lease_modules.invoice.models``).

Responsibility
--------------
One frozen request value object per invoice service operation.  Each is
validated in ``__post_init__`` so malformed input fails before any
snapshot is loaded or any engine runs.

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
from uuid import UUID, uuid4

from lease_kernel.domain.invoice import AdditionalChargeLine, InvoiceStatus
from lease_kernel.domain.values import require_non_negative, to_decimal
from lease_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class ChargeLineRequest:
    """An additional charge line as entered by the user.

    ``tax_percentage`` left as None is taken from the additional charge
    definition when ``charge_id`` is set, else zero.
    """

    charge_amount: Decimal
    tax_percentage: Decimal | None = None
    description: str = ""
    charge_id: UUID | None = None
    line_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "charge_amount", require_non_negative(self.charge_amount, "charge_amount"),
        )
        if self.tax_percentage is not None:
            object.__setattr__(
                self, "tax_percentage", require_non_negative(self.tax_percentage, "tax_percentage"),
            )

    def to_line(self, default_tax_percentage: Decimal = Decimal("0")) -> AdditionalChargeLine:
        return AdditionalChargeLine(
            line_id=self.line_id or uuid4(),
            charge_amount=self.charge_amount,
            tax_percentage=(
                default_tax_percentage if self.tax_percentage is None else self.tax_percentage
            ),
            description=self.description,
            charge_id=self.charge_id,
        )


@dataclass(frozen=True)
class CreateInvoiceRequest:
    invoice_no: str
    invoice_date: date
    due_date: date
    invoice_amount: Decimal
    contract_id: UUID | None = None
    customer_id: UUID | None = None
    tax_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    charge_lines: tuple[ChargeLineRequest, ...] = ()
    invoice_type: str = "Rent"
    currency_code: str | None = None
    exchange_rate: Decimal | None = None
    notes: str | None = None
    requires_approval: bool | None = None
    invoice_id: UUID | None = None

    def __post_init__(self) -> None:
        if not self.invoice_no or not self.invoice_no.strip():
            raise ValidationError("Invoice number is required", field="invoice_no")
        if self.due_date < self.invoice_date:
            raise ValidationError("Due date precedes invoice date", field="due_date")
        for name in ("invoice_amount", "tax_percentage", "discount_amount"):
            object.__setattr__(self, name, require_non_negative(getattr(self, name), name))
        if self.exchange_rate is not None:
            rate = to_decimal(self.exchange_rate, "exchange_rate")
            if rate <= 0:
                raise ValidationError("Exchange rate must be positive", field="exchange_rate")
            object.__setattr__(self, "exchange_rate", rate)
        object.__setattr__(self, "invoice_no", self.invoice_no.strip())
        object.__setattr__(self, "charge_lines", tuple(self.charge_lines))


@dataclass(frozen=True)
class UpdateInvoiceRequest:
    """Header changes and, optionally, a replacement set of charge lines."""

    invoice_id: UUID
    changes: Mapping[str, Any] = field(default_factory=dict)
    charge_lines: tuple[ChargeLineRequest, ...] | None = None
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if not self.changes and self.charge_lines is None:
            raise ValidationError("Nothing to update", field="changes")
        if self.charge_lines is not None:
            object.__setattr__(self, "charge_lines", tuple(self.charge_lines))


@dataclass(frozen=True)
class ChangeInvoiceStatusRequest:
    invoice_id: UUID
    new_status: InvoiceStatus
    expected_version: int | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "new_status", InvoiceStatus(self.new_status))
        except ValueError:
            raise ValidationError(
                f"Unknown invoice status {self.new_status!r}", field="new_status",
            ) from None


@dataclass(frozen=True)
class ApplyPaymentRequest:
    invoice_id: UUID
    amount: Decimal
    expected_version: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
