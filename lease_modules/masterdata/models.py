"""
Masterdata Domain Models (``lease_modules.masterdata.models``).

Responsibility
--------------
Frozen dataclass value objects for the back-office master records:
currencies, cost centers, suppliers, companies, deduction charges and
e-mail templates (maintained through ``MasterdataService``), plus the
contracts, customers, units, taxes and additional charges the reference
data gateway reads.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Monetary fields and rates use ``Decimal``; conversion rates are held at
  scale 4.
* Codes and names are non-blank.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from lease_kernel.domain.values import (
    require_non_negative,
    round_money,
    round_rate,
    to_decimal,
)
from lease_kernel.exceptions import InvalidAmountError, ValidationError


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


class MasterRecord:
    """Identity helpers shared by every master record."""

    id: UUID
    version: int

    @property
    def entity_type(self) -> str:
        return type(self).__name__

    @property
    def entity_id(self) -> UUID:
        return self.id


class DeductionType(str, Enum):
    FIXED = "Fixed"
    PERCENTAGE = "Percentage"


# ---------------------------------------------------------------------------
# Maintained master records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Currency(MasterRecord):
    """A currency with its conversion rate to the base currency."""

    id: UUID
    currency_code: str
    currency_name: str
    conversion_rate: Decimal = Decimal("1.0000")
    is_default: bool = False
    version: int = 0

    def __post_init__(self) -> None:
        code = _require_text(self.currency_code, "currency_code").upper()
        if len(code) != 3 or not code.isalpha():
            raise ValidationError(f"Invalid currency code {self.currency_code!r}", field="currency_code")
        object.__setattr__(self, "currency_code", code)
        object.__setattr__(self, "currency_name", _require_text(self.currency_name, "currency_name"))
        rate = round_rate(to_decimal(self.conversion_rate, "conversion_rate"))
        if rate <= 0:
            raise InvalidAmountError("conversion_rate", rate, "must be positive")
        object.__setattr__(self, "conversion_rate", rate)


@dataclass(frozen=True)
class CostCenter(MasterRecord):
    """One node of the four-level cost center hierarchy."""

    id: UUID
    level: int
    description: str
    parent_id: UUID | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if self.level not in (1, 2, 3, 4):
            raise ValidationError(f"Cost center level must be 1-4, got {self.level}", field="level")
        if self.level == 1 and self.parent_id is not None:
            raise ValidationError("Level 1 cost centers have no parent", field="parent_id")
        if self.level > 1 and self.parent_id is None:
            raise ValidationError(f"Level {self.level} cost centers need a parent", field="parent_id")
        object.__setattr__(self, "description", _require_text(self.description, "description"))


@dataclass(frozen=True)
class Supplier(MasterRecord):
    id: UUID
    supplier_no: str
    supplier_name: str
    status: str = "Active"
    has_credit_facility: bool = False
    credit_limit: Decimal | None = None
    credit_days: int | None = None
    vat_reg_no: str | None = None
    email: str | None = None
    phone_no: str | None = None
    address: str | None = None
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "supplier_no", _require_text(self.supplier_no, "supplier_no"))
        object.__setattr__(self, "supplier_name", _require_text(self.supplier_name, "supplier_name"))
        if self.credit_limit is not None:
            object.__setattr__(
                self, "credit_limit", round_money(require_non_negative(self.credit_limit, "credit_limit")),
            )


@dataclass(frozen=True)
class Company(MasterRecord):
    id: UUID
    company_name: str
    company_no: str | None = None
    tax_no: str | None = None
    email: str | None = None
    contact_no: str | None = None
    address: str | None = None
    is_active: bool = True
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "company_name", _require_text(self.company_name, "company_name"))


@dataclass(frozen=True)
class Deduction(MasterRecord):
    """A deduction charge definition usable on terminations."""

    id: UUID
    deduction_code: str
    deduction_name: str
    deduction_type: DeductionType = DeductionType.FIXED
    deduction_value: Decimal = Decimal("0")
    tax_percentage: Decimal = Decimal("0")
    description: str | None = None
    is_active: bool = True
    effective_from: date | None = None
    expiry_date: date | None = None
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "deduction_code", _require_text(self.deduction_code, "deduction_code"))
        object.__setattr__(self, "deduction_name", _require_text(self.deduction_name, "deduction_name"))
        object.__setattr__(self, "deduction_type", DeductionType(self.deduction_type))
        object.__setattr__(
            self, "deduction_value", round_money(require_non_negative(self.deduction_value, "deduction_value")),
        )
        object.__setattr__(
            self, "tax_percentage", require_non_negative(self.tax_percentage, "tax_percentage"),
        )
        if self.effective_from and self.expiry_date and self.expiry_date < self.effective_from:
            raise ValidationError("Expiry date precedes effective date", field="expiry_date")


@dataclass(frozen=True)
class EmailTemplate(MasterRecord):
    """An e-mail template selected by trigger event for automated sends."""

    id: UUID
    template_code: str
    template_name: str
    subject_line: str
    email_body: str
    trigger_event: str | None = None
    auto_send: bool = False
    is_active: bool = True
    is_html_format: bool = True
    cc_emails: str | None = None
    bcc_emails: str | None = None
    usage_count: int = 0
    last_used_at: datetime | None = None
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "template_code", _require_text(self.template_code, "template_code"))
        object.__setattr__(self, "template_name", _require_text(self.template_name, "template_name"))
        object.__setattr__(self, "subject_line", _require_text(self.subject_line, "subject_line"))
        if self.auto_send and not self.trigger_event:
            raise ValidationError("Auto-send templates need a trigger event", field="trigger_event")


# ---------------------------------------------------------------------------
# Reference records (read by the reference data gateway)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Customer(MasterRecord):
    id: UUID
    customer_name: str
    customer_email: str | None = None
    phone: str | None = None
    version: int = 0


@dataclass(frozen=True)
class Unit(MasterRecord):
    id: UUID
    unit_no: str
    property_name: str | None = None
    version: int = 0


@dataclass(frozen=True)
class Contract(MasterRecord):
    id: UUID
    contract_no: str
    customer_id: UUID
    unit_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    rent_amount: Decimal = Decimal("0")
    security_deposit_amount: Decimal = Decimal("0")
    currency_code: str = "AED"
    status: str = "Active"
    version: int = 0


@dataclass(frozen=True)
class Tax(MasterRecord):
    id: UUID
    tax_code: str
    tax_name: str
    tax_percentage: Decimal
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "tax_percentage", require_non_negative(self.tax_percentage, "tax_percentage"),
        )


@dataclass(frozen=True)
class AdditionalCharge(MasterRecord):
    id: UUID
    charge_code: str
    charge_name: str
    default_amount: Decimal = Decimal("0")
    tax_percentage: Decimal = Decimal("0")
    version: int = 0
