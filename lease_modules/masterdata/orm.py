"""
Masterdata ORM Models (``lease_modules.masterdata.orm``).

Responsibility
--------------
SQLAlchemy persistence models for master records.  Maps frozen domain
dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``lease_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``lease_kernel``.

Every model exposes ``to_dto()``, ``from_dto(dto, created_by_id)`` and
``apply_dto(dto)``; the persistence gateway owns ``version`` and the
audit columns.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lease_kernel.db.base import TrackedBase
from lease_modules.masterdata.models import (
    AdditionalCharge,
    Company,
    Contract,
    CostCenter,
    Currency,
    Customer,
    Deduction,
    DeductionType,
    EmailTemplate,
    Supplier,
    Tax,
    Unit,
)


# ---------------------------------------------------------------------------
# 1. CurrencyModel
# ---------------------------------------------------------------------------


class CurrencyModel(TrackedBase):
    """
    ORM model for currencies.

    Guarantees:
        - currency_code is unique (uq_currencies_code).
        - conversion_rate stored at Numeric(38, 9); read back at scale 4.
    """

    __tablename__ = "currencies"

    __table_args__ = (
        UniqueConstraint("currency_code", name="uq_currencies_code"),
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    currency_name: Mapped[str] = mapped_column(String(100), nullable=False)
    conversion_rate: Mapped[Decimal] = mapped_column(nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self) -> Currency:
        return Currency(
            id=self.id,
            currency_code=self.currency_code,
            currency_name=self.currency_name,
            conversion_rate=self.conversion_rate,
            is_default=self.is_default,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Currency, created_by_id: UUID) -> "CurrencyModel":
        return cls(
            id=dto.id,
            currency_code=dto.currency_code,
            currency_name=dto.currency_name,
            conversion_rate=dto.conversion_rate,
            is_default=dto.is_default,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: Currency) -> None:
        self.currency_code = dto.currency_code
        self.currency_name = dto.currency_name
        self.conversion_rate = dto.conversion_rate
        self.is_default = dto.is_default

    def __repr__(self) -> str:
        return f"<CurrencyModel {self.currency_code}>"


# ---------------------------------------------------------------------------
# 2. CostCenterModel
# ---------------------------------------------------------------------------


class CostCenterModel(TrackedBase):
    """ORM model for the four-level cost center hierarchy (self-referencing)."""

    __tablename__ = "cost_centers"

    __table_args__ = (
        Index("idx_cost_centers_parent_id", "parent_id"),
        Index("idx_cost_centers_level", "level"),
    )

    level: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(ForeignKey("cost_centers.id"), nullable=True)

    def to_dto(self) -> CostCenter:
        return CostCenter(
            id=self.id,
            level=self.level,
            description=self.description,
            parent_id=self.parent_id,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: CostCenter, created_by_id: UUID) -> "CostCenterModel":
        return cls(
            id=dto.id,
            level=dto.level,
            description=dto.description,
            parent_id=dto.parent_id,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: CostCenter) -> None:
        self.level = dto.level
        self.description = dto.description
        self.parent_id = dto.parent_id


# ---------------------------------------------------------------------------
# 3. SupplierModel
# ---------------------------------------------------------------------------


class SupplierModel(TrackedBase):
    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("supplier_no", name="uq_suppliers_supplier_no"),
        Index("idx_suppliers_status", "status"),
    )

    supplier_no: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active")
    has_credit_facility: Mapped[bool] = mapped_column(Boolean, default=False)
    credit_limit: Mapped[Decimal | None] = mapped_column(nullable=True)
    credit_days: Mapped[int | None] = mapped_column(nullable=True)
    vat_reg_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    _FIELDS = (
        "supplier_no", "supplier_name", "status", "has_credit_facility",
        "credit_limit", "credit_days", "vat_reg_no", "email", "phone_no", "address",
    )

    def to_dto(self) -> Supplier:
        return Supplier(
            id=self.id,
            version=self.version,
            **{name: getattr(self, name) for name in self._FIELDS},
        )

    @classmethod
    def from_dto(cls, dto: Supplier, created_by_id: UUID) -> "SupplierModel":
        return cls(
            id=dto.id,
            version=dto.version,
            created_by_id=created_by_id,
            **{name: getattr(dto, name) for name in cls._FIELDS},
        )

    def apply_dto(self, dto: Supplier) -> None:
        for name in self._FIELDS:
            setattr(self, name, getattr(dto, name))


# ---------------------------------------------------------------------------
# 4. CompanyModel
# ---------------------------------------------------------------------------


class CompanyModel(TrackedBase):
    __tablename__ = "companies"

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tax_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    _FIELDS = ("company_name", "company_no", "tax_no", "email", "contact_no", "address", "is_active")

    def to_dto(self) -> Company:
        return Company(
            id=self.id,
            version=self.version,
            **{name: getattr(self, name) for name in self._FIELDS},
        )

    @classmethod
    def from_dto(cls, dto: Company, created_by_id: UUID) -> "CompanyModel":
        return cls(
            id=dto.id,
            version=dto.version,
            created_by_id=created_by_id,
            **{name: getattr(dto, name) for name in cls._FIELDS},
        )

    def apply_dto(self, dto: Company) -> None:
        for name in self._FIELDS:
            setattr(self, name, getattr(dto, name))


# ---------------------------------------------------------------------------
# 5. DeductionModel
# ---------------------------------------------------------------------------


class DeductionModel(TrackedBase):
    """
    ORM model for deduction charge definitions.

    Guarantees:
        - deduction_code is unique (uq_deductions_code).
        - deduction_type stored as string enum value.
    """

    __tablename__ = "deductions"

    __table_args__ = (
        UniqueConstraint("deduction_code", name="uq_deductions_code"),
        Index("idx_deductions_is_active", "is_active"),
    )

    deduction_code: Mapped[str] = mapped_column(String(50), nullable=False)
    deduction_name: Mapped[str] = mapped_column(String(255), nullable=False)
    deduction_type: Mapped[str] = mapped_column(String(20), default=DeductionType.FIXED.value)
    deduction_value: Mapped[Decimal] = mapped_column(nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    effective_from: Mapped[date | None] = mapped_column(nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(nullable=True)

    def to_dto(self) -> Deduction:
        return Deduction(
            id=self.id,
            deduction_code=self.deduction_code,
            deduction_name=self.deduction_name,
            deduction_type=DeductionType(self.deduction_type),
            deduction_value=self.deduction_value,
            tax_percentage=self.tax_percentage,
            description=self.description,
            is_active=self.is_active,
            effective_from=self.effective_from,
            expiry_date=self.expiry_date,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Deduction, created_by_id: UUID) -> "DeductionModel":
        model = cls(id=dto.id, version=dto.version, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: Deduction) -> None:
        self.deduction_code = dto.deduction_code
        self.deduction_name = dto.deduction_name
        self.deduction_type = dto.deduction_type.value
        self.deduction_value = dto.deduction_value
        self.tax_percentage = dto.tax_percentage
        self.description = dto.description
        self.is_active = dto.is_active
        self.effective_from = dto.effective_from
        self.expiry_date = dto.expiry_date


# ---------------------------------------------------------------------------
# 6. EmailTemplateModel
# ---------------------------------------------------------------------------


class EmailTemplateModel(TrackedBase):
    """
    ORM model for e-mail templates.

    Guarantees:
        - template_code is unique (uq_email_templates_code).
        - usage_count / last_used_at are maintained by the notification
          gateway on every send.
    """

    __tablename__ = "email_templates"

    __table_args__ = (
        UniqueConstraint("template_code", name="uq_email_templates_code"),
        Index("idx_email_templates_trigger_event", "trigger_event"),
    )

    template_code: Mapped[str] = mapped_column(String(50), nullable=False)
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_line: Mapped[str] = mapped_column(String(500), nullable=False)
    email_body: Mapped[str] = mapped_column(Text, nullable=False)
    trigger_event: Mapped[str | None] = mapped_column(String(100), nullable=True)
    auto_send: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_html_format: Mapped[bool] = mapped_column(Boolean, default=True)
    cc_emails: Mapped[str | None] = mapped_column(Text, nullable=True)
    bcc_emails: Mapped[str | None] = mapped_column(Text, nullable=True)
    usage_count: Mapped[int] = mapped_column(default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)

    _FIELDS = (
        "template_code", "template_name", "subject_line", "email_body", "trigger_event",
        "auto_send", "is_active", "is_html_format", "cc_emails", "bcc_emails",
        "usage_count", "last_used_at",
    )

    def to_dto(self) -> EmailTemplate:
        return EmailTemplate(
            id=self.id,
            version=self.version,
            **{name: getattr(self, name) for name in self._FIELDS},
        )

    @classmethod
    def from_dto(cls, dto: EmailTemplate, created_by_id: UUID) -> "EmailTemplateModel":
        return cls(
            id=dto.id,
            version=dto.version,
            created_by_id=created_by_id,
            **{name: getattr(dto, name) for name in cls._FIELDS},
        )

    def apply_dto(self, dto: EmailTemplate) -> None:
        for name in self._FIELDS:
            setattr(self, name, getattr(dto, name))


# ---------------------------------------------------------------------------
# 7. Reference tables: customers, units, contracts, taxes, additional charges
# ---------------------------------------------------------------------------


class CustomerModel(TrackedBase):
    __tablename__ = "customers"

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def to_dto(self) -> Customer:
        return Customer(
            id=self.id,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            phone=self.phone,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Customer, created_by_id: UUID) -> "CustomerModel":
        return cls(
            id=dto.id,
            customer_name=dto.customer_name,
            customer_email=dto.customer_email,
            phone=dto.phone,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: Customer) -> None:
        self.customer_name = dto.customer_name
        self.customer_email = dto.customer_email
        self.phone = dto.phone


class UnitModel(TrackedBase):
    __tablename__ = "units"

    unit_no: Mapped[str] = mapped_column(String(50), nullable=False)
    property_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self) -> Unit:
        return Unit(
            id=self.id,
            unit_no=self.unit_no,
            property_name=self.property_name,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Unit, created_by_id: UUID) -> "UnitModel":
        return cls(
            id=dto.id,
            unit_no=dto.unit_no,
            property_name=dto.property_name,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: Unit) -> None:
        self.unit_no = dto.unit_no
        self.property_name = dto.property_name


class ContractModel(TrackedBase):
    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint("contract_no", name="uq_contracts_contract_no"),
        Index("idx_contracts_customer_id", "customer_id"),
    )

    contract_no: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    unit_id: Mapped[UUID | None] = mapped_column(ForeignKey("units.id"), nullable=True)
    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    rent_amount: Mapped[Decimal] = mapped_column(nullable=False)
    security_deposit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), default="AED")
    status: Mapped[str] = mapped_column(String(20), default="Active")

    _FIELDS = (
        "contract_no", "customer_id", "unit_id", "start_date", "end_date",
        "rent_amount", "security_deposit_amount", "currency_code", "status",
    )

    def to_dto(self) -> Contract:
        return Contract(
            id=self.id,
            version=self.version,
            **{name: getattr(self, name) for name in self._FIELDS},
        )

    @classmethod
    def from_dto(cls, dto: Contract, created_by_id: UUID) -> "ContractModel":
        return cls(
            id=dto.id,
            version=dto.version,
            created_by_id=created_by_id,
            **{name: getattr(dto, name) for name in cls._FIELDS},
        )

    def apply_dto(self, dto: Contract) -> None:
        for name in self._FIELDS:
            setattr(self, name, getattr(dto, name))


class TaxModel(TrackedBase):
    __tablename__ = "taxes"

    __table_args__ = (
        UniqueConstraint("tax_code", name="uq_taxes_tax_code"),
    )

    tax_code: Mapped[str] = mapped_column(String(20), nullable=False)
    tax_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self) -> Tax:
        return Tax(
            id=self.id,
            tax_code=self.tax_code,
            tax_name=self.tax_name,
            tax_percentage=self.tax_percentage,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Tax, created_by_id: UUID) -> "TaxModel":
        return cls(
            id=dto.id,
            tax_code=dto.tax_code,
            tax_name=dto.tax_name,
            tax_percentage=dto.tax_percentage,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: Tax) -> None:
        self.tax_code = dto.tax_code
        self.tax_name = dto.tax_name
        self.tax_percentage = dto.tax_percentage


class AdditionalChargeModel(TrackedBase):
    __tablename__ = "additional_charges"

    __table_args__ = (
        UniqueConstraint("charge_code", name="uq_additional_charges_code"),
    )

    charge_code: Mapped[str] = mapped_column(String(50), nullable=False)
    charge_name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self) -> AdditionalCharge:
        return AdditionalCharge(
            id=self.id,
            charge_code=self.charge_code,
            charge_name=self.charge_name,
            default_amount=self.default_amount,
            tax_percentage=self.tax_percentage,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: AdditionalCharge, created_by_id: UUID) -> "AdditionalChargeModel":
        return cls(
            id=dto.id,
            charge_code=dto.charge_code,
            charge_name=dto.charge_name,
            default_amount=dto.default_amount,
            tax_percentage=dto.tax_percentage,
            version=dto.version,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto: AdditionalCharge) -> None:
        self.charge_code = dto.charge_code
        self.charge_name = dto.charge_name
        self.default_amount = dto.default_amount
        self.tax_percentage = dto.tax_percentage
