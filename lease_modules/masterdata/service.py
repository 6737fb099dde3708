"""
Masterdata Module Service -- maintains back-office master records.

Thin glue layer over ``SqlAlchemyGateway`` that:
1. Serves generic create / read / update / delete / search for every
   master record type
2. Enforces unique business codes before the database does
3. Implements the record-specific operations: default currency,
   conversion rate updates, deduction activation and the cost center
   hierarchy

This service flushes but never commits; the caller owns the transaction.

Usage:
    service = MasterdataService(session, clock)
    usd = service.create(Currency(id=uuid4(), currency_code="USD",
                                  currency_name="US Dollar",
                                  conversion_rate=Decimal("3.6725")), actor_id)
    service.set_default_currency(usd.id, actor_id)
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.exceptions import ValidationError
from lease_kernel.logging_config import get_logger
from lease_modules._common import check_expected_version
from lease_modules.masterdata.models import (
    AdditionalCharge,
    Company,
    Contract,
    CostCenter,
    Currency,
    Customer,
    Deduction,
    EmailTemplate,
    Supplier,
    Tax,
    Unit,
)
from lease_modules.masterdata.orm import (
    AdditionalChargeModel,
    CompanyModel,
    ContractModel,
    CostCenterModel,
    CurrencyModel,
    CustomerModel,
    DeductionModel,
    EmailTemplateModel,
    SupplierModel,
    TaxModel,
    UnitModel,
)
from lease_services.persistence import SqlAlchemyGateway

logger = get_logger("modules.masterdata.service")

R = TypeVar("R")

_MODELS: dict[type, type] = {
    Currency: CurrencyModel,
    CostCenter: CostCenterModel,
    Supplier: SupplierModel,
    Company: CompanyModel,
    Deduction: DeductionModel,
    EmailTemplate: EmailTemplateModel,
    Customer: CustomerModel,
    Unit: UnitModel,
    Contract: ContractModel,
    Tax: TaxModel,
    AdditionalCharge: AdditionalChargeModel,
}

# Business codes that must be unique among live records.
_UNIQUE_FIELDS: dict[type, str] = {
    Currency: "currency_code",
    Supplier: "supplier_no",
    Deduction: "deduction_code",
    EmailTemplate: "template_code",
    Contract: "contract_no",
    Tax: "tax_code",
    AdditionalCharge: "charge_code",
}


class MasterdataService:
    """
    Maintains master records through one persistence gateway per type.

    Record types are identified by their DTO class (``Currency``,
    ``Deduction`` ...).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._gateways: dict[type, SqlAlchemyGateway] = {
            dto: SqlAlchemyGateway(session, model, dto.__name__, self._clock)
            for dto, model in _MODELS.items()
        }

    def _gateway(self, record_type: type) -> SqlAlchemyGateway:
        try:
            return self._gateways[record_type]
        except KeyError:
            raise ValidationError(
                f"{getattr(record_type, '__name__', record_type)} is not a master record type",
                field="record_type",
            ) from None

    def _check_unique(self, record: Any) -> None:
        field_name = _UNIQUE_FIELDS.get(type(record))
        if field_name is None:
            return
        value = getattr(record, field_name)
        # Soft-deleted records keep their code.
        if self._gateway(type(record)).exists(
            include_deleted=True, exclude_id=record.id, **{field_name: value}
        ):
            raise ValidationError(
                f"{type(record).__name__} {field_name} {value!r} already exists",
                field=field_name,
            )

    # =========================================================================
    # Generic CRUD
    # =========================================================================

    def create(self, record: R, actor_id: UUID) -> R:
        gateway = self._gateway(type(record))
        self._check_unique(record)
        if isinstance(record, CostCenter):
            self._check_cost_center_parent(record)
        record_id = gateway.create(record, actor_id)
        logger.info(
            "masterdata_created",
            extra={"record_type": type(record).__name__, "record_id": str(record_id)},
        )
        return gateway.read(record_id)

    def get(self, record_type: type[R], record_id: UUID) -> R:
        return self._gateway(record_type).read(record_id)

    def search(self, record_type: type[R], **filters: Any) -> list[R]:
        return self._gateway(record_type).search(**filters)

    def update(
        self,
        record: R,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> R:
        gateway = self._gateway(type(record))
        check_expected_version(record, expected_version)
        self._check_unique(record)
        if isinstance(record, CostCenter):
            self._check_cost_center_parent(record)
        updated = gateway.update(record, actor_id)
        logger.info(
            "masterdata_updated",
            extra={
                "record_type": type(record).__name__,
                "record_id": str(record.id),
                "version": updated.version,
            },
        )
        return updated

    def delete(self, record_type: type, record_id: UUID, actor_id: UUID) -> None:
        if record_type is CostCenter and self.cost_center_children(record_id):
            raise ValidationError(
                f"Cost center {record_id} still has child cost centers",
                field="parent_id",
            )
        self._gateway(record_type).soft_delete(record_id, actor_id)
        logger.info(
            "masterdata_deleted",
            extra={"record_type": record_type.__name__, "record_id": str(record_id)},
        )

    # =========================================================================
    # Currencies
    # =========================================================================

    def get_default_currency(self) -> Currency | None:
        defaults = self.search(Currency, is_default=True)
        return defaults[0] if defaults else None

    def set_default_currency(self, currency_id: UUID, actor_id: UUID) -> Currency:
        """Make one currency the default; any previous default is cleared."""
        target = self.get(Currency, currency_id)
        for current in self.search(Currency, is_default=True):
            if current.id != currency_id:
                self._gateway(Currency).update(replace(current, is_default=False), actor_id)
        if target.is_default:
            return target
        updated = self._gateway(Currency).update(replace(target, is_default=True), actor_id)
        logger.info(
            "default_currency_changed",
            extra={"currency_code": updated.currency_code},
        )
        return updated

    def update_conversion_rate(
        self,
        currency_id: UUID,
        rate: Decimal | str,
        actor_id: UUID,
    ) -> Currency:
        current = self.get(Currency, currency_id)
        updated = self._gateway(Currency).update(
            replace(current, conversion_rate=Decimal(str(rate))), actor_id,
        )
        logger.info(
            "conversion_rate_updated",
            extra={
                "currency_code": updated.currency_code,
                "old_rate": str(current.conversion_rate),
                "new_rate": str(updated.conversion_rate),
            },
        )
        return updated

    # =========================================================================
    # Deductions
    # =========================================================================

    def toggle_deduction_active(self, deduction_id: UUID, actor_id: UUID) -> Deduction:
        current = self.get(Deduction, deduction_id)
        return self._gateway(Deduction).update(
            replace(current, is_active=not current.is_active), actor_id,
        )

    def active_deductions(self, on: date | None = None) -> list[Deduction]:
        """Active deductions, optionally restricted to those in effect on ``on``."""
        deductions = self.search(Deduction, is_active=True)
        if on is None:
            return deductions
        return [
            d for d in deductions
            if (d.effective_from is None or d.effective_from <= on)
            and (d.expiry_date is None or d.expiry_date >= on)
        ]

    # =========================================================================
    # Cost centers
    # =========================================================================

    def _check_cost_center_parent(self, record: CostCenter) -> None:
        if record.parent_id is None:
            return
        parent = self.get(CostCenter, record.parent_id)
        if parent.level != record.level - 1:
            raise ValidationError(
                f"A level {record.level} cost center needs a level {record.level - 1} "
                f"parent, got level {parent.level}",
                field="parent_id",
            )

    def cost_center_children(self, parent_id: UUID) -> list[CostCenter]:
        return self.search(CostCenter, parent_id=parent_id)

    def cost_center_path(self, cost_center_id: UUID) -> list[CostCenter]:
        """The chain from the level 1 root down to ``cost_center_id``."""
        path: list[CostCenter] = []
        current: CostCenter | None = self.get(CostCenter, cost_center_id)
        while current is not None:
            path.append(current)
            current = self.get(CostCenter, current.parent_id) if current.parent_id else None
        return list(reversed(path))
