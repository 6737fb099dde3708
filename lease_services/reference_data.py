"""
SqlAlchemyReferenceDataGateway -- read-only lookups over masterdata tables.

Responsibility:
    Implements the ``ReferenceDataGateway`` port.  Returns frozen
    reference snapshots (``ContractRef``, ``CustomerRef`` ...) so the
    document services never see ORM rows.

Architecture position:
    Services -- stateful infrastructure.  Reads the masterdata ORM models
    from ``lease_modules.masterdata.orm``.

Failure modes:
    - EntityNotFoundError for a missing or soft-deleted row, or an unknown
      currency code.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lease_kernel.domain.gateways import (
    AdditionalChargeRef,
    ContractRef,
    CustomerRef,
    DeductionDefinition,
    TaxRef,
    UnitRef,
)
from lease_kernel.domain.values import ExchangeRate
from lease_kernel.exceptions import EntityNotFoundError
from lease_modules.masterdata.orm import (
    AdditionalChargeModel,
    ContractModel,
    CurrencyModel,
    CustomerModel,
    DeductionModel,
    TaxModel,
    UnitModel,
)


class SqlAlchemyReferenceDataGateway:
    """Reference data reads for the document services."""

    def __init__(self, session: Session):
        self._session = session

    def _get(self, model, entity_type: str, entity_id: UUID):
        row = self._session.get(model, entity_id)
        if row is None or row.is_deleted:
            raise EntityNotFoundError(entity_type, str(entity_id))
        return row

    def get_contract(self, contract_id: UUID) -> ContractRef:
        row = self._get(ContractModel, "Contract", contract_id)
        return ContractRef(
            contract_id=row.id,
            contract_no=row.contract_no,
            customer_id=row.customer_id,
            unit_id=row.unit_id,
            start_date=row.start_date,
            end_date=row.end_date,
            rent_amount=row.rent_amount,
            security_deposit_amount=row.security_deposit_amount,
            currency_code=row.currency_code,
            status=row.status,
        )

    def get_customer(self, customer_id: UUID) -> CustomerRef:
        row = self._get(CustomerModel, "Customer", customer_id)
        return CustomerRef(
            customer_id=row.id,
            customer_name=row.customer_name,
            customer_email=row.customer_email,
            phone=row.phone,
        )

    def get_unit(self, unit_id: UUID) -> UnitRef:
        row = self._get(UnitModel, "Unit", unit_id)
        return UnitRef(unit_id=row.id, unit_no=row.unit_no, property_name=row.property_name)

    def get_tax(self, tax_id: UUID) -> TaxRef:
        row = self._get(TaxModel, "Tax", tax_id)
        return TaxRef(tax_id=row.id, tax_code=row.tax_code, tax_percentage=row.tax_percentage)

    def get_additional_charge(self, charge_id: UUID) -> AdditionalChargeRef:
        row = self._get(AdditionalChargeModel, "AdditionalCharge", charge_id)
        return AdditionalChargeRef(
            charge_id=row.id,
            charge_code=row.charge_code,
            charge_name=row.charge_name,
            default_amount=row.default_amount,
            tax_percentage=row.tax_percentage,
        )

    def get_deduction_definition(self, deduction_id: UUID) -> DeductionDefinition:
        return self._to_definition(self._get(DeductionModel, "Deduction", deduction_id))

    def list_deduction_definitions(self, active_only: bool = True) -> list[DeductionDefinition]:
        stmt = select(DeductionModel).where(DeductionModel.is_deleted.is_(False))
        if active_only:
            stmt = stmt.where(DeductionModel.is_active.is_(True))
        stmt = stmt.order_by(DeductionModel.deduction_code)
        return [self._to_definition(row) for row in self._session.scalars(stmt)]

    def get_exchange_rate(self, currency_code: str) -> ExchangeRate:
        code = currency_code.strip().upper()
        row = self._session.scalars(
            select(CurrencyModel).where(
                CurrencyModel.currency_code == code,
                CurrencyModel.is_deleted.is_(False),
            )
        ).first()
        if row is None:
            raise EntityNotFoundError("Currency", code)
        return ExchangeRate(currency_code=row.currency_code, rate=row.conversion_rate)

    @staticmethod
    def _to_definition(row: DeductionModel) -> DeductionDefinition:
        return DeductionDefinition(
            deduction_id=row.id,
            deduction_code=row.deduction_code,
            deduction_name=row.deduction_name,
            deduction_type=row.deduction_type,
            default_amount=row.deduction_value,
            tax_percentage=row.tax_percentage,
        )
