"""
Masterdata Module.

Currencies, cost centers, suppliers, companies, deduction charges and
e-mail templates, plus the contract, customer, unit, tax and additional
charge records read by the reference data gateway.
"""

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

__all__ = [
    "AdditionalCharge",
    "Company",
    "Contract",
    "CostCenter",
    "Currency",
    "Customer",
    "Deduction",
    "DeductionType",
    "EmailTemplate",
    "Supplier",
    "Tax",
    "Unit",
]
