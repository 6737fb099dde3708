"""
Shared fixtures for module service tests.

Provides the master records the document services read through the
reference data gateway (customer, unit, contract, deduction definitions,
currencies) and one fixture per service, wired with the recording
notification double.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test declares
which parent records it depends on in its function signature.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from lease_config.schema import ApprovalConfig, LeaseCoreConfig
from lease_modules.invoice.service import InvoiceService
from lease_modules.masterdata.models import (
    AdditionalCharge,
    Contract,
    Currency,
    Customer,
    Deduction,
    DeductionType,
    Unit,
)
from lease_modules.masterdata.service import MasterdataService
from lease_modules.receipt.service import ReceiptService
from lease_modules.termination.service import TerminationService
from lease_services.reference_data import SqlAlchemyReferenceDataGateway

# ---------------------------------------------------------------------------
# Deterministic master record IDs
# ---------------------------------------------------------------------------

TEST_CUSTOMER_ID = UUID("00000000-0000-4000-a000-000000000002")
TEST_UNIT_ID = UUID("00000000-0000-4000-a000-000000000003")
TEST_CONTRACT_ID = UUID("00000000-0000-4000-a000-0000000000a0")
TEST_CLEANING_DEDUCTION_ID = UUID("00000000-0000-4000-a000-0000000000d1")
TEST_ADMIN_DEDUCTION_ID = UUID("00000000-0000-4000-a000-0000000000d2")
TEST_PARKING_CHARGE_ID = UUID("00000000-0000-4000-a000-0000000000e1")


# ---------------------------------------------------------------------------
# Master records (opt-in, individual)
# ---------------------------------------------------------------------------


@pytest.fixture
def masterdata(session, deterministic_clock):
    return MasterdataService(session, deterministic_clock)


@pytest.fixture
def reference_data(session):
    return SqlAlchemyReferenceDataGateway(session)


@pytest.fixture
def test_customer(masterdata, test_actor_id):
    return masterdata.create(
        Customer(
            id=TEST_CUSTOMER_ID,
            customer_name="Al Noor Trading LLC",
            customer_email="accounts@alnoor.example",
        ),
        test_actor_id,
    )


@pytest.fixture
def test_contract(masterdata, test_customer, test_actor_id):
    """Annual contract with a 2000.00 security deposit."""
    masterdata.create(
        Unit(id=TEST_UNIT_ID, unit_no="T1-1204", property_name="Marina Tower"),
        test_actor_id,
    )
    return masterdata.create(
        Contract(
            id=TEST_CONTRACT_ID,
            contract_no="CNT-2024-017",
            customer_id=test_customer.id,
            unit_id=TEST_UNIT_ID,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
            rent_amount=Decimal("12000.00"),
            security_deposit_amount=Decimal("2000.00"),
        ),
        test_actor_id,
    )


@pytest.fixture
def test_deductions(masterdata, test_actor_id):
    """A fixed cleaning charge and a 10% admin fee with 5% tax."""
    cleaning = masterdata.create(
        Deduction(
            id=TEST_CLEANING_DEDUCTION_ID,
            deduction_code="CLN",
            deduction_name="Cleaning",
            deduction_value=Decimal("500.00"),
        ),
        test_actor_id,
    )
    admin = masterdata.create(
        Deduction(
            id=TEST_ADMIN_DEDUCTION_ID,
            deduction_code="ADM",
            deduction_name="Admin fee",
            deduction_type=DeductionType.PERCENTAGE,
            deduction_value=Decimal("10"),
            tax_percentage=Decimal("5"),
        ),
        test_actor_id,
    )
    return cleaning, admin


@pytest.fixture
def test_parking_charge(masterdata, test_actor_id):
    return masterdata.create(
        AdditionalCharge(
            id=TEST_PARKING_CHARGE_ID,
            charge_code="PARK",
            charge_name="Parking",
            default_amount=Decimal("50.00"),
            tax_percentage=Decimal("5"),
        ),
        test_actor_id,
    )


@pytest.fixture
def test_currencies(masterdata, test_actor_id):
    aed = masterdata.create(
        Currency(id=UUID(int=784), currency_code="AED", currency_name="UAE Dirham", is_default=True),
        test_actor_id,
    )
    usd = masterdata.create(
        Currency(
            id=UUID(int=840),
            currency_code="USD",
            currency_name="US Dollar",
            conversion_rate=Decimal("3.6725"),
        ),
        test_actor_id,
    )
    return aed, usd


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def approvals_required_config():
    return LeaseCoreConfig(
        approvals=ApprovalConfig(invoices=True, receipts=True, terminations=True),
    )


@pytest.fixture
def invoice_service(session, deterministic_clock, notifications, reference_data):
    return InvoiceService(
        session,
        clock=deterministic_clock,
        notifications=notifications,
        reference_data=reference_data,
    )


@pytest.fixture
def receipt_service(session, deterministic_clock, notifications, reference_data):
    return ReceiptService(
        session,
        clock=deterministic_clock,
        notifications=notifications,
        reference_data=reference_data,
    )


@pytest.fixture
def termination_service(
    session, deterministic_clock, notifications, reference_data, attachment_store,
):
    return TerminationService(
        session,
        clock=deterministic_clock,
        notifications=notifications,
        reference_data=reference_data,
        attachment_store=attachment_store,
    )
