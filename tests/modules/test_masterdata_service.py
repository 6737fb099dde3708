"""
Tests for MasterdataService.

Validates:
- generic create / update / delete with unique business codes
- default currency and conversion rate maintenance
- deduction activation and effective-date filtering
- the cost center hierarchy
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from lease_kernel.exceptions import (
    EntityNotFoundError,
    InvalidAmountError,
    OptimisticLockError,
    ValidationError,
)
from lease_modules.masterdata.models import (
    CostCenter,
    Currency,
    Deduction,
    Supplier,
)


def make_currency(code, rate="1.0000", is_default=False):
    return Currency(
        id=uuid4(),
        currency_code=code,
        currency_name=f"{code} currency",
        conversion_rate=Decimal(rate),
        is_default=is_default,
    )


class TestGenericCrud:

    def test_duplicate_code_refused(self, masterdata, test_actor_id):
        masterdata.create(make_currency("USD", "3.6725"), test_actor_id)
        with pytest.raises(ValidationError) as exc_info:
            masterdata.create(make_currency("usd", "3.67"), test_actor_id)
        assert exc_info.value.field == "currency_code"

    def test_deleted_record_hidden(self, masterdata, test_actor_id):
        eur = masterdata.create(make_currency("EUR", "4.0100"), test_actor_id)
        masterdata.create(make_currency("GBP", "4.6500"), test_actor_id)
        masterdata.delete(Currency, eur.id, test_actor_id)
        with pytest.raises(EntityNotFoundError):
            masterdata.get(Currency, eur.id)
        assert [c.currency_code for c in masterdata.search(Currency)] == ["GBP"]

    def test_deleted_code_stays_reserved(self, masterdata, test_actor_id):
        eur = masterdata.create(make_currency("EUR", "4.0100"), test_actor_id)
        masterdata.delete(Currency, eur.id, test_actor_id)
        with pytest.raises(ValidationError) as exc_info:
            masterdata.create(make_currency("EUR", "4.0200"), test_actor_id)
        assert exc_info.value.field == "currency_code"

    def test_update_with_expected_version(self, masterdata, test_actor_id):
        supplier = masterdata.create(
            Supplier(id=uuid4(), supplier_no="SUP-001", supplier_name="Gulf Cleaning Co"),
            test_actor_id,
        )
        updated = masterdata.update(
            replace(supplier, supplier_name="Gulf Cleaning Services"),
            test_actor_id,
            expected_version=0,
        )
        assert updated.version == 1
        assert updated.supplier_name == "Gulf Cleaning Services"

        with pytest.raises(OptimisticLockError):
            masterdata.update(replace(updated, phone_no="+971 4 000 0000"), test_actor_id, expected_version=0)

    def test_invalid_rate_rejected(self):
        with pytest.raises(InvalidAmountError):
            make_currency("GBP", "0")

    def test_non_master_type_refused(self, masterdata):
        with pytest.raises(ValidationError) as exc_info:
            masterdata.search(dict)
        assert exc_info.value.field == "record_type"


class TestCurrencies:

    def test_set_default_clears_previous(self, masterdata, test_currencies, test_actor_id):
        aed, usd = test_currencies
        assert masterdata.get_default_currency().id == aed.id

        new_default = masterdata.set_default_currency(usd.id, test_actor_id)
        assert new_default.is_default
        assert masterdata.get(Currency, aed.id).is_default is False
        assert [c.currency_code for c in masterdata.search(Currency, is_default=True)] == ["USD"]

    def test_set_default_is_idempotent(self, masterdata, test_currencies, test_actor_id):
        aed, _ = test_currencies
        assert masterdata.set_default_currency(aed.id, test_actor_id).version == aed.version

    def test_update_conversion_rate(self, masterdata, test_currencies, test_actor_id, captured_logs):
        _, usd = test_currencies
        updated = masterdata.update_conversion_rate(usd.id, "3.67251", test_actor_id)
        assert updated.conversion_rate == Decimal("3.6725")
        assert updated.version == 1

        records = [r for r in captured_logs() if r["message"] == "conversion_rate_updated"]
        assert records[0]["currency_code"] == "USD"


class TestDeductions:

    def test_toggle_active(self, masterdata, test_deductions, test_actor_id):
        cleaning, _ = test_deductions
        toggled = masterdata.toggle_deduction_active(cleaning.id, test_actor_id)
        assert toggled.is_active is False
        assert [d.deduction_code for d in masterdata.active_deductions()] == ["ADM"]
        assert masterdata.toggle_deduction_active(cleaning.id, test_actor_id).is_active is True

    def test_active_on_date(self, masterdata, test_actor_id):
        masterdata.create(
            Deduction(
                id=uuid4(), deduction_code="KEY", deduction_name="Key replacement",
                deduction_value=Decimal("150.00"),
                effective_from=date(2024, 1, 1), expiry_date=date(2024, 12, 31),
            ),
            test_actor_id,
        )
        masterdata.create(
            Deduction(
                id=uuid4(), deduction_code="PNT", deduction_name="Repainting",
                deduction_value=Decimal("900.00"), effective_from=date(2025, 1, 1),
            ),
            test_actor_id,
        )
        assert [d.deduction_code for d in masterdata.active_deductions(on=date(2024, 6, 1))] == ["KEY"]
        assert [d.deduction_code for d in masterdata.active_deductions(on=date(2025, 6, 1))] == ["PNT"]
        assert len(masterdata.active_deductions()) == 2

    def test_expiry_before_effective_rejected(self):
        with pytest.raises(ValidationError):
            Deduction(
                id=uuid4(), deduction_code="BAD", deduction_name="Bad",
                effective_from=date(2024, 6, 1), expiry_date=date(2024, 1, 1),
            )


class TestCostCenters:

    @pytest.fixture
    def hierarchy(self, masterdata, test_actor_id):
        root = masterdata.create(CostCenter(id=uuid4(), level=1, description="Dubai"), test_actor_id)
        branch = masterdata.create(
            CostCenter(id=uuid4(), level=2, description="Marina", parent_id=root.id), test_actor_id,
        )
        leaf = masterdata.create(
            CostCenter(id=uuid4(), level=3, description="Marina Tower", parent_id=branch.id),
            test_actor_id,
        )
        return root, branch, leaf

    def test_path_and_children(self, masterdata, hierarchy):
        root, branch, leaf = hierarchy
        assert [c.description for c in masterdata.cost_center_path(leaf.id)] == [
            "Dubai", "Marina", "Marina Tower",
        ]
        assert [c.id for c in masterdata.cost_center_children(root.id)] == [branch.id]
        assert masterdata.cost_center_children(leaf.id) == []

    def test_parent_must_be_one_level_up(self, masterdata, hierarchy, test_actor_id):
        root, _, _ = hierarchy
        with pytest.raises(ValidationError) as exc_info:
            masterdata.create(
                CostCenter(id=uuid4(), level=3, description="Skipped", parent_id=root.id),
                test_actor_id,
            )
        assert exc_info.value.field == "parent_id"

    def test_delete_parent_with_children_refused(self, masterdata, hierarchy, test_actor_id):
        _, branch, leaf = hierarchy
        with pytest.raises(ValidationError):
            masterdata.delete(CostCenter, branch.id, test_actor_id)
        masterdata.delete(CostCenter, leaf.id, test_actor_id)
        masterdata.delete(CostCenter, branch.id, test_actor_id)
        with pytest.raises(EntityNotFoundError):
            masterdata.get(CostCenter, branch.id)

    def test_level_one_has_no_parent(self):
        with pytest.raises(ValidationError):
            CostCenter(id=uuid4(), level=1, description="Root", parent_id=uuid4())
