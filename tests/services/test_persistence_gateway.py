"""
Tests for SqlAlchemyGateway.

Covers:
- create / read round trip through the ORM model's DTO conversion
- Optimistic version check on update
- Soft delete hiding rows from read, search and count
- exists, optionally matching soft-deleted rows
- Search filters: scalar, list (IN), None (IS NULL), enum values
- group_totals aggregation
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from lease_kernel.exceptions import (
    EntityNotFoundError,
    OptimisticLockError,
    ValidationError,
)
from lease_modules.masterdata.models import CostCenter, Currency, Deduction, DeductionType
from lease_modules.masterdata.orm import CostCenterModel, CurrencyModel, DeductionModel
from lease_services.persistence import SqlAlchemyGateway


@pytest.fixture
def currencies(session, deterministic_clock):
    return SqlAlchemyGateway(session, CurrencyModel, "Currency", deterministic_clock)


def make_currency(code="USD", rate="3.6725", is_default=False) -> Currency:
    return Currency(
        id=uuid4(),
        currency_code=code,
        currency_name=f"{code} currency",
        conversion_rate=Decimal(rate),
        is_default=is_default,
    )


class TestCreateRead:

    def test_round_trip(self, currencies, test_actor_id):
        currency = make_currency()
        created_id = currencies.create(currency, test_actor_id)

        loaded = currencies.read(created_id)
        assert created_id == currency.id
        assert loaded.currency_code == "USD"
        assert loaded.conversion_rate == Decimal("3.6725")
        assert loaded.version == 0

    def test_missing_id(self, currencies):
        with pytest.raises(EntityNotFoundError):
            currencies.read(uuid4())

    def test_create_logs(self, currencies, test_actor_id, captured_logs):
        currencies.create(make_currency(), test_actor_id)
        created = [r for r in captured_logs() if r["message"] == "entity_created"]
        assert created and created[0]["entity_type"] == "Currency"


class TestUpdate:

    def test_update_increments_version(self, currencies, test_actor_id):
        created_id = currencies.create(make_currency(), test_actor_id)
        loaded = currencies.read(created_id)

        updated = currencies.update(replace(loaded, currency_name="US Dollar"), test_actor_id)
        assert updated.version == 1
        assert updated.currency_name == "US Dollar"

    def test_stale_snapshot_refused(self, currencies, test_actor_id):
        created_id = currencies.create(make_currency(), test_actor_id)
        stale = currencies.read(created_id)
        currencies.update(replace(stale, currency_name="First"), test_actor_id)

        with pytest.raises(OptimisticLockError) as exc_info:
            currencies.update(replace(stale, currency_name="Second"), test_actor_id)
        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"


class TestSoftDelete:

    def test_deleted_row_hidden(self, currencies, test_actor_id):
        created_id = currencies.create(make_currency(), test_actor_id)
        currencies.soft_delete(created_id, test_actor_id)

        with pytest.raises(EntityNotFoundError):
            currencies.read(created_id)
        assert currencies.search(currency_code="USD") == []
        assert currencies.count() == 0

    def test_exists_sees_deleted_only_on_request(self, currencies, test_actor_id):
        created_id = currencies.create(make_currency(), test_actor_id)
        assert currencies.exists(currency_code="USD")
        assert not currencies.exists(exclude_id=created_id, currency_code="USD")

        currencies.soft_delete(created_id, test_actor_id)
        assert not currencies.exists(currency_code="USD")
        assert currencies.exists(include_deleted=True, currency_code="USD")

    def test_deleting_twice_refused(self, currencies, test_actor_id):
        created_id = currencies.create(make_currency(), test_actor_id)
        currencies.soft_delete(created_id, test_actor_id)
        with pytest.raises(EntityNotFoundError):
            currencies.soft_delete(created_id, test_actor_id)


class TestSearch:

    def test_scalar_and_list_filters(self, currencies, test_actor_id):
        for code in ("USD", "EUR", "GBP"):
            currencies.create(make_currency(code), test_actor_id)

        assert [c.currency_code for c in currencies.search(currency_code="EUR")] == ["EUR"]
        codes = {c.currency_code for c in currencies.search(currency_code=["USD", "GBP"])}
        assert codes == {"USD", "GBP"}
        assert currencies.count(currency_code=("USD", "EUR")) == 2

    def test_none_filter(self, session, deterministic_clock, test_actor_id):
        centers = SqlAlchemyGateway(session, CostCenterModel, "CostCenter", deterministic_clock)
        root = CostCenter(id=uuid4(), level=1, description="Head office")
        centers.create(root, test_actor_id)
        centers.create(
            CostCenter(id=uuid4(), level=2, description="Leasing", parent_id=root.id),
            test_actor_id,
        )

        roots = centers.search(parent_id=None)
        assert [c.id for c in roots] == [root.id]
        assert len(centers.search(parent_id=root.id)) == 1

    def test_enum_filter(self, session, deterministic_clock, test_actor_id):
        deductions = SqlAlchemyGateway(session, DeductionModel, "Deduction", deterministic_clock)
        deductions.create(
            Deduction(id=uuid4(), deduction_code="CLN", deduction_name="Cleaning",
                      deduction_value=Decimal("250.00")),
            test_actor_id,
        )
        deductions.create(
            Deduction(id=uuid4(), deduction_code="ADM", deduction_name="Admin fee",
                      deduction_type=DeductionType.PERCENTAGE, deduction_value=Decimal("5")),
            test_actor_id,
        )
        found = deductions.search(deduction_type=DeductionType.PERCENTAGE)
        assert [d.deduction_code for d in found] == ["ADM"]

    def test_unknown_field_refused(self, currencies):
        with pytest.raises(ValidationError) as exc_info:
            currencies.search(colour="blue")
        assert exc_info.value.field == "colour"


class TestGroupTotals:

    def test_counts_and_sums_per_group(self, currencies, test_actor_id):
        currencies.create(make_currency("USD", "3.6725"), test_actor_id)
        currencies.create(make_currency("EUR", "4.0000"), test_actor_id)
        currencies.create(make_currency("AED", "1.0000", is_default=True), test_actor_id)

        groups = {
            key: (count, sums)
            for key, count, sums in currencies.group_totals("is_default", ("conversion_rate",))
        }
        assert groups[False][0] == 2
        assert groups[False][1]["conversion_rate"] == Decimal("7.67")
        assert groups[True] == (1, {"conversion_rate": Decimal("1.00")})

    def test_filters_apply(self, currencies, test_actor_id):
        currencies.create(make_currency("USD"), test_actor_id)
        currencies.create(make_currency("EUR"), test_actor_id)
        groups = currencies.group_totals("currency_code", (), currency_code="EUR")
        assert [(key, count) for key, count, _ in groups] == [("EUR", 1)]
