"""Tests for the engine invocation tracer (lease_engines.tracer)."""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from lease_engines.tracer import TRACE_TYPE, compute_input_fingerprint, traced_engine
from lease_kernel.domain.values import ExchangeRate


class TestFingerprint:

    def test_deterministic(self):
        args = {"amount": Decimal("10.00"), "on": date(2024, 1, 1)}
        assert compute_input_fingerprint(("amount", "on"), args) == compute_input_fingerprint(
            ("amount", "on"), dict(args),
        )

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("10.01")})
        assert a != b

    def test_dataclasses_and_missing_fields(self):
        fp = compute_input_fingerprint(
            ("rate", "absent"), {"rate": ExchangeRate("USD", Decimal("3.6725"))},
        )
        assert len(fp) == 16

    def test_generators_fingerprint_alike(self):
        lines = [Decimal("1.00"), Decimal("2.00")]
        a = compute_input_fingerprint(("lines",), {"lines": (x for x in lines)})
        b = compute_input_fingerprint(("lines",), {"lines": (x for x in lines)})
        assert a == b

    def test_set_order_ignored(self):
        a = compute_input_fingerprint(("codes",), {"codes": {"RENT", "PARK", "TAX"}})
        b = compute_input_fingerprint(("codes",), {"codes": frozenset({"TAX", "RENT", "PARK"})})
        assert a == b


class TestTracedEngine:

    def test_emits_trace_record(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("entity_id",))
        def double(entity_id: UUID, amount: Decimal) -> Decimal:
            return amount * 2

        assert double(UUID(int=1), Decimal("2")) == Decimal("4")

        traces = [r for r in captured_logs() if r["message"] == TRACE_TYPE]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "sample"
        assert traces[0]["engine_version"] == "2.1"
        assert traces[0]["input_fingerprint"]

    def test_no_trace_on_failure(self, captured_logs):
        @traced_engine("failing", "1.0")
        def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode()
        assert not [r for r in captured_logs() if r["message"] == TRACE_TYPE]

    def test_generator_argument_reaches_engine(self, captured_logs):
        @traced_engine("summing", "1.0", fingerprint_fields=("amounts",))
        def total(amounts) -> Decimal:
            return sum(amounts, Decimal("0"))

        values = [Decimal("1.50"), Decimal("2.50")]
        assert total(v for v in values) == Decimal("4.00")
        assert total(v for v in values) == Decimal("4.00")

        first, second = [
            r["input_fingerprint"] for r in captured_logs() if r["message"] == TRACE_TYPE
        ]
        assert first == second
