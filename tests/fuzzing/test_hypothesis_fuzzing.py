"""
Hypothesis-based fuzzing of the pure engines.

Property-based tests generating amounts, rates and allocation sequences
and checking that the arithmetic invariants hold for every input.

Boundaries fuzzed here:
- Invoice totals: total = amount + tax + charges - discount, never negative
- Payments: any sequence of payments keeps 0 <= balance <= total
- Allocations: allocated never exceeds the receipt amount
- Settlement: refund and credit note are exclusive and reconstruct the net
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from lease_engines.invoice_allocation import apply_payment, change_status, recalculate
from lease_engines.receipt_allocation import allocate
from lease_engines.settlement import apply_figures, calculate_figures
from lease_kernel.domain.invoice import AdditionalChargeLine, Invoice, InvoiceStatus
from lease_kernel.domain.receipt import Receipt
from lease_kernel.domain.termination import ContractTermination, TerminationDeduction
from lease_kernel.domain.values import ZERO, add, subtract
from lease_kernel.exceptions import InvalidTotalError, OverpaymentError

amounts = st.decimals(
    min_value=Decimal("0.00"), max_value=Decimal("999999.99"), places=2,
    allow_nan=False, allow_infinity=False,
)
positive_amounts = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("99999.99"), places=2,
    allow_nan=False, allow_infinity=False,
)
percentages = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("30"), places=2,
    allow_nan=False, allow_infinity=False,
)


def _invoice(amount, tax, discount, charges=()) -> Invoice:
    return Invoice(
        invoice_id=uuid4(),
        invoice_no="INV-FUZZ",
        invoice_date=date(2024, 1, 1),
        due_date=date(2024, 1, 31),
        invoice_amount=amount,
        tax_percentage=tax,
        discount_amount=discount,
        charge_lines=charges,
    )


class TestInvoiceTotalsFuzzing:

    @given(amount=amounts, tax=percentages, discount=amounts, charge=amounts)
    @settings(max_examples=200)
    def test_total_identity(self, amount, tax, discount, charge):
        line = AdditionalChargeLine(line_id=uuid4(), charge_amount=charge)
        invoice = _invoice(amount, tax, discount, (line,))
        try:
            computed = recalculate(invoice)
        except InvalidTotalError:
            assume(False)
        assert computed.total_amount >= ZERO
        assert computed.total_amount == subtract(
            add(amount, computed.tax_amount, computed.additional_charges), discount,
        )
        assert computed.balance_amount == computed.total_amount

    @given(
        amount=positive_amounts,
        payments=st.lists(positive_amounts, min_size=1, max_size=10),
    )
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_balance_stays_within_bounds(self, amount, payments):
        invoice = change_status(recalculate(_invoice(amount, Decimal("0"), ZERO)), InvoiceStatus.POSTED)
        for payment in payments:
            try:
                invoice = apply_payment(invoice, payment)
            except OverpaymentError:
                assert payment > invoice.balance_amount
            assert ZERO <= invoice.balance_amount <= invoice.total_amount
            assert add(invoice.paid_amount, invoice.balance_amount) == invoice.total_amount
        if invoice.balance_amount == ZERO:
            assert invoice.status == InvoiceStatus.PAID


class TestAllocationFuzzing:

    @given(
        receipt_amount=positive_amounts,
        invoice_amounts=st.lists(positive_amounts, min_size=1, max_size=6),
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_allocated_never_exceeds_receipt(self, receipt_amount, invoice_amounts):
        receipt = Receipt(
            receipt_id=uuid4(),
            receipt_no="RCT-FUZZ",
            receipt_date=date(2024, 1, 15),
            receipt_amount=receipt_amount,
        )
        for invoice_amount in invoice_amounts:
            invoice = change_status(
                recalculate(_invoice(invoice_amount, Decimal("0"), ZERO)), InvoiceStatus.POSTED,
            )
            portion = min(invoice.balance_amount, receipt.unallocated_amount)
            if portion <= ZERO:
                break
            receipt = allocate(receipt, invoice, portion).receipt
            assert receipt.allocated_amount <= receipt.receipt_amount
        assert receipt.unallocated_amount >= ZERO


class TestSettlementFuzzing:

    @given(
        deposit=amounts,
        adjust=st.decimals(
            min_value=Decimal("-5000.00"), max_value=Decimal("5000.00"), places=2,
            allow_nan=False, allow_infinity=False,
        ),
        deductions=st.lists(st.tuples(amounts, percentages), max_size=8),
    )
    @settings(max_examples=200)
    def test_refund_credit_exclusive(self, deposit, adjust, deductions):
        lines = [
            TerminationDeduction(
                deduction_line_id=uuid4(),
                deduction_name=f"D{i}",
                deduction_amount=amount,
                tax_percentage=tax,
            )
            for i, (amount, tax) in enumerate(deductions)
        ]
        termination = ContractTermination(
            termination_id=uuid4(),
            termination_no="TRM-FUZZ",
            termination_date=date(2024, 6, 30),
            security_deposit_amount=deposit,
            adjust_amount=adjust,
        )
        figures = calculate_figures(termination, lines)

        assert not (figures.refund_amount > ZERO and figures.credit_note_amount > ZERO)
        assert subtract(figures.refund_amount, figures.credit_note_amount) == figures.net_settlement

        stored = apply_figures(termination, lines)
        assert stored.refund_amount == figures.refund_amount
        assert stored.credit_note_amount == figures.credit_note_amount
