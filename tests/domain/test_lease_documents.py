"""
Tests for the lease document aggregates and their workflows.

Covers:
- Invoice, charge line, receipt and termination field invariants
- Derived line totals computed at construction
- Workflow definitions: declared transitions, terminal states, approval gates
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from lease_kernel.domain.invoice import (
    INVOICE_WORKFLOW,
    AdditionalChargeLine,
    Invoice,
    InvoiceStatus,
)
from lease_kernel.domain.receipt import (
    RECEIPT_WORKFLOW,
    PaymentAllocation,
    PaymentMethod,
    Receipt,
    ReceiptStatus,
)
from lease_kernel.domain.termination import (
    TERMINATION_WORKFLOW,
    ContractTermination,
    TerminationDeduction,
    TerminationStatus,
)
from lease_kernel.domain.workflow import Transition, Workflow
from lease_kernel.exceptions import (
    InsufficientReceiptBalanceError,
    InvalidAmountError,
    ValidationError,
)


def make_receipt(amount="500.00", allocations=(), **overrides) -> Receipt:
    defaults = dict(
        receipt_id=uuid4(),
        receipt_no="RCT-001",
        receipt_date=date(2024, 3, 1),
        receipt_amount=Decimal(amount),
        allocations=allocations,
    )
    defaults.update(overrides)
    return Receipt(**defaults)


class TestInvoiceAggregate:

    def test_amounts_rounded(self):
        invoice = Invoice(
            invoice_id=uuid4(),
            invoice_no="INV-1",
            invoice_date=date(2024, 1, 1),
            due_date=date(2024, 1, 31),
            invoice_amount=Decimal("1000.005"),
        )
        assert invoice.invoice_amount == Decimal("1000.01")
        assert invoice.status == InvoiceStatus.DRAFT

    def test_negative_invoice_amount_refused(self):
        with pytest.raises(InvalidAmountError):
            Invoice(
                invoice_id=uuid4(),
                invoice_no="INV-1",
                invoice_date=date(2024, 1, 1),
                due_date=date(2024, 1, 31),
                invoice_amount=Decimal("-1"),
            )

    def test_status_string_coerced(self):
        invoice = Invoice(
            invoice_id=uuid4(),
            invoice_no="INV-1",
            invoice_date=date(2024, 1, 1),
            due_date=date(2024, 1, 31),
            invoice_amount=Decimal("10"),
            status="Posted",
        )
        assert invoice.status is InvoiceStatus.POSTED

    def test_charge_line_derives_tax_and_total(self):
        line = AdditionalChargeLine(
            line_id=uuid4(), charge_amount=Decimal("100.00"), tax_percentage=Decimal("5"),
        )
        assert line.tax_amount == Decimal("5.00")
        assert line.total_amount == Decimal("105.00")


class TestReceiptAggregate:

    def test_allocated_and_unallocated(self):
        receipt = make_receipt(
            allocations=(
                PaymentAllocation(uuid4(), Decimal("200.00")),
                PaymentAllocation(uuid4(), Decimal("100.00")),
            ),
        )
        assert receipt.allocated_amount == Decimal("300.00")
        assert receipt.unallocated_amount == Decimal("200.00")

    def test_allocations_cannot_exceed_amount(self):
        with pytest.raises(InsufficientReceiptBalanceError):
            make_receipt(
                amount="100.00",
                allocations=(PaymentAllocation(uuid4(), Decimal("100.01")),),
            )

    def test_duplicate_invoice_allocations_refused(self):
        invoice_id = uuid4()
        with pytest.raises(ValidationError):
            make_receipt(
                allocations=(
                    PaymentAllocation(invoice_id, Decimal("10.00")),
                    PaymentAllocation(invoice_id, Decimal("20.00")),
                ),
            )

    def test_receipt_amount_must_be_positive(self):
        with pytest.raises(InvalidAmountError):
            make_receipt(amount="0")

    def test_allocation_amount_must_be_positive(self):
        with pytest.raises(InvalidAmountError):
            PaymentAllocation(uuid4(), Decimal("0"))

    def test_cleared_requires_date(self):
        with pytest.raises(ValidationError):
            make_receipt(
                payment_method=PaymentMethod.CHEQUE, cheque_no="000123", is_cleared=True,
            )

    def test_is_cheque(self):
        assert make_receipt(payment_method="Cheque").is_cheque
        assert not make_receipt(payment_method="Bank Transfer").is_cheque


class TestTerminationAggregate:

    def test_refund_and_credit_note_exclusive(self):
        with pytest.raises(ValidationError):
            ContractTermination(
                termination_id=uuid4(),
                termination_no="TRM-1",
                termination_date=date(2024, 6, 30),
                security_deposit_amount=Decimal("2000"),
                refund_amount=Decimal("10"),
                credit_note_amount=Decimal("10"),
            )

    def test_processed_refund_requires_reference(self):
        with pytest.raises(ValidationError):
            ContractTermination(
                termination_id=uuid4(),
                termination_no="TRM-1",
                termination_date=date(2024, 6, 30),
                security_deposit_amount=Decimal("2000"),
                refund_amount=Decimal("500"),
                is_refund_processed=True,
                refund_date=date(2024, 7, 1),
            )

    def test_adjust_amount_may_be_negative(self):
        termination = ContractTermination(
            termination_id=uuid4(),
            termination_no="TRM-1",
            termination_date=date(2024, 6, 30),
            security_deposit_amount=Decimal("2000"),
            adjust_amount=Decimal("-150"),
        )
        assert termination.adjust_amount == Decimal("-150.00")

    def test_deduction_derives_total(self):
        deduction = TerminationDeduction(
            deduction_line_id=uuid4(),
            deduction_name="Painting",
            deduction_amount=Decimal("400.00"),
            tax_percentage=Decimal("5"),
        )
        assert deduction.tax_amount == Decimal("20.00")
        assert deduction.total_amount == Decimal("420.00")


class TestWorkflows:

    def test_invoice_post_requires_approval(self):
        transition = INVOICE_WORKFLOW.find_transition("Draft", "Posted")
        assert transition is not None
        assert transition.requires_approval

    def test_invoice_terminal_states(self):
        assert INVOICE_WORKFLOW.is_terminal("Cancelled")
        assert INVOICE_WORKFLOW.is_terminal("Void")
        assert not INVOICE_WORKFLOW.is_terminal("Paid")

    def test_receipt_happy_path_declared(self):
        path = [s.value for s in (
            ReceiptStatus.DRAFT, ReceiptStatus.VALIDATED, ReceiptStatus.POSTED, ReceiptStatus.CLEARED,
        )]
        for from_state, to_state in zip(path, path[1:]):
            assert RECEIPT_WORKFLOW.find_transition(from_state, to_state) is not None

    def test_termination_allowed_targets_from_pending(self):
        assert set(TERMINATION_WORKFLOW.allowed_targets(TerminationStatus.PENDING.value)) == {
            "Draft", "Approved", "Cancelled",
        }

    def test_workflow_rejects_outgoing_terminal_transition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="terminal state with an exit",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", action="reopen"),),
                terminal_states=("B",),
            )

    def test_workflow_rejects_unknown_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="unknown state",
                initial_state="A",
                states=("A",),
                transitions=(Transition("A", "Z", action="jump"),),
            )
