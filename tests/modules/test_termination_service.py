"""
Tests for TerminationService.

Validates:
- create_termination: contract defaults, deduction definitions, figures,
  contract invoice totals, attachments, notification
- deduction and attachment edits with recalculated figures
- the approval flow: Pending -> Approved -> refund -> Completed
- rejection, reset and the approval lock
- pending_approvals / pending_refunds / statistics
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from lease_kernel.domain.approval import ApprovalStatus
from lease_kernel.domain.invoice import InvoiceStatus
from lease_kernel.domain.termination import TerminationStatus
from lease_kernel.exceptions import (
    EntityNotFoundError,
    ImmutableRecordError,
    InvalidTransitionError,
    ValidationError,
)
from lease_modules._common import ApproveRequest, RejectRequest
from lease_modules.invoice.models import (
    ApplyPaymentRequest,
    ChangeInvoiceStatusRequest,
    CreateInvoiceRequest,
)
from lease_modules.termination import (
    AttachmentRequest,
    ChangeTerminationStatusRequest,
    CreateTerminationRequest,
    DeductionRequest,
    ProcessRefundRequest,
    UpdateTerminationRequest,
)
from lease_modules.termination.service import TerminationService


def make_request(contract_id=None, termination_no="TRM-2024-001", **overrides):
    defaults = dict(
        termination_no=termination_no,
        termination_date=date(2024, 6, 30),
        contract_id=contract_id,
        notice_date=date(2024, 5, 31),
        termination_reason="Tenant relocating",
    )
    defaults.update(overrides)
    return CreateTerminationRequest(**defaults)


def submit(service, termination, actor_id):
    return service.change_status(
        ChangeTerminationStatusRequest(termination.termination_id, TerminationStatus.PENDING),
        actor_id,
    )


# =============================================================================
# Create
# =============================================================================


class TestCreateTermination:

    def test_contract_defaults_and_figures(
        self, termination_service, test_contract, test_deductions, notifications, test_actor_id,
    ):
        cleaning, admin = test_deductions
        termination = termination_service.create_termination(
            make_request(
                test_contract.id,
                deductions=(
                    DeductionRequest(deduction_id=cleaning.id),
                    DeductionRequest(deduction_id=admin.id),
                ),
            ),
            test_actor_id,
        )

        assert termination.customer_id == test_contract.customer_id
        assert termination.security_deposit_amount == Decimal("2000.00")
        # Cleaning 500 plus admin fee 10% of 2000 with 5% tax
        assert termination.total_deductions == Decimal("710.00")
        assert termination.refund_amount == Decimal("1290.00")
        assert termination.credit_note_amount == Decimal("0.00")
        assert termination.requires_approval
        assert termination.approval.status == ApprovalStatus.PENDING

        trigger, variables = notifications.calls[0]
        assert trigger == "termination_created"
        assert variables["ContractNo"] == "CNT-2024-017"
        assert variables["RefundAmount"] == "1290.00"
        assert variables["CustomerEmail"] == "accounts@alnoor.example"

    def test_credit_note_when_deductions_exceed_deposit(
        self, termination_service, test_contract, test_actor_id,
    ):
        termination = termination_service.create_termination(
            make_request(
                test_contract.id,
                deductions=(
                    DeductionRequest(deduction_name="Repainting", deduction_amount=Decimal("1500.00")),
                    DeductionRequest(deduction_name="Damages", deduction_amount=Decimal("1000.00")),
                ),
            ),
            test_actor_id,
        )
        assert termination.refund_amount == Decimal("0.00")
        assert termination.credit_note_amount == Decimal("500.00")

    def test_contract_invoice_totals(
        self, termination_service, invoice_service, test_contract, test_actor_id,
    ):
        for invoice_no, pay in (("INV-1", Decimal("1000.00")), ("INV-2", None)):
            invoice = invoice_service.create_invoice(
                CreateInvoiceRequest(
                    invoice_no=invoice_no,
                    invoice_date=date(2024, 1, 1),
                    due_date=date(2024, 1, 31),
                    invoice_amount=Decimal("1000.00"),
                    contract_id=test_contract.id,
                ),
                test_actor_id,
            )
            invoice = invoice_service.change_status(
                ChangeInvoiceStatusRequest(invoice.invoice_id, InvoiceStatus.POSTED), test_actor_id,
            )
            if pay:
                invoice_service.apply_payment(ApplyPaymentRequest(invoice.invoice_id, pay), test_actor_id)
        cancelled = invoice_service.create_invoice(
            CreateInvoiceRequest(
                invoice_no="INV-3",
                invoice_date=date(2024, 1, 1),
                due_date=date(2024, 1, 31),
                invoice_amount=Decimal("5000.00"),
                contract_id=test_contract.id,
            ),
            test_actor_id,
        )
        invoice_service.change_status(
            ChangeInvoiceStatusRequest(cancelled.invoice_id, InvoiceStatus.CANCELLED), test_actor_id,
        )

        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        assert termination.total_invoiced == Decimal("2000.00")
        assert termination.total_received == Decimal("1000.00")
        assert termination.refund_amount == Decimal("2000.00")

    def test_deposit_required_without_contract(self, termination_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            termination_service.create_termination(make_request(), test_actor_id)
        assert exc_info.value.field == "security_deposit_amount"

    def test_duplicate_number_refused(self, termination_service, test_contract, test_actor_id):
        termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        with pytest.raises(ValidationError):
            termination_service.create_termination(make_request(test_contract.id), test_actor_id)

    def test_attachment_content_stored(
        self, termination_service, attachment_store, test_contract, test_actor_id,
    ):
        termination = termination_service.create_termination(
            make_request(
                test_contract.id,
                attachments=(AttachmentRequest("handover.pdf", content=b"%PDF-1.4", doc_type="Handover"),),
            ),
            test_actor_id,
        )
        attachment = termination.attachments[0]
        assert attachment.file_reference in attachment_store.objects
        assert termination_service.attachment_content(
            termination.termination_id, attachment.attachment_id,
        ) == b"%PDF-1.4"

    def test_content_without_store_refused(self, session, deterministic_clock, test_actor_id):
        service = TerminationService(session, clock=deterministic_clock)
        with pytest.raises(ValidationError):
            service.create_termination(
                make_request(
                    security_deposit_amount=Decimal("1000.00"),
                    attachments=(AttachmentRequest("keys.jpg", content=b"\xff\xd8"),),
                ),
                test_actor_id,
            )

    def test_available_deductions(self, termination_service, test_deductions, masterdata, test_actor_id):
        cleaning, _ = test_deductions
        masterdata.toggle_deduction_active(cleaning.id, test_actor_id)
        assert [d.deduction_code for d in termination_service.available_deductions()] == ["ADM"]


# =============================================================================
# Edits
# =============================================================================


class TestEdits:

    def test_deduction_lifecycle(self, termination_service, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)

        termination = termination_service.add_deduction(
            termination.termination_id,
            DeductionRequest(deduction_name="Key replacement", deduction_amount=Decimal("300.00")),
            test_actor_id,
        )
        assert termination.refund_amount == Decimal("1700.00")
        line_id = termination.deductions[0].deduction_line_id

        termination = termination_service.update_deduction(
            termination.termination_id,
            line_id,
            DeductionRequest(deduction_name="Key replacement", deduction_amount=Decimal("2300.00")),
            test_actor_id,
            expected_version=termination.version,
        )
        assert termination.refund_amount == Decimal("0.00")
        assert termination.credit_note_amount == Decimal("300.00")

        termination = termination_service.remove_deduction(
            termination.termination_id, line_id, test_actor_id,
        )
        assert termination.deductions == ()
        assert termination.refund_amount == Decimal("2000.00")

    def test_update_deduction_keeps_unchanged_fields(
        self, termination_service, test_contract, test_actor_id,
    ):
        termination = termination_service.create_termination(
            make_request(
                test_contract.id,
                deductions=(DeductionRequest(
                    deduction_name="Cleaning", deduction_amount=Decimal("400.00"),
                    tax_percentage=Decimal("5"), description="Deep clean",
                ),),
            ),
            test_actor_id,
        )
        line = termination.deductions[0]
        updated = termination_service.update_deduction(
            termination.termination_id,
            line.deduction_line_id,
            DeductionRequest(deduction_name="Cleaning and polishing", deduction_amount=Decimal("400.00")),
            test_actor_id,
        )
        changed = updated.deduction(line.deduction_line_id)
        assert changed.deduction_name == "Cleaning and polishing"
        assert changed.tax_percentage == Decimal("5")
        assert changed.description == "Deep clean"
        assert updated.total_deductions == Decimal("420.00")

    def test_missing_deduction_line(self, termination_service, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        with pytest.raises(ValidationError):
            termination_service.update_deduction(
                termination.termination_id,
                uuid4(),
                DeductionRequest(deduction_name="X", deduction_amount=Decimal("1")),
                test_actor_id,
            )

    def test_header_update_recalculates(self, termination_service, test_contract, notifications, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        updated = termination_service.update_termination(
            UpdateTerminationRequest(termination.termination_id, {"adjust_amount": Decimal("-250.00")}),
            test_actor_id,
        )
        assert updated.refund_amount == Decimal("1750.00")
        assert termination_service.preview_figures(termination.termination_id).net_settlement == Decimal("1750.00")
        assert notifications.triggers()[-1] == "termination_updated"

    def test_deposit_change_rebases_percentage_deductions(
        self, termination_service, test_contract, test_deductions, test_actor_id,
    ):
        cleaning, admin = test_deductions
        termination = termination_service.create_termination(
            make_request(
                test_contract.id,
                deductions=(
                    DeductionRequest(deduction_id=cleaning.id),
                    DeductionRequest(deduction_id=admin.id),
                ),
            ),
            test_actor_id,
        )
        updated = termination_service.update_termination(
            UpdateTerminationRequest(
                termination.termination_id, {"security_deposit_amount": Decimal("3000.00")},
            ),
            test_actor_id,
        )
        by_name = {d.deduction_name: d for d in updated.deductions}
        assert by_name["Cleaning"].deduction_amount == Decimal("500.00")
        # 10% of 3000 with 5% tax
        assert by_name["Admin fee"].total_amount == Decimal("315.00")
        assert updated.total_deductions == Decimal("815.00")
        assert updated.refund_amount == Decimal("2185.00")

    def test_approval_requirement_not_editable(self, termination_service, test_contract, test_actor_id):
        termination = submit(
            termination_service,
            termination_service.create_termination(make_request(test_contract.id), test_actor_id),
            test_actor_id,
        )
        with pytest.raises(ValidationError):
            termination_service.update_termination(
                UpdateTerminationRequest(termination.termination_id, {"requires_approval": False}),
                test_actor_id,
            )
        assert termination_service.get_termination(termination.termination_id).requires_approval

    def test_attachment_lifecycle(self, termination_service, attachment_store, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        termination = termination_service.add_attachment(
            termination.termination_id,
            AttachmentRequest("inspection.pdf", content=b"v1"),
            test_actor_id,
        )
        attachment = termination.attachments[0]

        renamed = termination_service.update_attachment(
            termination.termination_id,
            attachment.attachment_id,
            AttachmentRequest("inspection-final.pdf", file_reference=attachment.file_reference,
                              doc_type="Inspection"),
            test_actor_id,
        )
        kept = renamed.attachment(attachment.attachment_id)
        assert kept.document_name == "inspection-final.pdf"
        assert kept.file_reference == attachment.file_reference

        replaced = termination_service.update_attachment(
            termination.termination_id,
            attachment.attachment_id,
            AttachmentRequest("inspection-final.pdf", content=b"v2"),
            test_actor_id,
        )
        new_ref = replaced.attachment(attachment.attachment_id).file_reference
        assert new_ref != attachment.file_reference
        assert attachment_store.get(new_ref) == b"v2"

        removed = termination_service.remove_attachment(
            termination.termination_id, attachment.attachment_id, test_actor_id,
        )
        assert removed.attachments == ()
        assert attachment.file_reference in attachment_store.objects

    def test_delete_draft(self, termination_service, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        termination_service.delete_termination(termination.termination_id, test_actor_id)
        with pytest.raises(EntityNotFoundError):
            termination_service.get_termination(termination.termination_id)
        assert termination_service.terminations_for_contract(test_contract.id) == []

    def test_deleted_number_stays_reserved(self, termination_service, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        termination_service.delete_termination(termination.termination_id, test_actor_id)
        with pytest.raises(ValidationError):
            termination_service.create_termination(make_request(test_contract.id), test_actor_id)


# =============================================================================
# Approval and refund
# =============================================================================


class TestApprovalFlow:

    def test_end_to_end_refund(
        self, termination_service, test_contract, test_deductions, notifications, test_actor_id,
    ):
        cleaning, _ = test_deductions
        termination = termination_service.create_termination(
            make_request(test_contract.id, deductions=(DeductionRequest(deduction_id=cleaning.id),)),
            test_actor_id,
        )
        termination = submit(termination_service, termination, test_actor_id)
        assert [t.termination_id for t in termination_service.pending_approvals()] == [
            termination.termination_id
        ]

        approved = termination_service.approve(
            ApproveRequest(termination.termination_id, "Inspection confirmed"), test_actor_id,
        )
        assert approved.status == TerminationStatus.APPROVED
        assert approved.approval.approved_by == test_actor_id
        assert [t.termination_id for t in termination_service.pending_refunds()] == [
            termination.termination_id
        ]

        refunded = termination_service.process_refund(
            ProcessRefundRequest(termination.termination_id, date(2024, 7, 5), "REF123"),
            test_actor_id,
        )
        assert refunded.is_refund_processed
        assert refunded.refund_reference == "REF123"
        assert termination_service.pending_refunds() == []

        with pytest.raises(ImmutableRecordError):
            termination_service.change_status(
                ChangeTerminationStatusRequest(termination.termination_id, TerminationStatus.COMPLETED),
                test_actor_id,
            )
        released = termination_service.reset_approval(termination.termination_id, test_actor_id)
        assert released.status == TerminationStatus.APPROVED
        assert released.approval.status == ApprovalStatus.PENDING
        assert termination_service.pending_approvals() == []

        completed = termination_service.change_status(
            ChangeTerminationStatusRequest(termination.termination_id, TerminationStatus.COMPLETED),
            test_actor_id,
        )
        assert completed.status == TerminationStatus.COMPLETED
        assert "termination_refund_processed" in notifications.triggers()
        refund_vars = dict(notifications.calls)["termination_refund_processed"]
        assert refund_vars["RefundReference"] == "REF123"
        assert refund_vars["RefundDate"] == "2024-07-05"

    def test_approved_termination_locked(self, termination_service, test_contract, test_actor_id):
        termination = submit(
            termination_service,
            termination_service.create_termination(make_request(test_contract.id), test_actor_id),
            test_actor_id,
        )
        termination_service.approve(ApproveRequest(termination.termination_id), test_actor_id)

        with pytest.raises(ImmutableRecordError):
            termination_service.add_deduction(
                termination.termination_id,
                DeductionRequest(deduction_name="Late", deduction_amount=Decimal("10.00")),
                test_actor_id,
            )
        with pytest.raises(ImmutableRecordError):
            termination_service.delete_termination(termination.termination_id, test_actor_id)

        reset = termination_service.reset_approval(termination.termination_id, test_actor_id)
        assert reset.status == TerminationStatus.PENDING
        assert reset.approval.status == ApprovalStatus.PENDING

    def test_reject_keeps_pending(self, termination_service, test_contract, notifications, test_actor_id):
        termination = submit(
            termination_service,
            termination_service.create_termination(make_request(test_contract.id), test_actor_id),
            test_actor_id,
        )
        rejected = termination_service.reject(
            RejectRequest(termination.termination_id, "Missing inspection report"), test_actor_id,
        )
        assert rejected.status == TerminationStatus.PENDING
        assert rejected.approval.status == ApprovalStatus.REJECTED
        assert notifications.calls[-1][1]["RejectionReason"] == "Missing inspection report"

    def test_approve_requires_pending(self, termination_service, test_contract, test_actor_id):
        termination = termination_service.create_termination(make_request(test_contract.id), test_actor_id)
        with pytest.raises(InvalidTransitionError):
            termination_service.approve(ApproveRequest(termination.termination_id), test_actor_id)

    def test_refund_before_approval_refused(self, termination_service, test_contract, test_actor_id):
        termination = submit(
            termination_service,
            termination_service.create_termination(make_request(test_contract.id), test_actor_id),
            test_actor_id,
        )
        with pytest.raises(InvalidTransitionError):
            termination_service.process_refund(
                ProcessRefundRequest(termination.termination_id, date(2024, 7, 5), "REF1"),
                test_actor_id,
            )

    def test_completion_blocked_until_refund(self, termination_service, test_contract, test_actor_id):
        termination = submit(
            termination_service,
            termination_service.create_termination(make_request(test_contract.id), test_actor_id),
            test_actor_id,
        )
        termination_service.approve(ApproveRequest(termination.termination_id), test_actor_id)
        termination_service.reset_approval(termination.termination_id, test_actor_id, reopen=False)
        with pytest.raises(InvalidTransitionError):
            termination_service.change_status(
                ChangeTerminationStatusRequest(termination.termination_id, TerminationStatus.COMPLETED),
                test_actor_id,
            )

    def test_blank_refund_reference_refused(self):
        with pytest.raises(ValidationError):
            ProcessRefundRequest(uuid4(), date(2024, 7, 5), "   ")


class TestStatistics:

    def test_totals_by_status(self, termination_service, test_contract, test_actor_id):
        first = termination_service.create_termination(
            make_request(
                test_contract.id, "TRM-1",
                deductions=(DeductionRequest(deduction_name="Cleaning", deduction_amount=Decimal("500.00")),),
            ),
            test_actor_id,
        )
        termination_service.create_termination(make_request(test_contract.id, "TRM-2"), test_actor_id)
        submit(termination_service, first, test_actor_id)

        stats = termination_service.statistics()
        assert stats.total_count == 2
        assert stats.total_amount == Decimal("4000.00")
        assert stats.count_for("Pending") == 1
        assert stats.count_for("Draft") == 1
        assert stats.extra["total_deductions"] == Decimal("500.00")
        assert stats.extra["refund_amount"] == Decimal("3500.00")
        assert stats.pending_approval_count == 2
