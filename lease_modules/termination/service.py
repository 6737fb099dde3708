"""
Termination Module Service - Orchestrates contract terminations via engines.

Thin glue layer that:
1. Loads termination snapshots through SqlAlchemyGateway
2. Resolves contract, deduction definition and invoice totals from
   reference data and the invoice table
3. Calls lease_engines.settlement for figures, deductions, attachments,
   lifecycle, refunds and the approval-aware status changes
4. Stores attachment content in the injected AttachmentStore
5. Persists the resulting snapshot and fires the configured notification
   trigger

All computation lives in engines.  This service flushes but never
commits; the caller owns the transaction.

Usage:
    service = TerminationService(session, clock=clock, config=config)
    termination = service.create_termination(CreateTerminationRequest(
        termination_no="TRM-001", termination_date=date(2024, 6, 30),
        security_deposit_amount=Decimal("2000.00"),
        deductions=(DeductionRequest("Cleaning", Decimal("500.00")),),
    ), actor_id)
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from lease_config.schema import LeaseCoreConfig
from lease_engines import settlement
from lease_engines.settlement import SettlementFigures
from lease_kernel.domain.approval import ApprovalStatus
from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.domain.gateways import (
    AttachmentStore,
    DeductionDefinition,
    NotificationGateway,
    ReferenceDataGateway,
)
from lease_kernel.domain.invoice import Invoice, InvoiceStatus
from lease_kernel.domain.termination import (
    ContractTermination,
    TerminationDeduction,
    TerminationStatus,
)
from lease_kernel.domain.values import ZERO, sum_amounts
from lease_kernel.exceptions import ValidationError
from lease_kernel.logging_config import LogContext, get_logger
from lease_modules._common import (
    ApproveRequest,
    DocumentStatistics,
    RejectRequest,
    build_statistics,
    check_expected_version,
    customer_email,
    dispatch_notification,
)
from lease_modules.invoice.orm import InvoiceModel
from lease_modules.termination.models import (
    AttachmentRequest,
    ChangeTerminationStatusRequest,
    CreateTerminationRequest,
    DeductionRequest,
    ProcessRefundRequest,
    UpdateTerminationRequest,
)
from lease_modules.termination.orm import TerminationModel
from lease_services.persistence import SqlAlchemyGateway

logger = get_logger("modules.termination.service")

# Invoices that no longer count toward the contract totals.
_CLOSED_INVOICE_STATUSES = frozenset({
    InvoiceStatus.CANCELLED,
    InvoiceStatus.VOID,
})

# An Approved termination whose approval was reset for completion is not
# awaiting a decision.
_AWAITING_DECISION_STATUSES = (TerminationStatus.DRAFT, TerminationStatus.PENDING)


class TerminationService:
    """
    Orchestrates contract termination operations through engines.

    Engine composition:
    - settlement: figures, deductions, attachments, lifecycle, refunds,
      termination approval decisions
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LeaseCoreConfig | None = None,
        notifications: NotificationGateway | None = None,
        reference_data: ReferenceDataGateway | None = None,
        attachment_store: AttachmentStore | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or LeaseCoreConfig()
        self._notifications = notifications
        self._reference_data = reference_data
        self._attachment_store = attachment_store
        self._terminations: SqlAlchemyGateway[ContractTermination] = SqlAlchemyGateway(
            session, TerminationModel, "ContractTermination", self._clock,
        )
        self._invoices: SqlAlchemyGateway[Invoice] = SqlAlchemyGateway(
            session, InvoiceModel, "Invoice", self._clock,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(
        self,
        termination_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        termination = self._terminations.read(termination_id)
        check_expected_version(termination, expected_version)
        return termination

    def _definition(self, deduction_id: UUID | None) -> DeductionDefinition | None:
        if deduction_id is None or self._reference_data is None:
            return None
        return self._reference_data.get_deduction_definition(deduction_id)

    def _deduction(
        self,
        request: DeductionRequest,
        security_deposit_amount: Decimal,
    ) -> TerminationDeduction:
        return request.to_deduction(
            self._definition(request.deduction_id), security_deposit_amount,
        )

    def _store_attachment(self, request: AttachmentRequest):
        file_reference = request.file_reference
        if request.content is not None:
            if self._attachment_store is None:
                raise ValidationError(
                    "No attachment store is configured for attachment content",
                    field="content",
                )
            file_reference = self._attachment_store.put(
                request.document_name, request.content, request.content_type,
            )
        return request.to_attachment(file_reference)

    def _contract_totals(self, contract_id: UUID | None) -> tuple[Decimal, Decimal]:
        """Invoiced and received totals over the contract's live invoices."""
        if contract_id is None:
            return ZERO, ZERO
        invoices = [
            inv for inv in self._invoices.search(contract_id=contract_id)
            if inv.status not in _CLOSED_INVOICE_STATUSES
        ]
        return (
            sum_amounts(inv.total_amount for inv in invoices),
            sum_amounts(inv.paid_amount for inv in invoices),
        )

    def _notify(self, trigger_event: str, termination: ContractTermination, **extra: Any) -> None:
        if not self._config.notifications.enabled:
            return
        variables = {
            "TerminationNo": termination.termination_no,
            "TerminationDate": termination.termination_date.isoformat(),
            "TerminationStatus": termination.status.value,
            "SecurityDepositAmount": str(termination.security_deposit_amount),
            "TotalDeductions": str(termination.total_deductions),
            "RefundAmount": str(termination.refund_amount),
            "CreditNoteAmount": str(termination.credit_note_amount),
            "ApprovalStatus": termination.approval.status.value,
            "CustomerEmail": customer_email(self._reference_data, termination.customer_id, logger),
        }
        if termination.contract_id is not None and self._reference_data is not None:
            variables["ContractNo"] = self._reference_data.get_contract(
                termination.contract_id
            ).contract_no
        variables.update(extra)
        dispatch_notification(self._notifications, logger, trigger_event, variables)

    # =========================================================================
    # Create / read
    # =========================================================================

    def create_termination(
        self,
        request: CreateTerminationRequest,
        actor_id: UUID,
    ) -> ContractTermination:
        """Create a Draft termination with calculated settlement figures.

        Customer and security deposit default from the contract when
        reference data is available.
        """
        if self._terminations.exists(include_deleted=True, termination_no=request.termination_no):
            raise ValidationError(
                f"Termination number {request.termination_no!r} already exists",
                field="termination_no",
            )

        customer_id = request.customer_id
        deposit = request.security_deposit_amount
        if request.contract_id is not None and self._reference_data is not None:
            contract = self._reference_data.get_contract(request.contract_id)
            customer_id = customer_id or contract.customer_id
            if deposit is None:
                deposit = contract.security_deposit_amount
        if deposit is None:
            raise ValidationError(
                "Security deposit amount is required", field="security_deposit_amount",
            )

        requires_approval = (
            self._config.approvals.terminations
            if request.requires_approval is None
            else request.requires_approval
        )
        termination = ContractTermination(
            termination_id=request.termination_id or uuid4(),
            termination_no=request.termination_no,
            termination_date=request.termination_date,
            security_deposit_amount=deposit,
            contract_id=request.contract_id,
            customer_id=customer_id,
            notice_date=request.notice_date,
            effective_date=request.effective_date,
            vacating_date=request.vacating_date,
            termination_reason=request.termination_reason,
            attachments=tuple(self._store_attachment(a) for a in request.attachments),
            adjust_amount=request.adjust_amount,
            notes=request.notes,
            requires_approval=requires_approval,
        )
        total_invoiced, total_received = self._contract_totals(request.contract_id)
        termination = settlement.apply_figures(
            termination,
            [self._deduction(d, termination.security_deposit_amount) for d in request.deductions],
            total_invoiced=total_invoiced,
            total_received=total_received,
        )

        with LogContext.bind(
            entity_type="ContractTermination", entity_id=str(termination.termination_id),
        ):
            self._terminations.create(termination, actor_id)
            logger.info(
                "termination_created",
                extra={
                    "termination_no": termination.termination_no,
                    "refund_amount": str(termination.refund_amount),
                    "credit_note_amount": str(termination.credit_note_amount),
                },
            )
        created = self._terminations.read(termination.termination_id)
        self._notify(self._config.notifications.triggers.termination_created, created)
        return created

    def get_termination(self, termination_id: UUID) -> ContractTermination:
        return self._terminations.read(termination_id)

    def search_terminations(self, **filters: Any) -> list[ContractTermination]:
        return self._terminations.search(**filters)

    def terminations_for_contract(self, contract_id: UUID) -> list[ContractTermination]:
        return self._terminations.search(contract_id=contract_id)

    def available_deductions(self) -> list[DeductionDefinition]:
        if self._reference_data is None:
            return []
        return self._reference_data.list_deduction_definitions(active_only=True)

    # =========================================================================
    # Edits
    # =========================================================================

    def update_termination(
        self,
        request: UpdateTerminationRequest,
        actor_id: UUID,
    ) -> ContractTermination:
        termination = self._load(request.termination_id, request.expected_version)
        new_no = request.changes.get("termination_no")
        if (
            new_no
            and new_no != termination.termination_no
            and self._terminations.exists(include_deleted=True, termination_no=new_no)
        ):
            raise ValidationError(
                f"Termination number {new_no!r} already exists", field="termination_no",
            )
        updated = self._terminations.update(
            settlement.update_termination(termination, request.changes), actor_id,
        )
        self._notify(self._config.notifications.triggers.termination_updated, updated)
        return updated

    def delete_termination(
        self,
        termination_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> None:
        termination = self._load(termination_id, expected_version)
        settlement.ensure_deletable(termination)
        self._terminations.soft_delete(termination_id, actor_id)
        logger.info("termination_deleted", extra={"termination_id": str(termination_id)})

    def preview_figures(self, termination_id: UUID) -> SettlementFigures:
        """Settlement figures for the stored deductions, without saving."""
        return settlement.calculate_figures(self._terminations.read(termination_id))

    def calculate_figures(
        self,
        termination_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        """Recalculate and store the figures, refreshing the contract totals."""
        termination = self._load(termination_id, expected_version)
        total_invoiced, total_received = self._contract_totals(termination.contract_id)
        updated = settlement.apply_figures(
            termination, total_invoiced=total_invoiced, total_received=total_received,
        )
        return self._terminations.update(updated, actor_id)

    # =========================================================================
    # Deductions and attachments
    # =========================================================================

    def add_deduction(
        self,
        termination_id: UUID,
        request: DeductionRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        termination = self._load(termination_id, expected_version)
        deduction = self._deduction(request, termination.security_deposit_amount)
        return self._terminations.update(
            settlement.add_deduction(termination, deduction), actor_id,
        )

    def update_deduction(
        self,
        termination_id: UUID,
        deduction_line_id: UUID,
        request: DeductionRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        termination = self._load(termination_id, expected_version)
        existing = termination.deduction(deduction_line_id)
        if existing is None:
            raise ValidationError(
                f"Deduction line {deduction_line_id} not found", field="deduction_line_id",
            )
        merged = DeductionRequest(
            deduction_name=request.deduction_name or existing.deduction_name,
            deduction_amount=(
                existing.deduction_amount
                if request.deduction_amount is None and request.deduction_id is None
                else request.deduction_amount
            ),
            tax_percentage=(
                existing.tax_percentage
                if request.tax_percentage is None and request.deduction_id is None
                else request.tax_percentage
            ),
            deduction_id=request.deduction_id or existing.deduction_id,
            description=request.description if request.description is not None else existing.description,
            deduction_line_id=deduction_line_id,
        )
        deduction = self._deduction(merged, termination.security_deposit_amount)
        if request.deduction_amount is None and request.deduction_id is None:
            deduction = replace(deduction, deposit_percentage=existing.deposit_percentage)
        return self._terminations.update(
            settlement.update_deduction(termination, deduction), actor_id,
        )

    def remove_deduction(
        self,
        termination_id: UUID,
        deduction_line_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        termination = self._load(termination_id, expected_version)
        return self._terminations.update(
            settlement.remove_deduction(termination, deduction_line_id), actor_id,
        )

    def add_attachment(
        self,
        termination_id: UUID,
        request: AttachmentRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        termination = self._load(termination_id, expected_version)
        settlement.ensure_mutable(termination, "add attachment to")
        attachment = self._store_attachment(request)
        return self._terminations.update(
            settlement.add_attachment(termination, attachment), actor_id,
        )

    def update_attachment(
        self,
        termination_id: UUID,
        attachment_id: UUID,
        request: AttachmentRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        """Replace attachment metadata; new content is stored under a new key."""
        termination = self._load(termination_id, expected_version)
        existing = termination.attachment(attachment_id)
        if existing is None:
            raise ValidationError(f"Attachment {attachment_id} not found", field="attachment_id")
        settlement.ensure_mutable(termination, "update attachment on")
        if request.content is None and request.file_reference is None:
            file_reference = existing.file_reference
        else:
            file_reference = self._store_attachment(request).file_reference
        attachment = replace(request.to_attachment(file_reference), attachment_id=attachment_id)
        return self._terminations.update(
            settlement.update_attachment(termination, attachment), actor_id,
        )

    def remove_attachment(
        self,
        termination_id: UUID,
        attachment_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> ContractTermination:
        """Remove attachment metadata. Stored content is left in the store."""
        termination = self._load(termination_id, expected_version)
        return self._terminations.update(
            settlement.remove_attachment(termination, attachment_id), actor_id,
        )

    def attachment_content(self, termination_id: UUID, attachment_id: UUID) -> bytes:
        termination = self._terminations.read(termination_id)
        attachment = termination.attachment(attachment_id)
        if attachment is None:
            raise ValidationError(f"Attachment {attachment_id} not found", field="attachment_id")
        if self._attachment_store is None:
            raise ValidationError("No attachment store is configured", field="attachment_id")
        return self._attachment_store.get(attachment.file_reference)

    # =========================================================================
    # Lifecycle and refund
    # =========================================================================

    def change_status(
        self,
        request: ChangeTerminationStatusRequest,
        actor_id: UUID,
    ) -> ContractTermination:
        termination = self._load(request.termination_id, request.expected_version)
        previous = termination.status
        updated = self._terminations.update(
            settlement.change_status(termination, request.new_status), actor_id,
        )
        self._notify(
            self._config.notifications.triggers.termination_status_changed,
            updated,
            PreviousStatus=previous.value,
        )
        return updated

    def process_refund(self, request: ProcessRefundRequest, actor_id: UUID) -> ContractTermination:
        termination = self._load(request.termination_id, request.expected_version)
        updated = self._terminations.update(
            settlement.process_refund(termination, request.refund_date, request.refund_reference),
            actor_id,
        )
        self._notify(
            self._config.notifications.triggers.termination_refund_processed,
            updated,
            RefundDate=updated.refund_date.isoformat(),
            RefundReference=updated.refund_reference,
        )
        return updated

    # =========================================================================
    # Approval
    # =========================================================================

    def approve(self, request: ApproveRequest, actor_id: UUID) -> ContractTermination:
        termination = self._load(request.entity_id, request.expected_version)
        approved = settlement.approve_termination(
            termination, actor_id, self._clock.now(), request.comments,
        )
        updated = self._terminations.update(approved, actor_id)
        self._notify(
            self._config.notifications.triggers.termination_approved,
            updated,
            ApprovalComments=updated.approval.approval_comments or "",
        )
        return updated

    def reject(self, request: RejectRequest, actor_id: UUID) -> ContractTermination:
        termination = self._load(request.entity_id, request.expected_version)
        rejected = settlement.reject_termination(
            termination, actor_id, self._clock.now(), request.reason,
        )
        updated = self._terminations.update(rejected, actor_id)
        self._notify(
            self._config.notifications.triggers.termination_rejected,
            updated,
            RejectionReason=updated.approval.rejection_reason,
        )
        return updated

    def reset_approval(
        self,
        termination_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
        reopen: bool | None = None,
    ) -> ContractTermination:
        """Reset the approval; ``reopen=False`` keeps status Approved for completion."""
        termination = self._load(termination_id, expected_version)
        return self._terminations.update(
            settlement.reset_termination_approval(termination, reopen=reopen), actor_id,
        )

    def pending_approvals(self) -> list[ContractTermination]:
        return self._terminations.search(
            status=_AWAITING_DECISION_STATUSES,
            requires_approval=True,
            approval_status=ApprovalStatus.PENDING,
        )

    def pending_refunds(self) -> list[ContractTermination]:
        """Approved terminations with a refund still to be paid out."""
        return [
            t for t in self._terminations.search(
                status=TerminationStatus.APPROVED, is_refund_processed=False,
            )
            if t.refund_amount > ZERO
            and (not t.requires_approval or t.approval.is_approved)
        ]

    # =========================================================================
    # Statistics
    # =========================================================================

    def statistics(self) -> DocumentStatistics:
        """Per-status counts and security deposits, plus deduction and refund sums."""
        groups = self._terminations.group_totals(
            "status",
            ("security_deposit_amount", "total_deductions", "refund_amount", "credit_note_amount"),
        )
        pending = self._terminations.count(
            status=_AWAITING_DECISION_STATUSES,
            requires_approval=True,
            approval_status=ApprovalStatus.PENDING,
        )
        return build_statistics(groups, "security_deposit_amount", pending)
