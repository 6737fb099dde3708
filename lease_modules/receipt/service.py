"""
Receipt Module Service - Orchestrates customer receipts and allocations.

Thin glue layer that:
1. Loads receipt and invoice snapshots through SqlAlchemyGateway
2. Calls lease_engines.receipt_allocation for allocation, clearing,
   lifecycle and cancellation
3. Calls lease_engines.approval for approve / reject / reset
4. Persists every changed invoice together with the receipt in the
   caller's transaction and fires the configured notification trigger

An allocation changes two aggregates; both updates are version-checked
and flushed in one session so either both land or the caller rolls back.

Usage:
    service = ReceiptService(session, clock=clock, config=config)
    receipt = service.create_receipt(CreateReceiptRequest(
        receipt_no="RCT-001", receipt_date=date(2024, 1, 5),
        receipt_amount=Decimal("1080.00"),
    ), actor_id)
    outcome = service.allocate(
        AllocateRequest(receipt.receipt_id, invoice_id, Decimal("1080.00")), actor_id,
    )
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from lease_config.schema import LeaseCoreConfig
from lease_engines import approval, invoice_allocation, receipt_allocation
from lease_engines.receipt_allocation import AllocationOutcome, CancellationOutcome
from lease_kernel.domain.approval import ApprovalStatus
from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.domain.gateways import NotificationGateway, ReferenceDataGateway
from lease_kernel.domain.invoice import Invoice
from lease_kernel.domain.receipt import Receipt
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
from lease_modules.receipt.models import (
    AllocateRequest,
    ChangeReceiptStatusRequest,
    CreateReceiptRequest,
    DeallocateRequest,
    ReallocateRequest,
    ToggleClearingRequest,
    UpdateReceiptRequest,
)
from lease_modules.receipt.orm import ReceiptAllocationModel, ReceiptModel
from lease_services.persistence import SqlAlchemyGateway

logger = get_logger("modules.receipt.service")


class ReceiptService:
    """
    Orchestrates receipt operations through engines and the gateways.

    Engine composition:
    - receipt_allocation: allocation, clearing, lifecycle, cancellation
    - approval: approve / reject / reset and the approval lock
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LeaseCoreConfig | None = None,
        notifications: NotificationGateway | None = None,
        reference_data: ReferenceDataGateway | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or LeaseCoreConfig()
        self._notifications = notifications
        self._reference_data = reference_data
        self._receipts: SqlAlchemyGateway[Receipt] = SqlAlchemyGateway(
            session, ReceiptModel, "Receipt", self._clock,
        )
        self._invoices: SqlAlchemyGateway[Invoice] = SqlAlchemyGateway(
            session, InvoiceModel, "Invoice", self._clock,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, receipt_id: UUID, expected_version: int | None = None) -> Receipt:
        receipt = self._receipts.read(receipt_id)
        check_expected_version(receipt, expected_version)
        return receipt

    def _allocated_invoices(self, receipt: Receipt) -> list[Invoice]:
        return [self._invoices.read(a.invoice_id) for a in receipt.allocations]

    def _notify(self, trigger_event: str, receipt: Receipt, **extra: Any) -> None:
        if not self._config.notifications.enabled:
            return
        variables = {
            "ReceiptNo": receipt.receipt_no,
            "ReceiptDate": receipt.receipt_date.isoformat(),
            "ReceiptAmount": str(receipt.receipt_amount),
            "PaymentMethod": receipt.payment_method.value,
            "ReceiptStatus": receipt.status.value,
            "ChequeNo": receipt.cheque_no or "",
            "CurrencyCode": receipt.currency_code,
            "ApprovalStatus": receipt.approval.status.value,
            "CustomerEmail": customer_email(self._reference_data, receipt.customer_id, logger),
        }
        variables.update(extra)
        dispatch_notification(self._notifications, logger, trigger_event, variables)

    # =========================================================================
    # Create / read
    # =========================================================================

    def create_receipt(self, request: CreateReceiptRequest, actor_id: UUID) -> Receipt:
        """Create a Draft receipt and apply any requested allocations."""
        if self._receipts.exists(include_deleted=True, receipt_no=request.receipt_no):
            raise ValidationError(
                f"Receipt number {request.receipt_no!r} already exists", field="receipt_no",
            )
        requires_approval = (
            self._config.approvals.receipts
            if request.requires_approval is None
            else request.requires_approval
        )
        receipt = Receipt(
            receipt_id=request.receipt_id or uuid4(),
            receipt_no=request.receipt_no,
            receipt_date=request.receipt_date,
            receipt_amount=request.receipt_amount,
            payment_method=request.payment_method,
            customer_id=request.customer_id,
            cheque_no=request.cheque_no,
            cheque_date=request.cheque_date,
            transaction_reference=request.transaction_reference,
            currency_code=(request.currency_code or self._config.base_currency).upper(),
            notes=request.notes,
            requires_approval=requires_approval,
        )

        with LogContext.bind(entity_type="Receipt", entity_id=str(receipt.receipt_id)):
            self._receipts.create(receipt, actor_id)
            logger.info(
                "receipt_created",
                extra={
                    "receipt_no": receipt.receipt_no,
                    "receipt_amount": str(receipt.receipt_amount),
                    "payment_method": receipt.payment_method.value,
                },
            )
            for allocation in request.allocations:
                self.allocate(
                    AllocateRequest(receipt.receipt_id, allocation.invoice_id, allocation.amount),
                    actor_id,
                )
        return self._receipts.read(receipt.receipt_id)

    def get_receipt(self, receipt_id: UUID) -> Receipt:
        return self._receipts.read(receipt_id)

    def search_receipts(self, **filters: Any) -> list[Receipt]:
        return self._receipts.search(**filters)

    def receipts_for_customer(self, customer_id: UUID) -> list[Receipt]:
        return self._receipts.search(customer_id=customer_id)

    def receipts_for_invoice(self, invoice_id: UUID) -> list[Receipt]:
        """Live receipts holding an allocation to ``invoice_id``."""
        receipt_ids = self._session.scalars(
            select(ReceiptAllocationModel.receipt_id)
            .join(ReceiptModel, ReceiptModel.id == ReceiptAllocationModel.receipt_id)
            .where(
                ReceiptAllocationModel.invoice_id == invoice_id,
                ReceiptModel.is_deleted.is_(False),
            )
            .order_by(ReceiptModel.created_at)
        ).all()
        return self._receipts.read_many(receipt_ids)

    def unpaid_invoices(
        self,
        customer_id: UUID,
        contract_id: UUID | None = None,
    ) -> list[Invoice]:
        """Posted or partially paid invoices of a customer that still carry a balance."""
        filters: dict[str, Any] = {
            "customer_id": customer_id,
            "status": list(invoice_allocation.OUTSTANDING_INVOICE_STATUSES),
        }
        if contract_id is not None:
            filters["contract_id"] = contract_id
        invoices = self._invoices.search(**filters)
        return sorted(
            (i for i in invoices if invoice_allocation.is_outstanding(i)),
            key=lambda i: (i.due_date, i.invoice_no),
        )

    # =========================================================================
    # Edits and allocations
    # =========================================================================

    def update_receipt(self, request: UpdateReceiptRequest, actor_id: UUID) -> Receipt:
        receipt = self._load(request.receipt_id, request.expected_version)
        new_no = request.changes.get("receipt_no")
        if (
            new_no
            and new_no != receipt.receipt_no
            and self._receipts.exists(include_deleted=True, receipt_no=new_no)
        ):
            raise ValidationError(f"Receipt number {new_no!r} already exists", field="receipt_no")
        updated = receipt_allocation.update_receipt(receipt, request.changes)
        return self._receipts.update(updated, actor_id)

    def allocate(self, request: AllocateRequest, actor_id: UUID) -> AllocationOutcome:
        receipt = self._load(request.receipt_id, request.expected_version)
        invoice = self._invoices.read(request.invoice_id)
        outcome = receipt_allocation.allocate(receipt, invoice, request.amount)
        return AllocationOutcome(
            invoice=self._invoices.update(outcome.invoice, actor_id),
            receipt=self._receipts.update(outcome.receipt, actor_id),
        )

    def deallocate(self, request: DeallocateRequest, actor_id: UUID) -> AllocationOutcome:
        receipt = self._load(request.receipt_id, request.expected_version)
        invoice = self._invoices.read(request.invoice_id)
        outcome = receipt_allocation.deallocate(receipt, invoice)
        return AllocationOutcome(
            invoice=self._invoices.update(outcome.invoice, actor_id),
            receipt=self._receipts.update(outcome.receipt, actor_id),
        )

    def reallocate(self, request: ReallocateRequest, actor_id: UUID) -> AllocationOutcome:
        """Change an existing allocation; only the difference moves on the invoice."""
        receipt = self._load(request.receipt_id, request.expected_version)
        invoice = self._invoices.read(request.invoice_id)
        outcome = receipt_allocation.reallocate(receipt, invoice, request.amount)
        if outcome.receipt is receipt:
            return outcome
        return AllocationOutcome(
            invoice=self._invoices.update(outcome.invoice, actor_id),
            receipt=self._receipts.update(outcome.receipt, actor_id),
        )

    def delete_receipt(
        self,
        receipt_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> None:
        """Soft-delete a Draft receipt after returning its allocations to the invoices."""
        receipt = self._load(receipt_id, expected_version)
        receipt_allocation.ensure_deletable(receipt)
        if receipt.allocations:
            for invoice in self._allocated_invoices(receipt):
                outcome = receipt_allocation.deallocate(receipt, invoice)
                self._invoices.update(outcome.invoice, actor_id)
                receipt = outcome.receipt
            self._receipts.update(receipt, actor_id)
        self._receipts.soft_delete(receipt_id, actor_id)
        logger.info("receipt_deleted", extra={"receipt_id": str(receipt_id)})

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def change_status(self, request: ChangeReceiptStatusRequest, actor_id: UUID) -> Receipt:
        receipt = self._load(request.receipt_id, request.expected_version)
        previous = receipt.status
        updated = self._receipts.update(
            receipt_allocation.change_status(receipt, request.new_status), actor_id,
        )
        self._notify(
            self._config.notifications.triggers.receipt_status_changed,
            updated,
            PreviousStatus=previous.value,
        )
        return updated

    def toggle_clearing(self, request: ToggleClearingRequest, actor_id: UUID) -> Receipt:
        receipt = self._load(request.receipt_id, request.expected_version)
        updated = receipt_allocation.toggle_clearing(
            receipt, request.cleared, request.clearing_date,
        )
        return self._receipts.update(updated, actor_id)

    def cancel_receipt(
        self,
        receipt_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> CancellationOutcome:
        """Cancel the receipt and return every allocated amount to its invoice."""
        receipt = self._load(receipt_id, expected_version)
        previous = receipt.status
        outcome = receipt_allocation.cancel_receipt(receipt, self._allocated_invoices(receipt))
        invoices = tuple(self._invoices.update(inv, actor_id) for inv in outcome.invoices)
        cancelled = self._receipts.update(outcome.receipt, actor_id)
        self._notify(
            self._config.notifications.triggers.receipt_status_changed,
            cancelled,
            PreviousStatus=previous.value,
        )
        return CancellationOutcome(receipt=cancelled, invoices=invoices)

    # =========================================================================
    # Approval
    # =========================================================================

    def approve(self, request: ApproveRequest, actor_id: UUID) -> Receipt:
        receipt = self._load(request.entity_id, request.expected_version)
        approved = approval.approve(receipt, actor_id, self._clock.now(), request.comments)
        updated = self._receipts.update(approved, actor_id)
        self._notify(
            self._config.notifications.triggers.receipt_approved,
            updated,
            ApprovalComments=updated.approval.approval_comments or "",
        )
        return updated

    def reject(self, request: RejectRequest, actor_id: UUID) -> Receipt:
        receipt = self._load(request.entity_id, request.expected_version)
        rejected = approval.reject(receipt, actor_id, self._clock.now(), request.reason)
        updated = self._receipts.update(rejected, actor_id)
        self._notify(
            self._config.notifications.triggers.receipt_rejected,
            updated,
            RejectionReason=updated.approval.rejection_reason,
        )
        return updated

    def reset_approval(
        self,
        receipt_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Receipt:
        receipt = self._load(receipt_id, expected_version)
        return self._receipts.update(approval.reset(receipt), actor_id)

    def pending_approvals(self) -> list[Receipt]:
        return self._receipts.search(
            requires_approval=True, approval_status=ApprovalStatus.PENDING,
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def statistics(self) -> DocumentStatistics:
        groups = self._receipts.group_totals("status", ("receipt_amount",))
        pending = self._receipts.count(
            requires_approval=True, approval_status=ApprovalStatus.PENDING,
        )
        return build_statistics(groups, "receipt_amount", pending)
