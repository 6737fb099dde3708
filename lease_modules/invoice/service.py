"""
Invoice Module Service - Orchestrates lease invoice operations via engines.

Thin glue layer that:
1. Loads invoice snapshots through SqlAlchemyGateway
2. Calls lease_engines.invoice_allocation for totals, payments and status
3. Calls lease_engines.approval for approve / reject / reset
4. Persists the resulting snapshot (version-checked) and fires the
   configured notification trigger

All computation lives in engines.  This service flushes but never
commits; the caller owns the transaction.

Usage:
    service = InvoiceService(session, clock=clock, config=config)
    invoice = service.create_invoice(CreateInvoiceRequest(
        invoice_no="INV-001", invoice_date=date(2024, 1, 1),
        due_date=date(2024, 1, 31), invoice_amount=Decimal("1000.00"),
        tax_percentage=Decimal("5"),
    ), actor_id)
    invoice = service.change_status(
        ChangeInvoiceStatusRequest(invoice.invoice_id, InvoiceStatus.POSTED), actor_id,
    )
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from lease_config.schema import LeaseCoreConfig
from lease_engines import approval, invoice_allocation
from lease_engines.invoice_allocation import AgingReport
from lease_kernel.domain.approval import ApprovalStatus
from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.domain.gateways import NotificationGateway, ReferenceDataGateway
from lease_kernel.domain.invoice import AdditionalChargeLine, Invoice, InvoiceStatus
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
from lease_modules.invoice.models import (
    ApplyPaymentRequest,
    ChangeInvoiceStatusRequest,
    ChargeLineRequest,
    CreateInvoiceRequest,
    UpdateInvoiceRequest,
)
from lease_modules.invoice.orm import InvoiceModel
from lease_modules.masterdata.orm import ContractModel
from lease_services.persistence import SqlAlchemyGateway

logger = get_logger("modules.invoice.service")


class InvoiceService:
    """
    Orchestrates lease invoice operations through engines and the gateway.

    Engine composition:
    - invoice_allocation: totals, charge lines, payments, lifecycle
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
        self._invoices: SqlAlchemyGateway[Invoice] = SqlAlchemyGateway(
            session, InvoiceModel, "Invoice", self._clock,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, invoice_id: UUID, expected_version: int | None = None) -> Invoice:
        invoice = self._invoices.read(invoice_id)
        check_expected_version(invoice, expected_version)
        return invoice

    def _charge_line(self, request: ChargeLineRequest) -> AdditionalChargeLine:
        default_tax = Decimal("0")
        if (
            request.tax_percentage is None
            and request.charge_id is not None
            and self._reference_data is not None
        ):
            default_tax = self._reference_data.get_additional_charge(
                request.charge_id
            ).tax_percentage
        return request.to_line(default_tax)

    def _notify(self, trigger_event: str, invoice: Invoice, **extra: Any) -> None:
        if not self._config.notifications.enabled:
            return
        variables = {
            "InvoiceNo": invoice.invoice_no,
            "InvoiceDate": invoice.invoice_date.isoformat(),
            "DueDate": invoice.due_date.isoformat(),
            "InvoiceStatus": invoice.status.value,
            "TotalAmount": str(invoice.total_amount),
            "BalanceAmount": str(invoice.balance_amount),
            "CurrencyCode": invoice.currency_code,
            "ApprovalStatus": invoice.approval.status.value,
            "CustomerEmail": customer_email(self._reference_data, invoice.customer_id, logger),
        }
        variables.update(extra)
        dispatch_notification(self._notifications, logger, trigger_event, variables)

    # =========================================================================
    # Create / read
    # =========================================================================

    def create_invoice(self, request: CreateInvoiceRequest, actor_id: UUID) -> Invoice:
        """Create a Draft invoice with computed totals.

        Customer and currency default from the contract when reference
        data is available; the exchange rate defaults from the currency.
        """
        if self._invoices.exists(include_deleted=True, invoice_no=request.invoice_no):
            raise ValidationError(
                f"Invoice number {request.invoice_no!r} already exists", field="invoice_no",
            )

        customer_id = request.customer_id
        currency_code = request.currency_code
        if request.contract_id is not None and self._reference_data is not None:
            contract = self._reference_data.get_contract(request.contract_id)
            customer_id = customer_id or contract.customer_id
            currency_code = currency_code or contract.currency_code
        currency_code = (currency_code or self._config.base_currency).upper()

        exchange_rate = request.exchange_rate
        if exchange_rate is None:
            if currency_code != self._config.base_currency and self._reference_data is not None:
                exchange_rate = self._reference_data.get_exchange_rate(currency_code).rate
            else:
                exchange_rate = Decimal("1")

        requires_approval = (
            self._config.approvals.invoices
            if request.requires_approval is None
            else request.requires_approval
        )

        invoice = Invoice(
            invoice_id=request.invoice_id or uuid4(),
            invoice_no=request.invoice_no,
            invoice_date=request.invoice_date,
            due_date=request.due_date,
            invoice_amount=request.invoice_amount,
            contract_id=request.contract_id,
            customer_id=customer_id,
            tax_percentage=request.tax_percentage,
            discount_amount=request.discount_amount,
            invoice_type=request.invoice_type,
            currency_code=currency_code,
            exchange_rate=exchange_rate,
            notes=request.notes,
            requires_approval=requires_approval,
        )
        invoice = invoice_allocation.recalculate(
            invoice, [self._charge_line(line) for line in request.charge_lines],
        )

        with LogContext.bind(entity_type="Invoice", entity_id=str(invoice.invoice_id)):
            self._invoices.create(invoice, actor_id)
            logger.info(
                "invoice_created",
                extra={
                    "invoice_no": invoice.invoice_no,
                    "total_amount": str(invoice.total_amount),
                    "requires_approval": invoice.requires_approval,
                },
            )
        return self._invoices.read(invoice.invoice_id)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._invoices.read(invoice_id)

    def search_invoices(self, **filters: Any) -> list[Invoice]:
        return self._invoices.search(**filters)

    def invoices_for_contract(self, contract_id: UUID) -> list[Invoice]:
        return self._invoices.search(contract_id=contract_id)

    def invoices_for_customer(self, customer_id: UUID) -> list[Invoice]:
        return self._invoices.search(customer_id=customer_id)

    def invoices_for_unit(self, unit_id: UUID) -> list[Invoice]:
        """Live invoices raised on any live contract for ``unit_id``."""
        contract_ids = self._session.scalars(
            select(ContractModel.id).where(
                ContractModel.unit_id == unit_id,
                ContractModel.is_deleted.is_(False),
            )
        ).all()
        if not contract_ids:
            return []
        return self._invoices.search(contract_id=list(contract_ids))

    def overdue_invoices(
        self,
        as_of: date | None = None,
        *,
        min_days_overdue: int = 1,
        customer_id: UUID | None = None,
        contract_id: UUID | None = None,
    ) -> AgingReport:
        """Aging report of outstanding invoices past their due date.

        ``as_of`` defaults to today's date on the service clock.
        """
        filters: dict[str, Any] = {
            "status": list(invoice_allocation.OUTSTANDING_INVOICE_STATUSES),
        }
        if customer_id is not None:
            filters["customer_id"] = customer_id
        if contract_id is not None:
            filters["contract_id"] = contract_id
        report = invoice_allocation.age_invoices(
            self._invoices.search(**filters),
            as_of or self._clock.now().date(),
            min_days_overdue,
        )
        logger.info(
            "invoice_aging_reported",
            extra={
                "as_of": report.as_of.isoformat(),
                "overdue_count": len(report.invoices),
                "total_overdue": str(report.total_overdue),
            },
        )
        return report

    # =========================================================================
    # Edits
    # =========================================================================

    def update_invoice(self, request: UpdateInvoiceRequest, actor_id: UUID) -> Invoice:
        invoice = self._load(request.invoice_id, request.expected_version)
        new_no = request.changes.get("invoice_no")
        if (
            new_no
            and new_no != invoice.invoice_no
            and self._invoices.exists(include_deleted=True, invoice_no=new_no)
        ):
            raise ValidationError(f"Invoice number {new_no!r} already exists", field="invoice_no")
        lines = None
        if request.charge_lines is not None:
            lines = [self._charge_line(line) for line in request.charge_lines]
        updated = invoice_allocation.update_invoice(invoice, request.changes, lines)
        return self._invoices.update(updated, actor_id)

    def add_charge_line(
        self,
        invoice_id: UUID,
        request: ChargeLineRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Invoice:
        invoice = self._load(invoice_id, expected_version)
        updated = invoice_allocation.add_charge_line(invoice, self._charge_line(request))
        return self._invoices.update(updated, actor_id)

    def update_charge_line(
        self,
        invoice_id: UUID,
        line_id: UUID,
        request: ChargeLineRequest,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Invoice:
        invoice = self._load(invoice_id, expected_version)
        line = self._charge_line(replace(request, line_id=line_id))
        updated = invoice_allocation.update_charge_line(invoice, line)
        return self._invoices.update(updated, actor_id)

    def remove_charge_line(
        self,
        invoice_id: UUID,
        line_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Invoice:
        invoice = self._load(invoice_id, expected_version)
        updated = invoice_allocation.remove_charge_line(invoice, line_id)
        return self._invoices.update(updated, actor_id)

    def delete_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> None:
        invoice = self._load(invoice_id, expected_version)
        invoice_allocation.ensure_deletable(invoice)
        self._invoices.soft_delete(invoice_id, actor_id)
        logger.info("invoice_deleted", extra={"invoice_id": str(invoice_id)})

    # =========================================================================
    # Lifecycle and payments
    # =========================================================================

    def change_status(self, request: ChangeInvoiceStatusRequest, actor_id: UUID) -> Invoice:
        invoice = self._load(request.invoice_id, request.expected_version)
        previous = invoice.status
        updated = self._invoices.update(
            invoice_allocation.change_status(invoice, request.new_status), actor_id,
        )
        triggers = self._config.notifications.triggers
        self._notify(
            triggers.invoice_status_changed, updated, PreviousStatus=previous.value,
        )
        if updated.status == InvoiceStatus.POSTED:
            self._notify(triggers.invoice_posted, updated)
        return updated

    def apply_payment(self, request: ApplyPaymentRequest, actor_id: UUID) -> Invoice:
        """Apply a direct payment. Receipt allocations go through ReceiptService."""
        invoice = self._load(request.invoice_id, request.expected_version)
        updated = invoice_allocation.apply_payment(invoice, request.amount)
        if updated is invoice:
            return invoice
        return self._invoices.update(updated, actor_id)

    # =========================================================================
    # Approval
    # =========================================================================

    def approve(self, request: ApproveRequest, actor_id: UUID) -> Invoice:
        invoice = self._load(request.entity_id, request.expected_version)
        approved = approval.approve(invoice, actor_id, self._clock.now(), request.comments)
        updated = self._invoices.update(approved, actor_id)
        self._notify(
            self._config.notifications.triggers.invoice_approved,
            updated,
            ApprovalComments=updated.approval.approval_comments or "",
        )
        return updated

    def reject(self, request: RejectRequest, actor_id: UUID) -> Invoice:
        invoice = self._load(request.entity_id, request.expected_version)
        rejected = approval.reject(invoice, actor_id, self._clock.now(), request.reason)
        updated = self._invoices.update(rejected, actor_id)
        self._notify(
            self._config.notifications.triggers.invoice_rejected,
            updated,
            RejectionReason=updated.approval.rejection_reason,
        )
        return updated

    def reset_approval(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> Invoice:
        invoice = self._load(invoice_id, expected_version)
        return self._invoices.update(approval.reset(invoice), actor_id)

    def pending_approvals(self) -> list[Invoice]:
        return self._invoices.search(
            requires_approval=True, approval_status=ApprovalStatus.PENDING,
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def statistics(self) -> DocumentStatistics:
        """Per-status counts and totals, plus paid and outstanding sums."""
        groups = self._invoices.group_totals(
            "status", ("total_amount", "paid_amount", "balance_amount"),
        )
        pending = self._invoices.count(
            requires_approval=True, approval_status=ApprovalStatus.PENDING,
        )
        return build_statistics(groups, "total_amount", pending)
