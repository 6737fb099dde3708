"""
Invoice Module.

Lease invoices with additional charge lines, direct payments, lifecycle
changes and approvals.  Totals and payment rules come from
``lease_engines.invoice_allocation``.
"""

from lease_modules.invoice.models import (
    ApplyPaymentRequest,
    ChangeInvoiceStatusRequest,
    ChargeLineRequest,
    CreateInvoiceRequest,
    UpdateInvoiceRequest,
)

__all__ = [
    "ApplyPaymentRequest",
    "ChangeInvoiceStatusRequest",
    "ChargeLineRequest",
    "CreateInvoiceRequest",
    "UpdateInvoiceRequest",
]
