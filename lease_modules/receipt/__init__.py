"""
Receipt Module.

Customer receipts, their allocation across invoices, cheque clearing,
cancellation and approvals.  Allocation rules come from
``lease_engines.receipt_allocation``.
"""

from lease_modules.receipt.models import (
    AllocateRequest,
    AllocationRequest,
    ChangeReceiptStatusRequest,
    CreateReceiptRequest,
    DeallocateRequest,
    ReallocateRequest,
    ToggleClearingRequest,
    UpdateReceiptRequest,
)

__all__ = [
    "AllocateRequest",
    "AllocationRequest",
    "ChangeReceiptStatusRequest",
    "CreateReceiptRequest",
    "DeallocateRequest",
    "ReallocateRequest",
    "ToggleClearingRequest",
    "UpdateReceiptRequest",
]
