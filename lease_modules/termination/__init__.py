"""
Termination Module.

Contract terminations: deposit settlement with deductions and adjustment,
refund or credit note, attachments, the one-way refund and approvals.
Settlement rules come from ``lease_engines.settlement``.
"""

from lease_modules.termination.models import (
    AttachmentRequest,
    ChangeTerminationStatusRequest,
    CreateTerminationRequest,
    DeductionRequest,
    ProcessRefundRequest,
    UpdateTerminationRequest,
)

__all__ = [
    "AttachmentRequest",
    "ChangeTerminationStatusRequest",
    "CreateTerminationRequest",
    "DeductionRequest",
    "ProcessRefundRequest",
    "UpdateTerminationRequest",
]
