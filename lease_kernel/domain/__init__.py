"""
Pure domain layer.

Aggregates, value objects, lifecycle workflows and gateway protocols with
NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from lease_kernel.domain.approval import Approvable, ApprovalState, ApprovalStatus
from lease_kernel.domain.clock import Clock, DeterministicClock, SystemClock
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
    TerminationAttachment,
    TerminationDeduction,
    TerminationStatus,
)
from lease_kernel.domain.values import ExchangeRate
from lease_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    # Approval
    "Approvable",
    "ApprovalState",
    "ApprovalStatus",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Invoice
    "INVOICE_WORKFLOW",
    "AdditionalChargeLine",
    "Invoice",
    "InvoiceStatus",
    # Receipt
    "RECEIPT_WORKFLOW",
    "PaymentAllocation",
    "PaymentMethod",
    "Receipt",
    "ReceiptStatus",
    # Termination
    "TERMINATION_WORKFLOW",
    "ContractTermination",
    "TerminationAttachment",
    "TerminationDeduction",
    "TerminationStatus",
    # Values
    "ExchangeRate",
    # Workflow
    "Guard",
    "Transition",
    "Workflow",
]
