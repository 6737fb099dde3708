"""
Lease Engines - Pure calculation engines for the lease core.

All engines are pure functions with no I/O, no database and no clock
access.  They take frozen kernel aggregates and return new snapshots.

Engines:
    - invoice_allocation: Invoice totals, payments, invoice lifecycle
    - receipt_allocation: Receipt allocations, cheque clearing, receipt lifecycle
    - settlement: Termination figures, refunds, termination lifecycle
    - approval: Approve / reject / reset and the approval lock
"""

from lease_engines import approval, invoice_allocation, receipt_allocation, settlement
from lease_engines.invoice_allocation import AgingReport, InvoiceTotals
from lease_engines.receipt_allocation import AllocationOutcome, CancellationOutcome
from lease_engines.settlement import SettlementFigures
from lease_engines.tracer import traced_engine

__all__ = [
    "approval",
    "invoice_allocation",
    "receipt_allocation",
    "settlement",
    "AgingReport",
    "InvoiceTotals",
    "AllocationOutcome",
    "CancellationOutcome",
    "SettlementFigures",
    "traced_engine",
]
