"""
Approval domain types (``lease_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval state machine shared by invoices,
receipts and contract terminations: the status enum, the legal transition
table, and the approval stamp carried by every approvable aggregate.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid status transitions.
* No state transitions to itself.
* There is no direct Rejected -> Approved edge; reset goes through Pending.
* Approver metadata is present only while Approved; rejecter metadata only
  while Rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID


class ApprovalStatus(str, Enum):
    """Approval lifecycle states."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    # Reset edges
    ApprovalStatus.APPROVED: frozenset({ApprovalStatus.PENDING}),
    ApprovalStatus.REJECTED: frozenset({ApprovalStatus.PENDING}),
}


@dataclass(frozen=True)
class ApprovalState:
    """Approval stamp carried by approvable aggregates. Immutable."""

    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    approval_comments: str | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class Approvable(Protocol):
    """Structural type for aggregates gated by the approval workflow."""

    requires_approval: bool
    approval: ApprovalState

    @property
    def entity_type(self) -> str: ...

    @property
    def entity_id(self) -> UUID: ...
