"""
Shared ORM column mixins (``lease_modules._orm_helpers``).

Responsibility
--------------
Column definitions common to every approvable document table (invoices,
receipts, terminations) and the mapping between those columns and the
kernel ``ApprovalState`` value object.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``lease_kernel.db.base``
and ``lease_kernel.domain.approval`` only.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lease_kernel.db.base import UUIDString
from lease_kernel.domain.approval import ApprovalState, ApprovalStatus


class ApprovalColumnsMixin:
    """Approval flag and stamp columns."""

    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def approval_state(self) -> ApprovalState:
        return ApprovalState(
            status=ApprovalStatus(self.approval_status),
            approved_by=self.approved_by_id,
            approved_at=self.approved_at,
            approval_comments=self.approval_comments,
            rejected_by=self.rejected_by_id,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
        )

    def set_approval_state(self, state: ApprovalState) -> None:
        self.approval_status = state.status.value
        self.approved_by_id = state.approved_by
        self.approved_at = state.approved_at
        self.approval_comments = state.approval_comments
        self.rejected_by_id = state.rejected_by
        self.rejected_at = state.rejected_at
        self.rejection_reason = state.rejection_reason

    @staticmethod
    def approval_columns(state: ApprovalState) -> dict:
        """Constructor kwargs for ``from_dto``."""
        return {
            "approval_status": state.status.value,
            "approved_by_id": state.approved_by,
            "approved_at": state.approved_at,
            "approval_comments": state.approval_comments,
            "rejected_by_id": state.rejected_by,
            "rejected_at": state.rejected_at,
            "rejection_reason": state.rejection_reason,
        }
