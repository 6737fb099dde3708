"""
Tests for the approval engine.

Tests cover:
- approve / reject: Pending only, actor required, reason required for rejection
- reset: Approved or Rejected back to Pending with metadata cleared
- participation: entities that do not require approval are refused
- is_locked / ensure_not_locked
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from lease_engines import approval
from lease_kernel.domain.approval import ApprovalStatus
from lease_kernel.domain.receipt import Receipt
from lease_kernel.exceptions import (
    ApprovalNotRequiredError,
    ImmutableRecordError,
    InvalidTransitionError,
    ValidationError,
)

ACTOR_ID = uuid4()
AT = datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc)


def make_receipt(requires_approval: bool = True) -> Receipt:
    return Receipt(
        receipt_id=uuid4(),
        receipt_no="RCT-APP-1",
        receipt_date=date(2024, 2, 1),
        receipt_amount=Decimal("250.00"),
        requires_approval=requires_approval,
    )


class TestApprove:

    def test_records_approver_and_time(self):
        approved = approval.approve(make_receipt(), ACTOR_ID, AT, "  fine  ")
        assert approved.approval.status == ApprovalStatus.APPROVED
        assert approved.approval.approved_by == ACTOR_ID
        assert approved.approval.approved_at == AT
        assert approved.approval.approval_comments == "fine"

    def test_blank_comments_stored_as_none(self):
        approved = approval.approve(make_receipt(), ACTOR_ID, AT, "   ")
        assert approved.approval.approval_comments is None

    def test_actor_required(self):
        with pytest.raises(ValidationError):
            approval.approve(make_receipt(), None, AT)

    def test_cannot_approve_twice(self):
        approved = approval.approve(make_receipt(), ACTOR_ID, AT)
        with pytest.raises(InvalidTransitionError):
            approval.approve(approved, ACTOR_ID, AT)

    def test_not_required_refused(self):
        with pytest.raises(ApprovalNotRequiredError):
            approval.approve(make_receipt(requires_approval=False), ACTOR_ID, AT)


class TestReject:

    def test_records_reason(self):
        rejected = approval.reject(make_receipt(), ACTOR_ID, AT, " Wrong amount ")
        assert rejected.approval.status == ApprovalStatus.REJECTED
        assert rejected.approval.rejection_reason == "Wrong amount"
        assert rejected.approval.rejected_by == ACTOR_ID

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_refused(self, reason):
        with pytest.raises(ValidationError):
            approval.reject(make_receipt(), ACTOR_ID, AT, reason)

    def test_rejected_cannot_be_approved_without_reset(self):
        rejected = approval.reject(make_receipt(), ACTOR_ID, AT, "no")
        with pytest.raises(InvalidTransitionError):
            approval.approve(rejected, ACTOR_ID, AT)


class TestReset:

    def test_reset_clears_metadata(self):
        approved = approval.approve(make_receipt(), ACTOR_ID, AT, "ok")
        reset = approval.reset(approved)
        assert reset.approval.status == ApprovalStatus.PENDING
        assert reset.approval.approved_by is None
        assert reset.approval.approval_comments is None

    def test_reset_of_pending_refused(self):
        with pytest.raises(InvalidTransitionError):
            approval.reset(make_receipt())


class TestLock:

    def test_only_approved_gated_records_locked(self):
        receipt = make_receipt()
        assert not approval.is_locked(receipt)
        assert approval.is_locked(approval.approve(receipt, ACTOR_ID, AT))
        assert not approval.is_locked(make_receipt(requires_approval=False))

    def test_ensure_not_locked(self):
        approved = approval.approve(make_receipt(), ACTOR_ID, AT)
        with pytest.raises(ImmutableRecordError) as exc_info:
            approval.ensure_not_locked(approved, "edit")
        assert exc_info.value.operation == "edit"
