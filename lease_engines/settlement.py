"""
Module: lease_engines.settlement
Responsibility:
    Compute contract termination settlement figures (deductions, net
    settlement, refund or credit note), process the one-way refund, and
    drive the termination lifecycle together with its approval state.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lease_kernel/domain types and exceptions, plus the
    approval engine.

Invariants enforced:
    - net = security_deposit - total_deductions + adjust_amount.
    - net >= 0 gives refund = net and credit note = 0; net < 0 gives credit
      note = -net and refund = 0.  Never both positive.
    - ``calculate_figures`` is pure and idempotent.
    - An approval-Approved termination is locked against edits, deletes,
      deduction and attachment changes, recalculation and every status
      change, until its approval is reset.
    - An approval reset either reopens an Approved termination (status back
      to Pending) or keeps status Approved, which releases it for completion
      or cancellation without reopening it for edits.  Once the refund is
      processed only the second form is allowed.
    - The lifecycle permits edits only in Draft and Pending.
    - Refund processing is one-way and requires status Approved (and
      approval Approved when required), a positive refund, a date and a
      non-blank reference.

Failure modes:
    - ImmutableRecordError on mutation of a locked or non-editable record.
    - InvalidTransitionError on illegal status changes, approval decisions
      outside Pending, refund processing outside Approved, or a repeated
      refund.
    - ValidationError for a non-positive refund, missing refund date or
      reference, duplicate or missing deduction/attachment lines.

Usage:
    from lease_engines.settlement import calculate_figures

    figures = calculate_figures(termination, termination.deductions)
    if figures.refund_amount > 0:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from lease_engines import approval
from lease_engines.lifecycle import require_transition
from lease_engines.tracer import traced_engine
from lease_kernel.domain.termination import (
    EDITABLE_TERMINATION_STATUSES,
    REFUND_SETTLED,
    TERMINATION_WORKFLOW,
    ContractTermination,
    TerminationAttachment,
    TerminationDeduction,
    TerminationStatus,
)
from lease_kernel.domain.values import (
    ZERO,
    add,
    percentage_of,
    round_money,
    subtract,
    sum_amounts,
    to_decimal,
)
from lease_kernel.exceptions import (
    ImmutableRecordError,
    InvalidTransitionError,
    ValidationError,
)
from lease_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

EDITABLE_TERMINATION_FIELDS: frozenset[str] = frozenset({
    "termination_no",
    "termination_date",
    "notice_date",
    "effective_date",
    "vacating_date",
    "termination_reason",
    "security_deposit_amount",
    "adjust_amount",
    "contract_id",
    "customer_id",
    "notes",
})


@dataclass(frozen=True)
class SettlementFigures:
    """Result of a settlement calculation."""

    security_deposit_amount: Decimal
    total_deductions: Decimal
    adjust_amount: Decimal
    net_settlement: Decimal
    refund_amount: Decimal
    credit_note_amount: Decimal


# =============================================================================
# Figures
# =============================================================================


@traced_engine("settlement", "1.0", fingerprint_fields=("termination", "deductions"))
def calculate_figures(
    termination: ContractTermination,
    deductions: Iterable[TerminationDeduction] | None = None,
) -> SettlementFigures:
    """Compute total deductions, net settlement and the refund/credit split.

    ``deductions`` defaults to the lines already on the termination.
    """
    lines = tuple(termination.deductions if deductions is None else deductions)

    total_deductions = sum_amounts(d.total_amount for d in lines)
    net = subtract(
        add(termination.security_deposit_amount, termination.adjust_amount),
        total_deductions,
    )
    if net >= ZERO:
        refund, credit_note = net, ZERO
    else:
        refund, credit_note = ZERO, round_money(-net)

    return SettlementFigures(
        security_deposit_amount=termination.security_deposit_amount,
        total_deductions=total_deductions,
        adjust_amount=termination.adjust_amount,
        net_settlement=net,
        refund_amount=refund,
        credit_note_amount=credit_note,
    )


def _with_figures(
    termination: ContractTermination,
    deductions: tuple[TerminationDeduction, ...],
    **extra: Any,
) -> ContractTermination:
    base = replace(termination, deductions=deductions, **extra)
    figures = calculate_figures(base, deductions)
    return replace(
        base,
        total_deductions=figures.total_deductions,
        refund_amount=figures.refund_amount,
        credit_note_amount=figures.credit_note_amount,
    )


def apply_figures(
    termination: ContractTermination,
    deductions: Iterable[TerminationDeduction] | None = None,
    *,
    total_invoiced: Decimal | None = None,
    total_received: Decimal | None = None,
) -> ContractTermination:
    """Store a fresh settlement calculation on the termination.

    ``total_invoiced`` and ``total_received`` are informational contract
    totals supplied by the caller; they do not enter the net settlement.
    """
    ensure_mutable(termination, "calculate figures for")
    lines = tuple(termination.deductions if deductions is None else deductions)
    extra: dict[str, Decimal] = {}
    if total_invoiced is not None:
        extra["total_invoiced"] = total_invoiced
    if total_received is not None:
        extra["total_received"] = total_received
    updated = _with_figures(termination, lines, **extra)

    logger.info(
        "termination_figures_calculated",
        extra={
            "termination_id": str(termination.termination_id),
            "total_deductions": str(updated.total_deductions),
            "refund_amount": str(updated.refund_amount),
            "credit_note_amount": str(updated.credit_note_amount),
        },
    )
    return updated


# =============================================================================
# Refund
# =============================================================================


@traced_engine("settlement", "1.0", fingerprint_fields=("termination", "refund_date", "reference"))
def process_refund(
    termination: ContractTermination,
    refund_date: date | None,
    reference: str | None,
) -> ContractTermination:
    """Mark the refund as paid out. One-way."""
    termination_id = str(termination.termination_id)

    if termination.status != TerminationStatus.APPROVED:
        raise InvalidTransitionError(
            termination.entity_type,
            termination_id,
            termination.status.value,
            "RefundProcessed",
            "refund requires status Approved",
        )
    if termination.requires_approval and not termination.approval.is_approved:
        raise InvalidTransitionError(
            termination.entity_type,
            termination_id,
            termination.approval.status.value,
            "RefundProcessed",
            "refund requires approval status Approved",
        )
    if termination.is_refund_processed:
        raise InvalidTransitionError(
            termination.entity_type,
            termination_id,
            termination.status.value,
            "RefundProcessed",
            "refund already processed",
        )
    if termination.refund_amount <= ZERO:
        raise ValidationError(
            f"Termination {termination_id} has no refund to process",
            field="refund_amount",
        )
    if refund_date is None:
        raise ValidationError("Refund date is required", field="refund_date")
    if not reference or not reference.strip():
        raise ValidationError("Refund reference is required", field="refund_reference")

    logger.info(
        "termination_refund_processed",
        extra={
            "termination_id": termination_id,
            "refund_amount": str(termination.refund_amount),
            "refund_date": refund_date.isoformat(),
            "refund_reference": reference.strip(),
        },
    )
    return replace(
        termination,
        is_refund_processed=True,
        refund_date=refund_date,
        refund_reference=reference.strip(),
    )


# =============================================================================
# Guards and edits
# =============================================================================


def ensure_mutable(termination: ContractTermination, operation: str = "edit") -> None:
    """Raise ImmutableRecordError unless the termination may be changed."""
    approval.ensure_not_locked(termination, operation)
    if termination.status not in EDITABLE_TERMINATION_STATUSES:
        raise ImmutableRecordError(
            termination.entity_type,
            str(termination.termination_id),
            operation,
            f"only Draft or Pending terminations can be changed "
            f"(status {termination.status.value})",
        )


def ensure_deletable(termination: ContractTermination) -> None:
    ensure_mutable(termination, "delete")


def update_termination(
    termination: ContractTermination,
    changes: Mapping[str, Any],
) -> ContractTermination:
    """Apply header field changes and recompute the settlement figures.

    A new security deposit re-derives the deductions that are a percentage
    of it.
    """
    ensure_mutable(termination, "edit")
    unknown = set(changes) - EDITABLE_TERMINATION_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )
    deductions = termination.deductions
    if "security_deposit_amount" in changes:
        deposit = to_decimal(changes["security_deposit_amount"], "security_deposit_amount")
        deductions = tuple(_rebase_deduction(d, deposit) for d in deductions)
    return _with_figures(termination, deductions, **dict(changes))


def _rebase_deduction(deduction: TerminationDeduction, deposit: Decimal) -> TerminationDeduction:
    if deduction.deposit_percentage is None:
        return deduction
    return replace(
        deduction, deduction_amount=percentage_of(deposit, deduction.deposit_percentage),
    )


def add_deduction(
    termination: ContractTermination,
    deduction: TerminationDeduction,
) -> ContractTermination:
    ensure_mutable(termination, "add deduction to")
    if termination.deduction(deduction.deduction_line_id) is not None:
        raise ValidationError(
            f"Deduction line {deduction.deduction_line_id} already exists",
            field="deduction_line_id",
        )
    return _with_figures(termination, termination.deductions + (deduction,))


def update_deduction(
    termination: ContractTermination,
    deduction: TerminationDeduction,
) -> ContractTermination:
    ensure_mutable(termination, "update deduction on")
    if termination.deduction(deduction.deduction_line_id) is None:
        raise ValidationError(
            f"Deduction line {deduction.deduction_line_id} not found",
            field="deduction_line_id",
        )
    lines = tuple(
        deduction if d.deduction_line_id == deduction.deduction_line_id else d
        for d in termination.deductions
    )
    return _with_figures(termination, lines)


def remove_deduction(
    termination: ContractTermination,
    deduction_line_id: UUID,
) -> ContractTermination:
    ensure_mutable(termination, "remove deduction from")
    if termination.deduction(deduction_line_id) is None:
        raise ValidationError(
            f"Deduction line {deduction_line_id} not found",
            field="deduction_line_id",
        )
    lines = tuple(d for d in termination.deductions if d.deduction_line_id != deduction_line_id)
    return _with_figures(termination, lines)


def add_attachment(
    termination: ContractTermination,
    attachment: TerminationAttachment,
) -> ContractTermination:
    ensure_mutable(termination, "add attachment to")
    if termination.attachment(attachment.attachment_id) is not None:
        raise ValidationError(
            f"Attachment {attachment.attachment_id} already exists",
            field="attachment_id",
        )
    return replace(termination, attachments=termination.attachments + (attachment,))


def update_attachment(
    termination: ContractTermination,
    attachment: TerminationAttachment,
) -> ContractTermination:
    """Replace the metadata of an existing attachment."""
    ensure_mutable(termination, "update attachment on")
    if termination.attachment(attachment.attachment_id) is None:
        raise ValidationError(
            f"Attachment {attachment.attachment_id} not found", field="attachment_id",
        )
    return replace(
        termination,
        attachments=tuple(
            attachment if a.attachment_id == attachment.attachment_id else a
            for a in termination.attachments
        ),
    )


def remove_attachment(
    termination: ContractTermination,
    attachment_id: UUID,
) -> ContractTermination:
    ensure_mutable(termination, "remove attachment from")
    if termination.attachment(attachment_id) is None:
        raise ValidationError(f"Attachment {attachment_id} not found", field="attachment_id")
    return replace(
        termination,
        attachments=tuple(a for a in termination.attachments if a.attachment_id != attachment_id),
    )


# =============================================================================
# Lifecycle
# =============================================================================


def _coerce_status(
    termination: ContractTermination,
    new_status: TerminationStatus | str,
) -> TerminationStatus:
    try:
        return TerminationStatus(new_status)
    except ValueError:
        raise ValidationError(
            f"Unknown termination status {new_status!r} for {termination.termination_id}",
            field="status",
        ) from None


@traced_engine("settlement", "1.0", fingerprint_fields=("termination", "new_status"))
def change_status(
    termination: ContractTermination,
    new_status: TerminationStatus | str,
) -> ContractTermination:
    """Move the termination along its lifecycle.

    Pending -> Approved through this function is legal only when the
    termination does not require approval; otherwise use
    ``approve_termination``.  An approval-locked termination refuses every
    target, Completed included; ``reset_termination_approval(t, reopen=False)``
    releases it first.
    """
    target = _coerce_status(termination, new_status)
    approval.ensure_not_locked(termination, "change status of")

    transition = require_transition(
        TERMINATION_WORKFLOW, termination, termination.status.value, target.value,
    )
    if (
        transition.guard == REFUND_SETTLED
        and termination.refund_amount > ZERO
        and not termination.is_refund_processed
    ):
        raise InvalidTransitionError(
            termination.entity_type,
            str(termination.termination_id),
            termination.status.value,
            target.value,
            REFUND_SETTLED.description,
        )

    logger.info(
        "termination_status_changed",
        extra={
            "termination_id": str(termination.termination_id),
            "from_status": termination.status.value,
            "to_status": target.value,
            "action": transition.action,
        },
    )
    return replace(termination, status=target)


def _require_pending(termination: ContractTermination, decision: str) -> None:
    if termination.status != TerminationStatus.PENDING:
        raise InvalidTransitionError(
            termination.entity_type,
            str(termination.termination_id),
            termination.status.value,
            decision,
            "approval decisions require status Pending",
        )


def approve_termination(
    termination: ContractTermination,
    actor_id: UUID,
    at: datetime,
    comments: str | None = None,
) -> ContractTermination:
    """Approve a Pending termination and move it to status Approved."""
    _require_pending(termination, TerminationStatus.APPROVED.value)
    approved = approval.approve(termination, actor_id, at, comments)
    return replace(approved, status=TerminationStatus.APPROVED)


def reject_termination(
    termination: ContractTermination,
    actor_id: UUID,
    at: datetime,
    reason: str,
) -> ContractTermination:
    """Reject a Pending termination. Its status stays Pending for rework."""
    _require_pending(termination, "Rejected")
    return approval.reject(termination, actor_id, at, reason)


def reset_termination_approval(
    termination: ContractTermination,
    *,
    reopen: bool | None = None,
) -> ContractTermination:
    """Return the approval to Pending.

    With ``reopen`` an Approved termination also goes back to status Pending
    so it can be reworked.  Without it the status stays Approved and the
    termination can only move on to Completed or Cancelled.  ``reopen``
    defaults to True until the refund is processed and is refused after.
    """
    if reopen is None:
        reopen = not termination.is_refund_processed
    if reopen and termination.is_refund_processed:
        raise InvalidTransitionError(
            termination.entity_type,
            str(termination.termination_id),
            termination.status.value,
            TerminationStatus.PENDING.value,
            "refund already processed",
        )
    if TERMINATION_WORKFLOW.is_terminal(termination.status.value):
        raise InvalidTransitionError(
            termination.entity_type,
            str(termination.termination_id),
            termination.status.value,
            "Pending",
            f"{termination.status.value} terminations cannot be reopened",
        )

    reset = approval.reset(termination)
    if reopen and reset.status == TerminationStatus.APPROVED:
        reset = replace(reset, status=TerminationStatus.PENDING)
    logger.info(
        "termination_approval_reset",
        extra={
            "termination_id": str(termination.termination_id),
            "status": reset.status.value,
            "reopened": reopen,
        },
    )
    return reset
