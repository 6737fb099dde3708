"""
lease_engines.approval -- Pure approval state machine.

Responsibility:
    Apply approve / reject / reset decisions to any approvable aggregate
    (invoice, receipt, contract termination) and answer whether the
    aggregate is locked against mutation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lease_kernel/domain types and exceptions.

Invariants enforced:
    - Only entities with ``requires_approval`` participate; others fail with
      ApprovalNotRequiredError (a ValidationError).
    - Transitions follow ``APPROVAL_TRANSITIONS``: Pending -> Approved,
      Pending -> Rejected, Approved/Rejected -> Pending.  No self transitions
      and no Rejected -> Approved without a reset.
    - Actor identity and timestamp are explicit parameters.
    - An Approved entity is locked until reset.

Failure modes:
    - ApprovalNotRequiredError when the entity bypasses approval.
    - InvalidTransitionError when the current status does not allow the
      decision.
    - ValidationError for a blank rejection reason or missing actor.
    - ImmutableRecordError from ``ensure_not_locked`` on an Approved entity.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import TypeVar
from uuid import UUID

from lease_engines.tracer import traced_engine
from lease_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    Approvable,
    ApprovalState,
    ApprovalStatus,
)
from lease_kernel.exceptions import (
    ApprovalNotRequiredError,
    ImmutableRecordError,
    InvalidTransitionError,
    ValidationError,
)
from lease_kernel.logging_config import get_logger

logger = get_logger("engines.approval")

A = TypeVar("A", bound=Approvable)


def _require_participation(entity: Approvable) -> None:
    if not entity.requires_approval:
        raise ApprovalNotRequiredError(entity.entity_type, str(entity.entity_id))


def _check_transition(entity: Approvable, target: ApprovalStatus) -> None:
    current = entity.approval.status
    if target not in APPROVAL_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            entity.entity_type,
            str(entity.entity_id),
            current.value,
            target.value,
            "approval transition not allowed",
        )


def _require_actor(actor_id: UUID | None) -> None:
    if actor_id is None:
        raise ValidationError("Actor id is required", field="actor_id")


@traced_engine("approval", "1.0", fingerprint_fields=("entity", "actor_id", "at"))
def approve(
    entity: A,
    actor_id: UUID,
    at: datetime,
    comments: str | None = None,
) -> A:
    """Record an approval. Pending only."""
    _require_participation(entity)
    _require_actor(actor_id)
    _check_transition(entity, ApprovalStatus.APPROVED)

    state = ApprovalState(
        status=ApprovalStatus.APPROVED,
        approved_by=actor_id,
        approved_at=at,
        approval_comments=(comments or "").strip() or None,
    )
    logger.info(
        "approval_granted",
        extra={
            "entity_type": entity.entity_type,
            "entity_id": str(entity.entity_id),
            "approved_by": str(actor_id),
        },
    )
    return replace(entity, approval=state)


@traced_engine("approval", "1.0", fingerprint_fields=("entity", "actor_id", "at", "reason"))
def reject(
    entity: A,
    actor_id: UUID,
    at: datetime,
    reason: str,
) -> A:
    """Record a rejection. Pending only; a non-blank reason is required."""
    _require_participation(entity)
    _require_actor(actor_id)
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required", field="rejection_reason")
    _check_transition(entity, ApprovalStatus.REJECTED)

    state = ApprovalState(
        status=ApprovalStatus.REJECTED,
        rejected_by=actor_id,
        rejected_at=at,
        rejection_reason=reason.strip(),
    )
    logger.info(
        "approval_rejected",
        extra={
            "entity_type": entity.entity_type,
            "entity_id": str(entity.entity_id),
            "rejected_by": str(actor_id),
        },
    )
    return replace(entity, approval=state)


@traced_engine("approval", "1.0", fingerprint_fields=("entity",))
def reset(entity: A) -> A:
    """Return an Approved or Rejected entity to Pending, clearing metadata."""
    _require_participation(entity)
    _check_transition(entity, ApprovalStatus.PENDING)

    logger.info(
        "approval_reset",
        extra={
            "entity_type": entity.entity_type,
            "entity_id": str(entity.entity_id),
            "from_status": entity.approval.status.value,
        },
    )
    return replace(entity, approval=ApprovalState())


def is_locked(entity: Approvable) -> bool:
    """True while an approval-gated entity is Approved."""
    return entity.requires_approval and entity.approval.is_approved


def ensure_not_locked(entity: Approvable, operation: str) -> None:
    """Raise ImmutableRecordError if the entity is approval-locked."""
    if is_locked(entity):
        raise ImmutableRecordError(
            entity.entity_type,
            str(entity.entity_id),
            operation,
            "record is approved; reset approval before changing it",
        )
