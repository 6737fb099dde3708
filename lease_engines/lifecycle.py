"""
lease_engines.lifecycle -- Status transition checks shared by every engine.

Responsibility:
    Validate a requested lifecycle status change against the aggregate's
    declared ``Workflow``.  Guards specific to one aggregate (refund settled,
    allocations present) are evaluated by that aggregate's engine after this
    check passes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lease_kernel/domain types and exceptions.

Invariants enforced:
    - No self transitions.
    - Only transitions declared in the workflow are legal; terminal states
      have none.
    - A transition flagged ``requires_approval`` fires only when the entity
      does not require approval or its approval status is Approved.

Failure modes:
    - InvalidTransitionError for any of the above.
"""

from __future__ import annotations

from lease_kernel.domain.approval import Approvable
from lease_kernel.domain.workflow import Transition, Workflow
from lease_kernel.exceptions import InvalidTransitionError


def require_transition(
    workflow: Workflow,
    entity: Approvable,
    from_state: str,
    to_state: str,
) -> Transition:
    """Return the declared transition or raise InvalidTransitionError."""
    entity_type = entity.entity_type
    entity_id = str(entity.entity_id)

    if from_state == to_state:
        raise InvalidTransitionError(
            entity_type, entity_id, from_state, to_state, "already in that status",
        )
    if workflow.is_terminal(from_state):
        raise InvalidTransitionError(
            entity_type, entity_id, from_state, to_state, f"{from_state} is terminal",
        )

    transition = workflow.find_transition(from_state, to_state)
    if transition is None:
        allowed = ", ".join(workflow.allowed_targets(from_state)) or "none"
        raise InvalidTransitionError(
            entity_type, entity_id, from_state, to_state, f"allowed: {allowed}",
        )

    if transition.requires_approval and entity.requires_approval and not entity.approval.is_approved:
        raise InvalidTransitionError(
            entity_type,
            entity_id,
            from_state,
            to_state,
            f"approval status is {entity.approval.status.value}, Approved required",
        )
    return transition
