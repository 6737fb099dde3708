"""
Shared service helpers (``lease_modules._common``).

Responsibility
--------------
Request value objects and helpers used by every document service:
approval decision requests, per-status statistics, and the notification
dispatch wrapper whose failures never roll back a domain change.

Architecture position
---------------------
**Modules layer** -- orchestration support.  No I/O of its own; the
notification gateway is injected.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from lease_kernel.domain.gateways import (
    EmailRecipient,
    NotificationGateway,
    NotificationResult,
    ReferenceDataGateway,
)
from lease_kernel.domain.values import ZERO, add, sum_amounts
from lease_kernel.exceptions import (
    EntityNotFoundError,
    OptimisticLockError,
    ValidationError,
)


@dataclass(frozen=True)
class ApproveRequest:
    entity_id: UUID
    comments: str | None = None
    expected_version: int | None = None


@dataclass(frozen=True)
class RejectRequest:
    entity_id: UUID
    reason: str
    expected_version: int | None = None

    def __post_init__(self) -> None:
        if not self.reason or not self.reason.strip():
            raise ValidationError("Rejection reason is required", field="reason")


@dataclass(frozen=True)
class StatusBucket:
    """Count and amount totals for one status."""

    status: str
    count: int
    total_amount: Decimal


@dataclass(frozen=True)
class DocumentStatistics:
    """Per-status breakdown returned by the services' ``statistics()``."""

    total_count: int
    total_amount: Decimal
    by_status: tuple[StatusBucket, ...] = ()
    pending_approval_count: int = 0
    extra: Mapping[str, Decimal] = field(default_factory=dict)

    def count_for(self, status: str) -> int:
        for bucket in self.by_status:
            if bucket.status == status:
                return bucket.count
        return 0


def dispatch_notification(
    gateway: NotificationGateway | None,
    logger: logging.Logger,
    trigger_event: str,
    variables: Mapping[str, Any],
    recipients: Sequence[EmailRecipient] = (),
) -> NotificationResult | None:
    """Send an automated e-mail; log and continue on failure."""
    if gateway is None:
        return None
    try:
        result = gateway.send_automated_email(trigger_event, variables, recipients)
    except Exception:
        logger.warning(
            "notification_failed",
            extra={"trigger_event": trigger_event},
            exc_info=True,
        )
        return None
    logger.info(
        "notification_dispatched",
        extra={
            "trigger_event": trigger_event,
            "sent_count": result.sent_count,
            "total_count": result.total_count,
        },
    )
    return result


def check_expected_version(entity: Any, expected_version: int | None) -> None:
    """Fail early when the caller edited a stale snapshot."""
    if expected_version is not None and expected_version != entity.version:
        raise OptimisticLockError(
            entity.entity_type,
            str(entity.entity_id),
            expected_version,
            entity.version,
        )


def customer_email(
    reference_data: ReferenceDataGateway | None,
    customer_id: UUID | None,
    logger: logging.Logger,
) -> str | None:
    """Look up the e-mail address used as the default notification recipient."""
    if reference_data is None or customer_id is None:
        return None
    try:
        return reference_data.get_customer(customer_id).customer_email
    except EntityNotFoundError:
        logger.warning("notification_customer_missing", extra={"customer_id": str(customer_id)})
        return None


def build_statistics(
    groups: Sequence[tuple[Any, int, Mapping[str, Decimal]]],
    amount_field: str,
    pending_approval_count: int = 0,
) -> DocumentStatistics:
    """Fold ``SqlAlchemyGateway.group_totals`` rows into DocumentStatistics.

    Sums other than ``amount_field`` are totalled across statuses into
    ``extra``.
    """
    buckets = []
    extra: dict[str, Decimal] = {}
    for status, count, sums in groups:
        buckets.append(StatusBucket(status=status, count=count, total_amount=sums[amount_field]))
        for name, value in sums.items():
            if name != amount_field:
                extra[name] = add(extra.get(name, ZERO), value)
    return DocumentStatistics(
        total_count=sum(b.count for b in buckets),
        total_amount=sum_amounts(b.total_amount for b in buckets),
        by_status=tuple(buckets),
        pending_approval_count=pending_approval_count,
        extra=extra,
    )
