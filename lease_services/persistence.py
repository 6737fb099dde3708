"""
SqlAlchemyGateway -- versioned CRUD over one ORM model.

Responsibility:
    Implements the ``PersistenceGateway`` port for every persisted
    aggregate (invoices, receipts, terminations and the masterdata
    records).  Converts between frozen domain snapshots and ORM rows via
    the model's ``from_dto`` / ``apply_dto`` / ``to_dto`` methods and owns
    the ``version`` counter and the soft-delete columns.

Architecture position:
    Services -- stateful infrastructure.  Imports ``lease_kernel`` only;
    the ORM model class is injected by the caller.

Invariants enforced:
    - ``update`` compares the snapshot version with the stored version and
      increments it on success; a mismatch raises OptimisticLockError.
    - Soft-deleted rows are invisible to ``read``, ``update`` and ``search``.
      Only ``exists(include_deleted=True)`` sees them, for uniqueness checks.
    - The gateway flushes but never commits; the caller owns the
      transaction (``session_scope()``).

Failure modes:
    - EntityNotFoundError for a missing or soft-deleted id.
    - OptimisticLockError on a stale snapshot.
    - ValidationError for a search filter that names no column.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lease_kernel.db.base import TrackedBase
from lease_kernel.domain.clock import Clock, SystemClock
from lease_kernel.domain.values import round_money
from lease_kernel.exceptions import (
    EntityNotFoundError,
    OptimisticLockError,
    ValidationError,
)
from lease_kernel.logging_config import get_logger

logger = get_logger("services.persistence")

T = TypeVar("T")


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class SqlAlchemyGateway(Generic[T]):
    """
    Persistence gateway for one ORM model.

    ``model`` must subclass ``TrackedBase`` and provide ``to_dto()``,
    ``from_dto(dto, created_by_id)`` and ``apply_dto(dto)``.
    """

    def __init__(
        self,
        session: Session,
        model: type[TrackedBase],
        entity_type: str,
        clock: Clock | None = None,
    ):
        self._session = session
        self._model = model
        self._entity_type = entity_type
        self._clock = clock or SystemClock()

    @property
    def entity_type(self) -> str:
        return self._entity_type

    def _load(self, entity_id: UUID) -> Any:
        row = self._session.get(self._model, entity_id)
        if row is None or row.is_deleted:
            raise EntityNotFoundError(self._entity_type, str(entity_id))
        return row

    def create(self, entity: T, actor_id: UUID) -> UUID:
        row = self._model.from_dto(entity, actor_id)
        self._session.add(row)
        self._session.flush()
        logger.info(
            "entity_created",
            extra={
                "entity_type": self._entity_type,
                "entity_id": str(row.id),
                "actor_id": str(actor_id),
            },
        )
        return row.id

    def read(self, entity_id: UUID) -> T:
        return self._load(entity_id).to_dto()

    def update(self, entity: T, actor_id: UUID) -> T:
        row = self._load(entity.entity_id)
        if row.version != entity.version:
            raise OptimisticLockError(
                self._entity_type,
                str(entity.entity_id),
                entity.version,
                row.version,
            )
        row.apply_dto(entity)
        row.version = row.version + 1
        row.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "entity_updated",
            extra={
                "entity_type": self._entity_type,
                "entity_id": str(row.id),
                "version": row.version,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def soft_delete(self, entity_id: UUID, actor_id: UUID) -> None:
        row = self._load(entity_id)
        row.is_deleted = True
        row.deleted_at = self._clock.now()
        row.deleted_by_id = actor_id
        row.version = row.version + 1
        self._session.flush()
        logger.info(
            "entity_deleted",
            extra={
                "entity_type": self._entity_type,
                "entity_id": str(entity_id),
                "actor_id": str(actor_id),
            },
        )

    def _column(self, name: str) -> Any:
        columns = self._model.__table__.columns
        if name not in columns:
            raise ValidationError(
                f"Unknown {self._entity_type} search field {name!r}", field=name,
            )
        return columns[name]

    def _filtered(
        self,
        stmt: Any,
        filters: dict[str, Any],
        include_deleted: bool = False,
    ) -> Any:
        if not include_deleted:
            stmt = stmt.where(self._model.is_deleted.is_(False))
        for name, value in filters.items():
            column = self._column(name)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_([_normalize(v) for v in value]))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == _normalize(value))
        return stmt

    def search(self, **filters: Any) -> list[T]:
        """Return live rows matching every filter.

        A list, tuple or set value matches any of its members.  Enum
        values are compared by their ``value``.
        """
        stmt = self._filtered(select(self._model), filters)
        stmt = stmt.order_by(self._model.created_at, self._model.id)
        return [row.to_dto() for row in self._session.scalars(stmt)]

    def exists(
        self,
        *,
        include_deleted: bool = False,
        exclude_id: UUID | None = None,
        **filters: Any,
    ) -> bool:
        """True when a row other than ``exclude_id`` matches every filter.

        ``include_deleted`` also matches soft-deleted rows, which keep their
        unique business numbers and codes.
        """
        stmt = self._filtered(select(self._model.id), filters, include_deleted)
        if exclude_id is not None:
            stmt = stmt.where(self._model.id != exclude_id)
        return self._session.scalars(stmt.limit(1)).first() is not None

    def read_many(self, entity_ids: Iterable[UUID]) -> list[T]:
        return [self.read(entity_id) for entity_id in entity_ids]

    def count(self, **filters: Any) -> int:
        stmt = self._filtered(select(func.count(self._model.id)), filters)
        return int(self._session.scalar(stmt) or 0)

    def group_totals(
        self,
        group_field: str,
        sum_fields: Sequence[str] = (),
        **filters: Any,
    ) -> list[tuple[Any, int, dict[str, Decimal]]]:
        """Row count and column sums per distinct ``group_field`` value."""
        group_column = self._column(group_field)
        sums = [func.coalesce(func.sum(self._column(name)), 0) for name in sum_fields]
        stmt = self._filtered(
            select(group_column, func.count(self._model.id), *sums), filters,
        )
        stmt = stmt.group_by(group_column).order_by(group_column)
        results = []
        for row in self._session.execute(stmt):
            totals = {
                name: round_money(Decimal(str(value)))
                for name, value in zip(sum_fields, row[2:])
            }
            results.append((row[0], int(row[1]), totals))
        return results
