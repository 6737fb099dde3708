"""
Gateway protocols and reference data snapshots.

Responsibility:
    Declares the ports the lease core calls out through: persistence,
    read-only reference data, notifications, attachment storage and the
    e-mail transport. Infrastructure implementations live in
    ``lease_services``; tests may supply in-memory fakes.

Architecture position:
    Kernel > Domain -- pure types and protocols, zero I/O.

Invariants enforced:
    - Reference data snapshots are frozen; the core never mutates them.
    - Every monetary field on a snapshot is Decimal.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from lease_kernel.domain.values import ExchangeRate

T = TypeVar("T")


# =============================================================================
# Reference data snapshots
# =============================================================================


@dataclass(frozen=True)
class ContractRef:
    contract_id: UUID
    contract_no: str
    customer_id: UUID
    unit_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    rent_amount: Decimal = Decimal("0")
    security_deposit_amount: Decimal = Decimal("0")
    currency_code: str = "AED"
    status: str = "Active"


@dataclass(frozen=True)
class CustomerRef:
    customer_id: UUID
    customer_name: str
    customer_email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class UnitRef:
    unit_id: UUID
    unit_no: str
    property_name: str | None = None


@dataclass(frozen=True)
class TaxRef:
    tax_id: UUID
    tax_code: str
    tax_percentage: Decimal


@dataclass(frozen=True)
class AdditionalChargeRef:
    charge_id: UUID
    charge_code: str
    charge_name: str
    default_amount: Decimal
    tax_percentage: Decimal = Decimal("0")


@dataclass(frozen=True)
class DeductionDefinition:
    deduction_id: UUID
    deduction_code: str
    deduction_name: str
    deduction_type: str
    default_amount: Decimal = Decimal("0")
    tax_percentage: Decimal = Decimal("0")


@dataclass(frozen=True)
class EmailRecipient:
    email: str
    name: str | None = None
    kind: str = "to"


@dataclass(frozen=True)
class RenderedEmail:
    template_name: str
    subject: str
    body: str
    recipients: tuple[EmailRecipient, ...]


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of one automated notification dispatch."""

    trigger_event: str
    sent_count: int
    total_count: int

    @property
    def success(self) -> bool:
        return self.sent_count == self.total_count


# =============================================================================
# Ports
# =============================================================================


class PersistenceGateway(Protocol[T]):
    """Versioned CRUD over one aggregate type.

    ``update`` must raise OptimisticLockError when the snapshot's version
    differs from the stored version and return the snapshot with its
    version incremented.
    """

    def create(self, entity: T, actor_id: UUID) -> UUID: ...

    def read(self, entity_id: UUID) -> T: ...

    def update(self, entity: T, actor_id: UUID) -> T: ...

    def soft_delete(self, entity_id: UUID, actor_id: UUID) -> None: ...

    def search(self, **filters: Any) -> list[T]: ...


@runtime_checkable
class ReferenceDataGateway(Protocol):
    """Read-only lookups. Missing rows raise EntityNotFoundError."""

    def get_contract(self, contract_id: UUID) -> ContractRef: ...

    def get_customer(self, customer_id: UUID) -> CustomerRef: ...

    def get_unit(self, unit_id: UUID) -> UnitRef: ...

    def get_tax(self, tax_id: UUID) -> TaxRef: ...

    def get_additional_charge(self, charge_id: UUID) -> AdditionalChargeRef: ...

    def get_deduction_definition(self, deduction_id: UUID) -> DeductionDefinition: ...

    def list_deduction_definitions(self, active_only: bool = True) -> list[DeductionDefinition]: ...

    def get_exchange_rate(self, currency_code: str) -> ExchangeRate: ...


@runtime_checkable
class NotificationGateway(Protocol):
    def send_automated_email(
        self,
        trigger_event: str,
        variables: Mapping[str, Any],
        recipients: Sequence[EmailRecipient] = (),
    ) -> NotificationResult: ...


@runtime_checkable
class EmailTransport(Protocol):
    """Delivers a rendered message. Delivery itself is external."""

    def send(self, message: RenderedEmail) -> None: ...


@runtime_checkable
class AttachmentStore(Protocol):
    def put(self, name: str, content: bytes, content_type: str | None = None) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...
