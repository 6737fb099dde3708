"""
Typed Exception Hierarchy for the Lease Core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement and allocation errors are shown to users and written to logs.
Callers must be able to react to them by type and by ``code``, never by
parsing a message string:

    try:
        invoice = apply_payment(invoice, amount)
    except OverpaymentError as e:
        show_error(code=e.code, balance=e.balance_amount)

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LeaseCoreError (base)
    |
    +-- ValidationError
    |   +-- ApprovalNotRequiredError
    |
    +-- AmountError
    |   +-- InvalidAmountError
    |   +-- InvalidTotalError
    |
    +-- AllocationError
    |   +-- OverpaymentError
    |   +-- OverAllocationError
    |   +-- InsufficientReceiptBalanceError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- ImmutableRecordError
    |
    +-- PersistenceError
    |   +-- EntityNotFoundError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------------
Validation   | VALIDATION_ERROR              | Missing/malformed input (blank reason)
             | APPROVAL_NOT_REQUIRED         | Approval action on non-approval entity
-------------|-------------------------------|----------------------------------------
Amount       | INVALID_AMOUNT                | Negative/float/non-numeric amount
             | INVALID_TOTAL                 | Derived total or balance below zero
-------------|-------------------------------|----------------------------------------
Allocation   | OVERPAYMENT                   | Payment exceeds invoice balance
             | OVER_ALLOCATION               | Allocation exceeds invoice balance
             | INSUFFICIENT_RECEIPT_BALANCE  | Allocations exceed receipt amount
-------------|-------------------------------|----------------------------------------
Workflow     | INVALID_TRANSITION            | State change not allowed from state
             | IMMUTABLE_RECORD              | Mutation of locked / non-Draft record
-------------|-------------------------------|----------------------------------------
Persistence  | ENTITY_NOT_FOUND              | No active row for the given id
-------------|-------------------------------|----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Stale snapshot version on update

===============================================================================
"""

from decimal import Decimal


class LeaseCoreError(Exception):
    """
    Base exception for all lease core errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEASE_CORE_ERROR"


# Validation exceptions


class ValidationError(LeaseCoreError):
    """Malformed or missing required input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ApprovalNotRequiredError(ValidationError):
    """Approval action requested on an entity that bypasses approval."""

    code: str = "APPROVAL_NOT_REQUIRED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} does not require approval",
            field="requires_approval",
        )


# Amount exceptions


class AmountError(LeaseCoreError):
    """Base exception for arithmetic invariant violations."""

    code: str = "AMOUNT_ERROR"


class InvalidAmountError(AmountError):
    """An amount is negative where non-negativity is required, or not a number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str = "must not be negative"):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount for {field}: {value} ({reason})")


class InvalidTotalError(AmountError):
    """A derived total or balance would be negative."""

    code: str = "INVALID_TOTAL"

    def __init__(self, entity_id: str, computed: Decimal, reason: str):
        self.entity_id = entity_id
        self.computed = str(computed)
        self.reason = reason
        super().__init__(f"Invalid total {computed} for {entity_id}: {reason}")


# Allocation exceptions


class AllocationError(LeaseCoreError):
    """Base exception for amounts exceeding their legal ceiling."""

    code: str = "ALLOCATION_ERROR"


class OverpaymentError(AllocationError):
    """Payment amount exceeds the invoice balance."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: Decimal, balance_amount: Decimal):
        self.invoice_id = invoice_id
        self.amount = str(amount)
        self.balance_amount = str(balance_amount)
        super().__init__(
            f"Payment {amount} exceeds balance {balance_amount} on invoice {invoice_id}"
        )


class OverAllocationError(AllocationError):
    """Allocation would overpay the target invoice."""

    code: str = "OVER_ALLOCATION"

    def __init__(
        self,
        receipt_id: str,
        invoice_id: str,
        amount: Decimal,
        balance_amount: Decimal,
    ):
        self.receipt_id = receipt_id
        self.invoice_id = invoice_id
        self.amount = str(amount)
        self.balance_amount = str(balance_amount)
        super().__init__(
            f"Allocation {amount} from receipt {receipt_id} exceeds "
            f"balance {balance_amount} on invoice {invoice_id}"
        )


class InsufficientReceiptBalanceError(AllocationError):
    """Allocations would exceed the receipt amount."""

    code: str = "INSUFFICIENT_RECEIPT_BALANCE"

    def __init__(self, receipt_id: str, requested: Decimal, unallocated: Decimal):
        self.receipt_id = receipt_id
        self.requested = str(requested)
        self.unallocated = str(unallocated)
        super().__init__(
            f"Receipt {receipt_id} has {unallocated} unallocated, "
            f"cannot allocate {requested}"
        )


# Workflow exceptions


class WorkflowError(LeaseCoreError):
    """Base exception for state machine violations."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """State transition not permitted from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        from_state: str,
        to_state: str,
        reason: str = "",
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"Invalid {entity_type} transition {from_state} -> {to_state} for {entity_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ImmutableRecordError(WorkflowError):
    """Mutation attempted on an approval-locked or non-editable record."""

    code: str = "IMMUTABLE_RECORD"

    def __init__(self, entity_type: str, entity_id: str, operation: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id}: {reason}"
        )


# Persistence exceptions


class PersistenceError(LeaseCoreError):
    """Base exception for persistence gateway errors."""

    code: str = "PERSISTENCE_ERROR"


class EntityNotFoundError(PersistenceError):
    """No active record with the given id."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency exceptions


class ConcurrencyError(LeaseCoreError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int,
        actual_version: int,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"snapshot version {expected_version}, stored version {actual_version}"
        )
