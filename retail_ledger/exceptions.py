"""
Typed exceptions for the ledger engine.

Every failure that aborts a posting or allocation unit has its own
class, so callers catch by type instead of parsing messages. Each
exception carries:

- ``code``: machine-readable identifier, stable across releases
- ``http_status``: status the API layer responds with
- ``retryable``: whether the caller should re-run the whole unit

Only ContentionError is retryable. Everything else needs corrected
input.
"""

from decimal import Decimal


class RetailLedgerError(Exception):
    """Base class for all engine errors."""

    code: str = "RETAIL_LEDGER_ERROR"
    http_status: int = 400
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class NotFoundError(RetailLedgerError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class InvalidAmountError(RetailLedgerError):
    """A quantity, cost or amount is outside its allowed range."""
    code = "INVALID_AMOUNT"


class UnbalancedJournalError(RetailLedgerError):
    code = "UNBALANCED_JOURNAL"

    def __init__(self, total_debits: Decimal, total_credits: Decimal):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Journal does not balance: entries sum to "
            f"{total_debits} debit / {total_credits} credit"
        )


class InactiveAccountError(RetailLedgerError):
    code = "INACTIVE_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is not active")


class AccountCodeLockedError(RetailLedgerError):
    """Account code changes are refused once the account has entries."""
    code = "ACCOUNT_CODE_LOCKED"
    http_status = 409

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account code {account_code} is referenced by ledger "
            f"entries and cannot be changed"
        )


class InsufficientStockError(RetailLedgerError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_unit_id: int, requested: Decimal, available: Decimal):
        self.product_unit_id = product_unit_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product unit {product_unit_id}: "
            f"requested={requested}, available={available}"
        )


class InvalidReversalError(RetailLedgerError):
    code = "INVALID_REVERSAL"
    http_status = 409


class OverAllocationError(RetailLedgerError):
    code = "OVER_ALLOCATION"
    http_status = 409

    def __init__(self, side: str, identifier, cap: Decimal,
                 allocated: Decimal, requested: Decimal):
        self.side = side
        self.identifier = identifier
        self.cap = cap
        self.allocated = allocated
        self.requested = requested
        super().__init__(
            f"Allocation exceeds {side} {identifier} cap: "
            f"cap={cap}, already allocated={allocated}, "
            f"requested={requested}"
        )


class PaymentMismatchError(RetailLedgerError):
    """Payment direction or method does not fit the target."""
    code = "PAYMENT_MISMATCH"


class InvalidStateTransitionError(RetailLedgerError):
    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, entity: str, identifier, current, target, reason: str | None = None):
        self.current = current
        self.target = target
        message = (
            f"{entity} {identifier} cannot move from "
            f"{getattr(current, 'value', current)} to "
            f"{getattr(target, 'value', target)}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ContentionError(RetailLedgerError):
    """A lock could not be acquired in time. Retry the whole unit."""
    code = "CONTENTION"
    http_status = 409
    retryable = True


class ReferentialIntegrityError(RetailLedgerError):
    """Raised by the storage layer and surfaced unchanged."""
    code = "REFERENTIAL_INTEGRITY"
    http_status = 409


class IdempotencyConflictError(RetailLedgerError):
    """An idempotency key was reused for a different kind of transaction."""
    code = "IDEMPOTENCY_CONFLICT"
    http_status = 409

    def __init__(self, idempotency_key: str, existing_type, requested_type):
        self.idempotency_key = idempotency_key
        super().__init__(
            f"Idempotency key {idempotency_key!r} already belongs to a "
            f"{existing_type.value} transaction, not a {requested_type.value}"
        )
