from enum import Enum


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INSUFFICIENT_AMOUNT = "INSUFFICIENT_AMOUNT"
    EXPIRED = "EXPIRED"
    NOT_YET_VALID = "NOT_YET_VALID"
    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"
    ALREADY_COMMITTED = "ALREADY_COMMITTED"
    COMMIT_FAILED = "COMMIT_FAILED"


class PaymentFailureReason(str, Enum):
    """Reasons a submitted payment envelope is refused; all surface as HTTP 402."""

    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INSUFFICIENT_AMOUNT = "INSUFFICIENT_AMOUNT"
    EXPIRED = "EXPIRED"
    NOT_YET_VALID = "NOT_YET_VALID"
    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"


class StorageError(RuntimeError):
    """Raised by a store when the backing storage cannot complete an operation."""


class DuplicateTransactionError(StorageError):
    def __init__(self, tx_id: str) -> None:
        super().__init__(f"reply already recorded for transaction {tx_id}")
        self.tx_id = tx_id
