class LedgerError(Exception):
    """Base class for every error raised by the ledger services."""


class LedgerValidationError(LedgerError, ValueError):
    """Raised when a request is well-formed but violates a ledger rule."""


class NotFoundError(LedgerError):
    """Raised when a referenced entity is missing or outside the caller's scope."""


class AccountNotFoundError(NotFoundError):
    pass


class TransactionNotFoundError(NotFoundError):
    pass


class TransferNotFoundError(NotFoundError):
    pass


class InsufficientFundsError(LedgerError):
    """Raised when a transfer source cannot cover the requested debit."""


class ConcurrentModificationError(LedgerError):
    """Raised when a balance changed underneath a guarded adjustment.

    The whole operation is safe to retry with a fresh read.
    """


class DuplicateIdempotencyKeyError(LedgerError):
    """Raised when the same idempotency key is reused with different input."""


class PartialApplicationFailureError(LedgerError):
    """Raised when a failed mutation could not be rolled back.

    Balances may be inconsistent until an operator intervenes.
    """
