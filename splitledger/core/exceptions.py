"""Errors raised by the ledger core.

Anything else (a dropped connection, a missing table) comes straight from the
store and is not wrapped.
"""


class LedgerError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or inconsistent input. Raised before anything is written."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConcurrencyError(LedgerError):
    """A balance row was locked or changed underneath us. Safe to retry."""


class NotFoundError(LedgerError):
    pass
