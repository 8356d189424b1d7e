"""
Ledger Exceptions

Storage failures (missing documents, conflicts, connectivity) live with
the storage interface. These are the business-rule rejections: they are
raised before any write, or inside a transaction so that it rolls back.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for rejected ledger operations."""
    pass


class InvalidAmountError(LedgerError):
    """Amount is non-numeric, non-positive or out of range."""

    def __init__(self, field: str, value: object, message: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(message or f"Invalid {field.replace('_', ' ')}: {value!r}")


class InvalidMonthKeyError(LedgerError):
    """New entries must use a YYYY-MM month key."""

    def __init__(self, month: object):
        self.month = month
        super().__init__(f"Invalid month key {month!r}, expected YYYY-MM")


class InsufficientFundsError(LedgerError):
    """Withdrawal exceeds the month's net balance."""

    def __init__(self, requested: Decimal, available: Decimal, month: str):
        self.requested = requested
        self.available = available
        self.month = month
        super().__init__(
            f"Insufficient funds for {month}: requested {requested}, "
            f"available {available}"
        )
