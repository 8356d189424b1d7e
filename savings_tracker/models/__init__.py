"""
Data Models Package

This package contains all Pydantic models used in the Savings Tracker system.
All data flowing through the system must conform to these schemas.
"""

from savings_tracker.models.ledger import (
    DEFAULT_REASON,
    MONTH_KEY_PATTERN,
    ZERO,
    Account,
    EntryPatch,
    EntryUpdateResult,
    MonthlyEntry,
    MonthView,
    WithdrawalPatch,
    WithdrawalRecord,
    WithdrawalUpdateResult,
    as_utc,
    current_month_key,
    is_valid_month_key,
    month_key,
    utc_now,
)
from savings_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "EntryPatch",
    "EntryUpdateResult",
    "MonthlyEntry",
    "MonthView",
    "WithdrawalPatch",
    "WithdrawalRecord",
    "WithdrawalUpdateResult",
    # Month keys
    "DEFAULT_REASON",
    "MONTH_KEY_PATTERN",
    "ZERO",
    "as_utc",
    "current_month_key",
    "is_valid_month_key",
    "month_key",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
