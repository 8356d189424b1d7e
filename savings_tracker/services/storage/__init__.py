"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend, in-memory is the local/test backend.
"""

from savings_tracker.services.storage.interface import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    LedgerTransaction,
    NotFoundError,
    RecordNotFoundError,
    StorageError,
    TransactionRunner,
    WithdrawalStorageInterface,
)
from savings_tracker.services.storage.memory import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryTransactionRunner,
    InMemoryWithdrawalStorage,
)
from savings_tracker.services.storage.google_sheets import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionRunner,
    GoogleSheetsWithdrawalStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "LedgerTransaction",
    "TransactionRunner",
    "WithdrawalStorageInterface",
    # Exceptions
    "AccountNotFoundError",
    "ConflictError",
    "ConnectionError",
    "NotFoundError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryTransactionRunner",
    "InMemoryWithdrawalStorage",
    # Google Sheets implementation
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionRunner",
    "GoogleSheetsWithdrawalStorage",
]
