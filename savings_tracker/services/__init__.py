"""Services package."""

from savings_tracker.services.storage import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionRunner,
    GoogleSheetsWithdrawalStorage,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryTransactionRunner,
    InMemoryWithdrawalStorage,
    LedgerTransaction,
    NotFoundError,
    RecordNotFoundError,
    StorageError,
    TransactionRunner,
    WithdrawalStorageInterface,
)

__all__ = [
    "AccountNotFoundError",
    "AccountStorageInterface",
    "AuditStorageInterface",
    "ConflictError",
    "ConnectionError",
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionRunner",
    "GoogleSheetsWithdrawalStorage",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryTransactionRunner",
    "InMemoryWithdrawalStorage",
    "LedgerTransaction",
    "NotFoundError",
    "RecordNotFoundError",
    "StorageError",
    "TransactionRunner",
    "WithdrawalStorageInterface",
]
