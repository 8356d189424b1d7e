"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document store later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Three capabilities matter:
- Account documents, written with full-document replace semantics
- The withdrawal log, one record per withdrawal
- A read-modify-write transaction scoped to ONE account document

The transaction is the only place where validate-then-write happens.
Everything else is last-write-wins.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from savings_tracker.models.audit import AuditEvent
from savings_tracker.models.ledger import Account, MonthlyEntry, WithdrawalRecord


T = TypeVar("T")


class AccountStorageInterface(ABC):
    """
    Abstract interface for account documents.

    The monthly entries are stored together on the account and are always
    written as a whole list. Callers read, modify and write back.
    """

    @abstractmethod
    async def get_account(self, user_id: str) -> Optional[Account]:
        """
        Retrieve an account by user ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_account(self, account: Account) -> bool:
        """
        Create an account document if none exists for account.user_id.

        Never overwrites an existing document, so concurrent callers
        are safe.

        Returns:
            True if created, False if it already existed
        """
        pass

    @abstractmethod
    async def save_monthly_entries(
        self,
        user_id: str,
        entries: list[MonthlyEntry],
    ) -> Account:
        """
        Replace the account's full monthly entry list.

        Bumps the account version.

        Returns:
            The updated account

        Raises:
            AccountNotFoundError: If the account doesn't exist
            StorageError: If the write fails
        """
        pass


class WithdrawalStorageInterface(ABC):
    """
    Abstract interface for the withdrawal log.

    Balance-checked withdrawals are created inside a ledger transaction.
    save_withdrawal is the raw append with no balance check.
    """

    @abstractmethod
    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        """
        List all withdrawals owned by a user (no particular order).
        """
        pass

    @abstractmethod
    async def save_withdrawal(self, record: WithdrawalRecord) -> bool:
        """
        Append a withdrawal to the log.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_withdrawal(self, record_id: UUID) -> Optional[WithdrawalRecord]:
        """
        Retrieve a withdrawal by ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_withdrawal(self, record: WithdrawalRecord) -> bool:
        """
        Overwrite an existing withdrawal.

        Raises:
            RecordNotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete_withdrawal(self, record_id: UUID) -> bool:
        """
        Delete a withdrawal by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass


class LedgerTransaction(ABC):
    """
    Handle passed to a transaction body.

    Reads see committed state plus anything staged in this transaction.
    Writes are staged and only applied when the body returns without
    raising.
    """

    @abstractmethod
    async def get_account(self) -> Optional[Account]:
        pass

    @abstractmethod
    async def list_withdrawals(self) -> list[WithdrawalRecord]:
        pass

    @abstractmethod
    def add_withdrawal(self, record: WithdrawalRecord) -> None:
        pass

    @abstractmethod
    def put_monthly_entries(self, entries: list[MonthlyEntry]) -> None:
        pass


class TransactionRunner(ABC):
    """
    Atomic read-modify-write over one account document.

    Implementations must guarantee that two transactions for the same
    user_id never both commit based on the same snapshot.
    """

    @abstractmethod
    async def run(
        self,
        user_id: str,
        fn: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        """
        Run fn inside a transaction scoped to user_id's account.

        Returns:
            Whatever fn returns

        Raises:
            Anything fn raises (after discarding staged writes)
            ConflictError: If the snapshot kept changing underneath
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one user action).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent events for one account (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AccountNotFoundError(NotFoundError):
    """No account document for this user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Account not found: {user_id}")


class RecordNotFoundError(NotFoundError):
    """Referenced monthly entry or withdrawal is missing."""
    pass


class ConflictError(StorageError):
    """The account changed between the transaction's read and its commit."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
