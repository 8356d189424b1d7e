"""
In-Memory Storage Implementation

Used by the test suite and as the default backend for local runs.

Transactions are serialized per account with a thread-safe lock, which
gives serializable isolation for the one document a transaction touches.
Writes made inside a transaction are staged and only applied on commit,
so an exception in the transaction body leaves no trace.

Stored models are copied on the way in and out; callers can never
mutate the "database" by holding on to a returned object.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from savings_tracker.models.audit import AuditEvent
from savings_tracker.models.ledger import (
    Account,
    MonthlyEntry,
    WithdrawalRecord,
    utc_now,
)
from savings_tracker.services.storage.interface import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    LedgerTransaction,
    RecordNotFoundError,
    StorageError,
    TransactionRunner,
    WithdrawalStorageInterface,
)
from savings_tracker.services.storage.locks import AccountLocks


T = TypeVar("T")


class InMemoryDatabase:
    """Shared state for the in-memory storages, like a client handle."""

    def __init__(self):
        self.accounts: dict[str, Account] = {}
        self.withdrawals: dict[UUID, WithdrawalRecord] = {}
        self.locks = AccountLocks()

    def write_entries(
        self,
        user_id: str,
        entries: Optional[list[MonthlyEntry]] = None,
    ) -> Account:
        """Replace entries (if given) and bump the account version."""
        account = self.accounts.get(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)

        update = {
            "version": account.version + 1,
            "updated_at": utc_now(),
        }
        if entries is not None:
            update["monthly_entries"] = list(entries)

        # model_validate re-runs the duplicate month check
        updated = Account.model_validate({**account.model_dump(), **update})
        self.accounts[user_id] = updated
        return updated.model_copy(deep=True)


class InMemoryAccountStorage(AccountStorageInterface):
    """In-memory implementation of account storage."""

    def __init__(self, database: Optional[InMemoryDatabase] = None):
        self._db = database or InMemoryDatabase()

    async def get_account(self, user_id: str) -> Optional[Account]:
        account = self._db.accounts.get(user_id)
        return account.model_copy(deep=True) if account else None

    async def create_account(self, account: Account) -> bool:
        if account.user_id in self._db.accounts:
            return False
        self._db.accounts[account.user_id] = account.model_copy(deep=True)
        return True

    async def save_monthly_entries(
        self,
        user_id: str,
        entries: list[MonthlyEntry],
    ) -> Account:
        return self._db.write_entries(user_id, entries)


class InMemoryWithdrawalStorage(WithdrawalStorageInterface):
    """In-memory implementation of the withdrawal log."""

    def __init__(self, database: Optional[InMemoryDatabase] = None):
        self._db = database or InMemoryDatabase()

    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        return [
            record.model_copy()
            for record in self._db.withdrawals.values()
            if record.user_id == user_id
        ]

    async def save_withdrawal(self, record: WithdrawalRecord) -> bool:
        if record.id in self._db.withdrawals:
            raise StorageError(f"Withdrawal already exists: {record.id}")
        self._db.withdrawals[record.id] = record.model_copy()
        return True

    async def get_withdrawal(self, record_id: UUID) -> Optional[WithdrawalRecord]:
        record = self._db.withdrawals.get(record_id)
        return record.model_copy() if record else None

    async def update_withdrawal(self, record: WithdrawalRecord) -> bool:
        if record.id not in self._db.withdrawals:
            raise RecordNotFoundError(f"Withdrawal not found: {record.id}")
        self._db.withdrawals[record.id] = record.model_copy()
        return True

    async def delete_withdrawal(self, record_id: UUID) -> bool:
        return self._db.withdrawals.pop(record_id, None) is not None


class InMemoryTransaction(LedgerTransaction):
    """Staged writes for one account; applied by commit()."""

    def __init__(self, database: InMemoryDatabase, user_id: str):
        self._db = database
        self._user_id = user_id
        self._staged_withdrawals: list[WithdrawalRecord] = []
        self._staged_entries: Optional[list[MonthlyEntry]] = None

    async def get_account(self) -> Optional[Account]:
        # Yield to the loop like a real backend round trip would
        await asyncio.sleep(0)
        account = self._db.accounts.get(self._user_id)
        if account is None:
            return None
        account = account.model_copy(deep=True)
        if self._staged_entries is not None:
            account.monthly_entries = list(self._staged_entries)
        return account

    async def list_withdrawals(self) -> list[WithdrawalRecord]:
        await asyncio.sleep(0)
        committed = [
            record.model_copy()
            for record in self._db.withdrawals.values()
            if record.user_id == self._user_id
        ]
        return committed + [record.model_copy() for record in self._staged_withdrawals]

    def add_withdrawal(self, record: WithdrawalRecord) -> None:
        if record.user_id != self._user_id:
            raise StorageError(
                f"Transaction for {self._user_id} cannot write a withdrawal "
                f"owned by {record.user_id}"
            )
        self._staged_withdrawals.append(record.model_copy())

    def put_monthly_entries(self, entries: list[MonthlyEntry]) -> None:
        self._staged_entries = list(entries)

    @property
    def has_writes(self) -> bool:
        return bool(self._staged_withdrawals) or self._staged_entries is not None

    def commit(self) -> None:
        """Apply staged writes. Runs without awaiting, so it cannot interleave."""
        if not self.has_writes:
            return
        # Touch the account first: raises if it vanished, before any write
        self._db.write_entries(self._user_id, self._staged_entries)
        for record in self._staged_withdrawals:
            self._db.withdrawals[record.id] = record


class InMemoryTransactionRunner(TransactionRunner):
    """Serializes transactions per account, across threads and loops."""

    def __init__(self, database: Optional[InMemoryDatabase] = None):
        self._db = database or InMemoryDatabase()

    async def run(
        self,
        user_id: str,
        fn: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        async with self._db.locks.hold(user_id):
            transaction = InMemoryTransaction(self._db, user_id)
            result = await fn(transaction)
            transaction.commit()
            return result


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
