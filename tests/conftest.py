"""
Shared fixtures.

Everything runs against the in-memory backend with a fixed clock
(15 March 2024, UTC), so the "current month" is always 2024-03.
"""

from datetime import datetime, timezone

import pytest

from savings_tracker.audit import AuditLogger
from savings_tracker.ledger import BalanceEngine, LedgerMutator, LedgerStore, WithdrawalLog
from savings_tracker.services.storage import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryTransactionRunner,
    InMemoryWithdrawalStorage,
)


class FixedClock:
    """Settable stand-in for utc_now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def database():
    return InMemoryDatabase()


@pytest.fixture
def account_storage(database):
    return InMemoryAccountStorage(database)


@pytest.fixture
def withdrawal_storage(database):
    return InMemoryWithdrawalStorage(database)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def store(account_storage):
    return LedgerStore(account_storage)


@pytest.fixture
def withdrawal_log(withdrawal_storage):
    return WithdrawalLog(withdrawal_storage)


@pytest.fixture
def balances(account_storage, withdrawal_storage, clock):
    return BalanceEngine(account_storage, withdrawal_storage, clock=clock)


@pytest.fixture
def mutator(store, withdrawal_log, database, audit_storage, clock):
    return LedgerMutator(
        store,
        withdrawal_log,
        InMemoryTransactionRunner(database),
        audit_logger=AuditLogger(storage=audit_storage),
        clock=clock,
    )
