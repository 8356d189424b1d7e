"""
Main Orchestrator for Savings Tracker

This module ties together all the components and defines the
end-to-end wiring for:
1. Sign-in (identity → ensure account exists)
2. Reads (account + withdrawals → month views)
3. Writes (deposit / targets / withdraw / edits, all through LedgerMutator)

DESIGN DECISION: The storage backend is chosen here and nowhere else.
Business logic only ever sees the abstract interfaces, and the
transaction capability is injected rather than reached for globally.
"""

from datetime import datetime
from typing import Callable, NamedTuple, Optional

import structlog

from savings_tracker.audit import AuditLogger, configure_log_level, create_correlation_id
from savings_tracker.config import get_settings
from savings_tracker.ledger import BalanceEngine, LedgerMutator, LedgerStore, WithdrawalLog
from savings_tracker.models.ledger import Account, utc_now
from savings_tracker.services.storage import (
    AuditStorageInterface,
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
)


logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    """Everything the UI needs, wired against one storage backend."""

    backend: str
    store: LedgerStore
    withdrawals: WithdrawalLog
    balances: BalanceEngine
    mutator: LedgerMutator
    audit_logger: AuditLogger
    audit_storage: AuditStorageInterface


def create_app_components(
    backend: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
) -> AppComponents:
    """
    Create and wire up all application components.

    Args:
        backend: "memory" or "google_sheets"; defaults to the
            STORAGE_BACKEND setting
        clock: Source of "now" for the current month

    This is the main entry point for setting up the system.
    """
    app_settings = get_settings().app
    configure_log_level(app_settings.debug_mode)
    backend = backend or app_settings.storage_backend

    if backend == "google_sheets":
        client = GoogleSheetsClient()
        account_storage = GoogleSheetsAccountStorage(client)
        withdrawal_storage = GoogleSheetsWithdrawalStorage(client)
        audit_storage = GoogleSheetsAuditStorage(client)
        transactions = GoogleSheetsTransactionRunner(account_storage, withdrawal_storage)
    elif backend == "memory":
        database = InMemoryDatabase()
        account_storage = InMemoryAccountStorage(database)
        withdrawal_storage = InMemoryWithdrawalStorage(database)
        audit_storage = InMemoryAuditStorage()
        transactions = InMemoryTransactionRunner(database)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    audit_logger = AuditLogger(storage=audit_storage)
    store = LedgerStore(account_storage)
    withdrawals = WithdrawalLog(withdrawal_storage)

    logger.info(
        "components_created",
        backend=backend,
        environment=app_settings.app_environment,
    )

    return AppComponents(
        backend=backend,
        store=store,
        withdrawals=withdrawals,
        balances=BalanceEngine(account_storage, withdrawal_storage, clock=clock),
        mutator=LedgerMutator(
            store,
            withdrawals,
            transactions,
            audit_logger=audit_logger,
            clock=clock,
        ),
        audit_logger=audit_logger,
        audit_storage=audit_storage,
    )


async def sign_in(
    components: AppComponents,
    user_id: str,
    name: Optional[str] = None,
    photo: Optional[str] = None,
) -> Account:
    """
    Establish the account for an authenticated user.

    Identity comes from the caller's sign-in provider; this only makes
    sure the account document exists.
    """
    return await components.mutator.open_account(
        user_id,
        name=name,
        photo=photo,
        correlation_id=create_correlation_id(),
    )
