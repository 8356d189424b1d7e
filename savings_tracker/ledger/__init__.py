"""Ledger package: store, withdrawal log, balance derivation and mutations."""

from savings_tracker.ledger.balance import (
    BalanceEngine,
    compute_all_month_views,
    compute_month_view,
    validate_withdrawal,
    withdrawals_total,
)
from savings_tracker.ledger.mutator import LedgerMutator
from savings_tracker.ledger.store import LedgerStore, merge_entry_patch
from savings_tracker.ledger.withdrawals import WithdrawalLog

__all__ = [
    "BalanceEngine",
    "LedgerMutator",
    "LedgerStore",
    "WithdrawalLog",
    "compute_all_month_views",
    "compute_month_view",
    "merge_entry_patch",
    "validate_withdrawal",
    "withdrawals_total",
]
