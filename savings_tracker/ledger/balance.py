"""
Balance Engine

Pure derivation of per-month views from an account and its withdrawals.

CRITICAL: Nothing here writes. The net balance of a month is always
    deposit_amount(month) - sum(withdrawals bucketed to month)
so it can never drift from the two stores it is computed from.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from savings_tracker.errors import InsufficientFundsError, InvalidAmountError
from savings_tracker.models.ledger import (
    ZERO,
    Account,
    MonthView,
    WithdrawalRecord,
    current_month_key,
    utc_now,
)
from savings_tracker.services.storage import (
    AccountStorageInterface,
    WithdrawalStorageInterface,
)


def withdrawals_total(
    withdrawals: Iterable[WithdrawalRecord],
    user_id: str,
    month: str,
) -> Decimal:
    """Sum of the user's withdrawals that fall in month."""
    return sum(
        (w.amount for w in withdrawals if w.user_id == user_id and w.month == month),
        ZERO,
    )


def compute_month_view(
    account: Account,
    withdrawals: Iterable[WithdrawalRecord],
    month: str,
) -> MonthView:
    """
    Build the view for one month.

    A month with no entry has zero deposit and targets, so withdrawals
    recorded against it show up as a negative net balance.
    """
    entry = account.get_entry(month)
    total = withdrawals_total(withdrawals, account.user_id, month)
    if entry is None:
        return MonthView(month=month, withdrawals_total=total)
    return MonthView(
        month=month,
        deposit_amount=entry.deposit_amount,
        saving_target=entry.saving_target,
        monthly_target=entry.monthly_target,
        withdrawals_total=total,
    )


def compute_all_month_views(
    account: Account,
    withdrawals: Iterable[WithdrawalRecord],
) -> list[MonthView]:
    """
    Views for every month with activity, oldest first.

    Months come from well-formed entry keys and from withdrawal
    timestamps. Entries with malformed keys are skipped, as are months
    whose view is empty.
    """
    withdrawals = [w for w in withdrawals if w.user_id == account.user_id]
    months = {entry.month for entry in account.valid_entries}
    months.update(w.month for w in withdrawals)

    views = (compute_month_view(account, withdrawals, m) for m in sorted(months))
    return [view for view in views if not view.is_empty]


def validate_withdrawal(month_view: MonthView, requested_amount: Decimal) -> None:
    """
    Raises:
        InvalidAmountError: If the amount is not positive
        InsufficientFundsError: If it exceeds the month's net balance
    """
    if requested_amount <= 0:
        raise InvalidAmountError(
            "withdrawal_amount",
            requested_amount,
            "Withdrawal amount must be greater than zero",
        )
    available = month_view.net_deposit
    if requested_amount > available:
        raise InsufficientFundsError(
            requested=requested_amount,
            available=available,
            month=month_view.month,
        )


class BalanceEngine:
    """
    Loads an account and its withdrawals and derives views from them.

    A user without an account document gets an empty account, so a
    brand new sign-in sees empty views rather than an error.
    """

    def __init__(
        self,
        account_storage: AccountStorageInterface,
        withdrawal_storage: WithdrawalStorageInterface,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._accounts = account_storage
        self._withdrawals = withdrawal_storage
        self._clock = clock

    async def _load(self, user_id: str) -> tuple[Account, list[WithdrawalRecord]]:
        account = await self._accounts.get_account(user_id)
        if account is None:
            account = Account(user_id=user_id)
        withdrawals = await self._withdrawals.list_withdrawals(user_id)
        return account, withdrawals

    async def get_month_views(self, user_id: str) -> list[MonthView]:
        account, withdrawals = await self._load(user_id)
        return compute_all_month_views(account, withdrawals)

    async def get_month_view(self, user_id: str, month: str) -> MonthView:
        account, withdrawals = await self._load(user_id)
        return compute_month_view(account, withdrawals, month)

    async def get_current_month_view(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> MonthView:
        return await self.get_month_view(
            user_id, current_month_key(now or self._clock())
        )
