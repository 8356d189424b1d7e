"""
Ledger Mutator

The write-side flows the UI calls:
1. Deposit / set targets (current month, serialized per account)
2. Withdraw (validate-then-write inside one transaction)
3. Administrative edits and deletes of entries and withdrawals

DESIGN DECISION: The mutator enforces the boundaries:
- Amounts are parsed and rejected before any storage call
- A withdrawal is only created inside a transaction that saw enough funds
- The stored deposit is NEVER reduced by a withdrawal
- Every accepted or rejected change is audited
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from savings_tracker.audit import AuditLogger, create_correlation_id
from savings_tracker.errors import InsufficientFundsError, InvalidAmountError
from savings_tracker.ledger.balance import compute_month_view, validate_withdrawal
from savings_tracker.ledger.store import LedgerStore, merge_entry_patch
from savings_tracker.ledger.withdrawals import WithdrawalLog
from savings_tracker.models.ledger import (
    Account,
    EntryPatch,
    EntryUpdateResult,
    MonthlyEntry,
    MonthView,
    WithdrawalPatch,
    WithdrawalRecord,
    WithdrawalUpdateResult,
    current_month_key,
    utc_now,
)
from savings_tracker.services.storage import (
    AccountNotFoundError,
    LedgerTransaction,
    StorageError,
    TransactionRunner,
)
from savings_tracker.validation import AmountInput, parse_amount


def _entry_snapshot(entry: MonthlyEntry) -> dict:
    return {
        "deposit_amount": str(entry.deposit_amount),
        "saving_target": str(entry.saving_target),
        "monthly_target": str(entry.monthly_target),
    }


def _withdrawal_snapshot(record: WithdrawalRecord) -> dict:
    return {"amount": str(record.amount), "reason": record.reason}


class LedgerMutator:
    """
    Orchestrates every change to a user's ledger.

    Deposits and targets always apply to the current month as given by
    the clock. Every current-month write runs through the
    TransactionRunner, so concurrent deposits all accumulate and two
    concurrent withdrawals can never both pass the balance check against
    the same snapshot.
    """

    def __init__(
        self,
        store: LedgerStore,
        withdrawal_log: WithdrawalLog,
        transactions: TransactionRunner,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._withdrawals = withdrawal_log
        self._transactions = transactions
        self._audit_logger = audit_logger
        self._clock = clock

    def current_month(self) -> str:
        return current_month_key(self._clock())

    async def open_account(
        self,
        user_id: str,
        name: Optional[str] = None,
        photo: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """Create the account on first sign-in; later calls are no-ops."""
        account, created = await self._store.ensure_account(user_id, name, photo)
        if created and self._audit_logger:
            await self._audit_logger.log_account_created(
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return account

    # =========================================================================
    # CURRENT MONTH
    # =========================================================================

    async def deposit(
        self,
        user_id: str,
        amount: AmountInput,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyEntry:
        """
        Add amount to the current month's deposit.

        Raises:
            InvalidAmountError: If amount is not a positive number
        """
        correlation_id = correlation_id or create_correlation_id()
        value = parse_amount(amount, "deposit_amount")

        await self.open_account(user_id, correlation_id=correlation_id)
        month = self.current_month()
        entry = await self._write_entry(
            user_id,
            month,
            EntryPatch(deposit_amount=value),
            accumulate_deposit=True,
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_deposit(
                user_id=user_id,
                month=month,
                amount=value,
                new_total=entry.deposit_amount,
                correlation_id=correlation_id,
            )
        return entry

    async def set_monthly_target(
        self,
        user_id: str,
        amount: AmountInput,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyEntry:
        return await self._set_target(user_id, "monthly_target", amount, correlation_id)

    async def set_saving_target(
        self,
        user_id: str,
        amount: AmountInput,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyEntry:
        return await self._set_target(user_id, "saving_target", amount, correlation_id)

    async def _set_target(
        self,
        user_id: str,
        field: str,
        amount: AmountInput,
        correlation_id: Optional[UUID],
    ) -> MonthlyEntry:
        """Overwrite one target on the current month's entry."""
        correlation_id = correlation_id or create_correlation_id()
        value = parse_amount(amount, field)

        await self.open_account(user_id, correlation_id=correlation_id)
        month = self.current_month()
        entry = await self._write_entry(
            user_id,
            month,
            EntryPatch(**{field: value}),
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_target_set(
                user_id=user_id,
                month=month,
                target_field=field,
                amount=value,
                correlation_id=correlation_id,
            )
        return entry

    async def _write_entry(
        self,
        user_id: str,
        month: str,
        patch: EntryPatch,
        accumulate_deposit: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyEntry:
        """Merge a patch into the month's entry inside a transaction."""

        async def merge(txn: LedgerTransaction) -> MonthlyEntry:
            account = await txn.get_account()
            if account is None:
                raise AccountNotFoundError(user_id)
            entries, entry = merge_entry_patch(
                account.monthly_entries, month, patch, accumulate_deposit
            )
            txn.put_monthly_entries(entries)
            return entry

        try:
            return await self._transactions.run(user_id, merge)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="upsert_monthly_entry",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

    # =========================================================================
    # WITHDRAW
    # =========================================================================

    async def withdraw(
        self,
        user_id: str,
        amount: AmountInput,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WithdrawalRecord:
        """
        Withdraw from the current month's net balance.

        The balance check and the withdrawal insert happen in one
        transaction. On any failure nothing is written.

        Raises:
            InvalidAmountError: If amount is not a positive number
            AccountNotFoundError: If the user has no account
            InsufficientFundsError: If amount exceeds the net balance
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            value = parse_amount(amount, "withdrawal_amount")
        except InvalidAmountError as e:
            await self._reject_withdrawal(user_id, amount, e, "invalid_amount", correlation_id)
            raise

        now = self._clock()
        month = current_month_key(now)
        record = WithdrawalRecord(
            user_id=user_id,
            amount=value,
            reason=reason,
            timestamp=now,
        )

        async def check_and_insert(txn: LedgerTransaction) -> MonthView:
            account = await txn.get_account()
            if account is None:
                raise AccountNotFoundError(user_id)
            view = compute_month_view(account, await txn.list_withdrawals(), month)
            validate_withdrawal(view, value)
            txn.add_withdrawal(record)
            return view

        try:
            view = await self._transactions.run(user_id, check_and_insert)
        except InsufficientFundsError as e:
            await self._reject_withdrawal(
                user_id, value, e, "insufficient_funds", correlation_id,
                available=e.available,
            )
            raise
        except AccountNotFoundError as e:
            await self._reject_withdrawal(user_id, value, e, "account_not_found", correlation_id)
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="withdraw",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_withdrawal_committed(
                user_id=user_id,
                withdrawal_id=record.id,
                month=month,
                amount=value,
                balance_before=view.net_deposit,
                correlation_id=correlation_id,
            )
        return record

    async def _reject_withdrawal(
        self,
        user_id: str,
        amount: object,
        error: Exception,
        error_code: str,
        correlation_id: UUID,
        available: Optional[Decimal] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_withdrawal_rejected(
                user_id=user_id,
                amount=str(amount),
                reason=str(error),
                error_code=error_code,
                available=available,
                correlation_id=correlation_id,
            )

    # =========================================================================
    # ADMINISTRATIVE EDITS
    # =========================================================================

    async def edit_monthly_entry(
        self,
        user_id: str,
        month: str,
        deposit_amount: AmountInput,
        saving_target: AmountInput,
        monthly_target: AmountInput,
        correlation_id: Optional[UUID] = None,
    ) -> EntryUpdateResult:
        """
        Overwrite all three values of an existing month.

        Zero is allowed here. The result is not checked against the
        month's withdrawals.

        Raises:
            InvalidAmountError: If any value is negative or non-numeric
            RecordNotFoundError: If the month has no entry
        """
        correlation_id = correlation_id or create_correlation_id()
        deposit = parse_amount(deposit_amount, "deposit_amount", allow_zero=True)
        saving = parse_amount(saving_target, "saving_target", allow_zero=True)
        monthly = parse_amount(monthly_target, "monthly_target", allow_zero=True)

        account = await self._store.get_account(user_id)
        before = account.get_entry(month)

        result = await self._store.replace_monthly_entry(
            user_id, month, deposit, saving, monthly
        )

        if self._audit_logger:
            if result.changed:
                await self._audit_logger.log_entry_updated(
                    user_id=user_id,
                    month=month,
                    before=_entry_snapshot(before) if before else {},
                    after=_entry_snapshot(result.entry),
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_no_changes(
                    user_id=user_id,
                    entity_type="monthly_entry",
                    entity_id=month,
                    correlation_id=correlation_id,
                )
        return result

    async def delete_monthly_entry(
        self,
        user_id: str,
        month: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove a month's entry. Withdrawals in that month are kept.

        Returns:
            True if an entry was removed
        """
        deleted = await self._store.delete_monthly_entry(user_id, month)
        if deleted and self._audit_logger:
            await self._audit_logger.log_entry_deleted(
                user_id=user_id,
                month=month,
                correlation_id=correlation_id,
            )
        return deleted

    async def edit_withdrawal(
        self,
        user_id: str,
        record_id: UUID,
        amount: Optional[AmountInput] = None,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> WithdrawalUpdateResult:
        """
        Edit a withdrawal's amount and/or reason.

        Not re-checked against the balance.

        Raises:
            InvalidAmountError: If amount is given and not positive
            RecordNotFoundError: If the user owns no such withdrawal
        """
        correlation_id = correlation_id or create_correlation_id()
        patch = WithdrawalPatch(
            amount=parse_amount(amount, "withdrawal_amount") if amount is not None else None,
            reason=reason,
        )

        before = await self._withdrawals.get(record_id, user_id)
        result = await self._withdrawals.update(record_id, patch, user_id=user_id)

        if self._audit_logger:
            if result.changed:
                await self._audit_logger.log_withdrawal_updated(
                    user_id=user_id,
                    withdrawal_id=record_id,
                    before=_withdrawal_snapshot(before),
                    after=_withdrawal_snapshot(result.record),
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_no_changes(
                    user_id=user_id,
                    entity_type="withdrawal",
                    entity_id=str(record_id),
                    correlation_id=correlation_id,
                )
        return result

    async def delete_withdrawal(
        self,
        user_id: str,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove a withdrawal, restoring its month's net balance.

        Raises:
            RecordNotFoundError: If the withdrawal belongs to another user
        """
        deleted = await self._withdrawals.delete(record_id, user_id=user_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_withdrawal_deleted(
                user_id=user_id,
                withdrawal_id=record_id,
                correlation_id=correlation_id,
            )
        return deleted
