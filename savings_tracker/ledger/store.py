"""
Ledger Store

The account document is the single source of truth for deposits and
targets. Writes use full-document replace semantics: read the account,
build a new monthly entry list, save the whole list.

DESIGN DECISION: The merge rules live in merge_entry_patch, a pure
function, so the same rules apply whether a caller writes through the
store or stages entries inside a transaction.
"""

from typing import Optional

from savings_tracker.errors import InvalidMonthKeyError
from savings_tracker.models.ledger import (
    Account,
    EntryPatch,
    EntryUpdateResult,
    MonthlyEntry,
    is_valid_month_key,
)
from savings_tracker.services.storage import (
    AccountNotFoundError,
    AccountStorageInterface,
    RecordNotFoundError,
    StorageError,
)


def merge_entry_patch(
    entries: list[MonthlyEntry],
    month: str,
    patch: EntryPatch,
    accumulate_deposit: bool = False,
) -> tuple[list[MonthlyEntry], MonthlyEntry]:
    """
    Create-or-update one month's entry.

    A missing month starts from zero defaults. Fields absent from the
    patch are left alone. The deposit is added to the existing amount
    when accumulate_deposit is set, otherwise overwritten; targets are
    always overwritten.

    Returns:
        (new entry list, the resulting entry)
    """
    updated = list(entries)
    index = next(
        (i for i, entry in enumerate(updated) if entry.month == month),
        None,
    )
    if index is None and not is_valid_month_key(month):
        raise InvalidMonthKeyError(month)

    base = updated[index] if index is not None else MonthlyEntry(month=month)

    changes = {}
    if patch.deposit_amount is not None:
        changes["deposit_amount"] = (
            base.deposit_amount + patch.deposit_amount
            if accumulate_deposit
            else patch.deposit_amount
        )
    if patch.saving_target is not None:
        changes["saving_target"] = patch.saving_target
    if patch.monthly_target is not None:
        changes["monthly_target"] = patch.monthly_target

    entry = base.model_copy(update=changes)
    if index is None:
        updated.append(entry)
    else:
        updated[index] = entry
    return updated, entry


class LedgerStore:
    """
    Account and monthly entry operations over an AccountStorageInterface.

    None of these are transactional. Concurrent writers are last-write-wins,
    which is acceptable for deposits and targets.
    """

    def __init__(self, storage: AccountStorageInterface):
        self._storage = storage

    async def get_account(self, user_id: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If the user has no account yet
        """
        account = await self._storage.get_account(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    async def find_account(self, user_id: str) -> Optional[Account]:
        return await self._storage.get_account(user_id)

    async def ensure_account(
        self,
        user_id: str,
        name: Optional[str] = None,
        photo: Optional[str] = None,
    ) -> tuple[Account, bool]:
        """
        Make sure an account document exists.

        Idempotent and safe to race: creation never overwrites.

        Returns:
            (account, created)
        """
        account = await self._storage.get_account(user_id)
        if account is not None:
            return account, False

        created = await self._storage.create_account(
            Account(user_id=user_id, name=name, photo=photo)
        )
        account = await self._storage.get_account(user_id)
        if account is None:
            raise StorageError(f"Account {user_id} missing right after creation")
        return account, created

    async def upsert_monthly_entry(
        self,
        user_id: str,
        month: str,
        patch: EntryPatch,
        accumulate_deposit: bool = False,
    ) -> MonthlyEntry:
        """Read-modify-write one month's entry (see merge_entry_patch)."""
        account = await self.get_account(user_id)
        entries, entry = merge_entry_patch(
            account.monthly_entries, month, patch, accumulate_deposit
        )
        await self._storage.save_monthly_entries(user_id, entries)
        return entry

    async def replace_monthly_entry(
        self,
        user_id: str,
        month: str,
        deposit_amount,
        saving_target,
        monthly_target,
    ) -> EntryUpdateResult:
        """
        Administrative overwrite of an existing month.

        Not checked against withdrawals, so a historical month can end up
        with a negative net balance.

        Raises:
            RecordNotFoundError: If the month has no entry
        """
        account = await self.get_account(user_id)
        existing = account.get_entry(month)
        if existing is None:
            raise RecordNotFoundError(f"No monthly entry for {month}")

        if (
            existing.deposit_amount == deposit_amount
            and existing.saving_target == saving_target
            and existing.monthly_target == monthly_target
        ):
            return EntryUpdateResult(entry=existing, changed=False)

        entries, entry = merge_entry_patch(
            account.monthly_entries,
            month,
            EntryPatch(
                deposit_amount=deposit_amount,
                saving_target=saving_target,
                monthly_target=monthly_target,
            ),
        )
        await self._storage.save_monthly_entries(user_id, entries)
        return EntryUpdateResult(entry=entry, changed=True)

    async def delete_monthly_entry(self, user_id: str, month: str) -> bool:
        """
        Remove a month's entry.

        Returns:
            True if something was removed
        """
        account = await self.get_account(user_id)
        remaining = [e for e in account.monthly_entries if e.month != month]
        if len(remaining) == len(account.monthly_entries):
            return False
        await self._storage.save_monthly_entries(user_id, remaining)
        return True
