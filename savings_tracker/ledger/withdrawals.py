"""
Withdrawal Log

CRUD over withdrawal records. create() here is the raw append with no
balance check; balance-checked withdrawals go through LedgerMutator.withdraw.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from savings_tracker.models.ledger import (
    WithdrawalPatch,
    WithdrawalRecord,
    WithdrawalUpdateResult,
)
from savings_tracker.services.storage import (
    RecordNotFoundError,
    WithdrawalStorageInterface,
)
from savings_tracker.validation import AmountInput, parse_amount


class WithdrawalLog:
    """Per-user view over the withdrawal storage."""

    def __init__(self, storage: WithdrawalStorageInterface):
        self._storage = storage

    async def list_by_user(self, user_id: str) -> list[WithdrawalRecord]:
        """All of a user's withdrawals, newest first."""
        records = await self._storage.list_withdrawals(user_id)
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    async def list_for_month(self, user_id: str, month: str) -> list[WithdrawalRecord]:
        return [r for r in await self.list_by_user(user_id) if r.month == month]

    async def get(self, record_id: UUID, user_id: Optional[str] = None) -> WithdrawalRecord:
        """
        Fetch one record.

        When user_id is given, a record owned by someone else is reported
        as missing.

        Raises:
            RecordNotFoundError: If no such record is visible
        """
        record = await self._storage.get_withdrawal(record_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            raise RecordNotFoundError(f"Withdrawal not found: {record_id}")
        return record

    async def create(
        self,
        user_id: str,
        amount: AmountInput,
        reason: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> WithdrawalRecord:
        """
        Append a withdrawal without checking the balance.

        Raises:
            InvalidAmountError: If amount is not a positive number
        """
        fields = {
            "user_id": user_id,
            "amount": parse_amount(amount, "withdrawal_amount"),
            "reason": reason,
        }
        if timestamp is not None:
            fields["timestamp"] = timestamp
        record = WithdrawalRecord(**fields)
        await self._storage.save_withdrawal(record)
        return record

    async def update(
        self,
        record_id: UUID,
        patch: WithdrawalPatch,
        user_id: Optional[str] = None,
    ) -> WithdrawalUpdateResult:
        """
        Edit amount and/or reason.

        Not re-checked against the balance. Identical values are reported
        as changed=False and nothing is written.

        Raises:
            RecordNotFoundError: If the record is missing (or not owned)
        """
        record = await self.get(record_id, user_id)

        changes = {}
        if patch.amount is not None and patch.amount != record.amount:
            changes["amount"] = patch.amount
        if patch.reason is not None and patch.reason != record.reason:
            changes["reason"] = patch.reason

        if not changes:
            return WithdrawalUpdateResult(record=record, changed=False)

        updated = record.model_copy(update=changes)
        await self._storage.update_withdrawal(updated)
        return WithdrawalUpdateResult(record=updated, changed=True)

    async def delete(self, record_id: UUID, user_id: Optional[str] = None) -> bool:
        """
        Remove a record. Deleting a missing record is not an error.

        Raises:
            RecordNotFoundError: If the record belongs to another user
        """
        record = await self._storage.get_withdrawal(record_id)
        if record is None:
            return False
        if user_id is not None and record.user_id != user_id:
            raise RecordNotFoundError(f"Withdrawal not found: {record_id}")
        return await self._storage.delete_withdrawal(record_id)
