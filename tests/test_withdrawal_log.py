"""Tests for the withdrawal log."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from savings_tracker.errors import InvalidAmountError
from savings_tracker.models.ledger import WithdrawalPatch
from savings_tracker.services.storage import RecordNotFoundError


def at(year, month, day):
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


class TestWithdrawalLog:
    """CRUD over withdrawal records."""

    @pytest.mark.asyncio
    async def test_create_without_balance_check(self, withdrawal_log):
        """Raw create appends even when nothing was ever deposited."""
        record = await withdrawal_log.create("u1", "250", reason="rent")
        assert record.amount == Decimal("250.00")
        assert record.reason == "rent"
        assert await withdrawal_log.list_by_user("u1") == [record]

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_amount(self, withdrawal_log):
        with pytest.raises(InvalidAmountError):
            await withdrawal_log.create("u1", "-3")
        assert await withdrawal_log.list_by_user("u1") == []

    @pytest.mark.asyncio
    async def test_list_newest_first_and_per_user(self, withdrawal_log):
        old = await withdrawal_log.create("u1", 1, timestamp=at(2024, 1, 5))
        new = await withdrawal_log.create("u1", 2, timestamp=at(2024, 3, 5))
        await withdrawal_log.create("u2", 3, timestamp=at(2024, 2, 5))

        assert [r.id for r in await withdrawal_log.list_by_user("u1")] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_list_for_month(self, withdrawal_log):
        await withdrawal_log.create("u1", 1, timestamp=at(2024, 1, 5))
        march = await withdrawal_log.create("u1", 2, timestamp=at(2024, 3, 5))
        assert await withdrawal_log.list_for_month("u1", "2024-03") == [march]

    @pytest.mark.asyncio
    async def test_update_amount_and_reason(self, withdrawal_log):
        record = await withdrawal_log.create("u1", "100", reason="food")
        result = await withdrawal_log.update(
            record.id, WithdrawalPatch(amount=Decimal("80"), reason="groceries")
        )
        assert result.changed
        assert result.record.amount == Decimal("80")
        assert result.record.reason == "groceries"
        assert result.record.timestamp == record.timestamp

        stored = await withdrawal_log.get(record.id)
        assert stored.amount == Decimal("80")

    @pytest.mark.asyncio
    async def test_update_identical_is_noop(self, withdrawal_log):
        record = await withdrawal_log.create("u1", "100", reason="food")
        result = await withdrawal_log.update(
            record.id, WithdrawalPatch(amount=Decimal("100.00"), reason="food")
        )
        assert not result.changed

    @pytest.mark.asyncio
    async def test_update_blank_reason_matches_dash(self, withdrawal_log):
        """A blank reason normalizes to '-' before the no-op comparison."""
        record = await withdrawal_log.create("u1", "100")
        result = await withdrawal_log.update(record.id, WithdrawalPatch(reason="  "))
        assert not result.changed

    @pytest.mark.asyncio
    async def test_update_missing_record(self, withdrawal_log):
        with pytest.raises(RecordNotFoundError):
            await withdrawal_log.update(uuid4(), WithdrawalPatch(reason="x"))

    @pytest.mark.asyncio
    async def test_update_other_users_record(self, withdrawal_log):
        record = await withdrawal_log.create("u1", "100")
        with pytest.raises(RecordNotFoundError):
            await withdrawal_log.update(record.id, WithdrawalPatch(reason="x"), user_id="u2")

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, withdrawal_log):
        record = await withdrawal_log.create("u1", "100")
        assert await withdrawal_log.delete(record.id)
        assert not await withdrawal_log.delete(record.id)
        assert await withdrawal_log.list_by_user("u1") == []

    @pytest.mark.asyncio
    async def test_delete_other_users_record(self, withdrawal_log):
        record = await withdrawal_log.create("u1", "100")
        with pytest.raises(RecordNotFoundError):
            await withdrawal_log.delete(record.id, user_id="u2")
        assert await withdrawal_log.list_by_user("u1") == [record]
