"""Tests for the ledger store and entry merging."""

import pytest
from decimal import Decimal

from savings_tracker.errors import InvalidMonthKeyError
from savings_tracker.ledger import merge_entry_patch
from savings_tracker.models.ledger import Account, EntryPatch, MonthlyEntry
from savings_tracker.services.storage import AccountNotFoundError, RecordNotFoundError


class TestMergeEntryPatch:
    """Pure create-or-update rules for one month."""

    def test_creates_missing_month_with_zero_defaults(self):
        entries, entry = merge_entry_patch([], "2024-03", EntryPatch(saving_target=Decimal("50")))
        assert entries == [entry]
        assert entry.deposit_amount == Decimal("0")
        assert entry.saving_target == Decimal("50")

    def test_accumulates_deposit(self):
        existing = [MonthlyEntry(month="2024-03", deposit_amount=Decimal("100"))]
        _, entry = merge_entry_patch(
            existing, "2024-03", EntryPatch(deposit_amount=Decimal("25")), accumulate_deposit=True
        )
        assert entry.deposit_amount == Decimal("125")

    def test_overwrites_deposit_without_accumulate(self):
        existing = [MonthlyEntry(month="2024-03", deposit_amount=Decimal("100"))]
        _, entry = merge_entry_patch(existing, "2024-03", EntryPatch(deposit_amount=Decimal("25")))
        assert entry.deposit_amount == Decimal("25")

    def test_leaves_other_fields_alone(self):
        existing = [
            MonthlyEntry(
                month="2024-03",
                deposit_amount=Decimal("100"),
                monthly_target=Decimal("300"),
            )
        ]
        _, entry = merge_entry_patch(existing, "2024-03", EntryPatch(saving_target=Decimal("10")))
        assert entry.deposit_amount == Decimal("100")
        assert entry.monthly_target == Decimal("300")

    def test_does_not_touch_other_months(self):
        existing = [
            MonthlyEntry(month="2024-02", deposit_amount=Decimal("1")),
            MonthlyEntry(month="2024-03", deposit_amount=Decimal("2")),
        ]
        entries, _ = merge_entry_patch(existing, "2024-03", EntryPatch(deposit_amount=Decimal("5")))
        assert entries[0] == existing[0]
        assert len(entries) == 2

    def test_input_list_not_mutated(self):
        existing = [MonthlyEntry(month="2024-03")]
        merge_entry_patch(existing, "2024-04", EntryPatch())
        assert len(existing) == 1

    def test_rejects_malformed_new_month(self):
        with pytest.raises(InvalidMonthKeyError):
            merge_entry_patch([], "March", EntryPatch(deposit_amount=Decimal("1")))


class TestLedgerStore:
    """Tests for LedgerStore over the in-memory backend."""

    @pytest.mark.asyncio
    async def test_get_account_missing(self, store):
        with pytest.raises(AccountNotFoundError):
            await store.get_account("nobody")

    @pytest.mark.asyncio
    async def test_ensure_account_creates_once(self, store):
        account, created = await store.ensure_account("u1", name="Ana", photo="http://x/p.png")
        assert created
        assert account.name == "Ana"
        assert account.monthly_entries == []

        again, created = await store.ensure_account("u1", name="Someone else")
        assert not created
        assert again.name == "Ana"

    @pytest.mark.asyncio
    async def test_upsert_creates_then_accumulates(self, store):
        await store.ensure_account("u1")
        await store.upsert_monthly_entry(
            "u1", "2024-03", EntryPatch(deposit_amount=Decimal("100")), accumulate_deposit=True
        )
        entry = await store.upsert_monthly_entry(
            "u1", "2024-03", EntryPatch(deposit_amount=Decimal("50")), accumulate_deposit=True
        )
        assert entry.deposit_amount == Decimal("150")

        account = await store.get_account("u1")
        assert len(account.monthly_entries) == 1
        assert account.version == 2

    @pytest.mark.asyncio
    async def test_upsert_requires_account(self, store):
        with pytest.raises(AccountNotFoundError):
            await store.upsert_monthly_entry("u1", "2024-03", EntryPatch(deposit_amount=Decimal("1")))

    @pytest.mark.asyncio
    async def test_replace_missing_month(self, store):
        await store.ensure_account("u1")
        with pytest.raises(RecordNotFoundError):
            await store.replace_monthly_entry("u1", "2024-03", Decimal("1"), Decimal("0"), Decimal("0"))

    @pytest.mark.asyncio
    async def test_replace_identical_values_is_noop(self, store):
        await store.ensure_account("u1")
        await store.upsert_monthly_entry("u1", "2024-03", EntryPatch(deposit_amount=Decimal("10")))
        before = await store.get_account("u1")

        result = await store.replace_monthly_entry(
            "u1", "2024-03", Decimal("10.00"), Decimal("0"), Decimal("0")
        )

        assert not result.changed
        after = await store.get_account("u1")
        assert after.version == before.version

    @pytest.mark.asyncio
    async def test_replace_overwrites_all_fields(self, store):
        await store.ensure_account("u1")
        await store.upsert_monthly_entry(
            "u1", "2024-03", EntryPatch(deposit_amount=Decimal("10"), saving_target=Decimal("5"))
        )
        result = await store.replace_monthly_entry(
            "u1", "2024-03", Decimal("20"), Decimal("0"), Decimal("7")
        )
        assert result.changed
        assert result.entry == MonthlyEntry(
            month="2024-03",
            deposit_amount=Decimal("20"),
            saving_target=Decimal("0"),
            monthly_target=Decimal("7"),
        )

    @pytest.mark.asyncio
    async def test_replace_works_on_legacy_month_key(self, store, account_storage):
        await account_storage.create_account(
            Account(user_id="u1", monthly_entries=[MonthlyEntry(month="March")])
        )
        result = await store.replace_monthly_entry("u1", "March", Decimal("1"), Decimal("0"), Decimal("0"))
        assert result.changed

    @pytest.mark.asyncio
    async def test_delete_month(self, store):
        await store.ensure_account("u1")
        await store.upsert_monthly_entry("u1", "2024-03", EntryPatch(deposit_amount=Decimal("10")))

        assert await store.delete_monthly_entry("u1", "2024-03")
        assert (await store.get_account("u1")).monthly_entries == []

    @pytest.mark.asyncio
    async def test_delete_missing_month_is_not_an_error(self, store):
        await store.ensure_account("u1")
        assert not await store.delete_monthly_entry("u1", "2024-03")
