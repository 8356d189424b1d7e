"""
Tests for the Google Sheets backend.

No network: worksheets are replaced by an in-memory fake that speaks
the small slice of the gspread Worksheet API the storage uses.
"""

import asyncio
import json
import re
import threading
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

from savings_tracker.errors import InsufficientFundsError
from savings_tracker.ledger import LedgerMutator, LedgerStore, WithdrawalLog
from savings_tracker.models.ledger import Account, MonthlyEntry, WithdrawalRecord
from savings_tracker.services.storage import (
    ConflictError,
    GoogleSheetsAccountStorage,
    GoogleSheetsTransactionRunner,
    GoogleSheetsWithdrawalStorage,
    StorageError,
)
from savings_tracker.services.storage.google_sheets import ACCOUNT_COLUMNS, WITHDRAWAL_COLUMNS


class FakeWorksheet:
    """Rows of strings, 1-indexed like a sheet; row 1 is the header."""

    def __init__(self, header):
        self.rows = [list(header)]
        # Called once before the next row_values read; stands in for
        # another client editing the sheet at that moment
        self.before_row_read = None

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(cell) for cell in row])

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.append_row(row)

    def update(self, range_name, values, value_input_option=None):
        row_number = int(re.match(r"A(\d+):", range_name).group(1))
        self.rows[row_number - 1] = [str(cell) for cell in values[0]]

    def row_values(self, row_number):
        if self.before_row_read is not None:
            hook, self.before_row_read = self.before_row_read, None
            hook(self)
        if row_number > len(self.rows):
            return []
        return list(self.rows[row_number - 1])

    def delete_rows(self, index):
        del self.rows[index - 1]


@pytest.fixture
def sheets_client():
    client = MagicMock()
    accounts = FakeWorksheet(ACCOUNT_COLUMNS)
    withdrawals = FakeWorksheet(WITHDRAWAL_COLUMNS)
    client.get_accounts_sheet.return_value = accounts
    client.get_withdrawals_sheet.return_value = withdrawals
    return client


@pytest.fixture
def sheet_accounts(sheets_client):
    return GoogleSheetsAccountStorage(sheets_client)


@pytest.fixture
def sheet_withdrawals(sheets_client):
    return GoogleSheetsWithdrawalStorage(sheets_client)


@pytest.fixture
def runner(sheet_accounts, sheet_withdrawals):
    return GoogleSheetsTransactionRunner(sheet_accounts, sheet_withdrawals, max_attempts=3)


class TestAccountRows:
    """Account documents as rows."""

    def test_row_round_trip(self, sheet_accounts):
        account = Account(
            user_id="u1",
            name="Ana",
            version=4,
            monthly_entries=[
                MonthlyEntry(month="2024-03", deposit_amount=Decimal("10.50"), saving_target=Decimal("3")),
            ],
        )
        row = sheet_accounts._account_to_row(account)
        assert row[3] == "4"
        assert json.loads(row[4])[0]["deposit_amount"] == "10.50"

        restored = sheet_accounts._row_to_account(row)
        assert restored.monthly_entries == account.monthly_entries
        assert restored.version == 4
        assert restored.photo is None

    def test_bad_entries_skipped(self, sheet_accounts):
        raw = json.dumps([
            {"month": "2024-01", "deposit_amount": "5"},
            {"month": "2024-02", "deposit_amount": "-5"},
            {"month": "2024-01", "deposit_amount": "7"},
            {"month": "2024-03", "deposit_amount": "oops"},
        ])
        entries = sheet_accounts._parse_entries("u1", raw)
        assert [(e.month, e.deposit_amount) for e in entries] == [("2024-01", Decimal("5"))]

    @pytest.mark.asyncio
    async def test_create_and_get(self, sheet_accounts):
        assert await sheet_accounts.create_account(Account(user_id="u1", name="Ana"))
        assert not await sheet_accounts.create_account(Account(user_id="u1"))
        account = await sheet_accounts.get_account("u1")
        assert account.name == "Ana"
        assert await sheet_accounts.get_account("u2") is None

    @pytest.mark.asyncio
    async def test_write_account_version_check(self, sheet_accounts, sheets_client):
        await sheet_accounts.create_account(Account(user_id="u1"))
        await sheet_accounts.save_monthly_entries("u1", [MonthlyEntry(month="2024-03")])

        with pytest.raises(ConflictError):
            await sheet_accounts.write_account("u1", [], expected_version=0)

        account = await sheet_accounts.get_account("u1")
        assert account.version == 1
        assert len(account.monthly_entries) == 1

    @pytest.mark.asyncio
    async def test_read_failure_becomes_storage_error(self, sheets_client, sheet_accounts):
        sheets_client.get_accounts_sheet.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(StorageError):
            await sheet_accounts.get_account("u1")


class TestWithdrawalRows:
    """The withdrawal log as rows."""

    @pytest.mark.asyncio
    async def test_crud(self, sheet_withdrawals):
        record = WithdrawalRecord(user_id="u1", amount=Decimal("12.34"), reason="bus")
        await sheet_withdrawals.save_withdrawal(record)
        assert await sheet_withdrawals.get_withdrawal(record.id) == record

        edited = record.model_copy(update={"reason": "train"})
        await sheet_withdrawals.update_withdrawal(edited)
        assert (await sheet_withdrawals.get_withdrawal(record.id)).reason == "train"

        assert await sheet_withdrawals.delete_withdrawal(record.id)
        assert not await sheet_withdrawals.delete_withdrawal(record.id)

    @pytest.mark.asyncio
    async def test_bad_rows_skipped(self, sheets_client, sheet_withdrawals):
        good = WithdrawalRecord(user_id="u1", amount=Decimal("1"))
        await sheet_withdrawals.save_withdrawal(good)
        sheets_client.get_withdrawals_sheet.return_value.append_row(
            ["not-a-uuid", "u1", "abc", "", "yesterday"]
        )
        assert await sheet_withdrawals.list_withdrawals("u1") == [good]

    @pytest.fixture
    def three_users(self, sheets_client):
        """Rows 2, 3 and 4 owned by u3, u2 and u1."""
        sheet = sheets_client.get_withdrawals_sheet.return_value
        storage = GoogleSheetsWithdrawalStorage(sheets_client)
        records = [
            WithdrawalRecord(user_id=user_id, amount=Decimal(amount))
            for user_id, amount in (("u3", "3"), ("u2", "2"), ("u1", "1"))
        ]
        storage.append_rows(records)
        return sheet, storage, records

    @staticmethod
    def remove_row_two(sheet):
        del sheet.rows[1]

    @pytest.mark.asyncio
    async def test_delete_after_rows_shift(self, three_users):
        sheet, storage, (w3, w2, w1) = three_users
        # w3 disappears between the scan and the delete, so row 3 now holds w1
        sheet.before_row_read = self.remove_row_two

        assert await storage.delete_withdrawal(w2.id)

        assert await storage.get_withdrawal(w2.id) is None
        assert await storage.list_withdrawals("u1") == [w1]

    @pytest.mark.asyncio
    async def test_update_after_rows_shift(self, three_users):
        sheet, storage, (w3, w2, w1) = three_users
        sheet.before_row_read = self.remove_row_two

        await storage.update_withdrawal(w2.model_copy(update={"reason": "moved"}))

        assert (await storage.get_withdrawal(w2.id)).reason == "moved"
        assert await storage.list_withdrawals("u1") == [w1]

    @pytest.mark.asyncio
    async def test_delete_of_row_removed_meanwhile(self, three_users):
        sheet, storage, (w3, w2, w1) = three_users

        def remove_target(sheet):
            del sheet.rows[2]

        sheet.before_row_read = remove_target

        assert not await storage.delete_withdrawal(w2.id)
        assert await storage.list_withdrawals("u1") == [w1]
        assert await storage.list_withdrawals("u3") == [w3]


class TestSheetsTransactions:
    """Optimistic concurrency with retries."""

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, runner, sheet_accounts, sheet_withdrawals):
        await sheet_accounts.create_account(Account(user_id="u1"))
        record = WithdrawalRecord(user_id="u1", amount=Decimal("5"))
        seen_versions = []

        async def body(txn):
            account = await txn.get_account()
            seen_versions.append(account.version)
            if len(seen_versions) == 1:
                # Someone else writes between our read and our commit
                await sheet_accounts.save_monthly_entries("u1", [])
            txn.add_withdrawal(record)
            return len(seen_versions)

        assert await runner.run("u1", body) == 2
        assert seen_versions == [0, 1]
        assert await sheet_withdrawals.list_withdrawals("u1") == [record]

    @pytest.mark.asyncio
    async def test_conflict_gives_up(self, sheet_accounts, sheet_withdrawals):
        await sheet_accounts.create_account(Account(user_id="u1"))
        runner = GoogleSheetsTransactionRunner(sheet_accounts, sheet_withdrawals, max_attempts=2)

        async def body(txn):
            await txn.get_account()
            await sheet_accounts.save_monthly_entries("u1", [])
            txn.add_withdrawal(WithdrawalRecord(user_id="u1", amount=Decimal("5")))

        with pytest.raises(ConflictError):
            await runner.run("u1", body)
        assert await sheet_withdrawals.list_withdrawals("u1") == []

    @pytest.mark.asyncio
    async def test_mutator_over_sheets(self, runner, sheet_accounts, sheet_withdrawals):
        mutator = LedgerMutator(
            LedgerStore(sheet_accounts),
            WithdrawalLog(sheet_withdrawals),
            runner,
            clock=lambda: datetime(2024, 3, 15, tzinfo=timezone.utc),
        )
        await mutator.deposit("u1", "100")
        await mutator.withdraw("u1", "60", reason="books")

        with pytest.raises(InsufficientFundsError):
            await mutator.withdraw("u1", "50")

        account = await sheet_accounts.get_account("u1")
        assert account.get_entry("2024-03").deposit_amount == Decimal("100.00")
        assert len(await sheet_withdrawals.list_withdrawals("u1")) == 1

    def test_same_account_from_two_loops(self, runner, sheet_accounts, sheet_withdrawals):
        asyncio.run(sheet_accounts.create_account(Account(user_id="u1")))
        order = []
        slow_started = threading.Event()

        async def slow(txn):
            await txn.get_account()
            order.append("slow-start")
            slow_started.set()
            await asyncio.sleep(0.3)
            txn.add_withdrawal(WithdrawalRecord(user_id="u1", amount=Decimal("1")))
            order.append("slow-end")

        async def fast(txn):
            await txn.get_account()
            order.append("fast")
            txn.add_withdrawal(WithdrawalRecord(user_id="u1", amount=Decimal("2")))

        def session(body, wait_for=None):
            if wait_for is not None:
                wait_for.wait(timeout=2)
            asyncio.run(runner.run("u1", body))

        threads = [
            threading.Thread(target=session, args=(slow,), daemon=True),
            threading.Thread(target=session, args=(fast, slow_started), daemon=True),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert not any(thread.is_alive() for thread in threads)
        # Serialized in process, so neither attempt had to be retried
        assert order == ["slow-start", "slow-end", "fast"]
        assert len(asyncio.run(sheet_withdrawals.list_withdrawals("u1"))) == 2
        assert asyncio.run(sheet_accounts.get_account("u1")).version == 2
