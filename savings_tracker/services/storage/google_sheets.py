"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No server-side transactions. We use optimistic concurrency instead:
  every account row carries a version, a transaction remembers the version
  it read and refuses to commit if the row moved. Conflicts are retried.
  Sheets has no compare-and-swap, so the re-read and the write are two
  calls; an in-process lock closes the gap for a single app instance.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to a document store later without changing business logic.
"""

import json
import threading
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from savings_tracker.config import get_settings
from savings_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from savings_tracker.models.ledger import (
    Account,
    MonthlyEntry,
    WithdrawalRecord,
    utc_now,
)
from savings_tracker.services.storage.interface import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    LedgerTransaction,
    NotFoundError,
    RecordNotFoundError,
    StorageError,
    TransactionRunner,
    WithdrawalStorageInterface,
)
from savings_tracker.services.storage.locks import AccountLocks


T = TypeVar("T")

logger = structlog.get_logger(__name__)


# Column mappings for Accounts sheet
ACCOUNT_COLUMNS = [
    "user_id",
    "name",
    "photo",
    "version",
    "monthly_entries_json",
    "created_at",
    "updated_at",
]

# Column mappings for Withdrawals sheet
WITHDRAWAL_COLUMNS = [
    "id",
    "user_id",
    "withdrawal_amount",
    "reason",
    "date",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle short rows gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _column_letter(count: int) -> str:
    """1 -> A, 7 -> G. Our sheets never exceed 26 columns."""
    return chr(ord("A") + count - 1)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create_sheet(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, rows=200
        )

    def get_withdrawals_sheet(self) -> gspread.Worksheet:
        """Get or create the Withdrawals worksheet."""
        return self._get_or_create_sheet(
            self._settings.withdrawals_sheet_name, WITHDRAWAL_COLUMNS, rows=2000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsAccountStorage(AccountStorageInterface):
    """
    Google Sheets implementation of account storage.

    One account per row. The monthly entries are JSON-serialized into a
    single cell so that a write always replaces the whole list.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _account_to_row(self, account: Account) -> list:
        """Convert an Account to a spreadsheet row."""
        entries = [
            {
                "month": entry.month,
                "deposit_amount": str(entry.deposit_amount),
                "saving_target": str(entry.saving_target),
                "monthly_target": str(entry.monthly_target),
            }
            for entry in account.monthly_entries
        ]
        return [
            account.user_id,
            account.name or "",
            account.photo or "",
            str(account.version),
            json.dumps(entries),
            account.created_at.isoformat(),
            account.updated_at.isoformat(),
        ]

    def _parse_entries(self, user_id: str, raw: str) -> list[MonthlyEntry]:
        """
        Parse the entries cell leniently.

        A hand-edited sheet can hold bad values; those entries are skipped
        (and logged) instead of making the whole account unreadable.
        """
        if not raw:
            return []
        entries = []
        seen = set()
        for item in json.loads(raw):
            try:
                entry = MonthlyEntry.model_validate(item)
            except ValidationError as e:
                logger.warning(
                    "skipped_monthly_entry",
                    user_id=user_id,
                    entry=item,
                    error=str(e),
                )
                continue
            if entry.month in seen:
                continue
            seen.add(entry.month)
            entries.append(entry)
        return entries

    def _row_to_account(self, row: list) -> Account:
        """Convert a spreadsheet row to an Account."""
        user_id = _safe_get(row, 0)
        kwargs = {
            "user_id": user_id,
            "name": _safe_get(row, 1) or None,
            "photo": _safe_get(row, 2) or None,
            "version": int(_safe_get(row, 3, "0")),
            "monthly_entries": self._parse_entries(user_id, _safe_get(row, 4)),
        }
        if _safe_get(row, 5):
            kwargs["created_at"] = datetime.fromisoformat(_safe_get(row, 5))
        if _safe_get(row, 6):
            kwargs["updated_at"] = datetime.fromisoformat(_safe_get(row, 6))
        return Account(**kwargs)

    def _find_row(self, sheet: gspread.Worksheet, user_id: str) -> tuple[int, Optional[list]]:
        """Return (sheet row number, row) or (0, None)."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == user_id:
                return idx, row
        return 0, None

    def _write_row(self, sheet: gspread.Worksheet, row_number: int, account: Account) -> None:
        row = self._account_to_row(account)
        cell_range = f"A{row_number}:{_column_letter(len(row))}{row_number}"
        sheet.update(range_name=cell_range, values=[row], value_input_option="RAW")

    async def get_account(self, user_id: str) -> Optional[Account]:
        """Retrieve an account by user ID."""
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = self._find_row(sheet, user_id)
            return self._row_to_account(row) if row else None
        except Exception as e:
            raise StorageError(f"Failed to get account: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(StorageError),
        reraise=True,
    )
    async def create_account(self, account: Account) -> bool:
        """Append an account row unless one exists already."""
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = self._find_row(sheet, account.user_id)
            if row:
                return False
            sheet.append_row(self._account_to_row(account), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to create account: {e}")

    async def write_account(
        self,
        user_id: str,
        entries: Optional[list[MonthlyEntry]] = None,
        expected_version: Optional[int] = None,
    ) -> Account:
        """
        Rewrite an account row with a bumped version.

        If expected_version is given and the stored row has moved on,
        raise ConflictError without writing.
        """
        try:
            sheet = self._client.get_accounts_sheet()
            row_number, row = self._find_row(sheet, user_id)
            if row is None:
                raise AccountNotFoundError(user_id)

            current = self._row_to_account(row)
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(
                    f"Account {user_id} changed (version {expected_version} -> "
                    f"{current.version})"
                )

            update = {"version": current.version + 1, "updated_at": utc_now()}
            if entries is not None:
                update["monthly_entries"] = list(entries)
            updated = Account.model_validate({**current.model_dump(), **update})

            self._write_row(sheet, row_number, updated)
            return updated
        except (NotFoundError, ConflictError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def save_monthly_entries(
        self,
        user_id: str,
        entries: list[MonthlyEntry],
    ) -> Account:
        """Replace the full entry list (last write wins)."""
        return await self.write_account(user_id, entries)


class GoogleSheetsWithdrawalStorage(WithdrawalStorageInterface):
    """
    Google Sheets implementation of the withdrawal log.

    One withdrawal per row. Row edits and deletes from this process are
    serialized, since a delete renumbers the rows below it.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._row_lock = threading.Lock()

    def _withdrawal_to_row(self, record: WithdrawalRecord) -> list:
        """Convert a WithdrawalRecord to a spreadsheet row."""
        return [
            str(record.id),
            record.user_id,
            str(record.amount),
            record.reason,
            record.timestamp.isoformat(),
        ]

    def _row_to_withdrawal(self, row: list) -> WithdrawalRecord:
        """Convert a spreadsheet row to a WithdrawalRecord."""
        return WithdrawalRecord(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            reason=_safe_get(row, 3),
            timestamp=datetime.fromisoformat(_safe_get(row, 4)),
        )

    def _read_records(self) -> list[tuple[int, WithdrawalRecord]]:
        sheet = self._client.get_withdrawals_sheet()
        records = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append((idx, self._row_to_withdrawal(row)))
            except (ValueError, ArithmeticError) as e:
                logger.warning("skipped_withdrawal_row", row_number=idx, error=str(e))
        return records

    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        """List withdrawals for one user."""
        try:
            return [
                record for _, record in self._read_records()
                if record.user_id == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list withdrawals: {e}")

    def append_rows(self, records: list[WithdrawalRecord]) -> None:
        if not records:
            return
        sheet = self._client.get_withdrawals_sheet()
        sheet.append_rows(
            [self._withdrawal_to_row(record) for record in records],
            value_input_option="RAW",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_withdrawal(self, record: WithdrawalRecord) -> bool:
        """Append a withdrawal row."""
        try:
            self.append_rows([record])
            return True
        except Exception as e:
            raise StorageError(f"Failed to save withdrawal: {e}")

    async def get_withdrawal(self, record_id: UUID) -> Optional[WithdrawalRecord]:
        """Retrieve a withdrawal by ID."""
        try:
            for _, record in self._read_records():
                if record.id == record_id:
                    return record
            return None
        except Exception as e:
            raise StorageError(f"Failed to get withdrawal: {e}")

    @retry(
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(ConflictError),
        reraise=True,
    )
    def _locate_row(self, sheet: gspread.Worksheet, record_id: UUID) -> int:
        """
        Row number of a withdrawal, or 0 if it is not in the sheet.

        Deleting a row shifts every row below it, so the id cell is
        re-read right before the caller writes. A mismatch means the
        sheet moved under us and the scan is repeated.
        """
        for idx, record in self._read_records():
            if record.id == record_id:
                if _safe_get(sheet.row_values(idx), 0) != str(record_id):
                    logger.warning("withdrawal_row_moved", record_id=str(record_id), row_number=idx)
                    raise ConflictError(f"Withdrawal row moved: {record_id}")
                return idx
        return 0

    async def update_withdrawal(self, record: WithdrawalRecord) -> bool:
        """Overwrite a withdrawal row in place."""
        try:
            sheet = self._client.get_withdrawals_sheet()
            with self._row_lock:
                idx = self._locate_row(sheet, record.id)
                if not idx:
                    raise RecordNotFoundError(f"Withdrawal not found: {record.id}")
                row = self._withdrawal_to_row(record)
                cell_range = f"A{idx}:{_column_letter(len(row))}{idx}"
                sheet.update(range_name=cell_range, values=[row], value_input_option="RAW")
                return True
        except (NotFoundError, ConflictError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update withdrawal: {e}")

    async def delete_withdrawal(self, record_id: UUID) -> bool:
        """Delete a withdrawal row."""
        try:
            sheet = self._client.get_withdrawals_sheet()
            with self._row_lock:
                idx = self._locate_row(sheet, record_id)
                if not idx:
                    return False
                sheet.delete_rows(idx)
                return True
        except ConflictError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete withdrawal: {e}")


class GoogleSheetsTransaction(LedgerTransaction):
    """
    Optimistic transaction over one account row.

    Remembers the version it read; commit() refuses to write if the row
    has moved since.
    """

    def __init__(
        self,
        user_id: str,
        accounts: GoogleSheetsAccountStorage,
        withdrawals: GoogleSheetsWithdrawalStorage,
    ):
        self._user_id = user_id
        self._accounts = accounts
        self._withdrawals = withdrawals
        self._read_version: Optional[int] = None
        self._staged_withdrawals: list[WithdrawalRecord] = []
        self._staged_entries: Optional[list[MonthlyEntry]] = None

    async def get_account(self) -> Optional[Account]:
        account = await self._accounts.get_account(self._user_id)
        if account is None:
            return None
        if self._read_version is None:
            self._read_version = account.version
        if self._staged_entries is not None:
            account.monthly_entries = list(self._staged_entries)
        return account

    async def list_withdrawals(self) -> list[WithdrawalRecord]:
        committed = await self._withdrawals.list_withdrawals(self._user_id)
        return committed + list(self._staged_withdrawals)

    def add_withdrawal(self, record: WithdrawalRecord) -> None:
        if record.user_id != self._user_id:
            raise StorageError(
                f"Transaction for {self._user_id} cannot write a withdrawal "
                f"owned by {record.user_id}"
            )
        self._staged_withdrawals.append(record)

    def put_monthly_entries(self, entries: list[MonthlyEntry]) -> None:
        self._staged_entries = list(entries)

    async def commit(self) -> None:
        if not self._staged_withdrawals and self._staged_entries is None:
            return
        if self._read_version is None:
            # Blind writes still need a snapshot to guard against
            account = await self.get_account()
            if account is None:
                raise AccountNotFoundError(self._user_id)

        # Version bump first: a concurrent committer now conflicts with us
        await self._accounts.write_account(
            self._user_id,
            self._staged_entries,
            expected_version=self._read_version,
        )
        try:
            self._withdrawals.append_rows(self._staged_withdrawals)
        except Exception as e:
            raise StorageError(f"Failed to append withdrawals: {e}")


class GoogleSheetsTransactionRunner(TransactionRunner):
    """
    Runs transactions with optimistic concurrency and tenacity retries.

    Each attempt re-runs the whole transaction body against fresh reads.
    """

    def __init__(
        self,
        accounts: GoogleSheetsAccountStorage,
        withdrawals: GoogleSheetsWithdrawalStorage,
        max_attempts: Optional[int] = None,
    ):
        self._accounts = accounts
        self._withdrawals = withdrawals
        self._max_attempts = max_attempts or get_settings().app.max_transaction_attempts
        self._locks = AccountLocks()

    async def run(
        self,
        user_id: str,
        fn: Callable[[LedgerTransaction], Awaitable[T]],
    ) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
            retry=retry_if_exception_type(ConflictError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                async with self._locks.hold(user_id):
                    transaction = GoogleSheetsTransaction(
                        user_id, self._accounts, self._withdrawals
                    )
                    result = await fn(transaction)
                    await transaction.commit()
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "transaction_retried",
                            user_id=user_id,
                            attempts=attempt.retry_state.attempt_number,
                        )
        return result


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("skipped_audit_row", error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.error("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._read_events()
                if e.correlation_id == correlation_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events for one user."""
        try:
            events = [e for e in self._read_events() if e.user_id == user_id]
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
