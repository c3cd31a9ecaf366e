"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the ledger backend because:
1. The household can read and audit the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions, so appends are serialized in-process
- The running balance is read from the last row, which makes the
  ledger sensitive to append order
- Limited query capabilities (we filter in Python)

DEGRADATION: If a write or read fails after retries, the ledger keeps
serving from an in-memory buffer and logs `ledger_degraded`. Buffered
records are flushed, in order, before the next successful append.
The user is not told that a write is unpersisted.
"""

import asyncio
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledgerbot.config import GoogleSheetsSettings
from ledgerbot.models.audit import AuditEventType, ChatLogEntry
from ledgerbot.models.transaction import (
    CategoryTotals,
    LedgerRecord,
    TransactionKind,
    TransactionProposal,
)
from ledgerbot.queries.reports import category_totals, filter_month
from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerInterface,
    StorageError,
)
from ledgerbot.services.storage.memory import InMemoryLedger


logger = structlog.get_logger(__name__)


# Column mappings for the Transactions sheet
TRANSACTION_COLUMNS = [
    "timestamp",
    "type",
    "amount",
    "category",
    "description",
    "balance",
]

# Column mappings for the ChatLog sheet
CHAT_LOG_COLUMNS = [
    "timestamp",
    "sender",
    "message",
    "bot_response",
    "event_type",
    "correlation_id",
]

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    All methods are blocking; async callers run them in a thread.
    """

    def __init__(self, settings: GoogleSheetsSettings):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings

    @property
    def transactions_sheet_name(self) -> str:
        return self._settings.transactions_sheet_name

    @property
    def chat_log_sheet_name(self) -> str:
        return self._settings.chat_log_sheet_name

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials, either from a file or from
        the inline client email / private key.
        """
        if self._client is None:
            try:
                if self._settings.credentials_path:
                    credentials = Credentials.from_service_account_file(
                        self._settings.credentials_path,
                        scopes=SCOPES,
                    )
                else:
                    credentials = Credentials.from_service_account_info(
                        self._settings.service_account_info,
                        scopes=SCOPES,
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

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_rows(self, title: str, columns: list[str]) -> list[list[str]]:
        """All data rows of a worksheet, header excluded."""
        try:
            return self.get_worksheet(title, columns).get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {title}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_row(self, title: str, columns: list[str], row: list) -> None:
        """Append one row to a worksheet."""
        try:
            self.get_worksheet(title, columns).append_row(row, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append to {title}: {e}")


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsLedger(LedgerInterface):
    """
    Google Sheets implementation of the ledger.

    One transaction per row. The balance column holds the running
    balance after that row.
    """

    def __init__(
        self,
        client: GoogleSheetsClient,
        timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._client = client
        self._timezone = timezone
        self._clock = clock or (lambda: datetime.now(ZoneInfo(self._timezone)))
        self._buffer = InMemoryLedger(timezone=timezone, clock=self._clock)
        self._last_known_balance = Decimal("0")
        # Held by every sheet access so reads never see a half-flushed buffer
        self._write_lock = asyncio.Lock()

    @property
    def buffered_count(self) -> int:
        """Number of records waiting to be persisted."""
        return len(self._buffer)

    @property
    def is_degraded(self) -> bool:
        return self.buffered_count > 0

    def _record_to_row(self, record: LedgerRecord) -> list:
        """Convert a LedgerRecord to a spreadsheet row."""
        return [
            record.timestamp.isoformat(),
            record.kind.value,
            str(record.amount),
            record.category,
            record.description,
            str(record.balance),
        ]

    def _row_to_record(self, row: list) -> LedgerRecord:
        """Convert a spreadsheet row to a LedgerRecord."""
        return LedgerRecord(
            timestamp=datetime.fromisoformat(_safe_get(row, 0)),
            kind=TransactionKind(_safe_get(row, 1).lower()),
            amount=Decimal(_safe_get(row, 2)),
            category=_safe_get(row, 3),
            description=_safe_get(row, 4),
            balance=Decimal(_safe_get(row, 5, "0")),
        )

    def _read_records(self) -> list[LedgerRecord]:
        rows = self._client.read_rows(
            self._client.transactions_sheet_name,
            TRANSACTION_COLUMNS,
        )
        records = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(self._row_to_record(row))
            except (ValueError, InvalidOperation):
                logger.warning("ledger_row_skipped", row=row)
                continue
        return records

    def _write_record(self, record: LedgerRecord) -> None:
        self._client.append_row(
            self._client.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            self._record_to_row(record),
        )

    def _persisted_balance(self) -> Decimal:
        records = self._read_records()
        balance = records[-1].balance if records else Decimal("0")
        self._last_known_balance = balance
        return balance

    def _flush_buffer(self, previous: Decimal) -> Decimal:
        """
        Write buffered records in order, re-deriving each balance from
        what is actually persisted. Returns the balance after the last
        flushed record.
        """
        while len(self._buffer):
            buffered = self._buffer.first()
            record = buffered.model_copy(
                update={"balance": previous + buffered.kind.sign * buffered.amount}
            )
            self._write_record(record)
            self._buffer.pop_first()
            self._last_known_balance = previous = record.balance
            logger.info("ledger_buffer_flushed", remaining=len(self._buffer))
        return previous

    def _sync_pending(self) -> Decimal:
        """Flush the buffer, if any; returns the persisted balance."""
        return self._flush_buffer(self._persisted_balance())

    def _append_sync(self, proposal: TransactionProposal) -> LedgerRecord:
        previous = self._sync_pending()
        record = LedgerRecord.from_proposal(
            proposal,
            previous_balance=previous,
            timestamp=self._clock(),
        )
        self._write_record(record)
        self._last_known_balance = record.balance
        return record

    def _degrade(self, operation: str, error: Exception) -> None:
        logger.warning(
            "ledger_degraded",
            event_type=AuditEventType.LEDGER_DEGRADED.value,
            operation=operation,
            error=str(error),
            buffered=self.buffered_count,
        )
        # Buffered balances follow the newest persisted balance seen
        self._buffer.rebase(self._last_known_balance)

    async def append(self, proposal: TransactionProposal) -> LedgerRecord:
        """Append to the sheet, or to the buffer if the sheet is unavailable."""
        async with self._write_lock:
            try:
                return await asyncio.to_thread(self._append_sync, proposal)
            except Exception as e:
                self._degrade("append", e)
                return await self._buffer.append(proposal)

    async def current_balance(self) -> Decimal:
        """Persisted balance, flushing the buffer first when degraded."""
        async with self._write_lock:
            try:
                return await asyncio.to_thread(self._sync_pending)
            except Exception as e:
                self._degrade("current_balance", e)
                return self._buffer.balance_now()

    async def monthly_report(self, month: int, year: int) -> list[LedgerRecord]:
        # Under the write lock a record is either in the sheet or the buffer
        async with self._write_lock:
            try:
                records = await asyncio.to_thread(self._read_records)
            except Exception as e:
                self._degrade("monthly_report", e)
                records = []
            records = records + self._buffer.records
        return filter_month(records, month, year, self._timezone)

    async def category_totals(self, month: int, year: int) -> CategoryTotals:
        return category_totals(await self.monthly_report(month, year))


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of the chat log.

    Entries are append-only.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _row_to_entry(self, row: list) -> ChatLogEntry:
        """Convert a spreadsheet row to a ChatLogEntry."""
        return ChatLogEntry(
            timestamp=datetime.fromisoformat(_safe_get(row, 0)),
            sender=_safe_get(row, 1),
            message=_safe_get(row, 2),
            bot_response=_safe_get(row, 3),
            event_type=AuditEventType(
                _safe_get(row, 4, AuditEventType.MESSAGE_EXCHANGED.value)
            ),
            correlation_id=_safe_get(row, 5) or None,
        )

    async def append_entry(self, entry: ChatLogEntry) -> bool:
        """Append a chat exchange."""
        try:
            await asyncio.to_thread(
                self._client.append_row,
                self._client.chat_log_sheet_name,
                CHAT_LOG_COLUMNS,
                entry.to_sheets_row(),
            )
            return True
        except Exception as e:
            # Don't raise - chat logging should not break the main flow
            logger.warning("chat_log_write_failed", error=str(e))
            return False

    async def get_recent_entries(self, limit: int = 50) -> list[ChatLogEntry]:
        """Get recent exchanges, oldest first."""
        try:
            rows = await asyncio.to_thread(
                self._client.read_rows,
                self._client.chat_log_sheet_name,
                CHAT_LOG_COLUMNS,
            )
        except Exception as e:
            raise StorageError(f"Failed to get chat log: {e}")

        entries = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                entries.append(self._row_to_entry(row))
            except ValueError:
                continue

        if limit <= 0:
            return []
        return entries[-limit:]
