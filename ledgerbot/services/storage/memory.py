"""
In-Memory Storage

Used in three places:
1. Mock mode, when Google Sheets credentials are not configured
2. The degradation buffer inside the Sheets ledger
3. Tests

Nothing here survives a process restart.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ledgerbot.models.audit import ChatLogEntry
from ledgerbot.models.transaction import (
    CategoryTotals,
    LedgerRecord,
    TransactionProposal,
)
from ledgerbot.queries.reports import category_totals, filter_month
from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    LedgerInterface,
)


class InMemoryLedger(LedgerInterface):
    """
    List-backed ledger.

    The running balance starts at `opening_balance`, which lets the
    Sheets ledger continue from the last balance it managed to persist.
    """

    def __init__(
        self,
        opening_balance: Decimal = Decimal("0"),
        timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._records: list[LedgerRecord] = []
        self._opening_balance = opening_balance
        self._timezone = timezone
        self._clock = clock or (lambda: datetime.now(ZoneInfo(self._timezone)))

    @property
    def records(self) -> list[LedgerRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def rebase(self, opening_balance: Decimal) -> None:
        """Set the opening balance and re-derive the balances of held records."""
        self._opening_balance = opening_balance
        balance = opening_balance
        rebased = []
        for record in self._records:
            balance = balance + record.kind.sign * record.amount
            rebased.append(record.model_copy(update={"balance": balance}))
        self._records = rebased

    def first(self) -> LedgerRecord:
        return self._records[0]

    def pop_first(self) -> LedgerRecord:
        """Remove the oldest record; its balance becomes the opening balance."""
        record = self._records.pop(0)
        self._opening_balance = record.balance
        return record

    def balance_now(self) -> Decimal:
        if self._records:
            return self._records[-1].balance
        return self._opening_balance

    async def append(self, proposal: TransactionProposal) -> LedgerRecord:
        record = LedgerRecord.from_proposal(
            proposal,
            previous_balance=self.balance_now(),
            timestamp=self._clock(),
        )
        self._records.append(record)
        return record

    async def current_balance(self) -> Decimal:
        return self.balance_now()

    async def monthly_report(self, month: int, year: int) -> list[LedgerRecord]:
        return filter_month(self._records, month, year, self._timezone)

    async def category_totals(self, month: int, year: int) -> CategoryTotals:
        return category_totals(await self.monthly_report(month, year))


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed chat log."""

    def __init__(self):
        self._entries: list[ChatLogEntry] = []

    async def append_entry(self, entry: ChatLogEntry) -> bool:
        self._entries.append(entry)
        return True

    async def get_recent_entries(self, limit: int = 50) -> list[ChatLogEntry]:
        if limit <= 0:
            return []
        return self._entries[-limit:]
