"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and mock mode
3. Keep the conversation engine decoupled from storage implementation

The interface is intentionally simple - just the operations the
conversation engine and the dashboard need.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ledgerbot.models.audit import ChatLogEntry
from ledgerbot.models.transaction import (
    CategoryTotals,
    LedgerRecord,
    TransactionProposal,
)


class LedgerInterface(ABC):
    """
    Abstract interface for the append-only transaction ledger.

    Any ledger implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def append(self, proposal: TransactionProposal) -> LedgerRecord:
        """
        Append a confirmed transaction.

        Args:
            proposal: The proposal the user confirmed

        Returns:
            The appended record, carrying the new running balance
        """
        pass

    @abstractmethod
    async def current_balance(self) -> Decimal:
        """
        Get the running balance after the last record.

        Returns:
            The balance, zero for an empty ledger
        """
        pass

    @abstractmethod
    async def monthly_report(self, month: int, year: int) -> list[LedgerRecord]:
        """
        List the records of one calendar month.

        Args:
            month: 1-12
            year: Four-digit year

        Returns:
            Matching records in ledger order
        """
        pass

    @abstractmethod
    async def category_totals(self, month: int, year: int) -> CategoryTotals:
        """
        Total per category for one calendar month, split by kind.

        Args:
            month: 1-12
            year: Four-digit year

        Returns:
            Income and expense totals keyed by category
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for chat log storage.

    Chat logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_entry(self, entry: ChatLogEntry) -> bool:
        """
        Append a chat exchange to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_entries(self, limit: int = 50) -> list[ChatLogEntry]:
        """
        Get the most recent exchanges.

        Args:
            limit: Maximum number of entries to return

        Returns:
            Up to `limit` entries, oldest first
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
