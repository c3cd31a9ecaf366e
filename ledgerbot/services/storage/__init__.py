"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the ledger
and the chat log. Google Sheets is the live backend; the in-memory
implementations back mock mode and tests.
"""

from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerInterface,
    StorageError,
)
from ledgerbot.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedger,
)
from ledgerbot.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedger",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedger",
]
