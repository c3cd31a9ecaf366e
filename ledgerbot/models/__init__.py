"""
Data Models Package

This package contains all Pydantic models used by the ledger bot.
All data flowing through the system must conform to these schemas.
"""

from ledgerbot.models.transaction import (
    CategoryTotals,
    DeliveryReceipt,
    DeliveryStatus,
    InboundMessage,
    LedgerRecord,
    MonthlySummary,
    TransactionKind,
    TransactionProposal,
)
from ledgerbot.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ChatLogEntry,
)

__all__ = [
    # Transaction models
    "CategoryTotals",
    "DeliveryReceipt",
    "DeliveryStatus",
    "InboundMessage",
    "LedgerRecord",
    "MonthlySummary",
    "TransactionKind",
    "TransactionProposal",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    "ChatLogEntry",
]
