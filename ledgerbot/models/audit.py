"""
Audit Models for the Ledger Bot

Every significant step of a conversation is logged for audit purposes.
This provides:
1. Traceability from an inbound message to the ledger row it produced
2. Debugging information when things go wrong
3. The chat history shown on the dashboard

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each transition of the conversation state machine has its own type.
    """
    # Inbound
    MESSAGE_RECEIVED = "message_received"
    SIGNATURE_REJECTED = "signature_rejected"

    # Extraction
    PROPOSAL_CREATED = "proposal_created"
    EXTRACTION_FAILED = "extraction_failed"

    # Human confirmation
    USER_CONFIRMED = "user_confirmed"
    USER_CANCELLED = "user_cancelled"

    # Persistence
    TRANSACTION_RECORDED = "transaction_recorded"
    LEDGER_DEGRADED = "ledger_degraded"

    # Outbound
    MESSAGE_EXCHANGED = "message_exchanged"
    DELIVERY_FAILED = "delivery_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which conversation is this about?
    sender: Optional[str] = Field(
        default=None,
        description="Sender identity the event relates to"
    )

    # Correlation - all events produced by one inbound message
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events of one inbound message"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "sender": self.sender,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class ChatLogEntry(BaseModel):
    """
    One inbound message and the bot's reply to it.

    This is what the dashboard shows as the chat history.
    """

    timestamp: datetime = Field(default_factory=_utcnow)
    sender: str
    message: str
    bot_response: str
    event_type: AuditEventType = AuditEventType.MESSAGE_EXCHANGED
    correlation_id: Optional[UUID] = None

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [timestamp, sender, message, bot_response, event_type, correlation_id]
        """
        return [
            self.timestamp.isoformat(),
            self.sender,
            self.message,
            self.bot_response,
            self.event_type.value,
            str(self.correlation_id) if self.correlation_id else "",
        ]

    def to_dashboard_dict(self) -> dict:
        """Shape used by the dashboard log endpoint."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "sender": self.sender,
            "message": self.message,
            "botResponse": self.bot_response,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.proposal_created(sender, proposal_dict, cid)
        event = AuditEventBuilder.user_confirmed(sender, cid)
    """

    @staticmethod
    def message_received(
        sender: str,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            sender=sender,
            correlation_id=correlation_id,
            description="Inbound message received",
            details={"length": len(message)},
        )

    @staticmethod
    def signature_rejected(
        url: str,
        sender: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNATURE_REJECTED,
            severity=AuditSeverity.WARNING,
            sender=sender,
            description="Webhook signature validation failed",
            details={"url": url},
        )

    @staticmethod
    def proposal_created(
        sender: str,
        proposal: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROPOSAL_CREATED,
            sender=sender,
            correlation_id=correlation_id,
            description=f"Proposal created: {proposal.get('kind')} {proposal.get('amount')}",
            details=proposal,
        )

    @staticmethod
    def extraction_failed(
        sender: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            sender=sender,
            correlation_id=correlation_id,
            description=f"Could not extract a transaction ({reason})",
            details={"reason": reason},
        )

    @staticmethod
    def user_confirmed(
        sender: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            sender=sender,
            correlation_id=correlation_id,
            description="User confirmed pending transaction",
        )

    @staticmethod
    def user_cancelled(
        sender: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CANCELLED,
            sender=sender,
            correlation_id=correlation_id,
            description="User cancelled pending transaction",
        )

    @staticmethod
    def transaction_recorded(
        sender: str,
        kind: str,
        amount: str,
        balance: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            sender=sender,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {kind} {amount}",
            details={"kind": kind, "amount": amount, "balance": balance},
        )

    @staticmethod
    def delivery_failed(
        sender: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELIVERY_FAILED,
            severity=AuditSeverity.ERROR,
            sender=sender,
            correlation_id=correlation_id,
            description="Outbound message could not be delivered",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

