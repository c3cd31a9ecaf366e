"""
Audit Logger

DESIGN DECISION: Every significant step of a conversation is logged.
This provides:
1. Traceability from an inbound message to the ledger row it produced
2. Debugging capability
3. The chat history shown on the dashboard

The audit logger:
- Always writes events to the structured log
- Persists chat exchanges (message + reply) to the chat log storage
- Gracefully handles failures (never crashes a conversation if logging fails)
- Supports correlation IDs to trace the events of one inbound message
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerbot.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ChatLogEntry,
)
from ledgerbot.models.transaction import LedgerRecord, TransactionProposal
from ledgerbot.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through stdlib logging with a JSON renderer."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (for debugging)
    2. Chat log storage, for exchanges only (Google Sheets or memory)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Chat log backend. If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledgerbot.audit")

    async def log(self, event: AuditEvent) -> None:
        """Write an audit event to the structured log."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def record_exchange(
        self,
        sender: str,
        message: str,
        bot_response: str,
        correlation_id: Optional[UUID] = None,
        event_type: AuditEventType = AuditEventType.MESSAGE_EXCHANGED,
    ) -> bool:
        """
        Persist one message/reply pair to the chat log.

        Returns True if the storage write succeeded (or no storage configured).
        """
        if not self._storage:
            return True

        entry = ChatLogEntry(
            sender=sender,
            message=message,
            bot_response=bot_response,
            event_type=event_type,
            correlation_id=correlation_id,
        )
        try:
            return await self._storage.append_entry(entry)
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                sender=sender,
            )
            return False

    async def recent_exchanges(self, limit: int = 50) -> list[ChatLogEntry]:
        """Most recent chat exchanges, oldest first."""
        if not self._storage:
            return []
        return await self._storage.get_recent_entries(limit)

    async def log_message_received(
        self,
        sender: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.message_received(sender, message, correlation_id))

    async def log_signature_rejected(
        self,
        url: str,
        sender: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.signature_rejected(url, sender))

    async def log_proposal_created(
        self,
        sender: str,
        proposal: TransactionProposal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.proposal_created(
            sender=sender,
            proposal=proposal.model_dump(mode="json"),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_extraction_failed(
        self,
        sender: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(sender, reason, correlation_id))

    async def log_user_confirmed(self, sender: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.user_confirmed(sender, correlation_id))

    async def log_user_cancelled(self, sender: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.user_cancelled(sender, correlation_id))

    async def log_transaction_recorded(
        self,
        sender: str,
        record: LedgerRecord,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_recorded(
            sender=sender,
            kind=record.kind.value,
            amount=str(record.amount),
            balance=str(record.balance),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_delivery_failed(
        self,
        sender: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.delivery_failed(sender, error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when an inbound message arrives and pass it through
    everything that message triggers.
    """
    return uuid4()
