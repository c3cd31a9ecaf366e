"""
Conversation Engine

The per-sender state machine behind the chat bot.

STATES (derived from the pending store, never stored):
- idle: no pending proposal
- awaiting_confirmation: exactly one pending proposal

CRITICAL BOUNDARIES:
- Nothing reaches the ledger without an explicit "confirm"
- While a proposal is pending, no other message is extracted
- Reserved commands match the WHOLE trimmed message, case-insensitively
- One sender's messages are handled one at a time (SenderLocks)

FLOW for one message:
1. Lock the sender
2. Read state from the store, decide, call ledger/extractor, update store
3. Send the reply through the messenger
4. Record the exchange in the audit log
"""

from datetime import date
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from pydantic import BaseModel

from ledgerbot.agents.budget import BudgetReporter
from ledgerbot.agents.extractors import ExtractionFailedError, TransactionExtractor
from ledgerbot.audit import AuditLogger, create_correlation_id
from ledgerbot.conversation import replies
from ledgerbot.conversation.store import PendingStore, SenderLocks
from ledgerbot.models.transaction import (
    DeliveryReceipt,
    LedgerRecord,
    TransactionProposal,
)
from ledgerbot.queries.reports import current_period, summarize_month
from ledgerbot.services.messaging import MessengerInterface
from ledgerbot.services.storage import LedgerInterface


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class Command(str, Enum):
    """Reserved keywords. Anything else is free text."""
    HELP = "help"
    BALANCE = "balance"
    REPORT = "report"
    BUDGET = "budget"
    CONFIRM = "confirm"
    CANCEL = "cancel"

    @classmethod
    def parse(cls, text: str) -> Optional["Command"]:
        """Exact match on the trimmed, lower-cased message."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None


class OutcomeAction(str, Enum):
    """What the engine did with a message."""
    HELP = "help"
    BALANCE = "balance"
    REPORT = "report"
    BUDGET = "budget"
    PROPOSED = "proposed"
    CLARIFIED = "clarified"
    NOTHING_PENDING = "nothing_pending"
    RECORDED = "recorded"
    CANCELLED = "cancelled"
    REPROMPTED = "reprompted"


class ConversationOutcome(BaseModel):
    """Result of handling one inbound message."""

    action: OutcomeAction
    reply: str
    state: ConversationState
    proposal: Optional[TransactionProposal] = None
    record: Optional[LedgerRecord] = None
    receipt: Optional[DeliveryReceipt] = None


class ConversationEngine:
    """
    Routes each message according to the sender's state.

    All collaborators are injected; the engine holds no state of its own
    beyond the per-sender locks.
    """

    def __init__(
        self,
        store: PendingStore,
        ledger: LedgerInterface,
        messenger: MessengerInterface,
        extractor: TransactionExtractor,
        budget_reporter: BudgetReporter,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[SenderLocks] = None,
        timezone: str = "UTC",
        currency_symbol: str = replies.DEFAULT_CURRENCY_SYMBOL,
        max_reply_length: int = 1500,
        today: Optional[Callable[[], date]] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._messenger = messenger
        self._extractor = extractor
        self._budget_reporter = budget_reporter
        self._audit = audit_logger or AuditLogger()
        self._locks = locks or SenderLocks()
        self._timezone = timezone
        self._symbol = currency_symbol
        self._max_reply_length = max_reply_length
        self._today = today

    async def state_of(self, sender: str) -> ConversationState:
        if await self._store.has(sender):
            return ConversationState.AWAITING_CONFIRMATION
        return ConversationState.IDLE

    def _period(self) -> tuple[int, int]:
        today = self._today() if self._today else None
        return current_period(self._timezone, today)

    async def handle_message(
        self,
        sender: str,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> ConversationOutcome:
        """
        Handle one inbound message end to end.

        Collaborator exceptions propagate; the store is only changed
        after the ledger call that justifies the change has succeeded.
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._audit.log_message_received(sender, text, correlation_id)

        async with self._locks.hold(sender):
            pending = await self._store.get(sender)
            if pending is None:
                outcome = await self._handle_idle(sender, text, correlation_id)
            else:
                outcome = await self._handle_pending(sender, text, pending, correlation_id)

            outcome.reply = outcome.reply[:self._max_reply_length]
            receipt = await self._messenger.send(sender, outcome.reply)

        outcome.receipt = receipt
        if not receipt.delivered:
            await self._audit.log_delivery_failed(
                sender, receipt.error or "unknown error", correlation_id
            )
        await self._audit.record_exchange(sender, text, outcome.reply, correlation_id)
        return outcome

    # =========================================================================
    # IDLE
    # =========================================================================

    async def _handle_idle(
        self,
        sender: str,
        text: str,
        correlation_id: UUID,
    ) -> ConversationOutcome:
        command = Command.parse(text)

        if command is Command.HELP:
            return self._idle(OutcomeAction.HELP, replies.HELP_TEXT)

        if command is Command.BALANCE:
            balance = await self._ledger.current_balance()
            return self._idle(OutcomeAction.BALANCE, replies.balance_reply(balance, self._symbol))

        if command is Command.REPORT:
            month, year = self._period()
            records = await self._ledger.monthly_report(month, year)
            summary = summarize_month(records, month, year)
            return self._idle(
                OutcomeAction.REPORT,
                replies.monthly_report_reply(summary, self._symbol),
            )

        if command is Command.BUDGET:
            month, year = self._period()
            totals = await self._ledger.category_totals(month, year)
            report = await self._budget_reporter.generate(totals)
            return self._idle(OutcomeAction.BUDGET, report)

        if command in (Command.CONFIRM, Command.CANCEL):
            return self._idle(OutcomeAction.NOTHING_PENDING, replies.NOTHING_PENDING_TEXT)

        try:
            proposal = await self._extractor.extract(text)
        except ExtractionFailedError as e:
            await self._audit.log_extraction_failed(sender, e.reason.value, correlation_id)
            return self._idle(OutcomeAction.CLARIFIED, replies.clarification_reply(e.reason.value))

        await self._store.set(sender, proposal)
        await self._audit.log_proposal_created(sender, proposal, correlation_id)
        return ConversationOutcome(
            action=OutcomeAction.PROPOSED,
            reply=replies.confirmation_prompt(proposal, self._symbol),
            state=ConversationState.AWAITING_CONFIRMATION,
            proposal=proposal,
        )

    @staticmethod
    def _idle(action: OutcomeAction, reply: str) -> ConversationOutcome:
        return ConversationOutcome(
            action=action,
            reply=reply,
            state=ConversationState.IDLE,
        )

    # =========================================================================
    # AWAITING CONFIRMATION
    # =========================================================================

    async def _handle_pending(
        self,
        sender: str,
        text: str,
        proposal: TransactionProposal,
        correlation_id: UUID,
    ) -> ConversationOutcome:
        command = Command.parse(text)

        if command is Command.CONFIRM:
            await self._audit.log_user_confirmed(sender, correlation_id)
            record = await self._ledger.append(proposal)
            balance = await self._ledger.current_balance()
            await self._store.remove(sender)
            await self._audit.log_transaction_recorded(sender, record, correlation_id)
            return ConversationOutcome(
                action=OutcomeAction.RECORDED,
                reply=replies.recorded_reply(balance, self._symbol),
                state=ConversationState.IDLE,
                proposal=proposal,
                record=record,
            )

        if command is Command.CANCEL:
            await self._store.remove(sender)
            await self._audit.log_user_cancelled(sender, correlation_id)
            return ConversationOutcome(
                action=OutcomeAction.CANCELLED,
                reply=replies.CANCELLED_TEXT,
                state=ConversationState.IDLE,
                proposal=proposal,
            )

        return ConversationOutcome(
            action=OutcomeAction.REPROMPTED,
            reply=replies.REPROMPT_TEXT,
            state=ConversationState.AWAITING_CONFIRMATION,
            proposal=proposal,
        )
