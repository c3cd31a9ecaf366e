"""
Shared fixtures for Ledger Bot tests

No test talks to Twilio, Google Sheets or Gemini. The fakes below stand
in for their SDK objects at the seams our adapters expose.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from functools import partial

import pytest

from ledgerbot.agents import DeterministicBudgetReporter, HeuristicTransactionExtractor
from ledgerbot.audit import AuditLogger
from ledgerbot.conversation import ConversationEngine, InMemoryPendingStore, SenderLocks
from ledgerbot.conversation.replies import format_currency
from ledgerbot.models.transaction import (
    DeliveryReceipt,
    DeliveryStatus,
    TransactionKind,
    TransactionProposal,
)
from ledgerbot.services.messaging import MessengerInterface, MockMessenger
from ledgerbot.services.storage import InMemoryAuditStorage, InMemoryLedger, StorageError


FIXED_NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
FIXED_TODAY = date(2026, 10, 19)


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient: rows per worksheet, optional outage."""

    transactions_sheet_name = "Transactions"
    chat_log_sheet_name = "ChatLog"

    def __init__(self):
        self.rows: dict[str, list[list]] = {}
        self.failing = False
        self.failing_writes = False

    def read_rows(self, title: str, columns: list[str]) -> list[list[str]]:
        if self.failing:
            raise StorageError(f"Failed to read {title}: quota exceeded")
        return [list(row) for row in self.rows.get(title, [])]

    def append_row(self, title: str, columns: list[str], row: list) -> None:
        if self.failing or self.failing_writes:
            raise StorageError(f"Failed to append to {title}: quota exceeded")
        self.rows.setdefault(title, []).append([str(value) for value in row])


class FakeGeminiResponse:
    def __init__(self, text: str):
        self.text = text


class FakeGeminiModel:
    """Replays a canned reply (or raises) for generate_content_async."""

    def __init__(self, reply: str = "", error: Exception = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt: str) -> FakeGeminiResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return FakeGeminiResponse(self.reply)


class FailingMessenger(MessengerInterface):
    """Every delivery fails, the way the Twilio messenger reports it."""

    def __init__(self):
        self.attempts = 0

    async def send(self, to: str, body: str) -> DeliveryReceipt:
        self.attempts += 1
        return DeliveryReceipt(
            sid="ERROR_1",
            status=DeliveryStatus.ERROR,
            to=to,
            body=body,
            error="network unreachable",
        )


def expense(amount: str, category: str, description: str = "test expense") -> TransactionProposal:
    return TransactionProposal(
        kind=TransactionKind.EXPENSE,
        amount=Decimal(amount),
        category=category,
        description=description,
    )


def income(amount: str, category: str, description: str = "test income") -> TransactionProposal:
    return TransactionProposal(
        kind=TransactionKind.INCOME,
        amount=Decimal(amount),
        category=category,
        description=description,
    )


@pytest.fixture
def ledger():
    return InMemoryLedger(timezone="UTC", clock=lambda: FIXED_NOW)


@pytest.fixture
def store():
    return InMemoryPendingStore()


@pytest.fixture
def messenger():
    return MockMessenger()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def engine(store, ledger, messenger, audit_storage):
    return ConversationEngine(
        store=store,
        ledger=ledger,
        messenger=messenger,
        extractor=HeuristicTransactionExtractor(),
        budget_reporter=DeterministicBudgetReporter(partial(format_currency, symbol="Rp")),
        audit_logger=AuditLogger(audit_storage),
        locks=SenderLocks(),
        timezone="UTC",
        today=lambda: FIXED_TODAY,
    )
