"""
Core Data Models for the Ledger Bot

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Reject incomplete extractions instead of carrying partial data
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: A TransactionProposal can only exist if it is complete.
Every extractor builds one through this model, so "amount > 0 and
non-empty category/description" is enforced in one place.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a transaction relative to the household balance."""
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionKind.INCOME else -1


# =============================================================================
# PROPOSAL - what the extractor thinks the user meant
# =============================================================================

MAX_DESCRIPTION_LENGTH = 2000


class TransactionProposal(BaseModel):
    """
    An extracted transaction awaiting user confirmation.

    CRITICAL: This is PROPOSED data, NOT verified.
    It is only written to the ledger after the sender replies "confirm".
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: TransactionKind = Field(
        ...,
        description="Income or expense"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Transaction amount in the ledger currency"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Short category label"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="Free-form description, usually the original message"
    )

    @field_validator('category')
    @classmethod
    def normalize_category(cls, v: str) -> str:
        return v.lower()


# =============================================================================
# LEDGER MODELS
# =============================================================================

class LedgerRecord(BaseModel):
    """
    A confirmed transaction as persisted in the ledger.

    The balance is the running balance AFTER this record was appended.
    It is derived at append time, never recomputed globally.
    """

    timestamp: datetime = Field(
        ...,
        description="When the record was appended (timezone-aware)"
    )
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    balance: Decimal = Field(
        ...,
        description="Running balance after this record"
    )

    @classmethod
    def from_proposal(
        cls,
        proposal: TransactionProposal,
        previous_balance: Decimal,
        timestamp: datetime,
    ) -> "LedgerRecord":
        """Build the record for a proposal appended after previous_balance."""
        return cls(
            timestamp=timestamp,
            kind=proposal.kind,
            amount=proposal.amount,
            category=proposal.category,
            description=proposal.description,
            balance=previous_balance + proposal.kind.sign * proposal.amount,
        )

    def matches(self, proposal: TransactionProposal) -> bool:
        """True if this record carries exactly the proposal's fields."""
        return (
            self.kind == proposal.kind
            and self.amount == proposal.amount
            and self.category == proposal.category
            and self.description == proposal.description
        )


class CategoryTotals(BaseModel):
    """Per-category totals for one period, split by kind."""

    income: dict[str, Decimal] = Field(default_factory=dict)
    expense: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def total_income(self) -> Decimal:
        return sum(self.income.values(), Decimal("0"))

    @property
    def total_expense(self) -> Decimal:
        return sum(self.expense.values(), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.income and not self.expense


class MonthlySummary(BaseModel):
    """Income/expense totals for one calendar month."""

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1970)
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    record_count: int = Field(default=0, ge=0)

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense


# =============================================================================
# TRANSPORT MODELS
# =============================================================================

class DeliveryStatus(str, Enum):
    """Outcome of an outbound message."""
    SENT = "sent"
    QUEUED = "queued"
    MOCK = "mock"
    ERROR = "error"


class DeliveryReceipt(BaseModel):
    """
    Receipt for an outbound message.

    Messengers never raise; a failed send yields status=ERROR.
    """

    sid: str
    status: DeliveryStatus
    to: str
    body: str
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status != DeliveryStatus.ERROR


class InboundMessage(BaseModel):
    """A validated inbound chat message."""
    model_config = ConfigDict(str_strip_whitespace=True)

    sender: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)

    @field_validator('sender')
    @classmethod
    def strip_transport_prefix(cls, v: str) -> str:
        """Twilio prefixes WhatsApp identities with 'whatsapp:'."""
        return v.replace("whatsapp:", "").strip()
