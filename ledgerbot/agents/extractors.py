"""
Transaction Extractors

Turn a free-text chat message into a TransactionProposal.

DESIGN DECISION: Extraction is a strategy behind one interface:
1. GeminiTransactionExtractor - asks the LLM for a JSON object
2. HeuristicTransactionExtractor - keyword table + first number
3. FallbackTransactionExtractor - Gemini first, heuristic on failure

CRITICAL BOUNDARIES:
- An extractor NEVER persists anything. It only proposes.
- An extractor NEVER returns a partial proposal. Missing data is a
  failure (ExtractionFailedError), not a guess.
- The LLM is a TRANSLATOR. Its reply is parsed and validated through
  TransactionProposal like any other untrusted input.
"""

import json
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from ledgerbot.config import GeminiSettings
from ledgerbot.models.transaction import (
    MAX_DESCRIPTION_LENGTH,
    TransactionKind,
    TransactionProposal,
)


logger = structlog.get_logger(__name__)


class ExtractionFailureReason(str, Enum):
    """Why a message could not be turned into a proposal."""
    NO_FINANCIAL_INTENT = "no_financial_intent"
    NO_AMOUNT = "no_amount"
    INVALID_REPLY = "invalid_reply"
    BACKEND_ERROR = "backend_error"
    EMPTY_MESSAGE = "empty_message"
    MESSAGE_TOO_LONG = "message_too_long"


class ExtractionFailedError(Exception):
    """Raised when a message does not yield a complete proposal."""

    def __init__(self, reason: ExtractionFailureReason, message: str = ""):
        self.reason = reason
        self.message = message or reason.value
        super().__init__(f"{reason.value}: {self.message}")


class TransactionExtractor(ABC):
    """Interface for text-to-transaction extraction."""

    @abstractmethod
    async def extract(self, message: str) -> TransactionProposal:
        """
        Extract a transaction proposal from a chat message.

        Raises:
            ExtractionFailedError: If no complete proposal can be built
        """
        pass


# =============================================================================
# HEURISTIC
# =============================================================================

EXPENSE_KEYWORDS = ("spent", "bought", "paid")
INCOME_KEYWORDS = ("received", "salary", "income")

# Checked in order; the first hit wins.
EXPENSE_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("food", ("food",)),
    ("transport", ("transport", "taxi", "bus", "fuel")),
    ("shopping", ("shopping", "clothes")),
    ("bills", ("bill", "electricity", "internet", "water")),
)
INCOME_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("salary", ("salary",)),
    ("bonus", ("bonus",)),
    ("investment", ("investment", "dividend")),
)
DEFAULT_EXPENSE_CATEGORY = "general"
DEFAULT_INCOME_CATEGORY = "other income"

DEFAULT_AMOUNTS = {
    TransactionKind.EXPENSE: Decimal("50000"),
    TransactionKind.INCOME: Decimal("1000000"),
}

# "1.500.000", "1,500,000" or a plain run of digits
AMOUNT_PATTERN = re.compile(r"\d{1,3}(?:[.,]\d{3})+(?!\d)|\d+")


def parse_amount(text: str) -> Optional[Decimal]:
    """Return the first integer-like amount in text, separators dropped."""
    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    return Decimal(re.sub(r"[.,]", "", match.group()))


def _match_category(
    lowered: str,
    table: tuple[tuple[str, tuple[str, ...]], ...],
    default: str,
) -> str:
    for category, keywords in table:
        if any(keyword in lowered for keyword in keywords):
            return category
    return default


class HeuristicTransactionExtractor(TransactionExtractor):
    """
    Keyword-based extractor. Deterministic, needs no backend.

    With default_amounts=True a message without a number gets a
    placeholder amount instead of failing.
    """

    def __init__(self, default_amounts: bool = False):
        self._default_amounts = default_amounts

    def _classify(self, lowered: str) -> TransactionKind:
        if any(keyword in lowered for keyword in EXPENSE_KEYWORDS):
            return TransactionKind.EXPENSE
        if any(keyword in lowered for keyword in INCOME_KEYWORDS):
            return TransactionKind.INCOME
        raise ExtractionFailedError(
            ExtractionFailureReason.NO_FINANCIAL_INTENT,
            "No income or expense keyword found",
        )

    async def extract(self, message: str) -> TransactionProposal:
        text = (message or "").strip()
        if not text:
            raise ExtractionFailedError(ExtractionFailureReason.EMPTY_MESSAGE)
        if len(text) > MAX_DESCRIPTION_LENGTH:
            raise ExtractionFailedError(
                ExtractionFailureReason.MESSAGE_TOO_LONG,
                f"Message longer than {MAX_DESCRIPTION_LENGTH} characters",
            )

        lowered = text.lower()
        kind = self._classify(lowered)

        amount = parse_amount(text)
        if amount is None:
            if not self._default_amounts:
                raise ExtractionFailedError(
                    ExtractionFailureReason.NO_AMOUNT,
                    "No amount found in message",
                )
            amount = DEFAULT_AMOUNTS[kind]

        if kind is TransactionKind.EXPENSE:
            category = _match_category(
                lowered, EXPENSE_CATEGORIES, DEFAULT_EXPENSE_CATEGORY
            )
        else:
            category = _match_category(
                lowered, INCOME_CATEGORIES, DEFAULT_INCOME_CATEGORY
            )

        try:
            return TransactionProposal(
                kind=kind,
                amount=amount,
                category=category,
                description=text,
            )
        except ValidationError as e:
            # length was checked above, so the amount is zero
            raise ExtractionFailedError(
                ExtractionFailureReason.NO_AMOUNT, str(e)
            ) from e


# =============================================================================
# GEMINI
# =============================================================================

EXTRACTION_PROMPT = """You are reading a chat message sent to a personal finance bookkeeping bot.

Decide whether the message records money coming in (income) or going out (expense).

Message: "{message}"

Respond with ONLY a JSON object in this exact format:
{{"type": "income" or "expense", "amount": 50000, "category": "short category", "description": "short description"}}

Rules:
- amount is a plain number without currency symbols or thousands separators
- category is one or two lowercase words (food, transport, salary, ...)
- If the message does not describe a transaction, respond with {{"type": "none"}}
"""


def find_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Return the first balanced {...} substring of text that decodes as a
    JSON object. Braces inside quoted strings are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    try:
                        data = json.loads(text[start:index + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(data, dict):
                        return data
                    break
        start = text.find("{", start + 1)
    return None


def _require(data: dict[str, Any], field: str) -> Any:
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ExtractionFailedError(
            ExtractionFailureReason.INVALID_REPLY,
            f"Missing field: {field}",
        )
    return value


def proposal_from_reply(data: dict[str, Any]) -> TransactionProposal:
    """Validate a decoded LLM reply into a proposal."""
    kind_value = str(data.get("type", "")).strip().lower()
    if kind_value not in (TransactionKind.INCOME.value, TransactionKind.EXPENSE.value):
        raise ExtractionFailedError(
            ExtractionFailureReason.NO_FINANCIAL_INTENT,
            f"Reply type was {kind_value!r}",
        )

    raw_amount = _require(data, "amount")
    category = _require(data, "category")
    description = _require(data, "description")

    try:
        amount = Decimal(str(raw_amount).replace(",", ""))
    except InvalidOperation as e:
        raise ExtractionFailedError(
            ExtractionFailureReason.INVALID_REPLY,
            f"Unparseable amount: {raw_amount!r}",
        ) from e

    try:
        return TransactionProposal(
            kind=TransactionKind(kind_value),
            amount=amount,
            category=str(category),
            description=str(description),
        )
    except ValidationError as e:
        raise ExtractionFailedError(
            ExtractionFailureReason.INVALID_REPLY, str(e)
        ) from e


class GeminiTransactionExtractor(TransactionExtractor):
    """
    LLM extractor backed by Google Gemini.

    BOUNDARIES:
    - Only the JSON object in the reply is used; prose is ignored
    - Any field the model leaves out makes the extraction fail
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        if model is not None:
            self._model = model
        elif settings is not None:
            self._model = self._configure_genai(settings)
        else:
            raise ValueError("Either settings or model is required")

    @staticmethod
    def _configure_genai(settings: GeminiSettings):
        """Configure Google Generative AI."""
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            },
        )

    async def extract(self, message: str) -> TransactionProposal:
        text = (message or "").strip()
        if not text:
            raise ExtractionFailedError(ExtractionFailureReason.EMPTY_MESSAGE)

        prompt = EXTRACTION_PROMPT.format(message=text.replace('"', "'"))
        try:
            response = await self._model.generate_content_async(prompt)
            reply = response.text.strip()
        except Exception as e:
            raise ExtractionFailedError(
                ExtractionFailureReason.BACKEND_ERROR, str(e)
            ) from e

        data = find_json_object(reply)
        if data is None:
            raise ExtractionFailedError(
                ExtractionFailureReason.INVALID_REPLY,
                "No JSON object in reply",
            )
        return proposal_from_reply(data)


# =============================================================================
# FALLBACK CHAIN
# =============================================================================

class FallbackTransactionExtractor(TransactionExtractor):
    """Tries the primary extractor, then the fallback on any failure."""

    def __init__(
        self,
        primary: TransactionExtractor,
        fallback: TransactionExtractor,
    ):
        self._primary = primary
        self._fallback = fallback

    async def extract(self, message: str) -> TransactionProposal:
        try:
            return await self._primary.extract(message)
        except ExtractionFailedError as e:
            logger.info(
                "extraction_fallback",
                reason=e.reason.value,
                error=e.message,
            )
        return await self._fallback.extract(message)
