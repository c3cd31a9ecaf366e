"""
Tests for transaction extractors

The Gemini extractor is driven by a fake model; no API calls are made.
"""

import pytest
from decimal import Decimal

from conftest import FakeGeminiModel

from ledgerbot.agents.extractors import (
    ExtractionFailedError,
    ExtractionFailureReason,
    FallbackTransactionExtractor,
    GeminiTransactionExtractor,
    HeuristicTransactionExtractor,
    find_json_object,
    parse_amount,
)
from ledgerbot.models.transaction import MAX_DESCRIPTION_LENGTH, TransactionKind


class TestParseAmount:
    """Tests for the integer-like amount scanner."""

    def test_plain_digits(self):
        assert parse_amount("spent 50000 on lunch") == Decimal("50000")

    def test_dot_grouping(self):
        assert parse_amount("paid 1.500.000 for rent") == Decimal("1500000")

    def test_comma_grouping(self):
        assert parse_amount("received 2,000,000 bonus") == Decimal("2000000")

    def test_first_number_wins(self):
        assert parse_amount("bought 2 coffees for 30000") == Decimal("2")

    def test_no_number(self):
        assert parse_amount("spent a lot on lunch") is None


class TestHeuristicExtractor:
    """Tests for the keyword-based extractor."""

    @pytest.mark.asyncio
    async def test_expense_with_default_category(self):
        """Test the canonical expense example."""
        proposal = await HeuristicTransactionExtractor().extract("spent 50000 on lunch")
        assert proposal.kind == TransactionKind.EXPENSE
        assert proposal.amount == Decimal("50000")
        assert proposal.category == "general"
        assert proposal.description == "spent 50000 on lunch"

    @pytest.mark.asyncio
    async def test_income_salary(self):
        """Test the canonical income example."""
        proposal = await HeuristicTransactionExtractor().extract("received 1000000 salary")
        assert proposal.kind == TransactionKind.INCOME
        assert proposal.amount == Decimal("1000000")
        assert proposal.category == "salary"
        assert proposal.description == "received 1000000 salary"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message,category",
        [
            ("spent 20000 on food", "food"),
            ("paid 15000 for taxi", "transport"),
            ("bought clothes 250000", "shopping"),
            ("paid 300000 electricity", "bills"),
            ("paid 100000 internet bill", "bills"),
        ],
    )
    async def test_expense_categories(self, message, category):
        proposal = await HeuristicTransactionExtractor().extract(message)
        assert proposal.kind == TransactionKind.EXPENSE
        assert proposal.category == category

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message,category",
        [
            ("received 500000 bonus", "bonus"),
            ("received 75000 dividend", "investment"),
            ("income 10000 from selling books", "other income"),
        ],
    )
    async def test_income_categories(self, message, category):
        proposal = await HeuristicTransactionExtractor().extract(message)
        assert proposal.kind == TransactionKind.INCOME
        assert proposal.category == category

    @pytest.mark.asyncio
    async def test_expense_keyword_beats_income_keyword(self):
        """Test that expense keywords are checked first."""
        proposal = await HeuristicTransactionExtractor().extract("paid 10000 from salary")
        assert proposal.kind == TransactionKind.EXPENSE

    @pytest.mark.asyncio
    async def test_description_is_trimmed_original(self):
        proposal = await HeuristicTransactionExtractor().extract("  Spent 5000 on FOOD  ")
        assert proposal.description == "Spent 5000 on FOOD"
        assert proposal.category == "food"

    @pytest.mark.asyncio
    async def test_no_financial_intent(self):
        with pytest.raises(ExtractionFailedError) as exc_info:
            await HeuristicTransactionExtractor().extract("I need help")
        assert exc_info.value.reason == ExtractionFailureReason.NO_FINANCIAL_INTENT

    @pytest.mark.asyncio
    async def test_missing_amount_fails_by_default(self):
        with pytest.raises(ExtractionFailedError) as exc_info:
            await HeuristicTransactionExtractor().extract("spent money on lunch")
        assert exc_info.value.reason == ExtractionFailureReason.NO_AMOUNT

    @pytest.mark.asyncio
    async def test_missing_amount_placeholder_when_enabled(self):
        extractor = HeuristicTransactionExtractor(default_amounts=True)
        expense = await extractor.extract("spent money on lunch")
        income = await extractor.extract("received my salary")
        assert expense.amount == Decimal("50000")
        assert income.amount == Decimal("1000000")

    @pytest.mark.asyncio
    async def test_zero_amount_fails(self):
        with pytest.raises(ExtractionFailedError) as exc_info:
            await HeuristicTransactionExtractor().extract("spent 0 on lunch")
        assert exc_info.value.reason == ExtractionFailureReason.NO_AMOUNT

    @pytest.mark.asyncio
    async def test_empty_message(self):
        with pytest.raises(ExtractionFailedError) as exc_info:
            await HeuristicTransactionExtractor().extract("   ")
        assert exc_info.value.reason == ExtractionFailureReason.EMPTY_MESSAGE

    @pytest.mark.asyncio
    async def test_overlong_message_is_not_reported_as_missing_amount(self):
        message = "spent 50000 on lunch " + "x" * MAX_DESCRIPTION_LENGTH
        with pytest.raises(ExtractionFailedError) as exc_info:
            await HeuristicTransactionExtractor().extract(message)
        assert exc_info.value.reason == ExtractionFailureReason.MESSAGE_TOO_LONG

    @pytest.mark.asyncio
    async def test_message_at_length_limit_is_accepted(self):
        message = "spent 50000 on lunch ".ljust(MAX_DESCRIPTION_LENGTH, "x")
        proposal = await HeuristicTransactionExtractor().extract(message)
        assert len(proposal.description) == MAX_DESCRIPTION_LENGTH


class TestFindJsonObject:
    """Tests for locating the JSON object in an LLM reply."""

    def test_object_inside_prose(self):
        text = 'Sure! Here it is: {"type": "expense", "amount": 5} Hope that helps.'
        assert find_json_object(text) == {"type": "expense", "amount": 5}

    def test_braces_inside_strings_are_ignored(self):
        text = '{"type": "expense", "description": "lunch {with} friends", "amount": 1}'
        assert find_json_object(text)["description"] == "lunch {with} friends"

    def test_skips_undecodable_candidate(self):
        text = "{not json} then {\"type\": \"income\"}"
        assert find_json_object(text) == {"type": "income"}

    def test_first_balanced_object_wins(self):
        text = '{"a": 1} {"b": 2}'
        assert find_json_object(text) == {"a": 1}

    def test_no_object(self):
        assert find_json_object("no braces here") is None
        assert find_json_object("{unterminated") is None


class TestGeminiExtractor:
    """Tests for the Gemini-backed extractor."""

    @pytest.mark.asyncio
    async def test_valid_reply(self):
        model = FakeGeminiModel(
            '```json\n{"type": "expense", "amount": 45000, '
            '"category": "Food", "description": "lunch with team"}\n```'
        )
        proposal = await GeminiTransactionExtractor(model=model).extract("lunch 45k")
        assert proposal.kind == TransactionKind.EXPENSE
        assert proposal.amount == Decimal("45000")
        assert proposal.category == "food"
        assert "lunch 45k" in model.prompts[0]

    @pytest.mark.asyncio
    async def test_missing_field_fails(self):
        model = FakeGeminiModel('{"type": "income", "amount": 100, "category": "salary"}')
        with pytest.raises(ExtractionFailedError) as exc_info:
            await GeminiTransactionExtractor(model=model).extract("got paid")
        assert exc_info.value.reason == ExtractionFailureReason.INVALID_REPLY

    @pytest.mark.asyncio
    async def test_empty_field_fails(self):
        model = FakeGeminiModel(
            '{"type": "income", "amount": 100, "category": "", "description": "x"}'
        )
        with pytest.raises(ExtractionFailedError):
            await GeminiTransactionExtractor(model=model).extract("got paid")

    @pytest.mark.asyncio
    async def test_non_transaction_reply(self):
        model = FakeGeminiModel('{"type": "none"}')
        with pytest.raises(ExtractionFailedError) as exc_info:
            await GeminiTransactionExtractor(model=model).extract("hello there")
        assert exc_info.value.reason == ExtractionFailureReason.NO_FINANCIAL_INTENT

    @pytest.mark.asyncio
    async def test_reply_without_json(self):
        model = FakeGeminiModel("I am not sure what you mean.")
        with pytest.raises(ExtractionFailedError) as exc_info:
            await GeminiTransactionExtractor(model=model).extract("hmm")
        assert exc_info.value.reason == ExtractionFailureReason.INVALID_REPLY

    @pytest.mark.asyncio
    async def test_backend_error(self):
        model = FakeGeminiModel(error=RuntimeError("quota exceeded"))
        with pytest.raises(ExtractionFailedError) as exc_info:
            await GeminiTransactionExtractor(model=model).extract("spent 10 on food")
        assert exc_info.value.reason == ExtractionFailureReason.BACKEND_ERROR

    def test_requires_settings_or_model(self):
        with pytest.raises(ValueError):
            GeminiTransactionExtractor()


class TestFallbackExtractor:
    """Tests for the Gemini-then-heuristic chain."""

    @pytest.mark.asyncio
    async def test_primary_result_used(self):
        model = FakeGeminiModel(
            '{"type": "income", "amount": "250000", "category": "bonus", '
            '"description": "year end bonus"}'
        )
        extractor = FallbackTransactionExtractor(
            primary=GeminiTransactionExtractor(model=model),
            fallback=HeuristicTransactionExtractor(),
        )
        proposal = await extractor.extract("bonus came in")
        assert proposal.category == "bonus"
        assert proposal.description == "year end bonus"

    @pytest.mark.asyncio
    async def test_heuristic_used_on_backend_error(self):
        extractor = FallbackTransactionExtractor(
            primary=GeminiTransactionExtractor(model=FakeGeminiModel(error=RuntimeError("down"))),
            fallback=HeuristicTransactionExtractor(),
        )
        proposal = await extractor.extract("spent 50000 on lunch")
        assert proposal.category == "general"
        assert proposal.amount == Decimal("50000")

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self):
        extractor = FallbackTransactionExtractor(
            primary=GeminiTransactionExtractor(model=FakeGeminiModel("nothing")),
            fallback=HeuristicTransactionExtractor(),
        )
        with pytest.raises(ExtractionFailedError) as exc_info:
            await extractor.extract("good morning")
        assert exc_info.value.reason == ExtractionFailureReason.NO_FINANCIAL_INTENT
