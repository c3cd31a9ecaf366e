"""
Budget Reports

Narrate a month's category totals for the "budget" command.

CRITICAL: The totals are computed deterministically before either
reporter sees them. The Gemini reporter only rephrases real numbers and
falls back to the deterministic rendering on any backend error.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, Optional

import google.generativeai as genai
import structlog

from ledgerbot.config import GeminiSettings
from ledgerbot.models.transaction import CategoryTotals
from ledgerbot.queries.reports import top_categories


logger = structlog.get_logger(__name__)

# WhatsApp body limit used for every generated reply
MAX_REPORT_LENGTH = 1500
TOP_EXPENSE_LIMIT = 3


class BudgetReporter(ABC):
    """Turns category totals into a chat reply."""

    @abstractmethod
    async def generate(self, totals: CategoryTotals) -> str:
        pass


class DeterministicBudgetReporter(BudgetReporter):
    """Fixed-layout report: totals, top expenses, income breakdown."""

    def __init__(self, format_currency: Callable[[Decimal], str]):
        self._format = format_currency

    def render(self, totals: CategoryTotals) -> str:
        fmt = self._format
        lines = [
            "📊 Budget Analysis",
            "",
            f"💰 Total Income: {fmt(totals.total_income)}",
            f"💸 Total Expenses: {fmt(totals.total_expense)}",
            f"💵 Net: {fmt(totals.total_income - totals.total_expense)}",
            "",
        ]

        if totals.expense:
            lines.append("🔝 Top expense categories:")
            ranked = top_categories(totals.expense, TOP_EXPENSE_LIMIT)
            for position, (category, amount) in enumerate(ranked, start=1):
                lines.append(f"{position}. {category}: {fmt(amount)}")
        else:
            lines.append("✨ No expenses recorded this month.")

        if totals.income:
            lines.append("")
            lines.append("💼 Income by category:")
            for category, amount in totals.income.items():
                lines.append(f"• {category}: {fmt(amount)}")

        return "\n".join(lines)

    async def generate(self, totals: CategoryTotals) -> str:
        return self.render(totals)


BUDGET_PROMPT = """You are a friendly personal finance assistant replying on WhatsApp.

Write a short budget analysis for this month using ONLY the numbers below.
Do not invent categories or amounts.

Expenses by category: {expense}
Income by category: {income}
Total income: {total_income}
Total expenses: {total_expense}

Mention the biggest spending categories and give one or two practical tips.
Keep it under 1000 characters."""


class GeminiBudgetReporter(BudgetReporter):
    """
    Gemini-narrated report.

    BOUNDARIES:
    - Sees only the aggregated totals
    - Reply is trimmed and cut to MAX_REPORT_LENGTH
    - Any backend failure yields the deterministic report instead
    """

    def __init__(
        self,
        fallback: DeterministicBudgetReporter,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        max_length: int = MAX_REPORT_LENGTH,
    ):
        self._fallback = fallback
        self._max_length = max_length
        if model is not None:
            self._model = model
        elif settings is not None:
            genai.configure(api_key=settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": 0.7,
                    "max_output_tokens": settings.max_tokens,
                },
            )
        else:
            raise ValueError("Either settings or model is required")

    async def generate(self, totals: CategoryTotals) -> str:
        if totals.is_empty:
            return await self._fallback.generate(totals)

        prompt = BUDGET_PROMPT.format(
            expense={k: str(v) for k, v in totals.expense.items()},
            income={k: str(v) for k, v in totals.income.items()},
            total_income=totals.total_income,
            total_expense=totals.total_expense,
        )
        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text.strip()
        except Exception as e:
            logger.warning("budget_report_fallback", error=str(e))
            return await self._fallback.generate(totals)

        if not text:
            logger.warning("budget_report_fallback", error="empty reply")
            return await self._fallback.generate(totals)
        return text[:self._max_length]
