"""AI Agents package."""

from ledgerbot.agents.budget import (
    BudgetReporter,
    DeterministicBudgetReporter,
    GeminiBudgetReporter,
)
from ledgerbot.agents.extractors import (
    ExtractionFailedError,
    ExtractionFailureReason,
    FallbackTransactionExtractor,
    GeminiTransactionExtractor,
    HeuristicTransactionExtractor,
    TransactionExtractor,
    find_json_object,
    parse_amount,
)

__all__ = [
    "BudgetReporter",
    "DeterministicBudgetReporter",
    "GeminiBudgetReporter",
    "ExtractionFailedError",
    "ExtractionFailureReason",
    "FallbackTransactionExtractor",
    "GeminiTransactionExtractor",
    "HeuristicTransactionExtractor",
    "TransactionExtractor",
    "find_json_object",
    "parse_amount",
]
