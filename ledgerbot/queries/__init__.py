"""Report aggregation package."""

from ledgerbot.queries.reports import (
    category_totals,
    current_period,
    filter_month,
    summarize_month,
    top_categories,
)

__all__ = [
    "category_totals",
    "current_period",
    "filter_month",
    "summarize_month",
    "top_categories",
]
