"""
Report Aggregation

DESIGN DECISION: Aggregation is DETERMINISTIC and storage-agnostic.
Every ledger implementation fetches its records and hands them to these
functions, so the Sheets ledger, the in-memory ledger and the degraded
buffer all report identically.

The AI only ever sees the output of these functions (for the budget
narrative). It never computes totals itself.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ledgerbot.models.transaction import (
    CategoryTotals,
    LedgerRecord,
    MonthlySummary,
    TransactionKind,
)


def current_period(tz_name: str, today: Optional[date] = None) -> tuple[int, int]:
    """(month, year) of today in the given timezone."""
    if today is None:
        today = datetime.now(ZoneInfo(tz_name)).date()
    return today.month, today.year


def in_month(record: LedgerRecord, month: int, year: int, tz_name: Optional[str] = None) -> bool:
    """
    True if the record's timestamp falls in month/year.

    Timestamps are compared in tz_name when given, otherwise in the
    timezone they were stored with.
    """
    stamp = record.timestamp
    if tz_name and stamp.tzinfo is not None:
        stamp = stamp.astimezone(ZoneInfo(tz_name))
    return stamp.month == month and stamp.year == year


def filter_month(
    records: Iterable[LedgerRecord],
    month: int,
    year: int,
    tz_name: Optional[str] = None,
) -> list[LedgerRecord]:
    """Records of one calendar month, in ledger order."""
    return [r for r in records if in_month(r, month, year, tz_name)]


def summarize_month(
    records: Iterable[LedgerRecord],
    month: int,
    year: int,
) -> MonthlySummary:
    """Sum a month's records by kind."""
    total_income = Decimal("0")
    total_expense = Decimal("0")
    count = 0

    for record in records:
        count += 1
        if record.kind == TransactionKind.INCOME:
            total_income += record.amount
        else:
            total_expense += record.amount

    return MonthlySummary(
        month=month,
        year=year,
        total_income=total_income,
        total_expense=total_expense,
        record_count=count,
    )


def category_totals(records: Iterable[LedgerRecord]) -> CategoryTotals:
    """
    Total amount per category, split by kind.

    Dict insertion order follows the first appearance of each category,
    which the budget report relies on for tie-breaking.
    """
    totals = CategoryTotals()
    for record in records:
        bucket = totals.income if record.kind == TransactionKind.INCOME else totals.expense
        bucket[record.category] = bucket.get(record.category, Decimal("0")) + record.amount
    return totals


def top_categories(
    totals: dict[str, Decimal],
    limit: int = 3,
) -> list[tuple[str, Decimal]]:
    """
    Largest categories first.

    sorted() is stable, so equal amounts keep first-seen order.
    """
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]
