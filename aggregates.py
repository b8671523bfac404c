"""Dashboard aggregates computed from an in-memory transaction set.

Everything here is pure: callers load the rows (owner-scoped) and pass them
in. Amounts are summed as integer cents.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol

from models import TransactionType
from periods import month_key, month_window, trailing_window

UNCATEGORIZED_LABEL = "Uncategorized"
TREND_MONTHS = 12


class LedgerRow(Protocol):
    type: TransactionType
    amount_cents: int
    date: date
    category_id: Optional[int]


class NamedCategory(Protocol):
    id: int
    name: str


@dataclass(frozen=True)
class MonthlyTotals:
    month: str
    income_cents: int
    expense_cents: int


@dataclass(frozen=True)
class CategorySlice:
    name: str
    value_cents: int


@dataclass(frozen=True)
class MonthlyExpense:
    month: str
    total_cents: int


@dataclass(frozen=True)
class PeriodTotals:
    income_cents: int
    expense_cents: int

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass(frozen=True)
class DashboardStats:
    month: str
    monthly_trend: list[MonthlyTotals]
    category_breakdown: list[CategorySlice]
    category_trend: list[MonthlyExpense]
    totals: PeriodTotals


def monthly_trend(rows: Iterable[LedgerRow], month: str) -> list[MonthlyTotals]:
    window = trailing_window(month, TREND_MONTHS)
    buckets: dict[str, list[int]] = {}
    for row in rows:
        if not window.contains(row.date):
            continue
        bucket = buckets.setdefault(month_key(row.date), [0, 0])
        if row.type == TransactionType.income:
            bucket[0] += row.amount_cents
        else:
            bucket[1] += row.amount_cents
    return [
        MonthlyTotals(key, income, expense)
        for key, (income, expense) in sorted(buckets.items())
    ]


def category_breakdown(
    rows: Iterable[LedgerRow], categories: Iterable[NamedCategory], month: str
) -> list[CategorySlice]:
    window = month_window(month)
    names = {category.id: category.name for category in categories}
    totals: dict[str, int] = {}
    for row in rows:
        if row.type != TransactionType.expense or not window.contains(row.date):
            continue
        name = names.get(row.category_id, UNCATEGORIZED_LABEL)
        totals[name] = totals.get(name, 0) + row.amount_cents
    # sorted() is stable, so equal totals keep first-seen order.
    items = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategorySlice(name, value) for name, value in items]


def category_trend(
    rows: Iterable[LedgerRow], month: str, category_id: Optional[int] = None
) -> list[MonthlyExpense]:
    # A category filter only ever matches expenses; income has no category.
    window = trailing_window(month, TREND_MONTHS)
    totals: dict[str, int] = {}
    for row in rows:
        if row.type != TransactionType.expense or not window.contains(row.date):
            continue
        if category_id is not None and row.category_id != category_id:
            continue
        key = month_key(row.date)
        totals[key] = totals.get(key, 0) + row.amount_cents
    return [MonthlyExpense(key, total) for key, total in sorted(totals.items())]


def period_totals(rows: Iterable[LedgerRow], month: str) -> PeriodTotals:
    window = month_window(month)
    income = 0
    expense = 0
    for row in rows:
        if not window.contains(row.date):
            continue
        if row.type == TransactionType.income:
            income += row.amount_cents
        else:
            expense += row.amount_cents
    return PeriodTotals(income, expense)


def summarize(
    rows: Iterable[LedgerRow],
    categories: Iterable[NamedCategory],
    month: str,
    category_id: Optional[int] = None,
) -> DashboardStats:
    rows = list(rows)
    return DashboardStats(
        month=month,
        monthly_trend=monthly_trend(rows, month),
        category_breakdown=category_breakdown(rows, categories, month),
        category_trend=category_trend(rows, month, category_id),
        totals=period_totals(rows, month),
    )
