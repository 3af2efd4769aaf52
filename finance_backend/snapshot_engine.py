from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
import json
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from finance_backend.records import (
    ZERO,
    TransactionRecord,
    ensure_utc,
    is_blank,
    transaction_payload,
)

TOP_CATEGORY_LIMIT = 5
RECENT_TRANSACTION_LIMIT = 60
WEEK_DAYS = 7


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal
    count: int

    def to_dict(self) -> dict:
        return {"category": self.category, "total": self.total, "count": self.count}


@dataclass(frozen=True)
class MonthlyTotals:
    month: str
    income: Decimal
    expense: Decimal

    def to_dict(self) -> dict:
        return {"month": self.month, "income": self.income, "expense": self.expense}


@dataclass(frozen=True)
class Snapshot:
    user_id: str
    range_start: datetime
    range_end: datetime
    total_income: Decimal
    total_expense: Decimal
    net: Decimal
    count: int
    daily_income: Decimal
    daily_expense: Decimal
    top_expense_categories: List[CategoryTotal]
    top_income_categories: List[CategoryTotal]
    monthly_breakdown: List[MonthlyTotals]
    largest_expense: Optional[TransactionRecord]
    largest_income: Optional[TransactionRecord]
    recent_transactions: List[TransactionRecord]

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "range": {
                "from": self.range_start.isoformat(),
                "to": self.range_end.isoformat(),
            },
            "totals": {
                "income": self.total_income,
                "expense": self.total_expense,
                "net": self.net,
                "count": self.count,
            },
            "averages": {
                "dailyExpense": self.daily_expense,
                "dailyIncome": self.daily_income,
            },
            "topExpenseCategories": [item.to_dict() for item in self.top_expense_categories],
            "topIncomeCategories": [item.to_dict() for item in self.top_income_categories],
            "monthlyBreakdown": [item.to_dict() for item in self.monthly_breakdown],
            "largestExpense": transaction_payload(self.largest_expense),
            "largestIncome": transaction_payload(self.largest_income),
            "recentTransactions": [
                transaction_payload(txn) for txn in self.recent_transactions
            ],
        }


@dataclass(frozen=True)
class WeeklyComparison:
    current_start: date
    current_end: date
    current_expense: Decimal
    previous_start: date
    previous_end: date
    previous_expense: Decimal
    difference: Decimal
    percentage_change: Optional[Decimal]

    def to_dict(self) -> dict:
        return {
            "currentWeek": {
                "start": self.current_start.isoformat(),
                "end": self.current_end.isoformat(),
                "expense": self.current_expense,
            },
            "previousWeek": {
                "start": self.previous_start.isoformat(),
                "end": self.previous_end.isoformat(),
                "expense": self.previous_expense,
            },
            "difference": self.difference,
            "percentageChange": self.percentage_change,
        }


@dataclass(frozen=True)
class DigestMetrics:
    range_start: datetime
    range_end: datetime
    total_income: Decimal
    total_expense: Decimal
    net: Decimal
    transaction_count: int
    top_category: Optional[CategoryTotal]
    largest_expense: Optional[TransactionRecord]
    largest_income: Optional[TransactionRecord]

    def to_dict(self) -> dict:
        top_category = None
        if self.top_category is not None:
            top_category = {
                "category": self.top_category.category,
                "total": self.top_category.total,
            }
        return {
            "period": {
                "from": self.range_start.isoformat(),
                "to": self.range_end.isoformat(),
            },
            "totals": {
                "income": self.total_income,
                "expense": self.total_expense,
                "net": self.net,
                "transactions": self.transaction_count,
            },
            "topCategory": top_category,
            "largestExpense": transaction_payload(self.largest_expense),
            "largestIncome": transaction_payload(self.largest_income),
        }


def ensure_range(range_start: datetime, range_end: datetime) -> None:
    if ensure_utc(range_start) > ensure_utc(range_end):
        raise ValueError("range_start must be on or before range_end.")


def build_snapshot(
    user_id: str | int,
    transactions: Iterable[TransactionRecord],
    range_start: datetime,
    range_end: datetime,
) -> Snapshot:
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    ensure_range(range_start, range_end)

    records = [txn.normalized() for txn in transactions]
    expenses, incomes = _split(records)
    total_expense = _sum_amounts(expenses)
    total_income = _sum_amounts(incomes)
    total_days = count_days(range_start, range_end)

    return Snapshot(
        user_id=str(user_id),
        range_start=range_start,
        range_end=range_end,
        total_income=total_income,
        total_expense=total_expense,
        net=total_income - total_expense,
        count=len(records),
        daily_income=total_income / total_days,
        daily_expense=total_expense / total_days,
        top_expense_categories=top_categories(expenses, TOP_CATEGORY_LIMIT),
        top_income_categories=top_categories(incomes, TOP_CATEGORY_LIMIT),
        monthly_breakdown=monthly_breakdown(records),
        largest_expense=_largest(expenses),
        largest_income=_largest(incomes),
        recent_transactions=sorted(records, key=lambda txn: txn.date, reverse=True)[
            :RECENT_TRANSACTION_LIMIT
        ],
    )


def build_weekly_comparison(
    transactions: Iterable[TransactionRecord], reference_end: datetime
) -> WeeklyComparison:
    end = ensure_utc(reference_end).date()
    current_start = end - timedelta(days=WEEK_DAYS - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=WEEK_DAYS - 1)

    current_expense = ZERO
    previous_expense = ZERO
    for txn in transactions:
        if txn.is_income:
            continue
        txn_day = ensure_utc(txn.date).date()
        if current_start <= txn_day <= end:
            current_expense += txn.amount
        elif previous_start <= txn_day <= previous_end:
            previous_expense += txn.amount

    difference = current_expense - previous_expense
    percentage_change = None
    if previous_expense != ZERO:
        percentage_change = difference / previous_expense * Decimal("100")

    return WeeklyComparison(
        current_start=current_start,
        current_end=end,
        current_expense=current_expense,
        previous_start=previous_start,
        previous_end=previous_end,
        previous_expense=previous_expense,
        difference=difference,
        percentage_change=percentage_change,
    )


def build_digest_metrics(
    transactions: Iterable[TransactionRecord],
    range_start: datetime,
    range_end: datetime,
) -> DigestMetrics:
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    ensure_range(range_start, range_end)

    records = [txn.normalized() for txn in transactions]
    expenses, incomes = _split(records)
    total_expense = _sum_amounts(expenses)
    total_income = _sum_amounts(incomes)
    ranked = top_categories(expenses, 1)

    return DigestMetrics(
        range_start=range_start,
        range_end=range_end,
        total_income=total_income,
        total_expense=total_expense,
        net=total_income - total_expense,
        transaction_count=len(records),
        top_category=ranked[0] if ranked else None,
        largest_expense=_largest(expenses),
        largest_income=_largest(incomes),
    )


def count_days(range_start: datetime, range_end: datetime) -> int:
    elapsed = (ensure_utc(range_end).date() - ensure_utc(range_start).date()).days
    return max(1, elapsed + 1)


def top_categories(
    records: Sequence[TransactionRecord], limit: int
) -> List[CategoryTotal]:
    totals: Dict[str, Tuple[Decimal, int]] = {}
    for txn in records:
        if is_blank(txn.category_name):
            continue
        total, count = totals.get(txn.category_name, (ZERO, 0))
        totals[txn.category_name] = (total + txn.amount, count + 1)

    ranked = sorted(totals.items(), key=lambda item: item[1][0], reverse=True)
    return [
        CategoryTotal(category=name, total=total, count=count)
        for name, (total, count) in ranked[:limit]
    ]


def monthly_breakdown(records: Iterable[TransactionRecord]) -> List[MonthlyTotals]:
    months: Dict[str, List[Decimal]] = {}
    for txn in records:
        txn_date = ensure_utc(txn.date)
        label = f"{txn_date.year:04d}-{txn_date.month:02d}"
        totals = months.setdefault(label, [ZERO, ZERO])
        totals[0 if txn.is_income else 1] += txn.amount
    return [
        MonthlyTotals(month=label, income=income, expense=expense)
        for label, (income, expense) in sorted(months.items())
    ]


def to_prompt_json(result: Snapshot | WeeklyComparison | DigestMetrics) -> str:
    return json.dumps(result.to_dict(), separators=(",", ":"), default=_json_default)


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _split(
    records: Iterable[TransactionRecord],
) -> tuple[List[TransactionRecord], List[TransactionRecord]]:
    expenses: List[TransactionRecord] = []
    incomes: List[TransactionRecord] = []
    for txn in records:
        (incomes if txn.is_income else expenses).append(txn)
    return expenses, incomes


def _sum_amounts(records: Iterable[TransactionRecord]) -> Decimal:
    total = ZERO
    for txn in records:
        total += txn.amount
    return total


def _largest(records: Sequence[TransactionRecord]) -> Optional[TransactionRecord]:
    if not records:
        return None
    return max(records, key=lambda txn: txn.amount)
