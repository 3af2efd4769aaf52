from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from finance_backend.records import ZERO, TransactionRecord, ensure_utc, is_blank

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class RecapPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RecapPeriod":
        normalized = (value or "").strip().lower()
        for period in cls:
            if period.value == normalized:
                return period
        return cls.DAY


@dataclass(frozen=True)
class RecapFormat:
    """Locale-invariant labels used for recap buckets."""

    date_pattern: str = "%Y-%m-%d"
    week_label: str = "Week of {start}"
    month_names: Tuple[str, ...] = MONTH_NAMES

    def format_date(self, value: date) -> str:
        return value.strftime(self.date_pattern)

    def format_week(self, week_start: date) -> str:
        return self.week_label.format(start=self.format_date(week_start))

    def format_month(self, value: date) -> str:
        return f"{self.month_names[value.month - 1]} {value.year}"


DEFAULT_FORMAT = RecapFormat()


@dataclass(frozen=True)
class RecapBucket:
    label: str
    period_start: date
    period_end: date
    transactions: Tuple[TransactionRecord, ...]
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "transactions": [_recap_transaction(txn) for txn in self.transactions],
            "totalAmount": self.total_amount,
        }


@dataclass(frozen=True)
class RecapResult:
    period: RecapPeriod
    start_date: datetime
    end_date: datetime
    buckets: List[RecapBucket] = field(default_factory=list)
    status: str = "success"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "period": self.period.value,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "data": [bucket.to_dict() for bucket in self.buckets],
        }


def current_month_range(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    end_date = ensure_utc(now or datetime.now(timezone.utc))
    start_date = end_date.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start_date, end_date


def build_monthly_recap(
    user_id: Optional[str | int],
    transactions: Iterable[TransactionRecord],
    group_by: Optional[str],
    start_date: datetime,
    end_date: datetime,
    formatting: RecapFormat = DEFAULT_FORMAT,
) -> RecapResult:
    if user_id is None or is_blank(str(user_id)):
        raise ValueError("user_id is required.")

    period = RecapPeriod.parse(group_by)
    start_date = ensure_utc(start_date)
    end_date = ensure_utc(end_date)
    records = sorted(
        (txn.normalized() for txn in transactions),
        key=lambda txn: txn.date,
    )

    if period is RecapPeriod.WEEK:
        buckets = _group_by_week(records, end_date.date(), formatting)
    elif period is RecapPeriod.MONTH:
        buckets = _group_by_month(records, start_date.date(), end_date.date(), formatting)
    else:
        buckets = _group_by_day(records, formatting)

    return RecapResult(
        period=period,
        start_date=start_date,
        end_date=end_date,
        buckets=buckets,
    )


def week_start_for(value: date) -> date:
    # weekday() is 0 for Monday
    return value - timedelta(days=value.weekday())


def _group_by_day(
    records: List[TransactionRecord], formatting: RecapFormat
) -> List[RecapBucket]:
    grouped = _partition(records, lambda txn: txn.date.date())
    return [
        _make_bucket(formatting.format_date(day), day, day, items)
        for day, items in sorted(grouped.items())
    ]


def _group_by_week(
    records: List[TransactionRecord], end_date: date, formatting: RecapFormat
) -> List[RecapBucket]:
    grouped = _partition(records, lambda txn: week_start_for(txn.date.date()))
    buckets: List[RecapBucket] = []
    for week_start, items in sorted(grouped.items()):
        week_end = min(week_start + timedelta(days=6), end_date)
        buckets.append(
            _make_bucket(formatting.format_week(week_start), week_start, week_end, items)
        )
    return buckets


def _group_by_month(
    records: List[TransactionRecord],
    start_date: date,
    end_date: date,
    formatting: RecapFormat,
) -> List[RecapBucket]:
    if not records:
        return []
    return [
        _make_bucket(formatting.format_month(start_date), start_date, end_date, records)
    ]


def _partition(
    records: List[TransactionRecord], key: Callable[[TransactionRecord], date]
) -> Dict[date, List[TransactionRecord]]:
    grouped: Dict[date, List[TransactionRecord]] = {}
    for txn in records:
        grouped.setdefault(key(txn), []).append(txn)
    return grouped


def _make_bucket(
    label: str, period_start: date, period_end: date, items: List[TransactionRecord]
) -> RecapBucket:
    total = ZERO
    for txn in items:
        total += txn.amount
    return RecapBucket(
        label=label,
        period_start=period_start,
        period_end=period_end,
        transactions=tuple(items),
        total_amount=total,
    )


def _recap_transaction(record: TransactionRecord) -> dict:
    return {
        "id": record.id,
        "description": record.description,
        "amount": record.amount,
        "date": ensure_utc(record.date).isoformat(),
        "isIncome": record.is_income,
        "userId": record.user_id,
        "categoryId": record.category_id,
    }
