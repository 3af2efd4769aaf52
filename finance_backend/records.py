from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

ZERO = Decimal("0")


@dataclass(frozen=True)
class TransactionRecord:
    date: datetime
    amount: Decimal
    is_income: bool
    category_name: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None
    user_id: Optional[int] = None
    category_id: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", coerce_amount(self.amount))
        if self.amount < ZERO:
            raise ValueError("amount must not be negative.")

    def normalized(self) -> "TransactionRecord":
        return replace(self, date=ensure_utc(self.date))


def ensure_utc(value: datetime | date) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are assumed to already be UTC; aware datetimes in any
    other zone are converted. Plain dates become midnight UTC.
    """
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def transaction_payload(record: Optional[TransactionRecord]) -> Optional[dict]:
    """Prompt-facing view of a single transaction."""
    if record is None:
        return None
    return {
        "date": ensure_utc(record.date).isoformat(),
        "amount": record.amount,
        "type": "income" if record.is_income else "expense",
        "category": record.category_name,
        "description": record.description,
    }
