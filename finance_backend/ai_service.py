from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Callable, List, Optional, Protocol

from finance_backend.ai_client import AiMessage
from finance_backend.records import TransactionRecord, ensure_utc, is_blank
from finance_backend.snapshot_engine import (
    build_digest_metrics,
    build_snapshot,
    build_weekly_comparison,
    ensure_range,
    to_prompt_json,
)

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_LIMIT = 250
CHAT_TRANSACTION_LIMIT = 400
DIGEST_TRANSACTION_LIMIT = 200
INSIGHT_WINDOW_DAYS = 60
CHAT_WINDOW_DAYS = 180
RECOMMENDATION_WINDOW_DAYS = 120
DIGEST_PERIODS = {"daily", "weekly"}

BASE_SYSTEM_PROMPT = (
    "You are a personal finance assistant for a money tracking app. "
    "Answer in clear, simple language, include specific numbers, and focus on "
    "actionable insight. If the data is not sufficient, explain the limitation politely."
)

FINANCE_KEYWORDS = (
    "pengeluaran",
    "pemasukan",
    "transaksi",
    "tabungan",
    "budget",
    "anggaran",
    "saldo",
    "keuangan",
    "hemat",
    "invest",
    "utang",
    "hutang",
    "cicilan",
    "dompet",
    "uang",
    "laporan",
    "summary",
    "rekap",
    "spend",
    "expense",
    "income",
    "saving",
    "transaction",
    "money",
    "balance",
    "debt",
    "loan",
    "finance",
    "financial",
    "salary",
    "bill",
    "cost",
    "cash",
    "report",
)

NO_INSIGHT_DATA = (
    "There are no transactions in that date range yet, so there are no insights "
    "to share. Add some transactions first."
)
NO_CHAT_DATA = "There is no transaction data to base an answer on yet. Add transactions and try again."
NO_RECOMMENDATION_DATA = (
    "There is no transaction data to analyse for recommendations yet. Add transactions first."
)
OUT_OF_SCOPE_ANSWER = (
    "This question is outside the scope of your personal finance records. Please ask "
    "about your transactions, income, expenses, savings, or budget."
)


class TransactionSource(Protocol):
    def __call__(
        self, user_id: int, start: datetime, end: datetime, limit: int
    ) -> List[TransactionRecord]:
        ...


class TextGenerator(Protocol):
    def generate(self, messages: List[AiMessage]) -> str:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_finance_related(question: Optional[str]) -> bool:
    if is_blank(question):
        return False
    normalized = question.strip().lower()
    return any(keyword in normalized for keyword in FINANCE_KEYWORDS)


@dataclass
class FinanceAssistant:
    """Builds prompt context from a user's transactions and forwards it to the AI client."""

    client: TextGenerator
    transaction_source: TransactionSource
    clock: Callable[[], datetime] = field(default=utc_now)

    def generate_insights(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> str:
        range_end = ensure_utc(end or self.clock())
        range_start = ensure_utc(start or range_end - timedelta(days=INSIGHT_WINDOW_DAYS))
        ensure_range(range_start, range_end)

        transactions = self._fetch(user_id, range_start, range_end, DEFAULT_TRANSACTION_LIMIT)
        if not transactions:
            return NO_INSIGHT_DATA

        snapshot_json = to_prompt_json(build_snapshot(user_id, transactions, range_start, range_end))
        weekly_json = to_prompt_json(build_weekly_comparison(transactions, range_end))
        user_prompt = (
            "Write at most three sharp insights based on the data below. "
            "Highlight large changes, project their impact, and keep it short as bullet points. "
            "Use numbers and percentages where available.\n\n"
            f"Weekly statistics: ```json\n{weekly_json}\n```\n\n"
            f"Transaction snapshot: ```json\n{snapshot_json}\n```"
        )
        return self._generate(
            " Focus on changing patterns and financial risks.",
            user_prompt,
        )

    def answer_question(self, user_id: int, question: str) -> str:
        if not is_finance_related(question):
            return OUT_OF_SCOPE_ANSWER

        range_end = ensure_utc(self.clock())
        range_start = range_end - timedelta(days=CHAT_WINDOW_DAYS)

        transactions = self._fetch(user_id, range_start, range_end, CHAT_TRANSACTION_LIMIT)
        if not transactions:
            return NO_CHAT_DATA

        snapshot_json = to_prompt_json(build_snapshot(user_id, transactions, range_start, range_end))
        user_prompt = (
            f'User question: "{question}".\n'
            "Answer only from the data provided. If the data cannot answer it with certainty, "
            "tell the user and suggest an alternative approach.\n"
            f"Use the following data: ```json\n{snapshot_json}\n```"
        )
        return self._generate(
            " Answer in a structured way and include the relevant steps or numbers.",
            user_prompt,
        )

    def generate_recommendations(self, user_id: int, focus: Optional[str] = None) -> str:
        range_end = ensure_utc(self.clock())
        range_start = range_end - timedelta(days=RECOMMENDATION_WINDOW_DAYS)

        transactions = self._fetch(user_id, range_start, range_end, DEFAULT_TRANSACTION_LIMIT)
        if not transactions:
            return NO_RECOMMENDATION_DATA

        snapshot_json = to_prompt_json(build_snapshot(user_id, transactions, range_start, range_end))
        focus_instruction = "" if is_blank(focus) else f' Prioritise recommendations about "{focus.strip()}".'
        user_prompt = (
            "Give 3-4 specific, actionable financial recommendations. "
            "Align them with the user's transaction patterns and include an estimated impact where possible."
            f"{focus_instruction}\n\nReference data: ```json\n{snapshot_json}\n```"
        )
        return self._generate(
            " Make sure recommendations are realistic and fit the user's context.",
            user_prompt,
        )

    def generate_digest(
        self,
        user_id: int,
        period: str = "daily",
        reference_date: Optional[datetime | date] = None,
    ) -> str:
        normalized_period = (period or "").strip().lower()
        if normalized_period not in DIGEST_PERIODS:
            raise ValueError("period must be either daily or weekly.")

        reference_day = ensure_utc(reference_date or self.clock()).date()
        reference_start = datetime.combine(reference_day, time.min, tzinfo=timezone.utc)
        is_weekly = normalized_period == "weekly"
        range_start = reference_start - timedelta(days=6) if is_weekly else reference_start
        range_end = reference_start + timedelta(days=1) - timedelta(microseconds=1)
        label = "Weekly summary" if is_weekly else "Daily summary"
        ensure_range(range_start, range_end)

        transactions = self._fetch(user_id, range_start, range_end, DIGEST_TRANSACTION_LIMIT)
        if not transactions:
            return f"{label}: no transactions were recorded in this period."

        snapshot_json = to_prompt_json(build_snapshot(user_id, transactions, range_start, range_end))
        digest_json = to_prompt_json(build_digest_metrics(transactions, range_start, range_end))
        user_prompt = (
            f"{label} in a short, friendly style. Show total expenses, income, number of "
            "transactions, and the largest transaction. End with one sentence of encouragement "
            "or a short tip."
            f"\n\nKey figures: ```json\n{digest_json}\n```\n"
            f"Detailed data: ```json\n{snapshot_json}\n```"
        )
        return self._generate(
            " Format the summary with short sentences, at most 3 paragraphs.",
            user_prompt,
        )

    def _fetch(
        self, user_id: int, start: datetime, end: datetime, limit: int
    ) -> List[TransactionRecord]:
        records = self.transaction_source(user_id, start, end, limit)
        return sorted(
            (txn.normalized() for txn in records),
            key=lambda txn: txn.date,
            reverse=True,
        )

    def _generate(self, system_suffix: str, user_prompt: str) -> str:
        messages = [
            AiMessage(role="system", content=BASE_SYSTEM_PROMPT + system_suffix),
            AiMessage(role="user", content=user_prompt),
        ]
        logger.debug("Sending %d prompt characters to AI provider", len(user_prompt))
        return self.client.generate(messages)
