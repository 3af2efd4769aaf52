import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from finance_backend.ai_service import (
    CHAT_TRANSACTION_LIMIT,
    DEFAULT_TRANSACTION_LIMIT,
    DIGEST_TRANSACTION_LIMIT,
    NO_INSIGHT_DATA,
    OUT_OF_SCOPE_ANSWER,
    FinanceAssistant,
    is_finance_related,
)
from finance_backend.records import TransactionRecord

NOW = datetime(2024, 4, 14, 15, 0, tzinfo=timezone.utc)


class FakeClient:
    def __init__(self, reply: str = "generated") -> None:
        self.reply = reply
        self.calls = []

    def generate(self, messages):
        self.calls.append(list(messages))
        return self.reply


class FakeSource:
    def __init__(self, records=None) -> None:
        self.records = records or []
        self.calls = []

    def __call__(self, user_id, start, end, limit):
        self.calls.append((user_id, start, end, limit))
        return list(self.records)


def sample_records() -> list[TransactionRecord]:
    return [
        TransactionRecord(
            date=datetime(2024, 4, 10, tzinfo=timezone.utc),
            amount=Decimal("45.50"),
            is_income=False,
            category_name="Food",
            description="Groceries",
        ),
        TransactionRecord(
            date=datetime(2024, 4, 12, tzinfo=timezone.utc),
            amount=Decimal("1000"),
            is_income=True,
            category_name="Salary",
        ),
    ]


class FinanceAssistantTests(unittest.TestCase):
    def make_assistant(self, records=None):
        client = FakeClient()
        source = FakeSource(records)
        assistant = FinanceAssistant(client=client, transaction_source=source, clock=lambda: NOW)
        return assistant, client, source

    def test_insights_default_window_and_prompt(self) -> None:
        assistant, client, source = self.make_assistant(sample_records())

        result = assistant.generate_insights(3)

        self.assertEqual(result, "generated")
        user_id, start, end, limit = source.calls[0]
        self.assertEqual(user_id, 3)
        self.assertEqual(end, NOW)
        self.assertEqual(start, NOW - timedelta(days=60))
        self.assertEqual(limit, DEFAULT_TRANSACTION_LIMIT)
        system, user = client.calls[0]
        self.assertEqual(system.role, "system")
        self.assertEqual(user.role, "user")
        self.assertIn("Weekly statistics", user.content)
        self.assertIn('"category":"Food"', user.content)

    def test_insights_without_data_skip_the_provider(self) -> None:
        assistant, client, _ = self.make_assistant([])

        self.assertEqual(assistant.generate_insights(3), NO_INSIGHT_DATA)
        self.assertEqual(client.calls, [])

    def test_insights_reject_reversed_range(self) -> None:
        assistant, _, source = self.make_assistant(sample_records())

        with self.assertRaises(ValueError):
            assistant.generate_insights(
                3,
                start=datetime(2024, 4, 10, tzinfo=timezone.utc),
                end=datetime(2024, 4, 1, tzinfo=timezone.utc),
            )
        self.assertEqual(source.calls, [])

    def test_out_of_scope_question_is_answered_locally(self) -> None:
        assistant, client, source = self.make_assistant(sample_records())

        self.assertEqual(assistant.answer_question(3, "Who won the match?"), OUT_OF_SCOPE_ANSWER)
        self.assertEqual(client.calls, [])
        self.assertEqual(source.calls, [])

    def test_finance_question_uses_chat_window(self) -> None:
        assistant, client, source = self.make_assistant(sample_records())

        assistant.answer_question(3, "Berapa total pengeluaran saya?")

        _, start, end, limit = source.calls[0]
        self.assertEqual(end - start, timedelta(days=180))
        self.assertEqual(limit, CHAT_TRANSACTION_LIMIT)
        self.assertIn("Berapa total pengeluaran saya?", client.calls[0][1].content)

    def test_recommendations_include_focus(self) -> None:
        assistant, client, source = self.make_assistant(sample_records())

        assistant.generate_recommendations(3, focus="  dining out ")

        _, start, end, _ = source.calls[0]
        self.assertEqual(end - start, timedelta(days=120))
        self.assertIn('"dining out"', client.calls[0][1].content)

    def test_weekly_digest_covers_seven_days(self) -> None:
        assistant, client, source = self.make_assistant(sample_records())

        assistant.generate_digest(3, "Weekly", date(2024, 4, 14))

        _, start, end, limit = source.calls[0]
        self.assertEqual(start, datetime(2024, 4, 8, tzinfo=timezone.utc))
        self.assertEqual(end.date(), date(2024, 4, 14))
        self.assertEqual(end.hour, 23)
        self.assertEqual(limit, DIGEST_TRANSACTION_LIMIT)
        self.assertIn("Weekly summary", client.calls[0][1].content)

    def test_daily_digest_without_data(self) -> None:
        assistant, client, source = self.make_assistant([])

        result = assistant.generate_digest(3)

        _, start, _, _ = source.calls[0]
        self.assertEqual(start, datetime(2024, 4, 14, tzinfo=timezone.utc))
        self.assertTrue(result.startswith("Daily summary"))
        self.assertEqual(client.calls, [])

    def test_digest_rejects_unknown_period(self) -> None:
        assistant, _, _ = self.make_assistant(sample_records())

        with self.assertRaises(ValueError):
            assistant.generate_digest(3, "monthly")

    def test_finance_keyword_detection(self) -> None:
        self.assertTrue(is_finance_related("How is my SPENDING this week?"))
        self.assertFalse(is_finance_related("   "))
        self.assertFalse(is_finance_related(None))

    def test_topics_suggested_by_refusal_pass_the_gate(self) -> None:
        for topic in ("transactions", "income", "expenses", "savings", "budget"):
            self.assertIn(topic, OUT_OF_SCOPE_ANSWER)
            self.assertTrue(is_finance_related(f"Tell me about my {topic}"), topic)

    def test_plain_english_finance_questions_pass_the_gate(self) -> None:
        questions = (
            "Show my transactions from last week",
            "How much money did I spend on food?",
            "What is my balance this month?",
            "Should I pay off my debt or my loan first?",
            "Where should I invest?",
        )
        for question in questions:
            self.assertTrue(is_finance_related(question), question)
        self.assertFalse(is_finance_related("Who won the football match?"))


if __name__ == "__main__":
    unittest.main()
