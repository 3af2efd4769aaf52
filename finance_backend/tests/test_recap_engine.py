import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from finance_backend.recap_engine import (
    RecapFormat,
    RecapPeriod,
    build_monthly_recap,
    current_month_range,
)
from finance_backend.records import TransactionRecord


def make_record(day: datetime, amount: str, is_income: bool = False, **extra) -> TransactionRecord:
    return TransactionRecord(date=day, amount=Decimal(amount), is_income=is_income, **extra)


MARCH_START = datetime(2024, 3, 1, tzinfo=timezone.utc)
MARCH_END = datetime(2024, 3, 20, 15, 30, tzinfo=timezone.utc)


class RecapEngineTests(unittest.TestCase):
    def test_day_grouping_sums_same_date(self) -> None:
        transactions = [
            make_record(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc), "100", is_income=True),
            make_record(
                datetime(2024, 3, 1, 18, 0, tzinfo=timezone.utc),
                "40",
                category_name="Food",
            ),
        ]

        result = build_monthly_recap("7", transactions, "day", MARCH_START, MARCH_END)

        self.assertEqual(result.period, RecapPeriod.DAY)
        self.assertEqual(len(result.buckets), 1)
        bucket = result.buckets[0]
        self.assertEqual(bucket.label, "2024-03-01")
        self.assertEqual(bucket.period_start, date(2024, 3, 1))
        self.assertEqual(bucket.period_end, date(2024, 3, 1))
        self.assertEqual(bucket.total_amount, Decimal("140"))

    def test_week_grouping_spans_monday_to_sunday(self) -> None:
        transactions = [
            make_record(datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc), "15"),
            make_record(datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc), "10"),
        ]

        result = build_monthly_recap("7", transactions, "week", MARCH_START, MARCH_END)

        self.assertEqual(len(result.buckets), 1)
        bucket = result.buckets[0]
        self.assertEqual(bucket.period_start, date(2024, 3, 4))
        self.assertEqual(bucket.period_end, date(2024, 3, 10))
        self.assertEqual(bucket.label, "Week of 2024-03-04")
        self.assertEqual(bucket.total_amount, Decimal("25"))
        self.assertEqual(
            [txn.date.day for txn in bucket.transactions],
            [4, 10],
        )

    def test_week_end_is_clamped_to_query_end(self) -> None:
        end = datetime(2024, 3, 20, 10, 0, tzinfo=timezone.utc)
        transactions = [make_record(datetime(2024, 3, 19, tzinfo=timezone.utc), "5")]

        result = build_monthly_recap("7", transactions, "week", MARCH_START, end)

        bucket = result.buckets[0]
        self.assertEqual(bucket.period_start, date(2024, 3, 18))
        self.assertEqual(bucket.period_end, date(2024, 3, 20))

    def test_week_buckets_start_on_monday_and_partition_records(self) -> None:
        transactions = [
            make_record(MARCH_START + timedelta(days=offset), "1") for offset in range(20)
        ]

        result = build_monthly_recap("7", transactions, "week", MARCH_START, MARCH_END)

        self.assertEqual(sum(len(b.transactions) for b in result.buckets), 20)
        for bucket in result.buckets:
            self.assertEqual(bucket.period_start.weekday(), 0)
            self.assertLessEqual((bucket.period_end - bucket.period_start).days, 6)
        starts = [bucket.period_start for bucket in result.buckets]
        self.assertEqual(starts, sorted(starts))

    def test_month_grouping_uses_full_range(self) -> None:
        transactions = [
            make_record(datetime(2024, 3, 2, tzinfo=timezone.utc), "20", is_income=True),
            make_record(datetime(2024, 3, 12, tzinfo=timezone.utc), "30"),
        ]

        result = build_monthly_recap("7", transactions, "MONTH", MARCH_START, MARCH_END)

        self.assertEqual(result.period, RecapPeriod.MONTH)
        self.assertEqual(len(result.buckets), 1)
        bucket = result.buckets[0]
        self.assertEqual(bucket.label, "March 2024")
        self.assertEqual(bucket.period_start, date(2024, 3, 1))
        self.assertEqual(bucket.period_end, date(2024, 3, 20))
        self.assertEqual(bucket.total_amount, Decimal("50"))

    def test_empty_input_yields_no_buckets_for_every_period(self) -> None:
        for group_by in ("day", "week", "month"):
            result = build_monthly_recap("7", [], group_by, MARCH_START, MARCH_END)
            self.assertEqual(result.buckets, [])
            self.assertEqual(result.status, "success")

    def test_unknown_group_by_falls_back_to_day(self) -> None:
        self.assertEqual(RecapPeriod.parse("fortnight"), RecapPeriod.DAY)
        self.assertEqual(RecapPeriod.parse(None), RecapPeriod.DAY)
        self.assertEqual(RecapPeriod.parse("  Week "), RecapPeriod.WEEK)

    def test_blank_user_id_is_rejected(self) -> None:
        for user_id in (None, "", "   "):
            with self.assertRaises(ValueError):
                build_monthly_recap(user_id, [], "day", MARCH_START, MARCH_END)

    def test_naive_and_offset_dates_are_bucketed_in_utc(self) -> None:
        plus_seven = timezone(timedelta(hours=7))
        transactions = [
            make_record(datetime(2024, 3, 5, 3, 0, tzinfo=plus_seven), "10"),
            make_record(datetime(2024, 3, 4, 22, 0), "5"),
        ]

        result = build_monthly_recap("7", transactions, "day", MARCH_START, MARCH_END)

        self.assertEqual([bucket.label for bucket in result.buckets], ["2024-03-04"])
        self.assertEqual(result.buckets[0].total_amount, Decimal("15"))

    def test_custom_format_is_applied(self) -> None:
        formatting = RecapFormat(date_pattern="%d/%m/%Y", week_label="Minggu {start}")
        transactions = [make_record(datetime(2024, 3, 6, tzinfo=timezone.utc), "3")]

        result = build_monthly_recap(
            "7", transactions, "week", MARCH_START, MARCH_END, formatting=formatting
        )

        self.assertEqual(result.buckets[0].label, "Minggu 04/03/2024")

    def test_to_dict_matches_wire_contract(self) -> None:
        transactions = [
            make_record(
                datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
                "100",
                is_income=True,
                description="Salary",
                id=11,
                user_id=7,
                category_id=3,
            )
        ]

        payload = build_monthly_recap("7", transactions, None, MARCH_START, MARCH_END).to_dict()

        self.assertEqual(payload["status"], "success")
        self.assertEqual(payload["period"], "day")
        self.assertEqual(payload["startDate"], "2024-03-01T00:00:00+00:00")
        self.assertEqual(payload["endDate"], "2024-03-20T15:30:00+00:00")
        bucket = payload["data"][0]
        self.assertEqual(bucket["periodStart"], "2024-03-01")
        self.assertEqual(bucket["totalAmount"], Decimal("100"))
        self.assertEqual(
            bucket["transactions"][0],
            {
                "id": 11,
                "description": "Salary",
                "amount": Decimal("100"),
                "date": "2024-03-01T09:00:00+00:00",
                "isIncome": True,
                "userId": 7,
                "categoryId": 3,
            },
        )

    def test_current_month_range_starts_at_first_of_month(self) -> None:
        now = datetime(2024, 5, 17, 13, 45, tzinfo=timezone.utc)

        start, end = current_month_range(now)

        self.assertEqual(start, datetime(2024, 5, 1, tzinfo=timezone.utc))
        self.assertEqual(end, now)


if __name__ == "__main__":
    unittest.main()
