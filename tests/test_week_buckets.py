"""
Test suite for week bucketing module
"""

from datetime import datetime, timezone

from lending_core.week_buckets import WeekBuckets


class TestWeekBuckets:
    """Test grouping records by active week"""

    def setup_method(self):
        """Set up test fixtures"""
        self.records = [
            {"at": datetime(2024, 12, 9, 10, 0), "amount": 100},
            {"at": datetime(2024, 12, 15, 23, 0), "amount": 50},
            {"at": datetime(2024, 12, 16, 8, 0), "amount": 200},
            {"at": None, "amount": 30},
        ]
        self.buckets = WeekBuckets(self.records, lambda r: r["at"])
        self.amount_of = lambda r: r["amount"]

    def test_records_in_week(self):
        """Test lookup by any day of the week"""
        records = self.buckets.records_in_week(datetime(2024, 12, 11))
        assert [r["amount"] for r in records] == [100, 50]

    def test_totals(self):
        """Test weekly and earlier-week totals"""
        assert self.buckets.total_in_week(datetime(2024, 12, 9), self.amount_of) == 150
        assert self.buckets.total_in_week(datetime(2024, 12, 16), self.amount_of) == 200
        assert self.buckets.total_in_week(datetime(2024, 12, 23), self.amount_of) == 0

        assert self.buckets.total_before(datetime(2024, 12, 16), self.amount_of) == 150
        assert self.buckets.total_before(datetime(2024, 12, 9), self.amount_of) == 0

    def test_undated_records(self):
        """Test records without timestamp are set aside"""
        assert len(self.buckets) == 3
        assert self.buckets.undated == [self.records[3]]

    def test_reference_alignment(self):
        """Test aware timestamps are bucketed in naive UTC for a naive reference"""
        buckets = WeekBuckets(
            [{"at": "2024-12-16T02:00:00+00:00", "amount": 10}],
            lambda r: r["at"],
            reference=datetime(2024, 12, 20)
        )
        assert buckets.total_in_week(datetime(2024, 12, 16), lambda r: r["amount"]) == 10

    def test_aware_reference_uses_its_timezone(self):
        """Test offset timestamps are bucketed by the reference's local week"""
        buckets = WeekBuckets(
            [{"at": "2024-11-10T20:00:00-06:00", "amount": 300}],
            lambda r: r["at"],
            reference=datetime(2024, 11, 27, 12, 0, tzinfo=timezone.utc)
        )
        records = buckets.records_in_week(datetime(2024, 11, 11, tzinfo=timezone.utc))
        assert [r["amount"] for r in records] == [300]
        assert buckets.records_in_week(datetime(2024, 11, 4, tzinfo=timezone.utc)) == []
        # naive lookups take the reference's timezone
        assert buckets.total_in_week(datetime(2024, 11, 13), lambda r: r["amount"]) == 300
