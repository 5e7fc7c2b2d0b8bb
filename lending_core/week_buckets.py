"""
Week Bucketing Module

Groups dated records (payments) by the Monday of the active week they fall
in. The arrears simulator and the payment chronology both walk a loan week
by week; each buckets the payments once here and then applies its own
accumulation rule to the buckets.
"""

from datetime import date, datetime
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from .active_week import DateLike, align_datetime, get_week_start

T = TypeVar("T")


class WeekBuckets(Generic[T]):
    """
    Records indexed by the Monday of their active week

    Args:
        records: Records to index
        date_of: Returns the record's timestamp, or None if it has none
        reference: Timestamps are aligned to this datetime's timezone
            awareness before bucketing
    """

    def __init__(
        self,
        records: Iterable[T],
        date_of: Callable[[T], Optional[DateLike]],
        reference: Optional[datetime] = None
    ):
        self._reference = reference
        self._buckets: Dict[date, List[T]] = {}
        self.undated: List[T] = []

        for record in records:
            raw = date_of(record)
            if raw is None or raw == "":
                self.undated.append(record)
                continue
            moment = align_datetime(raw, reference) if reference else raw
            monday = get_week_start(moment).date()
            self._buckets.setdefault(monday, []).append(record)

    @staticmethod
    def key_for(week_start: DateLike) -> date:
        """Bucket key for the week containing week_start"""
        return get_week_start(week_start).date()

    def _key(self, week_start: DateLike) -> date:
        if self._reference is not None:
            week_start = align_datetime(week_start, self._reference)
        return self.key_for(week_start)

    def records_in_week(self, week_start: DateLike) -> List[T]:
        """Records whose timestamp falls in the week starting at week_start"""
        return list(self._buckets.get(self._key(week_start), []))

    def total_in_week(self, week_start: DateLike, amount_of: Callable[[T], float]) -> float:
        """Sum of amounts in the week starting at week_start"""
        return sum(amount_of(r) for r in self._buckets.get(self._key(week_start), []))

    def total_before(self, week_start: DateLike, amount_of: Callable[[T], float]) -> float:
        """Sum of amounts in all weeks strictly before the given week"""
        key = self._key(week_start)
        return sum(
            amount_of(r)
            for monday, records in self._buckets.items()
            if monday < key
            for r in records
        )

    def __len__(self) -> int:
        return sum(len(records) for records in self._buckets.values())
