"""
Active Week Calendar Module

Defines the business "Semana Activa": Monday 00:00:00 through Sunday
23:59:59.999, which is NOT the Sunday-start week most date libraries use.

A week that crosses a month boundary belongs to the month holding more of
its weekdays (Mon-Fri). For example Mon Dec 30 2024 - Sun Jan 5 2025 has two
weekdays in December and three in January, so it is a January 2025 week.

The mobile client re-derives these boundaries independently, so week edges
are kept at millisecond resolution (23:59:59.999) to match it exactly.
"""

from datetime import datetime, date, timedelta, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union
import calendar

from .config import get_config

DateLike = Union[datetime, date, str]

WEEK = timedelta(days=7)

# Spanish and English short month names used by format_week_range
_MONTH_ABBREVIATIONS = {
    "es": ["ene", "feb", "mar", "abr", "may", "jun",
           "jul", "ago", "sept", "oct", "nov", "dic"],
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
}


@dataclass(frozen=True)
class WeekRange:
    """Monday-Sunday active week"""
    start: datetime   # Monday 00:00:00.000
    end: datetime     # Sunday 23:59:59.999
    week_number: int  # ISO week number, display only
    year: int         # Year of the month the week is assigned to

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError("Week start must be before week end")

    def contains(self, value: DateLike) -> bool:
        """Check if a date falls inside this week (both edges inclusive)"""
        return is_date_in_week(value, self)


@dataclass(frozen=True)
class WeekMonthAssignment:
    """Month a week belongs to"""
    month: int  # 1-12
    year: int
    weekdays_in_month: int


def as_datetime(value: DateLike) -> datetime:
    """
    Normalize a date, datetime or ISO-8601 string to datetime

    Plain dates become midnight of that day. Strings ending in "Z" are
    parsed as UTC.

    Raises:
        TypeError: If value is not a date-like object
        ValueError: If a string is not valid ISO-8601
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise TypeError(f"Expected date, datetime or ISO string, got {type(value).__name__}")


def align_datetime(value: DateLike, reference: datetime) -> datetime:
    """
    Make value comparable with reference

    Aware values compared against a naive reference are converted to naive
    UTC; naive values compared against an aware reference take the
    reference's timezone; aware values compared against an aware reference
    are converted to its timezone, so week boundaries are always taken in
    the reference's local time.
    """
    result = as_datetime(value)
    if reference.tzinfo is None:
        if result.tzinfo is not None:
            return result.astimezone(timezone.utc).replace(tzinfo=None)
        return result
    if result.tzinfo is None:
        return result.replace(tzinfo=reference.tzinfo)
    return result.astimezone(reference.tzinfo)


def get_week_start(value: DateLike) -> datetime:
    """
    Get the start of the active week (Monday 00:00:00) for a given date

    Wed Dec 11 2024 and Sun Dec 15 2024 both map to Mon Dec 9 2024.

    Args:
        value: Any date within the desired week

    Returns:
        Monday 00:00:00 of that week
    """
    d = as_datetime(value)
    # weekday(): Monday=0 ... Sunday=6, so Sunday goes back 6 days
    monday = d - timedelta(days=d.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def get_week_end(week_start: DateLike) -> datetime:
    """
    Get the end of the active week (Sunday 23:59:59.999)

    Args:
        week_start: The Monday 00:00:00 of the week

    Returns:
        Sunday 23:59:59.999 of that week
    """
    d = as_datetime(week_start) + timedelta(days=6)
    return d.replace(hour=23, minute=59, second=59, microsecond=999000)


def get_iso_week_number(value: DateLike) -> int:
    """ISO-8601 week number (1-53), week 1 contains January 4th"""
    return as_datetime(value).isocalendar()[1]


def get_week_belongs_to_month(week_start: DateLike) -> WeekMonthAssignment:
    """
    Determine which month a week belongs to based on its weekdays (Mon-Fri)

    Five weekdays split over at most two months always give an uneven split,
    so a tie cannot happen; if it ever did, the earliest month seen wins.

    Args:
        week_start: The Monday 00:00:00 of the week

    Returns:
        WeekMonthAssignment with the winning month

    Examples:
        Week of Dec 30 2024 -> January 2025 (3 weekdays)
        Week of Jul 28 2025 -> July 2025 (4 weekdays)
    """
    start = as_datetime(week_start)
    month_days: Dict[Tuple[int, int], int] = {}

    for offset in range(5):
        d = start + timedelta(days=offset)
        key = (d.year, d.month)
        month_days[key] = month_days.get(key, 0) + 1

    return _pick_month(month_days)


def _pick_month(month_days: Dict[Tuple[int, int], int]) -> WeekMonthAssignment:
    """
    Pick the month with the most weekdays

    month_days maps (year, month) to weekday counts in the order the days
    were seen; on equal counts the first month seen wins.
    """
    best_key: Optional[Tuple[int, int]] = None
    best_count = 0
    for key, count in month_days.items():
        if best_key is None or count > best_count:
            best_key = key
            best_count = count

    year, month = best_key
    return WeekMonthAssignment(month=month, year=year, weekdays_in_month=best_count)


def get_active_week_range(value: DateLike) -> WeekRange:
    """
    Get the complete active week range for a given date

    The year comes from the week's month assignment, so the week of
    Dec 30 2024 reports year 2025.
    """
    start = get_week_start(value)
    end = get_week_end(start)
    assignment = get_week_belongs_to_month(start)
    return WeekRange(
        start=start,
        end=end,
        week_number=get_iso_week_number(start),
        year=assignment.year
    )


def get_weeks_in_month(year: int, month: int) -> List[WeekRange]:
    """
    Get all weeks that belong to a specific month

    Args:
        year: The year (e.g. 2024)
        month: The month, 1-12

    Returns:
        Chronologically ordered WeekRange list (normally 4 or 5 weeks)
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    weeks = []
    current_week_start = get_week_start(datetime(year, month, 1))

    # Look one week past month end to catch boundary weeks
    last_day = calendar.monthrange(year, month)[1]
    check_until = datetime(year, month, last_day) + WEEK

    while current_week_start <= check_until:
        assignment = get_week_belongs_to_month(current_week_start)
        if assignment.month == month and assignment.year == year:
            weeks.append(get_active_week_range(current_week_start))
        current_week_start = current_week_start + WEEK

    return weeks


def is_date_in_week(value: DateLike, week: WeekRange) -> bool:
    """Check if a date falls within a specific week range"""
    check = align_datetime(value, week.start)
    return week.start <= check <= week.end


def is_in_current_active_week(value: DateLike, now: datetime) -> bool:
    """Check if a date falls within the active week containing now"""
    return is_date_in_week(value, get_active_week_range(now))


def get_previous_week(week: WeekRange) -> WeekRange:
    """Get the week range 7 days before the given one"""
    return get_active_week_range(week.start - WEEK)


def get_next_week(week: WeekRange) -> WeekRange:
    """Get the week range 7 days after the given one"""
    return get_active_week_range(week.start + WEEK)


def format_week_range(week: WeekRange, locale: Optional[str] = None) -> str:
    """
    Format a week range for display

    Args:
        week: The week range to format
        locale: Locale such as "es-MX" or "en-US"; defaults to configuration

    Returns:
        Spanish: "9-15 dic 2024" within one month, "30 dic - 5 ene 2025" across
        months. English: "9-Dec 15, 2024" and "Dec 30 - Jan 5, 2025".
    """
    locale = locale or get_config().week_format_locale
    language = locale.split("-")[0].lower()
    if language not in _MONTH_ABBREVIATIONS:
        language = "es"
    months = _MONTH_ABBREVIATIONS[language]

    start, end = week.start, week.end
    if language == "en":
        start_formatted = f"{months[start.month - 1]} {start.day}"
        end_formatted = f"{months[end.month - 1]} {end.day}, {end.year}"
    else:
        start_formatted = f"{start.day} {months[start.month - 1]}"
        end_formatted = f"{end.day} {months[end.month - 1]} {end.year}"

    if start.month == end.month and start.year == end.year:
        return f"{start.day}-{end_formatted}"

    return f"{start_formatted} - {end_formatted}"
