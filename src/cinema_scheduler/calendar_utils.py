"""
Calendar helpers: the scheduling window of a month, its week chunks,
and the weekend/holiday lookup.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Union
import calendar

DAYS_PER_WEEK = 7
DEFAULT_WEEKEND_DAYS = (5, 6)


def format_date_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def parse_date_key(date_str: str) -> date:
    return date.fromisoformat(date_str)


def cinema_month_range(year: int, month: int, week_start_weekday: Optional[int] = 3) -> List[date]:
    """
    Return the ordered dates of the scheduling window for a month.

    The window begins on the last ``week_start_weekday`` on or before the
    1st (Thursday by default, so every week runs Thursday to Wednesday) and
    ends on the last day of the month. With ``week_start_weekday=None`` the
    window starts on the 1st itself.
    """
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])

    if week_start_weekday is None:
        start = first
    else:
        start = first - timedelta(days=(first.weekday() - week_start_weekday) % DAYS_PER_WEEK)

    return [start + timedelta(days=offset) for offset in range((last - start).days + 1)]


def chunk_weeks(days: List[date]) -> List[List[date]]:
    """Split the window into runs of 7 days; the last run may be shorter"""
    return [days[i:i + DAYS_PER_WEEK] for i in range(0, len(days), DAYS_PER_WEEK)]


def week_dates(days: List[date], week_index: int) -> List[date]:
    weeks = chunk_weeks(days)
    if not 0 <= week_index < len(weeks):
        raise ValueError(f"Week index {week_index} out of range (window has {len(weeks)} weeks)")
    return weeks[week_index]


class HolidayCalendar:
    """Lookup from date to holiday label, plus the weekend rule"""

    def __init__(self, holidays: Optional[Dict[Union[str, date], str]] = None,
                 weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS):
        self.holidays: Dict[str, str] = {}
        for key, label in (holidays or {}).items():
            date_key = format_date_key(key) if isinstance(key, date) else key
            self.holidays[date_key] = label
        self.weekend_days = frozenset(weekend_days)

    def label(self, day: date) -> Optional[str]:
        return self.holidays.get(format_date_key(day)) or None

    def is_weekend_or_holiday(self, day: date) -> bool:
        return day.weekday() in self.weekend_days or bool(self.label(day))
