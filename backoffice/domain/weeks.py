# domain/weeks.py
"""Calendar-week helpers.

Every part of the back office numbers weeks with ISO-8601 rules (weeks start
on Monday, week 1 contains the first Thursday of the year). Datetimes are
naive UTC throughout the project.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import NamedTuple


class WeekKey(NamedTuple):
    week_number: int
    year: int

    @property
    def label(self) -> str:
        """``YYYY-Www`` form used by the standalone winner ledger."""
        return f"{self.year}-W{self.week_number:02d}"


@dataclass(frozen=True, slots=True)
class WeekWindow:
    start: datetime
    end: datetime
    draw: datetime


def current_week_key(now: datetime | date) -> WeekKey:
    iso = now.isocalendar()
    return WeekKey(week_number=iso.week, year=iso.year)


def week_label(now: datetime | date) -> str:
    return current_week_key(now).label


def parse_week_label(label: str) -> WeekKey:
    """Parse ``YYYY-Www``; raises ``ValueError`` on malformed input."""
    raw = (label or "").strip().upper()
    year_part, sep, week_part = raw.partition("-W")
    if not sep or not year_part.isdigit() or not week_part.isdigit():
        raise ValueError(f"Malformed week label: {label!r}")
    key = WeekKey(week_number=int(week_part), year=int(year_part))
    # round-trip through the calendar to reject week 53 in 52-week years
    monday_of(key)
    return key


def monday_of(key: WeekKey) -> date:
    return date.fromisocalendar(key.year, key.week_number, 1)


def weekly_window(key: WeekKey, *, end_hour: int, draw_delay_minutes: int = 0) -> WeekWindow:
    """Monday 00:00 to Sunday ``end_hour``:00, draw ``draw_delay_minutes`` later."""
    monday = monday_of(key)
    start = datetime.combine(monday, time.min)
    end = datetime.combine(monday + timedelta(days=6), time(hour=end_hour))
    draw = end + timedelta(minutes=draw_delay_minutes)
    return WeekWindow(start=start, end=end, draw=draw)


def month_key(moment: datetime | date) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


__all__ = [
    "WeekKey",
    "WeekWindow",
    "current_week_key",
    "week_label",
    "parse_week_label",
    "monday_of",
    "weekly_window",
    "month_key",
]
