"""
Week window calculation shared by every schedule view.

Why:
    Admin, teacher and student dashboards all show "the week N weeks from
    now". Computing that range in one place keeps the boundaries identical
    across views and makes the computation testable with an injected `today`.

Behavior:
    - Weeks start on Sunday and end on Saturday.
    - The week offset comes from an untrusted query parameter; anything that
      is not an integer falls back to 0 (current week). Never raises.
    - Only the calendar date of `today` is used; arithmetic is done on `date`
      values so repeated calls cannot drift.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import math
import re

# Fixed English abbreviations; strftime("%b") would follow the process locale.
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Plain ASCII digits only; int() alone would also take "1_0" and non-ASCII numerals.
_INTEGER_RE = re.compile(r"[+-]?\d+", re.ASCII)


@dataclass(frozen=True)
class WeekWindow:
    week_offset: int
    start: date
    end: date

    @property
    def start_date(self) -> str:
        return self.start.isoformat()

    @property
    def end_date(self) -> str:
        return self.end.isoformat()

    @property
    def display_range(self) -> str:
        return (
            f"{_MONTHS[self.start.month - 1]} {self.start.day} - "
            f"{_MONTHS[self.end.month - 1]} {self.end.day}, {self.end.year}"
        )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict:
        return {
            "weekOffset": self.week_offset,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "displayRange": self.display_range,
        }


def parse_week_offset(raw: object) -> int:
    """Parse an untrusted week offset; return 0 for anything unusable."""
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if math.isfinite(raw) and raw.is_integer():
            return int(raw)
        return 0
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return 0
        if not _INTEGER_RE.fullmatch(text):
            return 0
        try:
            return int(text, 10)
        except ValueError:
            return 0
    return 0


def _calendar_day(today: date | datetime) -> date:
    if isinstance(today, datetime):
        return today.date()
    return date(today.year, today.month, today.day)


def _shift(day: date, days: int) -> date:
    try:
        return day + timedelta(days=days)
    except OverflowError:
        return date.min if days < 0 else date.max


def compute_week(today: date | datetime, week_offset_raw: object = None) -> WeekWindow:
    """Return the Sunday-Saturday window `week_offset` weeks away from `today`."""
    day = _calendar_day(today)
    offset = parse_week_offset(week_offset_raw)
    # date.weekday(): Monday=0 .. Sunday=6; shift to Sunday=0 .. Saturday=6
    back = (day.weekday() + 1) % 7
    try:
        start = day + timedelta(days=7 * offset - back)
        end = start + timedelta(days=6)
    except OverflowError:
        offset = 0
        # The current week itself may cross date.min/date.max; clip it there.
        start = _shift(day, -back)
        end = _shift(day, 6 - back)
    return WeekWindow(week_offset=offset, start=start, end=end)


__all__ = ["WeekWindow", "compute_week", "parse_week_offset"]
