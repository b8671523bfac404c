import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from errors import InvalidInput

MONTH_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})")


@dataclass(frozen=True)
class Period:
    """Half-open ``[start, end)`` window of UTC instants."""

    slug: str
    start: datetime
    end: datetime

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def parse_month(value: str) -> tuple[int, int]:
    match = MONTH_PATTERN.fullmatch(value or "")
    if not match:
        raise InvalidInput(f'Invalid month "{value}" (use YYYY-MM)')
    year = int(match.group(1))
    month = int(match.group(2))
    if month < 1 or month > 12:
        raise InvalidInput(f'Invalid month number in "{value}"')
    return year, month


def _month_start(year: int, month: int, literal: str) -> datetime:
    try:
        return datetime(year, month, 1, tzinfo=timezone.utc)
    except ValueError as exc:
        raise InvalidInput(f'Month out of range: "{literal}"') from exc


def _roll(year: int, month: int, months: int) -> tuple[int, int]:
    total_months = month - 1 + months
    return year + total_months // 12, total_months % 12 + 1


def month_window(value: str) -> Period:
    year, month = parse_month(value)
    next_year, next_month = _roll(year, month, 1)
    return Period(
        value,
        _month_start(year, month, value),
        _month_start(next_year, next_month, value),
    )


def trailing_window(value: str, months: int = 12) -> Period:
    """Window of ``months`` calendar months ending with (and including) ``value``."""
    year, month = parse_month(value)
    first_year, first_month = _roll(year, month, -(months - 1))
    next_year, next_month = _roll(year, month, 1)
    return Period(
        f"{value}/{months}m",
        _month_start(first_year, first_month, value),
        _month_start(next_year, next_month, value),
    )


def add_months_clamped(base: date, months: int) -> date:
    year, month = _roll(base.year, base.month, months)
    desired_day = base.day
    dim = days_in_month(year, month)
    if desired_day > dim:
        day = dim
    else:
        day = desired_day
    return date(year, month, day)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def shift_month(value: str, months: int) -> str:
    year, month = _roll(*parse_month(value), months)
    return f"{year:04d}-{month:02d}"


def current_month(today: Optional[date] = None, tz: str = "UTC") -> str:
    today = today or datetime.now(ZoneInfo(tz)).date()
    return month_key(today)
