from datetime import date, datetime, timezone

import pytest

from errors import InvalidInput
from periods import (
    add_months_clamped,
    current_month,
    days_in_month,
    month_key,
    month_window,
    shift_month,
    trailing_window,
)


def test_month_window_spans_calendar_month_in_utc():
    window = month_window("2026-01")
    assert window.start == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert (window.end - window.start).days == 31


@pytest.mark.parametrize(
    "literal, days",
    [("2024-02", 29), ("2026-02", 28), ("2026-04", 30), ("2025-12", 31)],
)
def test_month_window_length_matches_days_in_month(literal, days):
    window = month_window(literal)
    assert (window.end - window.start).days == days
    assert window.start_date.day == 1
    assert window.end_date.day == 1


def test_month_window_rolls_over_december():
    window = month_window("2025-12")
    assert window.end_date == date(2026, 1, 1)
    assert window.contains(date(2025, 12, 31))
    assert not window.contains(date(2026, 1, 1))
    assert not window.contains(date(2025, 11, 30))


@pytest.mark.parametrize(
    "literal",
    [
        "2026-1",
        "2026-13",
        "2026-00",
        "26-01",
        "2026-01-01",
        "abcd-ef",
        " 2026-01",
        "2026-01\n",
    ],
)
def test_month_window_rejects_malformed_literals(literal):
    with pytest.raises(InvalidInput) as excinfo:
        month_window(literal)
    assert literal in str(excinfo.value)


def test_month_window_rejects_empty_literal():
    with pytest.raises(InvalidInput):
        month_window("")


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (date(2026, 1, 31), 1, date(2026, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2026, 3, 15), 1, date(2026, 4, 15)),
        (date(2026, 1, 31), 2, date(2026, 3, 31)),
        (date(2026, 5, 31), 1, date(2026, 6, 30)),
        (date(2025, 11, 30), 3, date(2026, 2, 28)),
        (date(2026, 3, 31), -1, date(2026, 2, 28)),
        (date(2026, 1, 10), 0, date(2026, 1, 10)),
        (date(2026, 1, 10), 24, date(2028, 1, 10)),
    ],
)
def test_add_months_clamped(start, months, expected):
    assert add_months_clamped(start, months) == expected


def test_days_in_month():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2100, 2) == 28
    assert days_in_month(2026, 12) == 31


def test_trailing_window_covers_twelve_months_ending_at_target():
    window = trailing_window("2026-01")
    assert window.start_date == date(2025, 2, 1)
    assert window.end_date == date(2026, 2, 1)
    assert not window.contains(date(2025, 1, 31))
    assert window.contains(date(2026, 1, 31))


def test_month_helpers():
    assert month_key(date(2026, 3, 9)) == "2026-03"
    assert shift_month("2026-01", -1) == "2025-12"
    assert shift_month("2025-12", 1) == "2026-01"
    assert current_month(date(2026, 10, 19)) == "2026-10"


@pytest.mark.parametrize(
    "build, literal",
    [
        (month_window, "9999-12"),
        (trailing_window, "0001-05"),
        (trailing_window, "9999-12"),
    ],
)
def test_windows_past_supported_years_name_the_requested_month(build, literal):
    with pytest.raises(InvalidInput) as excinfo:
        build(literal)
    assert f'"{literal}"' in str(excinfo.value)
