"""Tests for date parser with relative dates."""

import pytest
from datetime import date, timedelta

from ledgerkit.utils.date_parser import PERIODS, get_date_range, parse_date

TODAY = date(2024, 5, 15)


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_standard_formats():
    """Test parsing the formats banks and people write."""
    assert parse_date("15 Jan 2024") == date(2024, 1, 15)
    assert parse_date("January 15, 2024") == date(2024, 1, 15)
    assert parse_date("  2024/01/15  ") == date(2024, 1, 15)


def test_parse_today():
    """Test parsing 'today'."""
    assert parse_date("today") == date.today()
    assert parse_date("Today", today=TODAY) == TODAY


def test_parse_yesterday_and_tomorrow():
    """Test parsing 'yesterday' and 'tomorrow'."""
    assert parse_date("yesterday", today=TODAY) == TODAY - timedelta(days=1)
    assert parse_date("tomorrow", today=TODAY) == TODAY + timedelta(days=1)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("start of month", date(2024, 5, 1)),
        ("end of month", date(2024, 5, 31)),
        ("start of quarter", date(2024, 4, 1)),
        ("end of quarter", date(2024, 6, 30)),
        ("start of year", date(2024, 1, 1)),
        ("end of year", date(2024, 12, 31)),
    ],
)
def test_parse_period_boundaries(text, expected):
    """Test 'start of' and 'end of' a period."""
    assert parse_date(text, today=TODAY) == expected


def test_parse_end_of_february_leap_year():
    """Test month ends follow the calendar."""
    assert parse_date("end of month", today=date(2024, 2, 10)) == date(2024, 2, 29)


def test_parse_invalid_relative():
    """Test an unknown period raises ValueError."""
    with pytest.raises(ValueError, match="unknown period"):
        parse_date("start of fortnight")


def test_parse_invalid_date():
    """Test garbage raises ValueError."""
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("not a date")


def test_get_date_range_this_month():
    """Test this-month runs from the first of the month to today."""
    assert get_date_range("this-month", today=TODAY) == (date(2024, 5, 1), TODAY)


def test_get_date_range_this_quarter():
    """Test this-quarter."""
    assert get_date_range("this-quarter", today=TODAY) == (date(2024, 4, 1), TODAY)


def test_get_date_range_this_year():
    """Test this-year."""
    assert get_date_range("this-year", today=TODAY) == (date(2024, 1, 1), TODAY)


def test_get_date_range_last_month():
    """Test last-month covers the whole previous month."""
    assert get_date_range("last-month", today=TODAY) == (date(2024, 4, 1), date(2024, 4, 30))


def test_get_date_range_last_quarter():
    """Test last-quarter covers the whole previous quarter."""
    assert get_date_range("last-quarter", today=TODAY) == (date(2024, 1, 1), date(2024, 3, 31))


def test_get_date_range_last_year():
    """Test last-year."""
    assert get_date_range("last-year", today=TODAY) == (date(2023, 1, 1), date(2023, 12, 31))


def test_get_date_range_edge_case_year_boundary():
    """Test previous periods in January roll back into last year."""
    january = date(2024, 1, 10)

    assert get_date_range("last-month", today=january) == (date(2023, 12, 1), date(2023, 12, 31))
    assert get_date_range("last-quarter", today=january) == (date(2023, 10, 1), date(2023, 12, 31))


def test_get_date_range_edge_case_month_boundary():
    """Test last-month from March 31 ends on February 29 in a leap year."""
    assert get_date_range("last-month", today=date(2024, 3, 31)) == (date(2024, 2, 1), date(2024, 2, 29))


def test_get_date_range_defaults_to_today():
    """Test the reference date defaults to today."""
    start, end = get_date_range("this-year")

    assert start == date.today().replace(month=1, day=1)
    assert end == date.today()


def test_every_period_is_supported():
    """Test every advertised period resolves."""
    for period in PERIODS:
        start, end = get_date_range(period, today=TODAY)
        assert start <= end


def test_get_date_range_invalid_period():
    """Test an unknown period raises ValueError."""
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("this-week")
