"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

PERIODS = (
    "this-month",
    "this-quarter",
    "this-year",
    "last-month",
    "last-quarter",
    "last-year",
)


def _quarter_start(day: date) -> date:
    return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Accepts absolute dates ("2024-01-15", "15 Jan 2024", ...) and a few
    relative words: "today", "yesterday", "tomorrow", and "start of"/"end of"
    followed by "month", "quarter" or "year".

    Args:
        date_str: Date string
        today: Reference date for relative words (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    relative = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if text in relative:
        return relative[text]

    for prefix in ("start of ", "end of "):
        if text.startswith(prefix):
            unit = text[len(prefix):]
            if unit == "month":
                start, months = today.replace(day=1), 1
            elif unit == "quarter":
                start, months = _quarter_start(today), 3
            elif unit == "year":
                start, months = today.replace(month=1, day=1), 12
            else:
                raise ValueError(f"Could not parse date '{date_str}': unknown period '{unit}'")
            if prefix == "start of ":
                return start
            return start + relativedelta(months=months) - timedelta(days=1)

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a reporting period.

    Periods that include today end today; past periods end on their last day.

    Args:
        period: One of this-month, this-quarter, this-year, last-month,
            last-quarter, last-year
        today: Reference date (defaults to today)

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return today.replace(day=1), today
    if period == "this-quarter":
        return _quarter_start(today), today
    if period == "this-year":
        return today.replace(month=1, day=1), today

    if period == "last-month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if period == "last-quarter":
        end = _quarter_start(today) - timedelta(days=1)
        return _quarter_start(end), end
    if period == "last-year":
        end = today.replace(month=1, day=1) - timedelta(days=1)
        return end.replace(month=1, day=1), end

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")
