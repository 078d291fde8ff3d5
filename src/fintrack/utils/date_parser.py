"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a user-typed date, as given to CLI filters.

    Accepts anything dateutil understands ("2024-01-15", "Jan 15 2024") plus
    "today", "yesterday", and "this"/"last" followed by week, month or year,
    which resolve to the first day of that period.

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)

    starts = {
        "this week": today - timedelta(days=today.weekday()),
        "this month": today.replace(day=1),
        "this year": today.replace(month=1, day=1),
        "last week": today - timedelta(days=today.weekday() + 7),
        "last month": (today - relativedelta(months=1)).replace(day=1),
        "last year": today.replace(month=1, day=1) - relativedelta(years=1),
    }
    if text in starts:
        return starts[text]

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


DEFAULT_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d/%m/%y",
    "%m/%d/%y",
)


def parse_date_with_format(date_str: str, date_format: str) -> date:
    """Parse a date string with an explicit strftime-style format.

    Unlike parse_date, no guessing is done: bank exports are read with the
    format their CSV config declares.

    Raises:
        ValueError: If the string does not match the format
    """
    return datetime.strptime(date_str.strip(), date_format).date()


def detect_date_format(values: list[str], formats: tuple[str, ...] = DEFAULT_DATE_FORMATS) -> str | None:
    """Return the first format that parses every value, or None.

    Formats are tried in order, so ambiguous values such as "05/01/2024"
    resolve to the earlier format unless another value rules it out.
    """
    candidates = [v.strip() for v in values if v and v.strip()]
    if not candidates:
        return None
    for fmt in formats:
        try:
            for value in candidates:
                datetime.strptime(value, fmt)
        except ValueError:
            continue
        return fmt
    return None
