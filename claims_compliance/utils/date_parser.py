"""Date parsing and age arithmetic utilities for claims validation."""

from __future__ import annotations

from datetime import date, datetime

# Reasonable date bounds for healthcare claims
MIN_VALID_YEAR = 1900
MAX_VALID_YEAR = 2100


def parse_flexible_date(value: str | date | datetime | None) -> date | None:
    """Parse a date from multiple common formats with validation.

    Supports the following formats:
    - ISO 8601: YYYY-MM-DD (e.g., 2024-01-15)
    - US format: MM/DD/YYYY (e.g., 01/15/2024)
    - Compact: YYYYMMDD (e.g., 20240115)

    ``date`` and ``datetime`` values pass through (datetimes are truncated
    to their date part).

    Validates that:
    - The date is a real calendar date (no Feb 30, etc.)
    - The year is between 1900 and 2100 (sensible for healthcare claims)

    Args:
        value: Date string, date object, or None

    Returns:
        Parsed date, or None if parsing fails or input is None

    Examples:
        >>> parse_flexible_date("2024-01-15")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("01/15/2024")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("20240115")
        datetime.date(2024, 1, 15)
        >>> parse_flexible_date("2024-02-30")  # Invalid date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    formats = [
        "%Y-%m-%d",  # ISO 8601
        "%m/%d/%Y",  # US format
        "%Y%m%d",  # Compact
    ]

    text = value.strip()
    # Accept ISO timestamps by dropping the time component
    if "T" in text:
        text = text.split("T", 1)[0]

    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt)
            if parsed.year < MIN_VALID_YEAR or parsed.year > MAX_VALID_YEAR:
                continue
            return parsed.date()
        except ValueError:
            # strptime raises ValueError for invalid dates like Feb 30
            continue

    return None


def add_years(start: date, years: int) -> date:
    """Return the anniversary of ``start`` after ``years`` years.

    Feb 29 anniversaries in non-leap years fall on Mar 1.
    """
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return date(start.year + years, 3, 1)


def calculate_age(date_of_birth: date | None, on_date: date) -> int | None:
    """Age in completed years on ``on_date``, or None without a birth date."""
    if date_of_birth is None:
        return None
    age = on_date.year - date_of_birth.year
    if (on_date.month, on_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age
