"""
Month and fiscal-year helpers.

Report months are always stored as the first day of the month. The fiscal
year starts on the first of fiscal_year_start_month (August by default)
and is labelled by the calendar year it ends in: Aug 2025 - Jul 2026 is FY26.
"""

import re
from datetime import date
from typing import Optional

from exceptions import InvalidMonthError

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})(?:-(\d{1,2}))?$")
_FILENAME_MONTH_PATTERN = re.compile(r"(\d{4})[._-](\d{1,2})")


def parse_month(value: Optional[str]) -> date:
    """
    Parse "YYYY-MM" or "YYYY-MM-DD" to the first day of that month.

    Raises:
        InvalidMonthError: If the value is missing or malformed
    """
    if not value:
        raise InvalidMonthError(value)

    match = _MONTH_PATTERN.match(value.strip())
    if not match:
        raise InvalidMonthError(value)

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthError(value)

    return date(year, month, 1)


def month_from_filename(filename: Optional[str]) -> Optional[date]:
    """Find a YYYY.MM (or YYYY-MM, YYYY_MM) month in a filename."""
    if not filename:
        return None

    match = _FILENAME_MONTH_PATTERN.search(filename)
    if not match:
        return None

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return date(year, month, 1)


def add_months(month: date, count: int) -> date:
    """Shift a first-of-month date by count months."""
    index = month.year * 12 + (month.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def previous_month(month: date) -> date:
    return add_months(month, -1)


def fiscal_year_start(month: date, start_month: int = 8) -> date:
    """First month of the fiscal year containing month."""
    year = month.year if month.month >= start_month else month.year - 1
    return date(year, start_month, 1)


def fiscal_window(month: date, start_month: int = 8) -> tuple[date, date]:
    """
    Inclusive (first, last) months of the fiscal year containing month.
    """
    start = fiscal_year_start(month, start_month)
    return start, add_months(start, 11)


def fiscal_year_window(fiscal_year: int, start_month: int = 8) -> tuple[date, date]:
    """
    Window for a fiscal year given by its starting calendar year.

    fiscal_year=2025 with an August start covers 2025-08 .. 2026-07.
    """
    start = date(fiscal_year, start_month, 1)
    return start, add_months(start, 11)


def fiscal_year_label(month: date, start_month: int = 8) -> str:
    """FY label by ending year, e.g. 2025-09 -> "FY26"."""
    start = fiscal_year_start(month, start_month)
    end_year = start.year + 1 if start_month > 1 else start.year
    return f"FY{end_year % 100:02d}"


def iter_months(start: date, end: date) -> list[date]:
    """All first-of-month dates from start to end inclusive."""
    months = []
    current = date(start.year, start.month, 1)
    while current <= end:
        months.append(current)
        current = add_months(current, 1)
    return months


def month_key(month: date) -> str:
    """Ledger/report key for a month: YYYY-MM-01."""
    return month.strftime("%Y-%m-01")
