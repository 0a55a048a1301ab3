"""
Calendar helpers for monthly periods.
"""

import calendar
import re
from datetime import date
from typing import Union

from backend.app.core.exceptions import DomainValidationError

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def last_of_month(period: date) -> date:
    return period.replace(day=calendar.monthrange(period.year, period.month)[1])


def day_in_month(period: date, day: int) -> date:
    """The given day of the period's month, clamped to the month's last day."""
    last_day = calendar.monthrange(period.year, period.month)[1]
    return period.replace(day=min(max(day, 1), last_day))


def parse_month(value: Union[str, date], field: str = "month") -> date:
    """
    Normalize "YYYY-MM" (or any date) to the first day of that month.

    Raises:
        DomainValidationError: malformed value
    """
    if isinstance(value, date):
        return first_of_month(value)

    match = _MONTH_RE.match(str(value).strip())
    if not match:
        raise DomainValidationError("Invalid month format. Use YYYY-MM", field=field)

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise DomainValidationError("Invalid month format. Use YYYY-MM", field=field)
    return date(year, month, 1)


def format_month(period: date) -> str:
    return f"{period.year:04d}-{period.month:02d}"
