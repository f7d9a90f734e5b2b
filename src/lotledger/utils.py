"""Input parsing helpers for ledger operations."""

import re
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser
from dateutil.relativedelta import relativedelta

from .errors import ValidationError

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_UNIT_DELTAS = {
    "day": lambda n: relativedelta(days=n),
    "week": lambda n: relativedelta(weeks=n),
    "month": lambda n: relativedelta(months=n),
    "year": lambda n: relativedelta(years=n),
}


def _relative(num_str: str, unit: str, today: date) -> Optional[date]:
    try:
        num = int(num_str)
    except ValueError:
        return None
    delta = _UNIT_DELTAS.get(unit.rstrip("s"))
    if delta is None:
        return None
    return today + delta(num)


def parse_flexible_date(date_str: str, today: Optional[date] = None) -> Optional[date]:
    """
    Parse a flexible date string into a Python date object.

    Supports multiple formats:
    - ISO format: "2025-02-15", "2025/02/15"
    - Natural language: "tomorrow", "next week", "next month"
    - Relative dates: "in 3 days", "2 weeks from now"
    - Month/Day: "April 15", "Dec 25"

    Args:
        date_str: String representation of a date
        today: Reference date for relative forms (defaults to the current date)

    Returns:
        date object if parsing succeeds, None if invalid

    Examples:
        >>> parse_flexible_date("2025-02-15")
        date(2025, 2, 15)

        >>> parse_flexible_date("tomorrow", today=date(2025, 2, 14))
        date(2025, 2, 15)

        >>> parse_flexible_date("invalid")
        None
    """
    if not date_str or not date_str.strip():
        return None

    date_str = date_str.strip()
    today = today or datetime.now().date()
    lower_str = date_str.lower()

    if lower_str == "today":
        return today
    elif lower_str == "tomorrow":
        return today + relativedelta(days=1)
    elif lower_str == "yesterday":
        return today + relativedelta(days=-1)
    elif lower_str == "next week":
        return today + relativedelta(weeks=1)
    elif lower_str == "next month":
        return today + relativedelta(months=1)

    # "in X days/weeks/months"
    if lower_str.startswith("in "):
        parts = lower_str[3:].split()
        if len(parts) >= 2:
            relative = _relative(parts[0], parts[1], today)
            if relative is not None:
                return relative

    # "X days/weeks/months from now"
    if "from now" in lower_str:
        parts = lower_str.replace("from now", "").strip().split()
        if len(parts) >= 2:
            relative = _relative(parts[0], parts[1], today)
            if relative is not None:
                return relative

    try:
        parsed_dt = parser.parse(date_str, default=datetime(today.year, today.month, today.day))
        parsed_date = parsed_dt.date()

        # If only month/day was provided (no year), and date is in the past, assume next year
        if parsed_date < today and str(parsed_dt.year) not in date_str:
            parsed_date = parsed_date.replace(year=today.year + 1)

        return parsed_date
    except (ValueError, OverflowError, parser.ParserError):
        return None


def parse_expiration_date(value: Any, today: date) -> date:
    """Validate a restock expiration date.

    Accepts a ``date`` or a string. ``YYYY-MM-DD`` strings must name a real
    calendar day; other strings go through :func:`parse_flexible_date`.

    Raises:
        ValidationError: If the value is missing, malformed, or before today.
    """
    if value is None or value == "":
        raise ValidationError("Please fill in all required fields")

    if isinstance(value, datetime):
        parsed: Optional[date] = value.date()
    elif isinstance(value, date):
        parsed = value
    elif not isinstance(value, str):
        raise ValidationError("Please enter a valid date in YYYY-MM-DD format")
    elif ISO_DATE_RE.match(value.strip()):
        try:
            parsed = date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError("Please enter a valid date")
    else:
        parsed = parse_flexible_date(value, today=today)

    if parsed is None:
        raise ValidationError("Please enter a valid date in YYYY-MM-DD format")
    if parsed < today:
        raise ValidationError("Expiration date cannot be in the past")
    return parsed


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Coerce a quantity to ``int``.

    Integers and integral strings are accepted; booleans, floats with a
    fractional part, and anything else are rejected.

    Raises:
        ValidationError: If the value is not a whole number.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Please enter a valid number for {field}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Please enter a valid number for {field}")
