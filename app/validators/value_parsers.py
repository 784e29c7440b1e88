"""
app/validators/value_parsers.py

Tolerant parsers for the date and numeric cells found in game-plan CSVs.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%b-%y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%d/%m/%Y",
)


def parse_date(value: str | None) -> date | None:
    """
    Parse a date cell; returns None when no supported format matches.

    Slash dates are read month-first, falling back to day-first when the
    month-first reading is impossible (e.g. 25/03/2025).
    """

    if value is None:
        return None
    raw_value = value.strip()
    if not raw_value:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw_value, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(raw_value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_number(value: str | None) -> float | None:
    """
    Parse a numeric cell allowing thousands separators. None when not numeric.
    """

    if value is None:
        return None
    raw_value = value.strip().replace(",", "").replace(" ", "")
    if not raw_value:
        return None
    try:
        decimal_value = Decimal(raw_value)
    except InvalidOperation:
        return None
    if not decimal_value.is_finite():
        return None
    return float(decimal_value)


def parse_percentage(value: str | None) -> float | None:
    """
    Parse a percentage on the 0-100 scale.

    Values with an explicit `%` suffix are taken as-is; bare values between
    0 and 1 are read as fractions and scaled by 100.
    """

    if value is None:
        return None
    raw_value = value.strip()
    if raw_value.endswith("%"):
        return parse_number(raw_value[:-1])
    number = parse_number(raw_value)
    if number is None:
        return None
    if 0 <= number <= 1:
        return number * 100
    return number
