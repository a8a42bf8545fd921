"""
Input Normalizer
Trims and cases codes, and parses the loosely typed numeric and date fields
of a landed cost request.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from landedcost.errors import InvalidDateFormat, InvalidNumericField
from landedcost.tariff_utils import DATE_FORMATS, is_blank

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_code(raw: Optional[str]) -> Optional[str]:
    """Trim and upper-case a country or agreement code (e.g. " sg " -> "SG")."""
    if raw is None:
        return None
    return str(raw).strip().upper()


def normalize_country_input(raw: Optional[str]) -> Optional[str]:
    """Trim a country input. Names keep their case; matching is case-insensitive."""
    if raw is None:
        return None
    return str(raw).strip()


def normalize_hs_code(raw: Optional[str]) -> Optional[str]:
    """Trim, drop all internal whitespace and upper-case an HS code."""
    if raw is None:
        return None
    return _WHITESPACE_RE.sub("", str(raw)).upper()


def parse_flexible_date(value: Any, field: str) -> Optional[date]:
    """Parse ISO (YYYY-MM-DD) or day-first (DD/MM/YYYY, D/M/YYYY) date text.

    Blank input gives None. date/datetime objects pass through.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise InvalidDateFormat(field)


def parse_decimal(value: Any, field: str) -> Optional[Decimal]:
    """Parse a monetary field from a native number or a numeric-looking string."""
    if is_blank(value):
        return None
    # bool is an int subclass; true/false is never a price
    if isinstance(value, bool):
        raise InvalidNumericField(field)
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidNumericField(field)

    try:
        # str() keeps floats at their shortest repr (0.1 -> "0.1")
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidNumericField(field)

    if not number.is_finite():
        raise InvalidNumericField(field)
    return number


def parse_quantity(value: Any, field: str = "quantity") -> Optional[int]:
    """Parse a whole-unit quantity. Integral floats (2.0) are accepted."""
    number = parse_decimal(value, field)
    if number is None:
        return None
    if number != number.to_integral_value():
        raise InvalidNumericField(field, f"Field '{field}' must be an integer.")
    return int(number)
