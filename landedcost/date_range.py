"""
Date Range Resolver
Collapses the two request date shapes (startDate/endDate window, or a single
effectiveDate) into one ordered, inclusive DateWindow.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from landedcost.errors import MissingEffectiveDate
from landedcost.normalizer import parse_flexible_date
from landedcost.settings import DATE_INPUT_AUTO, DATE_INPUT_EFFECTIVE, DATE_INPUT_WINDOW
from landedcost.tariff_utils import is_blank


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] window, always start <= end."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")

    @classmethod
    def single_day(cls, day: date) -> "DateWindow":
        return cls(day, day)


def resolve_window(start: Optional[date], end: Optional[date], today: date) -> DateWindow:
    """startDate/endDate rules:
    - both missing -> today
    - one missing -> single-day window on the other
    - start after end -> swapped
    """
    if start is None and end is None:
        return DateWindow.single_day(today)
    if start is None:
        return DateWindow.single_day(end)
    if end is None:
        return DateWindow.single_day(start)
    if start > end:
        start, end = end, start
    return DateWindow(start, end)


def resolve_effective_date(effective: Optional[date]) -> DateWindow:
    """effectiveDate rule: required, window is that one day."""
    if effective is None:
        raise MissingEffectiveDate()
    return DateWindow.single_day(effective)


def uses_effective_date(mode: str, effective_raw: Any) -> bool:
    """Pick the date policy for a request under the configured input mode."""
    if mode == DATE_INPUT_EFFECTIVE:
        return True
    if mode == DATE_INPUT_WINDOW:
        return False
    return mode == DATE_INPUT_AUTO and not is_blank(effective_raw)


def resolve_date_window(
    start_raw: Any,
    end_raw: Any,
    effective_raw: Any,
    today: date,
    mode: str = DATE_INPUT_AUTO,
) -> DateWindow:
    """Parse raw date inputs and resolve them under the configured mode."""
    if uses_effective_date(mode, effective_raw):
        return resolve_effective_date(parse_flexible_date(effective_raw, "effectiveDate"))
    return resolve_window(
        parse_flexible_date(start_raw, "startDate"),
        parse_flexible_date(end_raw, "endDate"),
        today,
    )
