"""Rate Lookup Engine.

Picks the single applicable tariff row for a lane and the single applicable
tax row for an importer out of the versioned rate tables.

A row applies to the query window ``[start, end]`` when::

    valid_from <= end  AND  coalesce(valid_to, OPEN_END) >= start

``OPEN_END`` is fixed by the ``open_end_policy`` setting: ``today`` makes
open-ended rows valid through the current date only, ``infinite`` keeps them
valid indefinitely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from landedcost.date_range import DateWindow
from landedcost.errors import NoApplicableTariff, NoApplicableTax
from landedcost.rate_store import CountryRecord, RateStore, TariffRateRecord, TaxRuleRecord
from landedcost.settings import (
    OPEN_END_INFINITE,
    OPEN_END_TODAY,
    TIE_BREAK_LATEST_VALID_FROM,
    TIE_BREAK_LOWEST_RATE,
)

logger = logging.getLogger(__name__)

_OPEN_END_NOTE = "Note: open-ended rates are only considered valid through today."


@dataclass(frozen=True)
class Lane:
    """(exporter, importer, HS code, agreement) tariff context, all canonical codes."""

    exporter_code: str
    importer_code: str
    hs_code: str
    agreement_code: str

    def __str__(self) -> str:
        return f"{self.exporter_code}->{self.importer_code} {self.hs_code} {self.agreement_code}"


def _newest_first(row) -> tuple:
    return (-row.valid_from.toordinal(), -row.id)


class RateLookupEngine:
    """Applies overlap, open-end and tie-break rules on top of a RateStore."""

    def __init__(
        self,
        store: RateStore,
        open_end_policy: str = OPEN_END_TODAY,
        tie_break: str = TIE_BREAK_LOWEST_RATE,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.open_end_policy = open_end_policy
        self.tie_break = tie_break
        self.today = today

    def _open_end(self) -> Optional[date]:
        """Date that stands in for a NULL valid_to; None means no limit."""
        if self.open_end_policy == OPEN_END_INFINITE:
            return None
        return self.today()

    def is_applicable(self, valid_from: date, valid_to: Optional[date], window: DateWindow) -> bool:
        if valid_from > window.end:
            return False
        effective_to = valid_to if valid_to is not None else self._open_end()
        return effective_to is None or effective_to >= window.start

    def _open_end_note(self) -> str:
        return _OPEN_END_NOTE if self.open_end_policy == OPEN_END_TODAY else ""

    def applicable_tariffs(self, lane: Lane, window: DateWindow) -> List[TariffRateRecord]:
        candidates = self.store.find_tariffs(
            lane.exporter_code,
            lane.importer_code,
            lane.hs_code,
            lane.agreement_code,
            window.start,
            window.end,
        )
        return [row for row in candidates if self.is_applicable(row.valid_from, row.valid_to, window)]

    def pick_tariff(self, rows: List[TariffRateRecord]) -> TariffRateRecord:
        """Tie-break among overlapping versions.

        lowest_rate: smallest rate_percent, then newest valid_from, then highest id.
        latest_valid_from: newest valid_from, then highest id.
        """
        if self.tie_break == TIE_BREAK_LATEST_VALID_FROM:
            return min(rows, key=_newest_first)
        return min(rows, key=lambda row: (row.rate_percent,) + _newest_first(row))

    def find_tariff(self, lane: Lane, window: DateWindow) -> TariffRateRecord:
        rows = self.applicable_tariffs(lane, window)
        if not rows:
            logger.info(f"No tariff for {lane} in {window.start}..{window.end}")
            raise NoApplicableTariff(lane, window, self._open_end_note())
        chosen = self.pick_tariff(rows)
        if len(rows) > 1:
            logger.debug(
                f"{len(rows)} tariff versions overlap {lane}; {self.tie_break} picked id={chosen.id} "
                f"rate={chosen.rate_percent}"
            )
        return chosen

    def find_tax(self, importer: CountryRecord, window: DateWindow) -> TaxRuleRecord:
        """Tax is importer-side only; newest valid_from wins."""
        candidates = self.store.find_taxes(importer.id, window.start, window.end)
        rows = [row for row in candidates if self.is_applicable(row.valid_from, row.valid_to, window)]
        if not rows:
            logger.info(f"No tax rule for importer {importer.code} in {window.start}..{window.end}")
            raise NoApplicableTax(importer.code, window, self._open_end_note())
        return min(rows, key=_newest_first)
