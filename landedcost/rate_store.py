"""Rate Store: read access to countries, HS codes, agreements and versioned rates.

The engine only ever reads through the ``RateStore`` interface and receives
frozen record copies, so it does not care whether rows come from SQL or from
memory.  ``SqlRateStore`` wraps a SQLAlchemy session; ``InMemoryRateStore``
holds plain lists and is used by tests and scripts.

Both ``find_*`` queries return every row whose window can overlap the query
window when open-ended rows are taken as open-ended.  How far an open-ended
row really reaches is an engine policy, applied in ``rate_lookup``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, aliased

from landedcost.models import Agreement, Country, HsCode, TariffRate, TaxRule
from landedcost.tariff_utils import is_iso_alpha2

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CountryRecord:
    id: int
    code: str
    name: str
    customs_basis: str


@dataclass(frozen=True)
class HsCodeRecord:
    id: int
    code: str
    description: str


@dataclass(frozen=True)
class AgreementRecord:
    id: int
    code: str
    name: Optional[str] = None


@dataclass(frozen=True)
class TariffRateRecord:
    """One tariff version for a lane."""

    id: int
    exporter_code: str
    importer_code: str
    hs_code: str
    agreement_code: str
    rate_percent: Decimal
    valid_from: date
    valid_to: Optional[date] = None
    # Display details, filled by listing queries
    hs_description: Optional[str] = None
    exporter_name: Optional[str] = None
    importer_name: Optional[str] = None
    agreement_name: Optional[str] = None
    customs_basis: Optional[str] = None


@dataclass(frozen=True)
class TaxRuleRecord:
    id: int
    country_id: int
    tax_type: str
    rate_percent: Decimal
    valid_from: date
    valid_to: Optional[date] = None


def overlaps(valid_from: date, valid_to: Optional[date], window_start: date, window_end: date) -> bool:
    """Open-ended overlap test: valid_from <= end and (valid_to is NULL or valid_to >= start)."""
    return valid_from <= window_end and (valid_to is None or valid_to >= window_start)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------
class RateStore(ABC):
    """Read-only reference data source for the landed cost engine."""

    @abstractmethod
    def resolve_country(self, text: str) -> Optional[CountryRecord]:
        """Exact code match for 2-letter input, else case-insensitive exact name match."""

    @abstractmethod
    def resolve_hs_code_by_description(self, text: str) -> Optional[HsCodeRecord]:
        """Exact case-insensitive description, else the shortest description containing text."""

    @abstractmethod
    def find_tariffs(
        self,
        exporter_code: str,
        importer_code: str,
        hs_code: str,
        agreement_code: str,
        window_start: date,
        window_end: date,
    ) -> List[TariffRateRecord]:
        ...

    @abstractmethod
    def find_taxes(self, importer_country_id: int, window_start: date, window_end: date) -> List[TaxRuleRecord]:
        ...

    # Listing helpers for the reference-data endpoints

    @abstractmethod
    def list_countries(self) -> List[CountryRecord]:
        ...

    def get_country(self, code: str) -> Optional[CountryRecord]:
        code = (code or "").strip().upper()
        for country in self.list_countries():
            if country.code.upper() == code:
                return country
        return None

    @abstractmethod
    def list_hs_codes(self) -> List[HsCodeRecord]:
        ...

    @abstractmethod
    def list_agreements(self) -> List[AgreementRecord]:
        ...

    @abstractmethod
    def list_tariffs(
        self,
        as_of: date,
        importer: Optional[str] = None,
        exporter: Optional[str] = None,
        agreement: Optional[str] = None,
    ) -> List[TariffRateRecord]:
        """Tariff rows not yet expired on ``as_of`` (valid_to NULL or >= as_of)."""


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------
def _country_record(row: Country) -> CountryRecord:
    return CountryRecord(
        id=row.id,
        code=row.country_code,
        name=row.country_name,
        customs_basis=(row.customs_basis or "").upper(),
    )


def _hs_record(row: HsCode) -> HsCodeRecord:
    return HsCodeRecord(id=row.id, code=row.hs_code, description=row.description)


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with the wildcard characters in text escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SqlRateStore(RateStore):
    """RateStore backed by the relational reference tables."""

    def __init__(self, db: Session):
        self.db = db

    def resolve_country(self, text: str) -> Optional[CountryRecord]:
        if not text or not text.strip():
            return None
        text = text.strip()
        query = self.db.query(Country)
        if is_iso_alpha2(text):
            query = query.filter(func.upper(Country.country_code) == text.upper())
        else:
            query = query.filter(func.lower(Country.country_name) == text.lower())
        row = query.order_by(Country.id).first()
        return _country_record(row) if row else None

    def resolve_hs_code_by_description(self, text: str) -> Optional[HsCodeRecord]:
        if not text or not text.strip():
            return None
        needle = text.strip().lower()

        exact = (
            self.db.query(HsCode)
            .filter(func.lower(HsCode.description) == needle)
            .order_by(HsCode.id)
            .first()
        )
        if exact:
            return _hs_record(exact)

        # Shortest matching description is the most specific entry
        partial = (
            self.db.query(HsCode)
            .filter(func.lower(HsCode.description).like(_like_pattern(needle), escape="\\"))
            .order_by(func.length(HsCode.description).asc(), HsCode.id.asc())
            .first()
        )
        return _hs_record(partial) if partial else None

    def _tariff_query(self):
        exporter = aliased(Country)
        importer = aliased(Country)
        query = (
            self.db.query(
                TariffRate,
                exporter.country_code,
                exporter.country_name,
                importer.country_code,
                importer.country_name,
                importer.customs_basis,
                HsCode.hs_code,
                HsCode.description,
                Agreement.agreement_code,
                Agreement.agreement_name,
            )
            .join(exporter, exporter.id == TariffRate.exporter_id)
            .join(importer, importer.id == TariffRate.importer_id)
            .join(HsCode, HsCode.id == TariffRate.hs_code_id)
            .join(Agreement, Agreement.id == TariffRate.agreement_id)
        )
        return query, exporter, importer

    @staticmethod
    def _tariff_record(row) -> TariffRateRecord:
        (rate, exporter_code, exporter_name, importer_code, importer_name,
         customs_basis, hs_code, hs_description, agreement_code, agreement_name) = row
        return TariffRateRecord(
            id=rate.id,
            exporter_code=exporter_code,
            importer_code=importer_code,
            hs_code=hs_code,
            agreement_code=agreement_code,
            rate_percent=_decimal(rate.rate_percent),
            valid_from=rate.valid_from,
            valid_to=rate.valid_to,
            hs_description=hs_description,
            exporter_name=exporter_name,
            importer_name=importer_name,
            agreement_name=agreement_name,
            customs_basis=(customs_basis or "").upper() or None,
        )

    def find_tariffs(self, exporter_code, importer_code, hs_code, agreement_code, window_start, window_end):
        query, exporter, importer = self._tariff_query()
        rows = (
            query.filter(
                func.upper(exporter.country_code) == exporter_code.upper(),
                func.upper(importer.country_code) == importer_code.upper(),
                func.upper(HsCode.hs_code) == hs_code.upper(),
                func.upper(Agreement.agreement_code) == agreement_code.upper(),
                TariffRate.valid_from <= window_end,
                or_(TariffRate.valid_to.is_(None), TariffRate.valid_to >= window_start),
            )
            .order_by(TariffRate.valid_from.desc(), TariffRate.id.desc())
            .all()
        )
        return [self._tariff_record(row) for row in rows]

    def find_taxes(self, importer_country_id, window_start, window_end):
        rows = (
            self.db.query(TaxRule)
            .filter(
                TaxRule.country_id == importer_country_id,
                TaxRule.valid_from <= window_end,
                or_(TaxRule.valid_to.is_(None), TaxRule.valid_to >= window_start),
            )
            .order_by(TaxRule.valid_from.desc(), TaxRule.id.desc())
            .all()
        )
        return [
            TaxRuleRecord(
                id=row.id,
                country_id=row.country_id,
                tax_type=row.tax_type,
                rate_percent=_decimal(row.rate_percent),
                valid_from=row.valid_from,
                valid_to=row.valid_to,
            )
            for row in rows
        ]

    def list_countries(self):
        return [_country_record(row) for row in self.db.query(Country).order_by(Country.country_code).all()]

    def get_country(self, code):
        row = (
            self.db.query(Country)
            .filter(func.upper(Country.country_code) == (code or "").strip().upper())
            .first()
        )
        return _country_record(row) if row else None

    def list_hs_codes(self):
        return [_hs_record(row) for row in self.db.query(HsCode).order_by(HsCode.description).all()]

    def list_agreements(self):
        rows = self.db.query(Agreement).order_by(Agreement.agreement_code).all()
        return [AgreementRecord(id=row.id, code=row.agreement_code, name=row.agreement_name) for row in rows]

    def list_tariffs(self, as_of, importer=None, exporter=None, agreement=None):
        query, exporter_alias, importer_alias = self._tariff_query()
        query = query.filter(or_(TariffRate.valid_to.is_(None), TariffRate.valid_to >= as_of))
        if importer:
            query = query.filter(func.upper(importer_alias.country_code) == importer.strip().upper())
        if exporter:
            query = query.filter(func.upper(exporter_alias.country_code) == exporter.strip().upper())
        if agreement:
            query = query.filter(func.upper(Agreement.agreement_code) == agreement.strip().upper())
        rows = query.order_by(
            HsCode.hs_code.asc(), Agreement.agreement_code.asc(), TariffRate.valid_from.asc(), TariffRate.id.asc()
        ).all()
        return [self._tariff_record(row) for row in rows]


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------
class InMemoryRateStore(RateStore):
    """RateStore over plain record lists. Never mutated after construction."""

    def __init__(
        self,
        countries: Iterable[CountryRecord] = (),
        hs_codes: Iterable[HsCodeRecord] = (),
        agreements: Iterable[AgreementRecord] = (),
        tariffs: Iterable[TariffRateRecord] = (),
        taxes: Iterable[TaxRuleRecord] = (),
    ):
        self.countries = tuple(countries)
        self.hs_codes = tuple(hs_codes)
        self.agreements = tuple(agreements)
        self.tariffs = tuple(tariffs)
        self.taxes = tuple(taxes)

    def resolve_country(self, text):
        if not text or not text.strip():
            return None
        text = text.strip()
        if is_iso_alpha2(text):
            matches = [c for c in self.countries if c.code.upper() == text.upper()]
        else:
            matches = [c for c in self.countries if c.name.lower() == text.lower()]
        return min(matches, key=lambda c: c.id) if matches else None

    def resolve_hs_code_by_description(self, text):
        if not text or not text.strip():
            return None
        needle = text.strip().lower()
        exact = [h for h in self.hs_codes if h.description.lower() == needle]
        if exact:
            return min(exact, key=lambda h: h.id)
        partial = [h for h in self.hs_codes if needle in h.description.lower()]
        if not partial:
            return None
        return min(partial, key=lambda h: (len(h.description), h.id))

    def _with_details(self, rate: TariffRateRecord) -> TariffRateRecord:
        countries = {c.code.upper(): c for c in self.countries}
        hs_codes = {h.code.upper(): h for h in self.hs_codes}
        agreements = {a.code.upper(): a for a in self.agreements}
        exporter = countries.get(rate.exporter_code.upper())
        importer = countries.get(rate.importer_code.upper())
        hs = hs_codes.get(rate.hs_code.upper())
        agreement = agreements.get(rate.agreement_code.upper())
        return TariffRateRecord(
            id=rate.id,
            exporter_code=rate.exporter_code,
            importer_code=rate.importer_code,
            hs_code=rate.hs_code,
            agreement_code=rate.agreement_code,
            rate_percent=rate.rate_percent,
            valid_from=rate.valid_from,
            valid_to=rate.valid_to,
            hs_description=hs.description if hs else rate.hs_description,
            exporter_name=exporter.name if exporter else rate.exporter_name,
            importer_name=importer.name if importer else rate.importer_name,
            agreement_name=agreement.name if agreement else rate.agreement_name,
            customs_basis=importer.customs_basis if importer else rate.customs_basis,
        )

    def find_tariffs(self, exporter_code, importer_code, hs_code, agreement_code, window_start, window_end):
        matches = [
            self._with_details(t)
            for t in self.tariffs
            if t.exporter_code.upper() == exporter_code.upper()
            and t.importer_code.upper() == importer_code.upper()
            and t.hs_code.upper() == hs_code.upper()
            and t.agreement_code.upper() == agreement_code.upper()
            and overlaps(t.valid_from, t.valid_to, window_start, window_end)
        ]
        return sorted(matches, key=lambda t: (t.valid_from, t.id), reverse=True)

    def find_taxes(self, importer_country_id, window_start, window_end):
        matches = [
            t for t in self.taxes
            if t.country_id == importer_country_id
            and overlaps(t.valid_from, t.valid_to, window_start, window_end)
        ]
        return sorted(matches, key=lambda t: (t.valid_from, t.id), reverse=True)

    def list_countries(self):
        return sorted(self.countries, key=lambda c: c.code)

    def list_hs_codes(self):
        return sorted(self.hs_codes, key=lambda h: h.description)

    def list_agreements(self):
        return sorted(self.agreements, key=lambda a: a.code)

    def list_tariffs(self, as_of, importer=None, exporter=None, agreement=None):
        rows = []
        for t in self.tariffs:
            if t.valid_to is not None and t.valid_to < as_of:
                continue
            if importer and t.importer_code.upper() != importer.strip().upper():
                continue
            if exporter and t.exporter_code.upper() != exporter.strip().upper():
                continue
            if agreement and t.agreement_code.upper() != agreement.strip().upper():
                continue
            rows.append(self._with_details(t))
        return sorted(rows, key=lambda t: (t.hs_code, t.agreement_code, t.valid_from, t.id))
