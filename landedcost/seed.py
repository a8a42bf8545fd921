"""
Reference data loader
Reads countries, HS codes, agreements, tariff rates and tax rules from CSV
files and upserts them by natural key. Rows that point at unknown codes or
carry unparsable values are skipped and reported, never half-loaded.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from landedcost.errors import FieldError
from landedcost.models import Agreement, Country, HsCode, TariffRate, TaxRule
from landedcost.normalizer import normalize_code, normalize_hs_code, parse_decimal, parse_flexible_date
from landedcost.tariff_utils import CUSTOMS_BASES, CUSTOMS_BASIS_CIF, HS_CODE_LENGTH

logger = logging.getLogger(__name__)

# Load order matters: rates reference the tables above them
SEED_FILES = (
    ("countries", "countries.csv", ["country_code", "country_name", "customs_basis"]),
    ("hs_codes", "hs_codes.csv", ["hs_code", "description"]),
    ("agreements", "agreements.csv", ["agreement_code"]),
    ("tariff_rates", "tariff_rates.csv",
     ["exporter_code", "importer_code", "hs_code", "agreement_code", "rate_percent", "valid_from"]),
    ("tax_rules", "tax_rules.csv", ["country_code", "tax_type", "rate_percent", "valid_from"]),
)


class SeedFileError(ValueError):
    """A CSV file is missing required columns."""


@dataclass
class TableCounts:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0


@dataclass
class SeedResult:
    counts: Dict[str, TableCounts] = field(default_factory=dict)
    problems: List[str] = field(default_factory=list)

    def table(self, name: str) -> TableCounts:
        return self.counts.setdefault(name, TableCounts())

    def skip(self, name: str, row_number: int, reason: str):
        self.table(name).skipped += 1
        self.problems.append(f"{name} row {row_number}: {reason}")


def read_seed_csv(path: str, required_columns: List[str]) -> pd.DataFrame:
    """Read a CSV as text so codes keep leading zeros ("010121")."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required_columns if c not in df.columns]
    if missing:
        raise SeedFileError(f"{os.path.basename(path)} must contain: {', '.join(missing)}")
    return df


def _text(row, column: str) -> str:
    value = row.get(column, "")
    return str(value).strip() if value is not None else ""


def _optional_date(row, column: str):
    return parse_flexible_date(_text(row, column), column)


def _rate(row, column: str = "rate_percent") -> Decimal:
    rate = parse_decimal(_text(row, column), column)
    if rate is None:
        raise ValueError(f"{column} is required")
    if rate < 0:
        raise ValueError(f"{column} must not be negative")
    return rate


def _upsert(db: Session, model, lookup: dict, values: dict, counts: TableCounts):
    instance = db.query(model).filter_by(**lookup).first()
    if instance is None:
        db.add(model(**lookup, **values))
        counts.inserted += 1
    else:
        for key, value in values.items():
            setattr(instance, key, value)
        counts.updated += 1
    db.flush()


def load_countries(db: Session, df: pd.DataFrame, result: SeedResult):
    counts = result.table("countries")
    for index, row in df.iterrows():
        code = normalize_code(_text(row, "country_code"))
        name = _text(row, "country_name")
        basis = normalize_code(_text(row, "customs_basis")) or CUSTOMS_BASIS_CIF
        if len(code) != 2 or not code.isalpha() or not name:
            result.skip("countries", index + 2, f"invalid country '{code}' / '{name}'")
            continue
        if basis not in CUSTOMS_BASES:
            result.skip("countries", index + 2, f"customs_basis must be CIF or FOB, got '{basis}'")
            continue
        _upsert(db, Country, {"country_code": code}, {"country_name": name, "customs_basis": basis}, counts)


def load_hs_codes(db: Session, df: pd.DataFrame, result: SeedResult):
    counts = result.table("hs_codes")
    for index, row in df.iterrows():
        code = normalize_hs_code(_text(row, "hs_code"))
        description = _text(row, "description")
        if len(code) != HS_CODE_LENGTH or not description:
            result.skip("hs_codes", index + 2, f"invalid HS code '{code}'")
            continue
        _upsert(db, HsCode, {"hs_code": code}, {"description": description}, counts)


def load_agreements(db: Session, df: pd.DataFrame, result: SeedResult):
    counts = result.table("agreements")
    for index, row in df.iterrows():
        code = normalize_code(_text(row, "agreement_code"))
        if not code:
            result.skip("agreements", index + 2, "agreement_code is required")
            continue
        _upsert(db, Agreement, {"agreement_code": code}, {"agreement_name": _text(row, "agreement_name") or None}, counts)


def load_tariff_rates(db: Session, df: pd.DataFrame, result: SeedResult):
    counts = result.table("tariff_rates")
    countries = {c.country_code: c.id for c in db.query(Country).all()}
    hs_codes = {h.hs_code: h.id for h in db.query(HsCode).all()}
    agreements = {a.agreement_code: a.id for a in db.query(Agreement).all()}

    for index, row in df.iterrows():
        exporter = normalize_code(_text(row, "exporter_code"))
        importer = normalize_code(_text(row, "importer_code"))
        hs_code = normalize_hs_code(_text(row, "hs_code"))
        agreement = normalize_code(_text(row, "agreement_code"))

        unknown = [
            f"{label} '{code}'"
            for label, code, known in (
                ("exporter", exporter, countries),
                ("importer", importer, countries),
                ("HS code", hs_code, hs_codes),
                ("agreement", agreement, agreements),
            )
            if code not in known
        ]
        if unknown:
            result.skip("tariff_rates", index + 2, f"unknown {', '.join(unknown)}")
            continue

        try:
            rate = _rate(row)
            valid_from = _optional_date(row, "valid_from")
            valid_to = _optional_date(row, "valid_to")
        except (FieldError, ValueError) as e:
            result.skip("tariff_rates", index + 2, str(e))
            continue
        if valid_from is None:
            result.skip("tariff_rates", index + 2, "valid_from is required")
            continue

        _upsert(
            db,
            TariffRate,
            {
                "exporter_id": countries[exporter],
                "importer_id": countries[importer],
                "hs_code_id": hs_codes[hs_code],
                "agreement_id": agreements[agreement],
                "valid_from": valid_from,
            },
            {"rate_percent": rate, "valid_to": valid_to, "source_ref": _text(row, "source_ref") or None},
            counts,
        )


def load_tax_rules(db: Session, df: pd.DataFrame, result: SeedResult):
    counts = result.table("tax_rules")
    countries = {c.country_code: c.id for c in db.query(Country).all()}

    for index, row in df.iterrows():
        code = normalize_code(_text(row, "country_code"))
        tax_type = normalize_code(_text(row, "tax_type"))
        if code not in countries:
            result.skip("tax_rules", index + 2, f"unknown country '{code}'")
            continue
        if not tax_type:
            result.skip("tax_rules", index + 2, "tax_type is required")
            continue
        try:
            rate = _rate(row)
            valid_from = _optional_date(row, "valid_from")
            valid_to = _optional_date(row, "valid_to")
        except (FieldError, ValueError) as e:
            result.skip("tax_rules", index + 2, str(e))
            continue
        if valid_from is None:
            result.skip("tax_rules", index + 2, "valid_from is required")
            continue

        _upsert(
            db,
            TaxRule,
            {"country_id": countries[code], "tax_type": tax_type, "valid_from": valid_from},
            {"rate_percent": rate, "valid_to": valid_to},
            counts,
        )


LOADERS = {
    "countries": load_countries,
    "hs_codes": load_hs_codes,
    "agreements": load_agreements,
    "tariff_rates": load_tariff_rates,
    "tax_rules": load_tax_rules,
}


def load_reference_data(db: Session, directory: str, result: Optional[SeedResult] = None) -> SeedResult:
    """Load every seed CSV found in directory inside one transaction."""
    result = result or SeedResult()
    try:
        for table, filename, required in SEED_FILES:
            path = os.path.join(directory, filename)
            if not os.path.exists(path):
                logger.info(f"Seed file not found, skipping: {path}")
                continue
            df = read_seed_csv(path, required)
            LOADERS[table](db, df, result)
            counts = result.table(table)
            logger.info(
                f"Loaded {filename}: {counts.inserted} inserted, {counts.updated} updated, {counts.skipped} skipped"
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    for problem in result.problems:
        logger.warning(f"Skipped {problem}")
    return result
