import os
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from landedcost.api import app, get_today
from landedcost.database import get_db
from landedcost.engine import LandedCostEngine, LandedCostRequest
from landedcost.models import Base
from landedcost.rate_store import (
    AgreementRecord,
    CountryRecord,
    HsCodeRecord,
    InMemoryRateStore,
    TariffRateRecord,
    TaxRuleRecord,
)
from landedcost.seed import load_reference_data
from landedcost.settings import EngineSettings

TODAY = date(2026, 1, 15)
SAMPLE_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "sample_data")

COUNTRIES = (
    CountryRecord(1, "SG", "Singapore", "CIF"),
    CountryRecord(2, "US", "United States", "FOB"),
    CountryRecord(3, "JP", "Japan", "CIF"),
    CountryRecord(4, "CN", "China", "CIF"),
    CountryRecord(5, "AU", "Australia", "FOB"),
)

HS_CODES = (
    HsCodeRecord(1, "010121", "Live horses; pure-bred breeding animals"),
    HsCodeRecord(2, "090111", "Coffee, not roasted, not decaffeinated"),
    HsCodeRecord(3, "220830", "Whiskies"),
    HsCodeRecord(4, "847130", "Portable automatic data processing machines, weighing not more than 10 kg"),
)

AGREEMENTS = (
    AgreementRecord(1, "MFN", "Most-Favoured-Nation"),
    AgreementRecord(2, "CPTPP", "Comprehensive and Progressive Agreement for Trans-Pacific Partnership"),
)

TARIFFS = (
    TariffRateRecord(1, "SG", "US", "010121", "MFN", Decimal("13.85"), date(2024, 1, 1), date(2025, 1, 13)),
    TariffRateRecord(2, "SG", "US", "010121", "MFN", Decimal("17.76"), date(2025, 1, 14)),
    TariffRateRecord(3, "SG", "JP", "010121", "MFN", Decimal("6.5"), date(2024, 1, 1)),
    TariffRateRecord(4, "SG", "JP", "010121", "CPTPP", Decimal("4.0"), date(2024, 1, 1)),
    TariffRateRecord(5, "SG", "US", "847130", "MFN", Decimal("0"), date(2024, 1, 1)),
    TariffRateRecord(6, "CN", "US", "847130", "MFN", Decimal("25"), date(2018, 9, 24)),
    TariffRateRecord(7, "JP", "SG", "220830", "MFN", Decimal("0"), date(2024, 1, 1)),
    TariffRateRecord(8, "SG", "AU", "090111", "MFN", Decimal("0"), date(2024, 1, 1)),
)

TAXES = (
    TaxRuleRecord(1, 2, "SALES", Decimal("0"), date(2024, 1, 1)),
    TaxRuleRecord(2, 3, "CONSUMPTION", Decimal("10"), date(2019, 10, 1)),
    TaxRuleRecord(3, 1, "GST", Decimal("8"), date(2023, 1, 1), date(2023, 12, 31)),
    TaxRuleRecord(4, 1, "GST", Decimal("9"), date(2024, 1, 1)),
    TaxRuleRecord(5, 5, "GST", Decimal("10"), date(2000, 7, 1)),
    TaxRuleRecord(6, 4, "VAT", Decimal("13"), date(2019, 4, 1)),
)


class SpyRateStore(InMemoryRateStore):
    """Records every store call so tests can assert what was (not) looked up."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def resolve_country(self, text):
        self.calls.append("resolve_country")
        return super().resolve_country(text)

    def resolve_hs_code_by_description(self, text):
        self.calls.append("resolve_hs_code_by_description")
        return super().resolve_hs_code_by_description(text)

    def find_tariffs(self, *args):
        self.calls.append("find_tariffs")
        return super().find_tariffs(*args)

    def find_taxes(self, *args):
        self.calls.append("find_taxes")
        return super().find_taxes(*args)


@pytest.fixture
def make_store():
    """Build an in-memory store over the reference records, optionally swapping tariffs/taxes."""

    def _make(tariffs=TARIFFS, taxes=TAXES, spy=False):
        store_class = SpyRateStore if spy else InMemoryRateStore
        return store_class(COUNTRIES, HS_CODES, AGREEMENTS, tariffs, taxes)

    return _make


@pytest.fixture
def store(make_store):
    return make_store()


@pytest.fixture
def spy_store(make_store):
    return make_store(spy=True)


@pytest.fixture
def make_engine(store):
    def _make(rate_store=None, **settings):
        return LandedCostEngine(
            rate_store or store,
            settings=EngineSettings(**settings),
            today=lambda: TODAY,
        )

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def scenario_a_request():
    return LandedCostRequest(
        exporter="Singapore",
        importer="United States",
        hs_code="010121",
        agreement="MFN",
        goods_value=1000,
        quantity=2,
        freight=50,
        insurance=100,
        effective_date="2025-10-28",
    )


@pytest.fixture
def empty_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(empty_session):
    load_reference_data(empty_session, SAMPLE_DATA_DIR)
    return empty_session


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
