import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import landedcost.cli as cli_module
import landedcost.database as database
from landedcost.cli import cli
from landedcost.models import Base, TariffRate

from conftest import SAMPLE_DATA_DIR


class FakeResponse:
    def __init__(self, status_code, body=None, content=b""):
        self.status_code = status_code
        self._body = body
        self.content = content

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


QUOTE = {
    "ok": True,
    "exporter_input": "SG",
    "importer_input": "JP",
    "exporter_code": "SG",
    "importer_code": "JP",
    "hs_code": "010121",
    "agreement": "MFN",
    "customs_basis": "CIF",
    "rate_percent": 6.5,
    "customs_value": 2150.0,
    "duty": 139.75,
    "tax_type": "CONSUMPTION",
    "tax_rate_percent": 10.0,
    "tax": 228.975,
    "quantity": 2,
    "total_landed_cost": 2518.73,
    "window_start": "2025-06-01",
    "window_end": "2025-06-01",
}


@pytest.fixture
def runner():
    return CliRunner()


def test_quote_posts_payload_and_prints_breakdown(runner, monkeypatch):
    sent = {}

    def fake_post(url, json=None, timeout=None):
        sent["url"] = url
        sent["json"] = json
        return FakeResponse(200, QUOTE)

    monkeypatch.setattr(cli_module.requests, "post", fake_post)
    result = runner.invoke(
        cli,
        ["--api-base", "http://api.test/", "quote", "-x", "SG", "-i", "JP", "--hs-code", "010121",
         "-v", "1000", "-q", "2", "--freight", "50", "--insurance", "100", "--date", "2025-06-01"],
    )

    assert result.exit_code == 0, result.output
    assert sent["url"] == "http://api.test/api/v1/calculate/landed-cost"
    assert sent["json"]["hsCode"] == "010121"
    assert sent["json"]["agreement"] == "MFN"
    assert sent["json"]["effectiveDate"] == "2025-06-01"
    assert "startDate" not in sent["json"]
    assert "Total landed cost: 2,518.73" in result.output


def test_quote_prints_api_errors(runner, monkeypatch):
    body = {
        "ok": False,
        "error": "Invalid input.",
        "kind": "RequestValidationError",
        "errors": ["goods_value must not be negative."],
    }
    monkeypatch.setattr(cli_module.requests, "post", lambda *a, **k: FakeResponse(400, body))
    result = runner.invoke(cli, ["quote", "-x", "SG", "-i", "JP", "--hs-code", "010121", "--goods-value=-1"])
    assert result.exit_code == 1
    assert "Invalid input." in result.output
    assert "goods_value must not be negative." in result.output


def test_tariffs_lists_rows(runner, monkeypatch):
    rows = [
        {"hs_code": "010121", "exporter_code": "SG", "importer_code": "JP", "agreement_code": "CPTPP",
         "rate_percent": 4.0, "valid_from": "2024-01-01", "valid_to": None},
    ]
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured["url"] = url
        captured["params"] = params
        return FakeResponse(200, rows)

    monkeypatch.setattr(cli_module.requests, "get", fake_get)
    result = runner.invoke(cli, ["tariffs", "-i", "JP"])
    assert result.exit_code == 0, result.output
    assert captured["url"].endswith("/api/v1/tariffs/list")
    assert captured["params"] == {"importer": "JP"}
    assert "010121" in result.output
    assert "open" in result.output


def test_tariffs_export_writes_file(runner, monkeypatch, tmp_path):
    csv_bytes = b"hs_code,rate_percent\n010121,4.0\n"
    monkeypatch.setattr(cli_module.requests, "get", lambda *a, **k: FakeResponse(200, content=csv_bytes))
    output = tmp_path / "tariffs.csv"
    result = runner.invoke(cli, ["tariffs", "-o", str(output)])
    assert result.exit_code == 0, result.output
    assert output.read_bytes() == csv_bytes


def test_seed_loads_sample_data(runner, monkeypatch, tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'seed.db'}")
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(bind=engine))
    monkeypatch.setattr(database, "init_db", lambda bind=None: Base.metadata.create_all(bind=engine))

    result = runner.invoke(cli, ["seed", "--data-dir", SAMPLE_DATA_DIR])

    assert result.exit_code == 0, result.output
    assert "tariff_rates: 8 inserted" in result.output
    session = sessionmaker(bind=engine)()
    try:
        assert session.query(TariffRate).count() == 8
    finally:
        session.close()
        engine.dispose()
