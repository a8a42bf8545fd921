from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from landedcost.engine import LandedCostRequest, QuoteState
from landedcost.errors import (
    InvalidHsCodeLength,
    InvalidLaneInput,
    MissingEffectiveDate,
    NoApplicableTariff,
    NoApplicableTax,
    RequestValidationError,
    UnresolvableCountry,
    UnresolvableHsCode,
)
from landedcost.settings import (
    DATE_INPUT_EFFECTIVE,
    OPEN_END_INFINITE,
    TIE_BREAK_LATEST_VALID_FROM,
)


def horses(**overrides):
    values = dict(exporter="SG", importer="JP", hs_code="010121", agreement="MFN", goods_value=1000)
    values.update(overrides)
    return LandedCostRequest(**values)


# Scenario A: FOB importer
def test_fob_importer_excludes_freight_and_insurance(engine, scenario_a_request):
    result = engine.compute_landed_cost(scenario_a_request)
    assert result.exporter_code == "SG"
    assert result.importer_code == "US"
    assert result.customs_basis == "FOB"
    assert result.customs_value == Decimal("2000")
    assert result.rate_percent == Decimal("17.76")
    assert result.duty == Decimal("355.2")
    assert result.tax_type == "SALES"
    assert result.total_landed_cost == Decimal("2355.20")
    assert (result.window_start, result.window_end) == (date(2025, 10, 28), date(2025, 10, 28))


def test_fob_total_ignores_freight_and_insurance(engine, scenario_a_request):
    with_costs = engine.compute_landed_cost(scenario_a_request)
    without = engine.compute_landed_cost(replace(scenario_a_request, freight=0, insurance=None))
    for field in ("customs_value", "duty", "tax", "total_landed_cost"):
        assert getattr(with_costs, field) == getattr(without, field), field
    assert with_costs.customs_value == Decimal("2000")


# Scenario B: rate version boundary
def test_rate_changes_across_version_boundary(engine):
    before = engine.compute_landed_cost(horses(importer="US", start_date="2025-01-13"))
    after = engine.compute_landed_cost(horses(importer="US", start_date="14/01/2025"))
    assert before.rate_percent == Decimal("13.85")
    assert after.rate_percent == Decimal("17.76")


# Scenario C: agreement selects rate
def test_agreement_changes_rate(engine):
    mfn = engine.compute_landed_cost(horses(effective_date="2025-06-01"))
    cptpp = engine.compute_landed_cost(horses(agreement="cptpp", effective_date="2025-06-01"))
    assert mfn.rate_percent == Decimal("6.5")
    assert cptpp.rate_percent == Decimal("4.0")
    assert cptpp.agreement == "CPTPP"


# Scenario D: unresolvable country
def test_unresolvable_exporter_stops_before_rate_lookup(make_engine, spy_store):
    engine = make_engine(spy_store)
    with pytest.raises(UnresolvableCountry) as exc:
        engine.compute_landed_cost(horses(exporter="NotACountry"))
    assert exc.value.raw_input == "NotACountry"
    assert "find_tariffs" not in spy_store.calls
    assert "find_taxes" not in spy_store.calls


# Scenario E: neither HS code nor description
def test_missing_hs_code_and_description(engine):
    with pytest.raises(RequestValidationError) as exc:
        engine.compute_landed_cost(horses(hs_code=None))
    assert exc.value.kinds == ["MissingRequiredField"]
    assert exc.value.fields == ["hsCode|productDescription"]


def test_cif_importer_taxes_duty_inclusive_value(engine):
    result = engine.compute_landed_cost(
        horses(quantity=2, freight="50", insurance="100", effective_date="2025-06-01")
    )
    assert result.customs_value == Decimal("2150")
    assert result.duty == Decimal("139.75")
    assert result.tax == Decimal("228.975")
    assert result.total_landed_cost == Decimal("2518.73")
    assert result.tax_type == "CONSUMPTION"


def test_same_request_same_result(engine, scenario_a_request):
    assert engine.compute_landed_cost(scenario_a_request) == engine.compute_landed_cost(scenario_a_request)


def test_total_has_two_decimals(engine):
    result = engine.compute_landed_cost(horses(goods_value="333.33", quantity=3, effective_date="2025-06-01"))
    assert result.total_landed_cost.as_tuple().exponent == -2


def test_negative_input_rejected_without_store_access(make_engine, spy_store):
    engine = make_engine(spy_store)
    with pytest.raises(RequestValidationError) as exc:
        engine.compute_landed_cost(horses(goods_value=-1))
    assert exc.value.kinds == ["NegativeNumericField"]
    assert spy_store.calls == []


def test_product_description_resolves_hs_code(engine):
    result = engine.compute_landed_cost(
        LandedCostRequest(
            exporter="Singapore",
            importer="Australia",
            product_description="coffee",
            agreement="MFN",
            goods_value="200",
            quantity="3",
            freight=20,
            effective_date="2025-06-01",
        )
    )
    assert result.hs_code == "090111"
    assert result.customs_value == Decimal("600")
    assert result.tax == Decimal("60")
    assert result.total_landed_cost == Decimal("660.00")


def test_unmatched_description(engine):
    with pytest.raises(UnresolvableHsCode):
        engine.compute_landed_cost(horses(hs_code=None, product_description="unicorn dust"))


def test_several_unresolved_inputs_are_reported_together(engine):
    with pytest.raises(InvalidLaneInput) as exc:
        engine.compute_landed_cost(horses(exporter="Atlantis", importer="Narnia"))
    assert exc.value.kind == "InvalidLaneInput"
    assert [p.kind for p in exc.value.problems] == ["UnresolvableCountry", "UnresolvableCountry"]
    assert len(exc.value.errors) == 2


def test_wrong_length_hs_code(engine):
    with pytest.raises(InvalidHsCodeLength):
        engine.compute_landed_cost(horses(hs_code="0101"))


def test_missing_tariff_skips_tax_lookup(make_engine, spy_store):
    engine = make_engine(spy_store)
    with pytest.raises(NoApplicableTariff):
        engine.compute_landed_cost(horses(importer="US", agreement="CPTPP", effective_date="2025-06-01"))
    assert "find_tariffs" in spy_store.calls
    assert "find_taxes" not in spy_store.calls


def test_missing_tax(engine):
    request = LandedCostRequest(
        exporter="CN", importer="US", hs_code="847130", agreement="MFN",
        goods_value=500, effective_date="2020-01-01",
    )
    with pytest.raises(NoApplicableTax):
        engine.compute_landed_cost(request)


def test_future_date_needs_infinite_open_end(make_engine):
    request = horses(importer="US", effective_date="2026-06-01")
    with pytest.raises(NoApplicableTariff):
        make_engine().compute_landed_cost(request)
    result = make_engine(open_end_policy=OPEN_END_INFINITE).compute_landed_cost(request)
    assert result.rate_percent == Decimal("17.76")


def test_window_spanning_boundary_follows_tie_break(make_engine):
    request = horses(importer="US", start_date="20/01/2025", end_date="2025-01-10")
    lowest = make_engine().compute_landed_cost(request)
    latest = make_engine(tariff_tie_break=TIE_BREAK_LATEST_VALID_FROM).compute_landed_cost(request)
    assert lowest.window_start == date(2025, 1, 10)
    assert lowest.rate_percent == Decimal("13.85")
    assert latest.rate_percent == Decimal("17.76")


def test_no_dates_means_today(engine):
    result = engine.compute_landed_cost(horses())
    assert result.window_start == result.window_end == date(2026, 1, 15)


def test_effective_mode_requires_effective_date(make_engine):
    with pytest.raises(MissingEffectiveDate):
        make_engine(date_input_mode=DATE_INPUT_EFFECTIVE).compute_landed_cost(horses(start_date="2025-06-01"))


def test_from_payload_reads_external_keys(engine):
    request = LandedCostRequest.from_payload(
        {
            "exporter": "SG",
            "importer": "JP",
            "hsCode": "010121",
            "agreement": "MFN",
            "goods_value": "1000",
            "effectiveDate": "2025-06-01",
        }
    )
    assert request.hs_code == "010121"
    assert engine.compute_landed_cost(request).rate_percent == Decimal("6.5")


def test_quote_states_are_ordered():
    assert [s.value for s in QuoteState] == ["EMPTY", "VALIDATED", "RESOLVED", "QUOTED"]
