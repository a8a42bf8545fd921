from decimal import Decimal

import pytest

from landedcost.tariff_calculator import TariffCalculator, ValuationInputs


def inputs(**overrides):
    values = dict(
        goods_value=Decimal("1000"),
        quantity=2,
        freight=Decimal("50"),
        insurance=Decimal("100"),
        customs_basis="CIF",
        rate_percent=Decimal("6.5"),
        tax_rate_percent=Decimal("10"),
    )
    values.update(overrides)
    return ValuationInputs(**values)


@pytest.fixture
def calculator():
    return TariffCalculator()


def test_cif_includes_freight_and_insurance(calculator):
    assert calculator.quote(inputs()).customs_value == Decimal("2150")


def test_fob_excludes_freight_and_insurance(calculator):
    cheap = calculator.quote(inputs(customs_basis="FOB", freight=Decimal("0"), insurance=Decimal("0")))
    pricey = calculator.quote(inputs(customs_basis="FOB", freight=Decimal("900"), insurance=Decimal("300")))
    assert cheap.customs_value == pricey.customs_value == Decimal("2000")
    assert cheap == pricey


@pytest.mark.parametrize("basis", ["", None, "DDP"])
def test_basis_other_than_cif_is_valued_fob(calculator, basis):
    customs_value, notes = calculator.compute_customs_value(
        inputs(customs_basis=basis, goods_value=Decimal("100"), quantity=1, freight=Decimal("50"), insurance=Decimal("50"))
    )
    assert customs_value == Decimal("100")
    assert notes[0].startswith("FOB")


def test_lowercase_cif_is_recognised(calculator):
    assert calculator.quote(inputs(customs_basis="cif")).customs_value == Decimal("2150")


def test_tax_is_levied_on_duty_inclusive_value(calculator):
    valuation = calculator.quote(inputs())
    assert valuation.duty == Decimal("139.75")
    assert valuation.tax == (valuation.customs_value + valuation.duty) * Decimal("10") / 100
    assert valuation.tax == Decimal("228.975")


def test_only_the_total_is_rounded(calculator):
    valuation = calculator.quote(inputs())
    # 2150 + 139.75 + 228.975 = 2518.725 -> half-up
    assert valuation.total_landed_cost == Decimal("2518.73")
    assert valuation.tax == Decimal("228.975")
    assert valuation.total_landed_cost.as_tuple().exponent == -2


def test_zero_rates_total_equals_customs_value(calculator):
    valuation = calculator.quote(inputs(rate_percent=Decimal("0"), tax_rate_percent=Decimal("0")))
    assert valuation.total_landed_cost == Decimal("2150.00")


def test_fractional_amounts_round_half_up(calculator):
    valuation = calculator.quote(
        inputs(
            goods_value=Decimal("0.005"),
            quantity=1,
            freight=Decimal("0"),
            insurance=Decimal("0"),
            rate_percent=Decimal("0"),
            tax_rate_percent=Decimal("0"),
        )
    )
    assert valuation.total_landed_cost == Decimal("0.01")
