"""
Tariff Calculator Module
Turns a goods value, the importer's customs basis and the resolved duty and
tax rates into a landed cost breakdown.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple

from landedcost.tariff_utils import CUSTOMS_BASIS_CIF, DEFAULT_QUANTITY, HUNDRED, round2


@dataclass(frozen=True)
class ValuationInputs:
    goods_value: Decimal
    quantity: int
    freight: Decimal
    insurance: Decimal
    customs_basis: str        # importer's basis, CIF or FOB
    rate_percent: Decimal     # tariff rate
    tax_rate_percent: Decimal


@dataclass(frozen=True)
class Valuation:
    customs_value: Decimal
    duty: Decimal
    tax: Decimal
    total_landed_cost: Decimal  # only this figure is rounded
    notes: Tuple[str, ...] = ()


class TariffCalculator:
    """Calculate customs value, duty, tax and landed cost.

    All arithmetic stays in Decimal. Intermediates are never rounded; the
    total is rounded once, half-up to 2 decimals.
    """

    def compute_customs_value(self, inputs: ValuationInputs) -> Tuple[Decimal, List[str]]:
        """Return (customs_value, notes) for the importer's customs basis."""
        notes: List[str] = []
        quantity = inputs.quantity if inputs.quantity is not None else DEFAULT_QUANTITY
        quantity_adjusted = inputs.goods_value * quantity

        if (inputs.customs_basis or "").upper() == CUSTOMS_BASIS_CIF:
            notes.append("CIF: customs value includes freight and insurance.")
            return quantity_adjusted + inputs.freight + inputs.insurance, notes

        # Anything other than CIF, including a blank basis, is valued FOB
        notes.append("FOB: customs value is goods value x quantity; freight and insurance excluded.")
        return quantity_adjusted, notes

    def compute_duty(self, customs_value: Decimal, rate_percent: Decimal) -> Decimal:
        return customs_value * rate_percent / HUNDRED

    def compute_tax(self, customs_value: Decimal, duty: Decimal, tax_rate_percent: Decimal) -> Decimal:
        """Tax is levied on the duty-inclusive value."""
        return (customs_value + duty) * tax_rate_percent / HUNDRED

    def quote(self, inputs: ValuationInputs) -> Valuation:
        customs_value, notes = self.compute_customs_value(inputs)
        duty = self.compute_duty(customs_value, inputs.rate_percent)
        tax = self.compute_tax(customs_value, duty, inputs.tax_rate_percent)
        return Valuation(
            customs_value=customs_value,
            duty=duty,
            tax=tax,
            total_landed_cost=round2(customs_value + duty + tax),
            notes=tuple(notes),
        )
