#!/usr/bin/env python3
"""
Constants and small helpers shared by the landed cost engine.

Centralizes the fixed product-scope rules (HS code length, customs bases,
accepted date layouts) and the monetary rounding used on final totals.
"""

from decimal import Decimal, ROUND_HALF_UP

# Product scope: only 6-character HS subheadings are priced
HS_CODE_LENGTH = 6

CUSTOMS_BASIS_CIF = "CIF"
CUSTOMS_BASIS_FOB = "FOB"
CUSTOMS_BASES = (CUSTOMS_BASIS_CIF, CUSTOMS_BASIS_FOB)

# Tried in order; first layout that parses wins
DATE_FORMATS = (
    "%Y-%m-%d",   # 2025-09-01
    "%d/%m/%Y",   # 01/09/2025 and 1/9/2025
)

DEFAULT_QUANTITY = 1

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

HS_OR_DESCRIPTION_FIELD = "hsCode|productDescription"


def is_blank(value):
    """True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def is_iso_alpha2(value):
    """True when the value looks like an ISO alpha-2 country code (e.g. "SG")."""
    return value is not None and len(value) == 2 and value.isalpha()


def round2(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places, half-up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
