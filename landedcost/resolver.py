"""
Entity Resolver
Turns country names-or-codes and HS code / product description inputs into
canonical identities using the Rate Store.
"""

import logging
from typing import Optional

from landedcost.errors import InvalidHsCodeLength
from landedcost.normalizer import normalize_country_input, normalize_hs_code
from landedcost.rate_store import CountryRecord, RateStore
from landedcost.tariff_utils import HS_CODE_LENGTH, is_blank

logger = logging.getLogger(__name__)


class EntityResolver:
    """Resolve lane identities. Misses come back as None so callers can aggregate them."""

    def __init__(self, store: RateStore):
        self.store = store

    def resolve_country(self, raw: Optional[str]) -> Optional[CountryRecord]:
        """Resolve "SG" (exact code) or "Singapore" (exact name, any case). No fuzzy matching."""
        text = normalize_country_input(raw)
        if not text:
            return None
        country = self.store.resolve_country(text)
        if country is None:
            logger.info(f"Country input not resolved: {text!r}")
        return country

    def resolve_hs_code(self, hs_code: Optional[str], product_description: Optional[str]) -> Optional[str]:
        """Return a canonical 6-character HS code.

        An explicit HS code wins and is only normalized. Otherwise the product
        description is matched against stored descriptions. Returns None when
        neither yields a code; raises InvalidHsCodeLength for a code of the
        wrong length.
        """
        if not is_blank(hs_code):
            resolved = normalize_hs_code(hs_code)
        elif not is_blank(product_description):
            match = self.store.resolve_hs_code_by_description(product_description.strip())
            if match is None:
                logger.info(f"Product description not resolved: {product_description.strip()!r}")
                return None
            resolved = normalize_hs_code(match.code)
        else:
            return None

        if not resolved:
            return None
        if len(resolved) != HS_CODE_LENGTH:
            raise InvalidHsCodeLength(resolved, HS_CODE_LENGTH)
        return resolved
