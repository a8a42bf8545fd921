"""
Landed Cost Engine
Orchestrates a single quote: validate -> resolve lane and window -> look up
rates -> value the shipment.

    EMPTY --validate--> VALIDATED --resolve--> RESOLVED --lookup+value--> QUOTED

Any failure stops the request with an EngineError; nothing is retained
between calls.
"""

import logging
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, List, Optional

from landedcost.date_range import DateWindow, resolve_date_window
from landedcost.errors import InvalidLaneInput, UnresolvableCountry, UnresolvableHsCode
from landedcost.rate_lookup import Lane, RateLookupEngine
from landedcost.rate_store import CountryRecord, RateStore
from landedcost.resolver import EntityResolver
from landedcost.settings import EngineSettings, load_settings
from landedcost.tariff_calculator import TariffCalculator, ValuationInputs
from landedcost.validator import RequestValidator, ValidatedRequest

logger = logging.getLogger(__name__)


class QuoteState(str, Enum):
    EMPTY = "EMPTY"
    VALIDATED = "VALIDATED"
    RESOLVED = "RESOLVED"
    QUOTED = "QUOTED"


@dataclass
class LandedCostRequest:
    """Raw request. Values are whatever the caller sent: strings, numbers or None."""

    exporter: Any = None
    importer: Any = None
    hs_code: Any = None
    product_description: Any = None
    agreement: Any = None
    goods_value: Any = None
    quantity: Any = None
    freight: Any = None
    insurance: Any = None
    start_date: Any = None
    end_date: Any = None
    effective_date: Any = None

    # External (JSON) key -> attribute
    PAYLOAD_KEYS = {
        "exporter": "exporter",
        "importer": "importer",
        "hsCode": "hs_code",
        "productDescription": "product_description",
        "agreement": "agreement",
        "goods_value": "goods_value",
        "quantity": "quantity",
        "freight": "freight",
        "insurance": "insurance",
        "startDate": "start_date",
        "endDate": "end_date",
        "effectiveDate": "effective_date",
    }

    @classmethod
    def from_payload(cls, payload: dict) -> "LandedCostRequest":
        """Build from a request body using the external camelCase keys."""
        payload = payload or {}
        return cls(**{attr: payload.get(key) for key, attr in cls.PAYLOAD_KEYS.items()})


@dataclass(frozen=True)
class LandedCostResult:
    exporter_input: str
    importer_input: str
    exporter_code: str
    importer_code: str
    hs_code: str
    agreement: str
    customs_basis: str
    rate_percent: Decimal
    customs_value: Decimal
    duty: Decimal
    tax_type: str
    tax_rate_percent: Decimal
    tax: Decimal
    quantity: int
    total_landed_cost: Decimal
    window_start: date
    window_end: date

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ResolvedRequest:
    request: ValidatedRequest
    exporter: CountryRecord
    importer: CountryRecord
    lane: Lane
    window: DateWindow


class LandedCostEngine:
    """Computes landed cost quotes against a RateStore.

    Holds only its store, frozen settings and a clock; safe to share.
    """

    def __init__(
        self,
        store: RateStore,
        settings: Optional[EngineSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.settings = settings or load_settings()
        self.today = today
        self.validator = RequestValidator()
        self.resolver = EntityResolver(store)
        self.rates = RateLookupEngine(
            store,
            open_end_policy=self.settings.open_end_policy,
            tie_break=self.settings.tariff_tie_break,
            today=today,
        )
        self.calculator = TariffCalculator()

    def compute_landed_cost(self, request: LandedCostRequest) -> LandedCostResult:
        validated = self.validator.validate(request)
        logger.debug(
            f"{QuoteState.EMPTY.value}->{QuoteState.VALIDATED.value}: "
            f"{validated.exporter}->{validated.importer} {validated.hs_code or validated.product_description} "
            f"{validated.agreement}"
        )

        resolved = self.resolve(validated)
        logger.debug(
            f"{QuoteState.VALIDATED.value}->{QuoteState.RESOLVED.value}: {resolved.lane} "
            f"window {resolved.window.start}..{resolved.window.end}"
        )

        result = self.quote(resolved)
        logger.debug(
            f"{QuoteState.RESOLVED.value}->{QuoteState.QUOTED.value}: {resolved.lane} "
            f"total={result.total_landed_cost}"
        )
        return result

    def resolve(self, validated: ValidatedRequest) -> ResolvedRequest:
        """Resolve HS code, both countries and the date window."""
        # Raises InvalidHsCodeLength straight away
        hs_code = self.resolver.resolve_hs_code(validated.hs_code, validated.product_description)
        exporter = self.resolver.resolve_country(validated.exporter)
        importer = self.resolver.resolve_country(validated.importer)

        problems: List[InvalidLaneInput] = []
        if exporter is None:
            problems.append(UnresolvableCountry(validated.exporter, "exporter"))
        if importer is None:
            problems.append(UnresolvableCountry(validated.importer, "importer"))
        if hs_code is None:
            problems.append(UnresolvableHsCode(validated.product_description or validated.hs_code or ""))
        if len(problems) == 1:
            raise problems[0]
        if problems:
            raise InvalidLaneInput(problems)

        window = resolve_date_window(
            validated.start_date,
            validated.end_date,
            validated.effective_date,
            self.today(),
            self.settings.date_input_mode,
        )
        lane = Lane(
            exporter_code=exporter.code,
            importer_code=importer.code,
            hs_code=hs_code,
            agreement_code=validated.agreement,
        )
        return ResolvedRequest(validated, exporter, importer, lane, window)

    def quote(self, resolved: ResolvedRequest) -> LandedCostResult:
        """Look up the tariff (then tax) and value the shipment."""
        tariff = self.rates.find_tariff(resolved.lane, resolved.window)
        tax_rule = self.rates.find_tax(resolved.importer, resolved.window)

        request = resolved.request
        valuation = self.calculator.quote(
            ValuationInputs(
                goods_value=request.goods_value,
                quantity=request.quantity,
                freight=request.freight,
                insurance=request.insurance,
                customs_basis=resolved.importer.customs_basis,
                rate_percent=tariff.rate_percent,
                tax_rate_percent=tax_rule.rate_percent,
            )
        )

        return LandedCostResult(
            exporter_input=request.exporter,
            importer_input=request.importer,
            exporter_code=resolved.exporter.code,
            importer_code=resolved.importer.code,
            hs_code=resolved.lane.hs_code,
            agreement=resolved.lane.agreement_code,
            customs_basis=resolved.importer.customs_basis,
            rate_percent=tariff.rate_percent,
            customs_value=valuation.customs_value,
            duty=valuation.duty,
            tax_type=tax_rule.tax_type,
            tax_rate_percent=tax_rule.rate_percent,
            tax=valuation.tax,
            quantity=request.quantity,
            total_landed_cost=valuation.total_landed_cost,
            window_start=resolved.window.start,
            window_end=resolved.window.end,
        )
