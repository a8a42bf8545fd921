"""
Request Validator
Single parsing stage for a raw landed cost request. Every field-shape problem
is collected so the caller gets one complete list instead of the first hit.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional

from landedcost.errors import (
    FieldError,
    FieldIssue,
    MissingRequiredField,
    NegativeNumericField,
    NoInputsDetected,
    RequestValidationError,
)
from landedcost.normalizer import (
    normalize_code,
    normalize_country_input,
    normalize_hs_code,
    parse_decimal,
    parse_flexible_date,
    parse_quantity,
)
from landedcost.tariff_utils import DEFAULT_QUANTITY, HS_OR_DESCRIPTION_FIELD, is_blank

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

# Request text fields checked by the empty-payload test, by external name
_TEXT_FIELDS = (
    ("exporter", "exporter"),
    ("importer", "importer"),
    ("hs_code", "hsCode"),
    ("product_description", "productDescription"),
    ("start_date", "startDate"),
    ("end_date", "endDate"),
    ("effective_date", "effectiveDate"),
)


@dataclass(frozen=True)
class ValidatedRequest:
    """Request with every field parsed; presence and sign already checked."""

    exporter: str
    importer: str
    hs_code: Optional[str]
    product_description: Optional[str]
    agreement: str
    goods_value: Decimal
    quantity: int
    freight: Decimal
    insurance: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    effective_date: Optional[date] = None
    effective_date_supplied: bool = False


def _is_default_number(value: Any, defaults) -> bool:
    if is_blank(value):
        return True
    if isinstance(value, bool):
        return False
    try:
        return Decimal(str(value).strip()) in defaults
    except (InvalidOperation, ValueError):
        return False


def is_empty_request(request) -> bool:
    """True when nothing meaningful was supplied (blank text, zero amounts, quantity 0 or 1)."""
    # agreement is not checked: forms send the MFN default untouched
    if any(not is_blank(getattr(request, attr, None)) for attr, _ in _TEXT_FIELDS):
        return False
    amounts_default = all(
        _is_default_number(getattr(request, attr, None), (_ZERO,))
        for attr in ("goods_value", "freight", "insurance")
    )
    quantity_default = _is_default_number(getattr(request, "quantity", None), (_ZERO, Decimal("1")))
    return amounts_default and quantity_default


class RequestValidator:
    """Parses a LandedCostRequest into a ValidatedRequest.

    Issue order: numeric format, date format, presence, sign.
    """

    def validate(self, request) -> ValidatedRequest:
        if is_empty_request(request):
            raise NoInputsDetected()

        numeric_issues: List[FieldIssue] = []
        date_issues: List[FieldIssue] = []

        goods_value = self._parse(parse_decimal, request.goods_value, "goods_value", numeric_issues)
        quantity = self._parse(parse_quantity, request.quantity, "quantity", numeric_issues)
        freight = self._parse(parse_decimal, request.freight, "freight", numeric_issues)
        insurance = self._parse(parse_decimal, request.insurance, "insurance", numeric_issues)

        start_date = self._parse(parse_flexible_date, request.start_date, "startDate", date_issues)
        end_date = self._parse(parse_flexible_date, request.end_date, "endDate", date_issues)
        effective_date = self._parse(parse_flexible_date, request.effective_date, "effectiveDate", date_issues)

        presence_issues = self._presence_issues(request, goods_value, numeric_issues)

        sign_issues = [
            NegativeNumericField(field).as_issue()
            for field, value in (
                ("goods_value", goods_value),
                ("quantity", quantity),
                ("freight", freight),
                ("insurance", insurance),
            )
            if value is not None and value < 0
        ]

        issues = numeric_issues + date_issues + presence_issues + sign_issues
        if issues:
            logger.debug(f"Request rejected with {len(issues)} issue(s): {[i.kind for i in issues]}")
            raise RequestValidationError(issues)

        return ValidatedRequest(
            exporter=normalize_country_input(request.exporter),
            importer=normalize_country_input(request.importer),
            hs_code=None if is_blank(request.hs_code) else normalize_hs_code(request.hs_code),
            product_description=None if is_blank(request.product_description) else request.product_description.strip(),
            agreement=normalize_code(request.agreement),
            goods_value=goods_value,
            quantity=quantity if quantity is not None else DEFAULT_QUANTITY,
            freight=freight if freight is not None else _ZERO,
            insurance=insurance if insurance is not None else _ZERO,
            start_date=start_date,
            end_date=end_date,
            effective_date=effective_date,
            effective_date_supplied=not is_blank(request.effective_date),
        )

    @staticmethod
    def _parse(parser: Callable[[Any, str], Any], value: Any, field: str, issues: List[FieldIssue]):
        try:
            return parser(value, field)
        except FieldError as exc:
            issues.append(exc.as_issue())
            return None

    @staticmethod
    def _presence_issues(request, goods_value, numeric_issues) -> List[FieldIssue]:
        issues = []
        if is_blank(request.exporter):
            issues.append(MissingRequiredField("exporter").as_issue())
        if is_blank(request.importer):
            issues.append(MissingRequiredField("importer").as_issue())
        if is_blank(request.agreement):
            issues.append(
                MissingRequiredField("agreement", "agreement is required (e.g., MFN, CPTPP).").as_issue()
            )
        if is_blank(request.hs_code) and is_blank(request.product_description):
            issues.append(
                MissingRequiredField(
                    HS_OR_DESCRIPTION_FIELD,
                    "Either hsCode or productDescription must be provided.",
                ).as_issue()
            )
        # A goods_value that failed to parse is already reported
        goods_value_unparsable = any(issue.field == "goods_value" for issue in numeric_issues)
        if goods_value is None and not goods_value_unparsable:
            issues.append(MissingRequiredField("goods_value").as_issue())
        return issues
