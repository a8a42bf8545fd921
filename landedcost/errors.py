"""
Error kinds raised by the landed cost engine.

Field-shape problems (presence, numeric format, sign, date format) are
collected into a single RequestValidationError so a client can show every
problem at once. Resolution and lookup failures are raised one at a time:
each is a blocking condition for the request.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class FieldIssue:
    kind: str
    field: str
    message: str


class EngineError(Exception):
    """Base class for every failure the engine reports to its caller."""

    kind = "EngineError"
    title = "Invalid input."
    http_status = 400

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors: List[str] = list(errors) if errors is not None else [message]

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "error": self.title,
            "kind": self.kind,
            "errors": list(self.errors),
        }


# Field-shape errors ---------------------------------------------------------

class FieldError(EngineError):
    """A single field-level problem. The validator aggregates these."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def as_issue(self) -> FieldIssue:
        return FieldIssue(kind=self.kind, field=self.field, message=self.message)


class MissingRequiredField(FieldError):
    kind = "MissingRequiredField"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(field, message or f"{field} is required.")


class InvalidNumericField(FieldError):
    kind = "InvalidNumericField"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(field, message or f"Field '{field}' must be a number.")


class NegativeNumericField(FieldError):
    kind = "NegativeNumericField"

    def __init__(self, field: str):
        super().__init__(field, f"{field} must not be negative.")


class InvalidDateFormat(FieldError):
    kind = "InvalidDateFormat"

    def __init__(self, field: str):
        super().__init__(
            field,
            f"Invalid date format for '{field}'. Accepted: YYYY-MM-DD or DD/MM/YYYY.",
        )


class RequestValidationError(EngineError):
    """Every field-shape violation found in one validation pass."""

    kind = "RequestValidationError"

    def __init__(self, issues: Sequence[FieldIssue]):
        self.issues = list(issues)
        super().__init__(self.title, [issue.message for issue in self.issues])

    @property
    def kinds(self) -> List[str]:
        return [issue.kind for issue in self.issues]

    @property
    def fields(self) -> List[str]:
        return [issue.field for issue in self.issues]


class NoInputsDetected(EngineError):
    kind = "NoInputsDetected"

    def __init__(self):
        super().__init__("No inputs detected.")


class MissingEffectiveDate(EngineError):
    kind = "MissingEffectiveDate"

    def __init__(self):
        super().__init__("effectiveDate is required (YYYY-MM-DD or DD/MM/YYYY).")


class InvalidHsCodeLength(EngineError):
    kind = "InvalidHsCodeLength"

    def __init__(self, hs_code: str, expected_length: int):
        super().__init__(
            f"HS code '{hs_code}' must be exactly {expected_length} characters."
        )
        self.hs_code = hs_code


# Resolution errors ----------------------------------------------------------

class InvalidLaneInput(EngineError):
    """One or more lane identities (countries, HS code) could not be resolved."""

    kind = "InvalidLaneInput"

    def __init__(self, problems: Sequence["InvalidLaneInput"] = (), message: Optional[str] = None):
        self.problems = list(problems)
        if message is None:
            super().__init__(
                "Invalid lane input.",
                [problem.message for problem in self.problems],
            )
        else:
            super().__init__(message)


class UnresolvableCountry(InvalidLaneInput):
    kind = "UnresolvableCountry"

    def __init__(self, raw_input: str, role: str = "country"):
        self.raw_input = raw_input
        self.role = role
        super().__init__(
            message=(
                f"Invalid {role} country '{raw_input}'. "
                'Use ISO alpha-2 (e.g., "SG") or the exact country name.'
            )
        )


class UnresolvableHsCode(InvalidLaneInput):
    kind = "UnresolvableHsCode"

    def __init__(self, raw_input: str):
        self.raw_input = raw_input
        super().__init__(
            message=f"No HS code matches product description '{raw_input}'."
        )


# Lookup errors --------------------------------------------------------------

class NoApplicableTariff(EngineError):
    kind = "NoApplicableTariff"
    title = "No applicable tariff rate."
    http_status = 422

    def __init__(self, lane, window, open_end_note: str = ""):
        self.lane = lane
        self.window = window
        message = (
            f"No tariff rate found for {lane.exporter_code} -> {lane.importer_code}, "
            f"HS {lane.hs_code}, agreement {lane.agreement_code} "
            f"between {window.start.isoformat()} and {window.end.isoformat()}."
        )
        if open_end_note:
            message = f"{message} {open_end_note}"
        super().__init__(message)


class NoApplicableTax(EngineError):
    kind = "NoApplicableTax"
    title = "No applicable tax rule."
    http_status = 422

    def __init__(self, importer_code: str, window, open_end_note: str = ""):
        self.importer_code = importer_code
        self.window = window
        message = (
            f"No tax rule found for importer {importer_code} "
            f"between {window.start.isoformat()} and {window.end.isoformat()}."
        )
        if open_end_note:
            message = f"{message} {open_end_note}"
        super().__init__(message)
