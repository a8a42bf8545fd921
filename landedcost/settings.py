"""
Engine configuration read from the environment (and .env when present).

The open-end and tie-break policies change which rate a request gets, so
each is a single explicit choice made here rather than per call.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# How an open-ended (valid_to = NULL) rate is treated
OPEN_END_TODAY = "today"          # valid through the current date only
OPEN_END_INFINITE = "infinite"    # valid indefinitely
OPEN_END_POLICIES = (OPEN_END_TODAY, OPEN_END_INFINITE)

# Which tariff row wins when several versions overlap the window
TIE_BREAK_LOWEST_RATE = "lowest_rate"
TIE_BREAK_LATEST_VALID_FROM = "latest_valid_from"
TIE_BREAK_POLICIES = (TIE_BREAK_LOWEST_RATE, TIE_BREAK_LATEST_VALID_FROM)

# Which date input shape the calculator reads
DATE_INPUT_AUTO = "auto"            # effectiveDate when supplied, else startDate/endDate
DATE_INPUT_WINDOW = "window"        # startDate/endDate only
DATE_INPUT_EFFECTIVE = "effective"  # effectiveDate only, required
DATE_INPUT_MODES = (DATE_INPUT_AUTO, DATE_INPUT_WINDOW, DATE_INPUT_EFFECTIVE)


@dataclass(frozen=True)
class EngineSettings:
    open_end_policy: str = OPEN_END_TODAY
    tariff_tie_break: str = TIE_BREAK_LOWEST_RATE
    date_input_mode: str = DATE_INPUT_AUTO

    def __post_init__(self):
        _check_choice("open_end_policy", self.open_end_policy, OPEN_END_POLICIES)
        _check_choice("tariff_tie_break", self.tariff_tie_break, TIE_BREAK_POLICIES)
        _check_choice("date_input_mode", self.date_input_mode, DATE_INPUT_MODES)


def _check_choice(name, value, allowed):
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)}; got {value!r}")


def load_settings() -> EngineSettings:
    """Build EngineSettings from LANDEDCOST_* environment variables."""
    return EngineSettings(
        open_end_policy=os.getenv("LANDEDCOST_OPEN_END_POLICY", OPEN_END_TODAY).strip().lower(),
        tariff_tie_break=os.getenv("LANDEDCOST_TARIFF_TIE_BREAK", TIE_BREAK_LOWEST_RATE).strip().lower(),
        date_input_mode=os.getenv("LANDEDCOST_DATE_INPUT", DATE_INPUT_AUTO).strip().lower(),
    )


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
