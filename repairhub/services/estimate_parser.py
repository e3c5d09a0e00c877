# repairhub/services/estimate_parser.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from repairhub.core.errors import InvalidEstimateFormat
from repairhub.models.enums import EstimateUnit

SAME_DAY_HOURS = 8
DAYS_PER_WEEK = 7

_SAME_DAY = re.compile(r"^same day$")
_HOURS = re.compile(r"^(\d+) ?hours?$")
_DAY_RANGE = re.compile(r"^(\d+) ?- ?(\d+) ?days?$")
_DAYS = re.compile(r"^(\d+) ?days?$")
_WEEK_RANGE = re.compile(r"^(\d+) ?- ?(\d+) ?weeks?$")
_WEEKS = re.compile(r"^(\d+) ?weeks?$")


@dataclass(frozen=True)
class Estimate:
    value: int
    unit: EstimateUnit

    def as_dict(self) -> dict:
        return {"value": self.value, "unit": self.unit.value}


def _positive(raw: str, text: str) -> int:
    n = int(raw)
    if n <= 0:
        raise InvalidEstimateFormat(f"Estimate must be positive: {text!r}")
    return n


def _range_midpoint(lo_raw: str, hi_raw: str, text: str) -> int:
    lo = _positive(lo_raw, text)
    hi = _positive(hi_raw, text)
    if hi < lo:
        raise InvalidEstimateFormat(f"Estimate range is reversed: {text!r}")
    # ceil((lo + hi) / 2)
    return (lo + hi + 1) // 2


def parse_estimate(text: Any) -> Estimate:
    """
    Parse a technician's free-form time estimate.

        "same day"      -> 8 hours
        "N hour(s)"     -> N hours
        "N-M day(s)"    -> ceil((N+M)/2) days
        "N day(s)"      -> N days
        "N-M week(s)"   -> ceil((N+M)/2) * 7 days
        "N week(s)"     -> N * 7 days

    Case-insensitive, surrounding whitespace ignored. Anything else raises
    InvalidEstimateFormat.
    """
    if not isinstance(text, str):
        raise InvalidEstimateFormat("Estimate must be a string.")

    normalized = " ".join(text.strip().lower().split())
    if not normalized:
        raise InvalidEstimateFormat("Estimate is empty.")

    if _SAME_DAY.match(normalized):
        return Estimate(SAME_DAY_HOURS, EstimateUnit.hours)

    m = _HOURS.match(normalized)
    if m:
        return Estimate(_positive(m.group(1), text), EstimateUnit.hours)

    m = _DAY_RANGE.match(normalized)
    if m:
        return Estimate(_range_midpoint(m.group(1), m.group(2), text), EstimateUnit.days)

    m = _DAYS.match(normalized)
    if m:
        return Estimate(_positive(m.group(1), text), EstimateUnit.days)

    m = _WEEK_RANGE.match(normalized)
    if m:
        weeks = _range_midpoint(m.group(1), m.group(2), text)
        return Estimate(weeks * DAYS_PER_WEEK, EstimateUnit.days)

    m = _WEEKS.match(normalized)
    if m:
        return Estimate(_positive(m.group(1), text) * DAYS_PER_WEEK, EstimateUnit.days)

    raise InvalidEstimateFormat(f"Unrecognized estimate: {text!r}")
