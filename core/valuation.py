"""
valuation.py -- Device age and value estimation.

Straight-line depreciation over a 5-year useful life down to a 10% residual,
the common accounting treatment for IT equipment. MSRP comes from the model
catalog where known, otherwise from a category default.

All functions take an optional `now` so results are reproducible in tests
and batch runs; it defaults to the current UTC time.
"""

import math
from datetime import date, datetime, time, timezone
from typing import Optional

from .catalog import get_model_msrp, get_model_release_year, lookup_model_name
from .models import DeviceValue

# Ordered: the first category contained in the friendly name wins.
DEFAULT_MSRP: dict[str, int] = {
    "MacBook Air": 1199,
    "MacBook Pro": 1999,
    "iMac": 1299,
    "Mac mini": 699,
    "Mac Studio": 1999,
    "Mac Pro": 6999,
    "ThinkPad": 1299,
    "Latitude": 1199,
    "OptiPlex": 899,
    "Surface": 999,
}
UNKNOWN_MSRP = 1000

USEFUL_LIFE_YEARS = 5
RESIDUAL_PERCENT = 10

_DAYS_PER_YEAR = 365.25
_SECONDS_PER_DAY = 86400


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves toward +infinity (2.5 -> 3), unlike round() which rounds to even."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def _utcnow(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _years_between(start: datetime, now: datetime) -> float:
    elapsed_days = (now - start).total_seconds() / _SECONDS_PER_DAY
    return max(0.0, round_half_up(elapsed_days / _DAYS_PER_YEAR, 1))


def get_estimated_msrp(code: Optional[str], friendly_name: Optional[str] = None) -> int:
    """Return the catalog MSRP, else a category default, else UNKNOWN_MSRP."""
    exact = get_model_msrp(code)
    if exact:
        return exact

    name = friendly_name or lookup_model_name(code)
    for category, msrp in DEFAULT_MSRP.items():
        if category in name:
            return msrp
    return UNKNOWN_MSRP


def calculate_age_from_model(code: Optional[str], now: Optional[datetime] = None) -> float:
    """Age in years since June 1 of the model's release year; 0.0 when unknown."""
    year = get_model_release_year(code)
    if year == 0:
        return 0.0
    current = _utcnow(now)
    released = datetime(year, 6, 1, tzinfo=current.tzinfo)
    return _years_between(released, current)


def calculate_age_from_date(purchase_date: Optional[date], now: Optional[datetime] = None) -> float:
    """Age in years since a purchase date; 0.0 when the date is missing."""
    if purchase_date is None:
        return 0.0
    current = _utcnow(now)
    if isinstance(purchase_date, datetime):
        purchase_date = purchase_date.date()
    purchased = datetime.combine(purchase_date, time(), tzinfo=current.tzinfo)
    return _years_between(purchased, current)


def calculate_depreciated_value(
    msrp: float,
    age_in_years: float,
    useful_life: int = USEFUL_LIFE_YEARS,
    residual_percent: int = RESIDUAL_PERCENT,
) -> float:
    """Straight-line depreciated value, never below the residual.

    A non-positive MSRP or negative age yields 0.
    """
    if msrp <= 0 or age_in_years < 0:
        return 0

    residual = msrp * residual_percent / 100
    annual = (msrp - residual) / useful_life
    value = msrp - annual * min(age_in_years, useful_life)
    return max(residual, round_half_up(value))


def get_device_value(
    code: Optional[str],
    name: Optional[str] = None,
    age: Optional[float] = None,
    now: Optional[datetime] = None,
) -> DeviceValue:
    """Compose MSRP, age, depreciated value and depreciation percent.

    When `age` is omitted it is derived from the model's release year.
    """
    msrp = get_estimated_msrp(code, name)
    age_in_years = calculate_age_from_model(code, now) if age is None else age
    current_value = calculate_depreciated_value(msrp, age_in_years)
    depreciation = int(round_half_up((msrp - current_value) / msrp * 100)) if msrp > 0 else 0
    return DeviceValue(
        msrp=msrp,
        current_value=current_value,
        depreciation_percent=depreciation,
        age_in_years=age_in_years,
    )
