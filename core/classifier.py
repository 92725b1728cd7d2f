"""
classifier.py -- Lifecycle health classification.

A device's status is decided by an ordered rule table. The first rule whose
predicate matches sets the status; every matching rule contributes its
reason, so a 4-year-old machine on an unsupported OS reports both problems
while still being a single "critical".

  1. inactive     no check-in in 30+ days (or never)  -> inactive
  2. old          age >= 3                             -> critical
  3. os_eol       OS unsupported                       -> critical
  4. middle_aged  2 <= age < 3                         -> warning
  5. os_aging     OS aging                             -> warning
  6. young        age < 2                              -> good
  (no match)                                           -> unknown

Replacement eligibility is evaluated independently of status. Devices past
the 5-year mark are not recommended: they are legacy hardware kept in
service on purpose.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .os_policy import OS_AGING, OS_UNSUPPORTED

INACTIVE_AFTER_DAYS = 30
CRITICAL_AGE = 3
WARNING_AGE = 2
REPLACEMENT_MIN_AGE = 3
REPLACEMENT_MAX_AGE = 5

ACTIVE = "active"
INACTIVE = "inactive"

NO_CHECKIN_REASON = "No check-in recorded."
UNKNOWN_REASON = "Insufficient data to determine device age or OS support"


@dataclass(frozen=True)
class ClassificationInput:
    age_in_years: Optional[float]  # None = unknown
    days_since_update: Optional[int]  # None = never checked in
    os_currency: str = "unknown"


@dataclass
class Classification:
    status: str
    activity_status: str
    status_reasons: list[str] = field(default_factory=list)
    replacement_recommended: bool = False
    replacement_reason: Optional[str] = None


@dataclass(frozen=True)
class StatusRule:
    name: str
    predicate: Callable[[ClassificationInput], bool]
    status: str
    reason: str


def _is_inactive(item: ClassificationInput) -> bool:
    return item.days_since_update is None or item.days_since_update > INACTIVE_AFTER_DAYS


def _age_at_least(years: float) -> Callable[[ClassificationInput], bool]:
    return lambda item: item.age_in_years is not None and item.age_in_years >= years


STATUS_RULES: tuple[StatusRule, ...] = (
    StatusRule("inactive", _is_inactive, "inactive", "Not checked in for 30+ days."),
    StatusRule("old", _age_at_least(CRITICAL_AGE), "critical", "Device is 3+ years old"),
    StatusRule(
        "os_eol",
        lambda item: item.os_currency == OS_UNSUPPORTED,
        "critical",
        "Running unsupported OS",
    ),
    StatusRule(
        "middle_aged",
        lambda item: item.age_in_years is not None and WARNING_AGE <= item.age_in_years < CRITICAL_AGE,
        "warning",
        "Device is 2-3 years old",
    ),
    StatusRule(
        "os_aging",
        lambda item: item.os_currency == OS_AGING,
        "warning",
        "Running aging OS",
    ),
    StatusRule(
        "young",
        lambda item: item.age_in_years is not None and item.age_in_years < WARNING_AGE,
        "good",
        "Device is less than 2 years old",
    ),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def days_since(moment: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days elapsed since `moment`, clamped at 0; None when missing.

    Naive datetimes are compared as if they were in `now`'s timezone.
    """
    if moment is None:
        return None
    if moment.tzinfo is None and now.tzinfo is not None:
        moment = moment.replace(tzinfo=now.tzinfo)
    elif moment.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=moment.tzinfo)
    return max(0, (now - moment).days)


def replacement_for(age_in_years: Optional[float]) -> tuple[bool, Optional[str]]:
    """Return (recommended, reason) for a device of the given age."""
    if age_in_years is None:
        return False, None
    if REPLACEMENT_MIN_AGE <= age_in_years <= REPLACEMENT_MAX_AGE:
        return True, (
            f"Device is {age_in_years:.1f} years old and due under the {REPLACEMENT_MIN_AGE}-year replacement cycle"
        )
    return False, None


def classify(item: ClassificationInput) -> Classification:
    """Apply the status rule table and replacement rules. Never raises."""
    status: Optional[str] = None
    reasons: list[str] = []

    for rule in STATUS_RULES:
        if not rule.predicate(item):
            continue
        if status is None:
            status = rule.status
        if rule.name == "inactive" and item.days_since_update is None:
            reasons.append(NO_CHECKIN_REASON)
        else:
            reasons.append(rule.reason)

    if status is None:
        status = "unknown"
        reasons.append(UNKNOWN_REASON)

    activity = INACTIVE if _is_inactive(item) else ACTIVE
    recommended, replacement_reason = replacement_for(item.age_in_years)

    return Classification(
        status=status,
        activity_status=activity,
        status_reasons=reasons,
        replacement_recommended=recommended,
        replacement_reason=replacement_reason,
    )
