"""
core/os_policy.py -- OS currency policy: which OS versions are current,
aging, or unsupported.

The boundary between "aging" and "unsupported" is an organizational decision
that changes every time Apple or Microsoft ships a release, so it is an
explicit input here rather than a constant baked into the classifier.
DEFAULT_POLICY is the fallback table; core/config.py lets settings override
it and core/fetcher.py can refresh it from endoflife.date.

Versions compare as integer tuples of their dotted numeric parts:
  "14.6.1"          -> (14, 6, 1)
  "10.0.22631.4037" -> (10, 0, 22631, 4037)
"""

import re
from dataclasses import dataclass, field
from typing import Optional

OS_CURRENT = "current"
OS_AGING = "aging"
OS_UNSUPPORTED = "unsupported"
OS_UNKNOWN = "unknown"

_VERSION_RE = re.compile(r"\d+(?:\.\d+)*")


@dataclass(frozen=True)
class OsFamilyPolicy:
    """Version thresholds for one OS family.

    min_supported -- anything below this is unsupported (no security updates)
    min_current   -- anything below this (but supported) is aging
    """

    min_supported: str
    min_current: str


@dataclass(frozen=True)
class OsPolicy:
    """Per-family thresholds keyed by os_type ("macOS", "Windows")."""

    families: dict[str, OsFamilyPolicy] = field(default_factory=dict)


def parse_version(version: Optional[str]) -> Optional[tuple[int, ...]]:
    """Extract the first dotted numeric run from a version string.

    Tolerates vendor prefixes and suffixes ("macOS 14.5 (23F79)",
    "Windows 10.0.22631.4037"). Returns None when no digits are present.
    """
    if not version:
        return None
    match = _VERSION_RE.search(version)
    if match is None:
        return None
    return tuple(int(part) for part in match.group(0).split("."))


def _compare(a: tuple[int, ...], b: tuple[int, ...]) -> int:
    """Compare two version tuples, padding the shorter one with zeros."""
    width = max(len(a), len(b))
    a_padded = a + (0,) * (width - len(a))
    b_padded = b + (0,) * (width - len(b))
    return (a_padded > b_padded) - (a_padded < b_padded)


def assess_os_currency(os_type: Optional[str], os_version: Optional[str], policy: OsPolicy) -> str:
    """Return "current", "aging", "unsupported", or "unknown" for an OS version.

    Unknown families, missing versions and unparseable thresholds all
    degrade to "unknown" -- never raises.
    """
    family = policy.families.get(os_type or "")
    version = parse_version(os_version)
    if family is None or version is None:
        return OS_UNKNOWN

    min_supported = parse_version(family.min_supported)
    min_current = parse_version(family.min_current)
    if min_supported is None or min_current is None:
        return OS_UNKNOWN

    if _compare(version, min_supported) < 0:
        return OS_UNSUPPORTED
    if _compare(version, min_current) < 0:
        return OS_AGING
    return OS_CURRENT


# Fallback table: macOS Sonoma / Windows 11 23H2 supported, Sequoia / 24H2 current.
DEFAULT_POLICY = OsPolicy(
    families={
        "macOS": OsFamilyPolicy(min_supported="14", min_current="15"),
        "Windows": OsFamilyPolicy(min_supported="10.0.22631", min_current="10.0.26100"),
    }
)
