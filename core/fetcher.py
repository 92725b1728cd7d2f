"""
fetcher.py -- All external data fetching.

The only external source is endoflife.date, a free public API that tracks
vendor support windows. It is used to refresh the OS currency policy so the
"aging" / "unsupported" boundaries move when Apple or Microsoft ship a release
without a config change.
"""

import logging
from datetime import date
from typing import Any, Optional

import requests

from .os_policy import OsFamilyPolicy, OsPolicy, parse_version

logger = logging.getLogger("fleetadvisor.fetcher")

EOL_API = "https://endoflife.date/api/{product}.json"

# endoflife.date product slug per os_type
EOL_PRODUCTS = {
    "macOS": "macos",
    "Windows": "windows",
}

# Module-level session shared across all fetcher calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- this is a known public API.
_session = requests.Session()
_session.max_redirects = 3


def fetch_release_cycles(product: str) -> Optional[list[dict[str, Any]]]:
    """Fetch the raw release-cycle list for one endoflife.date product.

    Returns None on network failure or an unexpected payload shape.
    """
    try:
        resp = _session.get(EOL_API.format(product=product), timeout=10)
        resp.raise_for_status()
        cycles = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("endoflife.date fetch failed for %s: %s", product, e)
        return None
    if not isinstance(cycles, list):
        logger.warning("endoflife.date returned unexpected payload for %s", product)
        return None
    return cycles


def _is_supported(cycle: dict[str, Any], today: date) -> bool:
    """A cycle is supported while eol is false or an ISO date in the future.

    Long-term-servicing channels are skipped; their extended support would
    otherwise hold min_supported years behind the general release.
    """
    if cycle.get("lts") is True or "lts" in str(cycle.get("cycle") or "").lower():
        return False
    eol = cycle.get("eol")
    if eol is False:
        return True
    if isinstance(eol, str):
        try:
            return date.fromisoformat(eol) > today
        except ValueError:
            return False
    return False


def _cycle_version(os_type: str, cycle: dict[str, Any]) -> Optional[str]:
    """macOS is tracked by major version ("15"); Windows by build ("10.0.26100")."""
    if os_type == "Windows":
        latest = parse_version(str(cycle.get("latest") or ""))
        if latest is None or len(latest) < 3:
            return None
        return ".".join(str(part) for part in latest[:3])
    cycle_name = str(cycle.get("cycle") or "")
    return cycle_name if parse_version(cycle_name) is not None else None


def family_policy_from_cycles(
    os_type: str, cycles: list[dict[str, Any]], today: Optional[date] = None
) -> Optional[OsFamilyPolicy]:
    """Derive thresholds from release cycles.

    min_current is the second-newest supported version (so N-1 still counts as
    current), min_supported the oldest supported one. Returns None when no
    supported version can be read.
    """
    today = today or date.today()
    versions: set[str] = set()
    for cycle in cycles:
        if not isinstance(cycle, dict) or not _is_supported(cycle, today):
            continue
        version = _cycle_version(os_type, cycle)
        if version:
            versions.add(version)

    if not versions:
        return None

    ordered = sorted(versions, key=parse_version, reverse=True)
    min_current = ordered[1] if len(ordered) > 1 else ordered[0]
    return OsFamilyPolicy(min_supported=ordered[-1], min_current=min_current)


def fetch_os_policy(fallback: OsPolicy, today: Optional[date] = None) -> OsPolicy:
    """Refresh each OS family from endoflife.date, keeping `fallback` per family on failure."""
    families = dict(fallback.families)
    for os_type, product in EOL_PRODUCTS.items():
        cycles = fetch_release_cycles(product)
        if cycles is None:
            continue
        family = family_policy_from_cycles(os_type, cycles, today)
        if family is None:
            logger.warning("No supported %s releases in endoflife.date data; keeping configured policy", os_type)
            continue
        families[os_type] = family
        logger.info(
            "OS policy for %s: min_supported=%s min_current=%s",
            os_type,
            family.min_supported,
            family.min_current,
        )
    return OsPolicy(families=families)
