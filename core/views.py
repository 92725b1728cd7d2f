"""
views.py -- Named device views, free-text search and user lookup.

A view is a named predicate with a title and description for display. The
default view, "attention", is what an IT lead opens the dashboard for: every
device that is critical, warning or inactive.

Usage:
    from core.views import filter_devices
    rows = filter_devices(devices, view="replacement", search="chem")
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .classifier import ACTIVE
from .models import Device

DEFAULT_VIEW = "attention"


@dataclass(frozen=True)
class View:
    name: str
    title: str
    description: str
    predicate: Callable[[Device], bool]


VIEWS: dict[str, View] = {
    v.name: v
    for v in (
        View(
            "attention",
            "Devices Needing Attention",
            "Critical, Warning, and Inactive devices",
            lambda d: d.status in ("critical", "warning", "inactive"),
        ),
        View("all", "All Devices", "Complete device inventory", lambda d: True),
        View(
            "critical",
            "Critical Devices",
            "Devices requiring immediate replacement",
            lambda d: d.status == "critical",
        ),
        View("warning", "Warning Devices", "Devices approaching end-of-life", lambda d: d.status == "warning"),
        View("good", "Good Devices", "Devices in good condition", lambda d: d.status == "good"),
        View("inactive", "Inactive Devices", "Not checked in for 30+ days", lambda d: d.status == "inactive"),
        View("active", "Active Devices", "Checked in within 30 days", lambda d: d.activity_status == ACTIVE),
        View("jamf", "Jamf Devices", "macOS devices from Jamf", lambda d: d.source == "jamf"),
        View("intune", "Intune Devices", "Windows devices from Intune", lambda d: d.source == "intune"),
        View(
            "replacement",
            "Replacement Needed",
            "Devices flagged for replacement",
            lambda d: d.replacement_recommended,
        ),
    )
}


def _contains(value: Optional[str], needle: str) -> bool:
    return value is not None and needle in value.lower()


def matches_search(device: Device, term: str) -> bool:
    """Case-insensitive substring match over name, people, serial, department and model."""
    needle = term.strip().lower()
    if not needle:
        return True
    return any(
        _contains(value, needle)
        for value in (
            device.name,
            device.owner,
            device.owner_email,
            device.additional_owner,
            device.serial_number,
            device.department,
            device.model,
            device.model_name,
        )
    )


def matches_user(device: Device, user: str) -> bool:
    """Case-insensitive match against the owner, owner email and additional owner."""
    needle = user.strip().lower()
    if not needle:
        return True
    return any(_contains(value, needle) for value in (device.owner, device.owner_email, device.additional_owner))


def filter_devices(
    devices: list[Device],
    view: str = DEFAULT_VIEW,
    search: Optional[str] = None,
    user: Optional[str] = None,
    include_retired: bool = False,
) -> list[Device]:
    """Apply retired filter, view, search and user lookup, in that order.

    Raises ValueError for an unknown view name.
    """
    selected = VIEWS.get(view)
    if selected is None:
        raise ValueError(f"Unknown view {view!r}. Expected one of: {', '.join(VIEWS)}")

    result = [d for d in devices if include_retired or not d.is_retired]
    result = [d for d in result if selected.predicate(d)]
    if search:
        result = [d for d in result if matches_search(d, search)]
    if user:
        result = [d for d in result if matches_user(d, user)]
    return result
