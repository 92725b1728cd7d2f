"""
inventory.py -- Manually tracked equipment that no MDM reports: monitors,
printers, AV gear, licences, furniture.

Pure helpers over InventoryItem: search and filter, and the summary the
inventory page shows (counts per category and status, total purchase value,
warranties about to lapse, recent additions).
"""

from datetime import date, datetime, timedelta
from typing import Optional

from .models import INVENTORY_CATEGORIES, INVENTORY_STATUSES, InventoryItem, InventorySummary

WARRANTY_WINDOW_DAYS = 90
RECENT_WINDOW_DAYS = 30

CATEGORY_LABELS = {
    "computer": "Computer",
    "monitor": "Monitor",
    "printer": "Printer",
    "networking": "Networking Equipment",
    "audio-visual": "Audio/Visual",
    "peripheral": "Peripheral",
    "software": "Software License",
    "furniture": "Furniture",
    "other": "Other",
}

STATUS_LABELS = {
    "active": "Active",
    "in-storage": "In Storage",
    "needs-repair": "Needs Repair",
    "retired": "Retired",
    "on-order": "On Order",
}


def warranty_expiring_soon(item: InventoryItem, today: date) -> bool:
    """Warranty ends today or within the next WARRANTY_WINDOW_DAYS days."""
    if item.warranty_expiration is None:
        return False
    return today <= item.warranty_expiration <= today + timedelta(days=WARRANTY_WINDOW_DAYS)


def _created_on(item: InventoryItem) -> Optional[date]:
    try:
        return datetime.fromisoformat(item.created_at).date()
    except ValueError:
        return None


def recently_added(item: InventoryItem, today: date) -> bool:
    created = _created_on(item)
    return created is not None and today - created <= timedelta(days=RECENT_WINDOW_DAYS)


def calculate_inventory_summary(items: list[InventoryItem], today: date) -> InventorySummary:
    """Every category and status appears in the breakdowns, zero when unused."""
    by_category = dict.fromkeys(INVENTORY_CATEGORIES, 0)
    by_status = dict.fromkeys(INVENTORY_STATUSES, 0)
    for item in items:
        by_category[item.category] = by_category.get(item.category, 0) + 1
        by_status[item.status] = by_status.get(item.status, 0) + 1
    return InventorySummary(
        total_items=len(items),
        total_value=round(sum(item.purchase_price or 0.0 for item in items), 2),
        by_category=by_category,
        by_status=by_status,
        warranty_expiring_soon=sum(1 for item in items if warranty_expiring_soon(item, today)),
        recently_added=sum(1 for item in items if recently_added(item, today)),
    )


def matches_inventory_search(item: InventoryItem, term: str) -> bool:
    """Case-insensitive substring over name, maker, model, serial, asset tag and assignee."""
    needle = term.strip().lower()
    if not needle:
        return True
    return any(
        value is not None and needle in value.lower()
        for value in (
            item.name,
            item.manufacturer,
            item.model,
            item.serial_number,
            item.asset_tag,
            item.assigned_to,
        )
    )


def filter_inventory(
    items: list[InventoryItem],
    search: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
) -> list[InventoryItem]:
    """Raises ValueError for an unknown category or status."""
    if category is not None and category not in INVENTORY_CATEGORIES:
        raise ValueError(f"Unknown category {category!r}. Expected one of: {', '.join(INVENTORY_CATEGORIES)}")
    if status is not None and status not in INVENTORY_STATUSES:
        raise ValueError(f"Unknown status {status!r}. Expected one of: {', '.join(INVENTORY_STATUSES)}")
    result = [
        item
        for item in items
        if (category is None or item.category == category) and (status is None or item.status == status)
    ]
    if search:
        result = [item for item in result if matches_inventory_search(item, search)]
    return result
