from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

SOURCES = ("jamf", "intune")
STATUSES = ("critical", "warning", "good", "inactive", "unknown")
UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class ModelInfo:
    name: str
    year: int  # 0 = unknown
    msrp: Optional[int] = None


@dataclass
class Vulnerability:
    title: str
    severity: int  # 1-5
    cve_id: Optional[str] = None
    category: Optional[str] = None


@dataclass
class DeviceValue:
    msrp: int
    current_value: float
    depreciation_percent: int
    age_in_years: float


@dataclass
class RawDevice:
    """One merged record per physical device, before classification.

    Produced by cmdb/merge.py. Every optional attribute may be absent; the
    classifier and valuation engine handle each absence explicitly.
    """

    id: str
    name: str
    source: str  # "jamf" | "intune"
    model: str
    os_type: str  # "macOS" | "Windows"
    owner: str = UNASSIGNED
    serial_number: Optional[str] = None
    manufacturer: Optional[str] = None
    processor: Optional[str] = None
    ram: Optional[str] = None
    storage: Optional[str] = None
    os_version: Optional[str] = None
    owner_email: Optional[str] = None
    additional_owner: Optional[str] = None
    department: Optional[str] = None
    purchase_date: Optional[date] = None
    enrollment_date: Optional[date] = None  # Intune enrollment, last-resort age signal
    last_seen: Optional[datetime] = None
    last_update_date: Optional[datetime] = None
    os_currency: str = "unknown"  # current | aging | unsupported | unknown
    # Qualys join -- all None when the device has no scanner data
    qualys_agent_id: Optional[str] = None
    tru_risk_score: Optional[int] = None
    vulnerabilities: Optional[list[Vulnerability]] = None
    last_vuln_scan: Optional[datetime] = None
    ip_address: Optional[str] = None
    is_retired: bool = False


@dataclass
class Device:
    """A classified device, ready for tables, filters and charts.

    Classification and valuation fields are always recomputed from the raw
    record -- they are never edited directly.
    """

    id: str
    name: str
    source: str
    model: str
    model_name: str
    os_type: str
    owner: str
    status: str  # critical | warning | good | inactive | unknown
    activity_status: str  # active | inactive
    age_in_years: float
    age_source: str  # purchase_date | model | enrollment_date | unknown
    msrp: int
    current_value: float
    depreciation_percent: int
    status_reasons: list[str] = field(default_factory=list)
    replacement_recommended: bool = False
    replacement_reason: Optional[str] = None
    serial_number: Optional[str] = None
    manufacturer: Optional[str] = None
    processor: Optional[str] = None
    ram: Optional[str] = None
    storage: Optional[str] = None
    os_version: Optional[str] = None
    os_currency: str = "unknown"
    owner_email: Optional[str] = None
    additional_owner: Optional[str] = None
    department: Optional[str] = None
    purchase_date: Optional[date] = None
    last_seen: Optional[datetime] = None
    last_update_date: Optional[datetime] = None
    days_since_update: Optional[int] = None
    qualys_agent_id: Optional[str] = None
    tru_risk_score: Optional[int] = None
    vulnerability_count: Optional[int] = None
    critical_vuln_count: Optional[int] = None  # severity 4-5
    critical_vuln_count5: Optional[int] = None  # severity 5 only
    high_vuln_count: Optional[int] = None  # severity 4 only
    top_cves: list[str] = field(default_factory=list)
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    last_vuln_scan: Optional[datetime] = None
    ip_address: Optional[str] = None
    is_retired: bool = False


@dataclass
class DeviceSummary:
    total_devices: int
    critical_count: int
    warning_count: int
    good_count: int
    inactive_count: int
    unknown_count: int
    active_devices: int
    devices_needing_replacement: int
    out_of_date_devices: int
    average_age: float
    total_msrp: int
    total_current_value: float
    # Present only when at least one device carries Qualys data
    devices_with_qualys_data: Optional[int] = None
    total_vulnerabilities: Optional[int] = None
    critical_vulnerabilities: Optional[int] = None
    average_tru_risk_score: Optional[int] = None


@dataclass
class ChartDataPoint:
    name: str
    value: float
    percentage: Optional[float] = None


@dataclass
class ReplacementCost:
    name: str
    cost: int
    devices: int


@dataclass
class VulnerableDevice:
    name: str
    vulnerabilities: int
    critical: int
    tru_risk: int


# ---------------------------------------------------------------------------
# Loaner pool and manual inventory
#
# Hand-maintained records, unlike devices which are rebuilt from exports on
# every load. ids are assigned by the store (0 = not yet stored).
# ---------------------------------------------------------------------------

LOANER_STATUSES = ("available", "checked-out", "maintenance", "retired")

INVENTORY_CATEGORIES = (
    "computer",
    "monitor",
    "printer",
    "networking",
    "audio-visual",
    "peripheral",
    "software",
    "furniture",
    "other",
)
INVENTORY_STATUSES = ("active", "in-storage", "needs-repair", "retired", "on-order")


@dataclass
class LoanerLaptop:
    asset_tag: str
    name: str
    status: str = "available"  # one of LOANER_STATUSES
    id: int = 0
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    # Current borrower -- set only while checked out
    borrower_name: Optional[str] = None
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    checkout_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    specs: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class LoanRecord:
    """One checkout of a loaner. Open until actual_return_date is set."""

    loaner_id: int
    borrower_name: str
    checkout_date: date
    id: int = 0
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    expected_return_date: Optional[date] = None
    actual_return_date: Optional[date] = None
    notes: Optional[str] = None


@dataclass
class LoanerSummary:
    total_loaners: int
    available: int
    checked_out: int
    in_maintenance: int
    retired: int
    overdue_count: int


@dataclass
class InventoryItem:
    name: str
    category: str  # one of INVENTORY_CATEGORIES
    status: str = "active"  # one of INVENTORY_STATUSES
    id: int = 0
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    asset_tag: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = None
    warranty_expiration: Optional[date] = None
    assigned_to: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class InventorySummary:
    total_items: int
    total_value: float
    by_category: dict[str, int]
    by_status: dict[str, int]
    warranty_expiring_soon: int  # within WARRANTY_WINDOW_DAYS, not yet expired
    recently_added: int  # created within RECENT_WINDOW_DAYS
