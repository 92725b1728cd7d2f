"""
API request and response models for FleetAdvisor REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from dataclasses import asdict
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.inventory import CATEGORY_LABELS, warranty_expiring_soon
from core.inventory import STATUS_LABELS as INVENTORY_STATUS_LABELS
from core.loaners import STATUS_LABELS as LOANER_STATUS_LABELS
from core.loaners import is_overdue, returned_late
from core.models import (
    Device,
    DeviceSummary,
    InventoryItem,
    InventorySummary,
    LoanerLaptop,
    LoanerSummary,
    LoanRecord,
)

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"  # "ok" | "degraded"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class UploadResponse(BaseModel):
    """Response for POST /api/v1/uploads/{source}."""

    model_config = ConfigDict(frozen=True)

    source: str
    filename: str
    rows: int


class UploadRow(BaseModel):
    """One stored export in the GET /api/v1/uploads list."""

    model_config = ConfigDict(frozen=True)

    source: str
    filename: str
    rows: int
    size_bytes: int
    uploaded_at: str


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


class VulnerabilityRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    severity: int
    cve_id: Optional[str] = None
    category: Optional[str] = None


class DeviceRow(BaseModel):
    """One row in the GET /devices list -- no vulnerability detail."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    source: str
    model: str
    model_name: str
    os_type: str
    os_version: Optional[str]
    os_currency: str
    owner: str
    owner_email: Optional[str]
    department: Optional[str]
    serial_number: Optional[str]
    status: str
    activity_status: str
    age_in_years: float
    age_source: str
    current_value: float
    replacement_recommended: bool
    days_since_update: Optional[int]
    last_seen: Optional[datetime]
    tru_risk_score: Optional[int]
    vulnerability_count: Optional[int]
    is_retired: bool

    @classmethod
    def from_device(cls, device: Device) -> "DeviceRow":
        """Factory Method -- the mapping lives with the output model."""
        return cls(**{name: getattr(device, name) for name in cls.model_fields})


class DeviceDetail(BaseModel):
    """Full device record for GET /devices/{device_id}."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    source: str
    model: str
    model_name: str
    os_type: str
    owner: str
    status: str
    activity_status: str
    status_reasons: list[str]
    age_in_years: float
    age_source: str
    msrp: int
    current_value: float
    depreciation_percent: int
    replacement_recommended: bool
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
    critical_vuln_count: Optional[int] = None
    critical_vuln_count5: Optional[int] = None
    high_vuln_count: Optional[int] = None
    top_cves: list[str] = Field(default_factory=list)
    vulnerabilities: list[VulnerabilityRow] = Field(default_factory=list)
    last_vuln_scan: Optional[datetime] = None
    ip_address: Optional[str] = None
    is_retired: bool = False

    @classmethod
    def from_device(cls, device: Device) -> "DeviceDetail":
        return cls(**asdict(device))


class RetiredUpdate(BaseModel):
    """Request body for PATCH /api/v1/devices/{device_id}/retired."""

    is_retired: bool


class RetiredResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    is_retired: bool


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class SummaryModel(BaseModel):
    """Transport form of core.models.DeviceSummary."""

    model_config = ConfigDict(frozen=True)

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
    devices_with_qualys_data: Optional[int] = None
    total_vulnerabilities: Optional[int] = None
    critical_vulnerabilities: Optional[int] = None
    average_tru_risk_score: Optional[int] = None

    @classmethod
    def from_summary(cls, summary: DeviceSummary) -> "SummaryModel":
        return cls(**asdict(summary))


class BudgetLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    cost: int
    devices: int


class DashboardResponse(BaseModel):
    """Response for GET /api/v1/dashboard.

    budget -- replacement cost projection by fiscal year at the configured
    per-device unit cost.
    """

    model_config = ConfigDict(frozen=True)

    summary: SummaryModel
    unit_cost: int
    budget: list[BudgetLine]


class ChartsResponse(BaseModel):
    """Response for GET /api/v1/dashboard/charts.

    series maps a chart name to its rows. Most rows are {name, value,
    percentage}; replacement_cost and top_vulnerable_devices carry their own
    fields.
    """

    model_config = ConfigDict(frozen=True)

    series: dict[str, list[dict]]


# ---------------------------------------------------------------------------
# Model catalog lookup
# ---------------------------------------------------------------------------


class ModelLookupResponse(BaseModel):
    """Response for GET /api/v1/models/{code}."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    manufacturer: str
    year: int
    msrp: Optional[int]
    estimated_msrp: int
    age_in_years: float
    current_value: float
    depreciation_percent: int


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class OAuthProvider(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    subject: str
    provider: str
    email: Optional[str] = None
    name: Optional[str] = None


# ---------------------------------------------------------------------------
# Loaner pool
# ---------------------------------------------------------------------------


class LoanerStatusEnum(str, Enum):
    available = "available"
    checked_out = "checked-out"
    maintenance = "maintenance"
    retired = "retired"


class EditableLoanerStatusEnum(str, Enum):
    """Statuses a plain edit may set; checked-out goes through /checkout."""

    available = "available"
    maintenance = "maintenance"
    retired = "retired"


class LoanerCreate(BaseModel):
    """Request body for POST /api/v1/loaners."""

    model_config = ConfigDict(str_strip_whitespace=True)

    asset_tag: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    status: EditableLoanerStatusEnum = EditableLoanerStatusEnum.available
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    serial_number: Optional[str] = Field(default=None, max_length=100)
    specs: Optional[str] = Field(default=None, max_length=1000)
    condition: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)


class LoanerUpdate(BaseModel):
    """Request body for PATCH /api/v1/loaners/{loaner_id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    asset_tag: Optional[str] = Field(default=None, min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[EditableLoanerStatusEnum] = None
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    serial_number: Optional[str] = Field(default=None, max_length=100)
    specs: Optional[str] = Field(default=None, max_length=1000)
    condition: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)


class CheckoutRequest(BaseModel):
    """Request body for POST /api/v1/loaners/{loaner_id}/checkout."""

    model_config = ConfigDict(str_strip_whitespace=True)

    borrower_name: str = Field(min_length=1, max_length=255)
    borrower_email: Optional[str] = Field(default=None, max_length=255)
    borrower_department: Optional[str] = Field(default=None, max_length=255)
    checkout_date: Optional[date] = None  # defaults to today
    expected_return_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class ReturnRequest(BaseModel):
    """Request body for POST /api/v1/loaners/{loaner_id}/return."""

    model_config = ConfigDict(str_strip_whitespace=True)

    condition: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)


class LoanerResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    asset_tag: str
    name: str
    status: str
    status_label: str
    is_overdue: bool
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    borrower_name: Optional[str] = None
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    checkout_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    specs: Optional[str] = None
    condition: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_loaner(cls, loaner: LoanerLaptop, today: date) -> "LoanerResponse":
        return cls(
            **asdict(loaner),
            status_label=LOANER_STATUS_LABELS.get(loaner.status, loaner.status),
            is_overdue=is_overdue(loaner, today),
        )


class LoanRecordResponse(BaseModel):
    """One entry of GET /api/v1/loaners/{loaner_id}/history."""

    model_config = ConfigDict(frozen=True)

    id: int
    loaner_id: int
    borrower_name: str
    checkout_date: date
    borrower_email: Optional[str] = None
    borrower_department: Optional[str] = None
    expected_return_date: Optional[date] = None
    actual_return_date: Optional[date] = None
    notes: Optional[str] = None
    returned: bool
    returned_late: bool

    @classmethod
    def from_record(cls, record: LoanRecord, today: date) -> "LoanRecordResponse":
        return cls(
            **asdict(record),
            returned=record.actual_return_date is not None,
            returned_late=returned_late(record, today),
        )


class LoanerSummaryModel(BaseModel):
    """Response for GET /api/v1/loaners/summary."""

    model_config = ConfigDict(frozen=True)

    total_loaners: int
    available: int
    checked_out: int
    in_maintenance: int
    retired: int
    overdue_count: int

    @classmethod
    def from_summary(cls, summary: LoanerSummary) -> "LoanerSummaryModel":
        return cls(**asdict(summary))


# ---------------------------------------------------------------------------
# Manual inventory
# ---------------------------------------------------------------------------


class InventoryCategoryEnum(str, Enum):
    computer = "computer"
    monitor = "monitor"
    printer = "printer"
    networking = "networking"
    audio_visual = "audio-visual"
    peripheral = "peripheral"
    software = "software"
    furniture = "furniture"
    other = "other"


class InventoryStatusEnum(str, Enum):
    active = "active"
    in_storage = "in-storage"
    needs_repair = "needs-repair"
    retired = "retired"
    on_order = "on-order"


class InventoryItemCreate(BaseModel):
    """Request body for POST /api/v1/inventory."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    category: InventoryCategoryEnum
    status: InventoryStatusEnum = InventoryStatusEnum.active
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    serial_number: Optional[str] = Field(default=None, max_length=100)
    asset_tag: Optional[str] = Field(default=None, max_length=64)
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    warranty_expiration: Optional[date] = None
    assigned_to: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    department: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)


class InventoryItemUpdate(BaseModel):
    """Request body for PATCH /api/v1/inventory/{item_id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[InventoryCategoryEnum] = None
    status: Optional[InventoryStatusEnum] = None
    manufacturer: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    serial_number: Optional[str] = Field(default=None, max_length=100)
    asset_tag: Optional[str] = Field(default=None, max_length=64)
    purchase_date: Optional[date] = None
    purchase_price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    warranty_expiration: Optional[date] = None
    assigned_to: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    department: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)


class InventoryItemResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    category: str
    category_label: str
    status: str
    status_label: str
    warranty_expiring_soon: bool
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
    created_at: str
    updated_at: str

    @classmethod
    def from_item(cls, item: InventoryItem, today: date) -> "InventoryItemResponse":
        return cls(
            **asdict(item),
            category_label=CATEGORY_LABELS.get(item.category, item.category),
            status_label=INVENTORY_STATUS_LABELS.get(item.status, item.status),
            warranty_expiring_soon=warranty_expiring_soon(item, today),
        )


class InventorySummaryModel(BaseModel):
    """Response for GET /api/v1/inventory/summary."""

    model_config = ConfigDict(frozen=True)

    total_items: int
    total_value: float
    by_category: dict[str, int]
    by_status: dict[str, int]
    warranty_expiring_soon: int
    recently_added: int

    @classmethod
    def from_summary(cls, summary: InventorySummary) -> "InventorySummaryModel":
        return cls(**asdict(summary))
