"""
cmdb/ingest.py -- CSV export parsers for device, scanner and directory data.

All parsers normalize a vendor-specific export to a small record dataclass.
No external dependencies beyond stdlib.

Supported exports:
  - Jamf Pro     computer inventory (macOS)      -> JamfRecord
  - Intune       device list (Windows)           -> IntuneRecord
  - Qualys       asset / vulnerability export    -> QualysRecord (one per row)
  - Users        campus directory export         -> DirectoryUser
  - CoreView     Microsoft 365 user export       -> DirectoryUser

Pipeline:
  uploaded CSV text -> parse_*() -> records -> cmdb/merge.merge_sources()
  -> list[RawDevice] -> core/pipeline.build_devices()

Header names are matched case-insensitively and each field accepts a few
aliases, because column titles drift between vendor versions and exports
saved through a spreadsheet. Rows with no identity (no name, serial or ID)
are skipped. Parsers never raise on malformed content.
"""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger("fleetadvisor.ingest")

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class JamfRecord:
    name: str
    serial_number: Optional[str] = None
    model: Optional[str] = None
    os_version: Optional[str] = None
    last_check_in: Optional[datetime] = None
    last_inventory_update: Optional[datetime] = None
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    department: Optional[str] = None
    processor: Optional[str] = None
    ram: Optional[str] = None
    storage: Optional[str] = None
    purchase_date: Optional[date] = None
    ip_address: Optional[str] = None
    jamf_id: Optional[str] = None


@dataclass
class IntuneRecord:
    name: str
    serial_number: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    os_version: Optional[str] = None
    last_check_in: Optional[datetime] = None
    user_upn: Optional[str] = None
    user_display_name: Optional[str] = None
    storage: Optional[str] = None
    device_id: Optional[str] = None
    enrollment_date: Optional[datetime] = None


@dataclass
class QualysRecord:
    """One Qualys row: an asset, optionally with one vulnerability finding.

    Asset-only exports leave title/severity empty; the merge step aggregates
    rows per asset.
    """

    agent_id: Optional[str] = None
    hostname: Optional[str] = None
    serial_number: Optional[str] = None
    ip_address: Optional[str] = None
    tru_risk_score: Optional[int] = None
    title: Optional[str] = None
    cve_id: Optional[str] = None
    severity: Optional[int] = None
    category: Optional[str] = None
    last_scan: Optional[datetime] = None


@dataclass
class DirectoryUser:
    computing_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse the date formats seen in MDM and scanner exports.

    ISO 8601 (with or without offset), "YYYY-MM-DD HH:MM:SS", "MM/DD/YYYY",
    "MM/DD/YYYY HH:MM" and "MM/DD/YYYY hh:mm:ss AM". Naive values are taken
    as UTC. Returns None for empty or unparseable input.
    """
    text = (value or "").strip()
    if not text:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Optional[str]) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    text = (value or "").strip().replace(",", "")
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        # "inf", "NaN" and 1e400 parse as floats but have no integer value.
        return None


def _ram_from_mb(value: Optional[str]) -> Optional[str]:
    """Jamf reports RAM in MB ("16384"); display it as "16 GB"."""
    mb = _parse_int(value)
    if mb is None:
        return (value or "").strip() or None
    return f"{mb / 1024:g} GB"


class _Row:
    """Case-insensitive, alias-aware view of a csv.DictReader row."""

    def __init__(self, row: dict):
        self._cells = {(k or "").strip().lower(): (v or "").strip() for k, v in row.items() if isinstance(v, str)}

    def get(self, *names: str) -> Optional[str]:
        for name in names:
            value = self._cells.get(name.lower())
            if value:
                return value
        return None


def _rows(content: str) -> list[_Row]:
    # utf-8-sig exports from Excel carry a BOM that would corrupt the first header.
    text = content.lstrip("\ufeff")
    try:
        return [_Row(row) for row in csv.DictReader(io.StringIO(text))]
    except csv.Error as e:
        logger.warning("Malformed CSV skipped: %s", e)
        return []


# ---------------------------------------------------------------------------
# Jamf Pro
# ---------------------------------------------------------------------------


def parse_jamf_csv(content: str) -> list[JamfRecord]:
    """Parse a Jamf Pro computer inventory export.

    Expected columns (Jamf default names, any order):
      Computer Name, Serial Number, Model Identifier, Operating System Version,
      Last Check-in, Last Inventory Update, Username, Email Address, Full Name,
      Department, Processor Type, Total RAM MB, Storage, Purchase Date / PO Date,
      IP Address, Jamf Computer ID
    """
    records: list[JamfRecord] = []
    for row in _rows(content):
        name = row.get("Computer Name", "Name", "Device Name")
        serial = row.get("Serial Number", "Serial")
        if not name and not serial:
            continue
        records.append(
            JamfRecord(
                name=name or serial,
                serial_number=serial,
                model=row.get("Model Identifier", "Model"),
                os_version=row.get("Operating System Version", "OS Version", "macOS Version"),
                last_check_in=parse_datetime(row.get("Last Check-in", "Last Check In", "Last Contact Time")),
                last_inventory_update=parse_datetime(row.get("Last Inventory Update", "Last Inventory")),
                username=row.get("Username", "User Name"),
                email=row.get("Email Address", "Email"),
                full_name=row.get("Full Name", "Real Name"),
                department=row.get("Department"),
                processor=row.get("Processor Type", "Processor"),
                ram=_ram_from_mb(row.get("Total RAM MB", "Total RAM", "RAM")),
                storage=row.get("Storage", "Total Storage", "Drive Capacity MB"),
                purchase_date=parse_date(row.get("Purchase Date", "PO Date", "Purchased")),
                ip_address=row.get("IP Address", "Last Reported IP Address"),
                jamf_id=row.get("Jamf Computer ID", "Jamf ID", "ID"),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Intune
# ---------------------------------------------------------------------------


def parse_intune_csv(content: str) -> list[IntuneRecord]:
    """Parse a Microsoft Intune (Endpoint Manager) device list export.

    Expected columns:
      Device name, Serial number, Model, Manufacturer, OS version,
      Last check-in, Primary user UPN, Primary user display name,
      Total storage, Device ID, Enrollment date
    """
    records: list[IntuneRecord] = []
    for row in _rows(content):
        name = row.get("Device name", "DeviceName", "Name")
        serial = row.get("Serial number", "SerialNumber")
        device_id = row.get("Device ID", "DeviceId")
        if not name and not serial and not device_id:
            continue
        records.append(
            IntuneRecord(
                name=name or serial or device_id,
                serial_number=serial,
                model=row.get("Model"),
                manufacturer=row.get("Manufacturer"),
                os_version=row.get("OS version", "OSVersion"),
                last_check_in=parse_datetime(row.get("Last check-in", "LastContact", "Last Sync DateTime")),
                user_upn=row.get("Primary user UPN", "UPN", "User principal name"),
                user_display_name=row.get("Primary user display name", "User display name"),
                storage=row.get("Total storage", "Total Storage (GB)"),
                device_id=device_id,
                enrollment_date=parse_datetime(row.get("Enrollment date", "Enrolled date")),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Qualys
# ---------------------------------------------------------------------------


def _parse_severity(value: Optional[str]) -> Optional[int]:
    severity = _parse_int(value)
    if severity is None or not 1 <= severity <= 5:
        return None
    return severity


def parse_qualys_csv(content: str) -> list[QualysRecord]:
    """Parse a Qualys asset / vulnerability export, one record per row.

    Expected columns:
      Agent ID, Asset Name / Hostname, Serial Number, IP Address,
      TruRisk Score, Title, CVE ID, Severity, Category, Last Scan

    Severity outside 1-5 is dropped. TruRisk is clamped to 0-1000.
    """
    records: list[QualysRecord] = []
    for row in _rows(content):
        agent_id = row.get("Agent ID", "AgentId", "Asset ID")
        hostname = row.get("Asset Name", "Hostname", "DNS Name", "NetBIOS Name")
        serial = row.get("Serial Number", "Hardware Serial")
        if not agent_id and not hostname and not serial:
            continue
        risk = _parse_int(row.get("TruRisk Score", "TruRisk", "Risk Score"))
        if risk is not None:
            risk = max(0, min(1000, risk))
        records.append(
            QualysRecord(
                agent_id=agent_id,
                hostname=hostname,
                serial_number=serial,
                ip_address=row.get("IP Address", "IP"),
                tru_risk_score=risk,
                title=row.get("Title", "Vulnerability", "QID Title"),
                cve_id=(row.get("CVE ID", "CVE", "CVE IDs") or "").split(",")[0].strip().upper() or None,
                severity=_parse_severity(row.get("Severity", "Severity Level")),
                category=row.get("Category"),
                last_scan=parse_datetime(row.get("Last Scan", "Last Scanned", "Last Detected")),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


def _local_part(email: Optional[str]) -> Optional[str]:
    if not email or "@" not in email:
        return email or None
    return email.split("@", 1)[0] or None


def parse_users_csv(content: str) -> list[DirectoryUser]:
    """Parse the campus users export.

    Expected columns: Computing ID, Name (or First Name + Last Name), Email,
    Department. When no computing ID column is present, the email local part
    is used.
    """
    users: list[DirectoryUser] = []
    for row in _rows(content):
        email = row.get("Email", "Email Address", "Mail")
        computing_id = row.get("Computing ID", "ComputingID", "UserID", "Username", "uid") or _local_part(email)
        if not computing_id:
            continue
        name = row.get("Name", "Full Name", "Display Name")
        if not name:
            parts = [row.get("First Name"), row.get("Last Name")]
            name = " ".join(p for p in parts if p) or None
        users.append(
            DirectoryUser(
                computing_id=computing_id,
                name=name,
                email=email,
                department=row.get("Department", "Dept"),
            )
        )
    return users


def parse_coreview_csv(content: str) -> list[DirectoryUser]:
    """Parse a CoreView (Microsoft 365) user export.

    Expected columns: UserPrincipalName, DisplayName, Department, Mail.
    The computing ID is the UPN local part.
    """
    users: list[DirectoryUser] = []
    for row in _rows(content):
        upn = row.get("UserPrincipalName", "User Principal Name", "UPN")
        computing_id = _local_part(upn)
        if not computing_id:
            continue
        users.append(
            DirectoryUser(
                computing_id=computing_id,
                name=row.get("DisplayName", "Display Name", "Name"),
                email=row.get("Mail", "Email") or upn,
                department=row.get("Department"),
            )
        )
    return users
