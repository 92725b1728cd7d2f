"""
cmdb/merge.py -- Join uploaded exports into one raw record per device.

Jamf rows become macOS devices and Intune rows become Windows devices. Qualys
findings are aggregated per scanned asset and attached by serial number, or
by hostname (first DNS label) when the serial is missing. Owners are resolved
against the merged user directory. The retired flag is re-attached from the
persisted set by serial number, falling back to device id.

Records are rebuilt from the raw CSV blobs on every load; nothing here is
incremental.

Usage:
    from cmdb.merge import load_devices
    devices = load_devices(store.get_all_csv(), store.get_retired_ids(), policy)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from cmdb.ingest import (
    DirectoryUser,
    IntuneRecord,
    JamfRecord,
    QualysRecord,
    parse_coreview_csv,
    parse_intune_csv,
    parse_jamf_csv,
    parse_qualys_csv,
    parse_users_csv,
)
from core.models import UNASSIGNED, Device, RawDevice, Vulnerability
from core.os_policy import OsPolicy
from core.pipeline import build_devices

logger = logging.getLogger("fleetadvisor.merge")


# ---------------------------------------------------------------------------
# Owner resolution
# ---------------------------------------------------------------------------


@dataclass
class OwnerMatch:
    owner: str = UNASSIGNED
    email: Optional[str] = None
    department: Optional[str] = None
    additional_owner: Optional[str] = None


def extract_computing_id(device_name: Optional[str]) -> Optional[str]:
    """Return the middle token of a "<prefix>-<computingID>-<suffix>" name.

    "CHEM-abc1de-MBP" -> "abc1de". Names with fewer than three hyphen-separated
    tokens have no computing ID.
    """
    if not device_name:
        return None
    tokens = device_name.strip().split("-")
    if len(tokens) < 3:
        return None
    return tokens[1].strip() or None


def build_directory(users: list[DirectoryUser], coreview: list[DirectoryUser]) -> dict[str, DirectoryUser]:
    """Merge both directories keyed by lowercased computing ID.

    The campus users export wins; CoreView only fills IDs and empty fields it
    does not have.
    """
    directory: dict[str, DirectoryUser] = {}
    for user in users:
        directory.setdefault(user.computing_id.lower(), user)
    for user in coreview:
        key = user.computing_id.lower()
        existing = directory.get(key)
        if existing is None:
            directory[key] = user
            continue
        existing.name = existing.name or user.name
        existing.email = existing.email or user.email
        existing.department = existing.department or user.department
    return directory


def _local_part(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.split("@", 1)[0].lower() or None


def resolve_owner(
    device_name: str,
    directory: dict[str, DirectoryUser],
    mdm_user: Optional[str] = None,
    mdm_email: Optional[str] = None,
    mdm_display_name: Optional[str] = None,
) -> OwnerMatch:
    """Work out who owns a device.

    1. The computing ID embedded in the device name, if it is in the directory.
    2. Otherwise the user the MDM reports (looked up in the directory by
       username or email local part for email and department).
    3. Otherwise "Unassigned".

    When the name-derived owner differs from the MDM-reported user, the MDM
    user is kept as additional_owner.
    """
    mdm_ids = {i for i in (mdm_user and mdm_user.lower(), _local_part(mdm_email)) if i}
    mdm_label = mdm_display_name or mdm_user or mdm_email

    computing_id = extract_computing_id(device_name)
    match = directory.get(computing_id.lower()) if computing_id else None
    if match is not None:
        result = OwnerMatch(
            owner=match.name or match.computing_id,
            email=match.email,
            department=match.department,
        )
        if mdm_label and match.computing_id.lower() not in mdm_ids and mdm_label != result.owner:
            result.additional_owner = mdm_label
        return result

    if mdm_label:
        known = next((directory[i] for i in mdm_ids if i in directory), None)
        if known is not None:
            return OwnerMatch(
                owner=known.name or mdm_label,
                email=known.email or mdm_email,
                department=known.department,
            )
        return OwnerMatch(owner=mdm_label, email=mdm_email)

    return OwnerMatch()


# ---------------------------------------------------------------------------
# Qualys aggregation
# ---------------------------------------------------------------------------


@dataclass
class _ScannedAsset:
    agent_id: Optional[str] = None
    hostname: Optional[str] = None
    serial_number: Optional[str] = None
    ip_address: Optional[str] = None
    tru_risk_score: Optional[int] = None
    last_scan: Optional[datetime] = None
    vulnerabilities: list[Vulnerability] = field(default_factory=list)


def short_hostname(hostname: Optional[str]) -> Optional[str]:
    """First DNS label, lowercased: "Chem-abc1de-MBP.chem.example.edu" -> "chem-abc1de-mbp".

    Dotted IPv4 addresses are returned whole.
    """
    text = (hostname or "").strip().lower()
    if not text:
        return None
    if text.replace(".", "").isdigit():
        return text
    return text.split(".", 1)[0] or None


def _identities(record: QualysRecord) -> list[str]:
    keys = []
    if record.agent_id:
        keys.append(f"agent:{record.agent_id.lower()}")
    if record.serial_number:
        keys.append(f"serial:{record.serial_number.lower()}")
    if record.hostname:
        keys.append(f"host:{record.hostname.strip().lower()}")
    return keys


def _absorb(asset: _ScannedAsset, other: _ScannedAsset) -> None:
    asset.agent_id = asset.agent_id or other.agent_id
    asset.hostname = asset.hostname or other.hostname
    asset.serial_number = asset.serial_number or other.serial_number
    asset.ip_address = asset.ip_address or other.ip_address
    if other.tru_risk_score is not None:
        asset.tru_risk_score = max(asset.tru_risk_score or 0, other.tru_risk_score)
    if other.last_scan is not None and (asset.last_scan is None or other.last_scan > asset.last_scan):
        asset.last_scan = other.last_scan
    asset.vulnerabilities.extend(other.vulnerabilities)


def _from_record(record: QualysRecord) -> _ScannedAsset:
    asset = _ScannedAsset(
        agent_id=record.agent_id,
        hostname=record.hostname,
        serial_number=record.serial_number,
        ip_address=record.ip_address,
        tru_risk_score=record.tru_risk_score,
        last_scan=record.last_scan,
    )
    if record.title and record.severity is not None:
        asset.vulnerabilities.append(
            Vulnerability(
                title=record.title,
                severity=record.severity,
                cve_id=record.cve_id,
                category=record.category,
            )
        )
    return asset


def aggregate_qualys(records: list[QualysRecord]) -> list[_ScannedAsset]:
    """Collapse per-finding rows into one entry per scanned asset.

    Rows belong to the same asset when they share any identity: agent ID,
    serial number or hostname. Exports often leave the agent ID blank on some
    rows, so a row can link two assets seen so far; those are folded into
    one. The highest TruRisk and latest scan time seen for an asset win.
    """
    assets: list[_ScannedAsset] = []
    index: dict[str, _ScannedAsset] = {}
    for record in records:
        keys = _identities(record)
        matched: list[_ScannedAsset] = []
        for key in keys:
            found = index.get(key)
            if found is not None and not any(found is m for m in matched):
                matched.append(found)

        row = _from_record(record)
        if not matched:
            asset = row
            assets.append(asset)
        else:
            asset = matched[0]
            _absorb(asset, row)
            for other in matched[1:]:
                _absorb(asset, other)
                assets = [a for a in assets if a is not other]
                for key, value in index.items():
                    if value is other:
                        index[key] = asset

        for key in keys:
            index[key] = asset
    return assets


def _attach_qualys(device: RawDevice, asset: _ScannedAsset) -> None:
    # Assets scanned without an agent ID still count as Qualys-covered.
    device.qualys_agent_id = asset.agent_id or asset.hostname or asset.serial_number
    device.tru_risk_score = asset.tru_risk_score
    device.vulnerabilities = list(asset.vulnerabilities)
    device.last_vuln_scan = asset.last_scan
    device.ip_address = device.ip_address or asset.ip_address


# ---------------------------------------------------------------------------
# Per-source record builders
# ---------------------------------------------------------------------------


def _from_jamf(record: JamfRecord, directory: dict[str, DirectoryUser]) -> RawDevice:
    owner = resolve_owner(record.name, directory, record.username, record.email, record.full_name)
    return RawDevice(
        id=f"jamf-{record.jamf_id or record.serial_number or record.name}",
        name=record.name,
        source="jamf",
        model=record.model or "Unknown",
        os_type="macOS",
        owner=owner.owner,
        serial_number=record.serial_number,
        manufacturer="Apple",
        processor=record.processor,
        ram=record.ram,
        storage=record.storage,
        os_version=record.os_version,
        owner_email=owner.email,
        additional_owner=owner.additional_owner,
        department=record.department or owner.department,
        purchase_date=record.purchase_date,
        last_seen=record.last_check_in,
        last_update_date=record.last_inventory_update,
        ip_address=record.ip_address,
    )


def _from_intune(record: IntuneRecord, directory: dict[str, DirectoryUser]) -> RawDevice:
    username = _local_part(record.user_upn)
    owner = resolve_owner(record.name, directory, username, record.user_upn, record.user_display_name)
    return RawDevice(
        id=f"intune-{record.device_id or record.serial_number or record.name}",
        name=record.name,
        source="intune",
        model=record.model or "Unknown",
        os_type="Windows",
        owner=owner.owner,
        serial_number=record.serial_number,
        manufacturer=record.manufacturer,
        storage=record.storage,
        os_version=record.os_version,
        owner_email=owner.email,
        additional_owner=owner.additional_owner,
        department=owner.department,
        enrollment_date=record.enrollment_date.date() if record.enrollment_date else None,
        last_seen=record.last_check_in,
    )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_sources(blobs: dict[str, str], retired_ids: Optional[set[str]] = None) -> list[RawDevice]:
    """Parse every uploaded export and join them into raw device records.

    blobs maps source type (jamf, intune, users, coreview, qualys) to CSV
    text; missing sources are treated as empty. Duplicate serial numbers keep
    the first occurrence, Jamf before Intune.
    """
    retired = {i.lower() for i in (retired_ids or set())}
    directory = build_directory(
        parse_users_csv(blobs.get("users") or ""),
        parse_coreview_csv(blobs.get("coreview") or ""),
    )

    devices: list[RawDevice] = []
    seen_serials: set[str] = set()
    candidates = [_from_jamf(r, directory) for r in parse_jamf_csv(blobs.get("jamf") or "")]
    candidates += [_from_intune(r, directory) for r in parse_intune_csv(blobs.get("intune") or "")]
    for device in candidates:
        serial = (device.serial_number or "").lower()
        if serial:
            if serial in seen_serials:
                logger.debug("Duplicate serial %s skipped (%s)", device.serial_number, device.id)
                continue
            seen_serials.add(serial)
        devices.append(device)

    assets = aggregate_qualys(parse_qualys_csv(blobs.get("qualys") or ""))
    by_serial: dict[str, _ScannedAsset] = {}
    by_hostname: dict[str, _ScannedAsset] = {}
    for asset in assets:
        if asset.serial_number:
            by_serial.setdefault(asset.serial_number.lower(), asset)
        host = short_hostname(asset.hostname)
        if host:
            by_hostname.setdefault(host, asset)
    for device in devices:
        asset = None
        if device.serial_number:
            asset = by_serial.get(device.serial_number.lower())
        if asset is None:
            asset = by_hostname.get(short_hostname(device.name) or "")
        if asset is not None:
            _attach_qualys(device, asset)

    for device in devices:
        keys = {device.id.lower()}
        if device.serial_number:
            keys.add(device.serial_number.lower())
        device.is_retired = bool(keys & retired)

    logger.info("Merged %d devices (%d Qualys-matched)", len(devices), sum(1 for d in devices if d.qualys_agent_id))
    return devices


def load_devices(
    blobs: dict[str, str],
    retired_ids: Optional[set[str]] = None,
    policy: Optional[OsPolicy] = None,
    now: Optional[datetime] = None,
) -> list[Device]:
    """Merge the stored exports and classify every device."""
    return build_devices(merge_sources(blobs, retired_ids), policy, now)
