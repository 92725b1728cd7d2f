"""
core/pipeline.py -- Pure raw-record -> classified Device pipeline.

No side effects. No print statements. Called by both the CLI (via main.py)
and the REST API (via cmdb/merge.py load_devices()).

Deterministic and idempotent: the same RawDevice, policy and `now` always
produce the same Device, and classification fields are recomputed from the
raw record every time rather than carried forward.
"""

from datetime import datetime, timezone
from typing import Optional

from core.catalog import get_manufacturer_from_model, get_model_release_year, lookup_model_name
from core.classifier import ClassificationInput, classify, days_since
from core.models import Device, RawDevice, Vulnerability
from core.os_policy import OS_UNKNOWN, OsPolicy, assess_os_currency
from core.valuation import calculate_age_from_date, calculate_age_from_model, get_device_value

TOP_CVE_LIMIT = 5


def _resolve_age(raw: RawDevice, now: datetime) -> tuple[Optional[float], str]:
    """Purchase date, then model release year, then MDM enrollment date.

    Enrollment only bounds the age from below (a device may be re-enrolled
    long after purchase), so it is used only when nothing better is known.
    """
    if raw.purchase_date is not None:
        return calculate_age_from_date(raw.purchase_date, now), "purchase_date"
    if get_model_release_year(raw.model) > 0:
        return calculate_age_from_model(raw.model, now), "model"
    if raw.enrollment_date is not None:
        return calculate_age_from_date(raw.enrollment_date, now), "enrollment_date"
    return None, "unknown"


def _top_cves(vulns: list[Vulnerability]) -> list[str]:
    """Unique CVE IDs, highest severity first."""
    ranked = sorted((v for v in vulns if v.cve_id), key=lambda v: v.severity, reverse=True)
    seen: list[str] = []
    for v in ranked:
        if v.cve_id not in seen:
            seen.append(v.cve_id)
        if len(seen) == TOP_CVE_LIMIT:
            break
    return seen


def build_device(raw: RawDevice, policy: Optional[OsPolicy] = None, now: Optional[datetime] = None) -> Device:
    """Classify and value a single merged record. Never raises for data quality."""
    now = now or datetime.now(timezone.utc)

    os_currency = raw.os_currency
    if os_currency == OS_UNKNOWN and policy is not None:
        os_currency = assess_os_currency(raw.os_type, raw.os_version, policy)

    age, age_source = _resolve_age(raw, now)
    reference = raw.last_update_date if raw.last_update_date is not None else raw.last_seen
    days = days_since(reference, now)

    result = classify(ClassificationInput(age_in_years=age, days_since_update=days, os_currency=os_currency))

    model_name = lookup_model_name(raw.model)
    value = get_device_value(raw.model, model_name, age=age or 0.0, now=now)

    device = Device(
        id=raw.id,
        name=raw.name,
        source=raw.source,
        model=raw.model,
        model_name=model_name,
        os_type=raw.os_type,
        owner=raw.owner,
        status=result.status,
        activity_status=result.activity_status,
        age_in_years=age or 0.0,
        age_source=age_source,
        msrp=value.msrp,
        current_value=value.current_value,
        depreciation_percent=value.depreciation_percent,
        status_reasons=result.status_reasons,
        replacement_recommended=result.replacement_recommended,
        replacement_reason=result.replacement_reason,
        serial_number=raw.serial_number,
        manufacturer=raw.manufacturer or get_manufacturer_from_model(raw.model),
        processor=raw.processor,
        ram=raw.ram,
        storage=raw.storage,
        os_version=raw.os_version,
        os_currency=os_currency,
        owner_email=raw.owner_email,
        additional_owner=raw.additional_owner,
        department=raw.department,
        purchase_date=raw.purchase_date,
        last_seen=raw.last_seen,
        last_update_date=raw.last_update_date,
        days_since_update=days,
        qualys_agent_id=raw.qualys_agent_id,
        tru_risk_score=raw.tru_risk_score,
        last_vuln_scan=raw.last_vuln_scan,
        ip_address=raw.ip_address,
        is_retired=raw.is_retired,
    )

    if raw.vulnerabilities is not None:
        vulns = list(raw.vulnerabilities)
        device.vulnerabilities = vulns
        device.vulnerability_count = len(vulns)
        device.critical_vuln_count = sum(1 for v in vulns if v.severity >= 4)
        device.critical_vuln_count5 = sum(1 for v in vulns if v.severity == 5)
        device.high_vuln_count = sum(1 for v in vulns if v.severity == 4)
        device.top_cves = _top_cves(vulns)

    return device


def build_devices(
    raws: list[RawDevice], policy: Optional[OsPolicy] = None, now: Optional[datetime] = None
) -> list[Device]:
    """Build every device against a single `now` so ages and day counts agree."""
    now = now or datetime.now(timezone.utc)
    return [build_device(raw, policy, now) for raw in raws]
