"""
summary.py -- Fleet-level aggregate over classified devices.

Pure reduction: the same device list always yields the same summary, and the
five status counts always sum to total_devices.
"""

from typing import Optional

from .classifier import ACTIVE, INACTIVE_AFTER_DAYS
from .models import Device, DeviceSummary
from .valuation import round_half_up


def _is_out_of_date(device: Device) -> bool:
    return device.days_since_update is None or device.days_since_update > INACTIVE_AFTER_DAYS


def _average_age(devices: list[Device]) -> float:
    # Devices of unknown age (0.0 placeholder) are excluded.
    known = [d.age_in_years for d in devices if d.age_source != "unknown"]
    if not known:
        return 0.0
    return round_half_up(sum(known) / len(known), 1)


def _average_tru_risk(devices: list[Device]) -> Optional[int]:
    scores = [d.tru_risk_score for d in devices if d.tru_risk_score is not None]
    if not scores:
        return None
    return int(round_half_up(sum(scores) / len(scores)))


def calculate_device_summary(devices: list[Device]) -> DeviceSummary:
    """Reduce a device list to dashboard counters and totals."""
    counts = {"critical": 0, "warning": 0, "good": 0, "inactive": 0, "unknown": 0}
    for device in devices:
        counts[device.status if device.status in counts else "unknown"] += 1

    summary = DeviceSummary(
        total_devices=len(devices),
        critical_count=counts["critical"],
        warning_count=counts["warning"],
        good_count=counts["good"],
        inactive_count=counts["inactive"],
        unknown_count=counts["unknown"],
        active_devices=sum(1 for d in devices if d.activity_status == ACTIVE),
        devices_needing_replacement=sum(1 for d in devices if d.replacement_recommended),
        out_of_date_devices=sum(1 for d in devices if _is_out_of_date(d)),
        average_age=_average_age(devices),
        total_msrp=sum(d.msrp for d in devices),
        total_current_value=round_half_up(sum(d.current_value for d in devices), 2),
    )

    scanned = [d for d in devices if d.qualys_agent_id]
    if scanned:
        summary.devices_with_qualys_data = len(scanned)
        summary.total_vulnerabilities = sum(d.vulnerability_count or 0 for d in scanned)
        summary.critical_vulnerabilities = sum(d.critical_vuln_count or 0 for d in scanned)
        summary.average_tru_risk_score = _average_tru_risk(scanned)

    return summary
