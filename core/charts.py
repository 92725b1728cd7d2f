"""
charts.py -- Chart-ready distributions over classified devices.

Each function returns plain rows (ChartDataPoint or a small dataclass) that a
front end can hand straight to its charting library. Nothing here renders.

Bucketed series keep their buckets in a fixed order and include empty buckets
unless noted; count-by-key series are sorted by count, descending, with ties
kept in first-seen order.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from .models import UNASSIGNED, ChartDataPoint, Device, ReplacementCost, VulnerableDevice
from .valuation import round_half_up

DEFAULT_REPLACEMENT_UNIT_COST = 1500

# Owners that are service or shared accounts rather than people.
_NON_PERSON_OWNERS = {UNASSIGNED, "IT Admin", "System"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _percentage(value: int, total: int) -> float:
    return round_half_up(value / total * 100, 1) if total > 0 else 0.0


def _with_percentages(rows: list[tuple[str, int]], total: int) -> list[ChartDataPoint]:
    return [ChartDataPoint(name=name, value=value, percentage=_percentage(value, total)) for name, value in rows]


def _buckets(names: list[str]) -> dict[str, int]:
    return {name: 0 for name in names}


def _as_points(buckets: dict[str, int], drop_empty: bool = False) -> list[ChartDataPoint]:
    return [ChartDataPoint(name=name, value=value) for name, value in buckets.items() if value > 0 or not drop_empty]


def _top_counts(values: list[str], limit: int) -> list[ChartDataPoint]:
    # Counter.most_common keeps first-seen order for equal counts.
    return [ChartDataPoint(name=name, value=count) for name, count in Counter(values).most_common(limit)]


def fiscal_year(now: Optional[datetime] = None) -> int:
    """Fiscal year containing `now`; fiscal years start on July 1."""
    now = now or datetime.now(timezone.utc)
    return now.year + 1 if now.month >= 7 else now.year


# ---------------------------------------------------------------------------
# Fleet composition
# ---------------------------------------------------------------------------


def status_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    """Status counts with percentages; empty statuses are omitted."""
    counts = Counter(d.status for d in devices)
    rows = [(status.capitalize(), counts[status]) for status in ("critical", "warning", "good", "inactive", "unknown")]
    return [point for point in _with_percentages(rows, len(devices)) if point.value > 0]


def os_type_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    mac = sum(1 for d in devices if d.os_type == "macOS")
    windows = sum(1 for d in devices if d.os_type == "Windows")
    return _with_percentages([("macOS", mac), ("Windows", windows)], len(devices))


def source_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    jamf = sum(1 for d in devices if d.source == "jamf")
    intune = sum(1 for d in devices if d.source == "intune")
    return _with_percentages([("Jamf", jamf), ("Intune", intune)], len(devices))


def age_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    buckets = _buckets(["0-1 years", "1-2 years", "2-3 years", "3-4 years", "4+ years"])
    for device in devices:
        age = device.age_in_years
        if age < 1:
            buckets["0-1 years"] += 1
        elif age < 2:
            buckets["1-2 years"] += 1
        elif age < 3:
            buckets["2-3 years"] += 1
        elif age < 4:
            buckets["3-4 years"] += 1
        else:
            buckets["4+ years"] += 1
    return _as_points(buckets)


def top_models(devices: list[Device], limit: int = 10) -> list[ChartDataPoint]:
    return _top_counts([d.model_name or "Unknown" for d in devices], limit)


def os_version_distribution(devices: list[Device], limit: int = 15) -> list[ChartDataPoint]:
    return _top_counts([d.os_version or "Unknown" for d in devices], limit)


def department_distribution(devices: list[Device], limit: int = 10) -> list[ChartDataPoint]:
    return _top_counts([d.department or UNASSIGNED for d in devices], limit)


def multi_device_owners(devices: list[Device], limit: int = 15) -> list[ChartDataPoint]:
    """People who hold more than one device. Service accounts are skipped."""
    owners = [d.owner for d in devices if d.owner and d.owner not in _NON_PERSON_OWNERS]
    return [ChartDataPoint(name=name, value=count) for name, count in Counter(owners).most_common() if count > 1][
        :limit
    ]


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


def activity_timeline(devices: list[Device]) -> list[ChartDataPoint]:
    """Days since last check-in. Devices that never checked in count as 60+."""
    buckets = _buckets(["0-7 days", "8-14 days", "15-30 days", "31-60 days", "60+ days"])
    for device in devices:
        days = device.days_since_update
        if days is None:
            buckets["60+ days"] += 1
        elif days <= 7:
            buckets["0-7 days"] += 1
        elif days <= 14:
            buckets["8-14 days"] += 1
        elif days <= 30:
            buckets["15-30 days"] += 1
        elif days <= 60:
            buckets["31-60 days"] += 1
        else:
            buckets["60+ days"] += 1
    return _as_points(buckets)


def update_compliance(devices: list[Device]) -> list[ChartDataPoint]:
    buckets = _buckets(
        [
            "Updated (0-7 days)",
            "Recent (7-30 days)",
            "Aging (30-60 days)",
            "Stale (60-90 days)",
            "Critical (90+ days)",
        ]
    )
    for device in devices:
        days = device.days_since_update
        if days is None:
            buckets["Critical (90+ days)"] += 1
        elif days <= 7:
            buckets["Updated (0-7 days)"] += 1
        elif days <= 30:
            buckets["Recent (7-30 days)"] += 1
        elif days <= 60:
            buckets["Aging (30-60 days)"] += 1
        elif days <= 90:
            buckets["Stale (60-90 days)"] += 1
        else:
            buckets["Critical (90+ days)"] += 1
    return _as_points(buckets)


# ---------------------------------------------------------------------------
# Replacement planning
# ---------------------------------------------------------------------------


def replacement_timeline(devices: list[Device], now: Optional[datetime] = None) -> list[ChartDataPoint]:
    """Critical devices now, warning devices next fiscal year, good ones later."""
    fy = fiscal_year(now)
    counts = Counter(d.status for d in devices)
    return [
        ChartDataPoint(name=f"FY {fy} (Immediate)", value=counts["critical"]),
        ChartDataPoint(name=f"FY {fy + 1} (Next Year)", value=counts["warning"]),
        ChartDataPoint(name=f"FY {fy + 2}+ (Future)", value=counts["good"]),
    ]


def replacement_cost_projection(
    devices: list[Device],
    unit_cost: int = DEFAULT_REPLACEMENT_UNIT_COST,
    now: Optional[datetime] = None,
) -> list[ReplacementCost]:
    """Budget estimate at a flat per-device replacement cost."""
    fy = fiscal_year(now)
    counts = Counter(d.status for d in devices)
    flagged = sum(1 for d in devices if d.replacement_recommended)
    return [
        ReplacementCost(name=f"FY {fy} (Critical)", cost=counts["critical"] * unit_cost, devices=counts["critical"]),
        ReplacementCost(name=f"FY {fy + 1} (Warning)", cost=counts["warning"] * unit_cost, devices=counts["warning"]),
        ReplacementCost(name="Total Flagged", cost=flagged * unit_cost, devices=flagged),
    ]


# ---------------------------------------------------------------------------
# Vulnerabilities (Qualys)
# ---------------------------------------------------------------------------


def vulnerability_severity_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    scanned = [d for d in devices if d.qualys_agent_id]
    severity5 = sum(d.critical_vuln_count5 or 0 for d in scanned)
    severity4 = sum(d.high_vuln_count or 0 for d in scanned)
    other = sum((d.vulnerability_count or 0) - (d.critical_vuln_count or 0) for d in scanned)
    buckets = {
        "Critical (Severity 5)": severity5,
        "High (Severity 4)": severity4,
        "Medium/Low (1-3)": other,
    }
    return _as_points(buckets, drop_empty=True)


def tru_risk_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    buckets = _buckets(
        [
            "Very High (800+)",
            "High (600-799)",
            "Medium (400-599)",
            "Low (200-399)",
            "Very Low (0-199)",
        ]
    )
    for device in devices:
        score = device.tru_risk_score
        if score is None:
            continue
        if score >= 800:
            buckets["Very High (800+)"] += 1
        elif score >= 600:
            buckets["High (600-799)"] += 1
        elif score >= 400:
            buckets["Medium (400-599)"] += 1
        elif score >= 200:
            buckets["Low (200-399)"] += 1
        else:
            buckets["Very Low (0-199)"] += 1
    return _as_points(buckets, drop_empty=True)


def top_vulnerable_devices(devices: list[Device], limit: int = 10) -> list[VulnerableDevice]:
    vulnerable = [d for d in devices if d.vulnerability_count]
    vulnerable.sort(key=lambda d: d.vulnerability_count, reverse=True)
    return [
        VulnerableDevice(
            name=d.name,
            vulnerabilities=d.vulnerability_count,
            critical=d.critical_vuln_count or 0,
            tru_risk=d.tru_risk_score or 0,
        )
        for d in vulnerable[:limit]
    ]


def qualys_coverage(devices: list[Device]) -> list[ChartDataPoint]:
    covered = sum(1 for d in devices if d.qualys_agent_id)
    rows = [("With Qualys Data", covered), ("Without Qualys Data", len(devices) - covered)]
    return [point for point in _with_percentages(rows, len(devices)) if point.value > 0]


def vulnerability_count_distribution(devices: list[Device]) -> list[ChartDataPoint]:
    buckets = _buckets(
        [
            "No Vulnerabilities",
            "1-5 Vulnerabilities",
            "6-10 Vulnerabilities",
            "11-20 Vulnerabilities",
            "21+ Vulnerabilities",
        ]
    )
    for device in devices:
        count = device.vulnerability_count or 0
        if count == 0:
            buckets["No Vulnerabilities"] += 1
        elif count <= 5:
            buckets["1-5 Vulnerabilities"] += 1
        elif count <= 10:
            buckets["6-10 Vulnerabilities"] += 1
        elif count <= 20:
            buckets["11-20 Vulnerabilities"] += 1
        else:
            buckets["21+ Vulnerabilities"] += 1
    return _as_points(buckets, drop_empty=True)


# ---------------------------------------------------------------------------
# Everything at once
# ---------------------------------------------------------------------------


def build_chart_data(
    devices: list[Device],
    unit_cost: int = DEFAULT_REPLACEMENT_UNIT_COST,
    now: Optional[datetime] = None,
) -> dict[str, list]:
    """Every series keyed by name, for the dashboard charts endpoint."""
    return {
        "status": status_distribution(devices),
        "os_type": os_type_distribution(devices),
        "source": source_distribution(devices),
        "age": age_distribution(devices),
        "top_models": top_models(devices),
        "os_versions": os_version_distribution(devices),
        "departments": department_distribution(devices),
        "multi_device_owners": multi_device_owners(devices),
        "activity": activity_timeline(devices),
        "update_compliance": update_compliance(devices),
        "replacement_timeline": replacement_timeline(devices, now),
        "replacement_cost": replacement_cost_projection(devices, unit_cost, now),
        "vulnerability_severity": vulnerability_severity_distribution(devices),
        "tru_risk": tru_risk_distribution(devices),
        "top_vulnerable_devices": top_vulnerable_devices(devices),
        "qualys_coverage": qualys_coverage(devices),
        "vulnerability_counts": vulnerability_count_distribution(devices),
    }
