"""
formatter.py -- Renders classified devices and fleet summaries for the CLI.

Terminal output uses ANSI colors when stdout is a TTY; JSON, CSV and Markdown
exports are plain text suitable for files, tickets and spreadsheets.
"""

import csv
import io
import json
import os
import re
import sys
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional

from .models import Device, DeviceSummary

W = 96  # output width

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from a string."""
    return _ANSI_RE.sub("", text)


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def enable_color() -> None:
    global _color_enabled
    _color_enabled = True


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


STATUS_COLORS = {
    "critical": "\033[91m",  # red
    "warning": "\033[93m",  # yellow
    "good": "\033[92m",  # green
    "inactive": "\033[90m",  # grey
    "unknown": "\033[94m",  # blue
}


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _status_color(status: str) -> str:
    return STATUS_COLORS.get(status, "") if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    return f"\n  {_bold()}{title}{_reset()}\n  {'─' * (W - 2)}"


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _days(days: Optional[int]) -> str:
    return "never" if days is None else f"{days}d"


# ---------------------------------------------------------------------------
# Terminal renderers
# ---------------------------------------------------------------------------


def print_summary(summary: DeviceSummary) -> None:
    """Print the fleet summary block."""
    bold = _bold()
    reset = _reset()

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {bold}FLEET SUMMARY -- {summary.total_devices} devices{reset}")
    print(f"{bold}{_bar()}{reset}")

    print(_section("HEALTH"))
    for status, count in (
        ("critical", summary.critical_count),
        ("warning", summary.warning_count),
        ("good", summary.good_count),
        ("inactive", summary.inactive_count),
        ("unknown", summary.unknown_count),
    ):
        print(f"    {_status_color(status)}{status.capitalize():<12}{reset}{count:>6}")

    print(_section("LIFECYCLE"))
    print(f"    {'Active (30 days)':<26}{summary.active_devices:>6}")
    print(f"    {'Out of date':<26}{summary.out_of_date_devices:>6}")
    print(f"    {'Replacement recommended':<26}{summary.devices_needing_replacement:>6}")
    print(f"    {'Average age (years)':<26}{summary.average_age:>6}")
    print(f"    {'Total MSRP':<26}{_money(summary.total_msrp):>12}")
    print(f"    {'Estimated current value':<26}{_money(summary.total_current_value):>12}")

    if summary.devices_with_qualys_data is not None:
        print(_section("VULNERABILITIES (QUALYS)"))
        print(f"    {'Devices scanned':<26}{summary.devices_with_qualys_data:>6}")
        print(f"    {'Total vulnerabilities':<26}{summary.total_vulnerabilities:>6}")
        print(f"    {'Critical (severity 4-5)':<26}{summary.critical_vulnerabilities:>6}")
        risk = summary.average_tru_risk_score if summary.average_tru_risk_score is not None else "N/A"
        print(f"    {'Average TruRisk':<26}{risk:>6}")

    print(f"\n{_bar()}\n")


def print_devices(devices: list[Device], title: str = "DEVICES") -> None:
    """Print a device table, one line per device."""
    bold = _bold()
    reset = _reset()

    print(_section(f"{title} ({len(devices)})"))
    print(f"  {bold}{'Status':<10}{'Name':<24}{'Model':<30}{'Owner':<18}{'Age':>5}{'Seen':>7}{reset}")
    for d in devices:
        color = _status_color(d.status)
        age = f"{d.age_in_years:.1f}" if d.age_source != "unknown" else "?"
        print(
            f"  {color}{d.status:<10}{reset}{d.name[:23]:<24}{d.model_name[:29]:<30}"
            f"{d.owner[:17]:<18}{age:>5}{_days(d.days_since_update):>7}"
        )
        for reason in d.status_reasons:
            print(f"  {'':<10}- {reason}")
    print()


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(devices: list[Device], summary: Optional[DeviceSummary] = None) -> str:
    payload: dict[str, Any] = {"devices": [asdict(d) for d in devices]}
    if summary is not None:
        payload["summary"] = asdict(summary)
    return json.dumps(payload, indent=2, default=_json_default)


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

# Spreadsheet apps treat cells starting with these as formulas (CWE-1236).
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _sanitize_csv_cell(value: Any) -> Any:
    """Prefix formula-looking text with a tab so spreadsheets treat it as text.

    Device names, owners and departments come from uploaded exports, so any
    of them can carry a payload like =HYPERLINK(...). Non-strings pass through.
    """
    if isinstance(value, str) and value.startswith(_FORMULA_PREFIXES):
        return "\t" + value
    return value


CSV_HEADERS = [
    "id",
    "name",
    "status",
    "activity_status",
    "source",
    "model",
    "model_name",
    "os_type",
    "os_version",
    "os_currency",
    "owner",
    "owner_email",
    "department",
    "serial_number",
    "age_in_years",
    "days_since_update",
    "replacement_recommended",
    "msrp",
    "current_value",
    "vulnerability_count",
    "tru_risk_score",
    "status_reasons",
]


def to_csv(devices: list[Device]) -> str:
    """Render devices as CSV, one row per device. Reasons are joined with "; "."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)

    for d in devices:
        row = [
            d.id,
            d.name,
            d.status,
            d.activity_status,
            d.source,
            d.model,
            d.model_name,
            d.os_type,
            d.os_version or "",
            d.os_currency,
            d.owner,
            d.owner_email or "",
            d.department or "",
            d.serial_number or "",
            d.age_in_years,
            d.days_since_update if d.days_since_update is not None else "",
            d.replacement_recommended,
            d.msrp,
            d.current_value,
            d.vulnerability_count if d.vulnerability_count is not None else "",
            d.tru_risk_score if d.tru_risk_score is not None else "",
            "; ".join(d.status_reasons),
        ]
        writer.writerow([_sanitize_csv_cell(cell) for cell in row])

    return buf.getvalue()


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def _md(text: Optional[str]) -> str:
    # Escape pipes so free text cannot break the table layout.
    return (text or "-").replace("|", "\\|")


def to_markdown(devices: list[Device]) -> str:
    """Render devices as a Markdown table for tickets and docs."""
    lines = [
        "| Status | Name | Model | Owner | Age | Last Seen | Replace |",
        "|--------|------|-------|-------|-----|-----------|---------|",
    ]
    for d in devices:
        age = f"{d.age_in_years:.1f}" if d.age_source != "unknown" else "?"
        replace = "Yes" if d.replacement_recommended else "No"
        lines.append(
            f"| {d.status} | {_md(d.name)} | {_md(d.model_name)} | {_md(d.owner)} | {age} "
            f"| {_days(d.days_since_update)} | {replace} |"
        )
    return "\n".join(lines) + "\n"
