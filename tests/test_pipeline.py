"""Unit tests for core/pipeline.py -- build_device and build_devices.

No I/O: every test passes a fixed `now` and an explicit OS policy so results
never depend on the wall clock or on settings.
"""

from datetime import date, datetime, timedelta, timezone

from core.models import RawDevice, Vulnerability
from core.os_policy import OsFamilyPolicy, OsPolicy
from core.pipeline import build_device, build_devices

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)

POLICY = OsPolicy(
    families={
        "macOS": OsFamilyPolicy(min_supported="14", min_current="15"),
        "Windows": OsFamilyPolicy(min_supported="10.0.22631", min_current="10.0.26100"),
    }
)


def _make_raw(**overrides) -> RawDevice:
    fields = dict(
        id="jamf-42",
        name="CHEM-abc1de-MBP",
        source="jamf",
        model="Mac15,13",  # released 2024 -> 2.0 years at NOW
        os_type="macOS",
        owner="Ada Lovelace",
        os_version="15.1",
        last_seen=NOW - timedelta(days=2),
    )
    fields.update(overrides)
    return RawDevice(**fields)


class TestAgeAndValue:
    def test_age_from_model(self):
        device = build_device(_make_raw(), POLICY, NOW)
        assert device.age_in_years == 2.0
        assert device.age_source == "model"
        assert device.model_name == 'MacBook Air 15" (M3, 2024)'
        assert device.msrp == 1299
        assert device.current_value == 831

    def test_purchase_date_wins_over_model(self):
        device = build_device(_make_raw(purchase_date=date(2025, 6, 1)), POLICY, NOW)
        assert device.age_in_years == 1.0
        assert device.age_source == "purchase_date"

    def test_enrollment_date_when_model_year_unknown(self):
        raw = _make_raw(model="HP EliteBook", enrollment_date=date(2024, 6, 1))
        device = build_device(raw, POLICY, NOW)
        assert device.age_in_years == 2.0
        assert device.age_source == "enrollment_date"
        assert device.status == "warning"

    def test_model_year_wins_over_enrollment_date(self):
        device = build_device(_make_raw(enrollment_date=date(2020, 1, 1)), POLICY, NOW)
        assert device.age_source == "model"
        assert device.age_in_years == 2.0

    def test_unknown_age_is_reported_as_unknown(self):
        device = build_device(_make_raw(model="HP EliteBook", os_version=None), POLICY, NOW)
        assert device.age_source == "unknown"
        assert device.age_in_years == 0.0
        assert device.status == "unknown"
        assert device.replacement_recommended is False

    def test_manufacturer_falls_back_to_model(self):
        raw = _make_raw(source="intune", os_type="Windows", model="21HK003MUS", manufacturer=None)
        assert build_device(raw, POLICY, NOW).manufacturer == "Lenovo"


class TestClassification:
    def test_two_year_old_device_is_warning(self):
        device = build_device(_make_raw(), POLICY, NOW)
        assert device.status == "warning"
        assert device.os_currency == "current"
        assert device.days_since_update == 2
        assert device.activity_status == "active"

    def test_os_currency_is_assessed_against_policy(self):
        device = build_device(_make_raw(purchase_date=date(2026, 1, 1), os_version="13.6"), POLICY, NOW)
        assert device.os_currency == "unsupported"
        assert device.status == "critical"

    def test_without_policy_os_currency_stays_unknown(self):
        assert build_device(_make_raw(), None, NOW).os_currency == "unknown"

    def test_last_update_date_preferred_over_last_seen(self):
        raw = _make_raw(last_seen=NOW - timedelta(days=1), last_update_date=NOW - timedelta(days=40))
        device = build_device(raw, POLICY, NOW)
        assert device.days_since_update == 40
        assert device.status == "inactive"

    def test_never_seen_is_inactive(self):
        device = build_device(_make_raw(last_seen=None), POLICY, NOW)
        assert device.status == "inactive"
        assert device.days_since_update is None

    def test_replacement_window(self):
        device = build_device(_make_raw(model="MacBookPro18,1"), POLICY, NOW)  # 2021 -> 5.0 years
        assert device.status == "critical"
        assert device.replacement_recommended is True
        assert "5.0 years old" in device.replacement_reason


class TestVulnerabilities:
    def test_counts_and_top_cves(self):
        vulns = [
            Vulnerability("OpenSSL", 3, "CVE-2024-0001"),
            Vulnerability("Kernel", 5, "CVE-2024-0002"),
            Vulnerability("Browser", 4, "CVE-2024-0003"),
            Vulnerability("Kernel again", 5, "CVE-2024-0002"),
            Vulnerability("No CVE", 2),
        ]
        device = build_device(_make_raw(vulnerabilities=vulns, qualys_agent_id="a1"), POLICY, NOW)
        assert device.vulnerability_count == 5
        assert device.critical_vuln_count == 3
        assert device.critical_vuln_count5 == 2
        assert device.high_vuln_count == 1
        assert device.top_cves == ["CVE-2024-0002", "CVE-2024-0003", "CVE-2024-0001"]

    def test_no_scanner_data_leaves_counts_unset(self):
        device = build_device(_make_raw(), POLICY, NOW)
        assert device.vulnerability_count is None
        assert device.top_cves == []


class TestDeterminism:
    def test_same_input_same_output(self):
        raw = _make_raw()
        assert build_device(raw, POLICY, NOW) == build_device(raw, POLICY, NOW)

    def test_build_devices_preserves_order(self):
        raws = [_make_raw(id="a"), _make_raw(id="b")]
        assert [d.id for d in build_devices(raws, POLICY, NOW)] == ["a", "b"]
