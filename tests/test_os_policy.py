"""
tests/test_os_policy.py -- Unit tests for core/os_policy.py.
"""

from core.os_policy import DEFAULT_POLICY, OsFamilyPolicy, OsPolicy, assess_os_currency, parse_version

POLICY = OsPolicy(
    families={
        "macOS": OsFamilyPolicy(min_supported="14", min_current="15"),
        "Windows": OsFamilyPolicy(min_supported="10.0.22631", min_current="10.0.26100"),
    }
)


class TestParseVersion:
    def test_dotted_versions(self):
        assert parse_version("14.6.1") == (14, 6, 1)
        assert parse_version("10.0.22631.4037") == (10, 0, 22631, 4037)

    def test_vendor_decoration_is_ignored(self):
        assert parse_version("macOS 14.5 (23F79)") == (14, 5)

    def test_no_digits(self):
        assert parse_version("Sonoma") is None
        assert parse_version("") is None
        assert parse_version(None) is None


class TestAssessOsCurrency:
    def test_macos(self):
        assert assess_os_currency("macOS", "15.1", POLICY) == "current"
        assert assess_os_currency("macOS", "14.7.2", POLICY) == "aging"
        assert assess_os_currency("macOS", "13.6", POLICY) == "unsupported"

    def test_boundary_is_inclusive(self):
        assert assess_os_currency("macOS", "14", POLICY) == "aging"
        assert assess_os_currency("macOS", "15.0", POLICY) == "current"

    def test_windows_builds(self):
        assert assess_os_currency("Windows", "10.0.26100.2314", POLICY) == "current"
        assert assess_os_currency("Windows", "10.0.22631.4037", POLICY) == "aging"
        assert assess_os_currency("Windows", "10.0.19045.5011", POLICY) == "unsupported"

    def test_unknown_inputs(self):
        assert assess_os_currency("Linux", "6.8", POLICY) == "unknown"
        assert assess_os_currency("macOS", None, POLICY) == "unknown"
        assert assess_os_currency(None, "14.0", POLICY) == "unknown"

    def test_unparseable_threshold_is_unknown(self):
        broken = OsPolicy(families={"macOS": OsFamilyPolicy(min_supported="n/a", min_current="15")})
        assert assess_os_currency("macOS", "15.1", broken) == "unknown"

    def test_default_policy_covers_both_families(self):
        assert set(DEFAULT_POLICY.families) == {"macOS", "Windows"}
