"""Unit tests for core/fetcher.py -- endoflife.date policy refresh.

The HTTP session is patched with MagicMock so no request leaves the process.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import requests

from core.fetcher import family_policy_from_cycles, fetch_os_policy, fetch_release_cycles
from core.os_policy import DEFAULT_POLICY, OsFamilyPolicy

TODAY = date(2026, 6, 1)

MACOS_CYCLES = [
    {"cycle": "26", "eol": False, "latest": "26.0"},
    {"cycle": "15", "eol": False, "latest": "15.5"},
    {"cycle": "14", "eol": "2026-09-30", "latest": "14.7.6"},
    {"cycle": "13", "eol": "2025-09-15", "latest": "13.7.6"},
]

WINDOWS_CYCLES = [
    {"cycle": "11-24h2-e", "eol": "2027-10-12", "latest": "10.0.26100"},
    {"cycle": "11-23h2-w", "eol": "2026-11-10", "latest": "10.0.22631"},
    {"cycle": "10-21h2-iot-lts", "eol": "2032-01-13", "latest": "10.0.19044", "lts": True},
    {"cycle": "11-22h2-w", "eol": "2025-10-14", "latest": "10.0.22621"},
]


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class TestFamilyPolicyFromCycles:
    def test_macos_thresholds(self):
        policy = family_policy_from_cycles("macOS", MACOS_CYCLES, TODAY)
        assert policy == OsFamilyPolicy(min_supported="14", min_current="15")

    def test_windows_uses_build_and_skips_lts(self):
        policy = family_policy_from_cycles("Windows", WINDOWS_CYCLES, TODAY)
        assert policy == OsFamilyPolicy(min_supported="10.0.22631", min_current="10.0.22631")

    def test_single_supported_release(self):
        policy = family_policy_from_cycles("macOS", [{"cycle": "15", "eol": False}], TODAY)
        assert policy == OsFamilyPolicy(min_supported="15", min_current="15")

    def test_nothing_supported_returns_none(self):
        assert family_policy_from_cycles("macOS", [{"cycle": "12", "eol": True}], TODAY) is None
        assert family_policy_from_cycles("macOS", [], TODAY) is None

    def test_malformed_entries_are_ignored(self):
        cycles = ["junk", {"cycle": "15", "eol": "not-a-date"}, {"cycle": "14", "eol": False}]
        assert family_policy_from_cycles("macOS", cycles, TODAY).min_supported == "14"


class TestFetch:
    def test_fetch_release_cycles_returns_list(self):
        with patch("core.fetcher._session") as session:
            session.get.return_value = _response(MACOS_CYCLES)
            assert fetch_release_cycles("macos") == MACOS_CYCLES
        assert "macos.json" in session.get.call_args[0][0]

    def test_network_error_returns_none(self):
        with patch("core.fetcher._session") as session:
            session.get.side_effect = requests.ConnectionError("offline")
            assert fetch_release_cycles("macos") is None

    def test_unexpected_payload_returns_none(self):
        with patch("core.fetcher._session") as session:
            session.get.return_value = _response({"error": "nope"})
            assert fetch_release_cycles("windows") is None

    def test_fetch_os_policy_refreshes_each_family(self):
        payloads = {"macos": MACOS_CYCLES, "windows": WINDOWS_CYCLES}
        with patch("core.fetcher.fetch_release_cycles", side_effect=lambda product: payloads[product]):
            policy = fetch_os_policy(DEFAULT_POLICY, TODAY)
        assert policy.families["macOS"].min_current == "15"
        assert policy.families["Windows"].min_supported == "10.0.22631"

    def test_fetch_os_policy_keeps_fallback_on_failure(self):
        with patch("core.fetcher.fetch_release_cycles", return_value=None):
            policy = fetch_os_policy(DEFAULT_POLICY, TODAY)
        assert policy == DEFAULT_POLICY
