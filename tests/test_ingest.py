"""
tests/test_ingest.py -- Unit tests for cmdb/ingest.py parser functions.

All five parsers are tested here: parse_jamf_csv, parse_intune_csv,
parse_qualys_csv, parse_users_csv and parse_coreview_csv, plus the shared
date parser. These are pure functions (no I/O, no DB) so no fixtures or
mocking are needed -- call them directly with inline CSV text.

Coverage: header aliases, missing identity, malformed cells, and the
spreadsheet BOM.
"""

from datetime import date, datetime, timezone

import pytest

from cmdb.ingest import (
    parse_coreview_csv,
    parse_date,
    parse_datetime,
    parse_intune_csv,
    parse_jamf_csv,
    parse_qualys_csv,
    parse_users_csv,
)

# ===========================================================================
# Dates
# ===========================================================================


class TestParseDatetime:
    def test_iso_with_zulu_offset(self):
        assert parse_datetime("2026-05-30T12:00:00Z") == datetime(2026, 5, 30, 12, tzinfo=timezone.utc)

    def test_naive_values_are_utc(self):
        assert parse_datetime("2026-05-30 08:15:00").tzinfo == timezone.utc

    def test_us_formats(self):
        assert parse_datetime("05/30/2026") == datetime(2026, 5, 30, tzinfo=timezone.utc)
        assert parse_datetime("05/30/2026 01:30:00 PM") == datetime(2026, 5, 30, 13, 30, tzinfo=timezone.utc)

    def test_blank_and_garbage_return_none(self):
        assert parse_datetime("") is None
        assert parse_datetime(None) is None
        assert parse_datetime("next tuesday") is None

    def test_parse_date_drops_time(self):
        assert parse_date("2024-09-01 10:00:00") == date(2024, 9, 1)


# ===========================================================================
# Jamf
# ===========================================================================


class TestParseJamfCsv:
    def test_default_columns(self):
        content = (
            "Computer Name,Serial Number,Model Identifier,Operating System Version,"
            "Last Check-in,Username,Full Name,Total RAM MB,Purchase Date,Jamf Computer ID\n"
            "CHEM-abc1de-MBP,C02XYZ123,\"Mac15,13\",15.1,2026-05-30 09:00:00,abc1de,Ada Lovelace,16384,2024-09-01,77\n"
        )
        records = parse_jamf_csv(content)
        assert len(records) == 1
        r = records[0]
        assert r.name == "CHEM-abc1de-MBP"
        assert r.serial_number == "C02XYZ123"
        assert r.os_version == "15.1"
        assert r.last_check_in == datetime(2026, 5, 30, 9, tzinfo=timezone.utc)
        assert r.ram == "16 GB"
        assert r.purchase_date == date(2024, 9, 1)
        assert r.jamf_id == "77"

    def test_headers_are_case_insensitive_and_aliased(self):
        content = "name,SERIAL,model,os version\nLAB-01,S1,\"MacBookPro18,1\",14.6\n"
        r = parse_jamf_csv(content)[0]
        assert r.name == "LAB-01"
        assert r.serial_number == "S1"
        assert r.os_version == "14.6"

    def test_quoted_model_identifier_with_comma(self):
        content = 'Computer Name,Model Identifier\nLAB-01,"Mac15,13"\n'
        assert parse_jamf_csv(content)[0].model == "Mac15,13"

    def test_row_without_name_or_serial_is_skipped(self):
        content = "Computer Name,Serial Number,Username\n,,someone\n"
        assert parse_jamf_csv(content) == []

    def test_serial_stands_in_for_missing_name(self):
        content = "Computer Name,Serial Number\n,C02XYZ123\n"
        assert parse_jamf_csv(content)[0].name == "C02XYZ123"

    def test_bom_does_not_corrupt_first_header(self):
        content = "\ufeffComputer Name,Serial Number\nLAB-01,S1\n"
        assert parse_jamf_csv(content)[0].name == "LAB-01"

    def test_empty_content(self):
        assert parse_jamf_csv("") == []

    @pytest.mark.parametrize("cell", ["1e400", "inf", "Infinity", "-inf", "NaN"])
    def test_non_finite_ram_is_kept_as_text(self, cell):
        content = f"Computer Name,Serial Number,Total RAM MB\nLAB-abc-MBP,C02X,{cell}\n"
        record = parse_jamf_csv(content)[0]
        assert record.name == "LAB-abc-MBP"
        assert record.ram == cell


# ===========================================================================
# Intune
# ===========================================================================


class TestParseIntuneCsv:
    def test_default_columns(self):
        content = (
            "Device name,Serial number,Model,Manufacturer,OS version,Last check-in,"
            "Primary user UPN,Primary user display name,Device ID\n"
            "ENG-xyz9ab-LT,PF3ABC,21HK003MUS,LENOVO,10.0.26100.1742,2026-05-29T17:00:00Z,"
            "xyz9ab@example.edu,Grace Hopper,dev-123\n"
        )
        r = parse_intune_csv(content)[0]
        assert r.name == "ENG-xyz9ab-LT"
        assert r.model == "21HK003MUS"
        assert r.manufacturer == "LENOVO"
        assert r.user_upn == "xyz9ab@example.edu"
        assert r.user_display_name == "Grace Hopper"
        assert r.device_id == "dev-123"
        assert r.last_check_in == datetime(2026, 5, 29, 17, tzinfo=timezone.utc)

    def test_device_id_alone_is_enough_identity(self):
        content = "Device name,Serial number,Device ID\n,,dev-9\n"
        assert parse_intune_csv(content)[0].name == "dev-9"

    def test_row_with_no_identity_is_skipped(self):
        content = "Device name,Serial number,Model\n,,Surface Pro 9\n"
        assert parse_intune_csv(content) == []


# ===========================================================================
# Qualys
# ===========================================================================


class TestParseQualysCsv:
    def test_finding_row(self):
        content = (
            "Agent ID,Asset Name,Serial Number,TruRisk Score,Title,CVE ID,Severity,Last Scan\n"
            'a-1,LAB-01,S1,640,OpenSSL flaw,"cve-2024-0001, CVE-2024-0002",5,2026-05-20\n'
        )
        r = parse_qualys_csv(content)[0]
        assert r.agent_id == "a-1"
        assert r.hostname == "LAB-01"
        assert r.tru_risk_score == 640
        assert r.cve_id == "CVE-2024-0001"
        assert r.severity == 5
        assert r.last_scan == datetime(2026, 5, 20, tzinfo=timezone.utc)

    def test_out_of_range_severity_is_dropped(self):
        content = "Agent ID,Title,Severity\na-1,Weird,7\n"
        assert parse_qualys_csv(content)[0].severity is None

    def test_tru_risk_is_clamped(self):
        content = "Agent ID,TruRisk Score\na-1,1200\na-2,-5\n"
        assert [r.tru_risk_score for r in parse_qualys_csv(content)] == [1000, 0]

    def test_asset_only_row_has_no_finding(self):
        content = "Hostname,IP Address\nLAB-01,10.0.0.5\n"
        r = parse_qualys_csv(content)[0]
        assert r.title is None
        assert r.cve_id is None
        assert r.ip_address == "10.0.0.5"

    def test_row_without_identity_is_skipped(self):
        assert parse_qualys_csv("Title,Severity\nSomething,3\n") == []

    @pytest.mark.parametrize("cell", ["inf", "1e400", "NaN"])
    def test_non_finite_numbers_are_dropped(self, cell):
        content = f"Agent ID,Hostname,TruRisk Score,Title,Severity\nA1,host1,{cell},Vuln,{cell}\nA2,host2,300,Vuln,3\n"
        records = parse_qualys_csv(content)
        assert [r.tru_risk_score for r in records] == [None, 300]
        assert records[0].severity is None


# ===========================================================================
# Directories
# ===========================================================================


class TestParseUsersCsv:
    def test_computing_id_column(self):
        content = "Computing ID,Name,Email,Department\nabc1de,Ada Lovelace,ada@example.edu,Chemistry\n"
        u = parse_users_csv(content)[0]
        assert u.computing_id == "abc1de"
        assert u.name == "Ada Lovelace"
        assert u.department == "Chemistry"

    def test_falls_back_to_email_local_part_and_split_name(self):
        content = "First Name,Last Name,Email\nGrace,Hopper,xyz9ab@example.edu\n"
        u = parse_users_csv(content)[0]
        assert u.computing_id == "xyz9ab"
        assert u.name == "Grace Hopper"

    def test_row_without_id_or_email_is_skipped(self):
        assert parse_users_csv("Name,Department\nNobody,Physics\n") == []


class TestParseCoreviewCsv:
    def test_upn_local_part_is_computing_id(self):
        content = "UserPrincipalName,DisplayName,Department\nabc1de@example.edu,Ada Lovelace,Chemistry\n"
        u = parse_coreview_csv(content)[0]
        assert u.computing_id == "abc1de"
        assert u.email == "abc1de@example.edu"
        assert u.name == "Ada Lovelace"

    def test_mail_column_wins_over_upn(self):
        content = "UserPrincipalName,Mail\nabc1de@example.edu,ada.lovelace@example.edu\n"
        assert parse_coreview_csv(content)[0].email == "ada.lovelace@example.edu"
