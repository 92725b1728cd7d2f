"""Unit tests for cmdb/merge.py -- owner resolution, Qualys join and dedupe.

merge_sources() is pure: CSV text in, RawDevice records out. No store and
no clock are involved.
"""

from datetime import date

from cmdb.ingest import DirectoryUser, QualysRecord
from cmdb.merge import (
    aggregate_qualys,
    build_directory,
    extract_computing_id,
    merge_sources,
    resolve_owner,
    short_hostname,
)

JAMF_CSV = (
    "Computer Name,Serial Number,Model Identifier,Username,Jamf Computer ID\n"
    'CHEM-abc1de-MBP,C02XYZ123,"Mac15,13",abc1de,1\n'
    'LAB-KIOSK-01,C02KIOSK1,"Mac14,2",,2\n'
)

INTUNE_CSV = (
    "Device name,Serial number,Model,Primary user UPN,Primary user display name,Device ID\n"
    "ENG-xyz9ab-LT,PF3ABC,21HK003MUS,xyz9ab@example.edu,Grace Hopper,dev-1\n"
    "DUP-abc1de-MBP,C02XYZ123,Surface Pro 9,,,dev-2\n"
)

USERS_CSV = "Computing ID,Name,Email,Department\nabc1de,Ada Lovelace,ada@example.edu,Chemistry\n"

COREVIEW_CSV = "UserPrincipalName,DisplayName,Department\nxyz9ab@example.edu,Grace Hopper,Engineering\n"

QUALYS_CSV = (
    "Agent ID,Asset Name,Serial Number,TruRisk Score,Title,CVE ID,Severity\n"
    "a-1,CHEM-abc1de-MBP,C02XYZ123,300,OpenSSL,CVE-2024-0001,4\n"
    "a-1,CHEM-abc1de-MBP,C02XYZ123,520,Kernel,CVE-2024-0002,5\n"
    "a-2,eng-xyz9ab-lt,,100,Browser,CVE-2024-0003,3\n"
)


def _blobs(**overrides) -> dict[str, str]:
    blobs = {"jamf": JAMF_CSV, "intune": INTUNE_CSV, "users": USERS_CSV, "coreview": COREVIEW_CSV}
    blobs.update(overrides)
    return blobs


def _by_name(devices):
    return {d.name: d for d in devices}


class TestComputingId:
    def test_middle_token(self):
        assert extract_computing_id("CHEM-abc1de-MBP") == "abc1de"

    def test_extra_tokens_still_use_second(self):
        assert extract_computing_id("ENG-xyz9ab-LT-2") == "xyz9ab"

    def test_too_few_tokens(self):
        assert extract_computing_id("KIOSK-01") is None
        assert extract_computing_id("") is None
        assert extract_computing_id(None) is None


class TestResolveOwner:
    def _directory(self):
        return build_directory(
            [DirectoryUser("abc1de", "Ada Lovelace", "ada@example.edu", "Chemistry")],
            [DirectoryUser("xyz9ab", "Grace Hopper", "xyz9ab@example.edu", "Engineering")],
        )

    def test_name_derived_owner(self):
        match = resolve_owner("CHEM-abc1de-MBP", self._directory(), mdm_user="abc1de")
        assert match.owner == "Ada Lovelace"
        assert match.email == "ada@example.edu"
        assert match.department == "Chemistry"
        assert match.additional_owner is None

    def test_different_mdm_user_becomes_additional_owner(self):
        match = resolve_owner("CHEM-abc1de-MBP", self._directory(), mdm_user="zz9zz", mdm_display_name="Zed")
        assert match.owner == "Ada Lovelace"
        assert match.additional_owner == "Zed"

    def test_mdm_user_looked_up_in_directory(self):
        match = resolve_owner("LAB-KIOSK-01", self._directory(), mdm_email="xyz9ab@example.edu")
        assert match.owner == "Grace Hopper"
        assert match.department == "Engineering"

    def test_unknown_mdm_user_is_kept_verbatim(self):
        match = resolve_owner("LAB-KIOSK-01", self._directory(), mdm_user="visitor")
        assert match.owner == "visitor"

    def test_nobody_is_unassigned(self):
        assert resolve_owner("LAB-KIOSK-01", self._directory()).owner == "Unassigned"

    def test_directory_lookup_is_case_insensitive(self):
        assert resolve_owner("CHEM-ABC1DE-MBP", self._directory()).owner == "Ada Lovelace"

    def test_users_export_wins_over_coreview(self):
        directory = build_directory(
            [DirectoryUser("abc1de", "Ada Lovelace", None, None)],
            [DirectoryUser("abc1de", "A. Lovelace", "ada@example.edu", "Chemistry")],
        )
        assert directory["abc1de"].name == "Ada Lovelace"
        assert directory["abc1de"].email == "ada@example.edu"


class TestAggregateQualys:
    def test_rows_collapse_per_asset(self):
        records = [
            QualysRecord(agent_id="a-1", tru_risk_score=300, title="x", severity=4),
            QualysRecord(agent_id="a-1", tru_risk_score=520, title="y", severity=5),
            QualysRecord(agent_id="a-1"),
        ]
        assets = aggregate_qualys(records)
        assert len(assets) == 1
        assert assets[0].tru_risk_score == 520
        assert len(assets[0].vulnerabilities) == 2

    def test_blank_agent_id_rows_join_the_same_asset(self):
        records = [
            QualysRecord(agent_id="A1", hostname="host1", serial_number="SER1", title="Vuln one", severity=4),
            QualysRecord(hostname="host1", serial_number="SER1", title="Vuln two", severity=3),
        ]
        assets = aggregate_qualys(records)
        assert len(assets) == 1
        assert assets[0].agent_id == "A1"
        assert [v.title for v in assets[0].vulnerabilities] == ["Vuln one", "Vuln two"]

    def test_row_linking_two_assets_folds_them(self):
        records = [
            QualysRecord(serial_number="SER1", tru_risk_score=100, title="a", severity=2),
            QualysRecord(agent_id="A1", tru_risk_score=700, title="b", severity=5),
            QualysRecord(agent_id="A1", serial_number="SER1", title="c", severity=3),
        ]
        assets = aggregate_qualys(records)
        assert len(assets) == 1
        assert assets[0].agent_id == "A1"
        assert assets[0].serial_number == "SER1"
        assert assets[0].tru_risk_score == 700
        assert sorted(v.title for v in assets[0].vulnerabilities) == ["a", "b", "c"]

    def test_distinct_machines_stay_apart(self):
        records = [
            QualysRecord(agent_id="A1", serial_number="SER1"),
            QualysRecord(agent_id="A2", serial_number="SER2"),
        ]
        assert len(aggregate_qualys(records)) == 2


class TestShortHostname:
    def test_first_label(self):
        assert short_hostname("CHEM-abc1de-MBP.chem.example.edu") == "chem-abc1de-mbp"

    def test_bare_name(self):
        assert short_hostname(" LAB-KIOSK-01 ") == "lab-kiosk-01"

    def test_ip_address_kept_whole(self):
        assert short_hostname("10.0.4.17") == "10.0.4.17"

    def test_empty(self):
        assert short_hostname("") is None
        assert short_hostname(None) is None


class TestMergeSources:
    def test_sources_map_to_os_types(self):
        devices = _by_name(merge_sources(_blobs()))
        assert devices["CHEM-abc1de-MBP"].source == "jamf"
        assert devices["CHEM-abc1de-MBP"].os_type == "macOS"
        assert devices["CHEM-abc1de-MBP"].manufacturer == "Apple"
        assert devices["ENG-xyz9ab-LT"].os_type == "Windows"

    def test_duplicate_serial_keeps_jamf_record(self):
        devices = merge_sources(_blobs())
        assert "DUP-abc1de-MBP" not in _by_name(devices)
        assert len(devices) == 3

    def test_owners_resolved_across_both_directories(self):
        devices = _by_name(merge_sources(_blobs()))
        assert devices["CHEM-abc1de-MBP"].owner == "Ada Lovelace"
        assert devices["ENG-xyz9ab-LT"].owner == "Grace Hopper"
        assert devices["ENG-xyz9ab-LT"].department == "Engineering"
        assert devices["LAB-KIOSK-01"].owner == "Unassigned"

    def test_qualys_joined_by_serial_then_hostname(self):
        devices = _by_name(merge_sources(_blobs(qualys=QUALYS_CSV)))
        mac = devices["CHEM-abc1de-MBP"]
        assert mac.qualys_agent_id == "a-1"
        assert mac.tru_risk_score == 520
        assert len(mac.vulnerabilities) == 2

        laptop = devices["ENG-xyz9ab-LT"]
        assert laptop.qualys_agent_id == "a-2"
        assert laptop.vulnerabilities[0].cve_id == "CVE-2024-0003"

        assert devices["LAB-KIOSK-01"].vulnerabilities is None

    def test_qualys_rows_missing_agent_id_keep_all_findings(self):
        qualys = (
            "Agent ID,Asset Name,Serial Number,Title,Severity\n"
            "A1,host1,C02KIOSK1,Vuln one,4\n"
            ",host1,C02KIOSK1,Vuln two,3\n"
        )
        kiosk = _by_name(merge_sources(_blobs(qualys=qualys)))["LAB-KIOSK-01"]
        assert kiosk.qualys_agent_id == "A1"
        assert [v.title for v in kiosk.vulnerabilities] == ["Vuln one", "Vuln two"]

    def test_qualys_fqdn_joins_on_first_label(self):
        qualys = "Agent ID,DNS Name,Title,Severity\nA9,lab-kiosk-01.chem.example.edu,Vuln,2\n"
        # The kiosk has a serial, but Qualys did not report one.
        kiosk = _by_name(merge_sources(_blobs(qualys=qualys)))["LAB-KIOSK-01"]
        assert kiosk.qualys_agent_id == "A9"

    def test_intune_enrollment_date_carried(self):
        intune = "Device name,Serial number,Model,Device ID,Enrollment date\nPC-1,S-PC1,Widget-9000,dev-9,2022-03-15\n"
        device = merge_sources({"intune": intune})[0]
        assert device.enrollment_date == date(2022, 3, 15)
        assert device.purchase_date is None

    def test_retired_by_serial_or_id(self):
        devices = _by_name(merge_sources(_blobs(), retired_ids={"c02xyz123", "intune-dev-1"}))
        assert devices["CHEM-abc1de-MBP"].is_retired
        assert devices["ENG-xyz9ab-LT"].is_retired
        assert not devices["LAB-KIOSK-01"].is_retired

    def test_ids_are_source_prefixed(self):
        ids = {d.id for d in merge_sources(_blobs())}
        assert ids == {"jamf-1", "jamf-2", "intune-dev-1"}

    def test_no_blobs_no_devices(self):
        assert merge_sources({}) == []
