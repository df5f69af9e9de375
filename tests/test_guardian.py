"""Tests for the request gate."""

import pytest

from hydration_kit.safety.guardian import SafetyGuardian, SafetyViolation

V1 = "https://graph.microsoft.com/v1.0"
BETA = "https://graph.microsoft.com/beta"


class TestLiveMode:
    def test_reads_always_allowed(self):
        guardian = SafetyGuardian()
        assert guardian.validate_request("GET", f"{V1}/users?$top=1")
        assert guardian.checks_performed == 1
        assert guardian.violations == []

    @pytest.mark.parametrize("url", [
        f"{V1}/groups",
        f"{V1}/groups/abc",
        f"{V1}/identity/conditionalAccess/policies",
        f"{BETA}/deviceManagement/assignmentFilters",
        f"{BETA}/deviceManagement/configurationPolicies/abc",
        f"{BETA}/deviceManagement/notificationMessageTemplates/abc/localizedNotificationMessages",
        f"{BETA}/deviceAppManagement/androidManagedAppProtections/abc/targetApps",
    ])
    def test_managed_collections_accept_creates(self, url):
        guardian = SafetyGuardian()
        assert guardian.validate_request("POST", url, {})
        assert guardian.writes_allowed == 1

    def test_delete_allowed_on_managed_object(self):
        assert SafetyGuardian().validate_request("DELETE", f"{BETA}/deviceManagement/deviceCompliancePolicies/abc")

    @pytest.mark.parametrize("method", ["PATCH", "PUT"])
    def test_updates_never_allowed(self, method):
        guardian = SafetyGuardian()

        with pytest.raises(SafetyViolation, match="Updates are never issued"):
            guardian.validate_request(method, f"{V1}/groups/abc", {})
        assert guardian.violations[0]["reason"] == "Update of existing object blocked"

    @pytest.mark.parametrize("url", [
        f"{V1}/users",
        f"{V1}/users/abc",
        f"{BETA}/deviceManagement/managedDevices/abc/wipe",
        f"{BETA}/deviceManagement/deviceCompliancePolicies/abc/assign",
    ])
    def test_blocked_urls(self, url):
        with pytest.raises(SafetyViolation, match="Blocked action URL"):
            SafetyGuardian().validate_request("POST", url, {})

    def test_unmanaged_write(self):
        with pytest.raises(SafetyViolation, match="outside managed collections"):
            SafetyGuardian().validate_request("POST", f"{V1}/applications", {})


class TestDryRun:
    @pytest.mark.parametrize("method", ["POST", "DELETE"])
    def test_every_write_blocked(self, method):
        guardian = SafetyGuardian(dry_run=True)

        with pytest.raises(SafetyViolation, match="Dry run forbids writes"):
            guardian.validate_request(method, f"{V1}/groups/abc")
        assert guardian.writes_allowed == 0

    def test_reads_still_allowed(self):
        assert SafetyGuardian(dry_run=True).validate_request("GET", f"{V1}/groups")


class TestAudit:
    def test_clean_live_record(self):
        guardian = SafetyGuardian()
        guardian.validate_request("GET", f"{V1}/groups")
        guardian.validate_request("POST", f"{V1}/groups", {})

        record = guardian.get_audit_record()["safety_guardian"]

        assert record["mode"] == "LIVE"
        assert record["checks_performed"] == 2
        assert record["writes_allowed"] == 1
        assert record["status"] == "CLEAN"

    def test_violations_recorded(self):
        guardian = SafetyGuardian(dry_run=True)
        with pytest.raises(SafetyViolation):
            guardian.validate_request("DELETE", f"{V1}/groups/abc")

        record = guardian.get_audit_record()["safety_guardian"]

        assert record["mode"] == "DRY-RUN"
        assert record["violations_detected"] == 1
        assert record["violations"][0]["method"] == "DELETE"
        assert record["status"] == "VIOLATIONS_DETECTED"
