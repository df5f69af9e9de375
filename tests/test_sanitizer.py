"""Tests for create-body sanitising and per-kind shaping."""

from hydration_kit.engine.sanitizer import (
    DEFAULT_SCHEDULED_ACTIONS,
    is_annotation,
    shape_dynamic_group,
    shape_scheduled_actions,
    shape_settings_catalog,
    shape_settings_compliance,
    strip,
)


class TestStrip:
    def test_removes_server_fields_and_annotations(self):
        template = {
            "@odata.type": "#microsoft.graph.windows10CompliancePolicy",
            "@odata.context": "https://graph.microsoft.com/beta/$metadata#x",
            "scheduledActionsForRule@odata.context": "https://graph.microsoft.com/beta/$metadata#y",
            "id": "abc",
            "createdDateTime": "2024-01-01T00:00:00Z",
            "lastModifiedDateTime": "2024-01-01T00:00:00Z",
            "version": 3,
            "displayName": "Policy",
            "assignments": [],
        }

        body = strip(template, extra=("assignments",))

        assert body == {"@odata.type": "#microsoft.graph.windows10CompliancePolicy", "displayName": "Policy"}

    def test_original_is_untouched(self):
        template = {"id": "1", "nested": {"list": [1, 2]}}

        body = strip(template)
        body["nested"]["list"].append(3)

        assert template == {"id": "1", "nested": {"list": [1, 2]}}

    def test_type_discriminator_is_not_an_annotation(self):
        assert not is_annotation("@odata.type")
        assert is_annotation("@odata.etag")
        assert is_annotation("settings@odata.context")
        assert not is_annotation("displayName")


class TestSettingsCatalog:
    def test_rebuilds_from_allow_list(self):
        body = {
            "name": "Defender",
            "description": "Core",
            "platforms": "windows10",
            "technologies": "mdm",
            "roleScopeTagIds": ["0"],
            "settingCount": 1,
            "creationSource": None,
            "isAssigned": False,
            "templateReference": {"templateId": "tmpl_1", "templateFamily": "endpointSecurityAntivirus"},
            "settings": [
                {
                    "id": "0",
                    "settingDefinitions": [],
                    "settingInstance": {"@odata.type": "#microsoft.graph.x", "settingDefinitionId": "a"},
                }
            ],
        }

        shaped = shape_settings_catalog(body)

        assert set(shaped) == {
            "name", "description", "platforms", "technologies", "roleScopeTagIds",
            "settings", "templateReference",
        }
        assert shaped["templateReference"] == {"templateId": "tmpl_1"}
        assert shaped["settings"] == [
            {"settingInstance": {"@odata.type": "#microsoft.graph.x", "settingDefinitionId": "a"}}
        ]

    def test_empty_template_reference_is_dropped(self):
        shaped = shape_settings_catalog({"name": "x", "templateReference": {"templateId": ""}})

        assert "templateReference" not in shaped
        assert shaped["settings"] == []

    def test_settings_compliance_keeps_actions(self):
        shaped = shape_settings_compliance({"name": "Linux", "settings": [], "settingCount": 0})

        assert shaped["scheduledActionsForRule"] == DEFAULT_SCHEDULED_ACTIONS
        assert "settingCount" not in shaped


class TestScheduledActions:
    def test_default_rule_when_absent(self):
        body = shape_scheduled_actions({"displayName": "p"})

        assert body["scheduledActionsForRule"] == DEFAULT_SCHEDULED_ACTIONS
        assert body["scheduledActionsForRule"] is not DEFAULT_SCHEDULED_ACTIONS

    def test_cc_list_is_never_null(self):
        """Graph rejects a null notificationMessageCCList."""
        body = shape_scheduled_actions({
            "scheduledActionsForRule": [
                {
                    "id": "r",
                    "ruleName": None,
                    "scheduledActionConfigurations@odata.context": "x",
                    "scheduledActionConfigurations": [
                        {"id": "a", "actionType": "block", "notificationMessageCCList": None},
                        {"actionType": "notification", "notificationMessageCCList": ["g-1"]},
                        {"actionType": "retire"},
                    ],
                }
            ]
        })

        rule = body["scheduledActionsForRule"][0]
        assert rule["ruleName"] == "PasswordRequired"
        assert "id" not in rule
        assert "scheduledActionConfigurations@odata.context" not in rule
        assert [a["notificationMessageCCList"] for a in rule["scheduledActionConfigurations"]] == [[], ["g-1"], []]
        assert "id" not in rule["scheduledActionConfigurations"][0]


class TestDynamicGroup:
    def test_defaults_fill_security_group_fields(self):
        body = shape_dynamic_group({"displayName": "Intune - Windows Devices", "membershipRule": "x"})

        assert body["mailEnabled"] is False
        assert body["securityEnabled"] is True
        assert body["mailNickname"] == "IntuneWindowsDevices"
        assert body["groupTypes"] == ["DynamicMembership"]
        assert body["membershipRuleProcessingState"] == "On"

    def test_template_values_win(self):
        body = shape_dynamic_group({
            "displayName": "G",
            "mailNickname": "custom",
            "groupTypes": ["DynamicMembership"],
            "membershipRuleProcessingState": "Paused",
        })

        assert body["mailNickname"] == "custom"
        assert body["groupTypes"] == ["DynamicMembership"]
        assert body["membershipRuleProcessingState"] == "Paused"
