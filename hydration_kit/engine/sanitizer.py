"""
Property sanitizer: turns a template into a body the create endpoint accepts.

Templates are usually exports of live objects and still carry server-assigned
fields, OData annotations and navigation properties that Graph rejects on
create. Everything here works on a deep copy; the template is never touched.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Iterable

logger = logging.getLogger("hydration_kit.engine.sanitizer")

# Assigned by the service on every object.
CORE_READ_ONLY_FIELDS = (
    "id",
    "createdDateTime",
    "lastModifiedDateTime",
    "modifiedDateTime",
    "version",
    "@odata.context",
    "@odata.id",
    "@odata.etag",
    "@odata.editLink",
)

TYPE_ANNOTATION = "@odata.type"

# Top-level fields the settings catalog endpoints accept on create.
SETTINGS_CATALOG_FIELDS = (
    "name",
    "description",
    "platforms",
    "technologies",
    "settings",
    "roleScopeTagIds",
)

DEFAULT_SCHEDULED_ACTIONS = [
    {
        "ruleName": "PasswordRequired",
        "scheduledActionConfigurations": [
            {
                "actionType": "block",
                "gracePeriodHours": 0,
                "notificationTemplateId": "",
                "notificationMessageCCList": [],
            }
        ],
    }
]


def is_annotation(key: str) -> bool:
    """OData annotations other than the type discriminator."""
    if key == TYPE_ANNOTATION:
        return False
    return key.startswith("@odata.") or "@odata." in key


def strip(definition: dict[str, Any], extra: Iterable[str] = ()) -> dict[str, Any]:
    """Copy of definition without read-only fields, annotations and extra fields."""
    body = copy.deepcopy(definition)
    for key in (*CORE_READ_ONLY_FIELDS, *extra):
        body.pop(key, None)
    for key in [k for k in body if is_annotation(k)]:
        del body[key]
    return body


def _strip_setting(setting: Any) -> Any:
    if not isinstance(setting, dict):
        return setting
    cleaned = {
        k: v for k, v in setting.items()
        if k not in ("id", "settingDefinitions") and not is_annotation(k)
    }
    return cleaned


def shape_settings_catalog(body: dict[str, Any]) -> dict[str, Any]:
    """Rebuild a settings catalog body from the fields the endpoint accepts."""
    shaped: dict[str, Any] = {k: body[k] for k in SETTINGS_CATALOG_FIELDS if k in body}
    shaped["settings"] = [_strip_setting(s) for s in body.get("settings") or []]

    reference = body.get("templateReference")
    template_id = reference.get("templateId") if isinstance(reference, dict) else None
    if template_id:
        shaped["templateReference"] = {"templateId": template_id}

    dropped = sorted(set(body) - set(shaped))
    if dropped:
        logger.debug(f"Settings catalog body dropped fields: {', '.join(dropped)}")
    return shaped


def shape_scheduled_actions(body: dict[str, Any]) -> dict[str, Any]:
    """
    Compliance policies: every action gets a concrete notification CC list,
    and a policy without actions gets the mandatory block rule.
    """
    rules = body.get("scheduledActionsForRule")
    if not rules:
        body["scheduledActionsForRule"] = copy.deepcopy(DEFAULT_SCHEDULED_ACTIONS)
        return body

    shaped_rules = []
    for rule in rules:
        actions = []
        for action in rule.get("scheduledActionConfigurations") or []:
            action = {k: v for k, v in action.items() if k != "id" and not is_annotation(k)}
            action["notificationMessageCCList"] = list(action.get("notificationMessageCCList") or [])
            actions.append(action)
        shaped_rule = {k: v for k, v in rule.items() if k != "id" and not is_annotation(k)}
        shaped_rule["ruleName"] = rule.get("ruleName") or "PasswordRequired"
        shaped_rule["scheduledActionConfigurations"] = actions
        shaped_rules.append(shaped_rule)
    body["scheduledActionsForRule"] = shaped_rules
    return body


def shape_settings_compliance(body: dict[str, Any]) -> dict[str, Any]:
    """Settings-based compliance: the settings catalog allow-list plus its actions."""
    shaped = shape_settings_catalog(body)
    shaped["scheduledActionsForRule"] = body.get("scheduledActionsForRule")
    return shape_scheduled_actions(shaped)


def _mail_nickname(display_name: str) -> str:
    nickname = re.sub(r"[^A-Za-z0-9]", "", display_name)[:64]
    return nickname or "hydrationgroup"


def shape_dynamic_group(body: dict[str, Any]) -> dict[str, Any]:
    """Dynamic device groups are always mail-disabled security groups."""
    body.setdefault("mailEnabled", False)
    body.setdefault("securityEnabled", True)
    body.setdefault("mailNickname", _mail_nickname(body.get("displayName", "")))
    group_types = list(body.get("groupTypes") or [])
    if "DynamicMembership" not in group_types:
        group_types.append("DynamicMembership")
    body["groupTypes"] = group_types
    body.setdefault("membershipRuleProcessingState", "On")
    return body


def shape_for_kind(body: dict[str, Any], kind) -> dict[str, Any]:
    """Apply the kind's body shaper, if it has one."""
    if kind.shaper is None:
        return body
    return kind.shaper(body)
