"""
Resource kinds: one declarative record per kind of object this kit manages.

The reconciler is a single algorithm; everything that differs between kinds
(endpoint, naming convention, extra fields to drop, body shaping, ownership
rule, deletion guard) is data on these records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from .compliance import SCRIPT_FIELD, link_detection_script
from .errors import TemplateError
from .sanitizer import (
    shape_dynamic_group,
    shape_scheduled_actions,
    shape_settings_catalog,
    shape_settings_compliance,
)

Body = dict[str, Any]
Shaper = Callable[[Body], Body]
Prepare = Callable[[Any, Body, Body], Awaitable[Body]]
PostCreate = Callable[[Any, "ResourceKind", str, Body], Awaitable[None]]
Guard = Callable[[Body], Optional[str]]
Include = Callable[[Body], bool]

# Present on most exported objects; never accepted on create.
COMMON_EXTRA_FIELDS = (
    "assignments",
    "isAssigned",
    "supportsScopeTags",
    "deviceStatuses",
    "userStatuses",
    "deviceStatusOverview",
    "userStatusOverview",
    "deviceSettingStateSummaries",
    "deploymentSummary",
    "deployedAppCount",
)


@dataclass(frozen=True, eq=False)
class ResourceKind:
    """Policy record for one kind of remote object."""
    key: str
    label: str
    endpoint: str
    beta: bool = True
    name_field: str = "displayName"
    alt_name_field: Optional[str] = None
    name_from_file: bool = False
    extra_strip: tuple[str, ...] = COMMON_EXTRA_FIELDS
    forced_fields: Mapping[str, Any] = field(default_factory=dict)
    shaper: Optional[Shaper] = None
    prepare: Optional[Prepare] = None
    post_create: Optional[PostCreate] = None
    stamp_marker: bool = True
    marker_separator: str = " - "
    ownership: str = "marker"            # "marker" or "template_name"
    delete_guard: Optional[Guard] = None
    include: Optional[Include] = None
    live_lookup: bool = False
    skip_top: bool = False

    def display_name(self, definition) -> str:
        """Name field, then the secondary field, then the file name where allowed."""
        for f in (self.name_field, self.alt_name_field):
            if not f:
                continue
            value = definition.data.get(f)
            if isinstance(value, str) and value.strip():
                return value
        if self.name_from_file:
            return definition.file_name
        raise TemplateError(f"{definition.source.name}: missing required '{self.name_field}'")


def odata_type(obj: Body) -> str:
    value = obj.get("@odata.type", "")
    return value if isinstance(value, str) else ""


# ─── Post-create steps ──────────────────────────────────────────────────────

async def attach_localized_messages(ctx, kind: ResourceKind, remote_id: str, definition: Body):
    """Notification templates carry their message texts as child objects."""
    for message in definition.get("localizedNotificationMessages") or []:
        body = {
            k: v for k, v in message.items()
            if k not in ("id", "lastModifiedDateTime") and not k.startswith("@odata.")
        }
        await ctx.graph.post(
            f"{kind.endpoint}/{remote_id}/localizedNotificationMessages", body, beta=kind.beta
        )
        await ctx.pause()


async def attach_target_apps(ctx, kind: ResourceKind, remote_id: str, definition: Body):
    """App protection policies target their apps through a separate action."""
    apps = definition.get("apps") or []
    if not apps:
        return
    targets = [
        {k: v for k, v in app.items() if k not in ("id", "version") and not k.startswith("@odata.")}
        for app in apps
    ]
    await ctx.graph.post(f"{kind.endpoint}/{remote_id}/targetApps", {"apps": targets}, beta=kind.beta)
    await ctx.pause()


async def prepare_compliance(ctx, definition: Body, body: Body) -> Body:
    return await link_detection_script(ctx, definition, body)


def conditional_access_guard(obj: Body) -> Optional[str]:
    state = obj.get("state")
    if state == "disabled":
        return None
    return f"Policy state is '{state}'; only disabled policies are removed"


# ─── Tenant bootstrap kinds ─────────────────────────────────────────────────

DYNAMIC_GROUP = ResourceKind(
    key="DynamicGroup",
    label="Dynamic Groups",
    endpoint="groups",
    beta=False,
    shaper=shape_dynamic_group,
    live_lookup=True,
    skip_top=True,
)

DEVICE_FILTER = ResourceKind(
    key="DeviceFilter",
    label="Device Filters",
    endpoint="deviceManagement/assignmentFilters",
    extra_strip=(*COMMON_EXTRA_FIELDS, "payloads", "roleScopeTags"),
    skip_top=True,
)

COMPLIANCE_POLICY = ResourceKind(
    key="CompliancePolicy",
    label="Compliance Policies",
    endpoint="deviceManagement/deviceCompliancePolicies",
    extra_strip=(*COMMON_EXTRA_FIELDS, SCRIPT_FIELD),
    shaper=shape_scheduled_actions,
    prepare=prepare_compliance,
)

SETTINGS_COMPLIANCE_POLICY = ResourceKind(
    key="SettingsCompliancePolicy",
    label="Compliance Policies (Linux / settings)",
    endpoint="deviceManagement/compliancePolicies",
    name_field="name",
    alt_name_field="displayName",
    shaper=shape_settings_compliance,
)

COMPLIANCE_SCRIPT = ResourceKind(
    key="ComplianceScript",
    label="Custom Compliance Scripts",
    endpoint="deviceManagement/deviceComplianceScripts",
)

NOTIFICATION_TEMPLATE = ResourceKind(
    key="NotificationTemplate",
    label="Notification Templates",
    endpoint="deviceManagement/notificationMessageTemplates",
    extra_strip=(*COMMON_EXTRA_FIELDS, "localizedNotificationMessages"),
    post_create=attach_localized_messages,
)

APP_PROTECTION_ANDROID = ResourceKind(
    key="AppProtectionAndroid",
    label="App Protection (Android)",
    endpoint="deviceAppManagement/androidManagedAppProtections",
    extra_strip=(*COMMON_EXTRA_FIELDS, "apps"),
    post_create=attach_target_apps,
)

APP_PROTECTION_IOS = ResourceKind(
    key="AppProtectionIOS",
    label="App Protection (iOS)",
    endpoint="deviceAppManagement/iosManagedAppProtections",
    extra_strip=(*COMMON_EXTRA_FIELDS, "apps"),
    post_create=attach_target_apps,
)

AUTOPILOT_PROFILE = ResourceKind(
    key="AutopilotProfile",
    label="Autopilot Deployment Profiles",
    endpoint="deviceManagement/windowsAutopilotDeploymentProfiles",
    extra_strip=(*COMMON_EXTRA_FIELDS, "assignedDevices", "managementServiceAppId"),
)

ESP_ODATA_TYPE = "#microsoft.graph.windows10EnrollmentCompletionPageConfiguration"

ENROLLMENT_STATUS_PAGE = ResourceKind(
    key="EnrollmentStatusPage",
    label="Enrollment Status Page",
    endpoint="deviceManagement/deviceEnrollmentConfigurations",
    extra_strip=(*COMMON_EXTRA_FIELDS, "priority"),
    include=lambda obj: odata_type(obj) == ESP_ODATA_TYPE,
    skip_top=True,
)

CONDITIONAL_ACCESS = ResourceKind(
    key="ConditionalAccessPolicy",
    label="Conditional Access Policies",
    endpoint="identity/conditionalAccess/policies",
    beta=False,
    extra_strip=("description", "templateId", "deletedDateTime", "partialEnablementStrategy"),
    forced_fields={"state": "disabled"},
    stamp_marker=False,
    ownership="template_name",
    delete_guard=conditional_access_guard,
    skip_top=True,
)


# ─── OpenIntuneBaseline kinds ───────────────────────────────────────────────

BASELINE_SETTINGS_CATALOG = ResourceKind(
    key="Baseline:SettingsCatalog",
    label="Baseline Settings Catalog",
    endpoint="deviceManagement/configurationPolicies",
    name_field="name",
    alt_name_field="displayName",
    name_from_file=True,
    shaper=shape_settings_catalog,
    marker_separator="\n",
)

BASELINE_SETTINGS_COMPLIANCE = ResourceKind(
    key="Baseline:SettingsCompliance",
    label="Baseline Compliance (settings)",
    endpoint="deviceManagement/compliancePolicies",
    name_field="name",
    alt_name_field="displayName",
    name_from_file=True,
    shaper=shape_settings_compliance,
)

BASELINE_COMPLIANCE = ResourceKind(
    key="Baseline:CompliancePolicy",
    label="Baseline Compliance",
    endpoint="deviceManagement/deviceCompliancePolicies",
    alt_name_field="name",
    name_from_file=True,
    extra_strip=(*COMMON_EXTRA_FIELDS, "deviceCompliancePolicyScript"),
    shaper=shape_scheduled_actions,
)

BASELINE_DEVICE_CONFIGURATION = ResourceKind(
    key="Baseline:DeviceConfiguration",
    label="Baseline Device Configuration",
    endpoint="deviceManagement/deviceConfigurations",
    alt_name_field="name",
    name_from_file=True,
)

BASELINE_FEATURE_UPDATE = ResourceKind(
    key="Baseline:FeatureUpdateProfile",
    label="Baseline Feature Updates",
    endpoint="deviceManagement/windowsFeatureUpdateProfiles",
    alt_name_field="name",
    name_from_file=True,
    extra_strip=(*COMMON_EXTRA_FIELDS, "endOfSupportDate"),
    skip_top=True,
)

BASELINE_QUALITY_UPDATE = ResourceKind(
    key="Baseline:QualityUpdateProfile",
    label="Baseline Quality Updates",
    endpoint="deviceManagement/windowsQualityUpdateProfiles",
    alt_name_field="name",
    name_from_file=True,
    extra_strip=(*COMMON_EXTRA_FIELDS, "releaseDateDisplayName", "deployableContentDisplayName"),
    skip_top=True,
)

BASELINE_DRIVER_UPDATE = ResourceKind(
    key="Baseline:DriverUpdateProfile",
    label="Baseline Driver Updates",
    endpoint="deviceManagement/windowsDriverUpdateProfiles",
    alt_name_field="name",
    name_from_file=True,
    extra_strip=(
        *COMMON_EXTRA_FIELDS, "deviceReporting", "newUpdates", "inventorySyncStatus",
        "driverInventories",
    ),
    skip_top=True,
)

BASELINE_KINDS = (
    BASELINE_SETTINGS_CATALOG,
    BASELINE_SETTINGS_COMPLIANCE,
    BASELINE_COMPLIANCE,
    BASELINE_DEVICE_CONFIGURATION,
    BASELINE_FEATURE_UPDATE,
    BASELINE_QUALITY_UPDATE,
    BASELINE_DRIVER_UPDATE,
)

# First tier: the type tag embedded in the object.
BASELINE_TYPE_TABLE: dict[str, ResourceKind] = {
    "#microsoft.graph.deviceManagementConfigurationPolicy": BASELINE_SETTINGS_CATALOG,
    "#microsoft.graph.deviceManagementCompliancePolicy": BASELINE_SETTINGS_COMPLIANCE,
    "#microsoft.graph.windows10CompliancePolicy": BASELINE_COMPLIANCE,
    "#microsoft.graph.macOSCompliancePolicy": BASELINE_COMPLIANCE,
    "#microsoft.graph.iosCompliancePolicy": BASELINE_COMPLIANCE,
    "#microsoft.graph.androidWorkProfileCompliancePolicy": BASELINE_COMPLIANCE,
    "#microsoft.graph.androidDeviceOwnerCompliancePolicy": BASELINE_COMPLIANCE,
    "#microsoft.graph.windowsUpdateForBusinessConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windows10GeneralConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windows10CustomConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windows10EndpointProtectionConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windowsHealthMonitoringConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windowsIdentityProtectionConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.macOSCustomConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.macOSExtensionsConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "#microsoft.graph.windowsFeatureUpdateProfile": BASELINE_FEATURE_UPDATE,
    "#microsoft.graph.windowsQualityUpdateProfile": BASELINE_QUALITY_UPDATE,
    "#microsoft.graph.windowsDriverUpdateProfile": BASELINE_DRIVER_UPDATE,
}

# Second tier: the folder the template was found in.
BASELINE_FOLDER_TABLE: dict[str, ResourceKind] = {
    "SettingsCatalog": BASELINE_SETTINGS_CATALOG,
    "EndpointSecurity": BASELINE_SETTINGS_CATALOG,
    "CompliancePolicies": BASELINE_COMPLIANCE,
    "CompliancePoliciesV2": BASELINE_SETTINGS_COMPLIANCE,
    "DeviceConfiguration": BASELINE_DEVICE_CONFIGURATION,
    "UpdatePolicies": BASELINE_DEVICE_CONFIGURATION,
    "FeatureUpdates": BASELINE_FEATURE_UPDATE,
    "QualityUpdates": BASELINE_QUALITY_UPDATE,
    "DriverUpdates": BASELINE_DRIVER_UPDATE,
}
