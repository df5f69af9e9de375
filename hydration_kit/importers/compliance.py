"""
Compliance importer: device compliance policies per platform.

Classic policies (with an @odata.type such as windows10CompliancePolicy) go
to deviceCompliancePolicies; settings-based policies (Linux, identified by a
"name" and a "settings" list) go to compliancePolicies. Custom compliance
detection scripts are created on demand and removed with the policies.
"""

from __future__ import annotations

from ..engine.errors import UnsupportedKindError
from ..engine.kinds import COMPLIANCE_POLICY, COMPLIANCE_SCRIPT, SETTINGS_COMPLIANCE_POLICY
from ..engine.templates import ObjectDefinition
from .base import BaseImporter

SETTINGS_COMPLIANCE_TYPE = "#microsoft.graph.deviceManagementCompliancePolicy"


class ComplianceImporter(BaseImporter):
    name = "compliance_templates"
    description = "Device compliance policies for Windows, macOS, iOS, Android and Linux"
    template_folder = "Compliance"
    recursive = True
    kinds = (COMPLIANCE_POLICY, SETTINGS_COMPLIANCE_POLICY, COMPLIANCE_SCRIPT)

    def kind_for(self, definition: ObjectDefinition):
        tag = definition.type_tag
        if tag == SETTINGS_COMPLIANCE_TYPE or (not tag and "settings" in definition.data):
            return SETTINGS_COMPLIANCE_POLICY
        if tag.startswith("#microsoft.graph.") and tag.endswith("CompliancePolicy"):
            return COMPLIANCE_POLICY
        raise UnsupportedKindError(f"Unsupported compliance template type '{tag or '-'}'")
