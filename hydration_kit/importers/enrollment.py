"""
Enrollment importer: autopilot deployment profiles and the Enrollment Status Page.
"""

from __future__ import annotations

from ..engine.errors import UnsupportedKindError
from ..engine.kinds import AUTOPILOT_PROFILE, ENROLLMENT_STATUS_PAGE, ESP_ODATA_TYPE
from ..engine.templates import ObjectDefinition
from .base import BaseImporter

AUTOPILOT_TYPES = {
    "#microsoft.graph.azureADWindowsAutopilotDeploymentProfile",
    "#microsoft.graph.activeDirectoryWindowsAutopilotDeploymentProfile",
}


class EnrollmentImporter(BaseImporter):
    name = "enrollment_profiles"
    description = "Windows Autopilot deployment profiles and Enrollment Status Page"
    template_folder = "Enrollment"
    kinds = (AUTOPILOT_PROFILE, ENROLLMENT_STATUS_PAGE)

    def kind_for(self, definition: ObjectDefinition):
        tag = definition.type_tag
        if tag in AUTOPILOT_TYPES:
            return AUTOPILOT_PROFILE
        if tag == ESP_ODATA_TYPE:
            return ENROLLMENT_STATUS_PAGE
        raise UnsupportedKindError(f"Unsupported enrollment type '{tag or '-'}'")
