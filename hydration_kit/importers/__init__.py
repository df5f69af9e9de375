from .base import BaseImporter, ImportResult
from .groups import DynamicGroupImporter
from .filters import DeviceFilterImporter
from .baseline import OpenIntuneBaselineImporter
from .compliance import ComplianceImporter
from .notifications import NotificationTemplateImporter
from .app_protection import AppProtectionImporter
from .enrollment import EnrollmentImporter
from .conditional_access import ConditionalAccessImporter

# Fixed processing order: later categories may reference earlier ones.
ALL_IMPORTERS = [
    DynamicGroupImporter,
    DeviceFilterImporter,
    OpenIntuneBaselineImporter,
    ComplianceImporter,
    NotificationTemplateImporter,
    AppProtectionImporter,
    EnrollmentImporter,
    ConditionalAccessImporter,
]

__all__ = [
    "BaseImporter",
    "ImportResult",
    "DynamicGroupImporter",
    "DeviceFilterImporter",
    "OpenIntuneBaselineImporter",
    "ComplianceImporter",
    "NotificationTemplateImporter",
    "AppProtectionImporter",
    "EnrollmentImporter",
    "ConditionalAccessImporter",
    "ALL_IMPORTERS",
]
