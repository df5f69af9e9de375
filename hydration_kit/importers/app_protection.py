"""
App protection importer: android and iOS managed app protection policies.
"""

from __future__ import annotations

from ..engine.errors import UnsupportedKindError
from ..engine.kinds import APP_PROTECTION_ANDROID, APP_PROTECTION_IOS
from ..engine.templates import ObjectDefinition
from .base import BaseImporter

PLATFORM_TYPES = {
    "#microsoft.graph.androidManagedAppProtection": APP_PROTECTION_ANDROID,
    "#microsoft.graph.iosManagedAppProtection": APP_PROTECTION_IOS,
}


class AppProtectionImporter(BaseImporter):
    name = "app_protection"
    description = "MAM app protection policies for Android and iOS"
    template_folder = "AppProtection"
    kinds = (APP_PROTECTION_ANDROID, APP_PROTECTION_IOS)

    def kind_for(self, definition: ObjectDefinition):
        kind = PLATFORM_TYPES.get(definition.type_tag)
        if kind is None:
            raise UnsupportedKindError(
                f"Unsupported app protection type '{definition.type_tag or '-'}'"
            )
        return kind
