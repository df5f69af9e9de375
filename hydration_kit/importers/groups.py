"""
Dynamic group importer: device groups with membership rules.
"""

from __future__ import annotations

from ..engine.kinds import DYNAMIC_GROUP
from .base import BaseImporter


class DynamicGroupImporter(BaseImporter):
    name = "dynamic_groups"
    description = "Dynamic device groups used to target the imported policies"
    template_folder = "DynamicGroups"
    kinds = (DYNAMIC_GROUP,)
