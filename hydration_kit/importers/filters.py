"""
Device filter importer: assignment filters by platform and rule.
"""

from __future__ import annotations

from ..engine.kinds import DEVICE_FILTER
from .base import BaseImporter


class DeviceFilterImporter(BaseImporter):
    name = "device_filters"
    description = "Assignment filters for corporate and personal devices"
    template_folder = "DeviceFilters"
    kinds = (DEVICE_FILTER,)
