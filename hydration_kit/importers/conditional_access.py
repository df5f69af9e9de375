"""
Conditional Access importer.

Policies are always created disabled, whatever the template says, and are
only removed while they are still disabled. They have no description, so
ownership is decided by name against the shipped templates.
"""

from __future__ import annotations

from ..engine.kinds import CONDITIONAL_ACCESS
from .base import BaseImporter


class ConditionalAccessImporter(BaseImporter):
    name = "conditional_access"
    description = "Conditional Access policies (created in disabled state)"
    template_folder = "ConditionalAccess"
    kinds = (CONDITIONAL_ACCESS,)
