"""
Notification template importer: end-user compliance notification messages.
"""

from __future__ import annotations

from ..engine.kinds import NOTIFICATION_TEMPLATE
from .base import BaseImporter


class NotificationTemplateImporter(BaseImporter):
    name = "notification_templates"
    description = "Compliance notification message templates and their localized texts"
    template_folder = "Notifications"
    kinds = (NOTIFICATION_TEMPLATE,)
