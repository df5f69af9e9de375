"""
Provenance marker: the only record of which objects this kit created.

The marker text is embedded in an object's description at creation time and
read back before any deletion. Its spelling is a contract with objects
created by earlier releases and must not change.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from ..config import MARKER_TEXT, LEGACY_MARKER_TEXTS

logger = logging.getLogger("hydration_kit.engine.marker")

DEFAULT_SEPARATOR = " - "


class ObjectMarker:
    """Stamps and recognises the provenance marker in description text."""

    def __init__(
        self,
        text: str = MARKER_TEXT,
        legacy: Iterable[str] = LEGACY_MARKER_TEXTS,
    ):
        self.text = text
        self.recognised = (text, *legacy)

    def stamp(self, description: Optional[str], separator: str = DEFAULT_SEPARATOR) -> str:
        """Append the marker, keeping any existing description text."""
        if description is None or not str(description).strip():
            return self.text
        description = str(description)
        if self.text in description:
            return description
        return f"{description}{separator}{self.text}"

    def is_owned(self, description: Optional[str], name: Optional[str] = None) -> bool:
        """True when description carries either spelling of the marker (case-sensitive)."""
        if not isinstance(description, str) or not description.strip():
            if name is not None:
                logger.debug(f"'{name}' has no description; not created by this kit")
            return False
        owned = any(m in description for m in self.recognised)
        if name is not None and not owned:
            logger.debug(f"'{name}' description lacks the provenance marker")
        return owned


class OwnershipStore(Protocol):
    """Decides whether a remote object belongs to this kit."""

    def is_owned(
        self,
        obj: dict[str, Any],
        name_field: str,
        template_names: frozenset[str],
    ) -> bool: ...


class MarkerOwnership:
    """Ownership read from the provenance marker in the description."""

    def __init__(self, marker: Optional[ObjectMarker] = None):
        self.marker = marker or ObjectMarker()

    def is_owned(self, obj, name_field, template_names):
        return self.marker.is_owned(obj.get("description"), obj.get(name_field))


class TemplateNameOwnership:
    """
    Ownership for kinds without a description field: the object's name must
    be one of the names this kit ships a template for.
    """

    def is_owned(self, obj, name_field, template_names):
        name = obj.get(name_field)
        owned = isinstance(name, str) and name in template_names
        if not owned:
            logger.debug(f"'{name}' does not match any template name")
        return owned
