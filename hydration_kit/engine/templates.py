"""
Template loader: discovers and parses declarative object definitions.

A template is one UTF-8 JSON file holding one object. Where the files came
from (bundled, hand-written, an extracted community baseline) does not matter.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import TemplateError, UnsupportedKindError
from .kinds import BASELINE_FOLDER_TABLE, BASELINE_TYPE_TABLE, ResourceKind, odata_type

logger = logging.getLogger("hydration_kit.engine.templates")


@dataclass(frozen=True)
class ObjectDefinition:
    """One loaded template. Consumers copy data before changing anything."""
    data: dict[str, Any]
    source: Path

    @property
    def file_name(self) -> str:
        return self.source.stem

    @property
    def folder(self) -> str:
        return self.source.parent.name

    @property
    def type_tag(self) -> str:
        return odata_type(self.data)


class TemplateLoader:
    """Finds template files and turns them into ObjectDefinitions."""

    suffix = ".json"

    def discover(self, path: Path, recursive: bool = False) -> list[Path]:
        """
        All JSON files under path, sorted for a stable processing order.
        A missing directory yields an empty list.
        """
        path = Path(path)
        if not path.is_dir():
            logger.info(f"Template directory not found: {path}")
            return []
        pattern = f"**/*{self.suffix}" if recursive else f"*{self.suffix}"
        files = sorted(p for p in path.glob(pattern) if p.is_file())
        logger.debug(f"Discovered {len(files)} templates under {path}")
        return files

    def load(self, path: Path) -> ObjectDefinition:
        """Parse one template file. Raises TemplateError on any failure."""
        try:
            # utf-8-sig: exports from Windows tooling often carry a BOM
            text = Path(path).read_text(encoding="utf-8-sig")
            data = json.loads(text)
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"{Path(path).name}: unreadable: {e}") from e
        except json.JSONDecodeError as e:
            raise TemplateError(f"{Path(path).name}: invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TemplateError(f"{Path(path).name}: expected a JSON object, got {type(data).__name__}")
        return ObjectDefinition(data=data, source=Path(path))

    def resolve_kind(self, definition: ObjectDefinition) -> ResourceKind:
        """
        Kind for a baseline template: the embedded type tag first, then the
        containing folder's name. Raises UnsupportedKindError when neither maps.
        """
        tag = definition.type_tag
        if tag and tag in BASELINE_TYPE_TABLE:
            return BASELINE_TYPE_TABLE[tag]
        folder = definition.folder
        if folder in BASELINE_FOLDER_TABLE:
            return BASELINE_FOLDER_TABLE[folder]
        raise UnsupportedKindError(
            f"Unsupported baseline type '{tag or '-'}' in folder '{folder}'"
        )
