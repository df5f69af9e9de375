"""
OpenIntuneBaseline importer.

Walks an extracted baseline tree and routes each object by its type tag or,
failing that, by the folder it sits in. Objects that map to neither are
reported as skipped, never dropped.
"""

from __future__ import annotations

from pathlib import Path

from ..engine.kinds import BASELINE_KINDS
from ..engine.templates import ObjectDefinition
from .base import BaseImporter


class OpenIntuneBaselineImporter(BaseImporter):
    name = "openintune_baseline"
    description = "Community security baseline policies (OpenIntuneBaseline)"
    template_folder = "OpenIntuneBaseline"
    recursive = True
    kinds = BASELINE_KINDS

    @property
    def template_dir(self) -> Path:
        if self.ctx.baseline_root is not None:
            return Path(self.ctx.baseline_root)
        return super().template_dir

    def kind_for(self, definition: ObjectDefinition):
        return self.loader.resolve_kind(definition)
