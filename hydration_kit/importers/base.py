"""
Base importer class: abstract interface for all resource importers.
Defines the contract for one resource category's create and remove passes.
"""

from __future__ import annotations

import logging
import time
from abc import ABC
from pathlib import Path
from typing import Any

from ..engine.context import HydrationContext
from ..engine.errors import TemplateError, UnsupportedKindError
from ..engine.kinds import ResourceKind
from ..engine.outcomes import Action, OutcomeRecord, summarize
from ..engine.reconciler import Reconciler
from ..engine.templates import ObjectDefinition, TemplateLoader

logger = logging.getLogger("hydration_kit.importers")


class ImportResult:
    """Outcomes and run metadata from one importer."""

    def __init__(self, importer_name: str):
        self.importer_name = importer_name
        self.outcomes: list[OutcomeRecord] = []
        self.metadata: dict[str, Any] = {
            "importer": importer_name,
            "started_at": None,
            "completed_at": None,
            "duration_seconds": 0,
            "templates_loaded": 0,
            "errors": [],
            "warnings": [],
            "skipped_sections": [],
        }

    def add_outcome(self, outcome: OutcomeRecord):
        self.outcomes.append(outcome)
        level = logging.WARNING if outcome.action is Action.FAILED else logging.DEBUG
        logger.log(
            level,
            f"[{self.importer_name}] {outcome.action.value}: {outcome.name} — {outcome.status}",
        )

    def add_outcomes(self, outcomes: list[OutcomeRecord]):
        for outcome in outcomes:
            self.add_outcome(outcome)

    def add_error(self, error: str):
        self.metadata["errors"].append(error)
        logger.error(f"[{self.importer_name}] {error}")

    def add_warning(self, warning: str):
        self.metadata["warnings"].append(warning)
        logger.warning(f"[{self.importer_name}] {warning}")

    def add_skipped(self, section: str, reason: str):
        self.metadata["skipped_sections"].append({"section": section, "reason": reason})
        logger.info(f"[{self.importer_name}] Skipped {section}: {reason}")

    @property
    def counts(self) -> dict[str, int]:
        return summarize(self.outcomes)

    def to_dict(self) -> dict:
        return {
            "outcomes": [o.to_dict() for o in self.outcomes],
            "counts": self.counts,
            "metadata": self.metadata,
        }


class BaseImporter(ABC):
    """
    Abstract base class for all importers.

    Subclasses declare their template folder and kinds, and override
    kind_for() when one folder holds more than one kind. The base class
    provides:
      - Template discovery and per-file error isolation
      - The create pass (ensure every template)
      - The remove pass (delete owned objects of every declared kind)
      - Timing, metadata and a catch-all error wrapper
    """

    name: str = "base"
    description: str = "Base importer"
    template_folder: str = ""
    recursive: bool = False
    kinds: tuple[ResourceKind, ...] = ()

    def __init__(
        self,
        ctx: HydrationContext,
        reconciler: Reconciler | None = None,
        loader: TemplateLoader | None = None,
    ):
        self.ctx = ctx
        self.reconciler = reconciler or Reconciler(ctx)
        self.loader = loader or TemplateLoader()

    @property
    def template_dir(self) -> Path:
        return Path(self.ctx.template_root) / self.template_folder

    async def execute(self, mode: str = "create") -> ImportResult:
        """
        Run the create or remove pass with timing and error handling.
        """
        result = ImportResult(self.name)
        result.metadata["started_at"] = time.time()
        logger.info(f"[{self.name}] Starting {mode} pass...")

        try:
            if mode == "remove":
                await self.remove(result)
            else:
                await self.create(result)
        except Exception as e:
            result.add_error(f"{mode.title()} pass failed: {type(e).__name__}: {e}")
            logger.exception(f"[{self.name}] {mode} pass failed")

        result.metadata["completed_at"] = time.time()
        result.metadata["duration_seconds"] = round(
            result.metadata["completed_at"] - result.metadata["started_at"], 2
        )
        logger.info(
            f"[{self.name}] Completed in {result.metadata['duration_seconds']}s — "
            f"{len(result.outcomes)} outcomes"
        )
        return result

    def kind_for(self, definition: ObjectDefinition) -> ResourceKind:
        """Kind a template is created as. Single-kind importers use their only kind."""
        return self.kinds[0]

    def load_definitions(self, result: ImportResult, for_removal: bool = False) -> list[ObjectDefinition]:
        """
        Load every template. Unparseable files become Failed outcomes, or
        warnings when the templates only supply names for a remove pass.
        """
        definitions = []
        paths = self.loader.discover(self.template_dir, recursive=self.recursive)
        if not paths:
            result.add_skipped(self.template_folder or self.name, f"no templates in {self.template_dir}")
            return definitions

        for path in paths:
            try:
                definitions.append(self.loader.load(path))
            except TemplateError as e:
                if for_removal:
                    result.add_warning(f"Template ignored for removal: {e}")
                    continue
                result.add_outcome(OutcomeRecord(
                    name=path.stem,
                    resource_kind=self.kinds[0].key if self.kinds else self.name,
                    action=Action.FAILED,
                    status=str(e),
                ))
        result.metadata["templates_loaded"] = len(definitions)
        return definitions

    def template_names(self, definitions: list[ObjectDefinition]) -> frozenset[str]:
        names = set()
        for definition in definitions:
            try:
                names.add(self.kind_for(definition).display_name(definition))
            except (TemplateError, UnsupportedKindError):
                continue
        return frozenset(names)

    async def create(self, result: ImportResult):
        for definition in self.load_definitions(result):
            try:
                kind = self.kind_for(definition)
            except UnsupportedKindError as e:
                result.add_outcome(OutcomeRecord(
                    name=definition.file_name,
                    resource_kind=self.name,
                    action=Action.SKIPPED,
                    status=str(e),
                ))
                continue
            result.add_outcome(await self.reconciler.ensure(kind, definition))

    async def remove(self, result: ImportResult):
        names = self.template_names(self.load_definitions(result, for_removal=True))
        for kind in self.kinds:
            result.add_outcomes(await self.reconciler.remove(kind, names))
