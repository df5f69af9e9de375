"""
Reconciler: decides and carries out create, skip and delete per object.

Create path: resolve the name, check existence against the run catalog (or a
scoped lookup), skip anything that exists, otherwise build a sanitised,
marked body and create it. Existing objects are never updated.

Delete path: enumerate the kind's collection and delete only what this kit
owns and what passes the kind's guard.

Every failure is turned into a Failed outcome for that one object; the loop
always moves on to the next.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Optional

from ..graph.client import extract_error_message
from .context import HydrationContext
from .errors import TemplateError
from .kinds import ResourceKind
from .outcomes import Action, OutcomeRecord
from .sanitizer import shape_for_kind, strip
from .templates import ObjectDefinition

logger = logging.getLogger("hydration_kit.engine.reconciler")

NOT_OWNED_STATUS = "Not created by Intune-Hydration-Kit; left untouched"


class Reconciler:
    """One generic algorithm, parameterised by ResourceKind records."""

    def __init__(self, ctx: HydrationContext):
        self.ctx = ctx

    # ─── Create path ────────────────────────────────────────────────────────

    async def ensure(self, kind: ResourceKind, definition: ObjectDefinition) -> OutcomeRecord:
        """Create the object unless one with the same name already exists."""
        try:
            name = kind.display_name(definition)
        except TemplateError as e:
            return self._record(definition.file_name, kind, Action.FAILED, str(e))

        try:
            existing = await self.find_existing(kind, name)
        except Exception as e:
            return self._record(
                name, kind, Action.FAILED, f"Existence check failed: {extract_error_message(e)}"
            )

        if existing is not None:
            logger.info(f"[{kind.key}] '{name}' already exists; skipping")
            return self._record(name, kind, Action.SKIPPED, "Already exists", existing.get("id"))

        working = copy.deepcopy(definition.data)
        try:
            body = await self.build_body(kind, working, name)
        except TemplateError as e:
            return self._record(name, kind, Action.FAILED, str(e))
        except Exception as e:
            return self._record(name, kind, Action.FAILED, extract_error_message(e))

        if self.ctx.dry_run:
            self.ctx.catalog.remember(kind.endpoint, {**body, "id": None}, beta=kind.beta)
            logger.info(f"[{kind.key}] [dry run] Would create '{name}'")
            return self._record(name, kind, Action.WOULD_CREATE, "Would create")

        try:
            created = await self.ctx.graph.post(kind.endpoint, body, beta=kind.beta)
        except Exception as e:
            message = extract_error_message(e)
            logger.error(f"[{kind.key}] Failed to create '{name}': {message}")
            return self._record(name, kind, Action.FAILED, message)
        finally:
            await self.ctx.pause()

        remote_id = created.get("id")
        self.ctx.catalog.remember(kind.endpoint, created or {**body, "id": remote_id}, beta=kind.beta)
        logger.info(f"[{kind.key}] Created '{name}' ({remote_id})")

        status = "Created"
        if kind.post_create is not None and remote_id:
            try:
                await kind.post_create(self.ctx, kind, remote_id, working)
            except Exception as e:
                message = extract_error_message(e)
                logger.warning(f"[{kind.key}] '{name}' created but follow-up step failed: {message}")
                status = f"Created; follow-up step failed: {message}"
        return self._record(name, kind, Action.CREATED, status, remote_id)

    async def find_existing(self, kind: ResourceKind, name: str) -> Optional[dict[str, Any]]:
        """Catalog index first; a scoped server lookup when there is no usable index."""
        catalog = self.ctx.catalog
        if not kind.live_lookup:
            index = await catalog.index(
                kind.endpoint,
                kind.name_field,
                beta=kind.beta,
                skip_top=kind.skip_top,
                include=kind.include,
                scope=kind.key,
            )
            if index is not None:
                return index.get(name)
            logger.debug(f"[{kind.key}] No complete listing; looking up '{name}' directly")
        return await catalog.find_by_name(
            kind.endpoint, kind.name_field, name, beta=kind.beta, include=kind.include
        )

    async def build_body(self, kind: ResourceKind, working: dict[str, Any], name: str) -> dict[str, Any]:
        """
        Forced fields, then sanitising and shaping, then the provenance marker,
        then any dependency step the kind needs before it can be created.
        """
        for field_name, value in kind.forced_fields.items():
            if working.get(field_name) != value:
                logger.info(
                    f"[{kind.key}] '{name}': forcing {field_name}={value!r} "
                    f"(template had {working.get(field_name)!r})"
                )
            working[field_name] = value

        body = strip(working, kind.extra_strip)
        body[kind.name_field] = name
        body = shape_for_kind(body, kind)

        if kind.stamp_marker:
            body["description"] = self.ctx.marker.stamp(
                body.get("description"), kind.marker_separator
            )
        if kind.prepare is not None:
            body = await kind.prepare(self.ctx, working, body)
        return body

    # ─── Delete path ────────────────────────────────────────────────────────

    async def remove(
        self,
        kind: ResourceKind,
        template_names: Iterable[str] = (),
    ) -> list[OutcomeRecord]:
        """
        Delete every object of this kind that the kit owns and whose guard holds.

        Objects that are not owned are reported only when their name collides
        with a template; otherwise they are passed over at DEBUG level.
        """
        names = frozenset(template_names)
        catalog = self.ctx.catalog
        ownership = self.ctx.ownership_for(kind)
        outcomes: list[OutcomeRecord] = []

        objects = list(await catalog.list_all(kind.endpoint, beta=kind.beta, skip_top=kind.skip_top))
        if not catalog.is_available(kind.endpoint, kind.beta):
            logger.warning(
                f"[{kind.key}] Listing was incomplete; only {len(objects)} catalogued objects are evaluated"
            )

        for obj in objects:
            if kind.include is not None and not kind.include(obj):
                continue
            name = obj.get(kind.name_field) or (obj.get(kind.alt_name_field) if kind.alt_name_field else None)
            name = name if isinstance(name, str) and name else "<unnamed>"
            remote_id = obj.get("id")

            if not ownership.is_owned(obj, kind.name_field, names):
                if name in names:
                    outcomes.append(self._record(name, kind, Action.SKIPPED, NOT_OWNED_STATUS, remote_id))
                else:
                    logger.debug(f"[{kind.key}] '{name}' not owned; ignored")
                continue

            if kind.delete_guard is not None:
                reason = kind.delete_guard(obj)
                if reason:
                    logger.info(f"[{kind.key}] '{name}' kept: {reason}")
                    outcomes.append(self._record(name, kind, Action.SKIPPED, reason, remote_id))
                    continue

            if not remote_id:
                logger.debug(f"[{kind.key}] '{name}' has no id; nothing to delete")
                continue

            outcomes.append(await self._delete(kind, name, remote_id))
        return outcomes

    async def _delete(self, kind: ResourceKind, name: str, remote_id: str) -> OutcomeRecord:
        catalog = self.ctx.catalog
        if self.ctx.dry_run:
            catalog.forget(kind.endpoint, remote_id, beta=kind.beta)
            logger.info(f"[{kind.key}] [dry run] Would delete '{name}' ({remote_id})")
            return self._record(name, kind, Action.WOULD_DELETE, "Would delete", remote_id)

        try:
            await self.ctx.graph.delete(f"{kind.endpoint}/{remote_id}", beta=kind.beta)
        except Exception as e:
            message = extract_error_message(e)
            logger.error(f"[{kind.key}] Failed to delete '{name}' ({remote_id}): {message}")
            return self._record(name, kind, Action.FAILED, message, remote_id)
        finally:
            await self.ctx.pause()

        catalog.forget(kind.endpoint, remote_id, beta=kind.beta)
        logger.info(f"[{kind.key}] Deleted '{name}' ({remote_id})")
        return self._record(name, kind, Action.DELETED, "Deleted", remote_id)

    @staticmethod
    def _record(
        name: str,
        kind: ResourceKind,
        action: Action,
        status: str,
        remote_id: Optional[str] = None,
    ) -> OutcomeRecord:
        return OutcomeRecord(
            name=name,
            resource_kind=kind.key,
            action=action,
            status=status,
            remote_id=remote_id,
        )
