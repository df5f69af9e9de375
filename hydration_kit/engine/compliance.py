"""
Custom compliance: links a policy to its detection script.

A template declares the script inline under "customComplianceScript". The
script is looked up by display name (created when absent) and the policy body
receives its id together with the base64-encoded rules.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from ..graph.client import extract_error_message
from .errors import TemplateError

logger = logging.getLogger("hydration_kit.engine.compliance")

SCRIPT_FIELD = "customComplianceScript"


class ScriptPayloadMissing(TemplateError):
    """No existing script matches and the template cannot create one."""
    pass


def encode_text(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def encode_rules(rules: Any) -> str:
    """Rules as Graph expects them: base64 of the UTF-8 JSON document."""
    if isinstance(rules, list):
        rules = {"Rules": rules}
    return encode_text(json.dumps(rules, separators=(",", ":")))


def _script_body(ctx, script: dict[str, Any]) -> dict[str, Any]:
    return {
        "displayName": script["displayName"],
        "description": ctx.marker.stamp(script.get("description")),
        "publisher": script.get("publisher", "Intune-Hydration-Kit"),
        "runAsAccount": script.get("runAsAccount", "system"),
        "runAs32Bit": bool(script.get("runAs32Bit", False)),
        "enforceSignatureCheck": bool(script.get("enforceSignatureCheck", False)),
        "detectionScriptContent": encode_text(script["detectionScriptContent"]),
    }


async def resolve_script_id(ctx, script: dict[str, Any]) -> str | None:
    """
    Id of the named detection script, creating it when absent.
    Returns None in a dry run when the script would be created.
    """
    from .kinds import COMPLIANCE_SCRIPT

    name = script.get("displayName")
    if not isinstance(name, str) or not name.strip():
        raise ScriptPayloadMissing("Custom compliance script has no displayName")

    kind = COMPLIANCE_SCRIPT
    index = await ctx.catalog.index(kind.endpoint, kind.name_field, beta=kind.beta, scope=kind.key)
    if index is not None:
        existing = index.get(name)
    else:
        existing = await ctx.catalog.find_by_name(kind.endpoint, kind.name_field, name, beta=kind.beta)
    if existing is not None:
        logger.info(f"Reusing detection script '{name}' ({existing.get('id')})")
        return existing.get("id")

    if not script.get("detectionScriptContent"):
        raise ScriptPayloadMissing(
            f"Missing detection script payload for '{name}': no existing script "
            f"matches and the template has no detectionScriptContent"
        )

    body = _script_body(ctx, script)
    if ctx.dry_run:
        ctx.catalog.remember(kind.endpoint, {**body, "id": None}, beta=kind.beta)
        logger.info(f"[dry run] Would create detection script '{name}'")
        return None

    try:
        created = await ctx.graph.post(kind.endpoint, body, beta=kind.beta)
    except Exception as e:
        raise RuntimeError(f"Detection script '{name}' could not be created: {extract_error_message(e)}") from e
    finally:
        await ctx.pause()

    script_id = created.get("id")
    ctx.catalog.remember(kind.endpoint, created or {**body, "id": script_id}, beta=kind.beta)
    logger.info(f"Created detection script '{name}' ({script_id})")
    return script_id


async def link_detection_script(ctx, definition: dict[str, Any], body: dict[str, Any]) -> dict[str, Any]:
    """Attach {scriptId, encoded rules} in place of the inline script declaration."""
    script = definition.get(SCRIPT_FIELD)
    body.pop(SCRIPT_FIELD, None)
    if not script:
        return body
    if not isinstance(script, dict):
        raise ScriptPayloadMissing(f"{SCRIPT_FIELD} must be an object")

    script_id = await resolve_script_id(ctx, script)
    body["deviceCompliancePolicyScript"] = {
        "deviceComplianceScriptId": script_id,
        "rulesContent": encode_rules(script.get("rules", [])),
    }
    return body
