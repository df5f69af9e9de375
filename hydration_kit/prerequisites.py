"""
Tenant prerequisite check: licences the imported objects depend on.
Runs before any import; a failure here stops the run.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("hydration_kit.prerequisites")

INTUNE_PLAN_PREFIX = "INTUNE_A"
PREMIUM_PLAN_PREFIX = "AAD_PREMIUM"
ACTIVE_STATUSES = {"Success", "PendingActivation", "PendingProvisioning"}


class PrerequisiteError(Exception):
    """The tenant cannot host the objects this kit creates."""
    pass


def _active_plans(skus: list[dict[str, Any]]) -> set[str]:
    plans = set()
    for sku in skus:
        if sku.get("capabilityStatus") not in (None, "Enabled", "Warning"):
            continue
        for plan in sku.get("servicePlans", []):
            if plan.get("provisioningStatus") in ACTIVE_STATUSES:
                plans.add(plan.get("servicePlanName", ""))
    return plans


async def check_prerequisites(graph) -> dict[str, Any]:
    """
    Verify the tenant has an active Intune plan.
    Returns tenant facts for the report; raises PrerequisiteError otherwise.
    """
    org = await graph.get("organization", params={"$select": "id,displayName"})
    orgs = org.get("value", [])
    tenant_name = orgs[0].get("displayName", "") if orgs else ""

    skus = await graph.get_all_pages("subscribedSkus", skip_top=True)
    plans = _active_plans(skus)

    has_intune = any(p.startswith(INTUNE_PLAN_PREFIX) for p in plans)
    has_premium = any(p.startswith(PREMIUM_PLAN_PREFIX) for p in plans)

    if not has_intune:
        raise PrerequisiteError(
            f"No active Intune service plan ({INTUNE_PLAN_PREFIX}*) found in tenant "
            f"'{tenant_name or 'unknown'}'"
        )
    if not has_premium:
        logger.warning(
            "No Entra ID P1/P2 plan found; conditional access import will fail"
        )

    logger.info(f"Prerequisites satisfied for tenant '{tenant_name}'")
    return {
        "tenant_display_name": tenant_name,
        "intune_licensed": has_intune,
        "entra_premium": has_premium,
    }
