"""
Outcome records: one per processed template or deletion candidate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional


class Action(str, Enum):
    CREATED = "Created"
    SKIPPED = "Skipped"
    DELETED = "Deleted"
    FAILED = "Failed"
    WOULD_CREATE = "WouldCreate"
    WOULD_DELETE = "WouldDelete"


# Dry-run actions and the live action each one stands for.
DRY_RUN_EQUIVALENT = {
    Action.WOULD_CREATE: Action.CREATED,
    Action.WOULD_DELETE: Action.DELETED,
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class OutcomeRecord:
    """Result of processing one object. Never changed once created."""
    name: str
    resource_kind: str
    action: Action
    status: str = ""
    remote_id: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "resourceKind": self.resource_kind,
            "action": self.action.value,
            "status": self.status,
            "remoteId": self.remote_id,
            "timestamp": self.timestamp,
        }


def summarize(outcomes: Iterable[Any]) -> dict[str, int]:
    """
    Count outcomes per action in a single pass.
    Records with a missing or unrecognised action are ignored.
    """
    counts = {a.value: 0 for a in Action}
    for outcome in outcomes:
        action = getattr(outcome, "action", None)
        if isinstance(action, Action):
            counts[action.value] += 1
        elif isinstance(action, str) and action in counts:
            counts[action] += 1
    return counts
