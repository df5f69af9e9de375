"""
Session context: everything one invocation shares, passed explicitly.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..cache.catalog import RemoteCatalog
from ..config import API_CALL_DELAY_SECONDS, DEFAULT_TEMPLATE_ROOT
from .marker import MarkerOwnership, ObjectMarker, OwnershipStore, TemplateNameOwnership


@dataclass
class HydrationContext:
    """Built once per run; tests build a fresh one per case."""
    graph: Any
    catalog: RemoteCatalog
    dry_run: bool = False
    run_id: str = ""
    marker: ObjectMarker = field(default_factory=ObjectMarker)
    ownership: Optional[OwnershipStore] = None
    call_delay: float = API_CALL_DELAY_SECONDS
    template_root: Path = DEFAULT_TEMPLATE_ROOT
    baseline_root: Optional[Path] = None

    @classmethod
    def create(cls, graph, **kwargs) -> "HydrationContext":
        return cls(graph=graph, catalog=RemoteCatalog(graph), **kwargs)

    def ownership_for(self, kind) -> OwnershipStore:
        """Ownership rule for a kind; an injected store replaces the marker rule."""
        if kind.ownership == "template_name":
            return TemplateNameOwnership()
        return self.ownership or MarkerOwnership(self.marker)

    async def pause(self):
        """Fixed gap between object-level calls to stay under Graph throttling."""
        if self.call_delay > 0:
            await asyncio.sleep(self.call_delay)
