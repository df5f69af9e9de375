"""
JSON exporter: produces the full raw JSON output of a hydration run.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..engine.outcomes import summarize


def export_json(
    results: dict,
    audit: dict,
    output_dir: Path,
    run_id: str,
    run_info: dict[str, Any] | None = None,
) -> Path:
    """
    Write every outcome, the per-importer counts and the guardian audit.

    Returns:
        Path to the created JSON file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    all_outcomes = [o for r in results.values() for o in r.outcomes]
    payload = {
        "metadata": {
            "engine": "Intune Hydration Kit",
            "version": "1.0.0",
            "run_id": run_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": audit.get("mode", ""),
            **(run_info or {}),
        },
        "summary": summarize(all_outcomes),
        "importers": {name: r.to_dict() for name, r in results.items()},
        "safety_audit": audit,
    }

    filepath = output_dir / f"hydration_{run_id}.json"
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return filepath
