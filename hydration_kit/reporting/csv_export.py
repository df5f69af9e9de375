"""
CSV exporter: one row per outcome, plus a per-importer count table.
"""

from __future__ import annotations

import csv
from pathlib import Path

from ..engine.outcomes import Action


OUTCOME_FIELDS = ["importer", "resourceKind", "name", "action", "status", "remoteId", "timestamp"]


def export_csv(results: dict, output_dir: Path, run_id: str) -> list[Path]:
    """
    Write the outcome and count CSV files.

    Returns:
        List of created CSV file paths.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    created = []

    # --- Outcomes CSV ---
    outcomes_path = output_dir / f"outcomes_{run_id}.csv"
    with open(outcomes_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(fh, fieldnames=OUTCOME_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for importer, result in results.items():
            for outcome in result.outcomes:
                writer.writerow({"importer": importer, **outcome.to_dict()})
    created.append(outcomes_path)

    # --- Counts CSV ---
    counts_path = output_dir / f"counts_{run_id}.csv"
    actions = [a.value for a in Action]
    with open(counts_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.writer(fh)
        writer.writerow(["importer", *actions, "errors"])
        for importer, result in results.items():
            counts = result.counts
            writer.writerow([
                importer,
                *(counts[a] for a in actions),
                len(result.metadata["errors"]),
            ])
    created.append(counts_path)

    return created
