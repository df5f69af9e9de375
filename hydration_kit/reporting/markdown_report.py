"""
Markdown run report: rendered via Jinja2 from the packaged template.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..engine.outcomes import Action, summarize


TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_NAME = "run_report.md.j2"

_ACTION_ICONS = {
    Action.CREATED.value:      "🟢",
    Action.WOULD_CREATE.value: "🔵",
    Action.SKIPPED.value:      "⚪",
    Action.DELETED.value:      "🟠",
    Action.WOULD_DELETE.value: "🟡",
    Action.FAILED.value:       "🔴",
}


def _env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape([]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["md_cell"] = lambda v: str(v if v is not None else "").replace("|", "\\|").replace("\n", " ")
    return env


def render_markdown(
    results: dict,
    audit: dict,
    run_id: str,
    tenant_name: str = "Unknown Tenant",
) -> str:
    all_outcomes = [o for r in results.values() for o in r.outcomes]
    template = _env().get_template(TEMPLATE_NAME)
    return template.render(
        run_id=run_id,
        tenant_name=tenant_name,
        generated_utc=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        audit=audit,
        totals=summarize(all_outcomes),
        results=results,
        failures=[o for o in all_outcomes if o.action is Action.FAILED],
        action_icons=_ACTION_ICONS,
    )


def export_markdown(
    results: dict,
    audit: dict,
    output_dir: Path,
    run_id: str,
    tenant_name: str = "Unknown Tenant",
) -> Path:
    """Write the Markdown summary of a run."""
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"hydration_report_{run_id}.md"

    with open(filepath, "w", encoding="utf-8") as fh:
        fh.write(render_markdown(results, audit, run_id, tenant_name))

    return filepath
