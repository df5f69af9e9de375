"""
Intune Hydration Kit: command-line entry point

Usage:
    python -m hydration_kit --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt
    python -m hydration_kit --config hydration.json --dry-run
    python -m hydration_kit --config hydration.json --remove
    python -m hydration_kit --delegated --tenant-id ... --client-id ... --only dynamic_groups device_filters

Existing objects are never modified. Removal deletes only objects that carry
the kit's provenance marker.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import (
    HydrationConfig,
    CertificateAuth,
    ClientSecretAuth,
    DelegatedAuth,
    IMPORTER_KEYS,
)
from .logging_setup import configure_logging
from .safety.guardian import SafetyGuardian
from .auth.authenticator import Authenticator, AuthenticationError
from .graph.client import GraphClient, GraphAPIError
from .prerequisites import check_prerequisites, PrerequisiteError
from .engine.context import HydrationContext
from .engine.outcomes import Action, summarize
from .importers import ALL_IMPORTERS, ImportResult
from .reporting import export_json, export_csv, export_markdown

REPORT_FORMATS = ["json", "csv", "markdown"]


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hydration_kit",
        description="Intune Hydration Kit: idempotent baseline import into Microsoft Intune",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parser.add_argument("--tenant-id", type=str, default=None, help="Entra tenant ID (GUID)")
    parser.add_argument("--client-id", type=str, default=None, help="App registration client ID (GUID)")
    parser.add_argument(
        "--cert-path",
        type=Path,
        help="Path to base64-encoded PFX certificate (certificate auth)",
    )
    parser.add_argument(
        "--client-secret-env",
        type=str,
        default=None,
        help="Use client-secret auth, reading the secret from this environment variable",
    )
    parser.add_argument(
        "--delegated",
        action="store_true",
        help="Use delegated (device-code) authentication",
    )
    parser.add_argument(
        "--dry-run", "--whatif",
        dest="dry_run",
        action="store_true",
        help="Report every create/delete decision without changing the tenant",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--create", action="store_true", help="Create missing objects (default)")
    mode.add_argument("--remove", action="store_true", help="Delete objects created by this kit")

    parser.add_argument(
        "--only",
        nargs="+",
        choices=IMPORTER_KEYS,
        metavar="IMPORTER",
        help=f"Run only these importers ({', '.join(IMPORTER_KEYS)})",
    )
    parser.add_argument(
        "--skip",
        nargs="+",
        choices=IMPORTER_KEYS,
        metavar="IMPORTER",
        help="Skip these importers",
    )
    parser.add_argument("--templates", type=Path, help="Template root directory (default: bundled templates)")
    parser.add_argument("--baseline-path", type=Path, help="Extracted OpenIntuneBaseline directory")
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help="Output directory for reports and logs (default: ./hydration_output)",
    )
    parser.add_argument(
        "--formats",
        nargs="+",
        choices=REPORT_FORMATS,
        default=None,
        help="Report formats to generate",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug output on the console")
    parser.add_argument(
        "--skip-prerequisites",
        action="store_true",
        help="Do not check tenant licences before importing",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> HydrationConfig:
    """Build configuration from a config file, with CLI flags taking precedence."""
    if args.config:
        if not args.config.exists():
            print(f"\n❌ Config file not found: {args.config}")
            sys.exit(1)
        config = HydrationConfig.from_file(args.config)
    else:
        config = HydrationConfig()

    # --- Authentication ---
    if args.delegated:
        config.auth.mode = "delegated"
    elif args.client_secret_env:
        config.auth.mode = "client_secret"
    elif args.cert_path:
        config.auth.mode = "certificate"

    tenant_id = args.tenant_id or config.tenant_id
    existing = {
        "certificate": config.auth.certificate,
        "client_secret": config.auth.client_secret,
        "delegated": config.auth.delegated,
    }.get(config.auth.mode)
    client_id = args.client_id or (existing.client_id if existing else "")

    if not tenant_id or not client_id:
        print("\n❌ No tenant credentials found. Use one of:")
        print("   • --tenant-id X --client-id Y  (ad-hoc)")
        print("   • --config hydration.json      (JSON config file)")
        sys.exit(1)
    config.tenant_id = tenant_id

    if config.auth.mode == "delegated":
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
    elif config.auth.mode == "client_secret":
        secret_env = args.client_secret_env or (
            config.auth.client_secret.secret_env if config.auth.client_secret else "HYDRATION_CLIENT_SECRET"
        )
        config.auth.client_secret = ClientSecretAuth(
            tenant_id=tenant_id, client_id=client_id, secret_env=secret_env
        )
    else:
        cert = config.auth.certificate
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=str(args.cert_path) if args.cert_path else (
                cert.certificate_path if cert else "./base64.txt"
            ),
            certificate_password=cert.certificate_password if cert else "",
        )

    # --- Run options ---
    if args.dry_run:
        config.options.dry_run = True
    if args.remove:
        config.options.remove = True
        config.options.create = False
    elif args.create:
        config.options.remove = False
        config.options.create = True
    if args.verbose:
        config.options.verbose = True
    if args.skip_prerequisites:
        config.options.skip_prerequisites = True

    # --- Import selection ---
    if args.only:
        config.imports.only(args.only)
    if args.skip:
        config.imports.skip(args.skip)

    # --- Paths & output ---
    if args.templates:
        config.paths.templates = str(args.templates)
    if args.baseline_path:
        config.paths.baseline = str(args.baseline_path)
    if args.output_dir:
        config.output.base_dir = str(args.output_dir)
    if args.formats:
        config.output.formats = args.formats

    return config


def build_context(client, config: HydrationConfig, run_id: str) -> HydrationContext:
    return HydrationContext.create(
        client,
        dry_run=config.options.dry_run,
        run_id=run_id,
        call_delay=config.options.call_delay,
        template_root=config.paths.template_root,
        baseline_root=config.paths.baseline_root,
    )


async def run_imports(ctx: HydrationContext, config: HydrationConfig) -> dict[str, ImportResult]:
    """
    Run every enabled importer, one at a time, in the fixed declared order.
    A failing importer never stops the ones after it.
    """
    mode = config.options.mode
    results: dict[str, ImportResult] = {}

    for cls in ALL_IMPORTERS:
        if not config.imports.enabled(cls.name):
            print(f"  ⏭  Skipping {cls.__name__} (disabled)")
            continue

        importer = cls(ctx)
        result = await importer.execute(mode)
        results[importer.name] = result

        counts = {k: v for k, v in result.counts.items() if v}
        marker = "❌" if result.metadata["errors"] or counts.get(Action.FAILED.value) else "✅"
        print(f"  {marker} {cls.__name__}: {counts or 'nothing to do'} "
              f"({result.metadata.get('duration_seconds', '?')}s)")
        for w in result.metadata.get("warnings", []):
            print(f"      ⚠  {w}")
        for e in result.metadata.get("errors", []):
            print(f"      ❌ {e}")

    return results


def generate_reports(
    results: dict[str, ImportResult],
    audit: dict,
    output_dir: Path,
    run_id: str,
    tenant_name: str,
    formats: list[str],
    run_info: Optional[dict] = None,
) -> list[Path]:
    """Generate all requested report formats."""
    created = []

    if "json" in formats:
        path = export_json(results, audit, output_dir, run_id, run_info)
        created.append(path)
        print(f"  📄 JSON:       {path}")

    if "csv" in formats:
        paths = export_csv(results, output_dir, run_id)
        created.extend(paths)
        for p in paths:
            print(f"  📊 CSV:        {p}")

    if "markdown" in formats:
        path = export_markdown(results, audit, output_dir, run_id, tenant_name)
        created.append(path)
        print(f"  📝 Markdown:   {path}")

    return created


def exit_code_for(results: dict[str, ImportResult]) -> int:
    """0 when every object succeeded or was skipped, 2 when anything failed."""
    for result in results.values():
        if result.metadata["errors"] or result.counts[Action.FAILED.value]:
            return 2
    return 0


async def main_async(argv: Optional[list[str]] = None) -> int:
    """Async entry point. Returns the process exit code."""
    args = parse_args(argv)
    config = build_config(args)

    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    config.output.create_directories()
    log_path = configure_logging(config.output.logs_dir, run_id, config.options.verbose)

    # --- Safety banner ---
    guardian = SafetyGuardian(dry_run=config.options.dry_run)
    guardian.print_banner()

    print("=" * 70)
    print(" Intune Hydration Kit v1.0.0")
    print(f" Mode: {config.options.mode.upper()}{' (dry run)' if config.options.dry_run else ''}")
    print("=" * 70)
    print(f"\n📋 Run ID:    {run_id}")
    print(f"📂 Output:    {config.output.run_dir.resolve()}")
    print(f"🗂  Templates: {config.paths.template_root}")
    print(f"🪵 Log:       {log_path}")

    # --- Authentication ---
    print("\n🔐 Authenticating...")
    try:
        token = await Authenticator(config.auth).acquire_token()
    except AuthenticationError as e:
        print(f"❌ Authentication failed: {e}")
        return 1
    print("✅ Authentication successful.")

    tenant_name = config.tenant_name or "Unknown Tenant"
    run_info: dict = {"tenant_id": config.tenant_id, "operation": config.options.mode}

    async with GraphClient(access_token=token, guardian=guardian) as client:
        # --- Prerequisites ---
        if not config.options.skip_prerequisites:
            print("\n" + "=" * 70)
            print(" PHASE 1: PREREQUISITES")
            print("=" * 70 + "\n")
            try:
                facts = await check_prerequisites(client)
            except (PrerequisiteError, GraphAPIError) as e:
                print(f"  ❌ {e}")
                return 1
            run_info.update(facts)
            if not config.tenant_name and facts.get("tenant_display_name"):
                tenant_name = facts["tenant_display_name"]
            print(f"  ✅ Tenant: {tenant_name}")

        # --- Import / removal ---
        print("\n" + "=" * 70)
        print(f" PHASE 2: {'REMOVAL' if config.options.remove else 'IMPORT'}")
        print("=" * 70 + "\n")
        ctx = build_context(client, config, run_id)
        results = await run_imports(ctx, config)
        run_info["api_stats"] = client.get_stats()

    # --- Reporting ---
    print("\n" + "=" * 70)
    print(" PHASE 3: REPORT GENERATION")
    print("=" * 70 + "\n")
    audit = guardian.get_audit_record()["safety_guardian"]
    created_files = generate_reports(
        results=results,
        audit=audit,
        output_dir=config.output.reports_dir,
        run_id=run_id,
        tenant_name=tenant_name,
        formats=config.output.formats,
        run_info=run_info,
    )

    totals = summarize(o for r in results.values() for o in r.outcomes)
    print("\n" + "=" * 70)
    print(" RUN COMPLETE")
    print("=" * 70)
    for action, count in totals.items():
        if count:
            print(f"  {action:12s} {count}")
    print(f"  Files: {len(created_files)} reports generated")
    print(f"  Path:  {config.output.reports_dir.resolve()}")
    print()

    return exit_code_for(results)


def main():
    """Synchronous entry point for `python -m hydration_kit`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
