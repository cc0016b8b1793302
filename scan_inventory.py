#!/usr/bin/env python3
"""Standalone NuGet inventory scanner.

Usage:
    python scan_inventory.py /path/to/repo
    python scan_inventory.py .                       # scan current directory
    python scan_inventory.py /path/to/repo --offline # no restore, no registry calls
    python scan_inventory.py /path/to/repo --json
    python scan_inventory.py /path/to/repo -v --log-format json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path

from nuscan.core.config import Settings
from nuscan.core.logging import setup_logging
from nuscan.engines.inventory.models import InventoryReport
from nuscan.engines.inventory.scanner import InventoryScanner


def _report_to_dict(report: InventoryReport) -> dict:
    return {
        "root_path": report.root_path,
        "projects": [
            {
                "project_name": p.project_name,
                "relative_path": p.relative_path,
                "direct": [f"{d.name}@{d.version}" for d in p.direct_dependencies],
                "project_references": [r.project_name for r in p.project_references],
                "transitive": [f"{t.package_name}@{t.version}" for t in p.transitive_dependencies],
                "parse_errors": list(p.parse_errors),
            }
            for p in report.projects
        ],
        "mismatches": [
            {
                "package_name": m.package_name,
                "project_versions": {k: sorted(v) for k, v in m.project_versions.items()},
            }
            for m in report.mismatches
        ],
        "packages": [
            {
                "name": p.name,
                "version": p.version,
                "is_direct": p.is_direct,
                "projects": sorted(p.projects),
                "license": p.license,
                "source_type": p.source_type.value,
                "commercial": p.commercial.value,
                "latest_version": p.latest_version,
                "latest_license": p.latest_license,
                "latest_published": p.latest_published.isoformat() if p.latest_published else None,
                "has_newer_version": p.has_newer_version,
                "has_license_change": p.has_license_change,
            }
            for p in sorted(report.packages.values(), key=lambda p: (p.name.lower(), p.version))
        ],
    }


def _print_report(report: InventoryReport, as_json: bool) -> None:
    if as_json:
        print(json.dumps(_report_to_dict(report), indent=2))
        return

    print(
        f"Found {len(report.projects)} project(s), {report.direct_count} direct and "
        f"{report.transitive_count} transitive package(s)\n"
    )

    for project in report.projects_with_errors:
        print(f"  ! {project.relative_path}: {'; '.join(project.parse_errors)}")

    if report.mismatches:
        print("Version mismatches:")
        for m in report.mismatches:
            detail = ", ".join(
                f"{proj}={'/'.join(sorted(vs))}" for proj, vs in sorted(m.project_versions.items())
            )
            print(f"  {m.package_name}: {detail}")
        print()

    for pkg in sorted(report.packages.values(), key=lambda p: (p.name.lower(), p.version)):
        kind = "direct" if pkg.is_direct else "transitive"
        latest = f"  -> {pkg.latest_version}" if pkg.has_newer_version else ""
        license_text = pkg.license or "Unknown"
        print(f"  {pkg.name} {pkg.version} ({kind}, {license_text}){latest}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Build a NuGet dependency inventory for a repo")
    parser.add_argument("target", help="Local repository path to scan")
    parser.add_argument("--offline", action="store_true", help="Skip restore and registry lookups")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Output as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--log-format", choices=["console", "json"], help="Log renderer")
    args = parser.parse_args()

    setup_logging(level="DEBUG" if args.verbose else None, fmt=args.log_format)

    repo = Path(args.target).resolve()
    if not repo.is_dir():
        print(f"Error: {repo} is not a directory", file=sys.stderr)
        sys.exit(1)

    settings = Settings.from_env()
    if args.offline:
        settings = replace(settings, skip_restore=True)

    scanner = InventoryScanner(settings)
    report = asyncio.run(scanner.run(repo, enrich=not args.offline))
    _print_report(report, args.as_json)


if __name__ == "__main__":
    main()
