"""InventoryScanner — offline project scan + full restore/aggregate/enrich pipeline."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path

import structlog

from nuscan.core.config import Settings
from nuscan.engines.enrichment.nuget_client import NuGetClient
from nuscan.engines.enrichment.runner import EnrichmentRunner
from nuscan.engines.inventory.aggregator import aggregate
from nuscan.engines.inventory.central_versions import CentralVersionResolver
from nuscan.engines.inventory.manifest import (
    discover_manifests,
    drop_project_named_packages,
    parse_manifest,
    read_package_references,
    read_project_references,
)
from nuscan.engines.inventory.models import InventoryReport, ProjectDescriptor
from nuscan.engines.inventory.restore import locate_global_packages_folder, restore_packages
from nuscan.engines.inventory.transitive import extract_transitive_dependencies
from nuscan.exceptions import ManifestParseError

log = structlog.get_logger("nuscan.engine")


def read_project(
    manifest_path: Path,
    repo_path: Path,
    resolver: CentralVersionResolver,
) -> ProjectDescriptor:
    """Build the descriptor for one manifest.

    Parse failures are recorded in ``parse_errors`` instead of raised.
    """
    try:
        relative = manifest_path.relative_to(repo_path).as_posix()
    except ValueError:
        relative = manifest_path.as_posix()
    base = dict(
        project_path=str(manifest_path),
        project_name=manifest_path.stem,
        relative_path=relative,
    )

    try:
        root = parse_manifest(manifest_path)
    except ManifestParseError as exc:
        log.warning("inventory.manifest_parse_failed", path=relative, error=exc.reason)
        return ProjectDescriptor(**base, parse_errors=(str(exc),))

    project_refs = read_project_references(root)
    direct = read_package_references(root, manifest_path.parent, resolver)
    direct = drop_project_named_packages(direct, project_refs)
    transitive = extract_transitive_dependencies(manifest_path, direct, project_refs)

    return ProjectDescriptor(
        **base,
        direct_dependencies=tuple(direct),
        project_references=tuple(project_refs),
        transitive_dependencies=tuple(transitive),
    )


def scan(repo_path: Path) -> list[ProjectDescriptor]:
    """Scan a local repository for projects (no restore, no network)."""
    resolver = CentralVersionResolver(repo_path)
    resolver.refresh()

    projects: list[ProjectDescriptor] = []
    for manifest in discover_manifests(repo_path):
        try:
            projects.append(read_project(manifest, repo_path, resolver))
        except Exception as exc:
            log.error("inventory.project_failed", path=str(manifest), error=str(exc), exc_info=True)
            projects.append(
                ProjectDescriptor(
                    project_path=str(manifest),
                    project_name=manifest.stem,
                    relative_path=manifest.name,
                    parse_errors=(f"unexpected error: {exc}",),
                )
            )
    return projects


class InventoryScanner:
    """Full pipeline: restore -> scan -> aggregate -> enrich."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: NuGetClient | None = None,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self._client = client

    async def run(
        self,
        repo_path: Path,
        *,
        enrich: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> InventoryReport:
        """Produce an :class:`InventoryReport` for *repo_path*.

        Restore and enrichment failures degrade the report; they never
        abort it. Every log event emitted during the run carries
        ``scan_root``.
        """
        repo_path = repo_path.resolve()
        with structlog.contextvars.bound_contextvars(scan_root=str(repo_path)):
            log.info("inventory.scan_start")

            if not self._settings.skip_restore:
                await restore_packages(repo_path, timeout=self._settings.restore_timeout)

            projects = scan(repo_path)
            mismatches, packages = aggregate(projects)

            report = InventoryReport(
                root_path=str(repo_path),
                projects=projects,
                mismatches=mismatches,
                packages=packages,
                stale_after=timedelta(days=self._settings.stale_after_days),
            )

            if enrich and packages:
                await self._enrich(report, cancel_event)

            log.info(
                "inventory.scan_done",
                projects=len(projects),
                direct=report.direct_count,
                transitive=report.transitive_count,
                mismatches=len(mismatches),
                errors=len(report.projects_with_errors),
            )
        return report

    async def _enrich(self, report: InventoryReport, cancel_event: asyncio.Event | None) -> None:
        packages_folder = await locate_global_packages_folder()
        if packages_folder is None:
            log.info("inventory.no_global_packages_folder")

        if self._client is not None:
            runner = EnrichmentRunner(self._client, self._settings, packages_folder)
            await runner.enrich(report.packages.values(), cancel_event)
            return

        async with NuGetClient(self._settings) as client:
            runner = EnrichmentRunner(client, self._settings, packages_folder)
            await runner.enrich(report.packages.values(), cancel_event)
