"""Merge per-project results into a repository-wide inventory."""

from __future__ import annotations

import structlog

from nuscan.engines.inventory.models import (
    UNKNOWN,
    PackageInfo,
    PackageVersionMismatch,
    ProjectDescriptor,
    is_unknown,
)

log = structlog.get_logger("nuscan.engine")


def _project_name(project: ProjectDescriptor) -> str:
    name = project.project_name
    return name.strip() if name and name.strip() else UNKNOWN


def _triples(project: ProjectDescriptor) -> list[tuple[str, str, bool]]:
    """``(name, version, is_direct)`` for every usable entry of one project."""
    out: list[tuple[str, str, bool]] = []
    for pkg in project.direct_dependencies:
        if not is_unknown(pkg.name) and not is_unknown(pkg.version):
            out.append((pkg.name.strip(), pkg.version.strip(), True))
    for dep in project.transitive_dependencies:
        if not is_unknown(dep.package_name) and not is_unknown(dep.version):
            out.append((dep.package_name.strip(), dep.version.strip(), False))
    return out


def compute_version_mismatches(projects: list[ProjectDescriptor]) -> list[PackageVersionMismatch]:
    """Packages resolved to more than one version anywhere in the repository.

    Grouping is case-insensitive on both package and project names; the
    first-seen casing is kept. Output is sorted by package name.
    """
    # lower name -> (display name, lower project -> (display project, versions))
    groups: dict[str, tuple[str, dict[str, tuple[str, set[str]]]]] = {}

    for project in projects:
        try:
            project_name = _project_name(project)
            for name, version, _ in _triples(project):
                display, per_project = groups.setdefault(name.lower(), (name, {}))
                _, versions = per_project.setdefault(project_name.lower(), (project_name, set()))
                versions.add(version)
        except Exception as exc:
            log.error(
                "inventory.mismatch_project_failed",
                project=project.project_path,
                error=str(exc),
                exc_info=True,
            )

    mismatches: list[PackageVersionMismatch] = []
    for display, per_project in groups.values():
        distinct = {v.lower() for _, versions in per_project.values() for v in versions}
        if len(distinct) < 2:
            continue
        mismatches.append(
            PackageVersionMismatch(
                package_name=display,
                project_versions={proj: set(vs) for proj, vs in per_project.values()},
            )
        )
    mismatches.sort(key=lambda m: m.package_name.lower())
    return mismatches


def aggregate_packages(projects: list[ProjectDescriptor]) -> dict[str, PackageInfo]:
    """One ``PackageInfo`` per distinct ``name@version``, keyed by ``PackageInfo.key``.

    A pair counts as direct if any project declares it directly.
    """
    by_lower: dict[tuple[str, str], PackageInfo] = {}

    for project in projects:
        try:
            project_name = _project_name(project)
            for name, version, direct in _triples(project):
                info = by_lower.get((name.lower(), version.lower()))
                if info is None:
                    info = PackageInfo(name=name, version=version, is_direct=direct)
                    by_lower[(name.lower(), version.lower())] = info
                elif direct:
                    info.is_direct = True
                info.projects.add(project_name)
        except Exception as exc:
            log.error(
                "inventory.aggregate_project_failed",
                project=project.project_path,
                error=str(exc),
                exc_info=True,
            )

    return {info.key: info for info in by_lower.values()}


def aggregate(
    projects: list[ProjectDescriptor],
) -> tuple[list[PackageVersionMismatch], dict[str, PackageInfo]]:
    """Mismatch list plus the deduplicated package inventory."""
    mismatches = compute_version_mismatches(projects)
    packages = aggregate_packages(projects)
    log.info(
        "inventory.aggregated",
        projects=len(projects),
        packages=len(packages),
        mismatches=len(mismatches),
    )
    return mismatches, packages
