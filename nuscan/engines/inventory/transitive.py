"""Transitive dependency extraction from restore artifacts.

Reads ``packages.lock.json`` beside the manifest, or falls back to
``obj/project.assets.json``. Neither file is produced here; they are
written by an earlier restore.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from nuscan.engines.inventory.models import Package, ProjectReference, TransitiveDependency

log = structlog.get_logger("nuscan.engine")

LOCK_FILE = "packages.lock.json"
ASSETS_FILE = "project.assets.json"


def extract_transitive_dependencies(
    manifest_path: Path,
    direct: list[Package],
    project_refs: list[ProjectReference],
) -> list[TransitiveDependency]:
    """Transitive packages for one project; never raises.

    Packages that are direct dependencies or share a name with a
    referenced project are excluded. A malformed artifact yields whatever
    was read before the failure.
    """
    project_dir = manifest_path.parent
    excluded = {p.name.lower() for p in direct} | {r.project_name.lower() for r in project_refs}

    lock_path = project_dir / LOCK_FILE
    if lock_path.is_file():
        return _dedupe(_from_lock_file(lock_path, direct, excluded))

    assets_path = project_dir / "obj" / ASSETS_FILE
    if assets_path.is_file():
        return _dedupe(_from_assets_file(assets_path, direct, excluded))

    return []


def _load_json(path: Path) -> Any:
    with path.open(encoding="utf-8-sig") as fh:
        return json.load(fh)


def _dedupe(deps: list[TransitiveDependency]) -> list[TransitiveDependency]:
    # Same package under several target frameworks is reported once.
    seen: set[tuple[str, str]] = set()
    unique: list[TransitiveDependency] = []
    for dep in deps:
        key = (dep.package_name.lower(), dep.version.lower())
        if key in seen:
            continue
        seen.add(key)
        unique.append(dep)
    return unique


def _direct_match(name: str, direct: list[Package]) -> str | None:
    lowered = name.lower()
    for pkg in direct:
        if pkg.name.lower() == lowered:
            return pkg.name
    return None


# ── packages.lock.json ──────────────────────────────────────────────────


def _from_lock_file(
    path: Path, direct: list[Package], excluded: set[str]
) -> list[TransitiveDependency]:
    deps: list[TransitiveDependency] = []
    try:
        data = _load_json(path)
        frameworks = data.get("dependencies", {}) if isinstance(data, dict) else {}
        for framework, packages in frameworks.items():
            if not isinstance(packages, dict):
                log.warning("inventory.lock_file_bad_framework", path=str(path), framework=framework)
                continue
            for name, entry in packages.items():
                if not isinstance(entry, dict):
                    continue
                if str(entry.get("type", "")).lower() == "project":
                    continue
                if name.lower() in excluded:
                    continue
                resolved = entry.get("resolved")
                if not resolved:
                    continue
                deps.append(
                    TransitiveDependency(
                        package_name=name,
                        version=str(resolved),
                        source_package=_lock_source(entry, direct),
                    )
                )
    except (OSError, ValueError, AttributeError, TypeError) as exc:
        log.warning("inventory.lock_file_unreadable", path=str(path), error=str(exc))
    return deps


def _lock_source(entry: dict, direct: list[Package]) -> str | None:
    edges = entry.get("dependencies")
    if not isinstance(edges, dict):
        return None
    for dep_name in edges:
        match = _direct_match(dep_name, direct)
        if match is not None:
            return match
    return None


# ── obj/project.assets.json ─────────────────────────────────────────────


def _from_assets_file(
    path: Path, direct: list[Package], excluded: set[str]
) -> list[TransitiveDependency]:
    deps: list[TransitiveDependency] = []
    try:
        data = _load_json(path)
        if not isinstance(data, dict):
            return deps
        libraries = data.get("libraries", {})
        targets = data.get("targets", {})
        for key, library in libraries.items():
            parts = key.split("/")
            if len(parts) != 2 or not parts[0] or not parts[1]:
                continue
            name, version = parts
            if isinstance(library, dict) and str(library.get("type", "")).lower() == "project":
                continue
            if name.lower() in excluded:
                continue
            deps.append(
                TransitiveDependency(
                    package_name=name,
                    version=version,
                    source_package=_assets_source(name, targets, direct),
                )
            )
    except (OSError, ValueError, AttributeError, TypeError) as exc:
        log.warning("inventory.assets_file_unreadable", path=str(path), error=str(exc))
    return deps


def _assets_source(name: str, targets: Any, direct: list[Package]) -> str | None:
    if not isinstance(targets, dict):
        return None
    lowered = name.lower()
    for target in targets.values():
        if not isinstance(target, dict):
            continue
        for ref_key, ref in target.items():
            match = _direct_match(ref_key.split("/")[0], direct)
            if match is None or not isinstance(ref, dict):
                continue
            edges = ref.get("dependencies")
            if isinstance(edges, dict) and any(d.lower() == lowered for d in edges):
                return match
    return None
