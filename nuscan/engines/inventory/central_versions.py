"""Central package management — ``Directory.Packages.props`` lookup."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import structlog

from nuscan.engines.inventory.models import CentralVersionOverrideFile

log = structlog.get_logger("nuscan.engine")

CENTRAL_VERSIONS_FILE = "Directory.Packages.props"


def _local(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


def _value(element: ET.Element, name: str) -> str | None:
    value = element.get(name)
    if value and value.strip():
        return value.strip()
    for child in element:
        if isinstance(child.tag, str) and _local(child.tag) == name and child.text:
            if child.text.strip():
                return child.text.strip()
    return None


def parse_central_versions(path: Path) -> CentralVersionOverrideFile:
    """Parse ``PackageVersion`` entries from one props file.

    Read or parse failures are logged and give an empty mapping.
    """
    result = CentralVersionOverrideFile(path=str(path))
    try:
        root = ET.fromstring(path.read_bytes())
    except (OSError, ET.ParseError) as exc:
        log.warning("inventory.central_versions_unreadable", path=str(path), error=str(exc))
        return result

    for el in root.iter():
        if not isinstance(el.tag, str) or _local(el.tag) != "PackageVersion":
            continue
        name = (el.get("Include") or el.get("Update") or "").strip()
        if not name:
            continue
        version = _value(el, "Version") or _value(el, "VersionOverride")
        if version:
            result.versions[name.lower()] = version
    return result


class CentralVersionResolver:
    """Nearest-ancestor version lookup across all props files in a repository.

    Call :meth:`refresh` once before resolving; it discovers every props
    file up front. Each file is parsed at most once per refresh.
    """

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()
        # directory (resolved) -> props file path
        self._index: dict[Path, Path] = {}
        self._cache: dict[Path, CentralVersionOverrideFile] = {}

    @property
    def files(self) -> list[Path]:
        return sorted(self._index.values())

    def refresh(self) -> None:
        self._index.clear()
        self._cache.clear()
        try:
            for hit in self._root.rglob("*"):
                if hit.name.lower() == CENTRAL_VERSIONS_FILE.lower() and hit.is_file():
                    self._index[hit.parent.resolve()] = hit
        except OSError as exc:
            log.warning("inventory.central_versions_discovery_failed", root=str(self._root), error=str(exc))
            self._index.clear()
        log.debug("inventory.central_versions_discovered", count=len(self._index))

    def resolve(self, package_name: str, start_dir: Path) -> str | None:
        """Version of *package_name* from the nearest props file defining it."""
        if not self._index:
            return None

        current = start_dir.resolve()
        while True:
            props = self._index.get(current)
            if props is not None:
                version = self._load(props).get(package_name)
                if version:
                    return version
            if current == self._root or current.parent == current:
                return None
            current = current.parent

    def _load(self, path: Path) -> CentralVersionOverrideFile:
        cached = self._cache.get(path)
        if cached is None:
            cached = parse_central_versions(path)
            self._cache[path] = cached
        return cached
