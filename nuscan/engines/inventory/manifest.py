"""Reader for MSBuild project manifests (``*.csproj``, ``*.fsproj``, ``*.vbproj``)."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path, PureWindowsPath

from nuscan.engines.inventory.central_versions import CentralVersionResolver
from nuscan.engines.inventory.models import UNKNOWN, Package, ProjectReference
from nuscan.exceptions import ManifestParseError

MANIFEST_PATTERNS = ["**/*.csproj", "**/*.fsproj", "**/*.vbproj"]


def discover_manifests(repo_path: Path) -> list[Path]:
    """Find every project manifest under *repo_path*, sorted by path."""
    hits: set[Path] = set()
    for pattern in MANIFEST_PATTERNS:
        for hit in repo_path.glob(pattern):
            if hit.is_file():
                hits.add(hit)
    return sorted(hits)


def parse_manifest(path: Path) -> ET.Element:
    """Load a manifest and return its root element.

    Raises :class:`ManifestParseError` if the file cannot be read or is
    not well-formed XML.
    """
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise ManifestParseError(str(path), exc.strerror or str(exc)) from exc
    try:
        return ET.fromstring(content)
    except ET.ParseError as exc:
        raise ManifestParseError(str(path), str(exc)) from exc


# ── element helpers ─────────────────────────────────────────────────────


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.split("}")[-1] if "}" in tag else tag


def iter_local(root: ET.Element, name: str):
    """Iterate descendants whose local tag name equals *name*."""
    for el in root.iter():
        if isinstance(el.tag, str) and local_name(el.tag) == name:
            yield el


def attr_or_child(element: ET.Element, name: str) -> str | None:
    """Non-blank value of attribute *name*, else of a child element *name*."""
    value = element.get(name)
    if value and value.strip():
        return value.strip()
    for child in element:
        if isinstance(child.tag, str) and local_name(child.tag) == name and child.text:
            text = child.text.strip()
            if text:
                return text
    return None


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


# ── readers ─────────────────────────────────────────────────────────────


def read_package_references(
    root: ET.Element,
    project_dir: Path,
    resolver: CentralVersionResolver | None = None,
) -> list[Package]:
    """Direct package references declared in a manifest.

    Name comes from ``Include``, else ``Update``. Version comes from the
    ``Version`` attribute or element, else ``VersionOverride``, else the
    nearest central version file. Missing values become ``"unknown"``.
    """
    packages: list[Package] = []
    for ref in iter_local(root, "PackageReference"):
        name = _blank_to_none(ref.get("Include")) or _blank_to_none(ref.get("Update")) or UNKNOWN

        version = attr_or_child(ref, "Version") or attr_or_child(ref, "VersionOverride")
        if version is None and resolver is not None and name != UNKNOWN:
            version = resolver.resolve(name, project_dir)

        packages.append(Package(name=name, version=version or UNKNOWN))
    return packages


def read_project_references(root: ET.Element) -> list[ProjectReference]:
    """Internal project-to-project references declared in a manifest."""
    refs: list[ProjectReference] = []
    for ref in iter_local(root, "ProjectReference"):
        path = _blank_to_none(ref.get("Include")) or UNKNOWN
        # Include paths are usually Windows-style (..\Lib\Lib.csproj)
        name = PureWindowsPath(path).stem if path != UNKNOWN else UNKNOWN
        private_assets = attr_or_child(ref, "PrivateAssets") or ""
        refs.append(
            ProjectReference(
                project_name=name or UNKNOWN,
                path=path,
                is_private=private_assets.lower() == "all",
                condition=_blank_to_none(ref.get("Condition")),
            )
        )
    return refs


def drop_project_named_packages(
    packages: list[Package], project_refs: list[ProjectReference]
) -> list[Package]:
    """Remove direct packages that share a name with a referenced project."""
    ref_names = {r.project_name.lower() for r in project_refs}
    return [p for p in packages if p.name.lower() not in ref_names]
