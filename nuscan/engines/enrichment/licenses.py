"""Parse ``.nuspec`` package metadata and locate it in the local cache."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from nuscan.engines.enrichment.classification import (
    SEE_PACKAGE_CONTENTS,
    license_from_url,
)


@dataclass
class NuspecMetadata:
    """The subset of nuspec ``<metadata>`` used for license classification."""

    license: str | None = None
    license_url: str | None = None
    project_url: str | None = None
    repository_url: str | None = None
    authors: str | None = None
    owners: str | None = None


def _local(tag: str) -> str:
    # nuspec namespaces vary by schema year; match on local name only
    return tag.split("}")[-1] if "}" in tag else tag


def _text(element: ET.Element | None) -> str | None:
    if element is None or not element.text:
        return None
    text = element.text.strip()
    return text or None


def _find(parent: ET.Element, name: str) -> ET.Element | None:
    for child in parent:
        if _local(child.tag) == name:
            return child
    return None


def parse_nuspec(content: str) -> NuspecMetadata:
    """Extract license and provenance fields from nuspec XML.

    License resolution: ``<license type="expression">`` gives its text,
    ``type="file"`` gives ``"See package contents"``; otherwise the
    ``<licenseUrl>`` is mapped through a keyword heuristic.

    Raises ``xml.etree.ElementTree.ParseError`` for malformed XML.
    """
    root = ET.fromstring(content.lstrip("\ufeff"))
    metadata = _find(root, "metadata") if _local(root.tag) != "metadata" else root
    if metadata is None:
        return NuspecMetadata()

    result = NuspecMetadata(
        project_url=_text(_find(metadata, "projectUrl")),
        authors=_text(_find(metadata, "authors")),
        owners=_text(_find(metadata, "owners")),
        license_url=_text(_find(metadata, "licenseUrl")),
    )

    repository = _find(metadata, "repository")
    if repository is not None:
        url = (repository.get("url") or "").strip()
        result.repository_url = url or None

    license_el = _find(metadata, "license")
    if license_el is not None:
        license_type = (license_el.get("type") or "").strip().lower()
        if license_type == "expression":
            result.license = _text(license_el)
        elif license_type == "file":
            result.license = SEE_PACKAGE_CONTENTS

    if result.license is None and result.license_url:
        result.license = license_from_url(result.license_url)

    return result


def local_nuspec_path(packages_folder: Path, package_id: str, version: str) -> Path | None:
    """Return the cached nuspec for *package_id*/*version*, or None.

    Looks for ``<id lower>.nuspec`` first, then ``<id>.nuspec`` as
    written by older clients.
    """
    package_dir = packages_folder / package_id.lower() / version.lower()
    for candidate in (
        package_dir / f"{package_id.lower()}.nuspec",
        package_dir / f"{package_id}.nuspec",
    ):
        if candidate.is_file():
            return candidate
    return None
