"""Data models for the dependency inventory engine.

Pure data structures, no I/O. ``PackageInfo`` carries the
enrichment fields; each of them is written by exactly one enrichment pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from nuscan.engines.enrichment.classification import Commercial, SourceType, normalize_license
from nuscan.engines.enrichment.versions import is_newer_version

UNKNOWN = "unknown"

DEFAULT_STALE_AFTER = timedelta(days=365)


def is_unknown(value: str | None) -> bool:
    """True for blank values and the ``"unknown"`` sentinel (any case)."""
    return value is None or not value.strip() or value.strip().lower() == UNKNOWN


@dataclass(frozen=True)
class Package:
    """A direct package reference declared in a manifest."""

    name: str
    version: str


@dataclass(frozen=True)
class TransitiveDependency:
    """A package pulled in indirectly through a direct dependency."""

    package_name: str
    version: str
    source_package: str | None = None
    depth: int = 1
    is_private: bool = False


@dataclass(frozen=True)
class ProjectReference:
    """A reference to another project in the same repository."""

    project_name: str
    path: str
    is_private: bool = False
    condition: str | None = None


@dataclass(frozen=True)
class ProjectDescriptor:
    """Everything the scan learned about one manifest file."""

    project_path: str
    project_name: str
    relative_path: str
    direct_dependencies: tuple[Package, ...] = ()
    project_references: tuple[ProjectReference, ...] = ()
    transitive_dependencies: tuple[TransitiveDependency, ...] = ()
    parse_errors: tuple[str, ...] = ()


@dataclass
class CentralVersionOverrideFile:
    """A parsed ``Directory.Packages.props`` file.

    ``versions`` is keyed by lower-cased package name.
    """

    path: str
    versions: dict[str, str] = field(default_factory=dict)

    def get(self, package_name: str) -> str | None:
        return self.versions.get(package_name.lower())


@dataclass
class PackageVersionMismatch:
    """A package resolved to more than one version across the repository."""

    package_name: str
    project_versions: dict[str, set[str]]

    @property
    def versions(self) -> set[str]:
        return {v for vs in self.project_versions.values() for v in vs}


@dataclass
class PackageInfo:
    """One distinct ``name@version`` pair observed in the repository."""

    name: str
    version: str
    is_direct: bool
    projects: set[str] = field(default_factory=set)
    # local license pass
    license: str | None = None
    license_url: str | None = None
    source_type: SourceType = SourceType.UNKNOWN
    commercial: Commercial = Commercial.UNKNOWN
    # latest version pass
    latest_version: str | None = None
    # latest license pass
    latest_license: str | None = None
    latest_license_url: str | None = None
    # publish date pass
    latest_published: datetime | None = None
    stale_after: timedelta = DEFAULT_STALE_AFTER

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def has_newer_version(self) -> bool:
        if not self.latest_version:
            return False
        if self.latest_version.lower() == self.version.lower():
            return False
        return is_newer_version(self.latest_version, self.version)

    @property
    def has_license_change(self) -> bool:
        if not self.license or not self.latest_license:
            return False
        return normalize_license(self.license) != normalize_license(self.latest_license)

    def is_stale_at(self, now: datetime, stale_after: timedelta | None = None) -> bool:
        if self.latest_published is None:
            return False
        if stale_after is None:
            stale_after = self.stale_after
        published = self.latest_published
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)
        return now - published > stale_after

    @property
    def is_stale(self) -> bool:
        return self.is_stale_at(datetime.now(timezone.utc))


@dataclass
class InventoryReport:
    """Result of one repository scan, handed as-is to a renderer."""

    root_path: str
    projects: list[ProjectDescriptor] = field(default_factory=list)
    mismatches: list[PackageVersionMismatch] = field(default_factory=list)
    packages: dict[str, PackageInfo] = field(default_factory=dict)
    stale_after: timedelta = DEFAULT_STALE_AFTER

    def __post_init__(self) -> None:
        # packages judge staleness by the report threshold
        for info in self.packages.values():
            info.stale_after = self.stale_after

    @property
    def direct_count(self) -> int:
        return sum(1 for p in self.packages.values() if p.is_direct)

    @property
    def transitive_count(self) -> int:
        return sum(1 for p in self.packages.values() if not p.is_direct)

    @property
    def outdated(self) -> list[PackageInfo]:
        return sorted(
            (p for p in self.packages.values() if p.has_newer_version),
            key=lambda p: p.name.lower(),
        )

    @property
    def license_changes(self) -> list[PackageInfo]:
        return sorted(
            (p for p in self.packages.values() if p.has_license_change),
            key=lambda p: p.name.lower(),
        )

    @property
    def stale(self) -> list[PackageInfo]:
        now = datetime.now(timezone.utc)
        return sorted(
            (p for p in self.packages.values() if p.is_stale_at(now, self.stale_after)),
            key=lambda p: p.name.lower(),
        )

    @property
    def projects_with_errors(self) -> list[ProjectDescriptor]:
        return [p for p in self.projects if p.parse_errors]
