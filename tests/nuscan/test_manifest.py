"""Tests for the manifest reader and central version resolver."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from nuscan.engines.inventory.central_versions import (
    CentralVersionResolver,
    parse_central_versions,
)
from nuscan.engines.inventory.manifest import (
    discover_manifests,
    drop_project_named_packages,
    parse_manifest,
    read_package_references,
    read_project_references,
)
from nuscan.engines.inventory.models import Package, ProjectReference
from nuscan.exceptions import ManifestParseError

_MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"


def csproj(*items: str) -> str:
    body = "\n".join(f"    {i}" for i in items)
    return (
        "<Project Sdk=\"Microsoft.NET.Sdk\">\n  <ItemGroup>\n"
        f"{body}\n  </ItemGroup>\n</Project>\n"
    )


def _props(*entries: str) -> str:
    body = "\n".join(f"    {e}" for e in entries)
    return f"<Project>\n  <ItemGroup>\n{body}\n  </ItemGroup>\n</Project>\n"


# ── Discovery / parsing ─────────────────────────────────────────────────


class TestDiscoverAndParse:
    def test_discovers_all_project_kinds(self, write_file, tmp_path):
        write_file("src/App/App.csproj", csproj())
        write_file("src/Lib/Lib.fsproj", csproj())
        write_file("src/Old/Old.vbproj", csproj())
        write_file("README.md", "x")

        found = [p.name for p in discover_manifests(tmp_path)]
        assert sorted(found) == ["App.csproj", "Lib.fsproj", "Old.vbproj"]

    def test_parse_manifest_malformed_raises(self, write_file):
        path = write_file("Bad.csproj", "<Project><ItemGroup>")
        with pytest.raises(ManifestParseError) as exc_info:
            parse_manifest(path)
        assert exc_info.value.path == str(path)

    def test_parse_manifest_missing_file_raises(self, tmp_path):
        with pytest.raises(ManifestParseError):
            parse_manifest(tmp_path / "Nope.csproj")


# ── PackageReference ────────────────────────────────────────────────────


class TestPackageReferences:
    def test_version_attribute(self, tmp_path):
        root = ET.fromstring(csproj('<PackageReference Include="Serilog" Version="4.0.0" />'))
        assert read_package_references(root, tmp_path) == [Package("Serilog", "4.0.0")]

    def test_version_element(self, tmp_path):
        root = ET.fromstring(
            csproj('<PackageReference Include="Serilog"><Version>3.1.1</Version></PackageReference>')
        )
        assert read_package_references(root, tmp_path) == [Package("Serilog", "3.1.1")]

    def test_update_used_when_include_missing(self, tmp_path):
        root = ET.fromstring(csproj('<PackageReference Update="Polly" Version="8.2.0" />'))
        assert read_package_references(root, tmp_path) == [Package("Polly", "8.2.0")]

    def test_missing_name_and_version_are_unknown(self, tmp_path):
        root = ET.fromstring(csproj("<PackageReference />"))
        assert read_package_references(root, tmp_path) == [Package("unknown", "unknown")]

    def test_blank_include_counts_as_absent(self, tmp_path):
        root = ET.fromstring(csproj('<PackageReference Include="  " Update="Dapper" Version="2.1.0" />'))
        assert read_package_references(root, tmp_path)[0].name == "Dapper"

    def test_version_override_attribute(self, tmp_path):
        root = ET.fromstring(
            csproj('<PackageReference Include="xunit" VersionOverride="2.9.0" />')
        )
        assert read_package_references(root, tmp_path) == [Package("xunit", "2.9.0")]

    def test_legacy_namespaced_project(self, tmp_path):
        xml = (
            f'<Project xmlns="{_MSBUILD_NS}"><ItemGroup>'
            '<PackageReference Include="NUnit"><Version>3.14.0</Version></PackageReference>'
            "</ItemGroup></Project>"
        )
        assert read_package_references(ET.fromstring(xml), tmp_path) == [Package("NUnit", "3.14.0")]

    def test_no_references(self, tmp_path):
        assert read_package_references(ET.fromstring(csproj()), tmp_path) == []

    def test_central_version_fallback(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="Serilog" Version="4.0.0" />'))
        project = write_file("src/App/App.csproj", csproj('<PackageReference Include="serilog" />'))
        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()

        refs = read_package_references(parse_manifest(project), project.parent, resolver)
        assert refs == [Package("serilog", "4.0.0")]

    def test_explicit_version_beats_central(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="Serilog" Version="4.0.0" />'))
        project = write_file(
            "src/App/App.csproj", csproj('<PackageReference Include="Serilog" Version="3.0.0" />')
        )
        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()

        refs = read_package_references(parse_manifest(project), project.parent, resolver)
        assert refs == [Package("Serilog", "3.0.0")]


# ── ProjectReference ────────────────────────────────────────────────────


class TestProjectReferences:
    def test_windows_path_stem(self):
        root = ET.fromstring(
            csproj(r'<ProjectReference Include="..\Shared\Shared.Core.csproj" PrivateAssets="All" />')
        )
        refs = read_project_references(root)
        assert refs == [
            ProjectReference(
                project_name="Shared.Core",
                path=r"..\Shared\Shared.Core.csproj",
                is_private=True,
                condition=None,
            )
        ]

    def test_condition_and_not_private(self):
        root = ET.fromstring(
            csproj(
                '<ProjectReference Include="../Lib/Lib.csproj" '
                "Condition=\"'$(Configuration)' == 'Debug'\" />"
            )
        )
        ref = read_project_references(root)[0]
        assert ref.project_name == "Lib"
        assert ref.is_private is False
        assert ref.condition == "'$(Configuration)' == 'Debug'"

    def test_missing_include(self):
        ref = read_project_references(ET.fromstring(csproj("<ProjectReference />")))[0]
        assert ref.project_name == "unknown"
        assert ref.path == "unknown"

    def test_drop_project_named_packages(self):
        packages = [Package("Lib", "1.0.0"), Package("Serilog", "4.0.0")]
        refs = [ProjectReference(project_name="lib", path="../lib/lib.csproj")]
        assert drop_project_named_packages(packages, refs) == [Package("Serilog", "4.0.0")]


# ── Central version resolver ────────────────────────────────────────────


class TestCentralVersionResolver:
    def test_nearest_ancestor_wins(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="X" Version="1.0" />'))
        write_file("src/Directory.Packages.props", _props('<PackageVersion Include="X" Version="2.0" />'))
        project_dir = tmp_path / "src" / "P"
        project_dir.mkdir(parents=True)

        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("X", project_dir) == "2.0"

    def test_falls_through_to_outer_file(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="Y" Version="1.5" />'))
        write_file("src/Directory.Packages.props", _props('<PackageVersion Include="X" Version="2.0" />'))
        project_dir = tmp_path / "src" / "P"
        project_dir.mkdir(parents=True)

        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("y", project_dir) == "1.5"

    def test_no_file_anywhere(self, tmp_path):
        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("X", tmp_path) is None

    def test_sibling_file_not_used(self, write_file, tmp_path):
        write_file("other/Directory.Packages.props", _props('<PackageVersion Include="X" Version="9.9" />'))
        project_dir = tmp_path / "src" / "P"
        project_dir.mkdir(parents=True)

        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("X", project_dir) is None

    def test_does_not_walk_above_root(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="X" Version="1.0" />'))
        repo = tmp_path / "repo"
        (repo / "P").mkdir(parents=True)

        resolver = CentralVersionResolver(repo)
        resolver.refresh()
        assert resolver.resolve("X", repo / "P") is None

    def test_case_insensitive_file_name(self, write_file, tmp_path):
        write_file("directory.packages.props", _props('<PackageVersion Include="X" Version="1.0" />'))
        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("X", tmp_path) == "1.0"

    def test_version_override_used_when_version_absent(self, write_file):
        path = write_file(
            "Directory.Packages.props",
            _props(
                '<PackageVersion Include="A" VersionOverride="3.0" />',
                '<PackageVersion Update="B"><Version>4.0</Version></PackageVersion>',
            ),
        )
        parsed = parse_central_versions(path)
        assert parsed.get("a") == "3.0"
        assert parsed.get("B") == "4.0"

    def test_malformed_file_does_not_block_outer_file(self, write_file, tmp_path):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="X" Version="1.0" />'))
        write_file("src/Directory.Packages.props", "<Project><ItemGroup>")
        project_dir = tmp_path / "src"

        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()
        assert resolver.resolve("X", project_dir) == "1.0"

    def test_file_parsed_once(self, write_file, tmp_path, monkeypatch):
        write_file("Directory.Packages.props", _props('<PackageVersion Include="X" Version="1.0" />'))
        resolver = CentralVersionResolver(tmp_path)
        resolver.refresh()

        calls: list[Path] = []
        import nuscan.engines.inventory.central_versions as mod

        original = mod.parse_central_versions

        def _counting(path):
            calls.append(path)
            return original(path)

        monkeypatch.setattr(mod, "parse_central_versions", _counting)
        resolver.resolve("X", tmp_path)
        resolver.resolve("Y", tmp_path)
        resolver.resolve("X", tmp_path)
        assert len(calls) == 1
