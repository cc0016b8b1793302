"""Tests for nuspec parsing and local cache lookup."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

from nuscan.engines.enrichment.licenses import local_nuspec_path, parse_nuspec

_NS = "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd"


def _nuspec(metadata: str, ns: str = _NS) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<package xmlns="{ns}"><metadata>{metadata}</metadata></package>'
    )


class TestParseNuspec:
    def test_license_expression(self):
        meta = parse_nuspec(
            _nuspec(
                "<id>Serilog</id>"
                '<license type="expression">Apache-2.0</license>'
                "<licenseUrl>https://licenses.nuget.org/Apache-2.0</licenseUrl>"
                "<authors>Serilog Contributors</authors>"
                "<projectUrl>https://serilog.net/</projectUrl>"
                '<repository type="git" url="https://github.com/serilog/serilog" />'
            )
        )
        assert meta.license == "Apache-2.0"
        assert meta.license_url == "https://licenses.nuget.org/Apache-2.0"
        assert meta.authors == "Serilog Contributors"
        assert meta.project_url == "https://serilog.net/"
        assert meta.repository_url == "https://github.com/serilog/serilog"

    def test_license_file(self):
        meta = parse_nuspec(_nuspec('<license type="file">LICENSE.txt</license>'))
        assert meta.license == "See package contents"

    def test_license_url_heuristic(self):
        meta = parse_nuspec(
            _nuspec("<licenseUrl>https://github.com/JamesNK/Newtonsoft.Json/blob/master/LICENSE.md</licenseUrl>")
        )
        assert meta.license == "See URL"

    def test_license_url_mit(self):
        meta = parse_nuspec(_nuspec("<licenseUrl>https://opensource.org/licenses/MIT</licenseUrl>"))
        assert meta.license == "MIT"

    def test_no_license_info(self):
        meta = parse_nuspec(_nuspec("<id>X</id><owners>Contoso</owners>"))
        assert meta.license is None
        assert meta.owners == "Contoso"

    def test_older_schema_namespace(self):
        meta = parse_nuspec(
            _nuspec(
                '<license type="expression">MIT</license>',
                ns="http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd",
            )
        )
        assert meta.license == "MIT"

    def test_malformed(self):
        with pytest.raises(ET.ParseError):
            parse_nuspec("<package><metadata>")


class TestLocalNuspecPath:
    def test_lowercase_layout(self, tmp_path):
        target = tmp_path / "newtonsoft.json" / "13.0.3" / "newtonsoft.json.nuspec"
        target.parent.mkdir(parents=True)
        target.write_text("<package />")
        assert local_nuspec_path(tmp_path, "Newtonsoft.Json", "13.0.3") == target

    def test_original_case_file_name(self, tmp_path):
        target = tmp_path / "polly" / "8.2.0-beta" / "Polly.nuspec"
        target.parent.mkdir(parents=True)
        target.write_text("<package />")
        assert local_nuspec_path(tmp_path, "Polly", "8.2.0-Beta") == target

    def test_missing(self, tmp_path):
        assert local_nuspec_path(tmp_path, "Nope", "1.0.0") is None
