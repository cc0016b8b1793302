"""Shared fixtures for nuscan tests.

No network access: registry calls go through ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from nuscan.core.config import Settings
from nuscan.engines.enrichment.nuget_client import NuGetClient


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write *content* at *relative* under tmp_path, creating parents."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_json(write_file) -> Callable[[str, object], Path]:
    def _write(relative: str, data: object) -> Path:
        return write_file(relative, json.dumps(data))

    return _write


@pytest.fixture
def settings() -> Settings:
    return Settings(registry_url="https://registry.test")


@pytest.fixture
def make_client(settings: Settings) -> Callable[..., NuGetClient]:
    """Build a NuGetClient whose requests are answered by *handler*."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> NuGetClient:
        transport = httpx.MockTransport(handler)
        http = httpx.AsyncClient(base_url=settings.registry_url, transport=transport)
        return NuGetClient(settings, client=http)

    return _make
