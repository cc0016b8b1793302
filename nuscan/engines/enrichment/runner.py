"""EnrichmentRunner — best-effort registry and local-cache metadata passes.

Each pass owns a disjoint set of ``PackageInfo`` fields, so passes for
the same package may overlap without locking:

1. local license      -> license, license_url, source_type, commercial
2. latest version     -> latest_version
3. latest license     -> latest_license, latest_license_url
4. publish date       -> latest_published (direct packages only)

Pass 3 for a package runs right after pass 2 for the same package.
Every lookup failure is logged and leaves the owned fields unset.
"""

from __future__ import annotations

import asyncio
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

import httpx
import structlog

from nuscan.core.config import Settings
from nuscan.engines.enrichment.classification import classify_source
from nuscan.engines.enrichment.licenses import local_nuspec_path, parse_nuspec
from nuscan.engines.enrichment.nuget_client import NuGetClient
from nuscan.engines.enrichment.versions import pick_latest_version
from nuscan.engines.inventory.models import PackageInfo, is_unknown
from nuscan.exceptions import PackageNotFoundError, RegistryError

log = structlog.get_logger("nuscan.engine")

# Errors that mean "no data for this package" rather than a bug.
_LOOKUP_ERRORS = (RegistryError, httpx.HTTPError, ET.ParseError, ValueError)


class EnrichmentRunner:
    """Fill enrichment fields on a set of ``PackageInfo`` records in place."""

    def __init__(
        self,
        client: NuGetClient,
        settings: Settings | None = None,
        packages_folder: Path | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or Settings()
        self._packages_folder = packages_folder

    async def enrich(
        self,
        packages: Iterable[PackageInfo],
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Run all passes. Returns once every started lookup has finished.

        Once *cancel_event* is set no new lookup is started; fields already
        written are kept.
        """
        cancel = cancel_event or asyncio.Event()
        items = [p for p in packages if not is_unknown(p.name) and not is_unknown(p.version)]
        if not items:
            return

        local_sem = asyncio.Semaphore(self._settings.local_concurrency)
        version_sem = asyncio.Semaphore(self._settings.version_concurrency)
        license_sem = asyncio.Semaphore(self._settings.license_concurrency)
        date_sem = asyncio.Semaphore(self._settings.publish_date_concurrency)

        tasks = []
        for info in items:
            tasks.append(self._guard(self._local_license(info, local_sem, cancel), info, "local_license"))
            tasks.append(
                self._guard(
                    self._latest_version_and_license(info, version_sem, license_sem, cancel),
                    info,
                    "latest_version",
                )
            )
            if info.is_direct:
                tasks.append(self._guard(self._publish_date(info, date_sem, cancel), info, "publish_date"))

        await asyncio.gather(*tasks)

        log.info(
            "enrichment.done",
            packages=len(items),
            outdated=sum(1 for p in items if p.has_newer_version),
            license_changes=sum(1 for p in items if p.has_license_change),
            cancelled=cancel.is_set(),
        )

    # ── passes ─────────────────────────────────────────────────────────────

    async def _local_license(
        self, info: PackageInfo, sem: asyncio.Semaphore, cancel: asyncio.Event
    ) -> None:
        if self._packages_folder is None:
            return
        async with sem:
            if cancel.is_set():
                return
            try:
                content = await asyncio.to_thread(self._read_local_nuspec, info)
            except OSError as exc:
                log.warning("enrichment.local_nuspec_unreadable", package=info.key, error=str(exc))
                return
        if content is None:
            return

        try:
            meta = parse_nuspec(content)
        except ET.ParseError as exc:
            log.warning("enrichment.local_nuspec_invalid", package=info.key, error=str(exc))
            return
        if not meta.license:
            return
        info.license = meta.license
        info.license_url = meta.license_url
        info.source_type, info.commercial = classify_source(
            info.name,
            license_text=meta.license,
            license_url=meta.license_url,
            project_url=meta.project_url,
            repository_url=meta.repository_url,
            authors=meta.authors,
            owners=meta.owners,
        )

    def _read_local_nuspec(self, info: PackageInfo) -> str | None:
        assert self._packages_folder is not None
        path = local_nuspec_path(self._packages_folder, info.name, info.version)
        if path is None:
            return None
        return path.read_text(encoding="utf-8-sig")

    async def _latest_version_and_license(
        self,
        info: PackageInfo,
        version_sem: asyncio.Semaphore,
        license_sem: asyncio.Semaphore,
        cancel: asyncio.Event,
    ) -> None:
        async with version_sem:
            if cancel.is_set():
                return
            try:
                versions = await self._client.fetch_versions(info.name, cancel_event=cancel)
            except PackageNotFoundError:
                log.debug("enrichment.package_not_found", package=info.name)
                return
            except _LOOKUP_ERRORS as exc:
                log.warning("enrichment.latest_version_failed", package=info.name, error=str(exc))
                return

        latest = pick_latest_version(versions)
        if latest is None:
            return
        info.latest_version = latest

        async with license_sem:
            if cancel.is_set():
                return
            try:
                content = await self._client.fetch_nuspec(info.name, latest, cancel_event=cancel)
                meta = parse_nuspec(content)
            except PackageNotFoundError:
                log.debug("enrichment.nuspec_not_found", package=info.name, version=latest)
                return
            except _LOOKUP_ERRORS as exc:
                log.warning(
                    "enrichment.latest_license_failed",
                    package=info.name,
                    version=latest,
                    error=str(exc),
                )
                return

        if meta.license:
            info.latest_license = meta.license
            info.latest_license_url = meta.license_url

    async def _publish_date(
        self, info: PackageInfo, sem: asyncio.Semaphore, cancel: asyncio.Event
    ) -> None:
        async with sem:
            if cancel.is_set():
                return
            try:
                published = await self._client.fetch_published_date(
                    info.name, cancel_event=cancel
                )
            except PackageNotFoundError:
                log.debug("enrichment.registration_not_found", package=info.name)
                return
            except _LOOKUP_ERRORS as exc:
                log.warning("enrichment.publish_date_failed", package=info.name, error=str(exc))
                return
        info.latest_published = published

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    async def _guard(coro, info: PackageInfo, stage: str) -> None:
        """Keep one package's failure from aborting the gather."""
        try:
            await coro
        except Exception as exc:
            log.error(
                "enrichment.failed",
                package=info.key,
                stage=stage,
                error=str(exc),
                exc_info=True,
            )
