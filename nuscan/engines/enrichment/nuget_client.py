"""Async NuGet V3 registry client with retries."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

import httpx
import structlog

from nuscan.core.config import Settings
from nuscan.exceptions import PackageNotFoundError, RegistryError

log = structlog.get_logger("nuscan.engine")

_MAX_RETRIES = 2
_RETRY_BASE_DELAY = 0.5  # seconds


def _parse_timestamp(value: str) -> datetime:
    # registry timestamps carry a trailing "Z" and up to 7 fractional digits
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    return datetime.fromisoformat(text)


class NuGetClient:
    """Thin async wrapper around the NuGet V3 flat-container and registration APIs.

    Pass *client* to supply a pre-built ``httpx.AsyncClient`` (e.g. one with
    a mock transport); it is closed together with this wrapper.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.registry_url,
            headers={"User-Agent": self._settings.user_agent},
            follow_redirects=True,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NuGetClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def fetch_versions(
        self, package_id: str, *, cancel_event: asyncio.Event | None = None
    ) -> list[str]:
        """All published versions of *package_id*, in registry order."""
        lower_id = package_id.lower()
        resp = await self._request_with_retry(
            f"/v3-flatcontainer/{lower_id}/index.json",
            timeout=self._settings.version_timeout,
            package_id=package_id,
            cancel_event=cancel_event,
        )
        data = self._json(resp)
        versions = data.get("versions") if isinstance(data, dict) else None
        if not isinstance(versions, list):
            raise RegistryError(f"unexpected version index shape for {package_id}")
        return [str(v) for v in versions if v]

    async def fetch_nuspec(
        self, package_id: str, version: str, *, cancel_event: asyncio.Event | None = None
    ) -> str:
        """Raw nuspec XML for one package version."""
        lower_id = package_id.lower()
        resp = await self._request_with_retry(
            f"/v3-flatcontainer/{lower_id}/{version.lower()}/{lower_id}.nuspec",
            timeout=self._settings.license_timeout,
            package_id=package_id,
            version=version,
            cancel_event=cancel_event,
        )
        return resp.text

    async def fetch_published_date(
        self, package_id: str, *, cancel_event: asyncio.Event | None = None
    ) -> datetime | None:
        """Root ``commitTimeStamp`` of the package's registration index."""
        resp = await self._request_with_retry(
            f"/v3/registration5-semver1/{package_id.lower()}/index.json",
            timeout=self._settings.license_timeout,
            package_id=package_id,
            cancel_event=cancel_event,
        )
        data = self._json(resp)
        stamp = data.get("commitTimeStamp") if isinstance(data, dict) else None
        if not stamp:
            return None
        try:
            return _parse_timestamp(str(stamp))
        except ValueError as exc:
            raise RegistryError(f"bad commitTimeStamp for {package_id}: {stamp!r}") from exc

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RegistryError(f"invalid JSON from {resp.request.url}") from exc

    async def _request_with_retry(
        self,
        url: str,
        *,
        timeout: float,
        package_id: str,
        version: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx.

        404 and timeouts are final. No retry starts once *cancel_event* is set.
        """
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url, timeout=timeout)

                if resp.status_code == 404:
                    raise PackageNotFoundError(package_id, version)

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "nuget.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException:
                log.warning("nuget.timeout", url=url, timeout=timeout, attempt=attempt + 1)
                raise

            if cancel_event is not None and cancel_event.is_set():
                log.debug("nuget.retry_cancelled", url=url, attempt=attempt + 1)
                break
            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]
