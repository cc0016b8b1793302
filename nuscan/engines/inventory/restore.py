"""``dotnet`` subprocess helpers: package restore and local cache lookup."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

log = structlog.get_logger("nuscan.engine")

_GLOBAL_PACKAGES_PREFIX = "global-packages:"
_LOCALS_TIMEOUT = 30.0  # seconds


async def restore_packages(root: Path, timeout: float = 600.0) -> bool:
    """Run ``dotnet restore <root>`` so lock and assets files exist.

    Failure is tolerated: a missing ``dotnet`` binary, a non-zero exit or
    a restore running past *timeout* seconds is logged and ``False``
    returned.
    """
    try:
        returncode, _, stderr = await _run(["dotnet", "restore", str(root)], timeout=timeout)
    except OSError as exc:
        log.warning("inventory.restore_unavailable", root=str(root), error=str(exc))
        return False
    except asyncio.TimeoutError:
        log.warning("inventory.restore_timeout", root=str(root), timeout=timeout)
        return False

    if returncode != 0:
        log.warning(
            "inventory.restore_failed",
            root=str(root),
            exit_code=returncode,
            stderr=stderr.strip()[:2000],
        )
        return False

    log.info("inventory.restore_done", root=str(root))
    return True


async def locate_global_packages_folder() -> Path | None:
    """Where NuGet caches extracted packages, or None if unknown.

    Order: ``NUGET_PACKAGES``, then ``dotnet nuget locals global-packages
    --list``, then ``~/.nuget/packages`` if it exists.
    """
    env = os.environ.get("NUGET_PACKAGES")
    if env and env.strip():
        return Path(env.strip())

    try:
        returncode, stdout, _ = await _run(
            ["dotnet", "nuget", "locals", "global-packages", "--list"], timeout=_LOCALS_TIMEOUT
        )
    except (OSError, asyncio.TimeoutError) as exc:
        log.debug("inventory.nuget_locals_unavailable", error=str(exc) or type(exc).__name__)
    else:
        if returncode == 0:
            folder = parse_global_packages_output(stdout)
            if folder is not None:
                return folder

    fallback = Path.home() / ".nuget" / "packages"
    if fallback.is_dir():
        return fallback
    return None


def parse_global_packages_output(output: str) -> Path | None:
    """Extract the folder from ``global-packages: <path>`` output."""
    for line in output.splitlines():
        line = line.strip()
        # Some SDKs prefix the line with "info : "
        if line.lower().startswith("info :"):
            line = line[len("info :"):].strip()
        if line.lower().startswith(_GLOBAL_PACKAGES_PREFIX):
            value = line[len(_GLOBAL_PACKAGES_PREFIX):].strip()
            if value:
                return Path(value)
    return None


async def _run(cmd: list[str], timeout: float) -> tuple[int, str, str]:
    """Run a command, returning ``(exit code, stdout, stderr)``.

    The process is killed and ``asyncio.TimeoutError`` raised when it
    outlives *timeout* seconds.
    """
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )
