"""Runtime settings read from ``NUSCAN_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_REGISTRY_URL = "https://api.nuget.org"
DEFAULT_USER_AGENT = "nuscan/0.1"


def _env_str(key: str, default: str) -> str:
    value = os.environ.get(key)
    return value if value else default


def _env_int(key: str, default: int, minimum: int | None = None) -> int:
    value = int(os.environ.get(key, default))
    if minimum is not None and value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Knobs for the scan and enrichment pipeline.

    Concurrency values are per-pass semaphore sizes and must be at least 1.
    Timeouts are in seconds: per HTTP call, or for the whole
    ``dotnet restore`` run.
    """

    registry_url: str = DEFAULT_REGISTRY_URL
    user_agent: str = DEFAULT_USER_AGENT
    version_concurrency: int = 5
    license_concurrency: int = 3
    local_concurrency: int = 8
    publish_date_concurrency: int = 5
    version_timeout: float = 10.0
    license_timeout: float = 15.0
    stale_after_days: int = 365
    skip_restore: bool = False
    restore_timeout: float = 600.0

    def __post_init__(self) -> None:
        for name in (
            "version_concurrency",
            "license_concurrency",
            "local_concurrency",
            "publish_date_concurrency",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            registry_url=_env_str("NUSCAN_REGISTRY_URL", DEFAULT_REGISTRY_URL).rstrip("/"),
            user_agent=_env_str("NUSCAN_USER_AGENT", DEFAULT_USER_AGENT),
            version_concurrency=_env_int("NUSCAN_VERSION_CONCURRENCY", 5, minimum=1),
            license_concurrency=_env_int("NUSCAN_LICENSE_CONCURRENCY", 3, minimum=1),
            local_concurrency=_env_int("NUSCAN_LOCAL_CONCURRENCY", 8, minimum=1),
            publish_date_concurrency=_env_int("NUSCAN_PUBLISH_DATE_CONCURRENCY", 5, minimum=1),
            version_timeout=_env_float("NUSCAN_VERSION_TIMEOUT", 10.0),
            license_timeout=_env_float("NUSCAN_LICENSE_TIMEOUT", 15.0),
            stale_after_days=_env_int("NUSCAN_STALE_AFTER_DAYS", 365),
            skip_restore=_env_bool("NUSCAN_SKIP_RESTORE", False),
            restore_timeout=_env_float("NUSCAN_RESTORE_TIMEOUT", 600.0),
        )
