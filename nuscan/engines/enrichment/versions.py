"""NuGet version helpers: pre-release detection, latest pick, ordering."""

from __future__ import annotations

import re

_SUFFIX_RE = re.compile(r"[-+].*$")


def is_prerelease(version: str) -> bool:
    """A version is pre-release if it has a pre-release or build-metadata part."""
    return "-" in version or "+" in version


def pick_latest_version(versions: list[str]) -> str | None:
    """Pick the latest stable version from a registry-ordered list.

    The flat-container index lists versions in ascending order, so the
    last stable entry is the latest. When every entry is a pre-release,
    the last entry overall is returned.
    """
    candidates = [v for v in versions if v and v.strip()]
    if not candidates:
        return None
    stable = [v for v in candidates if not is_prerelease(v)]
    return stable[-1] if stable else candidates[-1]


def _parse_numeric(version: str) -> list[int] | None:
    if not version:
        return None
    clean = _SUFFIX_RE.sub("", version)
    parts: list[int] = []
    for piece in clean.split("."):
        if not piece.isdigit():
            return None
        parts.append(int(piece))
    return parts


def is_newer_version(latest: str | None, current: str) -> bool:
    """True if *latest* sorts strictly after *current*.

    Numeric dotted parts are compared pairwise (suffixes stripped); on a
    tie the version with more parts wins. Falls back to a case-insensitive
    string comparison when either side is not numeric.
    """
    if not latest:
        return False

    current_parts = _parse_numeric(current)
    latest_parts = _parse_numeric(latest)
    if current_parts is not None and latest_parts is not None:
        for new, old in zip(latest_parts, current_parts):
            if new > old:
                return True
            if new < old:
                return False
        return len(latest_parts) > len(current_parts)

    return latest.lower() > current.lower()
