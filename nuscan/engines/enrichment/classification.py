"""License normalization and source/commercial classification.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from enum import Enum


class SourceType(str, Enum):
    OPEN_SOURCE = "Open Source"
    CLOSED_SOURCE = "Closed Source"
    UNKNOWN = "Unknown"


class Commercial(str, Enum):
    YES = "Yes"
    NO = "No"
    UNKNOWN = "Unknown"


SEE_URL = "See URL"
SEE_PACKAGE_CONTENTS = "See package contents"

_LICENSE_SYNONYMS: dict[str, str] = {
    "mit": "mit",
    "mit license": "mit",
    "the mit license": "mit",
    "apache-2.0": "apache-2.0",
    "apache 2.0": "apache-2.0",
    "apache license 2.0": "apache-2.0",
    "bsd-3-clause": "bsd-3-clause",
    "bsd 3-clause": "bsd-3-clause",
    "bsd": "bsd",
    "gpl-3.0": "gpl-3.0",
    "gpl v3": "gpl-3.0",
    "see url": "see url",
    "see package contents": "see package contents",
}

# Order matters: first substring hit wins.
_LICENSE_URL_HINTS: tuple[tuple[str, str], ...] = (
    ("mit", "MIT"),
    ("apache", "Apache-2.0"),
    ("bsd", "BSD"),
    ("gpl", "GPL"),
)

_OPEN_SOURCE_LICENSES = (
    "mit", "apache", "bsd", "gpl", "lgpl", "mpl", "isc", "unlicense",
    "cc0", "zlib", "ms-pl", "ms-rl", "eclipse", "cddl", "artistic",
)
_OPEN_LICENSE_HOSTS = ("github.com", "opensource.org")
_OPEN_REPO_HOSTS = (
    "github.com", "gitlab.com", "bitbucket.org", "codeplex.com", "sourceforge.net",
)
_MICROSOFT_PREFIXES = ("microsoft.", "system.")
_COMMERCIAL_INDICATORS = (
    "commercial", "proprietary", "enterprise", "professional", "premium",
    "telerik", "devexpress", "syncfusion", "infragistics", "componentone",
)
_COMMERCIAL_LICENSES = ("proprietary", "commercial", "eula")


def normalize_license(license_text: str | None) -> str:
    """Canonical token for license comparison."""
    if not license_text:
        return ""
    normalized = license_text.strip().lower()
    return _LICENSE_SYNONYMS.get(normalized, normalized)


def license_from_url(license_url: str) -> str:
    """Guess a license identifier from a license URL."""
    lowered = license_url.lower()
    for needle, license_id in _LICENSE_URL_HINTS:
        if needle in lowered:
            return license_id
    return SEE_URL


def _lower(value: str | None) -> str:
    return value.lower() if value else ""


def classify_source(
    package_name: str,
    license_text: str | None = None,
    license_url: str | None = None,
    project_url: str | None = None,
    repository_url: str | None = None,
    authors: str | None = None,
    owners: str | None = None,
) -> tuple[SourceType, Commercial]:
    """Classify a package as open/closed source and commercial or not.

    Uses fixed keyword tables over the license text, license URL,
    project/repository URLs and author/owner strings.
    """
    package_id = package_name.lower()
    lic = _lower(license_text)
    lic_url = _lower(license_url)
    author_str = _lower(authors)
    owner_str = _lower(owners)

    is_open_source = bool(lic) and any(k in lic for k in _OPEN_SOURCE_LICENSES)

    if not is_open_source and lic_url:
        is_open_source = any(k in lic_url for k in _OPEN_SOURCE_LICENSES) or any(
            host in lic_url for host in _OPEN_LICENSE_HOSTS
        )

    if not is_open_source:
        urls = [u for u in (_lower(project_url), _lower(repository_url)) if u]
        is_open_source = any(host in url for url in urls for host in _OPEN_REPO_HOSTS)

    is_microsoft = (
        package_id.startswith(_MICROSOFT_PREFIXES)
        or "microsoft" in author_str
        or "microsoft" in owner_str
    )

    has_commercial_indicators = any(
        k in lic or k in author_str or k in package_id for k in _COMMERCIAL_INDICATORS
    )
    has_commercial_license = bool(lic) and any(k in lic for k in _COMMERCIAL_LICENSES)

    if is_open_source:
        source_type = SourceType.OPEN_SOURCE
    elif has_commercial_license or has_commercial_indicators or is_microsoft:
        source_type = SourceType.CLOSED_SOURCE
    else:
        source_type = SourceType.UNKNOWN

    if has_commercial_license or has_commercial_indicators:
        commercial = Commercial.YES
    elif is_open_source or is_microsoft:
        commercial = Commercial.NO
    else:
        commercial = Commercial.UNKNOWN

    return source_type, commercial
