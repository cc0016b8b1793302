"""Custom exceptions for nuscan."""


class NuscanError(Exception):
    """Base exception for all nuscan errors."""


class ManifestParseError(NuscanError):
    """Raised when a project manifest cannot be read or is not valid XML."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"could not parse {path}: {reason}")


class RegistryError(NuscanError):
    """Raised when the package registry returns an unusable response."""


class PackageNotFoundError(RegistryError):
    """Raised when the registry has no entry for a package or version."""

    def __init__(self, package_id: str, version: str | None = None):
        self.package_id = package_id
        self.version = version
        target = f"{package_id} {version}" if version else package_id
        super().__init__(f"{target} not found in registry")
