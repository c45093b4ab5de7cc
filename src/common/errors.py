"""Exception taxonomy shared by the registry, versioning and resolution layers."""

from __future__ import annotations

from typing import Optional


class DepshiftError(Exception):
    """Base class for all depshift errors."""


class ConfigurationError(DepshiftError):
    """Invalid resolution settings; raised before any resolution work begins."""


class RegistryLookupFailed(DepshiftError):
    """A registry query for one package could not be answered."""

    def __init__(self, package: str, detail: str, spec: Optional[str] = None):
        self.package = package
        self.detail = detail
        self.spec = spec
        target = f"{package}@{spec}" if spec else package
        super().__init__(f"registry lookup failed for {target}: {detail}")


class InvalidVersionSpec(DepshiftError):
    """A version or range string that cannot be parsed."""

    def __init__(self, raw: str, detail: str = "unparseable version spec"):
        self.raw = raw
        self.detail = detail
        super().__init__(f"invalid version spec '{raw}': {detail}")


class InvalidPackageName(DepshiftError, ValueError):
    """A package name that is empty or malformed."""


class ManifestFrozen(DepshiftError):
    """Mutation attempted on a manifest whose resolution has finished."""


class ResolutionError(DepshiftError):
    """The resolver was driven outside its state machine."""
