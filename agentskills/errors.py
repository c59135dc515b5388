from __future__ import annotations


class InstallerError(RuntimeError):
    """Base class for installer failures."""


class ConfigurationError(InstallerError):
    """Invalid flag, environment or prompt value. Raised before any write."""

    def __init__(self, message: str, *, value: str | None = None) -> None:
        super().__init__(message)
        self.value = value


class DiscoveryError(InstallerError):
    pass


class PlacementError(InstallerError):
    """Failure scoped to a single (skill, runtime) pair."""

    kind = "PlacementError"


class TemplateMissing(PlacementError):
    kind = "TemplateMissing"


class WriteFailure(PlacementError):
    kind = "WriteFailure"


class UnsafePath(PlacementError):
    kind = "UnsafePath"
