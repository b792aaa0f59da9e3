from __future__ import annotations


class BuildError(Exception):
    """Base class for every failure that aborts a unit build."""

    kind = "build"

    def __init__(
        self,
        message: str,
        *,
        unit_id: str | None = None,
        module: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.unit_id = unit_id
        self.module = module

    def __str__(self) -> str:
        if self.module:
            return f"{self.message} (in {self.module})"
        return self.message


class TransformError(BuildError):
    kind = "transform"


class ResolutionError(BuildError):
    kind = "resolution"


class BundleWriteError(BuildError):
    kind = "bundle_write"


class DigestError(BuildError):
    kind = "digest"


class ManifestError(BuildError):
    kind = "manifest"


__all__ = [
    "BuildError",
    "TransformError",
    "ResolutionError",
    "BundleWriteError",
    "DigestError",
    "ManifestError",
]
