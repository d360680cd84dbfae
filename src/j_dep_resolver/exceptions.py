"""Custom exceptions for J-Dep Resolver."""

from __future__ import annotations


class JDepError(Exception):
    """Base exception for J-Dep Resolver."""


class CoordinateError(JDepError):
    """Raised when a coordinate string or field is malformed."""


class PomNotFoundError(JDepError):
    """Raised when a pom file cannot be found."""


class PomParseError(JDepError):
    """Raised when a pom file cannot be parsed."""


class PomModelError(JDepError):
    """Raised when required Maven model fields are missing or invalid."""


class MetadataParseError(JDepError):
    """Raised when a maven-metadata.xml document cannot be parsed."""


class VersionResolutionError(JDepError):
    """Raised when no version can be determined for a dependency."""


class ArtifactDownloadError(JDepError):
    """Raised when every repository failed to provide an artifact.

    Attributes:
        causes: One exception per repository that was tried, in order.
    """

    def __init__(self, message: str, causes: list[Exception] | None = None) -> None:
        super().__init__(message)
        self.causes: list[Exception] = list(causes or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.causes:
            return base
        details = "; ".join(str(c) for c in self.causes)
        return f"{base} ({details})"


class RelocationError(JDepError):
    """Raised when an artifact cannot be relocated."""


class LibraryLoadError(JDepError):
    """Raised when resolved libraries cannot be handed to the host."""
