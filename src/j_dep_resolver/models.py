"""Pydantic models for Maven coordinates, descriptors and resolution results."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from j_dep_resolver.exceptions import CoordinateError


DEFAULT_SCOPE = "compile"
METADATA_FILE_NAME = "maven-metadata.xml"

_BRACE_PLACEHOLDER = "{}"


def sanitize(value: str) -> str:
    """Restore brace-escaped dots.

    Build scripts that get shaded write package names as ``com{}example`` so
    the shading tool does not rewrite them; this turns them back into
    ``com.example``.
    """
    return value.replace(_BRACE_PLACEHOLDER, ".")


def _clean_optional(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = sanitize(value.strip())
        return cleaned or None
    return value


class GAV(BaseModel):
    """Maven coordinates (GroupId, ArtifactId, Version, Classifier).

    `version` is None while it still has to be inferred from dependency
    management or repository metadata. `is_bom` marks BOM imports found
    during graph discovery and takes part in equality.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: str | None = None
    classifier: str | None = None
    is_bom: bool = False

    @field_validator("group_id", "artifact_id", mode="before")
    @classmethod
    def _normalize_required(cls, value: Any) -> Any:
        if isinstance(value, str):
            return sanitize(value.strip())
        return value

    @field_validator("version", "classifier", mode="before")
    @classmethod
    def _normalize_optional(cls, value: Any) -> Any:
        return _clean_optional(value)

    @classmethod
    def parse(cls, coordinates: str) -> "GAV":
        """Parse ``groupId:artifactId[:version[:classifier]]``.

        Raises:
            CoordinateError: If the string has fewer than two parts or an
                empty groupId/artifactId.
        """
        parts = [p.strip() for p in (coordinates or "").strip().split(":")]
        if len(parts) < 2 or len(parts) > 4:
            raise CoordinateError(
                f"Invalid coordinates '{coordinates}'. "
                "Expected: groupId:artifactId[:version[:classifier]]"
            )
        if not parts[0]:
            raise CoordinateError(f"Group ID cannot be empty: '{coordinates}'")
        if not parts[1]:
            raise CoordinateError(f"Artifact ID cannot be empty: '{coordinates}'")
        version = parts[2] if len(parts) > 2 else None
        classifier = parts[3] if len(parts) > 3 else None
        return cls(group_id=parts[0], artifact_id=parts[1], version=version, classifier=classifier)

    def key(self) -> str:
        """Return the group-artifact key (`groupId:artifactId`)."""
        return f"{self.group_id}:{self.artifact_id}"

    def compact(self) -> str:
        """Return the full coordinate string.

        Returns:
            A string like `groupId:artifactId:version[:classifier]`.
        """
        if self.version is None:
            return self.key() if not self.classifier else f"{self.key()}::{self.classifier}"
        coords = f"{self.key()}:{self.version}"
        if self.classifier:
            coords += f":{self.classifier}"
        return coords

    def with_version(self, version: str | None) -> "GAV":
        return GAV(**{**self.model_dump(), "version": version})

    def with_classifier(self, classifier: str | None) -> "GAV":
        return GAV(**{**self.model_dump(), "classifier": classifier})

    def as_bom(self) -> "GAV":
        return self.model_copy(update={"is_bom": True})

    def as_not_bom(self) -> "GAV":
        return self.model_copy(update={"is_bom": False})

    def _require_version(self) -> str:
        if not self.version:
            raise CoordinateError(f"Coordinates {self.compact()} have no version")
        return self.version

    def repository_path(self) -> str:
        """Return `group/path/artifact/version` relative to a repository root."""
        return f"{self.group_id.replace('.', '/')}/{self.artifact_id}/{self._require_version()}"

    def metadata_path(self) -> str:
        return f"{self.group_id.replace('.', '/')}/{self.artifact_id}/{METADATA_FILE_NAME}"

    def jar_file_name(self) -> str:
        name = f"{self.artifact_id}-{self._require_version()}"
        if self.classifier:
            name += f"-{self.classifier}"
        return f"{name}.jar"

    def pom_file_name(self) -> str:
        return f"{self.artifact_id}-{self._require_version()}.pom"

    def jar_path(self, root: Path) -> Path:
        return root / self.repository_path() / self.jar_file_name()

    def pom_path(self, root: Path) -> Path:
        return root / self.repository_path() / self.pom_file_name()

    def local_metadata_path(self, root: Path) -> Path:
        return root / self.metadata_path()

    def jar_url(self, repository_url: str) -> str:
        return f"{repository_url.rstrip('/')}/{self.repository_path()}/{self.jar_file_name()}"

    def pom_url(self, repository_url: str) -> str:
        return f"{repository_url.rstrip('/')}/{self.repository_path()}/{self.pom_file_name()}"

    def metadata_url(self, repository_url: str) -> str:
        return f"{repository_url.rstrip('/')}/{self.metadata_path()}"


class Dependency(BaseModel):
    """A Maven dependency entry."""

    model_config = ConfigDict(frozen=True)

    gav: GAV
    scope: str = DEFAULT_SCOPE
    optional: bool = False
    fallback_repository: str | None = None

    @field_validator("scope", mode="before")
    @classmethod
    def _default_scope(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_SCOPE
        if isinstance(value, str):
            return value.strip() or DEFAULT_SCOPE
        return value

    @classmethod
    def of(
        cls,
        group_id: str,
        artifact_id: str,
        version: str | None = None,
        classifier: str | None = None,
        **kwargs: Any,
    ) -> "Dependency":
        gav = GAV(group_id=group_id, artifact_id=artifact_id, version=version, classifier=classifier)
        return cls(gav=gav, **kwargs)

    @classmethod
    def parse(cls, coordinates: str, **kwargs: Any) -> "Dependency":
        """Build a dependency from `groupId:artifactId[:version[:classifier]]`."""
        return cls(gav=GAV.parse(coordinates), **kwargs)

    @property
    def group_id(self) -> str:
        return self.gav.group_id

    @property
    def artifact_id(self) -> str:
        return self.gav.artifact_id

    @property
    def version(self) -> str | None:
        return self.gav.version

    @property
    def classifier(self) -> str | None:
        return self.gav.classifier

    def key(self) -> str:
        return self.gav.key()

    def compact(self) -> str:
        return self.gav.compact()

    def with_version(self, version: str | None) -> "Dependency":
        return self.model_copy(update={"gav": self.gav.with_version(version)})

    def with_gav(self, gav: GAV) -> "Dependency":
        return self.model_copy(update={"gav": gav})

    def label(self) -> str:
        """Return a user-facing label for the dependency.

        Returns:
            A formatted string including the coordinates and scope when not
            the default.
        """
        parts: list[str] = [self.gav.compact()]
        if self.scope != DEFAULT_SCOPE:
            parts.append(f"(scope={self.scope})")
        if self.optional:
            parts.append("(optional)")
        if self.fallback_repository:
            parts.append(f"(fallback={self.fallback_repository})")
        return " ".join(parts)


class ParentRef(BaseModel):
    """The `<parent>` reference of a pom."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)

    def to_dependency(self) -> Dependency:
        return Dependency.of(self.group_id, self.artifact_id, self.version)

    def compact(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


class MavenProject(BaseModel):
    """A parsed Maven pom.

    `group_id` and `version` may be inherited from `parent`.
    `dependency_management` maps group-artifact keys to managed versions and
    `boms` lists the BOMs imported through `<scope>import</scope>`.
    """

    group_id: str | None = None
    artifact_id: str = Field(..., min_length=1)
    version: str | None = None
    parent: ParentRef | None = None
    properties: dict[str, str] = Field(default_factory=dict)
    dependency_management: dict[str, str] = Field(default_factory=dict)
    boms: list[GAV] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)

    def compact(self) -> str:
        return f"{self.group_id or '?'}:{self.artifact_id}:{self.version or '?'}"


class ArtifactMetadata(BaseModel):
    """Contents of a per-artifact maven-metadata.xml."""

    group_id: str | None = None
    artifact_id: str | None = None
    latest: str | None = None
    release: str | None = None
    versions: list[str] = Field(default_factory=list)

    def best_version(self) -> str | None:
        """Pick `release`, then `latest`, then the last listed version."""
        if self.release and self.release.strip():
            return self.release.strip()
        if self.latest and self.latest.strip():
            return self.latest.strip()
        if self.versions:
            return self.versions[-1]
        return None


class Relocation(BaseModel):
    """A package rename rule applied when relocating an artifact."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., min_length=1)
    relocated_pattern: str = Field(..., min_length=1)

    @field_validator("pattern", "relocated_pattern", mode="before")
    @classmethod
    def _sanitize(cls, value: Any) -> Any:
        if isinstance(value, str):
            return sanitize(value.strip())
        return value

    @classmethod
    def of(cls, pattern: str, relocated_pattern: str) -> "Relocation":
        return cls(pattern=pattern, relocated_pattern=relocated_pattern)

    def description(self) -> str:
        return f"{self.pattern} -> {self.relocated_pattern}"


class ResolvedDependency(BaseModel):
    """A dependency whose artifact is present in the local cache."""

    model_config = ConfigDict(frozen=True)

    dependency: Dependency
    path: Path

    def __str__(self) -> str:
        return f"{self.dependency.compact()} -> {self.path}"


class ResolutionResult(BaseModel):
    """Outcome of one resolution call.

    Errors never invalidate the resolved entries; callers decide whether a
    non-empty `errors` list is fatal for them.
    """

    model_config = ConfigDict(frozen=True)

    resolved: list[ResolvedDependency] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    edges: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def dependency_count(self) -> int:
        return len(self.resolved)

    def deduplicated(self) -> list[ResolvedDependency]:
        """Collapse to one entry per group-artifact key, highest version winning."""
        from j_dep_resolver.collector import DependencyCollector

        collector = DependencyCollector()
        by_coords: dict[str, ResolvedDependency] = {}
        for entry in self.resolved:
            by_coords[entry.dependency.compact()] = entry
            collector.add(entry.dependency)
        return [by_coords[d.compact()] for d in collector.dependencies() if d.compact() in by_coords]
