"""Resolver configuration module.

Configuration is read from environment variables and can be overridden
field by field (the CLI does this from its options).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from j_dep_resolver.repository import GOOGLE_MAVEN_CENTRAL_MIRROR


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_list(name: str) -> list[str]:
    value = os.getenv(name) or ""
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _env_depth(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class ResolverConfig:
    """Resolver configuration container.

    Attributes:
        cache_dir: Root of the local artifact cache.
        repositories: Remote repository base URLs, tried in order.
        max_transitive_depth: Deepest transitive level to expand (None = unlimited).
        include_optional: Follow `<optional>true</optional>` dependencies.
        include_test: Follow test-scope dependencies.
        include_dependency_management: Treat managed entries as dependencies.
        exclude_group_ids: Group ids never resolved.
        exclude_artifacts: `group:artifact` wildcard patterns never resolved.
        connect_timeout: HTTP connect timeout in seconds.
        read_timeout: HTTP read timeout in seconds.
        metadata_ttl: Seconds a cached maven-metadata.xml stays fresh.
    """

    cache_dir: Path = field(default_factory=lambda: Path("libs").resolve())
    repositories: list[str] = field(default_factory=lambda: [GOOGLE_MAVEN_CENTRAL_MIRROR])
    max_transitive_depth: int | None = None
    include_optional: bool = False
    include_test: bool = False
    include_dependency_management: bool = False
    exclude_group_ids: list[str] = field(default_factory=list)
    exclude_artifacts: list[str] = field(default_factory=list)
    connect_timeout: float = 30.0
    read_timeout: float = 60.0
    metadata_ttl: float = 86400.0

    @classmethod
    def from_env(cls) -> "ResolverConfig":
        """Create configuration from environment variables.

        Environment variables:
            JDEP_CACHE_DIR: Local artifact cache (default: "libs")
            JDEP_REPOSITORIES: Comma-separated repository URLs
                (default: the Google Maven Central mirror)
            JDEP_MAX_DEPTH: Max transitive depth (default: unlimited)
            JDEP_INCLUDE_OPTIONAL, JDEP_INCLUDE_TEST,
            JDEP_INCLUDE_DEP_MANAGEMENT: Booleans (1/true/yes/on)
            JDEP_EXCLUDE_GROUPS: Comma-separated group ids
            JDEP_EXCLUDE_ARTIFACTS: Comma-separated group:artifact wildcards
            JDEP_CONNECT_TIMEOUT, JDEP_READ_TIMEOUT: Seconds (default: 30 / 60)
            JDEP_METADATA_TTL: Seconds (default: 86400)

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        repositories = _env_list("JDEP_REPOSITORIES") or [GOOGLE_MAVEN_CENTRAL_MIRROR]
        return cls(
            cache_dir=Path(os.getenv("JDEP_CACHE_DIR", "libs")).resolve(),
            repositories=repositories,
            max_transitive_depth=_env_depth("JDEP_MAX_DEPTH"),
            include_optional=_env_bool("JDEP_INCLUDE_OPTIONAL"),
            include_test=_env_bool("JDEP_INCLUDE_TEST"),
            include_dependency_management=_env_bool("JDEP_INCLUDE_DEP_MANAGEMENT"),
            exclude_group_ids=_env_list("JDEP_EXCLUDE_GROUPS"),
            exclude_artifacts=_env_list("JDEP_EXCLUDE_ARTIFACTS"),
            connect_timeout=_env_float("JDEP_CONNECT_TIMEOUT", 30.0),
            read_timeout=_env_float("JDEP_READ_TIMEOUT", 60.0),
            metadata_ttl=_env_float("JDEP_METADATA_TTL", 86400.0),
        )

    def optimized(self) -> "ResolverConfig":
        """Return a copy with the download-saving preset applied.

        Depth 3, no optional or test dependencies, `javax.servlet` excluded.
        """
        groups = list(self.exclude_group_ids)
        if "javax.servlet" not in groups:
            groups.append("javax.servlet")
        return ResolverConfig(
            cache_dir=self.cache_dir,
            repositories=list(self.repositories),
            max_transitive_depth=3,
            include_optional=False,
            include_test=False,
            include_dependency_management=self.include_dependency_management,
            exclude_group_ids=groups,
            exclude_artifacts=list(self.exclude_artifacts),
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            metadata_ttl=self.metadata_ttl,
        )

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If a value is out of range.
        """
        if self.max_transitive_depth is not None and self.max_transitive_depth < 0:
            raise ValueError("JDEP_MAX_DEPTH cannot be negative")
        if self.connect_timeout <= 0:
            raise ValueError("JDEP_CONNECT_TIMEOUT must be positive")
        if self.read_timeout <= 0:
            raise ValueError("JDEP_READ_TIMEOUT must be positive")
        if self.metadata_ttl < 0:
            raise ValueError("JDEP_METADATA_TTL cannot be negative")
