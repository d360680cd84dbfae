"""Host-facing facade: resolve, relocate and hand jars to a classpath host."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from j_dep_resolver.config import ResolverConfig
from j_dep_resolver.exceptions import JDepError, LibraryLoadError
from j_dep_resolver.models import Dependency, Relocation, ResolvedDependency
from j_dep_resolver.relocation import RelocationCacheResolver, RelocationHandler, Relocator
from j_dep_resolver.repository import (
    GOOGLE_MAVEN_CENTRAL_MIRROR,
    JITPACK,
    SONATYPE,
    LocalRepository,
    Repository,
    RepositoryRegistry,
)
from j_dep_resolver.resolver import DependencyResolver, as_dependency


logger = logging.getLogger(__name__)


@runtime_checkable
class ClasspathHost(Protocol):
    """What a code-loading host offers to the manager."""

    def append_search_path(self, path: Path) -> None: ...

    def resolve_symbol(self, name: str) -> Any: ...


@dataclass(frozen=True)
class LoadEntry:
    dependency: Dependency
    path: Path


@dataclass(frozen=True)
class LibraryManagerStats:
    repository_count: int
    loaded_dependency_count: int

    def __str__(self) -> str:
        return (
            f"LibraryManagerStats(repositories={self.repository_count}, "
            f"loaded_dependencies={self.loaded_dependency_count})"
        )


class LibraryManager:
    """Resolves libraries and hands their jar paths to a `ClasspathHost`.

    Dependencies loaded once are remembered and reused by later calls.
    Relocation rules, when given, are applied per artifact through
    `relocator` before the path reaches the host.
    """

    def __init__(
        self,
        config: ResolverConfig | None = None,
        *,
        host: ClasspathHost | None = None,
        relocator: Relocator | None = None,
        session: Any = None,
    ) -> None:
        self.config = config if config is not None else ResolverConfig.from_env()
        self.config.validate()
        self.host = host
        self.relocator = relocator
        self.session = session
        self.registry = RepositoryRegistry(LocalRepository(self.config.cache_dir), self.config.repositories)
        self.registry.local.ensure_exists()
        self._loaded: dict[Dependency, Path] = {}
        self._relocation_handler: RelocationHandler | None = None
        self._update_resolver()
        logger.debug("Initialized LibraryManager with cache directory: %s", self.local.path)

    @property
    def local(self) -> LocalRepository:
        return self.registry.local

    def _update_resolver(self) -> None:
        self.resolver = DependencyResolver.from_config(self.config, registry=self.registry, session=self.session)

    def add_repository(self, url: str) -> Repository:
        repository = self.registry.add(url)
        if repository.url not in self.config.repositories:
            self.config.repositories.append(repository.url)
        return repository

    def add_google_maven_central_mirror(self) -> Repository:
        return self.add_repository(GOOGLE_MAVEN_CENTRAL_MIRROR)

    def add_sonatype(self) -> Repository:
        return self.add_repository(SONATYPE)

    def add_jitpack(self) -> Repository:
        return self.add_repository(JITPACK)

    @property
    def repositories(self) -> list[Repository]:
        return self.registry.remotes

    def optimize_downloads(self) -> "LibraryManager":
        """Apply the download-saving preset and return self."""
        self.config = self.config.optimized()
        self._update_resolver()
        return self

    @property
    def loaded_dependencies(self) -> dict[Dependency, Path]:
        return dict(self._loaded)

    def is_loaded(self, dependency: Dependency) -> bool:
        return dependency in self._loaded

    def stats(self) -> LibraryManagerStats:
        return LibraryManagerStats(
            repository_count=len(self.registry.remotes),
            loaded_dependency_count=len(self._loaded),
        )

    def load_dependency(self, coordinates: Dependency | str) -> list[LoadEntry]:
        """Load one dependency (and its transitive closure).

        Raises:
            CoordinateError: If the coordinate string is malformed.
            LibraryLoadError: See `load_dependencies`.
        """
        return self.load_dependencies([as_dependency(coordinates)])

    def load_dependencies(
        self,
        dependencies: Iterable[Dependency | str],
        relocations: Sequence[Relocation] = (),
        host: ClasspathHost | None = None,
    ) -> list[LoadEntry]:
        """Resolve `dependencies`, relocate them and append them to the host.

        Resolution errors are logged and do not stop the load; whatever did
        resolve is still handed to the host.

        Args:
            dependencies: Root dependencies or coordinate strings.
            relocations: Package rename rules applied to every artifact.
            host: Host receiving the jar paths (default: the manager's host).
                Without any host the entries are only returned.

        Returns:
            One entry per loaded artifact, with the path that was handed out.

        Raises:
            CoordinateError: If a coordinate string is malformed.
            LibraryLoadError: If relocation fails or the host rejects a path.
        """
        roots = [as_dependency(d) for d in dependencies]
        if not roots:
            return []
        target = host if host is not None else self.host

        started = time.monotonic()
        result = self.resolver.resolve(roots)
        if result.has_errors:
            logger.warning("Dependency resolution completed with %d errors", len(result.errors))
            for error in result.errors:
                logger.debug("Resolution error: %s", error)

        try:
            entries = self._apply_relocations(result.resolved, relocations)
            for entry in entries:
                if target is not None:
                    target.append_search_path(entry.path)
                self._loaded[entry.dependency] = entry.path
        except (JDepError, OSError) as exc:
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.error("Failed to load dependencies after %.0f ms: %s", elapsed_ms, exc)
            raise LibraryLoadError(f"Failed to load dependencies: {exc}") from exc

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("Loaded %d dependencies in %.0f ms", len(entries), elapsed_ms)
        return entries

    def resolve_symbol(self, name: str, host: ClasspathHost | None = None) -> Any:
        """Look up `name` through the host that received the loaded jars.

        Raises:
            LibraryLoadError: If no host is available or the host cannot resolve `name`.
        """
        target = host if host is not None else self.host
        if target is None:
            raise LibraryLoadError(f"Cannot resolve {name}: no classpath host configured")
        try:
            return target.resolve_symbol(name)
        except LookupError as exc:
            raise LibraryLoadError(f"Cannot resolve {name}: {exc}") from exc

    def _apply_relocations(
        self, resolved: Sequence[ResolvedDependency], relocations: Sequence[Relocation]
    ) -> list[LoadEntry]:
        entries: list[LoadEntry] = []
        for item in resolved:
            existing = self._loaded.get(item.dependency)
            if existing is not None:
                logger.debug("Using cached dependency: %s", item.dependency.compact())
                entries.append(LoadEntry(item.dependency, existing))
                continue
            path = item.path
            if relocations:
                path = self._handler().relocate_dependency(self.local, item.path, item.dependency, relocations)
            entries.append(LoadEntry(item.dependency, path))
        return entries

    def _handler(self) -> RelocationHandler:
        if self._relocation_handler is None:
            if self.relocator is None:
                raise LibraryLoadError("Relocation rules given but no relocation tool is configured")
            self._relocation_handler = RelocationHandler(self.relocator, RelocationCacheResolver(self.local))
        return self._relocation_handler
