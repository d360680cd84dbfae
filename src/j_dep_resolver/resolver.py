"""The resolution engine: transitive graph discovery followed by artifact download."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.config import ResolverConfig
from j_dep_resolver.downloader import ArtifactDownloader
from j_dep_resolver.exceptions import JDepError
from j_dep_resolver.exclusions import ExclusionRules
from j_dep_resolver.graph import find_cycles
from j_dep_resolver.hierarchy import PomProcessor
from j_dep_resolver.models import Dependency, ResolutionResult, ResolvedDependency
from j_dep_resolver.repository import LocalRepository, RepositoryRegistry
from j_dep_resolver.versions import VersionResolver


logger = logging.getLogger(__name__)

MAX_RESOLUTION_ITERATIONS = 50
ITERATION_LIMIT_MESSAGE = "Maximum resolution iterations reached - possible circular dependencies"


def as_dependency(value: Dependency | str) -> Dependency:
    if isinstance(value, Dependency):
        return value
    return Dependency.parse(value)


class DependencyResolver:
    """Resolves root dependencies into the transitive set of downloaded artifacts.

    Every call to `resolve` works on its own `ResolutionCache`, so one
    instance may serve concurrent callers; only the local artifact cache on
    disk is shared.
    """

    def __init__(
        self,
        registry: RepositoryRegistry,
        *,
        session: Any = None,
        max_transitive_depth: int | None = None,
        exclude_group_ids: Iterable[str] = (),
        exclude_artifacts: Iterable[str] = (),
        include_optional: bool = False,
        include_test: bool = False,
        include_dependency_management: bool = False,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
        metadata_ttl: float = 86400.0,
    ) -> None:
        self.registry = registry
        self.max_transitive_depth = None if max_transitive_depth is None else max(0, max_transitive_depth)
        self.exclusions = ExclusionRules(exclude_group_ids, exclude_artifacts)
        self.downloader = ArtifactDownloader(
            registry,
            session=session,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            metadata_ttl=metadata_ttl,
            include_optional=include_optional,
            include_test=include_test,
        )
        self.versions = VersionResolver(self.downloader)
        self.processor = PomProcessor(
            self.downloader,
            self.versions,
            exclusions=self.exclusions,
            include_dependency_management=include_dependency_management,
        )

    @classmethod
    def from_config(
        cls,
        config: ResolverConfig,
        *,
        registry: RepositoryRegistry | None = None,
        session: Any = None,
    ) -> "DependencyResolver":
        """Build a resolver from `config`.

        An existing `registry` is reused as is (its local root and remotes
        take precedence over `config.cache_dir` and `config.repositories`).

        Raises:
            ValueError: If the configuration is invalid.
        """
        config.validate()
        if registry is None:
            registry = RepositoryRegistry(LocalRepository(config.cache_dir), config.repositories)
        registry.local.ensure_exists()
        return cls(
            registry,
            session=session,
            max_transitive_depth=config.max_transitive_depth,
            exclude_group_ids=config.exclude_group_ids,
            exclude_artifacts=config.exclude_artifacts,
            include_optional=config.include_optional,
            include_test=config.include_test,
            include_dependency_management=config.include_dependency_management,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            metadata_ttl=config.metadata_ttl,
        )

    def _exceeds_depth(self, depth: int) -> bool:
        return depth > 0 and self.max_transitive_depth is not None and depth > self.max_transitive_depth

    def resolve(self, roots: Iterable[Dependency | str]) -> ResolutionResult:
        """Resolve `roots` and everything they transitively need.

        Failures are collected per coordinate in `ResolutionResult.errors`;
        only malformed root coordinates raise.

        Raises:
            CoordinateError: If a root coordinate string is malformed.
        """
        root_deps = [as_dependency(r) for r in roots]
        logger.info("Resolving %d root dependencies", len(root_deps))
        cache = ResolutionCache()
        accumulated, edges, errors = self._discover(root_deps, cache)

        warnings = [
            "Circular dependency detected: " + " -> ".join(cycle) for cycle in find_cycles(edges)
        ]
        for warning in warnings:
            logger.warning(warning)

        logger.info("Resolved %d dependencies", len(accumulated))
        resolved = self._download_all(accumulated.values(), errors)
        return ResolutionResult(resolved=resolved, errors=errors, warnings=warnings, edges=edges)

    def _discover(
        self, roots: list[Dependency], cache: ResolutionCache
    ) -> tuple[dict[str, Dependency], list[tuple[str, str]], list[str]]:
        accumulated: dict[str, Dependency] = {}
        edges: list[tuple[str, str]] = []
        errors: list[str] = []

        to_process: dict[str, Dependency] = {}
        for root in roots:
            cache.set_depth(root.compact(), 0)
            to_process.setdefault(root.compact(), root)

        iteration = 1
        while to_process:
            batch = list(to_process.values())
            to_process = {}
            logger.debug("=== Iteration %d - Processing %d dependencies ===", iteration, len(batch))

            for dependency in batch:
                key = dependency.compact()
                if cache.is_processed(key):
                    continue
                if self.exclusions.matches(dependency):
                    logger.debug("Skipping excluded dependency: %s", key)
                    cache.mark_processed(key)
                    continue
                depth = cache.depth(key, 0)
                if self._exceeds_depth(depth):
                    logger.debug("Skipping dependency exceeding max depth: %s", key)
                    cache.mark_processed(key)
                    continue

                try:
                    self._expand(dependency, depth, cache, accumulated, edges, errors, to_process)
                except (JDepError, OSError) as exc:
                    cache.mark_processed(key)
                    errors.append(f"Failed to resolve dependency {key}: {exc}")
                    logger.debug("Resolution error for %s: %s", key, exc)

            iteration += 1
            if iteration > MAX_RESOLUTION_ITERATIONS and to_process:
                errors.append(ITERATION_LIMIT_MESSAGE)
                logger.warning(ITERATION_LIMIT_MESSAGE)
                break

        return accumulated, edges, errors

    def _expand(
        self,
        dependency: Dependency,
        depth: int,
        cache: ResolutionCache,
        accumulated: dict[str, Dependency],
        edges: list[tuple[str, str]],
        errors: list[str],
        to_process: dict[str, Dependency],
    ) -> None:
        key = dependency.compact()
        resolved = self.versions.resolve_version(dependency, cache)
        resolved_key = resolved.compact()
        cache.mark_processed(key)
        if resolved_key != key:
            if cache.is_processed(resolved_key):
                return
            cache.mark_processed(resolved_key)
            cache.set_depth(resolved_key, depth)

        logger.debug("Processing: %s", resolved_key)
        accumulated.setdefault(resolved_key, resolved)

        context = self.processor.process(resolved, cache)
        if context is None:
            return
        errors.extend(context.errors)
        logger.debug("Found %d transitive dependencies for %s", len(context.dependencies), resolved_key)
        for transitive in context.dependencies:
            transitive_key = transitive.compact()
            edges.append((resolved_key, transitive_key))
            if cache.is_processed(transitive_key) or transitive_key in to_process:
                continue
            cache.set_depth(transitive_key, depth + 1)
            to_process[transitive_key] = transitive
            logger.debug("  + %s (depth %d)", transitive_key, depth + 1)

    def _download_all(self, dependencies: Iterable[Dependency], errors: list[str]) -> list[ResolvedDependency]:
        resolved: list[ResolvedDependency] = []
        for dependency in dependencies:
            try:
                result = self.downloader.download_jar(dependency)
            except (JDepError, OSError) as exc:
                errors.append(f"Failed to download jar for {dependency.compact()}: {exc}")
                logger.debug("Download error for %s: %s", dependency.compact(), exc)
                continue
            resolved.append(ResolvedDependency(dependency=dependency, path=result.path))
            if result.downloaded_from is not None:
                logger.info("Downloaded %s from %s", dependency.compact(), result.downloaded_from)
        return resolved
