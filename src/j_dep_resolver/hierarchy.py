"""Parent-hierarchy merging, BOM imports and transitive dependency version resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.downloader import ArtifactDownloader
from j_dep_resolver.exceptions import VersionResolutionError
from j_dep_resolver.exclusions import ExclusionRules
from j_dep_resolver.models import Dependency, MavenProject
from j_dep_resolver.parser import has_placeholder, resolve_placeholders
from j_dep_resolver.versions import VersionResolver


logger = logging.getLogger(__name__)

MAX_PARENT_HIERARCHY_DEPTH = 10
BUILTIN_PREFIXES = ("project.", "pom.", "this.")


@dataclass(frozen=True)
class PomContext:
    """A merged pom and its resolved transitive dependencies."""

    project: MavenProject
    dependencies: list[Dependency] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class PomProcessor:
    """Turns a dependency into its resolved transitive dependencies.

    The pom is fetched, its parent chain merged (the topmost parent wins for
    properties, the nearer ancestor wins for dependency management and the
    leaf's own management always wins), imported BOMs are folded in beneath
    explicit management, and each declared dependency gets a version.
    """

    def __init__(
        self,
        downloader: ArtifactDownloader,
        versions: VersionResolver,
        *,
        exclusions: ExclusionRules | None = None,
        include_dependency_management: bool = False,
    ) -> None:
        self.downloader = downloader
        self.versions = versions
        self.exclusions = exclusions or ExclusionRules()
        self.include_dependency_management = include_dependency_management

    def process(self, dependency: Dependency, cache: ResolutionCache) -> PomContext | None:
        project = self.downloader.fetch_pom(dependency, cache)
        if project is None:
            logger.debug("No pom found for: %s", dependency.compact())
            return None

        merged = self.merge_hierarchy(self.collect_hierarchy(project, cache), cache)
        dependencies, errors = self.resolve_dependencies(merged, cache)
        return PomContext(project=merged, dependencies=dependencies, errors=errors)

    def collect_hierarchy(self, project: MavenProject, cache: ResolutionCache) -> list[MavenProject]:
        """Return `[leaf, parent, grandparent, ...]`.

        Climbing stops at the first parent that cannot be fetched, at a parent
        already seen, or after MAX_PARENT_HIERARCHY_DEPTH parents.
        """
        hierarchy = [project]
        seen = {project.compact()}
        current = project
        while current.parent is not None:
            parent_ref = current.parent
            if parent_ref.compact() in seen:
                logger.debug("Parent cycle at %s", parent_ref.compact())
                break
            if len(hierarchy) > MAX_PARENT_HIERARCHY_DEPTH:
                logger.warning(
                    "Maximum parent hierarchy depth reached (%d) for %s",
                    MAX_PARENT_HIERARCHY_DEPTH,
                    project.artifact_id,
                )
                break
            logger.debug("Processing parent pom: %s", parent_ref.compact())
            parent = self.downloader.fetch_pom(parent_ref.to_dependency(), cache)
            if parent is None:
                logger.debug("Could not download parent pom: %s", parent_ref.compact())
                break
            hierarchy.append(parent)
            seen.add(parent_ref.compact())
            current = parent
        return hierarchy

    def merge_hierarchy(
        self,
        hierarchy: list[MavenProject],
        cache: ResolutionCache,
        *,
        bom_depth: int = 0,
    ) -> MavenProject:
        """Merge properties and dependency management along a pom hierarchy.

        Properties are taken from the topmost parent inward, each level only
        filling keys that are still unset. Management runs the other way: the
        leaf overwrites, and among ancestors the nearer one wins.

        The merged management table is also added to the call-wide
        accumulation in `cache.global_management`.
        """
        if not hierarchy:
            raise ValueError("pom hierarchy cannot be empty")

        properties: dict[str, str] = {}
        for pom in reversed(hierarchy):
            for key, value in pom.properties.items():
                if value:
                    properties.setdefault(key, value)
        # identity properties always describe the leaf
        properties.update(
            (key, value) for key, value in hierarchy[0].properties.items() if key.startswith(BUILTIN_PREFIXES)
        )

        management: dict[str, str] = {}
        for index, pom in enumerate(hierarchy):
            for key, value in pom.dependency_management.items():
                if index == 0:
                    management[key] = value
                else:
                    management.setdefault(key, value)

        for key, value in list(management.items()):
            if has_placeholder(value):
                management[key] = resolve_placeholders(value, properties)

        boms = [bom for pom in hierarchy for bom in pom.boms]
        for bom in boms:
            if bom_depth >= MAX_PARENT_HIERARCHY_DEPTH:
                logger.warning("Maximum BOM import depth reached while importing %s", bom.compact())
                break
            version = resolve_placeholders(bom.version or "", properties)
            if not version or has_placeholder(version):
                logger.debug("Skipping BOM with unresolved version: %s", bom.compact())
                continue
            bom_project = self.downloader.fetch_pom(Dependency(gav=bom.with_version(version)), cache)
            if bom_project is None:
                logger.debug("Could not download BOM: %s:%s", bom.key(), version)
                continue
            imported = self.merge_hierarchy(
                self.collect_hierarchy(bom_project, cache), cache, bom_depth=bom_depth + 1
            )
            for key, value in imported.dependency_management.items():
                management.setdefault(key, value)

        cache.add_global_management(management)
        logger.debug(
            "Merged %d dependency management entries from %d pom(s) for %s",
            len(management),
            len(hierarchy),
            hierarchy[0].artifact_id,
        )

        leaf = hierarchy[0]
        dependencies = []
        for dep in leaf.dependencies:
            if has_placeholder(dep.version):
                version = resolve_placeholders(dep.version, properties)
                dep = dep.with_version(None if has_placeholder(version) else version)
            dependencies.append(dep)

        return leaf.model_copy(
            update={
                "properties": properties,
                "dependency_management": management,
                "dependencies": dependencies,
            }
        )

    def resolve_dependencies(
        self, project: MavenProject, cache: ResolutionCache
    ) -> tuple[list[Dependency], list[str]]:
        """Give every declared dependency of a merged pom a version.

        Returns:
            The resolved dependencies and one error message per dependency
            whose version could not be determined.
        """
        resolved: list[Dependency] = []
        errors: list[str] = []
        for dependency in project.dependencies:
            if self.exclusions.matches(dependency):
                logger.debug("Skipping excluded dependency: %s", dependency.compact())
                continue
            try:
                resolved_dep = self.versions.resolve_from_management(
                    dependency, project.dependency_management, cache
                )
            except VersionResolutionError as exc:
                errors.append(f"Failed to resolve dependency {dependency.key()} of {project.compact()}: {exc}")
                logger.debug("Could not resolve dependency %s: %s", dependency.key(), exc)
                continue
            resolved.append(resolved_dep)
            logger.debug("Resolved transitive dependency: %s", resolved_dep.compact())

        if self.include_dependency_management:
            self._add_managed_dependencies(project, cache, resolved)
        return resolved, errors

    def _add_managed_dependencies(
        self, project: MavenProject, cache: ResolutionCache, resolved: list[Dependency]
    ) -> None:
        management = {**project.dependency_management, **cache.global_management}
        present = {d.key() for d in resolved}
        for key, version in management.items():
            parts = key.split(":")
            if key in present or len(parts) != 2 or not version or has_placeholder(version):
                continue
            managed = Dependency.of(parts[0], parts[1], version)
            if self.exclusions.matches(managed):
                logger.debug("Skipping excluded dependency from management: %s", managed.compact())
                continue
            resolved.append(managed)
            present.add(key)
            logger.debug("Added dependency from management: %s", managed.compact())
