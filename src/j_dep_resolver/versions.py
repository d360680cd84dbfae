"""Version inference and comparison."""

from __future__ import annotations

import logging
import re
from typing import Mapping

from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.downloader import ArtifactDownloader
from j_dep_resolver.exceptions import VersionResolutionError
from j_dep_resolver.models import Dependency


logger = logging.getLogger(__name__)

_NUMERIC_PREFIX_RE = re.compile(r"^(\d+(?:\.\d+)*)(.*)$")
_QUALIFIER_RE = re.compile(r"^([a-z]*)[.\-_]?(\d*)")

# Unknown qualifiers (e.g. guava's "-jre") rank like a plain release.
_QUALIFIER_RANK = {
    "alpha": 0,
    "a": 0,
    "beta": 1,
    "b": 1,
    "milestone": 2,
    "m": 2,
    "rc": 3,
    "cr": 3,
    "snapshot": 4,
    "": 5,
    "ga": 5,
    "final": 5,
    "release": 5,
    "sp": 6,
}


def version_key(version: str) -> tuple:
    """Sort key approximating Maven version ordering.

    Numeric segments compare numerically (trailing zeros ignored, so
    `1.0 == 1.0.0`), then pre-release qualifiers sort below the release.
    Versions without a numeric prefix sort below everything else.
    """
    text = (version or "").strip().lower()
    match = _NUMERIC_PREFIX_RE.match(text)
    if not match:
        return ((), 0, 0, text)
    numbers = tuple(int(p) for p in match.group(1).split("."))
    while numbers and numbers[-1] == 0:
        numbers = numbers[:-1]
    rest = match.group(2).lstrip(".-_")
    qualifier_match = _QUALIFIER_RE.match(rest)
    qualifier = qualifier_match.group(1) if qualifier_match else ""
    qualifier_number = int(qualifier_match.group(2)) if qualifier_match and qualifier_match.group(2) else 0
    rank = _QUALIFIER_RANK.get(qualifier, 5)
    return (numbers, rank, qualifier_number, rest)


def compare_versions(left: str, right: str) -> int:
    a, b = version_key(left), version_key(right)
    return (a > b) - (a < b)


def is_newer(candidate: str, current: str) -> bool:
    return compare_versions(candidate, current) > 0


class VersionResolver:
    """Fills in missing dependency versions.

    Order of precedence: the enclosing pom's (merged) dependency management,
    the management accumulated during this call, versions already inferred
    during this call, then repository metadata.
    """

    def __init__(self, downloader: ArtifactDownloader) -> None:
        self.downloader = downloader

    def resolve_version(self, dependency: Dependency, cache: ResolutionCache) -> Dependency:
        """Infer a missing version from repository metadata.

        Raises:
            VersionResolutionError: If no metadata yields a version.
        """
        if dependency.version:
            return dependency

        key = dependency.key()
        cached = cache.resolved_versions.get(key)
        if cached:
            return dependency.with_version(cached)

        metadata = self.downloader.fetch_metadata(dependency, cache)
        if metadata is not None:
            best = metadata.best_version()
            if best:
                cache.resolved_versions[key] = best
                logger.debug("Resolved version from metadata: %s -> %s", key, best)
                return dependency.with_version(best)

        raise VersionResolutionError(f"Cannot resolve version for dependency: {key}")

    def resolve_from_management(
        self,
        dependency: Dependency,
        management: Mapping[str, str],
        cache: ResolutionCache,
    ) -> Dependency:
        """Resolve a missing version from dependency management, falling back to metadata."""
        if dependency.version:
            return dependency

        key = dependency.key()
        version = (management.get(key) or "").strip()
        if version:
            logger.debug("Found version in local dependency management for %s: %s", key, version)
        else:
            version = (cache.global_management.get(key) or "").strip()
            if version:
                logger.debug("Found version in global dependency management for %s: %s", key, version)
        if not version:
            version = (cache.resolved_versions.get(key) or "").strip()

        if version:
            return dependency.with_version(version)

        logger.debug("Attempting to resolve version from metadata for %s", key)
        return self.resolve_version(dependency, cache)
