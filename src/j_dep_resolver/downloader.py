"""Fetch poms, metadata and jars from repositories into the local cache."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.exceptions import ArtifactDownloadError, JDepError
from j_dep_resolver.metadata import parse_metadata
from j_dep_resolver.models import ArtifactMetadata, Dependency, MavenProject
from j_dep_resolver.parser import parse_pom
from j_dep_resolver.repository import Repository, RepositoryRegistry


logger = logging.getLogger(__name__)

USER_AGENT = "j-dep-resolver/0.1.0"
CHUNK_SIZE = 64 * 1024
MISSING_MARKER_SUFFIX = ".lastUpdated"


@dataclass(frozen=True)
class DownloadResult:
    """Where an artifact ended up and which repository served it (None = cache hit)."""

    path: Path
    downloaded_from: str | None = None


def is_valid_jar(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def is_valid_pom(path: Path) -> bool:
    """A pom is plausible if it is non-empty, has a `<project` root and is not an HTML page."""
    if not is_valid_jar(path):
        return False
    try:
        content = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return False
    return "<project" in content and "<html" not in content.lower()


def missing_marker_path(pom_path: Path) -> Path:
    """Marker recording that no repository served the pom at `pom_path`."""
    return pom_path.with_name(pom_path.name + MISSING_MARKER_SUFFIX)


def _atomic_write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ArtifactDownloader:
    """Downloads artifacts with local-cache short-circuit and repository fallback.

    Repositories are tried in registry order, skipping `file:` repositories,
    with a dependency's fallback repository appended last. Files are written
    to a temporary name and moved into place, so concurrent writers of the
    same artifact never expose a partial file (last writer wins).
    """

    def __init__(
        self,
        registry: RepositoryRegistry,
        *,
        session: Any = None,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
        metadata_ttl: float = 86400.0,
        include_optional: bool = False,
        include_test: bool = False,
    ) -> None:
        self.registry = registry
        self.session = session if session is not None else requests.Session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.metadata_ttl = metadata_ttl
        self.include_optional = include_optional
        self.include_test = include_test

    @property
    def root(self) -> Path:
        return self.registry.local.path

    def _repositories_for(self, dependency: Dependency) -> list[Repository]:
        repos = [r for r in self.registry if not r.is_local]
        if dependency.fallback_repository:
            fallback = Repository(dependency.fallback_repository)
            if not fallback.is_local and fallback not in repos:
                repos.append(fallback)
        return repos

    def _get(self, url: str) -> Any:
        response = self.session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=(self.connect_timeout, self.read_timeout),
            stream=True,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError:
            response.close()
            raise
        return response

    def _fetch_bytes(self, url: str) -> bytes:
        response = self._get(url)
        try:
            return b"".join(chunk for chunk in response.iter_content(chunk_size=CHUNK_SIZE) if chunk)
        finally:
            response.close()

    def _fetch_to_file(self, url: str, path: Path) -> None:
        response = self._get(url)
        try:
            with open(path, "wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
        finally:
            response.close()

    def _download(
        self,
        dependency: Dependency,
        target: Path,
        url_for: Callable[[str], str],
        validate: Callable[[Path], bool],
        kind: str,
    ) -> str:
        """Download into `target` from the first repository that yields valid content.

        Returns:
            The URL of the repository that served the file.

        Raises:
            ArtifactDownloadError: With one cause per repository tried.
        """
        target.parent.mkdir(parents=True, exist_ok=True)
        causes: list[Exception] = []
        for repository in self._repositories_for(dependency):
            url = url_for(repository.url)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
            os.close(fd)
            tmp_path = Path(tmp_name)
            try:
                logger.debug("Downloading %s from %s", kind, url)
                self._fetch_to_file(url, tmp_path)
                if not validate(tmp_path):
                    raise ArtifactDownloadError(f"Downloaded {kind} from {url} is invalid")
                os.replace(tmp_path, target)
                return repository.url
            except (requests.RequestException, OSError, ArtifactDownloadError) as exc:
                causes.append(exc)
                logger.debug("Failed to download %s from %s: %s", kind, repository.url, exc)
            finally:
                tmp_path.unlink(missing_ok=True)

        message = f"Failed to download {kind} for {dependency.compact()}"
        if not causes:
            raise ArtifactDownloadError(f"{message}: no remote repositories configured")
        raise ArtifactDownloadError(message, causes) from causes[-1]

    def fetch_pom(self, dependency: Dependency, cache: ResolutionCache) -> MavenProject | None:
        """Return the parsed pom for `dependency`, or None if it is unavailable.

        A missing or unparseable pom is not an error: the artifact may simply
        have no dependencies worth following. When every repository fails, a
        marker is left next to the pom path and no download is attempted again
        until it is older than `metadata_ttl`.
        """
        key = dependency.compact()
        if key in cache.poms:
            return cache.poms[key]

        pom_path = dependency.gav.pom_path(self.root)
        marker = missing_marker_path(pom_path)
        if is_valid_pom(pom_path):
            logger.debug("Using cached pom: %s", key)
        elif self._is_fresh(marker):
            logger.debug("Pom recently not found, skipping download: %s", key)
            cache.poms[key] = None
            return None
        else:
            try:
                self._download(dependency, pom_path, dependency.gav.pom_url, is_valid_pom, "pom")
            except ArtifactDownloadError as exc:
                logger.debug("Could not download pom for %s: %s", key, exc)
                if exc.causes:
                    self._write_marker(marker)
                cache.poms[key] = None
                return None
            marker.unlink(missing_ok=True)

        try:
            project = parse_pom(
                pom_path,
                include_optional=self.include_optional,
                include_test=self.include_test,
            )
        except JDepError as exc:
            logger.debug("Could not parse pom for %s: %s", key, exc)
            project = None
        cache.poms[key] = project
        return project

    def download_jar(self, dependency: Dependency) -> DownloadResult:
        """Make the dependency's jar available in the local cache.

        Raises:
            ArtifactDownloadError: If no repository provided a valid jar.
        """
        jar_path = dependency.gav.jar_path(self.root)
        if is_valid_jar(jar_path):
            return DownloadResult(jar_path)
        source = self._download(dependency, jar_path, dependency.gav.jar_url, is_valid_jar, "jar")
        return DownloadResult(jar_path, source)

    def _is_fresh(self, path: Path) -> bool:
        try:
            age = time.time() - path.stat().st_mtime
        except OSError:
            return False
        return age < self.metadata_ttl

    def _write_marker(self, marker: Path) -> None:
        try:
            _atomic_write(marker, b"")
        except OSError as exc:
            logger.debug("Could not write %s: %s", marker, exc)

    def _fresh_metadata(self, path: Path) -> ArtifactMetadata | None:
        if not self._is_fresh(path):
            return None
        try:
            return parse_metadata(path)
        except JDepError as exc:
            logger.debug("Ignoring unreadable cached metadata %s: %s", path, exc)
            return None

    def fetch_metadata(self, dependency: Dependency, cache: ResolutionCache) -> ArtifactMetadata | None:
        """Return repository metadata for the dependency's group-artifact key."""
        key = dependency.key()
        if key in cache.metadata:
            return cache.metadata[key]

        local_path = dependency.gav.local_metadata_path(self.root)
        metadata = self._fresh_metadata(local_path)
        if metadata is not None:
            cache.metadata[key] = metadata
            return metadata

        for repository in self._repositories_for(dependency):
            url = dependency.gav.metadata_url(repository.url)
            try:
                logger.debug("Downloading metadata from %s", url)
                data = self._fetch_bytes(url)
                metadata = parse_metadata(data, source_name=url)
            except (requests.RequestException, OSError, JDepError) as exc:
                logger.debug("Failed to fetch metadata from %s: %s", repository.url, exc)
                continue
            try:
                _atomic_write(local_path, data)
            except OSError as exc:
                logger.debug("Could not cache metadata for %s: %s", key, exc)
            cache.metadata[key] = metadata
            return metadata

        logger.debug("No metadata found for %s", key)
        return None
