"""Repository locations: the local artifact cache and remote Maven repositories."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path


logger = logging.getLogger(__name__)

MAVEN_CENTRAL = "https://repo1.maven.org/maven2"
GOOGLE_MAVEN_CENTRAL_MIRROR = "https://maven-central.storage-download.googleapis.com/maven2"
SONATYPE = "https://oss.sonatype.org/content/groups/public"
JITPACK = "https://jitpack.io"

_CENTRAL_URLS = {MAVEN_CENTRAL, "https://repo.maven.apache.org/maven2"}


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


class Repository:
    """A repository identified by its base URL."""

    def __init__(self, url: str) -> None:
        if not url or not url.strip():
            raise ValueError("Repository URL cannot be empty")
        self.url = normalize_url(url)

    @property
    def is_local(self) -> bool:
        return self.url.startswith("file:")

    @property
    def is_remote(self) -> bool:
        return self.url.startswith(("http:", "https:"))

    @property
    def type(self) -> str:
        if self.is_local:
            return "local"
        if self.is_remote:
            return "remote"
        return "unknown"

    def artifact_url(self, artifact_path: str) -> str:
        return f"{self.url}/{artifact_path.lstrip('/')}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Repository) and self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.url!r})"

    def __str__(self) -> str:
        return self.url


class LocalRepository(Repository):
    """The on-disk artifact cache.

    Layout: `<root>/<group-path>/<artifact>/<version>/<artifact>-<version>.jar`.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).resolve()
        super().__init__(self.path.as_uri())

    def ensure_exists(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def resolve(self, relative_path: str) -> Path:
        return self.path / relative_path


class RepositoryRegistry:
    """Ordered repositories: the local cache first, then remotes in insertion order."""

    def __init__(self, local: LocalRepository, remotes: Iterable[str | Repository] = ()) -> None:
        self.local = local
        self._remotes: list[Repository] = []
        self._central_warning_shown = False
        for remote in remotes:
            self.add(remote)

    def add(self, repository: str | Repository) -> Repository:
        repo = repository if isinstance(repository, Repository) else Repository(repository)
        if repo.url in _CENTRAL_URLS and not self._central_warning_shown:
            self._central_warning_shown = True
            logger.warning(
                "Using Maven Central as a download CDN is against its terms of service; "
                "prefer %s",
                GOOGLE_MAVEN_CENTRAL_MIRROR,
            )
        if repo not in self._remotes and repo != self.local:
            self._remotes.append(repo)
            logger.debug("Added repository: %s", repo.url)
        return repo

    @property
    def remotes(self) -> list[Repository]:
        return list(self._remotes)

    def __iter__(self) -> Iterator[Repository]:
        yield self.local
        yield from self._remotes

    def __len__(self) -> int:
        return 1 + len(self._remotes)
