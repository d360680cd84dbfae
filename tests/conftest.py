"""Pytest configuration and fixtures for j-dep-resolver tests.

Network access is replaced by `FakeSession`, an in-memory Maven repository
that records every requested URL.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest
import requests

from j_dep_resolver.repository import LocalRepository, RepositoryRegistry
from j_dep_resolver.resolver import DependencyResolver


REPO_URL = "https://repo.test/maven2"
MIRROR_URL = "https://mirror.test/maven2"

JAR_BYTES = b"PK\x03\x04fake-jar"


class FakeResponse:
    def __init__(self, url: str, body: bytes, status: int = 200) -> None:
        self.url = url
        self.body = body
        self.status_code = status
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error: Not Found for url: {self.url}")

    def iter_content(self, chunk_size: int = 1) -> Iterable[bytes]:
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves registered URLs, answers 404 for everything else."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.requests: list[str] = []
        self.calls: list[dict[str, Any]] = []

    def add(self, url: str, body: str | bytes) -> None:
        self.files[url] = body.encode("utf-8") if isinstance(body, str) else body

    def get(self, url: str, headers: Mapping[str, str] | None = None, timeout: Any = None, stream: bool = False):
        self.requests.append(url)
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout, "stream": stream})
        if url in self.files:
            return FakeResponse(url, self.files[url])
        return FakeResponse(url, b"<html>not found</html>", status=404)

    def reset(self) -> None:
        self.requests.clear()
        self.calls.clear()


def _coords_xml(coords: str) -> str:
    parts = coords.split(":")
    xml = f"<groupId>{parts[0]}</groupId><artifactId>{parts[1]}</artifactId>"
    if len(parts) > 2 and parts[2]:
        xml += f"<version>{parts[2]}</version>"
    return xml


def pom_xml(
    coords: str,
    dependencies: Iterable[str] = (),
    *,
    parent: str | None = None,
    properties: Mapping[str, str] | None = None,
    management: Iterable[str] = (),
    boms: Iterable[str] = (),
    extra_dependencies: str = "",
) -> str:
    """Build a pom document. `coords` and entries are `group:artifact[:version]`."""
    body = ""
    if parent:
        body += f"<parent>{_coords_xml(parent)}</parent>"
    body += _coords_xml(coords)
    if properties:
        body += "<properties>" + "".join(f"<{k}>{v}</{k}>" for k, v in properties.items()) + "</properties>"
    managed = [f"<dependency>{_coords_xml(m)}</dependency>" for m in management]
    managed += [
        f"<dependency>{_coords_xml(b)}<type>pom</type><scope>import</scope></dependency>" for b in boms
    ]
    if managed:
        body += "<dependencyManagement><dependencies>" + "".join(managed) + "</dependencies></dependencyManagement>"
    deps = "".join(f"<dependency>{_coords_xml(d)}</dependency>" for d in dependencies)
    if deps or extra_dependencies:
        body += f"<dependencies>{deps}{extra_dependencies}</dependencies>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<project xmlns="http://maven.apache.org/POM/4.0.0"><modelVersion>4.0.0</modelVersion>{body}</project>'
    )


def metadata_xml(
    group_id: str,
    artifact_id: str,
    *,
    release: str | None = None,
    latest: str | None = None,
    versions: Iterable[str] = (),
) -> str:
    versioning = ""
    if latest:
        versioning += f"<latest>{latest}</latest>"
    if release:
        versioning += f"<release>{release}</release>"
    listed = "".join(f"<version>{v}</version>" for v in versions)
    if listed:
        versioning += f"<versions>{listed}</versions>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f"<metadata><groupId>{group_id}</groupId><artifactId>{artifact_id}</artifactId>"
        f"<versioning>{versioning}</versioning></metadata>"
    )


class FakeRepository:
    """Publishes poms, jars and metadata on a `FakeSession` under one base URL."""

    def __init__(self, session: FakeSession, base_url: str = REPO_URL) -> None:
        self.session = session
        self.base_url = base_url

    def _dir(self, coords: str) -> tuple[str, str, str]:
        group_id, artifact_id, version = coords.split(":")[:3]
        return f"{self.base_url}/{group_id.replace('.', '/')}/{artifact_id}/{version}", artifact_id, version

    def pom(self, coords: str, xml: str) -> None:
        base, artifact_id, version = self._dir(coords)
        self.session.add(f"{base}/{artifact_id}-{version}.pom", xml)

    def jar(self, coords: str, content: bytes = JAR_BYTES) -> None:
        base, artifact_id, version = self._dir(coords)
        self.session.add(f"{base}/{artifact_id}-{version}.jar", content)

    def artifact(self, coords: str, dependencies: Iterable[str] = (), **kwargs: Any) -> None:
        """Publish a pom (built with `pom_xml`) and a jar."""
        self.pom(coords, pom_xml(coords, dependencies, **kwargs))
        self.jar(coords)

    def metadata(self, key: str, **kwargs: Any) -> None:
        group_id, artifact_id = key.split(":")
        url = f"{self.base_url}/{group_id.replace('.', '/')}/{artifact_id}/maven-metadata.xml"
        self.session.add(url, metadata_xml(group_id, artifact_id, **kwargs))


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def repo(session: FakeSession) -> FakeRepository:
    return FakeRepository(session)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "libs"


@pytest.fixture
def registry(cache_dir: Path) -> RepositoryRegistry:
    local = LocalRepository(cache_dir)
    local.ensure_exists()
    return RepositoryRegistry(local, [REPO_URL])


@pytest.fixture
def make_resolver(registry: RepositoryRegistry, session: FakeSession) -> Callable[..., DependencyResolver]:
    def _make(**kwargs: Any) -> DependencyResolver:
        return DependencyResolver(registry, session=session, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "JDEP_CACHE_DIR",
        "JDEP_REPOSITORIES",
        "JDEP_MAX_DEPTH",
        "JDEP_INCLUDE_OPTIONAL",
        "JDEP_INCLUDE_TEST",
        "JDEP_INCLUDE_DEP_MANAGEMENT",
        "JDEP_EXCLUDE_GROUPS",
        "JDEP_EXCLUDE_ARTIFACTS",
        "JDEP_CONNECT_TIMEOUT",
        "JDEP_READ_TIMEOUT",
        "JDEP_METADATA_TTL",
    ):
        monkeypatch.delenv(name, raising=False)
