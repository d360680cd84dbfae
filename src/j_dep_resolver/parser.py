"""Parse Maven pom files using lxml."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping

from lxml import etree

from j_dep_resolver.exceptions import PomModelError, PomNotFoundError, PomParseError
from j_dep_resolver.models import GAV, Dependency, MavenProject, ParentRef


_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")

_RUNTIME_SCOPES = frozenset({"compile", "runtime"})

_PROJECT = "/*[local-name()='project']"


def _text_first(node: etree._Element, xpath_expr: str) -> str | None:
    """Get text of the first matching element using namespace-agnostic XPath.

    Args:
        node: Root element to query under.
        xpath_expr: XPath expression (should use local-name()).

    Returns:
        Text content if found and non-empty, otherwise None.
    """
    found = node.xpath(xpath_expr)
    if not found:
        return None
    first = found[0]
    if isinstance(first, etree._Element):
        text = (first.text or "").strip()
        return text or None
    if isinstance(first, str):
        text = first.strip()
        return text or None
    return None


def _bool_text(value: str | None) -> bool | None:
    """Convert Maven boolean-ish text to bool.

    Args:
        value: String like 'true'/'false' or None.

    Returns:
        True/False for recognized values, otherwise None.
    """
    if value is None:
        return None
    v = value.strip().lower()
    if v == "true":
        return True
    if v == "false":
        return False
    return None


def parse_xml_bytes(data: bytes, source: str) -> etree._Element:
    """Parse XML bytes with a hardened parser and return the root element.

    Raises:
        PomParseError: If the document is not well-formed.
    """
    try:
        parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
        return etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise PomParseError(f"Failed to parse XML: {source}") from exc


def _read_source(source: str | Path | bytes) -> tuple[bytes, str]:
    if isinstance(source, bytes):
        return source, "<bytes>"
    path = Path(source)
    if not path.exists():
        raise PomNotFoundError(f"pom not found: {path}")
    try:
        return path.read_bytes(), str(path)
    except OSError as exc:
        raise PomParseError(f"Failed to read pom: {path}") from exc


def resolve_placeholders(value: str, props: Mapping[str, str]) -> str:
    """Resolve ${...} placeholders using provided properties.

    Unknown placeholders are preserved as-is.
    """
    current = value
    for _ in range(5):
        changed = False

        def _sub(m: re.Match[str]) -> str:
            nonlocal changed
            key = m.group(1)
            replacement = props.get(key)
            if replacement:
                changed = True
                return replacement
            return m.group(0)

        nxt = _PLACEHOLDER_RE.sub(_sub, current)
        current = nxt
        if not changed:
            break
    return current


def has_placeholder(value: str | None) -> bool:
    return bool(value) and _PLACEHOLDER_RE.search(value) is not None


def _parse_properties(root: etree._Element) -> dict[str, str]:
    props: dict[str, str] = {}
    nodes = root.xpath(f"{_PROJECT}/*[local-name()='properties']/*")
    for n in nodes:
        if not isinstance(n, etree._Element):
            continue
        key = etree.QName(n).localname
        val = (n.text or "").strip()
        if key and val:
            props[key] = val
    return props


def _builtin_properties(group_id: str | None, artifact_id: str, version: str | None) -> dict[str, str]:
    identity = {"groupId": group_id, "artifactId": artifact_id, "version": version}
    builtins: dict[str, str] = {}
    for prefix in ("project", "pom", "this"):
        for name, value in identity.items():
            if value:
                builtins[f"{prefix}.{name}"] = value
    return builtins


def _parse_parent(root: etree._Element) -> ParentRef | None:
    base = f"{_PROJECT}/*[local-name()='parent']"
    group_id = _text_first(root, f"{base}/*[local-name()='groupId']")
    artifact_id = _text_first(root, f"{base}/*[local-name()='artifactId']")
    version = _text_first(root, f"{base}/*[local-name()='version']")
    if group_id and artifact_id and version:
        return ParentRef(group_id=group_id, artifact_id=artifact_id, version=version)
    return None


def _parse_dependency_management(
    root: etree._Element, props: Mapping[str, str]
) -> tuple[dict[str, str], list[GAV]]:
    managed: dict[str, str] = {}
    boms: list[GAV] = []
    nodes = root.xpath(
        f"{_PROJECT}"
        "/*[local-name()='dependencyManagement']"
        "/*[local-name()='dependencies']"
        "/*[local-name()='dependency']"
    )
    for dep in nodes:
        group_id = _text_first(dep, "./*[local-name()='groupId']")
        artifact_id = _text_first(dep, "./*[local-name()='artifactId']")
        version = _text_first(dep, "./*[local-name()='version']")
        if group_id is None or artifact_id is None or version is None:
            continue

        group_id = resolve_placeholders(group_id, props)
        artifact_id = resolve_placeholders(artifact_id, props)
        version = resolve_placeholders(version, props)

        scope = _text_first(dep, "./*[local-name()='scope']")
        dep_type = _text_first(dep, "./*[local-name()='type']")
        if scope == "import" and dep_type == "pom":
            boms.append(GAV(group_id=group_id, artifact_id=artifact_id, version=version, is_bom=True))
            continue
        managed[f"{group_id}:{artifact_id}"] = version
    return managed, boms


def _should_include(scope: str, optional: bool, *, include_optional: bool, include_test: bool) -> bool:
    if optional and not include_optional:
        return False
    if scope in _RUNTIME_SCOPES:
        return True
    return include_test and scope == "test"


def parse_pom(
    source: str | Path | bytes,
    *,
    include_optional: bool = False,
    include_test: bool = False,
) -> MavenProject:
    """Parse a Maven pom and extract what dependency resolution needs.

    Notes:
        - Namespace handling: uses `local-name()` XPath so it works with or without XML namespaces.
        - Built-in identity properties (`project.*`, `pom.*`, `this.*`) are seeded first so
          custom `<properties>` may shadow them.
        - Property placeholders like `${...}` are resolved eagerly; unknown ones are kept verbatim.
        - Only compile/runtime dependencies that are not optional are kept, unless
          `include_test` / `include_optional` say otherwise.
        - A dependency without `<version>` keeps a None version, to be filled in later.

    Args:
        source: Path to a pom file, or its raw bytes.
        include_optional: Keep `<optional>true</optional>` dependencies.
        include_test: Keep test-scope dependencies.

    Raises:
        PomNotFoundError: If `source` is a path that does not exist.
        PomParseError: If the XML is not well-formed.
        PomModelError: If `<artifactId>` is missing.

    Returns:
        A `MavenProject`.
    """
    data, source_name = _read_source(source)
    root = parse_xml_bytes(data, source_name)

    raw_group_id = _text_first(root, f"{_PROJECT}/*[local-name()='groupId']")
    artifact_id = _text_first(root, f"{_PROJECT}/*[local-name()='artifactId']")
    raw_version = _text_first(root, f"{_PROJECT}/*[local-name()='version']")

    if artifact_id is None:
        raise PomModelError(f"Missing required <artifactId> in pom: {source_name}")

    parent = _parse_parent(root)
    if parent is not None:
        raw_group_id = raw_group_id or parent.group_id
        raw_version = raw_version or parent.version

    props = {**_builtin_properties(raw_group_id, artifact_id, raw_version), **_parse_properties(root)}

    group_id = resolve_placeholders(raw_group_id, props) if raw_group_id else None
    version = resolve_placeholders(raw_version, props) if raw_version else None

    managed, boms = _parse_dependency_management(root, props)

    deps: list[Dependency] = []
    dep_nodes = root.xpath(
        f"{_PROJECT}"
        "/*[local-name()='dependencies']"
        "/*[local-name()='dependency']"
    )
    for dep in dep_nodes:
        dep_group_id = _text_first(dep, "./*[local-name()='groupId']")
        dep_artifact_id = _text_first(dep, "./*[local-name()='artifactId']")
        if dep_group_id is None or dep_artifact_id is None:
            continue

        dep_version = _text_first(dep, "./*[local-name()='version']")
        dep_classifier = _text_first(dep, "./*[local-name()='classifier']")
        dep_scope = _text_first(dep, "./*[local-name()='scope']") or "compile"
        dep_optional = _bool_text(_text_first(dep, "./*[local-name()='optional']")) is True

        if not _should_include(
            dep_scope, dep_optional, include_optional=include_optional, include_test=include_test
        ):
            continue

        deps.append(
            Dependency(
                gav=GAV(
                    group_id=resolve_placeholders(dep_group_id, props),
                    artifact_id=resolve_placeholders(dep_artifact_id, props),
                    version=resolve_placeholders(dep_version, props) if dep_version else None,
                    classifier=resolve_placeholders(dep_classifier, props) if dep_classifier else None,
                ),
                scope=dep_scope,
                optional=dep_optional,
            )
        )

    return MavenProject(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        parent=parent,
        properties=props,
        dependency_management=managed,
        boms=boms,
        dependencies=deps,
    )
