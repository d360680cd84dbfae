"""Parse per-artifact maven-metadata.xml documents."""

from __future__ import annotations

from pathlib import Path

from j_dep_resolver.exceptions import MetadataParseError, PomParseError
from j_dep_resolver.models import ArtifactMetadata
from j_dep_resolver.parser import _text_first, parse_xml_bytes


_METADATA = "/*[local-name()='metadata']"
_VERSIONING = f"{_METADATA}/*[local-name()='versioning']"


def parse_metadata(source: bytes | Path, *, source_name: str | None = None) -> ArtifactMetadata:
    """Parse a maven-metadata.xml document.

    Args:
        source: Raw document bytes or a path to the document.
        source_name: Label used in error messages (e.g. the URL it came from).

    Raises:
        MetadataParseError: If the document cannot be read or is not well-formed,
            or its root element is not `<metadata>`.

    Returns:
        The `ArtifactMetadata` with versions in document order.
    """
    if isinstance(source, Path):
        name = source_name or str(source)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise MetadataParseError(f"Failed to read metadata: {name}") from exc
    else:
        name = source_name or "<bytes>"
        data = source

    try:
        root = parse_xml_bytes(data, name)
    except PomParseError as exc:
        raise MetadataParseError(f"Failed to parse metadata XML from {name}") from exc

    if not root.xpath(_METADATA):
        raise MetadataParseError(f"Not a maven-metadata document: {name}")

    versions: list[str] = []
    for node in root.xpath(f"{_VERSIONING}/*[local-name()='versions']/*[local-name()='version']"):
        text = (node.text or "").strip()
        if text:
            versions.append(text)

    return ArtifactMetadata(
        group_id=_text_first(root, f"{_METADATA}/*[local-name()='groupId']"),
        artifact_id=_text_first(root, f"{_METADATA}/*[local-name()='artifactId']"),
        latest=_text_first(root, f"{_VERSIONING}/*[local-name()='latest']"),
        release=_text_first(root, f"{_VERSIONING}/*[local-name()='release']"),
        versions=versions,
    )
