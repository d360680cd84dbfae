"""Per-call resolution state.

A fresh `ResolutionCache` is created for every top-level resolution call and
passed explicitly to every step that needs it, so concurrent calls never
share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from j_dep_resolver.models import ArtifactMetadata, MavenProject


@dataclass
class ResolutionCache:
    """Caches and bookkeeping for one resolution call.

    Attributes:
        poms: Parsed poms keyed by full coordinate string. None records a
            pom that could not be fetched so it is not retried.
        metadata: Parsed metadata keyed by group-artifact key.
        resolved_versions: Versions inferred from metadata, by group-artifact key.
        processed: Full coordinate strings already expanded (or skipped).
        depths: Transitive depth per full coordinate string.
        global_management: Dependency management accumulated across every
            pom hierarchy merged during the call.
    """

    poms: dict[str, MavenProject | None] = field(default_factory=dict)
    metadata: dict[str, ArtifactMetadata] = field(default_factory=dict)
    resolved_versions: dict[str, str] = field(default_factory=dict)
    processed: set[str] = field(default_factory=set)
    depths: dict[str, int] = field(default_factory=dict)
    global_management: dict[str, str] = field(default_factory=dict)

    def is_processed(self, coordinates: str) -> bool:
        return coordinates in self.processed

    def mark_processed(self, coordinates: str) -> None:
        self.processed.add(coordinates)

    def depth(self, coordinates: str, default: int = 0) -> int:
        return self.depths.get(coordinates, default)

    def set_depth(self, coordinates: str, depth: int) -> None:
        self.depths[coordinates] = depth

    def add_global_management(self, entries: Mapping[str, str]) -> None:
        self.global_management.update(entries)
