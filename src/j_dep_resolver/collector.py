"""Version-conflict collapsing: one dependency per group-artifact key."""

from __future__ import annotations

from collections.abc import Iterable

from j_dep_resolver.models import Dependency
from j_dep_resolver.versions import is_newer


def _newer(candidate: Dependency, current: Dependency) -> bool:
    return is_newer(candidate.version or "", current.version or "")


class DependencyCollector:
    """Keeps the highest version seen for every group-artifact key.

    BOM entries are tracked alongside regular ones but a BOM never replaces
    a regular dependency; when a BOM and a regular entry meet, the survivor
    is stored as a regular dependency.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, Dependency] = {}

    def has_scanned(self, dependency: Dependency) -> bool:
        """True if the same or a newer version of this key was already collected."""
        existing = self._by_key.get(dependency.key())
        if existing is None:
            return False
        if existing.gav.is_bom and not dependency.gav.is_bom:
            return False
        return existing.version == dependency.version or _newer(existing, dependency)

    def add(self, dependency: Dependency) -> Dependency:
        """Collect `dependency` and return the entry that now holds its key."""
        key = dependency.key()
        existing = self._by_key.get(key)
        if existing is None:
            self._by_key[key] = dependency
            return dependency

        current, candidate = existing, dependency
        if not (existing.gav.is_bom and dependency.gav.is_bom):
            current = existing.with_gav(existing.gav.as_not_bom())
            candidate = dependency.with_gav(dependency.gav.as_not_bom())
        winner = candidate if _newer(candidate, current) else current
        self._by_key[key] = winner
        return winner

    def add_all(self, dependencies: Iterable[Dependency]) -> None:
        for dependency in dependencies:
            self.add(dependency)

    def dependencies(self) -> list[Dependency]:
        """Collected regular (non-BOM) dependencies in first-seen key order."""
        return [d for d in self._by_key.values() if not d.gav.is_bom]

    def boms(self) -> list[Dependency]:
        return [d for d in self._by_key.values() if d.gav.is_bom]

    def all(self) -> list[Dependency]:
        return list(self._by_key.values())

    def get(self, key: str) -> Dependency | None:
        return self._by_key.get(key)

    def clear(self) -> None:
        self._by_key.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def __repr__(self) -> str:
        return f"DependencyCollector(total={len(self)}, regular={len(self.dependencies())}, bom={len(self.boms())})"
