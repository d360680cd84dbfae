"""Group-id and wildcard artifact exclusion rules."""

from __future__ import annotations

import re
from collections.abc import Iterable

from j_dep_resolver.models import GAV, Dependency


def compile_artifact_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a `group:artifact` wildcard (`*` matches anything) to a regex."""
    return re.compile(".*".join(re.escape(part) for part in pattern.strip().split("*")))


class ExclusionRules:
    """Decides whether a coordinate is excluded from resolution."""

    def __init__(self, group_ids: Iterable[str] = (), artifact_patterns: Iterable[str] = ()) -> None:
        self.group_ids: set[str] = {g.strip() for g in group_ids if g and g.strip()}
        self.artifact_patterns: list[str] = [p.strip() for p in artifact_patterns if p and p.strip()]
        self._compiled = [compile_artifact_pattern(p) for p in self.artifact_patterns]

    def matches(self, target: Dependency | GAV) -> bool:
        gav = target.gav if isinstance(target, Dependency) else target
        if gav.group_id in self.group_ids:
            return True
        key = gav.key()
        return any(p.fullmatch(key) for p in self._compiled)

    def __bool__(self) -> bool:
        return bool(self.group_ids or self.artifact_patterns)
