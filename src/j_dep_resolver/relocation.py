"""Package relocation of cached jars through an external rewriting tool."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Mapping

from j_dep_resolver.exceptions import RelocationError
from j_dep_resolver.models import Dependency, Relocation
from j_dep_resolver.repository import LocalRepository


logger = logging.getLogger(__name__)

RELOCATIONS_CACHE_FILE = "relocations.txt"
RELOCATED_CLASSIFIER = "relocated"

Relocator = Callable[[Path, Path, Mapping[str, str]], None]


def serialize_relocations(relocations: Sequence[Relocation]) -> str:
    """Canonical form of a rule list: one `pattern -> relocated` per line, in order."""
    return "\n".join(r.description() for r in relocations)


class RelocationCacheResolver:
    """Remembers which rule set produced each relocated jar.

    The serialized rules are stored as `relocations.txt` in the artifact's
    version directory of the local cache.
    """

    def __init__(self, local: LocalRepository) -> None:
        self.local = local

    def cache_file(self, dependency: Dependency) -> Path:
        return self.local.resolve(dependency.gav.repository_path()) / RELOCATIONS_CACHE_FILE

    def saved_relocations(self, dependency: Dependency) -> str | None:
        path = self.cache_file(dependency)
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Could not read relocation cache %s: %s", path, exc)
            return None

    def should_force_relocate(self, dependency: Dependency, relocations: Sequence[Relocation]) -> bool:
        """True unless the stored rule set equals `relocations`."""
        saved = self.saved_relocations(dependency)
        return saved is None or saved != serialize_relocations(relocations)

    def mark_as_relocated(self, dependency: Dependency, relocations: Sequence[Relocation]) -> None:
        """Persist the rule set that produced the current relocated jar.

        Raises:
            RelocationError: If the cache file cannot be written.
        """
        path = self.cache_file(dependency)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(serialize_relocations(relocations), encoding="utf-8")
        except OSError as exc:
            raise RelocationError(f"Failed to save relocation cache for {dependency.compact()}") from exc

    def clear_cache(self, dependency: Dependency) -> None:
        """Forget the stored rule set, forcing the next relocation.

        Raises:
            RelocationError: If the cache file exists but cannot be removed.
        """
        try:
            self.cache_file(dependency).unlink(missing_ok=True)
        except OSError as exc:
            raise RelocationError(f"Failed to clear relocation cache for {dependency.compact()}") from exc


class CommandRelocator:
    """Runs an external jar rewriting tool.

    The tool is invoked as `command + [input, output, "from=to", ...]` and
    must exit with status 0.
    """

    def __init__(self, command: Sequence[str], *, timeout: float | None = None) -> None:
        if not command:
            raise ValueError("Relocation command cannot be empty")
        self.command = list(command)
        self.timeout = timeout

    def __call__(self, input_path: Path, output_path: Path, mapping: Mapping[str, str]) -> None:
        args = [*self.command, str(input_path), str(output_path)]
        args.extend(f"{pattern}={relocated}" for pattern, relocated in mapping.items())
        logger.debug("Running relocation tool: %s", " ".join(args))
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise RelocationError(f"Failed to run relocation tool {self.command[0]}: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise RelocationError(
                f"Relocation tool exited with status {result.returncode}" + (f": {detail}" if detail else "")
            )


class RelocationHandler:
    """Produces relocated copies of cached jars, reusing them while the rules are unchanged."""

    def __init__(self, relocator: Relocator, cache_resolver: RelocationCacheResolver) -> None:
        self.relocator = relocator
        self.cache_resolver = cache_resolver

    @staticmethod
    def relocated_jar_path(local: LocalRepository, dependency: Dependency) -> Path:
        return dependency.gav.with_classifier(RELOCATED_CLASSIFIER).jar_path(local.path)

    def relocate_dependency(
        self,
        local: LocalRepository,
        jar_path: Path,
        dependency: Dependency,
        relocations: Sequence[Relocation],
    ) -> Path:
        """Return the jar to load for `dependency` under `relocations`.

        With no rules the original jar is returned untouched.

        Raises:
            RelocationError: If the tool fails or produces no output file.
        """
        if not relocations:
            return jar_path

        output = self.relocated_jar_path(local, dependency)
        if output.exists() and not self.cache_resolver.should_force_relocate(dependency, relocations):
            logger.debug("Reusing relocated jar: %s", output)
            return output
        return self._relocate(dependency, jar_path, output, relocations)

    def _relocate(
        self,
        dependency: Dependency,
        input_path: Path,
        output: Path,
        relocations: Sequence[Relocation],
    ) -> Path:
        mapping = {r.pattern: r.relocated_pattern for r in relocations}
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.unlink(missing_ok=True)
        except OSError as exc:
            raise RelocationError(f"Failed to prepare relocation output for {dependency.compact()}") from exc

        logger.info("Relocating %s (%d rules)", dependency.compact(), len(mapping))
        try:
            self.relocator(input_path, output, mapping)
        except RelocationError:
            raise
        except (OSError, ValueError) as exc:
            raise RelocationError(f"Failed to relocate jar for dependency: {dependency.compact()}") from exc

        if not output.exists():
            raise RelocationError(f"Relocation failed to create output file: {output}")
        self.cache_resolver.mark_as_relocated(dependency, relocations)
        return output
