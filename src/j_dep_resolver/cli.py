"""Typer CLI entry point for J-Dep Resolver."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.config import ResolverConfig
from j_dep_resolver.exceptions import JDepError
from j_dep_resolver.graph import result_graph
from j_dep_resolver.models import Dependency, ResolutionResult
from j_dep_resolver.parser import parse_pom
from j_dep_resolver.resolver import DependencyResolver
from j_dep_resolver.visualize import (
    build_dependency_tree,
    build_metadata_table,
    build_resolution_tree,
    build_resolved_table,
)

app = typer.Typer(add_completion=False, help="Resolve Maven artifacts and their transitive dependencies.")
console = Console(emoji=False)

CoordinatesArg = Annotated[
    list[str], typer.Argument(help="Root coordinates: groupId:artifactId[:version[:classifier]].")
]
RepoOpt = Annotated[
    Optional[list[str]], typer.Option("--repo", help="Remote repository URL (repeatable, tried in order).")
]
CacheDirOpt = Annotated[Optional[Path], typer.Option("--cache-dir", help="Local artifact cache directory.")]
MaxDepthOpt = Annotated[Optional[int], typer.Option("--max-depth", help="Max transitive depth.")]
ExcludeGroupOpt = Annotated[
    Optional[list[str]], typer.Option("--exclude-group", help="Group id to skip (repeatable).")
]
ExcludeArtifactOpt = Annotated[
    Optional[list[str]],
    typer.Option("--exclude-artifact", help="groupId:artifactId wildcard to skip (repeatable)."),
]
IncludeOptionalOpt = Annotated[
    bool, typer.Option("--include-optional", help="Follow optional dependencies.")
]
IncludeTestOpt = Annotated[bool, typer.Option("--include-test", help="Follow test-scope dependencies.")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True, emoji=False), show_path=False)],
    )
    logging.getLogger("j_dep_resolver").setLevel(logging.DEBUG if verbose else logging.INFO)


def _build_config(
    repo: list[str] | None,
    cache_dir: Path | None,
    max_depth: int | None,
    exclude_group: list[str] | None,
    exclude_artifact: list[str] | None,
    include_optional: bool,
    include_test: bool,
) -> ResolverConfig:
    config = ResolverConfig.from_env()
    if repo:
        config.repositories = list(repo)
    if cache_dir is not None:
        config.cache_dir = cache_dir.resolve()
    if max_depth is not None:
        config.max_transitive_depth = max_depth
    if exclude_group:
        config.exclude_group_ids.extend(exclude_group)
    if exclude_artifact:
        config.exclude_artifacts.extend(exclude_artifact)
    config.include_optional = config.include_optional or include_optional
    config.include_test = config.include_test or include_test
    config.validate()
    return config


def _print_diagnostics(result: ResolutionResult) -> None:
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")
    for error in result.errors:
        console.print(f"[bold red]Error:[/bold red] {escape(error)}")


def _run(coordinates: list[str], config: ResolverConfig) -> ResolutionResult:
    resolver = DependencyResolver.from_config(config)
    return resolver.resolve(Dependency.parse(c) for c in coordinates)


@app.command()
def resolve(
    coordinates: CoordinatesArg,
    repo: RepoOpt = None,
    cache_dir: CacheDirOpt = None,
    max_depth: MaxDepthOpt = None,
    exclude_group: ExcludeGroupOpt = None,
    exclude_artifact: ExcludeArtifactOpt = None,
    include_optional: IncludeOptionalOpt = False,
    include_test: IncludeTestOpt = False,
    dedupe: Annotated[
        bool, typer.Option("--dedupe", help="Keep only the highest version per groupId:artifactId.")
    ] = False,
    strict: Annotated[bool, typer.Option("--strict", help="Exit with status 1 if any error occurred.")] = False,
    verbose: VerboseOpt = False,
) -> None:
    """Resolve COORDINATES and download every transitive artifact into the cache."""
    _configure_logging(verbose)
    try:
        config = _build_config(
            repo, cache_dir, max_depth, exclude_group, exclude_artifact, include_optional, include_test
        )
        result = _run(coordinates, config)
    except (JDepError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    resolved = result.deduplicated() if dedupe else result.resolved
    console.print(build_resolved_table(resolved))
    console.print(
        f"[green]Resolved[/green] {len(resolved)} artifact(s) into [bold]{escape(str(config.cache_dir))}[/bold]"
    )
    _print_diagnostics(result)
    if strict and result.has_errors:
        raise typer.Exit(code=1)


@app.command()
def tree(
    coordinates: CoordinatesArg,
    repo: RepoOpt = None,
    cache_dir: CacheDirOpt = None,
    max_depth: MaxDepthOpt = None,
    exclude_group: ExcludeGroupOpt = None,
    exclude_artifact: ExcludeArtifactOpt = None,
    include_optional: IncludeOptionalOpt = False,
    include_test: IncludeTestOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """Resolve COORDINATES and print the discovered dependency graph as a tree."""
    _configure_logging(verbose)
    try:
        config = _build_config(
            repo, cache_dir, max_depth, exclude_group, exclude_artifact, include_optional, include_test
        )
        result = _run(coordinates, config)
    except (JDepError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    g = result_graph(result)
    if g.number_of_nodes() == 0:
        console.print("[dim]Nothing resolved.[/dim]")
    else:
        console.print(build_resolution_tree(g, coordinates))
    _print_diagnostics(result)


@app.command()
def versions(
    coordinates: Annotated[str, typer.Argument(help="groupId:artifactId")],
    repo: RepoOpt = None,
    cache_dir: CacheDirOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Show the repository metadata (release, latest, versions) of an artifact."""
    _configure_logging(verbose)
    try:
        config = _build_config(repo, cache_dir, None, None, None, False, False)
        dependency = Dependency.parse(coordinates)
        resolver = DependencyResolver.from_config(config)
        metadata = resolver.downloader.fetch_metadata(dependency, ResolutionCache())
    except (JDepError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    if metadata is None:
        console.print(f"[bold red]Error:[/bold red] No metadata found for {escape(dependency.key())}")
        raise typer.Exit(code=1)
    console.print(build_metadata_table(dependency.key(), metadata))


@app.command()
def analyze(
    pom: Annotated[Path, typer.Argument(help="Path to a Maven pom.xml file.")],
    show_path: Annotated[bool, typer.Option("--show-path", help="Show the pom path header.")] = True,
    include_optional: IncludeOptionalOpt = False,
    include_test: IncludeTestOpt = False,
) -> None:
    """Parse a pom.xml and print its parent, management table and direct dependencies."""
    try:
        model = parse_pom(pom, include_optional=include_optional, include_test=include_test)
        if show_path:
            console.print(f"[dim]{escape(str(pom))}[/dim]")
        console.print(build_dependency_tree(model))
    except JDepError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from None


def main() -> None:
    """Console-script entry point."""
    app()
