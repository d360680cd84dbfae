"""Rich rendering utilities for descriptors and resolution results."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from j_dep_resolver.graph import top_level_nodes
from j_dep_resolver.models import ArtifactMetadata, MavenProject, ResolvedDependency


def build_dependency_tree(model: MavenProject) -> Tree:
    """Build a Rich Tree representing a descriptor's parent, management and direct dependencies.

    Args:
        model: Parsed Maven project model.

    Returns:
        A Rich Tree object for rendering.
    """
    root = Tree(f"[bold]{escape(model.compact())}[/bold]")
    if model.parent is not None:
        root.add(f"[dim]parent[/dim] {escape(model.parent.compact())}")

    if model.dependency_management or model.boms:
        managed = root.add("dependencyManagement")
        for key, version in model.dependency_management.items():
            managed.add(escape(f"{key}:{version}"))
        for bom in model.boms:
            managed.add(f"{escape(bom.compact())} [dim](import)[/dim]")

    if not model.dependencies:
        root.add("[dim]No direct dependencies found[/dim]")
        return root

    deps_branch = root.add("dependencies")
    for dep in model.dependencies:
        deps_branch.add(escape(dep.label()))
    return root


def build_resolution_tree(g: nx.DiGraph, roots: Iterable[str] = ()) -> Tree:
    """Render a discovery graph as a tree; repeated nodes are marked and not expanded."""
    tree = Tree("[bold]resolution[/bold]")
    seen: set[str] = set()

    def label(node: str) -> str:
        if g.nodes[node].get("path") is None:
            return f"[red]{escape(node)}[/red] [dim](not downloaded)[/dim]"
        return escape(node)

    def add(branch: Tree, node: str, ancestors: frozenset[str]) -> None:
        if node in ancestors:
            branch.add(f"[yellow]{escape(node)}[/yellow] [dim](cycle)[/dim]")
            return
        if node in seen:
            branch.add(f"{escape(node)} [dim](*)[/dim]")
            return
        seen.add(node)
        child = branch.add(label(node))
        for successor in sorted(g.successors(node)):
            add(child, successor, ancestors | {node})

    for node in top_level_nodes(g, roots):
        add(tree, node, frozenset())
    return tree


def build_resolved_table(resolved: Iterable[ResolvedDependency]) -> Table:
    table = Table(title="Resolved artifacts")
    table.add_column("#", style="dim", width=6)
    table.add_column("Coordinates")
    table.add_column("Path", overflow="fold")
    for i, item in enumerate(resolved, start=1):
        table.add_row(str(i), escape(item.dependency.compact()), escape(str(item.path)))
    return table


def build_metadata_table(key: str, metadata: ArtifactMetadata) -> Table:
    table = Table(title=f"Versions of {escape(key)}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("release", metadata.release or "-")
    table.add_row("latest", metadata.latest or "-")
    table.add_row("best", metadata.best_version() or "-")
    table.add_row("versions", escape(", ".join(metadata.versions)) or "-")
    return table
