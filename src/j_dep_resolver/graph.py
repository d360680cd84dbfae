from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from j_dep_resolver.models import ResolutionResult


def build_graph(edges: Iterable[tuple[str, str]], nodes: Iterable[str] = ()) -> nx.DiGraph:
    """Build a directed graph where A -> B means A depends on B."""
    g = nx.DiGraph()
    g.add_nodes_from(nodes)
    for a, b in edges:
        g.add_edge(a, b)
    return g


def result_graph(result: ResolutionResult) -> nx.DiGraph:
    """Discovery graph of a resolution, with every resolved artifact as a node."""
    g = build_graph(result.edges, (r.dependency.compact() for r in result.resolved))
    resolved = {r.dependency.compact(): r for r in result.resolved}
    for node in g.nodes:
        entry = resolved.get(node)
        g.nodes[node]["path"] = str(entry.path) if entry is not None else None
    return g


def find_cycles(edges: Iterable[tuple[str, str]], limit: int = 20) -> list[list[str]]:
    """Return up to `limit` elementary cycles, each as a closed path `[a, b, a]`."""
    g = build_graph(edges)
    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(g):
        start = cycle.index(min(cycle))
        ordered = cycle[start:] + cycle[:start]
        cycles.append([*ordered, ordered[0]])
        if len(cycles) >= limit:
            break
    return cycles


def reverse_dependencies(g: nx.DiGraph, target: str) -> list[str]:
    """Return predecessors of target (who depends on it)."""
    if target not in g:
        return []
    return sorted(g.predecessors(target))


def top_level_nodes(g: nx.DiGraph, roots: Iterable[str] = ()) -> list[str]:
    """Nodes to start a tree rendering from: the given roots, else nodes nothing depends on."""
    explicit = [r for r in roots if r in g]
    if explicit:
        return explicit
    tops = [n for n in g.nodes if g.in_degree(n) == 0]
    return sorted(tops) if tops else sorted(g.nodes)[:1]
