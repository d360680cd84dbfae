from __future__ import annotations

import logging

import pytest

from conftest import pom_xml
from j_dep_resolver.cache import ResolutionCache
from j_dep_resolver.hierarchy import MAX_PARENT_HIERARCHY_DEPTH
from j_dep_resolver.models import Dependency


@pytest.fixture
def three_level_chain(repo) -> None:
    repo.pom(
        "org.acme:grandparent:1",
        pom_xml(
            "org.acme:grandparent:1",
            properties={"p": "grandparent", "q": "grandparent", "r": "grandparent"},
            management=["m:x:3", "m:y:3", "m:z:3"],
        ),
    )
    repo.pom(
        "org.acme:parent:1",
        pom_xml(
            "org.acme:parent:1",
            parent="org.acme:grandparent:1",
            properties={"p": "parent", "q": "parent"},
            management=["m:x:2", "m:y:2"],
        ),
    )
    repo.pom(
        "org.acme:leaf:1",
        pom_xml(
            "org.acme:leaf:1",
            parent="org.acme:parent:1",
            properties={"p": "leaf"},
            management=["m:x:1"],
        ),
    )


def _merged(resolver, coords: str):
    cache = ResolutionCache()
    processor = resolver.processor
    project = resolver.downloader.fetch_pom(Dependency.parse(coords), cache)
    return processor.merge_hierarchy(processor.collect_hierarchy(project, cache), cache), cache


def test_topmost_parent_properties_win(make_resolver, three_level_chain) -> None:
    merged, _ = _merged(make_resolver(), "org.acme:leaf:1")

    assert merged.properties["p"] == "grandparent"
    assert merged.properties["q"] == "grandparent"
    assert merged.properties["r"] == "grandparent"


def test_identity_properties_stay_with_the_leaf(make_resolver, three_level_chain) -> None:
    merged, _ = _merged(make_resolver(), "org.acme:leaf:1")

    assert merged.properties["project.artifactId"] == "leaf"
    assert merged.properties["pom.artifactId"] == "leaf"


def test_leaf_property_fills_keys_no_parent_sets(make_resolver, repo) -> None:
    repo.pom("org.acme:base:1", pom_xml("org.acme:base:1", properties={"shared": "base"}))
    repo.pom(
        "org.acme:app:1",
        pom_xml(
            "org.acme:app:1",
            ["org.example:lib:${own.version}"],
            parent="org.acme:base:1",
            properties={"shared": "app", "own.version": "3.1"},
        ),
    )

    merged, _ = _merged(make_resolver(), "org.acme:app:1")

    assert merged.properties["shared"] == "base"
    assert merged.properties["own.version"] == "3.1"
    assert merged.dependencies[0].compact() == "org.example:lib:3.1"


def test_nearer_to_leaf_management_wins(make_resolver, three_level_chain) -> None:
    merged, cache = _merged(make_resolver(), "org.acme:leaf:1")

    assert merged.dependency_management == {"m:x": "1", "m:y": "2", "m:z": "3"}
    assert cache.global_management["m:x"] == "1"


def test_parent_properties_resolve_leaf_placeholders(make_resolver, repo) -> None:
    repo.pom("org.acme:base:1", pom_xml("org.acme:base:1", properties={"lib.version": "4.2"}))
    repo.pom(
        "org.acme:app:1",
        pom_xml("org.acme:app:1", ["org.example:lib:${lib.version}"], parent="org.acme:base:1"),
    )

    merged, _ = _merged(make_resolver(), "org.acme:app:1")

    assert merged.dependencies[0].compact() == "org.example:lib:4.2"


def test_unresolvable_placeholder_becomes_missing_version(make_resolver, repo) -> None:
    repo.pom("org.acme:app:1", pom_xml("org.acme:app:1", ["org.example:lib:${nowhere}"]))
    repo.metadata("org.example:lib", release="5.0")
    resolver = make_resolver()

    context = resolver.processor.process(Dependency.parse("org.acme:app:1"), ResolutionCache())

    assert context is not None
    assert [d.compact() for d in context.dependencies] == ["org.example:lib:5.0"]


def test_parent_hierarchy_is_capped(make_resolver, repo, caplog: pytest.LogCaptureFixture) -> None:
    chain_length = MAX_PARENT_HIERARCHY_DEPTH + 3
    for i in range(chain_length):
        parent = f"org.acme:p{i + 1}:1" if i + 1 < chain_length else None
        repo.pom(f"org.acme:p{i}:1", pom_xml(f"org.acme:p{i}:1", parent=parent))
    resolver = make_resolver()
    cache = ResolutionCache()
    leaf = resolver.downloader.fetch_pom(Dependency.parse("org.acme:p0:1"), cache)

    with caplog.at_level(logging.WARNING, logger="j_dep_resolver"):
        hierarchy = resolver.processor.collect_hierarchy(leaf, cache)

    assert len(hierarchy) == MAX_PARENT_HIERARCHY_DEPTH + 1
    assert "Maximum parent hierarchy depth reached" in caplog.text


def test_missing_parent_stops_climbing(make_resolver, repo) -> None:
    repo.pom(
        "org.acme:orphan:1",
        pom_xml("org.acme:orphan:1", ["org.example:lib:1.0"], parent="org.acme:gone:1"),
    )

    context = make_resolver().processor.process(Dependency.parse("org.acme:orphan:1"), ResolutionCache())

    assert context is not None
    assert [d.compact() for d in context.dependencies] == ["org.example:lib:1.0"]
    assert context.errors == []


def test_bom_import_fills_management_beneath_explicit_entries(make_resolver, repo, session) -> None:
    repo.pom("org.acme:bom:2", pom_xml("org.acme:bom:2", management=["m:a:9", "m:b:2"]))
    repo.pom(
        "org.acme:app:1",
        pom_xml(
            "org.acme:app:1",
            ["m:a", "m:b"],
            properties={"bom.version": "2"},
            management=["m:a:1"],
            boms=["org.acme:bom:${bom.version}"],
        ),
    )

    context = make_resolver().processor.process(Dependency.parse("org.acme:app:1"), ResolutionCache())

    assert context is not None
    assert [d.compact() for d in context.dependencies] == ["m:a:1", "m:b:2"]
    assert not any("maven-metadata.xml" in url for url in session.requests)


def test_unresolvable_dependency_is_reported_not_raised(make_resolver, repo) -> None:
    repo.pom("org.acme:app:1", pom_xml("org.acme:app:1", ["nowhere:lib", "org.example:ok:1"]))

    context = make_resolver().processor.process(Dependency.parse("org.acme:app:1"), ResolutionCache())

    assert context is not None
    assert [d.compact() for d in context.dependencies] == ["org.example:ok:1"]
    assert len(context.errors) == 1
    assert context.errors[0].startswith("Failed to resolve dependency nowhere:lib of org.acme:app:1")


def test_management_entries_as_dependencies(make_resolver, repo) -> None:
    repo.pom("org.acme:app:1", pom_xml("org.acme:app:1", ["m:a:1"], management=["m:a:1", "m:extra:3"]))

    context = make_resolver(include_dependency_management=True).processor.process(
        Dependency.parse("org.acme:app:1"), ResolutionCache()
    )

    assert context is not None
    assert [d.compact() for d in context.dependencies] == ["m:a:1", "m:extra:3"]


def test_missing_pom_yields_no_context(make_resolver) -> None:
    assert make_resolver().processor.process(Dependency.parse("org.acme:none:1"), ResolutionCache()) is None
