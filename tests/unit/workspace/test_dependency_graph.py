"""Unit tests for workspace.dependency_graph."""

from __future__ import annotations

import random
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from distgate.workspace import (
    CycleError,
    DependencyGraph,
    Package,
    PackageManifest,
    resolve_internal_dependencies,
)


def _package(name: str, *, deps: tuple[str, ...] = (), peers: tuple[str, ...] = ()) -> Package:
    directory = Path("/workspace/packages") / name
    return Package(
        name=name,
        directory=directory,
        dist_dir=directory / "dist",
        manifest=PackageManifest(
            name=f"@acme/{name}",
            dependencies={dep: "*" for dep in deps},
            peer_dependencies={peer: "*" for peer in peers},
        ),
    )


def test_internal_dependencies_union_peer_and_ignore_external() -> None:
    core = _package("core")
    theme = _package("theme")
    ui = _package("ui", deps=("@acme/core", "lit"), peers=("@acme/theme", "@acme/unbuilt"))

    resolved = resolve_internal_dependencies(ui, (ui, theme, core))

    assert [package.name for package in resolved] == ["core", "theme"]


def test_self_reference_is_not_a_dependency() -> None:
    core = _package("core", deps=("@acme/core",))

    assert resolve_internal_dependencies(core, (core,)) == ()


def test_install_order_is_dependencies_first_with_lexical_ties() -> None:
    packages = (
        _package("app", deps=("@acme/ui", "@acme/utils")),
        _package("core"),
        _package("ui", deps=("@acme/core",)),
        _package("utils", deps=("@acme/core",)),
        _package("standalone"),
    )
    graph = DependencyGraph.from_packages(packages)

    assert graph.install_order("app") == ("core", "ui", "utils")
    assert graph.install_order("ui") == ("core",)
    assert graph.install_order("standalone") == ()
    assert graph.dependencies_of("app") == ("ui", "utils")
    assert graph.dependencies_of("app", transitive=True) == ("core", "ui", "utils")


def test_cycle_detection_returns_canonical_cycle() -> None:
    graph = DependencyGraph(edges=(("a", "b"), ("b", "c"), ("c", "a"), ("c", "d")))

    assert graph.detect_cycles() == (("a", "b", "c", "a"),)

    with pytest.raises(CycleError) as error:
        graph.topological_sort()
    assert error.value.cycles == (("a", "b", "c", "a"),)
    assert "a -> b -> c -> a" in str(error.value)


def test_install_order_raises_for_cycle_through_target() -> None:
    packages = (
        _package("left", deps=("@acme/right",)),
        _package("right", deps=("@acme/left",)),
        _package("leaf"),
    )
    graph = DependencyGraph.from_packages(packages)

    with pytest.raises(CycleError):
        graph.install_order("left")
    assert graph.install_order("leaf") == ()


def test_unknown_node_raises_key_error() -> None:
    graph = DependencyGraph(nodes=("core",))

    with pytest.raises(KeyError, match="ghost"):
        graph.install_order("ghost")


def test_seeded_random_dag_with_500_nodes_topological_sort_stress() -> None:
    rng = random.Random(2_026_101_6)
    node_count = 500
    node_ids = [f"pkg-{index:04d}" for index in range(node_count)]

    graph = DependencyGraph(nodes=node_ids)
    for child_index in range(1, node_count):
        fan_in = min(4, child_index)
        for parent_index in rng.sample(range(child_index), fan_in):
            if rng.random() < 0.55:
                graph.add_edge(node_ids[parent_index], node_ids[child_index])

    order = graph.topological_sort()
    assert len(order) == node_count

    position = {node_id: index for index, node_id in enumerate(order)}
    for dependency, dependent in graph.edges:
        assert position[dependency] < position[dependent]


@st.composite
def _dag_edges(draw: st.DrawFn) -> tuple[list[str], list[tuple[str, str]]]:
    size = draw(st.integers(min_value=1, max_value=12))
    nodes = [f"n{index:02d}" for index in range(size)]
    pairs = [(low, high) for low in range(size) for high in range(low + 1, size)]
    chosen = draw(st.lists(st.sampled_from(pairs), unique=True)) if pairs else []
    return nodes, [(nodes[low], nodes[high]) for low, high in chosen]


@given(case=_dag_edges())
@settings(max_examples=60, derandomize=True, deadline=None)
def test_install_order_always_precedes_target_and_respects_edges(
    case: tuple[list[str], list[tuple[str, str]]],
) -> None:
    nodes, edges = case
    graph = DependencyGraph(nodes=nodes, edges=edges)

    for target in nodes:
        order = graph.install_order(target)
        assert target not in order
        assert set(order) == set(graph.dependencies_of(target, transitive=True))
        position = {node: index for index, node in enumerate(order)}
        for dependency, dependent in edges:
            if dependency in position and dependent in position:
                assert position[dependency] < position[dependent]
        assert graph.install_order(target) == order
