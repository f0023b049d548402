from __future__ import annotations

from pathlib import Path

from hotsplice.graph import DependencyGraph

A = Path("/app/a.py")
B = Path("/app/b.py")
C = Path("/app/c.py")
D = Path("/app/d.py")


def test_add_dependency_is_idempotent():
    graph = DependencyGraph()

    graph.add_dependency(A, B)
    graph.add_dependency(A, B)

    assert len(graph) == 1
    assert (A, B) in graph
    assert graph.dependants_of(B) == [A]


def test_dependants_keep_insertion_order():
    graph = DependencyGraph()
    graph.add_dependency(C, A)
    graph.add_dependency(B, A)
    graph.add_dependency(D, A)

    assert graph.dependants_of(A) == [C, B, D]
    assert graph.dependants_of(D) == []


def test_remove_dependencies_returns_only_orphans():
    graph = DependencyGraph()
    graph.add_dependency(A, B)
    graph.add_dependency(A, C)
    graph.add_dependency(D, C)

    orphaned = graph.remove_dependencies(A)

    assert orphaned == {B}
    assert graph.dependencies_of(A) == []
    assert graph.dependants_of(C) == [D]
    assert graph.dependants_of(B) == []


def test_remove_dependencies_of_unknown_node_is_empty():
    graph = DependencyGraph()

    assert graph.remove_dependencies(A) == set()


def test_cycles_are_accepted():
    graph = DependencyGraph()
    graph.add_dependency(A, B)
    graph.add_dependency(B, A)

    assert graph.dependants_of(A) == [B]
    assert graph.dependants_of(B) == [A]
    assert graph.nodes() == {A, B}

    assert graph.remove_dependencies(A) == {B}
    assert graph.dependants_of(A) == [B]
    assert sorted(graph.edges()) == [(B, A)]
