"""Tests for ClosureGraph: ordering, cycles, requirement chains."""

from __future__ import annotations

from runenv.core.closure_graph import ClosureGraph
from runenv.models.coordinates import parse_coordinate

A = parse_coordinate("g:a:1")
B = parse_coordinate("g:b:1")
C = parse_coordinate("g:c:1")
D = parse_coordinate("g:d:1")


class TestClosureGraph:
    def test_root_only(self):
        graph = ClosureGraph(A)
        assert graph.root == A
        assert graph.nodes == [A]
        assert len(graph) == 1
        assert A in graph

    def test_add_reports_new_nodes(self):
        graph = ClosureGraph(A)
        assert graph.add(A, B) is True
        assert graph.add(A, B) is False
        assert graph.requires(A) == [B]

    def test_insertion_order(self):
        graph = ClosureGraph(A)
        graph.add(A, C)
        graph.add(C, D)
        graph.add(A, B)
        assert graph.nodes == [A, C, D, B]

    def test_cycle_is_recorded_once(self):
        graph = ClosureGraph(A)
        graph.add(A, B)
        assert graph.add(B, A) is False
        assert graph.nodes == [A, B]
        assert graph.requires(B) == [A]
        assert graph.required_by(A) == [B]

    def test_shared_child(self):
        graph = ClosureGraph(A)
        graph.add(A, B)
        graph.add(A, C)
        graph.add(B, D)
        graph.add(C, D)
        assert graph.required_by(D) == [B, C]
        assert len(graph) == 4

    def test_path_to(self):
        graph = ClosureGraph(A)
        graph.add(A, B)
        graph.add(B, C)
        graph.add(C, D)
        graph.add(A, D)
        assert graph.path_to(D) == [A, D]
        assert graph.path_to(C) == [A, B, C]
        assert graph.path_to(A) == [A]

    def test_path_to_unknown(self):
        assert ClosureGraph(A).path_to(B) == []
