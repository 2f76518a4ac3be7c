"""Tests for the cell dependency graph."""

from __future__ import annotations

from gridcalc.dep_graph import DependencyGraph


def _consistent(g: DependencyGraph, cells: list[str]) -> bool:
    """Every dependency edge has its mirror dependent edge and vice versa."""
    for a in cells:
        for b in cells:
            if (b in g.get_dependencies(a)) != (a in g.get_dependents(b)):
                return False
    return True


class TestEdges:
    def test_add_is_bidirectional(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A3", "A1")
        assert g.get_dependencies("A3") == {"A1"}
        assert g.get_dependents("A1") == {"A3"}
        assert len(g) == 1

    def test_add_is_idempotent(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A3", "A1")
        g.add_dependency("A3", "A1")
        assert len(g) == 1

    def test_unknown_cell_has_no_edges(self) -> None:
        g = DependencyGraph()
        assert g.get_dependencies("Z9") == set()
        assert g.get_dependents("Z9") == set()

    def test_accessors_return_copies(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.get_dependencies("B1").add("C1")
        g.get_dependents("A1").clear()
        assert g.get_dependencies("B1") == {"A1"}
        assert g.get_dependents("A1") == {"B1"}

    def test_remove_dependencies_keeps_maps_consistent(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "B1")
        g.add_dependency("B1", "D1")
        g.remove_dependencies("B1")
        assert g.get_dependencies("B1") == set()
        assert g.get_dependents("B1") == set()
        assert g.get_dependents("A1") == set()
        assert g.get_dependencies("C1") == set()
        assert _consistent(g, ["A1", "B1", "C1", "D1"])
        assert len(g) == 0

    def test_clear_dependencies_keeps_readers(self) -> None:
        """Only outgoing edges go; cells reading the cleared cell still do."""
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "B1")
        g.clear_dependencies("B1")
        assert g.get_dependencies("B1") == set()
        assert g.get_dependents("A1") == set()
        assert g.get_dependents("B1") == {"C1"}
        assert _consistent(g, ["A1", "B1", "C1"])

    def test_clear(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.clear()
        assert len(g) == 0
        assert g.get_dependents("A1") == set()


class TestCycleCheck:
    def test_reverse_edge_closes_cycle(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "B1")
        assert g.has_cycle("B1", "A1")
        assert not g.has_cycle("A1", "B1")

    def test_self_edge_is_cycle(self) -> None:
        assert DependencyGraph().has_cycle("A1", "A1")

    def test_transitive_cycle(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "B1")
        g.add_dependency("B1", "C1")
        assert g.has_cycle("C1", "A1")
        assert not g.has_cycle("D1", "A1")

    def test_diamond_is_not_cycle(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "A1")
        g.add_dependency("D1", "B1")
        assert not g.has_cycle("D1", "C1")

    def test_check_does_not_modify(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "B1")
        g.has_cycle("B1", "A1")
        assert len(g) == 1


class TestEvaluationOrder:
    def test_chain_dependencies_first(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A2", "A1")
        g.add_dependency("A3", "A2")
        assert g.get_evaluation_order(["A3", "A1", "A2"]) == ["A1", "A2", "A3"]

    def test_every_dependency_precedes_reader(self) -> None:
        g = DependencyGraph()
        edges = [("D1", "B1"), ("D1", "C1"), ("B1", "A1"), ("C1", "A1"), ("E1", "D1")]
        for src, dst in edges:
            g.add_dependency(src, dst)
        order = g.get_evaluation_order(["E1", "D1", "C1", "B1", "A1"])
        assert len(order) == 5
        for src, dst in edges:
            assert order.index(dst) < order.index(src)

    def test_edges_outside_set_ignored(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "B1")
        assert g.get_evaluation_order(["C1", "B1"]) == ["B1", "C1"]

    def test_cycle_shortens_result(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "B1")
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "A1")
        order = g.get_evaluation_order(["A1", "B1", "C1", "D1"])
        assert order == ["D1"]

    def test_self_edge_left_out(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "A1")
        assert g.get_evaluation_order(["A1"]) == []

    def test_duplicates_in_input_collapsed(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        assert g.get_evaluation_order(["A1", "B1", "A1"]) == ["A1", "B1"]


class TestTransitiveDependents:
    def test_downstream_closure(self) -> None:
        g = DependencyGraph()
        g.add_dependency("B1", "A1")
        g.add_dependency("C1", "B1")
        g.add_dependency("D1", "A1")
        g.add_dependency("E1", "Z1")
        assert g.get_transitive_dependents("A1") == {"B1", "C1", "D1"}

    def test_cycle_includes_start(self) -> None:
        g = DependencyGraph()
        g.add_dependency("A1", "B1")
        g.add_dependency("B1", "A1")
        assert g.get_transitive_dependents("A1") == {"A1", "B1"}
