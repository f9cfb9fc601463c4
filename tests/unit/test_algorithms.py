"""Tests for directed-graph algorithms."""

from __future__ import annotations

import pytest

from pensieve.errors import CycleError
from pensieve.graph.algorithms import (
    all_nodes,
    find_cycles,
    find_path,
    reachable_from,
    strongly_connected_components,
    topological_order,
    would_create_cycle,
)


def _chain(length: int) -> dict[str, set[str]]:
    """n0 -> n1 -> ... -> n{length-1}."""
    return {f"n{i}": {f"n{i + 1}"} for i in range(length - 1)}


class TestFindCycles:
    """Tests for iterative cycle detection."""

    def test_empty_graph_has_no_cycle(self) -> None:
        """An empty adjacency has no cycles."""
        report = find_cycles({})
        assert report.has_cycle is False
        assert report.cycles == []

    def test_acyclic_graph(self) -> None:
        """A DAG with shared dependencies reports no cycles."""
        adj = {"a": {"b", "c"}, "b": {"d"}, "c": {"d"}}
        assert find_cycles(adj).has_cycle is False

    def test_simple_cycle_path_is_closed(self) -> None:
        """Cycle path repeats the first node at the end."""
        report = find_cycles({"a": {"b"}, "b": {"c"}, "c": {"a"}})

        assert report.has_cycle is True
        assert report.cycles == [["a", "b", "c", "a"]]

    def test_self_loop_is_one_cycle(self) -> None:
        """A node depending on itself is reported as a 1-cycle."""
        report = find_cycles({"a": {"a"}, "b": set()})

        assert report.cycles == [["a", "a"]]

    def test_disconnected_components(self) -> None:
        """Cycles in separate components are all found."""
        adj = {"a": {"b"}, "b": {"a"}, "x": {"y"}, "y": {"z"}, "z": {"x"}, "lonely": set()}
        report = find_cycles(adj)

        assert report.has_cycle is True
        assert len(report.cycles) == 2
        assert report.nodes_in_cycles == {"a", "b", "x", "y", "z"}

    def test_nodes_only_referenced_as_dependencies(self) -> None:
        """Dependency-only nodes are treated as sinks, not errors."""
        report = find_cycles({"a": {"ghost"}})
        assert report.has_cycle is False

    def test_deep_chain_does_not_recurse(self) -> None:
        """A chain far deeper than the recursion limit is handled."""
        adj = _chain(20_000)
        adj["n19999"] = {"n0"}

        report = find_cycles(adj)

        assert report.has_cycle is True
        assert len(report.cycles[0]) == 20_001

    def test_result_is_deterministic(self) -> None:
        """The same graph yields the same cycle list every time."""
        adj = {"c": {"a"}, "a": {"b"}, "b": {"c", "d"}, "d": {"b"}}
        assert find_cycles(adj).cycles == find_cycles(dict(reversed(adj.items()))).cycles

    def test_cycle_closing_through_another_cycle(self) -> None:
        """A node whose only cycle shares edges with a shorter one is still covered."""
        adj = {"A": {"B", "C"}, "B": {"A"}, "C": {"B"}}

        report = find_cycles(adj)

        assert report.nodes_in_cycles == {"A", "B", "C"}
        assert report.cycles == [["A", "B", "A"], ["C", "B", "A", "C"]]

    def test_through_restricts_reported_cycles(self) -> None:
        """Only cycles through the requested nodes are reported."""
        adj = {"A": {"B", "C"}, "B": {"A"}, "C": {"B"}, "x": {"y"}, "y": {"x"}}

        assert find_cycles(adj, through={"C"}).cycles == [["C", "B", "A", "C"]]
        assert find_cycles(adj, through={"lonely"}).has_cycle is False

    def test_shortest_cycle(self) -> None:
        """shortest picks the cycle with the fewest edges."""
        adj = {"a": {"b"}, "b": {"c"}, "c": {"a"}, "x": {"y"}, "y": {"x"}}

        report = find_cycles(adj)

        assert report.shortest == ["x", "y", "x"]
        assert find_cycles({"a": {"b"}}).shortest is None


class TestStronglyConnectedComponents:
    """Tests for the SCC partition."""

    def test_components_dependencies_first(self) -> None:
        """Members are sorted and components come out dependencies first."""
        adj = {"c": {"a"}, "a": {"b"}, "b": {"a"}}

        assert strongly_connected_components(adj) == [["a", "b"], ["c"]]

    def test_singletons_for_acyclic_graph(self) -> None:
        """Every node of an acyclic graph is its own component."""
        components = strongly_connected_components({"a": {"b"}, "b": {"c"}})

        assert components == [["c"], ["b"], ["a"]]


class TestTopologicalOrder:
    """Tests for Kahn's-algorithm ordering."""

    def test_dependencies_come_first(self) -> None:
        """Every edge's target precedes its source."""
        adj = {"a": {"b", "c"}, "b": {"d"}, "c": {"d"}, "e": set()}
        order = topological_order(adj)

        position = {node: i for i, node in enumerate(order)}
        for node, deps in adj.items():
            for dep in deps:
                assert position[dep] < position[node]

    def test_alphabetical_tie_break(self) -> None:
        """Independent nodes are ordered alphabetically."""
        assert topological_order({"c": set(), "a": set(), "b": set()}) == ["a", "b", "c"]

    def test_cycle_raises(self) -> None:
        """Cyclic input raises CycleError naming the unordered nodes."""
        with pytest.raises(CycleError) as exc_info:
            topological_order({"a": {"b"}, "b": {"a"}, "c": set()})

        assert exc_info.value.remaining == ["a", "b"]

    @pytest.mark.parametrize(
        "adj",
        [
            {"a": {"b"}, "b": {"c"}},
            {"x": {"y", "z"}, "y": {"z"}},
            {"p": set(), "q": {"p"}, "r": {"q", "p"}},
        ],
    )
    def test_acyclic_graphs_round_trip(self, adj: dict[str, set[str]]) -> None:
        """No cycle detected implies an ordering that respects every edge."""
        assert find_cycles(adj).has_cycle is False
        order = topological_order(adj)

        assert set(order) == all_nodes(adj)
        for node, deps in adj.items():
            for dep in deps:
                assert order.index(dep) < order.index(node)


class TestReachability:
    """Tests for reachable_from and find_path."""

    def test_reachable_breadth_first(self) -> None:
        """Direct dependencies come before transitive ones."""
        adj = {"a": {"b", "c"}, "b": {"d"}, "c": set(), "d": set()}
        assert reachable_from(adj, "a") == ["b", "c", "d"]

    def test_reachable_excludes_start_without_cycle(self) -> None:
        """The start node is not its own dependency in a DAG."""
        assert "a" not in reachable_from({"a": {"b"}}, "a")

    def test_reachable_includes_start_on_cycle(self) -> None:
        """The start node appears when it lies on a cycle."""
        assert "a" in reachable_from({"a": {"b"}, "b": {"a"}}, "a")

    def test_find_path_shortest(self) -> None:
        """find_path returns the shortest path."""
        adj = {"a": {"b", "x"}, "b": {"c"}, "x": {"y"}, "y": {"c"}}
        assert find_path(adj, "a", "c") == ["a", "b", "c"]

    def test_find_path_missing(self) -> None:
        """No path returns None."""
        assert find_path({"a": {"b"}}, "b", "a") is None


class TestWouldCreateCycle:
    """Tests for proposed-edge pre-checks."""

    def test_closing_edge_rejected(self) -> None:
        """A -> B, B -> C exist; C -> A closes a cycle."""
        adj = {"A": {"B"}, "B": {"C"}}
        assert would_create_cycle(adj, "C", "A") == ["C", "A", "B", "C"]

    def test_edge_outside_cycle_accepted(self) -> None:
        """C -> D with D unconnected is safe."""
        adj = {"A": {"B"}, "B": {"C"}}
        assert would_create_cycle(adj, "C", "D") is None

    def test_self_edge_rejected(self) -> None:
        """A proposed self-edge is a 1-cycle."""
        assert would_create_cycle({}, "A", "A") == ["A", "A"]

    def test_input_not_mutated(self) -> None:
        """The pre-check never modifies the adjacency it is given."""
        adj = {"A": {"B"}, "B": {"C"}}
        would_create_cycle(adj, "C", "A")
        assert adj == {"A": {"B"}, "B": {"C"}}
