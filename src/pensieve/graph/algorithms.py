"""Directed-graph algorithms over opaque node IDs.

Pure functions over an adjacency mapping ``node -> set of dependency
nodes``. Nodes that appear only as dependencies are treated as having no
outgoing edges. No function here recurses, so large fandoms cannot
exhaust the interpreter stack.
"""

from __future__ import annotations

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pensieve.errors import CycleError
from pensieve.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

log = get_logger(__name__)

Adjacency = dict[str, set[str]]


@dataclass
class CycleReport:
    """Result of cycle detection.

    Attributes:
        has_cycle: True if at least one cycle was found.
        cycles: Each cycle as the ordered node path closing the loop, with
            the first node repeated at the end (``["a", "b", "a"]``). A
            self-loop is ``["a", "a"]``.
    """

    has_cycle: bool = False
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def nodes_in_cycles(self) -> set[str]:
        return {node for cycle in self.cycles for node in cycle}

    @property
    def shortest(self) -> list[str] | None:
        """The cycle with the fewest edges, first found on ties."""
        if not self.cycles:
            return None
        return min(self.cycles, key=len)


def all_nodes(adjacency: Mapping[str, Iterable[str]]) -> set[str]:
    """Return every node mentioned as a key or as a dependency."""
    nodes = set(adjacency)
    for deps in adjacency.values():
        nodes.update(deps)
    return nodes


def _canonical(cycle: list[str]) -> tuple[str, ...]:
    """Rotate a closed cycle so its smallest node comes first."""
    ring = cycle[:-1]
    pivot = ring.index(min(ring))
    return tuple(ring[pivot:] + ring[:pivot])


def strongly_connected_components(adjacency: Mapping[str, Iterable[str]]) -> list[list[str]]:
    """Partition the graph into strongly connected components.

    Iterative Tarjan: each work-stack frame holds a node and the iterator
    over its remaining neighbours. Components are emitted in reverse
    topological order (dependencies first); members are sorted.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []

    for root in sorted(all_nodes(adjacency)):
        if root in index:
            continue
        index[root] = lowlink[root] = len(index)
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(sorted(adjacency.get(root, ()))))]

        while work:
            node, neighbours = work[-1]
            descended = False
            for nxt in neighbours:
                if nxt not in index:
                    index[nxt] = lowlink[nxt] = len(index)
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, iter(sorted(adjacency.get(nxt, ())))))
                    descended = True
                    break
                if nxt in on_stack:
                    lowlink[node] = min(lowlink[node], index[nxt])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def _shortest_cycle_through(
    adjacency: Mapping[str, Iterable[str]],
    node: str,
) -> list[str] | None:
    """Breadth-first search from ``node`` back to itself."""
    parents: dict[str, str] = {}
    visited: set[str] = set()
    queue: deque[str] = deque([node])
    while queue:
        current = queue.popleft()
        for nxt in sorted(adjacency.get(current, ())):
            if nxt == node:
                path = [current]
                while path[-1] != node:
                    path.append(parents[path[-1]])
                path.reverse()
                return [*path, node]
            if nxt in visited:
                continue
            visited.add(nxt)
            parents[nxt] = current
            queue.append(nxt)
    return None


def find_cycles(
    adjacency: Mapping[str, Iterable[str]],
    through: Collection[str] | None = None,
) -> CycleReport:
    """Detect cycles via strongly connected components.

    Every node of a non-trivial component lies on at least one cycle, and
    every reported cycle stays inside one component. For each such node
    not already covered by a reported cycle, the shortest cycle through it
    is added. Components and nodes are visited in sorted order, so the
    result is deterministic for a given graph.

    Args:
        adjacency: Mapping of node ID to the IDs it depends on.
        through: If given, only cycles through these nodes are reported.

    Returns:
        CycleReport listing each distinct cycle once.
    """
    wanted = None if through is None else set(through)
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()
    covered: set[str] = set()

    for component in strongly_connected_components(adjacency):
        members = set(component)
        inner = {node: members.intersection(adjacency.get(node, ())) for node in component}
        for node in component:
            if node in covered or (wanted is not None and node not in wanted):
                continue
            cycle = _shortest_cycle_through(inner, node)
            if cycle is None:
                continue
            covered.update(cycle)
            key = _canonical(cycle)
            if key not in seen:
                seen.add(key)
                cycles.append(cycle)

    if cycles:
        log.debug("cycles_detected", count=len(cycles))
    return CycleReport(has_cycle=bool(cycles), cycles=cycles)


def topological_order(adjacency: Mapping[str, Iterable[str]]) -> list[str]:
    """Order nodes so every dependency precedes its dependents.

    Uses Kahn's algorithm with alphabetical tie-breaking for determinism.

    Raises:
        CycleError: If the graph contains a cycle.
    """
    nodes = all_nodes(adjacency)
    dependents: dict[str, set[str]] = {node: set() for node in nodes}
    pending: dict[str, int] = dict.fromkeys(nodes, 0)
    for node, deps in adjacency.items():
        for dep in set(deps):
            dependents[dep].add(node)
            pending[node] += 1

    queue = [node for node, count in pending.items() if count == 0]
    heapq.heapify(queue)
    order: list[str] = []
    while queue:
        node = heapq.heappop(queue)
        order.append(node)
        for dependent in dependents[node]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(queue, dependent)

    if len(order) != len(nodes):
        raise CycleError(remaining=sorted(nodes - set(order)))
    return order


def reachable_from(adjacency: Mapping[str, Iterable[str]], start: str) -> list[str]:
    """Return every node reachable from ``start``, in breadth-first order.

    ``start`` itself is excluded unless it lies on a cycle through itself.
    """
    found: list[str] = []
    visited: set[str] = set()
    queue: deque[str] = deque(sorted(adjacency.get(start, ())))
    while queue:
        node = queue.popleft()
        if node in visited:
            continue
        visited.add(node)
        found.append(node)
        queue.extend(sorted(set(adjacency.get(node, ())) - visited))
    return found


def find_path(adjacency: Mapping[str, Iterable[str]], start: str, goal: str) -> list[str] | None:
    """Return a shortest dependency path from ``start`` to ``goal``, or None."""
    if start == goal:
        return [start]
    parents: dict[str, str] = {}
    visited = {start}
    queue: deque[str] = deque([start])
    while queue:
        node = queue.popleft()
        for nxt in sorted(adjacency.get(node, ())):
            if nxt in visited:
                continue
            parents[nxt] = node
            if nxt == goal:
                path = [goal]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            visited.add(nxt)
            queue.append(nxt)
    return None


def would_create_cycle(
    adjacency: Mapping[str, Iterable[str]],
    source: str,
    target: str,
) -> list[str] | None:
    """Check whether adding the edge ``source -> target`` closes a cycle.

    Returns:
        The cycle the new edge would close (``[source, target, ..., source]``),
        or None if the edge is safe.
    """
    if source == target:
        return [source, source]
    back = find_path(adjacency, target, source)
    if back is None:
        return None
    return [source, *back]
