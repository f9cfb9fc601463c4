"""Plot-block dependency graph construction.

The hierarchy (parent/child) and explicit prerequisite conditions are two
views of the same structure. They are unified here into one directed edge
set so cycle detection runs once over both:

- a child depends on its parent (``child -> parent``)
- a prerequisite condition's source depends on its target (``source -> target``)

The graph is rebuilt from the supplied snapshot on every call; nothing is
cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pensieve.graph.algorithms import Adjacency, CycleReport, find_cycles, reachable_from
from pensieve.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from pensieve.models.entities import PlotBlock, PlotBlockCondition

log = get_logger(__name__)


@dataclass(frozen=True)
class MissingDependency:
    """A reference dropped from the graph because it did not resolve.

    Attributes:
        source_id: Block (or condition source) holding the reference.
        missing_id: Referenced block that is absent or inactive.
        via: Condition ID or ``"parent"`` for hierarchy references.
    """

    source_id: str
    missing_id: str
    via: str

    @property
    def message(self) -> str:
        if self.via == "parent":
            return f"Plot block '{self.source_id}' has missing parent '{self.missing_id}'"
        return (
            f"Condition '{self.via}' on '{self.source_id}' references missing or "
            f"inactive plot block '{self.missing_id}'"
        )


@dataclass
class DependencyGraph:
    """Directed graph of plot-block dependencies.

    Attributes:
        adjacency: Block ID -> IDs of blocks it depends on.
        edge_sources: (from, to) -> list of what contributed the edge
            (``"parent"`` or a condition ID).
        missing: References dropped because their endpoints did not resolve.
    """

    adjacency: Adjacency = field(default_factory=dict)
    edge_sources: dict[tuple[str, str], list[str]] = field(default_factory=dict)
    missing: list[MissingDependency] = field(default_factory=list)

    def add_edge(self, source: str, target: str, via: str) -> None:
        self.adjacency.setdefault(source, set()).add(target)
        self.adjacency.setdefault(target, set())
        self.edge_sources.setdefault((source, target), []).append(via)

    @property
    def warnings(self) -> list[str]:
        """Missing-dependency messages, one per dropped reference."""
        return [missing.message for missing in self.missing]

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.adjacency.values())

    def direct_dependencies(self, node: str) -> list[str]:
        return sorted(self.adjacency.get(node, set()))

    def all_dependencies(self, node: str) -> list[str]:
        """Transitive dependencies of ``node`` in breadth-first order."""
        return reachable_from(self.adjacency, node)

    def dependents(self, node: str) -> list[str]:
        """Blocks that depend directly on ``node``."""
        return sorted(src for src, deps in self.adjacency.items() if node in deps)

    def cycles(self, through: Collection[str] | None = None) -> CycleReport:
        """Cycles in the graph, optionally only those through ``through``."""
        return find_cycles(self.adjacency, through)

    def with_edge(self, source: str, target: str, via: str = "proposed") -> DependencyGraph:
        """Return a copy of this graph with one extra edge. The original is untouched."""
        copy = DependencyGraph(
            adjacency={node: set(deps) for node, deps in self.adjacency.items()},
            edge_sources={edge: list(vias) for edge, vias in self.edge_sources.items()},
            missing=list(self.missing),
        )
        copy.add_edge(source, target, via)
        return copy


def build_dependency_graph(
    plot_blocks: Iterable[PlotBlock],
    conditions: Iterable[PlotBlockCondition],
) -> DependencyGraph:
    """Build the unified dependency graph for one fandom.

    Only active blocks become nodes. Only active prerequisite conditions
    with a target contribute edges; other condition types do not order
    blocks. References to missing or inactive blocks are dropped and
    recorded in ``graph.missing`` so callers can surface them as warnings.

    Args:
        plot_blocks: The fandom's plot blocks.
        conditions: The fandom's conditions (inactive ones are skipped).

    Returns:
        DependencyGraph over active blocks.
    """
    graph = DependencyGraph()
    active: dict[str, PlotBlock] = {}
    for block in plot_blocks:
        if block.is_active:
            active[block.id] = block
            graph.adjacency.setdefault(block.id, set())

    for block in active.values():
        if block.parent_id is None:
            continue
        if block.parent_id in active:
            graph.add_edge(block.id, block.parent_id, "parent")
        else:
            graph.missing.append(
                MissingDependency(source_id=block.id, missing_id=block.parent_id, via="parent")
            )

    for condition in conditions:
        target = condition.target_block_id
        if not condition.is_active or condition.condition_type != "prerequisite" or target is None:
            continue
        unresolved = [bid for bid in (condition.source_block_id, target) if bid not in active]
        if unresolved:
            for missing_id in unresolved:
                graph.missing.append(
                    MissingDependency(
                        source_id=condition.source_block_id,
                        missing_id=missing_id,
                        via=condition.id,
                    )
                )
            continue
        graph.add_edge(condition.source_block_id, target, condition.id)

    log.debug(
        "dependency_graph_built",
        nodes=len(graph.adjacency),
        edges=graph.edge_count,
        dropped=len(graph.missing),
    )
    return graph
