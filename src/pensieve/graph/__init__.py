"""Graph package - plot-block dependency graph and algorithms."""

from pensieve.graph.algorithms import (
    Adjacency,
    CycleReport,
    all_nodes,
    find_cycles,
    find_path,
    reachable_from,
    topological_order,
    would_create_cycle,
)
from pensieve.graph.dependencies import (
    DependencyGraph,
    MissingDependency,
    build_dependency_graph,
)

__all__ = [
    "Adjacency",
    "CycleReport",
    "DependencyGraph",
    "MissingDependency",
    "all_nodes",
    "build_dependency_graph",
    "find_cycles",
    "find_path",
    "reachable_from",
    "topological_order",
    "would_create_cycle",
]
