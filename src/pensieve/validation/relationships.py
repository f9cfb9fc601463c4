"""Cross-entity relationship rules.

Checks that span more than one entity: fandom scoping, plot-block category
compatibility with tag-class rules, dependency and requirement cycles,
and cycle pre-checks for proposed condition edges and hierarchy moves.
Pre-checks are advisory; nothing is persisted.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from pensieve.graph.algorithms import would_create_cycle
from pensieve.graph.dependencies import DependencyGraph
from pensieve.observability.logging import get_logger
from pensieve.validation.types import ResolutionOption, Violation

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from pensieve.models.entities import PlotBlock, PlotBlockCondition, Tag, TagClass

log = get_logger(__name__)

PHASE = "relationships"


class FandomScoped(Protocol):
    id: str
    fandom_id: str


@dataclass
class EdgeCheck:
    """Verdict on a proposed edge or hierarchy move.

    Attributes:
        accepted: False if the change would introduce a cycle.
        cycle: The cycle that would be formed, closed (first node repeated).
        reason: Human-readable explanation when rejected.
    """

    accepted: bool
    cycle: list[str] = field(default_factory=list)
    reason: str = ""


def validate_fandom_scope(fandom_id: str, entities: Iterable[FandomScoped]) -> list[Violation]:
    """Report every entity that belongs to a different fandom."""
    outsiders = [entity for entity in entities if entity.fandom_id != fandom_id]
    return [
        Violation(
            rule="same_fandom_required",
            message=(
                f"'{entity.id}' belongs to fandom '{entity.fandom_id}', expected '{fandom_id}'"
            ),
            severity="critical",
            entity_ids=[entity.id],
            details={"expected_fandom_id": fandom_id, "actual_fandom_id": entity.fandom_id},
            phase=PHASE,
        )
        for entity in outsiders
    ]


def validate_condition_scope(
    fandom_id: str,
    conditions: Iterable[PlotBlockCondition],
    blocks: Mapping[str, FandomScoped],
) -> list[Violation]:
    """Report conditions linking a block that belongs to a different fandom.

    Both ends of each condition are looked up in ``blocks``; IDs that are
    not there are left to the missing-dependency check.
    """
    violations: list[Violation] = []
    for condition in conditions:
        endpoints = (("source", condition.source_block_id), ("target", condition.target_block_id))
        for role, block_id in endpoints:
            block = blocks.get(block_id) if block_id else None
            if block is None or block.fandom_id == fandom_id:
                continue
            violations.append(
                Violation(
                    rule="same_fandom_required",
                    message=(
                        f"Condition '{condition.id}' links {role} block '{block.id}' from "
                        f"fandom '{block.fandom_id}', expected '{fandom_id}'"
                    ),
                    severity="critical",
                    entity_ids=[condition.id, block.id],
                    details={
                        "expected_fandom_id": fandom_id,
                        "actual_fandom_id": block.fandom_id,
                        "condition_id": condition.id,
                        "endpoint": role,
                    },
                    phase=PHASE,
                )
            )
    return violations


def validate_category_association(plot_block: PlotBlock, tag_class: TagClass) -> Violation | None:
    """Check a plot block's category against a tag class's category rules.

    A category listed in ``excluded_categories`` is rejected even when it
    also appears in ``applicable_categories``.
    """
    rules = tag_class.rules
    if not rules.has_category_rules:
        return None
    category = plot_block.category
    if category in rules.excluded_categories:
        reason = "excluded"
        message = f"{tag_class.label} tags cannot be used with '{category}' plot blocks"
    elif rules.applicable_categories and category not in rules.applicable_categories:
        reason = "not_applicable"
        message = (
            f"{tag_class.label} tags apply only to "
            f"{', '.join(sorted(rules.applicable_categories))} plot blocks, "
            f"not '{category}'"
        )
    else:
        return None
    return Violation(
        rule="category_compatibility",
        message=message,
        severity="critical",
        entity_ids=[plot_block.id, tag_class.id],
        details={"category": category, "tag_class_id": tag_class.id, "reason": reason},
        phase=PHASE,
    )


def validate_block_associations(
    plot_blocks: Iterable[PlotBlock],
    block_tags: Mapping[str, Collection[str]],
    tags: Mapping[str, Tag],
    tag_classes: Mapping[str, TagClass],
) -> list[Violation]:
    """Check every tag assigned to a plot block against the block's category.

    Each (block, tag class) pair is judged once even when several tags of
    the class are assigned to the block.
    """
    violations: list[Violation] = []
    for block in plot_blocks:
        seen: set[str] = set()
        for tag_id in sorted(block_tags.get(block.id, ())):
            tag = tags.get(tag_id)
            if tag is None or tag.tag_class_id is None or tag.tag_class_id in seen:
                continue
            seen.add(tag.tag_class_id)
            tag_class = tag_classes.get(tag.tag_class_id)
            if tag_class is None:
                continue
            violation = validate_category_association(block, tag_class)
            if violation is not None:
                violations.append(violation)
    return violations


def check_condition_edge(graph: DependencyGraph, source: str, target: str) -> EdgeCheck:
    """Check whether a new ``source -> target`` prerequisite would close a cycle."""
    cycle = would_create_cycle(graph.adjacency, source, target)
    if cycle is None:
        return EdgeCheck(accepted=True)
    log.debug("proposed_edge_rejected", source=source, target=target, cycle=cycle)
    return EdgeCheck(
        accepted=False,
        cycle=cycle,
        reason=f"Adding '{source}' -> '{target}' would create a cycle: {' -> '.join(cycle)}",
    )


def check_hierarchy_move(
    plot_blocks: Iterable[PlotBlock],
    block_id: str,
    new_parent_id: str | None,
) -> EdgeCheck:
    """Check whether re-parenting ``block_id`` under ``new_parent_id`` is safe.

    Walks parent links upward from the proposed parent. The move is rejected
    if the walk reaches the block itself, i.e. the proposed parent is a
    descendant of the block. The walk stops on any pre-existing loop.
    """
    if new_parent_id is None:
        return EdgeCheck(accepted=True)
    if new_parent_id == block_id:
        return EdgeCheck(
            accepted=False,
            cycle=[block_id, block_id],
            reason=f"Plot block '{block_id}' cannot be its own parent",
        )

    parents = {block.id: block.parent_id for block in plot_blocks}
    chain = [new_parent_id]
    seen = {new_parent_id}
    current = parents.get(new_parent_id)
    while current is not None and current not in seen:
        chain.append(current)
        if current == block_id:
            # block -> new_parent -> ... -> block
            cycle = [block_id, *chain]
            return EdgeCheck(
                accepted=False,
                cycle=cycle,
                reason=(
                    f"Moving '{block_id}' under '{new_parent_id}' would create a cycle: "
                    f"{' -> '.join(cycle)}"
                ),
            )
        seen.add(current)
        current = parents.get(current)
    return EdgeCheck(accepted=True)


def audit_dependency_cycles(graph: DependencyGraph, scope: Collection[str]) -> list[Violation]:
    """Report every dependency cycle that passes through a block in ``scope``.

    A cycle closing through blocks outside ``scope`` (already completed
    blocks, say) is still reported when any block in scope sits on it.
    """
    report = graph.cycles(through=scope)
    return [
        _cycle_violation("circular_dependency", "Circular dependency", cycle, graph)
        for cycle in report.cycles
    ]


def build_requirement_graph(
    tags: Iterable[Tag],
    plot_blocks: Iterable[PlotBlock] = (),
) -> DependencyGraph:
    """Graph of the ``requires``/``enhances`` links between active entities.

    Links to entities that are not in the supplied snapshot are ignored;
    unresolved references are reported by the conflict heuristics.
    """
    tags = [tag for tag in tags if tag.is_active]
    plot_blocks = [block for block in plot_blocks if block.is_active]
    known = {tag.id for tag in tags} | {block.id for block in plot_blocks}
    graph = DependencyGraph()
    for tag in tags:
        for kind, targets in (("requires", tag.requires), ("enhances", tag.enhances)):
            for target in sorted(targets & known):
                graph.add_edge(tag.id, target, kind)
    for block in plot_blocks:
        for target in sorted(block.requires & known):
            graph.add_edge(block.id, target, "requires")
    return graph


def audit_requirement_cycles(
    tags: Iterable[Tag],
    plot_blocks: Iterable[PlotBlock],
    scope: Collection[str],
) -> list[Violation]:
    """Report ``requires``/``enhances`` loops through any selected tag or block."""
    graph = build_requirement_graph(tags, plot_blocks)
    report = graph.cycles(through=scope)
    return [
        _cycle_violation("circular_requirement", "Circular requirement", cycle, graph)
        for cycle in report.cycles
    ]


def suggest_cycle_resolutions(graph: DependencyGraph, cycle: list[str]) -> list[ResolutionOption]:
    """Ways to break ``cycle``, cheapest first.

    Every edge on the cycle is a candidate; removing any one of them breaks
    it. Parent links are detached, conditions removed, and tag or block
    requirements dropped.
    """
    options: list[ResolutionOption] = []
    for source, target in itertools.pairwise(cycle):
        for via in graph.edge_sources.get((source, target), []):
            if via == "parent":
                options.append(
                    ResolutionOption(
                        action="detach_parent",
                        target_id=source,
                        description=f"Move '{source}' out from under '{target}'",
                    )
                )
            elif via in ("requires", "enhances"):
                options.append(
                    ResolutionOption(
                        action=f"remove_{via}",
                        target_id=source,
                        description=f"Drop '{target}' from the {via} of '{source}'",
                    )
                )
            else:
                options.append(
                    ResolutionOption(
                        action="remove_condition",
                        target_id=via,
                        description=f"Remove condition '{via}' ('{source}' -> '{target}')",
                    )
                )
    return options


def _cycle_violation(
    rule: str,
    label: str,
    cycle: list[str],
    graph: DependencyGraph,
) -> Violation:
    resolutions = suggest_cycle_resolutions(graph, cycle)
    details: dict[str, Any] = {"path": cycle}
    if resolutions:
        first = resolutions[0]
        details["break"] = {"action": first.action, "target_id": first.target_id}
    return Violation(
        rule=rule,
        message=f"{label}: {' -> '.join(cycle)}",
        severity="critical",
        entity_ids=list(dict.fromkeys(cycle)),
        details=details,
        phase=PHASE,
    )
