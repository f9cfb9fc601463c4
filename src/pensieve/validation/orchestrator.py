"""Pathway validation pipeline.

PathwayValidator sequences the validation phases, times each one, and
aggregates every finding into a single ValidationReport:

1. structure: resolve entities, reject unknown or duplicate IDs and
   malformed condition values (the only phase that short-circuits)
2. constraints: tag-class rules
3. conditions: plot-block conditions against the runtime context
4. relationships: fandom scope (including condition endpoints), category
   compatibility, dependency and requirement cycles
5. conflicts: domain heuristics
6. complexity, suggestions and compatibility score (advisory only)

The validator never raises across its public boundary. Structural errors
and internal faults are reported as critical ``structural_error``
violations. Every call reads a fresh snapshot from the provider; nothing is
cached between calls.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from pensieve.config import EngineConfig
from pensieve.errors import EngineFault, StructuralError
from pensieve.graph.dependencies import DependencyGraph, build_dependency_graph
from pensieve.models.expressions import decode_condition_value
from pensieve.models.pathway import ResolvedPathway, RuntimeContext
from pensieve.observability.logging import get_logger, validation_context
from pensieve.observability.timing import NullTimingSink, PhaseTiming
from pensieve.validation.conditions import (
    evaluate_condition,
    evaluate_conditions,
    unmet_condition_violations,
)
from pensieve.validation.conflicts import analyze_conflicts, default_heuristics
from pensieve.validation.constraints import evaluate_tag_constraints
from pensieve.validation.relationships import (
    audit_dependency_cycles,
    audit_requirement_cycles,
    check_condition_edge,
    suggest_cycle_resolutions,
    validate_block_associations,
    validate_condition_scope,
    validate_fandom_scope,
)
from pensieve.validation.types import (
    STRUCTURAL_RULE,
    ConflictFinding,
    Suggestion,
    ValidationReport,
    ValidationWarning,
    Violation,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from pensieve.models.entities import PlotBlock, PlotBlockCondition, Tag, TagClass
    from pensieve.models.expressions import DecodedValue
    from pensieve.models.pathway import Pathway
    from pensieve.observability.timing import PhaseStatus, TimingSink
    from pensieve.provider import DataProvider
    from pensieve.validation.conditions import ConditionEvaluation, ConditionResult
    from pensieve.validation.conflicts import ConflictHeuristic

log = get_logger(__name__)

STRUCTURE = "structure"
CONSTRAINTS = "constraints"
CONDITIONS = "conditions"
RELATIONSHIPS = "relationships"
CONFLICTS = "conflicts"
SUGGESTIONS = "suggestions"

RULE_PHASES = (CONSTRAINTS, CONDITIONS, RELATIONSHIPS, CONFLICTS)

_VIOLATION_PENALTY = {"critical": 25, "major": 15, "minor": 5}
_CONFLICT_PENALTY = {"error": 25, "warning": 5, "info": 0}
_WARNING_PENALTY = 2
_CLEAN_BONUS = 5

_EXCLUSION_RULES = frozenset({"mutual_exclusion", "within_class_exclusion", "class_conflict"})
_CYCLE_RULES = frozenset({"circular_dependency", "circular_requirement"})


@dataclass
class PhaseOutcome:
    """Findings produced by one phase."""

    violations: list[Violation] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    conflicts: list[ConflictFinding] = field(default_factory=list)


@dataclass
class ResolvedSnapshot:
    """Everything the rule phases read, resolved once by the structural phase."""

    pathway: ResolvedPathway
    tag_classes: dict[str, TagClass]
    fandom_tags: dict[str, Tag]
    fandom_blocks: dict[str, PlotBlock]
    conditions: list[PlotBlockCondition]
    decoded: dict[str, DecodedValue]
    graph: DependencyGraph
    condition_count: int = 0
    foreign_blocks: dict[str, PlotBlock] = field(default_factory=dict)


@dataclass
class ConditionGraphReport:
    """Dependency-graph audit for one fandom.

    Attributes:
        fandom_id: Fandom that was audited.
        has_circular_dependencies: True if any cycle exists.
        circular_paths: Each cycle, closed (first node repeated at the end).
        direct_dependencies: Block ID -> blocks it depends on directly.
        all_dependencies: Block ID -> every block it depends on transitively.
        dependents: Block ID -> blocks that depend on it directly.
        proposed_edge_accepted: Verdict on the proposed edge, None if none was given.
        proposed_edge_cycle: Cycle the proposed edge would close, if rejected.
        shortest_cycle: Shortest of ``circular_paths``, empty if there is none.
        resolutions: Per cycle, the edges whose removal would break it.
        warnings: Missing-dependency messages.
    """

    fandom_id: str
    has_circular_dependencies: bool = False
    circular_paths: list[list[str]] = field(default_factory=list)
    direct_dependencies: dict[str, list[str]] = field(default_factory=dict)
    all_dependencies: dict[str, list[str]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)
    proposed_edge_accepted: bool | None = None
    shortest_cycle: list[str] = field(default_factory=list)
    resolutions: list[dict[str, Any]] = field(default_factory=list)
    proposed_edge_cycle: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fandom_id": self.fandom_id,
            "has_circular_dependencies": self.has_circular_dependencies,
            "circular_paths": self.circular_paths,
            "direct_dependencies": self.direct_dependencies,
            "all_dependencies": self.all_dependencies,
            "dependents": self.dependents,
            "proposed_edge_accepted": self.proposed_edge_accepted,
            "shortest_cycle": self.shortest_cycle,
            "resolutions": self.resolutions,
            "proposed_edge_cycle": self.proposed_edge_cycle,
            "warnings": self.warnings,
        }


def structural_violation(error: Exception, phase: str) -> Violation:
    """Convert a StructuralError or EngineFault into a reported finding."""
    entity_ids: list[str] = []
    details: dict[str, Any] = {"error_type": type(error).__name__}
    if isinstance(error, StructuralError):
        if error.entity_id:
            entity_ids.append(error.entity_id)
        if error.field_path:
            details["field_path"] = error.field_path
        details.update(error.details)
    return Violation(
        rule=STRUCTURAL_RULE,
        message=str(error),
        severity="critical",
        entity_ids=entity_ids,
        details=details,
        phase=phase,
    )


class PathwayValidator:
    """Validates pathways against a fandom's rule catalog.

    Args:
        provider: Source of fandom-scoped entity snapshots.
        config: Engine limits and policies. Defaults to ``EngineConfig()``.
        timing_sink: Receives one PhaseTiming per phase. Defaults to a sink
            that discards timings.
        heuristics: Conflict heuristics to run, in order. Defaults to the
            built-in set.
    """

    def __init__(
        self,
        provider: DataProvider,
        config: EngineConfig | None = None,
        timing_sink: TimingSink | None = None,
        heuristics: Mapping[str, ConflictHeuristic] | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or EngineConfig()
        self.timing_sink: TimingSink = timing_sink or NullTimingSink()
        self.heuristics = dict(heuristics) if heuristics is not None else default_heuristics()

    # -- Public API ------------------------------------------------------------

    def validate_pathway(
        self,
        pathway: Pathway,
        timeout_ms: float | None = None,
    ) -> ValidationReport:
        """Run the full pipeline synchronously.

        Phases run in order. When ``timeout_ms`` (or ``config.timeout_ms``)
        elapses, the remaining rule phases are marked ``timed_out`` and the
        report is flagged incomplete.

        Args:
            pathway: The pathway to validate.
            timeout_ms: Optional budget for the whole call.

        Returns:
            ValidationReport. Never raises.
        """
        with validation_context(fandom_id=pathway.fandom_id):
            start = time.perf_counter()
            budget = timeout_ms if timeout_ms is not None else self.config.timeout_ms
            deadline = start + budget / 1000 if budget is not None else None
            report = ValidationReport(fandom_id=pathway.fandom_id)
            log.debug(
                "validation_start",
                tags=len(pathway.tags),
                plot_blocks=len(pathway.plot_blocks),
            )

            snapshot = self._run_structure(pathway, report)
            if snapshot is not None:
                for phase in RULE_PHASES:
                    if deadline is not None and time.perf_counter() >= deadline:
                        self._record(report, PhaseTiming(phase, 0.0, "timed_out"))
                        report.incomplete = True
                        continue
                    outcome = self._run_phase(report, phase, self._phase_fn(phase, snapshot))
                    self._merge(report, outcome)

            self._finish(report, pathway, snapshot, start)
            return report

    async def validate_pathway_async(
        self,
        pathway: Pathway,
        timeout_ms: float | None = None,
    ) -> ValidationReport:
        """Run the pipeline with the rule phases dispatched concurrently.

        The structural phase runs first. Constraints, conditions,
        relationships and conflicts have no data dependency on one another
        and run in worker threads. Phases still running when the timeout
        elapses are marked ``timed_out`` and the report is flagged
        incomplete; findings from finished phases are kept.

        Cancelling a timed-out task does not interrupt its worker thread: the
        phase keeps running in the default executor until it returns, and
        its result is discarded. A custom heuristic that never returns holds an
        executor thread for as long as the process lives.

        Returns:
            ValidationReport. Never raises.
        """
        with validation_context(fandom_id=pathway.fandom_id):
            start = time.perf_counter()
            budget = timeout_ms if timeout_ms is not None else self.config.timeout_ms
            report = ValidationReport(fandom_id=pathway.fandom_id)

            snapshot = self._run_structure(pathway, report)
            if snapshot is not None:
                tasks = {
                    asyncio.create_task(
                        asyncio.to_thread(
                            self._execute_phase, phase, self._phase_fn(phase, snapshot)
                        )
                    ): phase
                    for phase in RULE_PHASES
                }
                timeout = budget / 1000 if budget is not None else None
                done, pending = await asyncio.wait(tasks, timeout=timeout)

                # Merge in pipeline order regardless of completion order
                finished = {tasks[task]: task.result() for task in done}
                for task in pending:
                    task.cancel()
                for phase in RULE_PHASES:
                    if phase in finished:
                        outcome, timing = finished[phase]
                        self._record(report, timing)
                        self._merge(report, outcome)
                    else:
                        elapsed = (time.perf_counter() - start) * 1000
                        self._record(report, PhaseTiming(phase, elapsed, "timed_out"))
                        report.incomplete = True
                if pending:
                    log.warning(
                        "validation_timed_out",
                        timeout_ms=budget,
                        unfinished=[tasks[task] for task in pending],
                    )

            self._finish(report, pathway, snapshot, start)
            return report

    def validate_condition_graph(
        self,
        fandom_id: str,
        proposed_edge: tuple[str, str] | None = None,
        block_id: str | None = None,
    ) -> ConditionGraphReport:
        """Audit a fandom's dependency graph.

        Args:
            fandom_id: Fandom to audit.
            proposed_edge: Optional ``(source, target)`` prerequisite to
                pre-check. The check is advisory; nothing is persisted.
            block_id: Restrict the dependency maps to this block.

        Returns:
            ConditionGraphReport.
        """
        graph = build_dependency_graph(
            self.provider.get_plot_blocks(fandom_id),
            self.provider.get_active_conditions(fandom_id),
        )
        cycles = graph.cycles()
        nodes = [block_id] if block_id is not None else sorted(graph.adjacency)
        report = ConditionGraphReport(
            fandom_id=fandom_id,
            has_circular_dependencies=cycles.has_cycle,
            circular_paths=cycles.cycles,
            direct_dependencies={node: graph.direct_dependencies(node) for node in nodes},
            all_dependencies={node: graph.all_dependencies(node) for node in nodes},
            dependents={node: graph.dependents(node) for node in nodes},
            shortest_cycle=cycles.shortest or [],
            resolutions=[
                {
                    "cycle": cycle,
                    "options": [
                        asdict(option) for option in suggest_cycle_resolutions(graph, cycle)
                    ],
                }
                for cycle in cycles.cycles
            ],
            warnings=graph.warnings,
        )
        if proposed_edge is not None:
            source, target = proposed_edge
            check = check_condition_edge(graph, source, target)
            report.proposed_edge_accepted = check.accepted
            report.proposed_edge_cycle = check.cycle
        log.debug(
            "condition_graph_validated",
            fandom_id=fandom_id,
            cycles=len(cycles.cycles),
            proposed_edge_accepted=report.proposed_edge_accepted,
        )
        return report

    def evaluate_conditions(
        self,
        fandom_id: str,
        plot_block_id: str,
        context: RuntimeContext | None = None,
    ) -> ConditionEvaluation:
        """Evaluate the active conditions on one plot block.

        Raises:
            StructuralError: If a condition value is malformed.
        """
        return evaluate_conditions(
            plot_block_id,
            self.provider.get_active_conditions(fandom_id),
            context or RuntimeContext(),
            max_depth=self.config.max_expression_depth,
            max_steps=self.config.max_traversal_steps,
        )

    # -- Phase plumbing ----------------------------------------------------------

    def _record(self, report: ValidationReport, timing: PhaseTiming) -> None:
        report.timings.append(timing)
        self.timing_sink.record(timing)

    def _execute_phase(
        self,
        phase: str,
        fn: Callable[[], PhaseOutcome],
    ) -> tuple[PhaseOutcome, PhaseTiming]:
        """Run one phase, converting any exception into a structural finding."""
        status: PhaseStatus = "completed"
        start = time.perf_counter()
        with validation_context(phase=phase):
            try:
                outcome = fn()
            except StructuralError as e:
                status = "failed"
                outcome = PhaseOutcome(violations=[structural_violation(e, phase)])
            except EngineFault as e:
                status = "failed"
                log.error("engine_fault", error=str(e))
                outcome = PhaseOutcome(violations=[structural_violation(e, phase)])
            except Exception as e:
                status = "failed"
                log.error("validation_phase_failed", error=str(e), exc_info=True)
                fault = EngineFault(f"unexpected error: {e}", phase=phase)
                outcome = PhaseOutcome(violations=[structural_violation(fault, phase)])
            duration = (time.perf_counter() - start) * 1000
            log.debug("phase_finished", status=status, duration_ms=duration)
        return outcome, PhaseTiming(phase, duration, status)

    def _run_phase(
        self,
        report: ValidationReport,
        phase: str,
        fn: Callable[[], PhaseOutcome],
    ) -> PhaseOutcome:
        outcome, timing = self._execute_phase(phase, fn)
        self._record(report, timing)
        return outcome

    @staticmethod
    def _merge(report: ValidationReport, outcome: PhaseOutcome) -> None:
        report.violations.extend(outcome.violations)
        report.warnings.extend(outcome.warnings)
        report.conflicts.extend(outcome.conflicts)

    def _phase_fn(self, phase: str, snapshot: ResolvedSnapshot) -> Callable[[], PhaseOutcome]:
        phases: dict[str, Callable[[ResolvedSnapshot], PhaseOutcome]] = {
            CONSTRAINTS: self._check_constraints,
            CONDITIONS: self._check_conditions,
            RELATIONSHIPS: self._check_relationships,
            CONFLICTS: self._check_conflicts,
        }
        handler = phases[phase]
        return lambda: handler(snapshot)

    def _run_structure(self, pathway: Pathway, report: ValidationReport) -> ResolvedSnapshot | None:
        holder: dict[str, ResolvedSnapshot] = {}

        def run() -> PhaseOutcome:
            snapshot, outcome = self._resolve(pathway)
            if snapshot is not None:
                holder["snapshot"] = snapshot
            return outcome

        outcome = self._run_phase(report, STRUCTURE, run)
        self._merge(report, outcome)
        if report.has_structural_errors:
            log.info(
                "validation_short_circuit",
                errors=sum(v.rule == STRUCTURAL_RULE for v in report.violations),
            )
            for phase in RULE_PHASES:
                self._record(report, PhaseTiming(phase, 0.0, "skipped"))
            return None
        return holder.get("snapshot")

    # -- Phases ------------------------------------------------------------------

    def _resolve(self, pathway: Pathway) -> tuple[ResolvedSnapshot | None, PhaseOutcome]:
        """Structural phase: resolve IDs, decode condition values, build the graph."""
        fandom_id = pathway.fandom_id
        outcome = PhaseOutcome()
        errors: list[StructuralError] = []

        fandom_tags = {tag.id: tag for tag in self.provider.get_tags(fandom_id)}
        fandom_blocks = {block.id: block for block in self.provider.get_plot_blocks(fandom_id)}
        tag_classes = {tc.id: tc for tc in self.provider.get_tag_classes(fandom_id)}
        all_conditions = self.provider.get_active_conditions(fandom_id)

        tags: list[Tag] = []
        for index, tag_id in enumerate(pathway.tags):
            tag = fandom_tags.get(tag_id)
            if pathway.tags.index(tag_id) != index:
                errors.append(
                    StructuralError("duplicate tag in pathway", f"tags[{index}]", tag_id)
                )
            elif tag is None:
                errors.append(
                    StructuralError(
                        f"unknown tag for fandom '{fandom_id}'", f"tags[{index}]", tag_id
                    )
                )
            elif not tag.is_active:
                errors.append(StructuralError("tag is inactive", f"tags[{index}]", tag_id))
            else:
                tags.append(tag)

        blocks: list[PlotBlock] = []
        for index, block_id in enumerate(pathway.plot_blocks):
            block = fandom_blocks.get(block_id)
            if pathway.plot_blocks.index(block_id) != index:
                errors.append(
                    StructuralError(
                        "duplicate plot block in pathway", f"plot_blocks[{index}]", block_id
                    )
                )
            elif block is None:
                errors.append(
                    StructuralError(
                        f"unknown plot block for fandom '{fandom_id}'",
                        f"plot_blocks[{index}]",
                        block_id,
                    )
                )
            elif not block.is_active:
                errors.append(
                    StructuralError("plot block is inactive", f"plot_blocks[{index}]", block_id)
                )
            else:
                blocks.append(block)

        in_scope_ids = set(pathway.plot_blocks)
        conditions = [
            c for c in all_conditions if c.is_active and c.source_block_id in in_scope_ids
        ]
        decoded: dict[str, DecodedValue] = {}
        for condition in conditions:
            try:
                decoded[condition.id] = decode_condition_value(
                    condition, max_depth=self.config.max_expression_depth
                )
            except StructuralError as e:
                errors.append(e)

        if errors:
            outcome.violations.extend(structural_violation(e, STRUCTURE) for e in errors)
            return None, outcome

        # Condition endpoints outside the fandom are judged by the relationships phase
        referenced = {
            block_id
            for condition in conditions
            for block_id in (condition.source_block_id, condition.target_block_id)
            if block_id and block_id not in fandom_blocks
        }
        foreign_blocks = (
            {block.id: block for block in self.provider.get_plot_blocks_by_id(referenced)}
            if referenced
            else {}
        )

        graph = build_dependency_graph(fandom_blocks.values(), all_conditions)
        for missing in graph.missing:
            if missing.source_id in in_scope_ids and missing.missing_id not in foreign_blocks:
                outcome.warnings.append(
                    ValidationWarning(
                        code="missing_dependency",
                        message=missing.message,
                        entity_ids=[missing.source_id, missing.missing_id],
                        phase=STRUCTURE,
                    )
                )

        if pathway.element_count > self.config.max_pathway_items:
            outcome.warnings.append(
                ValidationWarning(
                    code="pathway_too_large",
                    message=(
                        f"Pathway has {pathway.element_count} elements; more than "
                        f"{self.config.max_pathway_items} may slow validation"
                    ),
                    phase=STRUCTURE,
                )
            )

        snapshot = ResolvedSnapshot(
            pathway=ResolvedPathway(
                fandom_id=fandom_id,
                tags=tags,
                plot_blocks=blocks,
                context=pathway.context,
                rating=pathway.rating,
                catalog_labels={
                    entity.id: entity.label
                    for entity in (*fandom_tags.values(), *fandom_blocks.values())
                    if entity.is_active
                },
            ),
            tag_classes=tag_classes,
            fandom_tags=fandom_tags,
            fandom_blocks=fandom_blocks,
            conditions=conditions,
            decoded=decoded,
            graph=graph,
            condition_count=len(conditions),
            foreign_blocks=foreign_blocks,
        )
        return snapshot, outcome

    def _check_constraints(self, snapshot: ResolvedSnapshot) -> PhaseOutcome:
        resolved = snapshot.pathway
        return PhaseOutcome(
            violations=evaluate_tag_constraints(
                resolved.tags, snapshot.tag_classes, resolved.context
            )
        )

    def _check_conditions(self, snapshot: ResolvedSnapshot) -> PhaseOutcome:
        outcome = PhaseOutcome()
        results: list[ConditionResult] = []
        for condition in snapshot.conditions:
            try:
                results.append(
                    evaluate_condition(
                        condition,
                        snapshot.decoded[condition.id],
                        snapshot.pathway.context,
                        max_steps=self.config.max_traversal_steps,
                    )
                )
            except StructuralError as e:
                outcome.violations.append(structural_violation(e, CONDITIONS))
        outcome.violations.extend(
            unmet_condition_violations(
                results,
                severity=self.config.unmet_condition_severity,  # type: ignore[arg-type]
            )
        )
        return outcome

    def _check_relationships(self, snapshot: ResolvedSnapshot) -> PhaseOutcome:
        resolved = snapshot.pathway
        selected_ids = {tag.id for tag in resolved.tags} | {b.id for b in resolved.plot_blocks}
        violations = validate_fandom_scope(
            resolved.fandom_id, [*resolved.tags, *resolved.plot_blocks]
        )
        violations.extend(
            validate_condition_scope(
                resolved.fandom_id,
                snapshot.conditions,
                {**snapshot.fandom_blocks, **snapshot.foreign_blocks},
            )
        )
        violations.extend(
            validate_block_associations(
                resolved.plot_blocks,
                resolved.context.block_tags,
                snapshot.fandom_tags,
                snapshot.tag_classes,
            )
        )
        violations.extend(
            audit_dependency_cycles(snapshot.graph, {block.id for block in resolved.plot_blocks})
        )
        violations.extend(
            audit_requirement_cycles(
                snapshot.fandom_tags.values(), snapshot.fandom_blocks.values(), selected_ids
            )
        )
        return PhaseOutcome(violations=violations)

    def _check_conflicts(self, snapshot: ResolvedSnapshot) -> PhaseOutcome:
        return PhaseOutcome(conflicts=analyze_conflicts(snapshot.pathway, self.heuristics))

    # -- Advisory ----------------------------------------------------------------

    def _finish(
        self,
        report: ValidationReport,
        pathway: Pathway,
        snapshot: ResolvedSnapshot | None,
        start: float,
    ) -> None:
        def run() -> PhaseOutcome:
            thresholds = self.config.complexity
            count = pathway.element_count
            if thresholds.count_conditions and snapshot is not None:
                count += snapshot.condition_count
            report.complexity = thresholds.classify(count)  # type: ignore[assignment]
            report.suggestions = generate_suggestions(pathway, report)
            report.score = compatibility_score(report)
            return PhaseOutcome()

        self._run_phase(report, SUGGESTIONS, run)

        total_ms = (time.perf_counter() - start) * 1000
        if total_ms > self.config.latency_budget_ms:
            log.warning(
                "validation_latency_budget_exceeded",
                duration_ms=total_ms,
                budget_ms=self.config.latency_budget_ms,
            )
        log.info(
            "validation_complete",
            valid=report.is_valid,
            violations=len(report.violations),
            conflicts=len(report.conflicts),
            incomplete=report.incomplete,
            duration_ms=total_ms,
        )


def generate_suggestions(pathway: Pathway, report: ValidationReport) -> list[Suggestion]:
    """Advisory next steps derived from the pathway shape and its findings."""
    suggestions: list[Suggestion] = []
    tag_count = len(pathway.tags)
    block_count = len(pathway.plot_blocks)

    if pathway.is_empty:
        suggestions.append(
            Suggestion(
                code="start_building",
                message="Start by selecting a few tags or plot blocks",
                action="add_elements",
                priority="medium",
            )
        )
        return suggestions

    if pathway.element_count < 3:
        suggestions.append(
            Suggestion(
                code="add_more_elements",
                message="Pathways with 3-5 elements typically find more relevant stories",
                action="add_elements",
            )
        )
    if tag_count > 0 and block_count == 0:
        suggestions.append(
            Suggestion(
                code="add_plot_blocks",
                message="Plot blocks help find stories with specific narrative elements",
                action="add_plot_blocks",
                priority="medium",
            )
        )
    if block_count > 0 and tag_count == 0:
        suggestions.append(
            Suggestion(
                code="add_tags",
                message="Tags help narrow down stories to your preferences",
                action="add_tags",
                priority="medium",
            )
        )

    for violation in report.violations:
        if violation.rule in _EXCLUSION_RULES:
            suggestions.append(
                Suggestion(
                    code="remove_conflicting_tags",
                    message=f"Keep only one of: {', '.join(violation.entity_ids)}",
                    action="remove_conflicting",
                    target_ids=list(violation.entity_ids),
                    priority="high",
                )
            )
        elif violation.rule in _CYCLE_RULES and "break" in violation.details:
            step = violation.details["break"]
            suggestions.append(
                Suggestion(
                    code="break_cycle",
                    message=f"{violation.message}; {step['action']} '{step['target_id']}'",
                    action=step["action"],
                    target_ids=[step["target_id"]],
                    priority="high",
                )
            )
    for warning in report.warnings:
        if warning.code == "missing_dependency":
            suggestions.append(
                Suggestion(
                    code="add_dependency",
                    message=warning.message,
                    action="add_dependency",
                    target_ids=list(warning.entity_ids),
                    priority="medium",
                )
            )
    return suggestions


def compatibility_score(report: ValidationReport) -> int:
    """Score a report from 0 to 100 by deducting points per finding."""
    score = 100
    for violation in report.violations:
        score -= _VIOLATION_PENALTY.get(violation.severity, 0)
    for conflict in report.conflicts:
        score -= _CONFLICT_PENALTY.get(conflict.severity, 0)
    score -= _WARNING_PENALTY * len(report.warnings)
    if not report.suggestions and not report.violations:
        score += _CLEAN_BONUS
    return max(0, min(100, score))


def validate_pathway(
    pathway: Pathway,
    provider: DataProvider,
    config: EngineConfig | None = None,
    timing_sink: TimingSink | None = None,
) -> ValidationReport:
    """Validate one pathway with a throwaway PathwayValidator."""
    return PathwayValidator(provider, config, timing_sink).validate_pathway(pathway)


def validate_condition_graph(
    fandom_id: str,
    provider: DataProvider,
    proposed_edge: tuple[str, str] | None = None,
    block_id: str | None = None,
) -> ConditionGraphReport:
    return PathwayValidator(provider).validate_condition_graph(fandom_id, proposed_edge, block_id)
