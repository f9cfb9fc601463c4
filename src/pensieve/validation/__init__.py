"""Validation phases and the pipeline that sequences them."""

from pensieve.validation.catalog import (
    CONDITION_TYPES,
    ConditionTypeInfo,
    OperatorInfo,
    operators_for,
)
from pensieve.validation.conditions import (
    ConditionEvaluation,
    ConditionResult,
    evaluate_condition,
    evaluate_conditions,
)
from pensieve.validation.conflicts import (
    DEFAULT_HEURISTICS,
    ConflictHeuristic,
    analyze_conflicts,
    default_heuristics,
)
from pensieve.validation.constraints import evaluate_tag_constraints
from pensieve.validation.orchestrator import (
    ConditionGraphReport,
    PathwayValidator,
    validate_condition_graph,
    validate_pathway,
)
from pensieve.validation.relationships import (
    EdgeCheck,
    audit_dependency_cycles,
    audit_requirement_cycles,
    build_requirement_graph,
    check_condition_edge,
    check_hierarchy_move,
    suggest_cycle_resolutions,
    validate_category_association,
    validate_condition_scope,
    validate_fandom_scope,
)
from pensieve.validation.types import (
    ConflictFinding,
    ResolutionOption,
    Suggestion,
    ValidationReport,
    ValidationWarning,
    Violation,
)

__all__ = [
    "CONDITION_TYPES",
    "DEFAULT_HEURISTICS",
    "ConditionEvaluation",
    "ConditionGraphReport",
    "ConditionResult",
    "ConditionTypeInfo",
    "ConflictFinding",
    "ConflictHeuristic",
    "EdgeCheck",
    "OperatorInfo",
    "PathwayValidator",
    "ResolutionOption",
    "Suggestion",
    "ValidationReport",
    "ValidationWarning",
    "Violation",
    "analyze_conflicts",
    "audit_dependency_cycles",
    "audit_requirement_cycles",
    "build_requirement_graph",
    "check_condition_edge",
    "check_hierarchy_move",
    "default_heuristics",
    "evaluate_condition",
    "evaluate_conditions",
    "evaluate_tag_constraints",
    "operators_for",
    "suggest_cycle_resolutions",
    "validate_category_association",
    "validate_condition_graph",
    "validate_condition_scope",
    "validate_fandom_scope",
    "validate_pathway",
]
