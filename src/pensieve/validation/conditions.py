"""Plot-block condition evaluation against a runtime context.

Conditions are decoded once (see :mod:`pensieve.models.expressions`) and
evaluated here. Prerequisite and tag-presence checks are set lookups;
attribute checks compare a runtime attribute with numeric coercion; custom
conditions evaluate an AND/OR tree iteratively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pensieve.errors import StructuralError
from pensieve.models.expressions import (
    DEFAULT_MAX_EXPRESSION_DEPTH,
    AttributeComparison,
    AttributeOperator,
    BooleanExpression,
    ExpressionLeaf,
    LogicalOperator,
    Scalar,
    decode_condition_value,
)
from pensieve.observability.logging import get_logger
from pensieve.validation.types import Violation

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from pensieve.models.entities import PlotBlockCondition
    from pensieve.models.expressions import DecodedValue
    from pensieve.models.pathway import RuntimeContext
    from pensieve.validation.types import ViolationSeverity

log = get_logger(__name__)

PHASE = "conditions"


@dataclass
class ConditionResult:
    """Outcome of evaluating one condition."""

    condition_id: str
    valid: bool
    message: str
    evaluated_operator: str
    condition_type: str
    source_block_id: str = ""


@dataclass
class ConditionEvaluation:
    """Outcome of evaluating every active condition on one plot block."""

    plot_block_id: str
    conditions: list[ConditionResult] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return all(result.valid for result in self.conditions)

    @property
    def summary(self) -> dict[str, int]:
        passed = sum(result.valid for result in self.conditions)
        return {
            "total_conditions": len(self.conditions),
            "passed": passed,
            "failed": len(self.conditions) - passed,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "plot_block_id": self.plot_block_id,
            "valid": self.valid,
            "conditions": [
                {
                    "condition_id": r.condition_id,
                    "valid": r.valid,
                    "message": r.message,
                    "evaluated_operator": r.evaluated_operator,
                    "condition_type": r.condition_type,
                }
                for r in self.conditions
            ],
            "summary": self.summary,
        }


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _value_kind(value: Any) -> str:
    if _to_number(value) is not None:
        return "number"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list | tuple):
        return "list"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _mismatch(
    actual: Any,
    expected: Any,
    comparison: AttributeComparison,
    entity_id: str,
) -> StructuralError:
    return StructuralError(
        f"cannot compare {type(actual).__name__} with {type(expected).__name__} "
        f"using {comparison.operator.value}",
        field_path=f"value.{comparison.attribute}",
        entity_id=entity_id,
        details={"actual_type": type(actual).__name__, "expected_type": type(expected).__name__},
    )


def compare_attribute(actual: Any, comparison: AttributeComparison, *, entity_id: str) -> bool:
    """Apply an attribute comparison to the actual runtime value.

    Numeric strings are coerced to numbers so ``"80"`` compares greater
    than ``75``. Two strings that are not both numeric compare as text. Any
    other pair must be of the same kind (number, boolean, list, object, null).

    Raises:
        StructuralError: If the operand types cannot be compared.
    """
    expected = comparison.expected
    operator = comparison.operator

    if operator is AttributeOperator.EQUALS:
        actual_num, expected_num = _to_number(actual), _to_number(expected)
        if actual_num is not None and expected_num is not None:
            return actual_num == expected_num
        if isinstance(actual, str) and isinstance(expected, str):
            return actual == expected
        if _value_kind(actual) != _value_kind(expected):
            raise _mismatch(actual, expected, comparison, entity_id)
        return bool(actual == expected)

    if operator in (AttributeOperator.GREATER_THAN, AttributeOperator.LESS_THAN):
        actual_num, expected_num = _to_number(actual), _to_number(expected)
        if actual_num is None or expected_num is None:
            raise _mismatch(actual, expected, comparison, entity_id)
        if operator is AttributeOperator.GREATER_THAN:
            return actual_num > expected_num
        return actual_num < expected_num

    # contains
    if isinstance(actual, str):
        if not isinstance(expected, str):
            raise StructuralError(
                "contains on a string attribute requires a string value",
                field_path=f"value.{comparison.attribute}",
                entity_id=entity_id,
            )
        return expected in actual
    if isinstance(actual, list | tuple):
        return expected in actual
    if isinstance(actual, set | frozenset | dict):
        try:
            hash(expected)
        except TypeError as e:
            raise StructuralError(
                f"contains on a {type(actual).__name__} attribute requires a hashable value, "
                f"got {type(expected).__name__}",
                field_path=f"value.{comparison.attribute}",
                entity_id=entity_id,
            ) from e
        return expected in actual
    raise StructuralError(
        f"contains is not supported for {type(actual).__name__} attributes",
        field_path=f"value.{comparison.attribute}",
        entity_id=entity_id,
    )


def _leaf_holds(leaf: ExpressionLeaf, context: RuntimeContext) -> bool:
    if leaf.leaf_type == "prerequisite":
        return leaf.target in context.completed_blocks
    return leaf.tag in context.block_tags.get(leaf.target, set())


def evaluate_expression(
    expression: BooleanExpression,
    context: RuntimeContext,
    *,
    max_steps: int = 10_000,
    entity_id: str = "",
) -> bool:
    """Evaluate an AND/OR tree without recursion.

    Nodes are visited in post-order using an explicit stack; ``max_steps``
    bounds the total number of node visits.

    Raises:
        StructuralError: If the traversal exceeds ``max_steps``.
    """
    results: dict[int, bool] = {}
    stack: list[tuple[ExpressionLeaf | BooleanExpression, bool]] = [(expression, False)]
    steps = 0

    while stack:
        node, expanded = stack.pop()
        steps += 1
        if steps > max_steps:
            raise StructuralError(
                f"custom expression exceeds {max_steps} evaluation steps",
                field_path="value",
                entity_id=entity_id,
            )
        if isinstance(node, ExpressionLeaf):
            results[id(node)] = _leaf_holds(node, context)
            continue
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.operands))
            continue
        child_values = [results[id(child)] for child in node.operands]
        if node.operator is LogicalOperator.AND:
            results[id(node)] = all(child_values)
        else:
            results[id(node)] = any(child_values)

    return results[id(expression)]


def evaluate_condition(
    condition: PlotBlockCondition,
    decoded: DecodedValue,
    context: RuntimeContext,
    *,
    max_steps: int = 10_000,
) -> ConditionResult:
    """Evaluate one decoded condition against the runtime context.

    Raises:
        StructuralError: If an attribute comparison has incompatible types.
    """
    operator = condition.operator.lower()
    target = condition.target_block_id

    if condition.condition_type == "prerequisite":
        valid = target in context.completed_blocks
        message = (
            f"Prerequisite block '{target}' is completed"
            if valid
            else f"Prerequisite block '{target}' has not been completed"
        )
    elif condition.condition_type == "tag_presence":
        tag_id = decoded.value if isinstance(decoded, Scalar) else None
        valid = tag_id in context.block_tags.get(target or "", set())
        message = (
            f"Block '{target}' has tag '{tag_id}'"
            if valid
            else f"Block '{target}' is missing required tag '{tag_id}'"
        )
    elif isinstance(decoded, AttributeComparison):
        owner = target or condition.source_block_id
        attributes = context.attribute_values.get(owner, {})
        if decoded.attribute not in attributes:
            valid = False
            message = f"Attribute '{decoded.attribute}' is not set on block '{owner}'"
        else:
            actual = attributes[decoded.attribute]
            valid = compare_attribute(actual, decoded, entity_id=condition.id)
            verdict = "satisfies" if valid else "does not satisfy"
            message = (
                f"Attribute '{decoded.attribute}' ({actual!r}) {verdict} "
                f"{decoded.operator.value} {decoded.expected!r}"
            )
    elif isinstance(decoded, BooleanExpression):
        valid = evaluate_expression(decoded, context, max_steps=max_steps, entity_id=condition.id)
        joiner = "all" if decoded.operator is LogicalOperator.AND else "any"
        message = (
            f"Custom condition met ({joiner} of {len(decoded.operands)})"
            if valid
            else f"Custom condition not met ({joiner} of {len(decoded.operands)})"
        )
    else:
        raise StructuralError(
            f"decoded value does not match condition type {condition.condition_type}",
            entity_id=condition.id,
        )

    return ConditionResult(
        condition_id=condition.id,
        valid=valid,
        message=message,
        evaluated_operator=operator,
        condition_type=condition.condition_type,
        source_block_id=condition.source_block_id,
    )


def evaluate_conditions(
    plot_block_id: str,
    conditions: Iterable[PlotBlockCondition],
    context: RuntimeContext,
    *,
    max_depth: int = DEFAULT_MAX_EXPRESSION_DEPTH,
    max_steps: int = 10_000,
) -> ConditionEvaluation:
    """Evaluate every active condition whose source is ``plot_block_id``.

    Args:
        plot_block_id: Block whose conditions are evaluated.
        conditions: Candidate conditions (others are filtered out).
        context: Runtime context.
        max_depth: Maximum custom expression depth.
        max_steps: Node-visit bound for custom expressions.

    Returns:
        ConditionEvaluation; ``valid`` is True iff every condition holds.

    Raises:
        StructuralError: If any condition value is malformed.
    """
    evaluation = ConditionEvaluation(plot_block_id=plot_block_id)
    for condition in conditions:
        if not condition.is_active or condition.source_block_id != plot_block_id:
            continue
        decoded = decode_condition_value(condition, max_depth=max_depth)
        evaluation.conditions.append(
            evaluate_condition(condition, decoded, context, max_steps=max_steps)
        )
    log.debug("conditions_evaluated", plot_block_id=plot_block_id, **evaluation.summary)
    return evaluation


def unmet_condition_violations(
    results: Sequence[ConditionResult],
    severity: ViolationSeverity = "major",
) -> list[Violation]:
    """Convert failed condition results into ``condition_unmet`` violations."""
    return [
        Violation(
            rule="condition_unmet",
            message=result.message,
            severity=severity,
            entity_ids=[result.source_block_id, result.condition_id],
            details={
                "condition_id": result.condition_id,
                "condition_type": result.condition_type,
                "operator": result.evaluated_operator,
            },
            phase=PHASE,
        )
        for result in results
        if not result.valid
    ]
