"""Decoded condition values.

Condition values arrive serialized (plain strings or JSON blobs). They are
decoded once, at the validator boundary, into a tagged union:

- :class:`Scalar` for prerequisite and tag_presence conditions
- :class:`AttributeComparison` for attribute conditions
- :class:`BooleanExpression` for custom AND/OR trees

Evaluators only ever see decoded values, so malformed data surfaces as a
:class:`~pensieve.errors.StructuralError` here rather than as a silent
false deep inside an evaluator branch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from pensieve.errors import StructuralError

if TYPE_CHECKING:
    from pensieve.models.entities import PlotBlockCondition

DEFAULT_MAX_EXPRESSION_DEPTH = 8


class PrerequisiteOperator(StrEnum):
    """Prerequisite operators.

    ``exists`` and ``completed`` are synonyms: both require the target block
    to be in the runtime context's completed set.
    """

    EXISTS = "exists"
    COMPLETED = "completed"


class TagOperator(StrEnum):
    HAS_TAG = "has_tag"


class AttributeOperator(StrEnum):
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class LogicalOperator(StrEnum):
    AND = "and"
    OR = "or"


OPERATORS_BY_TYPE: dict[str, tuple[str, ...]] = {
    "prerequisite": tuple(op.value for op in PrerequisiteOperator),
    "tag_presence": tuple(op.value for op in TagOperator),
    "attribute": tuple(op.value for op in AttributeOperator),
    "custom": tuple(op.value for op in LogicalOperator),
}


@dataclass(frozen=True)
class Scalar:
    """A plain condition value (tag id for tag_presence, None for prerequisites)."""

    value: str | None = None
    kind: Literal["scalar"] = "scalar"


@dataclass(frozen=True)
class AttributeComparison:
    """Compare a named runtime attribute against an expected value."""

    attribute: str
    expected: Any
    operator: AttributeOperator
    kind: Literal["attribute"] = "attribute"


@dataclass(frozen=True)
class ExpressionLeaf:
    """Atomic leaf of a custom expression tree."""

    leaf_type: Literal["prerequisite", "tag_presence"]
    target: str
    tag: str | None = None
    operator: str = PrerequisiteOperator.COMPLETED.value


@dataclass(frozen=True)
class BooleanExpression:
    """AND/OR node over leaves and nested expressions."""

    operator: LogicalOperator
    operands: tuple[ExpressionLeaf | BooleanExpression, ...]
    kind: Literal["expression"] = "expression"

    @property
    def depth(self) -> int:
        """Depth of the tree, counting this node as 1."""
        deepest = 1
        stack: list[tuple[ExpressionLeaf | BooleanExpression, int]] = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            if isinstance(node, BooleanExpression):
                stack.extend((child, level + 1) for child in node.operands)
        return deepest


DecodedValue = Scalar | AttributeComparison | BooleanExpression


def _load_json(raw: Any, field_path: str, entity_id: str) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StructuralError(
            f"unparseable condition value: {e.msg}",
            field_path=field_path,
            entity_id=entity_id,
        ) from e


def _check_operator(condition: PlotBlockCondition) -> str:
    allowed = OPERATORS_BY_TYPE[condition.condition_type]
    operator = condition.operator.lower()
    if operator not in allowed:
        raise StructuralError(
            f"operator {condition.operator!r} is not valid for "
            f"{condition.condition_type} conditions (expected one of {', '.join(allowed)})",
            field_path="operator",
            entity_id=condition.id,
        )
    return operator


def _decode_attribute(condition: PlotBlockCondition, operator: str) -> AttributeComparison:
    parsed = _load_json(condition.value, "value", condition.id)
    if not isinstance(parsed, dict) or len(parsed) != 1:
        raise StructuralError(
            "attribute condition value must be an object with exactly one entry",
            field_path="value",
            entity_id=condition.id,
        )
    ((attribute, expected),) = parsed.items()
    if not isinstance(attribute, str) or not attribute:
        raise StructuralError(
            "attribute name must be a non-empty string",
            field_path="value",
            entity_id=condition.id,
        )
    return AttributeComparison(
        attribute=attribute,
        expected=expected,
        operator=AttributeOperator(operator),
    )


def _decode_leaf(raw: dict[str, Any], path: str, entity_id: str) -> ExpressionLeaf:
    leaf_type = raw.get("type")
    target = raw.get("target")
    if not isinstance(target, str) or not target:
        raise StructuralError(
            "expression leaf requires a non-empty 'target'",
            field_path=path,
            entity_id=entity_id,
        )
    if leaf_type == "prerequisite":
        operator = str(raw.get("operator", PrerequisiteOperator.COMPLETED.value)).lower()
        if operator not in OPERATORS_BY_TYPE["prerequisite"]:
            raise StructuralError(
                f"prerequisite leaf operator {operator!r} is not valid",
                field_path=path,
                entity_id=entity_id,
            )
        return ExpressionLeaf(leaf_type="prerequisite", target=target, operator=operator)
    if leaf_type == "tag_presence":
        tag = raw.get("tag")
        if not isinstance(tag, str) or not tag:
            raise StructuralError(
                "tag_presence leaf requires a non-empty 'tag'",
                field_path=path,
                entity_id=entity_id,
            )
        return ExpressionLeaf(
            leaf_type="tag_presence",
            target=target,
            tag=tag,
            operator=TagOperator.HAS_TAG.value,
        )
    raise StructuralError(
        f"unknown expression leaf type {leaf_type!r}",
        field_path=path,
        entity_id=entity_id,
    )


def decode_expression(
    operator: str,
    raw: Any,
    *,
    entity_id: str,
    max_depth: int = DEFAULT_MAX_EXPRESSION_DEPTH,
) -> BooleanExpression:
    """Decode a custom condition value into a BooleanExpression.

    Accepts either ``{"conditions": [...]}`` or a bare list of leaf specs.
    Nested groups use ``{"operator": "and"|"or", "conditions": [...]}``.

    The tree is walked iteratively (pre-order) and built bottom-up, so deep
    input cannot exhaust the interpreter stack; anything deeper than
    ``max_depth`` is rejected.

    Raises:
        StructuralError: If the value is unparseable, the leaf list is missing
            or empty, a leaf is malformed, or the tree is too deep.
    """
    parsed = _load_json(raw, "value", entity_id)
    if isinstance(parsed, list):
        parsed = {"conditions": parsed}
    if not isinstance(parsed, dict):
        raise StructuralError(
            "custom condition value must be an object with a 'conditions' list",
            field_path="value",
            entity_id=entity_id,
        )
    root = {"operator": operator, "conditions": parsed.get("conditions")}

    # entries[i] = (raw node, path); groups have an entry in children_of
    entries: list[tuple[dict[str, Any], str]] = []
    children_of: dict[int, list[int]] = {}
    stack: list[tuple[Any, int, str, int | None]] = [(root, 1, "value", None)]

    while stack:
        node, depth, path, parent = stack.pop()
        if depth > max_depth:
            raise StructuralError(
                f"custom expression exceeds maximum depth of {max_depth}",
                field_path=path,
                entity_id=entity_id,
                details={"max_depth": max_depth},
            )
        if not isinstance(node, dict):
            raise StructuralError(
                "expression entries must be objects",
                field_path=path,
                entity_id=entity_id,
            )
        index = len(entries)
        entries.append((node, path))
        if parent is not None:
            children_of[parent].append(index)

        if "conditions" not in node:
            continue
        group_op = str(node.get("operator", "")).lower()
        if group_op not in OPERATORS_BY_TYPE["custom"]:
            raise StructuralError(
                f"expression group operator {node.get('operator')!r} must be 'and' or 'or'",
                field_path=path,
                entity_id=entity_id,
            )
        leaves = node["conditions"]
        if not isinstance(leaves, list) or not leaves:
            raise StructuralError(
                "custom condition requires a non-empty 'conditions' list",
                field_path=f"{path}.conditions",
                entity_id=entity_id,
            )
        children_of[index] = []
        for i in range(len(leaves) - 1, -1, -1):
            stack.append((leaves[i], depth + 1, f"{path}.conditions[{i}]", index))

    # Children always follow their parent in pre-order, so build in reverse.
    built: dict[int, ExpressionLeaf | BooleanExpression] = {}
    for index in range(len(entries) - 1, -1, -1):
        node, path = entries[index]
        if index in children_of:
            built[index] = BooleanExpression(
                operator=LogicalOperator(str(node["operator"]).lower()),
                operands=tuple(built.pop(child) for child in children_of[index]),
            )
        else:
            built[index] = _decode_leaf(node, path, entity_id)

    result = built[0]
    if not isinstance(result, BooleanExpression):  # pragma: no cover - root is always a group
        raise StructuralError("custom condition root must be a group", entity_id=entity_id)
    return result


def decode_condition_value(
    condition: PlotBlockCondition,
    *,
    max_depth: int = DEFAULT_MAX_EXPRESSION_DEPTH,
) -> DecodedValue:
    """Decode a condition's serialized value according to its type.

    Raises:
        StructuralError: If the operator does not belong to the condition type,
            a required target or value is missing, or the value cannot be parsed.
    """
    operator = _check_operator(condition)

    if condition.condition_type == "prerequisite":
        if not condition.target_block_id:
            raise StructuralError(
                "prerequisite condition requires a target block",
                field_path="target_block_id",
                entity_id=condition.id,
            )
        return Scalar(value=None)

    if condition.condition_type == "tag_presence":
        if not condition.target_block_id:
            raise StructuralError(
                "tag_presence condition requires a target block",
                field_path="target_block_id",
                entity_id=condition.id,
            )
        if not isinstance(condition.value, str) or not condition.value:
            raise StructuralError(
                "tag_presence condition value must be a tag id",
                field_path="value",
                entity_id=condition.id,
            )
        return Scalar(value=condition.value)

    if condition.condition_type == "attribute":
        return _decode_attribute(condition, operator)

    return decode_expression(operator, condition.value, entity_id=condition.id, max_depth=max_depth)
