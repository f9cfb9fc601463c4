"""Static catalog of condition types and their operators.

Used by callers building condition editors and by the CLI ``conditions``
command. The operator names here are the same ones the decoder accepts.
"""

from __future__ import annotations

from dataclasses import dataclass

from pensieve.models.expressions import OPERATORS_BY_TYPE


@dataclass(frozen=True)
class OperatorInfo:
    name: str
    label: str
    description: str
    value_required: bool


@dataclass(frozen=True)
class ConditionTypeInfo:
    name: str
    label: str
    description: str
    operators: tuple[OperatorInfo, ...]
    value_type: str


_OPERATORS: dict[str, OperatorInfo] = {
    info.name: info
    for info in (
        OperatorInfo("exists", "Exists", "Target block has been completed", False),
        OperatorInfo("completed", "Completed", "Target block has been completed", False),
        OperatorInfo("has_tag", "Has tag", "Target block carries the given tag", True),
        OperatorInfo("equals", "Equals", "Attribute equals the value", True),
        OperatorInfo("greater_than", "Greater than", "Attribute is greater than the value", True),
        OperatorInfo("less_than", "Less than", "Attribute is less than the value", True),
        OperatorInfo("contains", "Contains", "Attribute contains the value", True),
        OperatorInfo("and", "All of", "Every nested condition must hold", True),
        OperatorInfo("or", "Any of", "At least one nested condition must hold", True),
    )
}


def _operators(condition_type: str) -> tuple[OperatorInfo, ...]:
    return tuple(_OPERATORS[name] for name in OPERATORS_BY_TYPE[condition_type])


CONDITION_TYPES: tuple[ConditionTypeInfo, ...] = (
    ConditionTypeInfo(
        name="prerequisite",
        label="Prerequisite",
        description="Another plot block must be completed first",
        operators=_operators("prerequisite"),
        value_type="none",
    ),
    ConditionTypeInfo(
        name="tag_presence",
        label="Tag presence",
        description="Another plot block must carry a specific tag",
        operators=_operators("tag_presence"),
        value_type="tag_id",
    ),
    ConditionTypeInfo(
        name="attribute",
        label="Attribute",
        description="A runtime attribute must compare against a value",
        operators=_operators("attribute"),
        value_type="json_object",
    ),
    ConditionTypeInfo(
        name="custom",
        label="Custom logic",
        description="AND/OR combination of prerequisite and tag presence checks",
        operators=_operators("custom"),
        value_type="expression",
    ),
)


def operators_for(condition_type: str) -> tuple[OperatorInfo, ...]:
    """Return the operators valid for a condition type.

    Raises:
        KeyError: If the condition type is unknown.
    """
    for info in CONDITION_TYPES:
        if info.name == condition_type:
            return info.operators
    raise KeyError(condition_type)
