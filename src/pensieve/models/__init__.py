"""Pydantic models for engine inputs.

Entity snapshots (tags, tag classes, plot blocks, conditions) are supplied
by the caller's repository; a Pathway is the ephemeral combination under
evaluation. Condition values are decoded into the tagged union defined in
``expressions``.
"""

from pensieve.models.entities import (
    RATING_ORDER,
    ConditionType,
    PlotBlock,
    PlotBlockCondition,
    RuleSeverity,
    Tag,
    TagClass,
    TagClassRules,
    rating_rank,
)
from pensieve.models.expressions import (
    OPERATORS_BY_TYPE,
    AttributeComparison,
    AttributeOperator,
    BooleanExpression,
    DecodedValue,
    ExpressionLeaf,
    LogicalOperator,
    PrerequisiteOperator,
    Scalar,
    TagOperator,
    decode_condition_value,
    decode_expression,
)
from pensieve.models.pathway import Pathway, ResolvedPathway, RuntimeContext

__all__ = [
    "OPERATORS_BY_TYPE",
    "RATING_ORDER",
    "AttributeComparison",
    "AttributeOperator",
    "BooleanExpression",
    "ConditionType",
    "DecodedValue",
    "ExpressionLeaf",
    "LogicalOperator",
    "Pathway",
    "PlotBlock",
    "PlotBlockCondition",
    "PrerequisiteOperator",
    "ResolvedPathway",
    "RuleSeverity",
    "RuntimeContext",
    "Scalar",
    "Tag",
    "TagClass",
    "TagClassRules",
    "TagOperator",
    "decode_condition_value",
    "decode_expression",
    "rating_rank",
]
