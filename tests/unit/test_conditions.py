"""Tests for plot-block condition evaluation."""

from __future__ import annotations

import json

import pytest

from pensieve.errors import StructuralError
from pensieve.models.entities import PlotBlockCondition
from pensieve.models.expressions import (
    AttributeComparison,
    AttributeOperator,
    BooleanExpression,
    ExpressionLeaf,
    LogicalOperator,
)
from pensieve.models.pathway import RuntimeContext
from pensieve.validation.conditions import (
    compare_attribute,
    evaluate_conditions,
    evaluate_expression,
    unmet_condition_violations,
)
from tests.fixtures.catalog_fixtures import make_custom, make_prerequisite


def _attribute(
    operator: str,
    value: dict[str, object],
    target: str | None = "T",
) -> PlotBlockCondition:
    return PlotBlockCondition(
        id="c_attr",
        source_block_id="S",
        target_block_id=target,
        condition_type="attribute",
        operator=operator,
        value=json.dumps(value),
    )


def _compare(actual: object, operator: AttributeOperator, expected: object) -> bool:
    comparison = AttributeComparison(attribute="x", expected=expected, operator=operator)
    return compare_attribute(actual, comparison, entity_id="c")


class TestPrerequisiteAndTagConditions:
    """Tests for set-lookup conditions."""

    def test_prerequisite_met_and_unmet(self) -> None:
        """A prerequisite holds only when its target is completed."""
        conditions = [make_prerequisite("c1", "S", "T")]

        met = evaluate_conditions("S", conditions, RuntimeContext(completed_blocks={"T"}))
        unmet = evaluate_conditions("S", conditions, RuntimeContext())

        assert met.valid is True
        assert unmet.valid is False
        assert "has not been completed" in unmet.conditions[0].message

    def test_tag_presence(self) -> None:
        """tag_presence checks the target block's assigned tags."""
        condition = PlotBlockCondition(
            id="c_tag",
            source_block_id="S",
            target_block_id="T",
            condition_type="tag_presence",
            operator="has_tag",
            value="angst",
        )
        context = RuntimeContext(block_tags={"T": {"angst", "fluff"}})

        assert evaluate_conditions("S", [condition], context).valid is True
        assert evaluate_conditions("S", [condition], RuntimeContext()).valid is False

    def test_filters_by_source_and_active(self) -> None:
        """Only active conditions sourced from the block are evaluated."""
        conditions = [
            make_prerequisite("mine", "S", "T"),
            make_prerequisite("other", "X", "T"),
            make_prerequisite("off", "S", "T", is_active=False),
        ]

        evaluation = evaluate_conditions("S", conditions, RuntimeContext())

        assert [r.condition_id for r in evaluation.conditions] == ["mine"]

    def test_no_conditions_is_valid(self) -> None:
        """A block with no conditions is trivially valid."""
        evaluation = evaluate_conditions("S", [], RuntimeContext())
        assert evaluation.valid is True
        assert evaluation.summary == {"total_conditions": 0, "passed": 0, "failed": 0}


class TestAttributeConditions:
    """Tests for attribute comparisons."""

    @pytest.mark.parametrize(
        ("actual", "operator", "expected", "result"),
        [
            ("80", AttributeOperator.GREATER_THAN, 75, True),
            (3, AttributeOperator.LESS_THAN, "2.5", False),
            ("5", AttributeOperator.EQUALS, 5.0, True),
            ("tense", AttributeOperator.EQUALS, "tense", True),
            ("slow burn", AttributeOperator.CONTAINS, "burn", True),
            (["harry", "draco"], AttributeOperator.CONTAINS, "ron", False),
            ({"trust": 1}, AttributeOperator.CONTAINS, "trust", True),
        ],
    )
    def test_comparison_semantics(
        self,
        actual: object,
        operator: AttributeOperator,
        expected: object,
        result: bool,
    ) -> None:
        """Numeric strings are coerced; contains covers strings and collections."""
        assert _compare(actual, operator, expected) is result

    def test_booleans_are_not_numbers(self) -> None:
        """True does not compare numerically."""
        with pytest.raises(StructuralError):
            _compare(True, AttributeOperator.GREATER_THAN, 0)

    def test_incompatible_types_raise(self) -> None:
        """Ordering a non-numeric string is structural."""
        with pytest.raises(StructuralError, match="cannot compare"):
            _compare("high", AttributeOperator.GREATER_THAN, 3)

    def test_contains_unsupported_type(self) -> None:
        """contains on a number is structural."""
        with pytest.raises(StructuralError, match="not supported"):
            _compare(42, AttributeOperator.CONTAINS, 4)

    @pytest.mark.parametrize(
        ("actual", "expected"),
        [
            ("high", 5),
            (True, "yes"),
            (["a"], "a"),
            (None, 0),
        ],
    )
    def test_equals_rejects_mismatched_types(self, actual: object, expected: object) -> None:
        """equals between different kinds of value is structural, not False."""
        with pytest.raises(StructuralError, match="using equals") as exc_info:
            _compare(actual, AttributeOperator.EQUALS, expected)

        assert exc_info.value.details["actual_type"] == type(actual).__name__

    def test_equals_same_kind(self) -> None:
        """Values of the same kind compare directly."""
        assert _compare("high", AttributeOperator.EQUALS, "low") is False
        assert _compare(["a", "b"], AttributeOperator.EQUALS, ["a", "b"]) is True
        assert _compare(False, AttributeOperator.EQUALS, False) is True

    @pytest.mark.parametrize("actual", [{"trust": 1}, {"harry", "draco"}])
    def test_contains_unhashable_value(self, actual: object) -> None:
        """Looking up a list or object in a mapping or set is structural."""
        with pytest.raises(StructuralError, match="requires a hashable value"):
            _compare(actual, AttributeOperator.CONTAINS, ["trust"])

    def test_reads_target_block_attributes(self) -> None:
        """Attributes are read from the target block."""
        context = RuntimeContext(attribute_values={"T": {"trust": "80"}})
        evaluation = evaluate_conditions("S", [_attribute("greater_than", {"trust": 75})], context)
        assert evaluation.valid is True

    def test_falls_back_to_source_block(self) -> None:
        """Without a target, the source block's attributes are used."""
        context = RuntimeContext(attribute_values={"S": {"mood": "tense"}})
        condition = _attribute("equals", {"mood": "tense"}, target=None)
        assert evaluate_conditions("S", [condition], context).valid is True

    def test_missing_attribute_is_unmet(self) -> None:
        """An unset attribute fails the condition rather than raising."""
        evaluation = evaluate_conditions(
            "S", [_attribute("equals", {"mood": "tense"})], RuntimeContext()
        )

        assert evaluation.valid is False
        assert "not set" in evaluation.conditions[0].message


class TestCustomConditions:
    """Tests for AND/OR expressions."""

    def test_or_with_one_satisfiable_leaf(self) -> None:
        """OR holds when any leaf holds."""
        condition = make_custom(
            "c_or",
            "S",
            "or",
            [
                {"type": "prerequisite", "target": "X"},
                {"type": "prerequisite", "target": "Y"},
            ],
        )

        met = evaluate_conditions("S", [condition], RuntimeContext(completed_blocks={"Y"}))
        unmet = evaluate_conditions("S", [condition], RuntimeContext(completed_blocks={"Z"}))

        assert met.valid is True
        assert unmet.valid is False

    def test_and_requires_every_leaf(self) -> None:
        """AND fails when one leaf fails."""
        condition = make_custom(
            "c_and",
            "S",
            "and",
            [
                {"type": "prerequisite", "target": "X"},
                {"type": "tag_presence", "target": "X", "tag": "angst"},
            ],
        )
        context = RuntimeContext(completed_blocks={"X"})

        assert evaluate_conditions("S", [condition], context).valid is False
        context.block_tags["X"] = {"angst"}
        assert evaluate_conditions("S", [condition], context).valid is True

    def test_malformed_value_raises(self) -> None:
        """Unparseable custom values raise instead of evaluating to false."""
        condition = PlotBlockCondition(
            id="c_bad",
            source_block_id="S",
            condition_type="custom",
            operator="or",
            value="{not json",
        )
        with pytest.raises(StructuralError) as exc_info:
            evaluate_conditions("S", [condition], RuntimeContext())
        assert exc_info.value.entity_id == "c_bad"

    def test_shared_operand_evaluated(self) -> None:
        """The same leaf object may appear under several groups."""
        leaf = ExpressionLeaf(leaf_type="prerequisite", target="X")
        inner = BooleanExpression(operator=LogicalOperator.AND, operands=(leaf,))
        root = BooleanExpression(operator=LogicalOperator.AND, operands=(leaf, inner, leaf))

        assert evaluate_expression(root, RuntimeContext(completed_blocks={"X"})) is True

    def test_step_bound(self) -> None:
        """Evaluation stops once max_steps node visits are exceeded."""
        leaves = tuple(
            ExpressionLeaf(leaf_type="prerequisite", target=f"b{i}") for i in range(50)
        )
        root = BooleanExpression(operator=LogicalOperator.OR, operands=leaves)

        with pytest.raises(StructuralError, match="evaluation steps"):
            evaluate_expression(root, RuntimeContext(), max_steps=10, entity_id="c_wide")


class TestUnmetConditionViolations:
    """Tests for converting results into violations."""

    def test_only_failures_converted(self) -> None:
        """Passing results produce no violations."""
        conditions = [make_prerequisite("c1", "S", "T"), make_prerequisite("c2", "S", "U")]
        evaluation = evaluate_conditions("S", conditions, RuntimeContext(completed_blocks={"T"}))

        violations = unmet_condition_violations(evaluation.conditions)

        assert len(violations) == 1
        assert violations[0].rule == "condition_unmet"
        assert violations[0].severity == "major"
        assert violations[0].entity_ids == ["S", "c2"]

    def test_severity_configurable(self) -> None:
        """Callers choose how severe an unmet condition is."""
        evaluation = evaluate_conditions("S", [make_prerequisite("c1", "S", "T")], RuntimeContext())
        violations = unmet_condition_violations(evaluation.conditions, severity="critical")
        assert violations[0].is_blocking is True

    def test_evaluation_to_dict(self) -> None:
        """The evaluation serializes with a summary."""
        evaluation = evaluate_conditions("S", [make_prerequisite("c1", "S", "T")], RuntimeContext())
        data = evaluation.to_dict()

        assert data["valid"] is False
        assert data["summary"] == {"total_conditions": 1, "passed": 0, "failed": 1}
        assert data["conditions"][0]["evaluated_operator"] == "completed"
