"""
Unit tests for condition evaluation.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from form_logic.rules.conditions import ConditionEvaluator, group_conditions
from form_logic.rules.models import Condition

FIELD_TYPES = {
    "name": "text",
    "age": "number",
    "tags": "checkbox",
    "agree": "checkbox",
    "country": "select",
    "f1": "text",
    "f2": "text",
    "f3": "text",
}


def condition(field_id, operator, value=None, logic=None):
    return Condition(field_id=field_id, operator=operator, value=value, logic=logic)


class TestConditionEvaluator:
    """Test cases for single-condition operators."""

    @pytest.fixture
    def evaluator(self):
        """Create ConditionEvaluator instance."""
        return ConditionEvaluator(FIELD_TYPES)

    def test_equals_is_loose(self, evaluator):
        """Test equals coerces numeric strings."""
        assert evaluator.evaluate(condition("age", "equals", 5), {"age": "5"}) is True
        assert evaluator.evaluate(condition("age", "equals", "5.0"), {"age": 5}) is True
        assert evaluator.evaluate(condition("name", "equals", "bob"), {"name": "Bob"}) is False

    def test_equals_lists_by_content(self, evaluator):
        """Test two lists are equal when their items are."""
        assert evaluator.evaluate(condition("tags", "equals", ["a", "b"]), {"tags": ["a", "b"]}) is True
        assert evaluator.evaluate(condition("tags", "not_equals", ["a"]), {"tags": ["a", "b"]}) is True

    def test_equals_absent_field(self, evaluator):
        """Test an absent field never equals a value."""
        assert evaluator.evaluate(condition("name", "equals", ""), {}) is False
        assert evaluator.evaluate(condition("name", "not_equals", "a"), {}) is True

    def test_not_equals(self, evaluator):
        """Test not_equals negates loose equality."""
        assert evaluator.evaluate(condition("age", "not_equals", 5), {"age": "5"}) is False
        assert evaluator.evaluate(condition("age", "not_equals", 6), {"age": "5"}) is True

    def test_contains_text_is_case_insensitive(self, evaluator):
        """Test substring matching on text fields."""
        assert evaluator.evaluate(condition("name", "contains", "WORLD"), {"name": "Hello World"}) is True
        assert evaluator.evaluate(condition("name", "not_contains", "moon"), {"name": "Hello World"}) is True
        assert evaluator.evaluate(condition("name", "contains", "x"), {}) is False

    def test_contains_checkbox_is_membership(self, evaluator):
        """Test checkbox fields use list membership."""
        form_data = {"tags": ["news", "offers"]}

        assert evaluator.evaluate(condition("tags", "contains", "news"), form_data) is True
        assert evaluator.evaluate(condition("tags", "contains", "NEWS"), form_data) is False
        assert evaluator.evaluate(condition("tags", "contains", "new"), form_data) is False
        assert evaluator.evaluate(condition("tags", "not_contains", "events"), form_data) is True

    def test_not_contains_checkbox_without_list(self, evaluator):
        """Test a checkbox value that is not a list contains nothing."""
        assert evaluator.evaluate(condition("tags", "not_contains", "news"), {"tags": "news"}) is True
        assert evaluator.evaluate(condition("tags", "contains", "news"), {"tags": "news"}) is False

    def test_starts_and_ends_with(self, evaluator):
        """Test prefix and suffix matching ignore case."""
        form_data = {"name": "Hello World"}

        assert evaluator.evaluate(condition("name", "starts_with", "he"), form_data) is True
        assert evaluator.evaluate(condition("name", "ends_with", "WORLD"), form_data) is True
        assert evaluator.evaluate(condition("name", "starts_with", "world"), form_data) is False

    @pytest.mark.parametrize("field_id", ["name", "age", "tags", "country"])
    @pytest.mark.parametrize("form_data", [{}, {"value": ""}, {"value": []}, {"value": None}])
    def test_is_empty_for_every_field_type(self, evaluator, field_id, form_data):
        """Test is_empty holds for absent, empty string and empty list values."""
        data = {field_id: form_data["value"]} if "value" in form_data else {}

        assert evaluator.evaluate(condition(field_id, "is_empty"), data) is True
        assert evaluator.evaluate(condition(field_id, "is_not_empty"), data) is False

    @pytest.mark.parametrize("value", ["x", ["a"], 3, True])
    def test_is_not_empty(self, evaluator, value):
        """Test values with content are not empty."""
        assert evaluator.evaluate(condition("name", "is_empty"), {"name": value}) is False
        assert evaluator.evaluate(condition("name", "is_not_empty"), {"name": value}) is True

    @pytest.mark.parametrize("value,checked", [
        (True, True),
        ("true", True),
        ("on", True),
        ("yes", False),
        (False, False),
        (1, False),
        (None, False),
    ])
    def test_is_checked(self, evaluator, value, checked):
        """Test only True, "true" and "on" count as checked."""
        form_data = {"agree": value}

        assert evaluator.evaluate(condition("agree", "is_checked"), form_data) is checked
        assert evaluator.evaluate(condition("agree", "is_not_checked"), form_data) is (not checked)

    def test_numeric_comparisons(self, evaluator):
        """Test greater_than and less_than coerce to numbers."""
        assert evaluator.evaluate(condition("age", "greater_than", 5), {"age": "10"}) is True
        assert evaluator.evaluate(condition("age", "less_than", "18"), {"age": 10}) is True
        assert evaluator.evaluate(condition("age", "greater_than", 5), {"age": "abc"}) is False
        assert evaluator.evaluate(condition("age", "greater_than", 5), {}) is False
        assert evaluator.evaluate(condition("age", "less_than", 5), {}) is False

    def test_integer_beyond_float_range(self, evaluator):
        """Test integers too large for a float compare as infinite."""
        form_data = {"age": 10 ** 400, "name": 10 ** 400}

        assert evaluator.evaluate(condition("age", "greater_than", 5), form_data) is True
        assert evaluator.evaluate(condition("age", "less_than", 5), form_data) is False
        assert evaluator.evaluate(condition("age", "less_than", 5), {"age": -(10 ** 400)}) is True
        assert evaluator.evaluate(condition("age", "equals", "5"), form_data) is False
        assert evaluator.evaluate(condition("age", "equals", "Infinity"), form_data) is True
        assert evaluator.evaluate(condition("name", "contains", "inf"), form_data) is True
        assert evaluator.evaluate(condition("name", "is_not_empty"), form_data) is True
        assert evaluator.evaluate(condition("age", "is_one_of", ["5"]), form_data) is False

    def test_is_one_of_list(self, evaluator):
        """Test membership against a list value is strict."""
        assert evaluator.evaluate(condition("country", "is_one_of", ["us", "ca"]), {"country": "ca"}) is True
        assert evaluator.evaluate(condition("country", "is_one_of", ["us", "ca"]), {"country": "mx"}) is False
        assert evaluator.evaluate(condition("age", "is_one_of", ["1", "2"]), {"age": 1}) is False
        assert evaluator.evaluate(condition("country", "is_not_one_of", ["us", "ca"]), {"country": "mx"}) is True

    def test_is_one_of_scalar_falls_back_to_equality(self, evaluator):
        """Test a scalar value behaves like equals."""
        assert evaluator.evaluate(condition("age", "is_one_of", 1), {"age": "1"}) is True
        assert evaluator.evaluate(condition("age", "is_not_one_of", 1), {"age": "1"}) is False

    def test_unknown_operator_is_false(self, evaluator):
        """Test unsupported operators fail closed."""
        assert evaluator.evaluate(condition("name", "matches", ".*"), {"name": "x"}) is False


class TestConditionGrouping:
    """Test cases for AND/OR grouping."""

    @pytest.fixture
    def evaluator(self):
        """Create ConditionEvaluator instance."""
        return ConditionEvaluator(FIELD_TYPES)

    @pytest.fixture
    def conditions(self):
        """Two AND-groups: f1 and f2, or f3."""
        return [
            condition("f1", "equals", "a"),
            condition("f2", "equals", "b", logic="and"),
            condition("f3", "equals", "c", logic="or"),
        ]

    def test_group_boundaries(self, conditions):
        """Test an "or" tag starts a new group."""
        groups = group_conditions(conditions)

        assert [len(group) for group in groups] == [2, 1]
        assert groups[1][0].field_id == "f3"

    def test_untagged_conditions_join_current_group(self):
        """Test conditions without logic are ANDed."""
        groups = group_conditions([condition("f1", "is_empty"), condition("f2", "is_empty")])

        assert len(groups) == 1

    def test_first_group_satisfied(self, evaluator, conditions):
        """Test the first AND-group alone satisfies the list."""
        assert evaluator.evaluate_all(conditions, {"f1": "a", "f2": "b"}) is True

    def test_second_group_satisfied(self, evaluator, conditions):
        """Test the second AND-group alone satisfies the list."""
        assert evaluator.evaluate_all(conditions, {"f3": "c"}) is True

    def test_partial_group_not_satisfied(self, evaluator, conditions):
        """Test one half of an AND-group is not enough."""
        assert evaluator.evaluate_all(conditions, {"f1": "a"}) is False

    def test_empty_list_holds(self, evaluator):
        """Test an empty condition list is always satisfied."""
        assert evaluator.evaluate_all([], {}) is True
