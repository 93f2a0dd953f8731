"""
Condition evaluation for conditional form rules.
"""

from typing import Any, Dict, List, Mapping, Sequence

from shared.logging import get_logger

from .coercion import is_truthy, loose_equals, strict_equals, to_number, to_text
from .models import Condition, ConditionOperator

CHECKBOX_FIELD_TYPE = "checkbox"
CHECKED_VALUES = (True, "true", "on")


def group_conditions(conditions: Sequence[Condition]) -> List[List[Condition]]:
    """Split an ordered condition list into AND-groups.

    A new group starts at the first condition and at every condition tagged
    ``logic="or"``; every other condition joins the current group. The list
    holds when any one group holds entirely.
    """
    groups: List[List[Condition]] = []
    for index, condition in enumerate(conditions):
        if index == 0 or condition.logic == "or":
            groups.append([condition])
        else:
            groups[-1].append(condition)
    return groups


def _is_empty(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return not is_truthy(value)


def _is_checked(value: Any) -> bool:
    return any(strict_equals(value, checked) for checked in CHECKED_VALUES)


def _text(value: Any) -> str:
    return to_text(value).lower() if is_truthy(value) else ""


class ConditionEvaluator:
    """Evaluates conditions against a form data snapshot."""

    def __init__(self, field_types: Mapping[str, str]):
        self.logger = get_logger("form_logic.conditions")
        self.field_types = dict(field_types)

    def evaluate_all(self, conditions: Sequence[Condition], form_data: Dict[str, Any]) -> bool:
        """Evaluate a rule's condition list; an empty list always holds."""
        if not conditions:
            return True

        return any(
            all(self.evaluate(condition, form_data) for condition in group)
            for group in group_conditions(conditions)
        )

    def evaluate(self, condition: Condition, form_data: Dict[str, Any]) -> bool:
        """Evaluate a single condition; unknown operators never hold."""
        field_value = form_data.get(condition.field_id)
        expected = condition.value
        operator = condition.operator
        is_checkbox = self.field_types.get(condition.field_id) == CHECKBOX_FIELD_TYPE

        try:
            if operator == ConditionOperator.EQUALS:
                return loose_equals(field_value, expected)

            elif operator == ConditionOperator.NOT_EQUALS:
                return not loose_equals(field_value, expected)

            elif operator == ConditionOperator.CONTAINS:
                if is_checkbox:
                    return self._list_contains(field_value, expected)
                return _text(expected) in _text(field_value)

            elif operator == ConditionOperator.NOT_CONTAINS:
                if is_checkbox:
                    return not self._list_contains(field_value, expected)
                return _text(expected) not in _text(field_value)

            elif operator == ConditionOperator.STARTS_WITH:
                return _text(field_value).startswith(_text(expected))

            elif operator == ConditionOperator.ENDS_WITH:
                return _text(field_value).endswith(_text(expected))

            elif operator == ConditionOperator.IS_EMPTY:
                return _is_empty(field_value)

            elif operator == ConditionOperator.IS_NOT_EMPTY:
                return not _is_empty(field_value)

            elif operator == ConditionOperator.IS_CHECKED:
                return _is_checked(field_value)

            elif operator == ConditionOperator.IS_NOT_CHECKED:
                return not _is_checked(field_value)

            elif operator == ConditionOperator.GREATER_THAN:
                return to_number(field_value) > to_number(expected)

            elif operator == ConditionOperator.LESS_THAN:
                return to_number(field_value) < to_number(expected)

            elif operator == ConditionOperator.IS_ONE_OF:
                if isinstance(expected, list):
                    return any(strict_equals(field_value, option) for option in expected)
                return loose_equals(field_value, expected)

            elif operator == ConditionOperator.IS_NOT_ONE_OF:
                if isinstance(expected, list):
                    return not any(strict_equals(field_value, option) for option in expected)
                return not loose_equals(field_value, expected)

            else:
                self.logger.warning(
                    "Unknown condition operator",
                    operator=operator,
                    field_id=condition.field_id
                )
                return False

        except (TypeError, ValueError) as e:
            self.logger.error("Error evaluating condition", field_id=condition.field_id, error=str(e))
            return False

    @staticmethod
    def _list_contains(field_value: Any, expected: Any) -> bool:
        if not isinstance(field_value, (list, tuple)):
            return False
        return any(strict_equals(item, expected) for item in field_value)
