"""
Action application for fired rules.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from shared.logging import get_logger
from shared.metrics import RuleEngineMetrics

from .formula import evaluate_formula
from .models import Action, ActionSignal, ActionType, EvaluationResult, SIGNAL_ACTIONS


@dataclass
class EvaluationState:
    """Mutable working state of one evaluation pass."""
    visible_fields: Set[str]
    disabled_fields: Set[str]
    required_fields: Set[str]
    form_data: Dict[str, Any]
    field_values: Dict[str, Any] = field(default_factory=dict)
    signals: List[ActionSignal] = field(default_factory=list)
    fired_rules: List[str] = field(default_factory=list)

    def freeze(self) -> EvaluationResult:
        return EvaluationResult(
            visible_fields=frozenset(self.visible_fields),
            disabled_fields=frozenset(self.disabled_fields),
            required_fields=frozenset(self.required_fields),
            field_values=dict(self.field_values),
            signals=tuple(self.signals),
            fired_rules=tuple(self.fired_rules),
            form_data=dict(self.form_data),
        )


class ActionApplicator:
    """Applies the actions of a fired rule to the working state.

    Actions are applied in order and later writes win: a rule evaluated
    later in the pass can undo what an earlier rule did to the same field.
    """

    def __init__(self, metrics: Optional[RuleEngineMetrics] = None):
        self.logger = get_logger("form_logic.actions")
        self.metrics = metrics

    def apply(self, action: Action, state: EvaluationState, rule_id: str) -> None:
        """Apply one action."""
        action_type = action.type
        target = action.target_field_id

        if action_type in SIGNAL_ACTIONS:
            state.signals.append(ActionSignal(
                type=action_type,
                rule_id=rule_id,
                target_field_id=target,
                value=copy.deepcopy(action.value)
            ))
            return

        if not target:
            self.logger.debug("Action skipped, no target field", rule_id=rule_id, action=action_type)
            return

        if action_type == ActionType.SHOW_FIELD:
            state.visible_fields.add(target)

        elif action_type == ActionType.HIDE_FIELD:
            state.visible_fields.discard(target)
            # A hidden field's stale value must not reach later rules or the submission.
            state.form_data.pop(target, None)

        elif action_type == ActionType.ENABLE_FIELD:
            state.disabled_fields.discard(target)

        elif action_type == ActionType.DISABLE_FIELD:
            state.disabled_fields.add(target)

        elif action_type == ActionType.REQUIRE_FIELD:
            state.required_fields.add(target)

        elif action_type == ActionType.OPTIONAL_FIELD:
            state.required_fields.discard(target)

        elif action_type == ActionType.SET_VALUE:
            if action.value is None:
                self.logger.debug("Set value skipped, no value", rule_id=rule_id, target=target)
                return
            # Results must not share mutable values with the stored rule.
            state.form_data[target] = copy.deepcopy(action.value)
            state.field_values[target] = copy.deepcopy(action.value)

        elif action_type == ActionType.CALCULATE_VALUE:
            if not action.formula:
                self.logger.debug("Calculation skipped, no formula", rule_id=rule_id, target=target)
                return
            outcome = evaluate_formula(action.formula, state.form_data.get)
            if not outcome.ok:
                self.logger.debug(
                    "Calculation failed closed",
                    rule_id=rule_id,
                    target=target,
                    reason=outcome.reason
                )
                if self.metrics:
                    self.metrics.record_formula_failure(outcome.reason)
            state.form_data[target] = outcome.value
            state.field_values[target] = outcome.value

        else:
            self.logger.warning("Unknown action type", rule_id=rule_id, action=action_type)
