"""
Rule evaluation engine for conditional form logic.
"""

import json
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.config import FormLogicSettings, get_settings
from shared.errors import RuleValidationError
from shared.logging import get_logger
from shared.metrics import RuleEngineMetrics

from .actions import ActionApplicator, EvaluationState
from .conditions import ConditionEvaluator
from .formula import check_formula_syntax
from .models import (
    ActionType, EvaluationResult, FormField, ImportResult, Rule, RuleDraft, ValidationResult,
    FIELD_TARGET_ACTIONS, SUPPORTED_ACTIONS, SUPPORTED_OPERATORS, VALUELESS_OPERATORS
)

logger = get_logger("form_logic.rule_engine")

ModelT = TypeVar("ModelT", bound=BaseModel)
FieldInput = Union[FormField, Mapping[str, Any]]
RuleInput = Union[Rule, Mapping[str, Any]]


def _format_pydantic_errors(error: PydanticValidationError) -> List[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{location}: {detail['msg']}" if location else detail["msg"])
    return messages


def _coerce(model: Type[ModelT], item: Any) -> ModelT:
    if isinstance(item, model):
        return item
    try:
        return model.model_validate(item)
    except PydanticValidationError as e:
        messages = _format_pydantic_errors(e)
        raise RuleValidationError(
            f"Invalid {model.__name__}: {'; '.join(messages)}",
            {"errors": messages}
        ) from e


def sort_by_priority(rules: Iterable[Rule]) -> List[Rule]:
    """Order rules by descending priority; equal priorities keep their order."""
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)


def evaluate(
    fields: Sequence[FieldInput],
    rules: Sequence[RuleInput],
    form_data: Optional[Mapping[str, Any]] = None,
    metrics: Optional[RuleEngineMetrics] = None,
) -> EvaluationResult:
    """Run one evaluation pass.

    Every field starts visible and enabled, statically required fields start
    required. Active rules are applied once each, in descending priority.
    A rule only sees values written by rules evaluated before it; there is
    no second pass. The caller's ``form_data`` is never modified.
    """
    form_fields = [_coerce(FormField, item) for item in fields]
    form_rules = [_coerce(Rule, item) for item in rules]

    state = EvaluationState(
        visible_fields={form_field.id for form_field in form_fields},
        disabled_fields=set(),
        required_fields={form_field.id for form_field in form_fields if form_field.required},
        form_data=dict(form_data or {}),
    )
    conditions = ConditionEvaluator({form_field.id: form_field.type for form_field in form_fields})
    applicator = ActionApplicator(metrics)

    for rule in sort_by_priority(rule for rule in form_rules if rule.active):
        if not conditions.evaluate_all(rule.conditions, state.form_data):
            continue
        state.fired_rules.append(rule.id)
        for action in rule.actions:
            applicator.apply(action, state, rule.id)

    logger.debug(
        "Evaluation pass complete",
        rules=len(form_rules),
        fired_rules=state.fired_rules,
        signals=len(state.signals)
    )
    return state.freeze()


class FormRuleEngine:
    """Holds a form's ordered rule set and evaluates it.

    The engine owns the rules only. Form data is passed to ``evaluate`` on
    every call and never retained, so one engine can serve concurrent
    evaluations of the same form.
    """

    def __init__(
        self,
        fields: Sequence[FieldInput],
        rules: Optional[Sequence[RuleInput]] = None,
        settings: Optional[FormLogicSettings] = None,
        metrics: Optional[RuleEngineMetrics] = None,
    ):
        self.logger = get_logger("form_logic.rule_engine")
        self.settings = settings or get_settings()
        if metrics is None and self.settings.enable_metrics:
            metrics = RuleEngineMetrics()
        self.metrics = metrics
        self.fields: List[FormField] = [_coerce(FormField, item) for item in fields]
        self.rules: List[Rule] = sort_by_priority(_coerce(Rule, item) for item in (rules or []))

    @property
    def field_ids(self) -> Set[str]:
        return {form_field.id for form_field in self.fields}

    def evaluate(self, form_data: Optional[Mapping[str, Any]] = None) -> EvaluationResult:
        """Evaluate the engine's rules against a form data snapshot."""
        if self.metrics is None:
            return evaluate(self.fields, self.rules, form_data)

        with self.metrics.time_evaluation():
            result = evaluate(self.fields, self.rules, form_data, self.metrics)
        self.metrics.record_rules_fired(len(result.fired_rules))
        return result

    def _generate_rule_id(self) -> str:
        existing = {rule.id for rule in self.rules}
        while True:
            rule_id = f"{self.settings.rule_id_prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
            if rule_id not in existing:
                return rule_id

    def add_rule(self, draft: Union[RuleDraft, Mapping[str, Any]]) -> Rule:
        """Add a rule under a freshly assigned id."""
        if isinstance(draft, BaseModel):
            data = draft.model_dump(exclude={"id"})
        else:
            data = {key: value for key, value in dict(draft).items() if key != "id"}

        rule = _coerce(Rule, {**data, "id": self._generate_rule_id()})
        self.rules.append(rule)
        self.rules = sort_by_priority(self.rules)
        self.logger.info("Rule added", rule_id=rule.id, name=rule.name, priority=rule.priority)
        return rule

    def update_rule(self, rule_id: str, updates: Union[RuleDraft, Mapping[str, Any]]) -> Optional[Rule]:
        """Merge updates into a rule; ``None`` when the rule does not exist.

        The rule id is never changed by an update.
        """
        index = self._index_of(rule_id)
        if index is None:
            return None

        if isinstance(updates, BaseModel):
            changes = updates.model_dump(exclude_unset=True)
        else:
            changes = dict(updates)
        changes.pop("id", None)

        rule = _coerce(Rule, {**self.rules[index].model_dump(), **changes, "id": rule_id})
        self.rules[index] = rule
        self.rules = sort_by_priority(self.rules)
        self.logger.info("Rule updated", rule_id=rule_id, name=rule.name, fields=sorted(changes))
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        """Remove a rule by id."""
        index = self._index_of(rule_id)
        if index is None:
            return False

        rule = self.rules.pop(index)
        self.logger.info("Rule removed", rule_id=rule_id, name=rule.name)
        return True

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get a rule by id."""
        index = self._index_of(rule_id)
        return None if index is None else self.rules[index]

    def get_rules(self) -> List[Rule]:
        """Get all rules in evaluation order."""
        return list(self.rules)

    def _index_of(self, rule_id: str) -> Optional[int]:
        for index, rule in enumerate(self.rules):
            if rule.id == rule_id:
                return index
        return None

    def validate_rule(self, rule: Union[RuleDraft, Mapping[str, Any]]) -> ValidationResult:
        """Check a rule against the form's fields, collecting every problem."""
        if not isinstance(rule, RuleDraft):
            try:
                rule = RuleDraft.model_validate(rule)
            except PydanticValidationError as e:
                return self._invalid(_format_pydantic_errors(e))

        errors: List[str] = []
        field_ids = self.field_ids

        if not rule.name or not rule.name.strip():
            errors.append("Rule must have a name")

        if not rule.conditions:
            errors.append("Rule must have at least one condition")

        for condition in rule.conditions:
            if condition.field_id not in field_ids:
                errors.append(f"Condition references unknown field: {condition.field_id}")

            if condition.operator not in SUPPORTED_OPERATORS:
                errors.append(
                    f"Condition for field {condition.field_id} uses unsupported operator: {condition.operator}"
                )
            elif condition.operator not in VALUELESS_OPERATORS and condition.value is None:
                errors.append(f"Condition for field {condition.field_id} is missing a value")

        for action in rule.actions:
            if action.type not in SUPPORTED_ACTIONS:
                errors.append(f"Unsupported action type: {action.type}")

            elif action.type == ActionType.CALCULATE_VALUE:
                if not action.target_field_id or not action.formula:
                    errors.append("Calculate value action must specify a target field and formula")
                    continue
                if action.target_field_id not in field_ids:
                    errors.append(f"Action references unknown field: {action.target_field_id}")
                syntax_error = check_formula_syntax(action.formula)
                if syntax_error:
                    errors.append(f"Calculate value action has an invalid formula: {syntax_error}")

            elif action.type in FIELD_TARGET_ACTIONS:
                if not action.target_field_id:
                    errors.append(f"Action {action.type} must specify a target field")
                elif action.target_field_id not in field_ids:
                    errors.append(f"Action references unknown field: {action.target_field_id}")

        if errors:
            return self._invalid(errors)
        return ValidationResult(valid=True, errors=[])

    def _invalid(self, errors: List[str]) -> ValidationResult:
        if self.metrics:
            self.metrics.record_validation_failures()
        return ValidationResult(valid=False, errors=errors)

    def export_rules(self) -> str:
        """Serialize the rule set as a JSON array."""
        return json.dumps([rule.to_json_dict() for rule in self.rules], indent=2)

    def import_rules(self, json_string: str) -> ImportResult:
        """Replace the rule set from JSON, all or nothing.

        Every rule is parsed and validated before anything changes; if any
        rule fails, the current rules are kept and every failure is
        reported. Rules without an id receive a fresh one.
        """
        try:
            payload = json.loads(json_string)
        except (TypeError, ValueError):
            return ImportResult(success=False, errors=["Invalid JSON format"])

        if not isinstance(payload, list):
            return ImportResult(success=False, errors=["Invalid format: expected array of rules"])

        errors: List[str] = []
        imported: List[Rule] = []
        seen_ids: Set[str] = set()

        for position, item in enumerate(payload, start=1):
            if not isinstance(item, dict):
                errors.append(f"Rule #{position}: expected an object")
                continue

            label = item.get("name") or "unnamed"
            try:
                rule = Rule.model_validate({**item, "id": item.get("id") or self._generate_rule_id()})
            except PydanticValidationError as e:
                errors.append(f'Rule "{label}": {", ".join(_format_pydantic_errors(e))}')
                continue

            if rule.id in seen_ids:
                errors.append(f'Rule "{label}": duplicate rule id {rule.id}')
                continue
            seen_ids.add(rule.id)

            validation = self.validate_rule(rule)
            if not validation.valid:
                errors.append(f'Rule "{label}": {", ".join(validation.errors)}')
                continue

            imported.append(rule)

        if errors:
            self.logger.warning("Rule import rejected", rules=len(payload), errors=len(errors))
            return ImportResult(success=False, errors=errors)

        self.rules = sort_by_priority(imported)
        self.logger.info("Rules imported", rules=len(imported))
        return ImportResult(success=True)


class FormSession:
    """Form data accumulated while one user fills in a form.

    Each update merges the new values into the session snapshot, evaluates
    the engine's current rules and keeps the post-pass data: hidden fields
    lose their values, set and calculated values are retained.
    """

    def __init__(self, engine: FormRuleEngine, initial_data: Optional[Mapping[str, Any]] = None):
        self.engine = engine
        self.form_data: Dict[str, Any] = dict(initial_data or {})

    def update_form_data(self, new_data: Mapping[str, Any]) -> EvaluationResult:
        result = self.engine.evaluate({**self.form_data, **new_data})
        self.form_data = dict(result.form_data)
        return result

    def reset(self):
        self.form_data = {}
