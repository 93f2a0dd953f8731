"""
Rule data models for the form logic engine.

Rules, conditions, actions and form fields are pydantic models because they
cross the JSON boundary (rule-set import/export). They read and write the
camelCase keys used by the form builder (``fieldId``, ``targetFieldId``) and
also accept the snake_case attribute names. Evaluation outputs are plain
frozen dataclasses.
"""

from typing import Dict, Any, Optional, List, Union, FrozenSet, Tuple, Literal
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictFloat, StrictStr
from pydantic.alias_generators import to_camel


class ConditionOperator(str, Enum):
    """Condition operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IS_CHECKED = "is_checked"
    IS_NOT_CHECKED = "is_not_checked"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_ONE_OF = "is_one_of"
    IS_NOT_ONE_OF = "is_not_one_of"


class ActionType(str, Enum):
    """Action types."""
    SHOW_FIELD = "show_field"
    HIDE_FIELD = "hide_field"
    ENABLE_FIELD = "enable_field"
    DISABLE_FIELD = "disable_field"
    REQUIRE_FIELD = "require_field"
    OPTIONAL_FIELD = "optional_field"
    SET_VALUE = "set_value"
    CALCULATE_VALUE = "calculate_value"
    JUMP_TO_PAGE = "jump_to_page"
    SUBMIT_FORM = "submit_form"


SUPPORTED_OPERATORS = frozenset(op.value for op in ConditionOperator)

# Operators that only look at the field value and carry no comparison value.
VALUELESS_OPERATORS = frozenset(op.value for op in (
    ConditionOperator.IS_EMPTY,
    ConditionOperator.IS_NOT_EMPTY,
    ConditionOperator.IS_CHECKED,
    ConditionOperator.IS_NOT_CHECKED,
))

SUPPORTED_ACTIONS = frozenset(action.value for action in ActionType)

# Actions that must name an existing form field.
FIELD_TARGET_ACTIONS = frozenset(action.value for action in (
    ActionType.SHOW_FIELD,
    ActionType.HIDE_FIELD,
    ActionType.ENABLE_FIELD,
    ActionType.DISABLE_FIELD,
    ActionType.REQUIRE_FIELD,
    ActionType.OPTIONAL_FIELD,
    ActionType.SET_VALUE,
    ActionType.CALCULATE_VALUE,
))

# Actions the engine only reports back to the form component.
SIGNAL_ACTIONS = frozenset(action.value for action in (
    ActionType.JUMP_TO_PAGE,
    ActionType.SUBMIT_FORM,
))

Scalar = Union[StrictBool, StrictInt, StrictFloat, StrictStr]
FieldValue = Union[Scalar, List[Scalar]]


class _FormModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore"
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys of the rule-set format."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FormField(_FormModel):
    """A form field definition, as far as the engine needs it.

    Other builder attributes (label, placeholder, default value) are ignored.
    """
    id: str
    type: str = "text"
    required: bool = False


class Condition(_FormModel):
    """Predicate over a single field's current value."""
    field_id: str
    operator: str
    value: Optional[FieldValue] = None
    logic: Optional[Literal["and", "or"]] = None


class Action(_FormModel):
    """Effect applied when a rule's conditions hold."""
    type: str
    target_field_id: Optional[str] = None
    value: Optional[FieldValue] = None
    formula: Optional[str] = None


class RuleDraft(_FormModel):
    """A rule as authored, before the engine assigns it an id."""
    name: str = ""
    description: str = ""
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[Action] = Field(default_factory=list)
    active: bool = True
    priority: int = 0


class Rule(RuleDraft):
    """Conditional form rule."""
    id: str


@dataclass(frozen=True)
class ActionSignal:
    """A page jump or submit request raised by a fired rule."""
    type: str
    rule_id: str
    target_field_id: Optional[str] = None
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "ruleId": self.rule_id}
        if self.target_field_id is not None:
            data["targetFieldId"] = self.target_field_id
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one evaluation pass."""
    visible_fields: FrozenSet[str]
    disabled_fields: FrozenSet[str]
    required_fields: FrozenSet[str]
    field_values: Dict[str, Any] = field(default_factory=dict)
    signals: Tuple[ActionSignal, ...] = ()
    fired_rules: Tuple[str, ...] = ()
    # Working form data after the pass: hidden fields removed, set and
    # calculated values written.
    form_data: Dict[str, Any] = field(default_factory=dict)

    def is_visible(self, field_id: str) -> bool:
        return field_id in self.visible_fields

    def is_disabled(self, field_id: str) -> bool:
        return field_id in self.disabled_fields

    def is_required(self, field_id: str) -> bool:
        return field_id in self.required_fields

    def get_value(self, field_id: str) -> Any:
        return self.field_values.get(field_id)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape consumed by the form renderer."""
        return {
            "visibleFields": sorted(self.visible_fields),
            "disabledFields": sorted(self.disabled_fields),
            "requiredFields": sorted(self.required_fields),
            "fieldValues": dict(self.field_values),
            "signals": [signal.to_dict() for signal in self.signals],
            "firedRules": list(self.fired_rules),
        }


@dataclass
class ValidationResult:
    """Result of validating a rule."""
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class ImportResult:
    """Result of importing a rule set."""
    success: bool
    errors: Optional[List[str]] = None
