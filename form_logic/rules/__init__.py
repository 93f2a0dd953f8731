"""
Conditional form rules package.

Decides, for a form's field definitions, its author-defined rules and the
values entered so far, which fields are visible, disabled and required and
which values are injected. Rules are applied in a single pass in descending
priority; formulas for calculated fields go through a dedicated arithmetic
parser and never reach ``eval``.

Modules of interest:
- models: Rule, Condition, Action, FormField and evaluation results.
- formula: Tokenizer, parser and interpreter for calculated values.
- conditions: Operator semantics and AND/OR grouping.
- actions: Effects of fired rules on the working state.
- engine: Evaluation pass, rule management, validation, import/export.
"""

from .engine import FormRuleEngine, FormSession, evaluate
from .formula import calculate_formula
from .models import (
    Action, ActionSignal, ActionType, Condition, ConditionOperator, EvaluationResult,
    FormField, ImportResult, Rule, RuleDraft, ValidationResult
)

__all__ = [
    "Action",
    "ActionSignal",
    "ActionType",
    "Condition",
    "ConditionOperator",
    "EvaluationResult",
    "FormField",
    "FormRuleEngine",
    "FormSession",
    "ImportResult",
    "Rule",
    "RuleDraft",
    "ValidationResult",
    "calculate_formula",
    "evaluate",
]
