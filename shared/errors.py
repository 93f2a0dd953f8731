"""
Shared error handling for the form logic engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class FormLogicException(Exception):
    """Base exception for the form logic engine."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class RuleValidationError(FormLogicException):
    """A rule payload cannot be represented as a rule."""

    def __init__(self, message: str = "Rule validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_VALIDATION_ERROR", message, details)


class FormulaError(FormLogicException):
    """A formula cannot be tokenized, parsed or evaluated."""

    def __init__(self, message: str = "Invalid formula", details: Optional[Dict[str, Any]] = None):
        super().__init__("FORMULA_ERROR", message, details)
