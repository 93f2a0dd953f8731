"""
Value coercion used when comparing and computing with form values.

Form values arrive from browsers as loosely typed JSON: numbers may be
strings, checkboxes may be booleans, ``"on"`` or lists. These helpers give
the form builder's comparison rules a single definition.
"""

import math
import re
from typing import Any

_NUMERIC_TEXT = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")
_INFINITY_TEXT = {"Infinity": math.inf, "+Infinity": math.inf, "-Infinity": -math.inf}


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_float(value: Any) -> float:
    """Convert an int or float to float; ints beyond float range become infinite."""
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def is_truthy(value: Any) -> bool:
    """Form truthiness: lists are truthy even when empty, NaN is falsy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> float:
    """Coerce a form value to a float; NaN when it has no numeric reading."""
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return to_float(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if text in _INFINITY_TEXT:
            return _INFINITY_TEXT[text]
        if _NUMERIC_TEXT.match(text):
            return float(text)
        return math.nan
    if isinstance(value, (list, tuple)):
        return to_number(to_text(value))
    return math.nan


def format_number(number: float) -> str:
    """Render a number the way it is displayed in a form."""
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def to_text(value: Any) -> str:
    """Text form of a value; ``None`` renders as an empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(to_float(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """Loose equality between a form value and a rule value.

    Booleans compare as 1/0, numbers compare numerically against numeric
    strings, and lists compare by their comma-joined text against scalars.
    ``None`` only equals ``None``.
    """
    if left is None or right is None:
        return left is None and right is None

    left_is_list = isinstance(left, (list, tuple))
    right_is_list = isinstance(right, (list, tuple))
    if left_is_list and right_is_list:
        return list(left) == list(right)
    if left_is_list:
        return loose_equals(to_text(left), right)
    if right_is_list:
        return loose_equals(left, to_text(right))

    if isinstance(left, bool):
        return loose_equals(to_number(left), right)
    if isinstance(right, bool):
        return loose_equals(left, to_number(right))

    if is_number(left) and isinstance(right, str):
        return to_float(left) == to_number(right)
    if isinstance(left, str) and is_number(right):
        return to_number(left) == to_float(right)

    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without coercion; NaN equals NaN."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        if isinstance(left, float) and isinstance(right, float) and math.isnan(left) and math.isnan(right):
            return True
        return left == right
    if type(left) is not type(right):
        return False
    return left == right
