"""
Safe arithmetic for calculated form fields.

A formula such as ``({price} * {quantity}) - {discount}`` is evaluated in
three steps:

1. Every ``{fieldId}`` reference is replaced by the field's numeric value.
   Missing, non-numeric and non-finite values become ``0``.
2. The substituted text must consist only of digits, whitespace, ``.``,
   ``+ - * /`` and parentheses.
3. The text is tokenized and parsed by a recursive-descent parser into a
   small AST (number literals, unary ``+``/``-``, binary ``+ - * /``), and
   the AST is interpreted.

Nothing is ever handed to ``eval``. Every failure, including division by
zero and non-finite results, resolves to ``0``.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

from shared.config import get_settings
from shared.errors import FormulaError
from shared.logging import get_logger

from .coercion import format_number, to_number

logger = get_logger("form_logic.formula")

FIELD_REFERENCE = re.compile(r"\{([a-zA-Z0-9_-]+)\}")
SAFE_EXPRESSION = re.compile(r"^[0-9\s+\-*/().]+$")

DIGITS = "0123456789"

FAIL_CLOSED_VALUE = 0

Number = Union[int, float]
FieldLookup = Callable[[str], Any]


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "op", "lparen", "rparen"
    text: str
    position: int


@dataclass(frozen=True)
class NumberNode:
    value: float


@dataclass(frozen=True)
class UnaryNode:
    operator: str
    operand: "FormulaNode"


@dataclass(frozen=True)
class BinaryNode:
    operator: str
    left: "FormulaNode"
    right: "FormulaNode"


FormulaNode = Union[NumberNode, UnaryNode, BinaryNode]


@dataclass(frozen=True)
class FormulaOutcome:
    """Value of a formula plus the reason it failed closed, if it did."""
    value: Number
    error: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def tokenize(text: str) -> List[Token]:
    """Split an arithmetic expression into tokens."""
    tokens: List[Token] = []
    index = 0
    length = len(text)

    while index < length:
        char = text[index]

        if char.isspace():
            index += 1
            continue

        if char in "+-*/":
            tokens.append(Token("op", char, index))
            index += 1
            continue

        if char == "(":
            tokens.append(Token("lparen", char, index))
            index += 1
            continue

        if char == ")":
            tokens.append(Token("rparen", char, index))
            index += 1
            continue

        if char in DIGITS or char == ".":
            start = index
            seen_dot = False
            while index < length and (text[index] in DIGITS or (text[index] == "." and not seen_dot)):
                if text[index] == ".":
                    seen_dot = True
                index += 1
            literal = text[start:index]
            if literal == ".":
                raise FormulaError(
                    f"Malformed number at position {start}",
                    {"reason": "syntax", "position": start}
                )
            tokens.append(Token("number", literal, start))
            continue

        raise FormulaError(
            f"Unexpected character {char!r} at position {index}",
            {"reason": "syntax", "position": index}
        )

    return tokens


class _Parser:
    """Recursive-descent parser for ``+ - * /`` with parentheses.

    Grammar::

        expression := term (("+" | "-") term)*
        term       := unary (("*" | "/") unary)*
        unary      := ("+" | "-") unary | primary
        primary    := NUMBER | "(" expression ")"
    """

    def __init__(self, tokens: List[Token], max_depth: int):
        self.tokens = tokens
        self.index = 0
        self.depth = 0
        self.max_depth = max_depth

    def parse(self) -> FormulaNode:
        if not self.tokens:
            raise FormulaError("Formula is empty", {"reason": "syntax"})
        node = self._expression()
        if self.index < len(self.tokens):
            token = self.tokens[self.index]
            raise FormulaError(
                f"Unexpected {token.text!r} at position {token.position}",
                {"reason": "syntax", "position": token.position}
            )
        return node

    def _peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _descend(self):
        self.depth += 1
        if self.depth > self.max_depth:
            raise FormulaError(
                f"Formula nesting exceeds {self.max_depth} levels",
                {"reason": "too_deep"}
            )

    def _expression(self) -> FormulaNode:
        node = self._term()
        while True:
            token = self._peek()
            if token is None or token.kind != "op" or token.text not in "+-":
                return node
            self._advance()
            node = BinaryNode(token.text, node, self._term())

    def _term(self) -> FormulaNode:
        node = self._unary()
        while True:
            token = self._peek()
            if token is None or token.kind != "op" or token.text not in "*/":
                return node
            self._advance()
            node = BinaryNode(token.text, node, self._unary())

    def _unary(self) -> FormulaNode:
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in "+-":
            self._advance()
            self._descend()
            operand = self._unary()
            self.depth -= 1
            return UnaryNode(token.text, operand)
        return self._primary()

    def _primary(self) -> FormulaNode:
        token = self._peek()
        if token is None:
            raise FormulaError("Unexpected end of formula", {"reason": "syntax"})

        if token.kind == "number":
            self._advance()
            return NumberNode(float(token.text))

        if token.kind == "lparen":
            self._advance()
            self._descend()
            node = self._expression()
            closing = self._peek()
            if closing is None or closing.kind != "rparen":
                raise FormulaError(
                    f"Unclosed parenthesis at position {token.position}",
                    {"reason": "syntax", "position": token.position}
                )
            self._advance()
            self.depth -= 1
            return node

        raise FormulaError(
            f"Unexpected {token.text!r} at position {token.position}",
            {"reason": "syntax", "position": token.position}
        )


def parse_formula(text: str, max_depth: Optional[int] = None) -> FormulaNode:
    """Parse a substituted arithmetic expression into an AST."""
    if max_depth is None:
        max_depth = get_settings().max_formula_depth
    return _Parser(tokenize(text), max_depth).parse()


def _apply(operator: str, left: float, right: float) -> float:
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if right == 0:
        raise FormulaError("Division by zero", {"reason": "division_by_zero"})
    return left / right


def evaluate_node(node: FormulaNode) -> float:
    """Interpret an AST.

    Walks the tree with an explicit stack so long ``a + b + c ...`` chains
    do not hit the recursion limit.
    """
    stack = [(node, False)]
    values: List[float] = []

    while stack:
        current, expanded = stack.pop()
        if isinstance(current, NumberNode):
            values.append(current.value)
        elif not expanded:
            stack.append((current, True))
            if isinstance(current, BinaryNode):
                stack.append((current.right, False))
                stack.append((current.left, False))
            else:
                stack.append((current.operand, False))
        elif isinstance(current, UnaryNode):
            operand = values.pop()
            values.append(-operand if current.operator == "-" else operand)
        else:
            right = values.pop()
            left = values.pop()
            values.append(_apply(current.operator, left, right))

    return values.pop()


def _reference_value(value: Any) -> str:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        number = 0.0
    return format_number(number)


def substitute_references(formula: str, lookup: FieldLookup) -> str:
    """Replace each ``{fieldId}`` with the field's numeric value."""
    return FIELD_REFERENCE.sub(lambda match: _reference_value(lookup(match.group(1))), formula)


def _normalize(value: float) -> Number:
    if value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def _compile(formula: str, lookup: FieldLookup, max_length: int, max_depth: int) -> FormulaNode:
    if not formula or not formula.strip():
        raise FormulaError("Formula is empty", {"reason": "empty"})
    if len(formula) > max_length:
        raise FormulaError(
            f"Formula exceeds {max_length} characters",
            {"reason": "too_long"}
        )

    expression = substitute_references(formula, lookup)
    if not SAFE_EXPRESSION.match(expression):
        raise FormulaError(
            "Formula contains characters other than numbers and arithmetic operators",
            {"reason": "unsafe_characters"}
        )

    return parse_formula(expression, max_depth)


def evaluate_formula(
    formula: str,
    lookup: FieldLookup,
    max_length: Optional[int] = None,
    max_depth: Optional[int] = None,
) -> FormulaOutcome:
    """Evaluate a formula, reporting why it failed closed when it did."""
    settings = get_settings()
    if max_length is None:
        max_length = settings.max_formula_length
    if max_depth is None:
        max_depth = settings.max_formula_depth

    try:
        result = evaluate_node(_compile(formula, lookup, max_length, max_depth))
    except FormulaError as e:
        reason = e.details.get("reason", "syntax")
        logger.debug("Formula failed closed", formula=formula, reason=reason, error=e.message)
        return FormulaOutcome(FAIL_CLOSED_VALUE, error=e.message, reason=reason)

    if math.isnan(result) or math.isinf(result):
        logger.debug("Formula result is not finite", formula=formula)
        return FormulaOutcome(FAIL_CLOSED_VALUE, error="Result is not a finite number", reason="non_finite")

    return FormulaOutcome(_normalize(result))


def calculate_formula(formula: str, lookup: FieldLookup) -> Number:
    """Evaluate a formula against field values; never raises."""
    return evaluate_formula(formula, lookup).value


def check_formula_syntax(formula: str) -> Optional[str]:
    """Return why a formula can never evaluate, or ``None`` if it parses.

    Field references are checked with every field set to ``0``; arithmetic
    failures that depend on values, such as division by zero, are not
    reported.
    """
    settings = get_settings()
    try:
        _compile(formula, lambda field_id: 0, settings.max_formula_length, settings.max_formula_depth)
    except FormulaError as e:
        return e.message
    return None
