"""
Expression evaluator for calculated layout items.

Calculated rows are written as small arithmetic formulas over resolved
variables and already-emitted rows::

    revenue + cogs
    (@10 - @20) / @10 * 100
    -tax

Supported:
    - Decimal literals
    - Variable names ([A-Za-z_][A-Za-z0-9_]*)
    - Row references (@<order>)
    - Binary + - * / and unary + -
    - Parentheses

Everything else is rejected at tokenize time.  Formulas are parsed into a
typed AST by a recursive-descent parser and interpreted with ``Decimal``
arithmetic; nothing is ever passed to ``eval``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Union

from statement_engine.models import ColumnDescriptor
from statement_kernel.domain.movements import ZERO
from statement_kernel.domain.result import Result
from statement_kernel.exceptions import ExpressionSyntaxError

OPERATORS = "+-*/()"


# =========================================================================
# AST
# =========================================================================


@dataclass(frozen=True)
class Number:
    value: Decimal


@dataclass(frozen=True)
class VariableRef:
    name: str


@dataclass(frozen=True)
class OrderRef:
    order: int


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: ExpressionNode


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: ExpressionNode
    right: ExpressionNode


ExpressionNode = Union[Number, VariableRef, OrderRef, UnaryOp, BinaryOp]


@dataclass(frozen=True)
class Token:
    kind: str  # number | identifier | order | operator
    text: str
    position: int


@dataclass(frozen=True)
class ExpressionContext:
    """Values visible to one evaluation (one column)."""

    variables: Mapping[str, Decimal | None]
    orders: Mapping[int, Decimal | None]


@dataclass(frozen=True)
class Dependencies:
    variables: frozenset[str]
    orders: frozenset[int]


class _EvaluationFailure(Exception):
    pass


# =========================================================================
# Tokenizer / parser
# =========================================================================


def tokenize(expression: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    n = len(expression)
    while i < n:
        ch = expression[i]
        if ch.isspace():
            i += 1
        elif ch.isdigit() or (ch == "." and i + 1 < n and expression[i + 1].isdigit()):
            start = i
            while i < n and (expression[i].isdigit() or expression[i] == "."):
                i += 1
            tokens.append(Token("number", expression[start:i], start))
        elif ch == "@":
            start = i
            i += 1
            while i < n and expression[i].isdigit():
                i += 1
            if i == start + 1:
                raise ExpressionSyntaxError(
                    expression, f"Invalid order reference at position {start}", start,
                )
            tokens.append(Token("order", expression[start:i], start))
        elif ch.isalpha() or ch == "_":
            start = i
            while i < n and (expression[i].isalnum() or expression[i] == "_"):
                i += 1
            tokens.append(Token("identifier", expression[start:i], start))
        elif ch in OPERATORS:
            tokens.append(Token("operator", ch, i))
            i += 1
        else:
            raise ExpressionSyntaxError(
                expression, f"Unexpected character '{ch}' at position {i}", i,
            )
    return tokens


class _Parser:
    """Recursive descent: expr -> term (+|- term)*, term -> unary (*|/ unary)*."""

    def __init__(self, expression: str, tokens: list[Token]):
        self.expression = expression
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _error(self, reason: str, position: int | None = None) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(self.expression, reason, position)

    def parse(self) -> ExpressionNode:
        node = self._expr()
        token = self._peek()
        if token is not None:
            raise self._error(
                f"Unexpected token '{token.text}' at position {token.position}",
                token.position,
            )
        return node

    def _expr(self) -> ExpressionNode:
        node = self._term()
        while (token := self._peek()) and token.kind == "operator" and token.text in "+-":
            self.pos += 1
            node = BinaryOp(token.text, node, self._term())
        return node

    def _term(self) -> ExpressionNode:
        node = self._unary()
        while (token := self._peek()) and token.kind == "operator" and token.text in "*/":
            self.pos += 1
            node = BinaryOp(token.text, node, self._unary())
        return node

    def _unary(self) -> ExpressionNode:
        token = self._peek()
        if token and token.kind == "operator" and token.text in "+-":
            self.pos += 1
            return UnaryOp(token.text, self._unary())
        return self._primary()

    def _primary(self) -> ExpressionNode:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of expression")
        self.pos += 1
        if token.kind == "number":
            try:
                return Number(Decimal(token.text))
            except InvalidOperation:
                raise self._error(
                    f"Invalid number '{token.text}' at position {token.position}",
                    token.position,
                ) from None
        if token.kind == "identifier":
            return VariableRef(token.text)
        if token.kind == "order":
            return OrderRef(int(token.text[1:]))
        if token.text == "(":
            node = self._expr()
            closing = self._peek()
            if closing is None:
                raise self._error("Missing closing parenthesis")
            if closing.text != ")":
                raise self._error(
                    f"Expected ')' but found '{closing.text}' at position {closing.position}",
                    closing.position,
                )
            self.pos += 1
            return node
        raise self._error(
            f"Unexpected token '{token.text}' at position {token.position}",
            token.position,
        )


@lru_cache(maxsize=256)
def parse_expression(expression: str) -> ExpressionNode:
    """
    Parse a formula into an AST.

    Raises:
        ExpressionSyntaxError: with the reason and, where known, position.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ExpressionSyntaxError(str(expression), "Empty expression")
    return _Parser(expression, tokenize(expression)).parse()


def validate_expression(expression: str) -> list[str]:
    """Syntax errors for a formula (empty list when valid)."""
    try:
        parse_expression(expression)
    except ExpressionSyntaxError as e:
        return [e.reason]
    except TypeError:
        return ["Expression must be a non-empty string"]
    return []


def _collect(node: ExpressionNode, variables: set[str], orders: set[int]) -> None:
    if isinstance(node, VariableRef):
        variables.add(node.name)
    elif isinstance(node, OrderRef):
        orders.add(node.order)
    elif isinstance(node, UnaryOp):
        _collect(node.operand, variables, orders)
    elif isinstance(node, BinaryOp):
        _collect(node.left, variables, orders)
        _collect(node.right, variables, orders)


def get_dependencies(expression: str) -> Dependencies:
    """Variable names and row orders a formula references."""
    variables: set[str] = set()
    orders: set[int] = set()
    _collect(parse_expression(expression), variables, orders)
    return Dependencies(frozenset(variables), frozenset(orders))


# =========================================================================
# Evaluation
# =========================================================================


def _eval(node: ExpressionNode, context: ExpressionContext) -> Decimal:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, VariableRef):
        if node.name not in context.variables:
            raise _EvaluationFailure(f"Undefined variable: {node.name}")
        return context.variables[node.name] or ZERO
    if isinstance(node, OrderRef):
        if node.order not in context.orders:
            raise _EvaluationFailure(f"Undefined order reference: @{node.order}")
        return context.orders[node.order] or ZERO
    if isinstance(node, UnaryOp):
        value = _eval(node.operand, context)
        return -value if node.op == "-" else value
    if isinstance(node, BinaryOp):
        left = _eval(node.left, context)
        right = _eval(node.right, context)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if right == 0:
            raise _EvaluationFailure("Division by zero")
        return left / right
    raise _EvaluationFailure(f"Unknown node: {node!r}")


def evaluate_ast(node: ExpressionNode, context: ExpressionContext) -> Result[Decimal]:
    try:
        return Result.ok(_eval(node, context))
    except _EvaluationFailure as e:
        return Result.fail(str(e))


def evaluate_expression(expression: str, context: ExpressionContext) -> Result[Decimal]:
    try:
        node = parse_expression(expression)
    except ExpressionSyntaxError as e:
        return Result.fail(e.reason)
    return evaluate_ast(node, context)


def evaluate_expression_with(context: ExpressionContext) -> Callable[[str], Result[Decimal]]:
    return lambda expression: evaluate_expression(expression, context)


def is_division_by_zero(result: Result) -> bool:
    return not result.is_ok and result.error == "Division by zero"


def evaluate_per_column(
    expression: str,
    columns: Sequence[ColumnDescriptor],
    variables: Mapping[str, Mapping[str, Decimal | None]],
    rows: Mapping[int, Mapping[str, Decimal | None]],
) -> Result[dict[str, Decimal | None]]:
    """
    Evaluate one formula independently for every output column.

    ``variables`` maps name -> column key -> value and ``rows`` maps
    order -> column key -> amount.  Division by zero in a column yields
    ``None`` for that column only; any other failure fails the whole call.
    """
    try:
        node = parse_expression(expression)
    except ExpressionSyntaxError as e:
        return Result.fail(e.reason)

    out: dict[str, Decimal | None] = {}
    for column in columns:
        context = ExpressionContext(
            variables={name: values.get(column.key) for name, values in variables.items()},
            orders={order: amounts.get(column.key) for order, amounts in rows.items()},
        )
        result = evaluate_ast(node, context)
        if result:
            out[column.key] = result.value
        elif is_division_by_zero(result):
            out[column.key] = None
        else:
            return Result.fail(result.error)
    return Result.ok(out)
