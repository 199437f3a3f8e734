"""
Filter DSL -- compiles filter specifications into row predicates.

Responsibility:
    Turns a declarative filter mapping (``{"code1": "700"}``,
    ``{"code2": ["710", "720"]}``, ``{"code1": {"gte": 500, "lt": 600}}``)
    into a typed AST and evaluates it against movement rows.

Architecture position:
    Engine -- pure functions, zero I/O.  Consumed by the variable resolver,
    the renderer's category items and the report validator.

Invariants enforced:
    * Only whitelisted fields may be filtered on.
    * A compiled filter is a tree of ``Exact | AnyOf | Range | And`` nodes;
      no code is generated or evaluated dynamically.
    * AND across fields, OR across a field's list values, AND across the
      bounds of a range.
    * An empty specification matches every row.

Failure modes:
    * Invalid specification -> ``FilterValidationError`` listing every
      problem (``apply_filter``), or a failed ``Result``
      (``apply_filter_safe``).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from statement_kernel.domain.movements import Row, normalize_code, row_value
from statement_kernel.domain.result import Result
from statement_kernel.exceptions import FilterValidationError

VALID_FIELDS: tuple[str, ...] = (
    "code1",
    "code2",
    "code3",
    "name1",
    "name2",
    "name3",
    "statement_type",
    "account_code",
)

RANGE_OPERATORS: tuple[str, ...] = ("gte", "lte", "gt", "lt")


# =========================================================================
# AST
# =========================================================================


@dataclass(frozen=True)
class Exact:
    field: str
    value: str


@dataclass(frozen=True)
class AnyOf:
    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class Range:
    """Inclusive/exclusive bounds; unset bounds are None."""

    field: str
    gte: Any = None
    lte: Any = None
    gt: Any = None
    lt: Any = None


@dataclass(frozen=True)
class And:
    clauses: tuple[FilterNode, ...]


FilterNode = Union[Exact, AnyOf, Range, And]

MATCH_ALL = And(())


@dataclass(frozen=True)
class FilterValidation:
    is_valid: bool
    errors: tuple[str, ...] = ()


# =========================================================================
# Validation
# =========================================================================


def is_valid_field(field_name: str) -> bool:
    return field_name in VALID_FIELDS


def validate_filter(spec: Any) -> FilterValidation:
    """Check a filter specification; every problem is reported."""
    if not isinstance(spec, Mapping):
        return FilterValidation(False, ("Filter specification must be an object",))

    errors: list[str] = []
    for field_name, value in spec.items():
        if not is_valid_field(field_name):
            errors.append(
                f"Invalid filter field: {field_name}. "
                f"Valid fields are: {', '.join(VALID_FIELDS)}"
            )
            continue
        if value is None:
            errors.append(f"Filter value for {field_name} cannot be null")
        elif isinstance(value, (list, tuple)):
            if not value:
                errors.append(f"Filter array for {field_name} cannot be empty")
            elif any(v is None for v in value):
                errors.append(f"Filter array for {field_name} contains null values")
        elif isinstance(value, Mapping):
            errors.extend(_validate_range(field_name, value))

    return FilterValidation(not errors, tuple(errors))


def _validate_range(field_name: str, bounds: Mapping[str, Any]) -> list[str]:
    if not bounds:
        return [f"Range filter for {field_name} cannot be empty"]
    errors: list[str] = []
    unknown = [op for op in bounds if op not in RANGE_OPERATORS]
    if unknown:
        errors.append(
            f"Invalid range operators for {field_name}: {', '.join(map(str, unknown))}"
        )
    for op in RANGE_OPERATORS:
        if op in bounds and bounds[op] is None:
            errors.append(f"Range value for {field_name}.{op} cannot be null")
    return errors


# =========================================================================
# Compilation
# =========================================================================


def build_filter_expression(spec: Mapping[str, Any]) -> FilterNode:
    """
    Compile a filter specification to an AST.

    Raises:
        FilterValidationError: if the specification is invalid.
    """
    validation = validate_filter(spec)
    if not validation.is_valid:
        raise FilterValidationError(list(validation.errors))

    clauses: list[FilterNode] = []
    for field_name, value in spec.items():
        if isinstance(value, (list, tuple)):
            clauses.append(AnyOf(field_name, tuple(_as_text(v) for v in value)))
        elif isinstance(value, Mapping):
            clauses.append(Range(field_name, **{op: value[op] for op in value}))
        else:
            clauses.append(Exact(field_name, _as_text(value)))

    if len(clauses) == 1:
        return clauses[0]
    return And(tuple(clauses))


def evaluate_filter(node: FilterNode, row: Row) -> bool:
    """Evaluate a compiled filter against one row."""
    if isinstance(node, And):
        return all(evaluate_filter(clause, row) for clause in node.clauses)
    if isinstance(node, Exact):
        return _as_text(row_value(row, node.field)) == node.value
    if isinstance(node, AnyOf):
        return _as_text(row_value(row, node.field)) in node.values
    if isinstance(node, Range):
        return _in_range(row_value(row, node.field), node)
    raise TypeError(f"Unknown filter node: {node!r}")


def compile_predicate(spec: Mapping[str, Any]) -> Callable[[Row], bool]:
    node = build_filter_expression(spec)
    return lambda row: evaluate_filter(node, row)


def _as_text(value: Any) -> str | None:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, Decimal) and value == value.to_integral_value():
        value = int(value)
    return normalize_code(value)


def _as_number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return None


def _compare(left: Any, right: Any) -> int | None:
    """-1/0/1 comparing numerically when both sides are numeric."""
    if left is None:
        return None
    a, b = _as_number(left), _as_number(right)
    if a is None or b is None:
        a, b = _as_text(left), _as_text(right)
        if a is None:
            return None
    return (a > b) - (a < b)


def _in_range(value: Any, node: Range) -> bool:
    for bound, accepts in (
        (node.gte, lambda c: c >= 0),
        (node.lte, lambda c: c <= 0),
        (node.gt, lambda c: c > 0),
        (node.lt, lambda c: c < 0),
    ):
        if bound is None:
            continue
        cmp = _compare(value, bound)
        if cmp is None or not accepts(cmp):
            return False
    return True


# =========================================================================
# Table operations (curried)
# =========================================================================


def apply_filter(spec: Mapping[str, Any]) -> Callable[[Sequence[Row]], list[Row]]:
    """
    ``apply_filter(spec)(table)`` -> rows matching ``spec``, in input order.

    The specification is compiled once, when ``apply_filter`` is called.
    """
    if isinstance(spec, Mapping) and not spec:
        return lambda table: list(table)
    predicate = compile_predicate(spec)
    return lambda table: [row for row in table if predicate(row)]


def apply_filter_safe(
    spec: Mapping[str, Any],
) -> Callable[[Sequence[Row] | None], Result[list[Row]]]:
    """``apply_filter`` returning a ``Result`` instead of raising."""

    def run(table: Sequence[Row] | None) -> Result[list[Row]]:
        if table is None:
            return Result.fail("Table is required")
        validation = validate_filter(spec)
        if not validation.is_valid:
            return Result.fail(
                f"Invalid filter specification: {', '.join(validation.errors)}"
            )
        return Result.ok(apply_filter(spec)(table))

    return run


def filter_by_field(field_name: str) -> Callable[[Any], Callable[[Sequence[Row]], list[Row]]]:
    return lambda value: apply_filter({field_name: value})


def filter_exact_match(field_name: str, value: Any) -> Callable[[Sequence[Row]], list[Row]]:
    return apply_filter({field_name: value})


def filter_array_match(
    field_name: str, values: Sequence[Any],
) -> Callable[[Sequence[Row]], list[Row]]:
    return apply_filter({field_name: list(values)})


def filter_range_match(
    field_name: str, bounds: Mapping[str, Any],
) -> Callable[[Sequence[Row]], list[Row]]:
    return apply_filter({field_name: dict(bounds)})


def combine_filters(
    specs: Sequence[Mapping[str, Any]],
) -> Callable[[Sequence[Row]], list[Row]]:
    """Apply several specifications in sequence (logical AND)."""
    steps = [apply_filter(spec) for spec in specs]

    def run(table: Sequence[Row]) -> list[Row]:
        rows = list(table)
        for step in steps:
            rows = step(rows)
        return rows

    return run
