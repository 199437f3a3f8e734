"""
Variable resolver -- named (filter, aggregate) pairs to per-year values.

Responsibility:
    Resolves a report definition's variables against a movements table.
    Each variable yields ``{year: Decimal}`` for every fiscal year present
    in the *unfiltered* table; years with no matching rows get 0.

Architecture position:
    Engine -- pure functions over movement tables.  Used by the renderer
    and validated by ``statement_config.validator``.

Invariants enforced:
    * Aggregates: sum, average/avg, count, min, max, first, last
      (case-insensitive).  Null amounts count as 0.
    * first/last are chronological: matching rows are stably sorted by
      (year, period) before the first/last row is taken.
    * ``resolve_variables`` memoizes per call only; nothing is cached
      across calls.

Failure modes:
    * Resolver functions return ``Result.fail`` -- they never raise for bad
      definitions or data.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from functools import partial
from typing import Any

from statement_engine.filters import apply_filter, validate_filter
from statement_engine.models import VariableDefinition
from statement_kernel.domain.movements import (
    ZERO,
    Row,
    period_sort_key,
    row_value,
    to_decimal,
    unique_years,
)
from statement_kernel.domain.result import Result
from statement_kernel.exceptions import StatementEngineError

VALID_AGGREGATES: tuple[str, ...] = (
    "sum", "average", "avg", "count", "min", "max", "first", "last",
)

YearValues = dict[int, Decimal]


def is_valid_aggregate(aggregate: Any) -> bool:
    return isinstance(aggregate, str) and aggregate.lower() in VALID_AGGREGATES


def validate_variable(definition: Any) -> list[str]:
    """Errors for a variable definition (empty list when valid)."""
    if isinstance(definition, VariableDefinition):
        definition = definition.to_dict()
    if not isinstance(definition, Mapping):
        return ["Variable definition must be an object"]

    errors: list[str] = []
    if definition.get("filter") is None:
        errors.append("Variable must have a filter")
    else:
        errors.extend(validate_filter(definition["filter"]).errors)

    aggregate = definition.get("aggregate")
    if aggregate is None:
        errors.append("Variable must have an aggregate function")
    elif not is_valid_aggregate(aggregate):
        errors.append(
            f"Invalid aggregate function: {aggregate}. "
            f"Valid functions are: {', '.join(VALID_AGGREGATES)}"
        )
    return errors


def get_dependencies(definition: Any) -> list[str]:
    """Variables this definition depends on; always empty for now."""
    return []


# =========================================================================
# Aggregation
# =========================================================================


def _amounts(rows: Sequence[Row]) -> list[Decimal]:
    return [to_decimal(row_value(row, "movement_amount")) for row in rows]


def _aggregate_sum(rows: Sequence[Row]) -> Decimal:
    return sum(_amounts(rows), ZERO)


def _aggregate_average(rows: Sequence[Row]) -> Decimal:
    if not rows:
        return ZERO
    return _aggregate_sum(rows) / Decimal(len(rows))


def _aggregate_count(rows: Sequence[Row]) -> Decimal:
    return Decimal(len(rows))


def _aggregate_min(rows: Sequence[Row]) -> Decimal:
    return min(_amounts(rows)) if rows else ZERO


def _aggregate_max(rows: Sequence[Row]) -> Decimal:
    return max(_amounts(rows)) if rows else ZERO


def _aggregate_first(rows: Sequence[Row]) -> Decimal:
    if not rows:
        return ZERO
    return to_decimal(row_value(sorted(rows, key=period_sort_key)[0], "movement_amount"))


def _aggregate_last(rows: Sequence[Row]) -> Decimal:
    if not rows:
        return ZERO
    return to_decimal(row_value(sorted(rows, key=period_sort_key)[-1], "movement_amount"))


AGGREGATORS: dict[str, Callable[[Sequence[Row]], Decimal]] = {
    "sum": _aggregate_sum,
    "average": _aggregate_average,
    "avg": _aggregate_average,
    "count": _aggregate_count,
    "min": _aggregate_min,
    "max": _aggregate_max,
    "first": _aggregate_first,
    "last": _aggregate_last,
}


def aggregate_rows(aggregate: str, rows: Sequence[Row]) -> Decimal:
    return AGGREGATORS[aggregate.lower()](rows)


# =========================================================================
# Resolution
# =========================================================================


def _resolve(
    definition: Any, table: Sequence[Row] | None, pooled: bool = False,
) -> Result[YearValues]:
    if table is None:
        return Result.fail("Movements data is required")
    if isinstance(definition, VariableDefinition):
        definition = definition.to_dict()
    errors = validate_variable(definition)
    if errors:
        return Result.fail(f"Invalid variable definition: {', '.join(errors)}")

    aggregate = definition["aggregate"].lower()
    matched = apply_filter(definition["filter"])(table)
    if pooled:
        years = unique_years(table)
        return Result.ok({max(years): aggregate_rows(aggregate, matched)} if years else {})

    by_year: dict[int, list[Row]] = {}
    for row in matched:
        by_year.setdefault(int(row_value(row, "year")), []).append(row)

    return Result.ok({
        year: aggregate_rows(aggregate, by_year.get(year, []))
        for year in unique_years(table)
    })


def resolve_variable(
    definition: Any, pooled: bool = False,
) -> Callable[[Sequence[Row] | None], Result[YearValues]]:
    """
    ``resolve_variable(definition)(table)`` -> ``Result[{year: value}]``.

    With ``pooled`` the aggregate runs once over every matching row and is
    keyed by the latest year in the table.
    """
    return partial(_resolve, definition, pooled=pooled)


def resolve_with_aggregate(
    aggregate: str,
) -> Callable[[Mapping[str, Any]], Callable[[Sequence[Row] | None], Result[YearValues]]]:
    """``resolve_with_aggregate("sum")(filter)(table)``."""
    return lambda spec: resolve_variable({"filter": spec, "aggregate": aggregate})


resolve_sum = resolve_with_aggregate("sum")
resolve_average = resolve_with_aggregate("average")
resolve_count = resolve_with_aggregate("count")


def resolve_variables(
    definitions: Mapping[str, Any] | None,
    table: Sequence[Row] | None,
    period_options: Mapping[str, Any] | None = None,
    pooled: bool = False,
) -> Result[dict[str, YearValues]]:
    """
    Resolve every variable of a report.

    Fails as a whole, naming the variable, when any single variable fails.
    ``period_options`` is accepted so callers can pass the active period
    selection through; resolution is per fiscal year unless ``pooled``.
    """
    if definitions is None or not isinstance(definitions, Mapping):
        return Result.fail("Variables must be an object")
    if table is None:
        return Result.fail("Movements data is required")

    cache: dict[str, YearValues] = {}
    resolving: list[str] = []

    def resolve_one(name: str) -> Result[YearValues]:
        if name in cache:
            return Result.ok(cache[name])
        if name in resolving:
            chain = " -> ".join([*resolving, name])
            return Result.fail(f"Circular dependency detected: {chain}")
        if name not in definitions:
            return Result.fail(f"Variable not defined: {name}")

        resolving.append(name)
        try:
            for dependency in get_dependencies(definitions[name]):
                dep = resolve_one(dependency)
                if not dep:
                    return dep
            result = resolve_variable(definitions[name], pooled)(table)
        except (StatementEngineError, ValueError, TypeError) as e:
            result = Result.fail(str(e))
        finally:
            resolving.pop()
        if result:
            cache[name] = result.value
        return result

    resolved: dict[str, YearValues] = {}
    for name in definitions:
        result = resolve_one(name)
        if not result:
            return Result.fail(f"Failed to resolve variable '{name}': {result.error}")
        resolved[name] = result.value
    return Result.ok(resolved)
