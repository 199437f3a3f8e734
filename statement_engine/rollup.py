"""
Rollup specifications -- grouped aggregation over movement tables.

Responsibility:
    Builds declarative aggregation specs for the two display modes and
    interprets them:

    * normal mode -- one sum per comparison column, grouped by the full
      account key;
    * LTM mode -- one sum per (year, period) slot of the rolling window
      (``month_1..month_N``), plus ``ltm_total`` for income statements;
    * category totals -- the account-level result rolled up by top-level
      category name (``name1``), with variance in normal mode only.

Architecture position:
    Engine -- pure.  Specs are frozen dataclasses; ``apply_rollup`` and
    ``apply_category_totals`` are the only interpreters.

Invariants enforced:
    * Every reducer multiplies ``movement_amount`` by the spec's sign
      multiplier before summing (-1 for income statements so revenue
      renders positive).  Balance-sheet liability/equity flips are NOT done
      here; see ``statement_engine.signs``.
    * Group order is first-appearance order in the input table.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from statement_engine.models import ColumnDescriptor, LTMRange, StatementType
from statement_engine.variance import calculate_variance
from statement_kernel.domain.movements import ZERO, Row, row_value, to_decimal

ACCOUNT_GROUP_KEYS: tuple[str, ...] = (
    "code0", "name0", "code1", "name1", "code2", "name2", "code3", "name3",
    "account_code", "account_description",
)

CATEGORY_GROUP_KEYS: tuple[str, ...] = ("name1",)

LTM_TOTAL_KEY = "ltm_total"


@dataclass(frozen=True)
class SumReducer:
    """Sum of ``movement_amount * multiplier`` over rows the column covers."""

    key: str
    column: ColumnDescriptor
    multiplier: int = 1


@dataclass(frozen=True)
class RollupSpec:
    group_by: tuple[str, ...]
    reducers: tuple[SumReducer, ...]

    @property
    def columns(self) -> tuple[ColumnDescriptor, ...]:
        return tuple(r.column for r in self.reducers)


@dataclass(frozen=True)
class CategoryTotalsSpec:
    group_by: tuple[str, ...]
    keys: tuple[str, ...]
    with_variance: bool = False
    baseline_key: str | None = None
    current_key: str | None = None


# =========================================================================
# Columns
# =========================================================================


def build_normal_columns(year1: int, year2: int) -> tuple[ColumnDescriptor, ...]:
    return (ColumnDescriptor.for_year(year1), ColumnDescriptor.for_year(year2))


def build_ltm_columns(
    ranges: Sequence[LTMRange], statement_type: str | None = None,
) -> tuple[ColumnDescriptor, ...]:
    """``month_1..month_N`` in range order, plus ``ltm_total`` for IS."""
    columns: list[ColumnDescriptor] = []
    slots: list[tuple[int, int]] = []
    for range_ in ranges:
        for year, period in range_.slots():
            columns.append(ColumnDescriptor(
                key=f"month_{len(columns) + 1}",
                label=f"{year} P{period}",
                year=year,
                period_start=period,
                period_end=period,
            ))
            slots.append((year, period))
    if _is_income(statement_type) and columns:
        columns.append(ColumnDescriptor(
            key=LTM_TOTAL_KEY, label="LTM Total", slots=tuple(slots),
        ))
    return tuple(columns)


def _is_income(statement_type: Any) -> bool:
    if statement_type is None:
        return False
    return StatementType.parse(statement_type) is StatementType.INCOME_STATEMENT


# =========================================================================
# Spec builders
# =========================================================================


def build_normal_mode_spec(
    year1: int,
    year2: int,
    sign_multiplier: int = 1,
    columns: Sequence[ColumnDescriptor] | None = None,
) -> RollupSpec:
    """
    Two per-year sum reducers grouped by the full account key.

    ``columns`` overrides the default whole-year columns, e.g. with
    cumulative-to-period windows.
    """
    cols = tuple(columns) if columns is not None else build_normal_columns(year1, year2)
    return RollupSpec(
        group_by=ACCOUNT_GROUP_KEYS,
        reducers=tuple(SumReducer(c.key, c, sign_multiplier) for c in cols),
    )


def build_ltm_mode_spec(
    ranges: Sequence[LTMRange],
    sign_multiplier: int = 1,
    statement_type: str | None = None,
) -> RollupSpec:
    columns = build_ltm_columns(ranges, statement_type)
    return RollupSpec(
        group_by=ACCOUNT_GROUP_KEYS,
        reducers=tuple(SumReducer(c.key, c, sign_multiplier) for c in columns),
    )


def build_category_totals_spec(columns: Sequence[ColumnDescriptor]) -> CategoryTotalsSpec:
    """Category totals with variance between the first and last column."""
    keys = tuple(c.key for c in columns)
    return CategoryTotalsSpec(
        group_by=CATEGORY_GROUP_KEYS,
        keys=keys,
        with_variance=len(keys) >= 2,
        baseline_key=keys[0] if keys else None,
        current_key=keys[-1] if keys else None,
    )


def build_ltm_category_totals_spec(
    ranges: Sequence[LTMRange], statement_type: str | None = None,
) -> CategoryTotalsSpec:
    keys = tuple(c.key for c in build_ltm_columns(ranges, statement_type))
    return CategoryTotalsSpec(group_by=CATEGORY_GROUP_KEYS, keys=keys)


# =========================================================================
# Interpreters
# =========================================================================


def apply_rollup(spec: RollupSpec, table: Sequence[Row]) -> list[dict[str, Any]]:
    """Group ``table`` by ``spec.group_by`` and evaluate every reducer."""
    groups: dict[tuple, dict[str, Any]] = {}
    for row in table:
        key = tuple(row_value(row, f) for f in spec.group_by)
        group = groups.get(key)
        if group is None:
            group = {f: row_value(row, f) for f in spec.group_by}
            group.update({r.key: ZERO for r in spec.reducers})
            groups[key] = group
        year = row_value(row, "year")
        period = row_value(row, "period")
        amount = to_decimal(row_value(row, "movement_amount"))
        for reducer in spec.reducers:
            if reducer.column.covers(year, period):
                group[reducer.key] += amount * reducer.multiplier
    return list(groups.values())


def apply_category_totals(
    spec: CategoryTotalsSpec, rows: Sequence[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """
    Roll account-level rows up by category.

    The first ``code1`` seen for a category is carried along for
    code-based classification and ordering.
    """
    totals: dict[tuple, dict[str, Any]] = {}
    for row in rows:
        key = tuple(row.get(f) for f in spec.group_by)
        total = totals.get(key)
        if total is None:
            total = {f: row.get(f) for f in spec.group_by}
            total["code1"] = row.get("code1")
            total.update({k: ZERO for k in spec.keys})
            totals[key] = total
        for k in spec.keys:
            total[k] += row.get(k) or ZERO

    out = list(totals.values())
    if spec.with_variance:
        for total in out:
            variance = calculate_variance(total[spec.baseline_key], total[spec.current_key])
            total["variance_amount"] = variance.amount
            total["variance_percent"] = variance.percent
    return out


def sum_column(rows: Sequence[Mapping[str, Any]], key: str) -> Decimal:
    return sum((row.get(key) or ZERO for row in rows), ZERO)
