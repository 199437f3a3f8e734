"""
Statement metrics and injected special rows.

Responsibility:
    Computes the per-column statement metrics (gross profit, operating
    result, net income, starting/ending cash, balance check) and injects
    the corresponding computed rows into a hierarchy row list by anchor
    matching -- never by fixed index.

Architecture position:
    Engine -- pure functions over frozen ``GridRow`` lists and category
    totals.  Called by the generator after ``build_tree``.

Invariants enforced:
    * Metrics are keyed ``metric -> column key -> Decimal``.
    * Balance sheet: Total Assets equals the sum of non-liability/equity
      category totals; Total Liabilities & Equity equals the sum of
      liability/equity totals plus the year's net result.
    * Cash flow (indirect method): net change = net income + change in
      liabilities/equity - change in non-cash assets, and
      ending cash = starting cash + net change.

Failure modes:
    * Missing anchors are not errors: the row is simply not inserted.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from statement_config.schema import EngineConfig
from statement_engine.categories import CategoryMatcher, parse_code
from statement_engine.models import (
    BalanceCheck,
    ColumnDescriptor,
    FormatType,
    GridRow,
    LayoutType,
    RowStyle,
    StatementType,
)
from statement_engine.signs import classification_predicate
from statement_kernel.domain.movements import ZERO, Row, row_value, to_decimal

Metrics = dict[str, dict[str, Decimal]]

TOTAL_ASSETS = "Total Assets"
NET_RESULT = "Net Result for the Year"
TOTAL_LIABILITIES_EQUITY = "Total Liabilities & Equity"
GROSS_MARGIN = "Gross Margin"
OPERATING_RESULT = "Operating Result"
RESULT_BEFORE_TAX = "Result Before Tax"
NET_INCOME = "Net Income"
STARTING_CASH = "Starting Cash"
CHANGE_IN_CASH = "Change in Cash"
ENDING_CASH = "Ending Cash"


# =========================================================================
# Row factories
# =========================================================================


def metric_row(
    label: str,
    amounts: Mapping[str, Decimal | None],
    style: RowStyle = RowStyle.METRIC,
    level: int = 0,
    key: str | None = None,
) -> GridRow:
    return GridRow(
        label=label,
        type=LayoutType.CALCULATED.value,
        style=style.value,
        indent=level,
        level=level,
        format=FormatType.CURRENCY.value,
        amounts=dict(amounts),
        hierarchy=(label,),
        always_visible=True,
        metadata={"special_row": key or label},
    )


def spacer_row(key: str, column_keys: Sequence[str]) -> GridRow:
    return GridRow(
        label="",
        type=LayoutType.SPACER.value,
        style=RowStyle.SPACER.value,
        amounts={k: None for k in column_keys},
        hierarchy=(key,),
        metadata={"special_row": key},
    )


def _sum_by_key(
    rows: Sequence[Mapping[str, Any]], column_keys: Sequence[str],
) -> dict[str, Decimal]:
    return {k: sum((r.get(k) or ZERO for r in rows), ZERO) for k in column_keys}


# =========================================================================
# Metrics
# =========================================================================


def _statement_rows(table: Sequence[Row], statement_type: StatementType) -> list[Row]:
    return [r for r in table if row_value(r, "statement_type") == statement_type.value]


def compute_net_income(
    table: Sequence[Row], columns: Sequence[ColumnDescriptor],
) -> dict[str, Decimal]:
    """Income-statement result per column (profit positive)."""
    income_rows = _statement_rows(table, StatementType.INCOME_STATEMENT)
    out: dict[str, Decimal] = {}
    for column in columns:
        out[column.key] = -sum(
            (
                to_decimal(row_value(r, "movement_amount"))
                for r in income_rows
                if column.covers(row_value(r, "year"), row_value(r, "period"))
            ),
            ZERO,
        )
    return out


def compute_income_metrics(
    category_totals: Sequence[Mapping[str, Any]],
    column_keys: Sequence[str],
    matcher: CategoryMatcher | None = None,
) -> Metrics:
    """
    Income-statement metrics from category totals already multiplied by
    -1 (revenue positive, costs negative).
    """
    matcher = matcher or CategoryMatcher()
    buckets: dict[str, list[Mapping[str, Any]]] = {
        "revenue": [], "cogs": [], "operating_expense": [], "tax": [],
    }
    for total in category_totals:
        name = total.get("name1")
        if matcher.is_tax(name):
            buckets["tax"].append(total)
        elif matcher.is_cogs(name):
            buckets["cogs"].append(total)
        elif matcher.is_revenue(name):
            buckets["revenue"].append(total)
        elif matcher.is_operating_expense(name) or matcher.is_depreciation(name):
            buckets["operating_expense"].append(total)

    revenue = _sum_by_key(buckets["revenue"], column_keys)
    cogs = _sum_by_key(buckets["cogs"], column_keys)
    opex = _sum_by_key(buckets["operating_expense"], column_keys)
    tax = _sum_by_key(buckets["tax"], column_keys)
    net_income = _sum_by_key(category_totals, column_keys)

    gross_profit = {k: revenue[k] + cogs[k] for k in column_keys}
    operating_result = {k: gross_profit[k] + opex[k] for k in column_keys}
    result_before_tax = {k: net_income[k] - tax[k] for k in column_keys}

    return {
        "revenue": revenue,
        "cogs": cogs,
        "gross_profit": gross_profit,
        "operating_expenses": opex,
        "operating_result": operating_result,
        "result_before_tax": result_before_tax,
        "tax": tax,
        "net_income": net_income,
    }


def _window_sum(rows: Sequence[Row], column: ColumnDescriptor, sign: int = 1) -> Decimal:
    return sign * sum(
        (
            to_decimal(row_value(r, "movement_amount"))
            for r in rows
            if column.covers(row_value(r, "year"), row_value(r, "period"))
        ),
        ZERO,
    )


def _balance_before(rows: Sequence[Row], year: int, period: int) -> Decimal:
    """Running total of all movements strictly before (year, period)."""
    total = ZERO
    for r in rows:
        r_year = int(row_value(r, "year"))
        r_period = row_value(r, "period")
        if r_year < year or (
            r_year == year and isinstance(r_period, int) and r_period < period
        ):
            total += to_decimal(row_value(r, "movement_amount"))
    return total


def compute_cash_metrics(
    table: Sequence[Row],
    columns: Sequence[ColumnDescriptor],
    config: EngineConfig | None = None,
    net_income: Mapping[str, Decimal] | None = None,
) -> Metrics:
    """
    Starting cash, net change and ending cash per column (indirect method).

    Balance-sheet movements are treated as changes; a balance at a point in
    time is the running total of all loaded movements up to it.
    ``reconciliation_difference`` is the indirect ending cash minus the
    actual cash balance and is 0 for a balanced ledger.
    """
    config = config or EngineConfig()
    matcher = CategoryMatcher(config.classification)
    is_le = classification_predicate(config)
    if net_income is None:
        net_income = compute_net_income(table, columns)

    bs_rows = _statement_rows(table, StatementType.BALANCE_SHEET)
    cash_rows, le_rows, asset_rows = [], [], []
    for r in bs_rows:
        fields = {"name0": row_value(r, "name0"), "name1": row_value(r, "name1"),
                  "code1": row_value(r, "code1")}
        if is_le(fields):
            le_rows.append(r)
        elif matcher.is_cash(row_value(r, "name1")) or matcher.is_cash(row_value(r, "name2")):
            cash_rows.append(r)
        else:
            asset_rows.append(r)

    metrics: Metrics = {
        "net_income": {}, "starting_cash": {}, "net_change": {},
        "ending_cash": {}, "reconciliation_difference": {},
    }
    for column in columns:
        if column.year is None:
            continue
        key = column.key
        change_le = _window_sum(le_rows, column, sign=-1)
        change_assets = _window_sum(asset_rows, column)
        net_change = net_income.get(key, ZERO) + change_le - change_assets
        starting = _balance_before(cash_rows, column.year, column.period_start)
        ending = starting + net_change
        actual_ending = starting + _window_sum(cash_rows, column)

        metrics["net_income"][key] = net_income.get(key, ZERO)
        metrics["starting_cash"][key] = starting
        metrics["net_change"][key] = net_change
        metrics["ending_cash"][key] = ending
        metrics["reconciliation_difference"][key] = ending - actual_ending
    return metrics


def cash_change_reconciles(metrics: Metrics, tolerance: Decimal = Decimal("0.01")) -> bool:
    return all(
        abs(diff) <= tolerance
        for diff in metrics.get("reconciliation_difference", {}).values()
    )


def validate_balance(
    category_totals: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDescriptor],
    config: EngineConfig | None = None,
    net_income: Mapping[str, Decimal] | None = None,
) -> BalanceCheck:
    """
    Assets versus liabilities + equity (+ net result) per column.

    ``category_totals`` must already carry presentation signs
    (liabilities/equity positive).
    """
    config = config or EngineConfig()
    is_le = classification_predicate(config)
    keys = [c.key for c in columns]
    assets = _sum_by_key([t for t in category_totals if not is_le(t)], keys)
    le = _sum_by_key([t for t in category_totals if is_le(t)], keys)
    imbalances = {
        k: assets[k] - (le[k] + (net_income or {}).get(k, ZERO)) for k in keys
    }
    imbalance = max((abs(v) for v in imbalances.values()), default=ZERO)
    return BalanceCheck(
        balanced=imbalance <= config.balance_tolerance,
        imbalance=imbalance,
        imbalances=imbalances,
    )


# =========================================================================
# Insertion
# =========================================================================


def _find_code1(rows: Sequence[GridRow], code1: str) -> int:
    for i, row in enumerate(rows):
        if str(row.codes.get("code1") or "") == str(code1):
            return i
    return -1


def insert_balance_sheet_rows(
    rows: Sequence[GridRow],
    category_totals: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDescriptor],
    config: EngineConfig | None = None,
    net_income: Mapping[str, Decimal] | None = None,
) -> list[GridRow]:
    config = config or EngineConfig()
    anchors = config.special_rows
    is_le = classification_predicate(config)
    keys = [c.key for c in columns]

    result: list[GridRow] = []
    for row in rows:
        if row.level == 0 and (
            row.codes.get("name0") in anchors.section_header_labels
            or row.label in anchors.section_header_labels
        ):
            row = dataclasses.replace(
                row,
                amounts={k: None for k in keys},
                metadata={**row.metadata, "section_header": True},
            )
        result.append(row)

    total_assets = _sum_by_key([t for t in category_totals if not is_le(t)], keys)
    insert_at = next(
        (i for i, row in enumerate(result) if not row.is_spacer and is_le(row.codes)),
        -1,
    )
    if insert_at > 0:
        result[insert_at:insert_at] = [
            metric_row(TOTAL_ASSETS, total_assets, RowStyle.TOTAL),
            spacer_row("SPACER_TOTAL_ASSETS", keys),
        ]

    if net_income is not None:
        first_liability = next(
            (
                i for i, row in enumerate(result)
                if (code := parse_code(row.codes.get("code1"))) is not None
                and code >= anchors.first_liability_code1
            ),
            -1,
        )
        if first_liability >= 0:
            result.insert(
                first_liability,
                metric_row(NET_RESULT, net_income, RowStyle.NORMAL, level=2),
            )

    total_le = _sum_by_key([t for t in category_totals if is_le(t)], keys)
    if net_income is not None:
        total_le = {k: total_le[k] + net_income.get(k, ZERO) for k in keys}
    result.append(metric_row(TOTAL_LIABILITIES_EQUITY, total_le, RowStyle.TOTAL))
    return result


def insert_income_statement_rows(
    rows: Sequence[GridRow],
    metrics: Metrics,
    columns: Sequence[ColumnDescriptor],
    config: EngineConfig | None = None,
) -> list[GridRow]:
    config = config or EngineConfig()
    anchors = config.special_rows
    keys = [c.key for c in columns]
    result = list(rows)

    for label, metric, anchor in (
        (GROSS_MARGIN, "gross_profit", anchors.gross_margin_before_code1),
        (OPERATING_RESULT, "operating_result", anchors.operating_result_before_code1),
        (RESULT_BEFORE_TAX, "result_before_tax", anchors.result_before_tax_before_code1),
    ):
        index = _find_code1(result, anchor)
        if index >= 0 and metric in metrics:
            result[index:index] = [
                metric_row(label, metrics[metric]),
                spacer_row(f"SPACER_{metric.upper()}", keys),
            ]

    if "net_income" in metrics:
        result.append(metric_row(NET_INCOME, metrics["net_income"], RowStyle.TOTAL))
    return result


def insert_cash_flow_rows(
    rows: Sequence[GridRow],
    metrics: Metrics,
    columns: Sequence[ColumnDescriptor],
) -> list[GridRow]:
    keys = [c.key for c in columns]
    result = list(rows)
    result.append(spacer_row("SPACER_CASH_SUMMARY", keys))
    for label, metric, style in (
        (STARTING_CASH, "starting_cash", RowStyle.METRIC),
        (CHANGE_IN_CASH, "net_change", RowStyle.METRIC),
        (ENDING_CASH, "ending_cash", RowStyle.TOTAL),
    ):
        if metric in metrics:
            result.append(metric_row(label, metrics[metric], style))
    return result
