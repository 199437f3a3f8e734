"""
Report Renderer (``statement_engine.renderer``).

Responsibility
--------------
Evaluates a declarative report definition against a movements table:
resolves the report's variables, processes each layout item in ``order``
to produce one ``GridRow`` per item, then applies variance and number
formatting.

Architecture position
---------------------
**Engine layer** -- orchestration over the pure evaluators (filters,
variables, expressions, variance, formatting).  No I/O; ``generated_at``
comes from the injected ``Clock``.

Invariants enforced
-------------------
* The definition is validated before any row is produced.
* Rows come out in ascending ``order``, one per layout item.
* Calculated rows see every earlier row through ``@order`` references.
* Subtotals skip spacer and subtotal rows, so nothing is counted twice.
* Spacer rows carry ``None`` for every amount column.

Failure modes
-------------
* Invalid definition                    -> ``ReportDefinitionError``
* Variable fails to resolve             -> ``VariableResolutionError``
* Layout item references unknown name   -> ``VariableNotFoundError``
* Expression fails (other than /0)      -> ``ExpressionEvaluationError``
* Missing movements table               -> ``MissingDataError``
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from statement_config.loader import parse_report_definition
from statement_config.schema import EngineConfig
from statement_config.validator import validate_report_definition
from statement_engine.expressions import evaluate_per_column
from statement_engine.filters import apply_filter
from statement_engine.formatting import apply_formatting
from statement_engine.ltm import calculate_ltm_info
from statement_engine.models import (
    ColumnDescriptor,
    GridRow,
    LayoutItem,
    LayoutType,
    RenderedStatement,
    ReportDefinition,
)
from statement_engine.periods import PeriodOptions
from statement_engine.rollup import build_ltm_columns
from statement_engine.variables import resolve_variables
from statement_engine.variance import apply_variance
from statement_kernel.domain.clock import Clock, SystemClock
from statement_kernel.domain.movements import (
    ZERO,
    MovementRecord,
    Row,
    normalize_table,
    row_value,
    to_decimal,
    unique_years,
)
from statement_kernel.exceptions import (
    ExpressionEvaluationError,
    MissingDataError,
    ReportDefinitionError,
    VariableNotFoundError,
    VariableResolutionError,
)
from statement_kernel.logging_config import LogContext, get_logger

logger = get_logger("engine.renderer")

Amounts = dict[str, Decimal | None]


def coerce_definition(definition: ReportDefinition | Mapping[str, Any]) -> ReportDefinition:
    """
    Validate and build a ``ReportDefinition``.

    Raises:
        ReportDefinitionError: listing every validation error.
    """
    if isinstance(definition, ReportDefinition):
        result = validate_report_definition(definition)
        if not result.is_valid:
            raise ReportDefinitionError(definition.report_id, result.errors)
        return definition
    return parse_report_definition(definition)


def resolve_column_variables(
    definition: ReportDefinition,
    records: Sequence[Row],
    columns: Sequence[ColumnDescriptor],
) -> dict[str, Amounts]:
    """
    Resolve every variable once per column over the movements that column
    covers.  A window spanning several years is aggregated as one pool of
    rows.

    Raises:
        VariableResolutionError: naming the failing variable.
    """
    records = normalize_table(records)
    out: dict[str, Amounts] = {name: {} for name in definition.variables}
    for column in columns:
        window = [r for r in records if column.covers(r.year, r.period)]
        pooled = len(unique_years(window)) > 1
        result = resolve_variables(definition.variables, window, pooled=pooled)
        if not result:
            raise VariableResolutionError(definition.report_id, result.error)
        for name, by_year in result.value.items():
            out[name][column.key] = sum(by_year.values(), ZERO)
    return out


def _sum_covered(rows: Sequence[MovementRecord], column: ColumnDescriptor) -> Decimal:
    return sum(
        (
            to_decimal(row_value(r, "movement_amount"))
            for r in rows
            if column.covers(r.year, r.period)
        ),
        ZERO,
    )


class ReportRenderer:
    """
    Renders report definitions into display rows.

    Usage:
        renderer = ReportRenderer(clock=DeterministicClock())
        statement = renderer.render_statement(definition, movements, ["2024-all", "2025-all"])
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    def render_statement(
        self,
        definition: ReportDefinition | Mapping[str, Any],
        table: Sequence[Any] | None,
        period_options: Any = None,
        columns: Sequence[ColumnDescriptor] | None = None,
    ) -> RenderedStatement:
        """
        Render a report definition.

        Args:
            definition: ``ReportDefinition`` or its mapping form.
            table: Movement records or mappings.
            period_options: Anything ``PeriodOptions.from_value`` accepts;
                ignored when ``columns`` is given.
            columns: Explicit output columns.
        """
        report = coerce_definition(definition)
        if table is None:
            raise MissingDataError("movements data", "render_statement")
        records = normalize_table(table)

        with LogContext.bind(report_id=report.report_id, statement_type=report.statement_type):
            if columns is None:
                options = PeriodOptions.from_value(period_options, unique_years(records))
                columns = self._columns_for(options, report, records)
                options_meta: Any = options.to_dict()
                ltm_mode = options.is_ltm
            else:
                options_meta = period_options
                ltm_mode = False
            columns = tuple(columns)

            logger.info(
                "report_render_started",
                extra={
                    "layout_items": len(report.layout),
                    "variables": len(report.variables),
                    "columns": [c.key for c in columns],
                },
            )

            variables = resolve_column_variables(report, records, columns)
            rows = self.process_layout_items(report, records, columns, variables)

            if not ltm_mode and len(columns) >= 2:
                rows = apply_variance(rows, columns[0].key, columns[-1].key)
            rows = apply_formatting(rows, columns, report.formatting, self._config.formatting)

            logger.info("report_render_completed", extra={"rows": len(rows)})

        return RenderedStatement(
            report_id=report.report_id,
            report_name=report.name,
            report_version=report.version,
            statement_type=report.statement_type,
            generated_at=self._clock.now_iso(),
            columns=columns,
            rows=tuple(rows),
            metadata={
                "period_options": options_meta,
                "variable_count": len(report.variables),
                "layout_item_count": len(report.layout),
            },
        )

    def process_layout_items(
        self,
        report: ReportDefinition,
        records: Sequence[MovementRecord],
        columns: Sequence[ColumnDescriptor],
        variables: Mapping[str, Amounts],
    ) -> list[GridRow]:
        """One row per layout item, in ascending ``order``."""
        rows: list[GridRow] = []
        by_order: dict[int, Amounts] = {}
        for item in sorted(report.layout, key=lambda i: i.order):
            amounts, metadata = self._process_item(
                item, report, records, columns, variables, by_order, rows,
            )
            row = GridRow(
                label=item.label,
                type=item.type.value,
                style=item.style.value,
                order=item.order,
                indent=item.indent,
                level=item.indent,
                format=item.format,
                amounts=amounts,
                metadata=metadata,
            )
            by_order[item.order] = amounts
            rows.append(row)
        return rows

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _columns_for(
        self,
        options: PeriodOptions,
        report: ReportDefinition,
        records: Sequence[MovementRecord],
    ) -> tuple[ColumnDescriptor, ...]:
        if options.is_ltm:
            info = calculate_ltm_info(records, unique_years(records), self._config.ltm_months)
            return build_ltm_columns(info.ranges, report.statement_type)
        return options.columns(report.statement_type)

    def _process_item(
        self,
        item: LayoutItem,
        report: ReportDefinition,
        records: Sequence[MovementRecord],
        columns: Sequence[ColumnDescriptor],
        variables: Mapping[str, Amounts],
        by_order: Mapping[int, Amounts],
        rows: Sequence[GridRow],
    ) -> tuple[Amounts, dict[str, Any]]:
        keys = [c.key for c in columns]

        if item.type is LayoutType.VARIABLE:
            if item.variable not in variables:
                raise VariableNotFoundError(item.variable, report.report_id)
            values = variables[item.variable]
            return {k: values.get(k) or ZERO for k in keys}, {"variable": item.variable}

        if item.type is LayoutType.CALCULATED:
            result = evaluate_per_column(item.expression, columns, variables, by_order)
            if not result:
                raise ExpressionEvaluationError(item.expression, result.error, item.order)
            return result.value, {"expression": item.expression}

        if item.type is LayoutType.CATEGORY:
            matched = apply_filter(item.filter)(records)
            return (
                {c.key: _sum_covered(matched, c) for c in columns},
                {"filter": dict(item.filter), "matched_rows": len(matched)},
            )

        if item.type is LayoutType.SUBTOTAL:
            included = self._subtotal_rows(item, rows)
            amounts = {
                k: sum((r.amounts.get(k) or ZERO for r in included), ZERO) for k in keys
            }
            return amounts, {"calculated_from": [r.order for r in included]}

        return {k: None for k in keys}, {}

    @staticmethod
    def _subtotal_rows(item: LayoutItem, rows: Sequence[GridRow]) -> list[GridRow]:
        """
        Rows summed by a subtotal.  An explicit ``from``/``to`` range is
        inclusive; otherwise the span runs back to the previous subtotal at
        the same indent or the enclosing lower-indent row (both exclusive).
        """
        def summable(row: GridRow) -> bool:
            return row.type not in (LayoutType.SPACER.value, LayoutType.SUBTOTAL.value)

        if item.from_order is not None and item.to_order is not None:
            return [
                r for r in rows
                if item.from_order <= r.order <= item.to_order and summable(r)
            ]

        span: list[GridRow] = []
        for row in reversed(rows):
            if row.type == LayoutType.SUBTOTAL.value and row.indent == item.indent:
                break
            if row.indent < item.indent and not row.is_spacer:
                break
            if summable(row):
                span.append(row)
        span.reverse()
        return span


def render_statement(
    definition: ReportDefinition | Mapping[str, Any],
    table: Sequence[Any] | None,
    period_options: Any = None,
    clock: Clock | None = None,
) -> RenderedStatement:
    """Module-level shorthand for a one-off render."""
    return ReportRenderer(clock=clock).render_statement(definition, table, period_options)

