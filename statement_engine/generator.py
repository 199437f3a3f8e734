"""
Statement Generator (``statement_engine.generator``).

Responsibility
--------------
Produces a complete financial statement from a movements table, either
from the account hierarchy (``generate``) or from a registered report
definition (``generate_from_definition``).

Architecture position
---------------------
**Engine layer** -- the outermost orchestration.  Wires period parsing,
rollup, sign handling, hierarchy building, metrics, special rows, variance
and formatting together.  Pure apart from logging; ``generated_at`` comes
from the injected ``Clock``.

Invariants enforced
-------------------
* Only movements of the requested statement type feed the grid.
* Balance sheets are always cumulative within each year.
* Income statements aggregate with sign -1; balance-sheet liability and
  equity rows are flipped after aggregation.
* LTM mode produces one column per window month (plus an LTM total for
  income statements) and skips variance and metrics.

Failure modes
-------------
* Unknown statement type          -> ``InvalidStatementTypeError``
* Malformed period option         -> ``InvalidPeriodOptionError``
* No movements table              -> ``MissingDataError``
* No rows of the statement type   -> ``EmptyDataError``
* Unknown / missing report        -> ``ReportNotFoundError``
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from statement_config.schema import EngineConfig
from statement_engine.categories import CategoryMatcher
from statement_engine.formatting import apply_formatting
from statement_engine.hierarchy import build_tree, mark_always_visible_rows
from statement_engine.ltm import calculate_ltm_info
from statement_engine.models import (
    BalanceCheck,
    ColumnDescriptor,
    GridRow,
    LTMInfo,
    ReportDefinition,
    StatementResult,
    StatementType,
)
from statement_engine.periods import PeriodOptions
from statement_engine.registry import ReportRegistry
from statement_engine.renderer import ReportRenderer
from statement_engine.rollup import (
    apply_category_totals,
    apply_rollup,
    build_category_totals_spec,
    build_ltm_category_totals_spec,
    build_ltm_columns,
    build_ltm_mode_spec,
    build_normal_mode_spec,
)
from statement_engine.signs import (
    classification_predicate,
    flip_sign_for_passiva,
    sign_multiplier_for,
)
from statement_engine.special_rows import (
    Metrics,
    compute_cash_metrics,
    compute_income_metrics,
    compute_net_income,
    insert_balance_sheet_rows,
    insert_cash_flow_rows,
    insert_income_statement_rows,
    validate_balance,
)
from statement_engine.variance import apply_variance, calculate_variance
from statement_kernel.domain.clock import Clock, SystemClock
from statement_kernel.domain.movements import (
    MovementRecord,
    normalize_table,
    unique_years,
)
from statement_kernel.exceptions import (
    EmptyDataError,
    MissingDataError,
    ReportNotFoundError,
)
from statement_kernel.logging_config import LogContext, get_logger

logger = get_logger("engine.generator")


def filter_statement_type(
    records: Sequence[MovementRecord], statement_type: StatementType,
) -> list[MovementRecord]:
    return [r for r in records if r.statement_type == statement_type.value]


class StatementGenerator:
    """
    Generates statements from movements.

    Usage:
        generator = StatementGenerator(registry=registry, clock=DeterministicClock())
        result = generator.generate(movements, "income", ["2024-all", "2025-all"])
        rendered = generator.generate_from_definition(movements, statement_type="income")
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        registry: ReportRegistry | None = None,
    ):
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()
        self._registry = registry if registry is not None else ReportRegistry()
        self._renderer = ReportRenderer(config=self._config, clock=self._clock)
        self._matcher = CategoryMatcher(self._config.classification)

    @property
    def registry(self) -> ReportRegistry:
        return self._registry

    # ---------------------------------------------------------------------
    # Hierarchy mode
    # ---------------------------------------------------------------------

    def generate(
        self,
        table: Sequence[Any] | None,
        statement_type: StatementType | str,
        period_options: Any = None,
        detail_level: int | None = None,
    ) -> StatementResult:
        """
        Generate a statement from the account hierarchy.

        Args:
            table: Movement records or mappings (all statement types).
            statement_type: BS/IS/CF or balance/income/cashflow.
            period_options: Anything ``PeriodOptions.from_value`` accepts.
            detail_level: 0-3 category levels, 5 accounts; defaults to
                the configured level.
        """
        st = StatementType.parse(statement_type)
        records = self._records(table)
        filtered = filter_statement_type(records, st)
        if not filtered:
            raise EmptyDataError("movements", st.value)

        options = PeriodOptions.from_value(period_options, unique_years(filtered))
        level = self._config.default_detail_level if detail_level is None else detail_level

        with LogContext.bind(
            statement_type=st.value,
            period_option=",".join(s.raw for s in options.selections),
        ):
            logger.info(
                "statement_generation_started",
                extra={"rows": len(filtered), "detail_level": level, "ltm": options.is_ltm},
            )

            ltm_info: LTMInfo | None = None
            multiplier = sign_multiplier_for(st)
            if options.is_ltm:
                ltm_info = calculate_ltm_info(
                    filtered, unique_years(records), self._config.ltm_months,
                )
                if not ltm_info.filtered_data:
                    raise EmptyDataError("LTM window movements", st.value)
                columns = build_ltm_columns(ltm_info.ranges, st)
                spec = build_ltm_mode_spec(ltm_info.ranges, multiplier, st)
                working: Sequence[MovementRecord] = ltm_info.filtered_data
            else:
                columns = options.columns(st)
                spec = build_normal_mode_spec(
                    columns[0].year, columns[-1].year, multiplier, columns=columns,
                )
                working = filtered

            keys = [c.key for c in columns]
            aggregated = apply_rollup(spec, working)
            if st is StatementType.BALANCE_SHEET:
                aggregated = flip_sign_for_passiva(
                    aggregated, keys, classification_predicate(self._config),
                )

            rows = mark_always_visible_rows(build_tree(aggregated, columns, level))

            if ltm_info is not None:
                totals_spec = build_ltm_category_totals_spec(ltm_info.ranges, st)
            else:
                totals_spec = build_category_totals_spec(columns)
            category_totals = apply_category_totals(totals_spec, aggregated)

            metrics: Metrics = {}
            balance = None
            if ltm_info is None:
                rows, metrics, balance = self._special_rows(
                    st, rows, records, columns, category_totals,
                )
                if len(columns) >= 2:
                    rows = apply_variance(rows, keys[0], keys[-1])
                    aggregated = _with_variance(aggregated, keys[0], keys[-1])

            rows = apply_formatting(rows, columns, None, self._config.formatting)

            if balance is not None and not balance.balanced:
                logger.warning(
                    "balance_sheet_out_of_balance",
                    extra={"imbalance": str(balance.imbalance)},
                )
            logger.info(
                "statement_generation_completed",
                extra={"rows": len(rows), "columns": keys},
            )

        return StatementResult(
            statement_type=st,
            columns=tuple(columns),
            rows=tuple(rows),
            generated_at=self._clock.now_iso(),
            details=tuple(aggregated),
            category_totals=tuple(category_totals),
            metrics=metrics,
            balance=balance,
            ltm_info=ltm_info,
            ltm_labels=_ltm_labels(options, ltm_info),
        )

    def _special_rows(
        self,
        st: StatementType,
        rows: list[GridRow],
        records: Sequence[MovementRecord],
        columns: Sequence[ColumnDescriptor],
        category_totals: Sequence[dict[str, Any]],
    ) -> tuple[list[GridRow], Metrics, BalanceCheck | None]:
        keys = [c.key for c in columns]
        balance = None
        if st is StatementType.INCOME_STATEMENT:
            metrics = compute_income_metrics(category_totals, keys, self._matcher)
            rows = insert_income_statement_rows(rows, metrics, columns, self._config)
        elif st is StatementType.BALANCE_SHEET:
            net_income = compute_net_income(records, columns)
            balance = validate_balance(category_totals, columns, self._config, net_income)
            metrics = {"net_income": net_income}
            rows = insert_balance_sheet_rows(
                rows, category_totals, columns, self._config, net_income,
            )
        else:
            metrics = compute_cash_metrics(records, columns, self._config)
            rows = insert_cash_flow_rows(rows, metrics, columns)
        return rows, metrics, balance

    # ---------------------------------------------------------------------
    # Definition mode
    # ---------------------------------------------------------------------

    def generate_from_definition(
        self,
        table: Sequence[Any] | None,
        report_id: str | None = None,
        statement_type: str | None = None,
        period_options: Any = None,
    ) -> StatementResult:
        """
        Render a registered report definition.

        ``report_id`` wins; otherwise the default report registered for
        ``statement_type`` (balance/income/cashflow) is used.
        """
        report = self._lookup(report_id, statement_type)
        st = report.engine_statement_type
        records = self._records(table)
        filtered = filter_statement_type(records, st)
        if not filtered:
            raise EmptyDataError("movements", st.value)

        rendered = self._renderer.render_statement(report, filtered, period_options)
        logger.info(
            "statement_generated_from_definition",
            extra={"report_id": report.report_id, "rows": len(rendered.rows)},
        )
        return StatementResult(
            statement_type=st,
            columns=rendered.columns,
            rows=rendered.rows,
            generated_at=rendered.generated_at,
            report={
                "reportId": report.report_id,
                "name": report.name,
                "version": report.version,
                "statementType": report.statement_type,
                **rendered.metadata,
            },
        )

    def _lookup(self, report_id: str | None, statement_type: str | None) -> ReportDefinition:
        if report_id is not None:
            return self._registry.get_report(report_id)
        if statement_type is None:
            raise ReportNotFoundError("<none>")
        report = self._registry.get_default_report(statement_type)
        if report is None:
            raise ReportNotFoundError(f"default:{statement_type}")
        return report

    @staticmethod
    def _records(table: Sequence[Any] | None) -> list[MovementRecord]:
        if table is None:
            raise MissingDataError("movements data", "statement generation")
        return normalize_table(table)


def _with_variance(rows: Sequence[dict[str, Any]], baseline_key: str, current_key: str) -> list[dict[str, Any]]:
    out = []
    for row in rows:
        variance = calculate_variance(row.get(baseline_key), row.get(current_key))
        out.append({**row, "variance_amount": variance.amount, "variance_percent": variance.percent})
    return out


def _ltm_labels(options: PeriodOptions, info: LTMInfo | None) -> dict[str, str | None] | None:
    if info is None:
        return None
    return {
        f"column{i + 1}": info.label if selection.is_ltm else None
        for i, selection in enumerate(options.selections)
    }
