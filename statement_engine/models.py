"""
Statement Engine Domain Models (``statement_engine.models``).

Responsibility
--------------
Frozen dataclass value objects shared by the engine: report definitions
and their layout items, variable definitions, amount-column descriptors,
LTM ranges and diagnostics, and the output rows (``GridRow``) and results
handed to the grid/export layer.

Architecture position
---------------------
**Engine layer** -- pure data definitions with ZERO I/O.  No dependency on
logging, configuration files, or the clock.

Invariants enforced
-------------------
* Output models are ``frozen=True``; transformations use
  ``dataclasses.replace``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Amount columns are addressed by ``ColumnDescriptor.key``; no component
  assumes a fixed pair of years.

Failure modes
-------------
* ``ReportDefinition.from_dict`` on a non-mapping or missing required keys
  -> ``ReportDefinitionError``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from statement_kernel.domain.movements import MovementRecord
from statement_kernel.exceptions import (
    InvalidStatementTypeError,
    ReportDefinitionError,
)

ALL_PERIODS = 999


# =========================================================================
# Enums
# =========================================================================


class StatementType(str, Enum):
    """Statement type codes as they appear in ``statement_type``."""

    BALANCE_SHEET = "BS"
    INCOME_STATEMENT = "IS"
    CASH_FLOW = "CF"

    @classmethod
    def parse(cls, value: str | StatementType) -> StatementType:
        """Accept BS/IS/CF, balance/income/cashflow, or UI names."""
        if isinstance(value, StatementType):
            return value
        key = str(value).strip().lower() if value is not None else ""
        mapped = _STATEMENT_TYPE_ALIASES.get(key)
        if mapped is None:
            raise InvalidStatementTypeError(
                str(value), "income, balance, or cashflow",
            )
        return mapped


_STATEMENT_TYPE_ALIASES: dict[str, StatementType] = {
    "bs": StatementType.BALANCE_SHEET,
    "balance": StatementType.BALANCE_SHEET,
    "balance-sheet": StatementType.BALANCE_SHEET,
    "is": StatementType.INCOME_STATEMENT,
    "income": StatementType.INCOME_STATEMENT,
    "income-statement": StatementType.INCOME_STATEMENT,
    "cf": StatementType.CASH_FLOW,
    "cashflow": StatementType.CASH_FLOW,
    "cash-flow": StatementType.CASH_FLOW,
}

REPORT_STATEMENT_TYPES: tuple[str, ...] = ("balance", "income", "cashflow")


class LayoutType(str, Enum):
    """Kinds of layout item in a report definition."""

    VARIABLE = "variable"
    CALCULATED = "calculated"
    CATEGORY = "category"
    SUBTOTAL = "subtotal"
    SPACER = "spacer"


class RowStyle(str, Enum):
    """Display style of an output row."""

    NORMAL = "normal"
    METRIC = "metric"
    SUBTOTAL = "subtotal"
    TOTAL = "total"
    SPACER = "spacer"


class FormatType(str, Enum):
    """Number format applied to a row's amounts."""

    CURRENCY = "currency"
    PERCENT = "percent"
    INTEGER = "integer"
    DECIMAL = "decimal"


# =========================================================================
# Columns
# =========================================================================


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    One output amount column.

    A column covers either a year with an inclusive period window
    (``period_start``..``period_end``) or, when ``slots`` is set, an
    explicit list of (year, period) pairs (used by the LTM total).
    """

    key: str
    label: str
    year: int | None = None
    period_start: int = 1
    period_end: int = ALL_PERIODS
    slots: tuple[tuple[int, int], ...] = ()

    def covers(self, year: int | None, period: Any) -> bool:
        """True when a movement in (year, period) belongs to this column."""
        if year is None:
            return False
        if self.slots:
            return isinstance(period, int) and (int(year), period) in self.slots
        if self.year is None or int(year) != self.year:
            return False
        if self.period_start <= 1 and self.period_end >= ALL_PERIODS:
            return True
        if not isinstance(period, int):
            return False
        return self.period_start <= period <= self.period_end

    @classmethod
    def for_year(
        cls,
        year: int,
        period_end: int = ALL_PERIODS,
        period_start: int = 1,
        label: str | None = None,
    ) -> ColumnDescriptor:
        return cls(
            key=f"amount_{year}",
            label=label or str(year),
            year=year,
            period_start=period_start,
            period_end=period_end,
        )


# =========================================================================
# Report definitions
# =========================================================================


@dataclass(frozen=True)
class VariableDefinition:
    """A named (filter, aggregate) pair resolved per fiscal year."""

    filter: Mapping[str, Any]
    aggregate: str
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VariableDefinition:
        return cls(
            filter=data.get("filter"),
            aggregate=data.get("aggregate"),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"filter": self.filter, "aggregate": self.aggregate}
        if self.description is not None:
            out["description"] = self.description
        return out


@dataclass(frozen=True)
class LayoutItem:
    """One row description inside a report definition."""

    order: int
    type: LayoutType
    label: str = ""
    indent: int = 0
    style: RowStyle = RowStyle.NORMAL
    format: str | Mapping[str, Any] = "decimal"
    variable: str | None = None
    expression: str | None = None
    filter: Mapping[str, Any] | None = None
    from_order: int | None = None
    to_order: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LayoutItem:
        return cls(
            order=data["order"],
            type=LayoutType(data["type"]),
            label=data.get("label") or "",
            indent=data.get("indent") or 0,
            style=RowStyle(data.get("style") or "normal"),
            format=data.get("format") or "decimal",
            variable=data.get("variable"),
            expression=data.get("expression"),
            filter=data.get("filter"),
            from_order=data.get("from"),
            to_order=data.get("to"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "order": self.order,
            "type": self.type.value,
            "label": self.label,
            "indent": self.indent,
            "style": self.style.value,
            "format": self.format,
        }
        for key, value in (
            ("variable", self.variable),
            ("expression", self.expression),
            ("filter", self.filter),
            ("from", self.from_order),
            ("to", self.to_order),
        ):
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class ReportDefinition:
    """Declarative statement definition: variables plus ordered layout."""

    report_id: str
    name: str
    version: str
    statement_type: str
    variables: Mapping[str, VariableDefinition] = field(default_factory=dict)
    layout: tuple[LayoutItem, ...] = ()
    description: str | None = None
    formatting: Mapping[str, Any] = field(default_factory=dict)

    @property
    def engine_statement_type(self) -> StatementType:
        return StatementType.parse(self.statement_type)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReportDefinition:
        """
        Build a definition from its JSON/YAML form (camelCase keys).

        Structural validation with all messages lives in
        ``statement_config.validator``; this only rejects what cannot be
        represented at all.
        """
        if not isinstance(data, Mapping):
            raise ReportDefinitionError("unknown", ["Report definition must be an object"])
        report_id = data.get("reportId") or data.get("report_id") or "unknown"
        missing = [
            key for key in ("reportId", "name", "version", "statementType")
            if key not in data and _snake(key) not in data
        ]
        if missing:
            raise ReportDefinitionError(
                report_id, [f"Missing required field: {key}" for key in missing],
            )
        layout = data.get("layout")
        if not isinstance(layout, list):
            raise ReportDefinitionError(
                report_id, ["Report definition must have a layout array"],
            )
        try:
            items = tuple(LayoutItem.from_dict(item) for item in layout)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ReportDefinitionError(report_id, [f"Invalid layout item: {e}"]) from e
        variables = data.get("variables") or {}
        if not isinstance(variables, Mapping):
            raise ReportDefinitionError(report_id, ["Variables must be an object"])
        return cls(
            report_id=str(report_id),
            name=str(data.get("name")),
            version=str(data.get("version")),
            statement_type=str(data.get("statementType") or data.get("statement_type")),
            variables={
                name: VariableDefinition.from_dict(defn)
                if isinstance(defn, Mapping) else defn
                for name, defn in variables.items()
            },
            layout=items,
            description=data.get("description"),
            formatting=dict(data.get("formatting") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "reportId": self.report_id,
            "name": self.name,
            "version": self.version,
            "statementType": self.statement_type,
            "variables": {
                name: defn.to_dict() if isinstance(defn, VariableDefinition) else defn
                for name, defn in self.variables.items()
            },
            "layout": [item.to_dict() for item in self.layout],
        }
        if self.description is not None:
            out["description"] = self.description
        if self.formatting:
            out["formatting"] = dict(self.formatting)
        return out


def _snake(key: str) -> str:
    return {"reportId": "report_id", "statementType": "statement_type"}.get(key, key)


# =========================================================================
# LTM
# =========================================================================


@dataclass(frozen=True)
class LTMRange:
    """A contiguous block of periods within one fiscal year."""

    year: int
    start_period: int
    end_period: int

    @property
    def months(self) -> int:
        return self.end_period - self.start_period + 1

    def slots(self) -> list[tuple[int, int]]:
        return [(self.year, p) for p in range(self.start_period, self.end_period + 1)]


@dataclass(frozen=True)
class LatestPeriod:
    year: int
    period: int


@dataclass(frozen=True)
class DataAvailability:
    """Completeness diagnostics for a rolling window."""

    complete: bool
    actual_months: int
    expected_months: int
    message: str
    missing_slots: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class LTMInfo:
    ranges: tuple[LTMRange, ...]
    latest: LatestPeriod
    label: str
    filtered_data: tuple[MovementRecord, ...]
    availability: DataAvailability


# =========================================================================
# Output rows and results
# =========================================================================


@dataclass(frozen=True)
class GridRow:
    """
    One display row of a generated statement.

    ``amounts`` is keyed by ``ColumnDescriptor.key``; spacer rows carry
    ``None`` for every column.
    """

    label: str
    type: str
    style: str = RowStyle.NORMAL.value
    order: int | None = None
    indent: int = 0
    level: int = 0
    format: str | Mapping[str, Any] = "decimal"
    amounts: Mapping[str, Decimal | None] = field(default_factory=dict)
    variance_amount: Decimal | None = None
    variance_percent: Decimal | None = None
    formatted: Mapping[str, str] = field(default_factory=dict)
    hierarchy: tuple[str, ...] = ()
    codes: Mapping[str, str | None] = field(default_factory=dict)
    is_group: bool = False
    always_visible: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def amount(self, key: str) -> Decimal | None:
        return self.amounts.get(key)

    @property
    def is_spacer(self) -> bool:
        return self.type == LayoutType.SPACER.value

    def to_dict(self) -> dict[str, Any]:
        """Flat row for the grid layer (one key per amount column)."""
        out: dict[str, Any] = {
            "order": self.order,
            "label": self.label,
            "type": self.type,
            "style": self.style,
            "indent": self.indent,
            "level": self.level,
        }
        out.update(self.amounts)
        out["variance_amount"] = self.variance_amount
        out["variance_percent"] = self.variance_percent
        for key, text in self.formatted.items():
            out[f"formatted_{key}"] = text
        if self.hierarchy:
            out["hierarchy"] = list(self.hierarchy)
        out.update(self.codes)
        out["_isGroup"] = self.is_group
        out["_alwaysVisible"] = self.always_visible
        out["_metadata"] = dict(self.metadata)
        return out


@dataclass(frozen=True)
class BalanceCheck:
    """Assets versus liabilities + equity, per column."""

    balanced: bool
    imbalance: Decimal
    imbalances: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedStatement:
    """Output of rendering a report definition."""

    report_id: str
    report_name: str
    report_version: str
    statement_type: str
    generated_at: str
    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[GridRow, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatementResult:
    """Output of generating a statement (hierarchy or definition mode)."""

    statement_type: StatementType
    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[GridRow, ...]
    generated_at: str
    details: tuple[Mapping[str, Any], ...] = ()
    category_totals: tuple[Mapping[str, Any], ...] = ()
    metrics: Mapping[str, Mapping[str, Decimal]] = field(default_factory=dict)
    balance: BalanceCheck | None = None
    ltm_info: LTMInfo | None = None
    ltm_labels: Mapping[str, str | None] | None = None
    report: Mapping[str, Any] | None = None

    @property
    def is_ltm_mode(self) -> bool:
        return self.ltm_info is not None

    @property
    def balanced(self) -> bool | None:
        return self.balance.balanced if self.balance is not None else None

    @property
    def imbalance(self) -> Decimal | None:
        return self.balance.imbalance if self.balance is not None else None


# =========================================================================
# RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any result dataclass to plain data for JSON serialization.

    Handles:
    - Decimal -> str (preserving precision)
    - date/datetime -> ISO format string
    - Enum -> .value
    - GridRow -> flat grid row
    - Nested frozen dataclasses -> nested dicts
    - Tuples -> lists
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, GridRow):
        return render_to_dict(obj.to_dict())
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, Mapping):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
