"""
Period options -- parsing of column selections and view windows.

A period option selects what one comparison column shows:

    "2024-all"   whole fiscal year
    "2024-6"     period 6 (cumulative: periods 1-6)
    "2024-Q2"    quarter 2, i.e. period 6 (Q1=3, Q2=6, Q3=9, Q4=12)
    "2024-ltm"   rolling twelve months ending at the latest loaded period
    "ltm"        same, year taken from the data

The view type decides whether a period selection is cumulative
(period <= P) or a single period (period == P).  Balance sheets are always
cumulative because they show a position at a point in time.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from statement_engine.models import ALL_PERIODS, ColumnDescriptor, StatementType
from statement_kernel.exceptions import InvalidPeriodOptionError

_OPTION_PATTERN = re.compile(r"^(\d{4})-(.+)$")
_QUARTER_PATTERN = re.compile(r"^[Qq]([1-4])$")

LTM_TOKEN = "ltm"


class ViewType(str, Enum):
    CUMULATIVE = "cumulative"
    PERIOD = "period"


class SelectionKind(str, Enum):
    YEAR = "year"
    PERIOD = "period"
    QUARTER = "quarter"
    LTM = "ltm"


@dataclass(frozen=True)
class PeriodSelection:
    """One parsed period option."""

    raw: str
    kind: SelectionKind
    year: int | None = None
    period: int = ALL_PERIODS
    quarter: int | None = None

    @property
    def is_ltm(self) -> bool:
        return self.kind is SelectionKind.LTM

    @property
    def is_all(self) -> bool:
        return self.kind is SelectionKind.YEAR

    @property
    def label(self) -> str:
        if self.is_ltm:
            return "LTM"
        if self.kind is SelectionKind.YEAR:
            return f"{self.year} (All)"
        if self.kind is SelectionKind.QUARTER:
            return f"{self.year} (Q{self.quarter})"
        return f"{self.year} (P{self.period})"

    def column(self, view_type: ViewType = ViewType.CUMULATIVE) -> ColumnDescriptor:
        """Amount column for this selection (not valid for LTM)."""
        if self.is_ltm or self.year is None:
            raise InvalidPeriodOptionError(self.raw, "LTM selections expand to monthly columns")
        if self.is_all:
            return ColumnDescriptor.for_year(self.year, label=str(self.year))
        start = self.period if view_type is ViewType.PERIOD else 1
        return ColumnDescriptor.for_year(
            self.year, period_end=self.period, period_start=start, label=self.label,
        )


def parse_period_option(value: Any) -> PeriodSelection:
    """
    Parse a period option string.

    Raises:
        InvalidPeriodOptionError: On anything but the forms listed in the
            module docstring, or an out-of-range period or quarter.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidPeriodOptionError(str(value), "period option must be a non-empty string")
    text = value.strip()
    if text.lower() == LTM_TOKEN:
        return PeriodSelection(raw=text, kind=SelectionKind.LTM)

    match = _OPTION_PATTERN.match(text)
    if match is None:
        raise InvalidPeriodOptionError(text, "expected '<year>-<period>'")
    year = int(match.group(1))
    part = match.group(2).strip()

    if part.lower() == "all":
        return PeriodSelection(raw=text, kind=SelectionKind.YEAR, year=year)
    if part.lower() == LTM_TOKEN:
        return PeriodSelection(raw=text, kind=SelectionKind.LTM, year=year)

    quarter = _QUARTER_PATTERN.match(part)
    if quarter is not None:
        q = int(quarter.group(1))
        return PeriodSelection(
            raw=text, kind=SelectionKind.QUARTER, year=year, period=q * 3, quarter=q,
        )

    if not part.isdigit():
        raise InvalidPeriodOptionError(text, f"unrecognized period '{part}'")
    period = int(part)
    if period == ALL_PERIODS:
        return PeriodSelection(raw=text, kind=SelectionKind.YEAR, year=year)
    if not 1 <= period <= 12:
        raise InvalidPeriodOptionError(text, "period must be between 1 and 12")
    return PeriodSelection(raw=text, kind=SelectionKind.PERIOD, year=year, period=period)


def format_period_option(year: int, period: int | str = "all") -> str:
    if isinstance(period, int) and period != ALL_PERIODS:
        return f"{year}-{period}"
    if isinstance(period, str) and period.upper().startswith("Q"):
        return f"{year}-{period.upper()}"
    return f"{year}-all"


def effective_view_type(
    statement_type: StatementType | str, view_type: ViewType | str | None = None,
) -> ViewType:
    """Balance sheets are always cumulative."""
    if StatementType.parse(statement_type) is StatementType.BALANCE_SHEET:
        return ViewType.CUMULATIVE
    return parse_view_type(view_type)


def parse_view_type(view_type: ViewType | str | None) -> ViewType:
    if view_type is None:
        return ViewType.CUMULATIVE
    try:
        return ViewType(view_type)
    except ValueError as e:
        raise InvalidPeriodOptionError(str(view_type), "view type must be cumulative or period") from e


@dataclass(frozen=True)
class PeriodOptions:
    """The column selections of one statement request."""

    selections: tuple[PeriodSelection, ...]
    view_type: ViewType = ViewType.CUMULATIVE

    @property
    def is_ltm(self) -> bool:
        return any(s.is_ltm for s in self.selections)

    @property
    def years(self) -> list[int]:
        return [s.year for s in self.selections if s.year is not None]

    def columns(self, statement_type: StatementType | str | None = None) -> tuple[ColumnDescriptor, ...]:
        """One column per non-LTM selection; repeated keys are suffixed."""
        view = (
            effective_view_type(statement_type, self.view_type)
            if statement_type is not None else self.view_type
        )
        columns: list[ColumnDescriptor] = []
        seen: set[str] = set()
        for selection in self.selections:
            column = selection.column(view)
            if column.key in seen:
                column = ColumnDescriptor(
                    key=f"{column.key}_{len(columns) + 1}",
                    label=column.label,
                    year=column.year,
                    period_start=column.period_start,
                    period_end=column.period_end,
                )
            seen.add(column.key)
            columns.append(column)
        return tuple(columns)

    def to_dict(self) -> dict[str, Any]:
        return {
            "periods": [s.raw for s in self.selections],
            "view_type": self.view_type.value,
        }

    @classmethod
    def default_for_years(cls, years: Sequence[int]) -> PeriodOptions:
        """Whole-year comparison of the last two years (or the only one)."""
        chosen = sorted(set(years))[-2:]
        return cls(tuple(parse_period_option(f"{y}-all") for y in chosen))

    @classmethod
    def from_value(
        cls,
        value: PeriodOptions | str | Sequence[str] | Mapping[str, Any] | None,
        years: Sequence[int] = (),
    ) -> PeriodOptions:
        """
        Accept ``PeriodOptions``, a single option string, a list of option
        strings, ``{"periods": [...], "view_type": ...}``, or
        ``{"period2024": "2024-all", "period2025": "2025-6"}``.
        ``None`` compares the last two loaded years in full.
        """
        if isinstance(value, PeriodOptions):
            return value
        if value is None:
            return cls.default_for_years(years)
        if isinstance(value, str):
            return cls((parse_period_option(value),))
        if isinstance(value, Mapping):
            view_type = parse_view_type(value.get("view_type"))
            if "periods" in value:
                raw = value["periods"]
            else:
                raw = [v for k, v in sorted(value.items()) if str(k).startswith("period")]
            if not raw:
                return cls(cls.default_for_years(years).selections, view_type)
            return cls(tuple(parse_period_option(v) for v in raw), view_type)
        return cls(tuple(parse_period_option(v) for v in value))
