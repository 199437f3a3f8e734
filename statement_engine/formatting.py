"""
Number formatting for display rows.

Format types: ``currency`` ("€ 100,000", 0 decimals), ``percent`` (value
is already a percentage, 1 decimal, "%" suffix, no grouping), ``integer``
and ``decimal`` (2 decimals with thousands grouping).  Options resolve in
order: engine defaults, then the report definition's ``formatting`` block
for that type, then an object-valued ``format`` on the layout item.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from statement_config.schema import FormattingDefaults
from statement_engine.models import ColumnDescriptor, FormatType, GridRow
from statement_kernel.domain.movements import to_decimal

FORMAT_TYPES: tuple[str, ...] = tuple(f.value for f in FormatType)


def format_number(value: Any, decimals: int, thousands: bool) -> str:
    """Round half-up to ``decimals`` places; "-0" is never produced."""
    quantum = Decimal(1).scaleb(-decimals)
    rounded = to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    if thousands:
        return f"{rounded:,.{decimals}f}"
    return f"{rounded:.{decimals}f}"


def resolve_format(
    format_spec: str | Mapping[str, Any] | None,
    report_formatting: Mapping[str, Any] | None = None,
    defaults: FormattingDefaults | None = None,
) -> tuple[str, dict[str, Any]]:
    """Format type and merged options for one value."""
    defaults = defaults or FormattingDefaults()
    if isinstance(format_spec, Mapping):
        format_type = format_spec.get("type") or FormatType.DECIMAL.value
        item_options = {k: v for k, v in format_spec.items() if k != "type"}
    else:
        format_type = format_spec or FormatType.DECIMAL.value
        item_options = {}
    if format_type not in FORMAT_TYPES:
        format_type = FormatType.DECIMAL.value

    options = defaults.for_type(format_type)
    report_options = (report_formatting or {}).get(format_type)
    if isinstance(report_options, Mapping):
        options.update(report_options)
    options.update(item_options)
    return format_type, options


def format_value(
    value: Any,
    format_spec: str | Mapping[str, Any] | None = "decimal",
    report_formatting: Mapping[str, Any] | None = None,
    defaults: FormattingDefaults | None = None,
) -> str:
    """Render one amount; ``None`` renders as an empty string."""
    if value is None:
        return ""
    format_type, options = resolve_format(format_spec, report_formatting, defaults)
    thousands = bool(options.get("thousands", True))

    if format_type == FormatType.CURRENCY.value:
        text = format_number(value, int(options.get("decimals", 0)), thousands)
        return f"{options.get('symbol') or '€'} {text}"
    if format_type == FormatType.PERCENT.value:
        text = format_number(value, int(options.get("decimals", 1)), False)
        return f"{text}{options.get('symbol') or '%'}"
    if format_type == FormatType.INTEGER.value:
        return format_number(value, 0, thousands)
    return format_number(value, int(options.get("decimals", 2)), thousands)


def apply_formatting(
    rows: Sequence[GridRow],
    columns: Sequence[ColumnDescriptor],
    report_formatting: Mapping[str, Any] | None = None,
    defaults: FormattingDefaults | None = None,
) -> list[GridRow]:
    """
    Fill ``GridRow.formatted`` for every amount column plus both
    variance figures.  Spacer rows stay blank.
    """
    out: list[GridRow] = []
    for row in rows:
        if row.is_spacer:
            out.append(row)
            continue
        formatted = {
            c.key: format_value(row.amounts.get(c.key), row.format, report_formatting, defaults)
            for c in columns
        }
        formatted["variance_amount"] = format_value(
            row.variance_amount, row.format, report_formatting, defaults,
        )
        formatted["variance_percent"] = format_value(
            row.variance_percent, FormatType.PERCENT.value, report_formatting, defaults,
        )
        out.append(dataclasses.replace(row, formatted=formatted))
    return out
