"""
Variance calculations between two amount columns.

A single zero-baseline policy is used everywhere:

    both values 0            -> percent 0
    baseline 0, current != 0 -> percent None (rendered "N/A" / blank)
    otherwise                -> (current - baseline) / |baseline| * 100
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from statement_engine.models import GridRow
from statement_kernel.domain.movements import ZERO

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Variance:
    amount: Decimal
    percent: Decimal | None


def calculate_variance_amount(baseline: Decimal | None, current: Decimal | None) -> Decimal:
    return (current or ZERO) - (baseline or ZERO)


def calculate_variance_percent(
    baseline: Decimal | None, current: Decimal | None,
) -> Decimal | None:
    base = baseline or ZERO
    cur = current or ZERO
    if base == 0:
        return ZERO if cur == 0 else None
    return (cur - base) / abs(base) * HUNDRED


def calculate_variance(baseline: Decimal | None, current: Decimal | None) -> Variance:
    return Variance(
        amount=calculate_variance_amount(baseline, current),
        percent=calculate_variance_percent(baseline, current),
    )


def calculate_for_amounts(
    amounts: Mapping[str, Decimal | None], baseline_key: str, current_key: str,
) -> Variance:
    """Variance between two keyed columns of a row or totals mapping."""
    return calculate_variance(amounts.get(baseline_key), amounts.get(current_key))


def apply_variance(
    rows: Sequence[GridRow], baseline_key: str, current_key: str,
) -> list[GridRow]:
    """
    Set ``variance_amount``/``variance_percent`` on every row that has
    amounts; spacers and cleared section headers are left blank.
    """
    out: list[GridRow] = []
    for row in rows:
        if row.is_spacer or all(v is None for v in row.amounts.values()):
            out.append(row)
            continue
        variance = calculate_for_amounts(row.amounts, baseline_key, current_key)
        out.append(dataclasses.replace(
            row,
            variance_amount=variance.amount,
            variance_percent=variance.percent,
        ))
    return out
