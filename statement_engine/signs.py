"""
Presentation sign conventions.

Movements are stored debit-positive.  Two presentation flips apply:

* income statements aggregate with multiplier -1, so revenue (a credit)
  renders positive -- see ``sign_multiplier_for``;
* balance-sheet liability and equity rows are negated after aggregation
  so they also render positive -- see ``flip_sign_for_passiva``.

Which rows count as liability/equity is data-driven: the predicate comes
from ``EngineConfig.classification`` (name patterns on ``name1`` with a
fallback to ``name0``, plus an optional numeric ``code1`` range).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from statement_config.schema import ClassificationRules, EngineConfig
from statement_engine.categories import CategoryMatcher
from statement_engine.models import StatementType

RowPredicate = Callable[[Mapping[str, Any]], bool]


def sign_multiplier_for(statement_type: StatementType | str) -> int:
    """-1 for income statements, 1 otherwise."""
    if StatementType.parse(statement_type) is StatementType.INCOME_STATEMENT:
        return -1
    return 1


def classification_predicate(
    config: EngineConfig | ClassificationRules | None = None,
) -> RowPredicate:
    """Build the liability/equity row predicate from configuration."""
    if isinstance(config, EngineConfig):
        rules = config.classification
    else:
        rules = config
    matcher = CategoryMatcher(rules)

    def is_liability_or_equity(row: Mapping[str, Any]) -> bool:
        name = row.get("name1") or row.get("name0")
        if matcher.is_liability_or_equity(name):
            return True
        return matcher.is_in_liability_equity_range(row.get("code1"))

    return is_liability_or_equity


def flip_sign_for_passiva(
    rows: Sequence[Mapping[str, Any]],
    column_keys: Sequence[str],
    is_liability_or_equity: RowPredicate,
) -> list[dict[str, Any]]:
    """Negate every amount column of rows the predicate selects."""
    out: list[dict[str, Any]] = []
    for row in rows:
        new_row = dict(row)
        if is_liability_or_equity(row):
            for key in column_keys:
                if new_row.get(key) is not None:
                    new_row[key] = -new_row[key]
        out.append(new_row)
    return out


def create_sign_flipper(
    column_keys: Sequence[str], is_liability_or_equity: RowPredicate,
) -> Callable[[Sequence[Mapping[str, Any]]], list[dict[str, Any]]]:
    return lambda rows: flip_sign_for_passiva(rows, column_keys, is_liability_or_equity)
