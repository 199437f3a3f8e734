"""Configurable category-name matching for statement sections."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from statement_config.schema import CategoryRule, ClassificationRules

CATEGORY_ORDER: tuple[str, ...] = (
    "asset",
    "liability",
    "equity",
    "revenue",
    "cogs",
    "operating_expense",
    "other_income",
    "tax",
)


class CategoryMatcher:
    """
    Classifies top-level category names (``name1``) using the configured
    include/exclude patterns.
    """

    def __init__(self, rules: ClassificationRules | None = None):
        self._rules = rules or ClassificationRules()

    @property
    def rules(self) -> ClassificationRules:
        return self._rules

    def matches(self, rule_name: str, name: str | None) -> bool:
        rule: CategoryRule = getattr(self._rules, rule_name)
        return rule.matches(name)

    def is_asset(self, name: str | None) -> bool:
        return self._rules.asset.matches(name)

    def is_liability(self, name: str | None) -> bool:
        return self._rules.liability.matches(name)

    def is_equity(self, name: str | None) -> bool:
        return self._rules.equity.matches(name)

    def is_liability_or_equity(self, name: str | None) -> bool:
        return self._rules.liability_or_equity.matches(name)

    def is_cash(self, name: str | None) -> bool:
        return self._rules.cash.matches(name)

    def is_revenue(self, name: str | None) -> bool:
        return self._rules.revenue.matches(name)

    def is_cogs(self, name: str | None) -> bool:
        return self._rules.cogs.matches(name)

    def is_operating_expense(self, name: str | None) -> bool:
        return self._rules.operating_expense.matches(name)

    def is_other_income(self, name: str | None) -> bool:
        return self._rules.other_income.matches(name)

    def is_tax(self, name: str | None) -> bool:
        return self._rules.tax.matches(name)

    def is_depreciation(self, name: str | None) -> bool:
        return self._rules.depreciation.matches(name)

    def classify_category(self, name: str | None) -> str:
        """First matching class in ``CATEGORY_ORDER``, else "unknown"."""
        for category in CATEGORY_ORDER:
            if self.matches(category, name):
                return category
        return "unknown"

    def is_in_liability_equity_range(self, code1: Any) -> bool:
        code_range = self._rules.liability_equity_code_range
        if code_range is None:
            return False
        number = parse_code(code1)
        return number is not None and code_range[0] <= number <= code_range[1]

    def filter_by_category(
        self, predicate: Callable[[str | None], bool], key: str = "name1",
    ) -> Callable[[Sequence[Mapping[str, Any]]], list[Mapping[str, Any]]]:
        return lambda items: [item for item in items if predicate(item.get(key))]


def parse_code(code: Any) -> int | None:
    """Leading integer of a code ("70" -> 70, "520A" -> None)."""
    if code is None or isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    text = str(code).strip()
    if text.endswith(".0"):
        text = text[:-2]
    return int(text) if text.lstrip("-").isdigit() else None
