"""
Tests for category classification and presentation sign handling.

Covers:
- Pattern/exclude matching on Dutch and English category names
- The liability/equity predicate (name1, name0 fallback, code1 range)
- Income-statement multiplier and balance-sheet passiva flip
"""

from decimal import Decimal

import pytest

from statement_config.schema import ClassificationRules, EngineConfig
from statement_engine.categories import CategoryMatcher, parse_code
from statement_engine.signs import (
    classification_predicate,
    create_sign_flipper,
    flip_sign_for_passiva,
    sign_multiplier_for,
)


class TestCategoryMatcher:

    def setup_method(self):
        self.matcher = CategoryMatcher()

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Netto-omzet", "revenue"),
            ("Kostprijs van de omzet", "cogs"),
            ("Bedrijfskosten", "operating_expense"),
            ("Belastingen", "tax"),
            ("Liquide middelen", "asset"),
            ("Eigen vermogen", "equity"),
            ("Kortlopende schulden", "liability"),
            ("Something else", "unknown"),
        ],
    )
    def test_classify(self, name, expected):
        assert self.matcher.classify_category(name) == expected

    def test_revenue_exclude(self):
        assert not self.matcher.is_revenue("Kostprijs van de omzet")
        assert self.matcher.is_cogs("Kostprijs van de omzet")

    def test_case_insensitive(self):
        assert self.matcher.is_revenue("NET SALES")

    def test_none_never_matches(self):
        assert not self.matcher.is_asset(None)

    def test_section_predicates(self):
        assert self.matcher.is_liability("Kortlopende schulden")
        assert not self.matcher.is_liability("Eigen vermogen")
        assert self.matcher.is_equity("Eigen vermogen")
        assert self.matcher.is_other_income("Financiële baten en lasten")
        assert not self.matcher.is_other_income("Netto-omzet")

    def test_cash(self):
        assert self.matcher.is_cash("Liquide middelen")
        assert self.matcher.is_cash("Bank")
        assert not self.matcher.is_cash("Vorderingen")

    def test_code_range(self):
        assert self.matcher.is_in_liability_equity_range("70")
        assert self.matcher.is_in_liability_equity_range(60)
        assert not self.matcher.is_in_liability_equity_range("40")
        assert not self.matcher.is_in_liability_equity_range(None)

    def test_custom_rules(self):
        rules = ClassificationRules(revenue=["turnover"], liability_equity_code_range=None)
        matcher = CategoryMatcher(rules)
        assert matcher.is_revenue("Turnover")
        assert not matcher.is_revenue("Netto-omzet")
        assert not matcher.is_in_liability_equity_range("70")

    def test_filter_by_category(self):
        items = [{"name1": "Netto-omzet"}, {"name1": "Belastingen"}]
        assert self.matcher.filter_by_category(self.matcher.is_tax)(items) == [{"name1": "Belastingen"}]

    @pytest.mark.parametrize(
        "code,expected",
        [("70", 70), (" 80 ", 80), ("70.0", 70), (15, 15), ("520A", None), (None, None), (True, None)],
    )
    def test_parse_code(self, code, expected):
        assert parse_code(code) == expected


class TestSigns:

    def test_income_multiplier(self):
        assert sign_multiplier_for("IS") == -1
        assert sign_multiplier_for("income") == -1
        assert sign_multiplier_for("BS") == 1
        assert sign_multiplier_for("cashflow") == 1

    def test_predicate_by_name1(self):
        is_le = classification_predicate()
        assert is_le({"name1": "Eigen vermogen"})
        assert not is_le({"name1": "Vorderingen", "code1": "30"})

    def test_predicate_falls_back_to_name0(self):
        is_le = classification_predicate(EngineConfig())
        assert is_le({"name0": "Passiva"})
        assert not is_le({"name0": "Activa"})

    def test_predicate_by_code_range(self):
        is_le = classification_predicate()
        assert is_le({"name1": "Overig", "code1": "80"})

    def test_flip(self):
        rows = [
            {"name1": "Eigen vermogen", "amount_2024": Decimal("-100"), "amount_2025": None},
            {"name1": "Vorderingen", "code1": "30", "amount_2024": Decimal("50")},
        ]
        out = flip_sign_for_passiva(rows, ["amount_2024", "amount_2025"], classification_predicate())
        assert out[0]["amount_2024"] == Decimal("100")
        assert out[0]["amount_2025"] is None
        assert out[1]["amount_2024"] == Decimal("50")
        # Input untouched
        assert rows[0]["amount_2024"] == Decimal("-100")

    def test_sign_flipper_factory(self):
        flipper = create_sign_flipper(["a"], lambda row: True)
        assert flipper([{"a": Decimal("3")}]) == [{"a": Decimal("-3")}]
