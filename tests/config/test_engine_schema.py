"""Tests for the engine configuration schema."""

from decimal import Decimal

import pytest

from statement_config.schema import (
    CategoryRule,
    ClassificationRules,
    EngineConfig,
    FormattingDefaults,
    SpecialRowAnchors,
)


class TestCategoryRule:

    def test_substring_match_case_insensitive(self):
        rule = CategoryRule(patterns=("omzet",))
        assert rule.matches("Netto-Omzet")
        assert not rule.matches("Bedrijfskosten")
        assert not rule.matches(None)
        assert not rule.matches("")

    def test_exclude(self):
        rule = ClassificationRules().revenue
        assert rule.matches("Netto-omzet")
        assert not rule.matches("Kostprijs van de omzet")

    @pytest.mark.parametrize(
        "value,patterns,exclude",
        [
            (["a", "b"], ("a", "b"), ()),
            ({"patterns": ["a"], "exclude": ["x"]}, ("a",), ("x",)),
            (CategoryRule(patterns=("z",)), ("z",), ()),
        ],
    )
    def test_from_value(self, value, patterns, exclude):
        rule = CategoryRule.from_value(value)
        assert rule.patterns == patterns
        assert rule.exclude == exclude

    def test_from_value_rejects_scalars(self):
        with pytest.raises(ValueError):
            CategoryRule.from_value(42)


class TestClassificationRules:

    def test_lists_coerced_to_rules(self):
        rules = ClassificationRules(cash=["kas"])
        assert isinstance(rules.cash, CategoryRule)
        assert rules.cash.matches("Kas en bank")

    def test_code_range(self):
        assert ClassificationRules().liability_equity_code_range == (60, 90)
        assert ClassificationRules(liability_equity_code_range=None).liability_equity_code_range is None

    def test_code_range_order_enforced(self):
        with pytest.raises(ValueError):
            ClassificationRules(liability_equity_code_range=(90, 60))


class TestFormattingDefaults:

    def test_for_type(self):
        defaults = FormattingDefaults()
        assert defaults.for_type("currency") == {"decimals": 0, "thousands": True, "symbol": "€"}
        assert defaults.for_type("percent") == {"decimals": 1, "symbol": "%"}
        assert defaults.for_type("integer")["decimals"] == 0
        assert defaults.for_type("anything")["decimals"] == 2

    def test_negative_decimals(self):
        with pytest.raises(ValueError):
            FormattingDefaults(percent_decimals=-1)


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig.with_defaults()
        assert config.balance_tolerance == Decimal("0.01")
        assert config.ltm_months == 12
        assert config.default_detail_level == 5
        assert config.all_periods_code == 999
        assert config.special_rows == SpecialRowAnchors()

    def test_tolerance_coerced(self):
        assert EngineConfig(balance_tolerance="0.5").balance_tolerance == Decimal("0.5")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"balance_tolerance": Decimal("-1")},
            {"ltm_months": 0},
            {"default_detail_level": 6},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_from_dict_nested(self):
        config = EngineConfig.from_dict({
            "ltm_months": 24,
            "classification": {
                "cash": {"patterns": ["kas"]},
                "liability_equity_code_range": [50, 99],
            },
            "special_rows": {"section_header_labels": ["Assets", "Liabilities"]},
            "formatting": {"currency_symbol": "$"},
        })
        assert config.ltm_months == 24
        assert config.classification.cash.patterns == ("kas",)
        assert config.classification.liability_equity_code_range == (50, 99)
        assert config.special_rows.section_header_labels == ("Assets", "Liabilities")
        assert config.formatting.currency_symbol == "$"

    def test_from_dict_unknown_key(self):
        with pytest.raises(TypeError):
            EngineConfig.from_dict({"colour": "blue"})
