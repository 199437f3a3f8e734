"""
Engine Configuration Schema.

Defines the data-driven classification rules, special-row anchors, number
formatting defaults and tolerances used by the statement engine.  Category
classification matches lower-cased substrings of the top-level category
name (``name1``), with optional exclude patterns, consistent with the
Dutch/English chart-of-accounts naming in the loaded workbooks.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Self

from statement_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class CategoryRule:
    """
    Case-insensitive substring rule for a category name.

    A name matches when it contains any pattern and none of the excludes.
    """

    patterns: tuple[str, ...]
    exclude: tuple[str, ...] = ()

    def matches(self, name: str | None) -> bool:
        if not name:
            return False
        text = name.strip().lower()
        if not any(p.lower() in text for p in self.patterns):
            return False
        return not any(x.lower() in text for x in self.exclude)

    @classmethod
    def from_value(cls, value: Any) -> CategoryRule:
        """Accept a rule, a list of patterns, or {patterns, exclude}."""
        if isinstance(value, CategoryRule):
            return value
        if isinstance(value, dict):
            return cls(
                patterns=tuple(value.get("patterns", ())),
                exclude=tuple(value.get("exclude", ())),
            )
        if isinstance(value, (list, tuple)):
            return cls(patterns=tuple(value))
        raise ValueError(f"Cannot build CategoryRule from {value!r}")


def _rule(*patterns: str, exclude: tuple[str, ...] = ()) -> CategoryRule:
    return CategoryRule(patterns=patterns, exclude=exclude)


@dataclass
class ClassificationRules:
    """
    Rules for classifying top-level categories into statement sections.

    Balance-sheet sign handling uses ``liability_or_equity`` on ``name1``
    (falling back to ``name0``), or a numeric ``code1`` inside
    ``liability_equity_code_range`` when the range is set.
    """

    # Balance sheet
    asset: CategoryRule = field(default_factory=lambda: _rule(
        "immateriële vaste activa", "materiële vaste activa", "financiële vaste activa",
        "voorraden", "vorderingen", "liquide middelen", "activa", "assets",
    ))
    liability: CategoryRule = field(default_factory=lambda: _rule(
        "schuld", "voorziening", "passiva", "liabilit",
    ))
    equity: CategoryRule = field(default_factory=lambda: _rule(
        "eigen vermogen", "equity",
    ))
    liability_or_equity: CategoryRule = field(default_factory=lambda: _rule(
        "passiva", "vermogen", "liabilit", "equity", "schuld", "voorziening",
    ))
    cash: CategoryRule = field(default_factory=lambda: _rule(
        "liquide middelen", "cash", "bank",
    ))

    # Income statement
    revenue: CategoryRule = field(default_factory=lambda: _rule(
        "omzet", "revenue", "sales", exclude=("kostprijs", "cost of"),
    ))
    cogs: CategoryRule = field(default_factory=lambda: _rule(
        "kostprijs", "cost of goods", "cogs",
    ))
    operating_expense: CategoryRule = field(default_factory=lambda: _rule(
        "kosten", "bedrijf", "operating", "expense",
    ))
    other_income: CategoryRule = field(default_factory=lambda: _rule(
        "overige", "opbrengst", "financiële", "baten", "lasten",
        "buitengewone", "afrondingsverschil", "afronding",
    ))
    tax: CategoryRule = field(default_factory=lambda: _rule("belasting", "tax"))
    depreciation: CategoryRule = field(default_factory=lambda: _rule(
        "afschrijving", "depreciation", "amortization",
    ))

    # Numeric code1 range treated as liabilities/equity (inclusive)
    liability_equity_code_range: tuple[int, int] | None = (60, 90)

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "liability_equity_code_range":
                if value is not None:
                    low, high = value
                    if low > high:
                        raise ValueError(
                            "liability_equity_code_range lower bound exceeds upper bound"
                        )
                    self.liability_equity_code_range = (int(low), int(high))
            elif not isinstance(value, CategoryRule):
                setattr(self, f.name, CategoryRule.from_value(value))


@dataclass
class SpecialRowAnchors:
    """code1 anchors for injected statement rows."""

    gross_margin_before_code1: str = "520"
    operating_result_before_code1: str = "530"
    result_before_tax_before_code1: str = "550"
    # First code1 at or above this value starts the liabilities section
    first_liability_code1: int = 70
    # Top-level headers whose amounts are cleared on the balance sheet
    section_header_labels: tuple[str, ...] = ("Activa", "Passiva")


@dataclass
class FormattingDefaults:
    """Default number formatting per format type."""

    currency_symbol: str = "€"
    currency_decimals: int = 0
    percent_decimals: int = 1
    decimal_decimals: int = 2
    thousands_separator: bool = True

    def __post_init__(self):
        for name in ("currency_decimals", "percent_decimals", "decimal_decimals"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    def for_type(self, format_type: str) -> dict[str, Any]:
        """Option dict for one format type."""
        if format_type == "currency":
            return {
                "decimals": self.currency_decimals,
                "thousands": self.thousands_separator,
                "symbol": self.currency_symbol,
            }
        if format_type == "percent":
            return {"decimals": self.percent_decimals, "symbol": "%"}
        if format_type == "integer":
            return {"decimals": 0, "thousands": self.thousands_separator}
        return {
            "decimals": self.decimal_decimals,
            "thousands": self.thousands_separator,
        }


@dataclass
class EngineConfig:
    """
    Configuration schema for the statement engine.

    Controls classification, special rows, formatting and tolerances.
    """

    classification: ClassificationRules = field(
        default_factory=ClassificationRules,
    )
    special_rows: SpecialRowAnchors = field(default_factory=SpecialRowAnchors)
    formatting: FormattingDefaults = field(default_factory=FormattingDefaults)

    # |assets - (liabilities + equity)| within this is balanced
    balance_tolerance: Decimal = Decimal("0.01")

    # Rolling window length in months
    ltm_months: int = 12

    # 0-3 = category levels, 5 = accounts
    default_detail_level: int = 5

    # Period code meaning "all periods of the year"
    all_periods_code: int = 999

    def __post_init__(self):
        if not isinstance(self.balance_tolerance, Decimal):
            self.balance_tolerance = Decimal(str(self.balance_tolerance))
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance cannot be negative")
        if self.ltm_months <= 0:
            raise ValueError("ltm_months must be positive")
        if self.default_detail_level not in (0, 1, 2, 3, 4, 5):
            raise ValueError("default_detail_level must be between 0 and 5")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("engine_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if isinstance(data.get("classification"), dict):
            clf = dict(data["classification"])
            code_range = clf.get("liability_equity_code_range")
            if code_range is not None:
                clf["liability_equity_code_range"] = tuple(code_range)
            data["classification"] = ClassificationRules(**clf)
        if isinstance(data.get("special_rows"), dict):
            anchors = dict(data["special_rows"])
            if "section_header_labels" in anchors:
                anchors["section_header_labels"] = tuple(anchors["section_header_labels"])
            data["special_rows"] = SpecialRowAnchors(**anchors)
        if isinstance(data.get("formatting"), dict):
            data["formatting"] = FormattingDefaults(**data["formatting"])
        logger.info(
            "engine_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
