"""
Tests for period-option parsing and column construction.

Covers:
- Whole year, single period, quarter and LTM options
- Invalid options
- Cumulative vs. period view (balance sheets always cumulative)
- The accepted request shapes of ``PeriodOptions.from_value``
"""

import pytest

from statement_engine.models import ALL_PERIODS
from statement_engine.periods import (
    PeriodOptions,
    SelectionKind,
    ViewType,
    effective_view_type,
    format_period_option,
    parse_period_option,
    parse_view_type,
)
from statement_kernel.exceptions import InvalidPeriodOptionError


class TestParsePeriodOption:

    def test_whole_year(self):
        selection = parse_period_option("2024-all")
        assert selection.kind is SelectionKind.YEAR
        assert selection.year == 2024
        assert selection.period == ALL_PERIODS
        assert selection.label == "2024 (All)"

    def test_all_periods_code(self):
        assert parse_period_option("2024-999").is_all

    def test_single_period(self):
        selection = parse_period_option("2025-6")
        assert selection.kind is SelectionKind.PERIOD
        assert (selection.year, selection.period) == (2025, 6)
        assert selection.label == "2025 (P6)"

    def test_zero_padded_period(self):
        assert parse_period_option("2025-06").period == 6

    @pytest.mark.parametrize("quarter,period", [("Q1", 3), ("Q2", 6), ("q3", 9), ("Q4", 12)])
    def test_quarters(self, quarter, period):
        selection = parse_period_option(f"2024-{quarter}")
        assert selection.kind is SelectionKind.QUARTER
        assert selection.period == period

    def test_ltm(self):
        assert parse_period_option("ltm").is_ltm
        assert parse_period_option("LTM").is_ltm
        selection = parse_period_option("2025-ltm")
        assert selection.is_ltm
        assert selection.year == 2025
        assert selection.label == "LTM"

    @pytest.mark.parametrize(
        "value,reason",
        [
            ("2024", "expected '<year>-<period>'"),
            ("24-all", "expected '<year>-<period>'"),
            ("2024-13", "period must be between 1 and 12"),
            ("2024-0", "period must be between 1 and 12"),
            ("2024-Q5", "unrecognized period 'Q5'"),
            ("2024-x", "unrecognized period 'x'"),
            ("", "period option must be a non-empty string"),
        ],
    )
    def test_invalid(self, value, reason):
        with pytest.raises(InvalidPeriodOptionError) as exc_info:
            parse_period_option(value)
        assert exc_info.value.reason == reason
        assert exc_info.value.code == "INVALID_PERIOD_OPTION"

    def test_non_string(self):
        with pytest.raises(InvalidPeriodOptionError):
            parse_period_option(2024)

    def test_format_period_option(self):
        assert format_period_option(2024) == "2024-all"
        assert format_period_option(2024, 6) == "2024-6"
        assert format_period_option(2024, 999) == "2024-all"
        assert format_period_option(2024, "q2") == "2024-Q2"


class TestColumns:

    def test_whole_year_column(self):
        column = parse_period_option("2024-all").column()
        assert column.key == "amount_2024"
        assert column.label == "2024"
        assert column.covers(2024, 12)

    def test_cumulative_column(self):
        column = parse_period_option("2025-6").column(ViewType.CUMULATIVE)
        assert (column.period_start, column.period_end) == (1, 6)
        assert column.covers(2025, 1)
        assert not column.covers(2025, 7)

    def test_period_view_column(self):
        column = parse_period_option("2025-6").column(ViewType.PERIOD)
        assert (column.period_start, column.period_end) == (6, 6)
        assert not column.covers(2025, 5)

    def test_ltm_has_no_single_column(self):
        with pytest.raises(InvalidPeriodOptionError):
            parse_period_option("ltm").column()

    def test_balance_sheet_always_cumulative(self):
        assert effective_view_type("BS", ViewType.PERIOD) is ViewType.CUMULATIVE
        assert effective_view_type("IS", "period") is ViewType.PERIOD

    def test_invalid_view_type(self):
        with pytest.raises(InvalidPeriodOptionError):
            parse_view_type("weekly")

    def test_options_columns_respect_statement_type(self):
        options = PeriodOptions.from_value({"periods": ["2024-6", "2025-6"], "view_type": "period"})
        income = options.columns("IS")
        balance = options.columns("BS")
        assert income[0].period_start == 6
        assert balance[0].period_start == 1

    def test_duplicate_keys_suffixed(self):
        options = PeriodOptions.from_value(["2024-3", "2024-6"])
        keys = [c.key for c in options.columns()]
        assert keys == ["amount_2024", "amount_2024_2"]


class TestFromValue:

    def test_none_defaults_to_last_two_years(self):
        options = PeriodOptions.from_value(None, [2022, 2023, 2024])
        assert [s.raw for s in options.selections] == ["2023-all", "2024-all"]

    def test_single_year_default(self):
        options = PeriodOptions.from_value(None, [2024])
        assert [s.raw for s in options.selections] == ["2024-all"]

    def test_string(self):
        assert len(PeriodOptions.from_value("2024-Q2").selections) == 1

    def test_list(self):
        options = PeriodOptions.from_value(["2024-all", "2025-6"])
        assert options.years == [2024, 2025]
        assert not options.is_ltm

    def test_mapping_with_periods(self):
        options = PeriodOptions.from_value({"periods": ["ltm"], "view_type": "cumulative"})
        assert options.is_ltm
        assert options.to_dict() == {"periods": ["ltm"], "view_type": "cumulative"}

    def test_legacy_period_keys(self):
        options = PeriodOptions.from_value({"period2025": "2025-6", "period2024": "2024-all"})
        assert [s.raw for s in options.selections] == ["2024-all", "2025-6"]

    def test_empty_mapping_uses_default(self):
        options = PeriodOptions.from_value({"view_type": "period"}, [2024, 2025])
        assert [s.raw for s in options.selections] == ["2024-all", "2025-all"]
        assert options.view_type is ViewType.PERIOD

    def test_passthrough(self):
        options = PeriodOptions.from_value("2024-all")
        assert PeriodOptions.from_value(options) is options

    def test_invalid_entry_raises(self):
        with pytest.raises(InvalidPeriodOptionError):
            PeriodOptions.from_value(["2024-all", "bogus"])
