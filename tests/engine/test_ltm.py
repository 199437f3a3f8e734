"""
Tests for the LTM (last twelve months) calculator.

Covers:
- Latest-period detection
- Range calculation across fiscal-year boundaries
- Labels, window filtering and availability diagnostics
- Warning on incomplete windows
"""

import warnings
from decimal import Decimal

import pytest

from statement_engine.ltm import (
    NO_DATA_LABEL,
    are_valid_ranges,
    calculate_ltm_info,
    calculate_ltm_range,
    check_data_availability,
    create_data_filter,
    create_ltm_calculator,
    filter_movements_for_ltm,
    generate_ltm_label,
    generate_short_label,
    get_latest_available_period,
    get_missing_years,
    get_required_years,
    get_total_months,
    is_valid_range,
)
from statement_engine.models import LatestPeriod, LTMRange
from statement_kernel.exceptions import LTMAvailabilityWarning


def _row(year, period, amount=1):
    return {"year": year, "period": period, "account_code": "8000", "movement_amount": Decimal(amount)}


class TestLatestPeriod:

    def test_latest(self):
        table = [_row(2024, 12), _row(2025, 6), _row(2025, 2)]
        assert get_latest_available_period(table) == LatestPeriod(2025, 6)

    def test_empty_table(self):
        assert get_latest_available_period([]) is None
        assert get_latest_available_period(None) is None

    def test_ignores_non_monthly_periods(self):
        table = [_row(2024, 3), _row(2025, "Q2"), _row(2025, 999)]
        assert get_latest_available_period(table) == LatestPeriod(2024, 3)


class TestCalculateLtmRange:

    def test_spans_year_boundary(self):
        ranges = calculate_ltm_range(2025, 6, 12)
        assert [(r.year, r.start_period, r.end_period) for r in ranges] == [
            (2024, 7, 12),
            (2025, 1, 6),
        ]

    def test_december_is_single_range(self):
        ranges = calculate_ltm_range(2024, 12, 12)
        assert ranges == [LTMRange(2024, 1, 12)]

    def test_longer_window_spans_three_years(self):
        ranges = calculate_ltm_range(2025, 3, 18)
        assert [(r.year, r.start_period, r.end_period) for r in ranges] == [
            (2023, 10, 12),
            (2024, 1, 12),
            (2025, 1, 3),
        ]

    @pytest.mark.parametrize("year,period,months", [(2025, 6, 12), (2025, 1, 12), (2025, 12, 3), (2025, 2, 30)])
    def test_months_sum_to_window(self, year, period, months):
        assert get_total_months(calculate_ltm_range(year, period, months)) == months

    @pytest.mark.parametrize("year,period,months", [(0, 6, 12), (2025, 0, 12), (2025, 13, 12), (2025, 6, 0)])
    def test_invalid_params_give_empty(self, year, period, months):
        assert calculate_ltm_range(year, period, months) == []


class TestLabelsAndHelpers:

    def test_label(self):
        ranges = calculate_ltm_range(2025, 6)
        assert generate_ltm_label(ranges) == "LTM (2024 P7 - 2025 P6)"
        assert generate_short_label(ranges) == "LTM 2025 P6"

    def test_no_data_label(self):
        assert generate_ltm_label([]) == NO_DATA_LABEL
        assert generate_short_label([]) == "LTM"

    def test_required_and_missing_years(self):
        ranges = calculate_ltm_range(2025, 6)
        assert get_required_years(ranges) == [2024, 2025]
        assert get_missing_years([2024, 2025], [2025]) == [2024]

    def test_filter_movements(self):
        table = [_row(2024, 6), _row(2024, 7), _row(2025, 6), _row(2025, 7)]
        filtered = filter_movements_for_ltm(table, calculate_ltm_range(2025, 6))
        assert [(r["year"], r["period"]) for r in filtered] == [(2024, 7), (2025, 6)]

    def test_create_data_filter(self):
        window = create_data_filter([LTMRange(2024, 1, 3)])
        assert len(window([_row(2024, 2), _row(2024, 4)])) == 1

    def test_range_validity(self):
        assert is_valid_range(LTMRange(2024, 1, 12))
        assert not is_valid_range(LTMRange(2024, 7, 6))
        assert not are_valid_ranges([])


class TestAvailability:

    def test_complete(self, monthly_movements):
        ranges = calculate_ltm_range(2025, 6)
        availability = check_data_availability(ranges, [2024, 2025], 12, monthly_movements)
        assert availability.complete
        assert availability.actual_months == 12
        assert availability.message == "Complete LTM data available"

    def test_missing_year(self):
        ranges = calculate_ltm_range(2025, 6)
        availability = check_data_availability(ranges, [2025])
        assert not availability.complete
        assert availability.message == "Missing data for year(s): 2024"
        assert len(availability.missing_slots) == 6

    def test_missing_period_slots(self):
        ranges = [LTMRange(2025, 1, 3)]
        table = [_row(2025, 1), _row(2025, 3)]
        availability = check_data_availability(ranges, [2025], 3, table)
        assert not availability.complete
        assert availability.missing_slots == ((2025, 2),)
        assert availability.actual_months == 2
        assert "2025 P2" in availability.message

    def test_short_window(self):
        availability = check_data_availability([LTMRange(2025, 1, 1)], [2025], 12)
        assert availability.message == "Only 1 month available (need 12)"

    def test_no_ranges(self):
        availability = check_data_availability([], [2025])
        assert not availability.complete
        assert availability.actual_months == 0


class TestCalculateLtmInfo:

    def test_complete_window(self, monthly_movements):
        with warnings.catch_warnings():
            warnings.simplefilter("error", LTMAvailabilityWarning)
            info = calculate_ltm_info(monthly_movements, [2024, 2025])
        assert info.latest == LatestPeriod(2025, 6)
        assert [(r.year, r.start_period, r.end_period) for r in info.ranges] == [
            (2024, 7, 12),
            (2025, 1, 6),
        ]
        assert info.availability.complete
        assert info.label == "LTM (2024 P7 - 2025 P6)"
        # Two rows per month in the window
        assert len(info.filtered_data) == 24

    def test_incomplete_window_warns(self, ledger_movements):
        with pytest.warns(LTMAvailabilityWarning):
            info = calculate_ltm_info(ledger_movements, [2024, 2025])
        assert not info.availability.complete
        assert info.ranges

    def test_empty_table_warns(self):
        with pytest.warns(LTMAvailabilityWarning):
            info = calculate_ltm_info([], [])
        assert info.label == NO_DATA_LABEL
        assert info.ranges == ()
        assert info.filtered_data == ()

    def test_incomplete_window_is_logged(self, ledger_movements, caplog):
        caplog.set_level("WARNING", logger="statement_engine")
        with pytest.warns(LTMAvailabilityWarning):
            calculate_ltm_info(ledger_movements, [2024, 2025])
        assert any(r.getMessage() == "ltm_data_incomplete" for r in caplog.records)

    def test_calculator_factory(self, monthly_movements):
        calculator = create_ltm_calculator(3)
        info = calculator(monthly_movements, [2024, 2025])
        assert info.ranges == (LTMRange(2025, 4, 6),)
