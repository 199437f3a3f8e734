"""
LTM (last twelve months) calculator.

Responsibility:
    Finds the latest available (year, period) in a movements table and
    derives the contiguous period ranges of the rolling window ending
    there, spanning back across fiscal-year boundaries when needed
    (latest 2025-P06 -> [2024 P7-12, 2025 P1-6]).  Also produces labels,
    the table restricted to the window, and completeness diagnostics.

Architecture position:
    Engine -- pure apart from the availability warning, which is emitted
    through ``warnings`` and the structured logger.

Invariants enforced:
    * Range period counts sum to the requested window length.
    * Ranges are contiguous and in chronological order.
    * Completeness is judged per (year, period) slot: every slot in the
      window needs at least one movement row.

Failure modes:
    * Never raises for missing or partial data; ``availability.complete``
      is False and an ``LTMAvailabilityWarning`` is emitted instead.
    * Invalid parameters to ``calculate_ltm_range`` -> empty list.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable, Sequence

from statement_engine.models import (
    DataAvailability,
    LatestPeriod,
    LTMInfo,
    LTMRange,
)
from statement_kernel.domain.movements import (
    MovementRecord,
    Row,
    normalize_table,
    row_value,
)
from statement_kernel.exceptions import LTMAvailabilityWarning
from statement_kernel.logging_config import get_logger

logger = get_logger("engine.ltm")

DEFAULT_MONTHS = 12
NO_DATA_LABEL = "LTM (No Data)"


def _monthly_slot(row: Row) -> tuple[int, int] | None:
    year = row_value(row, "year")
    period = row_value(row, "period")
    if year is None or not isinstance(period, int) or not 1 <= period <= 12:
        return None
    return (int(year), period)


def get_latest_available_period(table: Sequence[Row] | None) -> LatestPeriod | None:
    """Latest monthly (year, period) present, or None for an empty table."""
    if not table:
        return None
    slots = [slot for slot in map(_monthly_slot, table) if slot is not None]
    if not slots:
        return None
    year, period = max(slots)
    return LatestPeriod(year=year, period=period)


def is_valid_ltm_params(year: int, period: int, months_back: int) -> bool:
    return year > 0 and 1 <= period <= 12 and months_back > 0


def calculate_ltm_range(year: int, period: int, months_back: int = DEFAULT_MONTHS) -> list[LTMRange]:
    """
    Contiguous ranges covering ``months_back`` months ending at
    (year, period), oldest first.
    """
    if not is_valid_ltm_params(year, period, months_back):
        return []

    ranges: list[LTMRange] = []
    current_year, current_period, remaining = year, period, months_back
    while remaining > 0:
        start = max(1, current_period - remaining + 1)
        ranges.insert(0, LTMRange(year=current_year, start_period=start, end_period=current_period))
        remaining -= current_period - start + 1
        current_year -= 1
        current_period = 12
    return ranges


def get_total_months(ranges: Sequence[LTMRange]) -> int:
    return sum(r.months for r in ranges)


def get_required_years(ranges: Sequence[LTMRange]) -> list[int]:
    return sorted({r.year for r in ranges})


def get_missing_years(required_years: Sequence[int], available_years: Sequence[int]) -> list[int]:
    return [year for year in required_years if year not in available_years]


def expected_slots(ranges: Sequence[LTMRange]) -> list[tuple[int, int]]:
    return [slot for r in ranges for slot in r.slots()]


def filter_movements_for_ltm(
    table: Sequence[Row] | None, ranges: Sequence[LTMRange],
) -> list[Row]:
    """Rows whose (year, period) lies inside one of the ranges, range order."""
    if not table or not ranges:
        return []
    out: list[Row] = []
    for r in ranges:
        out.extend(
            row for row in table
            if (slot := _monthly_slot(row)) is not None
            and slot[0] == r.year
            and r.start_period <= slot[1] <= r.end_period
        )
    return out


def create_data_filter(ranges: Sequence[LTMRange]) -> Callable[[Sequence[Row]], list[Row]]:
    return lambda table: filter_movements_for_ltm(table, ranges)


def generate_ltm_label(ranges: Sequence[LTMRange]) -> str:
    if not ranges:
        return NO_DATA_LABEL
    first, last = ranges[0], ranges[-1]
    return f"LTM ({first.year} P{first.start_period} - {last.year} P{last.end_period})"


def generate_short_label(ranges: Sequence[LTMRange]) -> str:
    if not ranges:
        return "LTM"
    last = ranges[-1]
    return f"LTM {last.year} P{last.end_period}"


def check_data_availability(
    ranges: Sequence[LTMRange],
    available_years: Sequence[int],
    expected_months: int = DEFAULT_MONTHS,
    table: Sequence[Row] | None = None,
) -> DataAvailability:
    """
    Completeness of a rolling window.

    Missing years are reported first, then (when ``table`` is given)
    individual empty (year, period) slots, then a short window.
    """
    if not ranges:
        return DataAvailability(
            complete=False,
            actual_months=0,
            expected_months=expected_months,
            message="No LTM data available",
        )

    total = get_total_months(ranges)
    slots = expected_slots(ranges)
    missing_years = get_missing_years(get_required_years(ranges), available_years)
    if missing_years:
        return DataAvailability(
            complete=False,
            actual_months=total,
            expected_months=expected_months,
            message=f"Missing data for year(s): {', '.join(map(str, missing_years))}",
            missing_slots=tuple(s for s in slots if s[0] in missing_years),
        )

    if table is not None:
        present = {slot for slot in map(_monthly_slot, table) if slot is not None}
        missing = tuple(s for s in slots if s not in present)
        if missing:
            names = ", ".join(f"{y} P{p}" for y, p in missing)
            return DataAvailability(
                complete=False,
                actual_months=total - len(missing),
                expected_months=expected_months,
                message=f"Missing data for period(s): {names}",
                missing_slots=missing,
            )

    if total < expected_months:
        plural = "" if total == 1 else "s"
        return DataAvailability(
            complete=False,
            actual_months=total,
            expected_months=expected_months,
            message=f"Only {total} month{plural} available (need {expected_months})",
        )

    return DataAvailability(
        complete=True,
        actual_months=total,
        expected_months=expected_months,
        message="Complete LTM data available",
    )


def _warn_incomplete(availability: DataAvailability, label: str) -> None:
    logger.warning(
        "ltm_data_incomplete",
        extra={
            "label": label,
            "actual_months": availability.actual_months,
            "expected_months": availability.expected_months,
            "availability_message": availability.message,
        },
    )
    warnings.warn(
        f"{label}: {availability.message}", LTMAvailabilityWarning, stacklevel=3,
    )


def calculate_ltm_info(
    table: Sequence[Row] | None,
    available_years: Sequence[int],
    months_count: int = DEFAULT_MONTHS,
) -> LTMInfo:
    """Everything a statement needs to render the rolling window."""
    records = normalize_table(table or [])
    latest = get_latest_available_period(records)

    if latest is None:
        availability = DataAvailability(
            complete=False,
            actual_months=0,
            expected_months=months_count,
            message="No data available",
        )
        _warn_incomplete(availability, NO_DATA_LABEL)
        return LTMInfo(
            ranges=(),
            latest=LatestPeriod(year=0, period=0),
            label=NO_DATA_LABEL,
            filtered_data=(),
            availability=availability,
        )

    ranges = calculate_ltm_range(latest.year, latest.period, months_count)
    filtered: list[MovementRecord] = filter_movements_for_ltm(records, ranges)
    label = generate_ltm_label(ranges)
    availability = check_data_availability(ranges, available_years, months_count, records)

    if availability.complete:
        logger.debug("ltm_range_calculated", extra={"label": label, "rows": len(filtered)})
    else:
        _warn_incomplete(availability, label)

    return LTMInfo(
        ranges=tuple(ranges),
        latest=latest,
        label=label,
        filtered_data=tuple(filtered),
        availability=availability,
    )


def create_ltm_calculator(months_back: int) -> Callable[[Sequence[Row], Sequence[int]], LTMInfo]:
    return lambda table, available_years: calculate_ltm_info(table, available_years, months_back)


def is_valid_range(range_: LTMRange) -> bool:
    return (
        range_.year > 0
        and 1 <= range_.start_period <= 12
        and 1 <= range_.end_period <= 12
        and range_.start_period <= range_.end_period
    )


def are_valid_ranges(ranges: Sequence[LTMRange]) -> bool:
    return len(ranges) > 0 and all(is_valid_range(r) for r in ranges)
