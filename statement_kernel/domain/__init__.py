"""Pure domain types for the statement engine: movements, results, clock."""

from statement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from statement_kernel.domain.movements import (
    HIERARCHY_FIELDS,
    ZERO,
    MovementRecord,
    normalize_period,
    normalize_table,
    row_value,
    to_decimal,
    unique_years,
)
from statement_kernel.domain.result import Result

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "HIERARCHY_FIELDS",
    "ZERO",
    "MovementRecord",
    "normalize_period",
    "normalize_table",
    "row_value",
    "to_decimal",
    "unique_years",
    "Result",
]
