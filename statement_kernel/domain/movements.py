"""
Movement records -- the normalized ledger-movement row.

Responsibility:
    Defines ``MovementRecord`` (one posted amount per account per fiscal
    period) and the helpers that normalize externally loaded rows into it.
    Every engine component consumes tables of these records.

Architecture position:
    Kernel > Domain -- pure data definitions with ZERO I/O.  The workbook
    loader that produces the raw mappings lives outside this package.

Invariants enforced:
    * ``movement_amount`` is always a ``Decimal`` (null normalizes to 0).
    * ``period`` is an ``int`` for monthly data; quarter codes and "LTM"
      are kept as upper-case strings.
    * Code fields are strings (or None), so "700" and 700 compare equal.

Failure modes:
    * Unparseable amount or year -> ``ValueError``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Union

ZERO = Decimal("0")

HIERARCHY_FIELDS: tuple[str, ...] = (
    "code0", "name0", "code1", "name1", "code2", "name2", "code3", "name3",
)

_PERIOD_PATTERN = re.compile(r"^[Pp]?(\d{1,2})$")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a loaded amount to ``Decimal``.

    None and empty strings are treated as zero.  Floats go through ``str``
    so binary artefacts (0.1 + 0.2) do not leak into statement totals.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return ZERO
        try:
            return Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from e
    raise ValueError(f"Cannot convert {value!r} to Decimal")


def normalize_period(value: Any) -> int | str | None:
    """Normalize a period value: 6, "6", "06", "P06" -> 6; "q2" -> "Q2"."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid period {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    match = _PERIOD_PATTERN.match(text)
    if match:
        return int(match.group(1))
    return text.upper() or None


def normalize_code(value: Any) -> str | None:
    """Codes are compared as text; empty values become None."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class MovementRecord:
    """A single movement amount posted to an account in a fiscal period."""

    year: int
    period: int | str | None
    account_code: str | None
    movement_amount: Decimal = ZERO
    account_description: str | None = None
    statement_type: str | None = None
    code0: str | None = None
    name0: str | None = None
    code1: str | None = None
    name1: str | None = None
    code2: str | None = None
    name2: str | None = None
    code3: str | None = None
    name3: str | None = None

    def get(self, field_name: str, default: Any = None) -> Any:
        """Mapping-style access so rows and dicts share one accessor."""
        return getattr(self, field_name, default)

    def hierarchy_key(self) -> tuple[str | None, ...]:
        return tuple(getattr(self, f) for f in HIERARCHY_FIELDS)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MovementRecord:
        """
        Build a record from a loaded row.

        ``amount`` is accepted when ``movement_amount`` is absent.
        """
        if "movement_amount" in data:
            raw_amount = data.get("movement_amount")
        else:
            raw_amount = data.get("amount")
        year = data.get("year")
        if year is None:
            raise ValueError(f"Movement row has no year: {dict(data)!r}")
        return cls(
            year=int(year),
            period=normalize_period(data.get("period")),
            account_code=normalize_code(data.get("account_code")),
            movement_amount=to_decimal(raw_amount),
            account_description=_text(data.get("account_description")),
            statement_type=_text(data.get("statement_type")),
            code0=normalize_code(data.get("code0")),
            name0=_text(data.get("name0")),
            code1=normalize_code(data.get("code1")),
            name1=_text(data.get("name1")),
            code2=normalize_code(data.get("code2")),
            name2=_text(data.get("name2")),
            code3=normalize_code(data.get("code3")),
            name3=_text(data.get("name3")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


Row = Union[MovementRecord, Mapping[str, Any]]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def row_value(row: Row, field_name: str) -> Any:
    """Read a field from a record or a mapping row."""
    if isinstance(row, MovementRecord):
        return getattr(row, field_name, None)
    return row.get(field_name)


def normalize_table(table: Iterable[Row]) -> list[MovementRecord]:
    """Normalize a loaded table into a list of ``MovementRecord``."""
    return [
        row if isinstance(row, MovementRecord) else MovementRecord.from_mapping(row)
        for row in table
    ]


def unique_years(table: Sequence[Row]) -> list[int]:
    """Fiscal years present in the table, ascending."""
    years: set[int] = set()
    for row in table:
        year = row_value(row, "year")
        if year is not None:
            years.add(int(year))
    return sorted(years)


def period_sort_key(row: Row) -> tuple[int, int]:
    """Chronological key; non-monthly periods sort after period 12."""
    year = row_value(row, "year") or 0
    period = row_value(row, "period")
    return (int(year), period if isinstance(period, int) else 99)
