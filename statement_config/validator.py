"""
Report Definition Validator (``statement_config.validator``).

Responsibility
--------------
Validates a report definition (as loaded from YAML/JSON) before it is
parsed or rendered, collecting every structural problem rather than
stopping at the first.

Architecture position
---------------------
**Config layer** -- build-time validation.  Called by
``statement_config.loader`` before parsing and by
``statement_engine.renderer`` before any row is emitted.  Reuses the
engine's filter, variable and expression validators so the rules live in
exactly one place.

Invariants enforced
-------------------
* Required fields -- ``reportId``, ``name``, ``version``, ``statementType``.
* Layout orders are integers and unique.
* ``variable`` items reference a defined variable; ``calculated``
  expressions parse and reference only defined variables and existing
  orders; ``category`` filters validate; ``subtotal`` ranges are ordered.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the definition
  MUST NOT be rendered.
* Validation warnings (``ConfigValidationResult.warnings``)  -> the
  definition renders but should be reviewed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from statement_engine.expressions import get_dependencies, validate_expression
from statement_engine.filters import validate_filter
from statement_engine.models import (
    REPORT_STATEMENT_TYPES,
    FormatType,
    LayoutType,
    ReportDefinition,
    RowStyle,
    VariableDefinition,
)
from statement_engine.variables import validate_variable

REQUIRED_FIELDS: tuple[str, ...] = ("reportId", "name", "version", "statementType")


@dataclass
class ConfigValidationResult:
    """
    Result of report definition validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block rendering but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_report_definition(
    definition: Mapping[str, Any] | ReportDefinition,
) -> ConfigValidationResult:
    """
    Validate a report definition.

    Accepts the raw mapping form or an already-built ``ReportDefinition``.
    """
    result = ConfigValidationResult()

    if isinstance(definition, ReportDefinition):
        data = definition.to_dict()
    elif isinstance(definition, Mapping):
        data = definition
    else:
        result.add_error("Report definition must be an object")
        return result

    _validate_required_fields(data, result)
    _validate_statement_type(data, result)
    variables = _validate_variables(data, result)
    _validate_layout(data, variables, result)
    _validate_formatting(data, result)

    return result


def _validate_required_fields(
    data: Mapping[str, Any], result: ConfigValidationResult
) -> None:
    for name in REQUIRED_FIELDS:
        if data.get(name) in (None, ""):
            result.add_error(f"Missing required field: {name}")


def _validate_statement_type(
    data: Mapping[str, Any], result: ConfigValidationResult
) -> None:
    statement_type = data.get("statementType")
    if statement_type is not None and statement_type not in REPORT_STATEMENT_TYPES:
        result.add_error(
            f"Invalid statementType: {statement_type}. "
            f"Valid types are: {', '.join(REPORT_STATEMENT_TYPES)}"
        )


def _validate_variables(
    data: Mapping[str, Any], result: ConfigValidationResult
) -> set[str]:
    """Validate each variable; returns the set of defined names."""
    variables = data.get("variables")
    if variables is None:
        return set()
    if not isinstance(variables, Mapping):
        result.add_error("Variables must be an object")
        return set()
    for name, definition in variables.items():
        if isinstance(definition, VariableDefinition):
            definition = definition.to_dict()
        for err in validate_variable(definition):
            result.add_error(f"Variable '{name}': {err}")
    return set(variables.keys())


def _validate_layout(
    data: Mapping[str, Any],
    variables: set[str],
    result: ConfigValidationResult,
) -> None:
    layout = data.get("layout")
    if not isinstance(layout, list):
        result.add_error("Report definition must have a layout array")
        return
    if not layout:
        result.add_warning("Layout has no items")
        return

    orders: set[int] = set()
    for index, item in enumerate(layout):
        if not isinstance(item, Mapping):
            result.add_error(f"Layout item {index} must be an object")
            continue
        order = item.get("order")
        if not isinstance(order, int) or isinstance(order, bool):
            result.add_error(f"Layout item {index} must have an integer order")
            continue
        if order in orders:
            result.add_error(f"Duplicate layout order: {order}")
        orders.add(order)

    for item in layout:
        if isinstance(item, Mapping) and isinstance(item.get("order"), int):
            _validate_layout_item(item, variables, orders, result)


def _validate_layout_item(
    item: Mapping[str, Any],
    variables: set[str],
    orders: set[int],
    result: ConfigValidationResult,
) -> None:
    order = item["order"]
    where = f"Layout item {order}"

    try:
        item_type = LayoutType(item.get("type"))
    except ValueError:
        valid = ", ".join(t.value for t in LayoutType)
        result.add_error(f"{where}: invalid type '{item.get('type')}'. Valid types are: {valid}")
        return

    style = item.get("style")
    if style is not None and style not in {s.value for s in RowStyle}:
        result.add_error(f"{where}: invalid style '{style}'")

    fmt = item.get("format")
    if isinstance(fmt, Mapping):
        fmt = fmt.get("type")
    if fmt is not None and fmt not in {f.value for f in FormatType}:
        result.add_error(f"{where}: invalid format '{fmt}'")

    if item_type is not LayoutType.SPACER and not item.get("label"):
        result.add_warning(f"{where}: has no label")

    if item_type is LayoutType.VARIABLE:
        name = item.get("variable")
        if not name:
            result.add_error(f"{where}: variable item must name a variable")
        elif name not in variables:
            result.add_error(f"{where}: references undefined variable '{name}'")

    elif item_type is LayoutType.CALCULATED:
        expression = item.get("expression")
        if not expression or not isinstance(expression, str):
            result.add_error(f"{where}: calculated item must have an expression")
            return
        errors = validate_expression(expression)
        for err in errors:
            result.add_error(f"{where}: {err} (expression: {expression})")
        if errors:
            return
        deps = get_dependencies(expression)
        for name in sorted(deps.variables - variables):
            result.add_error(f"{where}: references undefined variable '{name}'")
        for ref in sorted(deps.orders):
            if ref not in orders:
                result.add_error(f"{where}: references unknown order @{ref}")
            elif ref >= order:
                result.add_warning(
                    f"{where}: references @{ref}, which is not computed before it"
                )

    elif item_type is LayoutType.CATEGORY:
        spec = item.get("filter")
        if spec is None:
            result.add_error(f"{where}: category item must have a filter")
            return
        validation = validate_filter(spec)
        for err in validation.errors:
            result.add_error(f"{where}: {err}")

    elif item_type is LayoutType.SUBTOTAL:
        start, end = item.get("from"), item.get("to")
        if (start is None) != (end is None):
            result.add_error(f"{where}: subtotal needs both 'from' and 'to' or neither")
        elif start is not None:
            if not all(isinstance(v, int) and not isinstance(v, bool) for v in (start, end)):
                result.add_error(f"{where}: subtotal range bounds must be integers")
            elif start > end:
                result.add_error(f"{where}: subtotal range from {start} exceeds to {end}")


def _validate_formatting(
    data: Mapping[str, Any], result: ConfigValidationResult
) -> None:
    formatting = data.get("formatting")
    if formatting is None:
        return
    if not isinstance(formatting, Mapping):
        result.add_error("Formatting must be an object")
        return
    for key, options in formatting.items():
        if key not in {f.value for f in FormatType}:
            result.add_warning(f"Formatting override for unknown format '{key}'")
        elif not isinstance(options, Mapping):
            result.add_error(f"Formatting override for '{key}' must be an object")
