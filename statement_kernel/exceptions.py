"""
Typed Exception Hierarchy for the Statement Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Report generation fails for exactly two reasons: a bad definition or bad
data. Callers (the UI layer, export jobs) need to tell these apart without
parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (report id, variable name, field)

Example:
    try:
        generator.generate_from_definition("income-default")
    except VariableNotFoundError as e:
        show_error(f"Report {e.report_id} references {e.variable_name}")
    except StatementEngineError as e:
        show_error(e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StatementEngineError (base)
    |
    +-- ValidationError
    |   +-- FilterValidationError
    |   +-- VariableDefinitionError
    |   +-- ExpressionSyntaxError
    |   +-- ReportDefinitionError
    |   +-- InvalidPeriodOptionError
    |   +-- InvalidStatementTypeError
    |
    +-- ResolutionError
    |   +-- VariableNotFoundError
    |   +-- VariableResolutionError
    |   +-- ExpressionEvaluationError
    |   +-- UnsupportedAggregateError
    |
    +-- DataError
    |   +-- MissingDataError
    |   +-- EmptyDataError
    |
    +-- RegistryError
        +-- DuplicateReportError
        +-- ReportNotFoundError

    LTMAvailabilityWarning (UserWarning) -- non-fatal, computation proceeds

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                        | When Raised
------------|-----------------------------|---------------------------------------
Validation  | INVALID_FILTER              | Filter spec fails validation
            | INVALID_VARIABLE_DEFINITION | Variable lacks filter/aggregate
            | EXPRESSION_SYNTAX           | Expression cannot be tokenized/parsed
            | INVALID_REPORT_DEFINITION   | Definition or layout item malformed
            | INVALID_PERIOD_OPTION       | Period option string unparseable
            | INVALID_STATEMENT_TYPE      | Unknown statement type
------------|-----------------------------|---------------------------------------
Resolution  | VARIABLE_NOT_FOUND          | Layout references unresolved variable
            | VARIABLE_RESOLUTION_FAILED  | Variable aggregation failed
            | EXPRESSION_EVALUATION       | Undefined reference, division by zero
            | UNSUPPORTED_AGGREGATE       | Aggregate not in the supported set
------------|-----------------------------|---------------------------------------
Data        | MISSING_DATA                | Required movements table missing
            | EMPTY_DATA                  | Table has no rows for the request
------------|-----------------------------|---------------------------------------
Registry    | DUPLICATE_REPORT            | Report id already registered
            | REPORT_NOT_FOUND            | Report id not registered

All failures stem from definitions or data, never from transient
conditions, so nothing in this hierarchy is retryable.
===============================================================================
"""


class StatementEngineError(Exception):
    """
    Base exception for all statement engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STATEMENT_ENGINE_ERROR"


# Validation exceptions


class ValidationError(StatementEngineError):
    """Base exception for invalid filters, variables and definitions."""

    code: str = "VALIDATION_ERROR"


class FilterValidationError(ValidationError):
    """Filter specification failed validation."""

    code: str = "INVALID_FILTER"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            f"Invalid filter specification: {', '.join(self.errors)}"
        )


class VariableDefinitionError(ValidationError):
    """Variable definition is missing fields or names an unknown aggregate."""

    code: str = "INVALID_VARIABLE_DEFINITION"

    def __init__(self, variable_name: str | None, errors: list[str]):
        self.variable_name = variable_name
        self.errors = list(errors)
        label = variable_name or "<anonymous>"
        super().__init__(
            f"Invalid variable definition '{label}': {', '.join(self.errors)}"
        )


class ExpressionSyntaxError(ValidationError):
    """Expression could not be tokenized or parsed."""

    code: str = "EXPRESSION_SYNTAX"

    def __init__(self, expression: str, reason: str, position: int | None = None):
        self.expression = expression
        self.reason = reason
        self.position = position
        super().__init__(f"Invalid expression '{expression}': {reason}")


class ReportDefinitionError(ValidationError):
    """Report definition or one of its layout items is malformed."""

    code: str = "INVALID_REPORT_DEFINITION"

    def __init__(self, report_id: str, errors: list[str]):
        self.report_id = report_id
        self.errors = list(errors)
        super().__init__(
            f"Invalid report definition '{report_id}': {'; '.join(self.errors)}"
        )


class InvalidPeriodOptionError(ValidationError):
    """Period option string cannot be parsed."""

    code: str = "INVALID_PERIOD_OPTION"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid period option '{value}': {reason}")


class InvalidStatementTypeError(ValidationError):
    """Statement type is not one of the supported types."""

    code: str = "INVALID_STATEMENT_TYPE"

    def __init__(self, statement_type: str, expected: str):
        self.statement_type = statement_type
        self.expected = expected
        super().__init__(
            f"Invalid statement type '{statement_type}', expected {expected}"
        )


# Resolution exceptions


class ResolutionError(StatementEngineError):
    """Base exception for references that cannot be resolved."""

    code: str = "RESOLUTION_ERROR"


class VariableNotFoundError(ResolutionError):
    """A layout item references a variable that was never resolved."""

    code: str = "VARIABLE_NOT_FOUND"

    def __init__(self, variable_name: str, report_id: str):
        self.variable_name = variable_name
        self.report_id = report_id
        super().__init__(
            f"Variable '{variable_name}' not found in report '{report_id}'"
        )


class VariableResolutionError(ResolutionError):
    """Resolving the report's variables failed."""

    code: str = "VARIABLE_RESOLUTION_FAILED"

    def __init__(self, report_id: str, reason: str):
        self.report_id = report_id
        self.reason = reason
        super().__init__(
            f"Variable resolution failed for report '{report_id}': {reason}"
        )


class ExpressionEvaluationError(ResolutionError):
    """Calculated layout item could not be evaluated."""

    code: str = "EXPRESSION_EVALUATION"

    def __init__(self, expression: str, reason: str, order: int | None = None):
        self.expression = expression
        self.reason = reason
        self.order = order
        where = f" (order {order})" if order is not None else ""
        super().__init__(
            f"Failed to evaluate expression '{expression}'{where}: {reason}"
        )


class UnsupportedAggregateError(ResolutionError):
    """Aggregate function is not supported."""

    code: str = "UNSUPPORTED_AGGREGATE"

    def __init__(self, aggregate: str):
        self.aggregate = aggregate
        super().__init__(f"Unsupported aggregate function: {aggregate}")


# Data exceptions


class DataError(StatementEngineError):
    """Base exception for missing or unusable input data."""

    code: str = "DATA_ERROR"


class MissingDataError(DataError):
    """A required input table was not supplied."""

    code: str = "MISSING_DATA"

    def __init__(self, what: str, context: str = ""):
        self.what = what
        self.context = context
        suffix = f" ({context})" if context else ""
        super().__init__(f"Required data not loaded: {what}{suffix}")


class EmptyDataError(DataError):
    """Input table has no rows for the requested statement."""

    code: str = "EMPTY_DATA"

    def __init__(self, what: str, statement_type: str | None = None):
        self.what = what
        self.statement_type = statement_type
        suffix = f" for statement type {statement_type}" if statement_type else ""
        super().__init__(f"No rows available in {what}{suffix}")


# Registry exceptions


class RegistryError(StatementEngineError):
    """Base exception for report registry errors."""

    code: str = "REGISTRY_ERROR"


class DuplicateReportError(RegistryError):
    """A report with the same id is already registered."""

    code: str = "DUPLICATE_REPORT"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report already registered: {report_id}")


class ReportNotFoundError(RegistryError):
    """No report is registered under the given id."""

    code: str = "REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


# Warnings


class LTMAvailabilityWarning(UserWarning):
    """
    The rolling window is missing one or more (year, period) slots.

    Non-fatal: the statement is still produced from the partial data.
    """

    code: str = "LTM_INCOMPLETE"
