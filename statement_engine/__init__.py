"""
statement_engine -- report-definition evaluation and statement generation.

Responsibility:
    Turns normalized ledger movements plus a declarative report definition
    (or the account hierarchy itself) into ordered display rows forming a
    balance sheet, income statement or cash-flow statement.

Architecture position:
    Engine -- pure calculation layer.  Imports ``statement_kernel`` and the
    ``statement_config.schema`` dataclasses.  File loading lives in
    ``statement_config.loader``; this package performs no I/O.

    Import the sub-modules directly (``statement_engine.generator``,
    ``statement_engine.renderer``, ...).  The package namespace is kept
    empty because ``statement_config.validator`` reuses the engine's
    filter, variable and expression validators.

Invariants enforced:
    - Decimal-only arithmetic for every amount.
    - Determinism: identical inputs (and clock) give identical output.
"""
