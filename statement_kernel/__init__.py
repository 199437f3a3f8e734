"""
statement_kernel -- shared foundations of the statement engine.

Holds the typed exception hierarchy, structured logging and the pure
domain types (movement records, ``Result``, injectable clock).  Nothing in
this package performs I/O or imports from ``statement_engine`` or
``statement_config``.
"""
