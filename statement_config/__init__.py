"""
statement_config -- engine configuration and report-definition files.

Responsibility:
    Defines the ``EngineConfig`` schema, loads it and report definitions
    from YAML/JSON, and validates report definitions before they reach the
    renderer.  All file I/O of the project happens here.

Architecture position:
    Configuration -- build-time loading and validation.  Sits beside
    ``statement_engine``: the engine imports only ``schema``; the loader
    and validator import engine models and validators.
"""
