"""
Configuration Loader (``statement_config.loader``).

Responsibility
--------------
Loads the engine configuration and report-definition files (YAML or
JSON) and parses them into typed objects: ``EngineConfig`` from
``statement_config.schema`` and ``ReportDefinition`` from
``statement_engine.models``.  This is the only module in the project that
touches the filesystem; the engine itself consumes already-loaded objects.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by
``statement_engine.registry`` (``load_file`` / ``load_directory``) and by
callers that build an ``EngineConfig`` before generating statements.

Invariants enforced
-------------------
* Report definitions are validated (``validate_report_definition``)
  before they are parsed; an invalid file is never turned into a
  ``ReportDefinition``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of a
  definition for change detection.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Malformed JSON  -> ``json.JSONDecodeError`` propagates.
* Structurally invalid definition  -> ``ReportDefinitionError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from statement_config.schema import EngineConfig
from statement_config.validator import validate_report_definition
from statement_engine.models import ReportDefinition
from statement_kernel.exceptions import ReportDefinitionError
from statement_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
BUNDLED_REPORTS_DIR = Path(__file__).parent / "reports"

_DEFINITION_SUFFIXES = (".yaml", ".yml", ".json")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Preconditions:
        - ``path`` must point to an existing, readable YAML file.
    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_json_file(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_definition_data(path: Path) -> dict[str, Any]:
    """Read a report-definition file, choosing the parser by suffix."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        return load_json_file(path)
    return load_yaml_file(path)


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """
    Load an ``EngineConfig`` from YAML.

    With no path the bundled ``defaults.yaml`` is used.  Keys absent from
    the file keep their dataclass defaults.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(config_path)
    engine_data = data.get("engine", data)
    logger.info(
        "engine_config_loaded",
        extra={"path": str(config_path), "keys": sorted(engine_data.keys())},
    )
    return EngineConfig.from_dict(engine_data)


def parse_report_definition(data: Mapping[str, Any]) -> ReportDefinition:
    """
    Validate and parse a report definition mapping.

    Raises:
        ReportDefinitionError: listing every validation error found.
    """
    result = validate_report_definition(data)
    report_id = "unknown"
    if isinstance(data, Mapping):
        report_id = str(data.get("reportId") or "unknown")
    if not result.is_valid:
        raise ReportDefinitionError(report_id, result.errors)
    for warning in result.warnings:
        logger.warning(
            "report_definition_warning",
            extra={"report_id": report_id, "warning": warning},
        )
    return ReportDefinition.from_dict(data)


def load_report_definition_file(path: Path) -> ReportDefinition:
    """Load, validate and parse one report-definition file."""
    data = load_definition_data(path)
    definition = parse_report_definition(data)
    logger.info(
        "report_definition_loaded",
        extra={
            "path": str(path),
            "report_id": definition.report_id,
            "statement_type": definition.statement_type,
            "layout_items": len(definition.layout),
        },
    )
    return definition


def load_report_directory(directory: Path) -> list[ReportDefinition]:
    """
    Load every report definition in a directory, sorted by file name.

    Files with other suffixes are ignored.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Report directory not found: {directory}")
    definitions = [
        load_report_definition_file(path)
        for path in sorted(directory.iterdir())
        if path.is_file() and path.suffix.lower() in _DEFINITION_SUFFIXES
    ]
    logger.info(
        "report_directory_loaded",
        extra={"directory": str(directory), "count": len(definitions)},
    )
    return definitions


def compute_checksum(data: Mapping[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
