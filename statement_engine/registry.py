"""
Report definition registry.

Holds the report definitions available to a generator, keyed by report id,
with one optional default per statement type.  The registry is an explicit
instance passed to the generator and renderer; there is no module-level
singleton.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from statement_config.loader import (
    compute_checksum,
    load_report_definition_file,
    load_report_directory,
    parse_report_definition,
)
from statement_engine.models import REPORT_STATEMENT_TYPES, ReportDefinition
from statement_kernel.exceptions import DuplicateReportError, ReportNotFoundError
from statement_kernel.logging_config import get_logger

logger = get_logger("engine.registry")


class ReportRegistry:
    """
    Registry for report definitions.

    Provides:
    - Registration by report id (duplicates rejected)
    - Lookup by id and by statement type
    - One default report per statement type

    Usage:
        registry = ReportRegistry()
        registry.load_directory(BUNDLED_REPORTS_DIR)
        report = registry.get_default_report("income")
    """

    def __init__(self) -> None:
        self._reports: dict[str, ReportDefinition] = {}
        self._defaults: dict[str, str] = {}

    # ---------------------------------------------------------------------
    # Registration
    # ---------------------------------------------------------------------

    def register(
        self,
        definition: ReportDefinition | Mapping[str, Any],
        is_default: bool = False,
    ) -> ReportDefinition:
        """
        Register a report definition.

        Args:
            definition: A ``ReportDefinition`` or its mapping form; mappings
                are validated before registration.
            is_default: Make this the default report for its statement type.
                The first report registered for a type becomes its default
                either way.

        Raises:
            DuplicateReportError: If the report id is already registered.
            ReportDefinitionError: If a mapping fails validation.
        """
        if not isinstance(definition, ReportDefinition):
            definition = parse_report_definition(definition)

        if definition.report_id in self._reports:
            logger.warning(
                "report_already_registered",
                extra={"report_id": definition.report_id},
            )
            raise DuplicateReportError(definition.report_id)

        self._reports[definition.report_id] = definition
        statement_type = definition.statement_type
        if is_default or statement_type not in self._defaults:
            self._defaults[statement_type] = definition.report_id

        logger.info(
            "report_registered",
            extra={
                "report_id": definition.report_id,
                "statement_type": statement_type,
                "version": definition.version,
                "is_default": self._defaults.get(statement_type) == definition.report_id,
            },
        )
        return definition

    def unregister(self, report_id: str) -> bool:
        """
        Remove a report.  If it was a default, the next remaining report of
        the same statement type (registration order) becomes the default.

        Returns:
            True if the report was registered.
        """
        definition = self._reports.pop(report_id, None)
        if definition is None:
            return False

        statement_type = definition.statement_type
        if self._defaults.get(statement_type) == report_id:
            replacement = next(
                (r.report_id for r in self._reports.values()
                 if r.statement_type == statement_type),
                None,
            )
            if replacement is None:
                del self._defaults[statement_type]
            else:
                self._defaults[statement_type] = replacement

        logger.info("report_unregistered", extra={"report_id": report_id})
        return True

    def clear(self) -> None:
        self._reports.clear()
        self._defaults.clear()

    # ---------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------

    def get_report(self, report_id: str) -> ReportDefinition:
        """
        Raises:
            ReportNotFoundError: If no report has this id.
        """
        definition = self._reports.get(report_id)
        if definition is None:
            raise ReportNotFoundError(report_id)
        return definition

    def has_report(self, report_id: str) -> bool:
        return report_id in self._reports

    def get_reports_by_type(self, statement_type: str) -> list[ReportDefinition]:
        return [r for r in self._reports.values() if r.statement_type == statement_type]

    def get_all_reports(self) -> list[ReportDefinition]:
        return list(self._reports.values())

    def get_default_report(self, statement_type: str) -> ReportDefinition | None:
        report_id = self._defaults.get(statement_type)
        return self._reports.get(report_id) if report_id else None

    def set_default_report(self, statement_type: str, report_id: str) -> None:
        """
        Raises:
            ReportNotFoundError: If the report is unknown.
            ValueError: If the report belongs to another statement type.
        """
        definition = self.get_report(report_id)
        if definition.statement_type != statement_type:
            raise ValueError(
                f"Report {report_id} is a {definition.statement_type} report, "
                f"not {statement_type}"
            )
        self._defaults[statement_type] = report_id
        logger.info(
            "default_report_changed",
            extra={"statement_type": statement_type, "report_id": report_id},
        )

    def count(self) -> int:
        return len(self._reports)

    def get_statement_types(self) -> list[str]:
        """Statement types with at least one report, in canonical order."""
        present = {r.statement_type for r in self._reports.values()}
        ordered = [t for t in REPORT_STATEMENT_TYPES if t in present]
        return ordered + sorted(present - set(ordered))

    def export_state(self) -> dict[str, Any]:
        """Snapshot of the registry contents for diagnostics."""
        return {
            "report_count": self.count(),
            "defaults": dict(self._defaults),
            "reports": [
                {
                    "report_id": r.report_id,
                    "name": r.name,
                    "version": r.version,
                    "statement_type": r.statement_type,
                    "checksum": compute_checksum(r.to_dict()),
                }
                for r in self._reports.values()
            ],
        }

    # ---------------------------------------------------------------------
    # Loading
    # ---------------------------------------------------------------------

    def load_file(self, path: Path | str, is_default: bool = False) -> ReportDefinition:
        return self.register(load_report_definition_file(Path(path)), is_default=is_default)

    def load_directory(self, directory: Path | str) -> list[ReportDefinition]:
        """Register every definition file in ``directory`` (sorted by name)."""
        loaded = [self.register(d) for d in load_report_directory(Path(directory))]
        logger.info(
            "report_directory_loaded",
            extra={"directory": str(directory), "report_count": len(loaded)},
        )
        return loaded

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, report_id: object) -> bool:
        return report_id in self._reports
