"""
Tests for configuration and report-definition loading.

Files are written to ``tmp_path``; the bundled defaults and reports are
loaded from the installed package.
"""

import json
import logging
from decimal import Decimal

import pytest
import yaml

from statement_config.loader import (
    BUNDLED_REPORTS_DIR,
    DEFAULT_CONFIG_PATH,
    compute_checksum,
    load_definition_data,
    load_engine_config,
    load_report_definition_file,
    load_report_directory,
    load_yaml_file,
    parse_report_definition,
)
from statement_engine.models import LayoutType
from statement_kernel.exceptions import ReportDefinitionError

DEFINITION = {
    "reportId": "tmp_report",
    "name": "Temporary",
    "version": "1",
    "statementType": "balance",
    "variables": {"cash": {"filter": {"code1": "40"}, "aggregate": "sum"}},
    "layout": [
        {"order": 10, "type": "variable", "label": "Cash", "variable": "cash"},
        {"order": 20, "type": "spacer"},
    ],
}


def _write_yaml(path, data):
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return path


class TestLoadEngineConfig:

    def test_bundled_defaults(self):
        config = load_engine_config()
        assert config.balance_tolerance == Decimal("0.01")
        assert config.ltm_months == 12
        assert config.classification.liability_equity_code_range == (60, 90)
        assert config.special_rows.section_header_labels == ("Activa", "Passiva")
        assert config.formatting.currency_symbol == "€"

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = _write_yaml(tmp_path / "engine.yaml", {"engine": {"ltm_months": 6}})
        config = load_engine_config(path)
        assert config.ltm_months == 6
        assert config.default_detail_level == 5

    def test_top_level_keys_without_engine_section(self, tmp_path):
        path = _write_yaml(tmp_path / "engine.yaml", {"balance_tolerance": "1.5"})
        assert load_engine_config(path).balance_tolerance == Decimal("1.5")

    def test_invalid_value_rejected(self, tmp_path):
        path = _write_yaml(tmp_path / "engine.yaml", {"engine": {"ltm_months": 0}})
        with pytest.raises(ValueError):
            load_engine_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_file(path) == {}


class TestLoadDefinitions:

    def test_yaml_file(self, tmp_path):
        path = _write_yaml(tmp_path / "report.yaml", DEFINITION)
        definition = load_report_definition_file(path)
        assert definition.report_id == "tmp_report"
        assert definition.layout[1].type is LayoutType.SPACER

    def test_json_file(self, tmp_path):
        path = tmp_path / "report.json"
        path.write_text(json.dumps(DEFINITION), encoding="utf-8")
        assert load_definition_data(path) == DEFINITION
        assert load_report_definition_file(path).statement_type == "balance"

    def test_invalid_file(self, tmp_path):
        bad = {**DEFINITION, "statementType": "weekly"}
        path = _write_yaml(tmp_path / "bad.yaml", bad)
        with pytest.raises(ReportDefinitionError) as exc_info:
            load_report_definition_file(path)
        assert exc_info.value.report_id == "tmp_report"
        assert exc_info.value.code == "INVALID_REPORT_DEFINITION"

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("layout: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_report_definition_file(path)

    def test_warnings_logged(self, caplog):
        caplog.set_level(logging.WARNING, logger="statement_engine")
        data = {**DEFINITION, "layout": [{"order": 10, "type": "variable", "variable": "cash"}]}
        parse_report_definition(data)
        warnings = [r for r in caplog.records if r.getMessage() == "report_definition_warning"]
        assert len(warnings) == 1
        assert warnings[0].warning == "Layout item 10: has no label"

    def test_directory(self, tmp_path):
        _write_yaml(tmp_path / "b.yaml", {**DEFINITION, "reportId": "b"})
        (tmp_path / "a.json").write_text(json.dumps({**DEFINITION, "reportId": "a"}), encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        definitions = load_report_directory(tmp_path)
        assert [d.report_id for d in definitions] == ["a", "b"]

    def test_bundled_directory(self):
        ids = [d.report_id for d in load_report_directory(BUNDLED_REPORTS_DIR)]
        assert ids == ["balance_default", "cashflow_default", "income_default"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_report_directory(tmp_path / "absent")


class TestChecksum:

    def test_key_order_irrelevant(self):
        reordered = dict(reversed(list(DEFINITION.items())))
        assert compute_checksum(reordered) == compute_checksum(DEFINITION)

    def test_changes_detected(self):
        changed = {**DEFINITION, "version": "2"}
        assert compute_checksum(changed) != compute_checksum(DEFINITION)
