"""CLI tests via click's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from roofcalc.cli_core import main
from roofcalc.project import scaffold_project


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    return scaffold_project(tmp_path / "proj")


class TestEval:
    def test_eval_with_set(self, runner) -> None:
        result = runner.invoke(main, ["eval", "SQ*1.1", "--set", "SQ=25"])
        assert result.exit_code == 0
        assert result.output.strip() == "27.5"

    def test_eval_slope_override(self, runner) -> None:
        result = runner.invoke(main, ["eval", "F1SQ+F2SQ", "--set", "f1sq=10", "--set", "F2SQ=5"])
        assert result.exit_code == 0
        assert result.output.strip() == "15"

    def test_eval_vars_file(self, runner, tmp_path: Path) -> None:
        path = tmp_path / "vars.yaml"
        path.write_text("sq: 20\nslopes:\n  f1: {sq: 8}\n")
        result = runner.invoke(main, ["eval", "SQ-F1SQ", "--vars", str(path), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"formula": "SQ-F1SQ", "value": 12.0}

    def test_eval_unknown_variable_exit_2(self, runner) -> None:
        result = runner.invoke(main, ["eval", "FOO*2"])
        assert result.exit_code == 2
        assert "Unknown variable" in result.output

    def test_eval_division_by_zero_json(self, runner) -> None:
        result = runner.invoke(main, ["eval", "SQ/HIP", "--set", "SQ=10", "--json"])
        assert result.exit_code == 2
        assert json.loads(result.output)["kind"] == "division_by_zero"

    def test_eval_bad_set(self, runner) -> None:
        result = runner.invoke(main, ["eval", "SQ", "--set", "SQ"])
        assert result.exit_code == 1
        assert "Invalid --set format" in result.output

    def test_eval_unknown_set_name(self, runner) -> None:
        result = runner.invoke(main, ["eval", "SQ", "--set", "BOGUS=1"])
        assert result.exit_code == 1
        assert "Invalid variables" in result.output


class TestValidate:
    def test_valid(self, runner) -> None:
        result = runner.invoke(main, ["validate", "(EAVE+RAKE)*1.1"])
        assert result.exit_code == 0
        assert "OK: (EAVE + RAKE) × 1.1" in result.output
        assert "Variables: EAVE, RAKE" in result.output

    def test_invalid_exit_2(self, runner) -> None:
        result = runner.invoke(main, ["validate", "SQ++5", "--json"])
        assert result.exit_code == 2
        payload = json.loads(result.output)
        assert payload["valid"] is False
        assert payload["required_variables"] == []


class TestVariables:
    def test_json(self, runner) -> None:
        result = runner.invoke(main, ["variables", "--length", "40", "--width", "30", "--pitch", "6", "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["SQ"] == 13.42
        assert payload["slopes"]["F1"]["SQ"] == 6.71

    def test_text(self, runner) -> None:
        result = runner.invoke(main, ["variables", "--length", "40", "--width", "30", "--pitch", "6"])
        assert result.exit_code == 0
        assert "13.42 SQ" in result.output

    def test_missing_option(self, runner) -> None:
        result = runner.invoke(main, ["variables", "--length", "40"])
        assert result.exit_code != 0


class TestEstimate:
    def test_estimate_text(self, runner, project: Path) -> None:
        spec = project / "estimates" / "sample.yaml"
        result = runner.invoke(main, ["estimate", str(spec), "--project", str(project)])
        assert result.exit_code == 0, result.output
        assert "SHNG-ARCH" in result.output
        assert "(optional)" in result.output
        assert "Price:" in result.output

    def test_estimate_json_and_events(self, runner, project: Path) -> None:
        spec = project / "estimates" / "sample.yaml"
        result = runner.invoke(main, ["estimate", str(spec), "--project", str(project), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        estimate_id = payload["estimate_id"]
        assert len(payload["calculation"]["line_items"]) == 3
        assert payload["summary"]["optional_items_count"] == 1

        log = runner.invoke(main, ["estimate-log", str(project), estimate_id])
        assert log.exit_code == 0
        assert "estimate_started" in log.output
        assert "estimate_completed" in log.output

        events = runner.invoke(main, ["events", str(project), "--type", "estimate_completed"])
        assert events.exit_code == 0
        assert "estimate_started" not in events.output
        assert "estimate_completed" in events.output

    def test_invalid_spec(self, runner, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("lead_id: x\n")
        result = runner.invoke(main, ["estimate", str(path)])
        assert result.exit_code == 1
        assert "Invalid estimate spec" in result.output


class TestProjectCommands:
    def test_new(self, runner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["new", str(tmp_path / "roof")])
        assert result.exit_code == 0
        assert (tmp_path / "roof" / "roofcalc.yaml").exists()

    def test_new_existing(self, runner, project: Path) -> None:
        result = runner.invoke(main, ["new", str(project)])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_events_command_no_events(self, runner, project: Path) -> None:
        result = runner.invoke(main, ["events", str(project)])
        assert result.exit_code == 0
        assert "No events found" in result.output

    def test_estimate_log_no_events(self, runner, project: Path) -> None:
        result = runner.invoke(main, ["estimate-log", str(project), "nonexistent"])
        assert result.exit_code == 0
        assert "No events found" in result.output

    def test_events_level_filter(self, runner, project: Path) -> None:
        from roofcalc.logging.events import EventLevel, EventType, emit, estimate_event, set_project_dir

        set_project_dir(project)
        emit(estimate_event(EventType.variables_warning, EventLevel.info, "info msg"))
        emit(estimate_event(EventType.estimate_failed, EventLevel.error, "error msg"))

        result = runner.invoke(main, ["events", str(project), "--level", "error"])
        assert result.exit_code == 0
        assert "error msg" in result.output
        assert "info msg" not in result.output

    def test_version(self, runner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "roofcalc" in result.output
