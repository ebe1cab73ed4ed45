"""Tests for the covcheck CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from click.testing import CliRunner

from covcheck import __version__
from covcheck.adapters.coverage.base import CoverageRun
from covcheck.cli import cli
from covcheck.config import ENV_MIN_BRANCH_COVERAGE, ENV_MIN_LINE_COVERAGE
from covcheck.errors import ToolError

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clear_threshold_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_MIN_LINE_COVERAGE, raising=False)
    monkeypatch.delenv(ENV_MIN_BRANCH_COVERAGE, raising=False)


def _cargo_project(root: Path) -> Path:
    (root / "Cargo.toml").write_text('[package]\nname = "demo"\n', encoding="utf-8")
    return root


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "run" in result.output
    assert "check" in result.output


# ── check ─────────────────────────────────────────────────────────


class TestCheckCommand:
    def test_pass_from_file(self, tmp_path: Path, minimal_report: str) -> None:
        report_file = tmp_path / "coverage.txt"
        report_file.write_text(minimal_report, encoding="utf-8")
        result = CliRunner().invoke(
            cli,
            [
                "check",
                str(report_file),
                "--path",
                str(tmp_path),
                "--min-line-coverage",
                "0.80",
                "--min-branch-coverage",
                "0.75",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "All coverage requirements met" in result.output
        assert "src/main" in result.output

    def test_fail_names_only_line_metric(self, tmp_path: Path, minimal_report: str) -> None:
        result = CliRunner().invoke(
            cli,
            [
                "check",
                "--path",
                str(tmp_path),
                "--min-line-coverage",
                "0.81",
                "--min-branch-coverage",
                "0.75",
            ],
            input=minimal_report,
        )
        assert result.exit_code == 1
        assert "line coverage 80.00% < required 81.00% (short by 1.00 pp)" in result.output
        assert "branch coverage" not in result.output

    def test_default_thresholds_fail_partial_coverage(
        self, tmp_path: Path, color_report: str
    ) -> None:
        result = CliRunner().invoke(
            cli, ["check", "--path", str(tmp_path)], input=color_report
        )
        assert result.exit_code == 1
        assert "line coverage" in result.output
        assert "branch coverage" in result.output

    def test_default_thresholds_pass_full_coverage(
        self, tmp_path: Path, fully_covered_report: str
    ) -> None:
        result = CliRunner().invoke(
            cli, ["check", "--path", str(tmp_path)], input=fully_covered_report
        )
        assert result.exit_code == 0

    def test_thresholds_from_config_file(self, tmp_path: Path, minimal_report: str) -> None:
        (tmp_path / ".covcheck.yml").write_text(
            yaml.dump({"thresholds": {"min_line_coverage": 0.8, "min_branch_coverage": 0.75}}),
            encoding="utf-8",
        )
        result = CliRunner().invoke(
            cli, ["check", "--path", str(tmp_path)], input=minimal_report
        )
        assert result.exit_code == 0

    def test_missing_totals_row_cannot_be_evaluated(self, tmp_path: Path) -> None:
        text = "Filename  Lines  Missed Lines  Cover  Branches  Missed Branches  Cover\n"
        text += "src/a.rs  4  0  100.00%  2  0  100.00%\n"
        result = CliRunner().invoke(cli, ["check", "--path", str(tmp_path)], input=text)
        assert result.exit_code == 2
        assert "missing totals row" in result.output

    def test_undecodable_report_cannot_be_evaluated(self, tmp_path: Path) -> None:
        report_file = tmp_path / "coverage.txt"
        report_file.write_bytes(
            b"Filename  Lines  Missed Lines  Cover  Branches  Missed Branches  Cover\n"
            b"\xff\xfe junk\n"
        )
        result = CliRunner().invoke(cli, ["check", str(report_file), "--path", str(tmp_path)])
        assert result.exit_code == 2
        assert not isinstance(result.exception, UnicodeDecodeError)
        assert "Could not parse coverage report" in result.output

    def test_out_of_range_threshold_before_parsing(self, tmp_path: Path) -> None:
        with patch("covcheck.cli.parse_report_text") as mock_parse:
            result = CliRunner().invoke(
                cli,
                ["check", "--path", str(tmp_path), "--min-branch-coverage", "1.5"],
                input="not a report",
            )
        assert result.exit_code == 3
        assert "1.5" in result.output
        mock_parse.assert_not_called()

    def test_option_overrides_malformed_env_threshold(
        self, tmp_path: Path, minimal_report: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(ENV_MIN_LINE_COVERAGE, "lots")
        result = CliRunner().invoke(
            cli,
            [
                "check",
                "--path",
                str(tmp_path),
                "--min-line-coverage",
                "0.80",
                "--min-branch-coverage",
                "0.75",
            ],
            input=minimal_report,
        )
        assert result.exit_code == 0, result.output

    def test_malformed_env_threshold_without_option(
        self, tmp_path: Path, minimal_report: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(ENV_MIN_LINE_COVERAGE, "lots")
        result = CliRunner().invoke(
            cli, ["check", "--path", str(tmp_path)], input=minimal_report
        )
        assert result.exit_code == 3
        assert ENV_MIN_LINE_COVERAGE in result.output

    def test_invalid_config_file(self, tmp_path: Path, minimal_report: str) -> None:
        (tmp_path / ".covcheck.yml").write_text(
            yaml.dump({"thresholds": {"min_line_coverage": 2}}), encoding="utf-8"
        )
        result = CliRunner().invoke(
            cli, ["check", "--path", str(tmp_path)], input=minimal_report
        )
        assert result.exit_code == 3
        assert "thresholds.min_line_coverage" in result.output

    def test_json_output(self, tmp_path: Path, minimal_report: str) -> None:
        result = CliRunner().invoke(
            cli,
            ["check", "--path", str(tmp_path), "--json-output", "--min-line-coverage", "0.81"],
            input=minimal_report,
        )
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["status"] == "fail"
        assert [f["metric"] for f in data["failures"]] == ["line", "branch"]
        assert data["units"][0]["name"] == "src/main"

    def test_table_output(self, tmp_path: Path, full_report: str) -> None:
        result = CliRunner().invoke(
            cli,
            [
                "check",
                "--path",
                str(tmp_path),
                "--table",
                "--min-line-coverage",
                "0.9",
                "--min-branch-coverage",
                "0.9",
            ],
            input=full_report,
        )
        assert result.exit_code == 0
        assert "Coverage Summary" in result.output
        assert "TOTAL" in result.output


# ── run ───────────────────────────────────────────────────────────


class TestRunCommand:
    def test_run_passes(self, tmp_path: Path, fully_covered_report: str) -> None:
        _cargo_project(tmp_path)
        mock_run = AsyncMock(return_value=CoverageRun(report_text=fully_covered_report))
        with patch("covcheck.cli.LlvmCovAdapter.run_coverage", new=mock_run):
            result = CliRunner().invoke(cli, ["run", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "All coverage requirements met" in result.output
        mock_run.assert_awaited_once()

    def test_run_fails_below_threshold(self, tmp_path: Path, color_report: str) -> None:
        _cargo_project(tmp_path)
        mock_run = AsyncMock(return_value=CoverageRun(report_text=color_report))
        with patch("covcheck.cli.LlvmCovAdapter.run_coverage", new=mock_run):
            result = CliRunner().invoke(
                cli, ["run", str(tmp_path), "--min-line-coverage", "0.95"]
            )
        assert result.exit_code == 1
        assert "line coverage 92.31% < required 95.00%" in result.output

    def test_run_tool_failure(self, tmp_path: Path) -> None:
        _cargo_project(tmp_path)
        mock_run = AsyncMock(side_effect=ToolError("cargo test failed", stderr="panicked"))
        with patch("covcheck.cli.LlvmCovAdapter.run_coverage", new=mock_run):
            result = CliRunner().invoke(cli, ["run", str(tmp_path)])
        assert result.exit_code == 2
        assert "cargo test failed" in result.output

    def test_run_without_cargo_project(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["run", str(tmp_path)])
        assert result.exit_code == 2
        assert "Cargo.toml" in result.output

    def test_run_rejects_bad_threshold_before_running(self, tmp_path: Path) -> None:
        _cargo_project(tmp_path)
        mock_run = AsyncMock()
        with patch("covcheck.cli.LlvmCovAdapter.run_coverage", new=mock_run):
            result = CliRunner().invoke(
                cli, ["run", str(tmp_path), "--min-line-coverage", "-0.1"]
            )
        assert result.exit_code == 3
        mock_run.assert_not_awaited()

    def test_run_uses_configured_tools(self, tmp_path: Path, fully_covered_report: str) -> None:
        _cargo_project(tmp_path)
        (tmp_path / ".covcheck.yml").write_text(
            yaml.dump({"tools": {"cov": "llvm-cov-18"}, "report": {"timeout": 42}}),
            encoding="utf-8",
        )
        seen: dict[str, object] = {}

        async def fake_run(self: object, project_path: Path, *, timeout: float) -> CoverageRun:
            seen["cov_tool"] = getattr(self, "cov_tool", None)
            seen["timeout"] = timeout
            return CoverageRun(report_text=fully_covered_report)

        with patch("covcheck.cli.LlvmCovAdapter.run_coverage", new=fake_run):
            result = CliRunner().invoke(cli, ["run", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert seen == {"cov_tool": "llvm-cov-18", "timeout": 42.0}


# ── config ────────────────────────────────────────────────────────


class TestConfigCommands:
    def test_validate_ok(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_validate_errors(self, tmp_path: Path) -> None:
        (tmp_path / ".covcheck.yml").write_text(
            yaml.dump({"thresholds": {"min_branch_coverage": 1.5}}), encoding="utf-8"
        )
        result = CliRunner().invoke(cli, ["config", "validate", "--path", str(tmp_path)])
        assert result.exit_code == 3
        assert "thresholds.min_branch_coverage" in result.output

    def test_show(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "show", "--path", str(tmp_path)])
        assert result.exit_code == 0
        shown = yaml.safe_load(result.output)
        assert shown["thresholds"] == {"min_line_coverage": 1.0, "min_branch_coverage": 1.0}
        assert "raw" not in shown
