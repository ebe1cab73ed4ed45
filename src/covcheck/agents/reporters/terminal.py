"""Terminal reporter with rich output formatting and exit-status mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from covcheck.models.coverage import Metric, VerdictStatus

if TYPE_CHECKING:
    from covcheck.models.coverage import (
        CoverageRatio,
        CoverageReport,
        CoverageUnit,
        Verdict,
    )

console = Console()
err_console = Console(stderr=True)

# Process exit statuses
EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_UNEVALUATED = 2
EXIT_CONFIG_ERROR = 3

_HIGH_COVERAGE = 80.0
_MEDIUM_COVERAGE = 50.0


def exit_status(verdict: Verdict) -> int:
    """Map a verdict to the process exit status (0 pass, 1 fail)."""
    return EXIT_PASS if verdict.status is VerdictStatus.PASS else EXIT_FAIL


def _ratio_dict(ratio: CoverageRatio) -> dict[str, Any]:
    return {
        "covered": ratio.covered,
        "total": ratio.total,
        "percent": round(ratio.percentage, 2),
    }


def _unit_dict(unit: CoverageUnit) -> dict[str, Any]:
    return {
        "name": unit.name,
        "lines": _ratio_dict(unit.lines),
        "branches": _ratio_dict(unit.branches),
    }


def verdict_to_dict(verdict: Verdict, report: CoverageReport | None = None) -> dict[str, Any]:
    """Serialize a verdict (and optionally the parsed table) for JSON output."""
    result: dict[str, Any] = {
        "status": verdict.status.value,
        "line": _ratio_dict(verdict.line),
        "branch": _ratio_dict(verdict.branch),
        "thresholds": {
            "min_line_coverage": verdict.thresholds.min_line_coverage,
            "min_branch_coverage": verdict.thresholds.min_branch_coverage,
        },
        "failures": [
            {
                "metric": failure.metric.value,
                "actual_percent": round(failure.actual.percentage, 2),
                "required_percent": round(float(failure.required * 100), 2),
                "shortfall_points": round(failure.shortfall_points, 2),
            }
            for failure in verdict.failures
        ],
    }
    if report is not None:
        result["units"] = [_unit_dict(unit) for unit in report.units]
        if report.aggregate is not None:
            result["total"] = _unit_dict(report.aggregate)
    return result


class CLIReporter:
    """Rich terminal output reporter for coverage verdicts."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console
        self.err_console = err_console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        self.err_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)

    def print_warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        self.err_console.print(f"[yellow]⚠[/yellow] {escape(message)}", highlight=False)

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_raw_report(self, text: str, stderr: str = "") -> None:
        """Echo the coverage tool's own table, keeping its ANSI colours."""
        self.console.print(Text.from_ansi(text.rstrip("\n")))
        if stderr.strip():
            self.err_console.print(Text.from_ansi(stderr.rstrip("\n")))

    def print_coverage_table(self, report: CoverageReport, verdict: Verdict) -> None:
        """Print the parsed per-file rows and totals as a table."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Filename", style="bold")
        table.add_column("Lines", justify="right")
        table.add_column("Missed Lines", justify="right")
        table.add_column("Cover", justify="right")
        table.add_column("Branches", justify="right")
        table.add_column("Missed Branches", justify="right")
        table.add_column("Cover", justify="right")

        for unit in report.units:
            table.add_row(
                escape(unit.name),
                *self._ratio_cells(unit.lines),
                *self._ratio_cells(unit.branches),
            )

        line_color = "red" if verdict.failure_for(Metric.LINE) else "green"
        branch_color = "red" if verdict.failure_for(Metric.BRANCH) else "green"

        table.add_section()
        table.add_row(
            "[bold]TOTAL[/bold]",
            *self._ratio_cells(verdict.line, line_color),
            *self._ratio_cells(verdict.branch, branch_color),
        )

        self.console.print(table)

    def print_verdict(self, verdict: Verdict) -> None:
        """Print the pass line, or one error line per failing metric."""
        if verdict.passed:
            self.print_success("SUCCESS - All coverage requirements met")
            return
        for failure in verdict.failures:
            self.print_error(failure.describe())

    def _ratio_cells(self, ratio: CoverageRatio, color: str | None = None) -> tuple[str, str, str]:
        pct = ratio.percentage
        color = color or self._get_coverage_color(pct)
        pct_cell = f"[{color}]{pct:.2f}%[/{color}]" if ratio.total else "-"
        return str(ratio.total), str(ratio.missed), pct_cell

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        if percentage >= _HIGH_COVERAGE:
            return "green"
        if percentage >= _MEDIUM_COVERAGE:
            return "yellow"
        return "red"


# Singleton instance for easy import
reporter = CLIReporter()
