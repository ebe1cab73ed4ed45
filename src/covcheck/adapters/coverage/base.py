"""Base class for coverage tool adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from covcheck.models.coverage import CoverageReport


@dataclass
class CoverageRun:
    """Raw output captured from a coverage tool's summary command."""

    report_text: str
    """The summary table exactly as the tool printed it (may contain ANSI colour)."""

    stderr: str = ""
    """Anything the tool wrote to standard error."""


class CoverageAdapter(ABC):
    """Abstract base class for coverage tool adapters.

    An adapter knows how to drive an instrumented test run for a project and
    how to turn the tool's textual summary into a CoverageReport.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'llvm-cov')."""

    @property
    @abstractmethod
    def language(self) -> str:
        """Primary language (e.g. 'rust')."""

    @abstractmethod
    def detect(self, project_path: Path) -> bool:
        """Return True if this coverage tool can be used in project_path."""

    @abstractmethod
    async def run_coverage(self, project_path: Path, *, timeout: float = 600.0) -> CoverageRun:
        """Run the instrumented tests and capture the coverage summary.

        Args:
            project_path: Root of the project to collect coverage for.
            timeout: Maximum seconds to wait for each tool invocation.

        Returns:
            The raw summary output of the coverage tool.

        Raises:
            ToolError: If any tool is missing, fails, or times out.
        """

    @abstractmethod
    def parse_report(self, text: str) -> CoverageReport:
        """Parse the tool's summary text into a CoverageReport.

        Raises:
            ParseError: If the text is not a complete summary table.
        """

    def parse_coverage_file(self, coverage_file: Path) -> CoverageReport:
        """Parse a saved summary file into a CoverageReport."""
        return self.parse_report(coverage_file.read_text(encoding="utf-8"))
