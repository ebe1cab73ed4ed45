"""Exception hierarchy shared by the parser, configuration and invoker."""

from __future__ import annotations


class CovcheckError(Exception):
    """Base class for every fatal covcheck condition."""


class ParseError(CovcheckError):
    """Raised when coverage report text cannot be turned into a CoverageReport."""

    def __init__(self, message: str, *, line_number: int | None = None, line: str = "") -> None:
        """Initialize with a reason and the offending line, when known.

        Args:
            message: Why parsing failed.
            line_number: 1-based line number in the report text.
            line: The offending line as it appeared in the report.
        """
        self.reason = message
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f"line {line_number}: {message}: {line.strip()!r}"
        super().__init__(message)


class ConfigurationError(CovcheckError):
    """Raised when a threshold or other setting is out of range."""

    def __init__(self, message: str, *, value: object = None) -> None:
        """Initialize with a reason and the rejected value."""
        super().__init__(message)
        self.value = value


class ToolError(CovcheckError):
    """Raised when an external tool (cargo, profdata, llvm-cov) fails."""

    def __init__(self, message: str, *, stdout: str = "", stderr: str = "") -> None:
        """Initialize with a reason and the captured output of the tool."""
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.stdout.strip():
            parts.append(self.stdout.rstrip())
        if self.stderr.strip():
            parts.append(self.stderr.rstrip())
        return "\n".join(parts)
