"""Reporters for rendering verdicts."""

from covcheck.agents.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
