"""Coverage adapters for unified coverage reporting."""

from covcheck.adapters.coverage.base import CoverageAdapter, CoverageRun
from covcheck.adapters.coverage.llvm_cov import LlvmCovAdapter, parse_report_text

__all__ = [
    "CoverageAdapter",
    "CoverageRun",
    "LlvmCovAdapter",
    "parse_report_text",
]
