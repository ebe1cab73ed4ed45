"""Data models for coverage reports and verdicts."""

from covcheck.models.coverage import (
    CoverageRatio,
    CoverageReport,
    CoverageUnit,
    Metric,
    MetricShortfall,
    Thresholds,
    Verdict,
    VerdictStatus,
)

__all__ = [
    "CoverageRatio",
    "CoverageReport",
    "CoverageUnit",
    "Metric",
    "MetricShortfall",
    "Thresholds",
    "Verdict",
    "VerdictStatus",
]
