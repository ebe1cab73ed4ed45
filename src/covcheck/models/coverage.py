"""Coverage report models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction

from covcheck.errors import ConfigurationError

DEFAULT_MIN_LINE_COVERAGE = 1.0
DEFAULT_MIN_BRANCH_COVERAGE = 1.0

TOTALS_ROW_NAME = "TOTAL"


class Metric(Enum):
    """Coverage dimension that is evaluated against a threshold."""

    LINE = "line"
    BRANCH = "branch"


class VerdictStatus(Enum):
    """Outcome of evaluating a report against thresholds."""

    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class CoverageRatio:
    """A covered/total pair for one coverage dimension."""

    covered: int
    """Number of coverable items observed to execute."""

    total: int
    """Number of coverable items."""

    def __post_init__(self) -> None:
        if self.covered < 0 or self.total < 0:
            raise ValueError(
                f"coverage counts must be non-negative (got {self.covered}/{self.total})"
            )
        if self.covered > self.total:
            raise ValueError(f"covered count exceeds total ({self.covered}/{self.total})")

    @property
    def missed(self) -> int:
        """Number of coverable items never executed."""
        return self.total - self.covered

    @property
    def fraction(self) -> Fraction:
        """Exact coverage ratio in [0, 1]; an empty total counts as fully covered."""
        if self.total == 0:
            return Fraction(1)
        return Fraction(self.covered, self.total)

    @property
    def percentage(self) -> float:
        """Coverage percentage (0.0-100.0)."""
        return float(self.fraction * 100)

    def __add__(self, other: CoverageRatio) -> CoverageRatio:
        return CoverageRatio(self.covered + other.covered, self.total + other.total)


@dataclass(frozen=True)
class CoverageUnit:
    """One row of the coverage table: a source file or the totals row."""

    name: str
    lines: CoverageRatio
    branches: CoverageRatio
    functions: CoverageRatio | None = None
    regions: CoverageRatio | None = None
    instantiations: CoverageRatio | None = None


@dataclass(frozen=True)
class CoverageReport:
    """Parsed coverage table for a project.

    ``units`` keeps the per-file rows in report order.  ``aggregate`` is the
    designated totals row and is never one of ``units``.
    """

    units: tuple[CoverageUnit, ...] = ()
    aggregate: CoverageUnit | None = None

    def get_unit(self, name: str) -> CoverageUnit | None:
        """Return the per-file row called *name*, if any."""
        for unit in self.units:
            if unit.name == name:
                return unit
        return None


def _as_fraction(value: float) -> Fraction:
    # str() round-trips the decimal the user typed (0.95 -> 95/100).
    return Fraction(str(value))


@dataclass(frozen=True)
class Thresholds:
    """Minimum acceptable coverage ratios, each in [0.0, 1.0]."""

    min_line_coverage: float = DEFAULT_MIN_LINE_COVERAGE
    """Minimum line coverage ratio (default: 1.0, i.e. every line)."""

    min_branch_coverage: float = DEFAULT_MIN_BRANCH_COVERAGE
    """Minimum branch coverage ratio (default: 1.0, i.e. every branch)."""

    def __post_init__(self) -> None:
        for label, value in (
            ("minimum line coverage", self.min_line_coverage),
            ("minimum branch coverage", self.min_branch_coverage),
        ):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{label} must be a number (got: {value!r})", value=value)
            if math.isnan(value) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"{label} must be between 0.0 and 1.0 (got: {value})", value=value
                )

    def required(self, metric: Metric) -> Fraction:
        """Return the exact minimum ratio for *metric*."""
        if metric is Metric.LINE:
            return _as_fraction(self.min_line_coverage)
        return _as_fraction(self.min_branch_coverage)


@dataclass(frozen=True)
class MetricShortfall:
    """A metric that fell below its threshold."""

    metric: Metric
    actual: CoverageRatio
    required: Fraction

    @property
    def shortfall(self) -> Fraction:
        """Gap between required and actual ratio (0.01 == one percentage point)."""
        return self.required - self.actual.fraction

    @property
    def shortfall_points(self) -> float:
        """Gap in percentage points."""
        return float(self.shortfall * 100)

    def describe(self) -> str:
        """Return a one-line human-readable description.

        When both percentages round to the same text the raw counts are
        appended, so the line never reads "100.00% < required 100.00%"
        without saying what is missing.
        """
        actual = f"{self.actual.percentage:.2f}%"
        required = f"{float(self.required * 100):.2f}%"
        if actual == required:
            actual = (
                f"{actual} ({self.actual.covered}/{self.actual.total}, "
                f"{self.actual.missed} missed)"
            )
        return (
            f"{self.metric.value} coverage {actual} "
            f"< required {required} "
            f"(short by {self.shortfall_points:.2f} pp)"
        )


@dataclass(frozen=True)
class Verdict:
    """Pass/fail outcome for one invocation."""

    line: CoverageRatio
    branch: CoverageRatio
    thresholds: Thresholds
    failures: tuple[MetricShortfall, ...] = field(default_factory=tuple)

    @property
    def status(self) -> VerdictStatus:
        return VerdictStatus.FAIL if self.failures else VerdictStatus.PASS

    @property
    def passed(self) -> bool:
        return not self.failures

    def failure_for(self, metric: Metric) -> MetricShortfall | None:
        """Return the shortfall recorded for *metric*, if it failed."""
        for failure in self.failures:
            if failure.metric is metric:
                return failure
        return None
