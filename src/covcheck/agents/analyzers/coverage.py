"""Coverage aggregation and threshold evaluation.

1. Aggregates a parsed report into overall line and branch ratios
2. Compares those ratios to the configured thresholds
3. Produces an immutable Verdict listing every metric that fell short

All comparisons use exact rational arithmetic, so 999/1000 never rounds up
to a passing 100%.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covcheck.models.coverage import CoverageRatio, Metric, MetricShortfall, Verdict

if TYPE_CHECKING:
    from collections.abc import Iterable
    from fractions import Fraction

    from covcheck.models.coverage import CoverageReport, Thresholds

logger = logging.getLogger(__name__)

_EMPTY = CoverageRatio(covered=0, total=0)


def aggregate(report: CoverageReport) -> tuple[CoverageRatio, CoverageRatio]:
    """Return the overall (line, branch) ratios of *report*.

    The designated totals row is used verbatim when present.  Otherwise the
    covered and total counts of every unit row are summed.
    """
    if report.aggregate is not None:
        return report.aggregate.lines, report.aggregate.branches

    logger.warning("Report has no totals row; summing %d unit rows", len(report.units))
    lines = _EMPTY
    branches = _EMPTY
    for unit in report.units:
        lines += unit.lines
        branches += unit.branches
    return lines, branches


def combine_reports(reports: Iterable[CoverageReport]) -> tuple[CoverageRatio, CoverageRatio]:
    """Return overall (line, branch) ratios across several reports (e.g. crates)."""
    lines = _EMPTY
    branches = _EMPTY
    for report in reports:
        report_lines, report_branches = aggregate(report)
        lines += report_lines
        branches += report_branches
    return lines, branches


def meets_threshold(ratio: CoverageRatio, required: Fraction) -> bool:
    """Return True when *ratio* is at least *required* (an exact fraction).

    Uses cross-multiplication: ``covered / total >= num / den`` becomes
    ``covered * den >= num * total``.  An empty total always passes.
    """
    return ratio.covered * required.denominator >= required.numerator * ratio.total


def evaluate(lines: CoverageRatio, branches: CoverageRatio, thresholds: Thresholds) -> Verdict:
    """Compare both ratios with *thresholds* and return the Verdict."""
    failures: list[MetricShortfall] = []
    for metric, ratio in ((Metric.LINE, lines), (Metric.BRANCH, branches)):
        required = thresholds.required(metric)
        if not meets_threshold(ratio, required):
            failures.append(MetricShortfall(metric=metric, actual=ratio, required=required))

    verdict = Verdict(line=lines, branch=branches, thresholds=thresholds, failures=tuple(failures))
    logger.debug("Verdict: %s (%d failing metric(s))", verdict.status.value, len(failures))
    return verdict


def evaluate_report(report: CoverageReport, thresholds: Thresholds) -> Verdict:
    """Aggregate *report* and evaluate it against *thresholds*."""
    lines, branches = aggregate(report)
    return evaluate(lines, branches, thresholds)
