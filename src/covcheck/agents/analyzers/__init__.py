"""Coverage aggregation and threshold evaluation."""

from covcheck.agents.analyzers.coverage import (
    aggregate,
    combine_reports,
    evaluate,
    evaluate_report,
    meets_threshold,
)

__all__ = ["aggregate", "combine_reports", "evaluate", "evaluate_report", "meets_threshold"]
