"""Validation harness and evaluation metrics."""

from .schema import (
    ExpectedMatchOutcome,
    ValidationTestCase,
    SingleValidationResult,
    TestCaseReport,
    OutcomeClass,
)
from .metrics import (
    ScoreDistributionStats,
    SummaryMetrics,
    ValidationReport,
    compute_score_distribution_stats,
    compute_summary_metrics,
)
from .validation import ValidationHarness, evaluate_outcome

__all__ = [
    "ExpectedMatchOutcome",
    "ValidationTestCase",
    "SingleValidationResult",
    "TestCaseReport",
    "OutcomeClass",
    "ScoreDistributionStats",
    "SummaryMetrics",
    "ValidationReport",
    "compute_score_distribution_stats",
    "compute_summary_metrics",
    "ValidationHarness",
    "evaluate_outcome",
]
