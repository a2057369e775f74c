"""
Evaluation metrics for validation runs.

Every expected outcome of a validation run is a binary classification:
"should match" is the label and "was found in band" decides whether the
engine agreed. Over all outcomes:

    accuracy  = passed / total
    precision = TP / (TP + FP)
    recall    = TP / (TP + FN)
    f1        = 2 * precision * recall / (precision + recall)

with 0 for any zero denominator. Score distribution statistics over the
observed match scores are reported alongside for context; they say nothing
about correctness on their own.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional, Sequence, Tuple
import json

import numpy as np
import pandas as pd
from sklearn.metrics import precision_score, recall_score, f1_score

from .schema import OutcomeClass, SingleValidationResult, TestCaseReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreDistributionStats:
    """Statistics about score distribution."""
    mean: float
    std: float
    min: float
    max: float
    quantiles: Dict[str, float]  # e.g., {"p10": 0.2, "p50": 0.5, "p90": 0.8}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": float(self.mean),
            "std": float(self.std),
            "min": float(self.min),
            "max": float(self.max),
            "quantiles": {k: float(v) for k, v in self.quantiles.items()}
        }


@dataclass(frozen=True)
class SummaryMetrics:
    """Aggregate classification metrics over all outcomes of a run."""
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    true_positives: int = 0
    false_positives: int = 0
    true_negatives: int = 0
    false_negatives: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "true_negatives": self.true_negatives,
            "false_negatives": self.false_negatives,
        }


@dataclass(frozen=True)
class ValidationReport:
    """
    Complete report of one validation run.

    Produced once by the harness and never recomputed. Test case reports
    are in the order the test cases were given.
    """
    report_id: str
    timestamp: datetime
    total_test_cases: int
    passed_cases: int
    failed_cases: int
    overall_success: bool
    total_execution_time_ms: float
    test_case_reports: Tuple[TestCaseReport, ...]
    summary_metrics: SummaryMetrics
    score_distribution: Optional[ScoreDistributionStats] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "report_id": self.report_id,
            "timestamp": self.timestamp.isoformat(),
            "total_test_cases": self.total_test_cases,
            "passed_cases": self.passed_cases,
            "failed_cases": self.failed_cases,
            "overall_success": self.overall_success,
            "total_execution_time_ms": self.total_execution_time_ms,
            "test_case_reports": [r.to_dict() for r in self.test_case_reports],
            "summary_metrics": self.summary_metrics.to_dict(),
        }
        if self.score_distribution:
            result["score_distribution"] = self.score_distribution.to_dict()
        return result

    def save(self, filepath: str) -> None:
        """Save report to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved validation report to {filepath}")

    def to_frame(self) -> pd.DataFrame:
        """One row per evaluated outcome across all test cases."""
        rows = []
        for case in self.test_case_reports:
            for result in case.results:
                rows.append({
                    "test_case_id": case.test_case_id,
                    "algorithm": case.algorithm_used.value,
                    "target_id": result.target_id,
                    "should_match": result.expected.should_match,
                    "actual_score": result.actual.score if result.actual else np.nan,
                    "passed": result.passed,
                    "outcome": result.outcome.value,
                    "message": result.message,
                })
        columns = ["test_case_id", "algorithm", "target_id", "should_match",
                   "actual_score", "passed", "outcome", "message"]
        return pd.DataFrame(rows, columns=columns)

    def summary(self) -> str:
        """Generate text summary of the report."""
        lines = [
            f"Validation Report: {self.report_id}",
            "=" * 50,
            "",
            f"Timestamp: {self.timestamp.isoformat()}",
            f"Test cases: {self.passed_cases}/{self.total_test_cases} passed",
            f"Overall success: {self.overall_success}",
            f"Execution time: {self.total_execution_time_ms:.1f} ms",
            "",
            "Summary Metrics:",
            f"  Accuracy:  {self.summary_metrics.accuracy:.4f}",
            f"  Precision: {self.summary_metrics.precision:.4f}",
            f"  Recall:    {self.summary_metrics.recall:.4f}",
            f"  F1:        {self.summary_metrics.f1_score:.4f}",
        ]

        if self.score_distribution:
            lines.extend([
                "",
                "Observed Score Distribution:",
                f"  Mean: {self.score_distribution.mean:.4f}",
                f"  Std:  {self.score_distribution.std:.4f}",
                f"  Min:  {self.score_distribution.min:.4f}",
                f"  Max:  {self.score_distribution.max:.4f}",
            ])

        failed = [c for c in self.test_case_reports if not c.overall_passed]
        if failed:
            lines.extend(["", "Failed Test Cases:"])
            for case in failed:
                lines.append(f"  {case.test_case_id}: {case.failed_outcomes}/{case.total_expected_outcomes} outcomes failed")

        return "\n".join(lines)


def compute_score_distribution_stats(
    scores: np.ndarray,
    quantiles: Sequence[float] = (0.1, 0.25, 0.5, 0.75, 0.9)
) -> ScoreDistributionStats:
    """
    Compute distribution statistics for scores.

    Args:
        scores: Array of compatibility scores (must be non-empty)
        quantiles: Quantile values to compute (default: p10, p25, p50, p75, p90)

    Returns:
        ScoreDistributionStats instance
    """
    quantile_dict = {
        f"p{int(q * 100)}": float(np.percentile(scores, q * 100))
        for q in quantiles
    }

    return ScoreDistributionStats(
        mean=float(np.mean(scores)),
        std=float(np.std(scores)),
        min=float(np.min(scores)),
        max=float(np.max(scores)),
        quantiles=quantile_dict
    )


def compute_summary_metrics(
    results: Sequence[SingleValidationResult],
    decimals: int = 4
) -> SummaryMetrics:
    """
    Compute accuracy, precision, recall and F1 over evaluated outcomes.

    Labels are should_match; predictions are what the engine effectively
    said (the label when the outcome passed, its negation otherwise).

    Args:
        results: All outcomes of a run
        decimals: Rounding applied to the four ratios

    Returns:
        SummaryMetrics instance; all zeros for an empty run
    """
    counts = {cls: 0 for cls in OutcomeClass}
    for result in results:
        counts[result.outcome] += 1

    if not results:
        return SummaryMetrics(accuracy=0.0, precision=0.0, recall=0.0, f1_score=0.0)

    y_true = np.array([int(r.expected.should_match) for r in results])
    y_pred = np.array([
        int(r.expected.should_match) if r.passed else int(not r.expected.should_match)
        for r in results
    ])

    accuracy = sum(1 for r in results if r.passed) / len(results)
    precision = precision_score(y_true, y_pred, pos_label=1, zero_division=0)
    recall = recall_score(y_true, y_pred, pos_label=1, zero_division=0)
    f1 = f1_score(y_true, y_pred, pos_label=1, zero_division=0)

    return SummaryMetrics(
        accuracy=round(float(accuracy), decimals),
        precision=round(float(precision), decimals),
        recall=round(float(recall), decimals),
        f1_score=round(float(f1), decimals),
        true_positives=counts[OutcomeClass.TRUE_POSITIVE],
        false_positives=counts[OutcomeClass.FALSE_POSITIVE],
        true_negatives=counts[OutcomeClass.TRUE_NEGATIVE],
        false_negatives=counts[OutcomeClass.FALSE_NEGATIVE],
    )


def observed_score_distribution(case_reports: Sequence[TestCaseReport]) -> Optional[ScoreDistributionStats]:
    """Distribution of the scores of all matches the engine returned, or None if none."""
    scores = [
        result.actual.score
        for case in case_reports
        for result in case.results
        if result.actual is not None
    ]
    if not scores:
        return None
    return compute_score_distribution_stats(np.asarray(scores, dtype=float))
