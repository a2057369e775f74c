"""
Validation harness for the matching engine.

Runs declarative test cases through find_matches and classifies every
expected outcome:

    should match, found within [min, max]   -> pass (true positive)
    should match, outside band or not found -> fail (false negative)
    should not match, not found             -> pass (true negative)
    should not match, found                 -> fail (false positive)

A missing source or candidate profile is a broken test case and raises
MissingProfile. Errors raised by the engine while a case runs are recorded
as failed outcomes and the remaining cases still run.
"""

import logging
import random
import string
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from ..configs.settings import ValidationConfig
from ..data_loading.loaders import ProfileSource
from ..errors import MissingProfile
from ..schema import MatchingCriteria, MatchingResult, MatchResponse, SimilarityAlgorithm
from .metrics import ValidationReport, compute_summary_metrics, observed_score_distribution
from .schema import (
    ExpectedMatchOutcome,
    OutcomeClass,
    SingleValidationResult,
    TestCaseReport,
    ValidationTestCase,
)

logger = logging.getLogger(__name__)


class Matcher(Protocol):
    """The slice of the matching service the harness drives."""

    def find_matches(
        self,
        criteria: MatchingCriteria,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        algorithm: Optional[SimilarityAlgorithm] = None,
        candidate_ids: Optional[Sequence[str]] = None
    ) -> MatchResponse:
        ...


def generate_report_id(now: Optional[float] = None) -> str:
    """Report id of the form validation-<epoch ms>-<7 random characters>."""
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"validation-{millis}-{suffix}"


def evaluate_outcome(
    expected: ExpectedMatchOutcome,
    actual: Optional[MatchingResult]
) -> SingleValidationResult:
    """
    Classify one expected outcome against the engine's result.

    Args:
        expected: The expectation for a candidate
        actual: The candidate's entry in the match list, or None if absent

    Returns:
        SingleValidationResult with pass flag, message and confusion cell
    """
    details = {}
    if expected.should_match:
        if actual is None:
            passed = False
            message = f"Expected a match for {expected.target_id} but no match was found."
        elif expected.in_band(actual.score):
            passed = True
            message = f"Expected match found with score {actual.score}."
        else:
            passed = False
            message = (
                f"Expected match found, but score {actual.score} is outside expected range "
                f"[{expected.expected_score_min}-{expected.expected_score_max}]."
            )
            details = {
                "actual_score": actual.score,
                "expected_score_min": expected.expected_score_min,
                "expected_score_max": expected.expected_score_max,
            }
    else:
        if actual is None:
            passed = True
            message = f"Expected no match for {expected.target_id} and none was found."
        else:
            passed = False
            message = (
                f"Expected NO match for {expected.target_id} but a match was found "
                f"with score {actual.score}."
            )
            details = {"actual_score": actual.score}

    return SingleValidationResult(
        target_id=expected.target_id,
        expected=expected,
        actual=actual,
        passed=passed,
        message=message,
        outcome=OutcomeClass.of(expected.should_match, passed),
        details=details,
    )


def system_error_outcome(expected: ExpectedMatchOutcome, error: Exception) -> SingleValidationResult:
    """Failed outcome recorded when the engine raised while running a case."""
    return SingleValidationResult(
        target_id=expected.target_id,
        expected=expected,
        actual=None,
        passed=False,
        message=f"Test case failed due to system error: {error}",
        outcome=OutcomeClass.of(expected.should_match, False),
        details={"error": str(error), "error_type": type(error).__name__},
    )


class ValidationHarness:
    """
    Runs validation test cases against a matcher.

    Cases are independent. With max_workers > 1 they run on a thread pool;
    each case produces its own report and the reports are merged in input
    order afterwards, so no counters are shared between threads.

    Example:
        >>> harness = ValidationHarness(service, profile_source)
        >>> report = harness.run(test_cases)
        >>> print(report.summary())
    """

    def __init__(
        self,
        matcher: Matcher,
        profile_source: ProfileSource,
        config: Optional[ValidationConfig] = None
    ):
        self.matcher = matcher
        self.profile_source = profile_source
        self.config = config or ValidationConfig()
        self.config.validate()

    def run(self, test_cases: Sequence[ValidationTestCase]) -> ValidationReport:
        """
        Run all test cases and aggregate the results.

        Args:
            test_cases: Cases to run

        Returns:
            Frozen ValidationReport

        Raises:
            MissingProfile: If a case names a source or candidate without a profile
        """
        start = time.perf_counter()
        report_id = generate_report_id()
        logger.info(f"Starting validation run: {report_id} with {len(test_cases)} test cases")

        if self.config.max_workers > 1 and len(test_cases) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                case_reports = list(executor.map(self.run_case, test_cases))
        else:
            case_reports = [self.run_case(case) for case in test_cases]

        passed_cases = sum(1 for r in case_reports if r.overall_passed)
        all_results = [result for r in case_reports for result in r.results]

        report = ValidationReport(
            report_id=report_id,
            timestamp=datetime.now(timezone.utc),
            total_test_cases=len(test_cases),
            passed_cases=passed_cases,
            failed_cases=len(case_reports) - passed_cases,
            overall_success=passed_cases == len(case_reports),
            total_execution_time_ms=(time.perf_counter() - start) * 1000,
            test_case_reports=tuple(case_reports),
            summary_metrics=compute_summary_metrics(all_results, self.config.metric_decimals),
            score_distribution=observed_score_distribution(case_reports),
        )

        logger.info(
            f"Validation run {report_id} completed. Overall success: {report.overall_success} "
            f"({report.passed_cases}/{report.total_test_cases} cases passed)"
        )
        return report

    def run_case(self, test_case: ValidationTestCase) -> TestCaseReport:
        """
        Run one test case.

        Raises:
            MissingProfile: If the source or a candidate has no profile
        """
        start = time.perf_counter()
        self._check_profiles(test_case)
        algorithm = test_case.algorithm or self.config.default_algorithm

        try:
            response = self.matcher.find_matches(
                MatchingCriteria(user_id=test_case.source_user_id),
                limit=max(1, len(test_case.candidate_user_ids)),
                threshold=test_case.threshold,
                algorithm=algorithm,
                candidate_ids=list(test_case.candidate_user_ids),
            )
            by_target = {m.target_id: m for m in response.matches}
            results = [evaluate_outcome(e, by_target.get(e.target_id)) for e in test_case.expected_outcomes]
        except Exception as e:
            logger.error(f"Error running test case {test_case.test_case_id}: {e}")
            results = [system_error_outcome(expected, e) for expected in test_case.expected_outcomes]

        passed = sum(1 for r in results if r.passed)
        return TestCaseReport(
            test_case_id=test_case.test_case_id,
            description=test_case.description,
            algorithm_used=algorithm,
            total_candidates=len(test_case.candidate_user_ids),
            total_expected_outcomes=len(test_case.expected_outcomes),
            passed_outcomes=passed,
            failed_outcomes=len(results) - passed,
            results=tuple(results),
            overall_passed=passed == len(results),
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )

    def _check_profiles(self, test_case: ValidationTestCase) -> None:
        user_ids = [test_case.source_user_id, *test_case.candidate_user_ids]
        missing: List[str] = [
            uid for uid in dict.fromkeys(user_ids)
            if self.profile_source.load_profile(uid) is None
        ]
        if missing:
            logger.error(f"Test case {test_case.test_case_id} references missing profiles: {missing}")
            raise MissingProfile(missing, test_case_id=test_case.test_case_id)
