"""
Input and output types of the validation harness.

Test cases are declarative: a source user, a candidate set and the expected
outcome for each candidate. Reports are frozen once produced.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, Tuple

from ..errors import InvalidInput
from ..schema import MatchingResult, SimilarityAlgorithm


class OutcomeClass(Enum):
    """Confusion-matrix cell of one evaluated outcome."""
    TRUE_POSITIVE = "true_positive"
    FALSE_POSITIVE = "false_positive"
    TRUE_NEGATIVE = "true_negative"
    FALSE_NEGATIVE = "false_negative"

    @classmethod
    def of(cls, should_match: bool, passed: bool) -> "OutcomeClass":
        if should_match:
            return cls.TRUE_POSITIVE if passed else cls.FALSE_NEGATIVE
        return cls.TRUE_NEGATIVE if passed else cls.FALSE_POSITIVE


@dataclass(frozen=True)
class ExpectedMatchOutcome:
    """
    Expectation for one candidate.

    Attributes:
        target_id: Candidate user
        should_match: Whether the candidate is expected among the matches
        expected_score_min: Inclusive lower bound (None = unbounded)
        expected_score_max: Inclusive upper bound (None = unbounded)
        reason_hint: Free-text hint on the expected reasons
    """
    target_id: str
    should_match: bool
    expected_score_min: Optional[float] = None
    expected_score_max: Optional[float] = None
    reason_hint: Optional[str] = None

    def in_band(self, score: float) -> bool:
        return (
            (self.expected_score_min is None or score >= self.expected_score_min)
            and (self.expected_score_max is None or score <= self.expected_score_max)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "should_match": self.should_match,
            "expected_score_min": self.expected_score_min,
            "expected_score_max": self.expected_score_max,
            "reason_hint": self.reason_hint,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExpectedMatchOutcome":
        """
        Build an outcome from snake_case or camelCase keys.

        Raises:
            InvalidInput: If target_id or should_match is missing, or
                should_match is not a boolean
        """
        target_id = d.get("target_id", d.get("targetId"))
        should_match = d.get("should_match", d.get("shouldMatch"))
        if target_id is None:
            raise InvalidInput(f"Expected outcome is missing target_id: {d}")
        if not isinstance(should_match, bool):
            raise InvalidInput(f"Expected outcome for {target_id} needs a boolean should_match, got {should_match!r}")
        return cls(
            target_id=str(target_id),
            should_match=should_match,
            expected_score_min=d.get("expected_score_min", d.get("expectedScoreMin")),
            expected_score_max=d.get("expected_score_max", d.get("expectedScoreMax")),
            reason_hint=d.get("reason_hint", d.get("reasonHint")),
        )


@dataclass(frozen=True)
class ValidationTestCase:
    """
    One source user evaluated against a fixed candidate set.

    algorithm and threshold override the engine defaults when set.
    """
    test_case_id: str
    source_user_id: str
    candidate_user_ids: Tuple[str, ...]
    expected_outcomes: Tuple[ExpectedMatchOutcome, ...]
    description: str = ""
    algorithm: Optional[SimilarityAlgorithm] = None
    threshold: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "candidate_user_ids", tuple(self.candidate_user_ids))
        object.__setattr__(self, "expected_outcomes", tuple(
            o if isinstance(o, ExpectedMatchOutcome) else ExpectedMatchOutcome.from_dict(o)
            for o in self.expected_outcomes
        ))
        if self.algorithm is not None:
            object.__setattr__(self, "algorithm", SimilarityAlgorithm.parse(self.algorithm))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ValidationTestCase":
        return cls(
            test_case_id=str(d.get("test_case_id", d.get("testCaseId"))),
            source_user_id=str(d.get("source_user_id", d.get("sourceUserId"))),
            candidate_user_ids=tuple(str(c) for c in d.get("candidate_user_ids", d.get("candidateUserIds", []))),
            expected_outcomes=tuple(d.get("expected_outcomes", d.get("expectedOutcomes", []))),
            description=d.get("description", ""),
            algorithm=d.get("algorithm"),
            threshold=d.get("threshold"),
        )


@dataclass(frozen=True)
class SingleValidationResult:
    """Evaluation of one expected outcome."""
    target_id: str
    expected: ExpectedMatchOutcome
    actual: Optional[MatchingResult]
    passed: bool
    message: str
    outcome: OutcomeClass
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "expected": self.expected.to_dict(),
            "actual": self.actual.to_dict() if self.actual else None,
            "passed": self.passed,
            "message": self.message,
            "outcome": self.outcome.value,
            "details": self.details,
        }


@dataclass(frozen=True)
class TestCaseReport:
    """Results and timing of one test case."""
    __test__ = False  # not a pytest class

    test_case_id: str
    description: str
    algorithm_used: SimilarityAlgorithm
    total_candidates: int
    total_expected_outcomes: int
    passed_outcomes: int
    failed_outcomes: int
    results: Tuple[SingleValidationResult, ...]
    overall_passed: bool
    execution_time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_case_id": self.test_case_id,
            "description": self.description,
            "algorithm_used": self.algorithm_used.value,
            "total_candidates": self.total_candidates,
            "total_expected_outcomes": self.total_expected_outcomes,
            "passed_outcomes": self.passed_outcomes,
            "failed_outcomes": self.failed_outcomes,
            "results": [r.to_dict() for r in self.results],
            "overall_passed": self.overall_passed,
            "execution_time_ms": self.execution_time_ms,
        }
