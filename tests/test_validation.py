import dataclasses
import json
import re
import threading
import time

import pytest

from mentormatch.configs import ValidationConfig
from mentormatch.data_loading import InMemorySource
from mentormatch.errors import InvalidInput, MissingProfile
from mentormatch.evaluation import (
    ExpectedMatchOutcome,
    OutcomeClass,
    ValidationHarness,
    ValidationTestCase,
    compute_summary_metrics,
    evaluate_outcome,
)
from mentormatch.run import load_test_cases
from mentormatch.schema import MatchingResult, MatchResponse, SimilarityAlgorithm


class FakeMatcher:
    """Returns canned scores per (source, target); raises for sources listed in fail_for."""

    def __init__(self, scores, fail_for=(), delay=None):
        self.scores = scores
        self.fail_for = set(fail_for)
        self.delay = delay or {}
        self.calls = []
        self._lock = threading.Lock()

    def find_matches(self, criteria, limit=None, threshold=None, algorithm=None, candidate_ids=None):
        with self._lock:
            self.calls.append((criteria.user_id, limit, threshold, algorithm, list(candidate_ids)))
        time.sleep(self.delay.get(criteria.user_id, 0))
        if criteria.user_id in self.fail_for:
            raise RuntimeError("similarity backend exploded")
        matches = [
            MatchingResult(target, value, value)
            for (source, target), value in self.scores.items()
            if source == criteria.user_id and target in candidate_ids
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return MatchResponse(matches[:limit], len(candidate_ids), 1.0, algorithm)


@pytest.fixture
def profiles(make_profile):
    ids = ["s1", "s2", "s3", "c1", "c2"]
    return InMemorySource(profiles=[make_profile(uid, "both") for uid in ids])


def case(case_id, source, outcomes, **kwargs):
    return ValidationTestCase(
        test_case_id=case_id,
        source_user_id=source,
        candidate_user_ids=tuple(o.target_id for o in outcomes),
        expected_outcomes=tuple(outcomes),
        **kwargs,
    )


def test_true_positive_case(profiles):
    matcher = FakeMatcher({("s1", "c1"): 0.9})
    harness = ValidationHarness(matcher, profiles)
    report = harness.run([case("tp", "s1", [ExpectedMatchOutcome("c1", True, expected_score_min=0.8)])])

    assert report.overall_success
    assert report.passed_cases == 1
    metrics = report.summary_metrics
    assert (metrics.accuracy, metrics.precision, metrics.recall, metrics.f1_score) == (1.0, 1.0, 1.0, 1.0)
    assert metrics.true_positives == 1
    assert report.test_case_reports[0].results[0].outcome is OutcomeClass.TRUE_POSITIVE


def test_false_positive_case(profiles):
    matcher = FakeMatcher({("s1", "c1"): 0.9})
    report = ValidationHarness(matcher, profiles).run([
        case("fp", "s1", [ExpectedMatchOutcome("c1", False)]),
    ])

    assert not report.overall_success
    assert report.failed_cases == 1
    assert report.summary_metrics.precision == 0.0
    assert report.summary_metrics.accuracy == 0.0
    assert report.summary_metrics.false_positives == 1
    result = report.test_case_reports[0].results[0]
    assert result.message.startswith("Expected NO match for c1")
    assert result.details == {"actual_score": 0.9}


def test_true_negative_and_false_negative(profiles):
    matcher = FakeMatcher({})
    report = ValidationHarness(matcher, profiles).run([
        case("mixed", "s1", [ExpectedMatchOutcome("c1", False), ExpectedMatchOutcome("c2", True)]),
    ])

    outcomes = [r.outcome for r in report.test_case_reports[0].results]
    assert outcomes == [OutcomeClass.TRUE_NEGATIVE, OutcomeClass.FALSE_NEGATIVE]
    assert report.summary_metrics.accuracy == 0.5
    assert report.summary_metrics.recall == 0.0


def test_score_outside_band_is_false_negative(profiles):
    matcher = FakeMatcher({("s1", "c1"): 0.6})
    outcome = ExpectedMatchOutcome("c1", True, expected_score_min=0.7, expected_score_max=0.9)
    report = ValidationHarness(matcher, profiles).run([case("band", "s1", [outcome])])

    result = report.test_case_reports[0].results[0]
    assert not result.passed
    assert result.outcome is OutcomeClass.FALSE_NEGATIVE
    assert "outside expected range [0.7-0.9]" in result.message
    assert result.details == {"actual_score": 0.6, "expected_score_min": 0.7, "expected_score_max": 0.9}


def test_band_bounds_are_inclusive():
    outcome = ExpectedMatchOutcome("c1", True, expected_score_min=0.8, expected_score_max=0.9)
    assert evaluate_outcome(outcome, MatchingResult("c1", 0.8, 0.8)).passed
    assert evaluate_outcome(outcome, MatchingResult("c1", 0.9, 0.9)).passed
    assert not evaluate_outcome(outcome, MatchingResult("c1", 0.91, 0.91)).passed


def test_missing_profile_raises(profiles):
    harness = ValidationHarness(FakeMatcher({}), profiles)
    broken = case("broken", "s1", [ExpectedMatchOutcome("ghost", True), ExpectedMatchOutcome("c1", True)])

    with pytest.raises(MissingProfile) as excinfo:
        harness.run([broken])
    assert excinfo.value.missing_ids == ["ghost"]
    assert excinfo.value.test_case_id == "broken"


def test_missing_source_profile_raises(profiles):
    harness = ValidationHarness(FakeMatcher({}), profiles)
    with pytest.raises(MissingProfile) as excinfo:
        harness.run([case("no-source", "nobody", [ExpectedMatchOutcome("c1", True)])])
    assert excinfo.value.missing_ids == ["nobody"]


def test_engine_error_fails_case_and_run_continues(profiles):
    matcher = FakeMatcher({("s2", "c1"): 0.95}, fail_for=["s1"])
    report = ValidationHarness(matcher, profiles).run([
        case("explodes", "s1", [ExpectedMatchOutcome("c1", True), ExpectedMatchOutcome("c2", False)]),
        case("fine", "s2", [ExpectedMatchOutcome("c1", True)]),
    ])

    failed, fine = report.test_case_reports
    assert not failed.overall_passed
    assert failed.failed_outcomes == 2
    for result in failed.results:
        assert result.message == "Test case failed due to system error: similarity backend exploded"
        assert result.details["error_type"] == "RuntimeError"
    assert [r.outcome for r in failed.results] == [OutcomeClass.FALSE_NEGATIVE, OutcomeClass.FALSE_POSITIVE]
    assert fine.overall_passed
    assert report.passed_cases == 1


def test_case_settings_are_forwarded(profiles):
    matcher = FakeMatcher({})
    harness = ValidationHarness(matcher, profiles, ValidationConfig(default_algorithm="euclidean"))
    harness.run([
        case("defaults", "s1", [ExpectedMatchOutcome("c1", False), ExpectedMatchOutcome("c2", False)]),
        case("explicit", "s2", [ExpectedMatchOutcome("c1", False)],
             algorithm="weighted-hybrid", threshold=0.3),
    ])

    assert matcher.calls == [
        ("s1", 2, None, SimilarityAlgorithm.EUCLIDEAN, ["c1", "c2"]),
        ("s2", 1, 0.3, SimilarityAlgorithm.WEIGHTED_HYBRID, ["c1"]),
    ]


def test_parallel_run_preserves_case_order(profiles):
    matcher = FakeMatcher(
        {("s1", "c1"): 0.9, ("s2", "c1"): 0.9, ("s3", "c1"): 0.9},
        delay={"s1": 0.05, "s2": 0.02},
    )
    cases = [case(f"case-{s}", s, [ExpectedMatchOutcome("c1", True)]) for s in ("s1", "s2", "s3")]
    report = ValidationHarness(matcher, profiles, ValidationConfig(max_workers=3)).run(cases)

    assert [r.test_case_id for r in report.test_case_reports] == ["case-s1", "case-s2", "case-s3"]
    assert report.summary_metrics.true_positives == 3
    assert report.overall_success


def test_empty_run():
    report = ValidationHarness(FakeMatcher({}), InMemorySource()).run([])
    assert report.total_test_cases == 0
    assert report.overall_success
    assert report.summary_metrics.accuracy == 0.0
    assert report.score_distribution is None


def test_summary_metrics_mixed():
    outcomes = [
        evaluate_outcome(ExpectedMatchOutcome("a", True), MatchingResult("a", 0.9, 0.9)),
        evaluate_outcome(ExpectedMatchOutcome("b", True), None),
        evaluate_outcome(ExpectedMatchOutcome("c", False), MatchingResult("c", 0.8, 0.8)),
        evaluate_outcome(ExpectedMatchOutcome("d", False), None),
    ]
    metrics = compute_summary_metrics(outcomes)
    assert metrics.accuracy == 0.5
    assert metrics.precision == 0.5
    assert metrics.recall == 0.5
    assert metrics.f1_score == 0.5
    assert (metrics.true_positives, metrics.false_positives,
            metrics.true_negatives, metrics.false_negatives) == (1, 1, 1, 1)


def test_report_serialization(profiles, tmp_path):
    matcher = FakeMatcher({("s1", "c1"): 0.9, ("s1", "c2"): 0.4})
    report = ValidationHarness(matcher, profiles).run([
        case("tp", "s1", [ExpectedMatchOutcome("c1", True), ExpectedMatchOutcome("c2", False)],
             description="one hit one miss"),
    ])

    assert re.fullmatch(r"validation-\d+-[a-z0-9]{7}", report.report_id)
    with pytest.raises(dataclasses.FrozenInstanceError):
        report.overall_success = True

    data = report.to_dict()
    assert data["total_test_cases"] == 1
    assert data["summary_metrics"]["false_positives"] == 1
    assert data["score_distribution"]["max"] == pytest.approx(0.9)
    assert "additional_metrics" not in data

    frame = report.to_frame()
    assert list(frame["target_id"]) == ["c1", "c2"]
    assert list(frame["outcome"]) == ["true_positive", "false_positive"]

    text = report.summary()
    assert report.report_id in text
    assert "Failed Test Cases:" in text

    path = tmp_path / "report.json"
    report.save(str(path))
    assert json.loads(path.read_text())["report_id"] == report.report_id


def test_test_case_from_dict_accepts_camel_case():
    parsed = ValidationTestCase.from_dict({
        "testCaseId": "camel",
        "sourceUserId": "s1",
        "candidateUserIds": ["c1"],
        "expectedOutcomes": [{"targetId": "c1", "shouldMatch": True, "expectedScoreMin": 0.5}],
    })
    assert parsed.test_case_id == "camel"
    assert parsed.expected_outcomes[0].expected_score_min == 0.5


@pytest.mark.integration
def test_sample_cases_pass_on_sample_data(data_dir):
    from mentormatch.data_loading import load_source
    from mentormatch.matching import MatchingService

    source = load_source(
        str(data_dir / "vectors.jsonl"),
        str(data_dir / "profiles.csv"),
        str(data_dir / "history.csv"),
    )
    service = MatchingService(source, source)
    report = service.run_validation(load_test_cases(str(data_dir / "validation_cases.yaml")))

    assert [r.test_case_id for r in report.test_case_reports] == ["ml-mentee", "frontend-mentee"]
    assert report.overall_success
    assert report.summary_metrics.accuracy == 1.0


def test_identical_vectors_pass_a_perfect_score_band(make_vector, make_profile):
    from mentormatch.matching import MatchingService

    features = {c: [0.637, 0.270, 0.041] for c in
                ("skills", "experience", "availability", "preference", "reputation", "engagement")}
    source = InMemorySource(
        vectors=[make_vector("m1", "mentor", **features), make_vector("e1", "mentee", **features)],
        profiles=[make_profile("m1", "mentor"), make_profile("e1", "mentee")],
    )
    report = MatchingService(source, source).run_validation([
        case("perfect", "e1", [ExpectedMatchOutcome("m1", True, expected_score_min=1.0)]),
    ])

    result = report.test_case_reports[0].results[0]
    assert result.actual.score == 1.0
    assert result.passed


def test_score_distribution_default_quantiles():
    import numpy as np
    from mentormatch.evaluation import compute_score_distribution_stats

    stats = compute_score_distribution_stats(np.array([0.0, 0.5, 1.0]))
    assert list(stats.quantiles) == ["p10", "p25", "p50", "p75", "p90"]
    assert stats.quantiles["p50"] == pytest.approx(0.5)


@pytest.mark.parametrize("outcome", [
    {"target_id": "c1"},
    {"target_id": "c1", "should_match": None},
    {"target_id": "c1", "should_match": "yes"},
    {"should_match": True},
])
def test_outcome_requires_target_and_boolean_should_match(outcome):
    with pytest.raises(InvalidInput):
        ExpectedMatchOutcome.from_dict(outcome)


def test_case_file_without_should_match_is_rejected(tmp_path):
    path = tmp_path / "cases.yaml"
    path.write_text(
        "- test_case_id: incomplete\n"
        "  source_user_id: s1\n"
        "  candidate_user_ids: [c1]\n"
        "  expected_outcomes:\n"
        "    - target_id: c1\n"
    )
    with pytest.raises(InvalidInput):
        load_test_cases(str(path))
