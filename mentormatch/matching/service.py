"""
Matching service: the engine's public interface.

Wires the feature vector store, similarity scoring, fairness adjustment,
greedy assignment and the validation harness together:

    find_matches        ranked candidates of the opposite user type
    create_fair_matches fairness-adjusted 1:1 mentor-mentee assignment
    run_validation      evaluate find_matches against expectations
    invalidate_profile  drop a cached vector after a profile change
    get_matching_stats  cache population and quality
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..assignment import assign
from ..configs.settings import EngineSettings
from ..data_loading.feature_store import CacheStats, FeatureVectorStore
from ..data_loading.loaders import FeatureVectorSource, ProfileSource
from ..errors import DataUnavailable, InvalidInput, MatchingError, NotFound
from ..evaluation.metrics import ValidationReport
from ..evaluation.schema import ValidationTestCase
from ..evaluation.validation import ValidationHarness
from ..fairness import FairnessAdjuster
from ..schema import (
    Assignment,
    FeatureVector,
    HistoricalMatch,
    MatchingConstraints,
    MatchingCriteria,
    MatchingResult,
    MatchResponse,
    Profile,
    RawScore,
    Role,
    SimilarityAlgorithm,
)
from ..similarity import confidence, generate_match_reasons, score_matrix
from .profile_scoring import profile_compatibility

logger = logging.getLogger(__name__)


class MatchingService:
    """
    Fairness-aware mentor-mentee matching engine.

    Attributes:
        settings: Resolved engine settings
        store: Feature vector cache
        profile_source: Provider of profiles and match history
        fairness: Bias mitigation and fairness audit
        harness: Validation harness driving this service

    Example:
        >>> source = load_source("data/vectors.jsonl", "data/profiles.csv")
        >>> service = MatchingService(source, source)
        >>> response = service.find_matches(MatchingCriteria(user_id="mentee-1"))
    """

    def __init__(
        self,
        vector_source: FeatureVectorSource,
        profile_source: ProfileSource,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the service.

        Args:
            vector_source: Upstream feature vector provider
            profile_source: Upstream profile and history provider
            settings: Engine settings (defaults when None)
            clock: Monotonic clock for the cache window, injectable for tests
        """
        self.settings = settings or EngineSettings()
        self.settings.validate()
        self.store = FeatureVectorStore(vector_source, self.settings.cache, clock=clock)
        self.profile_source = profile_source
        self.fairness = FairnessAdjuster(self.settings.fairness)
        self.harness = ValidationHarness(self, profile_source, self.settings.validation)
        logger.info("Initialized MatchingService")

    def find_matches(
        self,
        criteria: MatchingCriteria,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        algorithm: Optional[SimilarityAlgorithm] = None,
        candidate_ids: Optional[Sequence[str]] = None
    ) -> MatchResponse:
        """
        Rank candidates of the opposite user type for criteria.user_id.

        Args:
            criteria: Who to find matches for
            limit: Maximum number of results (default 10)
            threshold: Minimum score, inclusive (default 0.5)
            algorithm: Similarity algorithm (default cosine)
            candidate_ids: Restrict the candidate pool to these users

        Returns:
            MatchResponse with results sorted by score, highest first

        Raises:
            InvalidInput: Malformed criteria, limit, threshold or algorithm
            NotFound: If the user has no feature vector
            DataUnavailable: If the vector source fails
        """
        start = time.perf_counter()
        matching_config = self.settings.matching
        criteria.validate()
        limit = matching_config.default_limit if limit is None else limit
        threshold = matching_config.default_threshold if threshold is None else threshold
        algorithm = SimilarityAlgorithm.parse(algorithm or matching_config.default_algorithm)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidInput(f"limit must be a positive integer, got {limit!r}")
        if not isinstance(threshold, (int, float)) or not 0 <= threshold <= 1:
            raise InvalidInput(f"threshold must be in [0, 1], got {threshold!r}")

        source = self.store.get(criteria.user_id)
        if source is None:
            raise NotFound(f"Feature vector not found for user {criteria.user_id}")

        if candidate_ids is None:
            pool = self.store.get_batch([])
        elif candidate_ids:
            pool = self.store.get_batch(list(candidate_ids))
        else:
            pool = []
        target_type = source.user_type.opposite
        candidates = [v for v in pool if v.user_type is target_type and v.user_id != source.user_id]

        scores = score_matrix([source], candidates, algorithm, self.settings.similarity)
        results = []
        for candidate, value in zip(candidates, scores[0] if candidates else []):
            value = float(value)
            if value < threshold:
                continue
            results.append(self._build_result(source, candidate, value, algorithm))

        # sort is stable, so equal scores keep candidate order
        results.sort(key=lambda r: r.score, reverse=True)
        response = MatchResponse(
            matches=results[:limit],
            total_processed=len(candidates),
            execution_time_ms=(time.perf_counter() - start) * 1000,
            algorithm=algorithm,
        )
        logger.info(
            f"Found {len(response.matches)} matches for {criteria.user_id} "
            f"({len(candidates)} candidates, {algorithm.value}, {response.execution_time_ms:.1f} ms)"
        )
        return response

    def create_fair_matches(self, constraints: Optional[MatchingConstraints] = None) -> List[Assignment]:
        """
        Produce a fairness-adjusted 1:1 assignment of active mentors and mentees.

        Args:
            constraints: Fairness constraints for this run (config defaults when None)

        Returns:
            One pending Assignment per accepted pair, highest adjusted score first

        Raises:
            DataUnavailable: If the profile or vector source fails
        """
        constraints = constraints or self.settings.fairness.default_constraints
        mentors = self._load_profiles([Role.MENTOR, Role.BOTH])
        mentees = self._load_profiles([Role.MENTEE, Role.BOTH])
        logger.info(f"Creating fair matches for {len(mentors)} mentors and {len(mentees)} mentees")
        if not mentors or not mentees:
            logger.warning("No active mentors or mentees available for fair matching")
            return []

        raw_scores = self.compute_raw_scores(mentors, mentees)
        adjusted = self.fairness.adjust(mentors, mentees, raw_scores, constraints)
        accepted = assign(adjusted)

        history, history_mentees = self._load_history()
        metrics = self.fairness.audit(mentors, mentees, accepted, history, history_mentees)
        if metrics.equal_opportunity < constraints.min_equal_opportunity:
            logger.warning(
                f"Equal opportunity {metrics.equal_opportunity:.4f} is below the required "
                f"{constraints.min_equal_opportunity}"
            )

        assignments = [
            Assignment(
                mentor_id=pair.mentor_id,
                mentee_id=pair.mentee_id,
                compatibility_score=pair.score,
                fairness_score=pair.fairness_adjusted_score,
                fairness_metrics=metrics,
            )
            for pair in accepted
        ]
        logger.info(f"Created {len(assignments)} fair matches")
        return assignments

    def compute_raw_scores(self, mentors: Sequence[Profile], mentees: Sequence[Profile]) -> List[RawScore]:
        """
        Raw compatibility of every mentor x mentee pair (self-pairs skipped).

        Pairs where both users have a feature vector are scored with the
        configured fair-match algorithm; the rest fall back to the profile
        heuristic.
        """
        user_ids = list(dict.fromkeys([p.user_id for p in mentors] + [p.user_id for p in mentees]))
        vectors: Dict[str, FeatureVector] = {v.user_id: v for v in self.store.get_batch(user_ids)}

        vector_mentors = [m for m in mentors if m.user_id in vectors]
        vector_mentees = [m for m in mentees if m.user_id in vectors]
        matrix = score_matrix(
            [vectors[m.user_id] for m in vector_mentors],
            [vectors[m.user_id] for m in vector_mentees],
            self.settings.matching.fair_match_algorithm,
            self.settings.similarity,
        )
        vector_scores: Dict[Tuple[str, str], float] = {}
        for i, mentor in enumerate(vector_mentors):
            for j, mentee in enumerate(vector_mentees):
                vector_scores[(mentor.user_id, mentee.user_id)] = float(matrix[i, j])

        raw_scores = []
        fallbacks = 0
        for mentor in mentors:
            for mentee in mentees:
                if mentor.user_id == mentee.user_id:
                    continue
                value = vector_scores.get((mentor.user_id, mentee.user_id))
                if value is None:
                    value = profile_compatibility(mentor, mentee, self.settings.matching)
                    fallbacks += 1
                raw_scores.append(RawScore(mentor_id=mentor.user_id, mentee_id=mentee.user_id, score=value))

        if fallbacks:
            logger.info(f"Scored {fallbacks} of {len(raw_scores)} pairs from profiles (missing vectors)")
        return raw_scores

    def run_validation(self, test_cases: Sequence[ValidationTestCase]) -> ValidationReport:
        """
        Run validation test cases through find_matches.

        Raises:
            MissingProfile: If a case references users without a profile
        """
        return self.harness.run(test_cases)

    def invalidate_profile(self, user_id: str) -> None:
        """Drop the cached vector of a user whose profile changed."""
        self.store.invalidate(user_id)

    def get_matching_stats(self) -> CacheStats:
        """Population and quality of the cached feature vectors."""
        return self.store.stats()

    def _build_result(
        self,
        source: FeatureVector,
        candidate: FeatureVector,
        value: float,
        algorithm: SimilarityAlgorithm
    ) -> MatchingResult:
        quality = candidate.metadata.quality_score
        return MatchingResult(
            target_id=candidate.user_id,
            score=value,
            confidence=confidence(value, quality),
            reasons=generate_match_reasons(source, candidate, self.settings.similarity),
            metadata={
                "algorithm": algorithm.value,
                "data_quality": quality,
                "last_updated": candidate.metadata.last_updated,
            },
        )

    def _load_profiles(self, roles: List[Role]) -> List[Profile]:
        return self._call_profile_source(
            lambda: self.profile_source.load_profiles(roles=roles, active_only=True),
            f"profile load for roles {[r.value for r in roles]}",
        )

    def _load_history(self) -> Tuple[List[HistoricalMatch], List[Profile]]:
        statuses = self.settings.matching.historical_statuses
        history = self._call_profile_source(
            lambda: self.profile_source.load_historical_matches(statuses), "historical match load"
        )
        mentees = []
        for mentee_id in dict.fromkeys(m.mentee_id for m in history):
            profile = self._call_profile_source(
                lambda: self.profile_source.load_profile(mentee_id), f"profile load of {mentee_id}"
            )
            if profile is not None:
                mentees.append(profile)
        return history, mentees

    def _call_profile_source(self, call, what: str):
        try:
            return call()
        except MatchingError:
            raise
        except Exception as e:
            logger.error(f"Profile source failed during {what}: {e}")
            raise DataUnavailable(f"Profile source failed during {what}: {e}") from e
