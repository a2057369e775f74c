"""
Bias mitigation of raw compatibility scores.

Pairs that are demographically too alike are penalized and cross-demographic
pairs receive a diversity bonus:

    penalty = demographic_penalty if similarity > 1 - max_demographic_imbalance else 0
    bonus = (1 - similarity) * diversity_weight * diversity_scale
    adjusted = clip(raw * (1 - penalty) + bonus, 0, 1)

Demographic attributes only steer this adjustment and the fairness metrics;
they never enter the compatibility score itself.
"""

import logging
from typing import List, Optional, Sequence

from ..configs.settings import FairnessConfig
from ..schema import (
    DEMOGRAPHIC_ATTRIBUTES,
    DemographicInfo,
    FairnessAdjustedScore,
    FairnessMetrics,
    HistoricalMatch,
    MatchingConstraints,
    Profile,
    RawScore,
)
from .metrics import PairLike, compute_fairness_metrics

logger = logging.getLogger(__name__)


def demographic_similarity(a: DemographicInfo, b: DemographicInfo) -> float:
    """
    Fraction of matching attributes among those present on both sides.

    Returns:
        Similarity in [0, 1]; 0 when no attribute is known for both users
    """
    compared = 0
    matching = 0
    for attr in DEMOGRAPHIC_ATTRIBUTES:
        left = getattr(a, attr)
        right = getattr(b, attr)
        if left and right:
            compared += 1
            if left == right:
                matching += 1
    return matching / compared if compared > 0 else 0.0


def demographic_penalty(
    similarity: float,
    constraints: MatchingConstraints,
    config: FairnessConfig
) -> float:
    if similarity > 1 - constraints.max_demographic_imbalance:
        return config.demographic_penalty
    return 0.0


def diversity_bonus(
    similarity: float,
    constraints: MatchingConstraints,
    config: FairnessConfig
) -> float:
    return (1 - similarity) * constraints.diversity_weight * config.diversity_scale


def mitigate_bias(
    mentors: Sequence[Profile],
    mentees: Sequence[Profile],
    raw_scores: Sequence[RawScore],
    constraints: MatchingConstraints,
    config: Optional[FairnessConfig] = None
) -> List[FairnessAdjustedScore]:
    """
    Adjust raw scores for demographic fairness.

    Args:
        mentors: Mentor pool
        mentees: Mentee pool
        raw_scores: Raw compatibility scores
        constraints: Per-invocation fairness constraints
        config: Penalty and bonus scale (defaults when None)

    Returns:
        One FairnessAdjustedScore per raw score whose mentor and mentee are
        in the pools, in input order
    """
    config = config or FairnessConfig()
    mentor_by_id = {m.user_id: m for m in mentors}
    mentee_by_id = {m.user_id: m for m in mentees}

    adjusted = []
    skipped = 0
    for raw in raw_scores:
        mentor = mentor_by_id.get(raw.mentor_id)
        mentee = mentee_by_id.get(raw.mentee_id)
        if mentor is None or mentee is None:
            skipped += 1
            continue

        similarity = demographic_similarity(mentor.demographic_info, mentee.demographic_info)
        penalty = demographic_penalty(similarity, constraints, config)
        bonus = diversity_bonus(similarity, constraints, config)
        value = min(1.0, max(0.0, raw.score * (1 - penalty) + bonus))

        adjusted.append(FairnessAdjustedScore(
            mentor_id=raw.mentor_id,
            mentee_id=raw.mentee_id,
            score=raw.score,
            fairness_adjusted_score=value,
        ))

    if skipped:
        logger.warning(f"Skipped {skipped} scores with unknown mentor or mentee profiles")
    logger.info(f"Adjusted {len(adjusted)} scores for fairness")
    return adjusted


class FairnessAdjuster:
    """
    Fairness component of the engine: bias mitigation plus metric audit.

    Example:
        >>> adjuster = FairnessAdjuster(FairnessConfig(demographic_penalty=0.2))
        >>> adjusted = adjuster.adjust(mentors, mentees, raw_scores, constraints)
        >>> metrics = adjuster.audit(mentors, mentees, accepted, history, history_mentees)
    """

    def __init__(self, config: Optional[FairnessConfig] = None):
        self.config = config or FairnessConfig()
        self.config.validate()

    def adjust(
        self,
        mentors: Sequence[Profile],
        mentees: Sequence[Profile],
        raw_scores: Sequence[RawScore],
        constraints: Optional[MatchingConstraints] = None
    ) -> List[FairnessAdjustedScore]:
        """Mitigate bias with the given constraints (config defaults when None)."""
        constraints = constraints or self.config.default_constraints
        return mitigate_bias(mentors, mentees, raw_scores, constraints, self.config)

    def audit(
        self,
        mentors: Sequence[Profile],
        mentees: Sequence[Profile],
        matches: Sequence[PairLike],
        historical_matches: Sequence[HistoricalMatch] = (),
        historical_mentees: Optional[Sequence[Profile]] = None
    ) -> FairnessMetrics:
        """Compute fairness metrics for an accepted match set."""
        return compute_fairness_metrics(mentors, mentees, matches, historical_matches, historical_mentees)
