"""Human-readable explanations for why two users were matched."""

import logging
from typing import List, Optional

from ..configs.settings import SimilarityConfig
from ..schema import FeatureVector
from .algorithms import category_similarity

logger = logging.getLogger(__name__)

FALLBACK_REASON = "General compatibility"


def _above(similarity: Optional[float], threshold: float) -> bool:
    return similarity is not None and similarity > threshold


def generate_match_reasons(
    source: FeatureVector,
    candidate: FeatureVector,
    config: Optional[SimilarityConfig] = None
) -> List[str]:
    """
    Build the ordered list of reasons for a match.

    Rules, checked in order:
        skills similarity > 0.7       -> "Strong skills alignment (X% match)"
        experience similarity > 0.6   -> "Compatible experience levels"
        availability similarity > 0.5 -> "Matching availability"
        candidate reputation sum > 2  -> "High reputation score"

    Args:
        source: Vector of the user matches are found for
        candidate: Vector of the proposed match
        config: Thresholds (defaults above)

    Returns:
        Reasons in rule order, or ["General compatibility"] if none fired
    """
    config = config or SimilarityConfig()
    reasons = []

    skills = category_similarity(source, candidate, "skills")
    if _above(skills, config.skills_reason_threshold):
        reasons.append(f"Strong skills alignment ({skills * 100:.0f}% match)")

    if _above(category_similarity(source, candidate, "experience"), config.experience_reason_threshold):
        reasons.append("Compatible experience levels")

    if _above(category_similarity(source, candidate, "availability"), config.availability_reason_threshold):
        reasons.append("Matching availability")

    reputation = candidate.features.reputation or ()
    if sum(reputation) > config.reputation_reason_sum:
        reasons.append("High reputation score")

    return reasons or [FALLBACK_REASON]
