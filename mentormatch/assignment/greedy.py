"""
Greedy one-to-one mentor-mentee assignment.

Pairs are visited in descending order of fairness-adjusted score and
accepted when neither the mentor nor the mentee has been used yet. The
result is maximal (no further pair could be added) but not globally
optimal; ties keep their input order, so the assignment is deterministic.
"""

import logging
from typing import List, Sequence, Set

from ..schema import FairnessAdjustedScore

logger = logging.getLogger(__name__)


def assign(adjusted_scores: Sequence[FairnessAdjustedScore]) -> List[FairnessAdjustedScore]:
    """
    Select a 1:1 assignment from fairness-adjusted scores.

    Args:
        adjusted_scores: Candidate pairs; the sequence is not modified

    Returns:
        Accepted pairs in acceptance order (highest adjusted score first).
        At most min(#mentors, #mentees) pairs.
    """
    # sorted() is stable and copies its input
    ranked = sorted(adjusted_scores, key=lambda s: s.fairness_adjusted_score, reverse=True)

    used_mentors: Set[str] = set()
    used_mentees: Set[str] = set()
    accepted = []
    for pair in ranked:
        if pair.mentor_id in used_mentors or pair.mentee_id in used_mentees:
            continue
        accepted.append(pair)
        used_mentors.add(pair.mentor_id)
        used_mentees.add(pair.mentee_id)

    logger.info(f"Assigned {len(accepted)} pairs from {len(ranked)} candidates")
    return accepted
