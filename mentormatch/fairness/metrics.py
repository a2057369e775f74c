"""
Fairness metrics over demographic groups.

Users are grouped by the key gender_ethnicity_experienceLevel, with
"unknown" substituted for missing attributes. All metrics are in [0, 1]
where 1 is perfectly fair, and all return 1 for empty inputs (vacuous
fairness) rather than dividing by zero.

Metrics:
- Demographic parity: are match appearances spread evenly over groups?
    expected = 2 * |matches| / |groups|
    parity = max(0, 1 - (sum_g |count_g - expected| / expected) / |groups|)
- Equal opportunity: do mentee groups get matched at the same rate?
    score = max(0, 1 - std(match_rate_g))
- Equalizing odds: do past matches succeed (completed) and fail
  (cancelled) at the same rate in every mentee group?
    score = max(0, 1 - (std(tpr_g) + std(fpr_g)) / 2)

Standard deviations are population (not sample) statistics.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import numpy as np

from ..schema import DemographicInfo, FairnessMetrics, HistoricalMatch, MatchStatus, Profile

logger = logging.getLogger(__name__)


class PairLike(Protocol):
    mentor_id: str
    mentee_id: str


def demographic_key(info: Optional[DemographicInfo]) -> str:
    """Grouping key for a user's demographics."""
    return (info or DemographicInfo()).group_key()


def group_by_demographics(profiles: Iterable[Profile]) -> Dict[str, List[Profile]]:
    """Group profiles by demographic key, preserving first-seen order."""
    groups: Dict[str, List[Profile]] = {}
    for profile in profiles:
        groups.setdefault(demographic_key(profile.demographic_info), []).append(profile)
    return groups


def population_variance(values: Sequence[float]) -> float:
    """Population variance; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def demographic_parity(
    mentors: Sequence[Profile],
    mentees: Sequence[Profile],
    matches: Sequence[PairLike]
) -> float:
    """
    Demographic parity of a match set.

    Each match adds one appearance to the mentor's group and one to the
    mentee's group. Matches whose mentor or mentee is not in the pool are
    ignored. The disparity sum runs over groups with at least one appearance.

    Args:
        mentors: Mentor pool
        mentees: Mentee pool
        matches: Proposed matches (anything with mentor_id and mentee_id)

    Returns:
        Parity score in [0, 1]; 1 for an empty pool or no matches
    """
    groups = group_by_demographics(list(mentors) + list(mentees))
    if not groups or not matches:
        return 1.0

    mentor_by_id = {m.user_id: m for m in mentors}
    mentee_by_id = {m.user_id: m for m in mentees}
    counts: Counter = Counter()
    for match in matches:
        mentor = mentor_by_id.get(match.mentor_id)
        mentee = mentee_by_id.get(match.mentee_id)
        if mentor is None or mentee is None:
            continue
        counts[demographic_key(mentor.demographic_info)] += 1
        counts[demographic_key(mentee.demographic_info)] += 1

    expected = len(matches) * 2 / len(groups)
    disparity_sum = sum(abs(count - expected) / expected for count in counts.values())
    return max(0.0, 1.0 - disparity_sum / len(groups))


def equal_opportunity(
    mentors: Sequence[Profile],
    mentees: Sequence[Profile],
    matches: Sequence[PairLike]
) -> float:
    """
    Equal opportunity of a match set across mentee groups.

    match_rate_g = matches whose mentee is in group g / |group g|

    Returns:
        1 - population std of match rates (floored at 0); 1 with no groups
    """
    groups = group_by_demographics(mentees)
    if not groups:
        return 1.0

    matched_mentees = Counter(match.mentee_id for match in matches)
    rates = []
    for members in groups.values():
        group_matches = sum(matched_mentees[member.user_id] for member in members)
        rates.append(group_matches / len(members))

    return max(0.0, 1.0 - float(np.sqrt(population_variance(rates))))


def equalizing_odds(
    historical_matches: Sequence[HistoricalMatch],
    mentees: Sequence[Profile]
) -> float:
    """
    Equalizing odds over past matches, grouped by mentee demographics.

    Per group: tpr = completed / total, fpr = cancelled / total.

    Args:
        historical_matches: Past matches with final status
        mentees: Profiles of the mentees in those matches

    Returns:
        Score in [0, 1]; 1 with no history
    """
    if not historical_matches:
        return 1.0

    groups = group_by_demographics(mentees)
    tprs, fprs = [], []
    for members in groups.values():
        member_ids = {member.user_id for member in members}
        group_matches = [m for m in historical_matches if m.mentee_id in member_ids]
        total = len(group_matches)
        completed = sum(1 for m in group_matches if m.status is MatchStatus.COMPLETED)
        cancelled = sum(1 for m in group_matches if m.status is MatchStatus.CANCELLED)
        tprs.append(completed / total if total > 0 else 0.0)
        fprs.append(cancelled / total if total > 0 else 0.0)

    tpr_std = float(np.sqrt(population_variance(tprs)))
    fpr_std = float(np.sqrt(population_variance(fprs)))
    return max(0.0, 1.0 - (tpr_std + fpr_std) / 2)


def calibration(*args, **kwargs) -> float:
    """
    Calibration of match scores across groups.

    There is no agreed calibration definition for this engine yet, so the
    metric is reported as None in FairnessMetrics.
    """
    raise NotImplementedError("Calibration fairness metric has no definition yet")


def compute_fairness_metrics(
    mentors: Sequence[Profile],
    mentees: Sequence[Profile],
    matches: Sequence[PairLike],
    historical_matches: Sequence[HistoricalMatch] = (),
    historical_mentees: Optional[Sequence[Profile]] = None
) -> FairnessMetrics:
    """
    Compute all fairness metrics for an assignment batch.

    Args:
        mentors: Mentor pool
        mentees: Mentee pool
        matches: Accepted matches of the batch
        historical_matches: Past matches for equalizing odds
        historical_mentees: Profiles of mentees in past matches (default: mentees)

    Returns:
        FairnessMetrics with calibration left as None
    """
    metrics = FairnessMetrics(
        demographic_parity=demographic_parity(mentors, mentees, matches),
        equal_opportunity=equal_opportunity(mentors, mentees, matches),
        equalizing_odds=equalizing_odds(
            historical_matches, mentees if historical_mentees is None else historical_mentees
        ),
        calibration=None,
    )
    logger.info(
        f"Fairness metrics: parity={metrics.demographic_parity:.4f}, "
        f"opportunity={metrics.equal_opportunity:.4f}, odds={metrics.equalizing_odds:.4f}"
    )
    return metrics
