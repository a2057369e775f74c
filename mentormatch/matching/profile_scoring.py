"""
Profile-based compatibility used when a feature vector is unavailable.

    score = skill_weight * skill_match + experience_weight * experience_fit

skill_match is the fraction of mentor skills named (case-insensitive
substring) in some mentee preference, normalized by the longer of the two
lists. experience_fit rewards a mentor 2-15 years ahead of the mentee:

    gap < 2   -> 0.3 (too close)
    gap > 15  -> 0.5 (too far)
    otherwise -> min(1, gap / 8)
"""

from typing import Sequence

from ..configs.settings import MatchingConfig
from ..schema import Profile

MIN_EXPERIENCE_GAP = 2
MAX_EXPERIENCE_GAP = 15
IDEAL_EXPERIENCE_GAP = 8.0


def skill_match(mentor_skills: Sequence[str], mentee_preferences: Sequence[str]) -> float:
    if not mentor_skills or not mentee_preferences:
        return 0.0
    preferences = [p.lower() for p in mentee_preferences]
    matches = sum(1 for skill in mentor_skills if any(skill.lower() in p for p in preferences))
    return matches / max(len(mentor_skills), len(mentee_preferences))


def experience_fit(mentor_years: int, mentee_years: int) -> float:
    gap = mentor_years - mentee_years
    if gap < MIN_EXPERIENCE_GAP:
        return 0.3
    if gap > MAX_EXPERIENCE_GAP:
        return 0.5
    return min(1.0, gap / IDEAL_EXPERIENCE_GAP)


def profile_compatibility(mentor: Profile, mentee: Profile, config: MatchingConfig) -> float:
    """Heuristic compatibility of a mentor and mentee from their profiles, in [0, 1]."""
    return (
        config.profile_skill_weight * skill_match(mentor.skills, mentee.preferences)
        + config.profile_experience_weight * experience_fit(mentor.experience_years, mentee.experience_years)
    )
