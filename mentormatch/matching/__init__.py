"""Matching service and profile-based fallback scoring."""

from .profile_scoring import profile_compatibility, skill_match, experience_fit
from .service import MatchingService

__all__ = ["MatchingService", "profile_compatibility", "skill_match", "experience_fit"]
