"""
Fairness-Aware Mentor Matching Engine

This package implements the matching core of a mentorship platform:
feature vectors are scored pairwise, adjusted for demographic fairness,
assigned one-to-one, and validated against declared expectations.

Key Design Decisions:
- Feature vectors are served from an immutable cache snapshot that is
  swapped atomically on refresh
- Similarity algorithms are pure functions selected through a closed enum
- Fairness adjustment happens at the score level, before assignment
- Assignment is greedy (highest adjusted score first), not globally optimal
"""

__version__ = "1.0.0"
