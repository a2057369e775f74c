"""Similarity module for pairwise compatibility scoring."""

from .algorithms import (
    score,
    score_matrix,
    confidence,
    category_similarity,
    vector_cosine,
    ALGORITHM_HANDLERS,
)
from .reasons import generate_match_reasons, FALLBACK_REASON

__all__ = [
    "score",
    "score_matrix",
    "confidence",
    "category_similarity",
    "vector_cosine",
    "ALGORITHM_HANDLERS",
    "generate_match_reasons",
    "FALLBACK_REASON",
]
