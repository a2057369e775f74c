"""
Pairwise similarity algorithms for mentor-mentee compatibility.

All functions are pure: they depend only on their arguments and may be
called concurrently.

Algorithms:
- Cosine: cos(u, v) over the concatenation of all six sub-vectors,
  0 when either magnitude is 0
- Euclidean-derived: 1 / (1 + ||u - v||) over the concatenation,
  mapping distance [0, inf) to score (0, 1]
- Weighted hybrid: per-category cosine combined with category weights,
  normalized by the weights of categories present on both sides

Scores are clipped to [0, 1]; cosine can only go negative for negative
feature values. Cosine values within UNIT_TOLERANCE of 1 are reported as
exactly 1, so parallel (and identical) vectors always score 1.0.
"""

import logging
from typing import Callable, Dict, Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.metrics.pairwise import cosine_similarity

from ..configs.settings import SimilarityConfig
from ..errors import InvalidInput
from ..schema import FeatureVector, SimilarityAlgorithm

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = SimilarityConfig()

UNIT_TOLERANCE = 1e-12


def vector_cosine(u: np.ndarray, v: np.ndarray) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0 when either vector has zero magnitude.
    """
    if u.shape != v.shape:
        raise InvalidInput(f"Vectors must have the same length: {u.shape[0]} vs {v.shape[0]}")
    norm_u = np.linalg.norm(u)
    norm_v = np.linalg.norm(v)
    if norm_u == 0 or norm_v == 0:
        return 0.0
    value = float(np.dot(u, v) / (norm_u * norm_v))
    if abs(value - 1.0) <= UNIT_TOLERANCE:
        return 1.0
    return value


def _cosine_matrix(src: np.ndarray, tgt: np.ndarray) -> np.ndarray:
    values = cosine_similarity(src, tgt)
    values[np.abs(values - 1.0) <= UNIT_TOLERANCE] = 1.0
    return values


def _concatenated_pair(a: FeatureVector, b: FeatureVector):
    u = a.features.concatenated()
    v = b.features.concatenated()
    if u.shape != v.shape:
        raise InvalidInput(
            f"Feature vectors of {a.user_id} and {b.user_id} have different lengths: "
            f"{u.shape[0]} vs {v.shape[0]}"
        )
    return u, v


def category_similarity(a: FeatureVector, b: FeatureVector, category: str) -> Optional[float]:
    """
    Cosine similarity of one sub-vector.

    Returns:
        Similarity, or None if the category is missing on either side

    Raises:
        InvalidInput: If both sides have the category with different lengths
    """
    if not (a.features.has(category) and b.features.has(category)):
        return None
    u = np.asarray(a.features.get(category), dtype=float)
    v = np.asarray(b.features.get(category), dtype=float)
    if u.shape != v.shape:
        raise InvalidInput(
            f"{category} vectors of {a.user_id} and {b.user_id} have different lengths: "
            f"{u.shape[0]} vs {v.shape[0]}"
        )
    return vector_cosine(u, v)


def _clip(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def cosine_score(a: FeatureVector, b: FeatureVector, config: SimilarityConfig = _DEFAULT_CONFIG) -> float:
    """Cosine similarity over the concatenated feature vectors."""
    u, v = _concatenated_pair(a, b)
    return _clip(vector_cosine(u, v))


def euclidean_score(a: FeatureVector, b: FeatureVector, config: SimilarityConfig = _DEFAULT_CONFIG) -> float:
    """Euclidean distance over the concatenated vectors mapped to 1 / (1 + d)."""
    u, v = _concatenated_pair(a, b)
    distance = float(np.linalg.norm(u - v))
    return 1.0 / (1.0 + distance)


def weighted_hybrid_score(
    a: FeatureVector,
    b: FeatureVector,
    config: SimilarityConfig = _DEFAULT_CONFIG
) -> float:
    """
    Weighted average of per-category cosine similarities.

    Categories missing on either side are excluded from both the weighted
    sum and the total weight. Returns 0 when no weighted category is shared.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for category, weight in config.category_weights.items():
        similarity = category_similarity(a, b, category)
        if similarity is None:
            continue
        weighted_sum += weight * similarity
        total_weight += weight
    if total_weight <= 0:
        return 0.0
    return _clip(weighted_sum / total_weight)


ScoreFn = Callable[[FeatureVector, FeatureVector, SimilarityConfig], float]

ALGORITHM_HANDLERS: Dict[SimilarityAlgorithm, ScoreFn] = {
    SimilarityAlgorithm.COSINE: cosine_score,
    SimilarityAlgorithm.EUCLIDEAN: euclidean_score,
    SimilarityAlgorithm.WEIGHTED_HYBRID: weighted_hybrid_score,
}

_unhandled = set(SimilarityAlgorithm) - set(ALGORITHM_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No similarity handler for: {sorted(a.value for a in _unhandled)}")


def score(
    a: FeatureVector,
    b: FeatureVector,
    algorithm: SimilarityAlgorithm = SimilarityAlgorithm.COSINE,
    config: Optional[SimilarityConfig] = None
) -> float:
    """
    Compatibility of two feature vectors under the selected algorithm.

    Args:
        a: Source feature vector
        b: Candidate feature vector
        algorithm: Algorithm (enum member or name)
        config: Similarity configuration (default weights)

    Returns:
        Score in [0, 1]

    Raises:
        InvalidInput: Unknown algorithm or mismatched vector dimensions
    """
    handler = ALGORITHM_HANDLERS[SimilarityAlgorithm.parse(algorithm)]
    return handler(a, b, config or _DEFAULT_CONFIG)


def confidence(similarity: float, quality_score: float) -> float:
    """Confidence of a match: similarity scaled by candidate data quality / 100."""
    return similarity * (quality_score / 100.0)


def _stack(vectors: Sequence[FeatureVector], category: Optional[str] = None):
    """
    Stack one category (or the concatenation) of several vectors into a matrix.

    Returns:
        Tuple of (matrix, presence mask). Rows for users missing the
        category are zero and masked out.
    """
    if category is None:
        rows = [v.features.concatenated() for v in vectors]
        mask = np.ones(len(rows), dtype=bool)
    else:
        rows = [
            np.asarray(v.features.get(category), dtype=float) if v.features.has(category) else None
            for v in vectors
        ]
        mask = np.array([r is not None for r in rows], dtype=bool)

    lengths = {r.shape[0] for r in rows if r is not None}
    if len(lengths) > 1:
        what = category or "concatenated"
        raise InvalidInput(f"Inconsistent {what} vector lengths: {sorted(lengths)}")
    dim = lengths.pop() if lengths else 0

    matrix = np.zeros((len(rows), dim), dtype=float)
    for i, row in enumerate(rows):
        if row is not None:
            matrix[i] = row
    return matrix, mask


def _matched_dims(source_matrix: np.ndarray, target_matrix: np.ndarray, what: str) -> int:
    if source_matrix.shape[1] != target_matrix.shape[1]:
        raise InvalidInput(
            f"Source and target {what} vectors have different lengths: "
            f"{source_matrix.shape[1]} vs {target_matrix.shape[1]}"
        )
    return source_matrix.shape[1]


def score_matrix(
    sources: Sequence[FeatureVector],
    targets: Sequence[FeatureVector],
    algorithm: SimilarityAlgorithm = SimilarityAlgorithm.COSINE,
    config: Optional[SimilarityConfig] = None
) -> np.ndarray:
    """
    Score every source against every target in one vectorized pass.

    Element [i, j] equals score(sources[i], targets[j], algorithm).
    Vectors within one call must share a feature schema.

    Args:
        sources: Row vectors (e.g. mentors)
        targets: Column vectors (e.g. mentees)
        algorithm: Algorithm (enum member or name)
        config: Similarity configuration

    Returns:
        Array of shape (len(sources), len(targets)) with scores in [0, 1]
    """
    algorithm = SimilarityAlgorithm.parse(algorithm)
    config = config or _DEFAULT_CONFIG
    if not sources or not targets:
        return np.zeros((len(sources), len(targets)), dtype=float)

    if algorithm is SimilarityAlgorithm.COSINE:
        src, _ = _stack(sources)
        tgt, _ = _stack(targets)
        if _matched_dims(src, tgt, "concatenated") == 0:
            return np.zeros((len(sources), len(targets)), dtype=float)
        # sklearn normalizes zero rows to zero, so zero vectors score 0
        return np.clip(_cosine_matrix(src, tgt), 0.0, 1.0)

    if algorithm is SimilarityAlgorithm.EUCLIDEAN:
        src, _ = _stack(sources)
        tgt, _ = _stack(targets)
        if _matched_dims(src, tgt, "concatenated") == 0:
            return np.ones((len(sources), len(targets)), dtype=float)
        return 1.0 / (1.0 + cdist(src, tgt, metric="euclidean"))

    weighted_sum = np.zeros((len(sources), len(targets)), dtype=float)
    total_weight = np.zeros_like(weighted_sum)
    for category, weight in config.category_weights.items():
        src, src_mask = _stack(sources, category)
        tgt, tgt_mask = _stack(targets, category)
        if not src_mask.any() or not tgt_mask.any():
            continue
        _matched_dims(src, tgt, category)
        shared = np.outer(src_mask, tgt_mask)
        weighted_sum += np.where(shared, weight * _cosine_matrix(src, tgt), 0.0)
        total_weight += np.where(shared, weight, 0.0)

    result = np.divide(weighted_sum, total_weight, out=np.zeros_like(weighted_sum), where=total_weight > 0)
    return np.clip(result, 0.0, 1.0)

