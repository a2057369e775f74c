"""
Time-bounded cache of feature vectors.

The store serves vectors from an immutable snapshot that is replaced as a
whole on every change:

- Bulk refresh builds a complete new snapshot from the source, then swaps it
  in. On failure the previous snapshot stays in place.
- Single-entry changes (invalidate, on-demand fetch) copy the current
  snapshot, modify the copy and swap it in.

Readers therefore always see either the old or the new cache, never a
half-populated one. Concurrent refreshes are tolerated: each one is a pure
overwrite and the last swap wins.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from ..configs.settings import CacheConfig
from ..errors import DataUnavailable
from ..schema import FEATURE_CATEGORIES, FeatureVector, UserType
from .loaders import FeatureVectorSource

logger = logging.getLogger(__name__)

HIGH_QUALITY_MIN = 80.0
MEDIUM_QUALITY_MIN = 50.0


@dataclass(frozen=True)
class CacheSnapshot:
    """
    One immutable generation of the cache.

    Attributes:
        vectors: Read-only mapping user_id -> FeatureVector
        refreshed_at: Clock reading of the bulk refresh this snapshot descends
            from (None if the cache was never refreshed)
        refreshed_wall: Wall-clock time of that refresh
        generation: Incremented on every swap
        pending: Invalidated users to reload on the next access
    """
    vectors: Mapping[str, FeatureVector] = field(default_factory=lambda: MappingProxyType({}))
    refreshed_at: Optional[float] = None
    refreshed_wall: Optional[datetime] = None
    generation: int = 0
    pending: FrozenSet[str] = frozenset()

    def age(self, now: float) -> float:
        if self.refreshed_at is None:
            return math.inf
        return now - self.refreshed_at

    def with_vectors(self, vectors: Iterable[FeatureVector], reloaded: Iterable[str] = ()) -> "CacheSnapshot":
        """Copy of this snapshot with vectors added or replaced and reloaded users no longer pending."""
        updated = dict(self.vectors)
        for vector in vectors:
            updated[vector.user_id] = vector
        pending = self.pending.difference(updated, reloaded)
        return replace(self, vectors=MappingProxyType(updated), generation=self.generation + 1, pending=pending)

    def without(self, user_id: str) -> "CacheSnapshot":
        """Copy of this snapshot with one entry removed and marked for reload."""
        updated = dict(self.vectors)
        updated.pop(user_id, None)
        return replace(
            self,
            vectors=MappingProxyType(updated),
            generation=self.generation + 1,
            pending=self.pending | {user_id},
        )


@dataclass(frozen=True)
class CacheStats:
    """Summary of the cached population."""
    total_profiles: int
    mentors: int
    mentees: int
    last_refresh: Optional[datetime]
    avg_quality_score: float
    generation: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_profiles": self.total_profiles,
            "mentors": self.mentors,
            "mentees": self.mentees,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
            "avg_quality_score": self.avg_quality_score,
            "generation": self.generation,
        }


@dataclass(frozen=True)
class DataQualityReport:
    """
    Quality breakdown of a set of feature vectors.

    Vectors score high at quality >= 80, medium at >= 50, low otherwise.
    Issues list low-quality vectors, missing sub-vectors and non-finite values.
    """
    total_vectors: int
    high_quality: int
    medium_quality: int
    low_quality: int
    average_quality: float
    issues: List[str]


class FeatureVectorStore:
    """
    Cache of feature vectors refreshed in bulk from a FeatureVectorSource.

    Attributes:
        source: Upstream vector provider
        config: Cache window configuration
    """

    def __init__(
        self,
        source: FeatureVectorSource,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize an empty store.

        Args:
            source: Upstream vector provider
            config: Cache configuration (default 5 minute window)
            clock: Monotonic clock in seconds, injectable for tests
        """
        self.source = source
        self.config = config or CacheConfig()
        self.config.validate()
        self._clock = clock
        self._snapshot = CacheSnapshot()
        self._swap_lock = threading.Lock()

    @property
    def snapshot(self) -> CacheSnapshot:
        """The current cache generation."""
        return self._snapshot

    def is_stale(self) -> bool:
        """True when the cache is empty or older than the configured window."""
        snapshot = self._snapshot
        return not snapshot.vectors or snapshot.age(self._clock()) > self.config.ttl_seconds

    def refresh(self) -> CacheSnapshot:
        """
        Replace the cache with a full reload from the source.

        Returns:
            The newly installed snapshot

        Raises:
            DataUnavailable: If the source fails; the previous cache is kept
        """
        logger.info("Refreshing feature vector cache")
        vectors = self._call_source(lambda: self.source.load_feature_vectors_batch([]), "bulk refresh")

        built = {vector.user_id: vector for vector in vectors}
        refreshed_at = self._clock()
        with self._swap_lock:
            self._snapshot = CacheSnapshot(
                vectors=MappingProxyType(built),
                refreshed_at=refreshed_at,
                refreshed_wall=datetime.now(timezone.utc),
                generation=self._snapshot.generation + 1,
            )
            snapshot = self._snapshot

        logger.info(f"Cached {len(built)} feature vectors (generation {snapshot.generation})")
        return snapshot

    def get(self, user_id: str) -> Optional[FeatureVector]:
        """
        Return the vector for one user.

        A user missing from a fresh cache (for example after invalidate) is
        fetched individually and added to the cache.

        Returns:
            The FeatureVector, or None if the source has no vector for the user
        """
        snapshot = self._ensure_fresh()
        vector = snapshot.vectors.get(user_id)
        if vector is not None:
            return vector

        vector = self._call_source(lambda: self.source.load_feature_vector(user_id), f"load of {user_id}")
        if vector is not None:
            self._install(lambda current: current.with_vectors([vector]))
        return vector

    def get_batch(self, user_ids: Sequence[str]) -> List[FeatureVector]:
        """
        Return vectors for several users in request order.

        Args:
            user_ids: Users to load; an empty sequence means every cached vector,
                including invalidated users reloaded from the source

        Returns:
            List of vectors; users without a vector are skipped
        """
        snapshot = self._ensure_fresh()
        if not user_ids:
            if snapshot.pending:
                snapshot = self._reload(sorted(snapshot.pending))
            return list(snapshot.vectors.values())

        missing = [uid for uid in dict.fromkeys(user_ids) if uid not in snapshot.vectors]
        if missing:
            snapshot = self._reload(missing)

        return [snapshot.vectors[uid] for uid in user_ids if uid in snapshot.vectors]

    def invalidate(self, user_id: str) -> None:
        """Drop one user's vector so the next access reloads it."""
        self._install(lambda current: current.without(user_id))
        logger.info(f"Profile cache cleared for user {user_id}")

    def stats(self) -> CacheStats:
        """Population counts and average quality of the (refreshed) cache."""
        snapshot = self._ensure_fresh()
        vectors = list(snapshot.vectors.values())
        mentors = sum(1 for v in vectors if v.user_type is UserType.MENTOR)
        avg_quality = float(np.mean([v.metadata.quality_score for v in vectors])) if vectors else 0.0
        return CacheStats(
            total_profiles=len(vectors),
            mentors=mentors,
            mentees=len(vectors) - mentors,
            last_refresh=snapshot.refreshed_wall,
            avg_quality_score=avg_quality,
            generation=snapshot.generation,
        )

    def quality_report(self, vectors: Optional[Sequence[FeatureVector]] = None) -> DataQualityReport:
        """
        Assess data quality of the given vectors (default: the whole cache).
        """
        if vectors is None:
            vectors = self.get_batch([])
        return assess_quality(vectors)

    def _ensure_fresh(self) -> CacheSnapshot:
        if self.is_stale():
            return self.refresh()
        return self._snapshot

    def _reload(self, user_ids: List[str]) -> CacheSnapshot:
        fetched = self._call_source(
            lambda: self.source.load_feature_vectors_batch(user_ids), f"batch load of {len(user_ids)} vectors"
        )
        return self._install(lambda current: current.with_vectors(fetched, reloaded=user_ids))

    def _install(self, change: Callable[[CacheSnapshot], CacheSnapshot]) -> CacheSnapshot:
        with self._swap_lock:
            self._snapshot = change(self._snapshot)
            return self._snapshot

    def _call_source(self, call, what: str):
        try:
            return call()
        except DataUnavailable:
            logger.error(f"Feature vector source unavailable during {what}")
            raise
        except Exception as e:
            logger.error(f"Feature vector source failed during {what}: {e}")
            raise DataUnavailable(f"Feature vector source failed during {what}: {e}") from e


def assess_quality(vectors: Sequence[FeatureVector]) -> DataQualityReport:
    """
    Classify vectors by quality score and collect data issues.

    Args:
        vectors: Feature vectors to assess

    Returns:
        DataQualityReport
    """
    issues = []
    high = medium = low = 0
    qualities = []

    for vector in vectors:
        quality = vector.metadata.quality_score
        qualities.append(quality)

        if quality >= HIGH_QUALITY_MIN:
            high += 1
        elif quality >= MEDIUM_QUALITY_MIN:
            medium += 1
        else:
            low += 1
            issues.append(f"Low quality vector for user {vector.user_id}: {quality}%")

        if any(not vector.features.has(c) for c in FEATURE_CATEGORIES):
            issues.append(f"Empty feature vectors for user {vector.user_id}")

        values = vector.features.concatenated()
        if values.size and not np.all(np.isfinite(values)):
            issues.append(f"Invalid values in feature vectors for user {vector.user_id}")

    return DataQualityReport(
        total_vectors=len(vectors),
        high_quality=high,
        medium_quality=medium,
        low_quality=low,
        average_quality=float(np.mean(qualities)) if qualities else 0.0,
        issues=issues,
    )
