"""Data loading module: collaborator interfaces, file loaders and the vector cache."""

from .loaders import (
    FeatureVectorSource,
    ProfileSource,
    InMemorySource,
    load_feature_vectors,
    load_profiles,
    load_historical_matches,
    load_source,
)
from .feature_store import FeatureVectorStore, CacheSnapshot, CacheStats, DataQualityReport, assess_quality

__all__ = [
    "FeatureVectorSource",
    "ProfileSource",
    "InMemorySource",
    "load_feature_vectors",
    "load_profiles",
    "load_historical_matches",
    "load_source",
    "FeatureVectorStore",
    "CacheSnapshot",
    "CacheStats",
    "DataQualityReport",
    "assess_quality",
]
