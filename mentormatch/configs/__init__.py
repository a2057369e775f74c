"""Configuration loading and typed component settings."""

from .loader import load_config, validate_config, get_config_value
from .settings import (
    CacheConfig,
    SimilarityConfig,
    FairnessConfig,
    MatchingConfig,
    ValidationConfig,
    EngineSettings,
)

__all__ = [
    "load_config",
    "validate_config",
    "get_config_value",
    "CacheConfig",
    "SimilarityConfig",
    "FairnessConfig",
    "MatchingConfig",
    "ValidationConfig",
    "EngineSettings",
]
