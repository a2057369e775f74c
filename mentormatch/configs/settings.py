"""
Typed configuration for each engine component.

Every tunable constant of the engine lives in one of these dataclasses so
that tests and callers can override it without touching module globals.
Each config is built from the main YAML dictionary with ``from_config``.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional
import json

from ..errors import InvalidInput
from ..schema import FEATURE_CATEGORIES, MatchStatus, MatchingConstraints, SimilarityAlgorithm

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "skills": 0.40,
    "experience": 0.20,
    "availability": 0.15,
    "preference": 0.15,
    "reputation": 0.05,
    "engagement": 0.05,
}


@dataclass
class CacheConfig:
    """
    Configuration for the feature vector cache.

    Attributes:
        ttl_seconds: Cache age after which a bulk refresh is triggered
    """
    ttl_seconds: float = 300.0

    def validate(self) -> None:
        if self.ttl_seconds <= 0:
            raise InvalidInput(f"ttl_seconds must be positive, got {self.ttl_seconds}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CacheConfig":
        cache_config = config.get("cache", {})
        return cls(ttl_seconds=float(cache_config.get("ttl_seconds", 300.0)))


@dataclass
class SimilarityConfig:
    """
    Configuration for similarity scoring and match reasons.

    Attributes:
        category_weights: Weighted-hybrid weight per feature category
        skills_reason_threshold: Skills similarity above which a reason is emitted
        experience_reason_threshold: Experience similarity threshold
        availability_reason_threshold: Availability similarity threshold
        reputation_reason_sum: Candidate reputation sum threshold
    """
    category_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS))
    skills_reason_threshold: float = 0.7
    experience_reason_threshold: float = 0.6
    availability_reason_threshold: float = 0.5
    reputation_reason_sum: float = 2.0

    def validate(self) -> None:
        """Validate configuration values."""
        unknown = set(self.category_weights) - set(FEATURE_CATEGORIES)
        if unknown:
            raise InvalidInput(f"Unknown feature categories in weights: {sorted(unknown)}")
        if any(w < 0 for w in self.category_weights.values()):
            raise InvalidInput("category_weights must be non-negative")
        if sum(self.category_weights.values()) <= 0:
            raise InvalidInput("category_weights must not sum to 0")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SimilarityConfig":
        sim_config = config.get("similarity", {})
        thresholds = sim_config.get("reason_thresholds", {})
        return cls(
            category_weights=dict(sim_config.get("category_weights", DEFAULT_CATEGORY_WEIGHTS)),
            skills_reason_threshold=thresholds.get("skills", 0.7),
            experience_reason_threshold=thresholds.get("experience", 0.6),
            availability_reason_threshold=thresholds.get("availability", 0.5),
            reputation_reason_sum=thresholds.get("reputation_sum", 2.0),
        )


@dataclass
class FairnessConfig:
    """
    Configuration for bias mitigation.

    Formula:
        penalty = demographic_penalty if similarity > 1 - max_imbalance else 0
        bonus = (1 - similarity) * diversity_weight * diversity_scale
        adjusted = clip(raw * (1 - penalty) + bonus, 0, 1)

    Attributes:
        demographic_penalty: Multiplicative penalty for demographically similar pairs
        diversity_scale: Scale applied to the cross-demographic bonus
        default_constraints: Constraints used when a caller supplies none
    """
    demographic_penalty: float = 0.1
    diversity_scale: float = 0.2
    default_constraints: MatchingConstraints = field(default_factory=MatchingConstraints)

    def validate(self) -> None:
        if not 0 <= self.demographic_penalty <= 1:
            raise InvalidInput(f"demographic_penalty must be in [0, 1], got {self.demographic_penalty}")
        if not 0 <= self.diversity_scale <= 1:
            raise InvalidInput(f"diversity_scale must be in [0, 1], got {self.diversity_scale}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "demographic_penalty": self.demographic_penalty,
            "diversity_scale": self.diversity_scale,
            "default_constraints": self.default_constraints.to_dict(),
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FairnessConfig":
        fairness_config = config.get("fairness", {})
        return cls(
            demographic_penalty=fairness_config.get("demographic_penalty", 0.1),
            diversity_scale=fairness_config.get("diversity_scale", 0.2),
            default_constraints=MatchingConstraints.from_dict(fairness_config.get("constraints", {})),
        )


@dataclass
class MatchingConfig:
    """
    Configuration for the matching service.

    Attributes:
        default_limit: Maximum results returned by find_matches
        default_threshold: Minimum score for a candidate to be returned
        default_algorithm: Algorithm used by find_matches when none is given
        fair_match_algorithm: Algorithm used to compute raw fair-match scores
        profile_skill_weight: Weight of skill overlap in the profile fallback score
        profile_experience_weight: Weight of experience fit in the profile fallback score
        historical_statuses: Match statuses fed to equalizing odds
    """
    default_limit: int = 10
    default_threshold: float = 0.5
    default_algorithm: SimilarityAlgorithm = SimilarityAlgorithm.COSINE
    fair_match_algorithm: SimilarityAlgorithm = SimilarityAlgorithm.WEIGHTED_HYBRID
    profile_skill_weight: float = 0.6
    profile_experience_weight: float = 0.4
    historical_statuses: List[MatchStatus] = field(
        default_factory=lambda: [MatchStatus.COMPLETED, MatchStatus.CANCELLED]
    )

    def __post_init__(self):
        self.default_algorithm = SimilarityAlgorithm.parse(self.default_algorithm)
        self.fair_match_algorithm = SimilarityAlgorithm.parse(self.fair_match_algorithm)
        self.historical_statuses = [MatchStatus(s) for s in self.historical_statuses]

    def validate(self) -> None:
        if not isinstance(self.default_limit, int) or self.default_limit <= 0:
            raise InvalidInput(f"default_limit must be a positive integer, got {self.default_limit}")
        if not 0 <= self.default_threshold <= 1:
            raise InvalidInput(f"default_threshold must be in [0, 1], got {self.default_threshold}")
        if min(self.profile_skill_weight, self.profile_experience_weight) < 0:
            raise InvalidInput("profile weights must be non-negative")
        if self.profile_skill_weight + self.profile_experience_weight > 1:
            raise InvalidInput("profile weights must sum to at most 1")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_limit": self.default_limit,
            "default_threshold": self.default_threshold,
            "default_algorithm": self.default_algorithm.value,
            "fair_match_algorithm": self.fair_match_algorithm.value,
            "profile_skill_weight": self.profile_skill_weight,
            "profile_experience_weight": self.profile_experience_weight,
            "historical_statuses": [s.value for s in self.historical_statuses],
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MatchingConfig":
        matching_config = config.get("matching", {})
        profile_weights = matching_config.get("profile_weights", {})
        return cls(
            default_limit=matching_config.get("default_limit", 10),
            default_threshold=matching_config.get("default_threshold", 0.5),
            default_algorithm=matching_config.get("default_algorithm", "cosine-similarity"),
            fair_match_algorithm=matching_config.get("fair_match_algorithm", "weighted-hybrid"),
            profile_skill_weight=profile_weights.get("skills", 0.6),
            profile_experience_weight=profile_weights.get("experience", 0.4),
            historical_statuses=matching_config.get("historical_statuses", ["completed", "cancelled"]),
        )


@dataclass
class ValidationConfig:
    """
    Configuration for the validation harness.

    Attributes:
        default_algorithm: Algorithm used for test cases that name none
        max_workers: Test cases run in parallel when greater than 1
        metric_decimals: Rounding applied to summary metrics
    """
    default_algorithm: SimilarityAlgorithm = SimilarityAlgorithm.COSINE
    max_workers: int = 1
    metric_decimals: int = 4

    def __post_init__(self):
        self.default_algorithm = SimilarityAlgorithm.parse(self.default_algorithm)

    def validate(self) -> None:
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise InvalidInput(f"max_workers must be >= 1, got {self.max_workers}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_algorithm": self.default_algorithm.value,
            "max_workers": self.max_workers,
            "metric_decimals": self.metric_decimals,
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ValidationConfig":
        validation_config = config.get("validation", {})
        return cls(
            default_algorithm=validation_config.get("default_algorithm", "cosine-similarity"),
            max_workers=validation_config.get("max_workers", 1),
            metric_decimals=validation_config.get("metric_decimals", 4),
        )


@dataclass
class EngineSettings:
    """All component configurations for one engine instance."""
    cache: CacheConfig = field(default_factory=CacheConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    fairness: FairnessConfig = field(default_factory=FairnessConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    def validate(self) -> None:
        """Validate every component configuration."""
        for component in (self.cache, self.similarity, self.fairness, self.matching, self.validation):
            component.validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.to_dict(),
            "similarity": self.similarity.to_dict(),
            "fairness": self.fairness.to_dict(),
            "matching": self.matching.to_dict(),
            "validation": self.validation.to_dict(),
        }

    def save(self, filepath: str) -> None:
        """Save resolved settings to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved engine settings to {filepath}")

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "EngineSettings":
        """Create from main config dictionary (defaults when None)."""
        config = config or {}
        settings = cls(
            cache=CacheConfig.from_config(config),
            similarity=SimilarityConfig.from_config(config),
            fairness=FairnessConfig.from_config(config),
            matching=MatchingConfig.from_config(config),
            validation=ValidationConfig.from_config(config),
        )
        settings.validate()
        return settings
