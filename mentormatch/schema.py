"""
Data model for the matching engine.

Defines feature vectors, profiles, scores, constraints and results that flow
through the matching pipeline:

    FeatureVector -> RawScore -> FairnessAdjustedScore -> Assignment

Feature vectors, profiles and scores are frozen: a changed profile yields a
new vector rather than a mutation of the cached one.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, Sequence

import numpy as np

from .errors import InvalidInput


# Order matters: concatenation for cosine/euclidean follows this order
FEATURE_CATEGORIES: Tuple[str, ...] = (
    "skills",
    "experience",
    "availability",
    "preference",
    "reputation",
    "engagement",
)

DEMOGRAPHIC_ATTRIBUTES: Tuple[str, ...] = ("gender", "ethnicity", "experience_level")


class UserType(Enum):
    """Side of the mentorship a feature vector describes."""
    MENTOR = "mentor"
    MENTEE = "mentee"

    @property
    def opposite(self) -> "UserType":
        return UserType.MENTEE if self is UserType.MENTOR else UserType.MENTOR


class Role(Enum):
    """Role a user holds on the platform."""
    MENTOR = "mentor"
    MENTEE = "mentee"
    BOTH = "both"


class MatchStatus(Enum):
    """Lifecycle status of a mentor-mentee match."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SimilarityAlgorithm(Enum):
    """Pairwise similarity algorithms supported by the engine."""
    COSINE = "cosine-similarity"
    EUCLIDEAN = "euclidean-distance"
    WEIGHTED_HYBRID = "weighted-hybrid"

    @classmethod
    def parse(cls, value: Any) -> "SimilarityAlgorithm":
        """
        Resolve an algorithm from an enum member or its name.

        Accepts the wire value ("cosine-similarity"), the member name
        ("COSINE") or the short aliases "cosine", "euclidean" and "hybrid".

        Raises:
            InvalidInput: If the value does not name a known algorithm
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in cls:
                if normalized in (member.value, member.name.lower().replace("_", "-")):
                    return member
            aliases = {"cosine": cls.COSINE, "euclidean": cls.EUCLIDEAN, "hybrid": cls.WEIGHTED_HYBRID}
            if normalized in aliases:
                return aliases[normalized]
        raise InvalidInput(f"Unknown similarity algorithm: {value!r}")


def _to_float_tuple(values: Optional[Sequence[float]]) -> Optional[Tuple[float, ...]]:
    if values is None:
        return None
    return tuple(float(v) for v in values)


@dataclass(frozen=True)
class FeatureSet:
    """
    The six named sub-vectors of a feature vector.

    A sub-vector set to None means the category is missing for this user.
    Lists are converted to tuples of floats on construction.
    """
    skills: Optional[Tuple[float, ...]] = None
    experience: Optional[Tuple[float, ...]] = None
    availability: Optional[Tuple[float, ...]] = None
    preference: Optional[Tuple[float, ...]] = None
    reputation: Optional[Tuple[float, ...]] = None
    engagement: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        for category in FEATURE_CATEGORIES:
            object.__setattr__(self, category, _to_float_tuple(getattr(self, category)))

    def get(self, category: str) -> Optional[Tuple[float, ...]]:
        """Return the sub-vector for a category, or None if missing."""
        if category not in FEATURE_CATEGORIES:
            raise InvalidInput(f"Unknown feature category: {category}")
        return getattr(self, category)

    def has(self, category: str) -> bool:
        """Whether the category is present (non-empty) for this user."""
        values = self.get(category)
        return values is not None and len(values) > 0

    def concatenated(self) -> np.ndarray:
        """All present sub-vectors joined in category order."""
        parts = [self.get(c) for c in FEATURE_CATEGORIES if self.has(c)]
        if not parts:
            return np.zeros(0, dtype=float)
        return np.concatenate([np.asarray(p, dtype=float) for p in parts])

    def to_dict(self) -> Dict[str, Optional[List[float]]]:
        return {
            c: (list(getattr(self, c)) if getattr(self, c) is not None else None)
            for c in FEATURE_CATEGORIES
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeatureSet":
        """
        Create from dictionary.

        Keys may be the bare category ("skills"), snake case ("skills_vector")
        or camel case ("skillsVector").
        """
        values = {}
        for category in FEATURE_CATEGORIES:
            for key in (category, f"{category}_vector", f"{category}Vector"):
                if key in d:
                    values[category] = d[key]
                    break
        return cls(**values)


@dataclass(frozen=True)
class VectorMetadata:
    """
    Provenance of a feature vector.

    Attributes:
        quality_score: Data completeness score in [0, 100]
        last_updated: When the vector was last computed
        version: Feature schema version
    """
    quality_score: float = 0.0
    last_updated: Optional[datetime] = None
    version: str = "1.0"

    def __post_init__(self):
        if isinstance(self.last_updated, str):
            object.__setattr__(self, "last_updated", datetime.fromisoformat(self.last_updated))
        object.__setattr__(self, "quality_score", float(self.quality_score))
        if not 0 <= self.quality_score <= 100:
            raise InvalidInput(f"quality_score must be in [0, 100], got {self.quality_score}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality_score": self.quality_score,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "version": self.version,
        }


@dataclass(frozen=True)
class FeatureVector:
    """
    Fixed-schema numeric encoding of one user's profile.

    Attributes:
        user_id: Owner of the vector
        user_type: Whether the user is matched as a mentor or mentee
        features: The six named sub-vectors
        metadata: Quality score, timestamp and schema version
    """
    user_id: str
    user_type: UserType
    features: FeatureSet
    metadata: VectorMetadata = field(default_factory=VectorMetadata)

    def __post_init__(self):
        if isinstance(self.user_type, str):
            object.__setattr__(self, "user_type", UserType(self.user_type))
        if isinstance(self.features, dict):
            object.__setattr__(self, "features", FeatureSet.from_dict(self.features))
        if isinstance(self.metadata, dict):
            object.__setattr__(self, "metadata", VectorMetadata(**self.metadata))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "user_type": self.user_type.value,
            "features": self.features.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeatureVector":
        metadata = d.get("metadata") or {}
        return cls(
            user_id=str(d.get("user_id", d.get("userId"))),
            user_type=d.get("user_type", d.get("userType")),
            features=FeatureSet.from_dict(d.get("features") or {}),
            metadata=VectorMetadata(
                quality_score=metadata.get("quality_score", metadata.get("qualityScore", 0.0)),
                last_updated=metadata.get("last_updated", metadata.get("lastUpdated")),
                version=str(metadata.get("version", "1.0")),
            ),
        )


@dataclass(frozen=True)
class DemographicInfo:
    """
    Demographic attributes used for fairness grouping only, never for scoring.
    """
    gender: Optional[str] = None
    ethnicity: Optional[str] = None
    experience_level: Optional[str] = None

    def group_key(self) -> str:
        """Grouping key gender_ethnicity_experienceLevel with "unknown" for gaps."""
        return "_".join(getattr(self, attr) or "unknown" for attr in DEMOGRAPHIC_ATTRIBUTES)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "DemographicInfo":
        d = d or {}
        return cls(
            gender=d.get("gender"),
            ethnicity=d.get("ethnicity"),
            experience_level=d.get("experience_level", d.get("experienceLevel")),
        )


@dataclass(frozen=True)
class Profile:
    """
    The slice of a user profile the matching core needs.

    Attributes:
        user_id: User identifier
        role: mentor, mentee or both
        demographic_info: Attributes used for fairness grouping
        skills: Skills the user offers (mentors)
        preferences: Skills the user wants to learn (mentees)
        experience_years: Years of professional experience
        is_active: Inactive users are excluded from fair matching
    """
    user_id: str
    role: Role
    demographic_info: DemographicInfo = field(default_factory=DemographicInfo)
    skills: Tuple[str, ...] = ()
    preferences: Tuple[str, ...] = ()
    experience_years: int = 0
    is_active: bool = True

    def __post_init__(self):
        if isinstance(self.role, str):
            object.__setattr__(self, "role", Role(self.role))
        if isinstance(self.demographic_info, dict) or self.demographic_info is None:
            object.__setattr__(self, "demographic_info", DemographicInfo.from_dict(self.demographic_info))
        object.__setattr__(self, "skills", tuple(self.skills or ()))
        object.__setattr__(self, "preferences", tuple(self.preferences or ()))

    @property
    def is_mentor(self) -> bool:
        return self.role in (Role.MENTOR, Role.BOTH)

    @property
    def is_mentee(self) -> bool:
        return self.role in (Role.MENTEE, Role.BOTH)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Profile":
        return cls(
            user_id=str(d.get("user_id", d.get("userId", d.get("id")))),
            role=d["role"],
            demographic_info=DemographicInfo.from_dict(d.get("demographic_info", d.get("demographicInfo"))),
            skills=tuple(d.get("skills") or ()),
            preferences=tuple(d.get("preferences") or ()),
            experience_years=int(d.get("experience_years", d.get("experienceYears", 0)) or 0),
            is_active=bool(d.get("is_active", d.get("isActive", True))),
        )


@dataclass(frozen=True)
class HistoricalMatch:
    """A past match with its final status, used for equalizing odds."""
    mentor_id: str
    mentee_id: str
    status: MatchStatus

    def __post_init__(self):
        if isinstance(self.status, str):
            object.__setattr__(self, "status", MatchStatus(self.status))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HistoricalMatch":
        return cls(
            mentor_id=str(d.get("mentor_id", d.get("mentorId"))),
            mentee_id=str(d.get("mentee_id", d.get("menteeId"))),
            status=d["status"],
        )


@dataclass
class MatchingCriteria:
    """
    Query-side description of what a user wants matched.

    Attributes:
        user_id: User to find matches for
        preferences: Preferred attribute values
        weights: Per-attribute importance weights
        filters: Hard filters supplied by the caller
    """
    user_id: str
    preferences: Dict[str, Any] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise InvalidInput if the criteria are malformed."""
        if not isinstance(self.user_id, str) or not self.user_id.strip():
            raise InvalidInput(f"criteria.user_id must be a non-empty string, got {self.user_id!r}")
        for name in ("preferences", "weights", "filters"):
            if not isinstance(getattr(self, name), dict):
                raise InvalidInput(f"criteria.{name} must be a mapping")
        for key, weight in self.weights.items():
            if not isinstance(weight, (int, float)) or weight < 0:
                raise InvalidInput(f"criteria.weights[{key!r}] must be a non-negative number, got {weight!r}")


@dataclass(frozen=True)
class RawScore:
    """Compatibility score for one mentor x mentee pair, in [0, 1]."""
    mentor_id: str
    mentee_id: str
    score: float


@dataclass(frozen=True)
class FairnessAdjustedScore(RawScore):
    """Raw score plus the score after bias mitigation, both in [0, 1]."""
    fairness_adjusted_score: float


@dataclass(frozen=True)
class FairnessMetrics:
    """
    Fairness audit attached to a completed assignment batch.

    calibration is None: no calibration definition exists yet.
    """
    demographic_parity: float
    equal_opportunity: float
    equalizing_odds: float
    calibration: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


def _check_unit_interval(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or not 0 <= value <= 1:
        raise InvalidInput(f"{name} must be in [0, 1], got {value!r}")


@dataclass(frozen=True)
class MatchingConstraints:
    """
    Policy knobs for one fair-matching invocation.

    Attributes:
        max_demographic_imbalance: Penalize pairs whose demographic
            similarity exceeds 1 - this value
        min_equal_opportunity: Equal-opportunity floor; a warning is logged
            when a batch falls below it
        diversity_weight: Scale of the cross-demographic bonus
        skill_weight: Importance of skills alignment
        preference_weight: Importance of stated preferences
    """
    max_demographic_imbalance: float = 0.2
    min_equal_opportunity: float = 0.8
    diversity_weight: float = 0.3
    skill_weight: float = 0.4
    preference_weight: float = 0.3

    def __post_init__(self):
        for name in ("max_demographic_imbalance", "min_equal_opportunity",
                     "diversity_weight", "skill_weight", "preference_weight"):
            _check_unit_interval(name, getattr(self, name))

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "MatchingConstraints":
        """
        Build constraints from snake_case or camelCase keys.

        Raises:
            InvalidInput: If a key names no constraint
        """
        fields = {}
        for key, value in (d or {}).items():
            name = _CONSTRAINT_KEYS.get(key)
            if name is None:
                raise InvalidInput(f"Unknown matching constraint: {key!r}")
            fields[name] = value
        return cls(**fields)


_CONSTRAINT_KEYS = {
    "max_demographic_imbalance": "max_demographic_imbalance",
    "maxDemographicImbalance": "max_demographic_imbalance",
    "min_equal_opportunity": "min_equal_opportunity",
    "minEqualOpportunity": "min_equal_opportunity",
    "diversity_weight": "diversity_weight",
    "diversityWeight": "diversity_weight",
    "skill_weight": "skill_weight",
    "skillWeight": "skill_weight",
    "preference_weight": "preference_weight",
    "preferenceWeight": "preference_weight",
}


@dataclass
class MatchingResult:
    """One candidate returned by find_matches."""
    target_id: str
    score: float
    confidence: float
    reasons: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "score": self.score,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "metadata": {
                k: (v.isoformat() if isinstance(v, datetime) else v)
                for k, v in self.metadata.items()
            },
        }


@dataclass
class MatchResponse:
    """Output of find_matches."""
    matches: List[MatchingResult]
    total_processed: int
    execution_time_ms: float
    algorithm: SimilarityAlgorithm

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "total_processed": self.total_processed,
            "execution_time_ms": self.execution_time_ms,
            "algorithm": self.algorithm.value,
        }


@dataclass
class Assignment:
    """An accepted mentor-mentee pair produced by create_fair_matches."""
    mentor_id: str
    mentee_id: str
    compatibility_score: float
    fairness_score: float
    fairness_metrics: FairnessMetrics
    status: MatchStatus = MatchStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mentor_id": self.mentor_id,
            "mentee_id": self.mentee_id,
            "compatibility_score": self.compatibility_score,
            "fairness_score": self.fairness_score,
            "fairness_metrics": self.fairness_metrics.to_dict(),
            "status": self.status.value,
        }
