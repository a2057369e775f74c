"""
Data sources for feature vectors and profiles.

This module defines the collaborator interfaces the engine consumes
(feature vector and profile sources), an in-memory implementation of both,
and functions that build that implementation from data files.

Supported files:
- Feature vectors: JSON array or JSON Lines, one vector per record
- Profiles: CSV (flat demographic columns, ";"-separated skill lists) or JSON
- Historical matches: CSV or JSON with mentor_id, mentee_id, status

No scoring is done here - that's handled by the similarity module.
"""

import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Iterable, Sequence, Protocol

import pandas as pd
import yaml

from ..schema import FeatureVector, Profile, HistoricalMatch, MatchStatus, Role

logger = logging.getLogger(__name__)

LIST_SEPARATOR = ";"


class FeatureVectorSource(Protocol):
    """Upstream provider of feature vectors."""

    def load_feature_vector(self, user_id: str) -> Optional[FeatureVector]:
        ...

    def load_feature_vectors_batch(self, user_ids: Sequence[str]) -> List[FeatureVector]:
        """Load vectors for the given users; an empty sequence means all users."""
        ...


class ProfileSource(Protocol):
    """Upstream provider of profiles and match history."""

    def load_profile(self, user_id: str) -> Optional[Profile]:
        ...

    def load_profiles(
        self,
        roles: Optional[Iterable[Role]] = None,
        active_only: bool = True
    ) -> List[Profile]:
        ...

    def load_historical_matches(
        self,
        statuses: Optional[Iterable[MatchStatus]] = None
    ) -> List[HistoricalMatch]:
        ...


class InMemorySource:
    """
    Feature vector and profile source backed by dictionaries.

    Insertion order is preserved, so "load all" calls return records in the
    order they were added.
    """

    def __init__(
        self,
        vectors: Iterable[FeatureVector] = (),
        profiles: Iterable[Profile] = (),
        historical_matches: Iterable[HistoricalMatch] = ()
    ):
        self._vectors: Dict[str, FeatureVector] = {}
        self._profiles: Dict[str, Profile] = {}
        self._history: List[HistoricalMatch] = list(historical_matches)
        for vector in vectors:
            self.upsert_vector(vector)
        for profile in profiles:
            self.upsert_profile(profile)

    def upsert_vector(self, vector: FeatureVector) -> None:
        """Add or replace the vector for vector.user_id."""
        self._vectors[vector.user_id] = vector

    def remove_vector(self, user_id: str) -> None:
        self._vectors.pop(user_id, None)

    def upsert_profile(self, profile: Profile) -> None:
        """Add or replace the profile for profile.user_id."""
        self._profiles[profile.user_id] = profile

    def load_feature_vector(self, user_id: str) -> Optional[FeatureVector]:
        return self._vectors.get(user_id)

    def load_feature_vectors_batch(self, user_ids: Sequence[str]) -> List[FeatureVector]:
        if not user_ids:
            return list(self._vectors.values())
        return [self._vectors[uid] for uid in user_ids if uid in self._vectors]

    def load_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    def load_profiles(
        self,
        roles: Optional[Iterable[Role]] = None,
        active_only: bool = True
    ) -> List[Profile]:
        wanted = set(roles) if roles is not None else None
        return [
            p for p in self._profiles.values()
            if (wanted is None or p.role in wanted) and (p.is_active or not active_only)
        ]

    def load_historical_matches(
        self,
        statuses: Optional[Iterable[MatchStatus]] = None
    ) -> List[HistoricalMatch]:
        wanted = set(statuses) if statuses is not None else None
        return [m for m in self._history if wanted is None or m.status in wanted]


def _is_missing(value: Any) -> bool:
    if isinstance(value, (list, tuple, dict)):
        return False
    return bool(pd.isna(value))


def _clean_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Replace pandas NaN/NaT placeholders with None."""
    return {k: (None if _is_missing(v) else v) for k, v in record.items()}


def _split_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip()]


def _read_records(filepath: str) -> List[Dict[str, Any]]:
    """
    Read a tabular data file into a list of records.

    Args:
        filepath: Path to a .csv, .json, .jsonl or .yaml file

    Returns:
        List of dictionaries, one per row, with missing values as None

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the extension is not supported
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(filepath, dtype={"user_id": str, "mentor_id": str, "mentee_id": str})
    elif suffix in (".json", ".jsonl"):
        df = pd.read_json(filepath, orient="records", lines=suffix == ".jsonl",
                          dtype=False, convert_dates=False)
    elif suffix in (".yaml", ".yml"):
        with open(filepath, "r") as f:
            records = yaml.safe_load(f) or []
        df = pd.DataFrame.from_records(records)
    else:
        raise ValueError(f"Unsupported data file type: {suffix}")

    logger.info(f"Loaded {len(df)} rows with {len(df.columns)} columns from {filepath}")
    return [_clean_record(r) for r in df.to_dict(orient="records")]


def load_feature_vectors(filepath: str) -> List[FeatureVector]:
    """
    Load feature vectors from a JSON, JSON Lines or YAML file.

    Each record must contain user_id, user_type and a features mapping;
    metadata (quality_score, last_updated, version) is optional.

    Args:
        filepath: Path to the vectors file

    Returns:
        List of FeatureVector instances in file order
    """
    vectors = []
    for record in _read_records(filepath):
        metadata = dict(record.get("metadata") or {})
        last_updated = metadata.get("last_updated", metadata.get("lastUpdated"))
        if isinstance(last_updated, str):
            metadata["last_updated"] = pd.to_datetime(last_updated).to_pydatetime()
            metadata.pop("lastUpdated", None)
        record["metadata"] = metadata
        vectors.append(FeatureVector.from_dict(record))

    n_mentors = sum(1 for v in vectors if v.user_type.value == "mentor")
    logger.info(f"Parsed {len(vectors)} feature vectors ({n_mentors} mentors, {len(vectors) - n_mentors} mentees)")
    return vectors


def load_profiles(filepath: str) -> List[Profile]:
    """
    Load profiles from CSV, JSON or YAML.

    CSV files carry demographics as flat gender/ethnicity/experience_level
    columns and skills/preferences as ";"-separated strings. JSON and YAML
    files may instead nest them under demographic_info.

    Args:
        filepath: Path to the profiles file

    Returns:
        List of Profile instances in file order
    """
    profiles = []
    for record in _read_records(filepath):
        if "demographic_info" not in record:
            record["demographic_info"] = {
                "gender": record.pop("gender", None),
                "ethnicity": record.pop("ethnicity", None),
                "experience_level": record.pop("experience_level", None),
            }
        record["skills"] = _split_list(record.get("skills"))
        record["preferences"] = _split_list(record.get("preferences"))
        if record.get("experience_years") is None:
            record["experience_years"] = 0
        if record.get("is_active") is None:
            record["is_active"] = True
        profiles.append(Profile.from_dict(record))

    logger.info(f"Parsed {len(profiles)} profiles")
    return profiles


def load_historical_matches(filepath: str) -> List[HistoricalMatch]:
    """
    Load past matches with their final status.

    Args:
        filepath: Path to a CSV, JSON or YAML file with mentor_id, mentee_id, status

    Returns:
        List of HistoricalMatch instances
    """
    matches = [HistoricalMatch.from_dict(r) for r in _read_records(filepath)]
    logger.info(f"Parsed {len(matches)} historical matches")
    return matches


def load_source(
    vectors_path: str,
    profiles_path: Optional[str] = None,
    history_path: Optional[str] = None
) -> InMemorySource:
    """
    Build an in-memory source from data files.

    Args:
        vectors_path: Feature vectors file
        profiles_path: Optional profiles file
        history_path: Optional historical matches file

    Returns:
        InMemorySource holding everything that was loaded
    """
    vectors = load_feature_vectors(vectors_path)
    profiles = load_profiles(profiles_path) if profiles_path else []
    history = load_historical_matches(history_path) if history_path else []
    return InMemorySource(vectors=vectors, profiles=profiles, historical_matches=history)
