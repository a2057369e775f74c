"""Shared fixtures for the matching engine tests."""

from pathlib import Path

import pytest

from mentormatch.data_loading import InMemorySource
from mentormatch.schema import (
    DemographicInfo,
    FeatureSet,
    FeatureVector,
    HistoricalMatch,
    Profile,
    VectorMetadata,
)

REPO_ROOT = Path(__file__).resolve().parent.parent


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: runs against the sample data files in data/"
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingSource(InMemorySource):
    """In-memory source that counts calls and can be made to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.batch_calls = []
        self.single_calls = []
        self.fail_with = None

    def load_feature_vector(self, user_id):
        self.single_calls.append(user_id)
        if self.fail_with:
            raise self.fail_with
        return super().load_feature_vector(user_id)

    def load_feature_vectors_batch(self, user_ids):
        self.batch_calls.append(list(user_ids))
        if self.fail_with:
            raise self.fail_with
        return super().load_feature_vectors_batch(user_ids)


def _vector(user_id, user_type="mentor", quality=80.0, **features):
    return FeatureVector(
        user_id=user_id,
        user_type=user_type,
        features=FeatureSet(**features),
        metadata=VectorMetadata(quality_score=quality),
    )


def _uniform(a, b, reputation):
    """Feature set with every category set to [a, b] except reputation."""
    return dict(
        skills=[a, b], experience=[a, b], availability=[a, b],
        preference=[a, b], reputation=reputation, engagement=[a, b],
    )


@pytest.fixture
def make_vector():
    """Factory for feature vectors: make_vector("u1", "mentee", skills=[...])."""
    return _vector


@pytest.fixture
def make_profile():
    """Factory for profiles with flat demographic keywords."""

    def factory(user_id, role="mentor", gender=None, ethnicity=None, experience_level=None, **kwargs):
        return Profile(
            user_id=user_id,
            role=role,
            demographic_info=DemographicInfo(gender, ethnicity, experience_level),
            **kwargs,
        )

    return factory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine_vectors():
    """
    Two mentors and two mentees with a clear structure:
    mentor-a/mentee-a point along the first axis, mentor-b/mentee-b along the second.
    """
    return [
        _vector("mentor-a", "mentor", 90.0, **_uniform(1.0, 0.0, [1.5, 1.0])),
        _vector("mentor-b", "mentor", 70.0, **_uniform(0.0, 1.0, [0.2, 0.3])),
        _vector("mentee-a", "mentee", 85.0, **_uniform(1.0, 0.0, [0.1, 0.1])),
        _vector("mentee-b", "mentee", 60.0, **_uniform(0.0, 1.0, [0.1, 0.1])),
    ]


@pytest.fixture
def engine_profiles(make_profile):
    return [
        make_profile("mentor-a", "mentor", "female", "asian", "senior",
                     skills=("python", "ml"), experience_years=12),
        make_profile("mentor-b", "mentor", "male", "white", "senior",
                     skills=("frontend",), experience_years=9),
        make_profile("mentee-a", "mentee", "male", "asian", "junior",
                     preferences=("python basics",), experience_years=1),
        make_profile("mentee-b", "mentee", "female", "white", "junior",
                     preferences=("frontend frameworks",), experience_years=2),
        # No feature vector: scored from its profile
        make_profile("mentee-c", "mentee", preferences=("python",), experience_years=1),
        make_profile("mentee-inactive", "mentee", "male", "white", "junior", is_active=False),
    ]


@pytest.fixture
def engine_history():
    return [
        HistoricalMatch("mentor-a", "mentee-a", "completed"),
        HistoricalMatch("mentor-b", "mentee-b", "cancelled"),
    ]


@pytest.fixture
def engine_source(engine_vectors, engine_profiles, engine_history):
    return CountingSource(vectors=engine_vectors, profiles=engine_profiles, historical_matches=engine_history)


@pytest.fixture
def data_dir():
    return REPO_ROOT / "data"


@pytest.fixture
def config_path():
    return REPO_ROOT / "configs" / "config.yaml"


@pytest.fixture
def make_source():
    """Factory for CountingSource instances."""
    return CountingSource
