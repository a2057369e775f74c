import pytest

from mentormatch.data_loading import (
    load_feature_vectors,
    load_historical_matches,
    load_profiles,
    load_source,
)
from mentormatch.schema import MatchStatus, Role, UserType


@pytest.fixture
def sample_source(data_dir):
    return load_source(
        str(data_dir / "vectors.jsonl"),
        str(data_dir / "profiles.csv"),
        str(data_dir / "history.csv"),
    )


def test_load_feature_vectors(data_dir):
    vectors = load_feature_vectors(str(data_dir / "vectors.jsonl"))
    assert [v.user_id for v in vectors] == [
        "mentor-1", "mentor-2", "mentor-3", "mentee-1", "mentee-2", "mentee-3",
    ]
    mentor = vectors[0]
    assert mentor.user_type is UserType.MENTOR
    assert mentor.metadata.quality_score == 92
    assert mentor.metadata.last_updated.year == 2024
    assert len(mentor.features.skills) == 4


def test_load_profiles(data_dir):
    profiles = {p.user_id: p for p in load_profiles(str(data_dir / "profiles.csv"))}
    assert len(profiles) == 7

    assert profiles["mentor-1"].skills == ("python", "machine learning")
    assert profiles["mentor-1"].preferences == ()
    assert profiles["mentor-3"].role is Role.BOTH
    assert profiles["mentee-1"].preferences == ("python", "machine learning basics")
    assert profiles["mentee-3"].demographic_info.ethnicity is None
    assert profiles["mentee-3"].demographic_info.gender == "nonbinary"
    assert profiles["mentee-4"].is_active is False
    assert profiles["mentor-1"].experience_years == 12


def test_load_historical_matches(data_dir):
    history = load_historical_matches(str(data_dir / "history.csv"))
    assert len(history) == 4
    assert [m.status for m in history].count(MatchStatus.COMPLETED) == 2


def test_source_filters_roles_and_activity(sample_source):
    mentors = sample_source.load_profiles(roles=[Role.MENTOR, Role.BOTH])
    assert [p.user_id for p in mentors] == ["mentor-1", "mentor-2", "mentor-3"]

    mentees = sample_source.load_profiles(roles=[Role.MENTEE, Role.BOTH])
    assert "mentee-4" not in [p.user_id for p in mentees]

    everyone = sample_source.load_profiles(active_only=False)
    assert len(everyone) == 7


def test_source_history_by_status(sample_source):
    cancelled = sample_source.load_historical_matches([MatchStatus.CANCELLED])
    assert [(m.mentor_id, m.mentee_id) for m in cancelled] == [("mentor-2", "mentee-3"), ("mentor-3", "mentee-1")]


def test_yaml_profiles_with_nested_demographics(tmp_path):
    path = tmp_path / "profiles.yaml"
    path.write_text(
        "- user_id: u1\n"
        "  role: mentee\n"
        "  demographic_info: {gender: female, ethnicity: latina, experience_level: junior}\n"
        "  preferences: [python, sql]\n"
        "  experience_years: 2\n"
    )
    profile = load_profiles(str(path))[0]
    assert profile.demographic_info.ethnicity == "latina"
    assert profile.preferences == ("python", "sql")
    assert profile.is_active


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_profiles(str(tmp_path / "nope.csv"))


def test_unsupported_extension(tmp_path):
    path = tmp_path / "profiles.parquet"
    path.write_text("")
    with pytest.raises(ValueError):
        load_profiles(str(path))
