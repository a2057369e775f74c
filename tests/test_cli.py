import json

import pytest

from mentormatch.run import build_parser, main

pytestmark = pytest.mark.integration


@pytest.fixture
def base_args(config_path, data_dir):
    return [
        "--config", str(config_path),
        "--vectors", str(data_dir / "vectors.jsonl"),
        "--profiles", str(data_dir / "profiles.csv"),
        "--history", str(data_dir / "history.csv"),
    ]


def test_find_matches_command(base_args, tmp_path):
    output = tmp_path / "matches.json"
    code = main(base_args + ["--output", str(output), "find-matches", "--user", "mentee-1", "--threshold", "0.0"])

    assert code == 0
    result = json.loads(output.read_text())
    assert result["algorithm"] == "cosine-similarity"
    assert result["matches"][0]["target_id"] == "mentor-1"
    assert all(m["target_id"].startswith("mentor") for m in result["matches"])


def test_fair_matches_command(base_args, tmp_path):
    output = tmp_path / "assignments.json"
    assert main(base_args + ["--output", str(output), "fair-matches"]) == 0

    assignments = json.loads(output.read_text())["assignments"]
    mentors = [a["mentor_id"] for a in assignments]
    mentees = [a["mentee_id"] for a in assignments]
    assert len(mentors) == len(set(mentors))
    assert len(mentees) == len(set(mentees))
    assert "mentee-4" not in mentees


def test_validate_command(base_args, data_dir, tmp_path):
    output = tmp_path / "report.json"
    frame = tmp_path / "outcomes.csv"
    code = main(base_args + [
        "--output", str(output),
        "validate", "--cases", str(data_dir / "validation_cases.yaml"), "--frame-output", str(frame),
    ])

    assert code == 0
    report = json.loads(output.read_text())
    assert report["overall_success"] is True
    assert len(frame.read_text().strip().splitlines()) == 5


def test_unknown_user_exits_with_error(base_args):
    assert main(base_args + ["find-matches", "--user", "ghost"]) == 1


def test_command_is_required(base_args):
    with pytest.raises(SystemExit):
        build_parser().parse_args(base_args)
