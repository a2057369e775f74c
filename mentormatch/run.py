"""
Command-line entrypoint for the matching engine.

Usage:
    python -m mentormatch.run find-matches --user mentee-1 --vectors data/vectors.jsonl
    python -m mentormatch.run fair-matches --vectors data/vectors.jsonl --profiles data/profiles.csv
    python -m mentormatch.run validate --cases data/validation_cases.yaml \
        --vectors data/vectors.jsonl --profiles data/profiles.csv

Every command reads the YAML configuration, builds an in-memory source from
the data files and prints (or writes with --output) a JSON result.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional
import json

import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def load_test_cases(filepath: str) -> List["ValidationTestCase"]:
    """
    Load validation test cases from a YAML or JSON file.

    The file holds a list of cases, or a mapping with a "test_cases" list.
    """
    from .evaluation import ValidationTestCase

    with open(filepath, "r") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("test_cases", [])
    cases = [ValidationTestCase.from_dict(d) for d in data]
    logger.info(f"Loaded {len(cases)} validation test cases from {filepath}")
    return cases


def build_service(
    config_path: str,
    vectors_path: str,
    profiles_path: Optional[str] = None,
    history_path: Optional[str] = None
):
    """Load config and data files and construct a MatchingService."""
    from .configs import load_config, validate_config, EngineSettings
    from .data_loading import load_source
    from .matching import MatchingService

    config = load_config(config_path)
    issues = validate_config(config)
    if issues:
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

    setup_logging(config.get("global", {}).get("log_level", "INFO"))

    settings = EngineSettings.from_config(config)
    source = load_source(vectors_path, profiles_path, history_path)
    return MatchingService(source, source, settings)


def run_command(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Execute one CLI command.

    Returns:
        JSON-serializable result of the command
    """
    from .schema import MatchingConstraints, MatchingCriteria

    service = build_service(args.config, args.vectors, args.profiles, args.history)

    if args.command == "find-matches":
        response = service.find_matches(
            MatchingCriteria(user_id=args.user),
            limit=args.limit,
            threshold=args.threshold,
            algorithm=args.algorithm,
        )
        return response.to_dict()

    if args.command == "fair-matches":
        constraints = None
        if args.constraints:
            with open(args.constraints, "r") as f:
                constraints = MatchingConstraints.from_dict(yaml.safe_load(f) or {})
        assignments = service.create_fair_matches(constraints)
        return {"assignments": [a.to_dict() for a in assignments]}

    report = service.run_validation(load_test_cases(args.cases))
    logger.info("\n" + report.summary())
    if args.frame_output:
        report.to_frame().to_csv(args.frame_output, index=False)
        logger.info(f"Saved outcome table to {args.frame_output}")
    return report.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fairness-aware mentor-mentee matching engine"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--vectors",
        type=str,
        required=True,
        help="Feature vectors file (JSON, JSON Lines or YAML)"
    )
    parser.add_argument(
        "--profiles",
        type=str,
        default=None,
        help="Profiles file (CSV, JSON or YAML)"
    )
    parser.add_argument(
        "--history",
        type=str,
        default=None,
        help="Historical matches file (CSV, JSON or YAML)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the JSON result here instead of stdout"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    find = subparsers.add_parser("find-matches", help="Rank candidates for one user")
    find.add_argument("--user", type=str, required=True, help="User to find matches for")
    find.add_argument("--limit", type=int, default=None, help="Maximum number of matches")
    find.add_argument("--threshold", type=float, default=None, help="Minimum score")
    find.add_argument("--algorithm", type=str, default=None,
                      help="cosine-similarity, euclidean-distance or weighted-hybrid")

    fair = subparsers.add_parser("fair-matches", help="Create a fairness-adjusted assignment")
    fair.add_argument("--constraints", type=str, default=None,
                      help="YAML file with matching constraints")

    validate = subparsers.add_parser("validate", help="Run validation test cases")
    validate.add_argument("--cases", type=str, required=True, help="Test cases file (YAML or JSON)")
    validate.add_argument("--frame-output", type=str, default=None,
                          help="Also write one row per outcome to this CSV file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        result = run_command(args)
    except Exception as e:
        logger.exception(f"Command {args.command} failed with error: {e}")
        return 1

    output = json.dumps(result, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output)
        logger.info(f"Saved result to {args.output}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
