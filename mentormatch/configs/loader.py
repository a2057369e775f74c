"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates that all required fields are present and in range.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ["global", "cache", "similarity", "fairness", "matching", "validation"]

UNIT_INTERVAL_KEYS = [
    "fairness.demographic_penalty",
    "fairness.diversity_scale",
    "fairness.constraints.max_demographic_imbalance",
    "fairness.constraints.min_equal_opportunity",
    "fairness.constraints.diversity_weight",
    "fairness.constraints.skill_weight",
    "fairness.constraints.preference_weight",
    "matching.default_threshold",
]


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")

    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    for section in REQUIRED_SECTIONS:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    # Cache window must be positive
    ttl = get_config_value(config, "cache.ttl_seconds")
    if ttl is not None and ttl <= 0:
        issues.append(f"cache.ttl_seconds must be positive, got {ttl}")

    # Hybrid weights must be non-negative and not all zero
    weights = get_config_value(config, "similarity.category_weights")
    if weights is not None:
        negative = [k for k, w in weights.items() if w < 0]
        if negative:
            issues.append(f"Negative similarity weights: {negative}")
        total = sum(weights.values())
        if total <= 0:
            issues.append("similarity.category_weights must not sum to 0")
        elif abs(total - 1.0) > 0.01:
            issues.append(f"Similarity weights don't sum to 1: {total}")

    for key in UNIT_INTERVAL_KEYS:
        value = get_config_value(config, key)
        if value is not None and not 0 <= value <= 1:
            issues.append(f"{key} must be in [0, 1], got {value}")

    limit = get_config_value(config, "matching.default_limit")
    if limit is not None and (not isinstance(limit, int) or limit <= 0):
        issues.append(f"matching.default_limit must be a positive integer, got {limit}")

    workers = get_config_value(config, "validation.max_workers")
    if workers is not None and (not isinstance(workers, int) or workers < 1):
        issues.append(f"validation.max_workers must be >= 1, got {workers}")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "fairness.constraints.diversity_weight")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
