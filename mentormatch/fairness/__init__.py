"""Fairness metrics and bias mitigation across demographic groups."""

from .metrics import (
    demographic_key,
    group_by_demographics,
    demographic_parity,
    equal_opportunity,
    equalizing_odds,
    calibration,
    compute_fairness_metrics,
)
from .mitigation import (
    demographic_similarity,
    mitigate_bias,
    FairnessAdjuster,
)

__all__ = [
    "demographic_key",
    "group_by_demographics",
    "demographic_parity",
    "equal_opportunity",
    "equalizing_odds",
    "calibration",
    "compute_fairness_metrics",
    "demographic_similarity",
    "mitigate_bias",
    "FairnessAdjuster",
]
