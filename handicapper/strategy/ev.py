"""
Expected Value (EV)
===================

The core formula, per unit staked:

    EV = p * (odds - 1) - (1 - p)  =  p * odds - 1

with decimal odds. Positive EV indicates a profitable bet in the long run.
"""

import math
from enum import Enum
from dataclasses import dataclass


class EVClass(str, Enum):
    """EV bands, best first."""
    STRONG_POSITIVE = "STRONG_POSITIVE"
    MODERATE_POSITIVE = "MODERATE_POSITIVE"
    SLIGHT_POSITIVE = "SLIGHT_POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


@dataclass(frozen=True)
class EVThresholds:
    """Lower edges of the EV bands (fraction of stake)."""
    strong_positive: float = 0.15
    moderate_positive: float = 0.08
    slight_positive: float = 0.02
    negative: float = -0.02

    def __post_init__(self):
        if not (self.strong_positive >= self.moderate_positive >= self.slight_positive >= self.negative):
            raise ValueError(f"EV thresholds must be descending: {self}")


DEFAULT_EV_THRESHOLDS = EVThresholds()


def calculate_expected_value(prob: float, decimal_odds: float) -> float:
    """
    EV per unit stake.

    Args:
        prob: Model win probability (0-1)
        decimal_odds: Decimal odds (e.g. 3.5 for 5-2)

    Returns:
        Expected value (-1 to infinity); 0 for non-finite input
    """
    if prob is None or decimal_odds is None:
        return 0.0
    if not math.isfinite(prob) or not math.isfinite(decimal_odds):
        return 0.0
    if prob <= 0 or decimal_odds <= 1.0:
        return -1.0
    return prob * (decimal_odds - 1.0) - (1.0 - prob)


def classify_ev(ev: float, thresholds: EVThresholds = DEFAULT_EV_THRESHOLDS) -> EVClass:
    if ev is None or not math.isfinite(ev):
        return EVClass.NEUTRAL
    if ev >= thresholds.strong_positive:
        return EVClass.STRONG_POSITIVE
    if ev >= thresholds.moderate_positive:
        return EVClass.MODERATE_POSITIVE
    if ev >= thresholds.slight_positive:
        return EVClass.SLIGHT_POSITIVE
    if ev >= thresholds.negative:
        return EVClass.NEUTRAL
    return EVClass.NEGATIVE
