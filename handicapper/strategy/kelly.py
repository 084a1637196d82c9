"""
Kelly Criterion Staking
=======================

Implements:
1. Full Kelly: f* = (b*p - q) / b, with b = decimal odds - 1, q = 1 - p
2. Fractional Kelly (multiplier, quarter Kelly by default)
3. Per-bet cap on the bankroll fraction
4. Per-race exposure cap applied across simultaneous bets
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KellyConfig:
    """
    Staking limits.

    Attributes:
        multiplier: Fraction of full Kelly to bet (0.25 = quarter Kelly)
        max_fraction: Cap on a single bet as a fraction of bankroll
        max_race_exposure: Cap on all bets in one race, fraction of bankroll
        min_stake_amount: Smallest stake worth placing, in currency
    """
    multiplier: float = 0.25
    max_fraction: float = 0.05
    max_race_exposure: float = 0.20
    min_stake_amount: float = 1.0

    def __post_init__(self):
        if not (0.0 < self.multiplier <= 1.0):
            raise ValueError(f"multiplier must be in (0, 1], got {self.multiplier}")
        if not (0.0 < self.max_fraction <= 1.0):
            raise ValueError(f"max_fraction must be in (0, 1], got {self.max_fraction}")
        if not (0.0 < self.max_race_exposure <= 1.0):
            raise ValueError(f"max_race_exposure must be in (0, 1], got {self.max_race_exposure}")
        if self.min_stake_amount < 0:
            raise ValueError(f"min_stake_amount must be >= 0, got {self.min_stake_amount}")

    def size(self, prob: float, decimal_odds: float) -> float:
        """Fractional Kelly clipped to [0, max_fraction]."""
        return min(self.max_fraction, max(0.0, kelly_formula(prob, decimal_odds) * self.multiplier))


DEFAULT_KELLY_CONFIG = KellyConfig()


def kelly_formula(prob: float, decimal_odds: float) -> float:
    """
    Full Kelly fraction.

    Returns:
        Fraction of bankroll to bet (0 when there is no edge)
    """
    if prob is None or decimal_odds is None:
        return 0.0
    if not math.isfinite(prob) or not math.isfinite(decimal_odds):
        return 0.0
    if prob <= 0 or prob >= 1 or decimal_odds <= 1:
        return 0.0

    b = decimal_odds - 1
    p = prob
    q = 1 - p

    return max(0.0, (b * p - q) / b)


def cap_race_exposure(fractions: Sequence[float], max_exposure: float) -> List[float]:
    """Scale stakes down proportionally so their sum stays within max_exposure."""
    total = math.fsum(fractions)
    if total <= max_exposure or total <= 0:
        return list(fractions)

    scale = max_exposure / total
    logger.info(
        f"Race exposure {total:.2%} exceeds cap {max_exposure:.2%}, scaling stakes by {scale:.3f}"
    )
    return [f * scale for f in fractions]
