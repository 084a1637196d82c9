"""
Market Probability Normalizer
=============================

Pari-mutuel prices carry the track takeout, so the probabilities they
imply sum to more than 1.0 (the overround, typically 1.15-1.25).
Dividing every implied probability by that sum removes the overround
and leaves a fair market distribution to compare the model against.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .odds import odds_to_implied_probability, MIN_DECIMAL_ODDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketConfig:
    """
    Market sanity bounds.

    Attributes:
        default_takeout: Typical US win-pool takeout (17%)
        min_overround: Below this the odds data is suspect
        max_overround: Above this the market is unusual
    """
    default_takeout: float = 0.17
    min_overround: float = 1.10
    max_overround: float = 1.35

    def __post_init__(self):
        if not (0.0 <= self.default_takeout < 1.0):
            raise ValueError(f"default_takeout must be in [0, 1), got {self.default_takeout}")
        if self.min_overround > self.max_overround:
            raise ValueError(
                f"min_overround {self.min_overround} exceeds max_overround {self.max_overround}"
            )


DEFAULT_MARKET_CONFIG = MarketConfig()


@dataclass
class MarketValidation:
    """Result of a market sanity check."""
    is_valid: bool
    overround: float
    warnings: List[str] = field(default_factory=list)


def _finite_or_zero(p: float) -> float:
    return p if p is not None and math.isfinite(p) else 0.0


def calculate_overround(implied_probabilities: Sequence[float]) -> float:
    """Sum of naive implied probabilities (non-finite entries ignored)."""
    if len(implied_probabilities) == 0:
        return 1.0
    return math.fsum(_finite_or_zero(p) for p in implied_probabilities)


def calculate_takeout_percent(overround: float) -> float:
    """Takeout as (overround - 1) x 100; 0 for a fair or negative book."""
    if overround is None or not math.isfinite(overround) or overround <= 1.0:
        return 0.0
    return (overround - 1.0) * 100.0


def normalize_market_probabilities(implied_probabilities: Sequence[float]) -> List[float]:
    """
    Remove the overround: each probability divided by the field sum.

    Monotonic, so the market's ordering survives. A field that already sums
    to 1.0 comes back unchanged. A field with no usable probability mass
    becomes uniform.
    """
    n = len(implied_probabilities)
    if n == 0:
        return []

    values = [_finite_or_zero(p) for p in implied_probabilities]
    total = math.fsum(values)

    if total <= 0:
        return [1.0 / n] * n
    if abs(total - 1.0) < 1e-12:
        return values

    return [v / total for v in values]


def odds_to_normalized_probabilities(decimal_odds: Sequence[float]) -> List[float]:
    """Decimal odds -> implied -> normalized, in one step."""
    return normalize_market_probabilities([odds_to_implied_probability(o) for o in decimal_odds])


def validate_market_odds(
    decimal_odds: Sequence[float],
    config: MarketConfig = DEFAULT_MARKET_CONFIG,
) -> MarketValidation:
    """
    Check a field's odds look like a real market.

    Flags fields with fewer than 2 runners, odds below 1.01 or non-finite,
    and an overround outside [min_overround, max_overround].
    """
    if len(decimal_odds) < 2:
        return MarketValidation(
            is_valid=False,
            overround=0.0,
            warnings=["Insufficient field size - need at least 2 horses"],
        )

    warnings = []

    invalid = [o for o in decimal_odds if o is None or not math.isfinite(o) or o < MIN_DECIMAL_ODDS]
    if invalid:
        warnings.append(f"Found {len(invalid)} invalid odds values")

    overround = calculate_overround([odds_to_implied_probability(o) for o in decimal_odds])

    if overround < config.min_overround:
        warnings.append(
            f"Overround {overround:.3f} is below minimum {config.min_overround} - odds data may be suspect"
        )
    if overround > config.max_overround:
        warnings.append(
            f"Overround {overround:.3f} is above maximum {config.max_overround} - unusual market conditions"
        )

    return MarketValidation(is_valid=not warnings, overround=overround, warnings=warnings)
