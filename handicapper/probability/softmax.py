"""
Softmax Probability Converter
=============================

Converts raw handicapping scores into a coherent win-probability
distribution for a single race:

    P(i) = exp((s_i - s_max) / T) / sum_j exp((s_j - s_max) / T)

where s = score / score_scale and T is the temperature.

- T < 1.0 sharpens the distribution toward the top-rated horse
- T > 1.0 flattens it toward uniform

Output probabilities are bounded to [min_probability, max_probability]
by an iterative clamp-and-redistribute pass and, when a calibration
provider is supplied and ready, post-processed by it (e.g. Platt scaling).
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

logger = logging.getLogger(__name__)

MAX_REDISTRIBUTION_ITERATIONS = 10
MIN_TEMPERATURE = 0.001
SUM_TOLERANCE = 1e-3


class ProbabilityValidationError(ValueError):
    """Raised when a probability vector breaks its invariants."""


@runtime_checkable
class CalibrationProvider(Protocol):
    """
    Post-processor for field probabilities (e.g. Platt scaling).

    Passed to the converter explicitly; the converter never owns
    calibration state.
    """

    @property
    def is_ready(self) -> bool:
        ...

    def calibrate_field(self, probabilities: List[float]) -> List[float]:
        ...


@dataclass(frozen=True)
class SoftmaxConfig:
    """
    Softmax settings.

    Attributes:
        temperature: Distribution sharpness (1.0 = standard softmax)
        min_probability: Floor every horse is lifted to (0.5%)
        max_probability: Ceiling no horse may exceed (95%)
        score_scale: Divisor bringing 0-331 racing scores into softmax range
    """
    temperature: float = 1.0
    min_probability: float = 0.005
    max_probability: float = 0.95
    score_scale: float = 100.0

    def __post_init__(self):
        if not (0.0 <= self.min_probability < self.max_probability <= 1.0):
            raise ValueError(
                f"Invalid probability bounds: min={self.min_probability}, "
                f"max={self.max_probability}"
            )
        if not math.isfinite(self.score_scale) or self.score_scale <= 0:
            raise ValueError(f"score_scale must be positive, got {self.score_scale}")
        if not math.isfinite(self.temperature):
            raise ValueError(f"temperature must be finite, got {self.temperature}")


DEFAULT_SOFTMAX_CONFIG = SoftmaxConfig()


@dataclass(frozen=True)
class SoftmaxResult:
    """Probabilities for a field plus whether calibration touched them."""
    probabilities: List[float]
    calibration_applied: bool = False


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


def _sanitize(scores: Sequence[float]) -> np.ndarray:
    values = np.asarray([_to_float(s) for s in scores], dtype=float)
    bad = ~np.isfinite(values) | (values < 0)
    if bad.any():
        logger.warning(f"Sanitized {int(bad.sum())} invalid score(s) to 0: {list(scores)}")
        values[bad] = 0.0
    return values


def clamp_and_redistribute(
    probabilities: Sequence[float],
    min_probability: float = DEFAULT_SOFTMAX_CONFIG.min_probability,
    max_probability: float = DEFAULT_SOFTMAX_CONFIG.max_probability,
    max_iterations: int = MAX_REDISTRIBUTION_ITERATIONS,
) -> List[float]:
    """
    Pin out-of-bounds probabilities to the bounds and hand the surplus or
    deficit to the free entries in proportion to their size.

    Redistribution can push a previously valid entry out of bounds, so the
    pass repeats until nothing moves, every entry is pinned, or the
    iteration cap is hit. A final renormalization keeps the sum at 1.0.
    """
    result = np.asarray(probabilities, dtype=float).copy()
    if result.size == 0:
        return []

    for _ in range(max_iterations):
        low = result < min_probability
        high = result > max_probability
        free = ~(low | high)

        if not low.any() and not high.any():
            break

        # Positive excess = mass removed by capping, negative = mass added by flooring
        excess = (result[high] - max_probability).sum() - (min_probability - result[low]).sum()
        result[low] = min_probability
        result[high] = max_probability

        if not free.any():
            # Everything is pinned: floored entries absorb a shortfall,
            # capped entries give up a surplus.
            residual = 1.0 - result.sum()
            receivers = low if residual > 0 else high
            if receivers.any():
                result[receivers] += residual / receivers.sum()
            break

        free_sum = result[free].sum()
        if abs(excess) > 1e-12 and free_sum > 1e-12:
            result[free] += excess * (result[free] / free_sum)

    total = result.sum()
    if total > 0 and abs(total - 1.0) > 1e-12:
        result = result / total

    return result.tolist()


def validate_probabilities(
    probabilities: Sequence[float],
    tolerance: float = SUM_TOLERANCE,
    min_probability: float = 0.0,
    max_probability: float = 1.0,
) -> bool:
    """
    Check a probability vector sums to ~1.0 and every entry is finite and
    inside [min_probability, max_probability].

    A failure means the math itself is broken, so this raises instead of
    repairing. Intended for tests and debugging.

    Raises:
        ProbabilityValidationError: on any violated invariant
    """
    if len(probabilities) == 0:
        return True

    for i, p in enumerate(probabilities):
        if p is None or not math.isfinite(p):
            raise ProbabilityValidationError(f"Invalid probability at index {i}: {p}")
        # Float slack so a value sitting on a bound after renormalization passes
        if p < min_probability - 1e-9 or p > max_probability + 1e-9:
            raise ProbabilityValidationError(
                f"Probability {p} at index {i} outside "
                f"[{min_probability}, {max_probability}]"
            )

    total = math.fsum(probabilities)
    if abs(total - 1.0) > tolerance:
        raise ProbabilityValidationError(
            f"Probabilities sum to {total:.6f}, expected 1.0 (tolerance {tolerance})"
        )

    return True


class SoftmaxConverter:
    """
    Scores -> bounded, sum-to-one win probabilities.

    The converter holds only immutable settings and an optional calibration
    provider, so one instance can be shared across threads.
    """

    def __init__(
        self,
        config: SoftmaxConfig = DEFAULT_SOFTMAX_CONFIG,
        calibration: Optional[CalibrationProvider] = None,
    ):
        self.config = config
        self.calibration = calibration

    def convert(
        self,
        scores: Sequence[float],
        temperature: Optional[float] = None,
        apply_calibration: bool = True,
    ) -> SoftmaxResult:
        """
        Convert a field of scores to probabilities.

        Args:
            scores: Raw scores in field order
            temperature: Override for config.temperature (floored at 0.001)
            apply_calibration: Run the calibration provider if it is ready

        Returns:
            SoftmaxResult with probabilities in input order
        """
        n = len(scores)
        if n == 0:
            return SoftmaxResult([])
        if n == 1:
            return SoftmaxResult([1.0])

        cfg = self.config
        values = _sanitize(scores)

        if not values.any():
            logger.debug(f"All {n} scores are zero, returning uniform distribution")
            return SoftmaxResult([1.0 / n] * n)

        temp = cfg.temperature if temperature is None else temperature
        if not math.isfinite(temp):
            temp = cfg.temperature
        temp = max(MIN_TEMPERATURE, temp)

        scaled = values / cfg.score_scale
        exps = np.exp((scaled - scaled.max()) / temp)
        raw = exps / exps.sum()

        logger.debug(f"Softmax T={temp}: scores={values.tolist()} raw={raw.tolist()}")

        bounded = clamp_and_redistribute(raw, cfg.min_probability, cfg.max_probability)

        if apply_calibration:
            calibrated = self._calibrate(bounded)
            if calibrated is not None:
                return SoftmaxResult(calibrated, calibration_applied=True)

        return SoftmaxResult(bounded)

    def to_probabilities(
        self,
        scores: Sequence[float],
        temperature: Optional[float] = None,
        apply_calibration: bool = True,
    ) -> List[float]:
        """Probabilities only (see convert)."""
        return self.convert(scores, temperature, apply_calibration).probabilities

    @property
    def calibration_active(self) -> bool:
        return self.calibration is not None and bool(self.calibration.is_ready)

    def _calibrate(self, probabilities: List[float]) -> Optional[List[float]]:
        if not self.calibration_active:
            return None

        out = self.calibration.calibrate_field(list(probabilities))
        out = np.asarray(out, dtype=float) if out is not None else np.array([])

        if out.shape != (len(probabilities),) or not np.isfinite(out).all() or out.sum() <= 0:
            logger.warning(
                f"Calibration returned unusable output for {len(probabilities)} horses, "
                "using uncalibrated probabilities"
            )
            return None

        # Re-bound: the provider is external and may not respect our limits
        out = np.clip(out, 0.0, None)
        return clamp_and_redistribute(
            out / out.sum(), self.config.min_probability, self.config.max_probability
        )


def softmax_probabilities(
    scores: Sequence[float],
    temperature: Optional[float] = None,
    apply_calibration: bool = True,
    calibration: Optional[CalibrationProvider] = None,
    config: SoftmaxConfig = DEFAULT_SOFTMAX_CONFIG,
) -> List[float]:
    """Convert scores to probabilities (standalone function)."""
    return SoftmaxConverter(config, calibration).to_probabilities(
        scores, temperature, apply_calibration
    )


def score_to_probability(
    score: float,
    field_scores: Sequence[float],
    temperature: Optional[float] = None,
    config: SoftmaxConfig = DEFAULT_SOFTMAX_CONFIG,
) -> float:
    """
    Win probability of one score within a field.

    If the score is not already in the field it is appended before the
    softmax is taken.
    """
    if not field_scores:
        return config.min_probability

    scores = list(field_scores)
    if score in scores:
        index = scores.index(score)
    else:
        scores.append(score)
        index = len(scores) - 1

    probs = SoftmaxConverter(config).to_probabilities(scores, temperature, apply_calibration=False)
    return probs[index]


def probability_to_fair_odds(probability: float) -> float:
    """
    Fair decimal odds for a probability (1 / p).

    Rounded to 2 dp and capped to [1.01, 100].
    """
    if probability is None or not math.isfinite(probability) or probability <= 0:
        return 100.0
    if probability >= 1:
        return 1.01
    return min(100.0, max(1.01, round(1.0 / probability, 2)))


def fair_odds_to_implied_probability(
    odds: float,
    config: SoftmaxConfig = DEFAULT_SOFTMAX_CONFIG,
) -> float:
    """Implied probability of decimal odds, clamped to the config bounds."""
    if odds is None or not math.isfinite(odds) or odds <= 0:
        return config.min_probability
    if odds < 1.01:
        return config.max_probability
    return max(config.min_probability, min(config.max_probability, 1.0 / odds))
