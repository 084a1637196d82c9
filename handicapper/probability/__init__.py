"""Probability Module - softmax conversion and Platt calibration."""

from .softmax import (
    SoftmaxConverter, SoftmaxConfig, SoftmaxResult, CalibrationProvider,
    ProbabilityValidationError, DEFAULT_SOFTMAX_CONFIG,
    softmax_probabilities, clamp_and_redistribute, validate_probabilities,
    score_to_probability, probability_to_fair_odds, fair_odds_to_implied_probability,
)
from .calibration import PlattCalibrator

__all__ = [
    # Softmax
    "SoftmaxConverter",
    "SoftmaxConfig",
    "SoftmaxResult",
    "CalibrationProvider",
    "ProbabilityValidationError",
    "DEFAULT_SOFTMAX_CONFIG",
    "softmax_probabilities",
    "clamp_and_redistribute",
    "validate_probabilities",
    "score_to_probability",
    "probability_to_fair_odds",
    "fair_odds_to_implied_probability",
    # Calibration
    "PlattCalibrator",
]
