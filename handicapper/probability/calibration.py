"""
Platt Scaling Calibration
=========================
Post-hoc calibration mapping raw softmax probabilities onto observed
win rates:

    p_cal = sigmoid(A * logit(p_raw) + B)

A = 1, B = 0 is the identity. The calibrator only reports ready once it
has been fitted on enough races; until then the converter passes raw
probabilities through untouched.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from scipy.optimize import minimize
from sklearn.metrics import brier_score_loss, log_loss

from .softmax import clamp_and_redistribute, DEFAULT_SOFTMAX_CONFIG

logger = logging.getLogger(__name__)

# Input clamp so logit stays finite
MIN_PROB = 0.001
MAX_PROB = 0.999

# Output clamp for a single calibrated probability
MIN_OUTPUT = 0.005
MAX_OUTPUT = 0.995

DEFAULT_MIN_RACES = 500
DEFAULT_REGULARIZATION = 0.001


def logit(p):
    """Log-odds of a probability (clamped to [0.001, 0.999])."""
    p = np.clip(np.asarray(p, dtype=float), MIN_PROB, MAX_PROB)
    return np.log(p / (1.0 - p))


def sigmoid(x):
    """Numerically stable logistic function."""
    x = np.asarray(x, dtype=float)
    return np.where(
        x >= 0,
        1.0 / (1.0 + np.exp(-np.abs(x))),
        np.exp(-np.abs(x)) / (1.0 + np.exp(-np.abs(x))),
    )


class PlattCalibrator:
    """
    Platt scaling calibration provider.

    Satisfies the CalibrationProvider protocol (is_ready, calibrate_field)
    so it can be handed straight to a SoftmaxConverter.
    """

    def __init__(
        self,
        a: float = 1.0,
        b: float = 0.0,
        races_used: int = 0,
        min_races_required: int = DEFAULT_MIN_RACES,
        regularization: float = DEFAULT_REGULARIZATION,
        min_probability: float = DEFAULT_SOFTMAX_CONFIG.min_probability,
        max_probability: float = DEFAULT_SOFTMAX_CONFIG.max_probability,
    ):
        if not 0 <= min_probability < max_probability <= 1:
            raise ValueError(
                f"Invalid field bounds [{min_probability}, {max_probability}]"
            )
        self.a = a
        self.b = b
        self.races_used = races_used
        self.min_races_required = min_races_required
        self.regularization = regularization
        self.min_probability = min_probability
        self.max_probability = max_probability

        self.is_fitted = races_used > 0
        self.fitted_at: Optional[datetime] = None
        self.brier_score: Optional[float] = None
        self.log_loss: Optional[float] = None

    @property
    def is_ready(self) -> bool:
        return self.is_fitted and self.races_used >= self.min_races_required

    def fit(
        self,
        probabilities: Sequence[float],
        outcomes: Sequence[bool],
        races_used: int,
        fitted_at: Optional[datetime] = None,
    ) -> "PlattCalibrator":
        """
        Fit A and B by minimizing L2-regularized log loss.

        Args:
            probabilities: Raw model probabilities, one per runner
            outcomes: True where that runner won
            races_used: Number of distinct races the samples came from
            fitted_at: Fit timestamp (recorded for reporting only)
        """
        probs = np.asarray(probabilities, dtype=float)
        labels = np.asarray(outcomes, dtype=float)

        if probs.shape != labels.shape or probs.size == 0:
            raise ValueError(
                f"Need matching non-empty samples, got {probs.size} probabilities "
                f"and {labels.size} outcomes"
            )
        if len(np.unique(labels)) < 2:
            raise ValueError("Outcomes must contain both winners and losers")

        x = logit(probs)
        reg = self.regularization

        def objective(params):
            a, b = params
            preds = np.clip(sigmoid(a * x + b), 1e-10, 1 - 1e-10)
            nll = -np.mean(labels * np.log(preds) + (1 - labels) * np.log(1 - preds))
            return nll + 0.5 * reg * (a * a + b * b)

        result = minimize(objective, [1.0, 0.0], method="L-BFGS-B")
        if not result.success:
            logger.warning(f"Platt fit did not converge: {result.message}")

        self.a, self.b = (float(v) for v in result.x)
        self.races_used = int(races_used)
        self.is_fitted = True
        self.fitted_at = fitted_at

        calibrated = self.calibrate_many(probs)
        self.brier_score = float(brier_score_loss(labels, calibrated))
        self.log_loss = float(log_loss(labels, calibrated, labels=[0, 1]))

        logger.info(
            f"Fitted Platt calibration on {self.races_used} races ({probs.size} runners): "
            f"A={self.a:.4f} B={self.b:.4f} Brier={self.brier_score:.4f}"
        )
        return self

    def calibrate_many(self, probabilities: Sequence[float]) -> np.ndarray:
        """Calibrate each probability independently (no renormalization)."""
        raw = np.asarray(probabilities, dtype=float)
        raw = np.where(np.isfinite(raw), raw, MIN_OUTPUT)
        return np.clip(sigmoid(self.a * logit(raw) + self.b), MIN_OUTPUT, MAX_OUTPUT)

    def calibrate_probability(self, probability: float) -> float:
        return float(self.calibrate_many([probability])[0])

    def calibrate_field(self, probabilities: List[float]) -> List[float]:
        """Calibrate a whole race and renormalize it to sum to 1.0."""
        n = len(probabilities)
        if n == 0:
            return []
        if n == 1:
            return [1.0]

        calibrated = self.calibrate_many(probabilities)
        total = calibrated.sum()
        if total <= 0:
            return [1.0 / n] * n

        return clamp_and_redistribute(calibrated / total, self.min_probability, self.max_probability)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "a": self.a,
            "b": self.b,
            "races_used": self.races_used,
            "min_races_required": self.min_races_required,
            "regularization": self.regularization,
            "min_probability": self.min_probability,
            "max_probability": self.max_probability,
            "fitted_at": self.fitted_at.isoformat() if self.fitted_at else None,
            "brier_score": self.brier_score,
            "log_loss": self.log_loss,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlattCalibrator":
        calibrator = cls(
            a=float(data.get("a", 1.0)),
            b=float(data.get("b", 0.0)),
            races_used=int(data.get("races_used", 0)),
            min_races_required=int(data.get("min_races_required", DEFAULT_MIN_RACES)),
            regularization=float(data.get("regularization", DEFAULT_REGULARIZATION)),
            min_probability=float(data.get("min_probability", DEFAULT_SOFTMAX_CONFIG.min_probability)),
            max_probability=float(data.get("max_probability", DEFAULT_SOFTMAX_CONFIG.max_probability)),
        )
        fitted_at = data.get("fitted_at")
        calibrator.fitted_at = datetime.fromisoformat(fitted_at) if fitted_at else None
        calibrator.brier_score = data.get("brier_score")
        calibrator.log_loss = data.get("log_loss")
        return calibrator
