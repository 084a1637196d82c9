"""
Overlay / Value Pipeline
========================

Combines the model's win probabilities with the market's for one race:

1. Base scores -> softmax -> model probability
2. Morning line -> decimal odds -> implied -> normalized market probability
3. True overlay % = (model - market) / market x 100
4. EV per unit stake = p * (odds - 1) - (1 - p)
5. Value classification from the true overlay

Nothing here mutates the incoming horse records, so the pipeline can be
re-run after a scratch or from several threads at once.
"""

import math
import logging
from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from handicapper.data.schemas import HorseLike, coerce_horses
from handicapper.market.odds import (
    parse_morning_line, odds_to_implied_probability, decimal_to_fractional,
)
from handicapper.market.normalize import (
    MarketConfig, DEFAULT_MARKET_CONFIG,
    calculate_overround, calculate_takeout_percent,
    normalize_market_probabilities, validate_market_odds,
)
from handicapper.probability.softmax import (
    SoftmaxConverter, ProbabilityValidationError,
    validate_probabilities, probability_to_fair_odds,
)
from .ev import EVClass, calculate_expected_value, classify_ev

logger = logging.getLogger(__name__)

# Market probabilities at or below this give a meaningless overlay ratio
MIN_MARKET_PROBABILITY = 0.001


class ValueClass(str, Enum):
    """Value bands by true overlay, best first."""
    STRONG_VALUE = "STRONG_VALUE"
    MODERATE_VALUE = "MODERATE_VALUE"
    SLIGHT_VALUE = "SLIGHT_VALUE"
    NEUTRAL = "NEUTRAL"
    UNDERLAY = "UNDERLAY"


@dataclass(frozen=True)
class ValueThresholds:
    """
    Lower edges of the value bands, in true-overlay percent.

    Anything below `underlay` is UNDERLAY.
    """
    strong: float = 15.0
    moderate: float = 8.0
    slight: float = 3.0
    underlay: float = -3.0

    def __post_init__(self):
        edges = (self.strong, self.moderate, self.slight, self.underlay)
        if not all(math.isfinite(e) for e in edges):
            raise ValueError(f"Value thresholds must be finite: {self}")
        if not (self.strong >= self.moderate >= self.slight >= self.underlay):
            raise ValueError(f"Value thresholds must be descending: {self}")


DEFAULT_VALUE_THRESHOLDS = ValueThresholds()


def calculate_true_overlay(model_probability: float, market_probability: float) -> float:
    """(model - market) / market x 100; 0 when the market probability is negligible."""
    if market_probability is None or not math.isfinite(market_probability):
        return 0.0
    if market_probability <= MIN_MARKET_PROBABILITY:
        return 0.0
    return (model_probability - market_probability) / market_probability * 100.0


def classify_true_overlay(
    overlay_percent: float,
    thresholds: ValueThresholds = DEFAULT_VALUE_THRESHOLDS,
) -> ValueClass:
    if overlay_percent is None or not math.isfinite(overlay_percent):
        return ValueClass.NEUTRAL
    if overlay_percent >= thresholds.strong:
        return ValueClass.STRONG_VALUE
    if overlay_percent >= thresholds.moderate:
        return ValueClass.MODERATE_VALUE
    if overlay_percent >= thresholds.slight:
        return ValueClass.SLIGHT_VALUE
    if overlay_percent >= thresholds.underlay:
        return ValueClass.NEUTRAL
    return ValueClass.UNDERLAY


@dataclass
class OverlayHorseResult:
    """Value analysis for one horse."""
    program_number: int
    horse_name: str
    base_score: float
    final_score: float
    model_probability: float
    normalized_market_probability: float
    true_overlay_percent: float
    expected_value: float
    value_classification: ValueClass
    morning_line_odds: str = ""
    decimal_odds: float = 0.0
    raw_implied_probability: float = 0.0
    raw_overlay_percent: float = 0.0
    fair_odds: float = 0.0
    fair_odds_display: str = ""
    ev_classification: EVClass = EVClass.NEUTRAL
    odds_fallback: bool = False

    @property
    def is_positive_ev(self) -> bool:
        return self.expected_value > 0

    @property
    def is_overlay(self) -> bool:
        return self.true_overlay_percent > 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["value_classification"] = self.value_classification.value
        data["ev_classification"] = self.ev_classification.value
        data["is_positive_ev"] = self.is_positive_ev
        return data


@dataclass
class FieldMetrics:
    """Market-level view of the race."""
    field_size: int
    overround: float
    takeout_percent: float
    average_model_probability: float = 0.0
    probabilities_validated: bool = True
    best_value_horse: Optional[int] = None
    best_overlay_percent: float = 0.0
    market_warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OverlayPipelineOutput:
    """Everything the betting layer needs about one race."""
    horses: List[OverlayHorseResult]
    field_metrics: FieldMetrics
    calibration_applied: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.horses

    def get_horse(self, program_number: int) -> Optional[OverlayHorseResult]:
        for horse in self.horses:
            if horse.program_number == program_number:
                return horse
        return None

    def to_dict(self) -> dict:
        return {
            "horses": [h.to_dict() for h in self.horses],
            "field_metrics": self.field_metrics.to_dict(),
            "calibration_applied": self.calibration_applied,
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per horse, indexed by program number."""
        rows = [h.to_dict() for h in self.horses]
        if not rows:
            return pd.DataFrame(columns=["program_number"]).set_index("program_number")
        return pd.DataFrame(rows).set_index("program_number")

    def to_calibration_records(self, race_id: str) -> List[Dict[str, Any]]:
        """
        Per-horse prediction records for outcome tracking.

        Outcomes are filled in later by whoever records the result; the
        collected pairs are what PlattCalibrator.fit consumes.
        """
        return [
            {
                "race_id": race_id,
                "program_number": h.program_number,
                "horse_name": h.horse_name,
                "predicted_probability": h.model_probability,
                "market_probability": h.normalized_market_probability,
                "decimal_odds": h.decimal_odds,
                "base_score": h.base_score,
                "field_size": self.field_metrics.field_size,
                "calibration_applied": self.calibration_applied,
                "won": None,
            }
            for h in self.horses
        ]


class OverlayPipeline:
    """
    Model vs market value analysis for a race.

    Usage:
        pipeline = OverlayPipeline()
        output = pipeline.run(horses)
        for horse in output.horses:
            print(horse.program_number, horse.value_classification)
    """

    def __init__(
        self,
        converter: Optional[SoftmaxConverter] = None,
        market_config: MarketConfig = DEFAULT_MARKET_CONFIG,
        thresholds: ValueThresholds = DEFAULT_VALUE_THRESHOLDS,
        use_final_score: bool = False,
    ):
        self.converter = converter or SoftmaxConverter()
        self.market_config = market_config
        self.thresholds = thresholds
        self.use_final_score = use_final_score

    def run(
        self,
        horses: Iterable[HorseLike],
        temperature: Optional[float] = None,
        apply_calibration: bool = True,
    ) -> OverlayPipelineOutput:
        records = coerce_horses(horses)

        if not records:
            logger.info("Overlay pipeline called with an empty field")
            return OverlayPipelineOutput(
                horses=[],
                field_metrics=FieldMetrics(field_size=0, overround=0.0, takeout_percent=0.0),
                calibration_applied=False,
            )

        # 1. Model probabilities
        scores = [h.final_score if self.use_final_score else h.base_score for h in records]
        softmax = self.converter.convert(scores, temperature, apply_calibration)
        model_probs = softmax.probabilities

        cfg = self.converter.config
        validated = True
        if len(model_probs) > 1:
            try:
                validate_probabilities(
                    model_probs, min_probability=cfg.min_probability, max_probability=cfg.max_probability
                )
            except ProbabilityValidationError as e:
                # Only reachable when the field is too large for the floor to hold
                logger.warning(f"Model probabilities failed validation: {e}")
                validated = False

        # 2. Market probabilities
        parsed = [parse_morning_line(h.morning_line_odds, cfg.min_probability) for h in records]
        decimal_odds = [p.decimal_odds for p in parsed]
        implied = [odds_to_implied_probability(o) for o in decimal_odds]
        overround = calculate_overround(implied)
        market_probs = normalize_market_probabilities(implied)

        market_check = validate_market_odds(decimal_odds, self.market_config)
        for warning in market_check.warnings:
            logger.warning(f"Market check: {warning}")

        # 3-5. Per-horse value
        results = []
        for horse, odds, p_model, p_raw, p_market, parse in zip(
            records, decimal_odds, model_probs, implied, market_probs, parsed
        ):
            overlay = calculate_true_overlay(p_model, p_market)
            ev = calculate_expected_value(p_model, odds)
            fair = probability_to_fair_odds(p_model)
            results.append(OverlayHorseResult(
                program_number=horse.program_number,
                horse_name=horse.horse_name,
                base_score=horse.base_score,
                final_score=horse.final_score,
                model_probability=p_model,
                normalized_market_probability=p_market,
                true_overlay_percent=overlay,
                expected_value=ev,
                value_classification=classify_true_overlay(overlay, self.thresholds),
                morning_line_odds=horse.morning_line_odds,
                decimal_odds=odds,
                raw_implied_probability=p_raw,
                raw_overlay_percent=calculate_true_overlay(p_model, p_raw),
                fair_odds=fair,
                fair_odds_display=decimal_to_fractional(fair),
                ev_classification=classify_ev(ev),
                odds_fallback=parse.is_fallback,
            ))

        best = max(results, key=lambda r: r.true_overlay_percent)
        best_value_horse = best.program_number if best.true_overlay_percent > 0 else None

        metrics = FieldMetrics(
            field_size=len(results),
            overround=overround,
            takeout_percent=calculate_takeout_percent(overround),
            average_model_probability=math.fsum(model_probs) / len(model_probs),
            probabilities_validated=validated,
            best_value_horse=best_value_horse,
            best_overlay_percent=best.true_overlay_percent,
            market_warnings=list(market_check.warnings),
        )

        logger.info(
            f"Overlay pipeline: {metrics.field_size} horses, overround {overround:.3f}, "
            f"{sum(r.is_positive_ev for r in results)} positive EV, "
            f"calibrated={softmax.calibration_applied}"
        )

        return OverlayPipelineOutput(
            horses=results,
            field_metrics=metrics,
            calibration_applied=softmax.calibration_applied,
        )


def calculate_overlay_pipeline(
    horses: Iterable[HorseLike],
    converter: Optional[SoftmaxConverter] = None,
    market_config: MarketConfig = DEFAULT_MARKET_CONFIG,
    thresholds: ValueThresholds = DEFAULT_VALUE_THRESHOLDS,
    temperature: Optional[float] = None,
    use_final_score: bool = False,
    apply_calibration: bool = True,
) -> OverlayPipelineOutput:
    """Run the overlay pipeline for one race (standalone function)."""
    pipeline = OverlayPipeline(converter, market_config, thresholds, use_final_score)
    return pipeline.run(horses, temperature, apply_calibration)
