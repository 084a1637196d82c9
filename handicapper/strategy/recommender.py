"""
Bet Recommendation Engine
=========================

Turns overlay pipeline output plus a bankroll into sized WIN bets.

A horse is recommended only when:
1. Its base score reaches at least the lowest betting tier
2. Its morning line parsed (fallback prices are never staked)
3. EV >= min_ev and EV >= 0 (negative EV is never recommended)
4. True overlay >= min_overlay_percent
5. Fractional Kelly suggests a stake of at least min_stake_amount

Stakes are capped per bet and per race. The output is a pure function of
its inputs, so the same race always produces the same recommendations.
"""

import math
import logging
from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from .kelly import KellyConfig, DEFAULT_KELLY_CONFIG, cap_race_exposure
from .overlay import OverlayHorseResult, OverlayPipelineOutput

logger = logging.getLogger(__name__)


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Tier(str, Enum):
    """Contender tier by base score."""
    TIER_1 = "TIER_1"
    TIER_2 = "TIER_2"
    TIER_3 = "TIER_3"


TIER_LABELS = {
    Tier.TIER_1: "Top contender",
    Tier.TIER_2: "Solid alternative",
    Tier.TIER_3: "Value play",
}


@dataclass(frozen=True)
class RecommendationFilters:
    """
    Which horses qualify for a bet.

    Attributes:
        min_ev: Minimum EV per unit stake (never effectively below 0)
        min_overlay_percent: Minimum true overlay percent
        require_calibration: Pass the race unless calibrated probabilities were used
        tier1_min_score: Base score for a top contender
        tier2_min_score: Base score for a solid alternative
        tier3_min_score: Lowest base score that is bet at all
    """
    min_ev: float = 0.0
    min_overlay_percent: float = 3.0
    require_calibration: bool = False
    tier1_min_score: float = 180.0
    tier2_min_score: float = 160.0
    tier3_min_score: float = 140.0

    def __post_init__(self):
        values = (
            self.min_ev, self.min_overlay_percent,
            self.tier1_min_score, self.tier2_min_score, self.tier3_min_score,
        )
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Filters must be finite: {self}")
        if not (self.tier1_min_score >= self.tier2_min_score >= self.tier3_min_score):
            raise ValueError(f"Tier scores must be descending: {self}")

    def tier_for(self, base_score: float) -> Optional[Tier]:
        """Tier for a base score, or None below the lowest tier."""
        if base_score >= self.tier1_min_score:
            return Tier.TIER_1
        if base_score >= self.tier2_min_score:
            return Tier.TIER_2
        if base_score >= self.tier3_min_score:
            return Tier.TIER_3
        return None


DEFAULT_FILTERS = RecommendationFilters()


@dataclass
class BetRecommendation:
    """A single sized WIN bet."""
    program_number: int
    expected_value: float
    kelly_fraction: float
    stake_amount: float
    stake_percent: float
    horse_name: str = ""
    decimal_odds: float = 0.0
    model_probability: float = 0.0
    true_overlay_percent: float = 0.0
    confidence: Confidence = Confidence.LOW
    reasoning: str = ""
    tier: Tier = Tier.TIER_3

    @property
    def potential_return(self) -> float:
        """Gross return if the horse wins (stake included)."""
        return self.stake_amount * self.decimal_odds

    def to_dict(self) -> dict:
        data = asdict(self)
        data["confidence"] = self.confidence.value
        data["tier"] = self.tier.value
        return data


@dataclass
class RecommendationSet:
    """Recommendations for one race."""
    recommendations: List[BetRecommendation]
    field_size: int
    calibration_applied: bool
    total_exposure: float
    pass_suggested: bool
    pass_reason: Optional[str] = None
    bankroll: float = 0.0
    best_value_horse: Optional[int] = None

    @property
    def total_stake(self) -> float:
        return math.fsum(r.stake_amount for r in self.recommendations)

    def to_dict(self) -> dict:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "field_size": self.field_size,
            "calibration_applied": self.calibration_applied,
            "total_exposure": self.total_exposure,
            "total_stake": self.total_stake,
            "pass_suggested": self.pass_suggested,
            "pass_reason": self.pass_reason,
            "bankroll": self.bankroll,
            "best_value_horse": self.best_value_horse,
        }


def _pass(
    output: OverlayPipelineOutput,
    reason: str,
    bankroll: float,
) -> RecommendationSet:
    logger.info(f"Pass suggested: {reason}")
    return RecommendationSet(
        recommendations=[],
        field_size=output.field_metrics.field_size,
        calibration_applied=output.calibration_applied,
        total_exposure=0.0,
        pass_suggested=True,
        pass_reason=reason,
        bankroll=bankroll,
        best_value_horse=output.field_metrics.best_value_horse,
    )


def _qualifies(horse: OverlayHorseResult, filters: RecommendationFilters) -> bool:
    if filters.tier_for(horse.base_score) is None:
        return False
    # The fallback price only keeps the race running; it is not a real market
    if horse.odds_fallback:
        return False
    ev = horse.expected_value
    if not math.isfinite(ev) or ev < 0 or ev < filters.min_ev:
        return False
    if horse.true_overlay_percent < filters.min_overlay_percent:
        return False
    return 0 < horse.model_probability < 1 and horse.decimal_odds > 1


def determine_confidence(
    horse: OverlayHorseResult,
    calibration_applied: bool,
    tier: Tier,
) -> Confidence:
    """HIGH needs calibrated numbers; a top-two tier with some overlay gets MEDIUM."""
    if calibration_applied and tier == Tier.TIER_1 and horse.true_overlay_percent >= 10:
        return Confidence.HIGH
    if calibration_applied and horse.expected_value >= 0.15:
        return Confidence.HIGH
    if tier in (Tier.TIER_1, Tier.TIER_2) and horse.true_overlay_percent >= 5:
        return Confidence.MEDIUM
    if calibration_applied and horse.expected_value > 0:
        return Confidence.MEDIUM
    return Confidence.LOW


def build_reasoning(horse: OverlayHorseResult, calibration_applied: bool, tier: Tier) -> str:
    parts = [TIER_LABELS[tier]]

    overlay = horse.true_overlay_percent
    if overlay >= 15:
        parts.append(f"strong value at {overlay:.1f}% overlay")
    elif overlay >= 8:
        parts.append(f"good value at {overlay:.1f}% overlay")
    else:
        parts.append(f"{overlay:.1f}% overlay")

    ev_pct = horse.expected_value * 100
    if horse.expected_value >= 0.2:
        parts.append(f"excellent EV of {ev_pct:.1f}%")
    elif horse.expected_value >= 0.1:
        parts.append(f"solid EV of {ev_pct:.1f}%")
    else:
        parts.append(f"EV of {ev_pct:.1f}%")

    parts.append(f"model {horse.model_probability:.1%} vs market {horse.normalized_market_probability:.1%}")

    if not calibration_applied:
        parts.append("(uncalibrated probabilities)")

    return ", ".join(parts)


def determine_pass_reason(output: OverlayPipelineOutput, filters: RecommendationFilters) -> str:
    horses = output.horses
    if not any(h.expected_value > 0 for h in horses):
        return "No horses with positive expected value"
    if not any(h.true_overlay_percent >= filters.min_overlay_percent for h in horses):
        return f"No horses with overlay >= {filters.min_overlay_percent:g}%"
    if not any(filters.tier_for(h.base_score) is not None for h in horses):
        return "No horses meet minimum score threshold"
    priced = [h for h in horses if not h.odds_fallback]
    if not any(h.expected_value > 0 and h.true_overlay_percent >= filters.min_overlay_percent for h in priced):
        return "Only horses without a valid morning line show value"
    return "No bets meet all criteria"


def generate_bet_recommendations(
    pipeline_output: OverlayPipelineOutput,
    bankroll: float,
    filters: RecommendationFilters = DEFAULT_FILTERS,
    kelly: KellyConfig = DEFAULT_KELLY_CONFIG,
) -> RecommendationSet:
    """
    Sized WIN bets for one race.

    Args:
        pipeline_output: Result of the overlay pipeline
        bankroll: Current bankroll in currency units
        filters: Qualification thresholds
        kelly: Staking limits

    Returns:
        RecommendationSet; an empty field, non-positive bankroll or no
        qualifying horse yields a pass with a reason instead of an error
    """
    if not pipeline_output.horses:
        return _pass(pipeline_output, "No horses in race", 0.0)

    if bankroll is None or not math.isfinite(bankroll) or bankroll <= 0:
        return _pass(pipeline_output, "Bankroll must be positive", 0.0)

    calibration_applied = pipeline_output.calibration_applied
    if filters.require_calibration and not calibration_applied:
        return _pass(pipeline_output, "Calibration not yet active", bankroll)

    candidates = [h for h in pipeline_output.horses if _qualifies(h, filters)]
    sized = [(h, kelly.size(h.model_probability, h.decimal_odds)) for h in candidates]
    sized = [(h, f) for h, f in sized if f > 0]

    fractions = cap_race_exposure([f for _, f in sized], kelly.max_race_exposure)

    recommendations = []
    for (horse, _), fraction in zip(sized, fractions):
        tier = filters.tier_for(horse.base_score)
        stake = round(fraction * bankroll, 2)
        if stake < kelly.min_stake_amount:
            logger.debug(
                f"#{horse.program_number} stake {stake:.2f} below minimum {kelly.min_stake_amount:.2f}"
            )
            continue
        recommendations.append(BetRecommendation(
            program_number=horse.program_number,
            expected_value=horse.expected_value,
            kelly_fraction=fraction,
            stake_amount=stake,
            stake_percent=fraction * 100,
            horse_name=horse.horse_name,
            decimal_odds=horse.decimal_odds,
            model_probability=horse.model_probability,
            true_overlay_percent=horse.true_overlay_percent,
            confidence=determine_confidence(horse, calibration_applied, tier),
            reasoning=build_reasoning(horse, calibration_applied, tier),
            tier=tier,
        ))

    if not recommendations:
        return _pass(pipeline_output, determine_pass_reason(pipeline_output, filters), bankroll)

    recommendations.sort(key=lambda r: (-r.expected_value, -r.true_overlay_percent, r.program_number))

    total_exposure = min(100.0, math.fsum(r.stake_percent for r in recommendations))

    logger.info(
        f"{len(recommendations)} bet(s) recommended, exposure {total_exposure:.2f}% "
        f"of {bankroll:.2f}"
    )

    return RecommendationSet(
        recommendations=recommendations,
        field_size=pipeline_output.field_metrics.field_size,
        calibration_applied=calibration_applied,
        total_exposure=total_exposure,
        pass_suggested=False,
        bankroll=bankroll,
        best_value_horse=pipeline_output.field_metrics.best_value_horse,
    )


def top_recommendations(recommendation_set: RecommendationSet, n: int = 3) -> List[BetRecommendation]:
    """Best n recommendations (already ranked by EV)."""
    return recommendation_set.recommendations[:max(0, n)]


def potential_return(recommendation_set: RecommendationSet) -> float:
    """Gross return summed over every recommendation, as if each one won."""
    return math.fsum(r.potential_return for r in recommendation_set.recommendations)
