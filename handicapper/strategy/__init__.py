"""Strategy Module - overlay analysis, EV, Kelly staking and bet recommendations."""

from .ev import EVClass, EVThresholds, calculate_expected_value, classify_ev
from .kelly import KellyConfig, DEFAULT_KELLY_CONFIG, kelly_formula, cap_race_exposure
from .overlay import (
    ValueClass, ValueThresholds, DEFAULT_VALUE_THRESHOLDS,
    OverlayHorseResult, FieldMetrics, OverlayPipelineOutput, OverlayPipeline,
    calculate_overlay_pipeline, calculate_true_overlay, classify_true_overlay,
)
from .recommender import (
    Confidence, Tier, RecommendationFilters, DEFAULT_FILTERS,
    BetRecommendation, RecommendationSet,
    generate_bet_recommendations, top_recommendations, potential_return,
)

__all__ = [
    # EV
    "EVClass",
    "EVThresholds",
    "calculate_expected_value",
    "classify_ev",
    # Kelly
    "KellyConfig",
    "DEFAULT_KELLY_CONFIG",
    "kelly_formula",
    "cap_race_exposure",
    # Overlay
    "ValueClass",
    "ValueThresholds",
    "DEFAULT_VALUE_THRESHOLDS",
    "OverlayHorseResult",
    "FieldMetrics",
    "OverlayPipelineOutput",
    "OverlayPipeline",
    "calculate_overlay_pipeline",
    "calculate_true_overlay",
    "classify_true_overlay",
    # Recommendations
    "Confidence",
    "Tier",
    "RecommendationFilters",
    "DEFAULT_FILTERS",
    "BetRecommendation",
    "RecommendationSet",
    "generate_bet_recommendations",
    "top_recommendations",
    "potential_return",
]
