"""Market Module - odds parsing and overround removal."""

from .odds import (
    ParsedOdds, OddsParseError,
    parse_morning_line, parse_odds_strict, fractional_to_decimal,
    odds_to_implied_probability, decimal_to_fractional, decimal_to_american,
)
from .normalize import (
    MarketConfig, MarketValidation, DEFAULT_MARKET_CONFIG,
    normalize_market_probabilities, odds_to_normalized_probabilities,
    calculate_overround, calculate_takeout_percent, validate_market_odds,
)

__all__ = [
    # Odds
    "ParsedOdds",
    "OddsParseError",
    "parse_morning_line",
    "parse_odds_strict",
    "fractional_to_decimal",
    "odds_to_implied_probability",
    "decimal_to_fractional",
    "decimal_to_american",
    # Normalization
    "MarketConfig",
    "MarketValidation",
    "DEFAULT_MARKET_CONFIG",
    "normalize_market_probabilities",
    "odds_to_normalized_probabilities",
    "calculate_overround",
    "calculate_takeout_percent",
    "validate_market_odds",
]
