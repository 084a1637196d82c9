"""
Odds parsing and conversion.

Morning-line prices arrive as fractional strings ("5-2", "12-1") or the
even-money tokens "EVEN"/"EVN". Everything downstream works in decimal
odds (stake included), so 5-2 -> 3.5.
"""

import math
import re
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

FRACTIONAL_PATTERN = re.compile(r"^(\d+)-(\d+)$")
EVEN_TOKENS = {"EVEN", "EVN"}

MIN_DECIMAL_ODDS = 1.01
MAX_DECIMAL_ODDS = 1000.0

# (profit per unit, display)
COMMON_FRACTIONS = [
    (0.1, "1-10"), (0.2, "1-5"), (0.25, "1-4"), (0.33, "1-3"), (0.4, "2-5"),
    (0.5, "1-2"), (0.6, "3-5"), (0.667, "2-3"), (0.75, "3-4"), (0.8, "4-5"),
    (0.9, "9-10"), (1.0, "EVEN"), (1.1, "11-10"), (1.2, "6-5"), (1.4, "7-5"),
    (1.5, "3-2"), (1.8, "9-5"), (2.0, "2-1"), (2.5, "5-2"), (3.0, "3-1"),
    (3.5, "7-2"), (4.0, "4-1"), (5.0, "5-1"), (6.0, "6-1"), (7.0, "7-1"),
    (8.0, "8-1"), (9.0, "9-1"), (10.0, "10-1"), (12.0, "12-1"), (15.0, "15-1"),
    (20.0, "20-1"), (30.0, "30-1"), (50.0, "50-1"), (99.0, "99-1"),
]


class OddsParseError(ValueError):
    """Raised by the strict parser for an unrecognised odds string."""


@dataclass(frozen=True)
class ParsedOdds:
    """Decimal odds parsed from a morning line."""
    text: str
    decimal_odds: float
    is_fallback: bool = False


def fractional_to_decimal(numerator: float, denominator: float) -> float:
    """5-1 -> 6.0, 3-2 -> 2.5, 1-2 -> 1.5"""
    if denominator == 0:
        raise ZeroDivisionError("Fractional odds denominator is zero")
    return numerator / denominator + 1.0


def parse_odds_strict(text: str) -> float:
    """
    Parse "N-M" or "EVEN"/"EVN" into decimal odds.

    Raises:
        OddsParseError: for any other format or a zero denominator
    """
    if not isinstance(text, str):
        raise OddsParseError(f"Odds must be a string, got {type(text).__name__}")

    cleaned = text.strip().upper()
    if cleaned in EVEN_TOKENS:
        return 2.0

    match = FRACTIONAL_PATTERN.match(cleaned)
    if not match:
        raise OddsParseError(f"Unrecognised odds format: {text!r}")

    numerator, denominator = int(match.group(1)), int(match.group(2))
    if denominator == 0:
        raise OddsParseError(f"Zero denominator in odds: {text!r}")

    return fractional_to_decimal(numerator, denominator)


def parse_morning_line(text: str, fallback_probability: float = 0.005) -> ParsedOdds:
    """
    Lenient morning-line parse.

    An unparseable price does not fail the race: the horse is priced at
    the minimum probability instead (1 / fallback_probability).
    """
    try:
        return ParsedOdds(str(text), parse_odds_strict(text))
    except OddsParseError as e:
        fallback = 1.0 / fallback_probability if fallback_probability > 0 else MAX_DECIMAL_ODDS
        logger.warning(f"{e}; using fallback decimal odds {fallback:.1f}")
        return ParsedOdds(str(text), fallback, is_fallback=True)


def odds_to_implied_probability(decimal_odds: float) -> float:
    """
    Naive implied probability (1 / odds), takeout included.

    Odds are clamped to [1.01, 1000]; invalid odds imply 0.
    """
    if decimal_odds is None or not math.isfinite(decimal_odds) or decimal_odds <= 0:
        return 0.0
    clamped = max(MIN_DECIMAL_ODDS, min(MAX_DECIMAL_ODDS, decimal_odds))
    return 1.0 / clamped


def decimal_to_fractional(decimal_odds: float) -> str:
    """Closest common fractional display for decimal odds."""
    if decimal_odds is None or not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        return "EVEN"

    profit = decimal_odds - 1.0
    return min(COMMON_FRACTIONS, key=lambda item: abs(profit - item[0]))[1]


def decimal_to_american(decimal_odds: float) -> str:
    """Moneyline display: 3.5 -> "+250", 1.5 -> "-200"."""
    if decimal_odds is None or not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        return "EVEN"

    if decimal_odds >= 2.0:
        return f"+{round((decimal_odds - 1) * 100)}"
    return f"{round(-100 / (decimal_odds - 1))}"
