"""
Configuration management for the handicapper.

Loads process-level settings from environment variables with sensible
defaults and builds the frozen per-component configs from them.
Configures logging with rotation to prevent unbounded log growth.
"""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, asdict
from dotenv import load_dotenv

from handicapper.probability.softmax import SoftmaxConfig
from handicapper.strategy.kelly import KellyConfig
from handicapper.strategy.recommender import RecommendationFilters

# Load .env file
load_dotenv()


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB per file
    backup_count: int = 3,
) -> None:
    """Configure logging with console output and an optional rotating file.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files (console only when None)
        max_bytes: Max size per log file before rotation (default 5MB)
        backup_count: Number of rotated backup files to keep
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates on reload
    root.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is None:
        return

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / "handicapper.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class Config:
    """Application configuration."""

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("HANDICAPPER_LOG_LEVEL", "INFO"))
    log_dir: Optional[Path] = field(default_factory=lambda: (
        Path(os.environ["HANDICAPPER_LOG_DIR"]) if os.getenv("HANDICAPPER_LOG_DIR") else None
    ))

    # Softmax
    temperature: float = field(default_factory=lambda: _env_float("SOFTMAX_TEMPERATURE", 1.0))

    # Kelly Staking
    kelly_fraction: float = field(default_factory=lambda: _env_float("KELLY_FRACTION", 0.25))
    max_stake_pct: float = field(default_factory=lambda: _env_float("MAX_STAKE_PCT", 0.05))
    max_race_exposure_pct: float = field(default_factory=lambda: _env_float("MAX_RACE_EXPOSURE_PCT", 0.20))

    # Recommendation thresholds
    min_ev: float = field(default_factory=lambda: _env_float("MIN_EV", 0.0))
    min_overlay_pct: float = field(default_factory=lambda: _env_float("MIN_OVERLAY_PCT", 3.0))
    tier1_min_score: float = field(default_factory=lambda: _env_float("TIER1_MIN_SCORE", 180.0))
    tier2_min_score: float = field(default_factory=lambda: _env_float("TIER2_MIN_SCORE", 160.0))
    tier3_min_score: float = field(default_factory=lambda: _env_float("TIER3_MIN_SCORE", 140.0))

    default_bankroll: float = field(default_factory=lambda: _env_float("DEFAULT_BANKROLL", 1000.0))

    def softmax_config(self) -> SoftmaxConfig:
        return SoftmaxConfig(temperature=self.temperature)

    def kelly_config(self) -> KellyConfig:
        return KellyConfig(
            multiplier=self.kelly_fraction,
            max_fraction=self.max_stake_pct,
            max_race_exposure=self.max_race_exposure_pct,
        )

    def recommendation_filters(self) -> RecommendationFilters:
        return RecommendationFilters(
            min_ev=self.min_ev,
            min_overlay_percent=self.min_overlay_pct,
            tier1_min_score=self.tier1_min_score,
            tier2_min_score=self.tier2_min_score,
            tier3_min_score=self.tier3_min_score,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["log_dir"] = str(self.log_dir) if self.log_dir else None
        return data


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    load_dotenv(override=True)
    _config = Config()
    return _config
