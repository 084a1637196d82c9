"""Data Module - input schemas."""

from .schemas import HorseScoreInput, coerce_horses

__all__ = ["HorseScoreInput", "coerce_horses"]
