"""
Handicapper - Race Value Engine

Turns per-horse handicapping scores into calibrated win probabilities,
compares them with morning-line prices and sizes overlay bets with a
fractional Kelly criterion.
"""

__version__ = "1.0.0"
