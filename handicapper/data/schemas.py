"""
Input schemas.

A race arrives from the scoring layer as a list of horse records. Field
names are accepted in snake_case or in the camelCase the scoring layer
emits (programNumber, morningLineOdds, ...).
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class HorseScoreInput(BaseModel):
    """
    One active horse as scored upstream.

    Scores are not range-checked here: the softmax converter sanitizes
    bad scores so one malformed horse cannot fail the race.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    program_number: int = Field(..., gt=0)
    horse_name: str = Field(..., min_length=1)
    base_score: float = 0.0
    final_score: float = 0.0
    morning_line_odds: str = ""

    @field_validator("morning_line_odds", mode="before")
    @classmethod
    def _odds_as_text(cls, v: Any) -> str:
        # CSV readers hand back floats/None for odd cells; keep them as text
        # so the lenient parser decides what is usable.
        if v is None:
            return ""
        return str(v)


HorseLike = Union[HorseScoreInput, Mapping[str, Any]]


def coerce_horses(horses: Iterable[HorseLike]) -> List[HorseScoreInput]:
    """Validate raw records into HorseScoreInput, passing models through."""
    return [
        h if isinstance(h, HorseScoreInput) else HorseScoreInput.model_validate(h)
        for h in horses
    ]
