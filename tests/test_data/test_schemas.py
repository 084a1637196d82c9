"""
Tests for data schemas.
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from pydantic import ValidationError

from handicapper.data.schemas import HorseScoreInput, coerce_horses


class TestHorseScoreInput:
    """Tests for the horse input model."""

    def test_snake_case(self):
        horse = HorseScoreInput(
            program_number=3, horse_name="Gallant Fox", base_score=180.5,
            final_score=190, morning_line_odds="7-2",
        )
        assert horse.program_number == 3
        assert horse.final_score == 190.0

    def test_camel_case(self):
        horse = HorseScoreInput.model_validate({
            "programNumber": 5, "horseName": "Seabiscuit",
            "baseScore": 120, "finalScore": 125, "morningLineOdds": "EVEN",
        })
        assert horse.horse_name == "Seabiscuit"
        assert horse.morning_line_odds == "EVEN"

    def test_defaults(self):
        horse = HorseScoreInput(program_number=1, horse_name="Omaha")
        assert horse.base_score == 0.0
        assert horse.morning_line_odds == ""

    def test_odds_kept_as_text(self):
        assert HorseScoreInput(program_number=1, horse_name="A", morning_line_odds=None).morning_line_odds == ""
        assert HorseScoreInput(program_number=1, horse_name="A", morning_line_odds=5).morning_line_odds == "5"

    def test_invalid_program_number(self):
        with pytest.raises(ValidationError):
            HorseScoreInput(program_number=0, horse_name="Zero")

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            HorseScoreInput(program_number=1, horse_name="")

    def test_immutable(self):
        horse = HorseScoreInput(program_number=1, horse_name="Whirlaway")
        with pytest.raises(ValidationError):
            horse.base_score = 200


class TestCoerceHorses:
    def test_mixed(self):
        model = HorseScoreInput(program_number=1, horse_name="A")
        horses = coerce_horses([model, {"program_number": 2, "horse_name": "B"}])
        assert horses[0] is model
        assert horses[1].program_number == 2

    def test_empty(self):
        assert coerce_horses([]) == []
