"""
Tests for strategy.overlay: model vs market value pipeline
"""

import sys
import copy
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from handicapper.probability import SoftmaxConverter, PlattCalibrator
from handicapper.strategy.ev import EVClass
from handicapper.strategy.overlay import (
    ValueClass, ValueThresholds, OverlayPipeline, calculate_overlay_pipeline,
    calculate_true_overlay, classify_true_overlay,
)


SCORES = [250, 220, 190, 160, 130, 100, 80, 60]
ODDS = ["2-1", "5-2", "3-1", "4-1", "5-1", "6-1", "8-1", "12-1"]


def _make_horse(program_number, score, odds, final_score=None, name=None):
    return {
        "program_number": program_number,
        "horse_name": name or f"Horse {program_number}",
        "base_score": score,
        "final_score": score if final_score is None else final_score,
        "morning_line_odds": odds,
    }


def _make_field(scores=SCORES, odds=ODDS):
    return [_make_horse(i + 1, s, o) for i, (s, o) in enumerate(zip(scores, odds))]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

class TestTrueOverlay:
    def test_formula(self):
        # (0.30 - 0.20) / 0.20 = 50%
        assert calculate_true_overlay(0.30, 0.20) == pytest.approx(50.0)
        assert calculate_true_overlay(0.10, 0.20) == pytest.approx(-50.0)

    def test_negligible_market(self):
        assert calculate_true_overlay(0.30, 0.0) == 0.0
        assert calculate_true_overlay(0.30, 0.001) == 0.0


class TestValueClassification:
    @pytest.mark.parametrize("overlay,expected", [
        (40.0, ValueClass.STRONG_VALUE),
        (15.0, ValueClass.STRONG_VALUE),
        (14.99, ValueClass.MODERATE_VALUE),
        (8.0, ValueClass.MODERATE_VALUE),
        (3.0, ValueClass.SLIGHT_VALUE),
        (0.0, ValueClass.NEUTRAL),
        (-3.0, ValueClass.NEUTRAL),
        (-3.01, ValueClass.UNDERLAY),
        (-80.0, ValueClass.UNDERLAY),
    ])
    def test_bands(self, overlay, expected):
        assert classify_true_overlay(overlay) == expected

    def test_monotonic(self):
        rank = list(reversed(list(ValueClass)))
        previous = None
        for tenth in range(-500, 500):
            current = rank.index(classify_true_overlay(tenth / 10))
            if previous is not None:
                assert current >= previous
            previous = current

    def test_custom_thresholds(self):
        thresholds = ValueThresholds(strong=30, moderate=20, slight=10, underlay=-10)
        assert classify_true_overlay(25, thresholds) == ValueClass.MODERATE_VALUE
        assert classify_true_overlay(-5, thresholds) == ValueClass.NEUTRAL

    def test_thresholds_must_descend(self):
        with pytest.raises(ValueError):
            ValueThresholds(strong=5.0, moderate=8.0)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class TestOverlayPipeline:
    def test_empty_field(self):
        output = calculate_overlay_pipeline([])
        assert output.horses == []
        assert output.is_empty
        assert output.field_metrics.field_size == 0
        assert output.field_metrics.overround == 0.0
        assert output.field_metrics.takeout_percent == 0.0
        assert output.calibration_applied is False

    def test_single_horse(self):
        output = calculate_overlay_pipeline([_make_horse(1, 180, "1-2")])
        horse = output.horses[0]
        assert horse.model_probability == 1.0
        assert horse.normalized_market_probability == pytest.approx(1.0)
        assert output.field_metrics.probabilities_validated is True

    def test_order_and_cardinality(self):
        output = calculate_overlay_pipeline(_make_field())
        assert [h.program_number for h in output.horses] == list(range(1, 9))
        assert output.field_metrics.field_size == 8

    def test_probabilities_sum_to_one(self):
        output = calculate_overlay_pipeline(_make_field())
        assert sum(h.model_probability for h in output.horses) == pytest.approx(1.0, abs=1e-3)
        assert sum(h.normalized_market_probability for h in output.horses) == pytest.approx(1.0)
        assert output.field_metrics.probabilities_validated is True
        assert output.field_metrics.average_model_probability == pytest.approx(1 / 8)

    def test_market_metrics(self):
        output = calculate_overlay_pipeline(_make_field())
        expected = sum(1 / (float(o.split("-")[0]) / float(o.split("-")[1]) + 1) for o in ODDS)
        metrics = output.field_metrics
        assert metrics.overround == pytest.approx(expected)
        assert metrics.takeout_percent == pytest.approx((expected - 1) * 100)
        # 8 horses at 2-1..12-1 is a very heavy book
        assert any("above maximum" in w for w in metrics.market_warnings)

    def test_per_horse_values(self):
        output = calculate_overlay_pipeline(_make_field())
        for horse in output.horses:
            p, m, odds = horse.model_probability, horse.normalized_market_probability, horse.decimal_odds
            assert horse.true_overlay_percent == pytest.approx((p - m) / m * 100)
            assert horse.expected_value == pytest.approx(p * (odds - 1) - (1 - p))
            assert horse.value_classification == classify_true_overlay(horse.true_overlay_percent)
            assert horse.raw_implied_probability == pytest.approx(1 / odds)
            assert horse.fair_odds == pytest.approx(min(100.0, round(1 / p, 2)))

    def test_first_horse_odds(self):
        horse = calculate_overlay_pipeline(_make_field()).horses[0]
        assert horse.decimal_odds == pytest.approx(3.0)
        assert horse.morning_line_odds == "2-1"
        assert horse.odds_fallback is False

    def test_unparseable_odds_fall_back(self):
        field = _make_field(scores=[200, 150], odds=["5-2", "N/A"])
        horse = calculate_overlay_pipeline(field).horses[1]
        assert horse.odds_fallback is True
        assert horse.decimal_odds == pytest.approx(200.0)

    def test_deterministic(self):
        a = calculate_overlay_pipeline(_make_field())
        b = calculate_overlay_pipeline(_make_field())
        assert a.to_dict() == b.to_dict()

    def test_input_not_mutated(self):
        field = _make_field()
        before = copy.deepcopy(field)
        calculate_overlay_pipeline(field)
        assert field == before

    def test_camel_case_records(self):
        field = [
            {"programNumber": 1, "horseName": "Alpha", "baseScore": 200, "finalScore": 210,
             "morningLineOdds": "3-1"},
            {"programNumber": 2, "horseName": "Bravo", "baseScore": 150, "finalScore": 150,
             "morningLineOdds": "EVEN"},
        ]
        output = calculate_overlay_pipeline(field)
        assert [h.horse_name for h in output.horses] == ["Alpha", "Bravo"]
        assert output.horses[1].decimal_odds == pytest.approx(2.0)

    def test_best_value_horse(self):
        # Top scorer at long odds is the standout overlay
        field = _make_field(scores=[300, 100, 100, 100], odds=["5-1", "2-1", "2-1", "3-1"])
        metrics = calculate_overlay_pipeline(field).field_metrics
        assert metrics.best_value_horse == 1
        assert metrics.best_overlay_percent > 100

    def test_no_overlay_no_best_horse(self):
        field = _make_field(scores=[100] * 4, odds=["3-1"] * 4)
        output = calculate_overlay_pipeline(field)
        assert output.field_metrics.best_value_horse is None
        for horse in output.horses:
            assert horse.true_overlay_percent == pytest.approx(0.0, abs=1e-9)
            assert horse.value_classification == ValueClass.NEUTRAL
            assert horse.ev_classification == EVClass.NEUTRAL

    def test_base_score_used_by_default(self):
        field = [_make_horse(1, 150, "3-1", final_score=300), _make_horse(2, 150, "3-1", final_score=100)]
        output = calculate_overlay_pipeline(field)
        assert output.horses[0].model_probability == pytest.approx(output.horses[1].model_probability)

        output = calculate_overlay_pipeline(field, use_final_score=True)
        assert output.horses[0].model_probability > output.horses[1].model_probability

    def test_temperature_override(self):
        sharp = calculate_overlay_pipeline(_make_field(), temperature=0.5)
        base = calculate_overlay_pipeline(_make_field())
        assert sharp.horses[0].model_probability > base.horses[0].model_probability

    def test_calibration_applied_mirrors_converter(self):
        converter = SoftmaxConverter(calibration=PlattCalibrator(races_used=500))
        assert calculate_overlay_pipeline(_make_field(), converter=converter).calibration_applied

        converter = SoftmaxConverter(calibration=PlattCalibrator())
        assert not calculate_overlay_pipeline(_make_field(), converter=converter).calibration_applied

    def test_calibration_can_be_skipped(self):
        converter = SoftmaxConverter(calibration=PlattCalibrator(races_used=500))
        output = calculate_overlay_pipeline(_make_field(), converter=converter, apply_calibration=False)
        assert output.calibration_applied is False

    def test_invalid_record_rejected(self):
        with pytest.raises(ValueError):
            calculate_overlay_pipeline([_make_horse(0, 100, "2-1")])

    def test_class_and_function_agree(self):
        field = _make_field()
        assert OverlayPipeline().run(field).to_dict() == calculate_overlay_pipeline(field).to_dict()


class TestOutputViews:
    def test_to_frame(self):
        frame = calculate_overlay_pipeline(_make_field()).to_frame()
        assert len(frame) == 8
        assert list(frame.index) == list(range(1, 9))
        assert frame.loc[1, "value_classification"] in {v.value for v in ValueClass}
        assert frame["model_probability"].sum() == pytest.approx(1.0, abs=1e-3)

    def test_to_frame_empty(self):
        assert len(calculate_overlay_pipeline([]).to_frame()) == 0

    def test_calibration_records(self):
        output = calculate_overlay_pipeline(_make_field())
        records = output.to_calibration_records("SAR-2024-08-01-R5")
        assert len(records) == 8
        assert records[0]["race_id"] == "SAR-2024-08-01-R5"
        assert records[0]["predicted_probability"] == output.horses[0].model_probability
        assert all(r["won"] is None for r in records)

    def test_get_horse(self):
        output = calculate_overlay_pipeline(_make_field())
        assert output.get_horse(3).morning_line_odds == "3-1"
        assert output.get_horse(99) is None
