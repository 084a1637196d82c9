"""
Tests for the handicapper CLI
"""

import sys
import json
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from click.testing import CliRunner

from handicapper.config import reload_config
from handicapper.interfaces.cli_app import cli, load_race_file


CSV_RACE = """program_number,horse_name,base_score,final_score,morning_line_odds
1,Alpha,300,305,5-1
2,Bravo,100,110,2-1
3,Charlie,100,95,2-1
4,Delta,100,100,3-1
"""


@pytest.fixture
def runner(monkeypatch):
    # Keep log records out of the captured output
    monkeypatch.setenv("HANDICAPPER_LOG_LEVEL", "ERROR")
    monkeypatch.delenv("HANDICAPPER_LOG_DIR", raising=False)
    monkeypatch.setenv("DEFAULT_BANKROLL", "500")
    reload_config()
    return CliRunner()


@pytest.fixture
def csv_race(tmp_path):
    path = tmp_path / "race.csv"
    path.write_text(CSV_RACE)
    return path


class TestLoadRaceFile:
    def test_csv(self, csv_race):
        horses = load_race_file(str(csv_race))
        assert len(horses) == 4
        assert horses[0]["morning_line_odds"] == "5-1"
        assert horses[0]["horse_name"] == "Alpha"

    def test_json_list(self, tmp_path):
        path = tmp_path / "race.json"
        path.write_text(json.dumps([{"programNumber": 1, "horseName": "A", "morningLineOdds": "2-1"}]))
        assert load_race_file(str(path))[0]["horseName"] == "A"

    def test_json_object(self, tmp_path):
        path = tmp_path / "race.json"
        path.write_text(json.dumps({"horses": []}))
        assert load_race_file(str(path)) == []

    def test_json_bad_shape(self, tmp_path):
        path = tmp_path / "race.json"
        path.write_text(json.dumps({"horses": "nope"}))
        with pytest.raises(ValueError):
            load_race_file(str(path))


class TestAnalyze:
    def test_table_output(self, runner, csv_race):
        result = runner.invoke(cli, ["analyze", str(csv_race)])
        assert result.exit_code == 0, result.output
        assert "Value Analysis" in result.output
        assert "Alpha" in result.output
        assert "#1 Alpha" in result.output
        assert "Stake: 25.00" in result.output

    def test_json_output(self, runner, csv_race):
        result = runner.invoke(cli, ["analyze", str(csv_race), "--json", "--bankroll", "1000"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["pipeline"]["field_metrics"]["field_size"] == 4
        recs = data["recommendations"]
        assert recs["bankroll"] == 1000
        assert recs["recommendations"][0]["program_number"] == 1
        assert recs["recommendations"][0]["stake_amount"] == pytest.approx(50.0)

    def test_filters_from_options(self, runner, csv_race):
        result = runner.invoke(cli, ["analyze", str(csv_race), "--min-overlay", "1000"])
        assert result.exit_code == 0, result.output
        assert "Pass" in result.output

    def test_empty_race(self, runner, tmp_path):
        path = tmp_path / "race.json"
        path.write_text("[]")
        result = runner.invoke(cli, ["analyze", str(path)])
        assert result.exit_code == 0, result.output
        assert "No horses in race" in result.output

    def test_calibration_file(self, runner, csv_race, tmp_path):
        cal = tmp_path / "platt.json"
        cal.write_text(json.dumps({"a": 1.0, "b": 0.0, "races_used": 600}))
        result = runner.invoke(cli, ["analyze", str(csv_race), "--calibration", str(cal), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["pipeline"]["calibration_applied"] is True

    def test_invalid_record(self, runner, tmp_path):
        path = tmp_path / "race.json"
        path.write_text(json.dumps([{"programNumber": 0, "horseName": "Bad"}]))
        result = runner.invoke(cli, ["analyze", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["analyze", str(tmp_path / "nope.csv")])
        assert result.exit_code != 0


class TestConfigCommand:
    def test_prints_config(self, runner):
        result = runner.invoke(cli, ["config"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["default_bankroll"] == 500.0
        assert data["kelly_fraction"] == 0.25
